# -*- coding: utf-8 -*-
"""
pcdtree.persistence
===================

JSON documents for trees and cross-validation results.

A node is written as::

    {"insideChildRule": {...} | null, "outsideChildRule": {...} | null,
     "classVal": int | null, "creationTime": str, "ruleGenerated": bool,
     "rules": {"type": "AxisSelection" | "Region" | "PCRegion" | "Hyperplane", ...} | null}

and a result as ``{"numClasses": k, "confusionMatrix": [k*k ints, row-major],
"tree": {...}}``.
"""

from __future__ import annotations

import json
import logging

from .data import DataSet
from .rules import (AxisRange, AxisSelection, Circle, Hyperplane, PCRegion, PCRegionRule,
                    Rectangle, Region, RegionRule, Rule)
from .tree import TreeNode, finish_unfinished_leaves
from .validation import Result

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A tree or result document could not be read or written."""


# -----------------------------------------------------------------------------
# Rules
# -----------------------------------------------------------------------------
def _shape_to_dict(shape) -> dict:
    if isinstance(shape, Rectangle):
        return {"left": shape.left, "right": shape.right, "top": shape.top, "bottom": shape.bottom}
    return {"centerX": shape.center_x, "centerY": shape.center_y, "radius": shape.radius}


def _shape_from_dict(d: dict):
    if "radius" in d:
        return Circle(center_x=d["centerX"], center_y=d["centerY"], radius=d["radius"])
    return Rectangle(left=d["left"], right=d["right"], top=d["top"], bottom=d["bottom"])


def rule_to_dict(rule: Rule) -> dict:
    if isinstance(rule, AxisSelection):
        return {"type": "AxisSelection",
                "ranges": [{"axisIndex": r.axis_index, "rangeMin": r.range_min,
                            "rangeMax": r.range_max} for r in rule.ranges]}
    if isinstance(rule, PCRegion):
        return {"type": "PCRegion",
                "regions": [{"attributes": list(r.attributes),
                             "region": _shape_to_dict(r.region),
                             "axisSeparation": r.axis_separation,
                             "axisMin": list(r.axis_min),
                             "axisMax": list(r.axis_max),
                             "attributeFlipped": list(r.attributes_flipped)}
                            for r in rule.regions]}
    if isinstance(rule, Region):
        return {"type": "Region",
                "regions": [{"attributes": list(r.attributes), "region": _shape_to_dict(r.region)}
                            for r in rule.regions]}
    if isinstance(rule, Hyperplane):
        return {"type": "Hyperplane", "coefficients": list(rule.coefficients), "bias": rule.bias}
    raise TypeError(f"unknown rule type {type(rule).__name__}")


def rule_from_dict(d: dict) -> Rule:
    kind = d["type"]
    if kind == "AxisSelection":
        return AxisSelection(tuple(AxisRange(r["axisIndex"], r.get("rangeMin"), r.get("rangeMax"))
                                   for r in d["ranges"]))
    if kind == "PCRegion":
        return PCRegion(tuple(PCRegionRule(attributes=tuple(r["attributes"]),
                                           region=_shape_from_dict(r["region"]),
                                           axis_separation=r["axisSeparation"],
                                           axis_min=tuple(r["axisMin"]),
                                           axis_max=tuple(r["axisMax"]),
                                           attributes_flipped=tuple(r.get("attributeFlipped",
                                                                          (False, False))))
                              for r in d["regions"]))
    if kind == "Region":
        return Region(tuple(RegionRule(attributes=tuple(r["attributes"]),
                                       region=_shape_from_dict(r["region"]))
                            for r in d["regions"]))
    if kind == "Hyperplane":
        return Hyperplane(tuple(d["coefficients"]), d.get("bias", 0.0))
    raise ValueError(f"unknown rule type {kind!r}")


# -----------------------------------------------------------------------------
# Trees
# -----------------------------------------------------------------------------
def tree_to_dict(node: TreeNode) -> dict:
    return {
        "insideChildRule": None if node.inside_child is None else tree_to_dict(node.inside_child),
        "outsideChildRule": None if node.outside_child is None else tree_to_dict(node.outside_child),
        "classVal": node.class_val,
        "creationTime": node.creation_time,
        "ruleGenerated": node.rule_generated,
        "rules": None if node.rules is None else rule_to_dict(node.rules),
    }


def tree_from_dict(d: dict) -> TreeNode:
    node = TreeNode(class_val=d.get("classVal"))
    rules = d.get("rules")
    node.rules = None if rules is None else rule_from_dict(rules)
    node.rule_generated = bool(d.get("ruleGenerated", False))
    if d.get("creationTime") is not None:
        node.creation_time = d["creationTime"]
    inside, outside = d.get("insideChildRule"), d.get("outsideChildRule")
    node.set_children(None if inside is None else tree_from_dict(inside),
                      None if outside is None else tree_from_dict(outside))
    return node


def _write_json(document, path: str) -> None:
    try:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2)
    except (OSError, TypeError, ValueError) as exc:
        raise PersistenceError(f"could not write {path}: {exc}") from exc


def _read_json(path: str):
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, ValueError) as exc:
        raise PersistenceError(f"could not read {path}: {exc}") from exc


def save_tree(tree: TreeNode, path: str) -> None:
    _write_json(tree_to_dict(tree), path)


def load_tree(path: str) -> TreeNode:
    document = _read_json(path)
    try:
        return tree_from_dict(document)
    except (KeyError, TypeError, ValueError) as exc:
        raise PersistenceError(f"malformed tree document {path}: {exc}") from exc


def export_tree(path: str, training: DataSet, tree: TreeNode) -> None:
    """Fill in unfinished leaves from ``training`` and save the tree."""
    finish_unfinished_leaves(tree, training)
    save_tree(tree, path)


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------
def result_to_dict(result: Result) -> dict:
    return {
        "numClasses": len(result.confusion_matrix),
        "confusionMatrix": [int(v) for row in result.confusion_matrix for v in row],
        "tree": tree_to_dict(result.tree),
    }


def result_from_dict(d: dict) -> Result:
    flat = list(d["confusionMatrix"])
    k = d.get("numClasses")
    if k is None:
        k = int(round(len(flat) ** 0.5))
    if k * k != len(flat):
        raise ValueError(f"confusion matrix of {len(flat)} cells is not {k}x{k}")
    matrix = [flat[r * k:(r + 1) * k] for r in range(k)]
    return Result(confusion_matrix=matrix, tree=tree_from_dict(d["tree"]))


def save_results(results: list[Result], path: str) -> None:
    _write_json([result_to_dict(r) for r in results], path)
    logger.info("Saved %d results to %s", len(results), path)


def load_results(path: str) -> list[Result]:
    document = _read_json(path)
    try:
        return [result_from_dict(d) for d in document]
    except (KeyError, TypeError, ValueError) as exc:
        raise PersistenceError(f"malformed results document {path}: {exc}") from exc
