# -*- coding: utf-8 -*-
"""
pcdtree.decision_list
=====================

Ordered first-match rule lists flattened from axis-aligned trees.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from .data import DataSet
from .persistence import PersistenceError
from .rules import AxisRange, AxisSelection
from .tree import TreeNode, finish_unfinished_leaves

logger = logging.getLogger(__name__)


@dataclass
class DecisionListEntry:
    ranges: list[AxisRange]
    class_val: int


class DecisionList:
    """Entries in tree order: an inside branch comes before its outside branch,
    so an entry only applies when no earlier one matched."""

    def __init__(self, entries: list[DecisionListEntry], dataset: DataSet):
        self.entries = entries
        self.dataset = dataset

    @classmethod
    def from_tree(cls, tree: TreeNode, dataset: DataSet) -> "DecisionList | None":
        """Flatten ``tree``; ``None`` for unfinished trees or non-axis rules.

        Open range ends are closed with the attribute ranges of ``dataset``.
        """
        entries: list[DecisionListEntry] = []
        stack = [(tree, [])]
        while stack:
            node, ranges = stack.pop()
            if node.is_leaf():
                entries.append(DecisionListEntry(ranges, node.class_val))
                continue
            if not node.has_children():
                logger.warning("Incomplete tree, cannot build a decision list")
                return None
            if not isinstance(node.rules, AxisSelection):
                logger.warning("Unsupported rule type %s in decision list",
                               type(node.rules).__name__)
                return None
            closed = []
            for r in node.rules.ranges:
                att = dataset.attributes[r.axis_index]
                closed.append(AxisRange(
                    r.axis_index,
                    att.min if r.range_min is None else r.range_min,
                    att.max if r.range_max is None else r.range_max))
            stack.append((node.outside_child, ranges))
            stack.append((node.inside_child, ranges + closed))
        return cls(entries, dataset)

    @staticmethod
    def simplify_rule(entry: DecisionListEntry) -> DecisionListEntry | None:
        """Intersect ranges on the same attribute; ``None`` if they cannot
        all hold."""
        merged: dict[int, AxisRange] = {}
        for r in entry.ranges:
            prev = merged.get(r.axis_index)
            if prev is None:
                merged[r.axis_index] = r
                continue
            if r.range_max < prev.range_min or r.range_min > prev.range_max:
                return None
            merged[r.axis_index] = replace(prev, range_min=max(prev.range_min, r.range_min),
                                           range_max=min(prev.range_max, r.range_max))
        return DecisionListEntry(list(merged.values()), entry.class_val)

    def simplify_rules(self) -> None:
        simplified = (self.simplify_rule(e) for e in self.entries)
        self.entries = [e for e in simplified if e is not None]

    def classify(self, values) -> int | None:
        """Class of the first entry whose ranges all contain ``values``."""
        for entry in self.entries:
            if all(values[r.axis_index] is not None
                   and r.range_min <= values[r.axis_index] <= r.range_max
                   for r in entry.ranges):
                return entry.class_val
        return None

    def lines(self, precision: int = 4) -> list[str]:
        """``class lo hi lo hi ...`` per entry, one bound pair per attribute."""
        out = []
        for entry in self.entries:
            by_axis = {r.axis_index: r for r in entry.ranges}
            cells = [str(entry.class_val)]
            for a, att in enumerate(self.dataset.attributes):
                r = by_axis.get(a)
                lo = att.min if r is None else r.range_min
                hi = att.max if r is None else r.range_max
                cells.append(f"{lo:.{precision}f} {hi:.{precision}f}")
            out.append(" ".join(cells))
        return out

    def save(self, path: str, precision: int = 4) -> None:
        try:
            with open(path, "w", encoding="utf-8") as fh:
                fh.write("\n".join(self.lines(precision)) + "\n")
        except OSError as exc:
            raise PersistenceError(f"could not write {path}: {exc}") from exc


def export_decision_list(path: str, precision: int, training: DataSet,
                         tree: TreeNode) -> DecisionList | None:
    """Finish ``tree``'s leaves, flatten, simplify and save it."""
    finish_unfinished_leaves(tree, training)
    dl = DecisionList.from_tree(tree, training)
    if dl is None:
        return None
    dl.simplify_rules()
    dl.save(path, precision)
    return dl
