# -*- coding: utf-8 -*-
"""
pcdtree.tree
============

Binary decision trees whose internal nodes carry one :mod:`pcdtree.rules`
rule: instances inside the rule go to ``inside_child``, the rest to
``outside_child``.

The module holds the node structure, the recursive builder that asks a split
strategy for each node's rule, C4.5 pessimistic pruning with subtree
grafting, and the probabilistic classifier that sends an instance with a
missing tested value down both branches.

Every subset used while growing, pruning or classifying is computed with
:func:`pcdtree.rules.inside_rules`, so instances with missing values reach a
node with the fractional weight C4.5 would give them.
"""

from __future__ import annotations

import logging
import math
import weakref
from datetime import datetime
from enum import Enum
from typing import Iterator

import numpy as np
from sklearn.utils import check_random_state

from .axis import find_best_split, find_longest_run_split
from .cavities import find_best_cavity, find_best_cavity_c45
from .data import DataSet, Point
from .info import class_distribution, most_frequent
from .oblique import DifferentialEvolutionSplit, HillClimberSplit
from .optimize import DifferentialEvolution, HillClimber, HillClimbMode
from .rules import Rule, describe_rule, inside_rule, inside_rules

logger = logging.getLogger(__name__)

PRUNE_SLACK = 0.1


# -----------------------------------------------------------------------------
# Node
# -----------------------------------------------------------------------------
class TreeNode:
    """A node of a decision tree.

    Attributes
    ----------
    inside_child, outside_child : TreeNode or None
        Both set on an internal node, both ``None`` on a leaf.
    parent : TreeNode or None
        Weak back-reference used to rebuild the path from the root.
    class_val : int or None
        Predicted class value of a leaf.  A childless node without one is
        *unfinished*; its class is filled in on demand from the training data.
    rules : Rule or None
        The split rule of an internal node.
    rule_generated : bool
        Whether a strategy produced the rule while growing the tree.
    creation_time : str
        Timestamp of construction.
    """

    def __init__(self, class_val: int | None = None, rules: Rule | None = None):
        self.inside_child: TreeNode | None = None
        self.outside_child: TreeNode | None = None
        self._parent = None
        self.class_val = class_val
        self.rules = rules
        self.rule_generated = False
        self.creation_time = datetime.now().isoformat(timespec="seconds")

    @property
    def parent(self) -> "TreeNode | None":
        return None if self._parent is None else self._parent()

    @parent.setter
    def parent(self, node: "TreeNode | None") -> None:
        self._parent = None if node is None else weakref.ref(node)

    def set_children(self, inside: "TreeNode | None", outside: "TreeNode | None") -> None:
        self.inside_child = inside
        self.outside_child = outside
        for child in (inside, outside):
            if child is not None:
                child.parent = self

    def is_leaf(self) -> bool:
        return self.class_val is not None and not self.has_children()

    def has_children(self) -> bool:
        return self.inside_child is not None or self.outside_child is not None

    def size_of_tree(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    def deepest_leaf(self) -> int:
        depth = 0
        for child in (self.inside_child, self.outside_child):
            if child is not None:
                depth = max(depth, child.deepest_leaf())
        return depth + 1

    def iter_nodes(self) -> Iterator["TreeNode"]:
        """Pre-order walk, inside branch first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.outside_child is not None:
                stack.append(node.outside_child)
            if node.inside_child is not None:
                stack.append(node.inside_child)

    def description(self, feature_names=None, class_names=None, indent: str = "") -> str:
        """Indented ``if``/``else`` listing of the subtree."""
        if not self.has_children():
            label = self.class_val
            if class_names is not None and label is not None and 0 <= label < len(class_names):
                label = class_names[label]
            return f"{indent}Predict {label}"
        cond = describe_rule(self.rules, feature_names)
        return "\n".join([
            f"{indent}if {cond}:",
            self.inside_child.description(feature_names, class_names, indent + "  "),
            f"{indent}else:",
            self.outside_child.description(feature_names, class_names, indent + "  "),
        ])

    def __repr__(self) -> str:
        if self.has_children():
            return f"TreeNode(rules={self.rules!r})"
        return f"TreeNode(class_val={self.class_val})"


def rules_for_node(node: TreeNode) -> list[tuple[Rule, bool]]:
    """``(rule, invert)`` pairs from the root down to ``node``."""
    path = []
    child, parent = node, node.parent
    while parent is not None:
        path.append((parent.rules, parent.inside_child is not child))
        child, parent = parent, parent.parent
    path.reverse()
    return path


def _path_class(node: TreeNode, training: DataSet) -> int | None:
    """Majority class of the training data reaching ``node`` or, failing
    that, its nearest ancestor with data."""
    current = node
    while current is not None:
        class_val, _ = most_frequent(inside_rules(training, rules_for_node(current)))
        if class_val is not None:
            return class_val
        current = current.parent
    return None


# -----------------------------------------------------------------------------
# Builder
# -----------------------------------------------------------------------------
class BuildMethod(Enum):
    C45 = "C45"
    DE = "DE"
    HCF = "HCF"
    HCB = "HCB"
    HCR = "HCR"
    NC = "NC"
    NC_C45 = "NC_C45"
    PURE_RUN = "PURE_RUN"


_CLIMB_MODES = {
    BuildMethod.HCF: HillClimbMode.FIRST_IMPROVEMENT,
    BuildMethod.HCB: HillClimbMode.BEST_IMPROVEMENT,
    BuildMethod.HCR: HillClimbMode.ROUND_ROBIN_IMPROVEMENT,
}


class TreeBuilder:
    """Grow a tree with one split strategy.

    Parameters
    ----------
    build_method : BuildMethod, default=BuildMethod.C45
        Strategy asked for every node's rule.
    n_jobs : int or None, default=None
        joblib workers for the attribute-pair search of the oblique
        strategies.  ``None`` runs the search serially; ``-1`` uses every core.
    random_state : int, RandomState or None, default=None
        Seeds the stochastic strategies; each node draws a fresh seed.
    evolution : DifferentialEvolution or None
        Optimiser settings for ``DE``.
    climber : HillClimber or None
        Optimiser settings for ``HCF``/``HCB``/``HCR`` (the mode comes from
        the build method).
    """

    def __init__(self, build_method: BuildMethod = BuildMethod.C45, *,
                 n_jobs: int | None = None, random_state=None,
                 evolution: DifferentialEvolution | None = None,
                 climber: HillClimber | None = None):
        self.build_method = BuildMethod(build_method)
        self.n_jobs = n_jobs
        self.random_state = random_state
        self.evolution = evolution
        self.climber = climber

    def find_rule(self, data: DataSet, progress=None, rng=None) -> Rule | None:
        rng = check_random_state(rng if rng is not None else self.random_state)
        method = self.build_method
        if method is BuildMethod.C45:
            return find_best_split(data.copy())[0]
        if method is BuildMethod.PURE_RUN:
            return find_longest_run_split(data.copy())
        if method is BuildMethod.NC:
            return find_best_cavity(data)
        if method is BuildMethod.NC_C45:
            return find_best_cavity_c45(data)
        seed = int(rng.randint(np.iinfo(np.int32).max))
        if method is BuildMethod.DE:
            return DifferentialEvolutionSplit(data, optimizer=self.evolution, n_jobs=self.n_jobs,
                                              random_state=seed).get_rule(progress)
        return HillClimberSplit(data, mode=_CLIMB_MODES[method], climber=self.climber,
                                n_jobs=self.n_jobs, random_state=seed).get_rule()

    def build(self, data: DataSet, progress=None) -> TreeNode:
        root = TreeNode()
        self.finish_subtree(root, data, data, progress)
        return root

    def finish_subtree(self, node: TreeNode, data: DataSet, full_training_set: DataSet,
                       progress=None, rng=None) -> None:
        """Grow every childless node below (and including) ``node``.

        A node becomes a leaf when it holds fewer than three instances, is
        pure, gets no rule, or its rule leaves fewer than two instances on
        either side.
        """
        rng = check_random_state(rng if rng is not None else self.random_state)
        pending = [(node, data)]
        while pending:
            current, subset = pending.pop()
            if current.has_children():
                pending.append((current.outside_child,
                                inside_rules(full_training_set, rules_for_node(current.outside_child))))
                pending.append((current.inside_child,
                                inside_rules(full_training_set, rules_for_node(current.inside_child))))
                continue
            children = self._split(current, subset, full_training_set, progress, rng)
            if children is None:
                current.set_children(None, None)
                current.rules = None
                if subset.instances:
                    current.class_val = most_frequent(
                        inside_rules(full_training_set, rules_for_node(current)))[0]
                continue
            (inside, inside_data), (outside, outside_data) = children
            pending.append((outside, outside_data))
            pending.append((inside, inside_data))

    def _split(self, node: TreeNode, data: DataSet, full_training_set: DataSet,
               progress, rng):
        n = len(data.instances)
        if n < 3:
            return None
        first = data.instances[0].class_val
        if all(p.class_val == first for p in data.instances):
            return None
        rule = self.find_rule(data, progress, rng)
        if rule is None:
            return None

        node.rules = rule
        inside, outside = TreeNode(), TreeNode()
        node.set_children(inside, outside)
        inside_data = inside_rules(full_training_set, rules_for_node(inside))
        outside_data = inside_rules(full_training_set, rules_for_node(outside))
        n_in, n_out = len(inside_data.instances), len(outside_data.instances)
        if n_in < 2 or n_in > n - 2 or n_out < 2:
            logger.debug("Rejected split %s (%d inside, %d outside of %d)",
                         describe_rule(rule), n_in, n_out, n)
            node.rules = None
            return None
        node.rule_generated = True
        logger.debug("Split %s (%d inside, %d outside)", describe_rule(rule), n_in, n_out)
        return (inside, inside_data), (outside, outside_data)


# -----------------------------------------------------------------------------
# Pruning
# -----------------------------------------------------------------------------
def error_estimate(e: float, n: float) -> float:
    """Pessimistic number of errors among ``n`` with ``e`` observed.

    Upper bound of the continuity-corrected normal approximation at the 25%
    confidence level (``z = 0.6745``).
    """
    cf = 0.25
    z = 0.6745
    if n <= 0:
        return 0.0
    if e < 1:
        return n * (1 - cf ** (1 / n))
    if e >= n:
        return 0.0
    f = (e + 0.5) / n
    error = f + z * z / (2 * n)
    s = f / n - f * f / n + z * z / (4 * n * n)
    error += z * math.sqrt(s)
    error /= 1 + z * z / n
    return error * n


def _leaf_error(data: DataSet, class_val: int | None) -> float:
    total = data.sum_of_weights()
    if total <= 0:
        return 0.0
    if class_val is None:
        class_val = most_frequent(data)[0]
    wrong = total - class_distribution(data).get(class_val, 0.0)
    return error_estimate(wrong, total)


def subtree_error(node: TreeNode, data: DataSet) -> float:
    """Estimated errors of ``node``'s subtree on ``data``.

    Each instance is routed by the rules inside the subtree only.
    """
    if not node.has_children():
        return _leaf_error(data, node.class_val)
    inside = inside_rules(data, [(node.rules, False)])
    outside = inside_rules(data, [(node.rules, True)])
    return subtree_error(node.inside_child, inside) + subtree_error(node.outside_child, outside)


def _graft(node: TreeNode, child: TreeNode) -> None:
    node.rules = child.rules
    node.class_val = child.class_val
    node.rule_generated = child.rule_generated
    node.set_children(child.inside_child, child.outside_child)


def prune_node(node: TreeNode, data: DataSet) -> float:
    """Prune ``node``'s subtree bottom-up and return its estimated errors.

    ``data`` is the training data reaching ``node``.  After the children are
    pruned the node becomes a leaf if that costs no more than keeping the
    subtree or grafting its heavier child (within ``PRUNE_SLACK``); failing
    that the heavier child replaces the node if it costs no more than the
    subtree; otherwise the node stays.
    """
    leaf_class, dist = most_frequent(data)
    total = data.sum_of_weights()
    leaf_error = 0.0
    if leaf_class is not None:
        leaf_error = error_estimate(total - dist[leaf_class], total)
    if not node.has_children():
        return leaf_error

    inside = inside_rules(data, [(node.rules, False)])
    outside = inside_rules(data, [(node.rules, True)])
    tree_error = prune_node(node.inside_child, inside) + prune_node(node.outside_child, outside)
    if inside.sum_of_weights() >= outside.sum_of_weights():
        larger = node.inside_child
    else:
        larger = node.outside_child
    graft_error = subtree_error(larger, data)

    if leaf_error <= tree_error + PRUNE_SLACK and leaf_error <= graft_error + PRUNE_SLACK:
        logger.debug("Pruned to leaf %s (%.3f vs subtree %.3f)", leaf_class, leaf_error, tree_error)
        node.set_children(None, None)
        node.rules = None
        node.class_val = leaf_class
        return leaf_error
    if graft_error <= tree_error + PRUNE_SLACK:
        logger.debug("Grafted %s child (%.3f vs subtree %.3f)",
                     "inside" if larger is node.inside_child else "outside",
                     graft_error, tree_error)
        _graft(node, larger)
        return graft_error
    return tree_error


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------
def predict_proba_point(point: Point, training: DataSet, tree: TreeNode) -> dict[int, float]:
    """Class value -> probability for one instance.

    A missing tested value sends the instance down both branches, weighted
    by the share of training weight each child receives.
    """
    if not tree.has_children():
        if tree.class_val is None:
            tree.class_val = _path_class(tree, training)
        return {tree.class_val: 1.0}
    inside = inside_rule(point, tree.rules)
    if inside is not None:
        child = tree.inside_child if inside else tree.outside_child
        return predict_proba_point(point, training, child)

    p_in = predict_proba_point(point, training, tree.inside_child)
    p_out = predict_proba_point(point, training, tree.outside_child)
    w_in = inside_rules(training, rules_for_node(tree.inside_child)).sum_of_weights()
    w_out = inside_rules(training, rules_for_node(tree.outside_child)).sum_of_weights()
    total = w_in + w_out
    if total > 0:
        w_in, w_out = w_in / total, w_out / total
    else:
        w_in = w_out = 0.5
    probabilities: dict[int, float] = {}
    for class_val, p in p_in.items():
        probabilities[class_val] = probabilities.get(class_val, 0.0) + p * w_in
    for class_val, p in p_out.items():
        probabilities[class_val] = probabilities.get(class_val, 0.0) + p * w_out
    return probabilities


def classify_point(point: Point, training: DataSet, tree: TreeNode) -> int | None:
    probabilities = predict_proba_point(point, training, tree)
    best, best_p = None, 0.0
    for class_val, p in probabilities.items():
        if p > best_p:
            best, best_p = class_val, p
    return best


def test_classifier(points: list[Point], training: DataSet, tree: TreeNode) -> float:
    """Fraction of ``points`` classified as their own class."""
    if not points:
        return 0.0
    correct = sum(1 for p in points if classify_point(p, training, tree) == p.class_val)
    return correct / len(points)


test_classifier.__test__ = False


def find_unfinished(tree: TreeNode) -> TreeNode | None:
    for node in tree.iter_nodes():
        if not node.has_children() and node.class_val is None:
            return node
    return None


def finish_unfinished_leaves(tree: TreeNode, training: DataSet) -> None:
    """Give every unfinished leaf its majority training class."""
    for node in list(tree.iter_nodes()):
        if not node.has_children() and node.class_val is None:
            node.class_val = _path_class(node, training)
