# -*- coding: utf-8 -*-
"""
pcdtree.info
============

Information-theoretic split primitives (entropy, gain, gain ratio) in two
flavours:

* over a :class:`Distribution`, i.e. class weights per candidate partition
  plus a missing-weight remainder;
* over a contiguous index range ``[first, last]`` of a dataset sorted on one
  attribute.  Here ``inside=True`` means the range itself and
  ``inside=False`` the known-valued instances outside it.  An optional
  :class:`FrequencyTable` answers range weights in O(1); without it every
  query sums the instances directly.

Gain follows C4.5: the information gained on known values is scaled by the
known fraction of the total weight, and the split information of a gain
ratio counts the missing weight as a partition of its own.
"""

from __future__ import annotations

import numpy as np

from .data import DataSet
from .rules import Rule, inside_rule


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _plogp(p: float) -> float:
    return p * np.log2(p) if p > 0 else 0.0


def entropy(weights) -> float:
    """Entropy in bits of a vector of class weights (0 for no weight)."""
    w = np.asarray(weights, dtype=float)
    tot = w.sum()
    if tot <= 0:
        return 0.0
    p = w / tot
    p = p[p > 0]
    return float(-np.sum(p * np.log2(p)))


# -----------------------------------------------------------------------------
# Distribution
# -----------------------------------------------------------------------------
class Distribution:
    """Class weights ``subsets[s][c]`` of each partition plus missing weight.

    Totals and the baseline entropy are cached; call
    :meth:`invalidate_cache` after mutating ``subsets`` or ``num_missing``.
    """

    def __init__(self, num_subsets: int = 0, num_classes: int = 0):
        self.subsets = np.zeros((num_subsets, num_classes), dtype=float)
        self.num_missing = 0.0
        self.invalidate_cache()

    def invalidate_cache(self) -> None:
        self._total_weight: float | None = None
        self._subset_weight: list[float | None] = [None] * len(self.subsets)
        self._default_info: float | None = None

    def weight_subset(self, i: int) -> float:
        if self._subset_weight[i] is None:
            self._subset_weight[i] = float(self.subsets[i].sum())
        return self._subset_weight[i]

    def total_weight(self) -> float:
        if self._total_weight is None:
            self._total_weight = (sum(self.weight_subset(s) for s in range(len(self.subsets)))
                                  + self.num_missing)
        return self._total_weight

    def default_info(self) -> float:
        if self._default_info is None:
            self._default_info = info(self, None)
        return self._default_info


def info(distribution: Distribution, subset: int | None = None) -> float:
    """Entropy of one partition, or of the known weight when ``subset`` is None."""
    if subset is not None:
        return entropy(distribution.subsets[subset])
    if len(distribution.subsets) == 0:
        return 0.0
    return entropy(distribution.subsets.sum(axis=0))


def gain(distribution: Distribution) -> float:
    total = distribution.total_weight()
    known = total - distribution.num_missing
    if known <= 0:
        return 0.0
    remainder = sum(distribution.weight_subset(s) / known * info(distribution, s)
                    for s in range(len(distribution.subsets)))
    return known / total * (distribution.default_info() - remainder)


def gain_ratio(distribution: Distribution) -> float:
    total = distribution.total_weight()
    if total <= 0:
        return 0.0
    split_info = sum(_plogp(distribution.weight_subset(s) / total)
                     for s in range(len(distribution.subsets)))
    split_info += _plogp(distribution.num_missing / total)
    if split_info == 0:
        return 0.0
    return gain(distribution) / -split_info


# -----------------------------------------------------------------------------
# Cumulative frequency table
# -----------------------------------------------------------------------------
class FrequencyTable:
    """Prefix sums of class weight over the current instance order.

    Row ``c`` holds the cumulative weight of class index ``c``; the last row
    the cumulative weight of every class.  Build it after sorting.
    """

    def __init__(self, data: DataSet):
        n = len(data.instances)
        k = len(data.classes)
        m = np.zeros((k + 1, n), dtype=float)
        if n:
            w = data.weight_array()
            m[data.class_index_array(), np.arange(n)] = w
            m[k] = w
        self.table = m.cumsum(axis=1)
        self.num_classes = k
        self.size = n

    def prefix(self, index: int, class_index: int | None = None) -> float:
        if index < 0:
            return 0.0
        row = self.num_classes if class_index is None else class_index
        return float(self.table[row, index])

    def weight(self, first: int, last: int, inside: bool, num_missing: int,
               class_index: int | None = None) -> float:
        w = self.prefix(last, class_index) - self.prefix(first - 1, class_index)
        if not inside:
            w = self.prefix(self.size - 1 - num_missing, class_index) - w
        return w


# -----------------------------------------------------------------------------
# Range primitives (data sorted on the tested attribute, missing last)
# -----------------------------------------------------------------------------
def freq(first: int, last: int, inside: bool, num_missing: int, data: DataSet,
         class_index: int | None = None) -> float:
    """Brute-force weight of a range (or of its known complement)."""
    if inside:
        indices = range(first, last + 1)
    else:
        indices = [i for i in range(len(data.instances) - num_missing)
                   if i < first or i > last]
    return float(sum(data.weight(i) for i in indices
                     if class_index is None or data.instances[i].class_index == class_index))


def _range_weight(first, last, inside, num_missing, data, table, class_index=None):
    if table is not None:
        return table.weight(first, last, inside, num_missing, class_index)
    return freq(first, last, inside, num_missing, data, class_index)


def range_info(first: int, last: int, inside: bool, num_missing: int,
               data: DataSet, table: FrequencyTable | None = None) -> float:
    counts = [_range_weight(first, last, inside, num_missing, data, table, c)
              for c in range(len(data.classes))]
    return entropy(counts)


def split_distribution(first: int, last: int, num_missing: int, data: DataSet,
                       table: FrequencyTable | None = None) -> tuple[float, float, float]:
    """``(inside, outside, missing)`` weight of the range split."""
    inside = _range_weight(first, last, True, num_missing, data, table)
    outside = _range_weight(first, last, False, num_missing, data, table)
    if table is not None:
        total = table.prefix(len(data.instances) - 1)
    else:
        total = data.sum_of_weights()
    return inside, outside, total - (inside + outside)


def range_gain(first: int, last: int, num_missing: int, data: DataSet,
               table: FrequencyTable | None = None) -> float:
    inside, outside, missing = split_distribution(first, last, num_missing, data, table)
    known = inside + outside
    total = known + missing
    if known <= 0:
        return 0.0
    remainder = (inside / known * range_info(first, last, True, num_missing, data, table)
                 + outside / known * range_info(first, last, False, num_missing, data, table))
    base = range_info(0, len(data.instances) - 1 - num_missing, True, num_missing, data, table)
    return known / total * (base - remainder)


def range_gain_ratio(first: int, last: int, num_missing: int, data: DataSet,
                     table: FrequencyTable | None = None) -> float:
    inside, outside, missing = split_distribution(first, last, num_missing, data, table)
    total = inside + outside + missing
    if total <= 0:
        return 0.0
    split_info = _plogp(inside / total) + _plogp(outside / total)
    if num_missing:
        split_info += _plogp(missing / total)
    if split_info == 0:
        return 0.0
    return range_gain(first, last, num_missing, data, table) / -split_info


# -----------------------------------------------------------------------------
# Rules and class tallies
# -----------------------------------------------------------------------------
def rule_distribution(data: DataSet, rule: Rule) -> Distribution:
    """Inside/outside class weights of ``rule``; unresolved weight is missing."""
    dist = Distribution(2, len(data.classes))
    for i, p in enumerate(data.instances):
        inside = inside_rule(p, rule)
        if inside is None:
            dist.num_missing += data.weight(i)
        else:
            dist.subsets[0 if inside else 1, p.class_index] += data.weight(i)
    dist.invalidate_cache()
    return dist


def rule_gain_ratio(data: DataSet, rule: Rule) -> float:
    dist = rule_distribution(data, rule)
    if dist.weight_subset(0) == 0 or dist.weight_subset(1) == 0:
        return 0.0
    if gain(dist) == 0:
        return 0.0
    return gain_ratio(dist)


def class_distribution(data: DataSet) -> dict[int, float]:
    """Weight per class value, in first-encountered order."""
    dist: dict[int, float] = {}
    for i, p in enumerate(data.instances):
        dist[p.class_val] = dist.get(p.class_val, 0.0) + data.weight(i)
    return dist


def most_frequent(data: DataSet) -> tuple[int | None, dict[int, float]]:
    """Majority class by weight (first one wins ties) and the tally."""
    dist = class_distribution(data)
    best, best_class = 0.0, None
    for class_val, w in dist.items():
        if w > best:
            best, best_class = w, class_val
    return best_class, dist
