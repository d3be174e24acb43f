# -*- coding: utf-8 -*-
"""
pcdtree.cavities
================

Nested cavities: isolate one class with a small conjunction of bounding-box
ranges.

For a target class the bounding box of its instances gives one candidate
range per attribute.  Each range is scored by the set of *other-class*
instances it still lets through, held as a packed ``uint64`` bitset.  A
conjunction is built greedily, always adding the range whose AND with the
current set removes the most other-class instances (the first such range on
ties), until the conjunction lets through no more than the full box does.
The chosen ranges are finally widened half way to the nearest value outside
the box.

The search has no randomness: the same dataset always yields the same range
order.
"""

from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field

import numpy as np

from .axis import find_best_split
from .data import DataSet
from .info import class_distribution, rule_gain_ratio
from .rules import AxisRange, AxisSelection, Rule, inside_rule, inside_rules

logger = logging.getLogger(__name__)

BOX_TOLERANCE = 1e-3


@dataclass
class CavityResult:
    """Outcome of mining one class.

    ``order`` lists indices into ``candidates`` in the order the greedy cover
    took them and ``diffs`` how many other-class instances each step removed.
    """

    class_val: int
    rule: AxisSelection
    candidates: list[AxisRange]
    order: list[int] = field(default_factory=list)
    diffs: list[int] = field(default_factory=list)
    target_impurity: int = 0


# -----------------------------------------------------------------------------
# Impurity
# -----------------------------------------------------------------------------
def impurity(data: DataSet, class_val: int) -> float:
    """Weight of the instances not of ``class_val``."""
    return float(sum(data.weight(i) for i, p in enumerate(data.instances)
                     if p.class_val != class_val))


def rule_impurity(data: DataSet, rule: Rule, class_val: int) -> float:
    return impurity(inside_rules(data, [(rule, False)]), class_val)


def find_all_rules(class_val: int, data: DataSet) -> list[AxisRange] | None:
    """Bounding-box range of ``class_val`` on every attribute that it narrows."""
    n = data.num_attributes()
    lows: list[float | None] = [None] * n
    highs: list[float | None] = [None] * n
    for p in data.instances:
        if p.class_val != class_val:
            continue
        for a, v in enumerate(p.values):
            if v is None:
                continue
            if lows[a] is None or v < lows[a]:
                lows[a] = v
            if highs[a] is None or v > highs[a]:
                highs[a] = v

    rules = []
    for a, (lo, hi) in enumerate(zip(lows, highs)):
        if lo is None:
            continue
        att = data.attributes[a]
        if att.min is not None and att.max is not None:
            tolerance = (att.max - att.min) * BOX_TOLERANCE
            if att.min == att.max or (abs(lo - att.min) < tolerance
                                      and abs(hi - att.max) < tolerance):
                continue
        rules.append(AxisRange(a, lo, hi))
    return rules or None


# -----------------------------------------------------------------------------
# Bitsets
# -----------------------------------------------------------------------------
def pack_bits(mask: np.ndarray) -> np.ndarray:
    """Pack boolean rows into little-endian ``uint64`` words."""
    mask = np.atleast_2d(np.asarray(mask, dtype=bool))
    packed = np.packbits(mask, axis=1, bitorder="little")
    pad = (-packed.shape[1]) % 8
    if pad:
        packed = np.pad(packed, ((0, 0), (0, pad)))
    return np.ascontiguousarray(packed).view(np.uint64)


def popcount(words: np.ndarray) -> np.ndarray:
    """Set bits per row."""
    words = np.atleast_2d(words)
    return np.unpackbits(words.view(np.uint8), axis=1).sum(axis=1).astype(np.int64)


def impurity_bits(data: DataSet, class_val: int,
                  rules: list[AxisRange]) -> tuple[np.ndarray, np.ndarray]:
    """Bitsets of the other-class instances each range lets through.

    Returns ``(bits, base)`` where ``bits`` has one row per range and
    ``base`` marks every other-class instance.  An instance a range cannot
    resolve counts as let through.
    """
    other = np.array([p.class_val != class_val for p in data.instances], dtype=bool)
    rows = np.empty((len(rules), len(data.instances)), dtype=bool)
    for r, rule in enumerate(rules):
        single = AxisSelection((rule,))
        rows[r] = [inside_rule(p, single) is not False for p in data.instances]
    return pack_bits(rows & other), pack_bits(other)[0]


def greedy_cover(bits: np.ndarray, base: np.ndarray,
                 target: int) -> tuple[list[int], list[int]]:
    """Greedy order of ranges until ``target`` other-class bits remain.

    At least one range is always taken.  Returns the chosen row indices and
    the number of bits each one removed.
    """
    current = base.copy()
    remaining = list(range(len(bits)))
    order: list[int] = []
    diffs: list[int] = []
    count = int(popcount(current)[0])
    while remaining and (not order or count != target):
        candidates = bits[remaining] & current
        counts = popcount(candidates)
        pick = int(np.argmax(count - counts))
        chosen = remaining.pop(pick)
        diffs.append(count - int(counts[pick]))
        order.append(chosen)
        current = candidates[pick]
        count = int(counts[pick])
    return order, diffs


# -----------------------------------------------------------------------------
# Boundary correction
# -----------------------------------------------------------------------------
def correct_decision_boundaries(rule: AxisSelection, data: DataSet) -> AxisSelection:
    """Move each bound half way to the nearest value outside the range.

    A bound with no value beyond it becomes open; a range left with two open
    ends is dropped.
    """
    result = []
    for s in rule.ranges:
        values = sorted(p.values[s.axis_index] for p in data.instances
                        if p.values[s.axis_index] is not None)
        new_min = new_max = None
        if s.range_min is not None:
            idx = bisect_left(values, s.range_min)
            if 0 < idx < len(values):
                v = values[idx - 1]
                new_min = v + (s.range_min - v) / 2.0
        if s.range_max is not None:
            idx = bisect_right(values, s.range_max)
            if 0 < idx < len(values):
                v = values[idx]
                new_max = s.range_max + (v - s.range_max) / 2.0
        if new_min is not None or new_max is not None:
            result.append(AxisRange(s.axis_index, new_min, new_max))
    return AxisSelection(tuple(result))


# -----------------------------------------------------------------------------
# Mining
# -----------------------------------------------------------------------------
def find_next_cavity(class_val: int, data: DataSet) -> CavityResult | None:
    rules = find_all_rules(class_val, data)
    if rules is None:
        return None
    bits, base = impurity_bits(data, class_val, rules)
    full = base.copy()
    for row in bits:
        full &= row
    target = int(popcount(full)[0])
    order, diffs = greedy_cover(bits, base, target)
    chosen = AxisSelection(tuple(rules[i] for i in order))
    rule = correct_decision_boundaries(chosen, data)
    if not rule.ranges:
        return None
    logger.debug("Cavity for class %s uses attributes %s, %d other-class instances left",
                 class_val, [r.axis_index for r in rule.ranges], target)
    return CavityResult(class_val=class_val, rule=rule, candidates=rules,
                        order=order, diffs=diffs, target_impurity=target)


def find_best_cavity(data: DataSet) -> Rule | None:
    """Cavity of the class whose full bounding box is purest.

    Only classes with at least two units of weight are considered.
    """
    dist = class_distribution(data)
    best_impurity, best_class = None, None
    for c in data.classes:
        if dist.get(c.value, 0.0) < 2:
            continue
        rules = find_all_rules(c.value, data)
        if rules is None:
            continue
        num_other = rule_impurity(data, AxisSelection(tuple(rules)), c.value)
        if best_impurity is None or num_other < best_impurity:
            best_impurity, best_class = num_other, c.value
    if best_class is None:
        return None
    result = find_next_cavity(best_class, data)
    return None if result is None else result.rule


def find_best_cavity_c45(data: DataSet) -> Rule | None:
    """Axis split or cavity, whichever has the higher gain ratio."""
    axis_rule, axis_gr = find_best_split(data.copy())
    cavity = find_best_cavity(data)
    if cavity is None:
        return axis_rule
    cavity_gr = rule_gain_ratio(data, cavity)
    if axis_rule is None or cavity_gr > axis_gr:
        return cavity
    return axis_rule
