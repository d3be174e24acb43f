# -*- coding: utf-8 -*-
"""
pcdtree.axis
============

Axis-aligned split search in the manner of C4.5.

For every attribute the instances are sorted (missing values last) and each
contiguous value range ``[i, j]`` is a candidate: the range is the inside
partition, the known values on either side of it the outside partition.
Range starts skip values tied (within ``TIE_TOLERANCE``) with the previous
start and range ends skip values tied with their successor, so a threshold
never separates equal values.

Among the attributes, only those whose best gain reaches the average best
gain (less ``AVERAGE_GAIN_SLACK``) compete, and the highest gain ratio wins.
"""

from __future__ import annotations

import logging

import numpy as np

from .data import DataSet
from .info import FrequencyTable, range_gain_ratio
from .rules import AxisRange, AxisSelection, Rule

logger = logging.getLogger(__name__)

TIE_TOLERANCE = 1e-4
AVERAGE_GAIN_SLACK = 1e-3
MIN_GAIN_RATIO = 1e-4


def _column_entropy(counts: np.ndarray, totals: np.ndarray) -> np.ndarray:
    """Entropy of each column of ``counts`` (classes x candidates)."""
    with np.errstate(divide="ignore", invalid="ignore"):
        p = np.where(totals > 0, counts / totals, 0.0)
        terms = np.where(p > 0, p * np.log2(np.where(p > 0, p, 1.0)), 0.0)
    return -terms.sum(axis=0)


def _range_starts(values: np.ndarray) -> list[int]:
    starts = []
    last = None
    for i in range(len(values) - 1):
        if last is not None and abs(values[i] - last) < TIE_TOLERANCE:
            continue
        last = values[i]
        starts.append(i)
    return starts


def _best_range(data: DataSet, a: int, num_missing: int):
    """Best-gain range ``(gain, i, j, table)`` on attribute ``a`` or None.

    Both partitions must weigh at least ``clamp(0.1 * known / classes, 2, 25)``.
    """
    n = len(data.instances)
    known_n = n - num_missing
    if known_n < 2:
        return None
    values = data.column(a)[:known_n]
    table = FrequencyTable(data)
    k = len(data.classes)
    cum = table.table
    min_split = min(max(2.0, 0.1 * known_n / k), 25.0)

    # a range may end at j unless values[j + 1] ties with values[j]
    is_end = np.ones(known_n, dtype=bool)
    is_end[:-1] = np.diff(values) >= TIE_TOLERANCE
    ends = np.nonzero(is_end)[0]

    known_counts = cum[:k, known_n - 1]
    known_w = cum[k, known_n - 1]
    total_w = cum[k, n - 1]
    if known_w <= 0:
        return None
    base = _column_entropy(known_counts[:, None], np.array([known_w]))[0]

    best_gain, best_i, best_j = None, 0, 0
    for i in _range_starts(values):
        js = ends[ends > i]
        if js.size == 0:
            continue
        before = cum[:, i - 1] if i > 0 else np.zeros(k + 1)
        inside = cum[:, js] - before[:, None]
        inside_counts, inside_w = inside[:k], inside[k]
        outside_counts = known_counts[:, None] - inside_counts
        outside_w = known_w - inside_w
        remainder = (inside_w / known_w * _column_entropy(inside_counts, inside_w)
                     + outside_w / known_w * _column_entropy(outside_counts, outside_w))
        gains = known_w / total_w * (base - remainder)
        usable = (inside_w >= min_split) & (outside_w >= min_split)
        if not usable.any():
            continue
        gains = np.where(usable, gains, -np.inf)
        pick = int(np.argmax(gains))
        if best_gain is None or gains[pick] > best_gain:
            best_gain, best_i, best_j = float(gains[pick]), i, int(js[pick])
    if best_gain is None:
        return None
    return best_gain, best_i, best_j, table


def find_best_split(data: DataSet, attribute: int | None = None) -> tuple[Rule | None, float]:
    """Best axis-aligned range rule and its gain ratio.

    Returns ``(None, 0.0)`` when no attribute reaches a gain ratio of
    ``MIN_GAIN_RATIO``.  ``data`` is left sorted on the last attribute tried.
    """
    if not data.instances or not data.classes:
        return None, 0.0
    attributes = range(data.num_attributes()) if attribute is None else [attribute]
    candidates = []
    for a in attributes:
        num_missing = data.sort_on_attribute(a)
        found = _best_range(data, a, num_missing)
        if found is None:
            continue
        g, i, j, table = found
        gr = range_gain_ratio(i, j, num_missing, data, table) if g > 0 else 0.0

        n = len(data.instances)
        v = [p.values[a] for p in data.instances]
        lo, hi = v[i], v[j]
        # put the thresholds half way to the neighbouring values
        if i != 0:
            lo = lo - (lo - v[i - 1]) / 2
        if j < n - 1 and v[j + 1] is not None:
            hi = hi + (v[j + 1] - hi) / 2
        range_min = lo if lo > v[0] else None
        range_max = hi if hi < v[n - 1 - num_missing] else None
        candidates.append((g, gr, AxisRange(a, range_min, range_max)))

    if not candidates:
        return None, 0.0
    average = sum(c[0] for c in candidates) / len(candidates)
    best = None
    for g, gr, r in candidates:
        if g < average - AVERAGE_GAIN_SLACK:
            continue
        if best is None or gr > best[0]:
            best = (gr, r)
    if best is None or best[0] < MIN_GAIN_RATIO:
        return None, 0.0
    logger.debug("Axis split on attribute %d [%s, %s], gain ratio %.4f",
                 best[1].axis_index, best[1].range_min, best[1].range_max, best[0])
    return AxisSelection((best[1],)), best[0]


def find_longest_run_split(data: DataSet) -> Rule | None:
    """Range covering the longest single-class run on any attribute.

    Mimics how a person reads a sorted column: the run boundaries sit half
    way between neighbouring values.  Runs shorter than two never qualify.
    """
    best_run, best = 1, None
    for a in range(data.num_attributes()):
        num_missing = data.sort_on_attribute(a)
        known = len(data.instances) - num_missing
        if known == 0:
            continue
        pts = data.instances
        run, run_min, run_class = 0, pts[0].values[a], pts[0].class_val
        for i in range(known):
            if pts[i].class_val == run_class:
                run += 1
                continue
            x = pts[i - 1].values[a] + (pts[i].values[a] - pts[i - 1].values[a]) / 2
            if run > best_run:
                best_run, best = run, AxisRange(a, run_min, x)
            run, run_class, run_min = 1, pts[i].class_val, x
        if run > best_run:
            best_run, best = run, AxisRange(a, run_min, pts[known - 1].values[a])
    if best is None:
        return None
    return AxisSelection((best,))
