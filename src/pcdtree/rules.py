# -*- coding: utf-8 -*-
"""
pcdtree.rules
=============

The rule vocabulary of a tree node and the membership test behind both tree
growth and inference.

A node carries exactly one rule, one of the closed set of variants below:

``AxisSelection``
    a conjunction of per-attribute ranges (``AxisRange``); an open end is
    ``None``.
``Region``
    geometric shapes tested directly on two attribute values.
``PCRegion``
    shapes tested in parallel-coordinate space: each instance becomes the
    segment joining its two normalised attribute values drawn on two vertical
    axes at ``x=0`` and ``x=1``.
``Hyperplane``
    a linear split, ``sum(c_i * x_i) + bias < 0`` is inside.

Membership is tri-state: ``True``/``False`` when the rule resolves the
instance and ``None`` when a tested value is missing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from .data import DataSet, Point


# -----------------------------------------------------------------------------
# Shapes
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Rectangle:
    left: float
    right: float
    top: float
    bottom: float


@dataclass(frozen=True)
class Circle:
    center_x: float
    center_y: float
    radius: float


Shape = Union[Rectangle, Circle]


# -----------------------------------------------------------------------------
# Rule variants
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class AxisRange:
    axis_index: int
    range_min: float | None = None
    range_max: float | None = None


@dataclass(frozen=True)
class RegionRule:
    attributes: tuple[int, int]
    region: Shape


@dataclass(frozen=True)
class PCRegionRule:
    attributes: tuple[int, int]
    region: Shape
    axis_separation: float
    axis_min: tuple[float, float]
    axis_max: tuple[float, float]
    attributes_flipped: tuple[bool, bool] = (False, False)


@dataclass(frozen=True)
class AxisSelection:
    ranges: tuple[AxisRange, ...]


@dataclass(frozen=True)
class Region:
    regions: tuple[RegionRule, ...]


@dataclass(frozen=True)
class PCRegion:
    regions: tuple[PCRegionRule, ...]


@dataclass(frozen=True)
class Hyperplane:
    coefficients: tuple[float, ...]
    bias: float = 0.0


Rule = Union[AxisSelection, Region, PCRegion, Hyperplane]

# (rule, invert) pairs from the root down to a node
Path = Sequence[tuple[Rule, bool]]


# -----------------------------------------------------------------------------
# Geometry
# -----------------------------------------------------------------------------
def line_rectangle_intersection(line: tuple[float, float, float, float],
                                rectangle: Rectangle) -> bool:
    """Liang-Barsky test: does the segment ``(x0, y0) -> (x1, y1)`` touch
    the rectangle?"""
    x0, y0, x1, y1 = line
    vx = x1 - x0
    vy = y1 - y0
    p = (-vx, vx, -vy, vy)
    q = (x0 - rectangle.left, rectangle.right - x0,
         y0 - rectangle.bottom, rectangle.top - y0)
    t0, t1 = 0.0, 1.0
    for pi, qi in zip(p, q):
        if pi == 0:
            if qi < 0:
                return False
            continue
        t = qi / pi
        if pi < 0:
            t0 = max(t0, t)
        else:
            t1 = min(t1, t)
    return t0 <= t1


def segments_cross_rectangle(y_start: np.ndarray, y_end: np.ndarray,
                             rectangle: Rectangle) -> np.ndarray:
    """Vectorised :func:`line_rectangle_intersection` for segments running
    from ``x=0`` to ``x=1``."""
    dy = y_end - y_start
    with np.errstate(divide="ignore", invalid="ignore"):
        ta = (rectangle.bottom - y_start) / dy
        tb = (rectangle.top - y_start) / dy
    rising = dy > 0
    flat = dy == 0
    enter = np.where(flat, -np.inf, np.where(rising, ta, tb))
    leave = np.where(flat, np.inf, np.where(rising, tb, ta))
    lo = np.maximum(max(0.0, rectangle.left), enter)
    hi = np.minimum(min(1.0, rectangle.right), leave)
    flat_ok = ~flat | ((y_start >= rectangle.bottom) & (y_start <= rectangle.top))
    return (lo <= hi) & flat_ok


def line_circle_intersection(line: tuple[float, float, float, float],
                             circle: Circle) -> bool:
    x0, y0, x1, y1 = line
    dx = x1 - x0
    dy = y1 - y0
    a = dx * dx + dy * dy
    b = 2 * (dx * (x0 - circle.center_x) + dy * (y0 - circle.center_y))
    c = ((x0 - circle.center_x) ** 2 + (y0 - circle.center_y) ** 2
         - circle.radius * circle.radius)
    return a > 1e-8 and b * b - 4 * a * c > 0


def normalise(v: float, lo: float, hi: float) -> float:
    span = hi - lo
    return (v - lo) / span if span else 0.0


# -----------------------------------------------------------------------------
# Membership
# -----------------------------------------------------------------------------
def inside_region_rule(point: Point, rule: RegionRule | PCRegionRule) -> bool | None:
    v1 = point.values[rule.attributes[0]]
    v2 = point.values[rule.attributes[1]]
    if v1 is None or v2 is None:
        return None
    shape = rule.region
    if isinstance(rule, PCRegionRule):
        y0 = normalise(v1, rule.axis_min[0], rule.axis_max[0])
        y1 = normalise(v2, rule.axis_min[1], rule.axis_max[1])
        if rule.attributes_flipped[0]:
            y0 = 1 - y0
        if rule.attributes_flipped[1]:
            y1 = 1 - y1
        if isinstance(shape, Rectangle):
            return line_rectangle_intersection((0.0, y0, 1.0, y1), shape)
        # circles live on a stretched canvas with the second axis at the centre
        return line_circle_intersection((0.0, 1.7 * y0, 0.5, 1.7 * y1), shape)
    if isinstance(shape, Rectangle):
        return shape.left <= v1 <= shape.right and shape.bottom <= v2 <= shape.top
    return math.hypot(v1 - shape.center_x, v2 - shape.center_y) < shape.radius


def inside_rule(point: Point, rule: Rule) -> bool | None:
    if isinstance(rule, AxisSelection):
        for r in rule.ranges:
            v = point.values[r.axis_index]
            if v is None:
                return None
            if r.range_min is not None and v < r.range_min:
                return False
            if r.range_max is not None and v > r.range_max:
                return False
        return True
    if isinstance(rule, (Region, PCRegion)):
        for r in rule.regions:
            inside = inside_region_rule(point, r)
            if inside is None:
                return None
            if not inside:
                return False
        return True
    if isinstance(rule, Hyperplane):
        if len(rule.coefficients) != len(point.values):
            raise ValueError("hyperplane has %d coefficients for %d attributes"
                             % (len(rule.coefficients), len(point.values)))
        if any(v is None for v in point.values):
            raise ValueError("hyperplane rules need imputed data")
        value = sum(c * v for c, v in zip(rule.coefficients, point.values)) + rule.bias
        return bool(value < 0)
    raise TypeError(f"unknown rule type {type(rule).__name__}")


def inside_rules(data: DataSet, path: Path) -> DataSet:
    """Instances of ``data`` that reach the end of ``path``.

    An instance is dropped as soon as a rule resolves it to the wrong side.
    Instances a rule cannot resolve stay, with their weight scaled by the
    share of resolved weight that rule kept; the factors compound along the
    path.
    """
    result = data.view()
    n = len(data.instances)
    keep = [True] * n
    weights = list(data.weights)
    for rule, invert in path:
        included = 0.0
        excluded = 0.0
        unresolved = []
        for i in range(n):
            if not keep[i]:
                continue
            inside = inside_rule(data.instances[i], rule)
            w = 1.0 if weights[i] is None else weights[i]
            if inside is None:
                unresolved.append(i)
            elif inside == invert:
                keep[i] = False
                excluded += w
            else:
                included += w
        resolved = included + excluded
        share = included / resolved if resolved > 0 else 0.5
        for i in unresolved:
            weights[i] = (1.0 if weights[i] is None else weights[i]) * share
    for i in range(n):
        if keep[i]:
            result.add_point(data.instances[i], weights[i])
    return result


# -----------------------------------------------------------------------------
# Text
# -----------------------------------------------------------------------------
def _name(i: int, feature_names) -> str:
    if feature_names is not None and 0 <= i < len(feature_names):
        return str(feature_names[i])
    return f"X[{i}]"


def describe_rule(rule: Rule, feature_names=None, invert: bool = False) -> str:
    """Human-readable condition, e.g. ``0.2500 < X[0] <= 1.0000``."""
    if isinstance(rule, AxisSelection):
        parts = []
        for r in rule.ranges:
            name = _name(r.axis_index, feature_names)
            if r.range_min is not None and r.range_max is not None:
                parts.append(f"{r.range_min:.4f} <= {name} <= {r.range_max:.4f}")
            elif r.range_min is not None:
                parts.append(f"{name} >= {r.range_min:.4f}")
            elif r.range_max is not None:
                parts.append(f"{name} <= {r.range_max:.4f}")
            else:
                parts.append(f"{name} ANY")
        text = " AND ".join(parts)
    elif isinstance(rule, (Region, PCRegion)):
        parts = []
        for r in rule.regions:
            a = _name(r.attributes[0], feature_names)
            b = _name(r.attributes[1], feature_names)
            if isinstance(r, PCRegionRule):
                a = f"~{a}" if r.attributes_flipped[0] else a
                b = f"~{b}" if r.attributes_flipped[1] else b
                kind = "PC"
            else:
                kind = ""
            s = r.region
            if isinstance(s, Rectangle):
                shape = (f"rect[{s.left:.3f},{s.right:.3f}]x"
                         f"[{s.bottom:.3f},{s.top:.3f}]")
            else:
                shape = f"circle({s.center_x:.3f},{s.center_y:.3f};r={s.radius:.3f})"
            parts.append(f"{kind}({a}, {b}) in {shape}")
        text = " AND ".join(parts)
    else:
        terms = " + ".join(f"{c:.4f}*{_name(i, feature_names)}"
                           for i, c in enumerate(rule.coefficients))
        text = f"{terms} + {rule.bias:.4f} < 0"
    return f"NOT ({text})" if invert else text
