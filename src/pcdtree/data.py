# -*- coding: utf-8 -*-
"""
pcdtree.data
============

Dataset model shared by every split strategy: attributes with running ranges
and lazily assigned nominal codes, instances (``Point``) holding optional
numeric values, and ``DataSet`` which owns instances together with a parallel
list of optional weights.

A weight of ``None`` stands for the default weight 1.0.  Fractional weights
only appear once missing values have been routed down several branches of a
tree (see :func:`pcdtree.rules.inside_rules`).
"""

from __future__ import annotations

import csv
import logging
import os
from typing import NamedTuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

MISSING_TOKENS = ("", "?")


# -----------------------------------------------------------------------------
# Attribute / Point
# -----------------------------------------------------------------------------
class Attribute:
    """A single input column.

    Numeric attributes keep a running ``min``/``max`` over the instances added
    to the owning dataset.  Nominal attributes additionally carry a dictionary
    mapping each token to a synthetic integer code; codes are handed out in
    first-seen order.
    """

    def __init__(self, name: str = "", min: float | None = None,
                 max: float | None = None):
        self.name = name
        self.min = min
        self.max = max
        self.nominal_values: dict[str, int] | None = None

    @property
    def is_nominal(self) -> bool:
        return self.nominal_values is not None

    def value_from_nominal(self, nominal: str) -> int:
        if self.nominal_values is None:
            self.nominal_values = {}
        if nominal not in self.nominal_values:
            self.nominal_values[nominal] = len(self.nominal_values)
        return self.nominal_values[nominal]

    def encode(self, token, learn: bool = True) -> float | None:
        """Turn a raw cell into an attribute value.

        Numbers pass through unless the attribute is already nominal, missing
        markers become ``None`` and everything else is coded as nominal.  With
        ``learn=False`` an unseen nominal token is treated as missing.
        """
        if token is None:
            return None
        if not self.is_nominal:
            try:
                v = float(token)
            except (TypeError, ValueError):
                pass
            else:
                return None if np.isnan(v) else v
        elif isinstance(token, (float, np.floating)) and np.isnan(token):
            return None
        token = str(token)
        if token in MISSING_TOKENS:
            return None
        if not learn and (self.nominal_values is None or token not in self.nominal_values):
            return None
        return float(self.value_from_nominal(token))

    def __repr__(self) -> str:
        return f"Attribute({self.name!r}, min={self.min}, max={self.max})"


class Point:
    """One instance: optional attribute values plus its class."""

    __slots__ = ("values", "class_val", "class_index")

    def __init__(self, values: list[float | None], class_val: int):
        self.values = values
        self.class_val = class_val
        self.class_index = 0

    def __repr__(self) -> str:
        return f"{self.values}-{self.class_val}"


class ClassLabel(NamedTuple):
    value: int
    name: str


# -----------------------------------------------------------------------------
# DataSet
# -----------------------------------------------------------------------------
class DataSet:
    """Instances, their optional weights, the class list and the schema."""

    def __init__(self, attributes: list[Attribute] | None = None):
        self.instances: list[Point] = []
        self.weights: list[float | None] = []
        self.classes: list[ClassLabel] = []
        self.class_name: str = ""
        self.attributes: list[Attribute] = list(attributes) if attributes else []
        self.file: str = ""

    def copy(self) -> "DataSet":
        """Private copy of the instance and weight lists.

        The attribute objects are shared, points are not duplicated.  Parallel
        tasks sort their copy without disturbing anybody else's order.
        """
        result = DataSet(self.attributes)
        result.instances = list(self.instances)
        result.weights = list(self.weights)
        result.classes = list(self.classes)
        result.class_name = self.class_name
        result.file = self.file
        return result

    def view(self) -> "DataSet":
        """Empty dataset with the same schema and fresh attribute ranges."""
        result = DataSet([Attribute(name=a.name) for a in self.attributes])
        for src, dst in zip(self.attributes, result.attributes):
            if src.nominal_values is not None:
                dst.nominal_values = dict(src.nominal_values)
        result.classes = list(self.classes)
        result.class_name = self.class_name
        result.file = self.file
        return result

    def __len__(self) -> int:
        return len(self.instances)

    # ------------------------------------------------------------------
    # Weights / columns
    # ------------------------------------------------------------------
    def weight(self, i: int) -> float:
        w = self.weights[i]
        return 1.0 if w is None else w

    def sum_of_weights(self) -> float:
        return float(sum(1.0 if w is None else w for w in self.weights))

    def weight_array(self) -> np.ndarray:
        return np.array([1.0 if w is None else w for w in self.weights], dtype=float)

    def column(self, a: int) -> np.ndarray:
        return np.array([np.nan if p.values[a] is None else p.values[a]
                         for p in self.instances], dtype=float)

    def class_index_array(self) -> np.ndarray:
        return np.fromiter((p.class_index for p in self.instances),
                           count=len(self.instances), dtype=int)

    def num_attributes(self) -> int:
        return len(self.attributes)

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------
    def add_point(self, point: Point, weight: float | None = None) -> bool:
        if len(point.values) != self.num_attributes():
            logger.debug("Skipping point with %d values, expected %d",
                         len(point.values), self.num_attributes())
            return False
        self.instances.append(point)
        self.weights.append(weight)
        for att, v in zip(self.attributes, point.values):
            if v is None:
                continue
            if att.min is None or att.min > v:
                att.min = v
            if att.max is None or att.max < v:
                att.max = v
        ci = self.get_class_index(point.class_val)
        if ci is None:
            self.classes.append(ClassLabel(point.class_val, str(point.class_val)))
            ci = len(self.classes) - 1
        point.class_index = ci
        return True

    def sort_on_attribute(self, a: int) -> int:
        """Sort ascending on attribute ``a`` (missing last); return #missing."""
        order = sorted(range(len(self.instances)),
                       key=lambda i: (self.instances[i].values[a] is None,
                                      self.instances[i].values[a] or 0.0))
        self.instances = [self.instances[i] for i in order]
        self.weights = [self.weights[i] for i in order]
        num_missing = 0
        for p in reversed(self.instances):
            if p.values[a] is not None:
                break
            num_missing += 1
        return num_missing

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------
    def add_attribute(self, name: str) -> None:
        self.attributes.append(Attribute(name=name))

    def clear_attribute_min_max(self) -> None:
        for att in self.attributes:
            att.min = None
            att.max = None

    def get_class_value(self, name: str) -> int:
        for c in self.classes:
            if c.name == name:
                return c.value
        try:
            v = int(name)
        except ValueError:
            v = len(self.classes)
        self.classes.append(ClassLabel(v, name))
        return v

    def get_class_index(self, value: int) -> int | None:
        for i, c in enumerate(self.classes):
            if c.value == value:
                return i
        return None

    # ------------------------------------------------------------------
    # Array bridge
    # ------------------------------------------------------------------
    @classmethod
    def from_arrays(cls, X, y, sample_weight=None, feature_names=None,
                    classes=None) -> "DataSet":
        """Build a dataset from array-likes.

        ``NaN``/``None`` cells are missing and strings are coded as nominal
        values.  ``classes`` fixes the class order (defaults to the sorted
        unique labels of ``y``); the class value of a label is its position.
        """
        X = np.asarray(X, dtype=object)
        if X.ndim != 2:
            raise ValueError("X must be two dimensional")
        y = np.asarray(y)
        if len(y) != X.shape[0]:
            raise ValueError("X and y must have the same number of rows")
        if sample_weight is not None and len(sample_weight) != len(y):
            raise ValueError("sample_weight must have the same length as y")
        if feature_names is None:
            feature_names = [f"f{i}" for i in range(X.shape[1])]
        elif len(feature_names) != X.shape[1]:
            raise ValueError("feature_names length must match X.shape[1]")
        if classes is None:
            classes = np.unique(y)
        data = cls([Attribute(name=str(n)) for n in feature_names])
        data.classes = [ClassLabel(i, str(c)) for i, c in enumerate(classes)]
        lookup = {c: i for i, c in enumerate(classes)}
        for r in range(X.shape[0]):
            values = [att.encode(tok) for att, tok in zip(data.attributes, X[r])]
            w = None if sample_weight is None else float(sample_weight[r])
            data.add_point(Point(values, lookup[y[r]]), weight=w)
        return data

    def point_from_row(self, row) -> Point:
        """Encode a query row against this schema without learning codes."""
        values = [att.encode(tok, learn=False) for att, tok in zip(self.attributes, row)]
        return Point(values, -1)

    def __repr__(self) -> str:
        return f"DataSet({len(self.instances)} instances, {self.num_attributes()} attributes)"


# -----------------------------------------------------------------------------
# Delimited text ingestion
# -----------------------------------------------------------------------------
def _first_line(path: str) -> str:
    with open(path, encoding="utf-8") as fh:
        return fh.readline()


def load_csv(path: str, sep: str = ",", headings_present: bool = True,
             last_is_class: bool = True) -> DataSet | None:
    """Load a delimited text file into a :class:`DataSet`.

    The separator is forced to ``","`` for ``.csv`` files or when the first
    line contains a comma.  Rows with the wrong number of columns are skipped.
    Returns ``None`` (after logging) when the file cannot be read.
    """
    try:
        first = _first_line(path)
    except OSError as exc:
        logger.error("Could not open file %s: %s", path, exc)
        return None
    if path.endswith("csv") or "," in first:
        sep = ","

    skipped: list[list[str]] = []

    def _bad_line(fields):
        skipped.append(fields)
        return None

    try:
        frame = pd.read_csv(path, sep=sep, header=None, dtype=str,
                            keep_default_na=False, skip_blank_lines=True,
                            engine="python", on_bad_lines=_bad_line,
                            quoting=csv.QUOTE_NONE)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        logger.error("Could not parse file %s: %s", path, exc)
        return None
    if frame.empty:
        logger.error("File %s holds no rows", path)
        return None

    data = DataSet()
    data.file = path
    header = [str(v) for v in frame.iloc[0]]
    num_values = len(header)
    names = header[:-1] if last_is_class else header
    for name in names:
        data.add_attribute(name if headings_present else "")
    if last_is_class and headings_present:
        data.class_name = header[-1]

    rows = frame.iloc[1:] if headings_present else frame
    for raw in rows.itertuples(index=False, name=None):
        # short rows come back padded with NaN
        if any(not isinstance(v, str) for v in raw):
            skipped.append(list(raw))
            continue
        class_token = raw[-1] if last_is_class else ""
        cells = raw[:-1] if last_is_class else raw
        values = [att.encode(tok) for att, tok in zip(data.attributes, cells)]
        data.add_point(Point(values, data.get_class_value(class_token)))

    if skipped:
        logger.warning("Skipped %d malformed rows in %s (expected %d columns)",
                       len(skipped), os.path.basename(path), num_values)
    return data


def save_csv(data: DataSet, path: str) -> None:
    lines = []
    for p in data.instances:
        cells = ["?" if v is None else f"{v:.2f}" for v in p.values]
        lines.append(",".join(cells + [str(p.class_val)]))
    with open(path, "w", encoding="utf-8") as fh:
        fh.write("\n".join(lines) + ("\n" if lines else ""))
