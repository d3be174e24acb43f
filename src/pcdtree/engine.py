# -*- coding: utf-8 -*-
"""
pcdtree.engine
==============

Boundary to an external oblique tree inducer such as OC1.

The engine is any callable ``engine(matrix, categories)`` that takes

* ``matrix``: a dense float array of shape ``(instances, 1 + attributes)``
  whose column 0 is unused (the engine numbers dimensions from 1), and
* ``categories``: 1-based integer class codes, one per instance,

and returns the root of a binary hyperplane tree made of
:class:`NativeHyperplaneNode`-like objects, or ``None`` when it found no
split.  The engine cannot cope with missing values, so the data must be
imputed before crossing the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np

from .data import DataSet
from .info import most_frequent
from .rules import Hyperplane
from .tree import TreeNode


@dataclass
class NativeHyperplaneNode:
    """One split of an engine tree.

    ``coefficients`` holds one weight per attribute followed by the constant
    term.  Instances with ``sum(c_i * x_i) + c_bias < 0`` go left.  A missing
    child is a leaf predicting ``left_cat``/``right_cat``.
    """

    coefficients: Sequence[float]
    left: "NativeHyperplaneNode | None" = None
    right: "NativeHyperplaneNode | None" = None
    left_cat: int = 0
    right_cat: int = 0


Engine = Callable[[np.ndarray, np.ndarray], "NativeHyperplaneNode | None"]


def engine_input(data: DataSet) -> tuple[np.ndarray, np.ndarray]:
    """``(matrix, categories)`` for the engine; raises on missing values."""
    n, m = len(data.instances), data.num_attributes()
    matrix = np.zeros((n, 1 + m), dtype=float)
    categories = np.zeros(n, dtype=int)
    for r, p in enumerate(data.instances):
        if any(v is None for v in p.values):
            raise ValueError(f"instance {r} has missing values; impute before calling the engine")
        matrix[r, 1:] = p.values
        categories[r] = p.class_index + 1
    return matrix, categories


def convert_hyperplane_tree(native: NativeHyperplaneNode,
                            class_values: Sequence[int]) -> TreeNode:
    """Translate an engine tree; ``class_values[c - 1]`` is category ``c``."""

    def leaf(category: int) -> TreeNode:
        return TreeNode(class_val=class_values[category - 1])

    coefficients = list(native.coefficients)
    node = TreeNode(rules=Hyperplane(tuple(coefficients[:-1]), coefficients[-1]))
    node.rule_generated = True
    inside = (convert_hyperplane_tree(native.left, class_values)
              if native.left is not None else leaf(native.left_cat))
    outside = (convert_hyperplane_tree(native.right, class_values)
               if native.right is not None else leaf(native.right_cat))
    node.set_children(inside, outside)
    return node


def build_with_engine(data: DataSet, engine: Engine) -> TreeNode:
    """Grow a tree with ``engine``; a single leaf when it returns nothing."""
    matrix, categories = engine_input(data)
    native = engine(matrix, categories)
    if native is None:
        return TreeNode(class_val=most_frequent(data)[0])
    return convert_hyperplane_tree(native, [c.value for c in data.classes])


class EngineBuilder:
    """Adapter giving an engine the ``build(data, progress)`` interface used
    by :func:`pcdtree.validation.cross_validation`."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def build(self, data: DataSet, progress=None) -> TreeNode:
        return build_with_engine(data, self.engine)
