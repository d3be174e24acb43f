# pcdtree/__init__.py
"""
pcdtree: decision trees with axis-aligned, parallel-coordinate and
nested-cavity splits, pessimistic pruning and cross-validation.

Exports:
    - PCTreeClassifier
    - DataSet, load_csv
    - TreeBuilder, BuildMethod, prune_node
    - cross_validation
"""
from .classifier import PCTreeClassifier
from .data import DataSet, load_csv
from .tree import BuildMethod, TreeBuilder, TreeNode, prune_node
from .validation import CrossValidationProgress, Progress, Result, cross_validation

__all__ = [
    "PCTreeClassifier",
    "DataSet",
    "load_csv",
    "BuildMethod",
    "TreeBuilder",
    "TreeNode",
    "prune_node",
    "CrossValidationProgress",
    "Progress",
    "Result",
    "cross_validation",
]
__version__ = "0.1.0"
