# -*- coding: utf-8 -*-
"""
pcdtree.validation
==================

Stratified k-fold cross-validation of a tree builder, the confusion-matrix
metrics computed from it, and thread-safe progress counters a caller can
poll while folds are running.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field

import numpy as np
from joblib import Parallel, delayed
from sklearn.utils import check_random_state

from .data import DataSet
from .tree import BuildMethod, TreeBuilder, TreeNode, classify_point, prune_node

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Progress
# -----------------------------------------------------------------------------
class Progress:
    """Counter of completed work units."""

    def __init__(self, total: int = 0):
        self._lock = threading.RLock()
        self._total = total
        self._completed = 0
        self._start = time.monotonic()

    def reset(self, total: int) -> None:
        with self._lock:
            self._total = total
            self._completed = 0
            self._start = time.monotonic()

    def complete_one(self) -> None:
        with self._lock:
            self._completed += 1

    def fraction(self) -> float:
        with self._lock:
            if self._total <= 0:
                return 0.0
            return min(1.0, self._completed / self._total)

    def snapshot(self) -> tuple[float, float]:
        """``(fraction complete, elapsed seconds)``."""
        with self._lock:
            elapsed = time.monotonic() - self._start
        return self.fraction(), elapsed


class CrossValidationProgress:
    """Fold counter plus the progress of the fold being built."""

    def __init__(self):
        self._lock = threading.RLock()
        self.num_folds = 0
        self.completed_folds = 0
        self.fold_progress = Progress()
        self._start = time.monotonic()

    def reset(self, folds: int) -> None:
        with self._lock:
            self.num_folds = folds
            self.completed_folds = 0
            self._start = time.monotonic()

    def complete_fold(self) -> None:
        with self._lock:
            self.completed_folds += 1

    def snapshot(self) -> tuple[float, float]:
        fold_fraction = self.fold_progress.fraction()
        with self._lock:
            elapsed = time.monotonic() - self._start
            if self.num_folds == 0:
                return 1.0, elapsed
            done = min(self.num_folds, self.completed_folds + fold_fraction)
            return done / self.num_folds, elapsed


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------
@dataclass
class Result:
    """Confusion matrix (``[predicted][actual]``) of one fold and its tree."""

    confusion_matrix: list[list[int]] = field(default_factory=list)
    tree: TreeNode = field(default_factory=TreeNode)

    def _matrix(self) -> np.ndarray:
        return np.asarray(self.confusion_matrix, dtype=float).reshape(
            len(self.confusion_matrix), len(self.confusion_matrix))

    def num_test_cases(self) -> int:
        return int(self._matrix().sum())

    def accuracy(self) -> float:
        n = self.num_test_cases()
        if n == 0:
            return 0.0
        return float(np.trace(self._matrix()) / n)

    def _per_class(self) -> tuple[np.ndarray, np.ndarray]:
        # a class never predicted (or never present) counts as perfect
        m = self._matrix()
        diag = np.diag(m)
        predicted = m.sum(axis=1)
        actual = m.sum(axis=0)
        with np.errstate(divide="ignore", invalid="ignore"):
            precision = np.where(predicted == 0, 1.0, diag / predicted)
            recall = np.where(actual == 0, 1.0, diag / actual)
        return precision, recall

    def macro_precision(self) -> float:
        if not self.confusion_matrix:
            return 0.0
        return float(self._per_class()[0].mean())

    def macro_recall(self) -> float:
        if not self.confusion_matrix:
            return 0.0
        return float(self._per_class()[1].mean())

    def macro_f_measure(self) -> float:
        """Harmonic mean of macro precision and macro recall."""
        p = self.macro_precision()
        r = self.macro_recall()
        if p + r == 0:
            return 0.0
        return 2 * p * r / (p + r)

    def macro_f_measure_v2(self) -> float:
        """Mean of the per-class F1 scores."""
        if not self.confusion_matrix:
            return 0.0
        precision, recall = self._per_class()
        denom = precision + recall
        with np.errstate(divide="ignore", invalid="ignore"):
            f1 = np.where(denom == 0, 0.0, 2 * precision * recall / denom)
        return float(f1.mean())


# -----------------------------------------------------------------------------
# Folds
# -----------------------------------------------------------------------------
def stratified_folds(data: DataSet, folds: int, random_state=None) -> list[DataSet]:
    """Shuffle, order by class and deal the instances round-robin.

    Weights travel with their instances.
    """
    if folds < 2:
        raise ValueError(f"folds must be at least 2, got {folds}")
    rng = check_random_state(random_state)
    order = rng.permutation(len(data.instances))
    order = sorted(order, key=lambda i: data.instances[i].class_val)
    fold_sets = [data.view() for _ in range(folds)]
    for position, i in enumerate(order):
        fold_sets[position % folds].add_point(data.instances[i], data.weights[i])
    return fold_sets


def _training_set(data: DataSet, fold_sets: list[DataSet], held_out: int) -> DataSet:
    training = data.view()
    for j, fold in enumerate(fold_sets):
        if j == held_out:
            continue
        for point, weight in zip(fold.instances, fold.weights):
            training.add_point(point, weight)
    return training


def cross_validation(data: DataSet, folds: int = 10,
                     build_method: BuildMethod = BuildMethod.C45, n_jobs: int | None = 1,
                     progress: CrossValidationProgress | None = None,
                     random_state=None, builder=None) -> list[Result]:
    """Stratified k-fold cross-validation.

    Each fold trains a tree on the other folds, prunes it on that same
    training data and classifies the held-out instances.

    Parameters
    ----------
    data : DataSet
        The full dataset.
    folds : int, default=10
        Number of folds, at least 2.
    build_method : BuildMethod, default=BuildMethod.C45
        Split strategy of the default builder.
    n_jobs : int or None, default=1
        Folds run concurrently on joblib threads when greater than 1.
    progress : CrossValidationProgress or None
        Updated as folds complete.
    random_state : int, RandomState or None
        Seeds the shuffle and each fold's builder.
    builder : object with ``build(data, progress)`` or None
        Replaces the default :class:`~pcdtree.tree.TreeBuilder`.

    Returns
    -------
    list[Result]
        One result per fold, in fold order.
    """
    rng = check_random_state(random_state)
    fold_sets = stratified_folds(data, folds, rng)
    seeds = rng.randint(np.iinfo(np.int32).max, size=folds)
    if progress is not None:
        progress.reset(folds)
    k = len(data.classes)

    def run_fold(i: int, seed: int) -> Result:
        training = _training_set(data, fold_sets, i)
        fold_builder = builder or TreeBuilder(build_method, random_state=int(seed))
        tree = fold_builder.build(training, progress.fold_progress if progress else None)
        prune_node(tree, training)

        matrix = [[0] * k for _ in range(k)]
        for point in fold_sets[i].instances:
            actual = data.get_class_index(point.class_val)
            predicted = classify_point(point, training, tree)
            p = None if predicted is None else data.get_class_index(predicted)
            if actual is not None and p is not None:
                matrix[p][actual] += 1
        result = Result(confusion_matrix=matrix, tree=tree)
        if progress is not None:
            progress.complete_fold()
        logger.info("Fold %d/%d: accuracy %.4f, tree size %d",
                    i + 1, folds, result.accuracy(), tree.size_of_tree())
        return result

    return list(Parallel(n_jobs=n_jobs, backend="threading")(
        delayed(run_fold)(i, seed) for i, seed in enumerate(seeds)))
