# -*- coding: utf-8 -*-
"""
pcdtree.oblique
===============

Oblique splits found in parallel-coordinate space.

Two attributes ``i`` and ``j`` are drawn as vertical axes at ``x=0`` and
``x=1``, each normalised to ``[0, 1]`` over the node's data (the second one
optionally upside down).  An instance becomes the segment joining its two
normalised values and the split is a rectangle: inside are the instances
whose segment touches it.  The rectangle is a point
``(left, top, right, bottom)`` in ``[0, 1]^4`` and its cost is
``1 / gain_ratio`` (infinite for an empty side or a negligible gain ratio).

Every attribute pair is optimised in its own joblib task.  Tasks share only
the running best, updated under a lock, and the search joins all tasks
before returning.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import replace

import numpy as np
from joblib import Parallel, delayed
from sklearn.utils import check_random_state

from .axis import find_best_split
from .data import DataSet
from .info import Distribution, gain_ratio
from .optimize import (DifferentialEvolution, HillClimber, HillClimbMode,
                       OptimizationProblem)
from .rules import PCRegion, PCRegionRule, Rectangle, Rule, normalise, segments_cross_rectangle

logger = logging.getLogger(__name__)

MIN_GAIN_RATIO = 1e-5
AXIS_SEPARATION = 0.5


class SharedBest:
    """Lock-guarded ``(cost, key, parameters)`` of the best task so far.

    Equal costs go to the smaller key so the outcome does not depend on
    task completion order.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.cost = math.inf
        self.key = None
        self.parameters = None

    def offer(self, cost: float, key, parameters) -> bool:
        with self._lock:
            if cost < self.cost or (cost == self.cost and self.key is not None
                                    and not math.isinf(cost) and key < self.key):
                self.cost, self.key, self.parameters = cost, key, parameters
                return True
            return False


# -----------------------------------------------------------------------------
# Per-pair problem
# -----------------------------------------------------------------------------
class PairRegionProblem(OptimizationProblem):
    """Rectangle search on one attribute pair of a private dataset copy."""

    def __init__(self, dataset: DataSet, attributes: tuple[int, int],
                 flipped: bool = False, best_single_splits=None):
        self.dataset = dataset.copy()
        self.attributes = attributes
        self.flipped = flipped
        self.best_single_splits = best_single_splits or []
        i, j = attributes
        a, b = self.dataset.attributes[i], self.dataset.attributes[j]
        c0, c1 = self.dataset.column(i), self.dataset.column(j)
        known = ~(np.isnan(c0) | np.isnan(c1))
        y0 = (c0[known] - a.min) / (a.max - a.min)
        y1 = (c1[known] - b.min) / (b.max - b.min)
        self._y0 = y0
        self._y1 = 1.0 - y1 if flipped else y1
        weights = self.dataset.weight_array()
        classes = self.dataset.class_index_array()
        self._weights = weights[known]
        self._classes = classes[known]
        self._missing = float(weights[~known].sum())
        self._num_classes = len(self.dataset.classes)

    @property
    def n_parameters(self) -> int:
        return 4

    def constraints(self):
        return [(0.0, 1.0)] * 4

    def region(self, parameters) -> Rectangle:
        return Rectangle(left=float(parameters[0]), right=float(parameters[2]),
                         top=float(parameters[1]), bottom=float(parameters[3]))

    def evaluate_cost(self, parameters) -> float:
        inside = segments_cross_rectangle(self._y0, self._y1, self.region(parameters))
        k = self._num_classes
        dist = Distribution(2, k)
        dist.subsets[0] = np.bincount(self._classes[inside], weights=self._weights[inside],
                                      minlength=k)
        dist.subsets[1] = np.bincount(self._classes[~inside], weights=self._weights[~inside],
                                      minlength=k)
        dist.num_missing = self._missing
        dist.invalidate_cache()
        if dist.weight_subset(0) == 0 or dist.weight_subset(1) == 0:
            return math.inf
        g = gain_ratio(dist)
        if g < MIN_GAIN_RATIO:
            return math.inf
        return 1.0 / g

    def initial_candidate(self, rng):
        """Best single-attribute split of either axis as a thin box on it."""
        i, j = self.attributes
        if rng.uniform() < 0.5:
            return list(self.best_single_splits[i]) or None
        result = list(self.best_single_splits[j])
        if len(result) != 4:
            return None
        result[0], result[2] = 0.99, 1.0
        if self.flipped:
            result[1], result[3] = 1.0 - result[3], 1.0 - result[1]
        return result

    def make_rule(self, parameters) -> Rule:
        i, j = self.attributes
        a, b = self.dataset.attributes[i], self.dataset.attributes[j]
        return PCRegion((PCRegionRule(
            attributes=(i, j),
            region=self.region(parameters),
            axis_separation=AXIS_SEPARATION,
            axis_min=(a.min, b.min),
            axis_max=(a.max, b.max),
            attributes_flipped=(False, self.flipped),
        ),))


# -----------------------------------------------------------------------------
# Strategies
# -----------------------------------------------------------------------------
class ParallelCoordinatesSplit:
    """Shared scaffolding of the pair-search strategies."""

    def __init__(self, dataset: DataSet, n_jobs: int | None = None, random_state=None):
        self.dataset = dataset
        self.n_jobs = n_jobs
        self.random_state = random_state
        self.best_single_splits: list[list[float]] | None = None

    def _usable(self, a: int) -> bool:
        att = self.dataset.attributes[a]
        return att.min is not None and att.max is not None and att.max > att.min

    def _single_split(self, a: int) -> list[float]:
        data = self.dataset.copy()
        att = data.attributes[a]
        rule, _ = find_best_split(data, attribute=a)
        if rule is None or not self._usable(a):
            return []
        r = rule.ranges[0]
        top = 1.0 if r.range_max is None else normalise(r.range_max, att.min, att.max)
        bottom = 0.0 if r.range_min is None else normalise(r.range_min, att.min, att.max)
        return [0.0, top, 0.01, bottom]

    def calculate_best_single_splits(self) -> list[list[float]]:
        """Warm starts per attribute, ``[]`` where no axis split exists."""
        self.best_single_splits = Parallel(n_jobs=self.n_jobs, backend="threading")(
            delayed(self._single_split)(a) for a in range(self.dataset.num_attributes()))
        return self.best_single_splits

    def pairs(self, with_flips: bool) -> list[tuple[int, int, bool]]:
        n = self.dataset.num_attributes()
        flips = (False, True) if with_flips else (False,)
        return [(i, j, k) for i in range(n) for j in range(i + 1, n) for k in flips
                if self._usable(i) and self._usable(j)]

    def _search(self, task, pairs) -> Rule | None:
        rng = check_random_state(self.random_state)
        seeds = rng.randint(np.iinfo(np.int32).max, size=len(pairs))
        best = SharedBest()

        def run(pair, seed):
            problem = PairRegionProblem(self.dataset, pair[:2], pair[2], self.best_single_splits)
            parameters = task(problem, int(seed))
            best.offer(problem.evaluate_cost(parameters), pair, parameters)

        Parallel(n_jobs=self.n_jobs, backend="threading")(
            delayed(run)(pair, seed) for pair, seed in zip(pairs, seeds))
        if best.key is None or math.isinf(best.cost):
            return None
        i, j, flipped = best.key
        logger.debug("Oblique split on (%d, %d%s), cost %.4f",
                     i, j, ", flipped" if flipped else "", best.cost)
        return PairRegionProblem(self.dataset, (i, j), flipped).make_rule(best.parameters)


class DifferentialEvolutionSplit(ParallelCoordinatesSplit):
    """Differential evolution on every attribute pair, both orientations."""

    def __init__(self, dataset: DataSet, optimizer: DifferentialEvolution | None = None,
                 n_jobs: int | None = None, random_state=None):
        super().__init__(dataset, n_jobs=n_jobs, random_state=random_state)
        self.optimizer = optimizer or DifferentialEvolution()

    def get_rule(self, progress=None) -> Rule | None:
        pairs = self.pairs(with_flips=True)
        if not pairs:
            return None
        if progress is not None:
            progress.reset(self.optimizer.iterations * len(pairs))
        self.calculate_best_single_splits()
        on_iteration = progress.complete_one if progress is not None else None

        def task(problem, seed):
            optimizer = replace(self.optimizer, random_state=seed)
            return optimizer.optimize(problem, on_iteration_complete=on_iteration)

        return self._search(task, pairs)


class HillClimberSplit(ParallelCoordinatesSplit):
    """Hill climbing on every attribute pair from a randomised warm start."""

    def __init__(self, dataset: DataSet,
                 mode: HillClimbMode = HillClimbMode.FIRST_IMPROVEMENT,
                 climber: HillClimber | None = None, n_jobs: int | None = None,
                 random_state=None):
        super().__init__(dataset, n_jobs=n_jobs, random_state=random_state)
        self.climber = replace(climber, mode=mode) if climber else HillClimber(mode=mode)

    def get_rule(self) -> Rule | None:
        pairs = self.pairs(with_flips=False)
        if not pairs:
            return None
        self.calculate_best_single_splits()

        def task(problem, seed):
            rng = check_random_state(seed)
            start = list(self.best_single_splits[problem.attributes[0]])
            if not start:
                start = list(rng.uniform(size=4))
            else:
                x1, x2 = rng.uniform(), rng.uniform()
                start[0], start[2] = min(x1, x2), max(x1, x2)
            climber = replace(self.climber, random_state=seed)
            return climber.optimize(problem, start=start)

        return self._search(task, pairs)
