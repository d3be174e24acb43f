# -*- coding: utf-8 -*-
"""
pcdtree.optimize
================

Two small black-box minimisers over a box-constrained real parameter vector.

Problems implement :class:`OptimizationProblem`.  Both optimisers draw all
randomness from a ``numpy.random.RandomState`` obtained through
``sklearn.utils.check_random_state`` so that a seed makes a run repeatable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import numpy as np
from sklearn.utils import check_random_state


class OptimizationProblem(ABC):
    """Cost function over ``n_parameters`` bounded reals."""

    @property
    @abstractmethod
    def n_parameters(self) -> int:
        ...

    @abstractmethod
    def constraints(self) -> list[tuple[float, float]]:
        """``(min, max)`` per parameter."""

    @abstractmethod
    def evaluate_cost(self, parameters) -> float:
        ...

    def initial_candidate(self, rng) -> list[float] | None:
        """Warm start; ``None`` (or a vector of the wrong size) means random."""
        return None


def _random_candidate(constraints, rng) -> np.ndarray:
    return np.array([rng.uniform(lo, hi) for lo, hi in constraints], dtype=float)


def _within(candidate, constraints) -> bool:
    return all(lo <= v <= hi for v, (lo, hi) in zip(candidate, constraints))


# -----------------------------------------------------------------------------
# Differential evolution
# -----------------------------------------------------------------------------
@dataclass
class DifferentialEvolution:
    """Classic DE/rand/1/bin.

    Parameters
    ----------
    iterations : int, default=100
        Generations to run.
    population_size : int, default=50
        Agents per generation; at least 4.
    mutation_factor : float, default=0.6
        ``F`` in the mutant ``a + F * (b - c)``.
    crossover_factor : float, default=0.4
        Probability of taking each mutant coordinate (one coordinate is
        always taken).
    percentage_initial_provided : float, default=0.15
        Share of the first population seeded from
        :meth:`OptimizationProblem.initial_candidate`.
    random_state : int, RandomState or None
        Seed or generator.
    """

    iterations: int = 100
    population_size: int = 50
    mutation_factor: float = 0.6
    crossover_factor: float = 0.4
    percentage_initial_provided: float = 0.15
    random_state: object = None

    def optimize(self, problem: OptimizationProblem,
                 on_iteration_complete: Callable[[], None] | None = None) -> np.ndarray:
        if self.population_size < 4:
            raise ValueError("population_size must be at least 4")
        rng = check_random_state(self.random_state)
        n = problem.n_parameters
        constraints = problem.constraints()
        size = self.population_size

        provided = 0
        if 0.0 < self.percentage_initial_provided <= 1.0:
            provided = int(self.percentage_initial_provided * size)
        population = np.empty((size, n), dtype=float)
        for p in range(size):
            candidate = problem.initial_candidate(rng) if p < provided else None
            if candidate is None or len(candidate) != n:
                candidate = _random_candidate(constraints, rng)
            population[p] = candidate
        costs = np.array([problem.evaluate_cost(agent) for agent in population])
        best = int(np.argmin(costs))

        for _ in range(self.iterations):
            x = 0
            while x < size:
                a, b, c = x, x, x
                while len({x, a, b, c}) < 4:
                    a, b, c = rng.randint(size), rng.randint(size), rng.randint(size)
                z = population[a] + self.mutation_factor * (population[b] - population[c])
                forced = rng.randint(n)
                for j in range(n):
                    if not (rng.uniform() < self.crossover_factor or j == forced):
                        z[j] = population[x, j]
                if not _within(z, constraints):
                    # draw a fresh mutant for the same agent
                    continue
                cost = problem.evaluate_cost(z)
                if cost < costs[x]:
                    population[x] = z
                    costs[x] = cost
                if costs[x] < costs[best]:
                    best = x
                x += 1
            if on_iteration_complete is not None:
                on_iteration_complete()
        return population[best].copy()


# -----------------------------------------------------------------------------
# Hill climbing
# -----------------------------------------------------------------------------
class HillClimbMode(Enum):
    FIRST_IMPROVEMENT = "first"
    BEST_IMPROVEMENT = "best"
    ROUND_ROBIN_IMPROVEMENT = "round_robin"


@dataclass
class HillClimber:
    """Fixed-step coordinate hill climbing.

    Each iteration tries ``+step`` and ``-step`` on every parameter.
    ``FIRST_IMPROVEMENT`` takes the first move that lowers the cost,
    ``BEST_IMPROVEMENT`` scans all moves and takes the lowest, and
    ``ROUND_ROBIN_IMPROVEMENT`` behaves like first improvement but the next
    scan starts just after the accepted move.  Moves leaving the constraint
    box are not tried.  The climb ends when no move improves.
    """

    mode: HillClimbMode = HillClimbMode.FIRST_IMPROVEMENT
    max_iterations: int = 300
    step_size: float = 0.05
    random_state: object = None

    def optimize(self, problem: OptimizationProblem, start=None) -> np.ndarray:
        rng = check_random_state(self.random_state)
        n = problem.n_parameters
        constraints = problem.constraints()
        candidate = start if start is not None else problem.initial_candidate(rng)
        candidate = [] if candidate is None else list(candidate)[:n]
        for lo, hi in constraints[len(candidate):]:
            candidate.append(rng.uniform(lo, hi))
        current = np.array(candidate, dtype=float)
        current_cost = problem.evaluate_cost(current)

        moves = [(i, d) for i in range(n) for d in (-1.0, 1.0)]
        for _ in range(self.max_iterations):
            best_move, best_cost, accepted_at = None, current_cost, None
            for m, (i, d) in enumerate(moves):
                trial = current.copy()
                trial[i] += self.step_size * d
                if not _within(trial, constraints):
                    continue
                cost = problem.evaluate_cost(trial)
                if cost < best_cost:
                    best_move, best_cost, accepted_at = trial, cost, m
                    if self.mode is not HillClimbMode.BEST_IMPROVEMENT:
                        break
            if best_move is None:
                break
            if self.mode is HillClimbMode.ROUND_ROBIN_IMPROVEMENT:
                moves = moves[accepted_at + 1:] + moves[:accepted_at + 1]
            current, current_cost = best_move, best_cost
        return current
