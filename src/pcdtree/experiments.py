# -*- coding: utf-8 -*-
"""
pcdtree.experiments
===================

Batch runner: cross-validate several build methods over several datasets
and save the per-fold results.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable

import numpy as np

from .data import load_csv
from .persistence import PersistenceError, save_results
from .tree import BuildMethod
from .validation import Result, cross_validation

logger = logging.getLogger(__name__)


def run_experiments(datasets: Iterable[str],
                    build_methods: Iterable[BuildMethod] = (BuildMethod.C45,),
                    folds: int = 10, output_dir: str | None = None,
                    n_jobs: int | None = 1,
                    random_state=None) -> dict[tuple[str, BuildMethod], list[Result]]:
    """Cross-validate every build method on every dataset file.

    A dataset that cannot be loaded, or results that cannot be saved, are
    logged and the loop moves on.  Results go to
    ``<output_dir>/<dataset>_<method>.json`` when ``output_dir`` is given.

    Returns
    -------
    dict
        ``(dataset name, build method) -> list of fold results``.
    """
    methods = [BuildMethod(m) for m in build_methods]
    outcome: dict[tuple[str, BuildMethod], list[Result]] = {}
    for path in datasets:
        name = os.path.splitext(os.path.basename(path))[0]
        data = load_csv(path)
        if data is None:
            logger.error("Skipping dataset %s", path)
            continue
        for method in methods:
            results = cross_validation(data, folds=folds, build_method=method,
                                       n_jobs=n_jobs, random_state=random_state)
            outcome[(name, method)] = results
            logger.info("%s %s: accuracy %.4f, macro F %.4f", name, method.value,
                        np.mean([r.accuracy() for r in results]),
                        np.mean([r.macro_f_measure() for r in results]))
            if output_dir is None:
                continue
            target = os.path.join(output_dir, f"{name}_{method.value}.json")
            try:
                save_results(results, target)
            except PersistenceError as exc:
                logger.error("Could not save results for %s %s: %s", name, method.value, exc)
    return outcome
