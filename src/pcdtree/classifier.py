# -*- coding: utf-8 -*-
"""
pcdtree.classifier
==================

scikit-learn style front end to the tree builder.

:class:`PCTreeClassifier` turns array-likes into a :class:`~pcdtree.data.DataSet`,
grows a tree with the chosen split strategy, prunes it and predicts with the
probabilistic missing-value classifier.  It also offers the rule tracing,
rule export, pretty printing and Graphviz helpers of a single-tree model.
"""

from __future__ import annotations

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin

from .data import DataSet
from .optimize import DifferentialEvolution, HillClimber
from .rules import describe_rule, inside_rule
from .tree import (BuildMethod, TreeBuilder, TreeNode, finish_unfinished_leaves,
                   predict_proba_point, prune_node)


class PCTreeClassifier(BaseEstimator, ClassifierMixin):
    """
    Binary decision tree classifier with axis-aligned, oblique
    (parallel-coordinate) or nested-cavity splits.

    Parameters
    ----------
    build_method : str or BuildMethod, default="C45"
        Split strategy: ``"C45"`` (axis-aligned gain ratio), ``"DE"``
        (differential evolution over attribute pairs), ``"HCF"``/``"HCB"``/
        ``"HCR"`` (hill climbing, first/best/round-robin improvement),
        ``"NC"`` (nested cavities), ``"NC_C45"`` (better of cavities and
        axis split) or ``"PURE_RUN"`` (longest single-class run).
    pruning : bool, default=True
        Whether to apply pessimistic pruning with grafting after growth.
    n_jobs : int or None, default=None
        joblib workers for the attribute-pair search of the oblique
        strategies.  ``None`` runs the search serially; ``-1`` uses every core.
    random_state : int or None, default=None
        Seed for the stochastic strategies.
    de_iterations : int, default=100
        Generations of differential evolution per attribute pair.
    de_population : int, default=50
        Population size of differential evolution (at least 4).
    hc_max_iterations : int, default=300
        Iteration cap of hill climbing.
    hc_step_size : float, default=0.05
        Step of each hill-climbing move in normalised units.
    feature_names : list[str] or None, default=None
        Names used by the export helpers; ``fit`` may override them.

    Attributes
    ----------
    classes_ : ndarray
        Sorted class labels.
    tree_ : TreeNode
        Root of the fitted tree.  Leaf class values index ``classes_``.
    training_ : DataSet
        Training data kept for missing-value classification.

    Notes
    -----
    Missing values may be given as ``None`` or ``numpy.nan``.  String cells
    are coded as nominal values; a string unseen during ``fit`` is treated as
    missing.
    """

    def __init__(
        self,
        *,
        build_method: str | BuildMethod = "C45",
        pruning: bool = True,
        n_jobs: int | None = None,
        random_state: int | None = None,
        de_iterations: int = 100,
        de_population: int = 50,
        hc_max_iterations: int = 300,
        hc_step_size: float = 0.05,
        feature_names: list[str] | None = None,
    ):
        self.build_method = build_method
        self.pruning = pruning
        self.n_jobs = n_jobs
        self.random_state = random_state
        self.de_iterations = de_iterations
        self.de_population = de_population
        self.hc_max_iterations = hc_max_iterations
        self.hc_step_size = hc_step_size
        self.feature_names = feature_names

    # ------------------------------------------------------------------
    # Fit / predict
    # ------------------------------------------------------------------
    def fit(self, X, y, sample_weight=None, feature_names=None):
        X = np.asarray(X, dtype=object)
        y = np.asarray(y)
        if X.ndim != 2:
            raise ValueError("X must be two dimensional")
        n_features = X.shape[1]
        if feature_names is not None:
            if len(feature_names) != n_features:
                raise ValueError("feature_names length must match X.shape[1]")
            self.feature_names_ = list(feature_names)
        elif self.feature_names is not None:
            self.feature_names_ = list(self.feature_names)
        else:
            self.feature_names_ = [f"f{i}" for i in range(n_features)]
        self.n_features_in_ = n_features
        self.classes_ = np.unique(y)

        self.training_ = DataSet.from_arrays(X, y, sample_weight=sample_weight,
                                             feature_names=self.feature_names_,
                                             classes=self.classes_)
        builder = TreeBuilder(
            BuildMethod(self.build_method),
            n_jobs=self.n_jobs,
            random_state=self.random_state,
            evolution=DifferentialEvolution(iterations=int(self.de_iterations),
                                            population_size=int(self.de_population)),
            climber=HillClimber(max_iterations=int(self.hc_max_iterations),
                                step_size=float(self.hc_step_size)),
        )
        self.tree_ = builder.build(self.training_)
        if self.pruning:
            prune_node(self.tree_, self.training_)
        finish_unfinished_leaves(self.tree_, self.training_)
        return self

    def _check_fitted(self):
        if getattr(self, "tree_", None) is None:
            raise ValueError("Estimator not fitted. Call fit(...) first.")

    def predict(self, X):
        """
        Predict class labels for the provided samples.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Input samples.

        Returns
        -------
        ndarray of shape (n_samples,)
            Predicted class labels.
        """
        proba = self.predict_proba(X)
        return self.classes_[np.argmax(proba, axis=1)]

    def predict_proba(self, X):
        """
        Predict class probabilities for the provided samples.

        A sample with a missing value at a split follows both branches and
        the two results are mixed by the training weight of each branch.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Input samples.

        Returns
        -------
        ndarray of shape (n_samples, n_classes)
            Predicted class probabilities, columns ordered like ``classes_``.

        Raises
        ------
        ValueError
            If the estimator has not been fitted.
        """
        self._check_fitted()
        X = np.asarray(X, dtype=object)
        out = np.zeros((len(X), len(self.classes_)), dtype=float)
        for r, row in enumerate(X):
            point = self.training_.point_from_row(row)
            for class_val, p in predict_proba_point(point, self.training_, self.tree_).items():
                if class_val is not None:
                    out[r, class_val] += p
        return out

    # ------------------------------------------------------------------
    # Rule helpers
    # ------------------------------------------------------------------
    def predict_rule(self, X, feature_names=None):
        """
        Return the conditions each input sample satisfies on its way to a leaf.

        The trace stops at the first split whose tested value is missing.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
        feature_names : list[str], optional
            Defaults to the names seen by ``fit``.

        Returns
        -------
        list[str]
        """
        self._check_fitted()
        fn = feature_names if feature_names is not None else self.feature_names_
        X = np.asarray(X, dtype=object)
        return [self._trace_rule(self.training_.point_from_row(row), self.tree_, fn) for row in X]

    def export_rules(self, *, feature_names=None, class_names=None):
        """
        Export every root-to-leaf path as ``<antecedent> => <class>``.

        Parameters
        ----------
        feature_names : list[str], optional
            Defaults to the names seen by ``fit``.
        class_names : list[str], optional
            Names ordered like ``classes_``; defaults to the labels themselves.

        Returns
        -------
        list[str]
        """
        self._check_fitted()
        fn = feature_names if feature_names is not None else self.feature_names_
        rules: list[str] = []
        self._collect_rules(self.tree_, [], rules, fn, self._class_names(class_names))
        return rules

    def export_graphviz(self, filename: str | None = None, *, feature_names=None,
                        class_names=None, format: str = "png") -> str:
        """
        Export the tree structure in Graphviz format.

        Parameters
        ----------
        filename : str or None, default=None
            Basename of the output file.  If None, the DOT source is returned
            and nothing is written.
        feature_names : list[str], optional
        class_names : list[str], optional
        format : str, default="png"
            Any Graphviz output format.  ``'dot'`` writes the DOT source
            without calling the external ``dot`` command.

        Returns
        -------
        str
            Path to the written file, or the DOT source if filename is None.
        """
        self._check_fitted()
        try:
            import graphviz
        except ImportError:
            raise RuntimeError("Graphviz is required for export_graphviz but not installed.")
        fn = feature_names if feature_names is not None else self.feature_names_
        dot = graphviz.Digraph(format=format)
        self._add_graph_nodes(dot, self.tree_, "0", fn, self._class_names(class_names))

        if filename is None:
            return dot.source
        if format.lower() == "dot":
            path = f"{filename}.dot"
            dot.save(path)
            return path
        try:
            dot.render(filename, cleanup=True)
            return f"{filename}.{format}"
        except (graphviz.ExecutableNotFound, graphviz.CalledProcessError, OSError):
            fallback_path = f"{filename}.dot"
            dot.save(fallback_path)
            return fallback_path

    def print_tree(self, feature_names=None, class_names=None):
        """Pretty-print the tree to ``stdout``."""
        self._check_fitted()
        fn = feature_names if feature_names is not None else self.feature_names_
        print(self.tree_.description(fn, self._class_names(class_names)))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _class_names(self, class_names=None):
        if class_names is not None:
            return list(class_names)
        return [str(c) for c in self.classes_]

    def _trace_rule(self, point, node: TreeNode, fn) -> str:
        parts = []
        while node.has_children():
            inside = inside_rule(point, node.rules)
            if inside is None:
                parts.append(f"{describe_rule(node.rules, fn)} MISSING")
                break
            parts.append(describe_rule(node.rules, fn, invert=not inside))
            node = node.inside_child if inside else node.outside_child
        return " AND ".join(parts) if parts else "<root>"

    def _collect_rules(self, node: TreeNode, parts, rules, fn, cn):
        if not node.has_children():
            body = " AND ".join(parts) if parts else "<root>"
            rules.append(f"{body} => {cn[node.class_val]}")
            return
        self._collect_rules(node.inside_child, parts + [describe_rule(node.rules, fn)],
                            rules, fn, cn)
        self._collect_rules(node.outside_child,
                            parts + [describe_rule(node.rules, fn, invert=True)], rules, fn, cn)

    def _add_graph_nodes(self, dot, node: TreeNode, name: str, fn, cn):
        if not node.has_children():
            dot.node(name, f"class={cn[node.class_val]}",
                     shape="box", style="filled", color="lightgrey")
            return
        dot.node(name, describe_rule(node.rules, fn), shape="ellipse",
                 style="filled", color="lightblue")
        l_id, r_id = name + "L", name + "R"
        self._add_graph_nodes(dot, node.inside_child, l_id, fn, cn)
        self._add_graph_nodes(dot, node.outside_child, r_id, fn, cn)
        dot.edge(name, l_id, label="True")
        dot.edge(name, r_id, label="False")
