import os

import numpy as np
import pytest
from sklearn.base import clone
from pcdtree import PCTreeClassifier


def _tiny_dataset():
    """Return a small classification dataset with a numeric and categorical feature."""
    X = np.array([[1, 'A'], [2, 'A'], [3, 'B'], [4, 'B']], dtype=object)
    y = np.array([0, 0, 1, 1])
    return X, y


def test_classifier_proba_sums_to_one():
    X, y = _tiny_dataset()
    clf = PCTreeClassifier(feature_names=['num', 'cat'])
    clf.fit(X, y)
    proba = clf.predict_proba(X)
    # probabilities for each row should sum to 1
    assert np.allclose(proba.sum(axis=1), 1.0)
    assert clf.score(X, y) == 1.0


def test_classifier_rule_export():
    X, y = _tiny_dataset()
    clf = PCTreeClassifier(feature_names=['num', 'cat'])
    clf.fit(X, y)
    # trace rule for each sample
    rules = clf.predict_rule(X, feature_names=['num', 'cat'])
    assert rules[0] == 'num <= 2.5000'
    assert rules[3] == 'NOT (num <= 2.5000)'
    assert clf.predict_rule([[None, 'A']])[0] == 'num <= 2.5000 MISSING'
    # export full tree rules
    tree_rules = clf.export_rules(feature_names=['num', 'cat'], class_names=['no', 'yes'])
    assert len(tree_rules) == 2
    assert all('=>' in r for r in tree_rules)


def test_classifier_graphviz_export(tmp_path):
    pytest.importorskip("graphviz")
    X = np.array([[1, 2], [3, 4], [5, 6]])
    y = np.array([0, 1, 0])
    clf = PCTreeClassifier().fit(X, y)

    source = clf.export_graphviz()
    assert 'digraph' in source
    # export Graphviz in dot format, should not require external graphviz binary
    out_path = clf.export_graphviz(str(tmp_path / 'test_tree'), feature_names=['num', 'cat'],
                                   class_names=['no', 'yes'], format='dot')
    assert out_path.endswith('.dot')
    assert os.path.exists(out_path)
    os.remove(out_path)


def test_classifier_not_fitted_raises():
    clf = PCTreeClassifier()
    with pytest.raises(ValueError):
        clf.predict([[1, 'A']])
    with pytest.raises(ValueError):
        clf.predict_rule([[1, 'A']])
    with pytest.raises(ValueError):
        clf.export_rules()
    with pytest.raises(ValueError):
        clf.print_tree()


def test_classifier_print_tree(capsys):
    X, y = _tiny_dataset()
    clf = PCTreeClassifier().fit(X, y, feature_names=['num', 'cat'])
    clf.print_tree(class_names=['no', 'yes'])
    out = capsys.readouterr().out
    assert out.splitlines() == ['if num <= 2.5000:', '  Predict no', 'else:', '  Predict yes']


def test_classifier_string_labels_and_clone():
    X, _ = _tiny_dataset()
    y = np.array(['cold', 'cold', 'hot', 'hot'])
    clf = PCTreeClassifier(build_method="NC_C45", pruning=False)
    fitted = clf.fit(X, y)
    assert fitted.predict(X).tolist() == ['cold', 'cold', 'hot', 'hot']
    twin = clone(clf)
    assert twin.get_params()['build_method'] == "NC_C45"
    assert not hasattr(twin, 'tree_')


def test_classifier_with_missing_values():
    # dataset containing missing values (None)
    X = np.array([[1, 'A'], [2, None], [3, 'B'], [None, 'A']], dtype=object)
    y = np.array([0, 0, 1, 1])
    clf = PCTreeClassifier(feature_names=['num', 'cat'])
    clf.fit(X, y)
    preds = clf.predict(X)
    # predictions should be of correct length
    assert len(preds) == len(y)
    assert np.allclose(clf.predict_proba(X).sum(axis=1), 1.0)


def test_classifier_unknown_build_method():
    X, y = _tiny_dataset()
    with pytest.raises(ValueError):
        PCTreeClassifier(build_method="C50").fit(X, y)
