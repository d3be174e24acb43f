import numpy as np
from pcdtree import PCTreeClassifier


def test_classifier_smoke():
    X = np.array([[1, 'A'], [2, 'A'], [3, 'B'], [4, 'B']], dtype=object)
    y = np.array([0, 0, 1, 1])
    clf = PCTreeClassifier(feature_names=['num', 'cat'])
    clf.fit(X, y)
    assert clf.predict(X).tolist() == [0, 0, 1, 1]
    rules = clf.export_rules(feature_names=['num', 'cat'], class_names=['no', 'yes'])
    assert rules == ['num <= 2.5000 => no', 'NOT (num <= 2.5000) => yes']


def test_oblique_classifier_smoke():
    rng = np.random.RandomState(0)
    X = rng.uniform(size=(30, 2))
    y = (X[:, 0] + X[:, 1] > 1.0).astype(int)
    clf = PCTreeClassifier(build_method="DE", de_iterations=3, de_population=6, random_state=0)
    clf.fit(X, y)
    proba = clf.predict_proba(X)
    assert proba.shape == (30, 2)
    assert np.allclose(proba.sum(axis=1), 1.0)
