import numpy as np
import pytest
from pcdtree import PCTreeClassifier


def test_sample_weights():
    # Two identical points outweighed by a third decide the majority leaf
    X = np.array([[1, 1], [1, 1], [2, 2]])
    y = np.array([0, 0, 1])

    clf = PCTreeClassifier(random_state=42)
    clf.fit(X, y)
    assert clf.predict([[1, 1]])[0] == 0

    clf.fit(X, y, sample_weight=np.array([1, 1, 5]))
    assert clf.predict([[1, 1]])[0] == 1
    assert clf.training_.sum_of_weights() == 7.0


def test_missing_values_propagation():
    # Feature 0 is the split.
    # Value < 5 -> Class 0
    # Value > 5 -> Class 1
    # Missing -> Distributed
    X = np.array([
        [2.0], [3.0], [4.0],  # Class 0
        [6.0], [7.0], [8.0],  # Class 1
        [np.nan]              # Missing
    ])
    y = np.array([0, 0, 0, 1, 1, 1, 0])

    clf = PCTreeClassifier(random_state=42)
    clf.fit(X, y)
    assert clf.tree_.size_of_tree() == 3
    assert clf.tree_.rules.ranges[0].range_max == pytest.approx(5.0)

    # Predict on knowns
    assert clf.predict([[2.0]])[0] == 0
    assert clf.predict([[8.0]])[0] == 1

    # Predict on missing: both branches hold 3.5 units of training weight
    probs = clf.predict_proba([[np.nan]])[0]
    assert np.allclose(probs, [0.5, 0.5])


def test_unseen_nominal_value_is_missing():
    X = np.array([['red'], ['red'], ['red'], ['blue'], ['blue'], ['blue']], dtype=object)
    y = np.array([0, 0, 0, 1, 1, 1])
    clf = PCTreeClassifier().fit(X, y)
    assert clf.predict([['red'], ['blue']]).tolist() == [0, 1]
    assert np.allclose(clf.predict_proba([['green']])[0], [0.5, 0.5])


@pytest.mark.parametrize("method", ["HCF", "HCB", "HCR", "NC", "PURE_RUN"])
def test_build_methods_fit_two_blobs(method):
    rng = np.random.RandomState(1)
    X = np.vstack([rng.uniform(0.0, 0.4, size=(10, 2)), rng.uniform(0.6, 1.0, size=(10, 2))])
    y = np.array([0] * 10 + [1] * 10)
    clf = PCTreeClassifier(build_method=method, hc_max_iterations=20, random_state=0)
    clf.fit(X, y)
    assert clf.score(X, y) >= 0.9
