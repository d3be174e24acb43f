import numpy as np
import pytest
from pcdtree.data import DataSet
from pcdtree.info import (Distribution, FrequencyTable, entropy, freq, gain, gain_ratio,
                          most_frequent, range_gain, range_gain_ratio, range_info)


def _random_data(seed, n=40):
    """Weighted two-attribute dataset with three classes and some missing values."""
    rng = np.random.RandomState(seed)
    X = rng.uniform(size=(n, 2)).round(2).astype(object)
    X[rng.uniform(size=(n, 2)) < 0.1] = None
    y = rng.randint(3, size=n)
    w = rng.uniform(0.5, 2.0, size=n)
    return DataSet.from_arrays(X, y, sample_weight=w)


def test_entropy_edge_values():
    assert entropy([]) == 0.0
    assert entropy([5.0, 0.0]) == 0.0
    assert entropy([1.0, 1.0]) == pytest.approx(1.0)
    assert entropy([2.0, 2.0, 2.0, 2.0]) == pytest.approx(2.0)


def test_entropy_bounds():
    rng = np.random.RandomState(0)
    for _ in range(50):
        k = rng.randint(2, 6)
        w = rng.uniform(size=k) * (rng.uniform(size=k) < 0.7)
        e = entropy(w)
        assert 0.0 <= e <= np.log2(k) + 1e-12
        if np.count_nonzero(w) <= 1:
            assert e == 0.0


def test_distribution_pure_split():
    dist = Distribution(2, 2)
    dist.subsets[0] = [2.0, 0.0]
    dist.subsets[1] = [0.0, 2.0]
    dist.invalidate_cache()
    assert dist.total_weight() == 4.0
    assert gain(dist) == pytest.approx(1.0)
    assert gain_ratio(dist) == pytest.approx(1.0)


def test_missing_weight_dilutes_gain():
    dist = Distribution(2, 2)
    dist.subsets[0] = [2.0, 0.0]
    dist.subsets[1] = [0.0, 2.0]
    dist.num_missing = 4.0
    dist.invalidate_cache()
    assert gain(dist) == pytest.approx(0.5)
    assert 0.0 < gain_ratio(dist) < 1.0


def test_empty_distribution_has_no_gain_ratio():
    assert gain_ratio(Distribution(2, 2)) == 0.0


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_frequency_table_matches_brute_force(seed):
    data = _random_data(seed)
    for a in range(data.num_attributes()):
        num_missing = data.sort_on_attribute(a)
        table = FrequencyTable(data)
        known = len(data.instances) - num_missing
        for first in range(0, known, 3):
            for last in range(first, known, 4):
                for inside in (True, False):
                    for c in (None, 0, 1, 2):
                        fast = table.weight(first, last, inside, num_missing, c)
                        slow = freq(first, last, inside, num_missing, data, c)
                        assert fast == pytest.approx(slow, abs=1e-9)
                assert range_info(first, last, True, num_missing, data, table) == pytest.approx(
                    range_info(first, last, True, num_missing, data), abs=1e-9)
                assert range_gain(first, last, num_missing, data, table) == pytest.approx(
                    range_gain(first, last, num_missing, data), abs=1e-9)


@pytest.mark.parametrize("seed", [3, 4])
def test_range_gain_ratio_is_bounded(seed):
    data = _random_data(seed)
    num_missing = data.sort_on_attribute(0)
    table = FrequencyTable(data)
    known = len(data.instances) - num_missing
    for first in range(known):
        for last in range(first, known):
            gr = range_gain_ratio(first, last, num_missing, data, table)
            assert -1e-12 <= gr <= 1.0 + 1e-9


def test_most_frequent_first_class_wins_ties():
    data = DataSet.from_arrays([[0.0], [1.0], [2.0], [3.0]], ["b", "a", "a", "b"])
    # class values index the sorted labels: a -> 0, b -> 1; "b" is seen first
    class_val, dist = most_frequent(data)
    assert class_val == 1
    assert dist == {1: 2.0, 0: 2.0}


def test_most_frequent_empty():
    data = DataSet.from_arrays(np.zeros((0, 1)), [])
    assert most_frequent(data) == (None, {})
