import numpy as np
import pytest
from pcdtree.data import DataSet, Point
from pcdtree.optimize import DifferentialEvolution, HillClimber
from pcdtree.rules import AxisRange, AxisSelection
from pcdtree.tree import (PRUNE_SLACK, BuildMethod, TreeBuilder, TreeNode, classify_point,
                          error_estimate, find_unfinished, finish_unfinished_leaves, predict_proba_point,
                          prune_node, rules_for_node, subtree_error, test_classifier)


def _tiny_dataset():
    return DataSet.from_arrays([[0.1], [0.2], [0.3], [0.4]], ["A", "A", "B", "B"])


def _separable_dataset(n=20, seed=0):
    rng = np.random.RandomState(seed)
    x0 = np.linspace(0.0, 1.0, n)
    x1 = rng.uniform(size=n)
    return DataSet.from_arrays(np.column_stack([x0, x1]), (x0 > 0.5).astype(int))


def _stump(threshold=0.45, inside_class=0, outside_class=1):
    root = TreeNode(rules=AxisSelection((AxisRange(0, None, threshold),)))
    root.set_children(TreeNode(class_val=inside_class), TreeNode(class_val=outside_class))
    return root


def _assert_well_formed(tree):
    for node in tree.iter_nodes():
        if node.has_children():
            assert node.inside_child is not None and node.outside_child is not None
            assert node.rules is not None
            assert node.inside_child.parent is node
            assert node.outside_child.parent is node
        else:
            assert node.class_val is not None


def test_builds_single_split_on_tiny_dataset():
    tree = TreeBuilder().build(_tiny_dataset())
    assert tree.size_of_tree() == 3
    assert tree.deepest_leaf() == 2
    (rng,) = tree.rules.ranges
    assert rng.range_min is None
    assert rng.range_max == pytest.approx(0.25)
    assert tree.inside_child.class_val == 0
    assert tree.outside_child.class_val == 1
    assert tree.rule_generated


def test_pruning_keeps_informative_split():
    data = _tiny_dataset()
    tree = TreeBuilder().build(data)
    errors = prune_node(tree, data)
    assert tree.size_of_tree() == 3
    assert errors == pytest.approx(2 * error_estimate(0, 2))
    assert test_classifier(data.instances, data, tree) == 1.0


def test_pure_or_tiny_data_gives_a_leaf():
    pure = DataSet.from_arrays([[0.1], [0.2], [0.3]], ["A"] * 3)
    assert TreeBuilder().build(pure).size_of_tree() == 1
    tiny = DataSet.from_arrays([[0.1], [0.2]], ["A", "B"])
    tree = TreeBuilder().build(tiny)
    assert not tree.has_children()
    assert tree.class_val == 0


@pytest.mark.parametrize("method", list(BuildMethod))
def test_every_build_method_grows_a_well_formed_tree(method):
    data = _separable_dataset()
    builder = TreeBuilder(method, random_state=0,
                          evolution=DifferentialEvolution(iterations=3, population_size=6),
                          climber=HillClimber(max_iterations=10))
    tree = builder.build(data)
    _assert_well_formed(tree)
    before = tree.size_of_tree()
    prune_node(tree, data)
    _assert_well_formed(tree)
    assert tree.size_of_tree() <= before


def test_build_method_accepts_strings():
    assert TreeBuilder("NC_C45").build_method is BuildMethod.NC_C45
    with pytest.raises(ValueError):
        TreeBuilder("ID3")


def test_error_estimate_values():
    assert error_estimate(0, 0) == 0.0
    assert error_estimate(0, 2) == pytest.approx(1.0)
    assert error_estimate(3, 3) == 0.0
    assert error_estimate(2, 4) == pytest.approx(3.07, abs=0.01)
    for e, n in [(1, 5), (2, 10), (5, 12)]:
        assert error_estimate(e, n) > e


def test_pruning_collapses_useless_split():
    data = DataSet.from_arrays([[i / 10] for i in range(10)], [0] * 9 + [1])
    tree = _stump(inside_class=0, outside_class=0)
    prune_node(tree, data)
    assert tree.size_of_tree() == 1
    assert tree.class_val == 0
    assert tree.rules is None


def test_pruning_grafts_heavier_child():
    X = [[(i + 1) / 10, 0.0] for i in range(8)]
    data = DataSet.from_arrays(X, [0, 0, 0, 0, 1, 1, 1, 1])
    inner = _stump(threshold=0.45)
    root = TreeNode(rules=AxisSelection((AxisRange(1, None, 0.5),)))
    root.set_children(inner, TreeNode(class_val=1))
    errors = prune_node(root, data)
    assert root.size_of_tree() == 3
    assert root.rules == inner.rules
    assert root.inside_child.parent is root
    assert (root.inside_child.class_val, root.outside_child.class_val) == (0, 1)
    assert errors == pytest.approx(subtree_error(root, data))


def test_missing_value_follows_both_branches():
    training = DataSet.from_arrays([[0.1], [0.2], [0.3], [0.4], [0.5], [0.6]],
                                   [0, 0, 0, 0, 1, 1])
    tree = _stump()
    proba = predict_proba_point(Point([None], -1), training, tree)
    assert proba[0] == pytest.approx(2 / 3)
    assert proba[1] == pytest.approx(1 / 3)
    assert classify_point(Point([None], -1), training, tree) == 0
    assert classify_point(Point([0.55], -1), training, tree) == 1


def test_unfinished_leaf_gets_class_on_demand():
    training = DataSet.from_arrays([[0.1], [0.2], [0.3], [0.4], [0.5], [0.6]],
                                   [0, 0, 0, 0, 1, 1])
    tree = _stump()
    tree.inside_child.class_val = None
    tree.outside_child.class_val = None
    assert find_unfinished(tree) is tree.inside_child
    assert classify_point(Point([0.1], -1), training, tree) == 0
    assert tree.inside_child.class_val == 0
    finish_unfinished_leaves(tree, training)
    assert tree.outside_child.class_val == 1
    assert find_unfinished(tree) is None


def test_rules_for_node_marks_outside_branches():
    tree = _stump()
    assert rules_for_node(tree) == []
    assert rules_for_node(tree.inside_child) == [(tree.rules, False)]
    assert rules_for_node(tree.outside_child) == [(tree.rules, True)]


def test_description_lists_branches():
    text = _stump().description(["x"], ["no", "yes"])
    assert text.splitlines() == ["if x <= 0.4500:", "  Predict no", "else:", "  Predict yes"]


@pytest.mark.parametrize("seed", range(8))
def test_pruning_never_raises_root_error(seed):
    rng = np.random.RandomState(seed)
    X = rng.uniform(size=(40, 3))
    y = (X[:, 0] + 0.3 * rng.normal(size=40) > 0.5).astype(int)
    X[rng.uniform(size=X.shape) < 0.1] = np.nan
    data = DataSet.from_arrays(X, y)
    tree = TreeBuilder(random_state=seed).build(data)
    before = subtree_error(tree, data)
    after = prune_node(tree, data)
    assert after <= before + PRUNE_SLACK
    _assert_well_formed(tree)
