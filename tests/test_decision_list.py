import pytest
from pcdtree.data import DataSet
from pcdtree.decision_list import DecisionList, DecisionListEntry, export_decision_list
from pcdtree.persistence import PersistenceError
from pcdtree.rules import AxisRange, AxisSelection, Hyperplane
from pcdtree.tree import TreeNode


def _dataset():
    return DataSet.from_arrays([[0.0], [0.3], [0.6], [1.0]], [0, 0, 0, 1])


def _two_level_tree():
    root = TreeNode(rules=AxisSelection((AxisRange(0, None, 0.5),)))
    inner = TreeNode(rules=AxisSelection((AxisRange(0, 0.7, None),)))
    inner.set_children(TreeNode(class_val=1), TreeNode(class_val=0))
    root.set_children(TreeNode(class_val=0), inner)
    return root


def test_from_tree_closes_open_ends_in_tree_order():
    dl = DecisionList.from_tree(_two_level_tree(), _dataset())
    assert [(e.ranges, e.class_val) for e in dl.entries] == [
        ([AxisRange(0, 0.0, 0.5)], 0),
        ([AxisRange(0, 0.7, 1.0)], 1),
        ([], 0),
    ]


def test_first_matching_entry_wins():
    dl = DecisionList.from_tree(_two_level_tree(), _dataset())
    assert dl.classify([0.3]) == 0
    assert dl.classify([0.8]) == 1
    assert dl.classify([0.6]) == 0


def test_lines_and_save(tmp_path):
    dl = DecisionList.from_tree(_two_level_tree(), _dataset())
    assert dl.lines(2) == ["0 0.00 0.50", "1 0.70 1.00", "0 0.00 1.00"]
    path = tmp_path / "list.txt"
    dl.save(str(path), precision=2)
    assert path.read_text().splitlines() == dl.lines(2)
    with pytest.raises(PersistenceError):
        dl.save(str(tmp_path / "missing" / "list.txt"))


def test_simplify_rule_intersects_ranges():
    merged = DecisionList.simplify_rule(
        DecisionListEntry([AxisRange(0, 0.0, 0.5), AxisRange(0, 0.2, 1.0)], 1))
    assert merged.ranges == [AxisRange(0, 0.2, 0.5)]
    assert DecisionList.simplify_rule(
        DecisionListEntry([AxisRange(0, 0.0, 0.3), AxisRange(0, 0.5, 1.0)], 1)) is None


def test_simplify_rules_drops_impossible_entries():
    dl = DecisionList([DecisionListEntry([AxisRange(0, 0.0, 0.3), AxisRange(0, 0.5, 1.0)], 1),
                       DecisionListEntry([], 0)], _dataset())
    dl.simplify_rules()
    assert [e.class_val for e in dl.entries] == [0]


def test_only_finished_axis_trees_convert():
    unfinished = TreeNode(rules=AxisSelection((AxisRange(0, None, 0.5),)))
    unfinished.set_children(TreeNode(), TreeNode(class_val=1))
    assert DecisionList.from_tree(unfinished, _dataset()) is None

    oblique = TreeNode(rules=Hyperplane((1.0,), -0.5))
    oblique.set_children(TreeNode(class_val=0), TreeNode(class_val=1))
    assert DecisionList.from_tree(oblique, _dataset()) is None


def test_export_finishes_leaves(tmp_path):
    tree = TreeNode(rules=AxisSelection((AxisRange(0, None, 0.8),)))
    tree.set_children(TreeNode(), TreeNode())
    path = tmp_path / "list.txt"
    dl = export_decision_list(str(path), 1, _dataset(), tree)
    assert path.read_text().splitlines() == ["0 0.0 0.8", "1 0.0 1.0"]
    assert dl.classify([0.9]) == 1
