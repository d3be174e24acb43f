import json

import pytest
from pcdtree.data import DataSet
from pcdtree.persistence import (PersistenceError, export_tree, load_results, load_tree,
                                 rule_from_dict, rule_to_dict, save_results, save_tree,
                                 tree_to_dict)
from pcdtree.rules import (AxisRange, AxisSelection, Circle, Hyperplane, PCRegion, PCRegionRule,
                           Rectangle, Region, RegionRule)
from pcdtree.tree import TreeNode
from pcdtree.validation import Result

RULES = [
    AxisSelection((AxisRange(0, None, 0.25), AxisRange(1, 0.1, 0.9))),
    Region((RegionRule((0, 1), Circle(0.5, 0.5, 0.2)),)),
    PCRegion((PCRegionRule((0, 1), Rectangle(0.0, 0.01, 0.7, 0.2), 0.5,
                           (0.0, -1.0), (1.0, 3.0), (False, True)),)),
    Hyperplane((1.0, -2.0), 0.5),
]


def _mixed_tree():
    """Every rule type on the inside spine, leaves on the outside."""
    root = TreeNode()
    node = root
    for i, rule in enumerate(RULES):
        node.rules = rule
        node.rule_generated = True
        inside = TreeNode(class_val=0) if i == len(RULES) - 1 else TreeNode()
        node.set_children(inside, TreeNode(class_val=i % 2))
        node = inside
    return root


@pytest.mark.parametrize("rule", RULES, ids=lambda r: type(r).__name__)
def test_rule_documents_round_trip(rule):
    document = json.loads(json.dumps(rule_to_dict(rule)))
    assert rule_from_dict(document) == rule


def test_tree_round_trip(tmp_path):
    tree = _mixed_tree()
    path = str(tmp_path / "tree.json")
    save_tree(tree, path)
    loaded = load_tree(path)
    assert tree_to_dict(loaded) == tree_to_dict(tree)
    assert loaded.size_of_tree() == tree.size_of_tree()
    assert loaded.inside_child.parent is loaded
    assert loaded.rules == RULES[0]


def test_tree_document_keys(tmp_path):
    path = tmp_path / "tree.json"
    save_tree(_mixed_tree(), str(path))
    document = json.loads(path.read_text())
    assert set(document) == {"insideChildRule", "outsideChildRule", "classVal",
                             "creationTime", "ruleGenerated", "rules"}
    assert document["rules"]["type"] == "AxisSelection"
    assert document["outsideChildRule"]["classVal"] == 0


def test_load_errors_are_wrapped(tmp_path):
    with pytest.raises(PersistenceError):
        load_tree(str(tmp_path / "missing.json"))
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(PersistenceError):
        load_tree(str(broken))
    unknown = tmp_path / "unknown.json"
    unknown.write_text(json.dumps({"rules": {"type": "Blob"}}))
    with pytest.raises(PersistenceError):
        load_tree(str(unknown))


def test_save_error_is_wrapped(tmp_path):
    with pytest.raises(PersistenceError):
        save_tree(TreeNode(class_val=0), str(tmp_path / "no" / "such" / "dir.json"))


def test_results_round_trip(tmp_path):
    results = [Result([[1, 2], [3, 4]], _mixed_tree()), Result([[5]], TreeNode(class_val=1))]
    path = str(tmp_path / "results.json")
    save_results(results, path)
    loaded = load_results(path)
    assert [r.confusion_matrix for r in loaded] == [[[1, 2], [3, 4]], [[5]]]
    assert loaded[0].tree.size_of_tree() == results[0].tree.size_of_tree()
    assert loaded[1].accuracy() == 1.0


def test_results_with_bad_matrix_are_rejected(tmp_path):
    path = tmp_path / "results.json"
    path.write_text(json.dumps([{"numClasses": 3, "confusionMatrix": [1, 2, 3, 4],
                                 "tree": {"classVal": 0}}]))
    with pytest.raises(PersistenceError):
        load_results(str(path))


def test_export_fills_unfinished_leaves(tmp_path):
    training = DataSet.from_arrays([[0.1], [0.2], [0.6], [0.7]], [0, 0, 1, 1])
    tree = TreeNode(rules=AxisSelection((AxisRange(0, None, 0.4),)))
    tree.set_children(TreeNode(), TreeNode())
    path = tmp_path / "tree.json"
    export_tree(str(path), training, tree)
    document = json.loads(path.read_text())
    assert document["insideChildRule"]["classVal"] == 0
    assert document["outsideChildRule"]["classVal"] == 1
