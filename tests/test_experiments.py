import logging
import os

from pcdtree.experiments import run_experiments
from pcdtree.persistence import load_results
from pcdtree.tree import BuildMethod


def _write_bands(path, n=12):
    rows = ["x,noise,label"]
    for i in range(n):
        x = i / (n - 1)
        rows.append(f"{x:.3f},{(i * 7 % n) / n:.3f},{'low' if x < 0.5 else 'high'}")
    path.write_text("\n".join(rows) + "\n")


def test_run_experiments_saves_results_and_skips_bad_files(tmp_path, caplog):
    good = tmp_path / "bands.csv"
    _write_bands(good)
    missing = tmp_path / "missing.csv"
    with caplog.at_level(logging.ERROR):
        outcome = run_experiments([str(good), str(missing)],
                                  [BuildMethod.C45, "PURE_RUN"], folds=3,
                                  output_dir=str(tmp_path), random_state=0)
    assert set(outcome) == {("bands", BuildMethod.C45), ("bands", BuildMethod.PURE_RUN)}
    assert all(len(results) == 3 for results in outcome.values())
    assert "Skipping dataset" in caplog.text
    saved = load_results(os.path.join(str(tmp_path), "bands_C45.json"))
    assert [r.confusion_matrix for r in saved] == \
        [r.confusion_matrix for r in outcome[("bands", BuildMethod.C45)]]


def test_run_experiments_survives_unwritable_output(tmp_path, caplog):
    good = tmp_path / "bands.csv"
    _write_bands(good)
    with caplog.at_level(logging.ERROR):
        outcome = run_experiments([str(good)], folds=2,
                                  output_dir=str(tmp_path / "no" / "such" / "dir"))
    assert len(outcome[("bands", BuildMethod.C45)]) == 2
    assert "Could not save results" in caplog.text
