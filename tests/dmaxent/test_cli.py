"""Tests for dmaxent.cli."""

from __future__ import annotations

import math
import os
import re

import pytest
import yaml

from dmaxent.cli import build_parser, main, resolve_config

# The last point is never observed, so every test sample has a negative.
DATASET = """\
0.1 0.9 0.5 3
0.2 0.8 0.4 2
0.3 0.7 . 5
0.4 0.6 0.3 4
0.5 0.5 0.2 1
0.6 0.4 0.1 6
0.7 0.3 0.9 2
0.8 0.2 0.8 3
0.9 0.1 0.7 0
"""


@pytest.fixture
def workdir(monkeypatch, tmp_path):
    for name in list(os.environ):
        if name.startswith("DMAXENT_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    (tmp_path / "points.txt").write_text(DATASET)
    return tmp_path


def _metrics(out: str) -> tuple[float, float]:
    log_loss = float(re.search(r"Model log loss: (\S+)", out).group(1))
    auc = float(re.search(r"Model AUC: (\S+)", out).group(1))
    return log_loss, auc


class TestResolveConfig:
    """Merging config files, environment and flags."""

    def test_flags_override_config_file(self, workdir):
        """Flags win over values from the config file."""
        path = workdir / "run.yaml"
        path.write_text(yaml.dump({"model": {"beta": 0.5, "num_iterations": 3},
                                   "data": {"data_path": "points.txt"},
                                   "features": {"raw": True}}))
        args = build_parser().parse_args(["--config", str(path), "--beta", "0.1", "--tr",
                                          "--no-stop-if-converged"])
        config = resolve_config(args)
        assert config.model.beta == 0.1
        assert config.model.num_iterations == 3
        assert config.model.stop_if_converged is False
        assert config.features.raw and config.features.tr

    def test_missing_data_path_is_rejected(self, workdir):
        """A run without a dataset path fails validation."""
        args = build_parser().parse_args(["--raw"])
        with pytest.raises(ValueError):
            resolve_config(args)


class TestMain:
    """End-to-end runs of the command line."""

    def test_fit_and_report(self, workdir, capsys):
        """Raw, tree and monomial features on a small dataset."""
        code = main([
            "--data-path", "points.txt", "--train-size", "10", "--num-bins", "3",
            "--beta", "0.1", "--num-iterations", "5", "--raw", "--tr", "--mon",
        ])
        assert code == 0
        log_loss, auc = _metrics(capsys.readouterr().out)
        assert log_loss > 0
        assert 0.0 <= auc <= 1.0

    def test_version_2_with_threshold_and_product_features(self, workdir, capsys):
        code = main([
            "--data-path", "points.txt", "--train-size", "12", "--num-bins", "2",
            "--beta", "0.05", "--num-iterations", "4", "--version", "2",
            "--th", "--prod", "-v", "2",
        ])
        assert code == 0
        out = capsys.readouterr().out
        assert "[DMaxEntModel] iter" in out
        assert "Total number of features included" in out
        _metrics(out)

    def test_same_seed_same_result(self, workdir, capsys):
        """Runs with the same seed print the same output."""
        argv = ["--data-path", "points.txt", "--train-size", "10", "--raw",
                "--num-iterations", "3", "--beta", "0.1", "--seed", "3"]
        main(argv)
        first = capsys.readouterr().out
        main(argv)
        assert capsys.readouterr().out == first

    def test_missing_dataset(self, workdir, capsys):
        assert main(["--data-path", "nope.txt", "--raw"]) == 1
        assert "Dataset not found" in capsys.readouterr().err

    def test_no_feature_family_is_an_error(self, workdir):
        with pytest.raises(SystemExit):
            main(["--data-path", "points.txt"])

    def test_everything_in_training(self, workdir, capsys):
        """A training size covering every observation leaves nothing to test."""
        assert main(["--data-path", "points.txt", "--train-size", "1000", "--raw"]) == 1
        assert "No test observations" in capsys.readouterr().err

    def test_every_point_observed_in_test_sample(self, workdir, capsys):
        """AUC is reported as nan when the test sample observes every point."""
        (workdir / "dense.txt").write_text("0.1 0.9 4\n0.2 0.8 6\n")
        code = main(["--data-path", "dense.txt", "--train-size", "2", "--beta", "0.07", "--raw"])
        assert code == 0
        captured = capsys.readouterr()
        log_loss, auc = _metrics(captured.out)
        assert log_loss > 0
        assert math.isnan(auc)
        assert "AUC is undefined" in captured.err
