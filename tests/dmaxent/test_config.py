"""Tests for dmaxent.utils.config."""

from __future__ import annotations

import os

import pytest
import yaml
from pydantic import ValidationError

from dmaxent.utils.config import Config, load_config


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in list(os.environ):
        if name.startswith("DMAXENT_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestConfig:
    """Application config sections, YAML and environment."""

    def test_defaults(self):
        config = Config()
        assert config.model.alpha == 0.0
        assert config.model.beta == 1.0
        assert config.model.num_iterations == 1
        assert config.model.version == 1
        assert config.model.feature_bound == 1.0
        assert config.model.stop_if_converged is True
        assert config.data.data_path == ""
        assert config.data.train_size == 1
        assert config.data.seed == 1
        assert config.data.num_bins == 10
        assert not config.features.any_enabled()
        assert config.verbose == 0

    @pytest.mark.parametrize(
        "data",
        [
            {"model": {"alpha": -1.0}},
            {"model": {"version": 3}},
            {"model": {"num_iterations": 0}},
            {"data": {"train_size": 0}},
            {"data": {"num_bins": 1}},
        ],
    )
    def test_invalid_values(self, data):
        """Out-of-range fields fail pydantic validation."""
        with pytest.raises(ValidationError):
            Config.model_validate(data)

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({
            "model": {"beta": 0.07, "num_iterations": 20, "version": 2},
            "data": {"data_path": "points.txt", "train_size": 100},
            "features": {"tr": True},
            "verbose": 2,
        }))
        config = Config.from_yaml(path)
        assert config.model.beta == 0.07
        assert config.model.version == 2
        assert config.data.train_size == 100
        assert config.features.tr
        assert config.verbose == 2

    def test_to_yaml(self, tmp_path):
        config = Config.model_validate({"model": {"alpha": 0.5}, "features": {"mon": True}})
        path = tmp_path / "out.yaml"
        config.to_yaml(path)
        assert Config.from_yaml(path) == config

    def test_from_env(self, clean_env, monkeypatch):
        """DMAXENT_ variables fill every section."""
        monkeypatch.setenv("DMAXENT_BETA", "0.07")
        monkeypatch.setenv("DMAXENT_VERSION", "2")
        monkeypatch.setenv("DMAXENT_DATA_PATH", "points.txt")
        monkeypatch.setenv("DMAXENT_TR", "true")
        monkeypatch.setenv("DMAXENT_VERBOSE", "1")
        config = Config.from_env()
        assert config.model.beta == 0.07
        assert config.model.version == 2
        assert config.data.data_path == "points.txt"
        assert config.features.tr
        assert not config.features.raw
        assert config.verbose == 1

    def test_validate_run(self):
        """A run needs a dataset path and one feature family."""
        with pytest.raises(ValueError, match="data_path"):
            Config.model_validate({"features": {"raw": True}}).validate_run()
        with pytest.raises(ValueError, match="enabled"):
            Config.model_validate({"data": {"data_path": "x"}}).validate_run()
        Config.model_validate({"data": {"data_path": "x"}, "features": {"th": True}}).validate_run()

    def test_to_model_config(self):
        config = Config.model_validate({
            "model": {"alpha": 0.2, "beta": 0.3, "num_iterations": 7, "version": 2,
                      "feature_bound": 4.0, "stop_if_converged": False},
            "verbose": 3,
        })
        cfg = config.to_model_config()
        assert cfg.alpha == 0.2
        assert cfg.beta == 0.3
        assert cfg.max_descent_steps == 7
        assert cfg.version == 2
        assert cfg.feature_bound == 4.0
        assert cfg.stop_if_converged is False
        assert cfg.verbose == 3


class TestLoadConfig:
    """Config lookup order."""

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("model:\n  beta: 0.5\n")
        assert load_config(path).model.beta == 0.5

    def test_config_in_working_directory(self, clean_env):
        (clean_env / "config.yaml").write_text("data:\n  seed: 9\n")
        assert load_config().data.seed == 9

    def test_falls_back_to_env(self, clean_env, monkeypatch):
        """Without any config file the environment is used."""
        monkeypatch.setenv("DMAXENT_SEED", "42")
        assert load_config().data.seed == 42
