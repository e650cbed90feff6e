"""Configuration management."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from dmaxent.model import DMaxEntConfig

ENV_PREFIX = "DMAXENT_"


class ModelConfig(BaseModel):
    """Coordinate-descent configuration."""
    alpha: float = Field(default=0.0, ge=0.0)
    beta: float = Field(default=1.0, ge=0.0)
    num_iterations: int = Field(default=1, ge=1)
    version: int = Field(default=1, ge=1, le=2)
    feature_bound: float = Field(default=1.0, ge=0.0)
    stop_if_converged: bool = True


class DataConfig(BaseModel):
    """Dataset configuration."""
    data_path: str = ""
    train_size: int = Field(default=1, ge=1)
    seed: int = 1
    num_bins: int = Field(default=10, ge=2)


class FeatureConfig(BaseModel):
    """Feature families to fit with."""
    raw: bool = False
    prod: bool = False
    th: bool = False
    mon: bool = False
    tr: bool = False

    def any_enabled(self) -> bool:
        return self.raw or self.prod or self.th or self.mon or self.tr


class Config(BaseModel):
    """Main configuration container."""
    model: ModelConfig = Field(default_factory=ModelConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    features: FeatureConfig = Field(default_factory=FeatureConfig)
    verbose: int = Field(default=0, ge=0)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Config:
        """Load configuration from YAML file.

        Args:
            path: Path to YAML config file

        Returns:
            Config object
        """
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
        return cls(**(data or {}))

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment variables are prefixed with DMAXENT_.
        For example: DMAXENT_BETA=0.07 or DMAXENT_TR=true

        Returns:
            Config object
        """
        model: dict = {}
        data: dict = {}
        features: dict = {}
        extra: dict = {}

        for name in ModelConfig.model_fields:
            if value := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
                model[name] = value
        for name in DataConfig.model_fields:
            if value := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
                data[name] = value
        for name in FeatureConfig.model_fields:
            if value := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
                features[name] = value
        if verbose := os.getenv(f"{ENV_PREFIX}VERBOSE"):
            extra["verbose"] = verbose

        # pydantic coerces the strings ("0.07", "true", "2")
        return cls(
            model=ModelConfig.model_validate(model),
            data=DataConfig.model_validate(data),
            features=FeatureConfig.model_validate(features),
            **extra,
        )

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to YAML file.

        Args:
            path: Path to save to
        """
        with open(path, 'w') as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)

    def validate_run(self) -> None:
        """Check the settings a fitting run needs beyond per-field bounds.

        Raises:
            ValueError: if no data path is set or no feature family is enabled.
        """
        if not self.data.data_path:
            raise ValueError("data_path must be set")
        if not self.features.any_enabled():
            raise ValueError("At least one of raw, prod, th, mon, tr must be enabled")

    def to_model_config(self) -> DMaxEntConfig:
        """Engine config for this run."""
        return DMaxEntConfig(
            alpha=self.model.alpha,
            beta=self.model.beta,
            max_descent_steps=self.model.num_iterations,
            version=self.model.version,
            feature_bound=self.model.feature_bound,
            stop_if_converged=self.model.stop_if_converged,
            verbose=self.verbose,
        )


def load_config(path: Optional[str | Path] = None) -> Config:
    """Load configuration from file or environment.

    Args:
        path: Optional path to YAML config file. If not provided,
              looks for config.yaml in current directory, then
              falls back to environment variables.

    Returns:
        Config object
    """
    # Try explicit path
    if path:
        return Config.from_yaml(path)

    # Try default locations
    default_paths = [
        Path("config.yaml"),
        Path("config.yml"),
        Path.home() / ".dmaxent" / "config.yaml",
    ]

    for p in default_paths:
        if p.exists():
            return Config.from_yaml(p)

    # Fall back to environment
    return Config.from_env()
