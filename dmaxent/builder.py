"""Assemble a DMaxEnt model (features, complexities, weak learners) from config."""

from __future__ import annotations

import math
from typing import Optional

from dmaxent.binning import equal_frequency_thresholds, value_to_thresholds
from dmaxent.features import Feature, ProductFeature, RawFeature, ThresholdFeature
from dmaxent.learners import MonomialLearner, TreeLearner, WeakLearner
from dmaxent.model import DMaxEntConfig, DMaxEntModel
from dmaxent.space import Sample, Space
from dmaxent.utils.config import Config


class ModelBuilder:
    """Build a ready-to-fit ``DMaxEntModel`` for the feature families enabled in ``config``.

    Complexities of raw, product and threshold features are set per class from
    the number of covariates, the number of thresholds and the training
    sample size, and bound to every feature of that class.
    """

    def __init__(
        self,
        space: Space,
        train_sample: Sample,
        test_sample: Optional[Sample] = None,
        config: Optional[Config] = None,
    ):
        """Initialize the model builder.

        Args:
            space: Finalized space with at least one point
            train_sample: Observations used to fit the model
            test_sample: Held-out observations for verbose evaluation
            config: Application config; only the model, data and features
                    sections are used
        """
        self.space = space
        self.train_sample = list(train_sample)
        self.test_sample = list(test_sample) if test_sample is not None else []
        self.config = config or Config()
        self.num_raw_features = space.point(0).num_raw_features if len(space) else 0
        self.thresholds: list[list[float]] = []

    @property
    def train_size(self) -> int:
        return len(self.train_sample)

    def raw_features(self) -> list[Feature]:
        n = self.num_raw_features
        if n == 0:
            return []
        complexity = math.sqrt(2 * math.log(n) / self.train_size)
        return [RawFeature(index, complexity) for index in range(n)]

    def product_features(self) -> list[Feature]:
        n = self.num_raw_features
        if n == 0:
            return []
        complexity = math.sqrt(4 * math.log(n) / self.train_size)
        return [
            ProductFeature(i, j, complexity)
            for i in range(n)
            for j in range(n)
        ]

    def threshold_features(self) -> list[Feature]:
        cuts = [
            (index, threshold)
            for index, thresholds in enumerate(self._cut_points())
            for threshold in thresholds
        ]
        if not cuts:
            return []
        complexity = math.sqrt(2 * math.log(len(cuts)) / self.train_size)
        return [ThresholdFeature(index, threshold, complexity) for index, threshold in cuts]

    def tree_learner(self) -> TreeLearner:
        # Sentinel top bucket above every bounded covariate value.
        top = self.config.model.feature_bound + 1
        thresholds = [list(cuts) + [top] for cuts in self._cut_points()]
        return TreeLearner(
            self.num_raw_features,
            self.config.model.alpha,
            self.config.model.beta,
            value_to_thresholds(self.space, thresholds),
        )

    def monomial_learner(self) -> MonomialLearner:
        return MonomialLearner(
            self.num_raw_features,
            self.config.model.alpha,
            self.config.model.beta,
            self.config.model.feature_bound,
        )

    def _cut_points(self) -> list[list[float]]:
        if not self.thresholds and self.num_raw_features:
            self.thresholds = [
                equal_frequency_thresholds(self.space, index, self.config.data.num_bins)
                for index in range(self.num_raw_features)
            ]
        return self.thresholds

    def build_features(self) -> list[Feature]:
        """Initial features with sample expectations on the training sample."""
        families = self.config.features
        features: list[Feature] = []
        if families.raw:
            features.extend(self.raw_features())
        if families.prod:
            features.extend(self.product_features())
        if families.th:
            features.extend(self.threshold_features())
        for feature in features:
            feature.compute_sample_expectation(self.train_sample)
        return features

    def build_weak_learners(self) -> list[WeakLearner]:
        families = self.config.features
        learners: list[WeakLearner] = []
        if families.mon:
            learners.append(self.monomial_learner())
        if families.tr:
            learners.append(self.tree_learner())
        return learners

    def build(self, model_config: Optional[DMaxEntConfig] = None) -> DMaxEntModel:
        """Build the model.

        Args:
            model_config: Engine config; derived from ``config`` if omitted.

        Returns:
            An unfitted DMaxEntModel.
        """
        if not self.train_sample:
            raise ValueError("Training sample is empty")
        features = self.build_features()
        learners = self.build_weak_learners()
        if self.config.verbose >= 1:
            print(f"[ModelBuilder] points={len(self.space)}  raw features={self.num_raw_features}  "
                  f"features={len(features)}  learners={len(learners)}  "
                  f"observations={self.train_size + len(self.test_sample)}")
        return DMaxEntModel(
            model_config or self.config.to_model_config(),
            self.space,
            self.train_sample,
            features,
            learners,
            test_sample=self.test_sample,
        )
