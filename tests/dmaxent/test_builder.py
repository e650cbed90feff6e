"""Tests for dmaxent.builder."""

from __future__ import annotations

import math

import pytest

from dmaxent.builder import ModelBuilder
from dmaxent.features import FeatureKind
from dmaxent.learners import MonomialLearner, TreeLearner
from dmaxent.model import DMaxEntModel
from dmaxent.space import Point, Space
from dmaxent.utils.config import Config


@pytest.fixture
def space() -> Space:
    space = Space()
    for id, value in enumerate(range(1, 11)):
        point = Point(id)
        point.add_raw_feature(float(value))
        point.add_raw_feature(float(11 - value))
        space.add_point(point)
    space.finalize()
    return space


def _config(**features) -> Config:
    return Config.model_validate({
        "model": {"beta": 0.1, "feature_bound": 10.0},
        "data": {"num_bins": 5, "train_size": 10},
        "features": features,
    })


class TestModelBuilder:
    """Feature families, learners and model assembly from config."""

    def test_raw_features(self, space):
        """One raw feature per covariate, sharing one complexity."""
        builder = ModelBuilder(space, list(space), config=_config(raw=True))
        features = builder.build_features()
        assert [f.kind for f in features] == [FeatureKind.RAW, FeatureKind.RAW]
        expected = math.sqrt(2 * math.log(2) / 10)
        assert all(f.complexity == pytest.approx(expected) for f in features)
        assert features[0].sample_expectation == pytest.approx(5.5)

    def test_product_features_cover_ordered_pairs(self, space):
        """Products of every ordered pair of covariates."""
        builder = ModelBuilder(space, list(space), config=_config(prod=True))
        features = builder.build_features()
        assert [(f.first_index, f.second_index) for f in features] == [(0, 0), (0, 1), (1, 0), (1, 1)]
        expected = math.sqrt(4 * math.log(2) / 10)
        assert all(f.complexity == pytest.approx(expected) for f in features)

    def test_threshold_features(self, space):
        """Threshold features at the equal-frequency cuts."""
        builder = ModelBuilder(space, list(space), config=_config(th=True))
        features = builder.build_features()
        assert [(f.index, f.threshold) for f in features] == [
            (0, 3.0), (0, 6.0), (0, 9.0), (1, 3.0), (1, 6.0), (1, 9.0),
        ]
        expected = math.sqrt(2 * math.log(6) / 10)
        assert all(f.complexity == pytest.approx(expected) for f in features)
        assert features[0].sample_expectation == pytest.approx(0.7)

    def test_weak_learners(self, space):
        """Learners get the feature bound and bucket maps with a sentinel top bucket."""
        builder = ModelBuilder(space, list(space), config=_config(mon=True, tr=True))
        monomial, tree = builder.build_weak_learners()
        assert isinstance(monomial, MonomialLearner)
        assert monomial.feature_bound == 10.0
        assert isinstance(tree, TreeLearner)
        # sentinel top bucket is feature_bound + 1
        assert tree.value_to_thresholds[0][10.0] == 11.0
        assert tree.value_to_thresholds[0][1.0] == 3.0
        assert tree.value_to_thresholds[1][4.0] == 6.0

    def test_build(self, space):
        """A built model fits with raw, threshold and tree features."""
        train = list(space)[:6]
        test = list(space)[6:]
        builder = ModelBuilder(space, train, test, config=_config(raw=True, th=True, tr=True))
        model = builder.build()
        assert isinstance(model, DMaxEntModel)
        assert len(model) == 2 + 6
        assert len(model.weak_learners) == 1
        assert model.config.beta == 0.1
        assert model.test_sample == test
        model.fit()
        assert model.normalizer == pytest.approx(space.total_weight())

    def test_build_requires_training_sample(self, space):
        """An empty training sample is rejected."""
        with pytest.raises(ValueError):
            ModelBuilder(space, [], config=_config(raw=True)).build()

    def test_fit_tree_learner_on_integer_covariates(self, space):
        """Tree features fitted on integer covariates cut at data values."""
        config = Config.model_validate({
            "model": {"beta": 0.05, "feature_bound": 10.0, "num_iterations": 5,
                      "stop_if_converged": False},
            "data": {"num_bins": 5},
            "features": {"tr": True},
        })
        train = [space.point(k) for k in (0, 1, 1, 2, 5, 9, 9)]
        model = ModelBuilder(space, train, config=config).build()
        history = model.fit()
        assert history["iteration"] == [1, 2, 3, 4, 5]
        trees = [wf.feature for wf in model if wf.feature.kind is FeatureKind.TREE]
        assert trees
        for tree in trees:
            assert tree.tree_size() % 2 == 1
            assert tree.feature_map(space.point(0)) in (0.0, 1.0)
        assert model.normalizer == pytest.approx(space.total_weight())
