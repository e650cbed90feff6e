"""Structural maximum-entropy density estimation with tree and monomial weak learners."""

from dmaxent.constants import TOLERANCE
from dmaxent.space import Point, Sample, Space
from dmaxent.tree import Node
from dmaxent.features import (
    Feature,
    FeatureKind,
    RawFeature,
    ProductFeature,
    ThresholdFeature,
    TreeFeature,
    MonomialFeature,
)
from dmaxent.learners import WeakLearner, TreeLearner, MonomialLearner, penalized_gradient
from dmaxent.model import DMaxEntConfig, DMaxEntModel, WeightedFeature
from dmaxent.data import Dataset, read_dataset, split_sample
from dmaxent.binning import equal_frequency_thresholds, value_to_thresholds
from dmaxent.builder import ModelBuilder
from dmaxent.report import ModelReport

__all__ = [
    "TOLERANCE",
    "Point",
    "Sample",
    "Space",
    "Node",
    "Feature",
    "FeatureKind",
    "RawFeature",
    "ProductFeature",
    "ThresholdFeature",
    "TreeFeature",
    "MonomialFeature",
    "WeakLearner",
    "TreeLearner",
    "MonomialLearner",
    "penalized_gradient",
    "DMaxEntConfig",
    "DMaxEntModel",
    "WeightedFeature",
    "Dataset",
    "read_dataset",
    "split_sample",
    "equal_frequency_thresholds",
    "value_to_thresholds",
    "ModelBuilder",
    "ModelReport",
]
