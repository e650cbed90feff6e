"""Feature maps used as coordinates of the exponential-family model.

A feature is a map from a ``Point`` to a real number. Each feature caches two
statistics that the fitting engine reads:

    sample_expectation      mean of the map over a sample
    population_expectation  Σ_x w(x) · f(x) over a space, *not* divided by
                            the normalizer Σ_x w(x)

Both are NaN until computed. ``complexity`` is the structural-risk penalty
that scales the regularization of the feature. For raw, product and
threshold features it is a per-class value that the caller binds at
construction; tree and monomial features get their own value from the weak
learner that induced them.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections import deque
from enum import Enum
from typing import Sequence

from dmaxent.space import Point, Sample, Space
from dmaxent.tree import Node


class FeatureKind(str, Enum):
    """Variant tag of a feature, used for reporting."""
    RAW = "raw"
    PRODUCT = "product"
    THRESHOLD = "threshold"
    TREE = "tree"
    MONOMIAL = "monomial"


class Feature(ABC):
    """Abstract base class for feature maps."""

    kind: FeatureKind

    def __init__(self, complexity: float = 0.0):
        self.complexity = complexity
        self.sample_expectation = math.nan
        self.population_expectation = math.nan

    @abstractmethod
    def feature_map(self, point: Point) -> float:
        """Value of the feature at ``point``."""

    def compute_sample_expectation(self, sample: Sample) -> None:
        """Set ``sample_expectation`` to the mean of the map over ``sample``."""
        if not sample:
            raise ValueError("Cannot compute a sample expectation over an empty sample")
        total = 0.0
        for point in sample:
            total += self.feature_map(point)
        self.sample_expectation = total / len(sample)

    def compute_unnormalized_population_expectation(self, space: Space) -> None:
        """Set ``population_expectation`` to Σ w(x) · f(x) over ``space``.

        Divide by the current normalizer to get the model expectation.
        """
        expectation = 0.0
        for point in space:
            expectation += point.probability_weight * self.feature_map(point)
        self.population_expectation = expectation


class RawFeature(Feature):
    """Feature equal to one raw covariate."""

    kind = FeatureKind.RAW

    def __init__(self, index: int, complexity: float = 0.0):
        super().__init__(complexity)
        self.index = index

    def feature_map(self, point: Point) -> float:
        return point.raw_feature(self.index)

    def __repr__(self) -> str:
        return f"RawFeature(index={self.index})"


class ProductFeature(Feature):
    """Product of two raw covariates (squares included)."""

    kind = FeatureKind.PRODUCT

    def __init__(self, first_index: int, second_index: int, complexity: float = 0.0):
        super().__init__(complexity)
        self.first_index = first_index
        self.second_index = second_index

    def feature_map(self, point: Point) -> float:
        return point.raw_feature(self.first_index) * point.raw_feature(self.second_index)

    def __repr__(self) -> str:
        return f"ProductFeature({self.first_index}, {self.second_index})"


class ThresholdFeature(Feature):
    """Indicator that a raw covariate is strictly above a threshold.

    A missing covariate (NaN) is never above the threshold, so it maps to 0.
    """

    kind = FeatureKind.THRESHOLD

    def __init__(self, index: int, threshold: float, complexity: float = 0.0):
        super().__init__(complexity)
        self.index = index
        self.threshold = threshold

    def feature_map(self, point: Point) -> float:
        return 1.0 if point.raw_feature(self.index) > self.threshold else 0.0

    def __repr__(self) -> str:
        return f"ThresholdFeature(index={self.index}, threshold={self.threshold})"


class TreeFeature(Feature):
    """Feature defined by a binary split tree.

    Every leaf of the tree is a cell of a partition of the space and the
    feature takes the leaf's ``value`` on that cell.
    """

    kind = FeatureKind.TREE

    def __init__(self, root: Node, complexity: float = 0.0):
        super().__init__(complexity)
        self.root = root

    def feature_map(self, point: Point) -> float:
        node = self.root
        while not node.is_leaf():
            node = node.child(point)
        return node.value

    def compute_tree_expectations(self) -> None:
        """Set both expectations from the weights and counts held at the leaves."""
        population = 0.0
        sample = 0.0
        sample_count = 0
        queue = deque([self.root])
        while queue:
            node = queue.popleft()
            if node.is_leaf():
                population += node.value * node.population_weight
                sample += node.value * node.sample_count
                sample_count += node.sample_count
            else:
                queue.append(node.left)
                queue.append(node.right)
        self.population_expectation = population
        self.sample_expectation = sample / sample_count if sample_count else math.nan

    def tree_size(self) -> int:
        """Number of nodes in the tree."""
        size = 0
        queue = deque([self.root])
        while queue:
            node = queue.popleft()
            size += 1
            if node.left is not None:
                queue.append(node.left)
            if node.right is not None:
                queue.append(node.right)
        return size

    def __repr__(self) -> str:
        return f"TreeFeature(size={self.tree_size()})"


class MonomialFeature(Feature):
    """Product of raw covariates raised to per-covariate integer powers."""

    kind = FeatureKind.MONOMIAL

    def __init__(self, powers: Sequence[int], complexity: float = 0.0):
        super().__init__(complexity)
        self.powers = tuple(int(p) for p in powers)

    @property
    def power(self) -> int:
        """Total degree of the monomial."""
        return sum(self.powers)

    def feature_map(self, point: Point) -> float:
        result = 1.0
        for index, exponent in enumerate(self.powers):
            result *= point.raw_feature(index) ** exponent
        return result

    def set_expectations(self, population: float, sample: float) -> None:
        self.population_expectation = population
        self.sample_expectation = sample

    def __repr__(self) -> str:
        return f"MonomialFeature(powers={self.powers})"
