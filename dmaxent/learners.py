"""Weak learners that induce new features for coordinate descent.

Every call to ``train`` builds a brand-new feature from scratch for the
current state of the space (point weights) and the training sample, and
returns it together with its penalized gradient. The fitting engine adds the
feature to the model only when that gradient beats the best existing
coordinate.

Both learners score a candidate with the same penalized-gradient rule of the
structural maxent objective::

    complexity = β + α · C(candidate)
    gradient   = 0                                  if |diff| < complexity
               = diff − sign(diff) · complexity     otherwise

where ``diff`` is the gap between model and sample expectations of the
candidate and ``C`` is a structural-risk bound that grows with the size of
the candidate and shrinks with the sample size.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Mapping, NamedTuple, Sequence

import numpy as np

from dmaxent.constants import TOLERANCE
from dmaxent.features import Feature, MonomialFeature, TreeFeature
from dmaxent.space import Sample, Space
from dmaxent.tree import Node


def penalized_gradient(difference: float, complexity: float) -> float:
    """Soft-threshold ``difference`` by ``complexity``."""
    if abs(difference) < complexity:
        return 0.0
    sign = 1.0 if difference > 0 else -1.0
    return difference - sign * complexity


class WeakLearner(ABC):
    """Abstract base class for weak learners."""

    @abstractmethod
    def train(self, space: Space, sample: Sample) -> tuple[Feature, float]:
        """Train a new feature on ``space`` and ``sample``.

        Returns:
            Tuple of (feature, gradient). The feature has its sample and
            population expectations and its complexity set.
        """


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------

@dataclass
class ThresholdBucket:
    """Population weight, point count and sample count of the values mapped to one threshold."""
    population_weight: float = 0.0
    sample_count: int = 0
    point_count: int = 0


class SplitCandidate(NamedTuple):
    """Best split of one node along one covariate."""
    threshold: float
    gradient: float
    left_value: float
    expectation_diff: float


class TreeLearner(WeakLearner):
    """Greedy best-first learner of binary tree features.

    Leaves of the tree take values 0 or 1: splitting a leaf keeps its value on
    one side and flips it on the other, so that a tree feature is an indicator
    of a union of cells.

    Args:
        num_features: Number of raw covariates of every point.
        alpha: Regularization weight of the structural complexity term.
        beta: Constant regularization term.
        value_to_thresholds: For every covariate, a map from each observed
            value to its bucket threshold (the smallest threshold not below
            the value). Candidate splits are the bucket thresholds.
    """

    def __init__(
        self,
        num_features: int,
        alpha: float,
        beta: float,
        value_to_thresholds: Sequence[Mapping[float, float]],
    ):
        self.num_features = num_features
        self.alpha = alpha
        self.beta = beta
        self.value_to_thresholds = list(value_to_thresholds)

    def train(self, space: Space, sample: Sample) -> tuple[TreeFeature, float]:
        root = Node(value=0.0)
        for point in space:
            root.add_point(point)
        for point in sample:
            root.add_sample(point)

        normalizer = root.population_weight
        sample_size = len(sample)
        tree_size = 1
        old_diff = 0.0
        old_gradient = 0.0

        queue = deque([root])
        while queue:
            node = queue.popleft()
            best = SplitCandidate(math.nan, 0.0, 0.0, 0.0)
            best_feature = 0
            for feature_index in range(self.num_features):
                candidate = self.best_threshold(
                    feature_index, node, old_diff, normalizer, sample_size, tree_size,
                )
                if abs(candidate.gradient) > abs(best.gradient) + TOLERANCE:
                    best = candidate
                    best_feature = feature_index
            # A node is split only if it improves on every split made so far.
            if abs(best.gradient) > abs(old_gradient) + TOLERANCE:
                old_gradient = best.gradient
                left, right = self.grow_tree(node, best.threshold, best_feature, best.left_value)
                queue.append(left)
                queue.append(right)
                tree_size += 2
                old_diff = best.expectation_diff

        feature = TreeFeature(root)
        feature.compute_tree_expectations()
        feature.complexity = self.tree_complexity(tree_size, sample_size)
        return feature, old_gradient

    def best_threshold(
        self,
        feature_index: int,
        node: Node,
        old_diff: float,
        normalizer: float,
        sample_size: int,
        tree_size: int,
    ) -> SplitCandidate:
        """Find the split of ``node`` along ``feature_index`` with the largest |gradient|.

        Args:
            feature_index: Covariate to split on.
            node: Leaf to split.
            old_diff: Expectation difference of the tree before this split.
            normalizer: Total population weight of the space.
            sample_size: Size of the training sample.
            tree_size: Current number of nodes in the tree.

        Returns:
            SplitCandidate with the threshold, its gradient, the value for
            the left child and the expectation difference after the split.
            A split leaving one side without points and observations is never
            a candidate, so a node with a single bucket yields a zero gradient.
        """
        buckets = self.build_threshold_to_weights(node, feature_index)
        best = SplitCandidate(math.nan, 0.0, 0.0, 0.0)
        best_abs_gradient = -1.0
        left_weight = 0.0
        right_weight = node.population_weight
        left_count = 0.0
        right_count = float(node.sample_count)
        right_points = len(node.points)
        flip = 1.0 - 2.0 * node.value
        for threshold in sorted(buckets):
            bucket = buckets[threshold]
            left_weight += bucket.population_weight
            right_weight -= bucket.population_weight
            left_count += bucket.sample_count
            right_count -= bucket.sample_count
            right_points -= bucket.point_count
            if right_points == 0 and right_count == 0:
                continue
            left_diff = old_diff + flip * (left_weight / normalizer - left_count / sample_size)
            right_diff = old_diff + flip * (right_weight / normalizer - right_count / sample_size)
            left_gradient = self.gradient(tree_size + 2, sample_size, left_diff)
            right_gradient = self.gradient(tree_size + 2, sample_size, right_diff)
            # The left side wins only when it is strictly better.
            prefer_left = abs(left_gradient) > abs(right_gradient) + TOLERANCE
            gradient = left_gradient if prefer_left else right_gradient
            if abs(gradient) > best_abs_gradient + TOLERANCE:
                best_abs_gradient = abs(gradient)
                best = SplitCandidate(
                    threshold=threshold,
                    gradient=gradient,
                    left_value=1.0 - node.value if prefer_left else node.value,
                    expectation_diff=left_diff if prefer_left else right_diff,
                )
        return best

    def gradient(self, tree_size: int, sample_size: int, expectation_diff: float) -> float:
        """Penalized gradient of a tree with ``tree_size`` nodes."""
        complexity = self.beta + self.alpha * self.tree_complexity(tree_size, sample_size)
        return penalized_gradient(expectation_diff, complexity)

    def tree_complexity(self, tree_size: int, sample_size: int) -> float:
        """Structural-risk bound of a tree with ``tree_size`` nodes."""
        return math.sqrt(
            (4 * tree_size + 2)
            * math.log2(self.num_features + 2.0)
            * math.log(sample_size + 1.0)
            / sample_size
        )

    def grow_tree(
        self,
        node: Node,
        threshold: float,
        feature_index: int,
        left_value: float,
    ) -> tuple[Node, Node]:
        """Split leaf ``node`` and move its points and observations to the children.

        Points with ``raw_feature(feature_index) < threshold`` go left. The
        left child gets ``left_value`` and the right child ``1 - left_value``.
        """
        left = Node(value=left_value)
        right = Node(value=1.0 - left_value)
        node.set_split(feature_index, threshold)
        node.left = left
        node.right = right
        for point in node.points:
            if point.raw_feature(feature_index) < threshold:
                left.add_point(point)
            else:
                right.add_point(point)
        for point in node.samples:
            if point.raw_feature(feature_index) < threshold:
                left.add_sample(point)
            else:
                right.add_sample(point)
        node.clear_points()
        node.clear_samples()
        return left, right

    def build_threshold_to_weights(self, node: Node, index: int) -> dict[float, ThresholdBucket]:
        """Group the points and observations of ``node`` by the bucket threshold of covariate ``index``."""
        value_map = self.value_to_thresholds[index]
        buckets: dict[float, ThresholdBucket] = {}
        for point in node.points:
            # Values absent from the map fall into the 0.0 bucket.
            threshold = value_map.get(point.raw_feature(index), 0.0)
            bucket = buckets.setdefault(threshold, ThresholdBucket())
            bucket.population_weight += point.probability_weight
            bucket.point_count += 1
        for point in node.samples:
            threshold = value_map.get(point.raw_feature(index), 0.0)
            buckets.setdefault(threshold, ThresholdBucket()).sample_count += 1
        return buckets


# ---------------------------------------------------------------------------
# Monomials
# ---------------------------------------------------------------------------

class MonomialCandidate(NamedTuple):
    """Best covariate to multiply into the current monomial."""
    gradient: float
    feature: int
    population_expectation: float
    sample_expectation: float


class MonomialLearner(WeakLearner):
    """Greedy forward-selection learner of monomial features.

    Starting from the constant monomial, each round multiplies in the
    covariate with the largest |gradient| and stops as soon as no covariate
    improves on the best gradient found so far.

    Args:
        num_features: Number of raw covariates of every point.
        alpha: Regularization weight of the structural complexity term.
        beta: Constant regularization term.
        feature_bound: Uniform bound on the absolute value of covariates.
    """

    def __init__(self, num_features: int, alpha: float, beta: float, feature_bound: float):
        self.num_features = num_features
        self.alpha = alpha
        self.beta = beta
        self.feature_bound = feature_bound

    def train(self, space: Space, sample: Sample) -> tuple[MonomialFeature, float]:
        powers = [0] * self.num_features
        point_values = np.array([point.probability_weight for point in space], dtype=float)
        normalizer = float(np.sum(point_values))
        sample_values = np.ones(len(sample), dtype=float)
        power = 0
        best_gradient = 0.0
        population_expectation = math.nan
        sample_expectation = math.nan

        while True:
            candidate = self.best_feature(
                point_values, sample_values, space, sample, normalizer, power,
            )
            if abs(candidate.gradient) <= abs(best_gradient) + TOLERANCE:
                break
            best_gradient = candidate.gradient
            # Stored unnormalized, like every other population expectation.
            population_expectation = candidate.population_expectation * normalizer
            sample_expectation = candidate.sample_expectation
            powers[candidate.feature] += 1
            power += 1
            point_values = point_values * _covariate(space, candidate.feature)
            sample_values = sample_values * _covariate(sample, candidate.feature)

        feature = MonomialFeature(powers, complexity=self.monomial_complexity(power, len(sample)))
        feature.set_expectations(population_expectation, sample_expectation)
        return feature, best_gradient

    def best_feature(
        self,
        point_values: Sequence[float] | np.ndarray,
        sample_values: Sequence[float] | np.ndarray,
        space: Space,
        sample: Sample,
        normalizer: float,
        power: int,
    ) -> MonomialCandidate:
        """Find the covariate whose multiplication into the monomial has the largest |gradient|.

        Args:
            point_values: Current monomial value at every space point,
                multiplied by that point's probability weight.
            sample_values: Current monomial value at every observation.
            space: The space.
            sample: The training sample.
            normalizer: Total population weight of the space.
            power: Current degree of the monomial.

        Returns:
            MonomialCandidate; a zero gradient means no covariate qualifies.
        """
        point_values = np.asarray(point_values, dtype=float)
        sample_values = np.asarray(sample_values, dtype=float)
        best = MonomialCandidate(0.0, 0, 0.0, 0.0)
        for feature in range(self.num_features):
            population_expectation = float(np.sum(point_values * _covariate(space, feature))) / normalizer
            sample_expectation = float(np.sum(sample_values * _covariate(sample, feature))) / len(sample)
            diff = population_expectation - sample_expectation
            gradient = self.gradient(power + 1, len(sample), diff)
            if abs(gradient) > abs(best.gradient) + TOLERANCE:
                best = MonomialCandidate(gradient, feature, population_expectation, sample_expectation)
        return best

    def gradient(self, power: int, sample_size: int, difference: float) -> float:
        """Penalized gradient of a monomial of degree ``power``."""
        complexity = self.beta + self.alpha * self.monomial_complexity(power, sample_size)
        return penalized_gradient(difference, complexity)

    def monomial_complexity(self, power: int, sample_size: int) -> float:
        """Structural-risk bound of a monomial of degree ``power``."""
        if power == 0:
            return 0.0
        return math.sqrt(
            2 * self.feature_bound * power * math.log(self.num_features) / sample_size
        )


def _covariate(points, index: int) -> np.ndarray:
    """Values of covariate ``index`` over an iterable of points, NaN where missing."""
    return np.array([point.raw_feature(index) for point in points], dtype=float)
