"""Regularized coordinate-descent fitting of a Gibbs density over a finite space.

The model is::

    p_w(x) = exp( Σ_k w_k f_k(x) ) / Z(w)

stored implicitly: every point keeps an unnormalized ``probability_weight``
and the model keeps ``normalizer = Σ_x probability_weight(x)``, so that
``p_w(x) = probability_weight(x) / normalizer``. Each iteration picks the
coordinate (existing feature or a feature freshly induced by a weak learner)
with the largest |penalized gradient|, moves its weight by a closed-form step
and multiplicatively reweights every point.

Usage::

    model = DMaxEntModel(DMaxEntConfig(beta=0.07, max_descent_steps=3),
                         space, sample, features, weak_learners)
    history = model.fit()
    model.log_loss(test_sample), model.auc(test_sample)
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

import numpy as np

from dmaxent.constants import TOLERANCE
from dmaxent.features import Feature
from dmaxent.learners import WeakLearner
from dmaxent.space import Sample, Space


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@dataclass
class DMaxEntConfig:
    """Configuration for the coordinate-descent engine."""

    # Regularization: β_k = 2 α C_k + β
    alpha: float = 0.0
    beta: float = 1.0

    # Training loop
    max_descent_steps: int = 1
    version: int = 1               # step-size formula, 1 or 2
    feature_bound: float = 1.0     # λ, uniform bound on |f(x)|
    stop_if_converged: bool = True

    # 0 silent, 1 per-iteration summary, 2 + train log loss,
    # 3 + train AUC, 4 + test log loss and AUC
    verbose: int = 0

    def __post_init__(self):
        if self.version not in (1, 2):
            raise ValueError(f"version must be 1 or 2, got {self.version}")
        if self.alpha < 0 or self.beta < 0:
            raise ValueError(f"alpha and beta must be non-negative, got {self.alpha}, {self.beta}")
        if self.feature_bound < 0:
            raise ValueError(f"feature_bound must be non-negative, got {self.feature_bound}")
        if self.max_descent_steps < 1:
            raise ValueError(f"max_descent_steps must be at least 1, got {self.max_descent_steps}")


@dataclass
class WeightedFeature:
    """A model coordinate: a feature and its current weight."""
    weight: float
    feature: Feature


def _sgn(x: float) -> float:
    return 1.0 if x > 0 else -1.0


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

class DMaxEntModel:
    """Structural maximum-entropy model fit by greedy coordinate descent.

    The model mutates the ``probability_weight`` of every point in ``space``
    and owns the list of weighted features, which grows whenever a weak
    learner's feature wins a descent step.

    Args:
        config: Engine parameters.
        space: Finalized space the density is defined on.
        sample: Training observations (references into ``space``).
        features: Initial features, all starting at weight 0.
        weak_learners: Learners queried for a new feature every iteration.
        test_sample: Held-out observations, only used for verbose logging.
    """

    def __init__(
        self,
        config: DMaxEntConfig,
        space: Space,
        sample: Sample,
        features: Sequence[Feature],
        weak_learners: Sequence[WeakLearner] = (),
        test_sample: Optional[Sample] = None,
    ):
        self.config = config
        self.space = space
        self.sample = list(sample)
        self.test_sample = list(test_sample) if test_sample is not None else None
        self.weak_learners = list(weak_learners)
        self.weighted_features: list[WeightedFeature] = []
        for feature in features:
            if math.isnan(feature.sample_expectation):
                feature.compute_sample_expectation(self.sample)
            self.weighted_features.append(WeightedFeature(0.0, feature))
        self.normalizer = space.total_weight()

        self.direction = 0
        self.step_size = 0.0
        self.gradient = 0.0
        self.history: dict[str, list] = {
            "iteration": [],
            "direction": [],
            "step_size": [],
            "gradient": [],
            "n_features": [],
            "runtime_sec": [],
        }

    # ------------------------------------------------------------------
    # Coordinate descent phases
    # ------------------------------------------------------------------

    def _regularization(self, feature: Feature) -> float:
        return 2 * self.config.alpha * feature.complexity + self.config.beta

    def find_descent_direction(self) -> int:
        """Select the coordinate with the largest |penalized gradient|.

        Refreshes the population expectation of every existing feature, then
        trains each weak learner; a learner's feature is appended (with
        weight 0) only if it beats every other candidate by more than
        ``TOLERANCE``. Sets and returns ``direction``; ``gradient`` is set to
        the winning absolute gradient.
        """
        best_index = 0
        best_abs_gradient = -1.0
        for index, weighted in enumerate(self.weighted_features):
            feature = weighted.feature
            feature.compute_unnormalized_population_expectation(self.space)
            diff = feature.population_expectation / self.normalizer - feature.sample_expectation
            beta = self._regularization(feature)
            if abs(weighted.weight) > TOLERANCE:
                gradient = beta * _sgn(weighted.weight) + diff
            elif abs(diff) < beta:
                gradient = 0.0
            else:
                gradient = -beta * _sgn(diff) + diff
            # Ties go to the later coordinate.
            if abs(gradient) >= best_abs_gradient:
                best_index = index
                best_abs_gradient = abs(gradient)

        new_feature: Optional[Feature] = None
        for learner in self.weak_learners:
            feature, gradient = learner.train(self.space, self.sample)
            if abs(gradient) > best_abs_gradient + TOLERANCE:
                new_feature = feature
                best_index = len(self.weighted_features)
                best_abs_gradient = abs(gradient)
        if new_feature is not None:
            self.weighted_features.append(WeightedFeature(0.0, new_feature))

        self.gradient = best_abs_gradient
        self.direction = best_index
        return best_index

    def find_step_size_v1(self) -> float:
        """Exact line-search step for features bounded by λ (version 1)."""
        weighted = self.weighted_features[self.direction]
        feature = weighted.feature
        lam = self._feature_bound()
        population = feature.population_expectation / self.normalizer
        phi_pt = lam + population
        phi_mt = -lam + population
        phi_p = lam + feature.sample_expectation
        phi_m = -lam + feature.sample_expectation
        decay = math.exp(-2 * weighted.weight * lam)
        denominator = phi_pt * decay - phi_mt
        if denominator == 0:
            raise ValueError(f"Step size is undefined for direction {self.direction}: zero denominator")
        beta = (phi_pt * phi_m * decay - phi_p * phi_mt) / denominator
        beta_k = self._regularization(feature)
        if abs(beta) < beta_k:
            step = -weighted.weight
        elif beta > beta_k:
            step = self._half_log(phi_mt * (beta_k - phi_p), phi_pt * (beta_k - phi_m)) / lam
        else:
            step = self._half_log(phi_mt * (beta_k + phi_p), phi_pt * (beta_k + phi_m)) / lam
        self.step_size = step
        return step

    def find_step_size_v2(self) -> float:
        """Quadratic-bound step (version 2)."""
        weighted = self.weighted_features[self.direction]
        feature = weighted.feature
        lam = self._feature_bound()
        diff = feature.population_expectation / self.normalizer - feature.sample_expectation
        beta_k = self._regularization(feature)
        beta = weighted.weight * lam * lam - diff
        if abs(beta) <= beta_k:
            step = -weighted.weight
        elif beta > beta_k:
            step = -(beta_k + diff) / (lam * lam)
        else:
            step = -(-beta_k + diff) / (lam * lam)
        self.step_size = step
        return step

    def _feature_bound(self) -> float:
        if self.config.feature_bound == 0:
            raise ValueError(f"Step size is undefined for direction {self.direction}: feature_bound is 0")
        return self.config.feature_bound

    def _half_log(self, numerator: float, denominator: float) -> float:
        if denominator == 0 or numerator / denominator <= 0:
            raise ValueError(
                f"Step size is undefined for direction {self.direction}: "
                f"log argument {numerator}/{denominator} is not positive"
            )
        return 0.5 * math.log(numerator / denominator)

    def update_model(self) -> None:
        """Apply the current step: move the weight and reweight every point."""
        weighted = self.weighted_features[self.direction]
        weighted.weight += self.step_size
        feature = weighted.feature
        normalizer = 0.0
        for point in self.space:
            weight = point.probability_weight * math.exp(self.step_size * feature.feature_map(point))
            normalizer += weight
            point.probability_weight = weight
        self.normalizer = normalizer

    # ------------------------------------------------------------------
    # fit
    # ------------------------------------------------------------------

    def fit(self) -> dict[str, list]:
        """Run coordinate descent.

        Returns:
            The ``history`` dict, one entry per completed iteration.
        """
        cfg = self.config
        for it in range(1, cfg.max_descent_steps + 1):
            t0 = time.time()
            self.find_descent_direction()
            if cfg.version == 1:
                self.find_step_size_v1()
            else:
                self.find_step_size_v2()
            self.update_model()

            self.history["iteration"].append(it)
            self.history["direction"].append(self.direction)
            self.history["step_size"].append(self.step_size)
            self.history["gradient"].append(self.gradient)
            self.history["n_features"].append(len(self.weighted_features))
            self.history["runtime_sec"].append(time.time() - t0)

            if cfg.verbose >= 1:
                print(
                    f"[DMaxEntModel] iter {it:4d}  direction={self.direction}  "
                    f"step={self.step_size:.6f}  |gradient|={self.gradient:.6f}"
                )
            if cfg.verbose >= 2:
                print(f"[DMaxEntModel] train log loss={self.log_loss(self.sample):.6f}")
            if cfg.verbose >= 3 and self.has_both_classes(self.sample):
                print(f"[DMaxEntModel] train AUC={self.auc(self.sample):.6f}")
            if cfg.verbose >= 4 and self.test_sample:
                print(f"[DMaxEntModel] test log loss={self.log_loss(self.test_sample):.6f}")
                if self.has_both_classes(self.test_sample):
                    print(f"[DMaxEntModel] test AUC={self.auc(self.test_sample):.6f}")

            if self.gradient < TOLERANCE and cfg.stop_if_converged:
                if cfg.verbose:
                    print(f"[DMaxEntModel] Converged at iteration {it}.")
                break
        return self.history

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def log_loss(self, sample: Sample) -> float:
        """Σ over observations of -log p(x); repeated observations count repeatedly."""
        loss = 0.0
        for point in sample:
            loss += math.log(self.normalizer / point.probability_weight)
        return loss

    def auc(self, sample: Sample) -> float:
        """Area under the ROC curve of the point weights.

        Points whose id occurs in ``sample`` are positives, every other point
        of the space is a negative. Among equal weights positives rank above
        negatives.

        Raises:
            ValueError: if the space has no positives or no negatives.
        """
        positive_ids = {point.id for point in sample}
        weights = np.array([point.probability_weight for point in self.space], dtype=float)
        positive = np.array([point.id in positive_ids for point in self.space], dtype=bool)
        n_negative = int(np.sum(~positive))
        n_positive = len(positive) - n_negative
        if n_negative == 0 or n_positive == 0:
            raise ValueError(
                f"AUC needs both positives and negatives, got {n_positive} and {n_negative}"
            )
        # Sort by weight, negatives first within ties.
        order = np.lexsort((positive, weights))
        negatives_below = np.cumsum(~positive[order])
        ranked = float(np.sum(negatives_below[positive[order]]))
        return ranked / (n_negative * n_positive)

    def has_both_classes(self, sample: Sample) -> bool:
        """Whether the space holds points both observed and unobserved in ``sample``."""
        positive_ids = {point.id for point in sample}
        n_positive = sum(1 for point in self.space if point.id in positive_ids)
        return 0 < n_positive < len(self.space)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def weight(self, coordinate: int) -> float:
        """Weight of the feature at ``coordinate``.

        Raises:
            IndexError: if ``coordinate`` is out of range.
        """
        if not 0 <= coordinate < len(self.weighted_features):
            raise IndexError(
                f"No coordinate {coordinate} in a model of {len(self.weighted_features)} features"
            )
        return self.weighted_features[coordinate].weight

    def __len__(self) -> int:
        return len(self.weighted_features)

    def __iter__(self) -> Iterator[WeightedFeature]:
        return iter(self.weighted_features)

    def __reversed__(self) -> Iterator[WeightedFeature]:
        return reversed(self.weighted_features)
