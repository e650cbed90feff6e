"""Binary split-tree nodes used by tree features and the tree learner."""

from __future__ import annotations

import math
from typing import Optional

from dmaxent.space import Point


class Node:
    """A node of a binary decision tree.

    An internal node holds a split rule (``feature``, ``threshold``) and owns
    both children. A leaf holds the population points and sample observations
    routed to it, their accumulated population weight and its output
    ``value``. A node is a leaf iff it has no children.
    """

    def __init__(self, value: float = 0.0):
        self.feature: int = 0
        self.threshold: float = math.nan
        self.value = value
        self.left: Optional[Node] = None
        self.right: Optional[Node] = None
        self.population_weight = 0.0
        self.points: list[Point] = []
        self.samples: list[Point] = []

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    def set_split(self, feature: int, threshold: float) -> None:
        self.feature = feature
        self.threshold = threshold

    def add_point(self, point: Point) -> None:
        self.points.append(point)
        self.population_weight += point.probability_weight

    def add_sample(self, point: Point) -> None:
        self.samples.append(point)

    def clear_points(self) -> None:
        self.points = []
        self.population_weight = 0.0

    def clear_samples(self) -> None:
        self.samples = []

    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def child(self, point: Point) -> Optional[Node]:
        """Route ``point`` to a child; None for a leaf's missing child."""
        if point.raw_feature(self.feature) < self.threshold:
            return self.left
        return self.right

    def __repr__(self) -> str:
        if self.is_leaf():
            return (
                f"Node(value={self.value}, population_weight={self.population_weight}, "
                f"points={len(self.points)}, samples={len(self.samples)})"
            )
        return f"Node(feature={self.feature}, threshold={self.threshold})"
