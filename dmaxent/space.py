"""Points and the finite space over which a density is fit.

A ``Point`` carries raw covariate values and a mutable probability weight.
A ``Space`` is the ordered, finalizable collection of points that the model
assigns probabilities to. A sample is a plain list of references into a space,
where repeated entries encode repeated observations::

    space = Space()
    point = Point(0)
    point.add_raw_feature(0.5)
    space.add_point(point)
    space.finalize()
    sample: Sample = [space.point(0), space.point(0)]
"""

from __future__ import annotations

import math
from typing import Iterator


class Point:
    """A point of the underlying space.

    Raw covariates can only be appended until the point is finalized. The
    probability weight stays mutable after finalization; it is the model's
    current (unnormalized) belief about this point's mass.
    """

    def __init__(self, id: int, probability_weight: float = 1.0):
        self.id = id
        self.probability_weight = probability_weight
        self._raw_features: list[float] = []
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def num_raw_features(self) -> int:
        return len(self._raw_features)

    def add_raw_feature(self, value: float) -> int:
        """Append a covariate value.

        Returns:
            Index of the new covariate, or -1 if the point is finalized.
        """
        if self._finalized:
            return -1
        self._raw_features.append(float(value))
        return len(self._raw_features) - 1

    def raw_feature(self, index: int) -> float:
        """Return the covariate at ``index``, or NaN when it is missing."""
        if 0 <= index < len(self._raw_features):
            return self._raw_features[index]
        return math.nan

    def finalize(self) -> None:
        self._finalized = True

    def __repr__(self) -> str:
        return (
            f"Point(id={self.id}, raw={self._raw_features}, "
            f"probability_weight={self.probability_weight})"
        )


class Space:
    """Ordered collection of points with stable integer keys.

    The key of a point is its insertion position, which is independent of
    the point's own ``id``.
    """

    def __init__(self):
        self._points: list[Point] = []
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def num_points(self) -> int:
        return len(self._points)

    def add_point(self, point: Point) -> int:
        """Add a point to the space.

        Returns:
            Key of the point, or -1 if the space is finalized.
        """
        if self._finalized:
            return -1
        self._points.append(point)
        return len(self._points) - 1

    def point(self, key: int) -> Point:
        """Return the point stored under ``key``.

        Raises:
            IndexError: if no point has this key.
        """
        if not 0 <= key < len(self._points):
            raise IndexError(f"No point with key {key} in a space of {len(self._points)} points")
        return self._points[key]

    def finalize(self) -> None:
        """Freeze the space and every point in it."""
        for point in self._points:
            point.finalize()
        self._finalized = True

    def total_weight(self) -> float:
        total = 0.0
        for point in self._points:
            total += point.probability_weight
        return total

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[Point]:
        return iter(self._points)


# Observations are references into a space; repeats are repeated observations.
Sample = list[Point]
