"""Load point datasets and split observations into training and test samples."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import numpy as np

from dmaxent.space import Point, Sample, Space

MISSING_VALUE = "."


@dataclass
class Dataset:
    """A finalized space and the number of observations at each of its points."""
    space: Space
    counts: list[int] = field(default_factory=list)

    @property
    def num_raw_features(self) -> int:
        if len(self.space) == 0:
            return 0
        return self.space.point(0).num_raw_features

    @property
    def num_observations(self) -> int:
        return sum(self.counts)

    def observations(self) -> Sample:
        """Every point repeated by its observation count, in key order."""
        sample: Sample = []
        for key, count in enumerate(self.counts):
            sample.extend([self.space.point(key)] * count)
        return sample


def read_dataset(path: str | Path) -> Dataset:
    """Read a whitespace-separated dataset file.

    Each line describes one point::

        value_1 ... value_k count

    Rows with a missing covariate (``.``) are dropped entirely; blank lines
    are ignored. Kept rows get consecutive ids starting at 0.

    Args:
        path: Path to the dataset file.

    Returns:
        Dataset with a finalized space.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset not found: {path}")

    space = Space()
    counts: list[int] = []
    with open(path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            fields = line.split()
            if not fields:
                continue
            *values, count = fields
            if MISSING_VALUE in values:
                continue
            point = Point(len(counts))
            try:
                for value in values:
                    point.add_raw_feature(float(value))
                counts.append(int(count))
            except ValueError as e:
                raise ValueError(f"{path}:{line_number}: malformed row {line.strip()!r}") from e
            space.add_point(point)
    space.finalize()
    return Dataset(space=space, counts=counts)


def split_sample(observations: Sequence[Point], train_size: int, seed: int = 1) -> tuple[Sample, Sample]:
    """Shuffle ``observations`` and split them into (train, test).

    The first ``train_size`` shuffled observations form the training sample
    and the rest the test sample.
    """
    rng = np.random.default_rng(seed)
    order = rng.permutation(len(observations))
    shuffled = [observations[i] for i in order]
    return shuffled[:train_size], shuffled[train_size:]
