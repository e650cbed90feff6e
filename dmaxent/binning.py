"""Equal-frequency cut points of raw covariates.

The same cuts back both threshold features and the candidate splits of the
tree learner, which sees each covariate value through its bucket threshold.
"""

from __future__ import annotations

from typing import Sequence

from dmaxent.space import Space


def equal_frequency_thresholds(space: Space, index: int, num_bins: int) -> list[float]:
    """Cut points of covariate ``index`` giving bins of roughly equal point counts.

    Scanning the sorted values, a cut is placed at the midpoint between the
    current value and the previous distinct value once more than
    ``num_points // num_bins`` values were seen since the last cut. No cut is
    placed inside a run of equal values.
    """
    values = sorted(point.raw_feature(index) for point in space)
    if not values:
        return []
    bin_size = len(values) // num_bins
    thresholds: list[float] = []
    bin_count = 0
    current = values[0]
    previous = current
    for value in values:
        if bin_count > bin_size and value != previous:
            thresholds.append(0.5 * (value + previous))
            current = value
            previous = current
            bin_count = 0
        if value != current:
            previous = current
            current = value
        bin_count += 1
    return thresholds


def value_to_thresholds(space: Space, thresholds: Sequence[Sequence[float]]) -> list[dict[float, float]]:
    """Map every observed value of each covariate to its bucket threshold.

    A value maps to the smallest threshold strictly above it, so a bucket
    holds exactly the values that route left of its threshold. Values not
    below the last threshold map to the last one.

    Args:
        space: The space whose values are mapped.
        thresholds: Ascending thresholds per covariate, each list non-empty.

    Returns:
        One ``{value: threshold}`` dict per covariate.
    """
    maps = []
    for index, cuts in enumerate(thresholds):
        mapping: dict[float, float] = {}
        position = 0
        for value in sorted(point.raw_feature(index) for point in space):
            while position < len(cuts) - 1 and value >= cuts[position]:
                position += 1
            mapping[value] = cuts[position]
        maps.append(mapping)
    return maps
