"""Tests for dmaxent.binning."""

from __future__ import annotations

from dmaxent.binning import equal_frequency_thresholds, value_to_thresholds
from dmaxent.space import Point, Space


def _space(*rows: tuple[float, ...]) -> Space:
    space = Space()
    for id, row in enumerate(rows):
        point = Point(id)
        for value in row:
            point.add_raw_feature(value)
        space.add_point(point)
    space.finalize()
    return space


class TestEqualFrequencyThresholds:
    """Cut placement over sorted covariate values."""

    def test_distinct_values(self):
        """Ten distinct integers in five bins are cut at 3, 6 and 9."""
        space = _space(*[(float(v),) for v in range(10, 0, -1)])
        assert equal_frequency_thresholds(space, 0, 5) == [3.0, 6.0, 9.0]

    def test_no_cut_inside_run_of_equal_values(self):
        """A run of equal values is never split."""
        space = _space((1.0,), (1.0,), (1.0,), (1.0,), (2.0,))
        assert equal_frequency_thresholds(space, 0, 2) == [1.5]

    def test_constant_covariate_has_no_cuts(self):
        space = _space(*[(0.5,)] * 8)
        assert equal_frequency_thresholds(space, 0, 4) == []

    def test_empty_space(self):
        assert equal_frequency_thresholds(Space(), 0, 4) == []


class TestValueToThresholds:
    """Bucket threshold of every observed value."""

    def test_maps_values_to_smallest_threshold_above(self):
        """A value equal to a cut belongs to the next bucket up."""
        space = _space(*[(float(v), -float(v)) for v in range(1, 11)])
        maps = value_to_thresholds(space, [[3.0, 6.0, 9.0, 11.0], [0.0]])
        assert maps[0] == {
            1.0: 3.0, 2.0: 3.0,
            3.0: 6.0, 4.0: 6.0, 5.0: 6.0,
            6.0: 9.0, 7.0: 9.0, 8.0: 9.0,
            9.0: 11.0, 10.0: 11.0,
        }
        assert set(maps[1].values()) == {0.0}

    def test_bucket_agrees_with_routing(self):
        """Every value lies below its bucket threshold and not below the previous one."""
        space = _space(*[(float(v),) for v in range(1, 11)])
        cuts = equal_frequency_thresholds(space, 0, 5) + [11.0]
        mapping = value_to_thresholds(space, [cuts])[0]
        for value, threshold in mapping.items():
            assert value < threshold
            position = cuts.index(threshold)
            if position:
                assert value >= cuts[position - 1]

    def test_values_above_every_threshold_use_the_last(self):
        space = _space((1.0,), (5.0,), (50.0,))
        maps = value_to_thresholds(space, [[2.0, 4.0]])
        assert maps[0] == {1.0: 2.0, 5.0: 4.0, 50.0: 4.0}
