"""
Tests for trajectory interpolation.
"""

import math

import pytest

from lidar_georef.errors import NonmonotonicTrajectory, OutsideTrajectoryRange
from lidar_georef.trajectory import TrajectorySample, TrajectoryStore


def make_sample(time, value=0.0, heading=None):
    return TrajectorySample(
        time=time,
        latitude=value,
        longitude=-value,
        height=100.0 + value,
        roll=value,
        pitch=-value,
        heading=value if heading is None else heading,
    )


class TestTrajectoryStore:
    """Tests for TrajectoryStore.interpolate."""

    @pytest.fixture
    def store(self):
        """Samples at t = 0, 1, 2, 3, 4 with value = 10 * t."""
        return TrajectoryStore([make_sample(float(t), 10.0 * t) for t in range(5)])

    @pytest.mark.parametrize("hint", [0, 1, 2, 3, 10])
    def test_exact_sample_any_hint(self, store, hint):
        """A query at a sample time returns that sample, whatever the hint."""
        sample, _ = store.interpolate(2.0, hint)
        assert sample == store[2]

    def test_exact_sample_is_stored_object(self, store):
        sample, _ = store.interpolate(1.0, 0)
        assert sample is store[1]

    def test_midpoint(self, store):
        sample, hint = store.interpolate(1.5, 0)

        assert hint == 1
        assert sample.time == pytest.approx(1.5)
        assert sample.latitude == pytest.approx(15.0)
        assert sample.longitude == pytest.approx(-15.0)
        assert sample.height == pytest.approx(115.0)
        assert sample.roll == pytest.approx(15.0)
        assert sample.pitch == pytest.approx(-15.0)
        assert sample.heading == pytest.approx(15.0)

    def test_quarter_point(self, store):
        sample, _ = store.interpolate(3.25, 0)
        assert sample.height == pytest.approx(132.5)

    def test_first_and_last_times(self, store):
        first, hint = store.interpolate(0.0, 3)
        assert first == store[0]
        assert hint == 0

        last, hint = store.interpolate(4.0, 0)
        assert last == store[4]
        assert hint == 3

    @pytest.mark.parametrize("time", [-0.001, 4.001, -100.0, 1e9])
    def test_outside_range(self, store, time):
        with pytest.raises(OutsideTrajectoryRange) as excinfo:
            store.interpolate(time, 0)
        assert excinfo.value.time == time
        assert excinfo.value.time_range == (0.0, 4.0)

    def test_hint_walks_backwards(self, store):
        sample, hint = store.interpolate(0.5, 3)
        assert hint == 0
        assert sample.height == pytest.approx(105.0)

    def test_hint_is_clamped(self, store):
        """A hint past the last bracket starts from the last bracket."""
        sample, hint = store.interpolate(3.5, 100)
        assert hint == 3
        assert sample.height == pytest.approx(135.0)

    def test_negative_hint(self, store):
        with pytest.raises(ValueError):
            store.interpolate(1.0, -1)

    def test_monotone_queries_move_hint_by_one(self):
        """Query spacing below the sample spacing moves the hint at most one step."""
        store = TrajectoryStore([make_sample(float(t), float(t)) for t in range(50)])

        hint = 0
        t = 0.0
        while t <= 49.0:
            _, new_hint = store.interpolate(t, hint)
            assert 0 <= new_hint - hint <= 1
            assert store[new_hint].time <= t <= store[new_hint + 1].time
            hint = new_hint
            t += 0.37

    def test_returned_hint_is_valid_bracket(self, store):
        for t in (0.0, 0.3, 1.0, 2.9, 4.0):
            _, hint = store.interpolate(t, 0)
            assert 0 <= hint < len(store) - 1

    def test_interpolate_many(self, store):
        samples, hint = store.interpolate_many([0.5, 1.5, 3.5])
        assert [s.height for s in samples] == pytest.approx([105.0, 115.0, 135.0])
        assert hint == 3

    def test_time_range(self, store):
        assert store.time_range == (0.0, 4.0)
        assert len(store) == 5


class TestDegenerateTrajectories:
    """Edge cases of the sample sequence."""

    def test_empty_store(self):
        store = TrajectoryStore([])
        assert store.time_range is None
        with pytest.raises(OutsideTrajectoryRange):
            store.interpolate(0.0, 0)

    def test_single_sample(self):
        """Even an exact match needs a pair of samples."""
        store = TrajectoryStore([make_sample(5.0)])
        with pytest.raises(OutsideTrajectoryRange):
            store.interpolate(5.0, 0)

    def test_nonmonotonic_pair(self):
        store = TrajectoryStore([make_sample(0.0), make_sample(2.0), make_sample(1.0), make_sample(3.0)])

        with pytest.raises(NonmonotonicTrajectory) as excinfo:
            store.interpolate(2.5, 0)
        assert excinfo.value.index == 1

    def test_nonmonotonic_pair_not_visited(self):
        """Only visited pairs are checked."""
        store = TrajectoryStore([make_sample(0.0), make_sample(1.0), make_sample(3.0), make_sample(2.0)])

        sample, hint = store.interpolate(0.5, 0)
        assert hint == 0
        assert sample.time == pytest.approx(0.5)

    def test_equal_timestamps(self):
        """Duplicate times are allowed and return a stored sample."""
        store = TrajectoryStore([make_sample(0.0, 0.0), make_sample(1.0, 1.0), make_sample(1.0, 2.0), make_sample(2.0, 3.0)])

        sample, _ = store.interpolate(1.0, 0)
        assert sample.time == 1.0
        assert sample in (store[1], store[2])

        sample, _ = store.interpolate(1.5, 0)
        assert sample.height == pytest.approx(102.5)

    def test_heading_wraparound_not_unwrapped(self):
        """Angles are interpolated linearly: 359° to 1° passes through 180°."""
        store = TrajectoryStore([
            make_sample(0.0, heading=math.radians(359.0)),
            make_sample(1.0, heading=math.radians(1.0)),
        ])

        sample, _ = store.interpolate(0.5, 0)
        assert math.degrees(sample.heading) == pytest.approx(180.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
