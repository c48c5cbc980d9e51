"""
Trajectory interpolation module.

Provides interpolation of navigation samples (position and attitude) based on
time.

Trajectory data is provided at regular intervals (e.g., 200 Hz for SBET) while
scanner points are timestamped at a much higher rate, so every point needs an
interpolated sample. Points arrive in time order, so lookups walk a bracket
index ("hint") forward from the previous result instead of searching the
whole trajectory:

    sample, hint = store.interpolate(t0, 0)
    sample, hint = store.interpolate(t1, hint)   # usually O(1)

The hint is owned by the caller. The store itself is immutable and can be
shared freely.

Conventions:
    - time: GPS time or other monotonic time reference (seconds)
    - latitude, longitude: radians
    - height: ellipsoidal height (meters)
    - roll, pitch, heading: radians

Samples are interpolated field by field. Angles are not unwrapped: a heading
going from 359 deg to 1 deg interpolates through 180 deg.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .errors import NonmonotonicTrajectory, OutsideTrajectoryRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrajectorySample:
    """
    A single navigation sample.

    Attributes:
        time: Sample time in seconds
        latitude: Geodetic latitude in radians
        longitude: Geodetic longitude in radians
        height: Ellipsoidal height
        roll: Roll angle in radians
        pitch: Pitch angle in radians
        heading: Heading angle in radians, from north
    """
    time: float
    latitude: float
    longitude: float
    height: float
    roll: float
    pitch: float
    heading: float


def _lerp(a: float, b: float, factor: float) -> float:
    return a + (b - a) * factor


class TrajectoryStore:
    """
    An ordered, read-only sequence of trajectory samples.

    The samples are kept in the order they were given, which must be time
    order. Ordering is not checked up front: each lookup checks only the
    pairs it visits and raises NonmonotonicTrajectory on the first pair that
    goes backwards in time.
    """

    def __init__(self, samples: Sequence[TrajectorySample]):
        """
        Initialize the store.

        Args:
            samples: Trajectory samples in time order. At least two are needed
                for any lookup to succeed.
        """
        self._samples: Tuple[TrajectorySample, ...] = tuple(samples)

        if len(self._samples) < 2:
            logger.warning(
                f"Trajectory has {len(self._samples)} sample(s); every lookup will fail"
            )
        else:
            logger.info(
                f"Trajectory store initialized with {len(self._samples)} samples, "
                f"time range: {self._samples[0].time:.3f} to {self._samples[-1].time:.3f}"
            )

    def __len__(self) -> int:
        return len(self._samples)

    def __getitem__(self, index: int) -> TrajectorySample:
        return self._samples[index]

    @property
    def samples(self) -> Tuple[TrajectorySample, ...]:
        return self._samples

    @property
    def time_range(self) -> Optional[Tuple[float, float]]:
        """(first time, last time), or None if the store is empty."""
        if not self._samples:
            return None
        return self._samples[0].time, self._samples[-1].time

    def interpolate(self, time: float, hint: int = 0) -> Tuple[TrajectorySample, int]:
        """
        Interpolate a navigation sample at the given time.

        The search starts at bracket [hint, hint + 1] and steps down or up one
        sample at a time until the bracket contains the query time.

        Args:
            time: Query time in seconds
            hint: Index of the bracket to start searching from, usually the
                hint returned by the previous call

        Returns:
            Tuple of (interpolated sample, new hint). The new hint is the
            index of the lower sample of the final bracket and is always less
            than len(self) - 1.

        Raises:
            OutsideTrajectoryRange: If time is before the first or after the
                last sample, or the store has fewer than two samples
            NonmonotonicTrajectory: If a visited pair of samples goes
                backwards in time
        """
        if hint < 0:
            raise ValueError(f"Interpolation hint must be non-negative, got {hint}")

        points = self._samples
        last = len(points) - 1
        if last < 1:
            raise OutsideTrajectoryRange(time, self.time_range if points else None)

        i = min(hint, last - 1)
        while True:
            first = points[i]
            second = points[i + 1]
            if second.time < first.time:
                raise NonmonotonicTrajectory(i, first.time, second.time)

            if time < first.time:
                if i == 0:
                    raise OutsideTrajectoryRange(time, self.time_range)
                i -= 1
                continue
            if time > second.time:
                if i + 1 >= last:
                    raise OutsideTrajectoryRange(time, self.time_range)
                i += 1
                continue
            break

        # Exact hits return the stored sample untouched
        if time == first.time:
            return first, i
        if time == second.time:
            return second, i

        factor = (time - first.time) / (second.time - first.time)
        return TrajectorySample(
            time=_lerp(first.time, second.time, factor),
            latitude=_lerp(first.latitude, second.latitude, factor),
            longitude=_lerp(first.longitude, second.longitude, factor),
            height=_lerp(first.height, second.height, factor),
            roll=_lerp(first.roll, second.roll, factor),
            pitch=_lerp(first.pitch, second.pitch, factor),
            heading=_lerp(first.heading, second.heading, factor),
        ), i

    def interpolate_many(self, times: Sequence[float], hint: int = 0) -> Tuple[List[TrajectorySample], int]:
        """
        Interpolate a sequence of times, threading the hint between calls.

        Returns:
            Tuple of (samples in the same order as times, final hint)
        """
        samples = []
        for t in times:
            sample, hint = self.interpolate(t, hint)
            samples.append(sample)
        return samples, hint
