"""
Exceptions raised while georeferencing point clouds.

Every error is fatal: the pipeline never skips a bad point or substitutes a
default, it lets the exception propagate and the run stops.
"""

from typing import Optional


class GeorefError(Exception):
    """Base class for all georeferencing errors."""


class IoFailure(GeorefError, OSError):
    """An underlying source, sink or trajectory file could not be read or written."""


class MissingGpsTime(GeorefError):
    """A source point has no gps time, so it cannot be placed on the trajectory."""

    def __init__(self, message: str = "Missing gps time"):
        super().__init__(message)


class NonmonotonicTrajectory(GeorefError):
    """Two adjacent trajectory samples are not in increasing time order."""

    def __init__(self, index: int, first_time: float, second_time: float):
        self.index = index
        self.first_time = first_time
        self.second_time = second_time
        super().__init__(
            f"Trajectory samples do not increase monotonically: "
            f"sample {index + 1} ({second_time:.6f}) precedes sample {index} ({first_time:.6f})"
        )


class OutsideTrajectoryRange(GeorefError):
    """A query time falls before the first or after the last trajectory sample."""

    def __init__(self, time: float, time_range: Optional[tuple] = None):
        self.time = time
        self.time_range = time_range
        if time_range is None:
            message = f"Time {time:.6f} is outside of the trajectory (fewer than two samples)"
        else:
            message = (
                f"Time {time:.6f} is outside of the trajectory "
                f"[{time_range[0]:.6f}, {time_range[1]:.6f}]"
            )
        super().__init__(message)


class InvalidCalibrationSpec(GeorefError, ValueError):
    """A SOCS map, rotation order or zone in the configuration is malformed."""


class NumericParseFailure(GeorefError, ValueError):
    """A numeric field in a trajectory file could not be parsed."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
