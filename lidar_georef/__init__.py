"""
LiDAR Georeferencing Package

A Python package to georeference raw scanner points using a time-tagged
IMU/GNSS trajectory, fixed sensor calibration and a UTM projection.

Coordinate System Chain:
    Scanner (SOCS) → Body (SOCS map, boresight, lever arm) → UTM (trajectory
    attitude, grid-convergence corrected heading, projected position)

Conventions:
    - Trajectory: geodetic position with ellipsoidal height, attitude as
      roll/pitch/heading, all angles in radians internally
    - Rotation order is configurable, default R3(yaw) @ R2(pitch) @ R1(roll)
    - Reference ellipsoid: a = 6378137.0, f = 1/298.257222101

Supported Formats:
    - LAS/LAZ and CSV point files
    - POS text, CSV and binary SBET trajectory files
"""

__version__ = "0.3.0"

from .errors import (
    GeorefError,
    IoFailure,
    MissingGpsTime,
    NonmonotonicTrajectory,
    OutsideTrajectoryRange,
    InvalidCalibrationSpec,
    NumericParseFailure,
)
from .rotations import RotationOrder, ElementaryRotation, parse_rotation_token
from .calibration import CalibrationModel, parse_socs_map
from .config import GeorefConfig, BoresightAngles, LeverArm, CalibrationSection
from .trajectory import TrajectorySample, TrajectoryStore
from .trajectory_readers import read_pos_file, read_trajectory_csv, SBETReader, load_trajectory
from .projection import MapProjector, ProjectedTrajectorySample
from .point_io import (
    RawPoint,
    MemoryPointSource,
    MemoryPointSink,
    open_point_source,
    open_point_sink,
)
from .pipeline import GeoreferencingPipeline, GeoreferenceReport, run_georeference

__all__ = [
    "GeorefError",
    "IoFailure",
    "MissingGpsTime",
    "NonmonotonicTrajectory",
    "OutsideTrajectoryRange",
    "InvalidCalibrationSpec",
    "NumericParseFailure",
    "RotationOrder",
    "ElementaryRotation",
    "parse_rotation_token",
    "CalibrationModel",
    "parse_socs_map",
    "GeorefConfig",
    "BoresightAngles",
    "LeverArm",
    "CalibrationSection",
    "TrajectorySample",
    "TrajectoryStore",
    "read_pos_file",
    "read_trajectory_csv",
    "SBETReader",
    "load_trajectory",
    "MapProjector",
    "ProjectedTrajectorySample",
    "RawPoint",
    "MemoryPointSource",
    "MemoryPointSink",
    "open_point_source",
    "open_point_sink",
    "GeoreferencingPipeline",
    "GeoreferenceReport",
    "run_georeference",
]
