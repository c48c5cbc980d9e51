"""
Trajectory file readers.

Every reader returns TrajectorySample objects in file order, with angles and
geodetic coordinates in radians. Samples are not sorted: the store checks time
ordering lazily during lookups.

POS Format (text):
    722800
    61190.995 60.96798754 -149.11932519 131.25 0.512 -1.732 132.88734
    ...

    First line is the sample count. Each following non-blank line holds
    time, latitude, longitude, height, roll, pitch, heading (degrees).

CSV Format:
    time,latitude,longitude,height,roll,pitch,heading   (degrees)

SBET Format (binary, per epoch):
    17 little-endian doubles = 136 bytes
    time, latitude, longitude, altitude, x/y/z velocity, roll, pitch,
    heading, wander angle, x/y/z acceleration, x/y/z angular rate
    (angles in radians)
"""

import csv
import math
import logging
from pathlib import Path
from typing import List, Optional

import numpy as np

from .errors import IoFailure, NumericParseFailure
from .trajectory import TrajectorySample, TrajectoryStore

logger = logging.getLogger(__name__)

POS_FIELDS = ('time', 'latitude', 'longitude', 'height', 'roll', 'pitch', 'heading')


def _parse_float(value: str, name: str, line_number: int) -> float:
    try:
        return float(value)
    except ValueError:
        raise NumericParseFailure(f"could not parse {name} from {value!r}", line_number) from None


def read_pos_file(filepath: str) -> List[TrajectorySample]:
    """
    Read a POS text trajectory.

    Args:
        filepath: Path to the .pos file

    Returns:
        List of TrajectorySample in file order

    Raises:
        FileNotFoundError: If the file does not exist
        IoFailure: If the file cannot be read
        NumericParseFailure: If the header or a field is not a number, or a
            line has fewer than seven fields
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Trajectory file not found: {filepath}")

    samples = []
    try:
        with open(path, 'r') as f:
            header = f.readline()
            try:
                expected = int(header.strip())
            except ValueError:
                raise NumericParseFailure(
                    f"could not parse sample count from {header.strip()!r}", 1
                ) from None

            for line_number, line in enumerate(f, start=2):
                values = line.split()
                if not values:
                    continue
                if len(values) < len(POS_FIELDS):
                    raise NumericParseFailure(
                        f"expected {len(POS_FIELDS)} fields, found {len(values)}", line_number
                    )

                time, lat, lon, height, roll, pitch, heading = (
                    _parse_float(v, name, line_number)
                    for v, name in zip(values, POS_FIELDS)
                )
                samples.append(TrajectorySample(
                    time=time,
                    latitude=math.radians(lat),
                    longitude=math.radians(lon),
                    height=height,
                    roll=math.radians(roll),
                    pitch=math.radians(pitch),
                    heading=math.radians(heading),
                ))
    except OSError as e:
        raise IoFailure(f"Error reading trajectory file {filepath}: {e}") from e

    if len(samples) != expected:
        logger.warning(
            f"{filepath} header declares {expected} samples but {len(samples)} were read"
        )

    logger.info(f"Loaded {len(samples)} trajectory samples from {filepath}")
    return samples


def read_trajectory_csv(
    filepath: str,
    time_col: str = 'time',
    lat_col: str = 'latitude',
    lon_col: str = 'longitude',
    height_col: str = 'height',
    roll_col: str = 'roll',
    pitch_col: str = 'pitch',
    heading_col: str = 'heading',
) -> List[TrajectorySample]:
    """
    Read a trajectory from CSV, angles in degrees.

    Args:
        filepath: Path to CSV file
        time_col: Column name for time
        lat_col: Column name for latitude
        lon_col: Column name for longitude
        height_col: Column name for height
        roll_col: Column name for roll
        pitch_col: Column name for pitch
        heading_col: Column name for heading

    Returns:
        List of TrajectorySample in file order
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Trajectory file not found: {filepath}")

    columns = (time_col, lat_col, lon_col, height_col, roll_col, pitch_col, heading_col)
    samples = []

    try:
        with open(path, 'r', newline='') as f:
            reader = csv.DictReader(f)

            if not set(columns).issubset(reader.fieldnames or []):
                raise ValueError(
                    f"Missing required columns in {filepath}. "
                    f"Required: {set(columns)}, Found: {reader.fieldnames}"
                )

            for row in reader:
                line_number = reader.line_num
                time, lat, lon, height, roll, pitch, heading = (
                    _parse_float(row[col], col, line_number) for col in columns
                )
                samples.append(TrajectorySample(
                    time=time,
                    latitude=math.radians(lat),
                    longitude=math.radians(lon),
                    height=height,
                    roll=math.radians(roll),
                    pitch=math.radians(pitch),
                    heading=math.radians(heading),
                ))
    except OSError as e:
        raise IoFailure(f"Error reading trajectory file {filepath}: {e}") from e

    logger.info(f"Loaded {len(samples)} trajectory samples from {filepath}")
    return samples


class SBETReader:
    """
    Reader for binary SBET (Smoothed Best Estimate of Trajectory) files.

    SBET binary format (per epoch):
        - time: double (8 bytes) - GPS seconds of week
        - latitude: double (8 bytes) - radians
        - longitude: double (8 bytes) - radians
        - altitude: double (8 bytes) - meters
        - x_velocity: double (8 bytes) - m/s
        - y_velocity: double (8 bytes) - m/s
        - z_velocity: double (8 bytes) - m/s
        - roll: double (8 bytes) - radians
        - pitch: double (8 bytes) - radians
        - heading: double (8 bytes) - radians
        - wander_angle: double (8 bytes) - radians
        - x_acceleration: double (8 bytes) - m/s²
        - y_acceleration: double (8 bytes) - m/s²
        - z_acceleration: double (8 bytes) - m/s²
        - x_angular_rate: double (8 bytes) - rad/s
        - y_angular_rate: double (8 bytes) - rad/s
        - z_angular_rate: double (8 bytes) - rad/s

    Total: 17 doubles = 136 bytes per epoch
    """

    RECORD_SIZE = 136  # bytes
    NUM_FIELDS = 17
    DTYPE = np.dtype('<f8')

    def __init__(self, filepath: str):
        """
        Initialize SBET reader.

        Args:
            filepath: Path to binary SBET file
        """
        self.filepath = filepath
        self.path = Path(filepath)

        if not self.path.exists():
            raise FileNotFoundError(f"SBET file not found: {filepath}")

    def read_samples(
        self,
        start_time: Optional[float] = None,
        end_time: Optional[float] = None,
        downsample: int = 1,
    ) -> List[TrajectorySample]:
        """
        Read trajectory samples from the SBET file.

        Args:
            start_time: Optional start time filter
            end_time: Optional end time filter
            downsample: Keep every Nth epoch (1 = all, 10 = every 10th)

        Returns:
            List of TrajectorySample objects
        """
        if downsample < 1:
            raise ValueError(f"downsample must be at least 1, got {downsample}")

        try:
            data = self.path.read_bytes()
        except OSError as e:
            raise IoFailure(f"Error reading SBET file {self.filepath}: {e}") from e

        if len(data) % self.RECORD_SIZE != 0:
            logger.warning(
                f"{self.filepath} size is not a multiple of {self.RECORD_SIZE} bytes; "
                f"ignoring {len(data) % self.RECORD_SIZE} trailing bytes"
            )
        count = len(data) // self.RECORD_SIZE
        if count == 0:
            logger.warning(f"{self.filepath} holds no complete SBET records")
            return []
        records = np.frombuffer(
            data, dtype=self.DTYPE, count=count * self.NUM_FIELDS
        ).reshape(count, self.NUM_FIELDS)
        records = records[downsample - 1::downsample]

        if start_time is not None:
            records = records[records[:, 0] >= start_time]
        if end_time is not None:
            records = records[records[:, 0] <= end_time]

        samples = [
            TrajectorySample(
                time=float(r[0]),
                latitude=float(r[1]),
                longitude=float(r[2]),
                height=float(r[3]),
                roll=float(r[7]),
                pitch=float(r[8]),
                heading=float(r[9]),
            )
            for r in records
        ]

        logger.info(f"Read {len(samples)} epochs from SBET file (downsampled {downsample}x)")
        return samples


def load_trajectory(
    filepath: str,
    file_format: str = 'auto',
    **kwargs,
) -> TrajectoryStore:
    """
    Load a trajectory store from file.

    Args:
        filepath: Path to trajectory file
        file_format: 'pos', 'csv', 'sbet', or 'auto' (detect from extension)
        **kwargs: Additional arguments for the chosen reader

    Returns:
        TrajectoryStore instance
    """
    path = Path(filepath)

    if file_format == 'auto':
        ext = path.suffix.lower()
        if ext in ['.sbet', '.out']:
            file_format = 'sbet'
        elif ext == '.csv':
            file_format = 'csv'
        elif ext == '.pos':
            file_format = 'pos'
        elif ext == '.pof':
            raise ValueError(
                f"POF trajectories are not supported ({filepath}); convert to .pos, .sbet or .csv"
            )
        else:
            raise ValueError(f"Cannot detect trajectory format from extension {ext!r}")

    if file_format == 'sbet':
        samples = SBETReader(filepath).read_samples(**kwargs)
    elif file_format == 'csv':
        samples = read_trajectory_csv(filepath, **kwargs)
    elif file_format == 'pos':
        samples = read_pos_file(filepath)
    else:
        raise ValueError(f"Unknown trajectory format {file_format!r}")

    return TrajectoryStore(samples)
