"""
Point sources and sinks.

The georeferencing pipeline only needs two small capabilities:

    PointSource.pull(chunk_size) -> list of RawPoint, or None/[] at end of stream
    PointSink.write(point); PointSink.finalize()

File sinks also have close(), which releases the file without finalizing it
(used when a run fails).

Supported formats:
    - In-memory lists (tests, library use)
    - CSV / text files with an ``x,y,z,gps_time`` header
    - LAS / LAZ files (via laspy)

CSV Point Format:
    x,y,z,gps_time
    1.25,-0.5,12.0,61191.000125

    An empty gps_time field means the point has no timestamp.

LAS points keep every other dimension of the source record (intensity,
classification, return numbers, colour, extra bytes...) in
``RawPoint.attributes``. A LAS sink opened with ``source=`` uses the source's
point format, so LAS to LAS georeferencing only changes x, y and z.
"""

import copy
import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

import laspy
import numpy as np
from laspy.errors import LaspyException

from .errors import IoFailure, NumericParseFailure

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = ('.csv', '.txt', '.xyz')
LAS_EXTENSIONS = ('.las', '.laz')

# Dimensions carried by RawPoint itself rather than by its attributes
_LAS_GEOMETRY_DIMENSIONS = ('X', 'Y', 'Z', 'gps_time')


@dataclass
class RawPoint:
    """
    A scanner point. x, y, z are overwritten in place by georeferencing.

    attributes holds any other per-point fields of the source format, keyed
    by dimension name; they are passed through untouched.
    """
    x: float
    y: float
    z: float
    gps_time: Optional[float] = None
    attributes: Optional[Dict[str, Any]] = None

    def as_array(self) -> np.ndarray:
        """Return coordinates as numpy array."""
        return np.array([self.x, self.y, self.z])


class PointSource(Protocol):
    def pull(self, chunk_size: int) -> Optional[List[RawPoint]]:
        ...


class PointSink(Protocol):
    def write(self, point: RawPoint) -> None:
        ...

    def finalize(self) -> None:
        ...


class MemoryPointSource:
    """Serves points from a list."""

    def __init__(self, points: Sequence[RawPoint]):
        self._points = list(points)
        self._position = 0
        self.points_pulled = 0

    def pull(self, chunk_size: int) -> Optional[List[RawPoint]]:
        if self._position >= len(self._points):
            return None
        chunk = self._points[self._position:self._position + chunk_size]
        self._position += len(chunk)
        self.points_pulled += len(chunk)
        return chunk


class MemoryPointSink:
    """Collects written points in a list."""

    def __init__(self):
        self.points: List[RawPoint] = []
        self.finalized = False

    def write(self, point: RawPoint) -> None:
        if self.finalized:
            raise IoFailure("Cannot write to a finalized sink")
        self.points.append(point)

    def finalize(self) -> None:
        self.finalized = True


class CsvPointSource:
    """
    Reads points from a delimited text file with a header row.

    Required columns: x, y, z. Optional column: gps_time.
    """

    def __init__(self, filepath: str, delimiter: str = ','):
        self.filepath = filepath
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Point file not found: {filepath}")

        try:
            self._file = open(path, 'r', newline='')
        except OSError as e:
            raise IoFailure(f"Could not open point file {filepath}: {e}") from e

        self._reader = csv.DictReader(self._file, delimiter=delimiter)
        fieldnames = [name.strip() for name in (self._reader.fieldnames or [])]
        self._reader.fieldnames = fieldnames

        required = {'x', 'y', 'z'}
        if not required.issubset(fieldnames):
            self._file.close()
            raise ValueError(
                f"Missing required columns in {filepath}. "
                f"Required: {required}, Found: {fieldnames}"
            )
        self._has_time = 'gps_time' in fieldnames

    @property
    def closed(self) -> bool:
        return self._file.closed

    def pull(self, chunk_size: int) -> Optional[List[RawPoint]]:
        if self._file.closed:
            return None

        points = []
        try:
            for row in self._reader:
                points.append(self._parse_row(row))
                if len(points) >= chunk_size:
                    break
        except OSError as e:
            raise IoFailure(f"Error reading {self.filepath}: {e}") from e

        if not points:
            self.close()
            return None
        return points

    def _parse_row(self, row) -> RawPoint:
        try:
            gps_time = None
            if self._has_time and (row['gps_time'] or '').strip():
                gps_time = float(row['gps_time'])
            return RawPoint(
                x=float(row['x']),
                y=float(row['y']),
                z=float(row['z']),
                gps_time=gps_time,
            )
        except (TypeError, ValueError) as e:
            raise NumericParseFailure(
                f"Malformed point in {self.filepath}: {e}",
                line_number=self._reader.line_num,
            ) from e

    def close(self) -> None:
        self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class CsvPointSink:
    """Writes points to a delimited text file with an ``x,y,z,gps_time`` header."""

    def __init__(self, filepath: str, delimiter: str = ',', precision: int = 3):
        self.filepath = filepath
        self.precision = precision
        try:
            self._file = open(filepath, 'w', newline='')
        except OSError as e:
            raise IoFailure(f"Could not create point file {filepath}: {e}") from e
        self._writer = csv.writer(self._file, delimiter=delimiter)
        self._writer.writerow(['x', 'y', 'z', 'gps_time'])
        self.points_written = 0

    @property
    def closed(self) -> bool:
        return self._file.closed

    def write(self, point: RawPoint) -> None:
        p = self.precision
        try:
            self._writer.writerow([
                f"{point.x:.{p}f}",
                f"{point.y:.{p}f}",
                f"{point.z:.{p}f}",
                '' if point.gps_time is None else repr(point.gps_time),
            ])
        except (OSError, ValueError) as e:
            raise IoFailure(f"Error writing {self.filepath}: {e}") from e
        self.points_written += 1

    def finalize(self) -> None:
        try:
            self._file.close()
        except OSError as e:
            raise IoFailure(f"Error closing {self.filepath}: {e}") from e
        logger.info(f"Wrote {self.points_written} points to {self.filepath}")

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()
            logger.warning(f"{self.filepath} closed before finalize; it may be incomplete")


class LasPointSource:
    """Reads points from a LAS/LAZ file in chunks."""

    def __init__(self, filepath: str):
        self.filepath = filepath
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Point file not found: {filepath}")

        try:
            self._reader = laspy.open(str(path))
        except (OSError, LaspyException) as e:
            raise IoFailure(f"Could not open LAS file {filepath}: {e}") from e
        self._closed = False

        header = self._reader.header
        self.point_count = header.point_count
        self.point_format = header.point_format
        self.version = header.version

        names = list(header.point_format.dimension_names)
        self._has_time = 'gps_time' in names
        self._attribute_names = [n for n in names if n not in _LAS_GEOMETRY_DIMENSIONS]
        if not self._has_time:
            logger.warning(
                f"{filepath} uses point format {header.point_format.id}, which has no gps time"
            )
        logger.info(f"Opened {filepath}: {self.point_count} points, format {header.point_format.id}")

    @property
    def closed(self) -> bool:
        return self._closed

    def pull(self, chunk_size: int) -> Optional[List[RawPoint]]:
        if self._closed:
            return None
        try:
            record = self._reader.read_points(chunk_size)
        except (OSError, LaspyException) as e:
            raise IoFailure(f"Error reading {self.filepath}: {e}") from e

        if record is None or len(record) == 0:
            return None

        xs = np.asarray(record.x, dtype=np.float64)
        ys = np.asarray(record.y, dtype=np.float64)
        zs = np.asarray(record.z, dtype=np.float64)
        times = np.asarray(record.gps_time, dtype=np.float64) if self._has_time else None
        columns = {name: np.asarray(record[name]) for name in self._attribute_names}

        points = []
        for i in range(len(xs)):
            points.append(RawPoint(
                x=float(xs[i]),
                y=float(ys[i]),
                z=float(zs[i]),
                gps_time=None if times is None else float(times[i]),
                attributes={name: values[i] for name, values in columns.items()},
            ))
        return points

    def close(self) -> None:
        if not self._closed:
            self._reader.close()
            self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class LasPointSink:
    """
    Writes points to a LAS/LAZ file.

    Points are buffered and written in batches. LAS stores scaled integers,
    so the header offsets are taken from the first batch to keep projected
    coordinates (millions of meters) within range.

    Point attributes whose names match a dimension of the output point
    format are written; missing ones are left at zero.
    """

    def __init__(
        self,
        filepath: str,
        point_format=1,
        version="1.2",
        scale: float = 0.001,
        buffer_size: int = 10000,
    ):
        """
        Args:
            filepath: Output .las/.laz path
            point_format: Point format id or laspy.PointFormat
            version: LAS version, e.g. "1.2" or "1.4"
            scale: Coordinate scale for x, y and z
            buffer_size: Points buffered before each write
        """
        self.filepath = filepath
        self.point_format = point_format
        self.version = version
        self.scale = scale
        self.buffer_size = buffer_size
        self.points_written = 0
        self._buffer: List[RawPoint] = []
        self._header = None
        self._writer = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, point: RawPoint) -> None:
        attributes = None if point.attributes is None else dict(point.attributes)
        self._buffer.append(RawPoint(point.x, point.y, point.z, point.gps_time, attributes))
        if len(self._buffer) >= self.buffer_size:
            self._flush()

    def finalize(self) -> None:
        self._flush()
        if self._writer is None:
            self._open(np.zeros(3))
        try:
            self._writer.close()
        except (OSError, LaspyException) as e:
            raise IoFailure(f"Error closing {self.filepath}: {e}") from e
        self._closed = True
        logger.info(f"Wrote {self.points_written} points to {self.filepath}")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._buffer = []
        if self._writer is not None:
            self._writer.close()
        logger.warning(f"{self.filepath} closed before finalize; it may be incomplete")

    def _open(self, offsets: np.ndarray) -> None:
        header = laspy.LasHeader(point_format=copy.deepcopy(self.point_format), version=self.version)
        header.scales = np.array([self.scale] * 3)
        header.offsets = offsets
        try:
            self._writer = laspy.open(self.filepath, mode='w', header=header)
        except (OSError, LaspyException) as e:
            raise IoFailure(f"Could not create LAS file {self.filepath}: {e}") from e
        self._header = header

    def _flush(self) -> None:
        if not self._buffer:
            return

        coords = np.array([[p.x, p.y, p.z] for p in self._buffer], dtype=np.float64)
        if self._writer is None:
            self._open(np.floor(coords.min(axis=0)))

        record = laspy.ScaleAwarePointRecord.zeros(len(self._buffer), header=self._header)
        names = list(self._header.point_format.dimension_names)
        for name in names:
            if name in _LAS_GEOMETRY_DIMENSIONS:
                continue
            if not any(p.attributes and name in p.attributes for p in self._buffer):
                continue
            record[name] = np.array([
                p.attributes[name] if p.attributes and name in p.attributes else 0
                for p in self._buffer
            ])

        record.x = coords[:, 0]
        record.y = coords[:, 1]
        record.z = coords[:, 2]
        if 'gps_time' in names:
            record.gps_time = np.array(
                [0.0 if p.gps_time is None else p.gps_time for p in self._buffer]
            )

        try:
            self._writer.write_points(record)
        except (OSError, LaspyException) as e:
            raise IoFailure(f"Error writing {self.filepath}: {e}") from e

        self.points_written += len(self._buffer)
        self._buffer = []


def open_point_source(filepath: str, **kwargs):
    """
    Open a point source, choosing the format from the file extension.

    Args:
        filepath: Path to a .csv/.txt/.xyz or .las/.laz file
        **kwargs: Passed to the source constructor

    Returns:
        CsvPointSource or LasPointSource
    """
    ext = Path(filepath).suffix.lower()
    if ext in CSV_EXTENSIONS:
        return CsvPointSource(filepath, **kwargs)
    if ext in LAS_EXTENSIONS:
        return LasPointSource(filepath, **kwargs)
    raise ValueError(f"Unknown point file extension {ext!r} for {filepath}")


def open_point_sink(filepath: str, source=None, **kwargs):
    """
    Open a point sink, choosing the format from the file extension.

    Args:
        filepath: Path to a .csv/.txt/.xyz or .las/.laz file
        source: Optional source being georeferenced. A LAS sink fed from a
            LAS source takes over its point format and version.
        **kwargs: Passed to the sink constructor

    Returns:
        CsvPointSink or LasPointSink
    """
    ext = Path(filepath).suffix.lower()
    if ext in CSV_EXTENSIONS:
        return CsvPointSink(filepath, **kwargs)
    if ext in LAS_EXTENSIONS:
        if isinstance(source, LasPointSource):
            kwargs.setdefault('point_format', source.point_format)
            kwargs.setdefault('version', source.version)
        return LasPointSink(filepath, **kwargs)
    raise ValueError(f"Unknown point file extension {ext!r} for {filepath}")
