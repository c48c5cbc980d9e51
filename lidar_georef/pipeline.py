"""
Georeferencing pipeline.

This is the main module that orchestrates the georeferencing workflow:
    1. Pull a chunk of raw points from the source
    2. For each point:
        a. Look up the trajectory at the point's gps time (+ time offset)
        b. Project the trajectory sample to UTM, correcting heading for
           grid convergence
        c. Map the scanner point into the body frame (SOCS map, boresight,
           lever arm)
        d. Rotate and translate into map coordinates
        e. Overwrite the point's x/y/z and write it to the sink
    3. Stop when the source is exhausted or the point limit is reached

    p_map = R_nav @ (R_boresight @ (M_socs @ p_socs) + lever_arm) + [E, N, h]

Every error is fatal. The pipeline never skips points and never finalizes
the sink; finalizing after a successful run is left to the caller.
"""

import json
import time
import logging
from dataclasses import dataclass, asdict
from typing import Optional

from .calibration import CalibrationModel
from .config import DEFAULT_CHUNK_SIZE, GeorefConfig
from .errors import InvalidCalibrationSpec, MissingGpsTime
from .point_io import PointSink, PointSource
from .projection import MapProjector, central_meridian
from .rotations import RotationOrder
from .trajectory import TrajectoryStore

logger = logging.getLogger(__name__)


@dataclass
class GeoreferenceReport:
    """Summary of one pipeline run."""
    points_processed: int = 0
    chunks_read: int = 0
    stopped_at_limit: bool = False
    first_time: Optional[float] = None  # Query time of the first point
    last_time: Optional[float] = None   # Query time of the last point
    elapsed_seconds: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)

    def save_json(self, output_path: str) -> None:
        """Save the report to a JSON file."""
        with open(output_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.info(f"Report saved to {output_path}")


class GeoreferencingPipeline:
    """
    Streams raw points through calibration, trajectory lookup and projection.

    Example usage:
        config = GeorefConfig.from_yaml("config.yaml")
        pipeline = GeoreferencingPipeline.from_config(config)
        report = pipeline.run(source, load_trajectory("nav.pos"), sink)
        sink.finalize()
    """

    def __init__(
        self,
        calibration: CalibrationModel,
        rotation_order: RotationOrder,
        utm_zone: int,
        time_offset: float = 0.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        limit: Optional[int] = None,
        projector: Optional[MapProjector] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            calibration: Fixed sensor calibration
            rotation_order: Order used to compose navigation roll/pitch/heading
            utm_zone: Output UTM zone (1-60)
            time_offset: Seconds added to each point's gps time
            chunk_size: Points pulled from the source per call
            limit: Stop after writing this many points (None = no limit)
            projector: Map projector (default reference ellipsoid if None)
        """
        try:
            central_meridian(utm_zone)
        except ValueError as e:
            raise InvalidCalibrationSpec(str(e)) from None
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")

        self.calibration = calibration
        self.rotation_order = rotation_order
        self.utm_zone = utm_zone
        self.time_offset = time_offset
        self.chunk_size = chunk_size
        self.limit = limit
        self.projector = projector or MapProjector()

        logger.info(
            f"Pipeline initialized: UTM zone {utm_zone}, rotation order {rotation_order.tokens()}, "
            f"time offset {time_offset}, chunk size {chunk_size}, limit {limit}"
        )

    @classmethod
    def from_config(cls, config: GeorefConfig) -> "GeoreferencingPipeline":
        """
        Build a pipeline from configuration, validating it completely.

        Raises:
            InvalidCalibrationSpec: If the zone, SOCS map or rotation order is malformed
        """
        rotation_order = config.validate()
        return cls(
            calibration=CalibrationModel.from_config(config),
            rotation_order=rotation_order,
            utm_zone=config.utm_zone,
            time_offset=config.time_offset,
            chunk_size=config.chunk_size,
            limit=config.limit,
        )

    def run(
        self,
        source: PointSource,
        trajectory: TrajectoryStore,
        sink: PointSink,
    ) -> GeoreferenceReport:
        """
        Georeference every point of a source into a sink.

        Args:
            source: Point source, pulled in chunks of chunk_size
            trajectory: Trajectory store covering the points' gps times
            sink: Point sink receiving georeferenced points

        Returns:
            GeoreferenceReport

        Raises:
            MissingGpsTime: If a point has no gps time
            OutsideTrajectoryRange: If a point's time is not covered by the trajectory
            NonmonotonicTrajectory: If the trajectory goes backwards in time
            IoFailure: If the source or sink fails
        """
        report = GeoreferenceReport()
        started = time.perf_counter()
        hint = 0

        logger.info("Georeferencing...")
        while True:
            points = source.pull(self.chunk_size)
            if not points:
                break
            report.chunks_read += 1
            logger.debug(f"Chunk {report.chunks_read}: {len(points)} points")

            for point in points:
                if point.gps_time is None:
                    raise MissingGpsTime(
                        f"Point {report.points_processed} has no gps time"
                    )
                query_time = point.gps_time + self.time_offset

                sample, hint = trajectory.interpolate(query_time, hint)
                projected = self.projector.project_sample(sample, self.utm_zone)

                body = self.calibration.apply_to_sensor_point((point.x, point.y, point.z))
                world = projected.rotation_matrix(self.rotation_order) @ body + projected.location()

                point.x = float(world[0])
                point.y = float(world[1])
                point.z = float(world[2])
                sink.write(point)

                if report.first_time is None:
                    report.first_time = query_time
                report.last_time = query_time
                report.points_processed += 1

                if self.limit is not None and report.points_processed >= self.limit:
                    report.stopped_at_limit = True
                    report.elapsed_seconds = time.perf_counter() - started
                    logger.info(f"Point limit of {self.limit} reached")
                    return report

        report.elapsed_seconds = time.perf_counter() - started
        logger.info(
            f"Georeferenced {report.points_processed} points in {report.chunks_read} chunks "
            f"({report.elapsed_seconds:.1f} s)"
        )
        return report


def run_georeference(
    source: PointSource,
    trajectory: TrajectoryStore,
    calibration: CalibrationModel,
    sink: PointSink,
    config: GeorefConfig,
) -> GeoreferenceReport:
    """
    Convenience function to run one georeferencing pass.

    The configuration is validated before the source is touched.

    Args:
        source: Point source
        trajectory: Trajectory store
        calibration: Fixed sensor calibration
        sink: Point sink
        config: Zone, rotation order, time offset, chunk size and limit

    Returns:
        GeoreferenceReport
    """
    rotation_order = config.validate()
    pipeline = GeoreferencingPipeline(
        calibration=calibration,
        rotation_order=rotation_order,
        utm_zone=config.utm_zone,
        time_offset=config.time_offset,
        chunk_size=config.chunk_size,
        limit=config.limit,
    )
    return pipeline.run(source, trajectory, sink)
