"""
Command-line interface for point cloud georeferencing.

Usage:
    lidar-georef INFILE TRAJECTORY OUTFILE [--config-file CONFIG] [--utm-zone N]
"""

import argparse
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from . import __version__
from .config import GeorefConfig
from .errors import GeorefError, InvalidCalibrationSpec
from .pipeline import GeoreferencingPipeline
from .point_io import RawPoint, open_point_sink, open_point_source
from .trajectory_readers import load_trajectory


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


class ProgressSink:
    """Wraps a sink and advances a progress bar on every written point."""

    def __init__(self, sink, progress: tqdm):
        self.sink = sink
        self.progress = progress

    def write(self, point: RawPoint) -> None:
        self.sink.write(point)
        self.progress.update(1)

    def finalize(self) -> None:
        self.sink.finalize()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='lidar-georef',
        description='Georeference point clouds using an IMU/GNSS trajectory',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # Georeference with a configuration file
    lidar-georef scan.las trajectory.pos out.las --config-file config.yaml

    # Override the UTM zone and write only the first 1000 points
    lidar-georef scan.las trajectory.pos out.las -c config.yaml --utm-zone 6 --limit 1000
'''
    )

    parser.add_argument('infile', type=str, help='Input point file (.las, .laz, .csv)')
    parser.add_argument('trajectory', type=str, help='Trajectory file (.pos, .sbet, .out, .csv)')
    parser.add_argument('outfile', type=str, help='Output point file (.las, .laz, .csv)')

    parser.add_argument(
        '--config-file', '-c',
        type=str,
        default=None,
        help='Path to YAML configuration file'
    )
    parser.add_argument(
        '--utm-zone',
        type=int,
        default=None,
        help='UTM zone for the output points, overrides the configuration file'
    )
    parser.add_argument(
        '--time-offset',
        type=float,
        default=None,
        help='Seconds added to every point time, overrides the configuration file'
    )
    parser.add_argument(
        '--limit',
        type=int,
        default=None,
        help='Stop after writing this many points'
    )
    parser.add_argument(
        '--chunk-size',
        type=int,
        default=None,
        help='Number of points read at a time'
    )
    parser.add_argument(
        '--report',
        type=str,
        default=None,
        help='Write a JSON run report to this path'
    )
    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable the progress bar'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    return parser


def load_config(args: argparse.Namespace) -> GeorefConfig:
    """Merge the configuration file (if any) with command-line overrides."""
    data = GeorefConfig.load_mapping(args.config_file) if args.config_file else {}

    georef = dict(data.get('georef') or {})
    data['georef'] = georef
    if args.utm_zone is not None:
        georef['utm_zone'] = args.utm_zone
    if args.time_offset is not None:
        georef['time_offset'] = args.time_offset
    if args.limit is not None:
        georef['limit'] = args.limit
    if args.chunk_size is not None:
        georef['chunk_size'] = args.chunk_size

    if georef.get('utm_zone') is None:
        raise ValueError("No UTM zone provided (use --utm-zone or georef.utm_zone)")

    return GeorefConfig.from_dict(data)


def main(argv=None) -> int:
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = load_config(args)

        # Fail on a bad calibration before any file is opened
        pipeline = GeoreferencingPipeline.from_config(config)

        logger.info("Reading IMU/GNSS data")
        trajectory = load_trajectory(args.trajectory)

        logger.info("Opening the point source")
        with open_point_source(args.infile) as source:
            logger.info("Opening the point sink")
            sink = open_point_sink(args.outfile, source=source)
            try:
                with tqdm(total=config.limit, unit='pts', disable=args.no_progress) as progress:
                    report = pipeline.run(source, trajectory, ProgressSink(sink, progress))
                sink.finalize()
            finally:
                # No-op after finalize; on failure releases the file unfinished
                sink.close()

        if args.report:
            Path(args.report).parent.mkdir(parents=True, exist_ok=True)
            report.save_json(args.report)

        print("\n" + "=" * 60)
        print("GEOREFERENCING SUMMARY")
        print("=" * 60)
        print(f"Points written:         {report.points_processed}")
        print(f"Chunks read:            {report.chunks_read}")
        print(f"Stopped at limit:       {report.stopped_at_limit}")
        if report.first_time is not None:
            print(f"Time range:             {report.first_time:.6f} to {report.last_time:.6f}")
        print(f"Elapsed:                {report.elapsed_seconds:.1f} s")
        print("=" * 60)
        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except InvalidCalibrationSpec as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except GeorefError as e:
        logger.error(f"Georeferencing failed: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
