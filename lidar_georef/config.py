"""
Configuration module for point cloud georeferencing.

Handles loading and validation of configuration from YAML files.

When the calibration section omits socs_map, scanner axes are taken as-is
(x, y, z). A scanner mounted with the (-z, x, y) convention must set the
map explicitly:

    calibration:
      socs_map: ["-z", "x", "y"]
"""

import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
import logging

from .calibration import parse_socs_map
from .errors import InvalidCalibrationSpec
from .rotations import DEFAULT_ROTATION_ORDER, RotationOrder

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_SOCS_MAP = ("x", "y", "z")


@dataclass
class BoresightAngles:
    """
    Boresight misalignment angles between the scanner and the IMU body frame.
    These are small, fixed angles composed with the configured rotation order.
    """
    roll: float = 0.0   # Roll offset in degrees
    pitch: float = 0.0  # Pitch offset in degrees
    yaw: float = 0.0    # Yaw offset in degrees


@dataclass
class LeverArm:
    """
    Lever arm offset from the IMU reference point to the scanner origin.
    Expressed in the IMU body frame, in the point cloud's linear unit.
    """
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class CalibrationSection:
    """Fixed, time-invariant sensor calibration."""
    boresight: BoresightAngles = field(default_factory=BoresightAngles)
    lever_arm: LeverArm = field(default_factory=LeverArm)
    socs_map: List[str] = field(default_factory=lambda: list(DEFAULT_SOCS_MAP))
    rotation_order: List[str] = field(default_factory=lambda: list(DEFAULT_ROTATION_ORDER))


@dataclass
class GeorefConfig:
    """
    Main configuration class for georeferencing.

    Attributes:
        utm_zone: UTM zone of the output points (1-60)
        calibration: Boresight, lever arm, SOCS map and rotation order
        time_offset: Seconds added to every point's gps time before lookup
        chunk_size: Number of points pulled from the source at a time
        limit: Stop after this many points have been written (None = all)
    """
    utm_zone: int
    calibration: CalibrationSection = field(default_factory=CalibrationSection)
    time_offset: float = 0.0
    chunk_size: int = DEFAULT_CHUNK_SIZE
    limit: Optional[int] = None

    @classmethod
    def from_yaml(cls, config_path: str) -> "GeorefConfig":
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            GeorefConfig object with loaded parameters

        Example YAML structure:
            georef:
              utm_zone: 6
              time_offset: 0.0
              chunk_size: 1000
              limit: null
            calibration:
              boresight:
                roll: 0.0
                pitch: 0.0
                yaw: 0.0
              lever_arm:
                x: 0.0
                y: 0.0
                z: 0.0
              socs_map: ["-z", "x", "y"]
              rotation_order: ["r3(yaw)", "r2(pitch)", "r1(roll)"]
        """
        return cls.from_dict(cls.load_mapping(config_path))

    @staticmethod
    def load_mapping(config_path: str) -> Dict[str, Any]:
        """
        Read a YAML configuration file without interpreting it.

        Lets callers merge command-line values in before from_dict() checks
        for required keys.

        Returns:
            The decoded mapping ({} for an empty file)
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Configuration must be a mapping, got {type(data).__name__}")

        logger.info(f"Loading configuration from {config_path}")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeorefConfig":
        """
        Build a configuration from an already-decoded mapping.

        Only the values are checked here (types, ranges of chunk size and
        limit); call validate() to check the calibration tokens and zone.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Configuration must be a mapping, got {type(data).__name__}")

        georef_data = data.get('georef') or {}
        if 'utm_zone' not in georef_data:
            raise ValueError("Missing required configuration value: georef.utm_zone")

        cal_data = data.get('calibration') or {}

        # Parse boresight angles (optional)
        bore_data = cal_data.get('boresight') or {}
        boresight = BoresightAngles(
            roll=_as_float(bore_data.get('roll', 0.0), 'calibration.boresight.roll'),
            pitch=_as_float(bore_data.get('pitch', 0.0), 'calibration.boresight.pitch'),
            yaw=_as_float(bore_data.get('yaw', 0.0), 'calibration.boresight.yaw'),
        )

        # Parse lever arm (optional)
        lever_data = cal_data.get('lever_arm') or {}
        lever_arm = LeverArm(
            x=_as_float(lever_data.get('x', 0.0), 'calibration.lever_arm.x'),
            y=_as_float(lever_data.get('y', 0.0), 'calibration.lever_arm.y'),
            z=_as_float(lever_data.get('z', 0.0), 'calibration.lever_arm.z'),
        )

        calibration = CalibrationSection(
            boresight=boresight,
            lever_arm=lever_arm,
            socs_map=list(cal_data.get('socs_map') or DEFAULT_SOCS_MAP),
            rotation_order=list(cal_data.get('rotation_order') or DEFAULT_ROTATION_ORDER),
        )

        limit = georef_data.get('limit')
        config = cls(
            utm_zone=_as_int(georef_data['utm_zone'], 'georef.utm_zone'),
            calibration=calibration,
            time_offset=_as_float(georef_data.get('time_offset', 0.0), 'georef.time_offset'),
            chunk_size=_as_int(georef_data.get('chunk_size', DEFAULT_CHUNK_SIZE), 'georef.chunk_size'),
            limit=None if limit is None else _as_int(limit, 'georef.limit'),
        )

        if config.chunk_size < 1:
            raise ValueError(f"georef.chunk_size must be at least 1, got {config.chunk_size}")
        if config.limit is not None and config.limit < 1:
            raise ValueError(f"georef.limit must be at least 1, got {config.limit}")

        return config

    def validate(self) -> RotationOrder:
        """
        Check the zone, SOCS map and rotation order without touching any data.

        Returns:
            The parsed rotation order

        Raises:
            InvalidCalibrationSpec: If any of them is malformed
        """
        if not 1 <= self.utm_zone <= 60:
            raise InvalidCalibrationSpec(f"UTM zone must be between 1 and 60, got {self.utm_zone}")
        parse_socs_map(self.calibration.socs_map)
        return RotationOrder.from_tokens(self.calibration.rotation_order)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'georef': {
                'utm_zone': self.utm_zone,
                'time_offset': self.time_offset,
                'chunk_size': self.chunk_size,
                'limit': self.limit,
            },
            'calibration': {
                'boresight': {
                    'roll': self.calibration.boresight.roll,
                    'pitch': self.calibration.boresight.pitch,
                    'yaw': self.calibration.boresight.yaw,
                },
                'lever_arm': {
                    'x': self.calibration.lever_arm.x,
                    'y': self.calibration.lever_arm.y,
                    'z': self.calibration.lever_arm.z,
                },
                'socs_map': list(self.calibration.socs_map),
                'rotation_order': list(self.calibration.rotation_order),
            },
        }

    def to_yaml(self, config_path: str) -> None:
        """Save configuration to a YAML file."""
        with open(config_path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {config_path}")


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Configuration value {name} must be a number, got {value!r}") from None


def _as_int(value: Any, name: str) -> int:
    message = f"Configuration value {name} must be an integer, got {value!r}"
    if isinstance(value, bool):
        raise ValueError(message)
    try:
        result = int(value)
    except (TypeError, ValueError):
        raise ValueError(message) from None
    if isinstance(value, float) and value != result:
        raise ValueError(message)
    return result
