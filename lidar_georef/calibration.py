"""
Fixed sensor calibration.

Everything that relates the scanner's own coordinate system (SOCS) to the IMU
body frame and does not change with time lives here:

    1. SOCS map: signed axis permutation from scanner channels to device axes
    2. Boresight: small rotation between the remapped scanner axes and the body frame
    3. Lever arm: translation from the IMU reference point to the scanner origin

    p_body = R_boresight @ (M_socs @ p_socs) + lever_arm

The time-varying navigation rotation is applied afterwards by the pipeline.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from .errors import InvalidCalibrationSpec
from .rotations import RotationOrder

logger = logging.getLogger(__name__)

_SOCS_AXES = {'x': 0, 'y': 1, 'z': 2}


def parse_socs_map(tokens: Sequence[str]) -> np.ndarray:
    """
    Build the signed permutation matrix for a SOCS map.

    Token i names the (signed) scanner channel that becomes device axis i,
    so ``["-z", "x", "y"]`` maps a scanner point (x, y, z) to (-z, x, y).

    Args:
        tokens: Three tokens, each one of x, -x, y, -y, z, -z

    Returns:
        3x3 signed permutation matrix

    Raises:
        InvalidCalibrationSpec: If a token is not recognised, there are not
            exactly three tokens, or an axis is used twice
    """
    if isinstance(tokens, str) or len(tokens) != 3:
        raise InvalidCalibrationSpec(f"SOCS map needs exactly three tokens, got {tokens!r}")

    matrix = np.zeros((3, 3))
    used = set()

    for row, token in enumerate(tokens):
        name = token.strip().lower() if isinstance(token, str) else None
        if not name:
            raise InvalidCalibrationSpec(f"Invalid SOCS map token {token!r}")

        sign = 1.0
        if name.startswith('-'):
            sign = -1.0
            name = name[1:]

        if name not in _SOCS_AXES:
            raise InvalidCalibrationSpec(
                f"Invalid SOCS map token {token!r}: expected one of x, -x, y, -y, z, -z"
            )
        column = _SOCS_AXES[name]
        if column in used:
            raise InvalidCalibrationSpec(f"SOCS map {list(tokens)!r} uses axis {name!r} twice")
        used.add(column)

        matrix[row, column] = sign

    return matrix


class CalibrationModel:
    """
    Maps raw scanner points into the IMU body frame.

    Built once from configuration and read-only afterwards.
    """

    def __init__(
        self,
        socs_map: Optional[np.ndarray] = None,
        boresight: Optional[np.ndarray] = None,
        lever_arm: Optional[Sequence[float]] = None,
    ):
        """
        Args:
            socs_map: 3x3 signed permutation matrix (identity if None)
            boresight: 3x3 boresight rotation matrix (identity if None)
            lever_arm: Lever arm (x, y, z) in the body frame (zero if None)
        """
        self.socs_map = np.eye(3) if socs_map is None else np.asarray(socs_map, dtype=np.float64)
        self.boresight = np.eye(3) if boresight is None else np.asarray(boresight, dtype=np.float64)
        self.lever_arm = (
            np.zeros(3) if lever_arm is None else np.asarray(lever_arm, dtype=np.float64).reshape(3)
        )

        # Precomputed: both rotations are fixed for the whole run
        self._rotation = self.boresight @ self.socs_map

        logger.debug(f"SOCS map:\n{self.socs_map}")
        logger.debug(f"Boresight matrix:\n{self.boresight}")
        logger.debug(f"Lever arm: {self.lever_arm}")

    @classmethod
    def from_angles(
        cls,
        socs_tokens: Sequence[str],
        rotation_order: RotationOrder,
        boresight_roll: float = 0.0,
        boresight_pitch: float = 0.0,
        boresight_yaw: float = 0.0,
        lever_arm: Sequence[float] = (0.0, 0.0, 0.0),
    ) -> "CalibrationModel":
        """
        Build a calibration model from tokens and angles.

        Args:
            socs_tokens: SOCS map tokens
            rotation_order: Order used to compose the boresight angles
            boresight_roll: Boresight roll in degrees
            boresight_pitch: Boresight pitch in degrees
            boresight_yaw: Boresight yaw in degrees
            lever_arm: Lever arm (x, y, z)
        """
        roll, pitch, yaw = np.deg2rad([boresight_roll, boresight_pitch, boresight_yaw])
        return cls(
            socs_map=parse_socs_map(socs_tokens),
            boresight=rotation_order.compose(roll, pitch, yaw),
            lever_arm=lever_arm,
        )

    @classmethod
    def from_config(cls, config) -> "CalibrationModel":
        """
        Build a calibration model from a GeorefConfig.

        Raises:
            InvalidCalibrationSpec: If the SOCS map or rotation order is malformed
        """
        cal = config.calibration
        return cls.from_angles(
            socs_tokens=cal.socs_map,
            rotation_order=RotationOrder.from_tokens(cal.rotation_order),
            boresight_roll=cal.boresight.roll,
            boresight_pitch=cal.boresight.pitch,
            boresight_yaw=cal.boresight.yaw,
            lever_arm=(cal.lever_arm.x, cal.lever_arm.y, cal.lever_arm.z),
        )

    def apply_to_sensor_point(self, point: Sequence[float]) -> np.ndarray:
        """
        Transform a scanner point into the IMU body frame.

        Args:
            point: (x, y, z) in the scanner's own coordinate system

        Returns:
            boresight @ (socs_map @ point) + lever_arm
        """
        return self._rotation @ np.asarray(point, dtype=np.float64) + self.lever_arm
