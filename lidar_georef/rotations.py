"""
Rotation composition.

Calibration conventions vary by scanner and INS vendor, so the order in which
roll, pitch and yaw are composed is read from configuration. Each element of
the order is a small token:

    r3(yaw)      rotation about Z by +yaw
    -r1(roll)    rotation about X by -roll
    r2(-pitch)   rotation about Y by -pitch

Axis names accepted: r1/R1/1 (X), r2/R2/2 (Y), r3/R3/3 (Z).
The composite matrix is ``first @ second @ third``, in configuration order.
"""

import re
import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .errors import InvalidCalibrationSpec

logger = logging.getLogger(__name__)

c = np.cos
s = np.sin

DEFAULT_ROTATION_ORDER = ("r3(yaw)", "r2(pitch)", "r1(roll)")

ANGLE_NAMES = ("roll", "pitch", "yaw")

_AXES = {
    "r1": 1, "R1": 1, "1": 1,
    "r2": 2, "R2": 2, "2": 2,
    "r3": 3, "R3": 3, "3": 3,
}

# optional sign, axis, one parenthesized group holding an optional sign and the angle name
_TOKEN_RE = re.compile(r"^(-?)([^()]*)\((-?)([^()]*)\)$")


def R1(r):
    """
    Rotation matrix around the x-axis, r in radians
    """
    return np.array([[1,    0,     0],
                     [0, c(r), -s(r)],
                     [0, s(r),  c(r)]])


def R2(p):
    """
    Rotation matrix around the y-axis, p in radians
    """
    return np.array([[ c(p), 0, s(p)],
                     [    0, 1,    0],
                     [-s(p), 0, c(p)]])


def R3(y):
    """
    Rotation matrix around the z-axis, y in radians
    """
    return np.array([[c(y), -s(y), 0],
                     [s(y),  c(y), 0],
                     [   0,     0, 1]])


_ELEMENTARY = {1: R1, 2: R2, 3: R3}


@dataclass(frozen=True)
class ElementaryRotation:
    """
    One parsed rotation token.

    Attributes:
        axis: 1 (X), 2 (Y) or 3 (Z)
        negative: True if the selected angle is negated
        angle: One of 'roll', 'pitch', 'yaw'
    """
    axis: int
    negative: bool
    angle: str

    def select(self, roll: float, pitch: float, yaw: float) -> float:
        """Pick this token's angle from a roll/pitch/yaw triple, sign applied."""
        value = {"roll": roll, "pitch": pitch, "yaw": yaw}[self.angle]
        return -value if self.negative else value

    def matrix(self, roll: float, pitch: float, yaw: float) -> np.ndarray:
        """Elementary rotation matrix for the selected, signed angle."""
        return _ELEMENTARY[self.axis](self.select(roll, pitch, yaw))

    def __str__(self) -> str:
        sign = "-" if self.negative else ""
        return f"{sign}r{self.axis}({self.angle})"


def parse_rotation_token(token: str) -> ElementaryRotation:
    """
    Parse a rotation token such as ``"r3(yaw)"`` or ``"-r1(roll)"``.

    Args:
        token: Rotation token

    Returns:
        ElementaryRotation

    Raises:
        InvalidCalibrationSpec: If the token is malformed, the axis is not
            1, 2 or 3, or the angle is not roll, pitch or yaw
    """
    if not isinstance(token, str):
        raise InvalidCalibrationSpec(f"Rotation token must be a string, got {token!r}")

    match = _TOKEN_RE.match(token.strip())
    if match is None:
        raise InvalidCalibrationSpec(
            f"Invalid rotation token {token!r}: expected e.g. 'r3(yaw)' or '-r1(roll)'"
        )

    outer_sign, axis_name, inner_sign, angle_name = match.groups()

    axis = _AXES.get(axis_name.strip())
    if axis is None:
        raise InvalidCalibrationSpec(
            f"Invalid rotation axis {axis_name!r} in token {token!r}: expected r1, r2 or r3"
        )

    angle = angle_name.strip()
    if angle not in ANGLE_NAMES:
        raise InvalidCalibrationSpec(
            f"Invalid rotation angle {angle_name!r} in token {token!r}: "
            f"expected one of {', '.join(ANGLE_NAMES)}"
        )

    negative = bool(outer_sign) != bool(inner_sign)
    return ElementaryRotation(axis=axis, negative=negative, angle=angle)


class RotationOrder:
    """
    A configured composition of three elementary rotations.

    Example:
        order = RotationOrder.from_tokens(["r3(yaw)", "r2(pitch)", "r1(roll)"])
        R = order.compose(roll, pitch, yaw)   # R3(yaw) @ R2(pitch) @ R1(roll)
    """

    def __init__(
        self,
        first: ElementaryRotation,
        second: ElementaryRotation,
        third: ElementaryRotation,
    ):
        self.first = first
        self.second = second
        self.third = third

    @classmethod
    def from_tokens(cls, tokens: Sequence[str]) -> "RotationOrder":
        """
        Build a rotation order from exactly three tokens.

        Raises:
            InvalidCalibrationSpec: If there are not three tokens or any token is invalid
        """
        if isinstance(tokens, str) or len(tokens) != 3:
            raise InvalidCalibrationSpec(
                f"Rotation order needs exactly three tokens, got {tokens!r}"
            )
        first, second, third = (parse_rotation_token(t) for t in tokens)
        return cls(first, second, third)

    @classmethod
    def default(cls) -> "RotationOrder":
        """Yaw, then pitch, then roll: R3(yaw) @ R2(pitch) @ R1(roll)."""
        return cls.from_tokens(DEFAULT_ROTATION_ORDER)

    @property
    def rotations(self) -> List[ElementaryRotation]:
        return [self.first, self.second, self.third]

    def compose(self, roll: float, pitch: float, yaw: float) -> np.ndarray:
        """
        Compose the configured rotations for the given angles (radians).

        Returns:
            3x3 rotation matrix first @ second @ third
        """
        return (
            self.first.matrix(roll, pitch, yaw)
            @ self.second.matrix(roll, pitch, yaw)
            @ self.third.matrix(roll, pitch, yaw)
        )

    def tokens(self) -> List[str]:
        """Canonical token strings, suitable for writing back to configuration."""
        return [str(r) for r in self.rotations]

    def __eq__(self, other) -> bool:
        if not isinstance(other, RotationOrder):
            return NotImplemented
        return self.rotations == other.rotations

    def __repr__(self) -> str:
        return f"RotationOrder({', '.join(self.tokens())})"


def validate_rotation_matrix(R: np.ndarray, tol: float = 1e-6) -> bool:
    """
    Validate that a matrix is a proper rotation matrix.

    A proper rotation matrix must:
        1. Be orthogonal: R @ R.T = I
        2. Have determinant = +1 (not a reflection)

    Args:
        R: 3x3 matrix to validate
        tol: Numerical tolerance

    Returns:
        True if R is a valid rotation matrix
    """
    R = np.asarray(R)
    if R.shape != (3, 3):
        return False

    if not np.allclose(R @ R.T, np.eye(3), atol=tol):
        return False

    return bool(np.isclose(np.linalg.det(R), 1.0, atol=tol))
