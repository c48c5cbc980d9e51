"""
Map projection module.

Converts geodetic trajectory samples to Universal Transverse Mercator (UTM)
coordinates and corrects their heading for grid convergence.

Reference ellipsoid (fixed, no datum conversion):
    a = 6378137.0 m
    f = 1 / 298.257222101

Forward projection uses the classic series (Snyder, "Map Projections - A
Working Manual", eqs. 8-9 to 8-10):

    N = a / sqrt(1 - e2 sin^2(lat))
    T = tan^2(lat)
    C = e'2 cos^2(lat)
    A = cos(lat) (lon - lon0)
    M = meridional arc (4-term series in e2)

    E = k0 N (A + (1 - T + C) A^3/6 + (5 - 18T + T^2 + 72C - 58e'2) A^5/120) + 500000
    N = k0 (M + N tan(lat) (A^2/2 + (5 - T + 9C + 4C^2) A^4/24
                            + (61 - 58T + T^2 + 600C - 330e'2) A^6/720))

Grid convergence is evaluated from the projected coordinates through the
footprint latitude (Redfearn):

    gamma = -(E'/N1) tan(lat1) + (tan(lat1) (E'/N1)^3 / 3) (3 psi - 2 psi^2 + tan^2(lat1))

with E' = (E - 500000) / k0, N1 and psi = N1 / rho1 evaluated at the
footprint latitude lat1.
"""

import math
import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .rotations import RotationOrder
from .trajectory import TrajectorySample

logger = logging.getLogger(__name__)

# Reference ellipsoid parameters
ELLIPSOID_A = 6378137.0  # Semi-major axis (m)
ELLIPSOID_F = 1 / 298.257222101  # Flattening
ELLIPSOID_E2 = 2 * ELLIPSOID_F - ELLIPSOID_F ** 2  # First eccentricity squared
ELLIPSOID_EP2 = ELLIPSOID_E2 / (1 - ELLIPSOID_E2)  # Second eccentricity squared

UTM_K0 = 0.9996
UTM_FALSE_EASTING = 500000.0
UTM_FALSE_NORTHING_SOUTH = 10000000.0


@dataclass(frozen=True)
class ProjectedTrajectorySample:
    """
    A trajectory sample in UTM.

    Attributes:
        time: Sample time in seconds
        northing: UTM northing
        easting: UTM easting
        height: Ellipsoidal height
        roll: Roll in radians
        pitch: Pitch in radians
        heading: Grid heading in radians (true heading + convergence)
    """
    time: float
    northing: float
    easting: float
    height: float
    roll: float
    pitch: float
    heading: float

    def rotation_matrix(self, rotation_order: RotationOrder) -> np.ndarray:
        """Body-to-map rotation for this sample's attitude."""
        return rotation_order.compose(self.roll, self.pitch, self.heading)

    def location(self) -> np.ndarray:
        """Position as (easting, northing, height)."""
        return np.array([self.easting, self.northing, self.height])


def central_meridian(zone: int) -> float:
    """
    Central meridian of a UTM zone, in degrees.

    Raises:
        ValueError: If zone is not between 1 and 60
    """
    if isinstance(zone, bool) or not 1 <= zone <= 60:
        raise ValueError(f"UTM zone must be between 1 and 60, got {zone}")
    return zone * 6.0 - 183.0


class MapProjector:
    """
    Forward and inverse transverse Mercator on the reference ellipsoid.

    The projector is stateless; one instance can serve any number of zones.
    """

    def __init__(
        self,
        a: float = ELLIPSOID_A,
        f: float = ELLIPSOID_F,
        k0: float = UTM_K0,
    ):
        self.a = a
        self.f = f
        self.k0 = k0
        self.e2 = 2 * f - f ** 2
        self.ep2 = self.e2 / (1 - self.e2)

        e2 = self.e2
        # Meridional arc coefficients
        self._m0 = 1 - e2 / 4 - 3 * e2 ** 2 / 64 - 5 * e2 ** 3 / 256
        self._m2 = 3 * e2 / 8 + 3 * e2 ** 2 / 32 + 45 * e2 ** 3 / 1024
        self._m4 = 15 * e2 ** 2 / 256 + 45 * e2 ** 3 / 1024
        self._m6 = 35 * e2 ** 3 / 3072

        # Footprint latitude coefficients
        root = math.sqrt(1 - e2)
        e1 = (1 - root) / (1 + root)
        self.e1 = e1
        self._f2 = 3 * e1 / 2 - 27 * e1 ** 3 / 32
        self._f4 = 21 * e1 ** 2 / 16 - 55 * e1 ** 4 / 32
        self._f6 = 151 * e1 ** 3 / 96
        self._f8 = 1097 * e1 ** 4 / 512

    def meridional_arc(self, lat: float) -> float:
        """Distance along the meridian from the equator to latitude lat (radians)."""
        return self.a * (
            self._m0 * lat
            - self._m2 * math.sin(2 * lat)
            + self._m4 * math.sin(4 * lat)
            - self._m6 * math.sin(6 * lat)
        )

    def footprint_latitude(self, northing: float, south: bool = False) -> float:
        """
        Latitude on the central meridian whose meridional arc matches a northing.

        Args:
            northing: UTM northing
            south: True if the northing carries the southern false northing

        Returns:
            Footprint latitude in radians
        """
        if south:
            northing = northing - UTM_FALSE_NORTHING_SOUTH
        mu = (northing / self.k0) / (self.a * self._m0)
        return (
            mu
            + self._f2 * math.sin(2 * mu)
            + self._f4 * math.sin(4 * mu)
            + self._f6 * math.sin(6 * mu)
            + self._f8 * math.sin(8 * mu)
        )

    def project(self, latitude: float, longitude: float, zone: int) -> Tuple[float, float, float]:
        """
        Project geodetic coordinates into a UTM zone.

        Args:
            latitude: Latitude in radians
            longitude: Longitude in radians
            zone: UTM zone (1-60)

        Returns:
            Tuple of (northing, easting, convergence). Convergence is in
            radians and is added to a true heading to get a grid heading.
        """
        lon0 = math.radians(central_meridian(zone))
        e2 = self.e2
        ep2 = self.ep2

        sin_lat = math.sin(latitude)
        cos_lat = math.cos(latitude)
        tan_lat = math.tan(latitude)

        N = self.a / math.sqrt(1 - e2 * sin_lat ** 2)
        T = tan_lat ** 2
        C = ep2 * cos_lat ** 2
        A = cos_lat * (longitude - lon0)
        M = self.meridional_arc(latitude)

        easting = self.k0 * N * (
            A
            + (1 - T + C) * A ** 3 / 6
            + (5 - 18 * T + T ** 2 + 72 * C - 58 * ep2) * A ** 5 / 120
        ) + UTM_FALSE_EASTING

        northing = self.k0 * (
            M
            + N * tan_lat * (
                A ** 2 / 2
                + (5 - T + 9 * C + 4 * C ** 2) * A ** 4 / 24
                + (61 - 58 * T + T ** 2 + 600 * C - 330 * ep2) * A ** 6 / 720
            )
        )

        south = latitude < 0
        if south:
            northing += UTM_FALSE_NORTHING_SOUTH

        return northing, easting, self.convergence(northing, easting, south=south)

    def convergence(self, northing: float, easting: float, south: bool = False) -> float:
        """
        Grid convergence at a projected point.

        Args:
            northing: UTM northing
            easting: UTM easting
            south: True if the northing carries the southern false northing

        Returns:
            Convergence in radians
        """
        lat1 = self.footprint_latitude(northing, south=south)
        sin1 = math.sin(lat1)
        tan1 = math.tan(lat1)

        w = 1 - self.e2 * sin1 ** 2
        N1 = self.a / math.sqrt(w)
        rho1 = self.a * (1 - self.e2) / w ** 1.5
        psi = N1 / rho1

        x = (easting - UTM_FALSE_EASTING) / self.k0 / N1
        return -x * tan1 + (tan1 * x ** 3 / 3) * (3 * psi - 2 * psi ** 2 + tan1 ** 2)

    def unproject(
        self,
        northing: float,
        easting: float,
        zone: int,
        south: bool = False,
    ) -> Tuple[float, float]:
        """
        Inverse projection from UTM to geodetic coordinates.

        Args:
            northing: UTM northing
            easting: UTM easting
            zone: UTM zone (1-60)
            south: True if the point is in the southern hemisphere

        Returns:
            Tuple of (latitude, longitude) in radians
        """
        lon0 = math.radians(central_meridian(zone))
        e2 = self.e2
        ep2 = self.ep2

        lat1 = self.footprint_latitude(northing, south=south)
        sin1 = math.sin(lat1)
        cos1 = math.cos(lat1)
        tan1 = math.tan(lat1)

        w = 1 - e2 * sin1 ** 2
        N1 = self.a / math.sqrt(w)
        R1 = self.a * (1 - e2) / w ** 1.5
        T1 = tan1 ** 2
        C1 = ep2 * cos1 ** 2
        D = (easting - UTM_FALSE_EASTING) / (N1 * self.k0)

        latitude = lat1 - (N1 * tan1 / R1) * (
            D ** 2 / 2
            - (5 + 3 * T1 + 10 * C1 - 4 * C1 ** 2 - 9 * ep2) * D ** 4 / 24
            + (61 + 90 * T1 + 298 * C1 + 45 * T1 ** 2 - 252 * ep2 - 3 * C1 ** 2) * D ** 6 / 720
        )
        longitude = lon0 + (
            D
            - (1 + 2 * T1 + C1) * D ** 3 / 6
            + (5 - 2 * C1 + 28 * T1 - 3 * C1 ** 2 + 8 * ep2 + 24 * T1 ** 2) * D ** 5 / 120
        ) / cos1

        return latitude, longitude

    def project_sample(self, sample: TrajectorySample, zone: int) -> ProjectedTrajectorySample:
        """
        Project a trajectory sample, correcting its heading for grid convergence.

        Args:
            sample: Geodetic trajectory sample
            zone: UTM zone (1-60)

        Returns:
            ProjectedTrajectorySample
        """
        northing, easting, convergence = self.project(sample.latitude, sample.longitude, zone)
        return ProjectedTrajectorySample(
            time=sample.time,
            northing=northing,
            easting=easting,
            height=sample.height,
            roll=sample.roll,
            pitch=sample.pitch,
            heading=sample.heading + convergence,
        )
