"""Companion ellipsoids of a faceted body.

A body shape carries several one-axis ellipsoid approximations of its
mesh (fitted, inscribed, circumscribed ellipsoids and spheres), used for
geodetic conversions, local altitude and shape statistics.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)

Notes
-----
Geodetic ↔ Cartesian conversion on an ellipsoid of equatorial radius
``a`` and flattening ``f`` uses the prime vertical radius of curvature::

    N = a / sqrt(1 - e^2 sin^2(lat)),   e^2 = 2f - f^2
    x = (N + h) cos(lat) cos(lon)
    y = (N + h) cos(lat) sin(lon)
    z = (N (1 - e^2) + h) sin(lat)

The inverse iterates on the reduced latitude (Bowring, 1976).

References
----------
- Bowring, B.R. (1976). "Transformation from spatial to geographical
  coordinates." Survey Review, 23(181), 323-327.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np
from scipy.optimize import minimize

logger = logging.getLogger(__name__)

_BOWRING_ITERATIONS: int = 5


class EllipsoidType(Enum):
    """Ellipsoid approximations available for a faceted body."""

    INNER_SPHERE = "inner_sphere"
    OUTER_SPHERE = "outer_sphere"
    INNER_ELLIPSOID = "inner_ellipsoid"
    OUTER_ELLIPSOID = "outer_ellipsoid"
    FITTED_ELLIPSOID = "fitted_ellipsoid"


@dataclass(frozen=True)
class GeodeticPoint:
    """Geodetic coordinates.

    Attributes
    ----------
    latitude : float
        Geodetic latitude [rad], in [-π/2, π/2].
    longitude : float
        Longitude [rad], in ]-π, π].
    altitude : float
        Height above the ellipsoid [mesh units].
    """

    latitude: float
    longitude: float
    altitude: float = 0.0


@dataclass(frozen=True)
class OneAxisEllipsoid:
    """Ellipsoid of revolution around the body-frame z-axis.

    Attributes
    ----------
    equatorial_radius : float
        Semi-major axis ``a``.
    flattening : float
        Flattening ``f = (a - c) / a``, in [0, 1[.
    name : str
        Label used in logs and reports.
    """

    equatorial_radius: float
    flattening: float
    name: str = ""

    def __post_init__(self) -> None:
        if not self.equatorial_radius > 0.0:
            raise ValueError(f"Equatorial radius must be positive, got {self.equatorial_radius}")
        if not (0.0 <= self.flattening < 1.0):
            raise ValueError(f"Flattening must be in [0, 1), got {self.flattening}")

    @property
    def polar_radius(self) -> float:
        return self.equatorial_radius * (1.0 - self.flattening)

    @property
    def eccentricity_sq(self) -> float:
        f = self.flattening
        return 2.0 * f - f * f

    def is_sphere(self) -> bool:
        return self.flattening == 0.0

    def shifted(self, delta: float) -> OneAxisEllipsoid:
        """Ellipsoid with the equatorial radius increased by ``delta``."""
        return OneAxisEllipsoid(self.equatorial_radius + delta, self.flattening, self.name)

    # -------------------------------------------------------------------
    # Conversions
    # -------------------------------------------------------------------

    def geodetic_to_cartesian(self, latitude, longitude, altitude=0.0) -> np.ndarray:
        """Cartesian position(s) of geodetic coordinates.

        Parameters
        ----------
        latitude, longitude : float or np.ndarray
            Geodetic angles [rad].
        altitude : float or np.ndarray
            Height above the ellipsoid.

        Returns
        -------
        np.ndarray
            Shape (3,) for scalars, (N, 3) for arrays.
        """
        a = self.equatorial_radius
        e2 = self.eccentricity_sq
        sin_lat = np.sin(latitude)
        cos_lat = np.cos(latitude)
        n = a / np.sqrt(1.0 - e2 * sin_lat * sin_lat)
        x = (n + altitude) * cos_lat * np.cos(longitude)
        y = (n + altitude) * cos_lat * np.sin(longitude)
        z = (n * (1.0 - e2) + altitude) * sin_lat
        return np.stack([x, y, z], axis=-1).astype(np.float64)

    def cartesian_to_geodetic(self, points: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Geodetic latitude, longitude and altitude of Cartesian points.

        Parameters
        ----------
        points : np.ndarray
            Positions in the body frame. Shape: (N, 3).

        Returns
        -------
        latitude, longitude, altitude : np.ndarray
            Each of shape (N,).
        """
        p = np.atleast_2d(np.asarray(points, dtype=np.float64))
        x, y, z = p[:, 0], p[:, 1], p[:, 2]
        a = self.equatorial_radius
        b = self.polar_radius
        f = self.flattening
        e2 = self.eccentricity_sq
        ep2 = (a * a - b * b) / (b * b)

        lon = np.arctan2(y, x)
        rho = np.hypot(x, y)

        lat = np.arctan2(z, rho * (1.0 - e2))
        for _ in range(_BOWRING_ITERATIONS):
            beta = np.arctan2((1.0 - f) * np.sin(lat), np.cos(lat))
            lat = np.arctan2(
                z + ep2 * b * np.sin(beta) ** 3,
                rho - e2 * a * np.cos(beta) ** 3,
            )

        sin_lat = np.sin(lat)
        # Height along the normal, valid at the poles as well
        alt = rho * np.cos(lat) + z * sin_lat - a * np.sqrt(1.0 - e2 * sin_lat * sin_lat)
        if self.is_sphere():
            alt = np.linalg.norm(p, axis=1) - a
        return lat, lon, alt

    def transform(self, point: np.ndarray) -> GeodeticPoint:
        """Geodetic coordinates of a single body-frame position."""
        lat, lon, alt = self.cartesian_to_geodetic(np.asarray(point, dtype=np.float64).reshape(1, 3))
        return GeodeticPoint(float(lat[0]), float(lon[0]), float(alt[0]))

    def to_cartesian(self, point: GeodeticPoint) -> np.ndarray:
        """Body-frame position of a geodetic point."""
        return self.geodetic_to_cartesian(point.latitude, point.longitude, point.altitude)

    # -------------------------------------------------------------------
    # Radial quantities
    # -------------------------------------------------------------------

    def radius_along(self, directions: np.ndarray) -> np.ndarray:
        """Distance from the center to the surface along ``directions``.

        Parameters
        ----------
        directions : np.ndarray
            Non-zero vectors (need not be normalised). Shape: (N, 3).

        Returns
        -------
        np.ndarray
            Radii, shape (N,).
        """
        d = np.atleast_2d(np.asarray(directions, dtype=np.float64))
        if self.is_sphere():
            return np.full(d.shape[0], self.equatorial_radius)
        u = d / np.linalg.norm(d, axis=1, keepdims=True)
        a = self.equatorial_radius
        c = self.polar_radius
        return 1.0 / np.sqrt((u[:, 0] ** 2 + u[:, 1] ** 2) / (a * a) + u[:, 2] ** 2 / (c * c))

    def radial_distance(self, points: np.ndarray) -> np.ndarray:
        """Signed radial distance of ``points`` to the ellipsoid surface."""
        p = np.atleast_2d(np.asarray(points, dtype=np.float64))
        return np.linalg.norm(p, axis=1) - self.radius_along(p)

    def altitude(self, points: np.ndarray) -> np.ndarray:
        """Signed geodetic altitude of ``points`` above the ellipsoid."""
        return self.cartesian_to_geodetic(points)[2]


# ===================================================================
# ELLIPSOID APPROXIMATIONS OF A MESH
# ===================================================================


def fit_ellipsoid(
    vertices: np.ndarray,
    min_norm: float,
    max_norm: float,
    tolerance: float = 1e-8,
    max_evaluations: int = 1000,
    first_guess_flattening: float = 0.1,
    name: str = "",
) -> OneAxisEllipsoid:
    """Least-squares one-axis ellipsoid through the mesh vertices.

    Each vertex is compared with the ellipsoid point of the same
    geocentric latitude and longitude; the sum of squared distances is
    minimised over ``a`` in ``[min_norm, max_norm]`` and ``f`` in ``[0, 1]``
    with Powell's derivative-free method.

    Parameters
    ----------
    vertices : np.ndarray
        Mesh vertices. Shape: (N, 3).
    min_norm, max_norm : float
        Smallest and largest vertex norms.
    tolerance : float
        Powell ``xtol`` and ``ftol``.
    max_evaluations : int
        Maximum number of cost evaluations.
    first_guess_flattening : float
        Initial flattening.
    name : str
        Label of the resulting ellipsoid.

    Returns
    -------
    OneAxisEllipsoid
        Fitted ellipsoid.
    """
    v = np.asarray(vertices, dtype=np.float64)
    norms = np.linalg.norm(v, axis=1)
    unit = np.zeros_like(v)
    nonzero = norms > 0
    unit[nonzero] = v[nonzero] / norms[nonzero, None]
    cos_lat_sq = 1.0 - np.clip(unit[:, 2], -1.0, 1.0) ** 2
    # Unit directions with geocentric latitude / longitude of each vertex
    directions = unit

    def _cost(params: np.ndarray) -> float:
        a, f = params
        b = a * (1.0 - f)
        e2 = 1.0 - (1.0 - f) * (1.0 - f)
        r = b / np.sqrt(1.0 - e2 * cos_lat_sq)
        return float(np.sum((directions * r[:, None] - v) ** 2))

    lower, upper = min_norm, max_norm
    if upper - lower <= 1e-12 * upper:
        lower, upper = lower * (1.0 - 1e-9), upper * (1.0 + 1e-9)

    result = minimize(
        _cost,
        x0=np.array([(lower + upper) / 2.0, first_guess_flattening]),
        method="Powell",
        bounds=[(lower, upper), (0.0, 1.0)],
        options={"xtol": tolerance, "ftol": tolerance, "maxfev": max_evaluations},
    )
    a_fit, f_fit = float(result.x[0]), float(min(max(result.x[1], 0.0), 1.0 - 1e-12))
    logger.info(
        "Fitted ellipsoid: a=%.6g, f=%.6g (c=%.6g), %d evaluations, success=%s",
        a_fit, f_fit, a_fit * (1.0 - f_fit), result.nfev, result.success,
    )
    return OneAxisEllipsoid(a_fit, f_fit, name)


def _dilated_norms(vertices: np.ndarray, flattening: float) -> np.ndarray:
    """Norms of vertices after stretching z by 1 / (1 - f)."""
    dilated = np.array(vertices, dtype=np.float64)
    dilated[:, 2] /= 1.0 - flattening
    return np.linalg.norm(dilated, axis=1)


def inner_ellipsoid(vertices: np.ndarray, flattening: float, name: str = "") -> OneAxisEllipsoid:
    """Largest origin-centered ellipsoid of given flattening inside the vertices."""
    return OneAxisEllipsoid(float(_dilated_norms(vertices, flattening).min()), flattening, name)


def outer_ellipsoid(vertices: np.ndarray, flattening: float, name: str = "") -> OneAxisEllipsoid:
    """Smallest origin-centered ellipsoid of given flattening enclosing the vertices."""
    return OneAxisEllipsoid(float(_dilated_norms(vertices, flattening).max()), flattening, name)
