"""Synthetic faceted bodies on a geodetic grid.

Generates closed triangle meshes of spheres and flattened spheroids for
validation, optionally with a parabolic crater carved in the surface to
make the body non-convex.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)

Notes
-----
Vertex layout for ``n_lat`` latitude points (odd) and ``n_lon``
longitude points::

    index 0                     south pole
    1 + k * n_lon + j           ring k (k = 0 .. 2m), longitude j
    last                        north pole

with ``m = (n_lat - 1) / 2 - 1`` and ring latitudes
``(k - m) / (m + 1) * π/2``. Every facet is wound counter-clockwise seen
from outside, so that normals point outward.

The crater profile follows the parabolic bowl::

    depth(r) = D * (1 - (r/R)^2)     for r <= R
"""

from __future__ import annotations

import logging

import numpy as np

from shape_engine.mesh import FacetMesh

logger = logging.getLogger(__name__)


def build_geodetic_grid(
    radius: float,
    n_lat: int = 51,
    n_lon: int = 100,
    flattening: float = 0.0,
) -> tuple[np.ndarray, np.ndarray]:
    """Vertex and triangle arrays of a geodetic-grid spheroid.

    Parameters
    ----------
    radius : float
        Equatorial radius.
    n_lat : int
        Number of latitude points including both poles (odd, >= 5).
    n_lon : int
        Number of longitude points (>= 3).
    flattening : float
        Polar flattening; z coordinates are scaled by ``1 - flattening``.

    Returns
    -------
    vertices : np.ndarray
        Shape: ((n_lat - 2) * n_lon + 2, 3).
    triangles : np.ndarray
        Shape: (2 * (n_lat - 2) * n_lon, 3).
    """
    if n_lat < 5 or n_lat % 2 == 0:
        raise ValueError(f"Latitude count must be odd and >= 5, got {n_lat}")
    if n_lon < 3:
        raise ValueError(f"Longitude count must be >= 3, got {n_lon}")
    if not radius > 0.0:
        raise ValueError(f"Radius must be positive, got {radius}")
    if not (0.0 <= flattening < 1.0):
        raise ValueError(f"Flattening must be in [0, 1), got {flattening}")

    half = (n_lat - 1) // 2 - 1
    n_rings = 2 * half + 1
    lat = np.arange(-half, half + 1) / (half + 1) * np.pi / 2.0
    lon = np.arange(n_lon) / n_lon * 2.0 * np.pi
    lat_g, lon_g = np.meshgrid(lat, lon, indexing="ij")
    ring = np.stack(
        [
            np.cos(lat_g) * np.cos(lon_g),
            np.cos(lat_g) * np.sin(lon_g),
            np.sin(lat_g) * (1.0 - flattening),
        ],
        axis=-1,
    ).reshape(-1, 3)

    polar = radius * (1.0 - flattening)
    vertices = np.vstack([[0.0, 0.0, -polar], radius * ring, [0.0, 0.0, polar]])
    north = vertices.shape[0] - 1

    j = np.arange(n_lon)
    j_next = (j + 1) % n_lon

    # South cap: (pole, next, current)
    south_cap = np.stack([np.zeros(n_lon, dtype=np.int64), 1 + j_next, 1 + j], axis=1)

    # Bands between consecutive rings
    k = np.arange(n_rings - 1)[:, None]
    a = 1 + k * n_lon + j
    b = 1 + k * n_lon + j_next
    c = 1 + (k + 1) * n_lon + j
    d = 1 + (k + 1) * n_lon + j_next
    lower = np.stack([a, b, c], axis=-1)
    upper = np.stack([b, d, c], axis=-1)
    bands = np.stack([lower, upper], axis=2).reshape(-1, 3)

    # North cap: (pole, current, next)
    top = 1 + (n_rings - 1) * n_lon
    north_cap = np.stack([np.full(n_lon, north, dtype=np.int64), top + j, top + j_next], axis=1)

    triangles = np.vstack([south_cap, bands, north_cap]).astype(np.int64)
    return vertices, triangles


def build_spheroid_mesh(
    radius: float,
    n_lat: int = 51,
    n_lon: int = 100,
    flattening: float = 0.0,
) -> FacetMesh:
    """Geodetic-grid spheroid as a :class:`FacetMesh`."""
    vertices, triangles = build_geodetic_grid(radius, n_lat, n_lon, flattening)
    logger.info(
        "Generated spheroid: R=%.6g, f=%.4g, %d latitudes x %d longitudes",
        radius, flattening, n_lat, n_lon,
    )
    return FacetMesh(
        vertices,
        triangles,
        metadata={
            "type": "spheroid",
            "radius": float(radius),
            "flattening": float(flattening),
            "n_lat": int(n_lat),
            "n_lon": int(n_lon),
        },
    )


def carve_crater(
    mesh: FacetMesh,
    latitude: float,
    longitude: float,
    crater_radius: float,
    depth: float,
) -> FacetMesh:
    """Mesh with a parabolic bowl pushed radially into the surface.

    Parameters
    ----------
    mesh : FacetMesh
        Source mesh (vertices are not modified in place).
    latitude, longitude : float
        Crater center direction [rad].
    crater_radius : float
        Bowl radius, measured as a chord on the surface.
    depth : float
        Depth at the crater center (> 0).

    Returns
    -------
    FacetMesh
        Carved mesh with the same connectivity.
    """
    if not crater_radius > 0.0 or not depth > 0.0:
        raise ValueError("Crater radius and depth must be positive.")
    axis = np.array([
        np.cos(latitude) * np.cos(longitude),
        np.cos(latitude) * np.sin(longitude),
        np.sin(latitude),
    ])
    vertices = np.array(mesh.vertices, dtype=np.float64)
    norms = np.linalg.norm(vertices, axis=1)
    unit = vertices / norms[:, None]
    r = norms * np.linalg.norm(unit - axis, axis=1)
    inside = (r <= crater_radius) & (unit @ axis > 0.0)
    sink = depth * (1.0 - (r[inside] / crater_radius) ** 2)
    vertices[inside] -= unit[inside] * sink[:, None]

    logger.info(
        "Carved crater: R=%.6g, D=%.6g, %d vertices moved",
        crater_radius, depth, int(inside.sum()),
    )
    return mesh.transformed_vertices(
        vertices, {"crater_radius": float(crater_radius), "crater_depth": float(depth)}
    )
