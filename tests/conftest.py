"""Pytest configuration and shared fixtures for FacetBody tests.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest


# Add project root to path so imports work
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from data_ingestion.mesh_builder import build_spheroid_mesh  # noqa: E402
from orientation.frames import Frame, gcrf_root  # noqa: E402
from shape_engine.body_shape import FacetBodyShape  # noqa: E402
from shape_engine.ellipsoid import EllipsoidType  # noqa: E402

BODY_RADIUS = 10000.0
N_LAT = 51
N_LON = 100


def pytest_configure(config: pytest.Config) -> None:
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s [%(levelname)s] %(message)s",
    )


# ===================================================================
# FIXTURES
# ===================================================================


@pytest.fixture(scope="session")
def sphere_mesh():
    """Geodetic-grid sphere: 51 latitudes x 100 longitudes, R = 10 km."""
    return build_spheroid_mesh(BODY_RADIUS, N_LAT, N_LON)


@pytest.fixture(scope="session")
def flattened_mesh():
    """Same grid flattened by 0.2 (polar radius 8 km)."""
    return build_spheroid_mesh(BODY_RADIUS, N_LAT, N_LON, flattening=0.2)


@pytest.fixture(scope="session")
def body_frame() -> Frame:
    return gcrf_root()


@pytest.fixture(scope="session")
def sphere_body(sphere_mesh, body_frame) -> FacetBodyShape:
    return FacetBodyShape("Sphere", body_frame, sphere_mesh, EllipsoidType.FITTED_ELLIPSOID)


@pytest.fixture(scope="session")
def flattened_body(flattened_mesh, body_frame) -> FacetBodyShape:
    return FacetBodyShape("Spheroid", body_frame, flattened_mesh, EllipsoidType.FITTED_ELLIPSOID)
