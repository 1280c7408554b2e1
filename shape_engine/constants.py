"""Engine tolerances and configuration loader.

Numerical tolerances of the faceted body shape engine are loaded from a
YAML configuration file into frozen dataclasses. ``default_config()``
provides the same values as ``configs/default.yaml`` for callers that do
not ship their own file.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import hashlib
import logging
import platform
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numba
import numpy as np
import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration Data Classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RaytracerConfig:
    """BVH raytracer configuration.

    Attributes
    ----------
    max_leaf_triangles : int
        Maximum triangles per BVH leaf node.
    sah_num_bins : int
        Number of bins for SAH cost sweep.
    epsilon : float
        Zero-test epsilon for the Möller-Trumbore algorithm.
    """

    max_leaf_triangles: int
    sah_num_bins: int
    epsilon: float


@dataclass(frozen=True)
class ShapeConfig:
    """Faceted body shape tolerances.

    Attributes
    ----------
    duplicate_distance_sq : float
        Squared distance below which two intersection points are merged.
    masking_tolerance : float
        Minimum distance between a masking intersection and the masked
        vertex.
    apparent_radius_threshold : float
        Convergence threshold of the apparent radius bisection.
    max_apparent_radius_steps : int
        Maximum number of apparent radius bisection steps.
    fit_tolerance : float
        Powell tolerance (xtol and ftol) of the fitted ellipsoid.
    fit_max_evaluations : int
        Maximum number of cost evaluations of the fitted ellipsoid.
    first_guess_flattening : float
        Initial flattening of the fitted ellipsoid search.
    """

    duplicate_distance_sq: float
    masking_tolerance: float
    apparent_radius_threshold: float
    max_apparent_radius_steps: int
    fit_tolerance: float
    fit_max_evaluations: int
    first_guess_flattening: float


@dataclass(frozen=True)
class EngineConfig:
    """Top-level engine configuration.

    Attributes
    ----------
    raytracer : RaytracerConfig
        BVH construction and intersection settings.
    shape : ShapeConfig
        Body shape query tolerances.
    """

    raytracer: RaytracerConfig
    shape: ShapeConfig


# ---------------------------------------------------------------------------
# Configuration Loader
# ---------------------------------------------------------------------------

_DEFAULTS: dict[str, Any] = {
    "raytracer": {
        "bvh": {"max_leaf_triangles": 4, "sah_num_bins": 16},
        "epsilon": 1e-10,
    },
    "shape": {
        "duplicate_distance_sq": 1e-12,
        "masking_tolerance": 1e-6,
        "apparent_radius": {"threshold": 1e-2, "max_steps": 100},
        "fitted_ellipsoid": {
            "tolerance": 1e-8,
            "max_evaluations": 1000,
            "first_guess_flattening": 0.1,
        },
    },
}


def default_config() -> EngineConfig:
    """Return the built-in engine configuration."""
    return _parse_config(_DEFAULTS)


def load_config(config_path: str | Path) -> EngineConfig:
    """Load and validate an engine configuration from a YAML file.

    Parameters
    ----------
    config_path : str or Path
        Path to the YAML configuration file.

    Returns
    -------
    EngineConfig
        Fully populated, typed configuration object.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    ValueError
        If required configuration keys are missing or values are invalid.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw: dict[str, Any] = yaml.safe_load(f)

    logger.info("Loading configuration from: %s", config_path)

    if not isinstance(raw, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")

    try:
        config = _parse_config(raw)
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid configuration in {config_path}: {e!r}") from e

    logger.info("Configuration loaded successfully.")
    return config


def _parse_config(raw: dict[str, Any]) -> EngineConfig:
    """Build the typed configuration from a raw mapping and validate it."""
    # --- Parse raytracer config ---
    rt = raw["raytracer"]
    bvh_cfg = rt["bvh"]
    raytracer = RaytracerConfig(
        max_leaf_triangles=int(bvh_cfg["max_leaf_triangles"]),
        sah_num_bins=int(bvh_cfg["sah_num_bins"]),
        epsilon=float(rt["epsilon"]),
    )

    # --- Parse shape config ---
    shp = raw["shape"]
    app = shp["apparent_radius"]
    fit = shp["fitted_ellipsoid"]
    shape = ShapeConfig(
        duplicate_distance_sq=float(shp["duplicate_distance_sq"]),
        masking_tolerance=float(shp["masking_tolerance"]),
        apparent_radius_threshold=float(app["threshold"]),
        max_apparent_radius_steps=int(app["max_steps"]),
        fit_tolerance=float(fit["tolerance"]),
        fit_max_evaluations=int(fit["max_evaluations"]),
        first_guess_flattening=float(fit["first_guess_flattening"]),
    )

    config = EngineConfig(raytracer=raytracer, shape=shape)
    _validate_config(config)
    return config


def _validate_config(config: EngineConfig) -> None:
    """Validate constraints on configuration values.

    Parameters
    ----------
    config : EngineConfig
        Configuration to validate.

    Raises
    ------
    ValueError
        If any value is invalid.
    """
    if config.raytracer.max_leaf_triangles < 1:
        raise ValueError("BVH leaf capacity must be at least 1.")
    if config.raytracer.sah_num_bins < 2:
        raise ValueError("SAH bin count must be at least 2.")
    if config.raytracer.epsilon <= 0:
        raise ValueError("Raytracer epsilon must be positive.")
    if config.shape.duplicate_distance_sq <= 0:
        raise ValueError("Duplicate distance threshold must be positive.")
    if config.shape.masking_tolerance < 0:
        raise ValueError("Masking tolerance cannot be negative.")
    if config.shape.apparent_radius_threshold <= 0:
        raise ValueError("Apparent radius threshold must be positive.")
    if config.shape.max_apparent_radius_steps < 1:
        raise ValueError("Apparent radius step budget must be at least 1.")
    if config.shape.fit_tolerance <= 0:
        raise ValueError("Ellipsoid fit tolerance must be positive.")
    if not (0.0 <= config.shape.first_guess_flattening < 1.0):
        raise ValueError(
            f"First guess flattening must be in [0, 1), got {config.shape.first_guess_flattening}"
        )

    logger.debug("Configuration validation passed.")


def log_platform_info() -> None:
    """Log platform and library version information for reproducibility."""
    logger.info("=" * 70)
    logger.info("PLATFORM INFORMATION (for reproducibility)")
    logger.info("=" * 70)
    logger.info("  Python:    %s", sys.version)
    logger.info("  Platform:  %s", platform.platform())
    logger.info("  NumPy:     %s", np.__version__)
    logger.info("  Numba:     %s", numba.__version__)
    logger.info("  Float64 eps: %e", np.finfo(np.float64).eps)
    logger.info("=" * 70)


def hash_array(arr: np.ndarray) -> str:
    """Compute SHA-256 hash of a NumPy array for reproducibility verification.

    Parameters
    ----------
    arr : np.ndarray
        Array to hash.

    Returns
    -------
    str
        Hex digest of the SHA-256 hash.
    """
    return hashlib.sha256(np.ascontiguousarray(arr).tobytes()).hexdigest()
