"""Sensor fields of view.

A field of view answers two questions about a direction expressed in
the sensor frame: whether it lies inside the field, and its signed
angular distance to the field border (positive inside).

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import numpy as np

from orientation.rotation import vector_angle


class CircularField:
    """Cone of half-angle ``half_angle`` around ``main_direction``."""

    def __init__(self, half_angle: float, main_direction: np.ndarray, name: str = "") -> None:
        if not (0.0 < half_angle <= np.pi):
            raise ValueError(f"Half angle must be in ]0, π], got {half_angle}")
        main = np.asarray(main_direction, dtype=np.float64)
        self.half_angle = float(half_angle)
        self.main_direction = main / np.linalg.norm(main)
        self.name = name

    def get_angular_distance(self, direction: np.ndarray) -> float:
        return self.half_angle - vector_angle(self.main_direction, np.asarray(direction, dtype=np.float64))

    def is_in_the_field(self, direction: np.ndarray) -> bool:
        return self.get_angular_distance(direction) > 0.0


class PyramidalField:
    """Convex pyramid bounded by the planes through consecutive edge directions.

    Parameters
    ----------
    directions : np.ndarray
        Edge directions in either rotation order. Shape: (K, 3), K >= 3.
    name : str
        Field name.
    """

    def __init__(self, directions: np.ndarray, name: str = "") -> None:
        d = np.asarray(directions, dtype=np.float64)
        if d.ndim != 2 or d.shape[0] < 3 or d.shape[1] != 3:
            raise ValueError(f"Pyramidal field needs at least 3 directions, got shape {d.shape}")
        d = d / np.linalg.norm(d, axis=1, keepdims=True)
        normals = np.cross(d, np.roll(d, -1, axis=0))
        normals /= np.linalg.norm(normals, axis=1, keepdims=True)
        # Side normals point inward
        if np.dot(normals[0], d.sum(axis=0)) < 0.0:
            normals = -normals
        self.directions = d
        self._normals = normals
        self.name = name

    def get_angular_distance(self, direction: np.ndarray) -> float:
        v = np.asarray(direction, dtype=np.float64)
        v = v / np.linalg.norm(v)
        return float(np.min(np.arcsin(np.clip(self._normals @ v, -1.0, 1.0))))

    def is_in_the_field(self, direction: np.ndarray) -> bool:
        return self.get_angular_distance(direction) > 0.0


class OmnidirectionalField:
    """Field containing every direction."""

    def __init__(self, name: str = "") -> None:
        self.name = name

    def get_angular_distance(self, direction: np.ndarray) -> float:
        return np.pi

    def is_in_the_field(self, direction: np.ndarray) -> bool:
        return True
