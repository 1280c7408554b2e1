"""Infinite lines with a lower abscissa bound.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Line:
    """Oriented line ``p(s) = origin + s * direction``.

    Attributes
    ----------
    origin : np.ndarray
        Reference point of the line (abscissa 0). Shape: (3,).
    direction : np.ndarray
        Unit direction vector. Shape: (3,).
    min_abscissa : float
        Points with abscissa at or below this value are not part of the
        line for intersection purposes. ``-inf`` for a full line.
    """

    origin: np.ndarray
    direction: np.ndarray
    min_abscissa: float = -np.inf

    def __post_init__(self) -> None:
        origin = np.asarray(self.origin, dtype=np.float64).reshape(3)
        direction = np.asarray(self.direction, dtype=np.float64).reshape(3)
        norm = np.linalg.norm(direction)
        if norm == 0.0 or not np.isfinite(norm):
            raise ValueError("Line direction must be a finite non-zero vector.")
        object.__setattr__(self, "origin", origin)
        object.__setattr__(self, "direction", direction / norm)
        object.__setattr__(self, "min_abscissa", float(self.min_abscissa))

    @staticmethod
    def from_points(p1: np.ndarray, p2: np.ndarray, min_point: np.ndarray | None = None) -> Line:
        """Line through ``p1`` and ``p2``, oriented from ``p1`` to ``p2``.

        Parameters
        ----------
        p1, p2 : np.ndarray
            Distinct points on the line. Shape: (3,).
        min_point : np.ndarray, optional
            Point whose abscissa becomes the lower bound of the line.
        """
        p1 = np.asarray(p1, dtype=np.float64)
        p2 = np.asarray(p2, dtype=np.float64)
        line = Line(p1, p2 - p1)
        if min_point is None:
            return line
        return Line(line.origin, line.direction, line.abscissa(min_point))

    def abscissa(self, point: np.ndarray) -> float:
        return float(np.dot(np.asarray(point, dtype=np.float64) - self.origin, self.direction))

    def point_at(self, s: float) -> np.ndarray:
        return self.origin + s * self.direction

    def project(self, point: np.ndarray) -> np.ndarray:
        """Orthogonal projection of ``point`` on the line."""
        return self.point_at(self.abscissa(point))

    def distance(self, point: np.ndarray) -> float:
        """Euclidean distance from ``point`` to the (unbounded) line."""
        d = np.asarray(point, dtype=np.float64) - self.origin
        return float(np.linalg.norm(np.cross(d, self.direction)))

    def distances(self, points: np.ndarray) -> np.ndarray:
        """Vectorised :meth:`distance`. ``points`` shape: (N, 3)."""
        d = np.asarray(points, dtype=np.float64) - self.origin
        return np.linalg.norm(np.cross(d, self.direction), axis=1)

    def contains(self, point: np.ndarray, tolerance: float = 1e-10) -> bool:
        return self.distance(point) <= tolerance * max(1.0, float(np.linalg.norm(point)))

    def transformed(self, transform) -> Line:
        """Line expressed in the destination frame of ``transform``."""
        return Line(
            transform.transform_position(self.origin),
            transform.transform_vector(self.direction),
            self.min_abscissa,
        )
