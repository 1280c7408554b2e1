"""Frame rotation helpers and angular coordinates.

All matrices in this module are *frame* (passive) rotations: for a frame
rotated by ``angle`` about an axis, ``R @ v`` gives the coordinates in the
rotated frame of a vector ``v`` expressed in the original frame.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


# ---------------------------------------------------------------------------
# Rotation helpers
# ---------------------------------------------------------------------------


def _Rx(angle: float) -> np.ndarray:
    """Frame rotation matrix about x-axis."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([
        [1.0, 0.0, 0.0],
        [0.0, c, s],
        [0.0, -s, c],
    ], dtype=np.float64)


def _Rz(angle: float) -> np.ndarray:
    """Frame rotation matrix about z-axis."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([
        [c, s, 0.0],
        [-s, c, 0.0],
        [0.0, 0.0, 1.0],
    ], dtype=np.float64)


def vector_angle(u: np.ndarray, v: np.ndarray) -> float:
    """Angle between two vectors in radians, in [0, π].

    Uses the cross/dot ``atan2`` form, accurate for nearly aligned or
    nearly opposite vectors.
    """
    cross = np.cross(u, v)
    return float(np.arctan2(np.linalg.norm(cross), np.dot(u, v)))


# ---------------------------------------------------------------------------
# Angular coordinates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AngularCoordinates:
    """Orientation of a child frame with respect to its parent.

    Attributes
    ----------
    rotation : np.ndarray
        Frame rotation, parent → child coordinates. Shape: (3, 3).
    rotation_rate : np.ndarray
        Angular velocity of the child frame with respect to the parent
        frame, expressed in the child frame [rad/s]. Shape: (3,).
    """

    rotation: np.ndarray
    rotation_rate: np.ndarray

    @staticmethod
    def identity() -> AngularCoordinates:
        """Angular coordinates of a frame aligned with its parent."""
        return AngularCoordinates(np.eye(3), np.zeros(3))

    def compose(self, inner: AngularCoordinates) -> AngularCoordinates:
        """Chain ``inner`` (parent → intermediate) then ``self``.

        Parameters
        ----------
        inner : AngularCoordinates
            Orientation of the intermediate frame in the parent frame.

        Returns
        -------
        AngularCoordinates
            Orientation of this child frame in the parent frame.
        """
        rotation = self.rotation @ inner.rotation
        rate = self.rotation_rate + self.rotation @ inner.rotation_rate
        return AngularCoordinates(rotation, rate)

    def revert(self) -> AngularCoordinates:
        """Orientation of the parent frame with respect to the child."""
        rotation = self.rotation.T
        return AngularCoordinates(rotation, -(rotation @ self.rotation_rate))
