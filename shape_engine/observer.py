"""Observer state: date, position and sensor orientation.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from orientation.frames import Frame


@dataclass(frozen=True)
class ObserverState:
    """Observer seen from a given frame.

    Attributes
    ----------
    date : float, datetime or skyfield Time
        Observation date.
    position : np.ndarray
        Observer position in ``frame``. Shape: (3,).
    frame : Frame
        Frame of ``position``, ``velocity`` and ``attitude``.
    attitude : np.ndarray, optional
        Rotation mapping ``frame`` vectors into the sensor frame.
        Identity when omitted. Shape: (3, 3).
    velocity : np.ndarray, optional
        Observer velocity in ``frame``. Shape: (3,).
    """

    date: object
    position: np.ndarray
    frame: Frame
    attitude: Optional[np.ndarray] = None
    velocity: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", np.asarray(self.position, dtype=np.float64).reshape(3))
        attitude = np.eye(3) if self.attitude is None else np.asarray(self.attitude, dtype=np.float64)
        if attitude.shape != (3, 3):
            raise ValueError(f"Attitude must be a 3x3 rotation, got shape {attitude.shape}")
        object.__setattr__(self, "attitude", attitude)
        if self.velocity is not None:
            object.__setattr__(self, "velocity", np.asarray(self.velocity, dtype=np.float64).reshape(3))

    def in_frame(self, target: Frame) -> tuple[np.ndarray, np.ndarray]:
        """Observer position in ``target`` and the ``target`` → sensor rotation."""
        transform = self.frame.transform_to(target, self.date)
        return transform.transform_position(self.position), self.attitude @ transform.rotation.T


def body_center_pointing_attitude(position: np.ndarray, velocity: Optional[np.ndarray] = None) -> np.ndarray:
    """Attitude with the sensor +K axis pointing at the frame origin.

    Parameters
    ----------
    position : np.ndarray
        Observer position. Shape: (3,).
    velocity : np.ndarray, optional
        Observer velocity; when given, the sensor +I axis lies in the
        plane of the velocity.

    Returns
    -------
    np.ndarray
        Rotation frame → sensor (rows are the sensor axes). Shape: (3, 3).
    """
    p = np.asarray(position, dtype=np.float64)
    z = -p / np.linalg.norm(p)
    if velocity is not None and np.linalg.norm(np.cross(velocity, z)) > 0.0:
        ref = np.asarray(velocity, dtype=np.float64)
    else:
        ref = np.array([1.0, 0.0, 0.0]) if abs(z[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
    x = ref - np.dot(ref, z) * z
    x /= np.linalg.norm(x)
    y = np.cross(z, x)
    return np.vstack([x, y, z])
