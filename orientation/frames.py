"""Reference frame tree and rigid transforms.

Frames form an explicit directed tree: every node holds an immutable
reference to its parent and a provider returning the parent → node
transform at a given date. Frames are linked once, at construction, and
never re-parented, so concurrent queries can walk the tree safely.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)

Notes
-----
A :class:`Transform` maps coordinates of a source frame into a
destination frame::

    p_dst = R @ p_src + t
    v_dst = R @ v_src - ω × (R @ p_src) + ṫ

where ``ω`` is the angular velocity of the destination frame with respect
to the source frame, expressed in the destination frame.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

from orientation.iau_pole import IAUPoleModelType, OrientationType
from orientation.rotation import AngularCoordinates

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Transform:
    """Rigid, possibly time-dependent, transform between two frames.

    Attributes
    ----------
    rotation : np.ndarray
        Frame rotation source → destination. Shape: (3, 3).
    translation : np.ndarray
        Source origin expressed in destination coordinates. Shape: (3,).
    rotation_rate : np.ndarray
        Angular velocity of destination w.r.t. source, in destination
        coordinates [rad/s]. Shape: (3,).
    velocity : np.ndarray
        Time derivative of ``translation``. Shape: (3,).
    """

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation_rate: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))

    @staticmethod
    def identity() -> Transform:
        return Transform()

    @staticmethod
    def from_angular_coordinates(ac: AngularCoordinates) -> Transform:
        """Pure rotation transform."""
        return Transform(rotation=ac.rotation, rotation_rate=ac.rotation_rate)

    @staticmethod
    def from_translation(origin: np.ndarray, origin_velocity: np.ndarray | None = None) -> Transform:
        """Transform into a parallel frame whose origin is ``origin``."""
        origin = np.asarray(origin, dtype=np.float64)
        vel = np.zeros(3) if origin_velocity is None else np.asarray(origin_velocity, dtype=np.float64)
        return Transform(translation=-origin, velocity=-vel)

    def transform_position(self, p: np.ndarray) -> np.ndarray:
        return self.rotation @ np.asarray(p, dtype=np.float64) + self.translation

    def transform_vector(self, v: np.ndarray) -> np.ndarray:
        return self.rotation @ np.asarray(v, dtype=np.float64)

    def transform_pv(self, position: np.ndarray, velocity: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Transform a position/velocity pair."""
        rp = self.rotation @ np.asarray(position, dtype=np.float64)
        rv = self.rotation @ np.asarray(velocity, dtype=np.float64)
        return rp + self.translation, rv - np.cross(self.rotation_rate, rp) + self.velocity

    def transform_line(self, line):
        """Transform a :class:`shape_engine.geometry.Line`."""
        return line.transformed(self)

    def compose(self, inner: Transform) -> Transform:
        """Apply ``inner`` first, then ``self``."""
        r = self.rotation @ inner.rotation
        rt = self.rotation @ inner.translation
        return Transform(
            rotation=r,
            translation=rt + self.translation,
            rotation_rate=self.rotation_rate + self.rotation @ inner.rotation_rate,
            velocity=self.rotation @ inner.velocity - np.cross(self.rotation_rate, rt) + self.velocity,
        )

    def inverse(self) -> Transform:
        rt = self.rotation.T
        rate = -(rt @ self.rotation_rate)
        translation = -(rt @ self.translation)
        # ṫ' = -Rᵀ ṫ - ω' × t'
        velocity = -(rt @ self.velocity) - np.cross(rate, translation)
        return Transform(rotation=rt, translation=translation, rotation_rate=rate, velocity=velocity)


TransformProvider = Callable[[object], Transform]


# ---------------------------------------------------------------------------
# Frame tree
# ---------------------------------------------------------------------------


class Frame:
    """Node of the reference frame tree.

    Parameters
    ----------
    name : str
        Frame name.
    parent : Frame, optional
        Parent frame; ``None`` for a root frame.
    provider : callable, optional
        ``provider(date) -> Transform`` from parent to this frame.
        Required for non-root frames.
    pseudo_inertial : bool
        Whether the frame can be used for inertial computations.
    """

    def __init__(
        self,
        name: str,
        parent: Optional[Frame] = None,
        provider: Optional[TransformProvider] = None,
        pseudo_inertial: bool = False,
    ) -> None:
        if parent is not None and provider is None:
            raise ValueError(f"Frame '{name}' has a parent but no transform provider.")
        self._name = name
        self._parent = parent
        self._provider = provider
        self._pseudo_inertial = pseudo_inertial
        self._depth = 0 if parent is None else parent._depth + 1

    @property
    def name(self) -> str:
        return self._name

    @property
    def parent(self) -> Optional[Frame]:
        return self._parent

    @property
    def depth(self) -> int:
        return self._depth

    def is_pseudo_inertial(self) -> bool:
        return self._pseudo_inertial

    def __repr__(self) -> str:
        return f"Frame({self._name!r})"

    def _transform_from_ancestor(self, ancestor: Frame, date) -> Transform:
        """Transform from ``ancestor`` down to this frame."""
        result = Transform.identity()
        node = self
        while node is not ancestor:
            result = result.compose(node._provider(date))
            node = node._parent
        return result

    def _common_ancestor(self, other: Frame) -> Frame:
        a, b = self, other
        while a._depth > b._depth:
            a = a._parent
        while b._depth > a._depth:
            b = b._parent
        while a is not b:
            if a._parent is None or b._parent is None:
                raise ValueError(f"Frames {self._name!r} and {other._name!r} belong to different trees.")
            a, b = a._parent, b._parent
        return a

    def transform_to(self, target: Frame, date) -> Transform:
        """Transform from this frame to ``target`` at ``date``.

        Parameters
        ----------
        target : Frame
            Destination frame.
        date : float, datetime or skyfield Time
            Evaluation date; unused when ``target is self``.

        Returns
        -------
        Transform
            Transform mapping coordinates of this frame into ``target``.
        """
        if target is self:
            return Transform.identity()
        common = self._common_ancestor(target)
        to_self = self._transform_from_ancestor(common, date)
        to_target = target._transform_from_ancestor(common, date)
        return to_target.compose(to_self.inverse())


def gcrf_root() -> Frame:
    """New root frame named GCRF."""
    return Frame("GCRF", pseudo_inertial=True)


def build_body_frames(
    name: str,
    pole,
    parent: Frame,
    center_provider=None,
    model_type: IAUPoleModelType = IAUPoleModelType.TRUE,
) -> tuple[Frame, Frame]:
    """Create the inertial and rotating frames of a celestial body.

    Parameters
    ----------
    name : str
        Body name, used to name the frames.
    pole : IAU pole model
        Object exposing ``get_angular_coordinates(date, orientation_type, model_type)``.
    parent : Frame
        ICRF-aligned parent frame (e.g. GCRF).
    center_provider : optional
        Position/velocity provider of the body center, queried in
        ``parent``; ``None`` keeps the body centered on the parent origin.
    model_type : IAUPoleModelType
        Coefficient variant evaluated by the frames.

    Returns
    -------
    inertial, rotating : Frame
        Body-centered inertial frame and body-fixed rotating frame.
    """

    def _inertial(date) -> Transform:
        ac = pole.get_angular_coordinates(date, OrientationType.ICRF_TO_INERTIAL, model_type)
        rotation = Transform.from_angular_coordinates(ac)
        if center_provider is None:
            return rotation
        position, velocity = center_provider.get_pv_coordinates(date, parent)
        return rotation.compose(Transform.from_translation(position, velocity))

    def _rotating(date) -> Transform:
        ac = pole.get_angular_coordinates(date, OrientationType.INERTIAL_TO_ROTATING, model_type)
        return Transform.from_angular_coordinates(ac)

    inertial = Frame(f"{name} Inertial", parent, _inertial, pseudo_inertial=True)
    rotating = Frame(f"{name} Rotating", inertial, _rotating)
    logger.debug("Built frames for %s (model=%s)", name, model_type.name)
    return inertial, rotating
