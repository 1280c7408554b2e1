"""Tests for transforms, the frame tree, body frames and date handling.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

from datetime import datetime

import numpy as np
import pytest

from data_ingestion.ephemeris import FixedPositionProvider
from orientation.frames import Frame, Transform, build_body_frames, gcrf_root
from orientation.iau_pole import IAUPoleModelType, OrientationType
from orientation.registry import IAUPoleRegistry
from orientation.rotation import AngularCoordinates, _Rx, _Rz, vector_angle
from orientation.timescale import (
    SECONDS_PER_DAY,
    centuries_since_j2000,
    days_since_j2000,
    seconds_since_j2000,
    shifted_by,
    tdb_date,
)
from shape_engine.geometry import Line


def _spinning(rate: float):
    """Provider of a frame spinning about +Z at ``rate`` rad/s."""
    def provider(date) -> Transform:
        angle = rate * seconds_since_j2000(date)
        return Transform.from_angular_coordinates(AngularCoordinates(_Rz(angle), np.array([0.0, 0.0, rate])))
    return provider


@pytest.fixture(scope="module")
def mars_frames():
    root = gcrf_root()
    pole = IAUPoleRegistry.default().get("Mars")
    center = FixedPositionProvider(np.array([2.0e11, -1.0e11, 3.0e10]), root)
    inertial, rotating = build_body_frames("Mars", pole, root, center)
    return root, pole, inertial, rotating


# ===================================================================
# ROTATIONS AND TRANSFORMS
# ===================================================================


class TestRotation:

    def test_frame_rotation_convention(self) -> None:
        """Frame rotated by +90° about z sees the old x-axis along -y."""
        assert np.allclose(_Rz(np.pi / 2.0) @ np.array([1.0, 0.0, 0.0]), [0.0, -1.0, 0.0])
        assert np.allclose(_Rx(np.pi / 2.0) @ np.array([0.0, 1.0, 0.0]), [0.0, 0.0, -1.0])

    def test_vector_angle(self) -> None:
        assert vector_angle(np.array([1.0, 0.0, 0.0]), np.array([0.0, 2.0, 0.0])) == pytest.approx(np.pi / 2.0)
        assert vector_angle(np.array([1.0, 0.0, 0.0]), np.array([1.0, 1e-12, 0.0])) == pytest.approx(1e-12)
        assert vector_angle(np.array([1.0, 0.0, 0.0]), np.array([-1.0, 0.0, 0.0])) == pytest.approx(np.pi)

    def test_angular_coordinates_revert(self) -> None:
        ac = AngularCoordinates(_Rx(0.3) @ _Rz(1.1), np.array([1e-3, -2e-3, 5e-4]))
        back = ac.compose(ac.revert())

        assert np.allclose(back.rotation, np.eye(3))
        assert np.allclose(back.rotation_rate, 0.0)


class TestTransform:

    def test_inverse_and_compose(self) -> None:
        t = Transform(_Rz(0.4) @ _Rx(-0.2), np.array([1.0, 2.0, 3.0]), np.array([0.0, 1e-3, 2e-3]), np.array([4.0, 5.0, 6.0]))
        identity = t.compose(t.inverse())

        assert np.allclose(identity.rotation, np.eye(3))
        assert np.allclose(identity.translation, 0.0)
        assert np.allclose(identity.rotation_rate, 0.0)
        assert np.allclose(identity.velocity, 0.0)

    def test_translation(self) -> None:
        t = Transform.from_translation(np.array([10.0, 0.0, 0.0]))

        assert np.allclose(t.transform_position(np.array([10.0, 1.0, 0.0])), [0.0, 1.0, 0.0])
        assert np.allclose(t.transform_vector(np.array([10.0, 1.0, 0.0])), [10.0, 1.0, 0.0])

    def test_velocity_of_point_at_rest(self) -> None:
        rate = np.array([0.0, 0.0, 0.1])
        t = Transform(_Rz(0.5), np.zeros(3), rate, np.zeros(3))
        p = np.array([1.0, 0.0, 0.0])

        position, velocity = t.transform_pv(p, np.zeros(3))

        assert np.allclose(velocity, -np.cross(rate, position))

    def test_transform_line(self) -> None:
        t = Transform(_Rz(0.4) @ _Rx(-0.2), np.array([1.0, 2.0, 3.0]))
        line = Line(np.array([5.0, 0.0, 0.0]), np.array([1.0, 1.0, 0.0]), -2.0)
        point = line.point_at(3.0)

        moved = t.transform_line(line)

        assert np.allclose(moved.origin, t.transform_position(line.origin))
        assert np.allclose(moved.direction, t.transform_vector(line.direction))
        assert moved.min_abscissa == -2.0
        assert moved.contains(t.transform_position(point))
        assert moved.abscissa(t.transform_position(point)) == pytest.approx(3.0)


# ===================================================================
# FRAME TREE
# ===================================================================


class TestFrameTree:

    def test_identity_to_self(self) -> None:
        root = gcrf_root()
        transform = root.transform_to(root, 0.0)

        assert np.array_equal(transform.rotation, np.eye(3))

    def test_siblings(self) -> None:
        root = gcrf_root()
        a = Frame("A", root, lambda date: Transform.from_translation(np.array([1.0, 0.0, 0.0])))
        b = Frame("B", root, lambda date: Transform.from_translation(np.array([0.0, 2.0, 0.0])))

        p_b = a.transform_to(b, 0.0).transform_position(np.zeros(3))

        assert np.allclose(p_b, [1.0, -2.0, 0.0])
        assert b.depth == 1 and b.parent is root

    def test_round_trip_through_spinning_frame(self) -> None:
        root = gcrf_root()
        spin = Frame("Spin", root, _spinning(1e-3))
        shifted = Frame("Shifted", spin, lambda date: Transform.from_translation(np.array([5.0, 0.0, 0.0])))
        p = np.array([1.0, 2.0, 3.0])

        there = root.transform_to(shifted, 1234.0).transform_position(p)
        back = shifted.transform_to(root, 1234.0).transform_position(there)

        assert np.allclose(back, p)

    def test_pv_matches_finite_differences(self) -> None:
        root = gcrf_root()
        spin = Frame("Spin", root, _spinning(1e-3))
        p = np.array([100.0, -50.0, 20.0])
        date, h = 500.0, 1e-2

        _, velocity = root.transform_to(spin, date).transform_pv(p, np.zeros(3))
        fd = (
            root.transform_to(spin, date + h).transform_position(p)
            - root.transform_to(spin, date - h).transform_position(p)
        ) / (2.0 * h)

        assert np.allclose(velocity, fd, rtol=1e-6)

    def test_separate_trees(self) -> None:
        with pytest.raises(ValueError):
            gcrf_root().transform_to(gcrf_root(), 0.0)

    def test_parent_requires_provider(self) -> None:
        with pytest.raises(ValueError):
            Frame("Orphan", gcrf_root())


class TestBodyFrames:

    def test_frame_names(self, mars_frames) -> None:
        root, _, inertial, rotating = mars_frames

        assert inertial.name == "Mars Inertial"
        assert rotating.name == "Mars Rotating"
        assert inertial.is_pseudo_inertial() and not rotating.is_pseudo_inertial()
        assert rotating.parent is inertial and inertial.parent is root

    def test_center_and_orientation(self, mars_frames) -> None:
        root, pole, _, rotating = mars_frames
        date = tdb_date(2021, 2, 18, 20, 55, 0.0)
        center = np.array([2.0e11, -1.0e11, 3.0e10])
        transform = root.transform_to(rotating, date)

        assert np.allclose(transform.transform_position(center), 0.0, atol=1e-3)
        assert np.allclose(transform.transform_vector(pole.get_pole(date)), [0.0, 0.0, 1.0], atol=1e-14)
        ac = pole.get_angular_coordinates(date, OrientationType.ICRF_TO_ROTATING)
        assert np.allclose(transform.rotation, ac.rotation, atol=1e-14)

    def test_surface_point_velocity(self, mars_frames) -> None:
        root, _, _, rotating = mars_frames
        date, h = tdb_date(2000, 2, 1), 5.0
        surface = np.array([3.39e6, 0.0, 0.0])
        to_root = rotating.transform_to(root, date)

        _, velocity = to_root.transform_pv(surface, np.zeros(3))
        fd = (
            rotating.transform_to(root, date + h).transform_position(surface)
            - rotating.transform_to(root, date - h).transform_position(surface)
        ) / (2.0 * h)

        assert np.linalg.norm(velocity) == pytest.approx(3.39e6 * 7.088e-5 * np.cos(0.0), rel=0.5)
        assert np.allclose(velocity, fd, rtol=1e-5, atol=1e-6)

    def test_model_type_is_forwarded(self) -> None:
        root = gcrf_root()
        pole = IAUPoleRegistry.default().get("Moon")
        _, constant = build_body_frames("Moon", pole, root, model_type=IAUPoleModelType.CONSTANT)
        date = tdb_date(2010, 1, 1)

        rotation = root.transform_to(constant, date).rotation
        expected = pole.get_angular_coordinates(date, OrientationType.ICRF_TO_ROTATING, IAUPoleModelType.CONSTANT)

        assert np.allclose(rotation, expected.rotation, atol=1e-14)
        assert np.allclose(rotation, root.transform_to(constant, date + 1.0e7).rotation, atol=1e-14)


# ===================================================================
# DATES
# ===================================================================


class TestTimescale:

    def test_float_passthrough(self) -> None:
        assert seconds_since_j2000(12.5) == 12.5
        assert days_since_j2000(SECONDS_PER_DAY) == 1.0
        assert centuries_since_j2000(36525.0 * SECONDS_PER_DAY) == pytest.approx(1.0)
        assert shifted_by(10.0, 5.0) == 15.0

    def test_tdb_calendar_date(self) -> None:
        assert tdb_date(2000, 1, 1, 12) == 0.0
        assert tdb_date(2000, 1, 2, 12) == SECONDS_PER_DAY
        assert tdb_date(1999, 12, 31, 23, 59, 30.25) == pytest.approx(-12.0 * 3600.0 - 29.75)

    def test_utc_datetime(self) -> None:
        """At J2000, TDB is ahead of UTC by 32 leap seconds + 32.184 s."""
        assert seconds_since_j2000(datetime(2000, 1, 1, 12, 0, 0)) == pytest.approx(64.184, abs=2e-3)

    def test_skyfield_time(self) -> None:
        from skyfield.api import load

        ts = load.timescale(builtin=True)
        t = ts.tdb_jd(2451545.0 + 1.0, 0.25)

        assert seconds_since_j2000(t) == pytest.approx(1.25 * SECONDS_PER_DAY, abs=1e-6)

    def test_unsupported_type(self) -> None:
        with pytest.raises(TypeError):
            seconds_since_j2000("2000-01-01")
        with pytest.raises(TypeError):
            seconds_since_j2000(True)
