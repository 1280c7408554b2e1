"""Tests for the position/velocity providers.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

from types import SimpleNamespace

import numpy as np
import pytest
from skyfield.errors import EphemerisRangeError

from data_ingestion.ephemeris import (
    EphemerisDataUnavailable,
    FixedPositionProvider,
    FrameAttachedProvider,
    SkyfieldBodyProvider,
)
from orientation.frames import Frame, Transform, gcrf_root

AU = 1.495978707e11


class _OutOfRange(EphemerisRangeError):
    def __init__(self) -> None:
        ValueError.__init__(self, "out of range")


class _FakeVector:
    def __init__(self, fail: bool) -> None:
        self.fail = fail
        self.calls = 0

    def at(self, t):
        self.calls += 1
        if self.fail:
            raise _OutOfRange()
        return SimpleNamespace(
            position=SimpleNamespace(au=np.array([1.0, 0.0, 0.0])),
            velocity=SimpleNamespace(au_per_d=np.array([0.0, 0.01, 0.0])),
        )


class _FakeBody:
    def __init__(self, vector: _FakeVector) -> None:
        self.vector = vector

    def __sub__(self, other: _FakeBody) -> _FakeVector:
        return self.vector


class _FakeEphemeris:
    """Mimics the ``kernel[name] - kernel[name]`` protocol of Skyfield."""

    def __init__(self, fail: bool = False) -> None:
        self.vector = _FakeVector(fail)
        self.requested: list[str] = []

    def __getitem__(self, name: str) -> _FakeBody:
        self.requested.append(name)
        return _FakeBody(self.vector)


class TestSimpleProviders:

    def test_fixed_position_in_shifted_frame(self) -> None:
        root = gcrf_root()
        shifted = Frame("Shifted", root, lambda date: Transform.from_translation(np.array([0.0, 0.0, 100.0])))
        provider = FixedPositionProvider(np.array([1.0, 2.0, 3.0]), root)

        position, velocity = provider.get_pv_coordinates(0.0, shifted)

        assert np.allclose(position, [1.0, 2.0, -97.0])
        assert np.allclose(velocity, 0.0)
        assert provider.frame is root

    def test_frame_attached_origin(self) -> None:
        root = gcrf_root()
        child = Frame("Child", root, lambda date: Transform.from_translation(np.array([5.0, 0.0, 0.0])))

        assert np.allclose(FrameAttachedProvider(child).get_position(0.0, root), [5.0, 0.0, 0.0])
        assert np.allclose(FrameAttachedProvider(root).get_position(0.0, child), [-5.0, 0.0, 0.0])


class TestSkyfieldBodyProvider:

    def test_units_and_names(self) -> None:
        root = gcrf_root()
        ephemeris = _FakeEphemeris()
        provider = SkyfieldBodyProvider("sun", root, ephemeris=ephemeris)

        position, velocity = provider.get_pv_coordinates(0.0, root)

        assert ephemeris.requested == ["sun", "earth"]
        assert np.allclose(position, [AU, 0.0, 0.0])
        assert np.allclose(velocity, [0.0, 0.01 * AU / 86400.0, 0.0])
        assert provider.native_frame is root

    def test_vector_is_built_once(self) -> None:
        root = gcrf_root()
        ephemeris = _FakeEphemeris()
        provider = SkyfieldBodyProvider("moon", root, center="earth", ephemeris=ephemeris)

        provider.get_position(0.0, root)
        provider.get_position(3600.0, root)

        assert ephemeris.requested == ["moon", "earth"]
        assert ephemeris.vector.calls == 2

    def test_transformed_into_requested_frame(self) -> None:
        root = gcrf_root()
        shifted = Frame("Shifted", root, lambda date: Transform.from_translation(np.array([AU, 0.0, 0.0])))
        provider = SkyfieldBodyProvider("sun", root, ephemeris=_FakeEphemeris())

        assert np.allclose(provider.get_position(0.0, shifted), 0.0, atol=1e-3)

    def test_out_of_range(self) -> None:
        root = gcrf_root()
        provider = SkyfieldBodyProvider("sun", root, ephemeris=_FakeEphemeris(fail=True))

        with pytest.raises(EphemerisDataUnavailable):
            provider.get_position(1.0e12, root)
