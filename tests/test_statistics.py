"""Tests for streaming statistics and body-shape statistics.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from shape_engine.body_shape import FacetBodyShape
from shape_engine.ellipsoid import EllipsoidType, OneAxisEllipsoid
from shape_engine.statistics import StreamingStatistics


class TestStreamingStatistics:
    """Accumulator against numpy reductions."""

    def test_empty(self) -> None:
        stats = StreamingStatistics()

        assert stats.n == 0
        assert math.isnan(stats.mean)
        assert math.isnan(stats.variance)
        assert math.isnan(stats.min) and math.isnan(stats.max)

    def test_single_value(self) -> None:
        stats = StreamingStatistics()
        stats.add_value(3.5)

        assert stats.mean == 3.5
        assert stats.variance == 0.0
        assert stats.min == stats.max == 3.5
        assert stats.sumsq == pytest.approx(12.25)

    def test_values_match_numpy(self) -> None:
        values = np.random.default_rng(42).normal(100.0, 5.0, 1000)
        stats = StreamingStatistics()
        for v in values:
            stats.add_value(v)

        assert stats.n == 1000
        assert stats.mean == pytest.approx(values.mean(), rel=1e-12)
        assert stats.variance == pytest.approx(values.var(ddof=1), rel=1e-10)
        assert stats.min == values.min()
        assert stats.max == values.max()
        assert stats.sumsq == pytest.approx(np.dot(values, values), rel=1e-12)

    def test_batches_match_single_values(self) -> None:
        values = np.random.default_rng(3).uniform(-1.0, 1.0, 777)
        batched = StreamingStatistics()
        for chunk in np.array_split(values, 5):
            batched.add_values(chunk)
        batched.add_values(np.array([]))
        single = StreamingStatistics()
        for v in values:
            single.add_value(v)

        assert batched.n == single.n
        assert batched.mean == pytest.approx(single.mean, abs=1e-14)
        assert batched.variance == pytest.approx(single.variance, rel=1e-10)
        assert batched.standard_deviation == pytest.approx(values.std(ddof=1), rel=1e-10)

    def test_combine(self) -> None:
        a, b = StreamingStatistics(), StreamingStatistics()
        a.add_values(np.arange(10.0))
        b.add_values(np.arange(10.0, 25.0))
        a.combine(b)
        a.combine(StreamingStatistics())

        assert a.n == 25
        assert a.mean == pytest.approx(12.0)
        assert a.variance == pytest.approx(np.arange(25.0).var(ddof=1))
        assert a.min == 0.0 and a.max == 24.0

    def test_to_dict(self) -> None:
        stats = StreamingStatistics()
        stats.add_values(np.array([1.0, 2.0, 3.0]))

        assert stats.to_dict() == {
            "n": 3,
            "min": 1.0,
            "max": 3.0,
            "mean": 2.0,
            "variance": 1.0,
            "sumsq": 14.0,
            "std": 1.0,
        }


class TestShapeStatistics:

    def test_sphere_radial_equals_altitude(self, sphere_body: FacetBodyShape) -> None:
        sphere = OneAxisEllipsoid(10000.0, 0.0)

        radial = sphere_body.compute_statistics_for_radial_distance(sphere)
        altitude = sphere_body.compute_statistics_for_altitude(sphere)

        assert radial.n == altitude.n == 9800
        for name in ("min", "max", "mean", "variance", "sumsq", "standard_deviation"):
            assert getattr(radial, name) == pytest.approx(getattr(altitude, name), rel=1e-14), name
        assert radial.max < 0.0

    def test_matches_direct_reduction(self, sphere_body: FacetBodyShape) -> None:
        sphere = OneAxisEllipsoid(10000.0, 0.0)
        expected = np.linalg.norm(sphere_body.mesh.face_centroids, axis=1) - 10000.0

        stats = sphere_body.compute_statistics_for_radial_distance(sphere)

        assert stats.mean == pytest.approx(expected.mean(), rel=1e-10)
        assert stats.min == pytest.approx(expected.min())
        assert stats.sumsq == pytest.approx(np.dot(expected, expected), rel=1e-10)

    def test_shifted_ellipsoid_shifts_statistics(self, flattened_body: FacetBodyShape) -> None:
        sphere = OneAxisEllipsoid(10000.0, 0.0)
        shifted = sphere.shifted(1000.0)
        base = flattened_body.compute_statistics_for_altitude(sphere)

        moved = flattened_body.compute_statistics_for_altitude(shifted)

        assert moved.n == base.n
        assert moved.mean == pytest.approx(base.mean - 1000.0, rel=1e-14)
        assert moved.min == pytest.approx(base.min - 1000.0, rel=1e-14)
        assert moved.max == pytest.approx(base.max - 1000.0, rel=1e-14)
        assert moved.variance == pytest.approx(base.variance, rel=1e-14)
        assert moved.standard_deviation == pytest.approx(base.standard_deviation, rel=1e-14)

    def test_accepts_ellipsoid_type(self, flattened_body: FacetBodyShape) -> None:
        stats = flattened_body.compute_statistics_for_radial_distance(EllipsoidType.INNER_SPHERE)

        assert stats.mean > 0.0
        assert stats.max == pytest.approx(2000.0, abs=20.0)
        assert stats.n == len(flattened_body.mesh)
