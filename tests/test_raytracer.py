"""Tests for the BVH raytracer module.

Validates line-triangle intersection accuracy, BVH consistency, line
crossings of a closed sphere mesh and vertex masking.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import numpy as np
import pytest

from shape_engine.raytracer import (
    BVH,
    build_bvh,
    intersect_line,
    line_triangle_parameter,
    occluded_points,
    ray_aabb_intersect,
)


# ===================================================================
# FIXTURES
# ===================================================================


@pytest.fixture
def simple_triangle() -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """A triangle in the XY plane at z=0."""
    v0 = np.array([0.0, 0.0, 0.0], dtype=np.float64)
    v1 = np.array([1.0, 0.0, 0.0], dtype=np.float64)
    v2 = np.array([0.0, 1.0, 0.0], dtype=np.float64)
    return v0, v1, v2


@pytest.fixture
def epsilon() -> float:
    """Default intersection epsilon."""
    return 1e-10


@pytest.fixture(scope="module")
def sphere_bvh(sphere_mesh) -> BVH:
    return BVH.from_mesh(sphere_mesh)


# ===================================================================
# LINE-TRIANGLE INTERSECTION TESTS
# ===================================================================


class TestLineTriangleParameter:
    """Test suite for the Möller-Trumbore line-triangle kernel."""

    def test_direct_hit_center(self, simple_triangle: tuple, epsilon: float) -> None:
        """Ray hitting the center of the triangle from above."""
        v0, v1, v2 = simple_triangle
        origin = np.array([0.25, 0.25, 1.0], dtype=np.float64)
        direction = np.array([0.0, 0.0, -1.0], dtype=np.float64)

        t = line_triangle_parameter(origin, direction, v0, v1, v2, epsilon)

        assert t > 0, "Should hit the triangle"
        assert abs(t - 1.0) < 1e-8, f"Expected t=1.0, got t={t}"

    def test_miss_outside_triangle(self, simple_triangle: tuple, epsilon: float) -> None:
        v0, v1, v2 = simple_triangle
        origin = np.array([2.0, 2.0, 1.0], dtype=np.float64)
        direction = np.array([0.0, 0.0, -1.0], dtype=np.float64)

        assert np.isnan(line_triangle_parameter(origin, direction, v0, v1, v2, epsilon))

    def test_parallel_line(self, simple_triangle: tuple, epsilon: float) -> None:
        """Line parallel to the triangle plane never crosses it."""
        v0, v1, v2 = simple_triangle
        origin = np.array([0.25, 0.25, 1.0], dtype=np.float64)
        direction = np.array([1.0, 0.0, 0.0], dtype=np.float64)

        assert np.isnan(line_triangle_parameter(origin, direction, v0, v1, v2, epsilon))

    def test_line_reports_crossing_behind_origin(self, simple_triangle: tuple, epsilon: float) -> None:
        """The kernel works on the unbounded line and reports crossings behind the origin."""
        v0, v1, v2 = simple_triangle
        origin = np.array([0.25, 0.25, -1.0], dtype=np.float64)
        direction = np.array([0.0, 0.0, -1.0], dtype=np.float64)

        t = line_triangle_parameter(origin, direction, v0, v1, v2, epsilon)

        assert t == pytest.approx(-1.0, abs=1e-12)

    def test_degenerate_triangle(self, epsilon: float) -> None:
        """Degenerate triangle (zero area) should not intersect."""
        v0 = np.array([0.0, 0.0, 0.0], dtype=np.float64)
        v1 = np.array([1.0, 0.0, 0.0], dtype=np.float64)
        v2 = np.array([0.5, 0.0, 0.0], dtype=np.float64)
        origin = np.array([0.25, 0.0, 1.0], dtype=np.float64)
        direction = np.array([0.0, 0.0, -1.0], dtype=np.float64)

        assert np.isnan(line_triangle_parameter(origin, direction, v0, v1, v2, epsilon))

    def test_edge_hit_no_leakage(self, epsilon: float) -> None:
        """A line aimed at a shared edge must cross both adjacent triangles."""
        v0 = np.array([0.0, 0.0, 0.0], dtype=np.float64)
        v1 = np.array([1.0, 0.0, 0.0], dtype=np.float64)
        v2a = np.array([0.5, 1.0, 0.0], dtype=np.float64)
        v2b = np.array([0.5, -1.0, 0.0], dtype=np.float64)
        origin = np.array([0.5, 0.0, 1.0], dtype=np.float64)
        direction = np.array([0.0, 0.0, -1.0], dtype=np.float64)

        t_a = line_triangle_parameter(origin, direction, v0, v1, v2a, epsilon)
        t_b = line_triangle_parameter(origin, direction, v0, v1, v2b, epsilon)

        assert not np.isnan(t_a) and not np.isnan(t_b), "Edge leakage detected!"

    def test_grazing_ray(self, simple_triangle: tuple, epsilon: float) -> None:
        v0, v1, v2 = simple_triangle
        origin = np.array([0.25, 0.25, 0.001], dtype=np.float64)
        direction = np.array([0.01, 0.0, -0.001], dtype=np.float64)

        assert line_triangle_parameter(origin, direction, v0, v1, v2, epsilon) == pytest.approx(1.0)


# ===================================================================
# RAY-AABB TESTS
# ===================================================================


class TestRayAABB:
    """Test suite for line-AABB intersection."""

    def test_line_through_box(self) -> None:
        origin = np.array([0.5, 0.5, 2.0], dtype=np.float64)
        # inv_dir for dir = (0, 0, -1) is (inf, inf, -1)
        inv_d = np.array([1e30, 1e30, -1.0], dtype=np.float64)
        bbox_min = np.array([0.0, 0.0, 0.0], dtype=np.float64)
        bbox_max = np.array([1.0, 1.0, 1.0], dtype=np.float64)

        assert ray_aabb_intersect(origin, inv_d, bbox_min, bbox_max, -1e30, 1e30)

    def test_box_behind_origin_depends_on_interval(self) -> None:
        origin = np.array([0.5, 0.5, 2.0], dtype=np.float64)
        inv_d = np.array([1e30, 1e30, 1.0], dtype=np.float64)  # dir = +z
        bbox_min = np.array([0.0, 0.0, 0.0], dtype=np.float64)
        bbox_max = np.array([1.0, 1.0, 1.0], dtype=np.float64)

        assert not ray_aabb_intersect(origin, inv_d, bbox_min, bbox_max, 0.0, 1e30)
        assert ray_aabb_intersect(origin, inv_d, bbox_min, bbox_max, -1e30, 1e30)

    def test_line_missing_box(self) -> None:
        origin = np.array([5.0, 5.0, 2.0], dtype=np.float64)
        inv_d = np.array([1e30, 1e30, -1.0], dtype=np.float64)
        bbox_min = np.array([0.0, 0.0, 0.0], dtype=np.float64)
        bbox_max = np.array([1.0, 1.0, 1.0], dtype=np.float64)

        assert not ray_aabb_intersect(origin, inv_d, bbox_min, bbox_max, -1e30, 1e30)


# ===================================================================
# BVH TESTS
# ===================================================================


class TestBVH:
    """BVH construction and traversal on the sphere mesh."""

    def test_bvh_builds_without_error(self, sphere_mesh) -> None:
        bvh_nodes, tri_verts, ordered_indices = build_bvh(sphere_mesh, max_leaf_triangles=4)

        assert bvh_nodes.shape[0] > 0, "BVH should have nodes"
        assert tri_verts.shape[0] == sphere_mesh.triangles.shape[0]
        assert np.array_equal(np.sort(ordered_indices), np.arange(len(sphere_mesh)))

    def test_line_through_center_crosses_twice(self, sphere_bvh: BVH) -> None:
        """A line through the center crosses the sphere at both sides."""
        direction = np.array([1.0, 2.0, 0.5]) / np.linalg.norm([1.0, 2.0, 0.5])
        origin = -3.0e4 * direction

        tris, params = intersect_line(sphere_bvh, origin, direction)

        assert np.all(np.diff(params) >= 0.0), "Crossings must be sorted by parameter"
        assert params[0] == pytest.approx(2.0e4, abs=20.0)
        assert params[-1] == pytest.approx(4.0e4, abs=20.0)
        assert np.all((np.abs(params - 2.0e4) < 20.0) | (np.abs(params - 4.0e4) < 20.0))

    def test_line_reports_both_directions(self, sphere_bvh: BVH) -> None:
        """Crossings behind the origin are reported with negative parameters."""
        tris, params = intersect_line(sphere_bvh, np.array([0.1, 0.2, 0.0]), np.array([0.0, 0.0, 1.0]))

        assert params.min() < 0.0 < params.max()

    def test_line_missing_sphere(self, sphere_bvh: BVH) -> None:
        tris, params = intersect_line(sphere_bvh, np.array([0.0, 0.0, 2.0e4]), np.array([1.0, 0.0, 0.0]))

        assert tris.size == 0 and params.size == 0

    def test_bvh_matches_brute_force(self, sphere_mesh, sphere_bvh: BVH) -> None:
        """Traversal finds the same triangles as a linear scan."""
        rng = np.random.default_rng(7)
        for _ in range(5):
            origin = rng.uniform(-2.0e4, 2.0e4, 3)
            direction = rng.normal(size=3)
            direction /= np.linalg.norm(direction)
            tris, _ = intersect_line(sphere_bvh, origin, direction)
            brute = [
                i for i in range(len(sphere_mesh))
                if not np.isnan(line_triangle_parameter(
                    origin, direction, *sphere_mesh.tri_verts[i], 1e-10
                ))
            ]
            assert sorted(tris.tolist()) == brute


class TestOcclusion:
    """Vertex masking through the segment occlusion kernel."""

    def test_near_side_vertices_not_occluded(self, sphere_mesh, sphere_bvh: BVH) -> None:
        viewpoint = np.array([0.0, 0.0, 2.0e7])
        upper = sphere_mesh.vertices[sphere_mesh.vertices[:, 2] > 1.0]

        assert not occluded_points(sphere_bvh, viewpoint, upper, 1e-6).any()

    def test_far_side_vertices_occluded(self, sphere_mesh, sphere_bvh: BVH) -> None:
        viewpoint = np.array([0.0, 0.0, 2.0e7])
        lower = sphere_mesh.vertices[sphere_mesh.vertices[:, 2] < -1.0]

        assert occluded_points(sphere_bvh, viewpoint, lower, 1e-6).all()

    def test_empty_points(self, sphere_bvh: BVH) -> None:
        result = occluded_points(sphere_bvh, np.zeros(3), np.zeros((0, 3)), 1e-6)

        assert result.shape == (0,)
