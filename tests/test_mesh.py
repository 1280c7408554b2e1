"""Tests for the triangle mesh, line geometry and geodetic-grid generator.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import numpy as np
import pytest

from data_ingestion.mesh_builder import build_geodetic_grid, build_spheroid_mesh, carve_crater
from shape_engine.geometry import Line
from shape_engine.mesh import FacetMesh, Triangle, Vertex


@pytest.fixture
def unit_triangle() -> Triangle:
    return Triangle.from_vertices(
        0,
        Vertex(0, np.array([0.0, 0.0, 0.0])),
        Vertex(1, np.array([1.0, 0.0, 0.0])),
        Vertex(2, np.array([0.0, 1.0, 0.0])),
    )


# ===================================================================
# TRIANGLE
# ===================================================================


class TestTriangle:
    """Facet properties and geometric predicates."""

    def test_derived_properties(self, unit_triangle: Triangle) -> None:
        assert np.allclose(unit_triangle.normal, [0.0, 0.0, 1.0])
        assert np.allclose(unit_triangle.center, [1.0 / 3.0, 1.0 / 3.0, 0.0])
        assert unit_triangle.surface == pytest.approx(0.5)
        assert unit_triangle.sphere_radius == pytest.approx(np.hypot(2.0 / 3.0, 1.0 / 3.0))

    def test_visibility_side(self, unit_triangle: Triangle) -> None:
        assert unit_triangle.is_visible(np.array([0.2, 0.2, 1.0]))
        assert not unit_triangle.is_visible(np.array([0.2, 0.2, -1.0]))

    def test_contains(self, unit_triangle: Triangle) -> None:
        assert unit_triangle.contains(np.array([0.25, 0.25, 0.0]))
        assert unit_triangle.contains(np.array([0.5, 0.5, 0.0]))  # on the hypotenuse
        assert not unit_triangle.contains(np.array([0.6, 0.6, 0.0]))

    def test_intersection(self, unit_triangle: Triangle) -> None:
        hit = unit_triangle.intersection(Line(np.array([0.2, 0.3, 5.0]), np.array([0.0, 0.0, -1.0])))
        assert np.allclose(hit, [0.2, 0.3, 0.0])
        assert unit_triangle.intersection(Line(np.array([2.0, 2.0, 5.0]), np.array([0.0, 0.0, -1.0]))) is None
        assert unit_triangle.intersection(Line(np.array([0.2, 0.2, 1.0]), np.array([1.0, 0.0, 0.0]))) is None

    def test_distance_to_point(self, unit_triangle: Triangle) -> None:
        assert unit_triangle.distance_to_point(np.array([0.2, 0.2, 3.0])) == pytest.approx(3.0)
        assert unit_triangle.distance_to_point(np.array([-1.0, 0.0, 0.0])) == pytest.approx(1.0)
        assert unit_triangle.distance_to_point(np.array([1.0, 1.0, 0.0])) == pytest.approx(np.sqrt(0.5))

    def test_closest_point_to_line(self, unit_triangle: Triangle) -> None:
        line = Line(np.array([-1.0, 0.5, 2.0]), np.array([0.0, 1.0, 0.0]))
        on_line, on_tri = unit_triangle.closest_point_to(line)

        assert np.allclose(on_tri, [0.0, 0.0, 0.0]) or on_tri[0] == pytest.approx(0.0)
        assert unit_triangle.distance_to_line(line) == pytest.approx(np.hypot(1.0, 2.0))
        assert line.contains(on_line)

    def test_crossing_line_distance_is_zero(self, unit_triangle: Triangle) -> None:
        line = Line(np.array([0.1, 0.1, 1.0]), np.array([0.0, 0.0, 1.0]))
        on_line, on_tri = unit_triangle.closest_point_to(line)

        assert np.allclose(on_line, on_tri)
        assert unit_triangle.distance_to_line(line) == 0.0

    def test_neighbour_by_vertex_id(self, unit_triangle: Triangle) -> None:
        other = Triangle.from_vertices(
            1, unit_triangle.vertices[1], Vertex(3, np.array([1.0, 1.0, 0.0])), unit_triangle.vertices[2]
        )
        far = Triangle.from_vertices(
            2, unit_triangle.vertices[0], Vertex(4, np.array([5.0, 0.0, 0.0])), Vertex(5, np.array([5.0, 1.0, 0.0]))
        )
        assert unit_triangle.is_neighbor_by_vertex_id(other)
        assert not unit_triangle.is_neighbor_by_vertex_id(far)
        assert not unit_triangle.is_neighbor_by_vertex_id(unit_triangle)


class TestLine:

    def test_from_points_with_minimum(self) -> None:
        line = Line.from_points(np.zeros(3), np.array([0.0, 0.0, 2.0]), min_point=np.array([0.0, 0.0, 1.0]))

        assert np.allclose(line.direction, [0.0, 0.0, 1.0])
        assert line.min_abscissa == pytest.approx(1.0)

    def test_distance_and_projection(self) -> None:
        line = Line(np.zeros(3), np.array([2.0, 0.0, 0.0]))

        assert line.distance(np.array([3.0, 4.0, 0.0])) == pytest.approx(4.0)
        assert np.allclose(line.project(np.array([3.0, 4.0, 0.0])), [3.0, 0.0, 0.0])

    def test_zero_direction_rejected(self) -> None:
        with pytest.raises(ValueError):
            Line(np.zeros(3), np.zeros(3))


# ===================================================================
# MESH
# ===================================================================


class TestFacetMesh:
    """Geodetic-grid mesh invariants."""

    def test_grid_counts(self, sphere_mesh: FacetMesh) -> None:
        assert sphere_mesh.vertices.shape == (4902, 3)
        assert len(sphere_mesh) == 9800

    def test_pole_and_ring_layout(self) -> None:
        vertices, _ = build_geodetic_grid(10000.0, 51, 100)

        assert np.allclose(vertices[0], [0.0, 0.0, -10000.0])
        assert np.allclose(vertices[-1], [0.0, 0.0, 10000.0])
        ring_lat = np.degrees(np.arcsin(vertices[1:-1:100, 2] / 10000.0))
        assert np.allclose(np.diff(ring_lat), 3.6)

    def test_outward_normals(self, sphere_mesh: FacetMesh) -> None:
        dots = np.einsum("ij,ij->i", sphere_mesh.face_normals, sphere_mesh.face_centroids)
        assert np.all(dots > 0.0)

    def test_closed_surface(self, sphere_mesh: FacetMesh) -> None:
        """Every edge is shared by exactly two triangles."""
        assert all(len(sphere_mesh.neighbors_of(i)) == 3 for i in range(len(sphere_mesh)))

    def test_neighbor_links_are_symmetric(self, sphere_mesh: FacetMesh) -> None:
        for i in range(0, len(sphere_mesh), 97):
            for j in sphere_mesh.neighbors_of(i):
                assert i in sphere_mesh.neighbors_of(j)
                assert sphere_mesh[i].is_neighbor_by_vertex_id(sphere_mesh[j])

    def test_vertex_adjacency(self, sphere_mesh: FacetMesh) -> None:
        south, north = 0, len(sphere_mesh.vertices) - 1

        assert len(sphere_mesh.triangles_of_vertex(south)) == 100
        assert sphere_mesh.vertex_neighbors(south) == tuple(range(1, 101))
        assert sphere_mesh.vertex_neighbors(north) == tuple(range(north - 100, north))
        assert len(sphere_mesh.triangles_of_vertex(2500)) == 6
        assert len(sphere_mesh.vertex_neighbors(2500)) == 6
        for t in sphere_mesh.triangles_of_vertex(2500):
            assert 2500 in [v.id for v in sphere_mesh[t].vertices]
        for n in sphere_mesh.vertex_neighbors(2500):
            assert 2500 in sphere_mesh.vertex_neighbors(n)

    def test_surface_close_to_sphere(self, sphere_mesh: FacetMesh) -> None:
        area = sphere_mesh.metadata["total_surface_area"]
        assert area == pytest.approx(4.0 * np.pi * 1.0e8, rel=5e-3)
        assert area < 4.0 * np.pi * 1.0e8

    def test_triangle_ids_match_indices(self, sphere_mesh: FacetMesh) -> None:
        assert all(sphere_mesh[i].id == i for i in range(0, len(sphere_mesh), 101))

    def test_invalid_arrays(self) -> None:
        with pytest.raises(ValueError):
            FacetMesh(np.zeros((3, 2)), np.array([[0, 1, 2]]))
        with pytest.raises(ValueError):
            FacetMesh(np.eye(3), np.array([[0, 1, 3]]))
        with pytest.raises(ValueError):
            FacetMesh(np.eye(3), np.zeros((0, 3), dtype=np.int64))

    def test_transformed_vertices_recomputes_summary(self, sphere_mesh: FacetMesh) -> None:
        scaled = sphere_mesh.transformed_vertices(2.0 * sphere_mesh.vertices)

        assert scaled.metadata["max_vertex_norm"] == pytest.approx(20000.0)
        assert scaled.metadata["total_surface_area"] == pytest.approx(
            4.0 * sphere_mesh.metadata["total_surface_area"]
        )
        assert scaled.metadata["type"] == "spheroid"


class TestMeshBuilder:

    def test_flattened_poles(self, flattened_mesh: FacetMesh) -> None:
        norms = np.linalg.norm(flattened_mesh.vertices, axis=1)
        assert norms.min() == pytest.approx(8000.0)
        assert norms.max() == pytest.approx(10000.0)

    def test_invalid_grid(self) -> None:
        with pytest.raises(ValueError):
            build_geodetic_grid(1.0, n_lat=50)
        with pytest.raises(ValueError):
            build_geodetic_grid(-1.0)
        with pytest.raises(ValueError):
            build_geodetic_grid(1.0, flattening=1.0)

    def test_crater_makes_body_non_convex(self) -> None:
        mesh = build_spheroid_mesh(10000.0, 21, 40)
        carved = carve_crater(mesh, np.radians(60.0), 0.0, 3000.0, 800.0)
        norms = np.linalg.norm(carved.vertices, axis=1)

        assert norms.min() < 10000.0 - 500.0
        assert carved.metadata["crater_depth"] == 800.0
        assert carved.metadata["min_vertex_norm"] == pytest.approx(norms.min())
        assert np.array_equal(carved.triangles, mesh.triangles)
