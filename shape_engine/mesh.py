"""Closed triangle mesh of a celestial body.

Holds the immutable vertex and triangle set of a faceted body together
with flat numpy views (vertices, indices, normals, areas, centroids)
consumed by the BVH kernels, and the edge-adjacency links used by
neighbour propagation.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)

Notes
-----
Triangles are wound counter-clockwise when seen from outside the body,
so that ``cross(v1 - v0, v2 - v0)`` points outward::

          v2
         /  \\
        /    \\      normal = (v1 - v0) × (v2 - v0) / |...|
       /      \\     (towards the viewer)
     v0 ------ v1
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from shape_engine.geometry import Line

logger = logging.getLogger(__name__)

_DEGENERATE_AREA: float = 1e-20
_INSIDE_TOLERANCE: float = 1e-12
_DERIVED_KEYS = frozenset({
    "num_vertices",
    "num_triangles",
    "degenerate_triangles",
    "total_surface_area",
    "min_vertex_norm",
    "max_vertex_norm",
})


# ===================================================================
# VERTEX / TRIANGLE
# ===================================================================


@dataclass(frozen=True, eq=False)
class Vertex:
    """Identified mesh vertex.

    Attributes
    ----------
    id : int
        Vertex identifier (index in the mesh vertex array).
    position : np.ndarray
        Position in the body frame. Shape: (3,).
    """

    id: int
    position: np.ndarray


@dataclass(frozen=True, eq=False)
class Triangle:
    """Planar mesh facet.

    Triangles compare and hash by identity: two triangles are the same
    only if they are the same mesh facet.

    Attributes
    ----------
    id : int
        Triangle identifier (index in the mesh triangle array).
    vertices : tuple of Vertex
        The three vertices, in winding order.
    normal : np.ndarray
        Unit outward normal. Shape: (3,).
    center : np.ndarray
        Centroid. Shape: (3,).
    surface : float
        Area of the facet (>= 0).
    sphere_radius : float
        Radius of the smallest center-based sphere enclosing the facet.
    """

    id: int
    vertices: tuple[Vertex, Vertex, Vertex]
    normal: np.ndarray
    center: np.ndarray
    surface: float
    sphere_radius: float = field(default=0.0)

    @staticmethod
    def from_vertices(tri_id: int, v0: Vertex, v1: Vertex, v2: Vertex) -> Triangle:
        """Build a triangle, deriving normal, center, surface and radius."""
        normals, areas, centers = _compute_face_properties(
            np.array([v0.position, v1.position, v2.position], dtype=np.float64),
            np.array([[0, 1, 2]], dtype=np.int64),
        )
        radius = max(float(np.linalg.norm(v.position - centers[0])) for v in (v0, v1, v2))
        return Triangle(tri_id, (v0, v1, v2), normals[0], centers[0], float(areas[0]), radius)

    @property
    def positions(self) -> np.ndarray:
        """Vertex positions. Shape: (3, 3)."""
        return np.array([v.position for v in self.vertices])

    def __repr__(self) -> str:
        ids = ", ".join(str(v.id) for v in self.vertices)
        return f"Triangle(id={self.id}, vertices=({ids}))"

    # -------------------------------------------------------------------
    # Geometric predicates
    # -------------------------------------------------------------------

    def is_visible(self, point: np.ndarray) -> bool:
        """Whether ``point`` lies on the outward side of the facet plane."""
        return float(np.dot(self.normal, np.asarray(point) - self.center)) > 0.0

    def is_neighbor_by_vertex_id(self, other: Triangle) -> bool:
        """Whether both triangles share an edge (two vertex ids)."""
        mine = {v.id for v in self.vertices}
        return other is not self and len(mine.intersection(v.id for v in other.vertices)) == 2

    def contains(self, point: np.ndarray) -> bool:
        """Point-in-triangle test for a point of the facet plane."""
        p = np.asarray(point, dtype=np.float64)
        scale = _INSIDE_TOLERANCE * max(self.sphere_radius, 1.0) ** 2
        for k in range(3):
            a = self.vertices[k].position
            b = self.vertices[(k + 1) % 3].position
            if np.dot(np.cross(b - a, p - a), self.normal) < -scale:
                return False
        return True

    def intersection(self, line: Line) -> Optional[np.ndarray]:
        """Intersection point of the unbounded ``line`` with the facet.

        Returns
        -------
        np.ndarray or None
            Point in the facet, or ``None`` if the line is parallel to the
            facet plane or crosses the plane outside the facet.
        """
        denom = float(np.dot(self.normal, line.direction))
        if abs(denom) < 1e-15:
            return None
        s = float(np.dot(self.normal, self.vertices[0].position - line.origin)) / denom
        point = line.point_at(s)
        return point if self.contains(point) else None

    # -------------------------------------------------------------------
    # Distances
    # -------------------------------------------------------------------

    def distance_to_point(self, point: np.ndarray) -> float:
        """Euclidean distance from ``point`` to the closest facet point."""
        p = np.asarray(point, dtype=np.float64)
        height = float(np.dot(p - self.center, self.normal))
        projected = p - height * self.normal
        if self.contains(projected):
            return abs(height)
        best = np.inf
        for k in range(3):
            a = self.vertices[k].position
            b = self.vertices[(k + 1) % 3].position
            ab = b - a
            t = np.clip(np.dot(p - a, ab) / max(np.dot(ab, ab), 1e-300), 0.0, 1.0)
            best = min(best, float(np.linalg.norm(p - (a + t * ab))))
        return best

    def closest_point_to(self, line: Line) -> tuple[np.ndarray, np.ndarray]:
        """Closest points between the unbounded ``line`` and the facet.

        Returns
        -------
        point_on_line, point_on_triangle : np.ndarray
            Identical points when the line crosses the facet.
        """
        hit = self.intersection(line)
        if hit is not None:
            return hit, hit
        best = None
        best_d2 = np.inf
        for k in range(3):
            on_line, on_edge = _line_segment_closest(
                line, self.vertices[k].position, self.vertices[(k + 1) % 3].position
            )
            d2 = float(np.dot(on_line - on_edge, on_line - on_edge))
            if d2 < best_d2:
                best_d2 = d2
                best = (on_line, on_edge)
        return best

    def distance_to_line(self, line: Line) -> float:
        """Minimum distance between the unbounded ``line`` and the facet."""
        on_line, on_tri = self.closest_point_to(line)
        return float(np.linalg.norm(on_line - on_tri))


def _line_segment_closest(line: Line, a: np.ndarray, b: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Closest points between an unbounded line and segment [a, b]."""
    e = b - a
    w = a - line.origin
    # Components orthogonal to the line direction
    w_perp = w - np.dot(w, line.direction) * line.direction
    e_perp = e - np.dot(e, line.direction) * line.direction
    ee = float(np.dot(e_perp, e_perp))
    t = 0.0 if ee < 1e-300 else float(np.clip(-np.dot(w_perp, e_perp) / ee, 0.0, 1.0))
    on_segment = a + t * e
    return line.project(on_segment), on_segment


# ===================================================================
# MESH CONTAINER
# ===================================================================


class FacetMesh:
    """Immutable closed triangle mesh.

    Parameters
    ----------
    vertices : np.ndarray
        Vertex positions in the body frame. Shape: (num_vertices, 3).
    triangles : np.ndarray
        Vertex indices of each triangle, outward winding.
        Shape: (num_triangles, 3).
    metadata : dict, optional
        Provenance information carried along with the mesh.

    Raises
    ------
    ValueError
        If the arrays are malformed or indices are out of range.
    """

    def __init__(
        self,
        vertices: np.ndarray,
        triangles: np.ndarray,
        metadata: Optional[dict] = None,
    ) -> None:
        vertices = np.ascontiguousarray(vertices, dtype=np.float64)
        triangles = np.ascontiguousarray(triangles, dtype=np.int64)
        _validate_arrays(vertices, triangles)

        self._vertex_array = vertices
        self._triangle_array = triangles
        self._vertex_array.setflags(write=False)
        self._triangle_array.setflags(write=False)

        normals, areas, centroids = _compute_face_properties(vertices, triangles)
        tri_verts = np.empty((triangles.shape[0], 3, 3), dtype=np.float64)
        for k in range(3):
            tri_verts[:, k, :] = vertices[triangles[:, k]]
        radii = np.max(np.linalg.norm(tri_verts - centroids[:, None, :], axis=2), axis=1)

        for arr in (normals, areas, centroids, tri_verts, radii):
            arr.setflags(write=False)
        self.face_normals = normals
        self.face_areas = areas
        self.face_centroids = centroids
        self.tri_verts = tri_verts
        self.sphere_radii = radii

        degenerate_count = int(np.sum(areas < _DEGENERATE_AREA))
        if degenerate_count > 0:
            logger.warning("  %d degenerate triangles detected (area < %.0e)", degenerate_count, _DEGENERATE_AREA)

        self._vertices = tuple(Vertex(i, vertices[i]) for i in range(vertices.shape[0]))
        self._triangles = tuple(
            Triangle(
                i,
                (self._vertices[a], self._vertices[b], self._vertices[c]),
                normals[i],
                centroids[i],
                float(areas[i]),
                float(radii[i]),
            )
            for i, (a, b, c) in enumerate(triangles)
        )
        self._neighbors, self._vertex_triangles = _build_adjacency(triangles, vertices.shape[0])

        norms = np.linalg.norm(vertices, axis=1)
        self.metadata = {
            "num_vertices": int(vertices.shape[0]),
            "num_triangles": int(triangles.shape[0]),
            "degenerate_triangles": degenerate_count,
            "total_surface_area": float(areas.sum()),
            "min_vertex_norm": float(norms.min()),
            "max_vertex_norm": float(norms.max()),
        }
        if metadata:
            self.metadata.update(metadata)

        logger.info(
            "Mesh created: %d vertices, %d triangles, %.6g surface area",
            vertices.shape[0],
            triangles.shape[0],
            self.metadata["total_surface_area"],
        )

    # -------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------

    @property
    def vertices(self) -> np.ndarray:
        """Vertex positions. Shape: (num_vertices, 3)."""
        return self._vertex_array

    @property
    def triangles(self) -> np.ndarray:
        """Triangle vertex indices. Shape: (num_triangles, 3)."""
        return self._triangle_array

    @property
    def vertex_list(self) -> tuple[Vertex, ...]:
        return self._vertices

    @property
    def triangle_list(self) -> tuple[Triangle, ...]:
        return self._triangles

    def __len__(self) -> int:
        return len(self._triangles)

    def __iter__(self):
        return iter(self._triangles)

    def __getitem__(self, index: int) -> Triangle:
        return self._triangles[index]

    def neighbors_of(self, index: int) -> tuple[int, ...]:
        """Indices of the triangles sharing an edge with triangle ``index``."""
        return self._neighbors[index]

    def triangles_of_vertex(self, vertex_id: int) -> tuple[int, ...]:
        """Indices of the triangles incident to vertex ``vertex_id``."""
        return self._vertex_triangles[vertex_id]

    def vertex_neighbors(self, vertex_id: int) -> tuple[int, ...]:
        """Ids of the vertices sharing an edge with vertex ``vertex_id``, sorted."""
        ids = {int(v) for t in self.triangles_of_vertex(vertex_id) for v in self._triangle_array[t]}
        ids.discard(vertex_id)
        return tuple(sorted(ids))

    def transformed_vertices(self, new_vertices: np.ndarray, extra_metadata: Optional[dict] = None) -> FacetMesh:
        """Mesh with the same connectivity and moved vertices.

        Provenance metadata is carried over; geometric summaries are
        recomputed.
        """
        provenance = {k: v for k, v in self.metadata.items() if k not in _DERIVED_KEYS}
        if extra_metadata:
            provenance.update(extra_metadata)
        return FacetMesh(new_vertices, self._triangle_array, provenance)


def _validate_arrays(vertices: np.ndarray, triangles: np.ndarray) -> None:
    if vertices.ndim != 2 or vertices.shape[1] != 3:
        raise ValueError(f"Vertex array must have shape (N, 3), got {vertices.shape}")
    if triangles.ndim != 2 or triangles.shape[1] != 3:
        raise ValueError(f"Triangle array must have shape (M, 3), got {triangles.shape}")
    if triangles.shape[0] == 0:
        raise ValueError("Mesh must contain at least one triangle.")
    if not np.all(np.isfinite(vertices)):
        raise ValueError("Vertex array contains non-finite values.")
    if triangles.min() < 0 or triangles.max() >= vertices.shape[0]:
        raise ValueError(
            f"Triangle indices must lie in [0, {vertices.shape[0] - 1}], "
            f"got [{triangles.min()}, {triangles.max()}]"
        )


def _build_adjacency(
    triangles: np.ndarray,
    num_vertices: int,
) -> tuple[tuple[tuple[int, ...], ...], tuple[tuple[int, ...], ...]]:
    """Edge-sharing neighbour lists and vertex → triangles map."""
    edge_owners: dict[tuple[int, int], list[int]] = {}
    vertex_triangles: list[list[int]] = [[] for _ in range(num_vertices)]
    for i, tri in enumerate(triangles.tolist()):
        for k in range(3):
            a, b = tri[k], tri[(k + 1) % 3]
            edge_owners.setdefault((min(a, b), max(a, b)), []).append(i)
            vertex_triangles[a].append(i)

    neighbors: list[list[int]] = [[] for _ in range(triangles.shape[0])]
    for owners in edge_owners.values():
        for i in owners:
            neighbors[i].extend(j for j in owners if j != i)

    return (
        tuple(tuple(sorted(set(n))) for n in neighbors),
        tuple(tuple(t) for t in vertex_triangles),
    )


def _compute_face_properties(
    vertices: np.ndarray,
    triangles: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Compute face normals, areas, and centroids for all triangles.

    Parameters
    ----------
    vertices : np.ndarray
        Vertex positions, shape (num_vertices, 3).
    triangles : np.ndarray
        Triangle vertex indices, shape (num_triangles, 3).

    Returns
    -------
    normals : np.ndarray
        Unit normals following the winding order, shape (num_triangles, 3).
    areas : np.ndarray
        Triangle areas, shape (num_triangles,).
    centroids : np.ndarray
        Triangle centroids, shape (num_triangles, 3).
    """
    v0 = vertices[triangles[:, 0]]  # (N, 3)
    v1 = vertices[triangles[:, 1]]  # (N, 3)
    v2 = vertices[triangles[:, 2]]  # (N, 3)

    # Cross product gives normal direction with magnitude = 2 * area
    cross = np.cross(v1 - v0, v2 - v0)  # (N, 3)
    norms = np.linalg.norm(cross, axis=1, keepdims=True)  # (N, 1)

    # Avoid division by zero for degenerate triangles
    safe_norms = np.where(norms > 1e-30, norms, 1.0)
    normals = cross / safe_norms

    # Degenerate triangles get the radial direction of their centroid
    centroids = (v0 + v1 + v2) / 3.0
    degenerate_mask = norms.ravel() < 1e-30
    if np.any(degenerate_mask):
        radial = centroids[degenerate_mask]
        radial_norm = np.linalg.norm(radial, axis=1, keepdims=True)
        normals[degenerate_mask] = np.where(radial_norm > 0, radial / np.where(radial_norm > 0, radial_norm, 1.0),
                                            np.array([0.0, 0.0, 1.0]))

    areas = 0.5 * norms.ravel()
    return normals, areas, centroids
