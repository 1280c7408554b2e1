"""Faceted body shape: geometric queries on a closed triangle mesh.

The shape owns an immutable :class:`FacetMesh` attached to a body-fixed
frame and answers line intersection, distance, neighbour, visibility,
eclipse, surface-pointed data, local altitude and ellipsoid statistics
queries. Inputs given in another frame are transformed into the body
frame through the frame tree at the query date.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)

Design Notes
------------
- Line queries go through the BVH line kernel (all crossings, both
  directions); the caller's lower abscissa bound is applied afterwards.
- Visibility: a facet is visible from a point when it faces the point,
  its three vertices are in the field of view and at least one vertex
  is not masked by another part of the body. Masking uses the parallel
  segment-occlusion kernel on the vertices.
- Distance neighbours use a KD-tree over facet centers (exact ball
  query); order neighbours walk the edge-adjacency links.
- Companion ellipsoids are built on first request and cached per
  :class:`EllipsoidType` under a re-entrant lock.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

import numpy as np
from scipy.spatial import cKDTree

from orientation.frames import Frame, Transform
from orientation.rotation import vector_angle
from shape_engine.constants import EngineConfig, default_config
from shape_engine.ellipsoid import (
    EllipsoidType,
    GeodeticPoint,
    OneAxisEllipsoid,
    fit_ellipsoid,
    inner_ellipsoid,
    outer_ellipsoid,
)
from shape_engine.errors import ConvergenceError, NoIntersectionError
from shape_engine.field_data import (
    FieldData,
    Intersection,
    SurfacePointedData,
    contour_vertex_ids,
    locate_field_edge,
)
from shape_engine.field_of_view import OmnidirectionalField
from shape_engine.geometry import Line
from shape_engine.mesh import FacetMesh, Triangle
from shape_engine.observer import ObserverState
from shape_engine.raytracer import BVH, intersect_line, occluded_points
from shape_engine.statistics import StreamingStatistics

logger = logging.getLogger(__name__)

_STATISTICS_CHUNK: int = 4096

NeighborOrigin = Union[Triangle, GeodeticPoint, np.ndarray, Sequence[float]]


class MarginType(Enum):
    """Kind of margin applied by :meth:`FacetBodyShape.resize`."""

    DISTANCE = "distance"
    SCALE = "scale"


class FacetBodyShape:
    """Closed triangle mesh attached to a body-fixed frame.

    Parameters
    ----------
    name : str
        Body name.
    body_frame : Frame
        Body-fixed frame in which the mesh is expressed.
    mesh : FacetMesh
        Closed, outward-wound triangle mesh.
    ellipsoid_type : EllipsoidType
        Companion ellipsoid used for geodetic conversions.
    config : EngineConfig, optional
        Tolerances; built-in defaults when omitted.
    """

    def __init__(
        self,
        name: str,
        body_frame: Frame,
        mesh: FacetMesh,
        ellipsoid_type: EllipsoidType = EllipsoidType.FITTED_ELLIPSOID,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self._name = name
        self._body_frame = body_frame
        self._mesh = mesh
        self._ellipsoid_type = ellipsoid_type
        self._config = config if config is not None else default_config()

        norms = np.linalg.norm(mesh.vertices, axis=1)
        self._min_norm = float(norms.min())
        self._max_norm = float(norms.max())
        self._max_slope = max(vector_angle(t.normal, t.center) for t in mesh.triangle_list)

        rt = self._config.raytracer
        self._bvh = BVH.from_mesh(mesh, rt.max_leaf_triangles, rt.sah_num_bins, rt.epsilon)
        self._center_tree = cKDTree(mesh.face_centroids)

        edges = np.sort(mesh.triangles[:, [0, 1, 1, 2, 2, 0]].reshape(-1, 2), axis=1)
        self._edges = np.unique(edges, axis=0)

        self._ellipsoids: dict[EllipsoidType, OneAxisEllipsoid] = {}
        self._lock = threading.RLock()

        logger.info(
            "Body shape '%s': %d facets, norms [%.6g, %.6g], max slope %.2f deg",
            name, len(mesh), self._min_norm, self._max_norm, np.degrees(self._max_slope),
        )

    # -------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def body_frame(self) -> Frame:
        return self._body_frame

    @property
    def mesh(self) -> FacetMesh:
        return self._mesh

    @property
    def triangles(self) -> tuple[Triangle, ...]:
        return self._mesh.triangle_list

    @property
    def min_norm(self) -> float:
        """Distance from the origin to the closest vertex."""
        return self._min_norm

    @property
    def max_norm(self) -> float:
        """Distance from the origin to the farthest vertex."""
        return self._max_norm

    @property
    def max_slope(self) -> float:
        """Largest angle between a facet normal and its center direction [rad]."""
        return self._max_slope

    @property
    def ellipsoid_type(self) -> EllipsoidType:
        return self._ellipsoid_type

    @property
    def config(self) -> EngineConfig:
        return self._config

    def __repr__(self) -> str:
        return f"FacetBodyShape({self._name!r}, {len(self._mesh)} facets)"

    # -------------------------------------------------------------------
    # Frame helpers
    # -------------------------------------------------------------------

    def _to_body(self, frame: Optional[Frame], date) -> Transform:
        if frame is None or frame is self._body_frame:
            return Transform.identity()
        return frame.transform_to(self._body_frame, date)

    def _hits(self, line: Line) -> tuple[np.ndarray, np.ndarray]:
        """Crossings of a body-frame line beyond its lower abscissa bound."""
        tris, params = intersect_line(self._bvh, line.origin, line.direction)
        keep = params > line.min_abscissa
        return tris[keep], params[keep]

    def _closest_hit(self, line: Line, close: np.ndarray) -> Optional[tuple[int, np.ndarray]]:
        tris, params = self._hits(line)
        if tris.size == 0:
            return None
        points = line.origin + params[:, None] * line.direction
        k = int(np.argmin(np.sum((points - close) ** 2, axis=1)))
        return int(tris[k]), points[k]

    # ===================================================================
    # LINE QUERIES
    # ===================================================================

    def get_intersection(self, line: Line, close: np.ndarray, frame: Optional[Frame], date) -> Optional[Intersection]:
        """Intersection of ``line`` with the body closest to ``close``.

        Parameters
        ----------
        line : Line
            Line in ``frame``; crossings at or below its minimum abscissa
            are ignored.
        close : np.ndarray
            Reference point in ``frame``. Shape: (3,).
        frame : Frame or None
            Frame of the inputs and of the returned point; ``None`` for the
            body frame.
        date : object
            Query date.

        Returns
        -------
        Intersection or None
            Hit facet and hit point (in ``frame``), ``None`` on a miss.
        """
        to_body = self._to_body(frame, date)
        hit = self._closest_hit(to_body.transform_line(line), to_body.transform_position(close))
        if hit is None:
            return None
        tri_idx, point = hit
        return Intersection(self._mesh[tri_idx], to_body.inverse().transform_position(point))

    def get_intersection_points(self, line: Line, frame: Optional[Frame], date) -> np.ndarray:
        """All distinct crossings of ``line`` ordered by abscissa, in ``frame``.

        Returns
        -------
        np.ndarray
            Shape: (K, 3); K = 0 when the line misses the body.
        """
        to_body = self._to_body(frame, date)
        line_b = to_body.transform_line(line)
        _, params = self._hits(line_b)
        points = line_b.origin + params[:, None] * line_b.direction
        threshold = self._config.shape.duplicate_distance_sq
        kept: list[np.ndarray] = []
        for p in points:
            if all(np.sum((p - q) ** 2) >= threshold for q in kept):
                kept.append(p)
        if not kept:
            return np.zeros((0, 3), dtype=np.float64)
        back = to_body.inverse()
        return np.array([back.transform_position(p) for p in kept])

    def get_intersection_point(
        self, line: Line, close: np.ndarray, frame: Optional[Frame], date, altitude: float = 0.0
    ) -> Optional[GeodeticPoint]:
        """Geodetic coordinates of :meth:`get_intersection`.

        Raises
        ------
        ValueError
            If ``altitude`` is not zero.
        """
        if altitude != 0.0:
            raise ValueError("Intersection at non-zero altitude is not available for faceted bodies.")
        to_body = self._to_body(frame, date)
        hit = self._closest_hit(to_body.transform_line(line), to_body.transform_position(close))
        if hit is None:
            return None
        return self.get_ellipsoid().transform(hit[1])

    def distance_to(self, line: Line, frame: Optional[Frame], date) -> float:
        """Minimum distance between the (unbounded) line and the body; 0 when crossing."""
        line_b = self._to_body(frame, date).transform_line(line)
        tris, _ = intersect_line(self._bvh, line_b.origin, line_b.direction)
        if tris.size > 0:
            return 0.0
        return float(self._edge_distances(line_b).min())

    def _edge_distances(self, line: Line) -> np.ndarray:
        """Distance from ``line`` to every mesh edge."""
        v = self._mesh.vertices
        p0 = v[self._edges[:, 0]]
        e = v[self._edges[:, 1]] - p0
        w = p0 - line.origin
        d = line.direction
        w_perp = w - (w @ d)[:, None] * d
        e_perp = e - (e @ d)[:, None] * d
        den = np.sum(e_perp * e_perp, axis=1)
        s = np.zeros_like(den)
        nz = den > 0.0
        s[nz] = -np.sum(w_perp[nz] * e_perp[nz], axis=1) / den[nz]
        s = np.clip(s, 0.0, 1.0)
        return np.linalg.norm(w_perp + s[:, None] * e_perp, axis=1)

    def closest_point_to(
        self, line: Line, frame: Optional[Frame] = None, date=None
    ) -> tuple[np.ndarray, np.ndarray]:
        """Closest pair (point on line, point on body), in ``frame``.

        Ties are broken by the smaller abscissa on the line, so that a
        crossing line returns its first entry point.
        """
        to_body = self._to_body(frame, date)
        line_b = to_body.transform_line(line)
        lower = line_b.distances(self._mesh.face_centroids) - self._mesh.sphere_radii
        best = np.inf
        best_abscissa = np.inf
        result: Optional[tuple[np.ndarray, np.ndarray]] = None
        for i in np.argsort(lower, kind="stable"):
            if lower[i] > best:
                break
            on_line, on_body = self._mesh[int(i)].closest_point_to(line_b)
            dist = float(np.linalg.norm(on_line - on_body))
            s = line_b.abscissa(on_line)
            if dist < best or (dist == best and s < best_abscissa):
                best, best_abscissa, result = dist, s, (on_line, on_body)
        back = to_body.inverse()
        return back.transform_position(result[0]), back.transform_position(result[1])

    # ===================================================================
    # NEIGHBOURS
    # ===================================================================

    def _reference_point(self, origin: NeighborOrigin) -> np.ndarray:
        if isinstance(origin, Triangle):
            return origin.center
        if isinstance(origin, GeodeticPoint):
            return self.to_cartesian(origin)
        return np.asarray(origin, dtype=np.float64).reshape(3)

    def _closest_triangle(self, point: np.ndarray) -> Triangle:
        """Facet at minimum distance from a body-frame point."""
        lower = np.linalg.norm(self._mesh.face_centroids - point, axis=1) - self._mesh.sphere_radii
        best = np.inf
        closest: Optional[Triangle] = None
        for i in np.argsort(lower, kind="stable"):
            if lower[i] > best:
                break
            tri = self._mesh[int(i)]
            dist = tri.distance_to_point(point)
            if dist < best:
                best, closest = dist, tri
        return closest

    def get_neighbors(self, origin: NeighborOrigin, max_distance: float) -> list[Triangle]:
        """Facets whose center lies within ``max_distance`` of the origin.

        Parameters
        ----------
        origin : Triangle, GeodeticPoint or array-like
            Reference: facet center, geodetic point (through the
            configured ellipsoid) or body-frame position.
        max_distance : float
            Inclusive distance bound.

        Returns
        -------
        list of Triangle
            Matching facets, in mesh order.
        """
        ref = self._reference_point(origin)
        radius = max_distance * (1.0 + 1e-9) + 1e-12
        candidates = np.asarray(self._center_tree.query_ball_point(ref, radius), dtype=np.int64)
        if candidates.size == 0:
            return []
        dist = np.linalg.norm(self._mesh.face_centroids[candidates] - ref, axis=1)
        selected = np.sort(candidates[dist <= max_distance])
        return [self._mesh[int(i)] for i in selected]

    def get_neighbors_by_order(self, origin: NeighborOrigin, order: int) -> list[Triangle]:
        """Facets at most ``order`` edge hops away from the origin facet.

        The origin facet is the given triangle, or the facet closest to
        the given point. Order 0 returns the origin facet alone.
        """
        if order < 0:
            raise ValueError(f"Neighbour order must be non-negative, got {order}")
        if isinstance(origin, Triangle):
            seed = origin
        else:
            seed = self._closest_triangle(self._reference_point(origin))
        visited = {seed.id}
        result = [seed]
        frontier = [seed.id]
        for _ in range(order):
            next_frontier = []
            for idx in frontier:
                for n in self._mesh.neighbors_of(idx):
                    if n not in visited:
                        visited.add(n)
                        next_frontier.append(n)
                        result.append(self._mesh[n])
            if not next_frontier:
                break
            frontier = next_frontier
        return result

    # ===================================================================
    # VISIBILITY
    # ===================================================================

    def is_masked(self, triangle: Triangle, position: np.ndarray) -> bool:
        """Whether every vertex of ``triangle`` is hidden from ``position`` (body frame)."""
        occluded = occluded_points(
            self._bvh, position, triangle.positions, self._config.shape.masking_tolerance
        )
        return bool(np.all(occluded))

    def is_visible(
        self,
        triangle: Triangle,
        position: np.ndarray,
        field_of_view=None,
        attitude: Optional[np.ndarray] = None,
    ) -> bool:
        """Whether ``triangle`` is seen from ``position`` (body frame).

        Parameters
        ----------
        field_of_view : optional
            Sensor field; ``None`` accepts every direction.
        attitude : np.ndarray, optional
            Body → sensor rotation; identity when omitted.
        """
        position = np.asarray(position, dtype=np.float64)
        if not triangle.is_visible(position):
            return False
        if field_of_view is not None:
            rotation = np.eye(3) if attitude is None else np.asarray(attitude, dtype=np.float64)
            for v in triangle.vertices:
                if not field_of_view.is_in_the_field(rotation @ (v.position - position)):
                    return False
        return not self.is_masked(triangle, position)

    def _visible_mask(
        self,
        indices: np.ndarray,
        position: np.ndarray,
        sensor_from_body: np.ndarray,
        field_of_view,
        fov_cache: dict[int, bool],
        occlusion_cache: dict[int, bool],
    ) -> np.ndarray:
        """Vectorised visibility of facets ``indices``; caches are per query."""
        mesh = self._mesh
        visible = np.zeros(indices.size, dtype=bool)
        if indices.size == 0:
            return visible

        facing = np.einsum("ij,ij->i", mesh.face_normals[indices], position - mesh.face_centroids[indices]) > 0.0
        candidates = np.flatnonzero(facing)
        if candidates.size == 0:
            return visible

        corner_ids = mesh.triangles[indices[candidates]]
        for vid in np.unique(corner_ids):
            vid = int(vid)
            if vid not in fov_cache:
                direction = sensor_from_body @ (mesh.vertices[vid] - position)
                fov_cache[vid] = bool(field_of_view.is_in_the_field(direction))
        in_fov = np.array([[fov_cache[int(v)] for v in row] for row in corner_ids], dtype=bool).reshape(-1, 3)
        candidates = candidates[np.all(in_fov, axis=1)]
        if candidates.size == 0:
            return visible

        corner_ids = mesh.triangles[indices[candidates]]
        pending = [int(v) for v in np.unique(corner_ids) if int(v) not in occlusion_cache]
        if pending:
            flags = occluded_points(
                self._bvh, position, mesh.vertices[pending], self._config.shape.masking_tolerance
            )
            occlusion_cache.update(zip(pending, (bool(f) for f in flags)))
        masked = np.array([[occlusion_cache[int(v)] for v in row] for row in corner_ids], dtype=bool).reshape(-1, 3)
        visible[candidates[~np.all(masked, axis=1)]] = True
        return visible

    def _field_contour(
        self,
        visible: list[Triangle],
        position: np.ndarray,
        sensor_from_body: np.ndarray,
        field_of_view,
    ) -> np.ndarray:
        """Boundary of ``visible``, moved onto the field border where the border cuts it.

        A boundary vertex with a neighbour outside the field is replaced by
        the nearest border crossing along its edges to such neighbours.
        Vertices bounded by the limb or by masking are kept.
        """
        ids = contour_vertex_ids(visible)
        if not ids:
            return np.zeros((0, 3), dtype=np.float64)
        vertices = self._mesh.vertices

        def angular_distance(point: np.ndarray) -> float:
            return float(field_of_view.get_angular_distance(sensor_from_body @ (point - position)))

        contour = np.empty((len(ids), 3), dtype=np.float64)
        for k, vid in enumerate(ids):
            inside = vertices[vid]
            best = inside
            best_dist = np.inf
            for n in self._mesh.vertex_neighbors(vid):
                if angular_distance(vertices[n]) > 0.0:
                    continue
                crossing = locate_field_edge(inside, vertices[n], angular_distance)
                dist = float(np.sum((crossing - inside) ** 2))
                if dist < best_dist:
                    best, best_dist = crossing, dist
            contour[k] = best
        return contour

    def get_field_data(self, state: ObserverState, field_of_view, line_of_sight: Optional[np.ndarray] = None) -> FieldData:
        """Facets visible from an observer within a field of view.

        Parameters
        ----------
        state : ObserverState
            Observer date, position and attitude.
        field_of_view : object
            Field exposing ``is_in_the_field(direction)`` and
            ``get_angular_distance(direction)`` for sensor-frame directions.
        line_of_sight : np.ndarray, optional
            Sensor-frame direction. When given and hitting the body, the
            search propagates from the hit facet through visible
            neighbours only; this is faster but may miss facets for fields
            approaching a hemisphere.

        Returns
        -------
        FieldData
            Visible facets, their total surface and the contour.
        """
        position, sensor_from_body = state.in_frame(self._body_frame)
        fov_cache: dict[int, bool] = {}
        occlusion_cache: dict[int, bool] = {}

        seed = None
        if line_of_sight is not None:
            los_body = sensor_from_body.T @ np.asarray(line_of_sight, dtype=np.float64)
            seed = self._closest_hit(Line(position, los_body, 0.0), position)

        if seed is None:
            indices = np.arange(len(self._mesh), dtype=np.int64)
            mask = self._visible_mask(indices, position, sensor_from_body, field_of_view, fov_cache, occlusion_cache)
            visible = [self._mesh[int(i)] for i in indices[mask]]
            logger.debug("Field data (full scan): %d visible facets", len(visible))
            contour = self._field_contour(visible, position, sensor_from_body, field_of_view)
            return FieldData.from_triangles(state.date, visible, contour)

        visible = []
        seed_idx = np.array([seed[0]], dtype=np.int64)
        if self._visible_mask(seed_idx, position, sensor_from_body, field_of_view, fov_cache, occlusion_cache)[0]:
            visited = {seed[0]}
            visible.append(self._mesh[seed[0]])
            frontier = [seed[0]]
            while frontier:
                candidates = []
                for idx in frontier:
                    for n in self._mesh.neighbors_of(idx):
                        if n not in visited:
                            visited.add(n)
                            candidates.append(n)
                candidates = np.asarray(candidates, dtype=np.int64)
                mask = self._visible_mask(
                    candidates, position, sensor_from_body, field_of_view, fov_cache, occlusion_cache
                )
                frontier = [int(i) for i in candidates[mask]]
                visible.extend(self._mesh[i] for i in frontier)
        logger.debug("Field data (propagation): %d visible facets", len(visible))
        contour = self._field_contour(visible, position, sensor_from_body, field_of_view)
        return FieldData.from_triangles(state.date, visible, contour)

    def get_never_visible_triangles(self, states: Iterable[ObserverState], field_of_view) -> list[Triangle]:
        """Facets not visible from any of ``states``, in mesh order."""
        seen = np.zeros(len(self._mesh), dtype=bool)
        indices = np.arange(len(self._mesh), dtype=np.int64)
        for state in states:
            position, sensor_from_body = state.in_frame(self._body_frame)
            seen |= self._visible_mask(indices, position, sensor_from_body, field_of_view, {}, {})
        return [self._mesh[int(i)] for i in indices[~seen]]

    def _enlightened_mask(self, sun, date, indices: np.ndarray) -> np.ndarray:
        sun_position = np.asarray(sun.get_pv_coordinates(date, self._body_frame)[0], dtype=np.float64)
        return self._visible_mask(indices, sun_position, np.eye(3), OmnidirectionalField(), {}, {})

    def get_never_enlightened_triangles(self, dates: Iterable, sun) -> list[Triangle]:
        """Facets never facing an unmasked sun at ``dates``, in mesh order."""
        lit = np.zeros(len(self._mesh), dtype=bool)
        indices = np.arange(len(self._mesh), dtype=np.int64)
        for date in dates:
            lit |= self._enlightened_mask(sun, date, indices)
        return [self._mesh[int(i)] for i in indices[~lit]]

    def get_visible_and_enlightened_triangles(
        self, states: Iterable[ObserverState], sun, field_of_view
    ) -> list[Triangle]:
        """Facets visible and lit at the same state at least once, in discovery order."""
        indices = np.arange(len(self._mesh), dtype=np.int64)
        found = np.zeros(len(self._mesh), dtype=bool)
        result: list[Triangle] = []
        for state in states:
            position, sensor_from_body = state.in_frame(self._body_frame)
            mask = self._visible_mask(indices, position, sensor_from_body, field_of_view, {}, {})
            mask &= self._enlightened_mask(sun, state.date, indices)
            new = indices[mask & ~found]
            found[new] = True
            result.extend(self._mesh[int(i)] for i in new)
        return result

    # ===================================================================
    # ECLIPSE AND SURFACE DATA
    # ===================================================================

    def is_in_eclipse(self, date, position: np.ndarray, frame: Optional[Frame], sun) -> bool:
        """Whether the body hides the sun from ``position`` (given in ``frame``)."""
        position = np.asarray(position, dtype=np.float64)
        sun_position = np.asarray(sun.get_pv_coordinates(date, frame or self._body_frame)[0], dtype=np.float64)
        intersection = self.get_intersection(Line.from_points(position, sun_position), position, frame, date)
        if intersection is None:
            return False
        point = intersection.point
        return float(np.dot(position - point, sun_position - point)) < 0.0

    def get_surface_pointed_data_ephemeris(
        self,
        states: Iterable[ObserverState],
        line_of_sight: np.ndarray,
        sun,
        pixel_fov: float,
    ) -> list[SurfacePointedData]:
        """Line-of-sight geometry for each observer state.

        Parameters
        ----------
        states : iterable of ObserverState
            Observer states.
        line_of_sight : np.ndarray
            Pointing direction in the sensor frame. Shape: (3,).
        sun : position provider
            Sun provider (``get_pv_coordinates(date, frame)``).
        pixel_fov : float
            Angular size of one pixel [rad].

        Returns
        -------
        list of SurfacePointedData
            One entry per state; intersection points in the body frame.

        Raises
        ------
        NoIntersectionError
            If the line of sight misses the body for some state.
        """
        los = np.asarray(line_of_sight, dtype=np.float64)
        result = []
        for state in states:
            position, sensor_from_body = state.in_frame(self._body_frame)
            direction = sensor_from_body.T @ los
            hit = self._closest_hit(Line(position, direction, 0.0), position)
            if hit is None:
                raise NoIntersectionError(f"Line of sight misses {self._name} at {state.date!r}")
            tri_idx, point = hit
            triangle = self._mesh[tri_idx]
            sun_position = np.asarray(sun.get_pv_coordinates(state.date, self._body_frame)[0], dtype=np.float64)

            distance = float(np.linalg.norm(point - position))
            incidence = vector_angle(-triangle.normal, direction)
            solar_incidence = vector_angle(-triangle.normal, point - sun_position)
            phase = vector_angle(direction, point - sun_position) if solar_incidence <= np.pi / 2.0 else np.nan
            resolution = distance * np.cos(incidence) * (
                np.tan(incidence + pixel_fov / 2.0) - np.tan(incidence - pixel_fov / 2.0)
            )
            result.append(
                SurfacePointedData(
                    state.date,
                    Intersection(triangle, point),
                    distance,
                    incidence,
                    solar_incidence,
                    phase,
                    float(resolution),
                )
            )
        return result

    # ===================================================================
    # ELLIPSOIDS AND GEODETIC COORDINATES
    # ===================================================================

    def get_ellipsoid(self, ellipsoid_type: Optional[EllipsoidType] = None) -> OneAxisEllipsoid:
        """Companion ellipsoid of the given type (configured type by default)."""
        ellipsoid_type = ellipsoid_type or self._ellipsoid_type
        with self._lock:
            ellipsoid = self._ellipsoids.get(ellipsoid_type)
            if ellipsoid is None:
                ellipsoid = self._build_ellipsoid(ellipsoid_type)
                self._ellipsoids[ellipsoid_type] = ellipsoid
            return ellipsoid

    def _build_ellipsoid(self, ellipsoid_type: EllipsoidType) -> OneAxisEllipsoid:
        label = f"{self._name} {ellipsoid_type.value}"
        vertices = self._mesh.vertices
        if ellipsoid_type is EllipsoidType.INNER_SPHERE:
            return OneAxisEllipsoid(self._min_norm, 0.0, label)
        if ellipsoid_type is EllipsoidType.OUTER_SPHERE:
            return OneAxisEllipsoid(self._max_norm, 0.0, label)
        if ellipsoid_type is EllipsoidType.FITTED_ELLIPSOID:
            shape = self._config.shape
            return fit_ellipsoid(
                vertices,
                self._min_norm,
                self._max_norm,
                tolerance=shape.fit_tolerance,
                max_evaluations=shape.fit_max_evaluations,
                first_guess_flattening=shape.first_guess_flattening,
                name=label,
            )
        flattening = self.get_ellipsoid(EllipsoidType.FITTED_ELLIPSOID).flattening
        if ellipsoid_type is EllipsoidType.INNER_ELLIPSOID:
            return inner_ellipsoid(vertices, flattening, label)
        return outer_ellipsoid(vertices, flattening, label)

    def transform(self, point: np.ndarray, frame: Optional[Frame] = None, date=None) -> GeodeticPoint:
        """Geodetic coordinates of a point given in ``frame``."""
        point_b = self._to_body(frame, date).transform_position(point)
        return self.get_ellipsoid().transform(point_b)

    def to_cartesian(self, point: GeodeticPoint) -> np.ndarray:
        """Body-frame position of a geodetic point."""
        return self.get_ellipsoid().to_cartesian(point)

    def transform_from_zenith(
        self, point: np.ndarray, zenith: Optional[np.ndarray], frame: Optional[Frame], date
    ) -> GeodeticPoint:
        """Topocentric coordinates relative to the closest facet.

        Latitude and longitude are the spherical angles of ``zenith`` (the
        closest facet normal when ``None``); altitude is the distance from
        the point to the plane of the closest facet.
        """
        to_body = self._to_body(frame, date)
        point_b = to_body.transform_position(point)
        facet = self._closest_triangle(point_b)
        normal = facet.normal if zenith is None else to_body.transform_vector(zenith)
        latitude = float(np.arctan2(normal[2], np.hypot(normal[0], normal[1])))
        longitude = float(np.arctan2(normal[1], normal[0]))
        altitude = max(0.0, abs(float(np.dot(point_b - facet.center, facet.normal))))
        return GeodeticPoint(latitude, longitude, altitude)

    def get_local_altitude(self, latitude: float, longitude: float) -> float:
        """Signed distance from the ellipsoid surface point to the mesh.

        Positive when the mesh lies above the ellipsoid along the local
        radius.
        """
        point = self.to_cartesian(GeodeticPoint(latitude, longitude, 0.0))
        hit = self._closest_hit(Line.from_points(point, np.zeros(3)), point)
        if hit is None:
            raise NoIntersectionError(f"No facet along the radius at lat={latitude}, lon={longitude}")
        intersection = hit[1]
        distance = float(np.linalg.norm(intersection - point))
        return distance if np.dot(intersection, intersection) > np.dot(point, point) else -distance

    def get_local_altitude_along(self, direction: np.ndarray) -> float:
        gp = self.transform(direction)
        return self.get_local_altitude(gp.latitude, gp.longitude)

    def get_over_perpendicular_steep_facets(self) -> list[Triangle]:
        """Facets whose normal makes an angle >= π/2 with their center direction."""
        if self._max_slope < np.pi / 2.0:
            return []
        return [t for t in self._mesh.triangle_list if vector_angle(t.normal, t.center) >= np.pi / 2.0]

    # ===================================================================
    # STATISTICS
    # ===================================================================

    def _resolve_ellipsoid(self, ellipsoid: Union[OneAxisEllipsoid, EllipsoidType]) -> OneAxisEllipsoid:
        if isinstance(ellipsoid, EllipsoidType):
            return self.get_ellipsoid(ellipsoid)
        return ellipsoid

    def _accumulate(self, values_of) -> StreamingStatistics:
        stats = StreamingStatistics()
        centers = self._mesh.face_centroids
        for start in range(0, centers.shape[0], _STATISTICS_CHUNK):
            stats.add_values(values_of(centers[start:start + _STATISTICS_CHUNK]))
        return stats

    def compute_statistics_for_radial_distance(
        self, ellipsoid: Union[OneAxisEllipsoid, EllipsoidType]
    ) -> StreamingStatistics:
        """Statistics of facet-center radial distances to ``ellipsoid``."""
        return self._accumulate(self._resolve_ellipsoid(ellipsoid).radial_distance)

    def compute_statistics_for_altitude(
        self, ellipsoid: Union[OneAxisEllipsoid, EllipsoidType]
    ) -> StreamingStatistics:
        """Statistics of facet-center geodetic altitudes above ``ellipsoid``."""
        return self._accumulate(self._resolve_ellipsoid(ellipsoid).altitude)

    # ===================================================================
    # DERIVED SHAPES
    # ===================================================================

    def resize(self, margin_type: MarginType, value: float) -> FacetBodyShape:
        """Body with a margin applied to every vertex.

        Parameters
        ----------
        margin_type : MarginType
            ``DISTANCE``: vertices move radially by ``value``
            (``value > -min_norm``). ``SCALE``: vertices are scaled by
            ``value`` (``value > 0``).
        value : float
            Margin value.

        Raises
        ------
        ValueError
            If the margin is out of range or the type is unknown.
        """
        vertices = np.array(self._mesh.vertices, dtype=np.float64)
        if margin_type is MarginType.DISTANCE:
            if not value > -self._min_norm:
                raise ValueError(f"Distance margin must be greater than {-self._min_norm}, got {value}")
            norms = np.linalg.norm(vertices, axis=1)
            nz = norms > 0.0
            vertices[nz] *= ((norms[nz] + value) / norms[nz])[:, None]
        elif margin_type is MarginType.SCALE:
            if not value > 0.0:
                raise ValueError(f"Scale margin must be positive, got {value}")
            vertices *= value
        else:
            raise ValueError(f"Unknown margin type: {margin_type!r}")
        logger.info("Resizing '%s' (%s, %g)", self._name, getattr(margin_type, "name", margin_type), value)
        return FacetBodyShape(
            self._name,
            self._body_frame,
            self._mesh.transformed_vertices(vertices),
            self._ellipsoid_type,
            self._config,
        )

    def get_apparent_radius(
        self,
        observer_position: np.ndarray,
        occulted_position: np.ndarray,
        frame: Optional[Frame] = None,
        date=None,
    ) -> float:
        """Apparent radius of the body seen from an observer toward an occulted body.

        Bisection on the angle between the observer→center direction and
        the grazing line of sight, in the plane containing the observer,
        the body center and the occulted body.

        Raises
        ------
        ConvergenceError
            If the step budget is exhausted before the threshold is met.
        """
        to_body = self._to_body(frame, date)
        observer = to_body.transform_position(observer_position)
        occulted = to_body.transform_position(occulted_position)
        to_center = -observer
        d = float(np.linalg.norm(to_center))

        axis = np.cross(to_center, occulted - observer)
        axis_norm = float(np.linalg.norm(axis))
        if axis_norm == 0.0:
            return self._min_norm
        axis /= axis_norm

        shape = self._config.shape
        min_angle = np.arcsin(min(self._min_norm / d, 1.0))
        max_angle = np.arcsin(min(self._max_norm / d, 1.0))
        radius = (self._min_norm + self._max_norm) / 2.0
        angle = np.arcsin(min(radius / d, 1.0))
        error = radius - self._min_norm
        steps = 0
        while steps < shape.max_apparent_radius_steps and abs(error) > shape.apparent_radius_threshold:
            previous = radius
            direction = _rotate(to_center, axis, angle)
            if self._hits(Line(observer, direction, 0.0))[0].size > 0:
                min_angle = angle
            else:
                max_angle = angle
            angle = (min_angle + max_angle) / 2.0
            radius = d * abs(np.sin(angle))
            error = radius - previous
            steps += 1
        if abs(error) > shape.apparent_radius_threshold:
            raise ConvergenceError(
                f"Apparent radius did not converge in {shape.max_apparent_radius_steps} steps"
            )
        return float(radius)


def _rotate(v: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """Rotate ``v`` by ``angle`` about the unit ``axis`` (Rodrigues)."""
    c, s = np.cos(angle), np.sin(angle)
    return v * c + np.cross(axis, v) * s + axis * np.dot(axis, v) * (1.0 - c)
