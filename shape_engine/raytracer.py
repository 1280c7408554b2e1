"""BVH-accelerated line/triangle intersection with Möller-Trumbore.

Implements a flattened (linear) Bounding Volume Hierarchy over the body
mesh for line intersection and visibility (masking) queries. All
inner-loop functions are compiled with Numba ``@njit(cache=True)``.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)

Design Notes
------------
- **Flattened BVH**: Nodes are stored in contiguous 1D float64 arrays
  (no Python objects, no recursion in traversal) for Numba compatibility
  and cache locality.
- **Node layout** (8 doubles per node):
  ``[bbox_min_x, min_y, min_z, bbox_max_x, max_y, max_z, child_or_start, count_or_right]``
  - If ``count_or_right < 0``: leaf node → ``child_or_start`` = first triangle index,
    ``|count_or_right|`` = number of triangles.
  - If ``count_or_right >= 0``: internal node → ``child_or_start`` = left child node index,
    ``count_or_right`` = right child node index.
- **Lines vs rays**: body queries use unbounded lines, so the line
  kernel reports every crossing with its signed parameter ``t``; the
  occlusion kernel only accepts crossings strictly inside a segment.
- **Precision**: float64 throughout; ε = 1e-10 for zero-tests.

References
----------
- Möller, T. & Trumbore, B. (1997). "Fast, Minimum Storage Ray-Triangle
  Intersection." J. Graphics Tools, 2(1), 21-28.
- Wald, I. (2007). "On fast Construction of SAH-based Bounding Volume
  Hierarchies." Proc. IEEE Symp. Interactive Ray Tracing, pp. 33-40.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numba import njit, prange, boolean

from shape_engine.mesh import FacetMesh

logger = logging.getLogger(__name__)


# ===================================================================
# Constants
# ===================================================================

_DEFAULT_EPSILON: float = 1e-10
_DEFAULT_MAX_LEAF: int = 4
_INF: float = 1e30
_STACK_SIZE: int = 64


# ===================================================================
# NODE LAYOUT — indices into the flat node array
# ===================================================================
_BBOX_MIN_X = 0
_BBOX_MIN_Y = 1
_BBOX_MIN_Z = 2
_BBOX_MAX_X = 3
_BBOX_MAX_Y = 4
_BBOX_MAX_Z = 5
_CHILD_OR_START = 6
_COUNT_OR_RIGHT = 7
_NODE_SIZE = 8  # floats per node


# ===================================================================
# MÖLLER-TRUMBORE LINE-TRIANGLE INTERSECTION — Numba JIT
# ===================================================================


@njit(cache=True, fastmath=False)
def line_triangle_parameter(
    origin: np.ndarray,
    direction: np.ndarray,
    v0: np.ndarray,
    v1: np.ndarray,
    v2: np.ndarray,
    epsilon: float,
) -> float:
    """Möller-Trumbore test for an unbounded line.

    Tests if the line L(t) = origin + t * direction crosses the triangle
    defined by vertices v0, v1, v2, for any real ``t``.

    Parameters
    ----------
    origin : np.ndarray
        Line origin point [x, y, z]. Shape: (3,).
    direction : np.ndarray
        Line direction vector. Shape: (3,). Need not be normalized.
    v0, v1, v2 : np.ndarray
        Triangle vertex positions. Shape: (3,) each.
    epsilon : float
        Zero-test tolerance on the determinant and the barycentric
        bounds; closes the gaps along shared edges.

    Returns
    -------
    float
        Signed parameter ``t`` of the crossing, NaN if there is none.

    Notes
    -----
    ``fastmath=False`` is CRITICAL to prevent the compiler from reordering
    floating-point operations, which would break the epsilon comparisons
    and let lines leak between adjacent triangles.
    """
    # Edge vectors
    e1_x = v1[0] - v0[0]
    e1_y = v1[1] - v0[1]
    e1_z = v1[2] - v0[2]

    e2_x = v2[0] - v0[0]
    e2_y = v2[1] - v0[1]
    e2_z = v2[2] - v0[2]

    # P = direction × e2
    p_x = direction[1] * e2_z - direction[2] * e2_y
    p_y = direction[2] * e2_x - direction[0] * e2_z
    p_z = direction[0] * e2_y - direction[1] * e2_x

    # Determinant = e1 · P
    det = e1_x * p_x + e1_y * p_y + e1_z * p_z

    # Line parallel to the triangle plane
    if det > -epsilon and det < epsilon:
        return np.nan

    inv_det = 1.0 / det

    # T = origin - v0
    t_x = origin[0] - v0[0]
    t_y = origin[1] - v0[1]
    t_z = origin[2] - v0[2]

    # u = (T · P) * inv_det: first barycentric coordinate
    u = (t_x * p_x + t_y * p_y + t_z * p_z) * inv_det

    if u < -epsilon or u > 1.0 + epsilon:
        return np.nan

    # Q = T × e1
    q_x = t_y * e1_z - t_z * e1_y
    q_y = t_z * e1_x - t_x * e1_z
    q_z = t_x * e1_y - t_y * e1_x

    # v = (direction · Q) * inv_det: second barycentric coordinate
    v = (direction[0] * q_x + direction[1] * q_y + direction[2] * q_z) * inv_det

    if v < -epsilon or u + v > 1.0 + epsilon:
        return np.nan

    # t = (e2 · Q) * inv_det: signed parameter along the line
    return (e2_x * q_x + e2_y * q_y + e2_z * q_z) * inv_det


# ===================================================================
# RAY-AABB INTERSECTION — Slab Method (Numba JIT)
# ===================================================================


@njit(cache=True, fastmath=False)
def ray_aabb_intersect(
    ray_origin: np.ndarray,
    inv_dir: np.ndarray,
    bbox_min: np.ndarray,
    bbox_max: np.ndarray,
    t_min_limit: float,
    t_max_limit: float,
) -> boolean:
    """Test if a parametric interval of a line crosses an AABB.

    Uses the slab method with precomputed inverse direction to avoid
    division. Handles lines parallel to slab planes via large finite
    inverse components.

    Parameters
    ----------
    ray_origin : np.ndarray
        Line origin [x, y, z]. Shape: (3,).
    inv_dir : np.ndarray
        Precomputed 1.0 / direction for each axis. Shape: (3,).
    bbox_min : np.ndarray
        AABB minimum corner. Shape: (3,).
    bbox_max : np.ndarray
        AABB maximum corner. Shape: (3,).
    t_min_limit, t_max_limit : float
        Parametric interval of interest.

    Returns
    -------
    bool
        True if the line intersects the AABB within [t_min_limit, t_max_limit].
    """
    t_min = t_min_limit
    t_max = t_max_limit

    for axis in range(3):
        t1 = (bbox_min[axis] - ray_origin[axis]) * inv_dir[axis]
        t2 = (bbox_max[axis] - ray_origin[axis]) * inv_dir[axis]

        # Swap so t1 <= t2
        if t1 > t2:
            t1, t2 = t2, t1

        if t1 > t_min:
            t_min = t1
        if t2 < t_max:
            t_max = t2

        if t_min > t_max:
            return False

    return True


@njit(cache=True, fastmath=False)
def _inverse_direction(direction: np.ndarray) -> np.ndarray:
    inv_dir = np.empty(3, dtype=np.float64)
    for axis in range(3):
        if direction[axis] == 0.0:
            inv_dir[axis] = _INF
        else:
            inv_dir[axis] = 1.0 / direction[axis]
    return inv_dir


# ===================================================================
# BVH TRAVERSAL — Stack-based, No Recursion (Numba JIT)
# ===================================================================


@njit(cache=True, fastmath=False)
def _line_hits_bvh(
    origin: np.ndarray,
    direction: np.ndarray,
    bvh_nodes: np.ndarray,
    tri_verts: np.ndarray,
    ordered_tri_indices: np.ndarray,
    epsilon: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Collect every triangle crossed by an unbounded line.

    Parameters
    ----------
    origin : np.ndarray
        Line origin. Shape: (3,).
    direction : np.ndarray
        Line direction. Shape: (3,).
    bvh_nodes : np.ndarray
        Flattened BVH node array. Shape: (num_nodes * 8,).
    tri_verts : np.ndarray
        Triangle vertices. Shape: (num_triangles, 3, 3).
    ordered_tri_indices : np.ndarray
        Triangle indices ordered by BVH leaf assignment. Shape: (num_triangles,).
    epsilon : float
        Intersection epsilon.

    Returns
    -------
    hit_triangles : np.ndarray
        Indices of the crossed triangles (traversal order). dtype: int64.
    hit_params : np.ndarray
        Signed line parameter of each crossing. dtype: float64.
    """
    inv_dir = _inverse_direction(direction)

    capacity = 16
    hit_triangles = np.empty(capacity, dtype=np.int64)
    hit_params = np.empty(capacity, dtype=np.float64)
    num_hits = 0

    stack = np.empty(_STACK_SIZE, dtype=np.int64)
    stack_ptr = 0
    stack[stack_ptr] = 0  # Push root node index
    stack_ptr += 1

    bbox_min_tmp = np.empty(3, dtype=np.float64)
    bbox_max_tmp = np.empty(3, dtype=np.float64)

    while stack_ptr > 0:
        stack_ptr -= 1
        base = stack[stack_ptr] * _NODE_SIZE

        bbox_min_tmp[0] = bvh_nodes[base + _BBOX_MIN_X]
        bbox_min_tmp[1] = bvh_nodes[base + _BBOX_MIN_Y]
        bbox_min_tmp[2] = bvh_nodes[base + _BBOX_MIN_Z]
        bbox_max_tmp[0] = bvh_nodes[base + _BBOX_MAX_X]
        bbox_max_tmp[1] = bvh_nodes[base + _BBOX_MAX_Y]
        bbox_max_tmp[2] = bvh_nodes[base + _BBOX_MAX_Z]

        if not ray_aabb_intersect(origin, inv_dir, bbox_min_tmp, bbox_max_tmp, -_INF, _INF):
            continue

        count_or_right = bvh_nodes[base + _COUNT_OR_RIGHT]

        if count_or_right < 0:
            # LEAF NODE: test triangles
            start = int(bvh_nodes[base + _CHILD_OR_START])
            count = int(-count_or_right)
            for i in range(start, start + count):
                tri_idx = ordered_tri_indices[i]
                t_hit = line_triangle_parameter(
                    origin, direction, tri_verts[tri_idx, 0], tri_verts[tri_idx, 1],
                    tri_verts[tri_idx, 2], epsilon,
                )
                if np.isnan(t_hit):
                    continue
                if num_hits == capacity:
                    # Grow output buffers
                    capacity *= 2
                    new_tri = np.empty(capacity, dtype=np.int64)
                    new_par = np.empty(capacity, dtype=np.float64)
                    new_tri[:num_hits] = hit_triangles[:num_hits]
                    new_par[:num_hits] = hit_params[:num_hits]
                    hit_triangles = new_tri
                    hit_params = new_par
                hit_triangles[num_hits] = tri_idx
                hit_params[num_hits] = t_hit
                num_hits += 1
        else:
            # INTERNAL NODE: push children
            stack[stack_ptr] = int(bvh_nodes[base + _CHILD_OR_START])
            stack_ptr += 1
            stack[stack_ptr] = int(count_or_right)
            stack_ptr += 1

    return hit_triangles[:num_hits].copy(), hit_params[:num_hits].copy()


@njit(cache=True, fastmath=False)
def _segment_occluded_bvh(
    start_point: np.ndarray,
    end_point: np.ndarray,
    bvh_nodes: np.ndarray,
    tri_verts: np.ndarray,
    ordered_tri_indices: np.ndarray,
    epsilon: float,
    end_tolerance: float,
) -> boolean:
    """Test if any triangle crosses the open segment ``]start, end[``.

    Crossings closer than ``end_tolerance`` to ``end_point`` are ignored,
    so that the facets sharing the end vertex do not occlude it.
    Returns True on the FIRST accepted crossing (early exit).
    """
    direction = np.empty(3, dtype=np.float64)
    for axis in range(3):
        direction[axis] = end_point[axis] - start_point[axis]
    length = np.sqrt(direction[0] ** 2 + direction[1] ** 2 + direction[2] ** 2)
    if length == 0.0:
        return False
    t_limit = 1.0 - end_tolerance / length

    inv_dir = _inverse_direction(direction)

    stack = np.empty(_STACK_SIZE, dtype=np.int64)
    stack_ptr = 0
    stack[stack_ptr] = 0
    stack_ptr += 1

    bbox_min_tmp = np.empty(3, dtype=np.float64)
    bbox_max_tmp = np.empty(3, dtype=np.float64)

    while stack_ptr > 0:
        stack_ptr -= 1
        base = stack[stack_ptr] * _NODE_SIZE

        bbox_min_tmp[0] = bvh_nodes[base + _BBOX_MIN_X]
        bbox_min_tmp[1] = bvh_nodes[base + _BBOX_MIN_Y]
        bbox_min_tmp[2] = bvh_nodes[base + _BBOX_MIN_Z]
        bbox_max_tmp[0] = bvh_nodes[base + _BBOX_MAX_X]
        bbox_max_tmp[1] = bvh_nodes[base + _BBOX_MAX_Y]
        bbox_max_tmp[2] = bvh_nodes[base + _BBOX_MAX_Z]

        if not ray_aabb_intersect(start_point, inv_dir, bbox_min_tmp, bbox_max_tmp, 0.0, 1.0):
            continue

        count_or_right = bvh_nodes[base + _COUNT_OR_RIGHT]

        if count_or_right < 0:
            start = int(bvh_nodes[base + _CHILD_OR_START])
            count = int(-count_or_right)
            for i in range(start, start + count):
                tri_idx = ordered_tri_indices[i]
                t_hit = line_triangle_parameter(
                    start_point, direction, tri_verts[tri_idx, 0], tri_verts[tri_idx, 1],
                    tri_verts[tri_idx, 2], epsilon,
                )
                if t_hit > 0.0 and t_hit < t_limit:
                    return True  # Early exit, masking confirmed
        else:
            stack[stack_ptr] = int(bvh_nodes[base + _CHILD_OR_START])
            stack_ptr += 1
            stack[stack_ptr] = int(count_or_right)
            stack_ptr += 1

    return False


@njit(cache=True, parallel=True, fastmath=False)
def compute_occlusion_map(
    points: np.ndarray,
    viewpoint: np.ndarray,
    bvh_nodes: np.ndarray,
    tri_verts: np.ndarray,
    ordered_tri_indices: np.ndarray,
    epsilon: float,
    end_tolerance: float,
) -> np.ndarray:
    """Compute a binary occlusion map of surface points.

    For each point, casts a segment from the viewpoint to the point and
    tests whether the body crosses it before the point.

    Parameters
    ----------
    points : np.ndarray
        Surface points (typically mesh vertices). Shape: (num_points, 3).
    viewpoint : np.ndarray
        Observer position in the body frame. Shape: (3,).
    bvh_nodes : np.ndarray
        Flattened BVH node array.
    tri_verts : np.ndarray
        Triangle vertices. Shape: (num_triangles, 3, 3).
    ordered_tri_indices : np.ndarray
        Ordered triangle indices for BVH leaves.
    epsilon : float
        Intersection epsilon.
    end_tolerance : float
        Minimum distance between a masking crossing and the point.

    Returns
    -------
    occluded : np.ndarray
        True where the point is hidden from the viewpoint. Shape: (num_points,).
    """
    num_points = points.shape[0]
    occluded = np.zeros(num_points, dtype=np.bool_)

    for i in prange(num_points):
        occluded[i] = _segment_occluded_bvh(
            viewpoint, points[i], bvh_nodes, tri_verts, ordered_tri_indices,
            epsilon, end_tolerance,
        )

    return occluded


# ===================================================================
# BVH CONSTRUCTION — Python (one-time cost, not JIT-compiled)
# ===================================================================


def build_bvh(
    mesh: FacetMesh,
    max_leaf_triangles: int = 4,
    sah_num_bins: int = 16,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Build a flattened BVH from a triangle mesh using binned SAH.

    Parameters
    ----------
    mesh : FacetMesh
        Body mesh.
    max_leaf_triangles : int
        Maximum number of triangles per leaf node. Default: 4.
    sah_num_bins : int
        Number of bins for SAH cost evaluation. Default: 16.

    Returns
    -------
    bvh_nodes : np.ndarray
        Flattened node array. Shape: (num_nodes * 8,), dtype: float64.
    tri_verts : np.ndarray
        Triangle vertex positions in mesh order.
        Shape: (num_triangles, 3, 3), dtype: float64.
    ordered_indices : np.ndarray
        Triangle indices in BVH leaf order. Shape: (num_triangles,), dtype: int64.
    """
    num_triangles = mesh.triangles.shape[0]
    logger.info(
        "Building BVH for %d triangles (max_leaf=%d, sah_bins=%d)...",
        num_triangles,
        max_leaf_triangles,
        sah_num_bins,
    )

    tri_verts = np.ascontiguousarray(mesh.tri_verts, dtype=np.float64)

    # Per-triangle AABBs and centroids
    tri_bboxes_min = tri_verts.min(axis=1)
    tri_bboxes_max = tri_verts.max(axis=1)
    tri_centroids = tri_verts.mean(axis=1)

    # Working index array (reordered during construction)
    indices = np.arange(num_triangles, dtype=np.int64)

    # Worst case: 2*N - 1 nodes for N triangles
    max_nodes = 2 * num_triangles
    nodes_flat = np.zeros(max_nodes * _NODE_SIZE, dtype=np.float64)

    node_count = [0]
    leaf_count = [0]

    def _allocate_node() -> int:
        idx = node_count[0]
        node_count[0] += 1
        return idx

    def _make_leaf(base: int, start: int, count: int) -> None:
        nodes_flat[base + _CHILD_OR_START] = float(start)
        nodes_flat[base + _COUNT_OR_RIGHT] = float(-count)
        leaf_count[0] += 1

    def _build_recursive(start: int, end: int) -> int:
        """Recursively build BVH. Returns node index."""
        node_idx = _allocate_node()
        base = node_idx * _NODE_SIZE
        count = end - start

        bbox_min = tri_bboxes_min[indices[start:end]].min(axis=0)
        bbox_max = tri_bboxes_max[indices[start:end]].max(axis=0)
        nodes_flat[base + _BBOX_MIN_X: base + _BBOX_MAX_X] = bbox_min
        nodes_flat[base + _BBOX_MAX_X: base + _CHILD_OR_START] = bbox_max

        if count <= max_leaf_triangles:
            _make_leaf(base, start, count)
            return node_idx

        best_axis, best_split = _find_best_split_sah(
            indices, start, end, tri_centroids, tri_bboxes_min, tri_bboxes_max,
            bbox_min, bbox_max, sah_num_bins,
        )

        if best_axis < 0:
            # No plane beats a leaf: split at the median of the longest axis
            best_axis = int(np.argmax(bbox_max - bbox_min))
            mid = start
        else:
            mid = _partition_indices(indices, start, end, best_axis, best_split, tri_centroids)

        # Fallback: median split along the chosen axis
        if mid == start or mid == end:
            sub_indices = indices[start:end].copy()
            order = np.argsort(tri_centroids[sub_indices, best_axis], kind="stable")
            indices[start:end] = sub_indices[order]
            mid = (start + end) // 2

        left_idx = _build_recursive(start, mid)
        right_idx = _build_recursive(mid, end)

        nodes_flat[base + _CHILD_OR_START] = float(left_idx)
        nodes_flat[base + _COUNT_OR_RIGHT] = float(right_idx)

        return node_idx

    _build_recursive(0, num_triangles)

    actual_nodes = node_count[0]
    bvh_nodes = nodes_flat[: actual_nodes * _NODE_SIZE].copy()

    logger.info(
        "BVH built: %d nodes (%d leaves), %.2f MB node memory",
        actual_nodes,
        leaf_count[0],
        bvh_nodes.nbytes / 1e6,
    )

    return bvh_nodes, tri_verts, indices.copy()


def _find_best_split_sah(
    indices: np.ndarray,
    start: int,
    end: int,
    centroids: np.ndarray,
    bboxes_min: np.ndarray,
    bboxes_max: np.ndarray,
    parent_bbox_min: np.ndarray,
    parent_bbox_max: np.ndarray,
    num_bins: int,
) -> tuple[int, float]:
    """Best split plane of a node by binned SAH.

    Centroids are binned along each axis; left and right bounds of every
    candidate plane come from prefix / suffix reductions over the bins, so
    all planes of an axis are costed at once.

    Returns
    -------
    best_axis : int
        Split axis (0, 1, 2), or -1 if no plane beats a leaf.
    best_split : float
        Split position along ``best_axis``.
    """
    sub_idx = indices[start:end]
    count = sub_idx.shape[0]
    parent_sa = _surface_area(parent_bbox_min, parent_bbox_max)
    if parent_sa < 1e-30:
        return -1, 0.0

    # Leaf cost with unit intersection cost
    best_cost, best_axis, best_split = float(count), -1, 0.0
    extent = parent_bbox_max - parent_bbox_min
    sub_min = bboxes_min[sub_idx]
    sub_max = bboxes_max[sub_idx]

    for axis in np.flatnonzero(extent >= 1e-10):
        width = extent[axis] / num_bins
        bins = ((centroids[sub_idx, axis] - parent_bbox_min[axis]) / width).astype(np.int64)
        np.clip(bins, 0, num_bins - 1, out=bins)
        counts = np.bincount(bins, minlength=num_bins)
        lo = np.full((num_bins, 3), _INF, dtype=np.float64)
        hi = np.full((num_bins, 3), -_INF, dtype=np.float64)
        np.minimum.at(lo, bins, sub_min)
        np.maximum.at(hi, bins, sub_max)

        # Plane k lies between bins k and k + 1
        left_n = np.cumsum(counts)[:-1]
        right_n = count - left_n
        left_sa = _surface_area(np.minimum.accumulate(lo)[:-1], np.maximum.accumulate(hi)[:-1])
        right_sa = _surface_area(
            np.minimum.accumulate(lo[::-1])[::-1][1:],
            np.maximum.accumulate(hi[::-1])[::-1][1:],
        )
        cost = 1.0 + (left_sa * left_n + right_sa * right_n) / parent_sa
        cost[(left_n == 0) | (right_n == 0)] = np.inf

        k = int(np.argmin(cost))
        if cost[k] < best_cost:
            best_cost = float(cost[k])
            best_axis = int(axis)
            best_split = float(parent_bbox_min[axis] + (k + 1) * width)

    return best_axis, best_split


def _surface_area(bbox_min: np.ndarray, bbox_max: np.ndarray) -> np.ndarray | float:
    """Surface area of one AABB, or of a stack of AABBs."""
    d = bbox_max - bbox_min
    return 2.0 * (d[..., 0] * d[..., 1] + d[..., 1] * d[..., 2] + d[..., 2] * d[..., 0])


def _partition_indices(
    indices: np.ndarray,
    start: int,
    end: int,
    axis: int,
    split: float,
    centroids: np.ndarray,
) -> int:
    """Move triangles whose centroid lies below ``split`` to the front of the range.

    Returns the first index of the right partition.
    """
    sub = indices[start:end]
    left = centroids[sub, axis] < split
    indices[start:end] = np.concatenate([sub[left], sub[~left]])
    return start + int(left.sum())


# ===================================================================
# HIGH-LEVEL API
# ===================================================================


@dataclass(frozen=True)
class BVH:
    """Built hierarchy and its intersection settings.

    Attributes
    ----------
    nodes : np.ndarray
        Flattened node array.
    tri_verts : np.ndarray
        Triangle vertices in mesh order. Shape: (num_triangles, 3, 3).
    ordered_indices : np.ndarray
        Triangle indices in leaf order.
    epsilon : float
        Möller-Trumbore zero-test tolerance.
    """

    nodes: np.ndarray
    tri_verts: np.ndarray
    ordered_indices: np.ndarray
    epsilon: float = _DEFAULT_EPSILON

    @staticmethod
    def from_mesh(
        mesh: FacetMesh,
        max_leaf_triangles: int = _DEFAULT_MAX_LEAF,
        sah_num_bins: int = 16,
        epsilon: float = _DEFAULT_EPSILON,
    ) -> BVH:
        nodes, tri_verts, ordered = build_bvh(mesh, max_leaf_triangles, sah_num_bins)
        return BVH(nodes, tri_verts, ordered, epsilon)


def intersect_line(bvh: BVH, origin: np.ndarray, direction: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """All crossings of an unbounded line with the mesh.

    Parameters
    ----------
    bvh : BVH
        Mesh hierarchy.
    origin : np.ndarray
        Line origin. Shape: (3,).
    direction : np.ndarray
        Unit line direction. Shape: (3,).

    Returns
    -------
    triangles : np.ndarray
        Crossed triangle indices, sorted by line parameter.
    params : np.ndarray
        Line parameters (abscissae for a unit direction), ascending.
    """
    tris, params = _line_hits_bvh(
        np.ascontiguousarray(origin, dtype=np.float64),
        np.ascontiguousarray(direction, dtype=np.float64),
        bvh.nodes,
        bvh.tri_verts,
        bvh.ordered_indices,
        bvh.epsilon,
    )
    order = np.lexsort((tris, params))
    return tris[order], params[order]


def occluded_points(
    bvh: BVH,
    viewpoint: np.ndarray,
    points: np.ndarray,
    end_tolerance: float,
) -> np.ndarray:
    """Occlusion flags of ``points`` seen from ``viewpoint``."""
    points = np.ascontiguousarray(points, dtype=np.float64).reshape(-1, 3)
    if points.shape[0] == 0:
        return np.zeros(0, dtype=bool)
    logger.debug("Masking test for %d points", points.shape[0])
    return compute_occlusion_map(
        points,
        np.ascontiguousarray(viewpoint, dtype=np.float64),
        bvh.nodes,
        bvh.tri_verts,
        bvh.ordered_indices,
        bvh.epsilon,
        end_tolerance,
    )
