"""Result values of visibility and line-of-sight queries.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import numpy as np

from shape_engine.mesh import Triangle


@dataclass(frozen=True)
class Intersection:
    """Line/body intersection: the crossed facet and the crossing point."""

    triangle: Triangle
    point: np.ndarray


@dataclass(frozen=True)
class FieldData:
    """Triangles visible from an observer within a field of view.

    Attributes
    ----------
    date : object
        Observation date.
    visible_triangles : tuple of Triangle
        Visible triangles, in discovery order.
    visible_surface : float
        Sum of the visible triangle areas.
    contour : np.ndarray
        Ordered boundary points of the visible region, on the field
        border where the border cuts the region. Shape: (M, 3).
    """

    date: object
    visible_triangles: tuple[Triangle, ...]
    visible_surface: float
    contour: np.ndarray = field(repr=False)

    @staticmethod
    def from_triangles(date, triangles: Sequence[Triangle], contour: Optional[np.ndarray] = None) -> FieldData:
        """Field data of ``triangles``; the contour defaults to their boundary vertices."""
        triangles = tuple(triangles)
        surface = float(sum(t.surface for t in triangles))
        if contour is None:
            contour = compute_contour(triangles)
        return FieldData(date, triangles, surface, contour)

    def __len__(self) -> int:
        return len(self.visible_triangles)


@dataclass(frozen=True)
class SurfacePointedData:
    """Geometry of a line of sight pointed at the body surface.

    Angles in radians; ``phase_angle`` is NaN when the sun is below the
    local horizon of the pointed facet.
    """

    date: object
    intersection: Intersection
    distance: float
    incidence: float
    solar_incidence: float
    phase_angle: float
    resolution: float


# ---------------------------------------------------------------------------
# Contour
# ---------------------------------------------------------------------------

_EDGE_BISECTIONS = 53


def _boundary_edges(triangles: Sequence[Triangle]) -> list[tuple[int, int]]:
    """Edges used by exactly one triangle, in discovery order."""
    counts: dict[tuple[int, int], int] = {}
    first: dict[tuple[int, int], tuple[int, int]] = {}
    for tri in triangles:
        ids = [v.id for v in tri.vertices]
        for k in range(3):
            a, b = ids[k], ids[(k + 1) % 3]
            key = (a, b) if a < b else (b, a)
            counts[key] = counts.get(key, 0) + 1
            first.setdefault(key, (a, b))
    return [first[key] for key, n in counts.items() if n == 1]


def contour_vertex_ids(triangles: Sequence[Triangle]) -> list[int]:
    """Chain the boundary vertices of a set of triangles.

    Boundary edges are the edges used by a single triangle of the set.
    Starting from the first boundary edge, the walk always moves to the
    first unvisited neighbour; disconnected boundaries are appended one
    after the other. Each boundary vertex appears once.
    """
    edges = _boundary_edges(triangles)
    adjacency: dict[int, list[int]] = {}
    for a, b in edges:
        adjacency.setdefault(a, []).append(b)
        adjacency.setdefault(b, []).append(a)

    visited: set[int] = set()
    chain: list[int] = []
    for start in adjacency:
        if start in visited:
            continue
        current: Optional[int] = start
        while current is not None:
            visited.add(current)
            chain.append(current)
            current = next((n for n in adjacency[current] if n not in visited), None)
    return chain


def compute_contour(triangles: Sequence[Triangle], positions: Optional[dict[int, np.ndarray]] = None) -> np.ndarray:
    """Positions of the chained boundary vertices of a set of triangles.

    Parameters
    ----------
    triangles : sequence of Triangle
        Triangle set, e.g. the visible triangles.
    positions : dict, optional
        Vertex id → position; taken from the triangles when omitted.

    Returns
    -------
    np.ndarray
        Contour vertex positions. Shape: (M, 3).
    """
    if positions is None:
        positions = {v.id: v.position for tri in triangles for v in tri.vertices}
    chain = contour_vertex_ids(triangles)
    if not chain:
        return np.zeros((0, 3), dtype=np.float64)
    return np.array([positions[i] for i in chain], dtype=np.float64)


def locate_field_edge(
    inside: np.ndarray,
    outside: np.ndarray,
    angular_distance: Callable[[np.ndarray], float],
) -> np.ndarray:
    """Point of the segment ``[inside, outside]`` lying on a field border.

    ``angular_distance`` is positive at ``inside`` and not positive at
    ``outside``. The returned point is the inner end of the bisection
    bracket, so it stays in the field while its angular distance is
    zero to the last bit of the segment parameter.
    """
    inside = np.asarray(inside, dtype=np.float64)
    step = np.asarray(outside, dtype=np.float64) - inside
    lo, hi = 0.0, 1.0
    for _ in range(_EDGE_BISECTIONS):
        mid = 0.5 * (lo + hi)
        if angular_distance(inside + mid * step) > 0.0:
            lo = mid
        else:
            hi = mid
    return inside + lo * step
