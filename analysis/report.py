"""Body shape reports persisted as JSON.

A report gathers the mesh summary, the companion ellipsoids and the
altitude / radial-distance statistics of a :class:`FacetBodyShape`, and
optionally a field-of-view summary, so that they can be inspected or
compared without rebuilding the body.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import numpy as np

from shape_engine.body_shape import FacetBodyShape
from shape_engine.constants import hash_array
from shape_engine.ellipsoid import EllipsoidType
from shape_engine.field_data import FieldData

logger = logging.getLogger(__name__)


def build_shape_report(
    shape: FacetBodyShape,
    ellipsoid_types: Optional[list[EllipsoidType]] = None,
    field_data: Optional[FieldData] = None,
) -> dict:
    """Summarise a body shape.

    Parameters
    ----------
    shape : FacetBodyShape
        Body to summarise.
    ellipsoid_types : list of EllipsoidType, optional
        Ellipsoid variants to report; all variants when omitted.
    field_data : FieldData, optional
        Field-of-view result to include.

    Returns
    -------
    dict
        JSON-ready report.
    """
    if ellipsoid_types is None:
        ellipsoid_types = list(EllipsoidType)

    mesh = shape.mesh
    report: dict = {
        "name": shape.name,
        "frame": shape.body_frame.name,
        "mesh": {
            "num_vertices": mesh.vertices.shape[0],
            "num_triangles": len(mesh),
            "total_surface": mesh.metadata.get("total_surface_area"),
            "min_norm": shape.min_norm,
            "max_norm": shape.max_norm,
            "max_slope_deg": np.degrees(shape.max_slope),
            "vertices_sha256": hash_array(mesh.vertices),
            "metadata": mesh.metadata,
        },
        "ellipsoids": {},
    }

    for ellipsoid_type in ellipsoid_types:
        ellipsoid = shape.get_ellipsoid(ellipsoid_type)
        report["ellipsoids"][ellipsoid_type.value] = {
            "equatorial_radius": ellipsoid.equatorial_radius,
            "flattening": ellipsoid.flattening,
            "altitude": shape.compute_statistics_for_altitude(ellipsoid).to_dict(),
            "radial_distance": shape.compute_statistics_for_radial_distance(ellipsoid).to_dict(),
        }

    if field_data is not None:
        report["field"] = {
            "date": str(field_data.date),
            "num_visible": len(field_data),
            "visible_surface": field_data.visible_surface,
            "visible_ids": [t.id for t in field_data.visible_triangles],
            "contour_length": field_data.contour.shape[0],
        }
    return report


def save_report(report: dict, path: Path | str) -> Path:
    """Write a report as indented JSON; returns the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(_sanitize_for_json(report), f, indent=2, ensure_ascii=False)
    logger.info("Report saved: %s", path)
    return path


def load_report(path: Path | str) -> dict:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Report not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _sanitize_for_json(obj: object) -> object:
    """Recursively convert NumPy types and other non-JSON types to Python natives."""
    if isinstance(obj, dict):
        return {str(k): _sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize_for_json(v) for v in obj]
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        value = float(obj)
        return value if np.isfinite(value) else None
    if isinstance(obj, float) and not np.isfinite(obj):
        return None
    if isinstance(obj, np.ndarray):
        return _sanitize_for_json(obj.tolist())
    if isinstance(obj, np.bool_):
        return bool(obj)
    return obj
