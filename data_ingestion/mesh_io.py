"""Triangle-set persistence in NumPy ``.npz`` archives.

An archive holds ``vertices`` (N, 3) float64, ``triangles`` (M, 3)
int64 and, optionally, ``metadata_json`` with the mesh metadata.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import numpy as np

from shape_engine.mesh import FacetMesh

logger = logging.getLogger(__name__)


def save_mesh(mesh: FacetMesh, path: str | Path) -> Path:
    """Write ``mesh`` to a compressed ``.npz`` archive; returns the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(
        path,
        vertices=mesh.vertices,
        triangles=mesh.triangles,
        metadata_json=np.array(json.dumps(mesh.metadata, default=str)),
    )
    if path.suffix != ".npz":
        path = path.with_name(path.name + ".npz")
    logger.info("Mesh saved to %s (%d triangles)", path, len(mesh))
    return path


def load_mesh(path: str | Path) -> FacetMesh:
    """Read a mesh archive written by :func:`save_mesh`.

    Raises
    ------
    FileNotFoundError
        If the archive does not exist.
    ValueError
        If the archive lacks the vertex or triangle arrays, or they are
        malformed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Mesh file not found: {path}")

    logger.info("Loading mesh from: %s", path)
    with np.load(path, allow_pickle=False) as archive:
        missing = {"vertices", "triangles"} - set(archive.files)
        if missing:
            raise ValueError(f"Mesh archive {path} lacks arrays: {sorted(missing)}")
        vertices = archive["vertices"]
        triangles = archive["triangles"]
        metadata = {}
        if "metadata_json" in archive.files:
            metadata = json.loads(str(archive["metadata_json"]))

    metadata["source"] = str(path)
    return FacetMesh(vertices, triangles, metadata)
