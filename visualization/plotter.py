"""Visualization of body shape query results.

Generates figures using matplotlib:
- Visible triangle map (longitude / latitude of facet centers)
- Altitude histogram above a companion ellipsoid

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend for headless rendering

import matplotlib.pyplot as plt
import numpy as np

from shape_engine.body_shape import FacetBodyShape
from shape_engine.ellipsoid import EllipsoidType
from shape_engine.field_data import FieldData

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Color Configuration
# ---------------------------------------------------------------------------

_HIDDEN_COLOR = "#2b2b44"
_VISIBLE_COLOR = "#ffd43b"
_CONTOUR_COLOR = "#ff6b6b"
_HIST_COLOR = "#748ffc"
_BACKGROUND = "#1a1a2e"
_DPI = 150


def _style_axes(fig: plt.Figure, ax: plt.Axes, title: str, xlabel: str, ylabel: str) -> None:
    ax.set_facecolor(_BACKGROUND)
    ax.set_xlabel(xlabel, color="white")
    ax.set_ylabel(ylabel, color="white")
    ax.set_title(title, fontsize=14, fontweight="bold", color="white")
    ax.tick_params(colors="white")
    for spine in ax.spines.values():
        spine.set_edgecolor("#444")
    fig.tight_layout()


def _save(fig: plt.Figure, output_path: Path | str | None, dpi: int, what: str) -> None:
    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=dpi, facecolor=fig.get_facecolor())
        logger.info("%s saved: %s", what, output_path)
    plt.close(fig)


def _lon_lat_deg(points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    p = np.atleast_2d(points)
    lon = np.degrees(np.arctan2(p[:, 1], p[:, 0]))
    lat = np.degrees(np.arctan2(p[:, 2], np.hypot(p[:, 0], p[:, 1])))
    return lon, lat


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def plot_visible_triangles(
    shape: FacetBodyShape,
    field_data: FieldData,
    title: str = "Visible Triangles",
    output_path: Path | str | None = None,
    dpi: int = _DPI,
) -> plt.Figure:
    """Plot facet centers on a longitude/latitude map, visible ones highlighted.

    Parameters
    ----------
    shape : FacetBodyShape
        Observed body.
    field_data : FieldData
        Visibility result for ``shape``.
    title : str
        Figure title.
    output_path : Path or str, optional
        If provided, save figure to this path.
    dpi : int
        Figure resolution.

    Returns
    -------
    matplotlib.figure.Figure
        The generated figure.
    """
    fig, ax = plt.subplots(1, 1, figsize=(12, 6), facecolor=_BACKGROUND)

    visible = np.zeros(len(shape.mesh), dtype=bool)
    visible[[t.id for t in field_data.visible_triangles]] = True
    lon, lat = _lon_lat_deg(shape.mesh.face_centroids)

    ax.scatter(lon[~visible], lat[~visible], s=2, c=_HIDDEN_COLOR, edgecolors="none", rasterized=True)
    ax.scatter(lon[visible], lat[visible], s=2, c=_VISIBLE_COLOR, edgecolors="none", rasterized=True,
               label=f"visible ({int(visible.sum())})")
    if field_data.contour.shape[0] > 0:
        c_lon, c_lat = _lon_lat_deg(field_data.contour)
        ax.scatter(c_lon, c_lat, s=6, c=_CONTOUR_COLOR, edgecolors="none", label="contour")

    ax.set_xlim(-180.0, 180.0)
    ax.set_ylim(-90.0, 90.0)
    legend = ax.legend(facecolor=_BACKGROUND, edgecolor="#444", loc="lower left")
    for text in legend.get_texts():
        text.set_color("white")
    _style_axes(fig, ax, title, "Longitude [°]", "Latitude [°]")
    _save(fig, output_path, dpi, "Visibility map")
    return fig


def plot_altitude_histogram(
    shape: FacetBodyShape,
    ellipsoid_type: EllipsoidType = EllipsoidType.FITTED_ELLIPSOID,
    bins: int = 50,
    title: Optional[str] = None,
    output_path: Path | str | None = None,
    dpi: int = _DPI,
) -> plt.Figure:
    """Histogram of facet-center altitudes above a companion ellipsoid."""
    ellipsoid = shape.get_ellipsoid(ellipsoid_type)
    altitudes = ellipsoid.altitude(shape.mesh.face_centroids)
    stats = shape.compute_statistics_for_altitude(ellipsoid)

    fig, ax = plt.subplots(1, 1, figsize=(10, 5), facecolor=_BACKGROUND)
    ax.hist(altitudes, bins=bins, color=_HIST_COLOR, alpha=0.9)
    ax.axvline(stats.mean, color=_VISIBLE_COLOR, linestyle="--", linewidth=1.0, label=f"mean {stats.mean:.3g} m")
    ax.grid(True, alpha=0.2, color="white")
    legend = ax.legend(facecolor=_BACKGROUND, edgecolor="#444")
    for text in legend.get_texts():
        text.set_color("white")
    _style_axes(
        fig, ax,
        title or f"Altitude above {ellipsoid_type.value}",
        "Altitude [m]", "Facets",
    )
    _save(fig, output_path, dpi, "Altitude histogram")
    return fig


def generate_shape_plots(
    shape: FacetBodyShape,
    field_data: Optional[FieldData] = None,
    output_dir: Path | str = "output",
    dpi: int = _DPI,
) -> list[Path]:
    """Generate the standard plots of a body shape.

    Returns
    -------
    list[Path]
        Paths to all generated plot files.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    saved: list[Path] = []

    p = output_dir / "altitude_histogram.png"
    plot_altitude_histogram(shape, output_path=p, dpi=dpi)
    saved.append(p)

    if field_data is not None:
        p = output_dir / "visible_triangles.png"
        plot_visible_triangles(shape, field_data, output_path=p, dpi=dpi)
        saved.append(p)

    logger.info("Generated %d plots in %s", len(saved), output_dir)
    return saved
