"""FacetBody — CLI entry point.

Evaluates IAU pole models and builds / inspects faceted body shapes.

Usage
-----
    python main.py pole --body Mercury --date 2003-02-01
    python main.py mesh --radius 10000 --flattening 0.2 --report
    python main.py mesh --mesh-file body.npz --fov 30 --plot

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

import numpy as np


def setup_logging(verbose: bool = False) -> None:
    """Configure structured logging."""
    fmt = "%(name)s [%(levelname)s] %(message)s"
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=fmt,
        stream=sys.stdout,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="facetbody",
        description="FacetBody — faceted body shapes and IAU pole models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python main.py pole --body Jupiter --date 2010-06-01T12:00:00\n"
            "  python main.py mesh --radius 10000 --n-lat 51 --n-lon 100\n"
            "  python main.py mesh --crater 60 0 3000 800 --fov 45 --plot --report\n"
        ),
    )
    parser.add_argument("-v", "--verbose", action="store_true", default=False, help="Enable DEBUG logging")
    sub = parser.add_subparsers(dest="command", required=True)

    pole = sub.add_parser("pole", help="Evaluate the IAU pole model of a body")
    pole.add_argument("--body", type=str, required=True, help="Body name (e.g. Mercury)")
    pole.add_argument(
        "--date",
        type=str,
        default="2000-01-01T12:00:00",
        help="TDB date, ISO format (default: J2000 epoch)",
    )
    pole.add_argument(
        "--model",
        type=str,
        default="TRUE",
        choices=["CONSTANT", "MEAN", "TRUE"],
        help="Coefficient variant (default: TRUE)",
    )
    pole.add_argument("--data", type=str, default=None, help="Coefficient YAML file (default: bundled IAU 2009)")

    mesh = sub.add_parser("mesh", help="Build or load a faceted body and report its geometry")
    mesh.add_argument("--mesh-file", type=str, default=None, help="Load a mesh archive (.npz) instead of building")
    mesh.add_argument("--name", type=str, default="Body", help="Body name (default: Body)")
    mesh.add_argument("--radius", type=float, default=10000.0, help="Equatorial radius [m] (default: 10000)")
    mesh.add_argument("--n-lat", type=int, default=51, help="Latitude points, odd (default: 51)")
    mesh.add_argument("--n-lon", type=int, default=100, help="Longitude points (default: 100)")
    mesh.add_argument("--flattening", type=float, default=0.0, help="Polar flattening (default: 0)")
    mesh.add_argument(
        "--crater",
        type=float,
        nargs=4,
        default=None,
        metavar=("LAT_DEG", "LON_DEG", "RADIUS", "DEPTH"),
        help="Carve a parabolic crater",
    )
    mesh.add_argument("--config", type=str, default=None, help="Engine configuration YAML")
    mesh.add_argument(
        "--observer-distance",
        type=float,
        default=None,
        help="Observer distance on +Z [m] (default: 2000 radii)",
    )
    mesh.add_argument("--fov", type=float, default=None, help="Circular field half-angle [deg]; enables field data")
    mesh.add_argument("--save-mesh", type=str, default=None, help="Write the mesh archive to this path")
    mesh.add_argument("--output", type=str, default="output", help="Output directory (default: output/)")
    mesh.add_argument("--report", action="store_true", default=False, help="Write report.json")
    mesh.add_argument("--plot", action="store_true", default=False, help="Write plots")

    return parser.parse_args(argv)


def _parse_date(text: str) -> float:
    from orientation.timescale import tdb_date

    dt = datetime.fromisoformat(text)
    return tdb_date(dt.year, dt.month, dt.day, dt.hour, dt.minute, dt.second + dt.microsecond * 1e-6)


def run_pole(args: argparse.Namespace) -> int:
    """Print pole direction, prime meridian angle and their rates."""
    from orientation.iau_pole import IAUPoleModelType
    from orientation.registry import IAUPoleRegistry

    logger = logging.getLogger("facetbody")
    registry = IAUPoleRegistry.from_yaml(args.data).freeze() if args.data else IAUPoleRegistry.default()
    model = registry.get(args.body)
    model_type = IAUPoleModelType[args.model]
    date = _parse_date(args.date)

    pole = model.get_pole(date, model_type)
    pole_dot = model.get_pole_derivative(date, model_type)
    w = model.get_prime_meridian_angle(date, model_type)
    w_dot = model.get_prime_meridian_angle_derivative(date, model_type)

    logger.info("=" * 60)
    logger.info("  %s — %s (%s)", args.body, model, model_type.name)
    logger.info("=" * 60)
    logger.info("  Date (s from J2000 TDB): %.3f", date)
    logger.info("  Pole:        [% .12f, % .12f, % .12f]", *pole)
    logger.info("  Pole rate:   [% .6e, % .6e, % .6e] 1/s", *pole_dot)
    logger.info("  W:           %.9f deg", np.degrees(w) % 360.0)
    logger.info("  W rate:      %.9e rad/s", w_dot)
    return 0


def run_mesh(args: argparse.Namespace) -> int:
    """Build a body, report its ellipsoids and optionally its field data."""
    from analysis.report import build_shape_report, save_report
    from data_ingestion.mesh_builder import build_spheroid_mesh, carve_crater
    from data_ingestion.mesh_io import load_mesh, save_mesh
    from orientation.frames import gcrf_root
    from shape_engine.body_shape import FacetBodyShape
    from shape_engine.constants import load_config, log_platform_info
    from shape_engine.ellipsoid import EllipsoidType
    from shape_engine.field_of_view import CircularField
    from shape_engine.observer import ObserverState, body_center_pointing_attitude

    logger = logging.getLogger("facetbody")
    log_platform_info()
    output_dir = Path(args.output)
    config = load_config(args.config) if args.config else None

    if args.mesh_file:
        mesh = load_mesh(args.mesh_file)
    else:
        mesh = build_spheroid_mesh(args.radius, args.n_lat, args.n_lon, args.flattening)
        if args.crater:
            lat, lon, radius, depth = args.crater
            mesh = carve_crater(mesh, np.radians(lat), np.radians(lon), radius, depth)
    if args.save_mesh:
        save_mesh(mesh, args.save_mesh)

    frame = gcrf_root()
    shape = FacetBodyShape(args.name, frame, mesh, config=config)

    field_data = None
    if args.fov is not None:
        distance = args.observer_distance or 2000.0 * shape.max_norm
        position = np.array([0.0, 0.0, distance])
        state = ObserverState(0.0, position, frame, body_center_pointing_attitude(position))
        fov = CircularField(np.radians(args.fov), np.array([0.0, 0.0, 1.0]), "cli")
        field_data = shape.get_field_data(state, fov)
        logger.info(
            "  Field: %d visible triangles, %.6g m² visible, contour of %d points",
            len(field_data), field_data.visible_surface, field_data.contour.shape[0],
        )

    logger.info("=" * 60)
    logger.info("  %s: %d triangles, max slope %.2f deg", shape.name, len(mesh), np.degrees(shape.max_slope))
    logger.info("=" * 60)
    for ellipsoid_type in EllipsoidType:
        ellipsoid = shape.get_ellipsoid(ellipsoid_type)
        stats = shape.compute_statistics_for_altitude(ellipsoid)
        logger.info(
            "  %-18s a=%.6g f=%.6g  altitude min=%.4g max=%.4g mean=%.4g std=%.4g",
            ellipsoid_type.value, ellipsoid.equatorial_radius, ellipsoid.flattening,
            stats.min, stats.max, stats.mean, stats.standard_deviation,
        )

    saved: list[Path] = []
    if args.report:
        saved.append(save_report(build_shape_report(shape, field_data=field_data), output_dir / "report.json"))
    if args.plot:
        from visualization.plotter import generate_shape_plots

        saved.extend(generate_shape_plots(shape, field_data, output_dir=output_dir))

    for p in saved:
        logger.info("    → %s", p)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)
    if args.command == "pole":
        return run_pole(args)
    return run_mesh(args)


if __name__ == "__main__":
    sys.exit(main())
