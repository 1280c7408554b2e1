"""Position/velocity providers for bodies and observers.

Providers expose ``get_pv_coordinates(date, frame) -> (position, velocity)``
in metres and metres per second. Three realisations are available:

- :class:`FixedPositionProvider`: constant point of a given frame;
- :class:`FrameAttachedProvider`: origin of a frame of the frame tree;
- :class:`SkyfieldBodyProvider`: solar-system body from a JPL kernel
  (DE421 by default) read with Skyfield.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)

References
----------
- Folkner, W.M. et al. (2014). "The Planetary and Lunar Ephemerides
  DE430 and DE431." IPN Progress Report 42-196.

Data Management
---------------
Ephemeris kernel files (*.bsp) are large (~17 MB for DE421). The
``SkyfieldBodyProvider`` class lazily loads (and if needed downloads)
its kernel into a configurable data directory and logs the location.
These files should be added to ``.gitignore``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import numpy as np

from orientation.frames import Frame
from orientation.timescale import J2000_JD, SECONDS_PER_DAY, seconds_since_j2000

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_DEFAULT_DATA_DIR = Path("data")
_DEFAULT_KERNEL = "de421.bsp"
_AU_M: float = 1.495978707e11


class EphemerisDataUnavailable(RuntimeError):
    """The ephemeris holds no data for the requested date."""


# ---------------------------------------------------------------------------
# Simple providers
# ---------------------------------------------------------------------------


class FixedPositionProvider:
    """Point at rest in a given frame.

    Parameters
    ----------
    position : np.ndarray
        Position in ``frame``. Shape: (3,).
    frame : Frame
        Frame in which the point is fixed.
    """

    def __init__(self, position: np.ndarray, frame: Frame) -> None:
        self._position = np.asarray(position, dtype=np.float64).reshape(3)
        self._frame = frame

    @property
    def frame(self) -> Frame:
        return self._frame

    def get_pv_coordinates(self, date, frame: Frame) -> tuple[np.ndarray, np.ndarray]:
        transform = self._frame.transform_to(frame, date)
        return transform.transform_pv(self._position, np.zeros(3))

    def get_position(self, date, frame: Frame) -> np.ndarray:
        return self.get_pv_coordinates(date, frame)[0]


class FrameAttachedProvider(FixedPositionProvider):
    """Origin of a frame, seen from any other frame of the tree."""

    def __init__(self, frame: Frame) -> None:
        super().__init__(np.zeros(3), frame)


# ---------------------------------------------------------------------------
# Skyfield / JPL kernel provider
# ---------------------------------------------------------------------------


class SkyfieldBodyProvider:
    """Solar-system body position from a JPL ephemeris kernel.

    Positions are computed relative to ``center`` in ICRF axes, i.e. in
    ``native_frame``, then transformed into the requested frame.

    Parameters
    ----------
    target : str
        Kernel body name (e.g. ``"sun"``, ``"moon"``, ``"mars barycenter"``).
    native_frame : Frame
        ICRF-aligned frame centered on ``center`` (e.g. GCRF for the Earth).
    center : str
        Kernel body name of the frame origin (default: ``"earth"``).
    kernel_name : str
        JPL ephemeris kernel filename (default: 'de421.bsp').
    data_dir : Path or str
        Directory for storing downloaded kernel files.
    ephemeris : optional
        Already loaded Skyfield ephemeris; skips kernel loading.
    """

    def __init__(
        self,
        target: str,
        native_frame: Frame,
        center: str = "earth",
        kernel_name: str = _DEFAULT_KERNEL,
        data_dir: Path | str = _DEFAULT_DATA_DIR,
        ephemeris: Optional[Any] = None,
    ) -> None:
        self._target_name = target
        self._center_name = center
        self._native_frame = native_frame
        self._kernel_name = kernel_name
        self._data_dir = Path(data_dir)

        # Lazily loaded
        self._ephemeris: Any = ephemeris
        self._timescale: Any = None
        self._vector: Any = None

    @property
    def native_frame(self) -> Frame:
        return self._native_frame

    def _ensure_loaded(self) -> None:
        """Load ephemeris kernel, downloading if necessary."""
        if self._vector is not None:
            return

        from skyfield.api import Loader, load

        if self._ephemeris is None:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            loader = Loader(str(self._data_dir), verbose=False)
            kernel_path = self._data_dir / self._kernel_name
            if kernel_path.exists():
                logger.info("Loading ephemeris kernel from: %s", kernel_path)
            else:
                logger.info(
                    "Ephemeris kernel not found at %s. Downloading %s...",
                    kernel_path,
                    self._kernel_name,
                )
            try:
                self._ephemeris = loader(self._kernel_name)
            except OSError as e:
                raise FileNotFoundError(
                    f"Failed to load or download JPL kernel '{self._kernel_name}' "
                    f"to '{self._data_dir}'. You can manually download it from:\n"
                    f"  https://naif.jpl.nasa.gov/pub/naif/generic_kernels/spk/planets/{self._kernel_name}\n"
                    f"and place it in '{self._data_dir}'."
                ) from e

        self._timescale = load.timescale(builtin=True)
        self._vector = self._ephemeris[self._target_name] - self._ephemeris[self._center_name]
        logger.info("Ephemeris ready: %s relative to %s", self._target_name, self._center_name)

    def _skyfield_time(self, date) -> Any:
        if hasattr(date, "tdb_fraction"):
            return date
        seconds = seconds_since_j2000(date)
        return self._timescale.tdb_jd(J2000_JD + seconds / SECONDS_PER_DAY)

    def get_pv_coordinates(self, date, frame: Frame) -> tuple[np.ndarray, np.ndarray]:
        """Position [m] and velocity [m/s] of the target in ``frame``.

        Raises
        ------
        EphemerisDataUnavailable
            If ``date`` lies outside the kernel coverage.
        """
        from skyfield.errors import EphemerisRangeError

        self._ensure_loaded()
        t = self._skyfield_time(date)
        try:
            state = self._vector.at(t)
        except EphemerisRangeError as e:
            raise EphemerisDataUnavailable(
                f"No {self._kernel_name} data for {self._target_name} at {date!r}"
            ) from e

        position = np.asarray(state.position.au, dtype=np.float64) * _AU_M
        velocity = np.asarray(state.velocity.au_per_d, dtype=np.float64) * _AU_M / SECONDS_PER_DAY
        transform = self._native_frame.transform_to(frame, date)
        return transform.transform_pv(position, velocity)

    def get_position(self, date, frame: Frame) -> np.ndarray:
        return self.get_pv_coordinates(date, frame)[0]
