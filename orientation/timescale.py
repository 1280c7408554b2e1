"""Date handling for orientation and ephemeris queries.

Dates are accepted in three forms:

- ``float``: TDB seconds elapsed since J2000.0 (2000-01-01T12:00:00 TDB);
- ``skyfield.timelib.Time``: converted through its split TDB Julian date
  so that sub-millisecond shifts survive the conversion;
- ``datetime``: UTC, converted through skyfield's built-in timescale.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Union

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

J2000_JD: float = 2451545.0
SECONDS_PER_DAY: float = 86400.0
DAYS_PER_CENTURY: float = 36525.0
SECONDS_PER_CENTURY: float = SECONDS_PER_DAY * DAYS_PER_CENTURY

DateLike = Union[float, int, datetime, Any]


@lru_cache(maxsize=1)
def _builtin_timescale() -> Any:
    """Skyfield timescale using the leap-second table bundled with skyfield."""
    from skyfield.api import load

    logger.debug("Loading skyfield built-in timescale")
    return load.timescale(builtin=True)


def seconds_since_j2000(date: DateLike) -> float:
    """Elapsed TDB seconds since J2000.0.

    Parameters
    ----------
    date : float, datetime or skyfield Time
        Date to convert.

    Returns
    -------
    float
        Elapsed seconds.

    Raises
    ------
    TypeError
        If the date type is not supported.
    """
    if isinstance(date, (int, float)) and not isinstance(date, bool):
        return float(date)
    if isinstance(date, datetime):
        if date.tzinfo is None:
            date = date.replace(tzinfo=timezone.utc)
        date = _builtin_timescale().from_datetime(date)
    if hasattr(date, "whole") and hasattr(date, "tdb_fraction"):
        return (float(date.whole) - J2000_JD) * SECONDS_PER_DAY + float(date.tdb_fraction) * SECONDS_PER_DAY
    raise TypeError(f"Unsupported date type: {type(date).__name__}")


def days_since_j2000(date: DateLike) -> float:
    """Elapsed TDB days since J2000.0."""
    return seconds_since_j2000(date) / SECONDS_PER_DAY


def centuries_since_j2000(date: DateLike) -> float:
    """Elapsed Julian centuries (TDB) since J2000.0."""
    return seconds_since_j2000(date) / SECONDS_PER_CENTURY


def shifted_by(date: DateLike, seconds: float) -> float:
    """Date shifted by ``seconds``, returned as TDB seconds since J2000.0."""
    return seconds_since_j2000(date) + seconds


def tdb_date(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: float = 0.0) -> float:
    """TDB calendar date as seconds since J2000.0.

    Parameters
    ----------
    year, month, day, hour, minute : int
        Calendar fields (proleptic Gregorian, TDB).
    second : float
        Seconds of minute.

    Returns
    -------
    float
        Elapsed TDB seconds since J2000.0.
    """
    epoch = datetime(2000, 1, 1, 12, 0, 0)
    delta = datetime(year, month, day, hour, minute) - epoch
    return delta.days * SECONDS_PER_DAY + delta.seconds + second
