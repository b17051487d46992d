"""Julian day conversions backed by skyfield's builtin timescale."""

from datetime import datetime, timezone

from skyfield.api import load

_ts = load.timescale()


def _as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def julian_day(dt: datetime) -> float:
    """Julian day (UT1) for a datetime, the time scale the simulator's `jday` uses."""
    return float(_ts.from_datetime(_as_utc(dt)).ut1)


def datetime_from_julian_day(jday: float) -> datetime:
    """Inverse of `julian_day`. Returns a timezone-aware UTC datetime."""
    return _ts.ut1(jd=jday).utc_datetime()
