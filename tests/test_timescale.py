from datetime import datetime, timezone

import pytest

from stelbridge.models import SkyTime
from stelbridge.timescale import datetime_from_julian_day, julian_day


def test_j2000_epoch():
    assert julian_day(datetime(2000, 1, 1, 12, 0, tzinfo=timezone.utc)) == pytest.approx(
        2451545.0, abs=1e-5
    )


def test_naive_datetime_is_utc():
    naive = datetime(2017, 9, 4, 12, 0)
    aware = naive.replace(tzinfo=timezone.utc)
    assert julian_day(naive) == julian_day(aware)


def test_round_trip_through_sky_time():
    dt = datetime(2017, 9, 4, 10, 30, tzinfo=timezone.utc)
    sky_time = SkyTime(jday=julian_day(dt), utc="", local="")
    back = sky_time.utc_datetime()
    assert back.tzinfo is not None
    assert abs((back - dt).total_seconds()) < 0.01
    assert datetime_from_julian_day(sky_time.jday).hour == 10
