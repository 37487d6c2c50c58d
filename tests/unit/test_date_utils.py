"""Unit tests for business-day date handling"""

import pytest
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch
from collector_gateway.config import settings
from collector_gateway.domain.exceptions import InvalidDate
from collector_gateway.utils.date_utils import (
    business_day_bounds,
    business_today,
    check_collected_at,
    parse_route_date,
    to_business_time,
)

# 01:00 UTC on Sept 6th is still 20:00 on Sept 5th in Bogota (UTC-5)
LATE_EVENING_UTC = datetime(2025, 9, 6, 1, 0, tzinfo=timezone.utc)


@pytest.fixture
def bogota():
    with patch.object(settings, "business_timezone", "America/Bogota"):
        yield


def test_business_today_follows_business_timezone(bogota):
    with patch("collector_gateway.utils.date_utils.utc_now", return_value=LATE_EVENING_UTC):
        assert business_today() == date(2025, 9, 5)


def test_business_today_in_utc():
    with patch.object(settings, "business_timezone", "UTC"), patch(
        "collector_gateway.utils.date_utils.utc_now", return_value=LATE_EVENING_UTC
    ):
        assert business_today() == date(2025, 9, 6)


def test_aware_time_is_converted(bogota):
    local = to_business_time(LATE_EVENING_UTC)

    assert local.date() == date(2025, 9, 5)
    assert local.hour == 20


def test_naive_time_is_read_as_business_local(bogota):
    local = to_business_time(datetime(2025, 9, 5, 20, 0))

    assert local.hour == 20
    assert local.utcoffset() == timedelta(hours=-5)


def test_day_bounds_cover_one_business_day(bogota):
    start, end = business_day_bounds(date(2025, 9, 5))

    assert start <= LATE_EVENING_UTC < end
    assert end - start == timedelta(days=1)


def test_collected_at_within_window(bogota):
    now = to_business_time(LATE_EVENING_UTC)

    assert check_collected_at(now - timedelta(hours=5), now=now) == now - timedelta(hours=5)
    assert check_collected_at(now + timedelta(seconds=30), now=now) > now


@pytest.mark.parametrize(
    "offset",
    [timedelta(hours=1), timedelta(days=1), -timedelta(hours=settings.payment_max_age_hours + 1)],
)
def test_collected_at_outside_window(bogota, offset):
    now = to_business_time(LATE_EVENING_UTC)

    with pytest.raises(InvalidDate):
        check_collected_at(now + offset, now=now)


@pytest.mark.parametrize("value", ["2025-02-30", "yesterday", "", "2025/09/05"])
def test_parse_route_date_rejects_malformed(value):
    with pytest.raises(InvalidDate):
        parse_route_date(value)


def test_parse_route_date_accepts_dates():
    assert parse_route_date("2025-09-05") == date(2025, 9, 5)
    assert parse_route_date(datetime(2025, 9, 5, 10, 0)) == date(2025, 9, 5)
