"""Date manipulation utilities"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo
from collector_gateway.config import settings
from collector_gateway.domain.exceptions import InvalidDate


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.business_timezone)


def business_now() -> datetime:
    """Current time in the business timezone"""
    return utc_now().astimezone(business_tz())


def business_today() -> date:
    return business_now().date()


def to_business_time(value: datetime) -> datetime:
    """Aware datetime in the business timezone; naive values are read as business local time"""
    if value.tzinfo is None:
        return value.replace(tzinfo=business_tz())
    return value.astimezone(business_tz())


def business_day_bounds(day: date) -> Tuple[datetime, datetime]:
    """[start, end) of a business day as aware datetimes"""
    start = datetime.combine(day, time.min, tzinfo=business_tz())
    return start, start + timedelta(days=1)


def check_collected_at(collected_at: datetime, now: Optional[datetime] = None) -> datetime:
    """
    Validate when a payment says it was collected.

    Offline capture may lag behind the clock by up to
    settings.payment_max_age_hours; nothing may claim to be collected in
    the future beyond the allowed clock skew.

    Returns:
        collected_at in the business timezone

    Raises:
        InvalidDate: Too old or in the future
    """
    collected_at = to_business_time(collected_at)
    now = now or business_now()

    if collected_at > now + timedelta(seconds=settings.payment_clock_skew_seconds):
        raise InvalidDate(f"collected_at {collected_at.isoformat()} is in the future")
    if collected_at < now - timedelta(hours=settings.payment_max_age_hours):
        raise InvalidDate(
            f"collected_at {collected_at.isoformat()} is older than {settings.payment_max_age_hours} hours"
        )
    return collected_at


def parse_route_date(value: date | str) -> date:
    """Accept a date or an ISO YYYY-MM-DD string, raise InvalidDate otherwise"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as e:
            raise InvalidDate(f"Not a calendar date: {value!r}") from e
    raise InvalidDate(f"Not a calendar date: {value!r}")
