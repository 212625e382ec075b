"""
Local wall-clock helpers.

Every date/time decision (what "today" is, its weekday, whether a departure
has passed) is made in the single zone named by LOCAL_TIMEZONE. Wall-clock
times that are ambiguous (DST fall-back) or do not exist (spring-forward)
are rejected rather than silently resolved.
"""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from config import LOCAL_TIMEZONE


class InvalidLocalTime(ValueError):
    """A wall-clock time that does not map to exactly one instant."""


def local_zone() -> ZoneInfo:
    return ZoneInfo(LOCAL_TIMEZONE)


def now_local() -> datetime:
    """Current instant as an aware datetime in the local zone."""
    return datetime.now(local_zone())


def to_local(dt: datetime) -> datetime:
    """
    Express `dt` in the local zone.

    Naive datetimes are taken to already be local wall-clock times and are
    checked the same way as at_local().
    """
    if dt.tzinfo is None:
        return at_local(dt.date(), dt.timetz())
    return dt.astimezone(local_zone())


def at_local(day: date, wall: time) -> datetime:
    """
    Combine a local date and wall-clock time into an aware datetime.

    Raises:
        InvalidLocalTime: if the wall-clock time is ambiguous or skipped on
            that date in the local zone.
    """
    zone = local_zone()
    naive = datetime.combine(day, wall.replace(tzinfo=None))
    earlier = naive.replace(tzinfo=zone, fold=0)
    later = naive.replace(tzinfo=zone, fold=1)
    if earlier.utcoffset() != later.utcoffset():
        # Either fold of a repeated hour, or a gap where the two folds
        # disagree; a round trip through UTC tells them apart.
        round_trip = earlier.astimezone(timezone.utc).astimezone(zone)
        if round_trip.replace(tzinfo=None) != naive:
            raise InvalidLocalTime(f"{naive:%Y-%m-%d %H:%M} does not exist in {zone.key}")
        raise InvalidLocalTime(f"{naive:%Y-%m-%d %H:%M} is ambiguous in {zone.key}")
    return earlier
