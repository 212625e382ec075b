"""
In-memory models for the GTFS static schedule.

Everything here is built once by ingestion.gtfs_static.load_schedule() and
treated as read-only afterwards. Times of day are datetime.time values (the
loader has already normalised unparseable times to midnight); dates are
datetime.date values.
"""

import enum
from dataclasses import dataclass, field
from datetime import date, time


class Days(enum.Flag):
    """Weekly active-day set, one flag per weekday."""

    MONDAY = enum.auto()
    TUESDAY = enum.auto()
    WEDNESDAY = enum.auto()
    THURSDAY = enum.auto()
    FRIDAY = enum.auto()
    SATURDAY = enum.auto()
    SUNDAY = enum.auto()

    @classmethod
    def none(cls) -> "Days":
        return cls(0)

    @classmethod
    def from_weekday(cls, weekday: int) -> "Days":
        """Map date.weekday() (Monday == 0) to its flag."""
        return _BY_WEEKDAY[weekday]

    @classmethod
    def from_flags(
        cls,
        monday: bool,
        tuesday: bool,
        wednesday: bool,
        thursday: bool,
        friday: bool,
        saturday: bool,
        sunday: bool,
    ) -> "Days":
        days = cls.none()
        for flag, active in zip(
            _BY_WEEKDAY, (monday, tuesday, wednesday, thursday, friday, saturday, sunday)
        ):
            if active:
                days |= flag
        return days


_BY_WEEKDAY = (
    Days.MONDAY,
    Days.TUESDAY,
    Days.WEDNESDAY,
    Days.THURSDAY,
    Days.FRIDAY,
    Days.SATURDAY,
    Days.SUNDAY,
)


class ExceptionType(enum.Enum):
    ADDED = 1    # service forced on for the date
    REMOVED = 2  # service forced off for the date


@dataclass(frozen=True)
class Trip:
    trip_id: str
    route_short_name: str
    trip_headsign: str
    service_id: str
    route_id: str = ""


@dataclass(frozen=True)
class Stop:
    stop_id: str
    stop_name: str


@dataclass(frozen=True)
class CalendarException:
    date: date
    kind: ExceptionType
    service_id: str


@dataclass(frozen=True)
class ServiceCalendar:
    service_id: str
    days: Days
    start_date: date  # inclusive
    end_date: date    # inclusive
    exceptions: tuple[CalendarException, ...] = ()
    service_name: str = ""


@dataclass(frozen=True)
class StopTime:
    trip_id: str
    stop_id: str
    departure_time: time
    arrival_time: time = time(0, 0, 0)
    stop_sequence: int = 0


@dataclass(frozen=True)
class ScheduleStore:
    """Keyed collections for one loaded feed."""

    trips: dict[str, Trip] = field(default_factory=dict)                    # by trip_id
    stops: dict[str, Stop] = field(default_factory=dict)                    # by stop_id
    calendars: dict[str, ServiceCalendar] = field(default_factory=dict)     # by service_id
    stop_times: dict[str, list[StopTime]] = field(default_factory=dict)     # by stop_id

    def stop_times_at(self, stop_id: str) -> list[StopTime]:
        return self.stop_times.get(stop_id, [])
