"""
Service validity: does a service_id run on a given calendar date?

Rules, in order:
  1. date outside [start_date, end_date]          → inactive
  2. weekday not in the calendar's active days    → inactive
  3. a REMOVED exception for exactly that date    → inactive
  4. otherwise                                    → active

ADDED exceptions are loaded and kept on the calendar but are not consulted
here, so an ADDED date outside the weekly pattern stays inactive.
"""

from datetime import date

from schedule.models import Days, ExceptionType, ServiceCalendar


def is_active(calendar: ServiceCalendar, day: date) -> bool:
    """Return True when the calendar's service runs on `day`."""
    if day < calendar.start_date or day > calendar.end_date:
        return False
    if not calendar.days & Days.from_weekday(day.weekday()):
        return False
    return not is_removed(calendar, day)


def is_removed(calendar: ServiceCalendar, day: date) -> bool:
    return any(
        ex.date == day
        and ex.service_id == calendar.service_id
        and ex.kind is ExceptionType.REMOVED
        for ex in calendar.exceptions
    )
