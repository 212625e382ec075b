"""
Lists the next departures at a stop.

Algorithm (rank_departures):
  1. Resolve the stop; an unknown stop_id raises NoSuchStop.
  2. Walk the stop's stop-time entries. For each one, resolve its trip and
     the trip's service calendar (both must exist; the loader guarantees
     referential integrity, so a miss is a RuntimeError).
  3. Keep an entry only if, in this order:
       - the query has no route filter, or the trip's route label equals it
         exactly (case-sensitive);
       - the service runs on the query date (schedule.calendar.is_active);
       - the *scheduled* departure is not before the query time of day.
  4. Attach the real-time delay for (query stop, trip), if any.
  5. Sort by effective departure = scheduled + delay, as a time of day.
     A delay that carries a departure past midnight wraps around; it is not
     moved to the next service day.
  6. Truncate to query.how_many after sorting.

The date and time of day used in step 3 come from query.as_of expressed in
the local zone (schedule.clock), so "today" and "already gone" always agree.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta

from ingestion.gtfs_realtime import DelayIndex
from schedule.calendar import is_active
from schedule.clock import now_local, to_local
from schedule.models import ScheduleStore, StopTime

logger = logging.getLogger(__name__)


class NoSuchStop(ValueError):
    """The requested stop_id is not in the schedule."""

    def __init__(self, stop_id: str) -> None:
        super().__init__(f"No such bus stop: {stop_id!r}")
        self.stop_id = stop_id


@dataclass(frozen=True)
class DepartureQuery:
    """
    What to list: built once, then passed to rank_departures().

        DepartureQuery("1234").after(dt).take(5).on_route("80")
    """

    stop_id: str
    as_of: datetime = field(default_factory=now_local)
    how_many: int | None = None
    route: str | None = None

    def after(self, as_of: datetime) -> "DepartureQuery":
        return replace(self, as_of=as_of)

    def take(self, how_many: int) -> "DepartureQuery":
        if how_many < 0:
            raise ValueError("how_many must be non-negative")
        return replace(self, how_many=how_many)

    def on_route(self, route: str) -> "DepartureQuery":
        return replace(self, route=route)


@dataclass(frozen=True)
class Departure:
    scheduled: time
    delay_seconds: float | None
    route: str
    headsign: str
    trip_id: str = ""

    @property
    def effective(self) -> time:
        """Scheduled time plus delay, wrapping past midnight."""
        if not self.delay_seconds:
            return self.scheduled
        return (datetime.combine(date.min, self.scheduled) + timedelta(seconds=self.delay_seconds)).time()


@dataclass(frozen=True)
class StopBoard:
    stop_id: str
    stop_name: str
    departures: list[Departure]


def rank_departures(
    store: ScheduleStore,
    delays: DelayIndex,
    query: DepartureQuery,
) -> StopBoard:
    """
    Return the next departures at query.stop_id, ordered by effective time.

    Raises:
        NoSuchStop: query.stop_id is not a known stop.
        RuntimeError: a stop-time references a trip, or a trip a service,
            that is not in the store.
    """
    stop = store.stops.get(query.stop_id)
    if stop is None:
        raise NoSuchStop(query.stop_id)

    as_of = to_local(query.as_of)
    today = as_of.date()
    not_before = as_of.time().replace(tzinfo=None)

    departures: list[Departure] = []
    for entry in store.stop_times_at(query.stop_id):
        departure = _admit(store, entry, query.route, today, not_before)
        if departure is None:
            continue
        delay = delays.lookup(query.stop_id, entry.trip_id)
        if delay is not None:
            departure = replace(departure, delay_seconds=delay)
        departures.append(departure)

    departures.sort(key=lambda d: d.effective)

    if query.how_many is not None:
        departures = departures[:query.how_many]

    logger.debug(
        "Stop %s on %s after %s: %d departures.",
        query.stop_id, today.isoformat(), not_before.isoformat(), len(departures),
    )
    return StopBoard(stop_id=stop.stop_id, stop_name=stop.stop_name, departures=departures)


def _admit(
    store: ScheduleStore,
    entry: StopTime,
    route: str | None,
    today: date,
    not_before: time,
) -> Departure | None:
    trip = store.trips.get(entry.trip_id)
    if trip is None:
        raise RuntimeError(f"Trip {entry.trip_id!r} at stop {entry.stop_id!r} not found in schedule.")
    calendar = store.calendars.get(trip.service_id)
    if calendar is None:
        raise RuntimeError(f"Service {trip.service_id!r} for trip {trip.trip_id!r} not found in schedule.")

    if route is not None and trip.route_short_name != route:
        return None
    if not is_active(calendar, today):
        return None
    if entry.departure_time < not_before:
        return None
    return Departure(
        scheduled=entry.departure_time,
        delay_seconds=None,
        route=trip.route_short_name,
        headsign=trip.trip_headsign,
        trip_id=trip.trip_id,
    )


def search_stops(store: ScheduleStore, text: str) -> list[tuple[str, str]]:
    """Return (stop_id, stop_name) for stops whose name contains `text`, case-insensitively."""
    needle = text.lower()
    return sorted(
        (stop.stop_id, stop.stop_name)
        for stop in store.stops.values()
        if needle in stop.stop_name.lower()
    )
