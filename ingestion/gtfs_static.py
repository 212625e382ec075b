"""
Loads a GTFS static feed into an in-memory ScheduleStore.

Feed contents used:
  trips.txt          → Trip
  stops.txt          → Stop
  calendar.txt       → ServiceCalendar
  calendar_dates.txt → CalendarException (optional)
  stop_times.txt     → StopTime, grouped by stop_id
  routes.txt         → route_short_name fallback for trips (optional)

Two failure policies apply:
  - Time fields (HH:MM:SS) are tolerated: anything unparseable, including
    GTFS hours of 24 and over, becomes 00:00:00.
  - Date fields (YYYYMMDD) are not: a bad date aborts the load, since dates
    decide which services run at all.
"""

import logging
import re
import zipfile
from collections import defaultdict
from datetime import date, datetime, time
from pathlib import Path

import pandas as pd

from config import BUS_DATA
from schedule.models import (
    CalendarException, Days, ExceptionType, ScheduleStore, ServiceCalendar, Stop, StopTime, Trip,
)

logger = logging.getLogger(__name__)

MIDNIGHT = time(0, 0, 0)

_DATE_RE = re.compile(r"^\d{8}$")
_WEEKDAY_COLUMNS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Module-level store shared read-only by the API
_store: ScheduleStore | None = None


class LoadError(RuntimeError):
    """The feed cannot be turned into a consistent ScheduleStore."""


class UnknownService(LoadError):
    """A calendar_dates.txt row names a service_id missing from calendar.txt."""


def get_store() -> ScheduleStore:
    """Return the cached schedule. Raises if not yet loaded."""
    if _store is None:
        raise RuntimeError("Schedule has not been loaded yet. Call set_store() first.")
    return _store


def set_store(store: ScheduleStore | None) -> None:
    global _store
    _store = store


def load_schedule(source: str | Path = BUS_DATA) -> ScheduleStore:
    """
    Read a GTFS feed from a directory or .zip into a ScheduleStore.

    Raises:
        LoadError: a required file or column is missing, a date field is
            malformed, or a calendar exception references an unknown service.
    """
    tables = _read_tables(Path(source))

    calendars = _parse_calendar(tables["calendar.txt"])
    if "calendar_dates.txt" in tables:
        calendars = _attach_exceptions(calendars, tables["calendar_dates.txt"])

    route_names = _route_short_names(tables.get("routes.txt"))
    store = ScheduleStore(
        trips=_parse_trips(tables["trips.txt"], route_names),
        stops=_parse_stops(tables["stops.txt"]),
        calendars=calendars,
        stop_times=_parse_stop_times(tables["stop_times.txt"]),
    )
    logger.info(
        "Schedule loaded from %s: %d trips, %d stops, %d services, %d stops with departures.",
        source, len(store.trips), len(store.stops), len(store.calendars), len(store.stop_times),
    )
    return store


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

_REQUIRED = ("trips.txt", "stops.txt", "calendar.txt", "stop_times.txt")
_OPTIONAL = ("calendar_dates.txt", "routes.txt")


def _read_tables(source: Path) -> dict[str, pd.DataFrame]:
    if source.is_dir():
        names = {p.name for p in source.iterdir()}
        _check_required(source, names)
        return {
            name: _read_csv(name, source / name)
            for name in _REQUIRED + _OPTIONAL if name in names
        }

    if source.is_file() and zipfile.is_zipfile(source):
        with zipfile.ZipFile(source) as zf:
            names = set(zf.namelist())
            _check_required(source, names)
            tables: dict[str, pd.DataFrame] = {}
            for name in _REQUIRED + _OPTIONAL:
                if name in names:
                    with zf.open(name) as f:
                        tables[name] = _read_csv(name, f)
            return tables

    raise LoadError(f"GTFS source {source} is neither a directory nor a zip file.")


def _check_required(source: Path, names: set[str]) -> None:
    missing = [name for name in _REQUIRED if name not in names]
    if missing:
        raise LoadError(f"GTFS source {source} is missing {', '.join(missing)}.")


def _read_csv(filename: str, path_or_buffer) -> pd.DataFrame:
    try:
        df = pd.read_csv(path_or_buffer, dtype=str, encoding="utf-8-sig", keep_default_na=False, na_filter=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise LoadError(f"Could not read {filename}: {exc}") from exc
    df.columns = [c.strip() for c in df.columns]
    return df


def _require_columns(df: pd.DataFrame, filename: str, columns: tuple[str, ...]) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise LoadError(f"{filename} is missing column(s): {', '.join(missing)}.")


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------

def parse_gtfs_time(value: str) -> time | None:
    """
    Parse H:MM:SS / HH:MM:SS, allowing a space before a single-digit hour.
    Returns None when the value is not a valid time of day.
    """
    try:
        return datetime.strptime(value.lstrip(" "), "%H:%M:%S").time()
    except (ValueError, AttributeError):
        return None


def parse_gtfs_date(value: str, filename: str, column: str) -> date:
    """Parse a YYYYMMDD field. Raises LoadError on anything else."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise LoadError(f"{filename}: bad {column} {value!r} (expected YYYYMMDD).")
    try:
        return datetime.strptime(value, "%Y%m%d").date()
    except ValueError as exc:
        raise LoadError(f"{filename}: bad {column} {value!r}: {exc}") from exc


# ---------------------------------------------------------------------------
# Table parsers
# ---------------------------------------------------------------------------

def _parse_calendar(df: pd.DataFrame) -> dict[str, ServiceCalendar]:
    _require_columns(df, "calendar.txt", ("service_id", *_WEEKDAY_COLUMNS, "start_date", "end_date"))
    calendars: dict[str, ServiceCalendar] = {}
    for row in df.to_dict("records"):
        calendars[row["service_id"]] = ServiceCalendar(
            service_id=row["service_id"],
            days=Days.from_flags(*(row[c] == "1" for c in _WEEKDAY_COLUMNS)),
            start_date=parse_gtfs_date(row["start_date"], "calendar.txt", "start_date"),
            end_date=parse_gtfs_date(row["end_date"], "calendar.txt", "end_date"),
            service_name=row.get("service_name", ""),
        )
    logger.info("Loaded %d calendar entries.", len(calendars))
    return calendars


def _attach_exceptions(
    calendars: dict[str, ServiceCalendar], df: pd.DataFrame
) -> dict[str, ServiceCalendar]:
    _require_columns(df, "calendar_dates.txt", ("service_id", "date", "exception_type"))
    by_service: dict[str, list[CalendarException]] = defaultdict(list)
    for row in df.to_dict("records"):
        service_id = row["service_id"]
        if service_id not in calendars:
            raise UnknownService(f"calendar_dates.txt references unknown service_id {service_id!r}.")
        by_service[service_id].append(CalendarException(
            date=parse_gtfs_date(row["date"], "calendar_dates.txt", "date"),
            kind=ExceptionType.ADDED if row["exception_type"] == "1" else ExceptionType.REMOVED,
            service_id=service_id,
        ))

    merged = dict(calendars)
    for service_id, exceptions in by_service.items():
        cal = calendars[service_id]
        merged[service_id] = ServiceCalendar(
            service_id=cal.service_id,
            days=cal.days,
            start_date=cal.start_date,
            end_date=cal.end_date,
            exceptions=cal.exceptions + tuple(exceptions),
            service_name=cal.service_name,
        )
    logger.info("Loaded %d calendar date exceptions.", len(df))
    return merged


def _route_short_names(df: pd.DataFrame | None) -> dict[str, str]:
    if df is None or "route_id" not in df.columns:
        return {}
    names: dict[str, str] = {}
    for row in df.to_dict("records"):
        names[row["route_id"]] = row.get("route_short_name", "") or row["route_id"]
    return names


def _parse_trips(df: pd.DataFrame, route_names: dict[str, str]) -> dict[str, Trip]:
    _require_columns(df, "trips.txt", ("trip_id", "service_id"))
    trips: dict[str, Trip] = {}
    for row in df.to_dict("records"):
        route_id = row.get("route_id", "")
        short_name = row.get("route_short_name", "") or route_names.get(route_id, route_id)
        trips[row["trip_id"]] = Trip(
            trip_id=row["trip_id"],
            route_short_name=short_name,
            trip_headsign=row.get("trip_headsign", ""),
            service_id=row["service_id"],
            route_id=route_id,
        )
    logger.info("Loaded %d trips.", len(trips))
    return trips


def _parse_stops(df: pd.DataFrame) -> dict[str, Stop]:
    _require_columns(df, "stops.txt", ("stop_id", "stop_name"))
    stops = {
        row["stop_id"]: Stop(stop_id=row["stop_id"], stop_name=row["stop_name"])
        for row in df.to_dict("records")
    }
    logger.info("Loaded %d stops.", len(stops))
    return stops


def _parse_stop_times(df: pd.DataFrame) -> dict[str, list[StopTime]]:
    _require_columns(df, "stop_times.txt", ("trip_id", "stop_id", "departure_time"))
    by_stop: dict[str, list[StopTime]] = defaultdict(list)
    defaulted = 0
    for row in df.to_dict("records"):
        departure = parse_gtfs_time(row["departure_time"])
        if departure is None:
            defaulted += 1
            departure = MIDNIGHT
        arrival = parse_gtfs_time(row.get("arrival_time", "")) or MIDNIGHT
        by_stop[row["stop_id"]].append(StopTime(
            trip_id=row["trip_id"],
            stop_id=row["stop_id"],
            departure_time=departure,
            arrival_time=arrival,
            stop_sequence=_to_int(row.get("stop_sequence", "")),
        ))
    if defaulted:
        logger.warning("Defaulted %d unparseable departure times to 00:00:00.", defaulted)
    logger.info("Loaded %d stop times.", len(df))
    return dict(by_stop)


def _to_int(value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
