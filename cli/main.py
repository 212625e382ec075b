"""
Command-line interface: info about scheduled buses.

  bus stop STOP [--after HH:MM] [--next N] [--route ROUTE] [--no-realtime]
      List the next departures at a stop, adjusted by real-time delays
      when GTFS_RT_FEED is configured.

  bus search TEXT
      List stops whose name contains TEXT (case-insensitive).

Exit status: 0 on success, 1 for an unknown stop, 2 when the schedule
cannot be loaded (argparse also uses 2 for bad arguments).
"""

import argparse
import logging
import sys
from datetime import datetime, time

from config import BUS_DATA, DEFAULT_HOW_MANY, GTFS_RT_FEED, LOG_LEVEL
from departures.engine import Departure, DepartureQuery, NoSuchStop, StopBoard, rank_departures, search_stops
from ingestion.gtfs_realtime import EMPTY, load_delay_index
from ingestion.gtfs_static import LoadError, load_schedule
from schedule.clock import InvalidLocalTime, at_local, now_local

logger = logging.getLogger(__name__)

NO_MORE_BUSES = "[No more buses today]"


def _after_time(value: str) -> time:
    """argparse type: a 24-hour HH:MM that exists exactly once today."""
    try:
        wall = datetime.strptime(value, "%H:%M").time()
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Could not parse time {value!r}: expected HH:MM") from exc
    try:
        at_local(now_local().date(), wall)
    except InvalidLocalTime as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return wall


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not a whole number") from exc
    if n < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return n


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bus", description="Info about scheduled buses.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress at INFO level.")
    parser.add_argument(
        "--data", default=BUS_DATA,
        help="GTFS directory or zip (default: $BUS_DATA or ./data).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    stop = sub.add_parser("stop", help="List the next scheduled buses at the given stop.")
    stop.add_argument("stop_id", metavar="STOP", help="The stop ID.")
    stop.add_argument(
        "-a", "--after", type=_after_time, metavar="HH:MM",
        help="List buses at or after this time today (local, 24-hour clock).",
    )
    stop.add_argument(
        "-n", "--next", dest="how_many", type=_positive_int, default=DEFAULT_HOW_MANY, metavar="N",
        help=f"List the next N buses (default: {DEFAULT_HOW_MANY}).",
    )
    stop.add_argument("-r", "--route", help="Only list buses on this route (exact match).")
    stop.add_argument(
        "--no-realtime", action="store_true",
        help="Ignore the real-time feed and show scheduled times only.",
    )

    search = sub.add_parser("search", help="Search for bus stops whose name contains the given text.")
    search.add_argument("text", metavar="STR", help="The text to search for.")
    return parser


def format_clock(t: time) -> str:
    """12-hour clock with a space-padded hour, e.g. ' 6:05 PM'."""
    hour = t.hour % 12 or 12
    return f"{hour:>2}:{t.minute:02d} {'AM' if t.hour < 12 else 'PM'}"


def format_delay(seconds: float) -> str:
    minutes = round(seconds / 60)
    if minutes < 1:
        return f"(+{round(seconds)} s)"
    return f"(+{minutes} min)"


def format_departure(dep: Departure) -> str:
    parts = [format_clock(dep.scheduled)]
    if dep.delay_seconds:
        parts.append(format_delay(dep.delay_seconds))
    parts.extend([dep.route, dep.headsign])
    return " ".join(p for p in parts if p)


def render_board(board: StopBoard) -> list[str]:
    lines = [board.stop_name]
    lines.extend(format_departure(dep) for dep in board.departures)
    if not board.departures:
        lines.append(NO_MORE_BUSES)
    return lines


def _run_stop(args: argparse.Namespace, store) -> int:
    query = DepartureQuery(args.stop_id, as_of=now_local()).take(args.how_many)
    if args.after is not None:
        query = query.after(at_local(now_local().date(), args.after))
    if args.route:
        query = query.on_route(args.route)

    logger.debug("Query: %s", query)
    if args.stop_id not in store.stops:
        print(NoSuchStop(args.stop_id), file=sys.stderr)
        return 1
    delays = EMPTY if args.no_realtime else load_delay_index(GTFS_RT_FEED)
    board = rank_departures(store, delays, query)
    print("\n".join(render_board(board)))
    return 0


def _run_search(args: argparse.Namespace, store) -> int:
    for stop_id, stop_name in search_stops(store, args.text):
        print(f"{stop_id} {stop_name}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = make_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        store = load_schedule(args.data)
    except LoadError as exc:
        print(f"Could not load schedule: {exc}", file=sys.stderr)
        return 2

    if args.command == "stop":
        return _run_stop(args, store)
    return _run_search(args, store)


if __name__ == "__main__":
    sys.exit(main())
