"""
Builds the per-(stop, trip) delay index from a GTFS-Realtime trip updates feed.

The feed source is either an http(s) URL or a local file path, and the
payload is a GTFS-RT FeedMessage encoded as protobuf or as its JSON
rendering. Only stop_time_updates that name a stop_id contribute:

  delay = departure.delay if set, else arrival.delay

Non-positive delays are dropped and, when a (stop, trip) pair repeats, the
last value wins. Any failure to fetch or decode the feed is logged and
yields an empty index, so a stop query never fails because of real-time
data.

The API keeps the most recent index in the module-level `current_delays`,
replaced wholesale every GTFS_RT_POLL_SECONDS by poll_delays().
"""

import asyncio
import json
import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

import httpx
from google.protobuf import json_format
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from config import GTFS_RT_API_KEY, GTFS_RT_FEED, GTFS_RT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class DelayIndex:
    """Read-only mapping (stop_id, trip_id) → delay in seconds."""

    __slots__ = ("_delays",)

    def __init__(self, delays: dict[tuple[str, str], float] | None = None) -> None:
        self._delays: dict[tuple[str, str], float] = dict(delays or {})

    @classmethod
    def from_pairs(cls, entries: Iterable[tuple[str, str, float]]) -> "DelayIndex":
        """Build from (stop_id, trip_id, seconds); last duplicate wins, <= 0 is skipped."""
        delays: dict[tuple[str, str], float] = {}
        for stop_id, trip_id, seconds in entries:
            if seconds > 0:
                delays[(stop_id, trip_id)] = float(seconds)
        return cls(delays)

    def lookup(self, stop_id: str, trip_id: str) -> float | None:
        return self._delays.get((stop_id, trip_id))

    def items(self):
        return self._delays.items()

    def __len__(self) -> int:
        return len(self._delays)

    def __repr__(self) -> str:
        return f"DelayIndex({len(self._delays)} entries)"


EMPTY = DelayIndex()

# Module-level live state: read by the API
current_delays: DelayIndex = EMPTY
_last_fetched: datetime | None = None


def get_last_fetched() -> datetime | None:
    """Return the UTC timestamp of the last successful poll_delays(), or None."""
    return _last_fetched


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def parse_feed(payload: bytes) -> gtfs_realtime_pb2.FeedMessage:
    """
    Decode a FeedMessage from protobuf bytes or its JSON rendering.

    Raises:
        ValueError: the payload is neither.
    """
    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        document = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError):
        document = None

    if document is not None:
        if not isinstance(document, dict):
            raise ValueError("GTFS-RT JSON must be an object.")
        try:
            json_format.ParseDict(document, feed, ignore_unknown_fields=True)
        except json_format.ParseError as exc:
            raise ValueError(f"Malformed GTFS-RT JSON: {exc}") from exc
        return feed

    try:
        feed.ParseFromString(payload)
    except DecodeError as exc:
        raise ValueError(f"Feed is neither GTFS-RT JSON nor protobuf: {exc}") from exc
    return feed


def delays_from_feed(feed: gtfs_realtime_pb2.FeedMessage) -> DelayIndex:
    """Extract positive per-stop delays from every trip_update entity."""

    def entries():
        for entity in feed.entity:
            if not entity.HasField("trip_update"):
                continue
            tu = entity.trip_update
            trip_id = tu.trip.trip_id
            for stu in tu.stop_time_update:
                if not stu.stop_id:
                    continue
                if stu.HasField("departure") and stu.departure.HasField("delay"):
                    yield stu.stop_id, trip_id, stu.departure.delay
                elif stu.HasField("arrival") and stu.arrival.HasField("delay"):
                    yield stu.stop_id, trip_id, stu.arrival.delay

    index = DelayIndex.from_pairs(entries())
    logger.debug("Extracted %d positive delays from %d entities.", len(index), len(feed.entity))
    return index


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _request_params() -> dict[str, str]:
    return {"key": GTFS_RT_API_KEY} if GTFS_RT_API_KEY else {}


_ACCEPT = {"Accept": "application/x-protobuf, application/json"}


def fetch_feed_bytes(source: str) -> bytes:
    """Read the raw feed payload from a URL or a local file."""
    if _is_url(source):
        with httpx.Client(timeout=GTFS_RT_TIMEOUT_SECONDS) as client:
            response = client.get(source, params=_request_params(), headers=_ACCEPT, follow_redirects=True)
            response.raise_for_status()
        return response.content
    return Path(source).read_bytes()


async def fetch_feed_bytes_async(source: str) -> bytes:
    """Async variant of fetch_feed_bytes() for use inside the API event loop."""
    if _is_url(source):
        async with httpx.AsyncClient(timeout=GTFS_RT_TIMEOUT_SECONDS) as client:
            response = await client.get(source, params=_request_params(), headers=_ACCEPT, follow_redirects=True)
            response.raise_for_status()
        return response.content
    return await asyncio.to_thread(Path(source).read_bytes)


def load_delay_index(source: str = GTFS_RT_FEED) -> DelayIndex:
    """
    Fetch and decode the feed, degrading to an empty index on any failure.

    An unset source means real-time data is simply not configured and is
    not treated as a failure.
    """
    if not source:
        return EMPTY
    try:
        return delays_from_feed(parse_feed(fetch_feed_bytes(source)))
    except (httpx.HTTPError, OSError, ValueError) as exc:
        logger.warning("Real-time feed %s unavailable, continuing without delays: %s", source, exc)
        return EMPTY


async def poll_delays(source: str = GTFS_RT_FEED) -> None:
    """Refresh current_delays from the feed. Called by the API scheduler."""
    global current_delays, _last_fetched
    if not source:
        return
    try:
        index = delays_from_feed(parse_feed(await fetch_feed_bytes_async(source)))
    except (httpx.HTTPError, OSError, ValueError) as exc:
        logger.warning("Real-time feed %s unavailable, clearing delays: %s", source, exc)
        current_delays = EMPTY
        return
    current_delays = index
    _last_fetched = datetime.utcnow()
    logger.info("GTFS-RT poll complete: %d delayed stop/trip pairs.", len(index))
