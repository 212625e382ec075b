"""
Mock GTFS-RT state injector for development and testing.

Replaces ingestion.gtfs_realtime.current_delays without making any network
calls, so the delay-aware departures path can be exercised before a real
trip updates feed is configured.

WARNING: These functions replace shared in-process state. They are intended
for local development and automated tests only.
"""

import logging

from ingestion import gtfs_realtime
from ingestion.gtfs_realtime import EMPTY, DelayIndex

logger = logging.getLogger(__name__)


def clear_all() -> None:
    """Reset the live delay index to empty."""
    gtfs_realtime.current_delays = EMPTY
    logger.debug("Mock RT state cleared.")


def inject_delay(stop_id: str, trip_id: str, delay_seconds: float) -> DelayIndex:
    """
    Add or replace one (stop, trip) delay in the live index.

    Non-positive delays are ignored, matching what the feed parser keeps.
    Returns the new live index.
    """
    entries = [(s, t, d) for (s, t), d in gtfs_realtime.current_delays.items()]
    entries.append((stop_id, trip_id, delay_seconds))
    gtfs_realtime.current_delays = DelayIndex.from_pairs(entries)
    logger.debug("Mock: injected delay of %.0fs for trip %s at stop %s.", delay_seconds, trip_id, stop_id)
    return gtfs_realtime.current_delays


def get_state_summary() -> dict:
    """
    Return a snapshot of the current live delay index.

    Useful for debugging and for verifying injected state via the API.
    """
    return {
        "delays": [
            {"stop_id": stop_id, "trip_id": trip_id, "delay_seconds": seconds}
            for (stop_id, trip_id), seconds in sorted(gtfs_realtime.current_delays.items())
        ],
    }
