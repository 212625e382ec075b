from __future__ import annotations
from typing import Literal
from pydantic import BaseModel


# ---------------------------------------------------------------------------
# GET /stops
# ---------------------------------------------------------------------------

class StopResult(BaseModel):
    stop_id: str
    stop_name: str


# ---------------------------------------------------------------------------
# GET /stops/{stop_id}/departures
# ---------------------------------------------------------------------------

class DepartureResult(BaseModel):
    scheduled: str                # HH:MM:SS local wall-clock
    delay_seconds: float | None   # None when no real-time delay is known
    route: str
    headsign: str
    trip_id: str
    effective: str                # scheduled + delay, HH:MM:SS (wraps past midnight)


class DeparturesResponse(BaseModel):
    stop_id: str
    stop_name: str
    as_of: str                    # ISO 8601, local zone
    departures: list[DepartureResult]


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------

class ScheduleStats(BaseModel):
    loaded: bool
    stops: int
    trips: int
    services: int


class RealtimeStats(BaseModel):
    configured: bool
    polling_active: bool
    delayed_pairs: int
    last_fetched_at: str | None


class HealthResponse(BaseModel):
    status: Literal["ok"]
    timestamp: str
    schedule: ScheduleStats
    realtime: RealtimeStats
