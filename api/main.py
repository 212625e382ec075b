"""
FastAPI application entry point.

On startup:
  1. Load the GTFS static schedule from BUS_DATA (read-only afterwards).
  2. When GTFS_RT_FEED is set, fetch real-time delays once and start the
     APScheduler job that refreshes them every GTFS_RT_POLL_SECONDS.

Endpoints (v1):
  GET  /stops?query=<name>
  GET  /stops/{stop_id}/departures?after=<HH:MM>&limit=<n>&route=<name>
  GET  /health
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from api.schemas import DeparturesResponse, HealthResponse, StopResult
from config import BUS_DATA, CORS_ORIGINS, DEFAULT_HOW_MANY, GTFS_RT_FEED, GTFS_RT_POLL_SECONDS
from departures.engine import DepartureQuery, NoSuchStop, rank_departures, search_stops
from ingestion import gtfs_realtime
from ingestion.gtfs_realtime import get_last_fetched, poll_delays
from ingestion.gtfs_static import get_store, load_schedule, set_store
from schedule.clock import InvalidLocalTime, at_local, now_local
from schedule.models import ScheduleStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    set_store(load_schedule(BUS_DATA))
    logger.info("Schedule loaded from %s.", BUS_DATA)

    if GTFS_RT_FEED:
        await poll_delays(GTFS_RT_FEED)
        logger.info("GTFS-RT initial poll complete.")
        if GTFS_RT_POLL_SECONDS > 0:
            scheduler.add_job(
                poll_delays,
                "interval",
                seconds=GTFS_RT_POLL_SECONDS,
                id="gtfs_rt_poll",
                args=[GTFS_RT_FEED],
            )
            scheduler.start()
            logger.info("GTFS-RT polling scheduled (every %ds).", GTFS_RT_POLL_SECONDS)
        else:
            logger.info("GTFS-RT periodic polling disabled (GTFS_RT_POLL_SECONDS=0), startup fetch only.")
    else:
        logger.info("GTFS-RT disabled, GTFS_RT_FEED not set.")

    yield

    # Shutdown
    if scheduler.running:
        scheduler.shutdown()


app = FastAPI(
    title="Bus Departures",
    description="Next scheduled buses at a stop, adjusted by real-time delays.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _require_store() -> ScheduleStore:
    try:
        return get_store()
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """
    Liveness + data-freshness check.

    Reports whether the schedule is loaded and how much real-time data the
    last poll produced.
    """
    try:
        store = get_store()
        schedule = {
            "loaded": True,
            "stops": len(store.stops),
            "trips": len(store.trips),
            "services": len(store.calendars),
        }
    except RuntimeError:
        schedule = {"loaded": False, "stops": 0, "trips": 0, "services": 0}

    last_fetched = get_last_fetched()
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "schedule": schedule,
        "realtime": {
            "configured": GTFS_RT_FEED != "",
            "polling_active": GTFS_RT_FEED != "" and GTFS_RT_POLL_SECONDS > 0 and scheduler.running,
            "delayed_pairs": len(gtfs_realtime.current_delays),
            "last_fetched_at": last_fetched.isoformat() if last_fetched else None,
        },
    }


@app.get("/stops", response_model=list[StopResult])
async def find_stops(
    query: str = Query(..., min_length=2, description="Stop name substring to search"),
) -> list[StopResult]:
    """Search stops by name substring."""
    store = _require_store()
    return [
        {"stop_id": stop_id, "stop_name": stop_name}
        for stop_id, stop_name in search_stops(store, query)
    ]


@app.get("/stops/{stop_id}/departures", response_model=DeparturesResponse)
async def get_departures(
    stop_id: str,
    after: str | None = Query(
        None,
        description="List departures at or after this time today, HH:MM (24-hour, local). Defaults to now.",
    ),
    limit: int = Query(DEFAULT_HOW_MANY, ge=1, le=200, description="Maximum departures to return"),
    route: str | None = Query(None, description="Only this route label (exact, case-sensitive)"),
) -> DeparturesResponse:
    """Return the next departures at a stop, ordered by delay-adjusted time."""
    store = _require_store()

    query = DepartureQuery(stop_id, as_of=now_local()).take(limit)
    if after:
        try:
            wall = datetime.strptime(after, "%H:%M").time()
            query = query.after(at_local(now_local().date(), wall))
        except InvalidLocalTime as exc:
            raise HTTPException(status_code=422, detail=str(exc))
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=f"Invalid time parameter: {exc}")
    if route:
        query = query.on_route(route)

    try:
        board = rank_departures(store, gtfs_realtime.current_delays, query)
    except NoSuchStop as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    return {
        "stop_id": board.stop_id,
        "stop_name": board.stop_name,
        "as_of": query.as_of.isoformat(),
        "departures": [
            {
                "scheduled": d.scheduled.isoformat(timespec="seconds"),
                "delay_seconds": d.delay_seconds,
                "route": d.route,
                "headsign": d.headsign,
                "trip_id": d.trip_id,
                "effective": d.effective.isoformat(timespec="seconds"),
            }
            for d in board.departures
        ],
    }


if __name__ == "__main__":
    import uvicorn
    from config import API_HOST, API_PORT

    uvicorn.run(app, host=API_HOST, port=API_PORT)
