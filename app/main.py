# app/main.py
"""
FastAPI application entry point.
Builds the reconciliation engine and MQTT bridge on startup, and maps engine
errors to HTTP responses.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from app.routers import alerts, barriers, events, health, history, queue, sessions, spots, tariff
from app.database import create_tables
from app.config import settings
from app.exceptions import NotFound, PersistenceError, ValidationError
from app.services.barrier_service import BarrierController
from app.services.mqtt_bridge import MqttBridge
from app.services.orchestrator import ReconciliationEngine
from app.services.parking_store import ParkingStore
from app.utils.logger import get_logger
import time
import asyncio

logger = get_logger(__name__)

app = FastAPI(
    title="Parking Reconciler API",
    description="Matches barrier entries to spot sensors, bills stays, drives the barriers over MQTT.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (allow dashboard on same LAN to call the API) ──────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to dashboard IP in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Engine Error Handlers ────────────────────────────────────────────────────
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"Store unavailable on {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                        content={"detail": "Database unavailable, retry later"})


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(queue.router,    prefix="/api/v1", tags=["🚗 Entry Queue"])
app.include_router(sessions.router, prefix="/api/v1", tags=["🅿️  Sessions & Payment"])
app.include_router(tariff.router,   prefix="/api/v1", tags=["💲 Tariff"])
app.include_router(history.router,  prefix="/api/v1", tags=["📊 History"])
app.include_router(spots.router,    prefix="/api/v1", tags=["📍 Spots"])
app.include_router(alerts.router,   prefix="/api/v1", tags=["🔔 Alerts"])
app.include_router(barriers.router, prefix="/api/v1", tags=["🚧 Barriers"])
app.include_router(events.router,   prefix="/api/v1", tags=["📡 Controller Events"])
app.include_router(health.router,   prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Parking Reconciler starting up...")
    create_tables()
    logger.info("✅ Database tables ready")

    bridge = MqttBridge() if settings.MQTT_ENABLED else None
    barrier = BarrierController(publish=bridge.publish if bridge else None)
    engine = ReconciliationEngine(ParkingStore(), barrier=barrier)
    await engine.start()
    app.state.engine = engine
    app.state.bridge = bridge

    if bridge is not None:
        bridge.start(asyncio.get_running_loop(), engine.submit_raw)
    else:
        logger.warning("📡 MQTT disabled — events only via POST /api/v1/events")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_HOST}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Parking Reconciler shutting down...")
    bridge = getattr(app.state, "bridge", None)
    if bridge is not None:
        bridge.stop()
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.stop()
