"""
Disaster Monitor & V2V Messaging API

Main FastAPI application entry point.
"""

import json
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from disaster_monitor.config import Settings, get_settings
from disaster_monitor.models.base import DocumentStore, init_firebase
from disaster_monitor.realtime import ConnectionManager
from disaster_monitor.middleware import AccessLogMiddleware, RateLimitMiddleware
from disaster_monitor.services.analytics_service import AnalyticsService
from disaster_monitor.services.disaster_service import DisasterService
from disaster_monitor.services.gemini_service import GeminiService
from disaster_monitor.services.user_service import FirebaseTokenVerifier
from disaster_monitor.services.v2v_service import V2VService
from disaster_monitor.jobs import DataUpdateJob
from disaster_monitor.api import api_router

# Configure logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

DISASTER_ALERT_EVENT = "disaster-alert"


def _set_defaults(app: FastAPI) -> None:
    """Collaborators that work without any external service configured."""
    app.state.store = None
    app.state.ai = GeminiService(None)
    app.state.disaster_service = DisasterService()
    app.state.connections = ConnectionManager()
    app.state.token_verifier = None
    app.state.jobs = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings

    # Startup
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"Environment: {settings.environment}")

    try:
        firebase_app = init_firebase(settings)
        app.state.store = DocumentStore.from_app(firebase_app)
        app.state.token_verifier = FirebaseTokenVerifier(firebase_app)
        logger.info("Firestore initialized successfully")
    except Exception as e:
        logger.warning(f"Firebase initialization skipped: {e}")
        logger.warning("API will start but storage and authentication will fail until Firebase is configured")

    if not settings.weather_api_key:
        logger.warning("Weather API key not configured; weather alerts are unavailable")

    app.state.ai = GeminiService(settings.gemini_api_key, settings.gemini_model)
    app.state.disaster_service = DisasterService(store=app.state.store, settings=settings)

    if settings.jobs_enabled and app.state.store is not None:
        app.state.jobs = DataUpdateJob(
            store=app.state.store,
            disaster_service=app.state.disaster_service,
            analytics_service=AnalyticsService(app.state.disaster_service, app.state.store),
            v2v_service=V2VService(app.state.store, app.state.ai, app.state.connections, settings),
            settings=settings,
        )
        app.state.jobs.start()

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")
    if app.state.jobs is not None:
        await app.state.jobs.stop()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    started_at = time.monotonic()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="""
    ## Disaster Monitor & V2V Messaging

    * **Disaster feeds** - Earthquakes, tsunami-flagged quakes, volcanic alerts and severe weather
    * **AI assistant** - Disaster analysis, emergency plans and safety recommendations
    * **V2V messaging** - Vehicle registration, proximity search and emergency broadcast
    * **Analytics** - Trends, hotspots, severity distribution and simple predictions
    """,
        docs_url="/api-docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan
    )
    app.state.settings = settings
    _set_defaults(app)

    # Middleware: the last one added runs first
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Validation failed",
                "details": jsonable_encoder(exc.errors()),
            }
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": exc.detail,
                "status_code": exc.status_code,
                "path": str(request.url.path)
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "detail": str(exc) if settings.debug else None,
                "path": str(request.url.path)
            }
        )

    @app.get("/health", tags=["Health"])
    async def health_check() -> Dict[str, Any]:
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - started_at, 3),
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/", tags=["Root"])
    async def root() -> Dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "documentation": "/api-docs",
            "health_check": "/health",
            "api_prefix": settings.api_prefix
        }

    @app.websocket("/ws/vehicles/{vehicle_id}")
    async def vehicle_socket(websocket: WebSocket, vehicle_id: str):
        """Join a vehicle's room; relays disaster alerts between clients."""
        connections: ConnectionManager = websocket.app.state.connections
        await connections.connect(vehicle_id, websocket)
        try:
            while True:
                text = await websocket.receive_text()
                if text == "ping":
                    await websocket.send_json({"type": "pong"})
                    continue
                try:
                    frame = json.loads(text)
                except json.JSONDecodeError:
                    logger.warning(f"Ignoring non-JSON frame from vehicle {vehicle_id}")
                    continue
                if isinstance(frame, dict) and frame.get("type") == DISASTER_ALERT_EVENT:
                    await connections.broadcast(
                        DISASTER_ALERT_EVENT, frame.get("data"), exclude=websocket
                    )
        except WebSocketDisconnect:
            logger.info(f"Vehicle {vehicle_id} socket closed")
        finally:
            connections.disconnect(vehicle_id, websocket)

    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "disaster_monitor.main:app",
        host=_settings.api_host,
        port=_settings.api_port,
        reload=_settings.debug,
        log_level="debug" if _settings.debug else "info"
    )
