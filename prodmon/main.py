"""
Production Monitoring Dashboard - FastAPI Application
Main entry point for the dashboard server
"""

import asyncio

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import aiohttp
import uvicorn
import structlog
from contextlib import asynccontextmanager

from prodmon.api.routes import admin, devices, health, live, series
from prodmon.clients.manifest import ManifestCache
from prodmon.collectors.live_feed import LiveChartBuffer, LiveDeviceDirectory, LiveFeedClient
from prodmon.core.config import settings
from prodmon.core.errors import DashboardError
from prodmon.dashboard.session import SessionRegistry

# Configure structured logging
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
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

async def start_live_feed(app: FastAPI):
    """Attach the WebSocket prototype feed when it is configured"""
    app.state.live_feed = None
    app.state.live_buffer = None
    app.state.live_directory = None
    if not (settings.live_ws_url and settings.live_login_id):
        return None

    client = LiveFeedClient()
    app.state.live_feed = client
    app.state.live_buffer = LiveChartBuffer()
    app.state.live_directory = LiveDeviceDirectory(client)
    client.register_handler(app.state.live_directory)
    client.register_handler(app.state.live_buffer)
    return asyncio.create_task(client.start())

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Production Monitoring Dashboard")
    # Startup
    http_session = aiohttp.ClientSession()
    app.state.sessions = SessionRegistry(http_session, settings.appsync_url, settings.request_timeout)
    app.state.manifest = ManifestCache(settings.fw_manifest_url, settings.manifest_timeout)
    await app.state.manifest.load()
    live_task = await start_live_feed(app)
    yield
    # Shutdown
    logger.info("Shutting down Production Monitoring Dashboard")
    if live_task is not None:
        await app.state.live_feed.stop()
        live_task.cancel()
        await asyncio.gather(live_task, return_exceptions=True)
    await app.state.sessions.close_all()
    await http_session.close()

# Create FastAPI application
app = FastAPI(
    title="Production Monitoring Dashboard API",
    description="Per-device production counts, device health and firmware updates",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(devices.router, prefix="/api/v1", tags=["devices"])
app.include_router(series.router, prefix="/api/v1", tags=["series"])
app.include_router(admin.router, prefix="/api/v1", tags=["admin"])
app.include_router(live.router, prefix="/api/v1", tags=["live"])

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Production Monitoring Dashboard API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health"
    }

@app.exception_handler(DashboardError)
async def dashboard_exception_handler(request, exc: DashboardError):
    """Surface dashboard errors as their message"""
    logger.warning("Request failed", error=str(exc), error_type=type(exc).__name__, path=request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)}
    )

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler"""
    logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )

if __name__ == "__main__":
    uvicorn.run(
        "prodmon.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
