"""
FastAPI Application Entry Point

JWT Pizza Service - franchise/store management and diner ordering,
with orders fulfilled by the pizza factory (mock in development).

Endpoints:
    - /api/auth: register, login, logout
    - /api/order: menu and diner orders
    - /api/franchise: franchises and stores
    - /api/user: current user and profile updates
    - GET /api/docs: endpoint listing
    - GET /health: system health check

Run:
    uvicorn pizza_service.main:app --port 3000
"""

import asyncio
import sys
import logging
from datetime import datetime
from typing import Any
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import make_url
from starlette.exceptions import HTTPException as StarletteHTTPException

# Windows-specific event loop policy (psycopg async needs the selector loop)
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from pizza_service import __version__
from pizza_service.core.config import get_settings, setup_logging
from pizza_service.core.exceptions import PizzaServiceError
from pizza_service.dependencies import get_database
from pizza_service.routes import auth_router, franchise_router, order_router, user_router
from pizza_service.schemas import HealthResponse
from pizza_service.services.factory import get_factory_service

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: the database must be initialized before traffic is accepted.
    Shutdown: the connection pool is disposed.
    """
    logger.info("=" * 60)
    logger.info(f"🍕 Starting {settings.app_name}")
    logger.info(f"   Version: {__version__}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    db = get_database()
    await db.initialize()
    logger.info("✅ Database initialized")

    factory_service = get_factory_service()
    logger.info(f"✅ Factory Service: {factory_service.provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("✅ Application ready!")

    yield  # Application runs

    logger.info("Shutting down...")
    await db.close()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Pizza franchise management and ordering backed by the pizza factory.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(order_router)
app.include_router(franchise_router)
app.include_router(user_router)


# =============================================================================
# ROOT, DOCS & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {"message": "welcome to JWT Pizza", "version": __version__}


@app.get("/api/docs", tags=["Root"], summary="List API endpoints")
async def api_docs() -> dict[str, Any]:
    endpoints = []
    for path, operations in app.openapi()["paths"].items():
        if not path.startswith("/api"):
            continue
        for method, operation in sorted(operations.items()):
            endpoints.append({
                "method": method.upper(),
                "path": path,
                "description": operation.get("summary") or operation.get("operationId"),
            })

    db_url = make_url(settings.database_url)
    return {
        "version": __version__,
        "endpoints": endpoints,
        "config": {
            "factory": settings.factory_url,
            "db": db_url.host or db_url.database,
        },
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Verify the database and the factory are reachable."""
    db = get_database()
    db_status = "healthy"
    if not db.is_ready:
        db_status = "initializing"
    else:
        try:
            await db.health_check()
        except Exception as e:
            db_status = f"unhealthy: {e}"
            logger.error(f"Database health check failed: {e}")

    factory_service = get_factory_service()
    factory_status = "healthy" if await factory_service.health_check() else "unhealthy"

    overall = "operational" if db_status == factory_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        factory_service=f"{factory_service.provider_name}: {factory_status}",
        timestamp=datetime.now(),
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(PizzaServiceError)
async def service_error_handler(request: Request, exc: PizzaServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(status_code=400, content={"message": "; ".join(problems)})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"message": "unknown endpoint"})
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "message": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
