# ruff: noqa: I001

import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vconn.api.router import api_router
from vconn.config import settings
from vconn.core.observability import (
    global_exception_handler,
    request_logging_middleware,
    uptime_seconds,
    utc_now_iso,
)
from vconn.database import POOL_CONFIG, engine

api_prefix = settings.api_prefix

logger = logging.getLogger("vconn")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(
    title=settings.app_name,
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    openapi_url=(f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
    if settings.enable_docs
    else None,
)

# Expose logger for middleware without creating circular imports.
app.state.logger = logger

# Unhandled exceptions become a structured 500 carrying the request id.
app.add_exception_handler(Exception, global_exception_handler)

# Request-level logging + request correlation id.
app.middleware("http")(request_logging_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=api_prefix)


def _run_migrations_if_configured() -> None:
    if not settings.run_migrations_on_start:
        return

    if (settings.environment or "").lower() == "test":
        return

    # Import lazily to keep import graph light for non-migration startups.
    from alembic import command
    from alembic.config import Config
    from sqlalchemy.engine.url import make_url

    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))

    url_obj = make_url(str(settings.database_url))
    logger.info(
        "migrations_db_target driver=%s host=%s port=%s db=%s user=%s has_password=%s",
        url_obj.drivername,
        url_obj.host,
        url_obj.port,
        url_obj.database,
        url_obj.username,
        bool(url_obj.password),
    )

    try:
        with engine.connect() as connection:
            # Reuse this connection inside Alembic env.py (config.attributes['connection']).
            alembic_cfg.attributes["connection"] = connection
            command.upgrade(alembic_cfg, "head")
            connection.commit()
        logger.info("migrations_applied")
    except Exception as e:
        # Don't crash the API if migrations fail; endpoints touching the DB will surface it.
        logger.error("migrations_failed error=%s", str(e))


@app.on_event("startup")
def _startup():
    logger.info(
        "runtime_config",
        extra={
            "pid": os.getpid(),
            "web_concurrency": os.getenv("WEB_CONCURRENCY"),
            "db_pool": POOL_CONFIG,
            "free_attempts_cap": settings.free_attempts_cap,
            "cancellations_cap": settings.cancellations_cap,
        },
    )
    _run_migrations_if_configured()


@app.get("/", tags=["meta"])
def root():
    docs_path = (
        (f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
        if settings.enable_docs
        else None
    )
    logger.info("health_check", extra={"event": "root", "status": "ok"})
    return {"message": "VConn Marketplace API", "docs": docs_path}


@app.get("/health", tags=["meta"])
@app.get("/healthz", tags=["meta"])
def healthcheck():
    """Liveness probe. Keep payload stable for monitoring systems."""

    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "time": utc_now_iso(),
        "uptime_seconds": round(uptime_seconds(), 2),
        "version": settings.build_version,
    }
