import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from partsdash.adapters.sqlite.migrator import SQLiteMigrator
from partsdash.api.deps import get_settings
from partsdash.api.errors import register_error_handlers
from partsdash.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Load rules and validate on startup (fail-fast)
    try:
        load_rules(settings.rules_path)
        logger.info("Rules loaded from %s", settings.rules_path)
    except (FileNotFoundError, ValueError) as e:
        logger.critical("Rules load failed: %s", e)
        sys.exit(1)

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    SQLiteMigrator(settings.db_path).run_migrations()

    yield
    # Shutdown cleanup if needed


app = FastAPI(
    title="Partsdash Analytics API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

register_error_handlers(app)

# --- Routers ---
from partsdash.api.routes import admin_analytics, analytics_ingest  # noqa: E402

app.include_router(analytics_ingest.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(admin_analytics.router, prefix="/api/admin", tags=["Admin Analytics"])


# CORS (Allow Storefront)
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}
