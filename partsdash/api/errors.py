import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from partsdash.components.analytics import AnalyticsError, ValidationError

logger = logging.getLogger(__name__)


def analytics_error_handler(request: Request, exc: AnalyticsError) -> JSONResponse:
    """Map engine failures to {success: false, error} payloads."""
    if not isinstance(exc, ValidationError):
        logger.error("Analytics request failed on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc)},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AnalyticsError, analytics_error_handler)  # type: ignore[arg-type]
