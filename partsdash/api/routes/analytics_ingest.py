"""
Analytics Ingestion API Routes.

Public tracking endpoint called by the storefront for every page view,
product view, unit contact and slide interaction.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel

from partsdash.api.deps import get_analytics_rules, get_clock, get_event_store
from partsdash.components.analytics import (
    EventStorePort,
    RecordEventInput,
    TimePort,
    run_record,
)
from partsdash.rules.models import AnalyticsRules

router = APIRouter()


# --- Request/Response Models ---


class RecordEventResponse(BaseModel):
    """Success response; duplicate page views are a success too."""

    success: bool = True
    event_id: int | None = None
    duplicate: bool | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class EventStatsResponse(BaseModel):
    status: str = "ok"
    total_events: int
    page_views: int
    unit_clicks: int
    by_type: dict[str, int]


# --- Helpers ---


def get_client_ip(request: Request) -> str | None:
    """Client address from proxy headers, falling back to the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


# --- Routes ---


@router.post(
    "/record-event",
    response_model=RecordEventResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def record_event(
    request: Request,
    data: dict[str, Any] = Body(...),
    event_store: EventStorePort = Depends(get_event_store),
    clock: TimePort = Depends(get_clock),
    rules: AnalyticsRules = Depends(get_analytics_rules),
) -> RecordEventResponse:
    """
    Record one tracking event.

    The server clock sets the timestamp. A repeated page view for the
    same session and page within the dedupe window is acknowledged
    with duplicate=true and not stored.
    """
    inp = RecordEventInput(
        data=data,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    result = run_record(inp, event_store=event_store, time_port=clock, rules=rules)

    if result.duplicate:
        return RecordEventResponse(duplicate=True)
    return RecordEventResponse(event_id=result.event_id)


@router.get("/record-event", response_model=EventStatsResponse)
def event_stats(
    event_store: EventStorePort = Depends(get_event_store),
) -> EventStatsResponse:
    """Store health check with per-type event counts."""
    counts = event_store.count_by_type()
    return EventStatsResponse(
        total_events=sum(counts.values()),
        page_views=counts.get("page_view", 0),
        unit_clicks=counts.get("unit_click", 0),
        by_type=counts,
    )
