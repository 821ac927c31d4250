"""
Analytics configuration.

Frozen dataclasses passed explicitly into every ingestion and aggregation
call; built from rules.yaml by the component entry points.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class IngestionConfig:
    """Ingestion guard configuration."""

    allowed_event_types: frozenset[str] = field(
        default_factory=lambda: frozenset(
            {
                "page_view",
                "unit_click",
                "unit_action_click",
                "product_view",
                "slide_view",
                "slide_click",
            }
        ),
    )

    # Page-view duplicate suppression per (session, page)
    dedupe_window_seconds: int = 30

    # Contextual string limits
    max_page_url_length: int = 2048
    max_user_agent_length: int = 255
    max_ip_address_length: int = 45


@dataclass(frozen=True)
class QueryConfig:
    """Aggregation query configuration."""

    timezone: str = "UTC"
    default_days: int = 30
    period_tokens: dict[str, int] = field(
        default_factory=lambda: {
            "last_7_days": 7,
            "last_30_days": 30,
            "last_90_days": 90,
        },
    )
    top_n: int = 10
    retention_days: int = 90

    # unit_action_click counts as a click only for these action types
    click_action_types: frozenset[str] = field(
        default_factory=lambda: frozenset({"whatsapp"}),
    )


DEFAULT_INGESTION_CONFIG = IngestionConfig()
DEFAULT_QUERY_CONFIG = QueryConfig()
