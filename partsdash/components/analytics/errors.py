"""
Analytics error taxonomy.

Every failure the engine surfaces derives from AnalyticsError so HTTP
shells can map them in one place. Empty or reversed ranges are not
errors and have no class here.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class IngestionError:
    """Single field-level validation problem."""

    code: str
    message: str
    field_name: str | None = None


class AnalyticsError(Exception):
    """Base class for analytics engine failures."""

    status_code = 500


class ValidationError(AnalyticsError):
    """Request is missing required data or carries malformed values."""

    status_code = 400

    def __init__(self, message: str, errors: list[IngestionError] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class InvalidEventType(ValidationError):
    """Event type is not in the configured allow-list."""

    def __init__(self, event_type: str) -> None:
        super().__init__(
            f"Event type '{event_type}' is not allowed",
            [
                IngestionError(
                    code="invalid_event_type",
                    message=f"Event type '{event_type}' is not allowed",
                    field_name="event_type",
                )
            ],
        )
        self.event_type = event_type


class StorageUnavailable(AnalyticsError):
    """Event store or catalog could not be reached, or a query failed."""

    status_code = 500
