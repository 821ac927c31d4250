"""
IngestionGuard - Event validation and page-view duplicate suppression.

Key behaviors:
- Only allow-listed event types accepted
- Missing session ids synthesised so the event still counts as one visit
- Repeated page views for the same (session, page) inside the dedupe
  window are reported as duplicates and not written
- Server clock is authoritative; client timestamps are ignored
- Contextual strings truncated before storage

The duplicate check is read-then-write without a lock. Two concurrent
requests for the same session/page can both pass it; aggregate counts are
informational so the occasional extra row is tolerated.
"""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Any

from .config import DEFAULT_INGESTION_CONFIG, IngestionConfig
from .errors import IngestionError, InvalidEventType, ValidationError
from .models import EventType, IngestResult, NewEvent
from .ports import EventStorePort, TimePort

logger = logging.getLogger(__name__)

_SESSION_ALPHABET = string.ascii_lowercase + string.digits
_STRING_FIELDS = ("entity_type", "entity_id", "page_url", "session_id", "user_id")


# --- Validation Functions ---


def validate_event_type(
    event_type: Any,
    config: IngestionConfig = DEFAULT_INGESTION_CONFIG,
) -> str:
    """Return the event type or raise if missing / not allow-listed."""
    if not event_type:
        raise ValidationError(
            "Event type is required",
            [
                IngestionError(
                    code="event_type_required",
                    message="Event type is required",
                    field_name="event_type",
                )
            ],
        )

    if not isinstance(event_type, str) or event_type not in config.allowed_event_types:
        raise InvalidEventType(str(event_type))

    return event_type


def validate_fields(data: dict[str, Any]) -> list[IngestionError]:
    """Check optional fields carry the expected shapes."""
    errors: list[IngestionError] = []

    for field_name in _STRING_FIELDS:
        value = data.get(field_name)
        if value is not None and not isinstance(value, str):
            errors.append(
                IngestionError(
                    code="invalid_field",
                    message=f"Field '{field_name}' must be a string",
                    field_name=field_name,
                )
            )

    metadata = data.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        errors.append(
            IngestionError(
                code="invalid_metadata",
                message="Metadata must be an object",
                field_name="metadata",
            )
        )

    return errors


def truncate(value: str | None, limit: int) -> str | None:
    """Clip a contextual string to its column limit."""
    if value is None:
        return None
    return value[:limit]


def generate_session_id(now: datetime) -> str:
    """Synthesise session_<epoch-ms>_<9 base36 chars>."""
    suffix = "".join(secrets.choice(_SESSION_ALPHABET) for _ in range(9))
    return f"session_{int(now.timestamp() * 1000)}_{suffix}"


# --- Ingestion Guard ---


class IngestionGuard:
    """
    Analytics ingestion guard.

    Validates events, suppresses near-duplicate page views and appends
    accepted events to the store.
    """

    def __init__(
        self,
        event_store: EventStorePort,
        time_port: TimePort,
        config: IngestionConfig | None = None,
    ) -> None:
        """Initialize guard."""
        self._store = event_store
        self._time = time_port
        self._config = config or DEFAULT_INGESTION_CONFIG

    def is_duplicate(self, event: NewEvent) -> bool:
        """Best-effort check for the same page view inside the window."""
        if event.event_type != EventType.PAGE_VIEW.value or not event.page_url:
            return False

        since = event.timestamp - timedelta(seconds=self._config.dedupe_window_seconds)
        return self._store.has_recent(
            event_type=EventType.PAGE_VIEW.value,
            session_id=event.session_id,
            page_url=event.page_url,
            since=since,
        )

    def build_event(
        self,
        data: dict[str, Any],
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> NewEvent:
        """
        Validate a raw payload and build the event to store.

        Raises:
            ValidationError: Missing event type or malformed fields.
            InvalidEventType: Event type outside the allow-list.
        """
        event_type = validate_event_type(data.get("event_type"), self._config)

        errors = validate_fields(data)
        if errors:
            raise ValidationError(errors[0].message, errors)

        now = self._time.now_utc()
        session_id = data.get("session_id") or generate_session_id(now)
        metadata = data.get("metadata") or None

        return NewEvent(
            event_type=event_type,
            timestamp=now,
            session_id=session_id,
            entity_type=data.get("entity_type") or None,
            entity_id=data.get("entity_id") or None,
            user_id=data.get("user_id") or None,
            page_url=truncate(data.get("page_url") or None, self._config.max_page_url_length),
            user_agent=truncate(user_agent, self._config.max_user_agent_length),
            ip_address=truncate(ip_address, self._config.max_ip_address_length),
            metadata=dict(metadata) if metadata else None,
        )

    def record(
        self,
        data: dict[str, Any],
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> IngestResult:
        """
        Record one event.

        Returns accepted with the new id, or not accepted with reason
        "duplicate" when a matching page view is inside the window.
        StorageUnavailable from the store propagates unchanged.
        """
        event = self.build_event(data, ip_address=ip_address, user_agent=user_agent)

        if self.is_duplicate(event):
            logger.debug(
                "Duplicate %s ignored for session %s on %s",
                event.event_type,
                event.session_id,
                event.page_url,
            )
            return IngestResult(accepted=False, reason="duplicate")

        stored = self._store.append(event)
        logger.debug("Recorded %s event %s", stored.event_type, stored.id)
        return IngestResult(accepted=True, event_id=stored.id)


# --- Factory ---


def create_ingestion_guard(
    event_store: EventStorePort,
    time_port: TimePort,
    config: IngestionConfig | None = None,
) -> IngestionGuard:
    """Create an IngestionGuard."""
    return IngestionGuard(event_store=event_store, time_port=time_port, config=config)
