"""
SQLite adapters for the analytics event store and the catalog lookups.

Timestamps are stored as UTC ISO strings with microsecond precision so
lexical comparison in SQL matches chronological order. Metadata is
stored as JSON text. sqlite errors surface as StorageUnavailable.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from partsdash.components.analytics import (
    CategoryInfo,
    EventRecord,
    NewEvent,
    ProductInfo,
    SlideInfo,
    StorageUnavailable,
    UnitInfo,
)

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def format_dt(dt: datetime) -> str:
    """Fixed-width UTC ISO string."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


def parse_dt(s: str) -> datetime:
    """Parse a stored ISO timestamp to aware UTC."""
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn

        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot open database: {e}") from e
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _should_close(self) -> bool:
        """Whether to close connection after use."""
        return self._external_conn is None

    def _query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        conn = self._get_conn()
        try:
            return conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as e:
            logger.exception("Query failed")
            raise StorageUnavailable(f"Query failed: {e}") from e
        finally:
            if self._should_close():
                conn.close()


# -----------------------------------------------------------------------------
# Analytics Event Store
# -----------------------------------------------------------------------------


class SQLiteEventStore(SQLiteRepoBase):
    """SQLite implementation of EventStorePort."""

    def append(self, event: NewEvent) -> EventRecord:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                INSERT INTO analytics_events (
                    event_type, entity_type, entity_id, user_id, session_id,
                    page_url, user_agent, ip_address, metadata, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.event_type,
                    event.entity_type,
                    event.entity_id,
                    event.user_id,
                    event.session_id,
                    event.page_url,
                    event.user_agent,
                    event.ip_address,
                    json.dumps(event.metadata) if event.metadata is not None else None,
                    format_dt(event.timestamp),
                ),
            )
            conn.commit()
            event_id = cursor.lastrowid
        except sqlite3.Error as e:
            logger.exception("Failed to insert analytics event")
            raise StorageUnavailable(f"Insert failed: {e}") from e
        finally:
            if self._should_close():
                conn.close()

        return EventRecord(
            id=int(event_id or 0),
            event_type=event.event_type,
            timestamp=parse_dt(format_dt(event.timestamp)),
            session_id=event.session_id,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            user_id=event.user_id,
            page_url=event.page_url,
            user_agent=event.user_agent,
            ip_address=event.ip_address,
            metadata=event.metadata,
        )

    def has_recent(
        self,
        event_type: str,
        session_id: str,
        page_url: str,
        since: datetime,
    ) -> bool:
        rows = self._query(
            """
            SELECT id FROM analytics_events
            WHERE session_id = ? AND page_url = ? AND event_type = ? AND timestamp >= ?
            LIMIT 1
            """,
            (session_id, page_url, event_type, format_dt(since)),
        )
        return bool(rows)

    def list_range(
        self,
        start: datetime,
        end: datetime,
        event_types: Sequence[str] | None = None,
        entity_type: str | None = None,
    ) -> list[EventRecord]:
        sql = "SELECT * FROM analytics_events WHERE timestamp >= ? AND timestamp < ?"
        params: list[Any] = [format_dt(start), format_dt(end)]

        if event_types is not None:
            if not event_types:
                return []
            sql += f" AND event_type IN ({_placeholders(event_types)})"
            params.extend(event_types)
        if entity_type is not None:
            sql += " AND entity_type = ?"
            params.append(entity_type)

        sql += " ORDER BY timestamp ASC, id ASC"
        return [self._map_row(r) for r in self._query(sql, params)]

    def count_by_type(self) -> dict[str, int]:
        rows = self._query(
            "SELECT event_type, COUNT(*) AS n FROM analytics_events GROUP BY event_type"
        )
        return {r["event_type"]: r["n"] for r in rows}

    def purge_before(self, cutoff: datetime) -> int:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                "DELETE FROM analytics_events WHERE timestamp < ?",
                (format_dt(cutoff),),
            )
            conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            logger.exception("Failed to purge analytics events")
            raise StorageUnavailable(f"Purge failed: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> EventRecord:
        return EventRecord(
            id=row["id"],
            event_type=row["event_type"],
            timestamp=parse_dt(row["timestamp"]),
            session_id=row["session_id"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            user_id=row["user_id"],
            page_url=row["page_url"],
            user_agent=row["user_agent"],
            ip_address=row["ip_address"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else None,
        )


# -----------------------------------------------------------------------------
# Catalog Lookups
# -----------------------------------------------------------------------------


class SQLiteCatalogRepo(SQLiteRepoBase):
    """SQLite implementation of CatalogPort."""

    def get_products(self, product_ids: Iterable[str]) -> dict[str, ProductInfo]:
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}
        rows = self._query(
            f"SELECT * FROM products WHERE id IN ({_placeholders(ids)})",
            ids,
        )
        return {
            r["id"]: ProductInfo(
                id=r["id"],
                name=r["name"],
                slug=r["slug"],
                category_id=r["category_id"],
                price=r["price"],
                image_url=r["image_url"],
            )
            for r in rows
        }

    def get_product_categories(self, product_ids: Iterable[str]) -> dict[str, str]:
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}
        rows = self._query(
            f"""
            SELECT id, category_id FROM products
            WHERE id IN ({_placeholders(ids)}) AND category_id IS NOT NULL
            """,
            ids,
        )
        return {r["id"]: r["category_id"] for r in rows}

    def list_categories(self) -> list[CategoryInfo]:
        rows = self._query("SELECT id, name FROM categories ORDER BY name")
        return [CategoryInfo(id=r["id"], name=r["name"]) for r in rows]

    def count_active_products(self) -> dict[str | None, int]:
        rows = self._query(
            """
            SELECT category_id, COUNT(*) AS n FROM products
            WHERE active = 1
            GROUP BY category_id
            """
        )
        return {r["category_id"]: r["n"] for r in rows}

    def list_units(self) -> list[UnitInfo]:
        rows = self._query("SELECT id, name FROM units WHERE active = 1 ORDER BY name")
        return [UnitInfo(id=r["id"], name=r["name"]) for r in rows]

    def list_slides(self) -> list[SlideInfo]:
        rows = self._query("SELECT * FROM slides ORDER BY display_order, id")
        return [
            SlideInfo(
                id=r["id"],
                title=r["title"],
                image_url=r["image_url"],
                mobile_image_url=r["mobile_image_url"],
                active=bool(r["active"]),
                display_order=r["display_order"],
            )
            for r in rows
        ]
