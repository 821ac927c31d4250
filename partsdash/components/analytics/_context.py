"""
Request-context classification for traffic breakdowns.

Key behaviors:
- UTM parameters parsed from the tracked page URL query string
- Traffic source from user-agent hints, then utm_source, else direct
- Device type from user-agent substrings (mobile / tablet / desktop)

Only stored context strings are read; nothing here touches metadata.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qs, urlparse

from .models import EventRecord, SourceCount

# --- Enums ---


class TrafficSource(str, Enum):
    """Traffic source labels shown on the dashboard."""

    DIRECT = "Direto"
    GOOGLE = "Google"
    FACEBOOK = "Facebook"
    INSTAGRAM = "Instagram"
    EMAIL = "Email"
    SOCIAL = "Redes Sociais"


class DeviceType(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


# --- Configuration ---


@dataclass(frozen=True)
class ContextConfig:
    """User-agent hint patterns, checked in order."""

    ua_source_patterns: tuple[tuple[str, TrafficSource], ...] = (
        ("google", TrafficSource.GOOGLE),
        ("facebook", TrafficSource.FACEBOOK),
        ("fban", TrafficSource.FACEBOOK),
        ("instagram", TrafficSource.INSTAGRAM),
    )

    utm_source_map: tuple[tuple[str, TrafficSource], ...] = (
        ("email", TrafficSource.EMAIL),
        ("newsletter", TrafficSource.EMAIL),
        ("social", TrafficSource.SOCIAL),
        ("google", TrafficSource.GOOGLE),
        ("facebook", TrafficSource.FACEBOOK),
        ("instagram", TrafficSource.INSTAGRAM),
    )

    tablet_patterns: tuple[str, ...] = ("tablet", "ipad")
    mobile_patterns: tuple[str, ...] = ("mobile", "android", "iphone")


DEFAULT_CONFIG = ContextConfig()


# --- Parsing Functions ---


def parse_utm_source(page_url: str | None) -> str | None:
    """utm_source from a page URL query string, lowercased."""
    if not page_url:
        return None

    query = urlparse(page_url).query
    if not query:
        return None

    values = parse_qs(query).get("utm_source")
    if not values:
        return None
    return values[0].strip().lower() or None


def classify_traffic_source(
    page_url: str | None,
    user_agent: str | None,
    config: ContextConfig = DEFAULT_CONFIG,
) -> TrafficSource:
    """Best-effort source of a page view."""
    ua_lower = (user_agent or "").lower()
    for pattern, source in config.ua_source_patterns:
        if pattern in ua_lower:
            return source

    utm_source = parse_utm_source(page_url)
    if utm_source:
        for pattern, source in config.utm_source_map:
            if pattern in utm_source:
                return source

    return TrafficSource.DIRECT


def classify_device(
    user_agent: str | None,
    config: ContextConfig = DEFAULT_CONFIG,
) -> DeviceType:
    """Tablet patterns win over mobile ones; anything else is desktop."""
    if not user_agent:
        return DeviceType.DESKTOP

    ua_lower = user_agent.lower()
    for pattern in config.tablet_patterns:
        if pattern in ua_lower:
            return DeviceType.TABLET
    for pattern in config.mobile_patterns:
        if pattern in ua_lower:
            return DeviceType.MOBILE
    return DeviceType.DESKTOP


def device_breakdown(events: Iterable[EventRecord]) -> dict[str, int]:
    """Counts per device type, every type present."""
    counts = {device.value: 0 for device in DeviceType}
    for event in events:
        counts[classify_device(event.user_agent).value] += 1
    return counts


def share_of(counts: dict[str, int]) -> tuple[SourceCount, ...]:
    """Counts with percentages (two decimals), largest first, ties by name."""
    total = sum(counts.values())
    items = [
        SourceCount(
            name=name,
            count=count,
            percentage=round(count / total * 100, 2) if total else 0.0,
        )
        for name, count in counts.items()
        if count > 0
    ]
    return tuple(sorted(items, key=lambda s: (-s.count, s.name)))
