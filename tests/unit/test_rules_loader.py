"""
Rules loader and validator tests.

The service refuses to start on a missing or invalid rules file, so
every failure here must surface as FileNotFoundError or ValueError.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from partsdash.rules.loader import load_rules
from partsdash.rules.models import AnalyticsRules

PROJECT_ROOT = Path(__file__).parent.parent.parent

MINIMAL = """
project:
  slug: test-project
  rules_version: "1"
"""


def write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "rules.yaml"
    path.write_text(content)
    return path


class TestLoadRules:
    def test_load_actual_rules_file(self) -> None:
        """The shipped rules.yaml validates."""
        rules = load_rules(PROJECT_ROOT / "rules.yaml")

        assert rules.project.slug == "partsdash"
        assert rules.analytics.timezone == "America/Sao_Paulo"
        assert rules.analytics.click_action_types == ["whatsapp"]

    def test_missing_file(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_rules(Path("/nonexistent/rules.yaml"))

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_rules(write(tmp_path, "invalid: yaml: content: ["))

    def test_missing_project_section(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="validation failed"):
            load_rules(write(tmp_path, "analytics:\n  top_n: 5\n"))

    def test_analytics_defaults(self, tmp_path: Path) -> None:
        """Omitting the analytics section gives the built-in defaults."""
        rules = load_rules(write(tmp_path, MINIMAL))

        assert rules.analytics == AnalyticsRules()
        assert rules.analytics.dedupe_window_seconds == 30
        assert rules.analytics.retention_days == 90
        assert rules.analytics.timezone == "UTC"


class TestAnalyticsValidation:
    def test_unknown_timezone(self, tmp_path: Path) -> None:
        content = MINIMAL + "analytics:\n  timezone: Mars/Olympus_Mons\n"

        with pytest.raises(ValueError, match="unknown timezone"):
            load_rules(write(tmp_path, content))

    def test_negative_dedupe_window(self, tmp_path: Path) -> None:
        content = MINIMAL + "analytics:\n  dedupe_window_seconds: -1\n"

        with pytest.raises(ValueError):
            load_rules(write(tmp_path, content))

    def test_zero_dedupe_window_allowed(self) -> None:
        assert AnalyticsRules(dedupe_window_seconds=0).dedupe_window_seconds == 0

    def test_empty_period_token(self) -> None:
        with pytest.raises(ValueError, match="at least one day"):
            AnalyticsRules(period_tokens={"today": 0})

    def test_field_limits_override(self, tmp_path: Path) -> None:
        content = MINIMAL + "analytics:\n  field_limits:\n    page_url: 512\n"

        rules = load_rules(write(tmp_path, content))

        assert rules.analytics.field_limits.page_url == 512
        assert rules.analytics.field_limits.user_agent == 255
