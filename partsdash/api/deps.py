import os
from functools import lru_cache
from pathlib import Path

from fastapi import Depends

from partsdash.adapters.clock import SystemClock
from partsdash.adapters.sqlite_db import SQLiteCatalogRepo, SQLiteEventStore
from partsdash.components.analytics import CatalogPort, EventStorePort, TimePort
from partsdash.rules.loader import load_rules
from partsdash.rules.models import AnalyticsRules, Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("PARTSDASH_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "partsdash.db")
        self.rules_path = Path(
            os.environ.get("PARTSDASH_RULES_PATH", str(self.base_dir / "rules.yaml"))
        )
        self.log_level = os.environ.get("PARTSDASH_LOG_LEVEL", "INFO").upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


def get_analytics_rules(rules: Rules = Depends(get_rules)) -> AnalyticsRules:
    return rules.analytics


# --- Ports ---
def get_event_store(settings: Settings = Depends(get_settings)) -> EventStorePort:
    return SQLiteEventStore(settings.db_path)


def get_catalog(settings: Settings = Depends(get_settings)) -> CatalogPort:
    return SQLiteCatalogRepo(settings.db_path)


def get_clock() -> TimePort:
    return SystemClock()
