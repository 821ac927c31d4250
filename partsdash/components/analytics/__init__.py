"""
Analytics component - Event ingestion and dashboard aggregation.
"""

from ._aggregate import aggregate, count_sessions
from ._buckets import build_buckets, calculate_bucket_end, calculate_bucket_start
from ._classify import (
    Classifier,
    dashboard_classifier,
    parse_unit_action,
    product_classifier,
    slide_classifier,
    traffic_classifier,
    unit_classifier,
)
from ._compare import compare, compare_results, delta_pct, previous_range
from ._context import DeviceType, TrafficSource, classify_device, classify_traffic_source
from ._ingest import IngestionGuard, create_ingestion_guard
from ._range import resolve_range
from ._rank import count_by_key, entity_key, page_key, rank_entries, top_n
from ._rollup import rollup_by_category
from .component import (
    build_ingestion_config,
    build_query_config,
    run_dashboard,
    run_overview,
    run_products,
    run_purge,
    run_record,
    run_slides,
    run_traffic,
    run_units,
)
from .config import IngestionConfig, QueryConfig
from .errors import (
    AnalyticsError,
    IngestionError,
    InvalidEventType,
    StorageUnavailable,
    ValidationError,
)
from .models import (
    ActionType,
    AggregateResult,
    Bucket,
    BucketMetrics,
    CategoryInfo,
    CategoryMetrics,
    Comparison,
    DashboardOutput,
    DateRange,
    EventRecord,
    EventType,
    Granularity,
    IngestResult,
    Interaction,
    NewEvent,
    OverviewOutput,
    ProductInfo,
    ProductsOutput,
    PurgeOutput,
    RangeQueryInput,
    RankedEntry,
    RecordEventInput,
    SlideInfo,
    SlidesOutput,
    TrafficOutput,
    UnitAction,
    UnitInfo,
    UnitsOutput,
)
from .ports import CatalogPort, EventStorePort, TimePort

__all__ = [
    # Entry points
    "run_dashboard",
    "run_overview",
    "run_products",
    "run_purge",
    "run_record",
    "run_slides",
    "run_traffic",
    "run_units",
    "build_ingestion_config",
    "build_query_config",
    # Engine
    "IngestionGuard",
    "create_ingestion_guard",
    "build_buckets",
    "calculate_bucket_start",
    "calculate_bucket_end",
    "aggregate",
    "count_sessions",
    "count_by_key",
    "rank_entries",
    "top_n",
    "entity_key",
    "page_key",
    "compare",
    "compare_results",
    "delta_pct",
    "previous_range",
    "rollup_by_category",
    "resolve_range",
    # Classifiers
    "Classifier",
    "dashboard_classifier",
    "parse_unit_action",
    "product_classifier",
    "slide_classifier",
    "traffic_classifier",
    "unit_classifier",
    "DeviceType",
    "TrafficSource",
    "classify_device",
    "classify_traffic_source",
    # Config
    "IngestionConfig",
    "QueryConfig",
    # Errors
    "AnalyticsError",
    "IngestionError",
    "InvalidEventType",
    "StorageUnavailable",
    "ValidationError",
    # Models
    "ActionType",
    "AggregateResult",
    "Bucket",
    "BucketMetrics",
    "CategoryInfo",
    "CategoryMetrics",
    "Comparison",
    "DashboardOutput",
    "DateRange",
    "EventRecord",
    "EventType",
    "Granularity",
    "IngestResult",
    "Interaction",
    "NewEvent",
    "OverviewOutput",
    "ProductInfo",
    "ProductsOutput",
    "PurgeOutput",
    "RangeQueryInput",
    "RankedEntry",
    "RecordEventInput",
    "SlideInfo",
    "SlidesOutput",
    "TrafficOutput",
    "UnitAction",
    "UnitInfo",
    "UnitsOutput",
    # Ports
    "CatalogPort",
    "EventStorePort",
    "TimePort",
]
