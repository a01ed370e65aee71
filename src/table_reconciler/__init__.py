"""table-reconciler: match and sync client and server game-data tables.

Discovers which client table corresponds to which server table when names
differ by prefixes, plurals, version suffixes or spelling, and synchronizes
rows between matched tables, including column-length drift and parent/child
table families.

Usage:
    from table_reconciler import SchemaScanner, NameMatcher, QualityScorer
    from table_reconciler import AsyncPostgresAdapter, SyncOptions, sync_main_table
    from table_reconciler import load_config, get_adapter, connect_and_scan
"""

__version__ = "0.1.0"

# Adapters
from table_reconciler.adapters.base import DatabaseClient, SyncSession
from table_reconciler.adapters.postgres import AsyncPostgresAdapter

# Schema
from table_reconciler.schema.hierarchy import classify, same_level
from table_reconciler.schema.models import TableInfo, TableLevel
from table_reconciler.schema.scanner import SchemaScanner

# Matching
from table_reconciler.matching.matcher import NameMatcher, TablePairResult
from table_reconciler.matching.overrides import OverrideMap
from table_reconciler.matching.quality import QualityScorer, QualityWeights

# Sync
from table_reconciler.sync.engine import (
    build_primary_key_mapping,
    sync_main_table,
    sync_main_table_with_children,
    sync_sub_table,
)
from table_reconciler.sync.models import CascadeSyncResult, SyncMode, SyncOptions, SyncResult

# Config
from table_reconciler.config.loader import load_config
from table_reconciler.config.models import DatabaseProfile, ReconcilerConfig

# Factory
from table_reconciler.factory import (
    ProfileNotFoundError,
    connect_and_scan,
    get_adapter,
    resolve_url,
)

__all__ = [
    # Adapters
    "DatabaseClient",
    "SyncSession",
    "AsyncPostgresAdapter",
    # Schema
    "classify",
    "same_level",
    "TableInfo",
    "TableLevel",
    "SchemaScanner",
    # Matching
    "NameMatcher",
    "TablePairResult",
    "OverrideMap",
    "QualityScorer",
    "QualityWeights",
    # Sync
    "SyncMode",
    "SyncOptions",
    "SyncResult",
    "CascadeSyncResult",
    "sync_main_table",
    "sync_sub_table",
    "sync_main_table_with_children",
    "build_primary_key_mapping",
    # Config
    "load_config",
    "DatabaseProfile",
    "ReconcilerConfig",
    # Factory
    "get_adapter",
    "connect_and_scan",
    "ProfileNotFoundError",
    "resolve_url",
]
