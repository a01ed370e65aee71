"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from table_reconciler.config import load_config, DatabaseProfile, ReconcilerConfig
"""

from table_reconciler.config.loader import load_config
from table_reconciler.config.models import (
    DatabaseProfile,
    MatchingSettings,
    ReconcilerConfig,
    ScanSettings,
    SyncSettings,
)

__all__ = [
    "load_config",
    "DatabaseProfile",
    "ReconcilerConfig",
    "ScanSettings",
    "MatchingSettings",
    "SyncSettings",
]
