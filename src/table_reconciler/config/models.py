"""Pydantic models for reconciler configuration."""

from pydantic import BaseModel, Field

from table_reconciler.matching.quality import QualityWeights
from table_reconciler.schema.hierarchy import CLIENT_PREFIX
from table_reconciler.schema.scanner import DEFAULT_SPECIAL_CLIENT_TABLES
from table_reconciler.sync.models import DEFAULT_EXCLUDE_FIELDS


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from reconciler.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: str = "postgres"


class ScanSettings(BaseModel):
    """The ``[scan]`` section: which tables are scanned and how sides are told apart."""

    schema_name: str = "public"
    client_prefix: str = CLIENT_PREFIX
    excluded_tables: list[str] = Field(default_factory=list)
    special_client_tables: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SPECIAL_CLIENT_TABLES)
    )


class MatchingSettings(BaseModel):
    """The ``[matching]`` section: override file, weights and name bonuses."""

    override_file: str = "overrides.json"
    weights: QualityWeights = Field(default_factory=QualityWeights)
    name_bonuses: dict[str, float] = Field(default_factory=dict)


class SyncSettings(BaseModel):
    """The ``[sync]`` section: defaults for every sync call."""

    batch_size: int = Field(default=1000, gt=0)
    exclude_fields: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_FIELDS))
    create_missing_keys: bool = True
    timeout: float | None = Field(default=None, gt=0)
    backup: bool = False


class ReconcilerConfig(BaseModel):
    """Complete configuration from reconciler.toml."""

    profiles: dict[str, DatabaseProfile]
    scan: ScanSettings = Field(default_factory=ScanSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
