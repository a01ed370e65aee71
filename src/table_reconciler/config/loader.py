"""Reconciler configuration loading from reconciler.toml."""

import tomllib
from pathlib import Path
from typing import Any

from table_reconciler.config.models import (
    DatabaseProfile,
    MatchingSettings,
    ReconcilerConfig,
    ScanSettings,
    SyncSettings,
)
from table_reconciler.matching.quality import QualityWeights


def _weights(section: dict[str, Any]) -> QualityWeights:
    """Build weights from ``[matching.weights]``; ``name = 0.6`` means ``name_weight``."""
    fields = QualityWeights.model_fields
    values: dict[str, Any] = {}
    for key, value in section.items():
        if key in fields:
            values[key] = value
        elif f"{key}_weight" in fields:
            values[f"{key}_weight"] = value
        else:
            raise ValueError(f"Unknown key in [matching.weights]: {key}")
    return QualityWeights(**values)


def load_config(config_path: Path | None = None) -> ReconcilerConfig:
    """Load reconciler configuration from TOML file.

    Args:
        config_path: Path to reconciler.toml (default: ./reconciler.toml)

    Returns:
        ReconcilerConfig with all profiles and settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "reconciler.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Reconciler config not found: {config_path}\n"
            f"Copy reconciler.toml.example to reconciler.toml and configure your profiles."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = DatabaseProfile(**profile_data)

    # Parse [scan]
    scan_data = dict(data.get("scan", {}))
    if "schema" in scan_data:
        scan_data["schema_name"] = scan_data.pop("schema")
    scan = ScanSettings(**scan_data)

    # Parse [matching]
    matching_data = dict(data.get("matching", {}))
    weights = _weights(matching_data.pop("weights", {}))
    matching = MatchingSettings(weights=weights, **matching_data)

    return ReconcilerConfig(
        profiles=profiles,
        scan=scan,
        matching=matching,
        sync=SyncSettings(**data.get("sync", {})),
    )
