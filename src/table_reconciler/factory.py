"""Database client factory and profile management.

Provides profile-based connection management using reconciler.toml
configuration and a ``.db-profile`` lock file.  Exposes:

- ``connect_and_scan()``: async function that connects, scans the schema,
  and writes the lock file.
- ``get_adapter()``: async factory that creates an ``AsyncPostgresAdapter``.
- ``scan_profile()``: resolve a profile and return its scanned tables.
- ``create_matcher()``: build a ``NameMatcher`` from config.

Usage:
    from table_reconciler.factory import connect_and_scan, get_adapter

    result = await connect_and_scan("local")
    adapter = await get_adapter()
"""

import os
from pathlib import Path
from urllib.parse import quote

from table_reconciler.adapters.postgres import AsyncPostgresAdapter
from table_reconciler.config.loader import load_config
from table_reconciler.config.models import DatabaseProfile, ReconcilerConfig
from table_reconciler.matching.matcher import NameMatcher
from table_reconciler.matching.overrides import OverrideMap
from table_reconciler.matching.quality import QualityScorer
from table_reconciler.schema.models import ConnectionResult, TableInfo
from table_reconciler.schema.scanner import SchemaScanner, get_client_tables, get_server_tables

# Profile lock file path (in current working directory)
_PROFILE_LOCK_FILE = Path.cwd() / ".db-profile"


# ============================================================================
# Profile Lock File Operations
# ============================================================================


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def read_profile_lock() -> str | None:
    """Read profile name from lock file.

    Returns:
        Profile name if lock file exists, None otherwise
    """
    if _PROFILE_LOCK_FILE.exists():
        return _PROFILE_LOCK_FILE.read_text().strip()
    return None


def write_profile_lock(profile_name: str) -> None:
    """Write profile name to lock file.

    Only call this after a successful connection.

    Args:
        profile_name: Name of the connected profile
    """
    _PROFILE_LOCK_FILE.write_text(profile_name)


def clear_profile_lock() -> None:
    """Remove profile lock file."""
    if _PROFILE_LOCK_FILE.exists():
        _PROFILE_LOCK_FILE.unlink()


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from env var or lock file.

    Priority:
    1. ``{env_prefix}DB_PROFILE`` env var (for initial connect or CI/CD)
    2. .db-profile file (profile from previous connect)
    3. Raise ProfileNotFoundError

    Args:
        env_prefix: Prefix for the environment variable name.

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    lock_profile = read_profile_lock()
    if lock_profile:
        return lock_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Run: {env_var}=<name> table-reconciler connect\n"
        "Or: table-reconciler connect --profile <name>\n"
        "Profiles are defined in reconciler.toml."
    )


def get_active_profile(env_prefix: str = "") -> tuple[str, DatabaseProfile]:
    """Get active profile name and configuration.

    Returns:
        Tuple of (profile_name, DatabaseProfile)

    Raises:
        ProfileNotFoundError: If no profile configured
        KeyError: If profile not found in reconciler.toml
    """
    profile_name = get_active_profile_name(env_prefix)
    config = load_config()

    if profile_name not in config.profiles:
        raise KeyError(
            f"Profile '{profile_name}' not found in reconciler.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    return profile_name, config.profiles[profile_name]


# ============================================================================
# Connection
# ============================================================================


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def create_scanner(config: ReconcilerConfig, database_url: str) -> SchemaScanner:
    """Build a ``SchemaScanner`` from the ``[scan]`` settings."""
    scan = config.scan
    return SchemaScanner(
        database_url,
        schema_name=scan.schema_name,
        client_prefix=scan.client_prefix,
        special_client_tables=scan.special_client_tables,
        excluded_tables=(
            SchemaScanner.EXCLUDED_TABLES | set(scan.excluded_tables)
        ),
    )


def create_matcher(config: ReconcilerConfig, overrides: OverrideMap | None = None) -> NameMatcher:
    """Build a ``NameMatcher`` from the ``[scan]`` and ``[matching]`` settings.

    The override map is loaded from ``matching.override_file`` unless given.
    """
    if overrides is None:
        overrides = OverrideMap.load(Path(config.matching.override_file))
    return NameMatcher(
        scorer=QualityScorer(config.matching.weights),
        overrides=overrides,
        client_prefix=config.scan.client_prefix,
        special_client_tables=config.scan.special_client_tables,
        name_bonuses=config.matching.name_bonuses,
    )


async def connect_and_scan(
    profile_name: str | None = None,
    env_prefix: str = "",
    scan_only: bool = False,
) -> ConnectionResult:
    """Connect to a profile's database and scan its tables.

    This is the primary setup API.  On success the profile is written to the
    lock file so later commands use it without ``--profile``.

    Args:
        profile_name: Profile name from reconciler.toml.  If None, uses the
            ``{env_prefix}DB_PROFILE`` env var or the .db-profile lock file.
        env_prefix: Prefix for the environment variable name.
        scan_only: If True, do not write the lock file.

    Returns:
        ConnectionResult with table counts or an error

    Example:
        >>> result = await connect_and_scan("local")
        >>> if result.success:
        ...     print(f"{result.client_table_count} client tables")
    """
    if profile_name is None:
        try:
            profile_name = get_active_profile_name(env_prefix)
        except ProfileNotFoundError as e:
            return ConnectionResult(success=False, error=str(e))

    try:
        config = load_config()
    except FileNotFoundError as e:
        return ConnectionResult(success=False, error=str(e))

    if profile_name not in config.profiles:
        available = ", ".join(config.profiles.keys())
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            error=f"Profile '{profile_name}' not found. Available: {available}",
        )

    url = resolve_url(config.profiles[profile_name])

    try:
        async with create_scanner(config, url) as scanner:
            await scanner.test_connection()
            tables = await scanner.scan()
    except Exception as e:
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            error=f"Failed to connect to database: {e}",
        )

    if not scan_only:
        write_profile_lock(profile_name)

    return ConnectionResult(
        success=True,
        profile_name=profile_name,
        table_count=len(tables),
        client_table_count=len(get_client_tables(tables)),
        server_table_count=len(get_server_tables(tables)),
    )


async def scan_profile(
    profile_name: str | None = None,
    env_prefix: str = "",
) -> tuple[ReconcilerConfig, str, list[TableInfo]]:
    """Resolve a profile and scan its schema.

    Returns:
        Tuple of (config, resolved database URL, scanned tables)

    Raises:
        ProfileNotFoundError: If no profile is configured
        KeyError: If the profile is not in reconciler.toml
        FileNotFoundError: If reconciler.toml is missing
    """
    config = load_config()
    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix)
    if profile_name not in config.profiles:
        raise KeyError(
            f"Profile '{profile_name}' not found in reconciler.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    url = resolve_url(config.profiles[profile_name])
    async with create_scanner(config, url) as scanner:
        tables = await scanner.scan()
    return config, url, tables


# ============================================================================
# Database Adapter Factory
# ============================================================================


async def get_adapter(
    profile_name: str | None = None,
    database_url: str | None = None,
    env_prefix: str = "",
) -> AsyncPostgresAdapter:
    """Create an async database adapter.

    Each call creates a new adapter; callers own its lifecycle and should
    ``await adapter.close()`` when done.

    Args:
        profile_name: Profile from reconciler.toml.  If None, resolved from
            the env var or lock file.
        database_url: Direct connection URL.  Takes precedence over profiles.
        env_prefix: Prefix for the environment variable name.

    Returns:
        AsyncPostgresAdapter instance

    Raises:
        ProfileNotFoundError: If no profile is configured
        KeyError: If the profile is not in reconciler.toml
    """
    if database_url:
        return AsyncPostgresAdapter(database_url=database_url)

    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix)

    config = load_config()
    if profile_name not in config.profiles:
        raise KeyError(
            f"Profile '{profile_name}' not found in reconciler.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    return AsyncPostgresAdapter(database_url=resolve_url(config.profiles[profile_name]))
