"""Manual client-to-server table mappings.

An ``OverrideMap`` is passed into the ``NameMatcher`` and consulted before
any automatic matching.  Changes take effect on the next full matching run.
Reads return copies, so a running match never sees a half-applied edit.

The map persists as a flat JSON object ``{"client_table": "server_table"}``.

Usage:
    overrides = OverrideMap.load(Path("overrides.json"))
    overrides.set("client_skill_learn", "skill_learns")
    overrides.save(Path("overrides.json"))
"""

import json
import logging
import threading
from pathlib import Path

logger = logging.getLogger(__name__)


class OverrideMap:
    """Thread-safe mapping of client table name to server table name."""

    def __init__(self, mappings: dict[str, str] | None = None) -> None:
        self._lock = threading.Lock()
        self._mappings: dict[str, str] = dict(mappings or {})

    def get(self, client_table: str) -> str | None:
        with self._lock:
            return self._mappings.get(client_table)

    def set(self, client_table: str, server_table: str) -> None:
        with self._lock:
            self._mappings[client_table] = server_table
        logger.info(f"Override added: {client_table} -> {server_table}")

    def remove(self, client_table: str) -> bool:
        """Remove a mapping.  Returns False if it did not exist."""
        with self._lock:
            removed = self._mappings.pop(client_table, None) is not None
        if removed:
            logger.info(f"Override removed: {client_table}")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._mappings.clear()

    def items(self) -> dict[str, str]:
        """Snapshot copy of all mappings."""
        with self._lock:
            return dict(self._mappings)

    def replace(self, mappings: dict[str, str]) -> None:
        """Swap in a whole new set of mappings."""
        with self._lock:
            self._mappings = dict(mappings)

    def __len__(self) -> int:
        with self._lock:
            return len(self._mappings)

    def __contains__(self, client_table: object) -> bool:
        with self._lock:
            return client_table in self._mappings

    @classmethod
    def load(cls, path: Path) -> "OverrideMap":
        """Load mappings from a JSON file.  A missing file yields an empty map.

        Raises:
            ValueError: If the file is not a JSON object of strings.
        """
        if not path.exists():
            logger.debug(f"No override file at {path}, starting empty")
            return cls()

        data = json.loads(path.read_text())
        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise ValueError(f"Override file {path} must be a JSON object of table names")

        logger.info(f"Loaded {len(data)} overrides from {path}")
        return cls(data)

    def save(self, path: Path) -> None:
        path.write_text(json.dumps(self.items(), indent=2, sort_keys=True) + "\n")
