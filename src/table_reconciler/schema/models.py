"""Pydantic models for scanned table structure and field comparison."""

import re
from enum import Enum

from pydantic import BaseModel, Field


_LENGTH_PATTERN = re.compile(r"\((\d+)\)")

# Base types whose declared length can be widened in place
STRING_TYPES = frozenset({"varchar", "char", "bpchar", "bit", "varbit"})


# ============================================================================
# Hierarchy Models
# ============================================================================


class TableLevel(str, Enum):
    """Structural depth of a table derived from its name."""

    ROOT = "root"
    LEVEL_1 = "level_1"
    LEVEL_2 = "level_2"

    @property
    def display_name(self) -> str:
        return {
            TableLevel.ROOT: "Root table",
            TableLevel.LEVEL_1: "Level-1 child",
            TableLevel.LEVEL_2: "Level-2 child",
        }[self]


class Hierarchy(BaseModel):
    """Level and parent linkage of a table.

    ``parent_name`` is None iff ``level`` is ROOT.
    """

    level: TableLevel = TableLevel.ROOT
    parent_name: str | None = None
    child_suffix: str = ""

    @property
    def is_root(self) -> bool:
        return self.level is TableLevel.ROOT


# ============================================================================
# Schema Scan Models
# ============================================================================


class ColumnInfo(BaseModel):
    """A column as reported by the database catalog."""

    name: str
    data_type: str
    column_type: str
    nullable: bool = True
    default_value: str | None = None
    comment: str = ""
    is_primary_key: bool = False
    ordinal_position: int

    @property
    def length(self) -> int | None:
        """Declared length, e.g. ``64`` for ``varchar(64)``."""
        match = _LENGTH_PATTERN.search(self.column_type)
        return int(match.group(1)) if match else None

    @property
    def base_type(self) -> str:
        """Lowercased column type without its parenthesised part."""
        return re.sub(r"\(.*\)", "", self.column_type).strip().lower()

    @property
    def is_string_type(self) -> bool:
        return self.base_type in STRING_TYPES


class TableInfo(BaseModel):
    """A scanned table with its ordered columns and hierarchy tag.

    Columns are kept in ordinal order. Only ``row_count`` is refreshed
    after a scan (see ``SchemaScanner.refresh_row_count``).
    """

    model_config = {"frozen": True}

    name: str
    comment: str = ""
    columns: list[ColumnInfo] = Field(default_factory=list)
    row_count: int = 0
    is_client_side: bool = False
    hierarchy: Hierarchy = Field(default_factory=Hierarchy)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def primary_keys(self) -> list[str]:
        """Primary-key column names in ordinal order."""
        return [c.name for c in self.columns if c.is_primary_key]

    @property
    def level(self) -> TableLevel:
        return self.hierarchy.level

    def get_column(self, name: str) -> ColumnInfo | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def find_column(self, name: str) -> ColumnInfo | None:
        """Case-insensitive column lookup."""
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None


# ============================================================================
# Field Comparison Models
# ============================================================================


class FieldPair(BaseModel):
    """A column present on both sides of a table pair."""

    name: str
    client_column: ColumnInfo
    server_column: ColumnInfo

    @property
    def is_type_matched(self) -> bool:
        return self.client_column.column_type == self.server_column.column_type


class FieldCompareResult(BaseModel):
    """Disjoint common / client-only / server-only column sets of a pair."""

    common_fields: list[FieldPair] = Field(default_factory=list)
    client_only_fields: list[str] = Field(default_factory=list)
    server_only_fields: list[str] = Field(default_factory=list)

    @property
    def common_names(self) -> list[str]:
        return [pair.name for pair in self.common_fields]

    @property
    def common_count(self) -> int:
        return len(self.common_fields)

    @property
    def type_matched_count(self) -> int:
        return sum(1 for pair in self.common_fields if pair.is_type_matched)


# ============================================================================
# Connection Result
# ============================================================================


class ConnectionResult(BaseModel):
    """Result of connect_and_scan()."""

    success: bool
    profile_name: str | None = None
    table_count: int = 0
    client_table_count: int = 0
    server_table_count: int = 0
    error: str | None = None
