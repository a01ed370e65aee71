"""Table hierarchy classification from naming conventions.

Tables nest by the ``__`` delimiter: ``item`` is a root table,
``item__attr`` a level-1 child of ``item`` and ``item__attr__bonus`` a
level-2 child of ``item__attr``.  Client tables carry a ``client_`` prefix
that is stripped before counting, so ``client_item__attr`` and
``item__attr`` always land on the same level.

All functions are pure and total.

Usage:
    from table_reconciler.schema.hierarchy import classify, same_level

    classify("client_item__attr").parent_name   # 'client_item'
    same_level("client_item", "item__attr")     # False
"""

import logging

from table_reconciler.schema.models import Hierarchy, TableLevel

logger = logging.getLogger(__name__)

CLIENT_PREFIX = "client_"
DELIMITER = "__"


def has_client_prefix(table_name: str, client_prefix: str = CLIENT_PREFIX) -> bool:
    return bool(client_prefix) and table_name.startswith(client_prefix)


def strip_client_prefix(table_name: str, client_prefix: str = CLIENT_PREFIX) -> str:
    """Remove a leading client prefix if present.

    Example:
        >>> strip_client_prefix("client_item")
        'item'
        >>> strip_client_prefix("item")
        'item'
    """
    if has_client_prefix(table_name, client_prefix):
        return table_name[len(client_prefix):]
    return table_name


def delimiter_count(table_name: str, client_prefix: str = CLIENT_PREFIX) -> int:
    """Count non-overlapping ``__`` delimiters after the client prefix.

    Example:
        >>> delimiter_count("client_item__attr__bonus")
        2
        >>> delimiter_count("a___b")
        1
    """
    return strip_client_prefix(table_name, client_prefix).count(DELIMITER)


def classify(table_name: str, client_prefix: str = CLIENT_PREFIX) -> Hierarchy:
    """Derive the structural level and parent of a table from its name.

    More than two delimiters is tolerated and treated as LEVEL_2, with the
    parent cut at the second delimiter.  A warning is logged since such
    names are usually malformed.

    Args:
        table_name: Full table name, with or without the client prefix.
        client_prefix: Prefix marking client-side tables.

    Returns:
        Hierarchy with level, parent name (prefix re-attached when the
        original name had it) and child suffix.

    Example:
        >>> classify("client_item__attr").parent_name
        'client_item'
        >>> classify("item__attr__bonus").child_suffix
        'bonus'
    """
    prefixed = has_client_prefix(table_name, client_prefix)
    bare = strip_client_prefix(table_name, client_prefix)
    count = bare.count(DELIMITER)

    if count == 0:
        return Hierarchy(level=TableLevel.ROOT)

    parts = bare.split(DELIMITER, 2)
    if count == 1:
        parent, suffix = parts[0], parts[1]
        level = TableLevel.LEVEL_1
    else:
        if count > 2:
            logger.warning(
                f"Table {table_name} has {count} nesting delimiters, "
                f"treating as level-2 child"
            )
        parent, suffix = parts[0] + DELIMITER + parts[1], parts[2]
        level = TableLevel.LEVEL_2

    if prefixed:
        parent = client_prefix + parent

    return Hierarchy(level=level, parent_name=parent, child_suffix=suffix)


def same_level(a: str, b: str, client_prefix: str = CLIENT_PREFIX) -> bool:
    """True if both tables classify to the same level."""
    return classify(a, client_prefix).level is classify(b, client_prefix).level


def root_name(table_name: str, client_prefix: str = CLIENT_PREFIX) -> str:
    """Name of the top-level ancestor, prefix kept.

    Example:
        >>> root_name("client_item__attr__bonus")
        'client_item'
    """
    prefix = client_prefix if has_client_prefix(table_name, client_prefix) else ""
    bare = strip_client_prefix(table_name, client_prefix)
    return prefix + bare.split(DELIMITER, 1)[0]


def child_path(table_name: str, client_prefix: str = CLIENT_PREFIX) -> str:
    """Everything after the root name, or ``""`` for root tables.

    Example:
        >>> child_path("client_item__attr__bonus")
        'attr__bonus'
    """
    bare = strip_client_prefix(table_name, client_prefix)
    parts = bare.split(DELIMITER, 1)
    return parts[1] if len(parts) > 1 else ""
