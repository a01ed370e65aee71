"""Table-name normalization and edit-distance similarity.

Pure string functions shared by the name matcher and the suggestion
helper.

Example:
    >>> normalize_table_name("client_items_v2")
    'item'
    >>> name_similarity("client_item_misc_2", "item_misc")
    1.0
"""

import re

from table_reconciler.schema.hierarchy import CLIENT_PREFIX

_NUMERIC_SUFFIX = re.compile(r"_\d+$")
_VERSION_SUFFIX = re.compile(r"_v\d+$")
_COMMON_SUFFIX = re.compile(r"_(data|info|table|tab|list)$")


def singularize(word: str) -> str:
    """Simple English plural stripping.

    Example:
        >>> singularize("entries"), singularize("classes"), singularize("class")
        ('entry', 'class', 'class')
    """
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("ses"):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def normalize_table_name(table_name: str, client_prefix: str = CLIENT_PREFIX) -> str:
    """Reduce a table name to the form used for semantic comparison.

    Lowercases, strips the client prefix, a numeric suffix (``_2``), a
    version suffix (``_v2``), one common suffix (``_data``, ``_info``,
    ``_table``, ``_tab``, ``_list``) and simple plural endings.
    """
    normalized = table_name.lower()
    prefix = client_prefix.lower()
    if prefix and normalized.startswith(prefix):
        normalized = normalized[len(prefix):]

    normalized = _NUMERIC_SUFFIX.sub("", normalized)
    normalized = _VERSION_SUFFIX.sub("", normalized)
    normalized = _COMMON_SUFFIX.sub("", normalized)

    return singularize(normalized)


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insert, delete and substitute costs."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    """``1 - levenshtein(a, b) / max(len(a), len(b))``; 1.0 when equal."""
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def name_similarity(a: str, b: str, client_prefix: str = CLIENT_PREFIX) -> float:
    """Similarity of two table names after normalization."""
    return string_similarity(
        normalize_table_name(a, client_prefix),
        normalize_table_name(b, client_prefix),
    )
