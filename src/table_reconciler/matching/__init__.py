"""Client-to-server table matching and match quality scoring.

Usage:
    from table_reconciler.matching import NameMatcher, OverrideMap, QualityScorer

    matcher = NameMatcher(QualityScorer(), overrides=OverrideMap.load(path))
    pairs = matcher.build_pairs(tables)
"""

from table_reconciler.matching.names import levenshtein, name_similarity, normalize_table_name
from table_reconciler.matching.quality import (
    MatchQuality,
    MatchType,
    QualityScorer,
    QualityWeights,
)
from table_reconciler.matching.overrides import OverrideMap
from table_reconciler.matching.matcher import (
    NameMatcher,
    TablePairResult,
    find_many_to_one,
    match_summary,
)

__all__ = [
    "normalize_table_name",
    "levenshtein",
    "name_similarity",
    "MatchType",
    "MatchQuality",
    "QualityWeights",
    "QualityScorer",
    "OverrideMap",
    "NameMatcher",
    "TablePairResult",
    "find_many_to_one",
    "match_summary",
]
