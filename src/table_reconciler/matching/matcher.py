"""Client-to-server table matching.

``NameMatcher.match`` resolves one client table against same-level server
candidates, stopping at the first step that succeeds:

1. Manual override (must point at a same-level candidate).
2. Exact: the prefix-stripped client name equals a candidate name.
3. Semantic: normalized names are equal (numeric/version/common suffixes
   and simple plurals removed).
4. Fuzzy: best composite quality over all candidates, accepted only if the
   quality scorer says so.

``NameMatcher.build_pairs`` runs the matcher over a whole scan in two
passes.  Root tables go first; a child table is only matched once its root
ancestor has matched, otherwise it is reported as ``parent_unmatched``.
Server tables claimed by several client tables are flagged, not rejected.

Usage:
    matcher = NameMatcher(QualityScorer(weights), overrides=OverrideMap())
    pairs = matcher.build_pairs(tables)
    for pair in pairs:
        print(pair.client_table.name, pair.server_name, pair.match_method)
"""

import logging
from collections import defaultdict

from pydantic import BaseModel

from table_reconciler.matching.names import name_similarity, normalize_table_name
from table_reconciler.matching.overrides import OverrideMap
from table_reconciler.matching.quality import MatchQuality, MatchType, QualityScorer
from table_reconciler.schema.comparator import compare_fields
from table_reconciler.schema.hierarchy import CLIENT_PREFIX, root_name, strip_client_prefix
from table_reconciler.schema.models import FieldCompareResult, TableInfo, TableLevel
from table_reconciler.schema.scanner import (
    DEFAULT_SPECIAL_CLIENT_TABLES,
    get_client_tables,
    get_server_tables,
)

logger = logging.getLogger(__name__)

SEMANTIC_SIMILARITY_FLOOR = 0.95

METHOD_UNMATCHED = "unmatched"
METHOD_PARENT_UNMATCHED = "parent_unmatched"


class TablePairResult(BaseModel):
    """Outcome of matching one client table.

    ``server_table`` is None when the client table is unmatched.
    """

    client_table: TableInfo
    server_table: TableInfo | None = None
    similarity: float = 0.0
    match_method: str = METHOD_UNMATCHED
    is_multiple_match: bool = False
    quality: MatchQuality | None = None
    field_compare: FieldCompareResult | None = None

    @property
    def is_matched(self) -> bool:
        return self.server_table is not None

    @property
    def server_name(self) -> str | None:
        return self.server_table.name if self.server_table else None

    @property
    def level(self) -> TableLevel:
        return self.client_table.level


class NameMatcher:
    """Matches client tables to server tables.

    Args:
        scorer: Quality scorer used for field evidence and acceptance.
        overrides: Manual mappings consulted first.  A fresh empty map is
            used when omitted.
        client_prefix: Prefix marking client-side tables.
        special_client_tables: Unprefixed client tables mapped to their
            conventional server table names, used by the exact step.
        name_bonuses: Substring of the client name (prefix stripped) to a
            bonus added to the raw name similarity before scoring.
    """

    def __init__(
        self,
        scorer: QualityScorer | None = None,
        overrides: OverrideMap | None = None,
        client_prefix: str = CLIENT_PREFIX,
        special_client_tables: dict[str, str] | None = None,
        name_bonuses: dict[str, float] | None = None,
    ) -> None:
        self.scorer = scorer or QualityScorer()
        self.overrides = overrides if overrides is not None else OverrideMap()
        self.client_prefix = client_prefix
        self.special_client_tables = (
            DEFAULT_SPECIAL_CLIENT_TABLES
            if special_client_tables is None
            else special_client_tables
        )
        self.name_bonuses = dict(name_bonuses or {})

    # ------------------------------------------------------------------
    # Single-table matching
    # ------------------------------------------------------------------

    def match(self, client: TableInfo, candidates: list[TableInfo]) -> TablePairResult | None:
        """Find the best server table for one client table.

        Args:
            client: Client table to match.
            candidates: Server tables to choose from.  Tables at a different
                hierarchy level are ignored.

        Returns:
            TablePairResult for an accepted match, or None.
        """
        same_level = [t for t in candidates if t.level is client.level]

        manual = self._match_manual(client, candidates)
        if manual is not None:
            return manual

        if not same_level:
            logger.debug(f"No {client.level.display_name.lower()} candidates for {client.name}")
            return None

        return (
            self._match_exact(client, same_level)
            or self._match_semantic(client, same_level)
            or self._match_fuzzy(client, same_level)
        )

    def _match_manual(self, client: TableInfo, candidates: list[TableInfo]) -> TablePairResult | None:
        server_name = self.overrides.get(client.name)
        if server_name is None:
            return None

        server = next((t for t in candidates if t.name == server_name), None)
        if server is None:
            logger.warning(f"Override {client.name} -> {server_name} ignored: table not found")
            return None
        if server.level is not client.level:
            logger.warning(
                f"Override {client.name} -> {server_name} ignored: "
                f"{client.level.value} vs {server.level.value}"
            )
            return None

        fields = compare_fields(client, server)
        quality = self.scorer.score(
            client, server, self._raw_similarity(client, server), MatchType.MANUAL, fields
        )
        quality.overall_quality = 1.0
        logger.info(f"Manual match: {client.name} -> {server.name}")
        return self._pair(client, server, 1.0, MatchType.MANUAL.value, quality, fields)

    def _match_exact(self, client: TableInfo, same_level: list[TableInfo]) -> TablePairResult | None:
        expected = self.expected_server_name(client.name)
        server = next((t for t in same_level if t.name == expected), None)
        if server is None:
            return None

        fields = compare_fields(client, server)
        quality = self.scorer.score(client, server, 1.0, MatchType.EXACT, fields)
        logger.debug(f"Exact match: {client.name} -> {server.name}")
        return self._pair(client, server, 1.0, MatchType.EXACT.value, quality, fields)

    def _match_semantic(self, client: TableInfo, same_level: list[TableInfo]) -> TablePairResult | None:
        normalized = normalize_table_name(client.name, self.client_prefix)
        best: TablePairResult | None = None

        for server in same_level:
            if normalize_table_name(server.name, self.client_prefix) != normalized:
                continue
            fields = compare_fields(client, server)
            quality = self.scorer.score(
                client, server, self._raw_similarity(client, server), MatchType.SEMANTIC, fields
            )
            similarity = max(quality.overall_quality, SEMANTIC_SIMILARITY_FLOOR)
            if best is None or similarity > best.similarity:
                best = self._pair(
                    client, server, similarity, MatchType.SEMANTIC.value, quality, fields
                )

        if best is not None:
            logger.debug(f"Semantic match: {client.name} -> {best.server_name}")
        return best

    def _match_fuzzy(self, client: TableInfo, same_level: list[TableInfo]) -> TablePairResult | None:
        best: MatchQuality | None = None
        best_server: TableInfo | None = None
        best_fields: FieldCompareResult | None = None

        for server in same_level:
            fields = compare_fields(client, server)
            quality = self.scorer.score(
                client, server, self._raw_similarity(client, server), MatchType.FUZZY, fields
            )
            if best is None or quality.overall_quality > best.overall_quality:
                best, best_server, best_fields = quality, server, fields

        if best is None or best_server is None:
            return None

        if not best.is_acceptable():
            logger.info(
                f"No acceptable match for {client.name} "
                f"(best {best_server.name} at {best.overall_quality:.1%})"
            )
            return None

        logger.info(f"Fuzzy match: {client.name} -> {best_server.name} ({best.overall_quality:.1%})")
        return self._pair(
            client, best_server, best.overall_quality, MatchType.FUZZY.value, best, best_fields
        )

    def _raw_similarity(self, client: TableInfo, server: TableInfo) -> float:
        """Name similarity plus the configured bonus, clamped to 1.0."""
        similarity = name_similarity(client.name, server.name, self.client_prefix)
        return min(similarity + self.name_bonus(client.name), 1.0)

    def _pair(
        self,
        client: TableInfo,
        server: TableInfo,
        similarity: float,
        method: str,
        quality: MatchQuality,
        fields: FieldCompareResult | None,
    ) -> TablePairResult:
        return TablePairResult(
            client_table=client,
            server_table=server,
            similarity=similarity,
            match_method=method,
            quality=quality,
            field_compare=fields,
        )

    def expected_server_name(self, client_name: str) -> str:
        if client_name in self.special_client_tables:
            return self.special_client_tables[client_name]
        return strip_client_prefix(client_name, self.client_prefix)

    def name_bonus(self, client_name: str) -> float:
        bare = strip_client_prefix(client_name, self.client_prefix).lower()
        bonuses = [bonus for key, bonus in self.name_bonuses.items() if key.lower() in bare]
        return max(bonuses, default=0.0)

    # ------------------------------------------------------------------
    # Whole-schema matching
    # ------------------------------------------------------------------

    def build_pairs(self, tables: list[TableInfo]) -> list[TablePairResult]:
        """Match every client table in a scan result.

        Args:
            tables: Full scan result (client and server tables).

        Returns:
            One TablePairResult per client table: roots first, then
            children, each group in scan order.
        """
        clients = get_client_tables(tables)
        servers = get_server_tables(tables)
        roots = [t for t in clients if t.level is TableLevel.ROOT]
        children = [t for t in clients if t.level is not TableLevel.ROOT]

        logger.info(
            f"Matching {len(clients)} client tables ({len(roots)} root, "
            f"{len(children)} child) against {len(servers)} server tables"
        )

        pairs: list[TablePairResult] = []
        matched_roots: set[str] = set()

        for client in roots:
            pair = self.match(client, servers)
            if pair is None:
                pairs.append(TablePairResult(client_table=client))
                continue
            matched_roots.add(client.name)
            pairs.append(pair)

        skipped = 0
        for client in children:
            if root_name(client.name, self.client_prefix) not in matched_roots:
                skipped += 1
                pairs.append(
                    TablePairResult(client_table=client, match_method=METHOD_PARENT_UNMATCHED)
                )
                continue
            pair = self.match(client, servers)
            pairs.append(pair if pair is not None else TablePairResult(client_table=client))

        if skipped:
            logger.info(f"Skipped {skipped} child tables whose root table is unmatched")

        flag_multiple_matches(pairs)
        return pairs

    def suggest(
        self, client: TableInfo, candidates: list[TableInfo], limit: int = 5
    ) -> list[tuple[str, float]]:
        """Rank same-level candidates for manual review.

        A candidate qualifies when one normalized name contains the other or
        the name similarity reaches 0.5.

        Returns:
            Up to ``limit`` (server name, name similarity) tuples, best first.
        """
        normalized = normalize_table_name(client.name, self.client_prefix)
        ranked: list[tuple[str, float]] = []
        for server in candidates:
            if server.level is not client.level:
                continue
            other = normalize_table_name(server.name, self.client_prefix)
            similarity = name_similarity(client.name, server.name, self.client_prefix)
            if normalized in other or other in normalized or similarity >= 0.5:
                ranked.append((server.name, similarity))
        ranked.sort(key=lambda item: item[1], reverse=True)
        return ranked[:limit]


def find_many_to_one(pairs: list[TablePairResult]) -> dict[str, list[str]]:
    """Server tables claimed by two or more client tables.

    Returns:
        Dict mapping server table name to the claiming client table names.
    """
    claims: dict[str, list[str]] = defaultdict(list)
    for pair in pairs:
        if pair.server_table is not None:
            claims[pair.server_table.name].append(pair.client_table.name)
    return {server: clients for server, clients in claims.items() if len(clients) > 1}


def flag_multiple_matches(pairs: list[TablePairResult]) -> None:
    """Set ``is_multiple_match`` on every pair sharing a server table."""
    shared = find_many_to_one(pairs)
    for pair in pairs:
        pair.is_multiple_match = pair.server_name in shared
    for server, clients in shared.items():
        logger.warning(f"Server table {server} matched by {len(clients)} client tables: {clients}")


def match_summary(pairs: list[TablePairResult]) -> dict[str, int]:
    """Count pairs per match method plus totals."""
    summary: dict[str, int] = defaultdict(int)
    for pair in pairs:
        summary[pair.match_method] += 1
    summary["total"] = len(pairs)
    summary["matched"] = sum(1 for p in pairs if p.is_matched)
    summary["multiple"] = sum(1 for p in pairs if p.is_multiple_match)
    return dict(summary)
