"""Match quality scoring for candidate table pairs.

Combines table-name similarity with field-level evidence into one composite
score and an accept/reject verdict::

    field_match_score = core_weight * core_field_ratio
                      + count_weight * field_count_ratio
                      + primary_key_weight * primary_key_agreement
    overall_quality   = name_weight * name_similarity
                      + field_weight * field_match_score

Every weight and threshold lives in ``QualityWeights`` so callers (and the
``[matching.weights]`` config section) can override them.

Usage:
    from table_reconciler.matching.quality import QualityScorer, MatchType

    scorer = QualityScorer()
    quality = scorer.score(client_table, server_table, name_similarity=0.8)
    if quality.is_acceptable():
        print(quality.format_report(client_table.name, server_table.name))
"""

import logging
from enum import Enum

from pydantic import BaseModel, Field

from table_reconciler.schema.comparator import compare_fields
from table_reconciler.schema.models import FieldCompareResult, TableInfo

logger = logging.getLogger(__name__)

DEFAULT_CORE_FIELDS = ["id", "name", "desc", "description", "type", "level", "grade", "name_id"]


class MatchType(str, Enum):
    """How a pair was matched.  EXACT, SEMANTIC and MANUAL bypass thresholds."""

    EXACT = "exact"
    SEMANTIC = "semantic"
    FUZZY = "fuzzy"
    MANUAL = "manual"


class QualityWeights(BaseModel):
    """Scoring policy: weights, acceptance thresholds and core field names."""

    name_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    field_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    core_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    count_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    primary_key_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    min_overall_quality: float = Field(default=0.45, ge=0.0, le=1.0)
    min_field_count_ratio: float = Field(default=0.20, ge=0.0, le=1.0)
    core_fields: list[str] = Field(default_factory=lambda: list(DEFAULT_CORE_FIELDS))
    level_thresholds: dict[str, float] = Field(
        default_factory=lambda: {
            "excellent": 0.85,
            "good": 0.70,
            "medium": 0.55,
            "low": 0.40,
        }
    )


class MatchQuality(BaseModel):
    """Composite score of one candidate pair plus the counters behind it."""

    table_name_similarity: float = 0.0
    field_match_score: float = 0.0
    overall_quality: float = 0.0
    match_type: MatchType = MatchType.FUZZY

    client_field_count: int = 0
    server_field_count: int = 0
    common_field_count: int = 0
    client_only_field_count: int = 0
    server_only_field_count: int = 0
    type_matched_field_count: int = 0
    core_field_count: int = 0
    matched_core_field_count: int = 0
    primary_key_match: bool = False

    weights: QualityWeights = Field(default_factory=QualityWeights, exclude=True, repr=False)

    @property
    def field_count_ratio(self) -> float:
        largest = max(self.client_field_count, self.server_field_count)
        return self.common_field_count / largest if largest else 0.0

    @property
    def core_field_ratio(self) -> float:
        if not self.core_field_count:
            return 0.0
        return self.matched_core_field_count / self.core_field_count

    @property
    def type_match_ratio(self) -> float:
        if not self.common_field_count:
            return 0.0
        return self.type_matched_field_count / self.common_field_count

    def is_acceptable(self) -> bool:
        """Exact, semantic and manual matches always pass; fuzzy ones need both thresholds."""
        if self.match_type is not MatchType.FUZZY:
            return True
        return (
            self.overall_quality >= self.weights.min_overall_quality
            and self.field_count_ratio >= self.weights.min_field_count_ratio
        )

    @property
    def quality_level(self) -> str:
        """Reporting bucket: excellent, good, medium, low or very-low."""
        thresholds = sorted(
            self.weights.level_thresholds.items(), key=lambda item: item[1], reverse=True
        )
        for label, threshold in thresholds:
            if self.overall_quality >= threshold:
                return label
        return "very-low"

    def format_report(self, client_name: str, server_name: str) -> str:
        """Format the score breakdown as a human-readable report."""
        w = self.weights
        lines = [
            f"Match quality: {client_name} -> {server_name}",
            f"  Overall: {self.overall_quality:.1%} ({self.quality_level}, {self.match_type.value})",
            f"  Acceptable: {'yes' if self.is_acceptable() else 'no'}",
            f"  Name similarity: {self.table_name_similarity:.1%} (weight {w.name_weight:.0%})",
            f"  Field match: {self.field_match_score:.1%} (weight {w.field_weight:.0%})",
            f"    Core fields: {self.matched_core_field_count}/{self.core_field_count}",
            f"    Common fields: {self.common_field_count}/"
            f"{max(self.client_field_count, self.server_field_count)} "
            f"({self.field_count_ratio:.1%})",
            f"    Type matched: {self.type_matched_field_count}/{self.common_field_count}",
            f"    Primary key: {'match' if self.primary_key_match else 'no match'}",
            f"  Client-only fields: {self.client_only_field_count}",
            f"  Server-only fields: {self.server_only_field_count}",
        ]

        if not self.is_acceptable():
            lines.append("  Warning: match quality too low")
            if self.overall_quality < w.min_overall_quality:
                lines.append(
                    f"    - overall {self.overall_quality:.1%} below {w.min_overall_quality:.0%}"
                )
            if self.field_count_ratio < w.min_field_count_ratio:
                lines.append(
                    f"    - field ratio {self.field_count_ratio:.1%} below {w.min_field_count_ratio:.0%}"
                )
            lines.append("    Verify manually or add an override mapping")

        return "\n".join(lines)


class QualityScorer:
    """Scores candidate pairs under one ``QualityWeights`` policy.

    Args:
        weights: Scoring policy.  Defaults to ``QualityWeights()``.
    """

    def __init__(self, weights: QualityWeights | None = None) -> None:
        self.weights = weights or QualityWeights()

    def field_match_score(
        self, core_ratio: float, count_ratio: float, primary_key_match: bool
    ) -> float:
        w = self.weights
        return (
            w.core_weight * core_ratio
            + w.count_weight * count_ratio
            + w.primary_key_weight * (1.0 if primary_key_match else 0.0)
        )

    def overall_quality(self, name_similarity: float, field_match_score: float) -> float:
        w = self.weights
        return w.name_weight * name_similarity + w.field_weight * field_match_score

    def score(
        self,
        client: TableInfo,
        server: TableInfo,
        name_similarity: float,
        match_type: MatchType = MatchType.FUZZY,
        field_compare: FieldCompareResult | None = None,
    ) -> MatchQuality:
        """Score a (client, server) pair with full field evidence.

        Args:
            client: Client-side table.
            server: Candidate server-side table.
            name_similarity: Raw name similarity, clamped to [0, 1].
            match_type: How the candidate was found.
            field_compare: Precomputed field comparison, if the caller has one.

        Returns:
            MatchQuality with score, counters and verdict inputs.
        """
        name_similarity = min(max(name_similarity, 0.0), 1.0)
        fields = field_compare or compare_fields(client, server)

        core = {name.lower() for name in self.weights.core_fields}
        client_core = {n for n in client.column_names if n.lower() in core}
        server_core = {n for n in server.column_names if n.lower() in core}
        core_present = client_core | server_core
        core_matched = client_core & server_core

        client_pk = client.primary_keys
        server_pk = server.primary_keys
        pk_match = bool(client_pk) and bool(server_pk) and client_pk == server_pk

        quality = MatchQuality(
            table_name_similarity=name_similarity,
            match_type=match_type,
            client_field_count=len(client.columns),
            server_field_count=len(server.columns),
            common_field_count=fields.common_count,
            client_only_field_count=len(fields.client_only_fields),
            server_only_field_count=len(fields.server_only_fields),
            type_matched_field_count=fields.type_matched_count,
            core_field_count=len(core_present),
            matched_core_field_count=len(core_matched),
            primary_key_match=pk_match,
            weights=self.weights,
        )
        quality.field_match_score = self.field_match_score(
            quality.core_field_ratio, quality.field_count_ratio, pk_match
        )
        quality.overall_quality = self.overall_quality(name_similarity, quality.field_match_score)

        logger.debug(
            f"Quality {client.name} -> {server.name}: overall={quality.overall_quality:.3f} "
            f"name={name_similarity:.3f} field={quality.field_match_score:.3f}"
        )
        return quality

    def quick_quality(
        self,
        name_similarity: float,
        common_field_count: int,
        client_field_count: int,
        server_field_count: int,
    ) -> MatchQuality:
        """Estimate quality from counts alone, without column metadata.

        The field count ratio stands in for the core field ratio, every
        common field counts as type-matched and primary keys are assumed
        to agree.
        """
        name_similarity = min(max(name_similarity, 0.0), 1.0)
        quality = MatchQuality(
            table_name_similarity=name_similarity,
            client_field_count=client_field_count,
            server_field_count=server_field_count,
            common_field_count=common_field_count,
            client_only_field_count=max(client_field_count - common_field_count, 0),
            server_only_field_count=max(server_field_count - common_field_count, 0),
            type_matched_field_count=common_field_count,
            primary_key_match=True,
            weights=self.weights,
        )
        quality.field_match_score = self.field_match_score(
            quality.field_count_ratio, quality.field_count_ratio, True
        )
        quality.overall_quality = self.overall_quality(name_similarity, quality.field_match_score)
        return quality
