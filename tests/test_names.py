"""Tests for table-name normalization and similarity."""

import pytest

from table_reconciler.matching.names import (
    levenshtein,
    name_similarity,
    normalize_table_name,
    singularize,
    string_similarity,
)


class TestNormalize:
    """normalize_table_name suffix and plural stripping."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("client_item_misc_2", "item_misc"),
            ("client_items_v2", "item"),
            ("skill_data", "skill"),
            ("monster_info", "monster"),
            ("Client_Quests", "quest"),
            ("entries", "entry"),
            ("classes", "class"),
            ("glass", "glass"),
        ],
    )
    def test_normalize(self, name: str, expected: str) -> None:
        assert normalize_table_name(name) == expected

    def test_only_one_common_suffix_removed(self) -> None:
        assert normalize_table_name("item_list_data") == "item_list"

    def test_singularize(self) -> None:
        assert singularize("bonuses") == "bonus"
        assert singularize("boss") == "boss"


class TestSimilarity:
    """Edit distance and the derived similarity."""

    def test_levenshtein(self) -> None:
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_string_similarity_bounds(self) -> None:
        assert string_similarity("", "") == 1.0
        assert string_similarity("abc", "abc") == 1.0
        assert string_similarity("abc", "xyz") == 0.0

    def test_string_similarity_ratio(self) -> None:
        assert string_similarity("item", "items") == pytest.approx(0.8)

    def test_name_similarity_normalizes_first(self) -> None:
        assert name_similarity("client_item_misc_2", "item_misc") == 1.0

    def test_name_similarity_distinct_names(self) -> None:
        assert name_similarity("string_monster", "monster") == pytest.approx(0.5)
