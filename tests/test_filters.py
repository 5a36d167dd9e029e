"""Tests for search filter parsing and predicate evaluation."""

import pytest

from narrative_memory.core.errors import InvalidFilterError
from narrative_memory.domain.models import MemoryCategory
from narrative_memory.domain.models.filters import ExactMatch, RangeMatch, matches_all, parse_filters


# ── Parsing ──


class TestParseFilters:
    def test_empty_and_none(self):
        assert parse_filters(None) == []
        assert parse_filters({}) == []

    def test_exact_match(self):
        assert parse_filters({"category": "event"}) == [ExactMatch("category", "event")]

    def test_enum_values_are_unwrapped(self):
        assert parse_filters({"category": MemoryCategory.CONCEPT}) == [ExactMatch("category", "concept")]

    def test_none_values_are_ignored(self):
        assert parse_filters({"npc": None, "location": "Harbor"}) == [ExactMatch("location", "Harbor")]

    def test_camel_case_alias(self):
        assert parse_filters({"importantFact": True}) == [ExactMatch("important_fact", True)]

    def test_turn_shorthands_merge_into_one_range(self):
        assert parse_filters({"turn_min": 5, "turn_max": 7}) == [RangeMatch("turn", 5, 7)]
        assert parse_filters({"turnMin": 5, "turnMax": 7}) == [RangeMatch("turn", 5, 7)]

    def test_open_ended_range(self):
        assert parse_filters({"turn": {"min": 5}}) == [RangeMatch("turn", 5, None)]
        assert parse_filters({"timestamp": {"max": 100.5}}) == [RangeMatch("timestamp", None, 100.5)]

    def test_present_characters_list_matches_stored_text(self):
        [predicate] = parse_filters({"present_characters": ["Ana", "Bruno"]})
        assert predicate == ExactMatch("present_characters", '["Ana", "Bruno"]')

    def test_unknown_field(self):
        with pytest.raises(InvalidFilterError, match="Unknown filter field"):
            parse_filters({"mood": "grim"})

    def test_embedding_is_not_filterable(self):
        with pytest.raises(InvalidFilterError):
            parse_filters({"embedding": [0.1, 0.2]})

    def test_range_on_text_column(self):
        with pytest.raises(InvalidFilterError, match="numeric"):
            parse_filters({"npc": {"min": "A"}})

    def test_inverted_range(self):
        with pytest.raises(InvalidFilterError, match="Empty range"):
            parse_filters({"turn_min": 8, "turn_max": 3})

    def test_boolean_is_not_an_integer(self):
        with pytest.raises(InvalidFilterError):
            parse_filters({"turn": True})

    def test_wrong_type_for_text_column(self):
        with pytest.raises(InvalidFilterError, match="expects text"):
            parse_filters({"location": 42})


# ── Evaluation ──


class TestPredicates:
    def test_exact_match(self):
        assert ExactMatch("npc", "Ana").matches({"npc": "Ana"})
        assert not ExactMatch("npc", "Ana").matches({"npc": None})

    def test_range_is_inclusive(self):
        predicate = RangeMatch("turn", 5, 7)
        assert [t for t in range(10) if predicate.matches({"turn": t})] == [5, 6, 7]

    def test_range_never_matches_null(self):
        assert not RangeMatch("turn", None, 10).matches({"turn": None})

    def test_and_composition(self):
        predicates = parse_filters({"category": "event", "turn_min": 2})
        assert matches_all(predicates, {"category": "event", "turn": 3})
        assert not matches_all(predicates, {"category": "concept", "turn": 3})
        assert not matches_all(predicates, {"category": "event", "turn": 1})
