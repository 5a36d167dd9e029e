"""Typed search predicates over flattened memory columns.

``parse_filters`` turns a loose mapping (as received from tools or the API)
into a list of predicates. Every predicate names a known column, so storage
engines compile them without ever interpolating user text into a query.

Accepted forms::

    {"category": "event"}                       exact match
    {"turn": {"min": 5, "max": 7}}              inclusive range, either bound optional
    {"turn_min": 5, "turn_max": 7}              range shorthand (also turnMin / turnMax)
    {"importantFact": True}                     camelCase aliases of column names

``None`` values are ignored.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from narrative_memory.core.base import ValidationErrorDetails
from narrative_memory.core.errors import InvalidFilterError
from narrative_memory.domain.models.memory import COLUMN_TYPES, ColumnType, encode_characters

FIELD_ALIASES = {
    "importantFact": "important_fact",
    "factSummary": "fact_summary",
    "presentCharacters": "present_characters",
}

RANGE_SHORTHANDS = {
    "turn_min": ("turn", "min"),
    "turn_max": ("turn", "max"),
    "turnMin": ("turn", "min"),
    "turnMax": ("turn", "max"),
}

FILTERABLE_COLUMNS = {name: kind for name, kind in COLUMN_TYPES.items() if kind is not ColumnType.VECTOR}
RANGE_COLUMNS = {
    name for name, kind in FILTERABLE_COLUMNS.items() if kind in (ColumnType.INTEGER, ColumnType.FLOAT)
}


@dataclass(frozen=True)
class ExactMatch:
    field: str
    value: Any

    def matches(self, row: Mapping[str, Any]) -> bool:
        return row.get(self.field) == self.value


@dataclass(frozen=True)
class RangeMatch:
    field: str
    minimum: float | None = None
    maximum: float | None = None

    def matches(self, row: Mapping[str, Any]) -> bool:
        value = row.get(self.field)
        if value is None:
            return False
        if self.minimum is not None and value < self.minimum:
            return False
        if self.maximum is not None and value > self.maximum:
            return False
        return True


Predicate = ExactMatch | RangeMatch


def _invalid(message: str, field: str, value: Any, constraint: str) -> InvalidFilterError:
    return InvalidFilterError(
        message,
        details=ValidationErrorDetails(
            source="filters",
            operation="parse_filters",
            field=field,
            actual_value=repr(value),
            constraint=constraint,
        ),
    )


def _coerce_exact(field: str, value: Any) -> Any:
    kind = FILTERABLE_COLUMNS[field]
    if isinstance(value, Enum):
        value = value.value

    if field == "present_characters" and isinstance(value, list | tuple):
        return encode_characters(value)

    if kind is ColumnType.STRING:
        if not isinstance(value, str):
            raise _invalid(f"Filter '{field}' expects text", field, value, "str")
        return value
    if kind is ColumnType.BOOLEAN:
        if not isinstance(value, bool):
            raise _invalid(f"Filter '{field}' expects a boolean", field, value, "bool")
        return value
    if kind is ColumnType.INTEGER:
        if isinstance(value, bool) or not isinstance(value, int | float) or int(value) != value:
            raise _invalid(f"Filter '{field}' expects an integer", field, value, "int")
        return int(value)
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise _invalid(f"Filter '{field}' expects a number", field, value, "float")
    return float(value)


def _coerce_bound(field: str, value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise _invalid(f"Range bound for '{field}' must be numeric", field, value, "number")
    return value


def parse_filters(filters: Mapping[str, Any] | None) -> list[Predicate]:
    """Compile a filter mapping into typed predicates, combined with AND.

    Raises:
        InvalidFilterError: unknown field, wrong value type, or an empty/inverted range
    """
    if not filters:
        return []

    exact: dict[str, ExactMatch] = {}
    bounds: dict[str, dict[str, Any]] = {}

    for raw_key, value in filters.items():
        if value is None:
            continue

        if raw_key in RANGE_SHORTHANDS:
            field, side = RANGE_SHORTHANDS[raw_key]
            bounds.setdefault(field, {})[side] = _coerce_bound(field, value)
            continue

        field = FIELD_ALIASES.get(raw_key, raw_key)
        if field not in FILTERABLE_COLUMNS:
            raise _invalid(f"Unknown filter field: {raw_key}", raw_key, value, "known memory column")

        if isinstance(value, Mapping):
            if field not in RANGE_COLUMNS:
                raise _invalid(f"Range filters are only supported on numeric fields, not '{field}'", field, value, "numeric column")  # noqa: E501
            unknown_keys = set(value) - {"min", "max"}
            if unknown_keys:
                raise _invalid(f"Range filter for '{field}' accepts only min and max", field, value, "{min, max}")
            side_bounds = bounds.setdefault(field, {})
            for side in ("min", "max"):
                if value.get(side) is not None:
                    side_bounds[side] = _coerce_bound(field, value[side])
            continue

        exact[field] = ExactMatch(field, _coerce_exact(field, value))

    predicates: list[Predicate] = list(exact.values())
    for field, side_bounds in bounds.items():
        minimum, maximum = side_bounds.get("min"), side_bounds.get("max")
        if minimum is None and maximum is None:
            continue
        if minimum is not None and maximum is not None and minimum > maximum:
            raise _invalid(f"Empty range for '{field}': min {minimum} > max {maximum}", field, side_bounds, "min <= max")
        predicates.append(RangeMatch(field, minimum, maximum))

    return predicates


def matches_all(predicates: list[Predicate], row: Mapping[str, Any]) -> bool:
    return all(predicate.matches(row) for predicate in predicates)
