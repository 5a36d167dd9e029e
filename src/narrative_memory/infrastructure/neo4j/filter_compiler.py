"""Safe filter compilation for Cypher queries.

Predicates only ever name whitelisted memory columns, and every value is a
bound parameter, so nothing supplied by a player or the generation service is
interpolated into query text.
"""

from __future__ import annotations

import re
from typing import Any

from narrative_memory.domain.models.filters import FILTERABLE_COLUMNS, ExactMatch, Predicate, RangeMatch

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _param_name(base: str, idx: int) -> str:
    """Generate unique parameter name."""
    return f"{base}_{idx}"


def _property(alias: str, field: str) -> str:
    if field not in FILTERABLE_COLUMNS or not _IDENTIFIER.match(field) or not _IDENTIFIER.match(alias):
        raise ValueError(f"Refusing to compile filter on unknown property: {alias}.{field}")
    return f"{alias}.{field}"


def compile_predicates(
    predicates: list[Predicate],
    alias: str = "m",
    param_prefix: str = "f",
) -> tuple[list[str], dict[str, Any]]:
    """Compile predicates into Cypher conditions (to be joined with AND) and parameters.

    Examples:
        >>> compile_predicates([ExactMatch("category", "event"), RangeMatch("turn", 5, 7)])
        (["m.category = $f_0", "m.turn >= $f_1", "m.turn <= $f_2"], {"f_0": "event", "f_1": 5, "f_2": 7})
    """
    clauses: list[str] = []
    params: dict[str, Any] = {}

    def add_clause(template: str, value: Any) -> None:
        name = _param_name(param_prefix, len(params))
        clauses.append(template.format(param=f"${name}"))
        params[name] = value

    for predicate in predicates:
        prop = _property(alias, predicate.field)
        if isinstance(predicate, ExactMatch):
            add_clause(f"{prop} = {{param}}", predicate.value)
        elif isinstance(predicate, RangeMatch):
            if predicate.minimum is not None:
                add_clause(f"{prop} >= {{param}}", predicate.minimum)
            if predicate.maximum is not None:
                add_clause(f"{prop} <= {{param}}", predicate.maximum)

    return clauses, params


def merge_params(*param_dicts: dict[str, Any]) -> dict[str, Any]:
    """Safely merge multiple parameter dictionaries.

    Raises:
        ValueError: If parameter names conflict with different values
    """
    result: dict[str, Any] = {}
    for params in param_dicts:
        for key, value in params.items():
            if key in result and result[key] != value:
                raise ValueError(f"Parameter conflict: {key} has different values")
            result[key] = value
    return result
