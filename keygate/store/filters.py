"""
Filter evaluation for record store queries.

Filters are mappings of field name to either a plain value (equality) or a
single-operator mapping such as ``{"$lte": now}``. Datetime operands are
compared against stored ISO-8601 strings by parsing the stored value.

Author: Keygate Team
Date: 2026-10-02
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping

Filter = Mapping[str, Any]

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "$eq": lambda stored, operand: stored == operand,
    "$ne": lambda stored, operand: stored != operand,
    "$lt": lambda stored, operand: stored is not None and stored < operand,
    "$lte": lambda stored, operand: stored is not None and stored <= operand,
    "$gt": lambda stored, operand: stored is not None and stored > operand,
    "$gte": lambda stored, operand: stored is not None and stored >= operand,
    "$in": lambda stored, operand: stored in operand,
}


def _coerce(stored: Any, operand: Any) -> Any:
    """Bring a stored value into the operand's type where they differ."""
    if isinstance(operand, datetime) and isinstance(stored, str):
        parsed = datetime.fromisoformat(stored)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return stored


def _match_condition(stored: Any, condition: Any) -> bool:
    if isinstance(condition, Mapping) and condition and all(
        str(k).startswith("$") for k in condition
    ):
        for op, operand in condition.items():
            if op not in _OPERATORS:
                raise ValueError(f"Unsupported filter operator: {op}")
            sample = operand[0] if op == "$in" and operand else operand
            if not _OPERATORS[op](_coerce(stored, sample), operand):
                return False
        return True
    return _coerce(stored, condition) == condition


def matches(record: Mapping[str, Any], query: Filter) -> bool:
    """Return True if every condition of ``query`` holds for ``record``."""
    for field, condition in query.items():
        if not _match_condition(record.get(field), condition):
            return False
    return True
