"""Tabular filtering over parsed records.

Resources that expose a list of mappings (passwd entries, parsed config tables,
...) share this filter so `where(uid=0)` and `where(uid={">=": 1000})` behave
the same everywhere.
"""

from __future__ import annotations

import operator
import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import FilterUsageError

Record = Mapping[str, Any]

_ORDERING_OPS: Dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}
_EQUALITY_OPS = ("==", "!=")
SUPPORTED_OPERATORS = _EQUALITY_OPS + tuple(_ORDERING_OPS)


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip() if value is not None else ""
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return None


def _equals(item: Any, condition: Any) -> bool:
    if isinstance(condition, re.Pattern):
        return item is not None and condition.search(str(item)) is not None
    # Parsed records hold strings; an integer condition is compared by its text form.
    if isinstance(condition, int) and not isinstance(condition, bool) and isinstance(item, str):
        return item == str(condition)
    return item == condition


class RecordFilter:
    def __init__(self, spec: Optional[Mapping[str, Any]] = None):
        self._clauses: List[Tuple[str, str, Any]] = []
        for field, condition in (spec or {}).items():
            self._clauses.append((str(field), *self._parse_condition(field, condition)))

    @staticmethod
    def _parse_condition(field: str, condition: Any) -> Tuple[str, Any]:
        if isinstance(condition, Mapping):
            if len(condition) != 1:
                raise FilterUsageError(
                    f"Filter on {field!r} must be a literal or a single {{operator: value}} entry, got {dict(condition)!r}"
                )
            op, value = next(iter(condition.items()))
            op = str(op)
        else:
            op, value = "==", condition
        if op not in SUPPORTED_OPERATORS:
            raise FilterUsageError(
                f"Unsupported filter operator {op!r} on {field!r}; expected one of {', '.join(SUPPORTED_OPERATORS)}"
            )
        if op in _ORDERING_OPS and _to_number(value) is None:
            raise FilterUsageError(f"Operator {op!r} on {field!r} needs a numeric value, got {value!r}")
        return op, value

    def __bool__(self) -> bool:
        return bool(self._clauses)

    def matches(self, record: Record) -> bool:
        for field, op, value in self._clauses:
            item = record.get(field)
            if op in _ORDERING_OPS:
                # Non-numeric field values never satisfy an ordering comparison.
                number = _to_number(item)
                if number is None or not _ORDERING_OPS[op](number, _to_number(value)):
                    return False
            elif op == "==":
                if not _equals(item, value):
                    return False
            elif _equals(item, value):
                return False
        return True

    def apply(self, records: Iterable[Record]) -> List[Record]:
        return [record for record in records if self.matches(record)]

    def describe(self) -> str:
        parts = []
        for field, op, value in self._clauses:
            shown = f"/{value.pattern}/" if isinstance(value, re.Pattern) else repr(value)
            parts.append(f"{field} {op} {shown}")
        return " and ".join(parts)


def filter_records(records: Iterable[Record], spec: Optional[Mapping[str, Any]]) -> List[Record]:
    return RecordFilter(spec).apply(records)
