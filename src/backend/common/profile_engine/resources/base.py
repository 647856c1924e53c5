from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from ..filters import RecordFilter

_RESOURCES: Dict[str, Type["Resource"]] = {}


def register_resource(name: str) -> Callable[[Type["Resource"]], Type["Resource"]]:
    def decorator(cls: Type["Resource"]) -> Type["Resource"]:
        if name in _RESOURCES:
            raise ValueError(f"Duplicate resource registered: {name}")
        cls.resource_name = name
        _RESOURCES[name] = cls
        return cls

    return decorator


def registered_resources() -> Dict[str, Type["Resource"]]:
    return dict(_RESOURCES)


class Resource:
    resource_name = ""

    def __init__(self, backend: Any):
        self._backend = backend

    def __repr__(self) -> str:
        return str(self)


class RecordResource(Resource):
    """A resource backed by a table of records that profiles can narrow with `where`."""

    def __init__(self, backend: Any, *, records: Optional[List[Mapping[str, Any]]] = None, filters: str = ""):
        super().__init__(backend)
        self._records = records
        self._filters = filters

    def load_records(self) -> List[Mapping[str, Any]]:  # pragma: no cover
        raise NotImplementedError

    def records(self) -> List[Mapping[str, Any]]:
        if self._records is None:
            self._records = list(self.load_records())
        return list(self._records)

    def derive(self, records: List[Mapping[str, Any]], filters: str) -> "RecordResource":
        raise NotImplementedError  # pragma: no cover

    def where(self, spec: Optional[Mapping[str, Any]] = None, **fields: Any) -> "RecordResource":
        merged = dict(spec or {})
        merged.update(fields)
        record_filter = RecordFilter(merged)
        if not record_filter:
            return self
        filters = f"{self._filters} and {record_filter.describe()}" if self._filters else record_filter.describe()
        return self.derive(record_filter.apply(self.records()), filters)

    def column(self, name: str) -> List[Any]:
        return [record.get(name) for record in self.records()]

    def count(self) -> int:
        return len(self.records())

    def entries(self) -> List[Dict[str, Any]]:
        return [dict(record) for record in self.records()]
