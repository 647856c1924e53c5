from __future__ import annotations

from typing import Any, List, Mapping, Optional

from adapters.passwd import parse_passwd

from .base import RecordResource, register_resource


@register_resource("passwd")
class Passwd(RecordResource):
    """Entries of /etc/passwd on the target.

        describe(passwd().uids(0))
        describe(passwd().shells(regex("nologin")))  # patterns match with search
    """

    def __init__(self, backend: Any, path: Optional[str] = None, **kwargs: Any):
        super().__init__(backend, **kwargs)
        self.path = path or "/etc/passwd"

    def load_records(self) -> List[Mapping[str, Any]]:
        return parse_passwd(self._backend.read_file(self.path))

    def derive(self, records, filters: str) -> "Passwd":
        return Passwd(self._backend, self.path, records=records, filters=filters)

    def _column_or_filter(self, field: str, value: Any):
        return self.column(field) if value is None else self.where({field: value})

    def users(self, name: Any = None):
        return self._column_or_filter("user", name)

    def passwords(self, password: Any = None):
        return self._column_or_filter("password", password)

    def uids(self, uid: Any = None):
        return self._column_or_filter("uid", uid)

    def gids(self, gid: Any = None):
        return self._column_or_filter("gid", gid)

    def homes(self, home: Any = None):
        return self._column_or_filter("home", home)

    def shells(self, shell: Any = None):
        return self._column_or_filter("shell", shell)

    def __str__(self) -> str:
        suffix = f" with {self._filters}" if self._filters else ""
        return f"{self.path}{suffix}"
