from __future__ import annotations

from typing import Any, Optional

from .base import Resource, register_resource


@register_resource("file")
class File(Resource):
    def __init__(self, backend: Any, path: str):
        super().__init__(backend)
        self.path = path

    def exists(self) -> bool:
        return self._backend.file_exists(self.path)

    def is_directory(self) -> bool:
        return self._backend.is_directory(self.path)

    def content(self) -> Optional[str]:
        return self._backend.read_file(self.path)

    def lines(self) -> list:
        return (self.content() or "").splitlines()

    def mode(self) -> Optional[int]:
        return self._backend.file_mode(self.path)

    def __str__(self) -> str:
        return f"File {self.path}"
