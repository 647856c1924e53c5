from __future__ import annotations

import os
from typing import Any, List, Optional

from .base import Resource, register_resource


@register_resource("os_env")
class OsEnv(Resource):
    def __init__(self, backend: Any, name: str):
        super().__init__(backend)
        self.name = name

    def value(self) -> Optional[str]:
        return self._backend.getenv(self.name)

    def exists(self) -> bool:
        return self.value() is not None

    def split(self) -> List[str]:
        return (self.value() or "").split(os.pathsep)

    def __str__(self) -> str:
        return f"Environment variable {self.name}"
