from __future__ import annotations

import re
from functools import partial
from typing import Any, Callable, Dict, Optional

from .base import RecordResource, Resource, register_resource, registered_resources

# Import built-in resources so they self-register.
from .file import File
from .os_env import OsEnv
from .passwd import Passwd


def build_namespace(backend: Optional[Any] = None) -> Dict[str, Callable[..., Any]]:
    """Resource factories bound to `backend`, as exposed to profile code."""
    if backend is None:
        from connectors.target import LocalBackend

        backend = LocalBackend()
    namespace: Dict[str, Callable[..., Any]] = {
        name: partial(cls, backend) for name, cls in registered_resources().items()
    }
    namespace["regex"] = re.compile
    return namespace


__all__ = [
    "File",
    "OsEnv",
    "Passwd",
    "RecordResource",
    "Resource",
    "build_namespace",
    "register_resource",
]
