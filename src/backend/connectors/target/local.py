from __future__ import annotations

import os
import platform
from pathlib import Path, PurePosixPath
from typing import Optional


class TargetBackendError(RuntimeError):
    pass


class LocalBackend:
    """
    Read-only access to the audited host.

    `root` lets the same profile run against a mounted filesystem (container
    image, chroot) instead of `/`. Paths are always resolved inside `root`.
    """

    def __init__(self, root: str = "/", environ: Optional[dict[str, str]] = None):
        self.root = Path(root)
        self._environ = environ

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath("/", path).relative_to("/")
        if ".." in relative.parts:
            raise TargetBackendError(f"Path escapes target root: {path}")
        return self.root.joinpath(*relative.parts)

    def file_exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def is_directory(self, path: str) -> bool:
        return self._resolve(path).is_dir()

    def read_file(self, path: str) -> Optional[str]:
        target = self._resolve(path)
        if not target.is_file():
            return None
        try:
            return target.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise TargetBackendError(f"Cannot read {path}: {exc}") from exc

    def file_mode(self, path: str) -> Optional[int]:
        target = self._resolve(path)
        if not target.exists():
            return None
        return target.stat().st_mode & 0o7777

    def getenv(self, name: str) -> Optional[str]:
        environ = self._environ if self._environ is not None else os.environ
        return environ.get(name)

    def os_info(self) -> dict[str, str]:
        release = self._os_release()
        return {
            "name": release.get("ID", platform.system().lower()),
            "family": release.get("ID_LIKE", platform.system().lower()).split(" ")[0],
            "arch": platform.machine(),
            "release": release.get("VERSION_ID", platform.release()),
        }

    def _os_release(self) -> dict[str, str]:
        content = self.read_file("/etc/os-release")
        if not content:
            return {}
        out: dict[str, str] = {}
        for line in content.splitlines():
            if "=" not in line or line.lstrip().startswith("#"):
                continue
            key, value = line.split("=", 1)
            out[key.strip()] = value.strip().strip('"')
        return out
