from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, Union

import yaml

from .errors import ResolutionError

logger = logging.getLogger(__name__)

PROFILE_METADATA_FILE = "profile.yml"
CONTROLS_DIR = "controls"

Reference = Union[str, os.PathLike, Mapping[str, Any]]


@dataclass(frozen=True)
class ResolvedContent:
    content: str
    source_id: str
    line_offset: int = 1
    profile_id: Optional[str] = None


def _default_fetch_url(url: str) -> str:
    from connectors.compliance.client import fetch_url

    return fetch_url(url)


def _default_fetch_profile(reference: str) -> str:
    from connectors.compliance.client import fetch_profile
    from connectors.compliance.config import get_compliance_config

    return fetch_profile(get_compliance_config(), reference)


class TargetResolver:
    """Turns profile references into `(content, source_id, line_offset)` items.

    References may be a profile file, a profile directory, an http(s) URL, a
    `compliance://owner/name` reference, or an inline mapping with `content`
    (and optional `ref` / `line`).
    """

    def __init__(
        self,
        *,
        fetch_url: Optional[Callable[[str], str]] = None,
        fetch_profile: Optional[Callable[[str], str]] = None,
    ):
        self._fetch_url = fetch_url or _default_fetch_url
        self._fetch_profile = fetch_profile or _default_fetch_profile

    def resolve(self, reference: Reference) -> List[ResolvedContent]:
        if isinstance(reference, Mapping):
            return [self._resolve_inline(reference)]
        ref = os.fspath(reference)
        if ref.startswith(("http://", "https://")):
            return [ResolvedContent(self._fetch(self._fetch_url, ref), ref)]
        if ref.startswith("compliance://"):
            return [ResolvedContent(self._fetch(self._fetch_profile, ref), ref)]
        path = Path(ref)
        if path.is_dir():
            return self._resolve_directory(path)
        if path.is_file():
            return [ResolvedContent(self._read(path), str(path))]
        raise ResolutionError(ref, "no such file, directory or supported URL")

    def resolve_all(self, references: Iterable[Reference]) -> Tuple[List[ResolvedContent], List[ResolutionError]]:
        items: List[ResolvedContent] = []
        errors: List[ResolutionError] = []
        for reference in references:
            try:
                items.extend(self.resolve(reference))
            except ResolutionError as exc:
                logger.warning("%s", exc)
                errors.append(exc)
        return items, errors

    def _resolve_inline(self, reference: Mapping[str, Any]) -> ResolvedContent:
        content = reference.get("content")
        source_id = str(reference.get("ref") or "inline")
        if not isinstance(content, (str, bytes)):
            raise ResolutionError(source_id, "inline reference needs string 'content'")
        if isinstance(content, bytes):
            try:
                content = content.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ResolutionError(source_id, f"content is not valid UTF-8: {exc}") from exc
        try:
            line = int(reference.get("line") or 1)
        except (TypeError, ValueError) as exc:
            raise ResolutionError(source_id, f"line must be an integer, got {reference.get('line')!r}") from exc
        if line < 1:
            raise ResolutionError(source_id, f"line must be >= 1, got {line}")
        return ResolvedContent(content, source_id, line, reference.get("profile_id"))

    def _resolve_directory(self, path: Path) -> List[ResolvedContent]:
        profile_id = self._read_metadata(path).get("name")
        controls = path / CONTROLS_DIR
        search_dir = controls if controls.is_dir() else path
        files = sorted(p for p in search_dir.glob("*.py") if p.is_file())
        if not files:
            raise ResolutionError(str(path), f"no profile files (*.py) found in {search_dir}")
        return [ResolvedContent(self._read(p), str(p), 1, profile_id) for p in files]

    def _read_metadata(self, path: Path) -> dict:
        metadata_path = path / PROFILE_METADATA_FILE
        if not metadata_path.is_file():
            return {}
        try:
            data = yaml.safe_load(self._read(metadata_path))
        except yaml.YAMLError as exc:
            raise ResolutionError(str(metadata_path), f"invalid YAML: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ResolutionError(str(metadata_path), "profile metadata must be a mapping")
        return data

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ResolutionError(str(path), str(exc)) from exc

    @staticmethod
    def _fetch(fetcher: Callable[[str], str], ref: str) -> str:
        try:
            return fetcher(ref)
        except ResolutionError:
            raise
        except Exception as exc:
            raise ResolutionError(ref, str(exc)) from exc
