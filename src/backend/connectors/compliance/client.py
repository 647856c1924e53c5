from __future__ import annotations

import json
import ssl
import time
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urljoin
from urllib.request import Request, urlopen

from .config import ComplianceConfig


RETRY_STATUSES = (429, 500, 502, 503, 504)


class ComplianceHttpError(RuntimeError):
    def __init__(self, status: int, message: str, body: str | None = None):
        super().__init__(f"Compliance HTTP {status}: {message}")
        self.status = status
        self.body = body


def http_request(
    url: str,
    *,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    data: bytes | None = None,
    insecure: bool = False,
    timeout_seconds: int = 30,
    max_retries: int = 3,
) -> str:
    """
    Perform an HTTP request and return the decoded body.

    Retries transient failures (connection errors, 429 and 5xx) with exponential backoff.
    """
    context = None
    if insecure:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    retries = 0
    backoff = 0.5

    while True:
        req = Request(url, data=data, method=method)
        for name, value in (headers or {}).items():
            req.add_header(name, value)

        try:
            with urlopen(req, timeout=timeout_seconds, context=context) as resp:
                return resp.read().decode("utf-8")
        except HTTPError as exc:
            body = exc.read().decode("utf-8") if exc.fp else None
            if exc.code in RETRY_STATUSES and retries < max_retries:
                time.sleep(backoff)
                retries += 1
                backoff *= 2
                continue
            raise ComplianceHttpError(exc.code, exc.reason, body) from exc
        except URLError as exc:
            if retries < max_retries:
                time.sleep(backoff)
                retries += 1
                backoff *= 2
                continue
            raise ComplianceHttpError(0, str(exc)) from exc


def fetch_url(url: str, *, insecure: bool = False, timeout_seconds: int = 30) -> str:
    return http_request(url, insecure=insecure, timeout_seconds=timeout_seconds)


def compliance_request(
    config: ComplianceConfig,
    path: str,
    *,
    method: str = "GET",
    payload: Any = None,
    accept: str = "application/json",
) -> str:
    config.require_login()
    headers = {"Accept": accept, "Authorization": f"Bearer {config.token}"}
    data = None
    if payload is not None:
        headers["Content-Type"] = "application/json"
        data = json.dumps(payload).encode("utf-8")
    return http_request(
        _build_url(config.server, path),
        method=method,
        headers=headers,
        data=data,
        insecure=config.insecure,
    )


def fetch_profile(config: ComplianceConfig, reference: str) -> str:
    """Download profile source for `owner/name` (a `compliance://` reference without scheme)."""
    reference = reference.removeprefix("compliance://").strip("/")
    owner, sep, name = reference.partition("/")
    if not sep or not owner or not name:
        raise ValueError(f"Compliance profile reference must look like owner/name, got {reference!r}")
    path = f"/owners/{quote(owner)}/compliance/{quote(name)}/source"
    return compliance_request(config, path, accept="text/plain")


def list_profiles(config: ComplianceConfig) -> list[dict[str, Any]]:
    raw = json.loads(compliance_request(config, "/user/compliance"))
    if isinstance(raw, dict):
        raw = raw.get("profiles", [])
    return [p for p in raw if isinstance(p, dict)]


def publish(config: ComplianceConfig, summary: dict[str, Any]) -> dict[str, Any]:
    raw = compliance_request(config, "/reports", method="POST", payload=summary)
    return json.loads(raw) if raw.strip() else {}


def server_version(server: str, *, insecure: bool = False) -> dict[str, Any] | None:
    try:
        raw = http_request(_build_url(server, "/version"), headers={"Accept": "application/json"}, insecure=insecure)
    except ComplianceHttpError:
        return None
    info = json.loads(raw)
    return info if isinstance(info, dict) else None


def _build_url(base_url: str, path: str) -> str:
    normalized_path = path if path.startswith("/") else f"/{path}"
    return urljoin(base_url.rstrip("/") + "/", normalized_path.lstrip("/"))
