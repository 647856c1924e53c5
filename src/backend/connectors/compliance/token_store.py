from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any


TOKEN_STORE_DEFAULT = ".compliance_tokens.json"


def token_store_path() -> str:
    return os.getenv("COMPLIANCE_TOKEN_STORE_PATH", TOKEN_STORE_DEFAULT)


def load_tokens(path: str) -> dict[str, str] | None:
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as handle:
        raw = json.loads(handle.read())
    if not isinstance(raw, dict):
        return None
    return {k: str(v) for k, v in raw.items() if v is not None}


def save_tokens(
    path: str,
    *,
    server: str,
    user: str,
    token: str,
    insecure: bool = False,
) -> None:
    data: dict[str, Any] = {
        "COMPLIANCE_SERVER": server,
        "COMPLIANCE_USER": user,
        "COMPLIANCE_TOKEN": token,
        "COMPLIANCE_INSECURE": "true" if insecure else "false",
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2)


def clear_tokens(path: str) -> bool:
    if not os.path.exists(path):
        return False
    os.remove(path)
    return True
