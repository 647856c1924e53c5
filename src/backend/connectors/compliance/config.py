from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .token_store import load_tokens, token_store_path


load_dotenv()


@dataclass(frozen=True)
class ComplianceConfig:
    server: str
    user: str
    token: str
    insecure: bool = False

    def require_login(self) -> None:
        if not self.server or not self.token:
            raise ValueError("Not logged in to a compliance server; run `compliance login` first.")


def get_compliance_config() -> ComplianceConfig:
    """
    Load compliance server settings.

    Values stored by `compliance login` win over the environment:
      COMPLIANCE_SERVER, COMPLIANCE_USER, COMPLIANCE_TOKEN, COMPLIANCE_INSECURE
    """
    stored = load_tokens(token_store_path())
    return ComplianceConfig(
        server=_setting("COMPLIANCE_SERVER", stored).rstrip("/"),
        user=_setting("COMPLIANCE_USER", stored),
        token=_setting("COMPLIANCE_TOKEN", stored),
        insecure=_setting("COMPLIANCE_INSECURE", stored).lower() in ("1", "true", "yes"),
    )


def _setting(name: str, stored: dict[str, str] | None = None) -> str:
    if stored and name in stored and stored[name]:
        return stored[name]
    return os.getenv(name, "").strip()
