from __future__ import annotations

from typing import Any


PASSWD_FIELDS = ("user", "password", "uid", "gid", "desc", "home", "shell")


class PasswdAdapterError(ValueError):
    pass


def parse_passwd_line(line: str) -> dict[str, str]:
    """
    Split one /etc/passwd line into its seven named fields.

    Missing trailing fields become empty strings; extra `:` separated parts are
    folded into the last field (shell).
    """
    parts = line.split(":", len(PASSWD_FIELDS) - 1)
    parts += [""] * (len(PASSWD_FIELDS) - len(parts))
    return dict(zip(PASSWD_FIELDS, parts))


def parse_passwd(content: Any) -> list[dict[str, str]]:
    if content is None:
        return []
    if isinstance(content, bytes):
        content = content.decode("utf-8")
    if not isinstance(content, str):
        raise PasswdAdapterError("passwd content must be text.")

    records: list[dict[str, str]] = []
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        records.append(parse_passwd_line(line))
    return records


def format_passwd(records: list[dict[str, str]]) -> str:
    return "\n".join(":".join(rec.get(f, "") for f in PASSWD_FIELDS) for rec in records)
