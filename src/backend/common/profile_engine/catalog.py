from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, Field

from .registry import Rule


class RuleCatalogEntry(BaseModel):
    rule_id: str
    title: str = ""
    desc: str = ""
    impact: float = 0.5
    tags: Dict[str, Any] = Field(default_factory=dict)

    source_id: str = ""
    line: Optional[int] = None
    checks: int = 0
    skipped: bool = False


def build_catalog(rules: Iterable[Rule]) -> List[RuleCatalogEntry]:
    entries = [
        RuleCatalogEntry(
            rule_id=rule.rule_id,
            title=rule.title,
            desc=rule.desc,
            impact=rule.impact,
            tags=dict(rule.tags),
            source_id=rule.source_id,
            line=rule.line,
            checks=len(rule.checks),
            skipped=rule.skip_reason is not None,
        )
        for rule in rules
    ]
    entries.sort(key=lambda e: e.rule_id)
    return entries


def dump_catalog(entries: List[RuleCatalogEntry], fmt: str = "json") -> str:
    catalog = [e.model_dump(mode="json") for e in entries]
    if fmt == "yaml":
        return yaml.safe_dump(catalog, sort_keys=True)
    if fmt == "json":
        return json.dumps(catalog, indent=2, sort_keys=True)
    raise ValueError(f"Unsupported catalog format: {fmt}")
