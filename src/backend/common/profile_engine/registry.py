from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple

from .errors import EvaluationError

logger = logging.getLogger(__name__)


class Check(NamedTuple):
    subject: Any
    args: Tuple[Any, ...]
    body: Optional[Callable[..., Any]]
    line: Optional[int] = None


@dataclass
class Rule:
    rule_id: str
    title: str = ""
    desc: str = ""
    impact: float = 0.5
    tags: Dict[str, Any] = field(default_factory=dict)
    source_id: str = ""
    line: Optional[int] = None
    checks: List[Check] = field(default_factory=list)
    skip_reason: Optional[str] = None

    def __post_init__(self):
        if not self.rule_id or not isinstance(self.rule_id, str):
            raise ValueError("Rule must define a non-empty string rule_id")
        if not 0.0 <= float(self.impact) <= 1.0:
            raise ValueError(f"Rule {self.rule_id!r} impact must be between 0.0 and 1.0, got {self.impact!r}")
        self.impact = float(self.impact)

    def add_check(self, check: Check) -> None:
        self.checks.append(check)


class RuleRegistry:
    """Rules declared by one evaluated profile source, in declaration order.

    Re-declaring a rule ID replaces the earlier definition; the replacement is
    logged because it is usually a copy/paste mistake in the profile.
    """

    def __init__(self, profile_id: str = "", source_id: str = ""):
        self.profile_id = profile_id
        self.source_id = source_id
        self._rules: Dict[str, Rule] = {}
        self.errors: List[EvaluationError] = []

    def register(self, rule: Rule) -> None:
        previous = self._rules.pop(rule.rule_id, None)
        if previous is not None:
            logger.warning(
                "Rule %r redeclared at %s:%s, replacing definition from %s:%s",
                rule.rule_id,
                rule.source_id,
                rule.line,
                previous.source_id,
                previous.line,
            )
        self._rules[rule.rule_id] = rule

    def get(self, rule_id: str) -> Rule:
        return self._rules[rule_id]

    def ids(self) -> List[str]:
        return list(self._rules.keys())

    def all(self) -> List[Tuple[str, Rule]]:
        return list(self._rules.items())

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(list(self._rules.values()))
