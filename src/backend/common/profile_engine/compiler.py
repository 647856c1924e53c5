from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import CompilationError
from .execution import ExampleGroup, ExampleWorld, world
from .registry import Check, Rule, RuleRegistry

logger = logging.getLogger(__name__)


def set_rule_ids(group: ExampleGroup, rule_id: str) -> None:
    """Stamp `rule_id` on a group, its examples and every nested group."""
    group.metadata["id"] = rule_id
    for example in group.examples:
        example.metadata["id"] = rule_id
    for child in group.children:
        set_rule_ids(child, rule_id)


@dataclass
class CompileResult:
    units: List[ExampleGroup] = field(default_factory=list)
    errors: List[CompilationError] = field(default_factory=list)
    rule_ids: List[str] = field(default_factory=list)
    cancelled: bool = False


class TestCompiler:
    """Turns registered rules into example groups and registers them with the world."""

    __test__ = False  # not a pytest class

    def __init__(self, example_world: Optional[ExampleWorld] = None, cancel_event: Optional[threading.Event] = None):
        self._world = example_world if example_world is not None else world
        self._cancel = cancel_event

    def build_unit(self, rule: Rule, check: Check) -> ExampleGroup:
        group = ExampleGroup(check.subject, *check.args)
        group.metadata["source_id"] = rule.source_id
        group.metadata["line"] = check.line
        if check.body is not None:
            check.body(group)
        return group

    def compile_rule(self, rule: Rule) -> List[ExampleGroup]:
        if rule.skip_reason is not None:
            group = ExampleGroup(description=rule.title or rule.rule_id)
            group.skip(rule.skip_reason, rule.skip_reason)
            set_rule_ids(group, rule.rule_id)
            return [group]

        units: List[ExampleGroup] = []
        for check in rule.checks:
            try:
                group = self.build_unit(rule, check)
            except Exception as exc:
                raise CompilationError(rule.rule_id, f"{type(exc).__name__}: {exc}") from exc
            set_rule_ids(group, rule.rule_id)
            units.append(group)
        return units

    def compile(self, registry: RuleRegistry) -> CompileResult:
        result = CompileResult()
        for rule_id, rule in registry.all():
            if self._cancel is not None and self._cancel.is_set():
                logger.info("Compilation cancelled before rule %r", rule_id)
                result.cancelled = True
                break
            try:
                units = self.compile_rule(rule)
            except CompilationError as exc:
                logger.warning("%s", exc)
                result.errors.append(exc)
                continue
            # Register only once the whole rule compiled so a failing rule leaves nothing behind.
            for unit in units:
                self._world.register(unit)
            result.units.extend(units)
            result.rule_ids.append(rule_id)
        return result
