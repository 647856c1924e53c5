from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Union

from .aggregator import aggregate
from .compiler import TestCompiler
from .context import ProfileContext, decode_source
from .errors import CompilationError, EvaluationError, ResolutionError
from .execution import ExampleGroup, ExampleRunner, ExampleWorld, world
from .models import IssueKind, RunIssue, RunSummary
from .registry import Rule, RuleRegistry
from .targets import Reference, ResolvedContent, TargetResolver

logger = logging.getLogger(__name__)


def _issue_from(exc: Exception) -> RunIssue:
    if isinstance(exc, ResolutionError):
        return RunIssue(kind=IssueKind.RESOLUTION, ref=exc.reference, message=exc.reason)
    if isinstance(exc, EvaluationError):
        return RunIssue(
            kind=IssueKind.EVALUATION,
            ref=exc.source_id,
            line=exc.line,
            rule_id=exc.rule_id,
            message=exc.reason,
        )
    if isinstance(exc, CompilationError):
        return RunIssue(kind=IssueKind.COMPILATION, ref=exc.rule_id, rule_id=exc.rule_id, message=exc.reason)
    raise TypeError(f"Not a profile engine error: {exc!r}")


class ProfileRunner:
    """Resolve, evaluate, compile and execute profiles for one run.

    Failures are contained per reference, per profile source and per rule;
    they are reported in `RunSummary.errors` while the rest of the run goes on.
    """

    def __init__(
        self,
        profile_id: str = "local",
        *,
        backend: Optional[Any] = None,
        resolver: Optional[TargetResolver] = None,
        example_world: Optional[ExampleWorld] = None,
        resources: Optional[Dict[str, Any]] = None,
    ):
        self.profile_id = profile_id
        if resources is None:
            from .resources import build_namespace

            resources = build_namespace(backend)
        self._resources = resources
        self._resolver = resolver or TargetResolver()
        self._world = example_world if example_world is not None else world
        self._cancel = threading.Event()
        self._compiler = TestCompiler(self._world, self._cancel)
        self._rules: Dict[str, Rule] = {}
        self._units: List[ExampleGroup] = []
        self.issues: List[RunIssue] = []

    @property
    def rule_ids(self) -> List[str]:
        return list(self._rules.keys())

    def rules(self) -> List[Rule]:
        return list(self._rules.values())

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _record(self, exc: Exception) -> None:
        self.issues.append(_issue_from(exc))

    def _evaluate(self, item: ResolvedContent) -> Union[RuleRegistry, EvaluationError]:
        ctx = ProfileContext(item.profile_id or self.profile_id, self._resources)
        try:
            return ctx.evaluate(item.content, item.source_id, item.line_offset)
        except EvaluationError as exc:
            logger.warning("Skipping profile source: %s", exc)
            return exc

    def _compile(self, registry: RuleRegistry) -> None:
        for error in registry.errors:
            self._record(error)
        result = self._compiler.compile(registry)
        for error in result.errors:
            self._record(error)
        for rule_id in result.rule_ids:
            if rule_id in self._rules and self._rules[rule_id].source_id != registry.source_id:
                logger.warning(
                    "Rule %r from %s shares its ID with a rule from %s; results are merged",
                    rule_id,
                    registry.source_id,
                    self._rules[rule_id].source_id,
                )
            self._rules[rule_id] = registry.get(rule_id)
        self._units.extend(result.units)

    def add_content(
        self,
        content: Union[str, bytes],
        source_id: str,
        line: Optional[int] = None,
    ) -> Optional[RuleRegistry]:
        try:
            content = decode_source(content, source_id)
        except EvaluationError as exc:
            self._record(exc)
            return None
        outcome = self._evaluate(ResolvedContent(content, source_id, line or 1))
        if isinstance(outcome, EvaluationError):
            self._record(outcome)
            return None
        self._compile(outcome)
        return outcome

    def add_references(self, references: Iterable[Reference], *, max_workers: int = 1) -> None:
        items, errors = self._resolver.resolve_all(references)
        for error in errors:
            self._record(error)
        if not items:
            return

        if max_workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                outcomes = list(pool.map(self._evaluate, items))
        else:
            outcomes = []
            for item in items:
                if self.cancelled:
                    break
                outcomes.append(self._evaluate(item))

        # Compile in input order so registration (and report) order is stable.
        for outcome in outcomes:
            if self.cancelled:
                logger.info("Run cancelled before all profile sources were compiled")
                break
            if isinstance(outcome, EvaluationError):
                self._record(outcome)
                continue
            self._compile(outcome)

    def run(self) -> RunSummary:
        results = ExampleRunner(self._world).run(list(self._units))
        return aggregate(
            results,
            self.rule_ids,
            issues=self.issues,
            rules=self._rules,
            profile_id=self.profile_id,
        )
