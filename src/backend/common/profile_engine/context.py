from __future__ import annotations

import hashlib
import inspect
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Union

from . import sandbox
from .errors import EvaluationError
from .registry import Check, Rule, RuleRegistry

logger = logging.getLogger(__name__)


def decode_source(content: Union[str, bytes], source_id: str) -> str:
    if not isinstance(content, bytes):
        return content
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise EvaluationError(source_id, None, f"profile source is not valid UTF-8: {exc}") from exc


class _RuleBlock:
    """`with rule("id"):` block; failures inside the block only drop that rule.

    An invalid header (bad impact, bad tags) is reported when the block exits;
    the body still runs against a placeholder rule that is never registered.
    """

    def __init__(self, dsl: "_ProfileDSL", rule: Rule, header_error: Optional[Exception] = None):
        self._dsl = dsl
        self.rule = rule
        self._header_error = header_error

    def __enter__(self) -> Rule:
        if self._dsl.current is not None:
            raise RuntimeError(f"rule {self.rule.rule_id!r} declared inside rule {self._dsl.current.rule_id!r}")
        self._dsl.current = self.rule
        return self.rule

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._dsl.current = None
        if exc is not None and not isinstance(exc, Exception):
            return False
        if self._header_error is not None:
            failure, line = self._header_error, self.rule.line
        elif exc is not None:
            failure, line = exc, sandbox.error_line(exc, self._dsl.source_id, tb)
        else:
            self._dsl.registry.register(self.rule)
            return False
        error = EvaluationError(
            self._dsl.source_id,
            line,
            f"{type(failure).__name__}: {failure}",
            rule_id=self.rule.rule_id,
        )
        logger.warning("Dropping rule after evaluation error: %s", error)
        self._dsl.registry.errors.append(error)
        return True


class _ProfileDSL:
    def __init__(self, registry: RuleRegistry, source_id: str, resources: Mapping[str, Callable[..., Any]]):
        self.registry = registry
        self.source_id = source_id
        self.resources = resources
        self.current: Optional[Rule] = None
        self.closed = False

    def _ensure_open(self, name: str) -> None:
        if self.closed:
            raise RuntimeError(
                f"{name}() is only available while the profile is evaluated; use group.describe() inside checks"
            )

    def _caller_line(self) -> Optional[int]:
        frame = inspect.currentframe()
        try:
            while frame is not None:
                if frame.f_code.co_filename == self.source_id:
                    return frame.f_lineno
                frame = frame.f_back
            return None
        finally:
            del frame

    def rule(
        self,
        rule_id: str,
        *,
        title: str = "",
        desc: str = "",
        impact: float = 0.5,
        tags: Optional[Dict[str, Any]] = None,
    ) -> _RuleBlock:
        self._ensure_open("rule")
        line = self._caller_line()
        try:
            rule = Rule(
                rule_id=rule_id,
                title=title,
                desc=desc,
                impact=impact,
                tags=dict(tags or {}),
                source_id=self.source_id,
                line=line,
            )
        except (TypeError, ValueError) as exc:
            placeholder = Rule(rule_id=str(rule_id or "(invalid rule)"), source_id=self.source_id, line=line)
            return _RuleBlock(self, placeholder, exc)
        return _RuleBlock(self, rule)

    def describe(self, subject: Any, *args: Any, body: Optional[Callable[..., Any]] = None):
        self._ensure_open("describe")
        line = self._caller_line()
        if body is not None:
            self._add_check(Check(subject, args, body, line))
            return body

        def decorator(fn: Callable[..., Any]):
            self._add_check(Check(subject, args, fn, line))
            return fn

        return decorator

    def skip_rule(self, reason: str = "") -> None:
        self._ensure_open("skip_rule")
        if self.current is None:
            raise RuntimeError("skip_rule() can only be used inside a rule block")
        self.current.skip_reason = reason or "skipped by profile"

    def _add_check(self, check: Check) -> None:
        if self.current is not None:
            self.current.add_check(check)
            return
        # Checks outside a rule block get a rule of their own.
        digest = hashlib.sha256(f"{self.source_id}:{check.line}:{check.subject!r}".encode("utf-8")).hexdigest()[:8]
        rule = Rule(
            rule_id=f"(generated from {self.source_id}:{check.line} {digest})",
            source_id=self.source_id,
            line=check.line,
        )
        rule.add_check(check)
        self.registry.register(rule)

    def namespace(self) -> Dict[str, Any]:
        ns: Dict[str, Any] = dict(self.resources)
        ns.update(
            {
                "rule": self.rule,
                "control": self.rule,
                "describe": self.describe,
                "skip_rule": self.skip_rule,
            }
        )
        return ns


class ProfileContext:
    """Evaluates profile source into a fresh `RuleRegistry`.

    Each call to `evaluate` builds its own registry and DSL state, so one
    context can evaluate several sources (also from several threads).
    """

    def __init__(self, profile_id: str, resources: Optional[Mapping[str, Callable[..., Any]]] = None):
        self.profile_id = profile_id
        if resources is None:
            from .resources import build_namespace

            resources = build_namespace()
        self._resources = dict(resources)

    def evaluate(self, content: Union[str, bytes], source_id: str, line_offset: int = 1) -> RuleRegistry:
        content = decode_source(content, source_id)
        if line_offset < 1:
            raise ValueError(f"line_offset must be >= 1, got {line_offset}")

        try:
            code = sandbox.compile_profile(content, source_id, line_offset)
        except SyntaxError as exc:
            raise EvaluationError(source_id, exc.lineno, exc.msg) from exc

        registry = RuleRegistry(self.profile_id, source_id)
        dsl = _ProfileDSL(registry, source_id, self._resources)
        try:
            sandbox.execute(code, dsl.namespace())
        except Exception as exc:
            raise EvaluationError(
                source_id,
                sandbox.error_line(exc, source_id),
                f"{type(exc).__name__}: {exc}",
            ) from exc
        finally:
            dsl.closed = True
        logger.debug("Evaluated %s: %d rule(s), %d rule error(s)", source_id, len(registry), len(registry.errors))
        return registry
