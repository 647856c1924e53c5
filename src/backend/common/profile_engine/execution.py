"""In-process example execution.

Check bodies build `ExampleGroup` trees (groups hold leaf `Example`s and nested
groups); `ExampleWorld` collects the top-level groups in registration order
and `ExampleRunner` executes every leaf to exactly one outcome.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterator, List, Optional

from .models import ExampleResult, Outcome
from .sandbox import is_blocked_attribute

logger = logging.getLogger(__name__)

Predicate = Callable[[Any], Any]

_UNSET = object()


class SkipExample(Exception):
    pass


def _describe_parts(parts) -> str:
    return " ".join(str(p) for p in parts if p is not None and str(p) != "")


class Example:
    def __init__(self, group: "ExampleGroup", description: str, predicate: Optional[Predicate], *, skip_reason=None):
        self.group = group
        self.description = description
        self.predicate = predicate
        self.skip_reason = skip_reason
        self.metadata: Dict[str, Any] = {}

    @property
    def full_description(self) -> str:
        return _describe_parts([self.group.full_description, self.description])


class ExampleGroup:
    def __init__(
        self,
        subject: Any = _UNSET,
        *args: Any,
        parent: Optional["ExampleGroup"] = None,
        subject_fn: Optional[Callable[[], Any]] = None,
        description: Optional[str] = None,
    ):
        self.parent = parent
        self.args = args
        self.metadata: Dict[str, Any] = {}
        self.examples: List[Example] = []
        self.children: List[ExampleGroup] = []
        if subject_fn is not None:
            self._subject_fn = subject_fn
        elif subject is not _UNSET:
            self._subject_fn = lambda: subject
        else:
            self._subject_fn = None
        if description is None:
            description = _describe_parts(([] if subject is _UNSET else [subject]) + list(args))
        self.description = description

    @property
    def full_description(self) -> str:
        if self.parent is None:
            return self.description
        return _describe_parts([self.parent.full_description, self.description])

    @property
    def subject(self) -> Any:
        if self._subject_fn is not None:
            return self._subject_fn()
        if self.parent is not None:
            return self.parent.subject
        return None

    # Vocabulary used by check bodies.

    def it(self, description: str, predicate: Optional[Predicate] = None):
        if predicate is None:
            def decorator(fn: Predicate) -> Predicate:
                self.examples.append(Example(self, description, fn))
                return fn

            return decorator
        if not callable(predicate):
            raise TypeError(f"Example {description!r} needs a callable predicate, got {predicate!r}")
        self.examples.append(Example(self, description, predicate))
        return predicate

    def skip(self, description: str, reason: str = "") -> None:
        self.examples.append(Example(self, description, None, skip_reason=reason or "skipped"))

    def describe(self, subject: Any, *args: Any):
        def decorator(body: Callable[["ExampleGroup"], Any]):
            child = ExampleGroup(subject, *args, parent=self)
            self.children.append(child)
            body(child)
            return body

        return decorator

    def its(self, attribute: str):
        path = str(attribute).split(".")
        if any(not part or is_blocked_attribute(part) for part in path):
            raise ValueError(f"its() attribute is not accessible in profiles: {attribute!r}")

        def resolve():
            value = self.subject
            for part in path:
                if isinstance(value, Mapping):
                    value = value[part]
                    continue
                value = getattr(value, part)
                if callable(value):
                    value = value()
            return value

        def decorator(body: Callable[["ExampleGroup"], Any]):
            child = ExampleGroup(parent=self, subject_fn=resolve, description=f"{attribute}")
            self.children.append(child)
            body(child)
            return body

        return decorator

    def walk(self) -> Iterator["ExampleGroup"]:
        yield self
        for child in self.children:
            yield from child.walk()

    def leaf_count(self) -> int:
        return sum(len(group.examples) for group in self.walk())


class ExampleWorld:
    """Process-wide, append-only collection of top-level example groups."""

    def __init__(self):
        self._lock = threading.Lock()
        self._groups: List[ExampleGroup] = []

    def register(self, group: ExampleGroup) -> None:
        with self._lock:
            self._groups.append(group)

    def ordered_groups(self) -> List[ExampleGroup]:
        with self._lock:
            return list(self._groups)

    def clear(self) -> None:
        with self._lock:
            self._groups.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._groups)


world = ExampleWorld()


class ExampleRunner:
    def __init__(self, example_world: Optional[ExampleWorld] = None):
        self._world = example_world if example_world is not None else world

    def run(self, groups: Optional[List[ExampleGroup]] = None) -> List[ExampleResult]:
        if groups is None:
            groups = self._world.ordered_groups()
        results: List[ExampleResult] = []
        for group in groups:
            for node in group.walk():
                for example in node.examples:
                    results.append(self._run_example(example))
        return results

    def _run_example(self, example: Example) -> ExampleResult:
        rule_id = example.metadata.get("id", "")
        description = example.full_description

        def result(outcome: Outcome, message: str = "", exception: Optional[str] = None) -> ExampleResult:
            return ExampleResult(
                rule_id=rule_id,
                description=description,
                outcome=outcome,
                message=message,
                exception=exception,
            )

        if example.predicate is None:
            return result(Outcome.SKIP, example.skip_reason or "")
        try:
            subject = example.group.subject
            value = example.predicate(subject)
        except SkipExample as exc:
            return result(Outcome.SKIP, str(exc))
        except AssertionError as exc:
            return result(Outcome.FAIL, str(exc) or f"expected {description}")
        except Exception as exc:
            logger.debug("Example %r raised %s", description, exc, exc_info=True)
            return result(Outcome.ERROR, str(exc), type(exc).__name__)
        if value is not None and not value:
            return result(Outcome.FAIL, f"expected {description}, got {value!r}")
        return result(Outcome.PASS)
