from __future__ import annotations

from typing import Optional


class ProfileEngineError(Exception):
    pass


class ResolutionError(ProfileEngineError):
    """A profile reference could not be turned into content."""

    def __init__(self, reference: str, message: str):
        super().__init__(f"Cannot resolve profile reference {reference!r}: {message}")
        self.reference = reference
        self.reason = message


class EvaluationError(ProfileEngineError):
    """Profile source failed while being evaluated.

    `rule_id` is set when the failure was contained to a single rule block.
    """

    def __init__(
        self,
        source_id: str,
        line: Optional[int],
        message: str,
        *,
        rule_id: Optional[str] = None,
    ):
        where = f"{source_id}:{line}" if line is not None else source_id
        prefix = f"{where} (rule {rule_id})" if rule_id else where
        super().__init__(f"{prefix}: {message}")
        self.source_id = source_id
        self.line = line
        self.reason = message
        self.rule_id = rule_id


class CompilationError(ProfileEngineError):
    def __init__(self, rule_id: str, message: str):
        super().__init__(f"Rule {rule_id!r} failed to compile: {message}")
        self.rule_id = rule_id
        self.reason = message


class FilterUsageError(ProfileEngineError, ValueError):
    pass
