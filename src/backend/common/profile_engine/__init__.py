"""Profile evaluation and execution engine.

Profile source is evaluated in a restricted context into rules; each rule's
checks are compiled into example groups stamped with the rule ID, executed,
and aggregated back into per-rule verdicts.
"""

from .aggregator import aggregate, verdict_for
from .compiler import CompileResult, TestCompiler, set_rule_ids
from .context import ProfileContext
from .errors import (
    CompilationError,
    EvaluationError,
    FilterUsageError,
    ProfileEngineError,
    ResolutionError,
)
from .execution import ExampleGroup, ExampleRunner, ExampleWorld, SkipExample, world
from .filters import RecordFilter, filter_records
from .models import ExampleResult, Outcome, RuleVerdict, RunIssue, RunSummary, RunTotals, Verdict
from .registry import Check, Rule, RuleRegistry
from .runner import ProfileRunner
from .targets import ResolvedContent, TargetResolver

__version__ = "0.1.0"
