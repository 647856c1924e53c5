from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Outcome(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"
    SKIP = "skip"


class Verdict(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


class IssueKind(str, Enum):
    RESOLUTION = "resolution"
    EVALUATION = "evaluation"
    COMPILATION = "compilation"


class ExampleResult(BaseModel):
    rule_id: str
    description: str
    outcome: Outcome
    message: str = ""
    # Execution errors keep the exception type so reports can tell them apart from failed assertions.
    exception: Optional[str] = None


class RuleVerdict(BaseModel):
    id: str
    verdict: Verdict
    leaf_outcomes: List[Outcome] = Field(default_factory=list)
    title: str = ""
    impact: Optional[float] = None
    source_id: str = ""


class RunTotals(BaseModel):
    passed: int = 0
    failed: int = 0
    skipped: int = 0


class RunIssue(BaseModel):
    kind: IssueKind
    ref: str
    message: str
    line: Optional[int] = None
    rule_id: Optional[str] = None


class RunSummary(BaseModel):
    run_id: str
    generated_at: datetime
    profile_id: str

    rule_results: List[RuleVerdict] = Field(default_factory=list)
    totals: RunTotals = Field(default_factory=RunTotals)
    leaf_totals: Dict[Outcome, int] = Field(default_factory=dict)
    total_rules: int = 0
    errors: List[RunIssue] = Field(default_factory=list)

    def verdicts(self) -> Dict[str, Verdict]:
        return {entry.id: entry.verdict for entry in self.rule_results}

    def exit_code(self) -> int:
        if self.errors:
            return EXIT_RUN_ERRORS
        if self.totals.failed:
            return EXIT_RULES_FAILED
        return EXIT_OK

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


EXIT_OK = 0
EXIT_USAGE = 1
EXIT_RULES_FAILED = 100
EXIT_RUN_ERRORS = 101
