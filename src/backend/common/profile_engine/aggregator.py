from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .models import ExampleResult, Outcome, RuleVerdict, RunIssue, RunSummary, RunTotals, Verdict
from .registry import Rule


def verdict_for(outcomes: Sequence[Outcome]) -> Verdict:
    """Fail on any failed or errored leaf; skipped leaves do not stop a pass.

    A rule whose leaves are a mix of passes and skips passes. A rule skips only
    when it ran nothing but skipped leaves.
    """
    if any(o in (Outcome.FAIL, Outcome.ERROR) for o in outcomes):
        return Verdict.FAIL
    if any(o == Outcome.PASS for o in outcomes):
        return Verdict.PASS
    return Verdict.SKIP


def aggregate(
    results: Iterable[ExampleResult],
    rule_ids: Sequence[str],
    *,
    issues: Iterable[RunIssue] = (),
    rules: Optional[Mapping[str, Rule]] = None,
    profile_id: str = "",
) -> RunSummary:
    """Group leaf results by rule ID into verdicts plus run totals.

    `rule_ids` fixes the report order; a result whose rule ID is not in it is
    an orphan and raises `ValueError`.
    """
    leaves: Dict[str, List[Outcome]] = {}
    for rule_id in rule_ids:
        leaves.setdefault(rule_id, [])

    leaf_totals: Dict[Outcome, int] = {o: 0 for o in Outcome}
    for res in results:
        if res.rule_id not in leaves:
            raise ValueError(f"Result {res.description!r} references unknown rule {res.rule_id!r}")
        leaves[res.rule_id].append(res.outcome)
        leaf_totals[res.outcome] += 1

    rules = rules or {}
    rule_results: List[RuleVerdict] = []
    totals = RunTotals()
    for rule_id, outcomes in leaves.items():
        verdict = verdict_for(outcomes)
        if verdict == Verdict.PASS:
            totals.passed += 1
        elif verdict == Verdict.FAIL:
            totals.failed += 1
        else:
            totals.skipped += 1
        rule = rules.get(rule_id)
        rule_results.append(
            RuleVerdict(
                id=rule_id,
                verdict=verdict,
                leaf_outcomes=outcomes,
                title=rule.title if rule else "",
                impact=rule.impact if rule else None,
                source_id=rule.source_id if rule else "",
            )
        )

    return RunSummary(
        run_id=str(uuid.uuid4()),
        generated_at=datetime.now(timezone.utc),
        profile_id=profile_id,
        rule_results=rule_results,
        totals=totals,
        leaf_totals=leaf_totals,
        total_rules=len(rule_results),
        errors=list(issues),
    )
