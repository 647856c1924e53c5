import pytest

from common.profile_engine.aggregator import aggregate, verdict_for
from common.profile_engine.models import ExampleResult, IssueKind, Outcome, RunIssue, Verdict
from common.profile_engine.registry import Rule


def _res(rule_id, outcome):
    return ExampleResult(rule_id=rule_id, description=f"{rule_id} leaf", outcome=outcome)


@pytest.mark.parametrize(
    "outcomes,expected",
    [
        ([Outcome.PASS, Outcome.PASS], Verdict.PASS),
        ([Outcome.PASS, Outcome.FAIL], Verdict.FAIL),
        ([Outcome.PASS, Outcome.ERROR], Verdict.FAIL),
        ([Outcome.SKIP, Outcome.SKIP], Verdict.SKIP),
        ([Outcome.PASS, Outcome.SKIP], Verdict.PASS),
        ([], Verdict.SKIP),
    ],
)
def test_verdict_rules(outcomes, expected):
    assert verdict_for(outcomes) == expected


def test_aggregate_groups_by_rule_in_given_order():
    results = [
        _res("b", Outcome.PASS),
        _res("a", Outcome.FAIL),
        _res("b", Outcome.PASS),
        _res("c", Outcome.SKIP),
        _res("a", Outcome.ERROR),
    ]
    rules = {"a": Rule(rule_id="a", title="Rule A", impact=0.7, source_id="p.py")}
    summary = aggregate(results, ["a", "b", "c"], rules=rules, profile_id="demo")

    assert [r.id for r in summary.rule_results] == ["a", "b", "c"]
    assert summary.rule_results[0].leaf_outcomes == [Outcome.FAIL, Outcome.ERROR]
    assert summary.rule_results[0].title == "Rule A"
    assert summary.rule_results[0].impact == 0.7
    assert summary.verdicts() == {"a": Verdict.FAIL, "b": Verdict.PASS, "c": Verdict.SKIP}
    assert summary.totals.model_dump() == {"passed": 1, "failed": 1, "skipped": 1}
    assert summary.leaf_totals == {Outcome.PASS: 2, Outcome.FAIL: 1, Outcome.ERROR: 1, Outcome.SKIP: 1}
    assert summary.total_rules == 3
    assert summary.profile_id == "demo"


def test_rule_without_results_is_skipped():
    summary = aggregate([], ["empty"])
    assert summary.rule_results[0].verdict == Verdict.SKIP
    assert summary.rule_results[0].leaf_outcomes == []


def test_orphan_result_is_rejected():
    with pytest.raises(ValueError, match="unknown rule"):
        aggregate([_res("ghost", Outcome.PASS)], ["real"])


def test_exit_codes_separate_failures_from_errors():
    passing = aggregate([_res("a", Outcome.PASS)], ["a"])
    assert passing.exit_code() == 0

    failing = aggregate([_res("a", Outcome.FAIL)], ["a"])
    assert failing.exit_code() == 100

    issue = RunIssue(kind=IssueKind.EVALUATION, ref="p.py", line=3, message="boom")
    errored = aggregate([_res("a", Outcome.PASS)], ["a"], issues=[issue])
    assert errored.exit_code() == 101
    assert errored.errors == [issue]


def test_payload_is_json_ready():
    payload = aggregate([_res("r1", Outcome.PASS)], ["r1"]).to_payload()
    assert payload["rule_results"][0]["verdict"] == "pass"
    assert payload["rule_results"][0]["leaf_outcomes"] == ["pass"]
    assert payload["leaf_totals"]["pass"] == 1
    assert isinstance(payload["generated_at"], str)
