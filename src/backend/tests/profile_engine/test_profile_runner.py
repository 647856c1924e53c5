import logging

from common.profile_engine.models import IssueKind, Verdict
from common.profile_engine.targets import TargetResolver


def _core(entry):
    return entry.model_dump(mode="json", include={"id", "verdict", "leaf_outcomes"})


def test_true_literal_rule_passes(make_runner, profile_source):
    runner = make_runner()
    runner.add_content(
        profile_source(
            """
            with rule("r1"):
                @describe(True)
                def _(group):
                    group.it("is true", lambda value: value is True)
            """
        ),
        "r1.py",
    )
    summary = runner.run()

    assert [_core(e) for e in summary.rule_results] == [{"id": "r1", "verdict": "pass", "leaf_outcomes": ["pass"]}]
    assert summary.totals.model_dump() == {"passed": 1, "failed": 0, "skipped": 0}
    assert summary.exit_code() == 0


def test_false_literal_rule_fails(make_runner, profile_source):
    runner = make_runner()
    runner.add_content(
        profile_source(
            """
            with rule("r2"):
                @describe(False)
                def _(group):
                    group.it("is true", lambda value: value is True)
            """
        ),
        "r2.py",
    )
    summary = runner.run()

    assert [_core(e) for e in summary.rule_results] == [{"id": "r2", "verdict": "fail", "leaf_outcomes": ["fail"]}]
    assert summary.totals.model_dump() == {"passed": 0, "failed": 1, "skipped": 0}
    assert summary.exit_code() == 100


def test_redeclared_rule_runs_only_second_definition(make_runner, profile_source, caplog):
    source = profile_source(
        """
        with rule("dup"):
            @describe("first")
            def _(group):
                group.it("fails", lambda value: False)

        with rule("dup"):
            @describe("second")
            def _(group):
                group.it("passes", lambda value: True)
        """
    )
    runner = make_runner()
    with caplog.at_level(logging.WARNING):
        runner.add_content(source, "dup.py")
    summary = runner.run()

    assert [_core(e) for e in summary.rule_results] == [{"id": "dup", "verdict": "pass", "leaf_outcomes": ["pass"]}]
    assert any("redeclared" in rec.getMessage() for rec in caplog.records)


def test_broken_rule_is_reported_apart_from_verdicts(make_runner, profile_source):
    source = profile_source(
        """
        with rule("malformed"):
            describe(undefined_resource())

        with rule("well-formed"):
            @describe(1)
            def _(group):
                group.it("is one", lambda value: value == 1)
        """
    )
    runner = make_runner()
    runner.add_content(source, "mixed.py")
    summary = runner.run()

    assert summary.verdicts() == {"well-formed": Verdict.PASS}
    (issue,) = summary.errors
    assert issue.kind == IssueKind.EVALUATION
    assert issue.rule_id == "malformed"
    assert issue.ref == "mixed.py"
    assert issue.line == 2
    assert summary.totals.passed == 1
    assert summary.exit_code() == 101


def test_bad_profile_does_not_affect_other_profiles(make_runner):
    runner = make_runner()
    runner.add_references(
        [
            {"content": 'with rule("a"):\n    describe(1, body=lambda g: g.it("ok", lambda v: True))\n', "ref": "a.py"},
            {"content": "this is not python\n", "ref": "bad.py"},
            "/definitely/not/here.py",
            {"content": 'with rule("b"):\n    describe(1, body=lambda g: g.it("ok", lambda v: True))\n', "ref": "b.py"},
        ]
    )
    summary = runner.run()

    assert [e.id for e in summary.rule_results] == ["a", "b"]
    kinds = sorted((i.kind.value, i.ref) for i in summary.errors)
    assert kinds == [("evaluation", "bad.py"), ("resolution", "/definitely/not/here.py")]


def test_compilation_errors_are_listed(make_runner, profile_source):
    runner = make_runner()
    runner.add_content(
        profile_source(
            """
            with rule("explodes"):
                @describe("x")
                def _(group):
                    group.it("needs a predicate", 42)
            """
        ),
        "c.py",
    )
    summary = runner.run()
    assert summary.rule_results == []
    (issue,) = summary.errors
    assert issue.kind == IssueKind.COMPILATION
    assert issue.rule_id == "explodes"


def test_parallel_evaluation_keeps_input_order(make_runner):
    refs = [
        {"content": f'with rule("rule-{i}"):\n    describe({i}, body=lambda g: g.it("ok", lambda v: True))\n', "ref": f"p{i}.py"}
        for i in range(8)
    ]
    runner = make_runner()
    runner.add_references(refs, max_workers=4)
    summary = runner.run()
    assert [e.id for e in summary.rule_results] == [f"rule-{i}" for i in range(8)]


def test_cancelled_runner_compiles_nothing_more(make_runner):
    runner = make_runner()
    runner.add_content('with rule("first"):\n    describe(1, body=lambda g: g.it("ok", lambda v: True))\n', "1.py")
    runner.cancel()
    runner.add_references([{"content": 'with rule("second"):\n    describe(2)\n', "ref": "2.py"}])
    summary = runner.run()
    assert [e.id for e in summary.rule_results] == ["first"]


def test_profile_reads_target_through_resources(make_runner, profile_source):
    source = profile_source(
        """
        with rule("passwd-root", title="Only root has uid 0", impact=1.0):
            @describe(passwd().uids(0))
            def _(group):
                @group.its("users")
                def _(users):
                    users.it("is only root", lambda value: value == ["root"])

            @describe(passwd().where(uid={">=": 1000}))
            def _(group):
                group.it("has one human user", lambda value: value.count() == 1)

            @describe(passwd().shells(regex("nologin")))
            def _(group):
                group.it("covers service accounts", lambda value: value.users() == ["daemon", "www-data"])
        """
    )
    resolver = TargetResolver(fetch_url=lambda url: "", fetch_profile=lambda ref: "")
    runner = make_runner(resolver=resolver)
    runner.add_references([{"content": source, "ref": "passwd.py"}])
    summary = runner.run()

    (entry,) = summary.rule_results
    assert entry.verdict == Verdict.PASS
    assert entry.leaf_outcomes == ["pass", "pass", "pass"]
    assert entry.title == "Only root has uid 0"
    assert entry.impact == 1.0


def test_its_cannot_walk_generator_frames(make_runner, profile_source):
    source = profile_source(
        """
        with rule("frames"):
            @describe((n for n in [1]))
            def _(group):
                @group.its("gi_frame.f_back.f_back.f_globals")
                def _(sub):
                    sub.it("reaches host", lambda value: value["__builtins__"]["__import__"]("os") is None)
        """
    )
    runner = make_runner()
    runner.add_content(source, "frames.py")
    summary = runner.run()

    assert summary.rule_results == []
    (issue,) = summary.errors
    assert issue.kind == IssueKind.COMPILATION
    assert issue.rule_id == "frames"
    assert "not accessible" in issue.message


def test_undecodable_content_is_reported_and_run_continues(make_runner):
    runner = make_runner()
    assert runner.add_content(b"\xff\xfe", "binary.py") is None
    runner.add_content('with rule("ok"):\n    describe(1, body=lambda g: g.it("ok", lambda v: True))\n', "ok.py")
    summary = runner.run()

    assert summary.verdicts() == {"ok": Verdict.PASS}
    (issue,) = summary.errors
    assert issue.kind == IssueKind.EVALUATION
    assert issue.ref == "binary.py"


def test_invalid_impact_keeps_earlier_rules(make_runner, profile_source):
    source = profile_source(
        """
        with rule("good"):
            describe(1, body=lambda g: g.it("is one", lambda v: v == 1))

        with rule("bad", impact=5):
            describe(1, body=lambda g: g.it("is one", lambda v: v == 1))
        """
    )
    runner = make_runner()
    runner.add_content(source, "impact.py")
    summary = runner.run()

    assert summary.verdicts() == {"good": Verdict.PASS}
    (issue,) = summary.errors
    assert issue.kind == IssueKind.EVALUATION
    assert issue.rule_id == "bad"
    assert summary.exit_code() == 101
