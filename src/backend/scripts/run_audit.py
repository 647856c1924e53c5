from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path


def _ensure_backend_on_path() -> None:
    backend_dir = Path(__file__).resolve().parents[1]
    if str(backend_dir) not in sys.path:
        sys.path.insert(0, str(backend_dir))


_MARKERS = {"pass": "PASS", "fail": "FAIL", "skip": "SKIP", "error": "ERROR"}


def format_summary(summary) -> str:
    lines = [f"Profile: {summary.profile_id}", ""]
    for entry in summary.rule_results:
        title = f" {entry.title}" if entry.title else ""
        lines.append(f"[{_MARKERS[entry.verdict.value]}] {entry.id}:{title}")
        for outcome in entry.leaf_outcomes:
            lines.append(f"    {_MARKERS[outcome.value].lower()}")
    if summary.errors:
        lines.append("")
        lines.append("Errors:")
        for issue in summary.errors:
            where = f"{issue.ref}:{issue.line}" if issue.line is not None else issue.ref
            rule = f" (rule {issue.rule_id})" if issue.rule_id and issue.rule_id != issue.ref else ""
            lines.append(f"  {issue.kind.value}: {where}{rule}: {issue.message}")
    totals = summary.totals
    lines.append("")
    lines.append(
        f"Summary: {totals.passed} passed, {totals.failed} failed, {totals.skipped} skipped "
        f"({summary.total_rules} rules, {len(summary.errors)} errors)"
    )
    return "\n".join(lines)


def _configure_logging(level: str | None) -> None:
    from common.profile_engine.config import load_settings

    settings = load_settings(log_level=level)
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")


def _build_runner(args):
    from common.profile_engine.config import load_settings
    from common.profile_engine.runner import ProfileRunner
    from connectors.target import LocalBackend

    settings = load_settings(
        profile_id=getattr(args, "profile_id", None),
        target_root=getattr(args, "target_root", None),
        max_workers=getattr(args, "max_workers", None),
    )
    runner = ProfileRunner(settings.profile_id, backend=LocalBackend(settings.target_root))
    return runner, settings


def run_profiles(references: list[str], args) -> int:
    runner, settings = _build_runner(args)
    runner.add_references(references, max_workers=settings.max_workers)
    summary = runner.run()

    if args.format == "json":
        rendered = json.dumps(summary.to_payload(), indent=2)
    else:
        rendered = format_summary(summary)
    if args.output:
        Path(args.output).write_text(rendered + "\n", encoding="utf-8")
        print(f"Wrote {args.output}")
    else:
        print(rendered)

    if args.publish:
        from connectors.compliance import get_compliance_config, publish

        publish(get_compliance_config(), summary.to_payload())
        print("Published run summary to compliance server")

    return summary.exit_code()


def cmd_exec(args) -> int:
    return run_profiles(args.profiles, args)


def cmd_check(args) -> int:
    runner, _ = _build_runner(args)
    runner.add_references([args.profile])
    valid = not runner.issues
    print(f"Valid: {'true' if valid else 'false'}")
    print(f"Rules: {len(runner.rule_ids)}")
    for issue in runner.issues:
        where = f"{issue.ref}:{issue.line}" if issue.line is not None else issue.ref
        print(f"  {issue.kind.value}: {where}: {issue.message}")
    if not runner.rule_ids:
        print("Warning: no rules found")
    return 0 if valid else 1


def cmd_json(args) -> int:
    from common.profile_engine.catalog import build_catalog, dump_catalog

    runner, _ = _build_runner(args)
    runner.add_references(args.profiles)
    for issue in runner.issues:
        print(f"{issue.kind.value}: {issue.ref}: {issue.message}", file=sys.stderr)
    print(dump_catalog(build_catalog(runner.rules()), args.format))
    return 1 if runner.issues else 0


def cmd_detect(args) -> int:
    from common.profile_engine.config import load_settings
    from connectors.target import LocalBackend

    settings = load_settings(target_root=args.target_root)
    print(json.dumps(LocalBackend(settings.target_root).os_info()))
    return 0


def cmd_version(args) -> int:
    from common.profile_engine import __version__

    print(__version__)
    return 0


def cmd_compliance_login(args) -> int:
    from connectors.compliance.client import server_version
    from connectors.compliance.token_store import save_tokens, token_store_path

    url = args.server.rstrip("/") + args.apipath
    if not args.user or not args.token:
        print("Please run `compliance login` with options --user and --token")
        return 1
    save_tokens(token_store_path(), server=url, user=args.user, token=args.token, insecure=args.insecure)
    info = server_version(url, insecure=args.insecure)
    if info is None:
        print(f"Stored access token for {args.user}; server at {url} did not report a version")
    else:
        print(f"Stored access token for {args.user}")
    return 0


def cmd_compliance_logout(args) -> int:
    from connectors.compliance.token_store import clear_tokens, token_store_path

    if clear_tokens(token_store_path()):
        print("Successfully logged out")
        return 0
    print("Could not log out")
    return 1


def cmd_compliance_profiles(args) -> int:
    from connectors.compliance import get_compliance_config, list_profiles

    profiles = list_profiles(get_compliance_config())
    if not profiles:
        print("Could not find any profiles")
        return 0
    print("Available profiles:")
    for profile in profiles:
        print(f"  * {profile.get('org', '')}/{profile.get('name', '')}")
    return 0


def cmd_compliance_exec(args) -> int:
    return run_profiles([f"compliance://{p}" for p in args.profiles], args)


def cmd_compliance_version(args) -> int:
    from connectors.compliance import get_compliance_config, server_version

    config = get_compliance_config()
    info = server_version(config.server, insecure=config.insecure) if config.server else None
    if info and info.get("version"):
        print(f"Compliance server version: {info['version']}")
        return 0
    print("Could not determine server version.")
    return 1


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--format", choices=("cli", "json"), default="cli", help="Report format (default: cli).")
    parser.add_argument("--output", default=None, help="Write the report to this file instead of stdout.")
    parser.add_argument("--publish", action="store_true", help="Upload the run summary to the compliance server.")
    parser.add_argument("--max-workers", type=int, default=None, help="Evaluate profile sources in parallel.")


def _add_target_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--target-root", default=None, help="Filesystem root of the audited target (default: /).")
    parser.add_argument("--profile-id", default=None, help="Profile id used when a profile has no metadata.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="audit", description="Evaluate compliance profiles against a target.")
    parser.add_argument("--log-level", default=None, help="Logging level (default: AUDIT_LOG_LEVEL or WARNING).")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("exec", help="Run profiles and report results.")
    p.add_argument("profiles", nargs="+", help="Profile files, directories or URLs.")
    _add_run_options(p)
    _add_target_options(p)
    p.set_defaults(func=cmd_exec)

    p = sub.add_parser("check", help="Verify that a profile evaluates and compiles.")
    p.add_argument("profile")
    _add_target_options(p)
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("json", help="Print the rule catalog of profiles.")
    p.add_argument("profiles", nargs="+")
    p.add_argument("--format", choices=("json", "yaml"), default="json")
    _add_target_options(p)
    p.set_defaults(func=cmd_json)

    p = sub.add_parser("detect", help="Print target platform information as JSON.")
    p.add_argument("--target-root", default=None)
    p.set_defaults(func=cmd_detect)

    p = sub.add_parser("version", help="Print the tool version.")
    p.set_defaults(func=cmd_version)

    compliance = sub.add_parser("compliance", help="Compliance server commands.")
    csub = compliance.add_subparsers(dest="compliance_command", required=True)

    p = csub.add_parser("login", help="Store an access token for a compliance server.")
    p.add_argument("server")
    p.add_argument("--user", default=None)
    p.add_argument("--token", default=None)
    p.add_argument("--apipath", default="/api", help="API path on the server (default: /api).")
    p.add_argument("-k", "--insecure", action="store_true", help="Skip TLS certificate verification.")
    p.set_defaults(func=cmd_compliance_login)

    p = csub.add_parser("logout", help="Remove the stored access token.")
    p.set_defaults(func=cmd_compliance_logout)

    p = csub.add_parser("profiles", help="List profiles available on the server.")
    p.set_defaults(func=cmd_compliance_profiles)

    p = csub.add_parser("exec", help="Run server profiles (owner/name).")
    p.add_argument("profiles", nargs="+")
    _add_run_options(p)
    _add_target_options(p)
    p.set_defaults(func=cmd_compliance_exec)

    p = csub.add_parser("version", help="Print the compliance server version.")
    p.set_defaults(func=cmd_compliance_version)
    return parser


def main(argv: list[str] | None = None) -> int:
    _ensure_backend_on_path()
    args = build_parser().parse_args(argv)

    from common.profile_engine.errors import ProfileEngineError
    from common.profile_engine.models import EXIT_USAGE
    from connectors.compliance import ComplianceHttpError

    try:
        _configure_logging(args.log_level)
        return args.func(args)
    except (ProfileEngineError, ComplianceHttpError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    raise SystemExit(main())
