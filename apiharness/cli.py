# apiharness/cli.py
"""
apiharness command line

Subcommands:
  endpoints      List a spec's operations grouped by tag
  generate       Compose test cases for selected endpoints of a spec
  samples        Print the built-in baseline test cases
  sample-schema  Detail-view request/response samples for one endpoint
  run            Execute a test-case file against a base URL
  tokens         Manage stored auth tokens (list / add / delete)

Exit Codes:
  0  Success (for `run`: every test passed)
  1  Test failures or general error
  2  Invalid input
  4  Not found
  130 Interrupted by user (Ctrl+C)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console
from rich.table import Table

from apiharness.blob_store import JsonFileBlobStore, StoreError
from apiharness.config import get_settings
from apiharness.endpoint_catalog import EndpointCatalog, expected_status, load_spec_file, response_for
from apiharness.models import SpecLoadError, TestResult, TokenKind
from apiharness.schema_sampler import detail_sample
from apiharness.session import HarnessSession
from apiharness.test_composer import built_in_samples, compose_from_selection, dump_test_cases

logger = logging.getLogger("apiharness.cli")
_console = Console()


# ====================== Types ==========================
@dataclass
class CLIResult:
    ok: bool
    code: int = 0
    message: str = ""


# =================== Output Helpers ====================
def _print(msg: str = "", style: Optional[str] = None):
    _console.print(msg, style=style, highlight=False)


def print_table(rows: List[Dict[str, Any]], fields: List[Tuple[str, str]], title: str):
    table = Table(title=title)
    for _, header in fields:
        table.add_column(header)
    for row in rows:
        table.add_row(*[str(row.get(k, "")) for k, _ in fields])
    _console.print(table)


def _write_or_print(text: str, output: Optional[str]) -> None:
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        _print(f"✅ Written to {output}", style="green")
    else:
        print(text)


def _load_catalog(path: str) -> EndpointCatalog:
    return EndpointCatalog(load_spec_file(path))


def _media_schema(container: Any) -> Optional[Dict[str, Any]]:
    """JSON schema of a requestBody/response object, preferring application/json."""
    content = container.get("content") if isinstance(container, dict) else None
    if not isinstance(content, dict):
        return None
    media = content.get("application/json")
    if not isinstance(media, dict):
        media = next((m for m in content.values() if isinstance(m, dict) and m.get("schema")), None)
    schema = media.get("schema") if isinstance(media, dict) else None
    return schema if isinstance(schema, dict) else None


def _session() -> HarnessSession:
    settings = get_settings()
    store = JsonFileBlobStore(settings.store_dir, settings.store_key)
    return HarnessSession(store, settings)


# ================== Commands: spec ====================
def cmd_endpoints(args: argparse.Namespace) -> CLIResult:
    catalog = _load_catalog(args.spec)
    if not catalog.operations:
        _print("No operations found in spec.", style="yellow")
        return CLIResult(True, 0, "")

    for group in catalog.groups:
        rows = [{
            "key": op.key,
            "summary": op.summary or "",
            "expected": expected_status(op.responses),
        } for op in group.operations]
        print_table(rows, [("key", "Endpoint"), ("summary", "Summary"), ("expected", "Expect")], title=group.tag)

    if catalog.base_url:
        _print(f"\nServer: {catalog.base_url}", style="dim")
    return CLIResult(True, 0, "")


def cmd_generate(args: argparse.Namespace) -> CLIResult:
    catalog = _load_catalog(args.spec)
    selected = catalog.all_keys() if args.all else set(args.select or [])
    if not selected:
        return CLIResult(False, 2, "Select endpoints with --select METHOD:path or --all")

    unknown = sorted(k for k in selected if catalog.find(k) is None)
    if unknown:
        return CLIResult(False, 4, f"Unknown endpoint(s): {', '.join(unknown)}")

    selected = {catalog.find(k).key for k in selected}  # type: ignore[union-attr]
    cases = compose_from_selection(catalog.groups, selected, catalog.components)
    _write_or_print(dump_test_cases(cases), args.output)
    return CLIResult(True, 0, "")


def cmd_samples(args: argparse.Namespace) -> CLIResult:
    _write_or_print(dump_test_cases(built_in_samples()), args.output)
    return CLIResult(True, 0, "")


def cmd_sample_schema(args: argparse.Namespace) -> CLIResult:
    catalog = _load_catalog(args.spec)
    op = catalog.find(args.endpoint)
    if op is None:
        return CLIResult(False, 4, f"Unknown endpoint: {args.endpoint}")

    options = {
        "include_optional": not args.required_only,
        "realistic": args.realistic,
        "seed": args.seed if args.seed is not None else get_settings().sample_seed,
    }
    body_schema = _media_schema(op.request_body)
    response_schema = _media_schema(response_for(op.responses, expected_status(op.responses)))

    out = {
        "endpoint": op.key,
        "request": detail_sample(body_schema, catalog.components, **options) if body_schema else None,
        "response": detail_sample(response_schema, catalog.components, **options) if response_schema else None,
    }
    print(json.dumps(out, indent=2))
    return CLIResult(True, 0, "")


# ================== Commands: run ====================
def _result_rows(results: List[TestResult]) -> List[Dict[str, Any]]:
    return [{
        "idx": i + 1,
        "name": r.test_case.name,
        "request": f"{r.test_case.method} {r.test_case.endpoint}",
        "status": r.status,
        "expected": r.test_case.expected_status,
        "result": "PASS" if r.ok else "FAIL",
        "duration": f"{r.duration_ms}ms",
        "error": r.error or "",
    } for i, r in enumerate(results)]


def cmd_run(args: argparse.Namespace) -> CLIResult:
    session = _session()

    try:
        text = Path(args.cases).read_text(encoding="utf-8")
    except OSError as e:
        return CLIResult(False, 4, f"Cannot read test cases: {e}")

    ok, message = session.import_test_cases(text)
    if not ok:
        return CLIResult(False, 2, message)
    if not session.test_cases:
        return CLIResult(False, 2, "No test cases to run")

    if args.base_url:
        session.set_base_url(args.base_url)
    if args.spec:
        session.use_spec(load_spec_file(args.spec))

    if args.token_id:
        if session.tokens.get_token(args.token_id) is None:
            return CLIResult(False, 4, f"Token '{args.token_id}' not found")
        session.select_token(args.token_id)

    summary = session.run_sync()

    if args.format == "json":
        print(json.dumps([r.to_dict() for r in summary.results], indent=2, default=str))
    else:
        print_table(_result_rows(summary.results), [
            ("idx", "#"),
            ("name", "Test"),
            ("request", "Request"),
            ("status", "Status"),
            ("expected", "Expected"),
            ("result", "Result"),
            ("duration", "Duration"),
            ("error", "Error"),
        ], title=f"Results · {session.base_url}")
        style = "green" if summary.all_passed else "red"
        _print(f"\n{summary.passed}/{summary.total} tests passed ({summary.duration_ms}ms)", style=style)

    if args.copy:
        print(session.copy_results())
    if args.export:
        path = session.export_results(args.export)
        _print(f"📄 Exported {path}", style="dim")

    return CLIResult(summary.all_passed, 0 if summary.all_passed else 1, "")


# ================== Commands: tokens ====================
def cmd_tokens_list(args: argparse.Namespace) -> CLIResult:
    tokens = _session().tokens.list_tokens()
    rows = [t.redacted() for t in tokens]
    if args.format == "json":
        print(json.dumps(rows, indent=2))
    else:
        print_table(rows, [
            ("id", "ID"),
            ("name", "Name"),
            ("type", "Type"),
            ("description", "Description"),
            ("createdAt", "Created"),
        ], title="Stored Tokens")
        _print(f"\nTotal: {len(rows)}", style="dim")
    return CLIResult(True, 0, "")


def cmd_tokens_add(args: argparse.Namespace) -> CLIResult:
    token = _session().tokens.add_token(args.name, args.secret, args.type, args.description)
    if token is None:
        return CLIResult(False, 2, "Please fill in all required fields (name, secret)")
    _print(f"✅ Token '{token.name}' added (id={token.id})", style="green")
    return CLIResult(True, 0, "")


def cmd_tokens_delete(args: argparse.Namespace) -> CLIResult:
    if not _session().delete_token(args.id):
        return CLIResult(False, 4, f"Token '{args.id}' not found")
    _print(f"🗑️ Token '{args.id}' deleted", style="green")
    return CLIResult(True, 0, "")


# ================= Argument Parser ====================
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="apiharness",
        description="OpenAPI-driven API test harness",
        epilog="For command-specific help: apiharness <command> --help",
    )
    sub = p.add_subparsers(dest="command", required=True)

    ep = sub.add_parser("endpoints", help="List operations grouped by tag")
    ep.add_argument("spec", help="OpenAPI document (JSON or YAML)")
    ep.set_defaults(func=cmd_endpoints)

    gp = sub.add_parser("generate", help="Compose test cases for selected endpoints")
    gp.add_argument("spec", help="OpenAPI document (JSON or YAML)")
    gp.add_argument("--select", "-s", action="append", metavar="METHOD:PATH", help="Endpoint key (repeatable)")
    gp.add_argument("--all", action="store_true", help="Select every endpoint")
    gp.add_argument("--output", "-o", help="Write test cases to file instead of stdout")
    gp.set_defaults(func=cmd_generate)

    sp = sub.add_parser("samples", help="Print the built-in baseline test cases")
    sp.add_argument("--output", "-o", help="Write test cases to file instead of stdout")
    sp.set_defaults(func=cmd_samples)

    dp = sub.add_parser("sample-schema", help="Detail request/response samples for one endpoint")
    dp.add_argument("spec", help="OpenAPI document (JSON or YAML)")
    dp.add_argument("endpoint", metavar="METHOD:PATH", help="Endpoint key")
    dp.add_argument("--required-only", action="store_true", help="Only include required properties")
    dp.add_argument("--realistic", action="store_true", help="Use Faker-generated string values")
    dp.add_argument("--seed", type=int, help="Faker seed for reproducible samples")
    dp.set_defaults(func=cmd_sample_schema)

    rp = sub.add_parser("run", help="Execute a test-case file")
    rp.add_argument("cases", help="JSON file with a test case or an array of them")
    rp.add_argument("--base-url", help="Base URL (default: spec server or HARNESS_BASE_URL)")
    rp.add_argument("--spec", help="OpenAPI document used to pick the base URL")
    rp.add_argument("--token-id", help="Stored token to authenticate with")
    rp.add_argument("--export", metavar="DIR", help="Export full results JSON into DIR")
    rp.add_argument("--copy", action="store_true", help="Print the condensed summary JSON")
    rp.add_argument("--format", choices=("table", "json"), default="table", help="Output format")
    rp.set_defaults(func=cmd_run)

    tp = sub.add_parser("tokens", help="Manage stored auth tokens")
    tsub = tp.add_subparsers(dest="tokens_command", required=True)

    tl = tsub.add_parser("list", help="List stored tokens (secrets masked)")
    tl.add_argument("--format", choices=("table", "json"), default="table", help="Output format")
    tl.set_defaults(func=cmd_tokens_list)

    ta = tsub.add_parser("add", help="Add a token")
    ta.add_argument("--name", required=True, help="Display name")
    ta.add_argument("--secret", required=True, help="Token value (WARNING: avoid in shell history)")
    ta.add_argument("--type", default=TokenKind.BEARER.value,
                    choices=[k.value for k in TokenKind], help="How the token is sent")
    ta.add_argument("--description", help="Optional note")
    ta.set_defaults(func=cmd_tokens_add)

    td = tsub.add_parser("delete", help="Delete a token by id")
    td.add_argument("--id", required=True, help="Token id")
    td.set_defaults(func=cmd_tokens_delete)

    return p


# ===================== Main ===========================
def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        res: CLIResult = args.func(args)
        if not res.ok and res.message:
            _print(f"❌ {res.message}", style="red")
        return res.code
    except (SpecLoadError, StoreError) as e:
        _print(f"❌ {e}", style="red")
        return 2
    except KeyboardInterrupt:
        _print("\n⚠️ Aborted by user.", style="yellow")
        return 130
    except Exception as e:
        logger.exception("Unhandled error: %s", e)
        _print("Unexpected error. See logs for details.", style="red")
        return 1


if __name__ == "__main__":
    sys.exit(main())
