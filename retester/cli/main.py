"""retester CLI — rerun contract tests whenever artifacts change.

Usage:
    retester run <test_file>                 Run a test file, watching its declared contracts
    retester run <test_file> --tests a.py    Run other test modules against the test file's watch list
    retester run <test_file> --once          Run the suite a single time
    retester config                          Show current configuration
    retester --version                       Print version

Examples:
    retester run tests/test_token.py
    retester run tests/setup.py --tests tests/test_transfer.py tests/test_issue.py
    retester run tests/test_token.py --detector hash --harness-url http://127.0.0.1:9000
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from retester import __version__
from retester.chain.client import HttpTransactionClient
from retester.chain.host import HttpTestHost, load_declaration
from retester.core.config import Settings, get_settings
from retester.core.errors import RetesterError
from retester.core.logging import setup_logging
from retester.core.types import ModuleReference, ModuleReferenceList
from retester.loop.orchestrator import RealtimeTester
from retester.runner.runner import summarize
from retester.watch.detectors import get_detector

logger = logging.getLogger("retester.cli")


# ── Coloured output helpers ──────────────────────────────────────────────────

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_GREEN = "\033[92m"
_DIM = "\033[2m"


def _c(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


# ── CLI argument parser ─────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retester",
        description="Realtime smart contract regression tester",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--log-level", default=None, help="Log level (default: from settings)")

    sub = parser.add_subparsers(dest="command")

    # ── run ──────────────────────────────────────────────────────────────────
    run_p = sub.add_parser("run", help="Run a test file and rerun it on contract changes")
    run_p.add_argument("test_file", help="Test file declaring monitored contracts and files")
    run_p.add_argument(
        "--tests",
        "-t",
        nargs="+",
        metavar="PATH",
        help="Test modules to run instead of the test file itself",
    )
    run_p.add_argument(
        "--log-level",
        default=argparse.SUPPRESS,
        help="Log level (default: from settings)",
    )
    run_p.add_argument("--once", action="store_true", help="Run once, even if artifacts are monitored")
    run_p.add_argument("--harness-url", help="Test harness base URL (default: from settings)")
    run_p.add_argument(
        "--detector",
        choices=["mtime", "hash"],
        help="Change detection strategy (default: from settings)",
    )

    # ── config ───────────────────────────────────────────────────────────────
    sub.add_parser("config", help="Show current configuration")

    return parser


# ── Run command ──────────────────────────────────────────────────────────────


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    test_file = Path(args.test_file)
    if not test_file.is_file():
        print(_c(f"Error: test file not found: {test_file}", _RED), file=sys.stderr)
        return 1

    declaration = load_declaration(test_file)
    if args.tests:
        base = Path.cwd()
        paths = [str((base / p).resolve()) for p in args.tests]
        suite = ModuleReference(paths[0]) if len(paths) == 1 else ModuleReferenceList(paths)
    else:
        suite = ModuleReference(str(test_file.resolve()))

    detector = get_detector(args.detector or settings.change_detection)
    harness_url = args.harness_url or settings.harness_url

    async with HttpTransactionClient(
        harness_url, transact_path=settings.transact_path, timeout=settings.http_timeout,
    ) as client, HttpTestHost(
        test_file,
        harness_url,
        snapshot_path=settings.snapshot_path,
        restore_path=settings.restore_path,
        nodes_path=settings.nodes_path,
        timeout=settings.http_timeout,
    ) as host:
        tester = RealtimeTester(host, client, settings=settings, detector=detector)
        results = await tester.run_tests(suite, declaration, watch=False if args.once else None)

    counts = summarize(results)
    color = _GREEN if counts["failed"] == 0 else _RED
    print(_c(f"\n{counts['passed']}/{counts['total']} passed", color + _BOLD))
    return 0 if counts["failed"] == 0 else 1


# ── Config command ───────────────────────────────────────────────────────────


def _run_config() -> int:
    """Print current settings."""
    s = get_settings()
    print(f"\n{_BOLD}retester configuration{_RESET}\n")
    for field_name in sorted(Settings.model_fields.keys()):
        val = getattr(s, field_name, "")
        print(f"  {_DIM}{field_name}:{_RESET}  {val}")
    print()
    return 0


# ── Entrypoint ───────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"retester {__version__}")
        return 0

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "config":
        return _run_config()

    settings = get_settings()
    setup_logging(settings.app_env, args.log_level or settings.log_level)

    if args.command == "run":
        try:
            return asyncio.run(_run(args, settings))
        except KeyboardInterrupt:
            print(_c("\nStopped.", _DIM), file=sys.stderr)
            return 130
        except RetesterError as e:
            logger.error("✗ %s", e.message)
            return 2

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
