"""
DriftWatch command line entry point.

Modes (mutually exclusive):
  driftwatch                 dry-run audit, reports drift without touching live state
  driftwatch --fix           audit and rewrite live state to match policy
  driftwatch --history [N]   show the N most recent audit events
  driftwatch --clear         delete the audit history
  driftwatch --export        export the audit history to CSV

Exit status is 0 whenever the requested operation completed, drift or not,
and 1 on fatal input or storage errors.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from rich.console import Console
from sqlalchemy.exc import SQLAlchemyError

from driftwatch.core.config import settings
from driftwatch.core.database import build_engine, build_session_factory, create_db_and_tables
from driftwatch.core.exceptions import EmptyExportError, PersistenceError, ValidationError
from driftwatch.services.audit_engine import AuditEngine
from driftwatch.services.audit_store import AuditStore
from driftwatch.services.live_state import LiveStateStore
from driftwatch.services.notification_service import SlackNotifier
from driftwatch.services.policy_loader import load_policies
from driftwatch.services.report_formatter import render_history, render_report

logger = logging.getLogger("driftwatch.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="driftwatch",
        description="Infrastructure configuration drift detection and auto-remediation."
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--fix", action="store_true", help="rewrite live state to match policy")
    mode.add_argument(
        "--history",
        nargs="?",
        type=int,
        const=settings.HISTORY_DEFAULT_LIMIT,
        default=None,
        metavar="N",
        help=f"show the N most recent audit events (default {settings.HISTORY_DEFAULT_LIMIT})"
    )
    mode.add_argument("--clear", action="store_true", help="delete the audit history")
    mode.add_argument("--export", action="store_true", help="export the audit history to CSV")

    parser.add_argument("--policies", default=settings.POLICIES_DIR, help="policy directory")
    parser.add_argument("--live-state", default=settings.LIVE_STATE_PATH, help="live state JSON file")
    parser.add_argument("--database-url", default=settings.DATABASE_URL, help="audit history database")
    parser.add_argument("--export-dir", default=settings.EXPORT_DIR, help="directory for CSV exports")
    parser.add_argument(
        "--strict",
        action="store_true",
        default=settings.STRICT_MATCHING,
        help="match rules on id, port and protocol"
    )
    return parser


async def run_command(args: argparse.Namespace, store: AuditStore, console: Console) -> int:
    """Execute the selected mode against ``store``."""
    if args.clear:
        deleted = await store.clear()
        console.print(f"✅ Audit history cleared ({deleted} events).", highlight=False)
        return 0

    if args.export:
        try:
            path = await store.export_to_file(args.export_dir)
        except EmptyExportError:
            console.print("❌ No logs found to export.", highlight=False)
            return 0
        console.print(f"✅ Audit history successfully exported to: {path}", highlight=False)
        return 0

    if args.history is not None:
        if args.history < 0:
            console.print("❌ --history expects a positive number.", highlight=False)
            return 1
        render_history(await store.query(limit=args.history), console)
        return 0

    live_store = LiveStateStore(args.live_state)
    policies = load_policies(args.policies)
    live_state = live_store.load()

    engine = AuditEngine(store, strict=args.strict, notifier=SlackNotifier.from_settings())
    report = await engine.run(
        policies,
        live_state,
        fix=args.fix,
        persist=live_store.save if args.fix else None
    )
    render_report(report, console)
    return 0


async def _main_async(args: argparse.Namespace, console: Console) -> int:
    engine = build_engine(args.database_url)
    try:
        try:
            await create_db_and_tables(engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Audit store unavailable: {str(e)}") from e
        store = AuditStore(build_session_factory(engine))
        return await run_command(args, store, console)
    finally:
        await engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)]
    )
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        return asyncio.run(_main_async(args, console))
    except (ValidationError, PersistenceError) as e:
        logger.error(f"Audit aborted: {str(e)}")
        console.print(f"❌ {str(e)}", highlight=False, markup=False)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
