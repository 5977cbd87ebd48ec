"""
Audit and fix entry points.

Loads configuration, configures logging, opens the store and runs one job.
Exit code 0 on completion, 1 on any fatal error.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Callable, Optional

import structlog

from .audit import run_audit
from .config import ConfigError, HygieneSettings, load_config
from .fixer import run_fix
from .metrics import MetricsCollector
from .models import MemberStore
from .planner import FIX_ORDER, FixCategory
from .report import audit_to_dict, fix_to_dict, render_audit, render_fix_summary
from .results import HygieneError
from .store import open_store

StoreOpener = Callable[[HygieneSettings], MemberStore]

NOTHING_TO_DO = (
    "Nothing to do. Specify one or more flags: "
    "--roles --timestamps --viewer-permissions --mirrors --dedupe-emails"
)


def configure_logging(level: str = "info", fmt: str = "text") -> None:
    """Configure structlog; logs go to stderr so stdout carries only the report."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return number


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", help="Optional YAML configuration file")
    parser.add_argument(
        "--credentials",
        help="Service account key path (default: $FIREBASE_SERVICE_ACCOUNT_PATH "
        "or ./service-account-key.json)",
    )
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("--metrics-file", help="Write Prometheus metrics to this file")


def build_audit_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hygiene-audit",
        description="Read-only audit of team membership records and org mirrors",
    )
    _add_common_arguments(parser)
    parser.add_argument(
        "--limit",
        type=_non_negative_int,
        help="Examples listed per category (default: 50)",
    )
    return parser


def build_fix_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hygiene-fix",
        description="Idempotent, batched repair of team membership records (dry run by default)",
    )
    _add_common_arguments(parser)
    parser.add_argument("--apply", action="store_true", help="Write changes (default: dry run)")
    parser.add_argument("--batch-limit", type=int, help="Writes per committed batch (1-500)")
    parser.add_argument("--roles", action="store_true", help='Fix legacy role "member" → "technician"')
    parser.add_argument("--timestamps", action="store_true", help="Backfill missing createdAt/updatedAt")
    parser.add_argument(
        "--viewer-permissions", "--viewer-perms",
        dest="viewer_permissions",
        action="store_true",
        help="Clear viewerPermissions on non-viewers",
    )
    parser.add_argument("--mirrors", action="store_true", help="Sync organization member mirrors")
    parser.add_argument(
        "--dedupe-emails",
        action="store_true",
        help="Deactivate duplicate emails per organization (earliest record is kept)",
    )
    return parser


def selected_categories(args: argparse.Namespace) -> list[FixCategory]:
    return [c for c in FIX_ORDER if getattr(args, c.value.replace("-", "_"))]


def _load_settings(args: argparse.Namespace) -> HygieneSettings:
    settings = load_config(args.config)
    overrides = {}
    if args.credentials:
        overrides["service_account_path"] = args.credentials
    if getattr(args, "limit", None) is not None:
        overrides["list_limit"] = args.limit
    if getattr(args, "batch_limit", None) is not None:
        overrides["batch_limit"] = args.batch_limit
    if overrides:
        settings = HygieneSettings(**{**settings.model_dump(), **overrides})
    return settings


def _settings_or_exit(args: argparse.Namespace) -> Optional[HygieneSettings]:
    try:
        return _load_settings(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
    return None


def _write_metrics(metrics: MetricsCollector, path: Optional[str]) -> None:
    if not path:
        return
    try:
        metrics.write_textfile(path)
    except OSError as exc:
        structlog.get_logger().warning("metrics.write_failed", path=path, error=str(exc))


async def _audit(settings: HygieneSettings, opener: StoreOpener, metrics: MetricsCollector):
    store = opener(settings)
    try:
        return await run_audit(store, metrics)
    finally:
        await store.close()


async def _fix(
    settings: HygieneSettings,
    opener: StoreOpener,
    categories: list[FixCategory],
    apply: bool,
    out,
    metrics: MetricsCollector,
):
    store = opener(settings)
    try:
        return await run_fix(
            store,
            categories,
            apply=apply,
            batch_limit=settings.batch_limit,
            out=out,
            metrics=metrics,
        )
    finally:
        await store.close()


def audit_main(argv: Optional[list[str]] = None, opener: StoreOpener = open_store) -> int:
    args = build_audit_parser().parse_args(argv)
    settings = _settings_or_exit(args)
    if settings is None:
        return 1

    configure_logging(settings.log_level, settings.log_format)
    log = structlog.get_logger()
    if not args.json:
        print("🔍 Starting membership data hygiene audit (read-only)")
        print(f"Listing up to {settings.list_limit} examples per category\n")

    metrics = MetricsCollector("audit")
    try:
        report = asyncio.run(_audit(settings, opener, metrics))
    except HygieneError as exc:
        log.error("audit.fatal", error=str(exc))
        print(f"❌ {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        log.exception("audit.fatal", error=str(exc))
        print(f"❌ Audit failed: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(audit_to_dict(report, settings.list_limit), indent=2))
    else:
        render_audit(report, settings.list_limit)
    _write_metrics(metrics, args.metrics_file)
    return 0


def fix_main(argv: Optional[list[str]] = None, opener: StoreOpener = open_store) -> int:
    args = build_fix_parser().parse_args(argv)
    categories = selected_categories(args)
    if not categories:
        print(NOTHING_TO_DO)
        return 0

    settings = _settings_or_exit(args)
    if settings is None:
        return 1

    configure_logging(settings.log_level, settings.log_format)
    log = structlog.get_logger()
    # Per-record lines go to stderr when stdout is reserved for JSON.
    out = sys.stderr if args.json else sys.stdout
    print(f"🛠  Membership fixer — {'APPLY MODE' if args.apply else 'DRY RUN'}", file=out)

    metrics = MetricsCollector("fix")
    try:
        report = asyncio.run(_fix(settings, opener, categories, args.apply, out, metrics))
    except HygieneError as exc:
        log.error("fix.fatal", error=str(exc))
        print(f"❌ {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        log.exception("fix.fatal", error=str(exc))
        print(f"❌ Fatal: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(fix_to_dict(report), indent=2))
    else:
        render_fix_summary(report)
    _write_metrics(metrics, args.metrics_file)
    return 0


def audit_cli() -> None:
    """Console entry point for ``hygiene-audit``."""
    sys.exit(audit_main())


def fix_cli() -> None:
    """Console entry point for ``hygiene-fix``."""
    sys.exit(fix_main())
