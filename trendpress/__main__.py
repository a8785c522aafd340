"""CLI entrypoint: python -m trendpress <command> [options]."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

from trendpress.config import get_db_path, load_config
from trendpress.db import get_connection, get_recent_runs, init_db
from trendpress.errors import NotFoundError, TrendpressError
from trendpress.models import OpportunityStatus


def setup_logging(config: dict) -> None:
    """Configure logging with console + rotating file output."""
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    root.addHandler(console)

    # File handler (rotate at 5MB, keep 3 backups)
    log_dir = Path(get_db_path(config)).parent
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        str(log_dir / "trendpress.log"), maxBytes=5 * 1024 * 1024, backupCount=3,
    )
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger("trendpress")


def _print(result: Any) -> None:
    if dataclasses.is_dataclass(result):
        result = dataclasses.asdict(result)
    print(json.dumps(result, ensure_ascii=False, indent=2, default=str))


def _read_json(path: str) -> list[dict]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise SystemExit(f"{path}: expected a JSON list")
    return data


def cmd_init_db(config: dict, args: argparse.Namespace) -> None:
    """Initialize the SQLite database."""
    db_path = get_db_path(config)
    init_db(db_path)
    print(f"Database initialized at {db_path}")


async def cmd_import_snapshots(config: dict, args: argparse.Namespace) -> None:
    from trendpress.pipeline import import_snapshots

    result = await import_snapshots(config, _read_json(args.file))
    print(f"Imported {result.success_count} snapshots ({result.fail_count} failed)")


def cmd_import_accounts(config: dict, args: argparse.Namespace) -> None:
    from trendpress.pipeline import import_accounts

    ids = import_accounts(config, _read_json(args.file))
    print(f"Imported {len(ids)} accounts: {ids}")


async def cmd_sync(config: dict, args: argparse.Namespace) -> None:
    from trendpress.pipeline import sync_opportunities

    _print(await sync_opportunities(config, window_hours=args.window_hours))


def cmd_opportunities(config: dict, args: argparse.Namespace) -> None:
    from trendpress.opportunity import list_opportunities

    conn = get_connection(get_db_path(config))
    try:
        page = list_opportunities(
            conn,
            account_id=args.account,
            status=OpportunityStatus(args.status) if args.status else None,
            page=args.page,
            page_size=args.page_size,
        )
    finally:
        conn.close()

    print(f"{'ID':>5} {'Score':>5} {'Status':<10} {'Cluster':>7} {'Account':>7} {'Expires'}")
    print("-" * 60)
    for opp in page.items:
        print(
            f"{opp.id:>5} {opp.score:>5} {opp.status.value:<10} "
            f"{opp.topic_cluster_id:>7} {opp.account_id:>7} {opp.expires_at:%Y-%m-%d %H:%M}"
        )
    print(f"\nPage {page.page}/{page.total_pages} ({page.total} total)")


def cmd_discard(config: dict, args: argparse.Namespace) -> None:
    from trendpress.opportunity import discard_opportunity

    conn = get_connection(get_db_path(config))
    try:
        opp = discard_opportunity(conn, args.id)
    finally:
        conn.close()
    print(f"Opportunity {opp.id} discarded")


def cmd_expire(config: dict, args: argparse.Namespace) -> None:
    from trendpress.opportunity import expire_opportunities

    conn = get_connection(get_db_path(config))
    try:
        count = expire_opportunities(conn)
    finally:
        conn.close()
    print(f"Expired {count} opportunities")


async def cmd_generate(config: dict, args: argparse.Namespace) -> None:
    from trendpress.synthesize.drafts import generate_draft

    _print(await generate_draft(
        config, args.opportunity_id, regenerate_from_draft_id=args.from_draft,
    ))


async def cmd_regenerate(config: dict, args: argparse.Namespace) -> None:
    from trendpress.synthesize.drafts import regenerate_draft

    _print(await regenerate_draft(config, args.draft_id))


def cmd_plan_assets(config: dict, args: argparse.Namespace) -> None:
    from trendpress.synthesize.drafts import plan_draft_assets

    _print(plan_draft_assets(
        config, args.draft_id, image_count=args.images, style_preset=args.style,
    ))


async def cmd_publish(config: dict, args: argparse.Namespace) -> None:
    from trendpress.publish import create_publish_job

    _print(await create_publish_job(config, args.draft_id, auto_run=not args.no_run))


async def cmd_retry(config: dict, args: argparse.Namespace) -> None:
    from trendpress.publish import retry_publish_job

    _print(await retry_publish_job(config, args.job_id, allow_review=args.allow_review))


def cmd_cancel(config: dict, args: argparse.Namespace) -> None:
    from trendpress.publish import cancel_publish_job

    _print(cancel_publish_job(config, args.job_id))


def cmd_jobs(config: dict, args: argparse.Namespace) -> None:
    from trendpress.db import list_publish_jobs

    conn = get_connection(get_db_path(config))
    try:
        jobs = list_publish_jobs(conn, args.draft_id)
    finally:
        conn.close()
    _print([dataclasses.asdict(j) for j in jobs])


def cmd_metrics(config: dict, args: argparse.Namespace) -> None:
    from trendpress.performance import list_performance_metrics

    conn = get_connection(get_db_path(config))
    try:
        page = list_performance_metrics(
            conn, account_id=args.account, page=args.page, page_size=args.page_size,
        )
    finally:
        conn.close()
    _print({
        "total": page.total,
        "summary": page.summary,
        "items": [dataclasses.asdict(m) for m in page.items],
    })


def cmd_stats(config: dict, args: argparse.Namespace) -> None:
    """Show recent sync run stats."""
    conn = get_connection(get_db_path(config))
    runs = get_recent_runs(conn, limit=10)
    conn.close()

    if not runs:
        print("No sync runs yet.")
        return

    header = (
        f"{'Run':>4} {'Status':<10} {'Snapshots':<10} "
        f"{'Clusters':<9} {'Opps':<6} {'Failed':<7} {'Started'}"
    )
    print(header)
    print("-" * 70)
    for r in runs:
        print(
            f"{r['id']:>4} {r['status']:<10} "
            f"{r['source_count']:<10} "
            f"{r['clusters_upserted']:<9} "
            f"{r['opportunities_upserted']:<6} "
            f"{r['failed_clusters']:<7} {r['started_at']}"
        )


COMMANDS = {
    "init-db": cmd_init_db,
    "import-snapshots": cmd_import_snapshots,
    "import-accounts": cmd_import_accounts,
    "sync": cmd_sync,
    "opportunities": cmd_opportunities,
    "discard": cmd_discard,
    "expire": cmd_expire,
    "generate": cmd_generate,
    "regenerate": cmd_regenerate,
    "plan-assets": cmd_plan_assets,
    "publish": cmd_publish,
    "retry": cmd_retry,
    "cancel": cmd_cancel,
    "jobs": cmd_jobs,
    "metrics": cmd_metrics,
    "stats": cmd_stats,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trendpress", description="Trend clustering and publishing pipeline",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database schema")
    sub.add_parser("import-snapshots", help="Load snapshots from JSON").add_argument("file")
    sub.add_parser("import-accounts", help="Load accounts from JSON").add_argument("file")

    p = sub.add_parser("sync", help="Cluster recent snapshots into opportunities")
    p.add_argument("--window-hours", type=int, default=None)

    p = sub.add_parser("opportunities", help="List opportunities")
    p.add_argument("--account", type=int, default=None)
    p.add_argument("--status", choices=[s.value for s in OpportunityStatus], default=None)
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--page-size", type=int, default=20)

    sub.add_parser("discard", help="Discard a NEW opportunity").add_argument("id", type=int)
    sub.add_parser("expire", help="Expire stale NEW opportunities")

    p = sub.add_parser("generate", help="Generate a draft for an opportunity")
    p.add_argument("opportunity_id", type=int)
    p.add_argument("--from-draft", type=int, default=None)

    sub.add_parser("regenerate", help="Regenerate a draft").add_argument("draft_id", type=int)

    p = sub.add_parser("plan-assets", help="Plan image slots for a draft")
    p.add_argument("draft_id", type=int)
    p.add_argument("--images", type=int, default=None)
    p.add_argument("--style", default=None)

    p = sub.add_parser("publish", help="Create a publish job for a draft")
    p.add_argument("draft_id", type=int)
    p.add_argument("--no-run", action="store_true")

    p = sub.add_parser("retry", help="Retry a publish job")
    p.add_argument("job_id", type=int)
    p.add_argument("--allow-review", action="store_true")

    sub.add_parser("cancel", help="Cancel a publish job").add_argument("job_id", type=int)
    sub.add_parser("jobs", help="List publish jobs for a draft").add_argument("draft_id", type=int)
    p = sub.add_parser("metrics", help="Show performance metrics")
    p.add_argument("--account", type=int, default=None)
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--page-size", type=int, default=20)

    sub.add_parser("stats", help="Show recent sync runs")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    config = load_config(os.environ.get("CONFIG_PATH", "config.yaml"))
    setup_logging(config)
    handler = COMMANDS[args.command]

    try:
        if asyncio.iscoroutinefunction(handler):
            asyncio.run(handler(config, args))
        else:
            handler(config, args)
    except NotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except TrendpressError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
