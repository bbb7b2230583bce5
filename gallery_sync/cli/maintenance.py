"""Repair denormalized data that drifted outside of the sync engine.

Two passes, both safe to re-run:
1. Recalculate every user's ``page_count`` from the pages that really exist.
2. Backfill ``blur_data_url`` for pages that have a thumbnail but no
   placeholder. Existing placeholders are never overwritten.

Usage:
    python -m gallery_sync.cli.maintenance
    python -m gallery_sync.cli.maintenance --db /path/to/gallery.db --dry-run
    python -m gallery_sync.cli.maintenance --skip-blur
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

from peewee import fn

from gallery_sync.adapters.preview import CdnBlurPreviewService
from gallery_sync.config import load_config
from gallery_sync.core.logging_utils import configure_logging
from gallery_sync.db.models import Page, User
from gallery_sync.db.session import DatabaseSessionManager

if TYPE_CHECKING:
    from gallery_sync.protocols import PreviewService

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceReport:
    users_checked: int = 0
    counts_repaired: int = 0
    blur_candidates: int = 0
    blurs_backfilled: int = 0
    blur_failures: int = 0


async def recount_page_counts(
    session: DatabaseSessionManager, *, dry_run: bool = False
) -> tuple[int, list[tuple[str, int, int]]]:
    """Find users whose stored ``page_count`` differs from their real page count.

    Returns:
        ``(users_checked, [(user_id, stored, real), ...])``; the drifted rows
        are fixed unless ``dry_run``.
    """

    def _find_drift() -> tuple[int, list[tuple[str, int, int]]]:
        real_counts = dict(
            Page.select(Page.user, fn.COUNT(Page.id)).group_by(Page.user).tuples()
        )
        users = list(User.select(User.id, User.page_count))
        drift = [
            (user.id, user.page_count, real_counts.get(user.id, 0))
            for user in users
            if user.page_count != real_counts.get(user.id, 0)
        ]
        return len(users), drift

    checked, drift = await session._safe_db_operation(
        _find_drift, operation_name="find_page_count_drift", read_only=True
    )
    for user_id, stored, real in drift:
        logger.info(
            "page_count_drift",
            extra={"user_id": user_id, "stored": stored, "real": real, "dry_run": dry_run},
        )
    if drift and not dry_run:

        def _repair() -> None:
            for user_id, _stored, real in drift:
                User.update(page_count=real).where(User.id == user_id).execute()

        await session._safe_db_transaction(_repair, operation_name="repair_page_counts")
    return checked, drift


async def backfill_blur_placeholders(
    session: DatabaseSessionManager,
    previews: PreviewService,
    *,
    dry_run: bool = False,
) -> tuple[int, int, int]:
    """Derive placeholders for pages that have a thumbnail but none yet.

    Returns:
        ``(candidates, backfilled, failures)``.
    """

    def _candidates() -> list[tuple[str, str]]:
        query = Page.select(Page.id, Page.thumbnail).where(
            (Page.thumbnail != "") & (Page.blur_data_url == "")
        )
        return [(page.id, page.thumbnail) for page in query]

    pages = await session._safe_db_operation(
        _candidates, operation_name="find_blur_candidates", read_only=True
    )

    backfilled = failures = 0
    for page_id, thumbnail in pages:
        blur_data_url = await previews.derive_preview(thumbnail)
        if not blur_data_url:
            failures += 1
            logger.warning("blur_backfill_failed", extra={"page_id": page_id})
            continue
        if dry_run:
            backfilled += 1
            continue

        def _store(page_id: str = page_id, value: str = blur_data_url) -> int:
            return (
                Page.update(blur_data_url=value)
                .where((Page.id == page_id) & (Page.blur_data_url == ""))
                .execute()
            )

        backfilled += await session._safe_db_operation(
            _store, operation_name="backfill_page_blur"
        )
    return len(pages), backfilled, failures


async def run_maintenance(
    session: DatabaseSessionManager,
    previews: PreviewService | None,
    *,
    skip_counts: bool = False,
    skip_blur: bool = False,
    dry_run: bool = False,
) -> MaintenanceReport:
    report = MaintenanceReport()
    if not skip_counts:
        report.users_checked, drift = await recount_page_counts(session, dry_run=dry_run)
        report.counts_repaired = len(drift)
    if not skip_blur and previews is not None:
        (
            report.blur_candidates,
            report.blurs_backfilled,
            report.blur_failures,
        ) = await backfill_blur_placeholders(session, previews, dry_run=dry_run)
    logger.info(
        "maintenance_finished",
        extra={
            "dry_run": dry_run,
            "users_checked": report.users_checked,
            "counts_repaired": report.counts_repaired,
            "blurs_backfilled": report.blurs_backfilled,
            "blur_failures": report.blur_failures,
        },
    )
    return report


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m gallery_sync.cli.maintenance",
        description="Recalculate page counts and backfill blur placeholders.",
    )
    parser.add_argument("--db", dest="db_path", help="SQLite database path (default: DB_PATH)")
    parser.add_argument("--skip-counts", action="store_true", help="Do not touch page counts")
    parser.add_argument(
        "--skip-blur", action="store_true", help="Do not backfill blur placeholders"
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Report what would change without writing"
    )
    return parser.parse_args(argv)


async def _main_async(args: argparse.Namespace) -> MaintenanceReport:
    config = load_config()
    session = DatabaseSessionManager(
        path=args.db_path or config.runtime.db_path,
        operation_timeout=config.database.operation_timeout,
        max_retries=config.database.max_retries,
    )
    session.migrate()
    try:
        async with CdnBlurPreviewService.from_config(config.preview) as previews:
            return await run_maintenance(
                session,
                previews,
                skip_counts=args.skip_counts,
                skip_blur=args.skip_blur,
                dry_run=args.dry_run,
            )
    finally:
        session.close()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(load_config().runtime)
    try:
        asyncio.run(_main_async(args))
    except Exception:
        logger.exception("maintenance_failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
