"""Database migration CLI tool.

Creates every table defined in ``gallery_sync.db.models`` that does not
exist yet.

Usage:
    # Use DB_PATH from the environment
    python -m gallery_sync.cli.migrate_db

    # Specify database path
    python -m gallery_sync.cli.migrate_db /path/to/gallery.db
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from gallery_sync.config import load_config
from gallery_sync.core.logging_utils import configure_logging
from gallery_sync.db.session import DatabaseSessionManager

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Run database migrations."""
    args = sys.argv[1:] if argv is None else argv
    try:
        config = load_config()
    except RuntimeError:
        logger.exception("config_invalid")
        return 1
    configure_logging(config.runtime)

    db_path = args[0] if args else config.runtime.db_path
    logger.info("db_migration_started", extra={"path": db_path})

    if db_path != ":memory:" and not Path(db_path).exists():
        logger.warning("db_file_missing_will_create", extra={"path": db_path})

    try:
        session = DatabaseSessionManager(path=db_path)
        try:
            session.migrate()
        finally:
            session.close()
    except Exception:
        logger.exception("db_migration_failed")
        return 1

    logger.info("db_migration_completed", extra={"path": db_path})
    return 0


if __name__ == "__main__":
    sys.exit(main())
