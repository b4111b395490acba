#!/usr/bin/env python3
"""
Apply the SQL files in backend/migrations/ in name order. No psql required.
From repo root: python3 backend/run_migration.py [001_initial.sql ...]
Requires SC_DATABASE_URL (or DATABASE_URL) in the environment or .env in backend/.
Statements use IF NOT EXISTS, so re-running is safe.
"""
import asyncio
import os
import sys
from pathlib import Path

# Backend dir on path so "shared" resolves (run from repo root or backend/)
_backend_dir = os.path.dirname(os.path.abspath(__file__))
if _backend_dir not in sys.path:
    sys.path.insert(0, _backend_dir)
os.chdir(_backend_dir)

from shared.config import get_settings
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(_backend_dir) / "migrations"


def split_statements(sql: str) -> list[str]:
    """Split a migration file on ';' (asyncpg runs one statement per execute)."""
    lines = [line for line in sql.splitlines() if not line.strip().startswith("--")]
    return [stmt.strip() for stmt in "\n".join(lines).split(";") if stmt.strip()]


def migration_files(names: list[str]) -> list[Path]:
    if names:
        return [MIGRATIONS_DIR / name for name in names]
    return sorted(MIGRATIONS_DIR.glob("*.sql"))


async def main(names: list[str]) -> None:
    setup_logging("migrations")
    settings = get_settings()
    try:
        async with DatabaseManager(settings, application_name="migrations") as db:
            for path in migration_files(names):
                count = await db.execute_script(split_statements(path.read_text(encoding="utf-8")))
                logger.info("migration_applied", file=path.name, statements=count)
    except Exception as e:
        logger.error("migration_failed", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:]))
