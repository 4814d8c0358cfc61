"""Applies the SQL files in ``versions/`` once each, in filename order."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"


class MigrationRunner:
    """Execute and track schema migrations.

    Files are named ``NNN_description.sql``; the stem is the version.
    Applied versions are recorded in ``schema_migrations``.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def run_pending(self, migrations_dir: Path | None = None) -> list[str]:
        """Apply all pending migrations. Returns the newly applied versions."""
        migrations_dir = migrations_dir or VERSIONS_DIR

        async with self.pool.acquire() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                    version    TEXT PRIMARY KEY,
                    applied_at TIMESTAMPTZ DEFAULT NOW()
                )
                """
            )
            rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
        applied = {row["version"] for row in rows}

        newly_applied: list[str] = []
        for sql_path in sorted(migrations_dir.glob("*.sql")):
            version = sql_path.stem
            if version in applied:
                continue
            logger.info("Applying migration: %s", version)
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(sql_path.read_text(encoding="utf-8"))
                    await conn.execute(
                        f"INSERT INTO {self.TRACKING_TABLE} (version) VALUES ($1)",  # noqa: S608
                        version,
                    )
            newly_applied.append(version)

        if newly_applied:
            logger.info("Applied %d migration(s): %s", len(newly_applied), ", ".join(newly_applied))
        else:
            logger.info("Database schema is up to date")
        return newly_applied
