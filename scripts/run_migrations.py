#!/usr/bin/env python3
# /// script
# requires-python = ">=3.11"
# dependencies = [
#   "asyncpg>=0.29.0",
#   "python-dotenv>=1.0.0",
#   "rich>=13.0.0",
# ]
# ///
"""
Database Migration Runner.

Applies pending SQL migrations from src/sales_sparring/migrations/ in
version order and records each one in the schema_migrations table, so it is
safe to run repeatedly.

Usage:
    # Standalone:
    uv run python scripts/run_migrations.py

    # Against a specific database:
    uv run python scripts/run_migrations.py --database-url postgresql://...

    # Programmatic:
    from scripts.run_migrations import run_migrations
    applied = await run_migrations()
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import asyncpg
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel

load_dotenv()
console = Console()

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
MIGRATIONS_DIR = PROJECT_ROOT / "src" / "sales_sparring" / "migrations"


async def ensure_migrations_table(conn: asyncpg.Connection) -> None:
    """Create the schema_migrations tracking table if it is missing."""
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version VARCHAR(255) PRIMARY KEY,
            applied_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)


async def get_applied_versions(conn: asyncpg.Connection) -> set[str]:
    rows = await conn.fetch("SELECT version FROM schema_migrations")
    return {row["version"] for row in rows}


def find_pending(applied: set[str], migrations_dir: Path = MIGRATIONS_DIR) -> list[tuple[str, Path]]:
    """
    List migration files not yet applied.

    Files are named NNN_description.sql; anything without a numeric prefix
    is skipped with a warning.

    Args:
        applied: Versions already recorded in schema_migrations.
        migrations_dir: Directory holding the .sql files.

    Returns:
        (version, path) tuples sorted by version.
    """
    if not migrations_dir.exists():
        console.print(f"[yellow]Migrations directory not found: {migrations_dir}[/yellow]")
        return []

    pending = []
    for file_path in sorted(migrations_dir.glob("*.sql")):
        version = file_path.stem.split("_", 1)[0]
        if not version.isdigit():
            console.print(f"[yellow]Skipping non-numeric version: {file_path.name}[/yellow]")
            continue
        if version not in applied:
            pending.append((version, file_path))

    return sorted(pending, key=lambda item: item[0])


async def apply_migration(conn: asyncpg.Connection, version: str, file_path: Path) -> None:
    """
    Apply one migration file inside a transaction.

    Raises:
        RuntimeError: If the file is empty.
    """
    console.print(f"  [cyan]Applying migration {version}: {file_path.name}[/cyan]")

    sql = file_path.read_text(encoding="utf-8")
    if not sql.strip():
        raise RuntimeError(f"Migration file is empty: {file_path}")

    async with conn.transaction():
        await conn.execute(sql)
        await conn.execute(
            "INSERT INTO schema_migrations (version, applied_at) VALUES ($1, NOW())",
            version,
        )

    console.print(f"  [green]✓[/green] Migration {version} applied")


async def run_migrations(database_url: Optional[str] = None) -> int:
    """
    Apply all pending migrations.

    Args:
        database_url: Connection string; defaults to DATABASE_URL.

    Returns:
        Number of migrations applied.

    Raises:
        RuntimeError: If no database URL is configured.
    """
    database_url = database_url or os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError(
            "DATABASE_URL environment variable is not set. "
            "Please set it in your .env file."
        )

    conn = await asyncpg.connect(database_url, timeout=10)
    try:
        await ensure_migrations_table(conn)
        pending = find_pending(await get_applied_versions(conn))

        if not pending:
            console.print("[dim]No pending migrations[/dim]")
            return 0

        console.print(f"[bold]Found {len(pending)} pending migration(s)[/bold]")
        for version, file_path in pending:
            await apply_migration(conn, version, file_path)
        return len(pending)
    finally:
        await conn.close()


async def main() -> None:
    """Main entry point for standalone execution."""
    parser = argparse.ArgumentParser(description="Apply sparring database migrations")
    parser.add_argument("--database-url", default=None, help="Overrides DATABASE_URL")
    args = parser.parse_args()

    console.print(Panel("[bold blue]Sparring Database Migrations[/bold blue]", width=console.width))

    try:
        applied_count = await run_migrations(args.database_url)
    except (RuntimeError, OSError, asyncpg.PostgresError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    console.print(f"\n[bold green]Success![/bold green] Applied {applied_count} migration(s)")


if __name__ == "__main__":
    asyncio.run(main())
