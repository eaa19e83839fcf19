import asyncio
from pathlib import Path

import asyncpg
from jinja2 import Template

from hitstats import settings
from hitstats.granularities import GRANULARITIES

MIGRATIONS_DIR = Path(__file__).parent.parent.parent / "migrations"


def migration_files(migrations_dir: Path = MIGRATIONS_DIR) -> list[Path]:
    return sorted(
        path
        for path in migrations_dir.iterdir()
        if path.suffix == ".sql" or path.name.endswith(".sql.j2")
    )


def render_migration(path: Path) -> str:
    """SQL for one migration; ``.sql.j2`` files are rendered with ``GRANULARITIES`` in scope"""
    content = path.read_text()
    if path.suffix == ".j2":
        content = Template(content).render(GRANULARITIES=GRANULARITIES)
    return content


async def run_all_migrations(
    connection: asyncpg.Connection, migrations_dir: Path = MIGRATIONS_DIR
) -> list[str]:
    """Apply every migration in name order, each in its own transaction.

    Migrations are written to be re-runnable (``IF NOT EXISTS``), so applying them to a migrated
    database is a no-op. Returns the names of the files applied.
    """
    applied = []
    for path in migration_files(migrations_dir):
        print(f"Running migration: {path.name}")
        async with connection.transaction():
            await connection.execute(render_migration(path))
        applied.append(path.name)
    print(f"✓ Applied {len(applied)} migration(s)")
    return applied


async def main() -> None:
    connection = await asyncpg.connect(**settings.connect_kwargs())
    try:
        await run_all_migrations(connection)
    finally:
        await connection.close()


if __name__ == "__main__":
    asyncio.run(main())
