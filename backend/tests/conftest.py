# @TASK S0-T0.4 - Test configuration
# @TASK S2-T2.4 - SQLite FTS5 ticket fixture
import os
import tempfile
import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

# Set test environment variables before importing ticket_search modules
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.gettempdir()) / 'ticket_search_test.db'}",
)
os.environ.setdefault("SEARCH_BACKEND", "")

from ticket_search.utils.datetime_utils import datetime_to_iso  # noqa: E402

SCHEMA_DDL: tuple[str, ...] = (
    """
    CREATE TABLE tickets (
        id TEXT PRIMARY KEY,
        project_id TEXT,
        ticket_number INTEGER NOT NULL,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL,
        story_points INTEGER,
        created_by TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        parent_id TEXT,
        epic_id TEXT,
        deleted_at TEXT
    )
    """,
    """
    CREATE TABLE comments (
        id TEXT PRIMARY KEY,
        ticket_id TEXT NOT NULL REFERENCES tickets(id),
        author TEXT NOT NULL,
        content TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE TABLE ticket_assignees (ticket_id TEXT NOT NULL, assignee TEXT NOT NULL)",
    "CREATE TABLE ticket_labels (ticket_id TEXT NOT NULL, label TEXT NOT NULL)",
    "CREATE TABLE commit_links (id TEXT PRIMARY KEY, ticket_id TEXT NOT NULL, commit_hash TEXT NOT NULL)",
    "CREATE TABLE ticket_dependencies (id TEXT PRIMARY KEY, ticket_id TEXT NOT NULL, depends_on_id TEXT NOT NULL)",
    """
    CREATE VIRTUAL TABLE tickets_fts USING fts5(
        ticket_id UNINDEXED,
        ticket_number UNINDEXED,
        title,
        description,
        tokenize='porter unicode61'
    )
    """,
    """
    CREATE VIRTUAL TABLE comments_fts USING fts5(
        comment_id UNINDEXED,
        ticket_id UNINDEXED,
        author UNINDEXED,
        content,
        tokenize='porter unicode61'
    )
    """,
)

DEFAULT_TIMESTAMP = datetime(2024, 1, 15, 9, 30, tzinfo=UTC)


class TicketSeeder:
    """Insert tickets and their related rows, keeping the FTS5 tables in sync."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._next_number = 1

    async def ticket(
        self,
        title: str,
        description: str = "",
        *,
        status: str = "todo",
        story_points: int | None = None,
        created_by: str = "alice",
        created_at: datetime = DEFAULT_TIMESTAMP,
        updated_at: datetime | None = None,
        project_id: str | None = None,
        parent_id: str | None = None,
        epic_id: str | None = None,
        deleted: bool = False,
        ticket_id: str | None = None,
    ) -> str:
        ticket_id = ticket_id or str(uuid.uuid4())
        number = self._next_number
        self._next_number += 1
        async with self.engine.begin() as conn:
            await conn.execute(
                text(
                    "INSERT INTO tickets (id, project_id, ticket_number, title, description, status, "
                    "story_points, created_by, created_at, updated_at, parent_id, epic_id, deleted_at) "
                    "VALUES (:id, :project_id, :number, :title, :description, :status, :points, "
                    ":created_by, :created_at, :updated_at, :parent_id, :epic_id, :deleted_at)"
                ),
                {
                    "id": ticket_id,
                    "project_id": project_id,
                    "number": number,
                    "title": title,
                    "description": description,
                    "status": status,
                    "points": story_points,
                    "created_by": created_by,
                    "created_at": datetime_to_iso(created_at),
                    "updated_at": datetime_to_iso(updated_at or created_at),
                    "parent_id": parent_id,
                    "epic_id": epic_id,
                    "deleted_at": datetime_to_iso(DEFAULT_TIMESTAMP) if deleted else None,
                },
            )
            await conn.execute(
                text(
                    "INSERT INTO tickets_fts (ticket_id, ticket_number, title, description) "
                    "VALUES (:id, :number, :title, :description)"
                ),
                {"id": ticket_id, "number": number, "title": title, "description": description},
            )
        return ticket_id

    async def comment(self, ticket_id: str, content: str, author: str = "bob") -> str:
        comment_id = str(uuid.uuid4())
        async with self.engine.begin() as conn:
            await conn.execute(
                text(
                    "INSERT INTO comments (id, ticket_id, author, content, created_at) "
                    "VALUES (:id, :ticket_id, :author, :content, :created_at)"
                ),
                {
                    "id": comment_id,
                    "ticket_id": ticket_id,
                    "author": author,
                    "content": content,
                    "created_at": datetime_to_iso(DEFAULT_TIMESTAMP),
                },
            )
            await conn.execute(
                text(
                    "INSERT INTO comments_fts (comment_id, ticket_id, author, content) "
                    "VALUES (:id, :ticket_id, :author, :content)"
                ),
                {"id": comment_id, "ticket_id": ticket_id, "author": author, "content": content},
            )
        return comment_id

    async def assign(self, ticket_id: str, assignee: str) -> None:
        await self._insert(
            "INSERT INTO ticket_assignees (ticket_id, assignee) VALUES (:ticket_id, :value)",
            ticket_id,
            assignee,
        )

    async def label(self, ticket_id: str, label: str) -> None:
        await self._insert(
            "INSERT INTO ticket_labels (ticket_id, label) VALUES (:ticket_id, :value)",
            ticket_id,
            label,
        )

    async def commit(self, ticket_id: str, commit_hash: str = "abc123") -> None:
        await self._insert(
            f"INSERT INTO commit_links (id, ticket_id, commit_hash) VALUES ('{uuid.uuid4()}', :ticket_id, :value)",
            ticket_id,
            commit_hash,
        )

    async def dependency(self, ticket_id: str, depends_on_id: str) -> None:
        await self._insert(
            "INSERT INTO ticket_dependencies (id, ticket_id, depends_on_id) "
            f"VALUES ('{uuid.uuid4()}', :ticket_id, :value)",
            ticket_id,
            depends_on_id,
        )

    async def _insert(self, sql: str, ticket_id: str, value: str) -> None:
        async with self.engine.begin() as conn:
            await conn.execute(text(sql), {"ticket_id": ticket_id, "value": value})


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture(scope="function")
async def sqlite_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Provide an async engine on a fresh file-backed SQLite database with the FTS5 schema.

    Each test gets its own database file under ``tmp_path``.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tickets.db'}",
        echo=False,
    )
    async with engine.begin() as conn:
        for ddl in SCHEMA_DDL:
            await conn.exec_driver_sql(ddl)

    yield engine

    await engine.dispose()


@pytest.fixture
def seeder(sqlite_engine: AsyncEngine) -> TicketSeeder:
    """Provide a TicketSeeder bound to the per-test SQLite engine."""
    return TicketSeeder(sqlite_engine)
