"""
Migration Runner

Applies an ordered list of named raw-SQL migrations exactly once each and
records every attempt in the `schema_migrations` ledger.

Table DDL lives in Alembic revisions. This runner owns the database layer
Alembic autogenerate cannot express: row-level security policies, trigger
functions and hand-tuned indexes.

Usage:
    python -m app.db.migrations
"""

import asyncio
import logging
import re
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy import (
    Boolean, Column, DateTime, Integer, MetaData, String, Table, Text,
    delete, func, insert, select,
)
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

logger = logging.getLogger(__name__)

LEDGER_TABLE = "schema_migrations"

# Kept off Base.metadata so Alembic autogenerate leaves the ledger alone
ledger_metadata = MetaData()

schema_migrations = Table(
    LEDGER_TABLE,
    ledger_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("migration_id", String(255), unique=True, nullable=False, index=True),
    Column("migration_name", String(255), nullable=False),
    Column("applied_at", DateTime(timezone=True), server_default=func.now(), index=True),
    Column("success", Boolean, nullable=False, default=True),
    Column("error_message", Text, nullable=True),
)


# ============================================================
# Types
# ============================================================

@dataclass(frozen=True)
class Migration:
    id: str
    name: str
    sql: str


class MigrationResult(BaseModel):
    success: bool
    message: str
    applied_migrations: List[str] = Field(default_factory=list)
    failed_migrations: List[str] = Field(default_factory=list)
    error: Optional[str] = None


# ============================================================
# SQL splitting
# ============================================================

_DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")


def _flush(buffer: List[str], statements: List[str]) -> None:
    statement = "".join(buffer).strip()
    if statement:
        statements.append(statement)


def _is_escape_string(sql: str, quote: int) -> bool:
    """True when the quote at `quote` opens an E'...' literal."""
    if quote == 0 or sql[quote - 1] not in "Ee":
        return False
    # E must stand alone, not end an identifier as in date'2026-01-01'
    return quote == 1 or not (sql[quote - 2].isalnum() or sql[quote - 2] in "_$")


def split_sql_statements(sql: str) -> List[str]:
    """
    Split a SQL script on top-level semicolons.

    Semicolons inside quoted strings, quoted identifiers, dollar-quoted
    bodies and comments do not end a statement. Inside E'...' strings a
    backslash escapes the next character. Comments outside quotes are
    dropped.
    """
    statements: List[str] = []
    buffer: List[str] = []
    i = 0
    n = len(sql)

    while i < n:
        ch = sql[i]

        if sql.startswith("--", i):
            end = sql.find("\n", i)
            i = n if end == -1 else end
            continue

        if sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = n if end == -1 else end + 2
            buffer.append(" ")
            continue

        if ch in ("'", '"'):
            backslash_escapes = ch == "'" and _is_escape_string(sql, i)
            end = i + 1
            while end < n:
                if backslash_escapes and sql[end] == "\\":
                    end += 2
                    continue
                if sql[end] == ch:
                    # Doubled quote is an escaped quote
                    if end + 1 < n and sql[end + 1] == ch:
                        end += 2
                        continue
                    break
                end += 1
            buffer.append(sql[i:end + 1])
            i = end + 1
            continue

        if ch == "$":
            match = _DOLLAR_TAG.match(sql, i)
            if match:
                tag = match.group(0)
                end = sql.find(tag, match.end())
                stop = n if end == -1 else end + len(tag)
                buffer.append(sql[i:stop])
                i = stop
                continue

        if ch == ";":
            _flush(buffer, statements)
            buffer = []
            i += 1
            continue

        buffer.append(ch)
        i += 1

    _flush(buffer, statements)
    return statements


# ============================================================
# Engine
# ============================================================

class MigrationEngine:
    """
    Runs migrations against an async engine.

    Each migration runs in its own transaction together with its ledger row,
    so a migration is either fully applied and recorded or not applied.
    """

    def __init__(self, engine: Optional[AsyncEngine] = None):
        if engine is None:
            from app.db.database import engine as default_engine
            engine = default_engine
        self.engine = engine

    async def initialize(self) -> None:
        """Create the ledger table if it does not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(ledger_metadata.create_all)
        logger.info("Migration engine initialized")

    async def get_applied_migrations(self) -> List[str]:
        async with self.engine.connect() as conn:
            result = await conn.execute(
                select(schema_migrations.c.migration_id)
                .where(schema_migrations.c.success.is_(True))
                .order_by(schema_migrations.c.applied_at, schema_migrations.c.id)
            )
            return [row[0] for row in result]

    async def get_migration_history(self) -> List[Dict[str, Any]]:
        """Every ledger row, successful or not, in application order."""
        async with self.engine.connect() as conn:
            result = await conn.execute(
                select(
                    schema_migrations.c.migration_id,
                    schema_migrations.c.migration_name,
                    schema_migrations.c.applied_at,
                    schema_migrations.c.success,
                    schema_migrations.c.error_message,
                ).order_by(schema_migrations.c.applied_at, schema_migrations.c.id)
            )
            return [dict(row._mapping) for row in result]

    async def _record(
        self,
        conn: AsyncConnection,
        migration: Migration,
        success: bool,
        error_message: Optional[str] = None
    ) -> None:
        # A retried migration replaces its earlier failure row
        await conn.execute(
            delete(schema_migrations).where(schema_migrations.c.migration_id == migration.id)
        )
        await conn.execute(
            insert(schema_migrations).values(
                migration_id=migration.id,
                migration_name=migration.name,
                success=success,
                error_message=error_message,
            )
        )

    async def apply_migration(self, migration: Migration) -> bool:
        """
        Execute one migration and record it.

        Returns:
            True when applied, False when it failed and was rolled back
        """
        statements = split_sql_statements(migration.sql)

        try:
            async with self.engine.begin() as conn:
                for statement in statements:
                    await conn.exec_driver_sql(statement)
                await self._record(conn, migration, success=True)
        except Exception as e:
            logger.error(
                f"Migration {migration.id} failed: {e}",
                extra={
                    "action": "apply-migration",
                    "metadata": {"migration_id": migration.id, "migration_name": migration.name},
                }
            )
            try:
                async with self.engine.begin() as conn:
                    await self._record(conn, migration, success=False, error_message=str(e))
            except Exception as record_error:
                logger.error(f"Could not record failure of {migration.id}: {record_error}")
            return False

        logger.info(f"Applied migration {migration.id} ({len(statements)} statements)")
        return True

    async def apply_migrations(self, migrations: List[Migration]) -> MigrationResult:
        """
        Apply every migration not yet recorded as successful, in order.

        Stops at the first failure; later migrations are left pending.
        """
        ids = [m.id for m in migrations]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            return MigrationResult(
                success=False,
                message=f"Duplicate migration ids: {', '.join(duplicates)}",
                failed_migrations=duplicates,
            )

        try:
            await self.initialize()
            applied_ids = set(await self.get_applied_migrations())
            pending = [m for m in migrations if m.id not in applied_ids]

            if not pending:
                return MigrationResult(success=True, message="All migrations already applied")

            applied: List[str] = []
            failed: List[str] = []
            for migration in pending:
                if await self.apply_migration(migration):
                    applied.append(migration.id)
                else:
                    failed.append(migration.id)
                    break

        except Exception as e:
            logger.error(
                f"Migration batch failed: {e}",
                extra={"action": "apply-migrations", "metadata": {"migration_ids": ids}}
            )
            return MigrationResult(
                success=False,
                message=f"Migration batch failed: {e}",
                error=str(e),
            )

        if failed:
            return MigrationResult(
                success=False,
                message=f"Applied {len(applied)} migrations, {len(failed)} failed",
                applied_migrations=applied,
                failed_migrations=failed,
            )

        return MigrationResult(
            success=True,
            message=f"Successfully applied {len(applied)} migrations",
            applied_migrations=applied,
        )


# ============================================================
# Core migrations (PostgreSQL)
# ============================================================

_OWNED_TABLES = {
    "profiles": "id = app_current_user_id()",
    "projects": "user_id = app_current_user_id()",
    "conversations": "user_id = app_current_user_id()",
    "export_logs": "user_id = app_current_user_id()",
    "messages": (
        "EXISTS (SELECT 1 FROM conversations c "
        "WHERE c.id = messages.conversation_id AND c.user_id = app_current_user_id())"
    ),
    "articles": (
        "EXISTS (SELECT 1 FROM projects p "
        "WHERE p.id = articles.project_id AND p.user_id = app_current_user_id())"
    ),
}


def _rls_sql(tables: Dict[str, str]) -> str:
    parts = []
    for table, condition in tables.items():
        parts.append(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;")
        parts.append(f"DROP POLICY IF EXISTS {table}_owner_access ON {table};")
        parts.append(
            f"CREATE POLICY {table}_owner_access ON {table} "
            f"USING ({condition}) WITH CHECK ({condition});"
        )
    return "\n".join(parts)


def _updated_at_triggers_sql(*tables: str) -> str:
    parts = []
    for table in tables:
        parts.append(f"DROP TRIGGER IF EXISTS trg_{table}_updated_at ON {table};")
        parts.append(
            f"CREATE TRIGGER trg_{table}_updated_at BEFORE UPDATE ON {table} "
            f"FOR EACH ROW EXECUTE FUNCTION set_updated_at();"
        )
    return "\n".join(parts)


CORE_MIGRATIONS: List[Migration] = [
    Migration(
        id="001_current_user_helper",
        name="Current user helper function",
        sql="""
            -- bind_session_user sets app.current_user_id per transaction; empty or unset means nobody
            CREATE OR REPLACE FUNCTION app_current_user_id() RETURNS uuid AS $$
                SELECT NULLIF(current_setting('app.current_user_id', true), '')::uuid;
            $$ LANGUAGE sql STABLE;
        """,
    ),
    Migration(
        id="002_row_level_security",
        name="Owner-only row level security",
        sql=_rls_sql(_OWNED_TABLES),
    ),
    Migration(
        id="003_updated_at_triggers",
        name="updated_at triggers",
        sql="""
            CREATE OR REPLACE FUNCTION set_updated_at() RETURNS trigger AS $$
            BEGIN
                NEW.updated_at = NOW();
                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql;
        """ + _updated_at_triggers_sql("profiles", "projects", "conversations", "articles"),
    ),
    Migration(
        id="004_performance_indexes",
        name="Performance indexes",
        sql="""
            CREATE INDEX IF NOT EXISTS idx_projects_user_activity
                ON projects (user_id, last_activity_at DESC);
            CREATE INDEX IF NOT EXISTS idx_conversations_project_updated
                ON conversations (project_id, updated_at DESC);
            CREATE INDEX IF NOT EXISTS idx_messages_conversation_created
                ON messages (conversation_id, created_at);
            CREATE INDEX IF NOT EXISTS idx_articles_project_decision
                ON articles (project_id, screening_decision);
            CREATE INDEX IF NOT EXISTS idx_export_logs_project_created
                ON export_logs (project_id, created_at DESC);
        """,
    ),
    Migration(
        id="005_protocol_security",
        name="Protocol row level security and updated_at trigger",
        sql=_rls_sql({"protocols": "user_id = app_current_user_id()"})
        + "\n" + _updated_at_triggers_sql("protocols") + """
            CREATE INDEX IF NOT EXISTS idx_protocols_project_updated
                ON protocols (project_id, updated_at DESC);
        """,
    ),
]


async def main() -> int:
    """Apply CORE_MIGRATIONS to the configured database."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    engine = MigrationEngine()
    try:
        result = await engine.apply_migrations(CORE_MIGRATIONS)
    finally:
        await engine.engine.dispose()

    log = logger.info if result.success else logger.error
    log(result.message)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
