"""
PostgreSQL document store adapter - Implements DocumentStore protocol.

This module provides the PostgreSQL implementation of the domain's
document store port using psycopg3 with raw SQL. Documents live in a single
JSONB table keyed by (collection, key).

Concurrency Design - Revision Tokens:
-------------------------------------
Every document row carries a revision token of the form "<generation>-<hex>".
Updates and deletes are conditional on the caller's token:

    UPDATE documents SET ... WHERE collection = %s AND key = %s AND rev = %s

A concurrent writer that already replaced the row leaves zero matching
rows, which the adapter reports as DocumentConflict. Creation relies on the
primary key: INSERT ... ON CONFLICT DO NOTHING inserts nothing for an
existing key.

All SQL uses parameterized queries. Driver errors are wrapped in
StoreUnavailable so the domain never sees psycopg types.
"""

import logging
import uuid
from pathlib import Path
from typing import Any

import psycopg
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from src.domain.exceptions import DocumentConflict, StoreUnavailable
from src.domain.ports import BulkItemResult, ReadResult, StoredDocument

logger = logging.getLogger(__name__)


def next_revision(rev: str | None = None) -> str:
    """Return the token for the next revision after `rev`."""
    generation = int(rev.split("-", 1)[0]) + 1 if rev else 1
    return f"{generation}-{uuid.uuid4().hex}"


class PostgresDocumentStore:
    """
    Implements DocumentStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize store with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def create(self, key: str, body: dict[str, Any], collection: str) -> str:
        sql = """
            INSERT INTO documents (collection, key, rev, body, updated_at)
            VALUES (%s, %s, %s, %s, NOW())
            ON CONFLICT (collection, key) DO NOTHING
        """
        rev = next_revision()
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (collection, key, rev, Jsonb(body)))
                conn.commit()
                created = cursor.rowcount == 1
        except psycopg.Error as e:
            raise StoreUnavailable(f"Failed to create document {key} in {collection}: {e}") from e

        if not created:
            raise DocumentConflict(key, collection)
        return rev

    def create_bulk(
        self, documents: list[tuple[str, dict[str, Any]]], collection: str
    ) -> list[BulkItemResult]:
        """
        Create many documents in one transaction.

        Each row is inserted independently, so a duplicate key fails only
        its own position.
        """
        sql = """
            INSERT INTO documents (collection, key, rev, body, updated_at)
            VALUES (%s, %s, %s, %s, NOW())
            ON CONFLICT (collection, key) DO NOTHING
        """
        results: list[BulkItemResult] = []
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                for key, body in documents:
                    rev = next_revision()
                    cursor.execute(sql, (collection, key, rev, Jsonb(body)))
                    if cursor.rowcount == 1:
                        results.append(BulkItemResult(key=key, ok=True, rev=rev))
                    else:
                        results.append(
                            BulkItemResult(
                                key=key,
                                ok=False,
                                error="conflict",
                                reason="Document update conflict.",
                            )
                        )
                conn.commit()
        except psycopg.Error as e:
            raise StoreUnavailable(
                f"Failed to create {len(documents)} documents in {collection}: {e}"
            ) from e
        return results

    def read_safe(self, key: str, collection: str) -> ReadResult:
        sql = "SELECT rev, body FROM documents WHERE collection = %s AND key = %s"
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (collection, key))
                row = cursor.fetchone()
        except psycopg.Error as e:
            logger.error("Failed to read document %s from %s: %s", key, collection, e)
            return ReadResult(status=500, message=str(e))

        if row is None:
            return ReadResult(status=404, message="not_found")
        return ReadResult(status=200, document=StoredDocument(key=key, rev=row[0], body=row[1]))

    def update(self, key: str, rev: str, body: dict[str, Any], collection: str) -> str:
        sql = """
            UPDATE documents
            SET rev = %s, body = %s, updated_at = NOW()
            WHERE collection = %s AND key = %s AND rev = %s
        """
        new_rev = next_revision(rev)
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (new_rev, Jsonb(body), collection, key, rev))
                conn.commit()
                updated = cursor.rowcount == 1
        except psycopg.Error as e:
            raise StoreUnavailable(f"Failed to update document {key} in {collection}: {e}") from e

        if not updated:
            raise DocumentConflict(key, collection)
        return new_rev

    def delete(self, key: str, rev: str, collection: str) -> None:
        sql = "DELETE FROM documents WHERE collection = %s AND key = %s AND rev = %s"
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (collection, key, rev))
                conn.commit()
                deleted = cursor.rowcount == 1
        except psycopg.Error as e:
            raise StoreUnavailable(f"Failed to delete document {key} in {collection}: {e}") from e

        if not deleted:
            raise DocumentConflict(key, collection)

    def query(
        self, selector: dict[str, Any], limit: int, collection: str
    ) -> list[StoredDocument]:
        """Containment query (body @> selector), ordered by key."""
        sql = """
            SELECT key, rev, body FROM documents
            WHERE collection = %s AND body @> %s
            ORDER BY key
            LIMIT %s
        """
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (collection, Jsonb(selector), limit))
                rows = cursor.fetchall()
        except psycopg.Error as e:
            raise StoreUnavailable(f"Failed to query documents in {collection}: {e}") from e
        return [StoredDocument(key=row[0], rev=row[1], body=row[2]) for row in rows]


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance

    Raises:
        RuntimeError: If a migration file fails to execute
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))
    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")
    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            with pool.connection() as conn:
                conn.execute(sql_file.read_text())
            logger.info(f"Migration complete: {sql_file.name}")
        except psycopg.Error as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
