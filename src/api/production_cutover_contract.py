from __future__ import annotations

import os
from importlib.util import find_spec
from pathlib import Path
from typing import Any

from src.api.persistence_profile import (
    app_persistence_profile_name,
    validate_persistence_profile_guardrails,
)
from src.api.routers.documents_config import document_blob_root, document_postgres_dsn
from src.infrastructure.postgres_migrations import extract_namespace_version, load_migrations

DOCUMENT_MIGRATION_NAMESPACE = "documents"


def validate_production_cutover_contract(*, check_migrations: bool) -> None:
    if app_persistence_profile_name() != "PRODUCTION":
        raise RuntimeError("CUTOVER_PROFILE_NOT_PRODUCTION")
    validate_persistence_profile_guardrails()
    validate_cutover_blob_root(Path(document_blob_root()))
    if check_migrations:
        validate_cutover_migrations_applied()


def validate_cutover_blob_root(root: Path) -> None:
    if not root.is_dir():
        raise RuntimeError("CUTOVER_BLOB_ROOT_MISSING")
    if not os.access(root, os.W_OK):
        raise RuntimeError("CUTOVER_BLOB_ROOT_NOT_WRITABLE")


def validate_cutover_migrations_applied() -> None:
    if find_spec("psycopg") is None:
        raise RuntimeError("CUTOVER_POSTGRES_DRIVER_MISSING")
    import psycopg
    from psycopg.rows import dict_row

    namespace = DOCUMENT_MIGRATION_NAMESPACE
    expected_versions = expected_migration_versions(namespace=namespace)
    with psycopg.connect(document_postgres_dsn(), row_factory=dict_row) as connection:
        applied_versions = applied_migration_versions(connection=connection, namespace=namespace)
    ensure_migrations_applied(
        namespace=namespace,
        expected_versions=expected_versions,
        applied_versions=applied_versions,
    )


def ensure_migrations_applied(
    *, namespace: str, expected_versions: list[str], applied_versions: list[str]
) -> None:
    missing = sorted(set(expected_versions) - set(applied_versions))
    if missing:
        raise RuntimeError(f"CUTOVER_MIGRATION_MISSING:{namespace}:{missing[0]}")


def expected_migration_versions(*, namespace: str) -> list[str]:
    versions = [migration.version for migration in load_migrations(namespace=namespace)]
    if not versions:
        raise RuntimeError(f"CUTOVER_MIGRATIONS_EMPTY:{namespace}")
    return versions


def applied_migration_versions(*, connection: Any, namespace: str) -> list[str]:
    exists_row = connection.execute(
        "SELECT to_regclass('public.schema_migrations') AS regclass"
    ).fetchone()
    if not exists_row or exists_row["regclass"] is None:
        raise RuntimeError("CUTOVER_SCHEMA_MIGRATIONS_TABLE_MISSING")
    rows = connection.execute(
        """
        SELECT version
        FROM schema_migrations
        WHERE namespace = %s
        ORDER BY version ASC
        """,
        (namespace,),
    ).fetchall()
    return [
        extract_namespace_version(namespace=namespace, stored_version=row["version"])
        for row in rows
    ]
