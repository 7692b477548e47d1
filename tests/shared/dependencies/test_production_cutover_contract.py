import sys
from types import SimpleNamespace

import pytest

import src.api.production_cutover_contract as contract_module
from src.api.production_cutover_contract import (
    applied_migration_versions,
    ensure_migrations_applied,
    expected_migration_versions,
    validate_cutover_blob_root,
    validate_production_cutover_contract,
)


class _FakeCursor:
    def __init__(self, row=None, rows=None):
        self._row = row
        self._rows = rows or []

    def fetchone(self):
        return self._row

    def fetchall(self):
        return list(self._rows)


class _FakeConnection:
    def __init__(self, *, table_exists=True, rows=None):
        self._table_exists = table_exists
        self._rows = rows or []

    def execute(self, query, args=None):
        sql = " ".join(str(query).split())
        if "to_regclass('public.schema_migrations')" in sql:
            return _FakeCursor(
                row={"regclass": "schema_migrations" if self._table_exists else None}
            )
        if "FROM schema_migrations" in sql:
            return _FakeCursor(rows=self._rows)
        raise AssertionError(f"Unexpected SQL: {sql}")


def test_validate_cutover_requires_production_profile(monkeypatch):
    monkeypatch.setattr(contract_module, "app_persistence_profile_name", lambda: "LOCAL")
    with pytest.raises(RuntimeError) as exc:
        validate_production_cutover_contract(check_migrations=False)
    assert str(exc.value) == "CUTOVER_PROFILE_NOT_PRODUCTION"


def test_validate_cutover_checks_guardrails_blob_root_and_migrations(monkeypatch, tmp_path):
    called = {"guardrails": 0, "migrations": 0}
    monkeypatch.setattr(contract_module, "app_persistence_profile_name", lambda: "PRODUCTION")
    monkeypatch.setattr(
        contract_module,
        "validate_persistence_profile_guardrails",
        lambda: called.__setitem__("guardrails", called["guardrails"] + 1),
    )
    monkeypatch.setattr(
        contract_module,
        "validate_cutover_migrations_applied",
        lambda: called.__setitem__("migrations", called["migrations"] + 1),
    )
    monkeypatch.setenv("DOCUMENT_BLOB_ROOT", str(tmp_path))

    validate_production_cutover_contract(check_migrations=False)
    validate_production_cutover_contract(check_migrations=True)

    assert called == {"guardrails": 2, "migrations": 1}


def test_validate_cutover_blob_root_must_exist(tmp_path):
    with pytest.raises(RuntimeError) as exc:
        validate_cutover_blob_root(tmp_path / "missing")
    assert str(exc.value) == "CUTOVER_BLOB_ROOT_MISSING"

    validate_cutover_blob_root(tmp_path)


def test_expected_migration_versions_for_documents():
    assert expected_migration_versions(namespace="documents") == ["0001"]


def test_expected_migration_versions_requires_existing_namespace():
    with pytest.raises(RuntimeError) as exc:
        expected_migration_versions(namespace="missing_namespace")
    assert str(exc.value) == "POSTGRES_MIGRATIONS_NAMESPACE_NOT_FOUND:missing_namespace"


def test_expected_migration_versions_rejects_empty_namespace(monkeypatch):
    monkeypatch.setattr(contract_module, "load_migrations", lambda *, namespace: [])

    with pytest.raises(RuntimeError) as exc:
        expected_migration_versions(namespace="empty_namespace")
    assert str(exc.value) == "CUTOVER_MIGRATIONS_EMPTY:empty_namespace"


def test_applied_migration_versions_requires_schema_migrations_table():
    connection = _FakeConnection(table_exists=False)
    with pytest.raises(RuntimeError) as exc:
        applied_migration_versions(connection=connection, namespace="documents")
    assert str(exc.value) == "CUTOVER_SCHEMA_MIGRATIONS_TABLE_MISSING"


def test_applied_migration_versions_normalizes_namespaced_versions():
    connection = _FakeConnection(rows=[{"version": "documents:0001"}, {"version": "0002"}])
    assert applied_migration_versions(connection=connection, namespace="documents") == [
        "0001",
        "0002",
    ]


def test_ensure_migrations_applied_reports_first_missing_version():
    ensure_migrations_applied(
        namespace="documents", expected_versions=["0001"], applied_versions=["0001"]
    )
    with pytest.raises(RuntimeError) as exc:
        ensure_migrations_applied(
            namespace="documents",
            expected_versions=["0001", "0002", "0003"],
            applied_versions=["0001"],
        )
    assert str(exc.value) == "CUTOVER_MIGRATION_MISSING:documents:0002"


def test_validate_cutover_migrations_applied_detects_missing(monkeypatch):
    class _FakePsycopg:
        @staticmethod
        def connect(_dsn, row_factory):
            assert row_factory is not None

            class _Context:
                def __enter__(self):
                    return _FakeConnection(rows=[{"version": "documents:0001"}])

                def __exit__(self, exc_type, exc, tb):
                    return False

            return _Context()

    monkeypatch.setattr(contract_module, "find_spec", lambda _name: object())
    monkeypatch.setitem(sys.modules, "psycopg", _FakePsycopg)
    monkeypatch.setitem(sys.modules, "psycopg.rows", SimpleNamespace(dict_row=object()))
    monkeypatch.setattr(
        contract_module, "expected_migration_versions", lambda *, namespace: ["0001", "0002"]
    )

    with pytest.raises(RuntimeError) as exc:
        contract_module.validate_cutover_migrations_applied()
    assert str(exc.value) == "CUTOVER_MIGRATION_MISSING:documents:0002"


def test_validate_cutover_migrations_applied_requires_postgres_driver(monkeypatch):
    monkeypatch.setattr(contract_module, "find_spec", lambda _name: None)
    with pytest.raises(RuntimeError) as exc:
        contract_module.validate_cutover_migrations_applied()
    assert str(exc.value) == "CUTOVER_POSTGRES_DRIVER_MISSING"
