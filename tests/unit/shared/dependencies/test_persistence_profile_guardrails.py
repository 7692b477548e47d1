import pytest
from fastapi.testclient import TestClient

from src.api.main import app
from src.api.persistence_profile import (
    app_persistence_profile_name,
    validate_persistence_profile_guardrails,
)


def _production_env(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_PERSISTENCE_PROFILE", "PRODUCTION")
    monkeypatch.setenv("DOCUMENT_STORE_BACKEND", "POSTGRES")
    monkeypatch.setenv("DOCUMENT_POSTGRES_DSN", "postgresql://u:p@localhost:5432/documents")
    monkeypatch.setenv("DOCUMENT_BLOB_BACKEND", "LOCAL")
    monkeypatch.setenv("DOCUMENT_BLOB_ROOT", str(tmp_path))


def test_persistence_profile_defaults_to_local(monkeypatch):
    monkeypatch.delenv("APP_PERSISTENCE_PROFILE", raising=False)
    assert app_persistence_profile_name() == "LOCAL"


def test_persistence_profile_unknown_value_falls_back_to_local(monkeypatch):
    monkeypatch.setenv("APP_PERSISTENCE_PROFILE", "staging")
    assert app_persistence_profile_name() == "LOCAL"


def test_local_profile_allows_in_memory_backends(monkeypatch):
    monkeypatch.setenv("DOCUMENT_STORE_BACKEND", "IN_MEMORY")
    validate_persistence_profile_guardrails()


@pytest.mark.parametrize(
    ("env_name", "env_value", "expected"),
    [
        ("DOCUMENT_STORE_BACKEND", "IN_MEMORY", "PERSISTENCE_PROFILE_REQUIRES_DOCUMENT_POSTGRES"),
        ("DOCUMENT_POSTGRES_DSN", "", "PERSISTENCE_PROFILE_REQUIRES_DOCUMENT_POSTGRES_DSN"),
        ("DOCUMENT_BLOB_BACKEND", "IN_MEMORY", "PERSISTENCE_PROFILE_REQUIRES_LOCAL_BLOB_STORAGE"),
        ("DOCUMENT_BLOB_ROOT", " ", "PERSISTENCE_PROFILE_REQUIRES_BLOB_ROOT"),
    ],
)
def test_production_profile_guardrails(monkeypatch, tmp_path, env_name, env_value, expected):
    _production_env(monkeypatch, tmp_path)
    monkeypatch.setenv(env_name, env_value)

    with pytest.raises(RuntimeError) as exc:
        validate_persistence_profile_guardrails()
    assert str(exc.value) == expected


def test_production_profile_allows_postgres_and_local_blobs(monkeypatch, tmp_path):
    _production_env(monkeypatch, tmp_path)

    validate_persistence_profile_guardrails()


def test_startup_fails_fast_for_in_memory_store_in_production(monkeypatch, tmp_path):
    _production_env(monkeypatch, tmp_path)
    monkeypatch.setenv("DOCUMENT_STORE_BACKEND", "IN_MEMORY")

    with pytest.raises(RuntimeError) as exc:
        with TestClient(app):
            pass
    assert str(exc.value) == "PERSISTENCE_PROFILE_REQUIRES_DOCUMENT_POSTGRES"
