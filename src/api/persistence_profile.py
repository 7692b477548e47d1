from __future__ import annotations

import os

from src.api.routers.documents_config import (
    document_blob_backend_name,
    document_blob_root,
    document_postgres_dsn,
    document_store_backend_name,
)

_PRODUCTION_PROFILE = "PRODUCTION"
_LOCAL_PROFILE = "LOCAL"


def app_persistence_profile_name() -> str:
    profile = os.getenv("APP_PERSISTENCE_PROFILE", _LOCAL_PROFILE).strip().upper()
    return _PRODUCTION_PROFILE if profile == _PRODUCTION_PROFILE else _LOCAL_PROFILE


def validate_persistence_profile_guardrails() -> None:
    if app_persistence_profile_name() != _PRODUCTION_PROFILE:
        return
    if document_store_backend_name() != "POSTGRES":
        raise RuntimeError("PERSISTENCE_PROFILE_REQUIRES_DOCUMENT_POSTGRES")
    if not document_postgres_dsn():
        raise RuntimeError("PERSISTENCE_PROFILE_REQUIRES_DOCUMENT_POSTGRES_DSN")
    if document_blob_backend_name() != "LOCAL":
        raise RuntimeError("PERSISTENCE_PROFILE_REQUIRES_LOCAL_BLOB_STORAGE")
    if not document_blob_root():
        raise RuntimeError("PERSISTENCE_PROFILE_REQUIRES_BLOB_ROOT")
