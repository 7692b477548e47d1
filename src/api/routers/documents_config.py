import os
from pathlib import Path
from typing import cast

from src.api.routers.runtime_utils import env_csv_set, env_flag, env_int
from src.core.documents.collaborators import BlobStorage, IdentityProvider
from src.core.documents.repository import DocumentRepository
from src.core.documents.service import DEFAULT_MAX_COMMIT_ATTEMPTS, DEFAULT_PRIVILEGED_ROLES
from src.infrastructure.blob_storage import InMemoryBlobStorage, LocalBlobStorage
from src.infrastructure.documents import InMemoryDocumentRepository, PostgresDocumentRepository
from src.infrastructure.identity import StaticTokenIdentityProvider


def document_store_backend_name() -> str:
    backend = os.getenv("DOCUMENT_STORE_BACKEND", "IN_MEMORY").strip().upper()
    return "POSTGRES" if backend == "POSTGRES" else "IN_MEMORY"


def document_postgres_dsn() -> str:
    return os.getenv("DOCUMENT_POSTGRES_DSN", "").strip()


def document_blob_backend_name() -> str:
    backend = os.getenv("DOCUMENT_BLOB_BACKEND", "IN_MEMORY").strip().upper()
    return "LOCAL" if backend == "LOCAL" else "IN_MEMORY"


def document_blob_root() -> str:
    return os.getenv("DOCUMENT_BLOB_ROOT", "").strip()


def document_privileged_roles() -> set[str]:
    return env_csv_set("DOCUMENT_PRIVILEGED_ROLES", set(DEFAULT_PRIVILEGED_ROLES))


def document_allow_submit_without_steps() -> bool:
    return env_flag("DOCUMENT_ALLOW_SUBMIT_WITHOUT_STEPS", True)


def document_max_commit_attempts() -> int:
    return env_int("DOCUMENT_MAX_COMMIT_ATTEMPTS", DEFAULT_MAX_COMMIT_ATTEMPTS)


def document_workflow_enabled() -> bool:
    return env_flag("DOCUMENT_WORKFLOW_ENABLED", True)


def _postgres_connection_exception_types() -> tuple[type[BaseException], ...]:
    types: list[type[BaseException]] = [
        ConnectionError,
        OSError,
        TimeoutError,
        TypeError,
        ValueError,
    ]
    try:
        import psycopg
    except ImportError:
        pass
    else:
        types.append(psycopg.Error)
    return tuple(types)


def build_repository() -> DocumentRepository:
    backend = document_store_backend_name()
    if backend == "POSTGRES":
        dsn = document_postgres_dsn()
        if not dsn:
            raise RuntimeError("DOCUMENT_POSTGRES_DSN_REQUIRED")
        try:
            return cast(DocumentRepository, PostgresDocumentRepository(dsn=dsn))
        except RuntimeError:
            raise
        except _postgres_connection_exception_types() as exc:
            raise RuntimeError("DOCUMENT_POSTGRES_CONNECTION_FAILED") from exc
    return cast(DocumentRepository, InMemoryDocumentRepository())


def build_blob_storage() -> BlobStorage:
    if document_blob_backend_name() == "LOCAL":
        root = document_blob_root()
        if not root:
            raise RuntimeError("DOCUMENT_BLOB_ROOT_REQUIRED")
        return cast(BlobStorage, LocalBlobStorage(root=Path(root)))
    return cast(BlobStorage, InMemoryBlobStorage())


def build_identity_provider() -> IdentityProvider:
    return cast(
        IdentityProvider,
        StaticTokenIdentityProvider(tokens_json=os.getenv("DOCUMENT_IDENTITY_TOKENS_JSON")),
    )
