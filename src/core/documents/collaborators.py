from typing import Optional, Protocol

from src.core.documents.models import Principal


class BlobStorage(Protocol):
    def put(self, data: bytes, *, directory: str, file_name: Optional[str] = None) -> str: ...

    def delete(self, url: str) -> None: ...


class IdentityProvider(Protocol):
    def resolve(self, token: str) -> Optional[Principal]: ...
