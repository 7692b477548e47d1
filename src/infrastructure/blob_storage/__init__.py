from src.infrastructure.blob_storage.in_memory import InMemoryBlobStorage
from src.infrastructure.blob_storage.local import LocalBlobStorage

__all__ = ["InMemoryBlobStorage", "LocalBlobStorage"]
