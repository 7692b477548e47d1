import uuid
from pathlib import Path
from threading import Lock
from typing import Optional


class InMemoryBlobStorage:
    def __init__(self) -> None:
        self._lock = Lock()
        self._blobs: dict[str, bytes] = {}

    def put(self, data: bytes, *, directory: str, file_name: Optional[str] = None) -> str:
        suffix = Path(file_name).suffix.lower() if file_name else ""
        url = f"memory://{directory.strip('/')}/blob_{uuid.uuid4().hex[:12]}{suffix}"
        with self._lock:
            self._blobs[url] = bytes(data)
        return url

    def delete(self, url: str) -> None:
        with self._lock:
            self._blobs.pop(url, None)
