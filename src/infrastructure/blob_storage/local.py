import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse


class LocalBlobStorage:
    def __init__(self, *, root: Path) -> None:
        self._root = Path(root).resolve()

    def put(self, data: bytes, *, directory: str, file_name: Optional[str] = None) -> str:
        target_dir = self._resolve_directory(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"blob_{uuid.uuid4().hex[:12]}{_extension(file_name)}"
        path.write_bytes(data)
        return path.as_uri()

    def delete(self, url: str) -> None:
        self._path_for(url).unlink(missing_ok=True)

    def _resolve_directory(self, directory: str) -> Path:
        target = (self._root / directory.strip("/")).resolve()
        if target != self._root and self._root not in target.parents:
            raise ValueError("BLOB_DIRECTORY_OUTSIDE_ROOT")
        return target

    def _path_for(self, url: str) -> Path:
        parsed = urlparse(url)
        if parsed.scheme != "file":
            raise ValueError("BLOB_URL_UNSUPPORTED")
        path = Path(unquote(parsed.path)).resolve()
        if self._root not in path.parents:
            raise ValueError("BLOB_URL_OUTSIDE_ROOT")
        return path


def _extension(file_name: Optional[str]) -> str:
    if not file_name:
        return ""
    return Path(file_name).suffix.lower()
