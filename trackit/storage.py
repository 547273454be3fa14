import json
import logging
import os
from typing import Any, Dict, Optional

from .errors import StorageCorruptionError

logger = logging.getLogger(__name__)

HABITS_KEY = "trackit-habits"
COMPLETIONS_KEY = "trackit-completions"


class BlobStore:
    """Keyed JSON blobs, the local persisted state of the tracker."""

    def read_text(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def write_text(self, key: str, text: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def read_json(self, key: str) -> Any:
        text = self.read_text(key)
        if text is None:
            return None
        try:
            return json.loads(text)
        except ValueError as exc:
            raise StorageCorruptionError(f"Stored value for {key!r} is not valid JSON: {exc}")

    def write_json(self, key: str, value: Any) -> None:
        self.write_text(key, json.dumps(value, indent=2, sort_keys=True))

    def load(self, key: str, default: Any) -> Any:
        try:
            value = self.read_json(key)
        except StorageCorruptionError as exc:
            logger.warning("Falling back to empty state: %s", exc)
            return default
        if value is None:
            return default
        if not isinstance(value, type(default)):
            logger.warning("Stored value for %r has unexpected type %s", key, type(value).__name__)
            return default
        return value


class FileBlobStore(BlobStore):
    def __init__(self, directory: str):
        self.directory = os.path.expanduser(directory)

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def read_text(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def write_text(self, key: str, text: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        tmp = path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)

    def remove(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)


class MemoryBlobStore(BlobStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.blobs: Dict[str, str] = dict(initial or {})

    def read_text(self, key: str) -> Optional[str]:
        return self.blobs.get(key)

    def write_text(self, key: str, text: str) -> None:
        self.blobs[key] = text

    def remove(self, key: str) -> None:
        self.blobs.pop(key, None)
