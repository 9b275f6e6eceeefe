# apiharness/blob_store.py
"""
Pluggable key-value blob store for specs and tokens.

Records are addressed by (kind, id) and hold any JSON-serializable value.
The execution engine never touches a store; callers load values from it and
hand them over as plain objects.

Implementations:
- MemoryBlobStore: process-local dict
- JsonFileBlobStore: one JSON file per record under <root>/<kind>/,
  atomic writes, 0600 permissions on POSIX, optional Fernet encryption
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken

from apiharness.models import HarnessError

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z0-9_.\-]{1,128}$")


class StoreError(HarnessError):
    pass


class BlobStore(Protocol):
    def get(self, kind: str, id: str) -> Optional[Any]: ...
    def list(self, kind: str) -> Dict[str, Any]: ...
    def put(self, kind: str, id: str, value: Any) -> None: ...
    def delete(self, kind: str, id: str) -> bool: ...


def _check_name(label: str, value: str) -> str:
    if not _NAME_RE.match(value or "") or value in (".", ".."):
        raise StoreError(f"Invalid {label}: {value!r}")
    return value


# ==================== Memory ====================

class MemoryBlobStore:
    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    def get(self, kind: str, id: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(kind, {}).get(id)

    def list(self, kind: str) -> Dict[str, Any]:
        with self._lock:
            return dict(self._data.get(kind, {}))

    def put(self, kind: str, id: str, value: Any) -> None:
        _check_name("kind", kind)
        _check_name("id", id)
        # store a detached copy, as a file-backed store would
        with self._lock:
            self._data.setdefault(kind, {})[id] = json.loads(json.dumps(value))

    def delete(self, kind: str, id: str) -> bool:
        with self._lock:
            return self._data.get(kind, {}).pop(id, None) is not None


# ==================== JSON Files ====================

class JsonFileBlobStore:
    """
    File-backed store.

    Args:
        root: directory holding one sub-directory per kind
        fernet_key: urlsafe base64 Fernet key; when given, records are
            encrypted at rest and unreadable without the same key
    """

    def __init__(self, root: str | Path, fernet_key: Optional[str | bytes] = None):
        self.root = Path(root)
        self._lock = threading.RLock()
        self._fernet: Optional[Fernet] = None
        if fernet_key:
            try:
                self._fernet = Fernet(fernet_key.encode() if isinstance(fernet_key, str) else fernet_key)
            except (ValueError, TypeError) as e:
                raise StoreError(f"Invalid store key: {e}") from e
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"🗄️ JsonFileBlobStore at {self.root} (encrypted={self.encrypted})")

    @property
    def encrypted(self) -> bool:
        return self._fernet is not None

    @property
    def _suffix(self) -> str:
        return ".enc" if self._fernet else ".json"

    def _path(self, kind: str, id: str) -> Path:
        return self.root / _check_name("kind", kind) / f"{_check_name('id', id)}{self._suffix}"

    def get(self, kind: str, id: str) -> Optional[Any]:
        path = self._path(kind, id)
        with self._lock:
            if not path.exists():
                return None
            return self._decode(path.read_bytes(), path)

    def list(self, kind: str) -> Dict[str, Any]:
        folder = self.root / _check_name("kind", kind)
        with self._lock:
            if not folder.is_dir():
                return {}
            return {
                p.name[: -len(self._suffix)]: self._decode(p.read_bytes(), p)
                for p in sorted(folder.glob(f"*{self._suffix}"))
            }

    def put(self, kind: str, id: str, value: Any) -> None:
        path = self._path(kind, id)
        blob = json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        if self._fernet:
            blob = self._fernet.encrypt(blob)

        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_bytes(blob)
            if os.name != "nt":
                os.chmod(tmp, 0o600)
            tmp.replace(path)

    def delete(self, kind: str, id: str) -> bool:
        path = self._path(kind, id)
        with self._lock:
            if not path.exists():
                return False
            path.unlink()
            return True

    def _decode(self, data: bytes, path: Path) -> Any:
        if self._fernet:
            try:
                data = self._fernet.decrypt(data)
            except InvalidToken as e:
                raise StoreError(f"Cannot decrypt {path} (wrong key or corrupted data)") from e
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreError(f"Corrupt record {path}: {e}") from e
