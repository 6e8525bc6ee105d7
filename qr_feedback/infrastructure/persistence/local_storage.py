"""Device-local storage: small JSON blobs under fixed keys.

``LocalStore`` keeps one JSON file per key (or a dict in memory when no
directory is given) and enforces a byte quota across all keys. Local I/O is
never retried.
"""

import errno
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Generic, List, Mapping, Optional, Type, Union

from qr_feedback.domain.exceptions import PersistenceError, QuotaExceededError

from .base import Filter, ModelT, check_fields, from_document, matches, merge, order_records, to_document

logger = logging.getLogger(__name__)

QR_CODES_KEY = "qr_codes_v2"
FEEDBACK_KEY = "feedback_items"
PENDING_QR_CODES_KEY = "pending_qr_codes"

_FULL_DISK = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class LocalStore:
    def __init__(self, directory: Optional[Union[str, Path]] = None, quota_bytes: Optional[int] = None):
        self.directory = Path(directory) if directory else None
        self.quota_bytes = quota_bytes
        self._blobs: Dict[str, str] = {}

        if self.directory is not None:
            self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _read_raw(self, key: str) -> Optional[str]:
        if self.directory is None:
            return self._blobs.get(key)
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Could not read local blob {key}: {e}") from e

    def _size(self, key: str) -> int:
        if self.directory is None:
            blob = self._blobs.get(key)
            return len(blob.encode("utf-8")) if blob is not None else 0
        try:
            return self._path(key).stat().st_size
        except FileNotFoundError:
            return 0

    def keys(self) -> List[str]:
        if self.directory is None:
            return list(self._blobs)
        return [p.stem for p in self.directory.glob("*.json")]

    def usage_bytes(self) -> int:
        return sum(self._size(key) for key in self.keys())

    def read(self, key: str, default: Any = None) -> Any:
        """Decoded blob, or ``default`` when missing.

        A blob that does not parse is deleted so the next write starts clean.
        """
        raw = self._read_raw(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Discarding corrupted local blob {key}: {e}")
            self.remove(key)
            return default

    def write(self, key: str, value: Any) -> None:
        text = json.dumps(value, separators=(",", ":"))
        size = len(text.encode("utf-8"))

        if self.quota_bytes is not None:
            projected = self.usage_bytes() - self._size(key) + size
            if projected > self.quota_bytes:
                raise QuotaExceededError(
                    f"Local storage quota exceeded writing {key} ({projected} > {self.quota_bytes} bytes)"
                )

        if self.directory is None:
            self._blobs[key] = text
            return

        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, self._path(key))
            tmp_path = None
        except OSError as e:
            if e.errno in _FULL_DISK:
                raise QuotaExceededError(f"Device storage is full writing {key}") from e
            raise PersistenceError(f"Could not write local blob {key}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

    def remove(self, key: str) -> None:
        if self.directory is None:
            self._blobs.pop(key, None)
            return
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass


class PendingIdStore:
    """Ids whose latest local write has not been confirmed remotely."""

    def __init__(self, store: LocalStore, key: str = PENDING_QR_CODES_KEY):
        self.store = store
        self.key = key

    def ids(self) -> List[str]:
        value = self.store.read(self.key, [])
        if not isinstance(value, list):
            logger.error(f"Discarding malformed pending list {self.key}")
            self.store.remove(self.key)
            return []
        return [str(v) for v in value]

    def __contains__(self, id: str) -> bool:
        return id in self.ids()

    def __len__(self) -> int:
        return len(self.ids())

    def add(self, id: str) -> None:
        ids = self.ids()
        if id not in ids:
            ids.append(id)
            self.store.write(self.key, ids)

    def discard(self, id: str) -> None:
        ids = self.ids()
        if id in ids:
            ids.remove(id)
            self.store.write(self.key, ids)


class LocalStorageAdapter(Generic[ModelT]):
    """Adapter over one LocalStore key.

    ``as_map`` stores ``{id: record}``; otherwise the blob is a JSON array.
    """

    def __init__(self, store: LocalStore, model: Type[ModelT], key: str, as_map: bool = True):
        self.store = store
        self.model = model
        self.key = key
        self.as_map = as_map

    def _load(self) -> Dict[str, Dict[str, Any]]:
        blob = self.store.read(self.key, {} if self.as_map else [])

        if self.as_map and isinstance(blob, dict):
            return {str(k): v for k, v in blob.items() if isinstance(v, dict)}
        if not self.as_map and isinstance(blob, list):
            return {d["id"]: d for d in blob if isinstance(d, dict) and "id" in d}

        logger.error(f"Discarding local blob {self.key} with unexpected shape {type(blob).__name__}")
        self.store.remove(self.key)
        return {}

    def _save(self, documents: Dict[str, Dict[str, Any]]) -> None:
        self.store.write(self.key, documents if self.as_map else list(documents.values()))

    async def put(self, record: ModelT) -> None:
        documents = self._load()
        documents[record.id] = to_document(record)
        self._save(documents)

    async def get(self, id: str) -> Optional[ModelT]:
        document = self._load().get(id)
        return from_document(self.model, document) if document is not None else None

    async def get_all(
        self,
        filter: Optional[Filter] = None,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        if filter:
            check_fields(self.model, filter)
        records = [from_document(self.model, d) for d in self._load().values() if matches(d, filter)]
        return order_records(records, newest_first, limit)

    async def update(self, id: str, fields: Mapping[str, Any]) -> Optional[ModelT]:
        documents = self._load()
        if id not in documents:
            return None
        merged = merge(self.model, from_document(self.model, documents[id]), fields)
        documents[id] = to_document(merged)
        self._save(documents)
        return merged

    async def delete(self, id: str) -> bool:
        documents = self._load()
        if documents.pop(id, None) is None:
            return False
        self._save(documents)
        return True

    async def delete_many(self, filter: Filter) -> int:
        if filter:
            check_fields(self.model, filter)
        documents = self._load()
        kept = {id: d for id, d in documents.items() if not matches(d, filter)}
        removed = len(documents) - len(kept)
        if removed:
            self._save(kept)
        return removed

    async def ping(self) -> bool:
        return True
