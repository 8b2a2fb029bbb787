"""
Local State Persistence

Plain key-value storage for per-table client state:
- table:<n>  the atomic session/verification record
- cart:<n>   the cart lines

Two stores are provided: an in-memory store (tests, embedding) and a JSON
file store guarded by a file lock, mirroring how the export files were
handled server-side. Corrupted or partial data is never fatal: it is
logged, discarded and read back as empty state.

Version: 1.0.0
"""

import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Optional

from filelock import FileLock, Timeout
from pydantic import ValidationError as PydanticValidationError

from tableside.core.config import get_settings
from tableside.schemas import CartLine, TableRecord

logger = logging.getLogger(__name__)


class BaseStateStore(ABC):
    """Abstract key-value store for JSON-serializable values."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value or None."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> bool:
        """Store a value. Returns False if the write failed."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a key if present. Returns False if the write failed."""
        pass


class MemoryStateStore(BaseStateStore):
    """Dictionary-backed store; values are deep-copied on the way in and out."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> bool:
        self._data[key] = copy.deepcopy(value)
        return True

    def delete(self, key: str) -> bool:
        self._data.pop(key, None)
        return True

    def dump(self) -> dict[str, Any]:
        """Snapshot of everything stored (used for inspection)."""
        return copy.deepcopy(self._data)


class JsonFileStateStore(BaseStateStore):
    """
    Single JSON file holding every key.

    Each write takes the file lock, re-reads the file, applies the change
    and atomically replaces the file, so a crash mid-write leaves either
    the old or the new content.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        lock_timeout: Optional[int] = None,
    ):
        settings = get_settings()
        self.path = Path(path) if path else Path(settings.data_directory) / settings.state_filename
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.state_lock_timeout

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.path.parent}")

    def _read_all(self) -> dict[str, Any]:
        """Load the whole file; unreadable content counts as empty."""
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Error reading {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {self.path}: top-level value is not an object")
            return {}
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def _update(self, key: str, value: Any, remove: bool) -> bool:
        self._ensure_data_dir()
        try:
            with FileLock(str(self.lock_path), timeout=self.lock_timeout):
                data = self._read_all()
                if remove:
                    if key not in data:
                        return True
                    data.pop(key)
                else:
                    data[key] = value
                self._write_all(data)
        except Timeout:
            logger.error(f"Lock timeout ({self.lock_timeout}s) writing key {key}")
            return False
        except OSError as e:
            logger.error(f"Error writing {self.path}: {e}")
            return False

        logger.debug(f"State key {key} {'removed' if remove else 'written'}")
        return True

    def get(self, key: str) -> Optional[Any]:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> bool:
        return self._update(key, value, remove=False)

    def delete(self, key: str) -> bool:
        return self._update(key, None, remove=True)

    def clear_all(self) -> bool:
        """Delete the state file and its lock."""
        try:
            for f in [self.path, self.lock_path]:
                if f.exists():
                    f.unlink()
            logger.info("Local state cleared")
            return True
        except OSError as e:
            logger.error(f"Error clearing state: {e}")
            return False


class TableStateRepository:
    """Typed access to the state persisted for one table number."""

    def __init__(self, store: BaseStateStore, table_number: int):
        self.store = store
        self.table_number = table_number

    @property
    def record_key(self) -> str:
        return f"table:{self.table_number}"

    @property
    def cart_key(self) -> str:
        return f"cart:{self.table_number}"

    # -------------------------------------------------------------------------
    # Session / verification record
    # -------------------------------------------------------------------------

    def load_record(self) -> TableRecord:
        """
        Read the table record, validated as a whole.

        Anything that does not validate is dropped and an empty record is
        returned, which makes callers fall back to scan / verify again.
        """
        raw = self.store.get(self.record_key)
        if raw is None:
            return TableRecord()
        try:
            return TableRecord.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning(
                f"Discarding corrupted state for table {self.table_number}: "
                f"{e.error_count()} error(s)"
            )
            self.store.delete(self.record_key)
            return TableRecord()

    def save_record(self, record: TableRecord) -> None:
        if record.is_empty:
            self.store.delete(self.record_key)
        else:
            self.store.set(self.record_key, record.model_dump(mode="json"))

    def update_record(self, **changes: Any) -> TableRecord:
        """Apply field changes to the stored record and write it back."""
        current = self.load_record().model_dump()
        current.update(changes)
        record = TableRecord.model_validate(current)
        self.save_record(record)
        return record

    def purge_record(self) -> None:
        self.store.delete(self.record_key)

    # -------------------------------------------------------------------------
    # Cart
    # -------------------------------------------------------------------------

    def load_cart(self) -> list[CartLine]:
        """Read cart lines, skipping any entry that does not validate."""
        raw = self.store.get(self.cart_key)
        if not isinstance(raw, list):
            if raw is not None:
                logger.warning(f"Discarding malformed cart for table {self.table_number}")
            return []

        lines = []
        for entry in raw:
            try:
                lines.append(CartLine.model_validate(entry))
            except PydanticValidationError:
                logger.warning(f"Skipping invalid cart line for table {self.table_number}: {entry!r}")
        return lines

    def save_cart(self, lines: Iterable[CartLine]) -> None:
        payload = [line.model_dump(mode="json") for line in lines]
        if payload:
            self.store.set(self.cart_key, payload)
        else:
            self.store.delete(self.cart_key)
