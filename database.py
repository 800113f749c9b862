"""
Key-value record store for Wali Kelas.

Every logical table is kept as one JSON array under a fixed key, the way a
browser keeps them in localStorage. Reads return the whole table, writes
replace it. There are no transactions: the last writer wins.

Tables:
- Users       -> "db_users"
- Guru        -> "db_guru"
- Siswa       -> "db_siswa"
- Absen       -> "db_absen"
- Nilai       -> "db_nilai"
- DokumenAI   -> "db_dokumen_ai"
- Sessions    -> "db_session_meta"
"""

import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, List, Optional

import config

logger = logging.getLogger(__name__)

TABLES = {
    "USERS": "db_users",
    "GURU": "db_guru",
    "SISWA": "db_siswa",
    "ABSEN": "db_absen",
    "NILAI": "db_nilai",
    "DOKUMEN": "db_dokumen_ai",
    "SESSION": "db_session_meta",
}

CURRENT_GURU_KEY = "current_guru_id"

_file_locks: Dict[str, threading.RLock] = {}
_file_locks_guard = threading.Lock()


def _lock_for(path: str) -> threading.RLock:
    with _file_locks_guard:
        return _file_locks.setdefault(os.path.abspath(path), threading.RLock())


class CorruptTableError(Exception):
    """Raised when a stored table is not a JSON array."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Tabel '{key}' rusak: {reason}")
        self.key = key


class KeyValueStore:
    """Base store: subclasses only provide raw string get/set/delete."""

    def get_value(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_value(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete_value(self, key: str) -> None:
        raise NotImplementedError

    def has_key(self, key: str) -> bool:
        return self.get_value(key) is not None

    def get_table(self, key: str) -> List[Dict[str, Any]]:
        raw = self.get_value(key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptTableError(key, str(e)) from e
        if not isinstance(data, list):
            raise CorruptTableError(key, "bukan array")
        return data

    def save_table(self, key: str, records: List[Dict[str, Any]]) -> None:
        self.set_value(key, json.dumps(records, ensure_ascii=False))


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_value(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_value(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete_value(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    Persists all keys in one JSON object on disk. The file is re-read on
    every access. Writes hold a per-path lock over the whole
    read-modify-write, so stores sharing a file never drop each other's keys.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = _lock_for(path)

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            content = f.read()
        if not content.strip():
            return {}
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise CorruptTableError(self.path, str(e)) from e

    def _dump(self, data: Dict[str, str]) -> None:
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=folder or ".", suffix=".tmp", delete=False,
        ) as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(f.name, self.path)

    def get_value(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set_value(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._dump(data)

    def delete_value(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._dump(data)


db: KeyValueStore = JsonFileStore(config.DATABASE_URL)


def use_store(store: KeyValueStore) -> KeyValueStore:
    """Swap the module-level store, returning the previous one."""
    global db
    previous = db
    db = store
    logger.debug("Record store switched to %s", type(store).__name__)
    return previous


def get_table(key: str) -> List[Dict[str, Any]]:
    return db.get_table(key)


def save_table(key: str, records: List[Dict[str, Any]]) -> None:
    db.save_table(key, records)
