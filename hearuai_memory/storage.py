"""Key-value storage backends holding one JSON blob per key."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .config import storage_key
from .errors import StorageError


class KeyValueStorage:
    """Minimal durable key-value interface used by the persistent layers."""

    def get_item(self, key: str) -> Any | None:
        raise NotImplementedError

    def set_item(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class InMemoryStorage(KeyValueStorage):
    """Dict-backed storage for tests and ephemeral sessions.

    Values are serialised on write so callers observe the same
    copy semantics as the file backend.
    """

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Any | None:
        raw = self._items.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set_item(self, key: str, value: Any) -> None:
        try:
            self._items[key] = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Failed to serialise {key}: {exc}", key=key) from exc

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items.keys())

    def snapshot(self) -> Dict[str, Any]:
        return {key: json.loads(raw) for key, raw in self._items.items()}


class JsonFileStorage(KeyValueStorage):
    """Stores each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        safe_key = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in key)
        return self.directory / f"{safe_key}.json"

    def get_item(self, key: str) -> Any | None:
        path = self._path_for(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError:
            logging.warning("Stored blob at %s is not valid JSON; ignoring it.", path)
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}", key=key) from exc

    def set_item(self, key: str, value: Any) -> None:
        path = self._path_for(key)
        try:
            payload = json.dumps(value, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Failed to serialise {key}: {exc}", key=key) from exc

        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, path)
        except OSError as exc:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logging.warning("Could not remove partial write %s", tmp_path)
            raise StorageError(f"Failed to write {path}: {exc}", key=key) from exc

    def remove_item(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError(f"Failed to remove {path}: {exc}", key=key) from exc


class PersistentLayer:
    """Shared load/save plumbing for layers that own one versioned blob.

    Subclasses set ``LAYER`` and ``SCHEMA_VERSION`` and implement
    ``_serialise``/``_restore``. ``_migrate`` upgrades blobs written by
    older releases before ``_restore`` sees them.
    """

    LAYER = ""
    SCHEMA_VERSION = 1

    def __init__(self, user_id: str, storage: KeyValueStorage) -> None:
        self.user_id = user_id
        self.storage = storage
        self.storage_key = storage_key(self.LAYER, user_id)

    def load(self) -> None:
        try:
            raw = self.storage.get_item(self.storage_key)
        except StorageError as exc:
            logging.error("Error loading %s memory: %s", self.LAYER, exc)
            raw = None

        if raw is None:
            self._restore(self._migrate({}, 0))
            return

        version = raw.get("version", 0) if isinstance(raw, dict) else 0
        if not isinstance(version, int):
            version = 0
        self._restore(self._migrate(raw, version))

    def save(self) -> bool:
        payload = self._serialise()
        payload["version"] = self.SCHEMA_VERSION
        try:
            self.storage.set_item(self.storage_key, payload)
        except StorageError as exc:
            # In-memory state is kept; the next successful save overwrites the blob.
            logging.error("Error saving %s memory: %s", self.LAYER, exc)
            return False
        return True

    def _remove_blob(self) -> None:
        try:
            self.storage.remove_item(self.storage_key)
        except StorageError as exc:
            logging.error("Error clearing %s memory: %s", self.LAYER, exc)

    def _migrate(self, raw: Any, version: int) -> Dict[str, Any]:
        return raw if isinstance(raw, dict) else {}

    def _serialise(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _restore(self, data: Dict[str, Any]) -> None:
        raise NotImplementedError
