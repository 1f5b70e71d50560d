"""File-backed settings document store."""

import asyncio
import copy
import json
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict

from hubauth.core.exceptions import StorageFailureError
from hubauth.core.logging import get_logger

logger = get_logger(__name__)

Document = Dict[str, Any]

DEFAULT_DOCUMENT: Document = {"mcpServers": {}, "users": []}


def default_document() -> Document:
    return copy.deepcopy(DEFAULT_DOCUMENT)


def _is_valid_document(document: Any) -> bool:
    return (
        isinstance(document, dict)
        and isinstance(document.get("mcpServers", {}), dict)
        and isinstance(document.get("users", []), list)
    )


class FileSettingsStore:
    """Owns the JSON settings document and its in-memory write-through cache.

    All DAOs in file mode share one store per settings path; the store's lock
    serializes every load-modify-save cycle against that path. ``load`` never
    raises: a missing or malformed file yields the default document.
    """

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._cache: Document | None = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the parent directory and a default document when the file is missing."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not await self.exists():
            if not await self.save(default_document()):
                raise StorageFailureError(f"Failed to initialize settings at {self.path}")
            logger.info("settings_initialized", path=str(self.path))

    async def exists(self) -> bool:
        return await asyncio.to_thread(self.path.exists)

    async def load(self) -> Document:
        """Return a private copy of the settings document."""
        if self._cache is None:
            self._cache = await asyncio.to_thread(self._read)
        return copy.deepcopy(self._cache)

    async def save(self, document: Document) -> bool:
        """Persist the whole document; returns False and keeps prior state on failure."""
        async with self._lock:
            return await self._write(document)

    @asynccontextmanager
    async def edit(self) -> AsyncIterator[Document]:
        """Load-modify-save under the store lock. An unchanged document is not rewritten.

        Example:
            async with store.edit() as document:
                document.setdefault("bearerKeys", []).append(key.to_document())
        """
        async with self._lock:
            document = await self.load()
            original = copy.deepcopy(document)
            yield document
            if document == original:
                return
            if not await self._write(document):
                raise StorageFailureError(f"Failed to save settings to {self.path}")

    def clear_cache(self) -> None:
        self._cache = None

    def cache_info(self) -> Dict[str, Any]:
        return {"has_cache": self._cache is not None, "file_path": str(self.path)}

    def _read(self) -> Document:
        try:
            with open(self.path, encoding="utf-8") as fh:
                document = json.load(fh)
        except FileNotFoundError:
            logger.info("settings_file_missing", path=str(self.path))
            return default_document()
        except (OSError, ValueError) as e:
            logger.error("settings_load_failed", path=str(self.path), error=str(e))
            return default_document()

        if not _is_valid_document(document):
            logger.warning("settings_invalid_structure", path=str(self.path))
            return default_document()

        document.setdefault("mcpServers", {})
        document.setdefault("users", [])
        logger.debug("settings_loaded", path=str(self.path))
        return document

    async def _write(self, document: Document) -> bool:
        if not _is_valid_document(document):
            logger.error("settings_save_failed", path=str(self.path), error="invalid structure")
            return False
        try:
            await asyncio.to_thread(self._write_atomic, document)
        except (OSError, TypeError, ValueError) as e:
            logger.error("settings_save_failed", path=str(self.path), error=str(e))
            return False
        self._cache = copy.deepcopy(document)
        logger.debug("settings_saved", path=str(self.path))
        return True

    def _write_atomic(self, document: Document) -> None:
        payload = json.dumps(document, indent=2)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
