"""Durable storage for the registered server list.

The store file is a small JSON key-value document; the server list
lives under a fixed key (``"mcp-servers"`` by default) as an array whose
elements are bare URL strings or ``{url, transport?, name?}`` objects.
Other keys in the document are left untouched.

Reads never raise: a missing, unreadable or malformed file is an empty
registry.  Writes are atomic (temp file + ``os.replace``) so another
process never observes a partially written list.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Dict, Iterable, List, Optional

from mcp_watchtower.constants import DEFAULT_STORE_PATH, STORAGE_KEY
from mcp_watchtower.errors import InvalidServerUrlError, StoreError
from mcp_watchtower.registry.models import ServerEntry, dedupe_entries
from mcp_watchtower.sync.bus import RegistryChange, SyncBus

logger = logging.getLogger(__name__)


class ServerStore:
    """File-backed store for :class:`ServerEntry` lists.

    Parameters
    ----------
    path:
        Location of the JSON document.  Parent directories are created
        on first write.
    key:
        Key under which the server array is stored.
    bus:
        Optional :class:`SyncBus`; every successful :meth:`save` is
        published on it.
    """

    def __init__(
        self,
        path: str = DEFAULT_STORE_PATH,
        *,
        key: str = STORAGE_KEY,
        bus: Optional[SyncBus] = None,
    ) -> None:
        self._path = os.path.abspath(os.path.expanduser(path))
        self._key = key
        self._bus = bus

    @property
    def path(self) -> str:
        return self._path

    @property
    def key(self) -> str:
        return self._key

    @property
    def bus(self) -> Optional[SyncBus]:
        return self._bus

    @bus.setter
    def bus(self, bus: Optional[SyncBus]) -> None:
        self._bus = bus

    def exists(self) -> bool:
        return os.path.isfile(self._path)

    # ── public interface ────────────────────────────────────────────

    def load(self) -> List[ServerEntry]:
        """Return the persisted entries, deduplicated by URL."""
        document = self._read_document()
        if document is None:
            return []
        raw_entries = document.get(self._key)
        if raw_entries is None:
            return []
        if not isinstance(raw_entries, list):
            logger.warning(
                "Ignoring server store %s: '%s' is not a list", self._path, self._key
            )
            return []

        entries: List[ServerEntry] = []
        for item in raw_entries:
            try:
                entries.append(ServerEntry.from_raw(item))
            except InvalidServerUrlError as exc:
                logger.warning("Skipping stored server entry: %s", exc)
        unique = dedupe_entries(entries)
        if len(unique) != len(entries):
            logger.debug(
                "Dropped %d duplicate server entries from %s",
                len(entries) - len(unique),
                self._path,
            )
        return unique

    def save(self, entries: Iterable[ServerEntry]) -> None:
        """Overwrite the persisted list and publish the change."""
        unique = dedupe_entries(list(entries))
        document = self._read_document() or {}
        document[self._key] = [e.to_dict() for e in unique]
        self._write_document(document)
        logger.debug("Saved %d server(s) to %s", len(unique), self._path)
        if self._bus is not None:
            self._bus.publish(RegistryChange.entries_changed(unique))

    # ── internals ───────────────────────────────────────────────────

    def _read_document(self) -> Optional[Dict[str, Any]]:
        try:
            with open(self._path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            logger.debug("No server store at %s — starting empty", self._path)
            return None
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
            logger.warning("Corrupt server store %s: %s", self._path, exc)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring server store %s: top level is not an object", self._path)
            return None
        return data

    def _write_document(self, document: Dict[str, Any]) -> None:
        dir_name = os.path.dirname(self._path) or "."
        try:
            os.makedirs(dir_name, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=dir_name, prefix=".servers_", suffix=".tmp")
        except OSError as exc:
            raise StoreError("cannot create temp file", self._path, exc) from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            if isinstance(exc, OSError):
                raise StoreError("write failed", self._path, exc) from exc
            raise
