# python
"""
terminality/recycle.py
Recycle bin: soft-deleted files are moved under /.recycle and remembered
in a side table so they can be restored or purged later.
"""
from __future__ import annotations

import asyncio
import datetime
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import jsonschema

from .debounce import CallLater
from .errors import DestinationExists, InvalidMove, RecycleEntryMissing
from .filesystem import DEFAULT_PERSIST_DELAY, HOME_PATH, FileSystem
from .nodes import DirNode, FileNode
from .paths import ROOT, is_within, join, normalize
from .store import DebouncedPersist, SnapshotStore

logger = logging.getLogger(__name__)

RECYCLE_ROOT = "/.recycle"
# every login needs these to create the player's home
PROTECTED_PATHS = (ROOT, HOME_PATH)

ENTRIES_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "$id": "recycle.schema.json",
    "type": "object",
    "properties": {
        "entries": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "recyclePath": {"type": "string"},
                    "originalPath": {"type": "string"},
                    "name": {"type": "string"},
                    "deletedAt": {"type": "string"},
                },
                "required": ["recyclePath", "originalPath", "name", "deletedAt"],
            },
        },
    },
    "required": ["entries"],
}


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass
class RecycleEntry:
    recycle_path: str
    original_path: str
    name: str
    deleted_at: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "recyclePath": self.recycle_path,
            "originalPath": self.original_path,
            "name": self.name,
            "deletedAt": self.deleted_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecycleEntry":
        return cls(
            recycle_path=normalize(data["recyclePath"]),
            original_path=normalize(data["originalPath"]),
            name=data["name"],
            deleted_at=data["deletedAt"],
        )


def _parse_entries(data: Any) -> Optional[List[RecycleEntry]]:
    if not data:
        return None
    try:
        jsonschema.validate(instance=data, schema=ENTRIES_SCHEMA)
    except jsonschema.ValidationError as e:
        logger.debug("Recycle bin schema validation failed: %s", e.message)
        return None
    return [RecycleEntry.from_dict(item) for item in data["entries"]]


class RecycleBin:
    def __init__(
        self,
        fs: FileSystem,
        store: SnapshotStore,
        *,
        persist_delay: float = DEFAULT_PERSIST_DELAY,
        call_later: Optional[CallLater] = None,
        clock: Optional[Callable[[], datetime.datetime]] = None,
    ):
        self.fs = fs
        self.store = store
        self.clock = clock or utc_now
        self._persister = DebouncedPersist(
            store, persist_delay, call_later, label="recycle bin"
        )
        try:
            cached = store.get_cached_snapshot()
        except Exception:
            logger.exception("Reading cached recycle bin failed")
            cached = None
        self.entries: List[RecycleEntry] = _parse_entries(cached) or []

    def find(self, recycle_path: str) -> Optional[RecycleEntry]:
        recycle_path = normalize(recycle_path)
        for entry in self.entries:
            if entry.recycle_path == recycle_path:
                return entry
        return None

    def delete(self, path: str) -> List[RecycleEntry]:
        """
        Move a file, or every file inside a directory, into the bin.
        A directory is removed once its files have been moved out.
        """
        path = normalize(path)
        if path in PROTECTED_PATHS or is_within(path, RECYCLE_ROOT):
            raise InvalidMove(path, "Cannot move to recycle bin")
        node = self.fs.get(path)
        if node is None:
            return []
        if not self.fs.exists(RECYCLE_ROOT):
            self.fs.mkdir(RECYCLE_ROOT)
        now = self.clock()
        stamp = int(now.timestamp() * 1000)
        deleted_at = now.isoformat().replace("+00:00", "Z")

        if isinstance(node, FileNode):
            files = [(node, f"{stamp}_{node.name}")]
        else:
            found = [n for n in self.fs.walk(path) if isinstance(n, FileNode)]
            files = [(f, f"{stamp}_{idx}_{f.name}") for idx, f in enumerate(found)]

        created: List[RecycleEntry] = []
        for file_node, recycle_name in files:
            # move() renames the node in place
            original, name = file_node.path, file_node.name
            target = self._free_slot(recycle_name)
            self.fs.move(original, target)
            created.append(
                RecycleEntry(
                    recycle_path=target,
                    original_path=original,
                    name=name,
                    deleted_at=deleted_at,
                )
            )
        if isinstance(node, DirNode):
            self.fs.remove(path)
        self.entries.extend(created)
        self._schedule_persist()
        return created

    def restore(self, recycle_path: str, overwrite: bool = False) -> str:
        """
        Move a recycled file back to where it came from and return that path.
        """
        entry = self.find(recycle_path)
        if entry is None:
            raise RecycleEntryMissing(normalize(recycle_path))
        if not self.fs.exists(entry.recycle_path):
            self._drop(entry)
            raise RecycleEntryMissing(entry.recycle_path)
        self.fs.ensure_path(entry.original_path)
        if self.fs.exists(entry.original_path):
            if not overwrite:
                raise DestinationExists(entry.original_path)
            self.fs.remove(entry.original_path)
        self.fs.move(entry.recycle_path, entry.original_path)
        self._drop(entry)
        return entry.original_path

    def purge(self, recycle_path: str) -> None:
        entry = self.find(recycle_path)
        if entry is None:
            raise RecycleEntryMissing(normalize(recycle_path))
        self.fs.remove(entry.recycle_path)
        self._drop(entry)

    def empty(self) -> int:
        count = len(self.entries)
        for entry in self.entries:
            self.fs.remove(entry.recycle_path)
        self.entries = []
        self._schedule_persist()
        return count

    async def refresh(self) -> bool:
        """
        Poll the store and adopt its side table when it is valid.
        """
        try:
            data = await self.store.hydrate()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Refreshing recycle bin failed", exc_info=True)
            return False
        entries = _parse_entries(data)
        if entries is None:
            return False
        self.entries = entries
        return True

    async def flush(self) -> None:
        await self._persister.flush()

    def to_dict(self) -> Dict[str, Any]:
        return {"entries": [entry.to_dict() for entry in self.entries]}

    def _free_slot(self, recycle_name: str) -> str:
        target = join(RECYCLE_ROOT, recycle_name)
        counter = 1
        while self.fs.exists(target):
            target = join(RECYCLE_ROOT, f"{recycle_name}.{counter}")
            counter += 1
        return target

    def _drop(self, entry: RecycleEntry) -> None:
        self.entries = [e for e in self.entries if e.recycle_path != entry.recycle_path]
        self._schedule_persist()

    def _schedule_persist(self) -> None:
        self._persister.schedule(self.to_dict())

