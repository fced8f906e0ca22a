# python
"""
terminality/store.py
Snapshot stores: where the filesystem and the recycle bin load and save
their plain-data state.

Public API (SnapshotStore):
  get_cached_snapshot() -> dict | None     synchronous, no I/O beyond a local read
  hydrate() -> dict | None                 async fetch of the authoritative copy
  persist(snapshot) -> None                async, best effort
"""
from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import pathlib
from typing import Any, Dict, List, Optional, Protocol, Set

from .debounce import CallLater, Debouncer

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    def get_cached_snapshot(self) -> Optional[Dict[str, Any]]: ...
    async def hydrate(self) -> Optional[Dict[str, Any]]: ...
    async def persist(self, snapshot: Dict[str, Any]) -> None: ...


class MemorySnapshotStore:
    """
    In-process store. `remote` plays the authoritative copy returned by
    hydrate(); every persist() replaces it and is recorded in `saved`.
    """

    def __init__(
        self,
        cached: Optional[Dict[str, Any]] = None,
        remote: Optional[Dict[str, Any]] = None,
    ):
        self.cached = copy.deepcopy(cached)
        self.remote = copy.deepcopy(remote)
        self.saved: List[Dict[str, Any]] = []

    def get_cached_snapshot(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.cached)

    async def hydrate(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.remote)

    async def persist(self, snapshot: Dict[str, Any]) -> None:
        data = copy.deepcopy(snapshot)
        self.saved.append(data)
        self.cached = data
        self.remote = copy.deepcopy(data)


class JsonFileSnapshotStore:
    """
    Keep one JSON document on disk. The document read at construction
    time serves as the cached snapshot.
    """

    def __init__(self, path: pathlib.Path):
        self.path = pathlib.Path(path)
        self._cached = self._read()

    def _read(self) -> Optional[Dict[str, Any]]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            data = json.loads(text)
        except ValueError:
            logger.warning("Ignoring unreadable snapshot file %s", self.path)
            return None
        return data if isinstance(data, dict) else None

    def _write(self, snapshot: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(snapshot, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def get_cached_snapshot(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._cached)

    async def hydrate(self) -> Optional[Dict[str, Any]]:
        data = await asyncio.to_thread(self._read)
        if data is not None:
            self._cached = data
        return copy.deepcopy(data)

    async def persist(self, snapshot: Dict[str, Any]) -> None:
        data = copy.deepcopy(snapshot)
        await asyncio.to_thread(self._write, data)
        self._cached = data


class DebouncedPersist:
    """
    Coalesce saves to a store: the latest payload is written once the
    delay passes without a newer one. Store failures are logged and
    dropped; the caller's in-memory state remains the source of truth.
    """

    def __init__(
        self,
        store: SnapshotStore,
        delay: float,
        call_later: Optional[CallLater] = None,
        label: str = "snapshot",
    ):
        self.store = store
        self.label = label
        self._tasks: Set["asyncio.Task[None]"] = set()
        self._debouncer = Debouncer(delay, self._run, call_later)

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def schedule(self, payload: Dict[str, Any]) -> None:
        self._debouncer.schedule(payload)

    def cancel(self) -> None:
        """
        Drop the pending payload without writing it.
        """
        self._debouncer.cancel()

    def _run(self, payload: Dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._persist_quietly(payload))
            return
        task = loop.create_task(self._persist_quietly(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _persist_quietly(self, payload: Dict[str, Any]) -> None:
        try:
            await self.store.persist(payload)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Persisting %s failed", self.label, exc_info=True)

    async def flush(self) -> None:
        """
        Write a pending payload right away and wait for saves in flight.
        """
        payload = self._debouncer.take()
        if payload is not None:
            await self._persist_quietly(payload)
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
