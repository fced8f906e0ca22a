# python
"""
tests/test_recycle.py
Recycle bin: soft delete, restore, purge and side-table persistence.
"""
import datetime

import pytest

from terminality.errors import DestinationExists, InvalidMove, RecycleEntryMissing
from terminality.nodes import find_violations
from terminality.recycle import RECYCLE_ROOT, RecycleBin
from terminality.store import MemorySnapshotStore

DELETED_AT = datetime.datetime(2025, 11, 10, 8, 23, 15, tzinfo=datetime.timezone.utc)
STAMP = int(DELETED_AT.timestamp() * 1000)


def _make_bin(fs, timers, store=None) -> RecycleBin:
    return RecycleBin(
        fs,
        store or MemorySnapshotStore(),
        call_later=timers.call_later,
        clock=lambda: DELETED_AT,
    )


def test_delete_file_moves_it_under_recycle_root(fs, timers) -> None:
    bin_ = _make_bin(fs, timers)
    entries = bin_.delete("/home/player/notes.txt")
    assert len(entries) == 1
    entry = entries[0]
    assert entry.recycle_path == f"{RECYCLE_ROOT}/{STAMP}_notes.txt"
    assert entry.original_path == "/home/player/notes.txt"
    assert entry.name == "notes.txt"
    assert entry.deleted_at == "2025-11-10T08:23:15Z"
    assert not fs.exists("/home/player/notes.txt")
    assert fs.read(entry.recycle_path).content.startswith("Welcome")
    assert bin_.entries == entries
    assert find_violations(fs.nodes) == []


def test_delete_missing_path_returns_nothing(fs, timers) -> None:
    bin_ = _make_bin(fs, timers)
    assert bin_.delete("/nope") == []
    assert bin_.entries == []


def test_delete_directory_recycles_each_file(fs, timers) -> None:
    bin_ = _make_bin(fs, timers)
    entries = bin_.delete("/var/log")
    assert [e.recycle_path for e in entries] == [
        f"{RECYCLE_ROOT}/{STAMP}_0_system.log",
        f"{RECYCLE_ROOT}/{STAMP}_1_auth.log",
        f"{RECYCLE_ROOT}/{STAMP}_2_.nethistory",
    ]
    assert not fs.exists("/var/log")
    assert fs.get("/var").children == []
    assert find_violations(fs.nodes) == []


def test_same_name_in_same_millisecond_gets_unique_slot(fs, timers) -> None:
    bin_ = _make_bin(fs, timers)
    fs.touch("/tmp.txt")
    first = bin_.delete("/tmp.txt")[0]
    fs.touch("/tmp.txt")
    second = bin_.delete("/tmp.txt")[0]
    assert first.recycle_path != second.recycle_path
    assert second.recycle_path.endswith("_tmp.txt.1")


def test_recycling_root_or_bin_is_rejected(fs, timers) -> None:
    bin_ = _make_bin(fs, timers)
    bin_.delete("/etc/hosts")
    with pytest.raises(InvalidMove):
        bin_.delete("/")
    with pytest.raises(InvalidMove):
        bin_.delete(RECYCLE_ROOT)


def test_restore_moves_file_back(fs, timers) -> None:
    bin_ = _make_bin(fs, timers)
    entry = bin_.delete("/home/player/notes.txt")[0]
    restored = bin_.restore(entry.recycle_path)
    assert restored == "/home/player/notes.txt"
    assert fs.read("/home/player/notes.txt").content.startswith("Welcome")
    assert not fs.exists(entry.recycle_path)
    assert bin_.entries == []


def test_restore_recreates_missing_folders(fs, timers) -> None:
    bin_ = _make_bin(fs, timers)
    entry = bin_.delete("/var/log")[0]
    bin_.restore(entry.recycle_path)
    assert fs.read("/var/log/system.log") is not None
    assert find_violations(fs.nodes) == []


def test_restore_refuses_to_clobber_without_overwrite(fs, timers) -> None:
    bin_ = _make_bin(fs, timers)
    entry = bin_.delete("/etc/hosts")[0]
    fs.touch("/etc/hosts")
    fs.write("/etc/hosts", "replacement")
    with pytest.raises(DestinationExists):
        bin_.restore(entry.recycle_path)
    assert fs.read("/etc/hosts").content == "replacement"
    assert bin_.find(entry.recycle_path) is not None

    bin_.restore(entry.recycle_path, overwrite=True)
    assert "localhost" in fs.read("/etc/hosts").content


def test_restore_drops_entry_when_file_vanished(fs, timers) -> None:
    bin_ = _make_bin(fs, timers)
    entry = bin_.delete("/etc/hosts")[0]
    fs.remove(entry.recycle_path)
    with pytest.raises(RecycleEntryMissing):
        bin_.restore(entry.recycle_path)
    assert bin_.entries == []


def test_purge_and_empty(fs, timers) -> None:
    bin_ = _make_bin(fs, timers)
    first = bin_.delete("/etc/hosts")[0]
    bin_.delete("/etc/passwd")
    bin_.purge(first.recycle_path)
    assert not fs.exists(first.recycle_path)
    assert len(bin_.entries) == 1
    with pytest.raises(RecycleEntryMissing):
        bin_.purge(first.recycle_path)
    assert bin_.empty() == 1
    assert bin_.entries == []
    assert fs.list(RECYCLE_ROOT) == []


def test_side_table_is_persisted_separately(fs, store, timers) -> None:
    bin_store = MemorySnapshotStore()
    bin_ = _make_bin(fs, timers, bin_store)
    bin_.delete("/etc/hosts")
    timers.fire()
    assert bin_store.saved[-1] == {
        "entries": [
            {
                "recyclePath": f"{RECYCLE_ROOT}/{STAMP}_hosts",
                "originalPath": "/etc/hosts",
                "name": "hosts",
                "deletedAt": "2025-11-10T08:23:15Z",
            }
        ]
    }
    assert f"{RECYCLE_ROOT}/{STAMP}_hosts" in store.saved[-1]["nodes"]


def test_entries_load_from_cache(fs, timers) -> None:
    cached = {
        "entries": [
            {"recyclePath": "/.recycle/1_a.txt", "originalPath": "/a.txt", "name": "a.txt", "deletedAt": "x"}
        ]
    }
    bin_ = _make_bin(fs, timers, MemorySnapshotStore(cached=cached))
    assert bin_.find("/.recycle/1_a.txt").original_path == "/a.txt"


def test_invalid_cached_side_table_is_ignored(fs, timers) -> None:
    bin_ = _make_bin(fs, timers, MemorySnapshotStore(cached={"entries": [{"name": 1}]}))
    assert bin_.entries == []


@pytest.mark.asyncio
async def test_refresh_polls_store(fs, timers) -> None:
    remote = {
        "entries": [
            {"recyclePath": "/.recycle/2_b.txt", "originalPath": "/b.txt", "name": "b.txt", "deletedAt": "y"}
        ]
    }
    bin_ = _make_bin(fs, timers, MemorySnapshotStore(remote=remote))
    assert await bin_.refresh() is True
    assert [e.name for e in bin_.entries] == ["b.txt"]


@pytest.mark.asyncio
async def test_refresh_keeps_entries_on_failure(fs, timers) -> None:
    class OfflineStore(MemorySnapshotStore):
        async def hydrate(self):
            raise ConnectionError("offline")

    bin_ = _make_bin(fs, timers, OfflineStore())
    bin_.delete("/etc/hosts")
    assert await bin_.refresh() is False
    assert len(bin_.entries) == 1


def test_home_root_cannot_be_recycled(fs, timers) -> None:
    bin_ = _make_bin(fs, timers)
    with pytest.raises(InvalidMove):
        bin_.delete("/home")
    assert fs.exists("/home/player/notes.txt")
    assert bin_.delete("/home/player") != []
    assert fs.exists("/home")
