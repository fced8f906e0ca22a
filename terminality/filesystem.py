# python
"""
terminality/filesystem.py
In-memory virtual filesystem backing the terminal, file manager and
recycle bin.

The tree lives in a single map from absolute path to node. Every mutating
call validates first and only then edits the map, so a failed call leaves
the tree untouched. After each successful mutation the serialized tree is
handed to a debounced save; a burst of edits results in one store write.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

from .bootstrap import default_tree
from .debounce import CallLater
from .errors import (
    DestinationExists,
    DestinationParentNotDirectory,
    InvalidMove,
    NestingLimitExceeded,
    NotAFile,
    ParentNotDirectory,
    SourceNotFound,
)
from .nodes import (
    ROOT_PATH,
    DirNode,
    FileNode,
    Node,
    Nodes,
    snapshot_from_dict,
    snapshot_to_dict,
)
from .paths import is_within, name_of, normalize, parent_of, rebase, split_parts
from .store import DebouncedPersist, SnapshotStore

logger = logging.getLogger(__name__)

HOME_PATH = "/home"
# /home/<user>/<item> is the deepest directory players may create
HOME_MAX_DEPTH = 3
DEFAULT_PERSIST_DELAY = 0.25


class FileSystem:
    """
    Path-addressed tree of files and directories with debounced persistence.

    Construction loads the store's cached snapshot (or the bootstrap tree)
    synchronously; hydrate() may later swap in the authoritative copy once.
    """

    def __init__(
        self,
        store: SnapshotStore,
        *,
        persist_delay: float = DEFAULT_PERSIST_DELAY,
        call_later: Optional[CallLater] = None,
        bootstrap: Callable[[], Nodes] = default_tree,
    ):
        self.store = store
        self._bootstrap = bootstrap
        self._hydrated = False
        self._persister = DebouncedPersist(
            store, persist_delay, call_later, label="filesystem snapshot"
        )
        self.nodes: Nodes = self._load_initial()

    def _load_initial(self) -> Nodes:
        try:
            cached = self.store.get_cached_snapshot()
        except Exception:
            logger.exception("Reading cached snapshot failed; using default tree")
            cached = None
        nodes = snapshot_from_dict(cached)
        if nodes is not None:
            return nodes
        return self._bootstrap()

    # ------------------------------------------------------------------
    # queries

    def get(self, path: str) -> Optional[Node]:
        return self.nodes.get(normalize(path))

    def exists(self, path: str) -> bool:
        return normalize(path) in self.nodes

    def list(self, path: str) -> List[Node]:
        node = self.get(path)
        if not isinstance(node, DirNode):
            return []
        return [self.nodes[child] for child in node.children if child in self.nodes]

    def read(self, path: str) -> Optional[FileNode]:
        node = self.get(path)
        return node if isinstance(node, FileNode) else None

    def walk(self, path: str) -> Iterator[Node]:
        """
        Yield the node at path and everything beneath it, depth first in
        children order. Each path is visited once even if the tree is cyclic,
        and child links leading outside path are not followed.
        """
        start = normalize(path)
        if start not in self.nodes:
            return
        seen: Set[str] = set()
        stack = [start]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            node = self.nodes.get(current)
            if node is None:
                continue
            seen.add(current)
            yield node
            if isinstance(node, DirNode):
                stack.extend(
                    child for child in reversed(node.children) if is_within(child, start)
                )

    def count_files_by_ext(self, ext: str, base_path: Optional[str] = None) -> int:
        count = 0
        for node in self.nodes.values():
            if not isinstance(node, FileNode) or not node.name.endswith(ext):
                continue
            if base_path and not is_within(node.path, base_path):
                continue
            count += 1
        return count

    def to_dict(self) -> Dict[str, Any]:
        return snapshot_to_dict(self.nodes)

    # ------------------------------------------------------------------
    # mutations

    def write(self, path: str, content: str) -> None:
        node = self.get(path)
        if not isinstance(node, FileNode):
            raise NotAFile(normalize(path))
        node.content = content
        self._schedule_persist()

    def mkdir(self, path: str) -> None:
        path = normalize(path)
        if path in self.nodes:
            return
        parent = self._require_parent_dir(path)
        if is_within(path, HOME_PATH) and len(split_parts(path)) > HOME_MAX_DEPTH:
            raise NestingLimitExceeded(path)
        self._attach(DirNode(name=name_of(path), path=path, parent=parent.path), parent)
        self._schedule_persist()

    def touch(self, path: str) -> None:
        path = normalize(path)
        if path in self.nodes:
            return
        parent = self._require_parent_dir(path)
        self._attach(FileNode(name=name_of(path), path=path, parent=parent.path), parent)
        self._schedule_persist()

    def remove(self, path: str) -> None:
        path = normalize(path)
        node = self.nodes.get(path)
        if node is None or path == ROOT_PATH:
            return
        # children go before their directory
        for doomed in reversed(list(self.walk(path))):
            self.nodes.pop(doomed.path, None)
        self._detach(node)
        self._schedule_persist()

    def move(self, src: str, dst: str) -> None:
        src = normalize(src)
        dst = normalize(dst)
        node = self.nodes.get(src)
        if node is None:
            raise SourceNotFound(src)
        if dst in self.nodes:
            raise DestinationExists(dst)
        new_parent = self.nodes.get(parent_of(dst))
        if not isinstance(new_parent, DirNode):
            raise DestinationParentNotDirectory(dst)
        if src == ROOT_PATH or is_within(dst, src):
            raise InvalidMove(dst)

        def moved_path(path: Optional[str]) -> Optional[str]:
            if path is None or not is_within(path, src):
                return path
            return rebase(path, src, dst)

        subtree = list(self.walk(src))
        self._detach(node)
        for moved in subtree:
            del self.nodes[moved.path]
        for moved in subtree:
            moved.path = moved_path(moved.path)
            if moved is node:
                moved.name = name_of(dst)
                moved.parent = new_parent.path
            else:
                moved.parent = moved_path(moved.parent)
            if isinstance(moved, DirNode):
                moved.children = [moved_path(child) for child in moved.children]
            self.nodes[moved.path] = moved
        new_parent.children.append(dst)
        self._schedule_persist()

    def ensure_path(self, path: str) -> None:
        """
        Create every missing ancestor directory of path, top down. The last
        segment itself is left alone.
        """
        parts = split_parts(path)
        current = ""
        for part in parts[:-1]:
            current += "/" + part
            if current not in self.nodes:
                self.mkdir(current)

    def reset(self) -> None:
        self.nodes = self._bootstrap()
        self._schedule_persist()

    # ------------------------------------------------------------------
    # helpers

    def _require_parent_dir(self, path: str) -> DirNode:
        parent = self.nodes.get(parent_of(path))
        if not isinstance(parent, DirNode):
            raise ParentNotDirectory(path)
        return parent

    def _attach(self, node: Node, parent: DirNode) -> None:
        parent.children.append(node.path)
        self.nodes[node.path] = node

    def _detach(self, node: Node) -> None:
        parent = self.nodes.get(node.parent) if node.parent else None
        if isinstance(parent, DirNode):
            parent.children = [child for child in parent.children if child != node.path]

    # ------------------------------------------------------------------
    # persistence

    def _schedule_persist(self) -> None:
        self._persister.schedule(self.to_dict())

    async def flush(self) -> None:
        await self._persister.flush()

    async def hydrate(self) -> bool:
        """
        Replace the whole tree with the store's authoritative snapshot.
        Runs once; local edits made before it resolves are discarded when a
        valid snapshot arrives.
        """
        if self._hydrated:
            return False
        self._hydrated = True
        try:
            data = await self.store.hydrate()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Filesystem hydration failed", exc_info=True)
            return False
        nodes = snapshot_from_dict(data)
        if nodes is None:
            return False
        # the pending save holds the tree that was just discarded
        self._persister.cancel()
        self.nodes = nodes
        return True
