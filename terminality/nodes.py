# python
"""
terminality/nodes.py
File and directory records that make up a filesystem snapshot, plus the
plain-data wire format the snapshot is persisted as.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

import jsonschema

from .paths import ROOT, name_of, normalize, parent_of

logger = logging.getLogger(__name__)

ROOT_PATH = ROOT

FILE_TYPE = "file"
DIR_TYPE = "dir"


@dataclass
class FileNode:
    name: str
    path: str
    parent: Optional[str]
    content: str = ""

    @property
    def type(self) -> str:
        return FILE_TYPE


@dataclass
class DirNode:
    name: str
    path: str
    parent: Optional[str]
    children: List[str] = field(default_factory=list)

    @property
    def type(self) -> str:
        return DIR_TYPE


Node = Union[FileNode, DirNode]
Nodes = Dict[str, Node]


NODE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "type": {"type": "string", "enum": [FILE_TYPE, DIR_TYPE]},
        "name": {"type": "string"},
        "path": {"type": "string"},
        "parent": {"type": ["string", "null"]},
        "content": {"type": "string"},
        "children": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["type"],
}

SNAPSHOT_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "$id": "snapshot.schema.json",
    "type": "object",
    "properties": {
        "nodes": {
            "type": "object",
            "additionalProperties": NODE_SCHEMA,
        },
    },
    "required": ["nodes"],
}


def make_root() -> DirNode:
    return DirNode(name="", path=ROOT_PATH, parent=None)


def node_to_dict(node: Node) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "type": node.type,
        "name": node.name,
        "path": node.path,
        "parent": node.parent,
    }
    if isinstance(node, DirNode):
        data["children"] = list(node.children)
    else:
        data["content"] = node.content
    return data


def node_from_dict(path: str, data: Mapping[str, Any]) -> Node:
    """
    Build a node stored under the given map key. The key wins over any
    path recorded inside the record so a node always lives at its own path.
    """
    path = normalize(path)
    name = data.get("name")
    if name is None:
        name = name_of(path)
    parent = None if path == ROOT_PATH else normalize(data.get("parent") or parent_of(path))
    if data.get("type") == DIR_TYPE:
        children = [normalize(child) for child in data.get("children") or []]
        return DirNode(name=name, path=path, parent=parent, children=children)
    return FileNode(name=name, path=path, parent=parent, content=data.get("content") or "")


def snapshot_to_dict(nodes: Mapping[str, Node]) -> Dict[str, Any]:
    return {"nodes": {path: node_to_dict(node) for path, node in nodes.items()}}


def snapshot_from_dict(data: Any) -> Optional[Nodes]:
    """
    Parse a persisted snapshot. Returns None when the payload does not match
    the schema, has no root directory or its links do not form a consistent
    tree, so callers can fall back safely.
    """
    if not data:
        return None
    try:
        jsonschema.validate(instance=data, schema=SNAPSHOT_SCHEMA)
    except jsonschema.ValidationError as e:
        logger.debug("Snapshot schema validation failed: %s", e.message)
        return None
    raw_nodes = data["nodes"]
    root = raw_nodes.get(ROOT_PATH)
    if not root or root.get("type") != DIR_TYPE:
        return None
    nodes: Nodes = {}
    for key, value in raw_nodes.items():
        node = node_from_dict(key, value)
        nodes[node.path] = node
    problems = find_violations(nodes)
    if problems:
        logger.warning("Rejecting inconsistent snapshot: %s", "; ".join(problems[:5]))
        return None
    return nodes


def find_violations(nodes: Mapping[str, Node]) -> List[str]:
    """
    Report every broken structural invariant of a snapshot; an empty list
    means the tree is consistent.
    """
    problems: List[str] = []
    root = nodes.get(ROOT_PATH)
    if not isinstance(root, DirNode):
        problems.append("root is missing or not a directory")
    elif root.parent is not None:
        problems.append("root has a parent")

    for key, node in nodes.items():
        if node.path != key:
            problems.append(f"{key}: stored under a different path {node.path}")
        if key == ROOT_PATH:
            continue
        parent = nodes.get(node.parent) if node.parent else None
        if not isinstance(parent, DirNode):
            problems.append(f"{key}: parent {node.parent} is not a directory")
        elif key not in parent.children:
            problems.append(f"{key}: missing from children of {node.parent}")
    for key, node in nodes.items():
        if not isinstance(node, DirNode):
            continue
        if len(set(node.children)) != len(node.children):
            problems.append(f"{key}: duplicate children")
        for child_path in node.children:
            child = nodes.get(child_path)
            if child is None:
                problems.append(f"{key}: dangling child {child_path}")
            elif child.parent != key:
                problems.append(f"{key}: child {child_path} points at {child.parent}")
    return problems
