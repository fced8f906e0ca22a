# python
"""
terminality/paths.py
Pure helpers for absolute, forward-slash virtual filesystem paths.
"""
from __future__ import annotations

from typing import List, Tuple

ROOT = "/"


def normalize(path: str) -> str:
    """
    Collapse a path to canonical absolute form: a single leading slash,
    no empty segments and no trailing slash except for the root itself.
    """
    if not path:
        return ROOT
    trimmed = path.strip().replace("\\", "/")
    parts = [part for part in trimmed.split("/") if part]
    if not parts:
        return ROOT
    return "/" + "/".join(parts)


def split_parts(path: str) -> Tuple[str, ...]:
    return tuple(part for part in normalize(path).split("/") if part)


def join(base: str, *names: str) -> str:
    parts = list(split_parts(base))
    for name in names:
        parts.extend(part for part in name.split("/") if part)
    return "/" + "/".join(parts)


def parent_of(path: str) -> str:
    """
    Return the containing directory; top-level paths and the root map to "/".
    """
    parts = split_parts(path)
    if len(parts) <= 1:
        return ROOT
    return "/" + "/".join(parts[:-1])


def name_of(path: str) -> str:
    parts = split_parts(path)
    return parts[-1] if parts else ""


def is_within(path: str, base: str) -> bool:
    """
    True when path is base itself or lies beneath it on a segment boundary.
    "/home/playerX" is not within "/home/player".
    """
    path_parts = split_parts(path)
    base_parts = split_parts(base)
    return path_parts[: len(base_parts)] == base_parts


def rebase(path: str, old_base: str, new_base: str) -> str:
    """
    Rewrite a path under old_base to the corresponding path under new_base.

    Segments are compared one by one so that siblings sharing a string
    prefix with old_base are never touched.
    """
    if not is_within(path, old_base):
        raise ValueError(f"{path!r} is not under {old_base!r}")
    tail = split_parts(path)[len(split_parts(old_base)) :]
    return join(new_base, *tail)


def resolve(cwd: str, target: str) -> str:
    """
    Resolve a terminal argument against the current directory.
    Handles "." and ".." segments; ".." never climbs above the root.
    """
    target = (target or "").strip()
    parts: List[str] = [] if target.startswith("/") else list(split_parts(cwd))
    for entry in target.replace("\\", "/").split("/"):
        if not entry or entry == ".":
            continue
        if entry == "..":
            if parts:
                parts.pop()
            continue
        parts.append(entry)
    return "/" + "/".join(parts)
