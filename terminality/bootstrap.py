# python
"""
terminality/bootstrap.py
The starting tree every new player gets: a home directory with a note,
a few tools under /usr/bin, and logs and config files hiding clues.
"""
from typing import Dict, List, Tuple

from .nodes import DirNode, FileNode, Nodes, make_root
from .paths import name_of, parent_of

DEFAULT_PLAYER = "player"

DIRECTORIES: List[str] = [
    "/home",
    "/usr",
    "/usr/bin",
    "/var",
    "/var/log",
    "/etc",
]

FILES: List[Tuple[str, str]] = [
    (
        "/var/log/system.log",
        "[2025-11-10 08:23:15] System initialized\n"
        "[2025-11-10 08:23:16] Network interface up\n"
        "[2025-11-10 08:23:18] Unknown connection attempt from 192.168.1.254\n"
        "[2025-11-10 08:23:19] Connection blocked by firewall",
    ),
    (
        "/var/log/auth.log",
        "[2025-11-10 08:20:01] Login attempt: user=admin FAILED\n"
        "[2025-11-10 08:20:15] Login attempt: user=admin FAILED\n"
        "[2025-11-10 08:20:32] Login attempt: user=root FAILED\n"
        "[2025-11-10 08:23:10] Login: user={player} SUCCESS",
    ),
    (
        "/var/log/.nethistory",
        "PING 192.168.1.1 - SUCCESS\n"
        "PING 192.168.1.254 - TIMEOUT\n"
        "SCAN 192.168.1.0/24 - 3 hosts found\n"
        "CONNECT 192.168.1.254:22 - REFUSED",
    ),
    (
        "/usr/bin/netscan",
        "#!/bin/bash\n"
        "# Network Scanner v2.1\n"
        'echo "Scanning network..."\n'
        'echo "Found: 192.168.1.1 (Router)"\n'
        'echo "Found: 192.168.1.100 (Unknown)"\n'
        'echo "Found: 192.168.1.254 (???)"',
    ),
    (
        "/usr/bin/decrypt",
        "#!/bin/bash\n"
        "# File Decryption Tool\n"
        'if [ -z "$1" ]; then\n'
        '  echo "Usage: decrypt <file>"\n'
        "else\n"
        '  echo "Decrypting $1..."\n'
        '  echo "Decryption complete"\n'
        "fi",
    ),
    (
        "/etc/hosts",
        "127.0.0.1 localhost\n"
        "192.168.1.1 gateway\n"
        "192.168.1.254 mystery.local\n"
        "10.0.0.1 secure-server.net",
    ),
    (
        "/etc/passwd",
        "root:x:0:0:root:/root:/bin/bash\n"
        "{player}:x:1000:1000:Player:/home/{player}:/bin/bash\n"
        "admin:x:1001:1001:Admin:/home/admin:/bin/bash\n"
        "guest:x:1002:1002:Guest:/home/guest:/bin/nologin",
    ),
    (
        "/etc/.secret",
        "ACCESS_CODE=ALPHA-7829\nSERVER_KEY=mystery.local:2222\nDECRYPT_PASS=hidden",
    ),
]

WELCOME_NOTE = "Welcome to Terminality OS.\nYou can edit this file."


def default_tree(player: str = DEFAULT_PLAYER) -> Nodes:
    """
    Build a fresh node map. Parents are always created before their
    children so every children list keeps creation order.
    """
    nodes: Nodes = {"/": make_root()}

    def attach(node) -> None:
        parent = nodes[node.parent]
        assert isinstance(parent, DirNode)
        parent.children.append(node.path)
        nodes[node.path] = node

    home = f"/home/{player}"
    for path in DIRECTORIES[:1] + [home] + DIRECTORIES[1:]:
        attach(DirNode(name=name_of(path), path=path, parent=parent_of(path)))
    attach(FileNode(name="notes.txt", path=f"{home}/notes.txt", parent=home, content=WELCOME_NOTE))
    for path, content in FILES:
        attach(
            FileNode(
                name=name_of(path),
                path=path,
                parent=parent_of(path),
                content=content.replace("{player}", player),
            )
        )
    return nodes
