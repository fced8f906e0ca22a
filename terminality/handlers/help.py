# python
"""
terminality/handlers/help.py
Handler for `help` listing the commands the local terminal understands.
"""

COMMANDS = [
    ("help", "show this list"),
    ("pwd", "print the current directory"),
    ("cd <dir>", "change directory"),
    ("ls [path]", "list a directory"),
    ("cat <file>", "print a file"),
    ("mkdir <dir>", "create a directory"),
    ("touch <file>", "create an empty file"),
    ("write <file> <text>", "replace a file's contents"),
    ("echo <text> [> file]", "print text or write it to a file"),
    ("rm [-r] <path>", "move a file or folder to the recycle bin"),
    ("mv <src> <dst>", "move or rename"),
    ("trash", "list the recycle bin"),
    ("restore [-f] <name>", "restore an item from the recycle bin"),
    ("count <ext> [path]", "count files with an extension"),
    ("whoami", "print the player name"),
    ("history", "show command history"),
    ("exit", "close the session"),
]


async def run(session, fs, argv):
    width = max(len(usage) for usage, _ in COMMANDS)
    return "\n".join(f"{usage.ljust(width)}  {text}" for usage, text in COMMANDS)
