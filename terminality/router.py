# python
"""
terminality/router.py
Command router for the in-game terminal. Filesystem commands run against
the shared FileSystem; a few informational commands live in handlers/.
"""
import importlib
import shlex
from typing import Callable, Dict, List, Optional, Tuple

from .errors import DestinationExists, FileSystemError, RecycleEntryMissing, SourceNotFound
from .filesystem import FileSystem
from .nodes import DirNode, FileNode, Node
from .paths import join, name_of, resolve
from .recycle import RecycleBin, RecycleEntry
from .session import Session

HANDLER_COMMANDS = ("help", "whoami", "history")

DEFAULT_DIR_PERMS = "drwxr-xr-x"
DEFAULT_FILE_PERMS = "-rw-r--r--"
DEFAULT_TIMESTAMP = "Jan 01 00:00"

Result = Tuple[str, bool]


def _format_ls_entry(node: Node, name: str, owner: str) -> str:
    is_dir = isinstance(node, DirNode)
    perms = DEFAULT_DIR_PERMS if is_dir else DEFAULT_FILE_PERMS
    links = 2 if is_dir else 1
    size = len(node.content.encode()) if isinstance(node, FileNode) else 4096
    return f"{perms} {links:>3} {owner} {owner} {size:>8} {DEFAULT_TIMESTAMP} {name}"


def _split_flags(args: List[str]) -> Tuple[str, List[str]]:
    flags = "".join(arg[1:] for arg in args if arg.startswith("-") and len(arg) > 1)
    rest = [arg for arg in args if not (arg.startswith("-") and len(arg) > 1)]
    return flags, rest


class Router:
    def __init__(
        self,
        fs: FileSystem,
        recycle: Optional[RecycleBin] = None,
        max_output: int = 16_384,
    ):
        self.fs = fs
        self.recycle = recycle
        self.max_output = int(max_output)
        self._builtins: Dict[str, Callable[[Session, List[str]], str]] = {
            "pwd": self._handle_pwd,
            "cd": self._handle_cd,
            "ls": self._handle_ls,
            "cat": self._handle_cat,
            "mkdir": self._handle_mkdir,
            "touch": self._handle_touch,
            "write": self._handle_write,
            "echo": self._handle_echo,
            "rm": self._handle_rm,
            "mv": self._handle_mv,
            "trash": self._handle_trash,
            "restore": self._handle_restore,
            "count": self._handle_count,
        }

    async def dispatch(self, session: Session, line: str) -> Result:
        """
        Dispatch a single input line and return (output, truncated_flag).
        """
        line = (line or "").strip()
        if not line:
            return ("", False)

        try:
            argv: List[str] = shlex.split(line)
        except ValueError:
            # unbalanced quotes; fall back to a naive split
            argv = line.split()

        cmd = argv[0] if argv else ""
        if cmd in HANDLER_COMMANDS:
            module = importlib.import_module(f".handlers.{cmd}", __package__)
            return self._clip(await module.run(session, self.fs, argv))

        builtin = self._builtins.get(cmd)
        if builtin is None:
            return (f"sh: {cmd}: command not found", False)
        return self._clip(builtin(session, argv))

    def _clip(self, out: str) -> Result:
        truncated = len(out.encode()) > self.max_output
        return (out[: self.max_output], truncated)

    # ------------------------------------------------------------------
    # navigation

    def _handle_pwd(self, session: Session, argv: List[str]) -> str:
        return session.cwd

    def _handle_cd(self, session: Session, argv: List[str]) -> str:
        dest = argv[1] if len(argv) > 1 else session.home
        target = resolve(session.cwd, dest)
        node = self.fs.get(target)
        if node is None:
            return f"bash: cd: {dest}: No such file or directory"
        if not isinstance(node, DirNode):
            return f"bash: cd: {dest}: Not a directory"
        session.cwd = target
        return ""

    def _handle_ls(self, session: Session, argv: List[str]) -> str:
        flags, args = _split_flags(argv[1:])
        display = args[0] if args else "."
        node = self.fs.get(resolve(session.cwd, display))
        if node is None:
            return f"ls: cannot access '{display}': No such file or directory"
        long_format = "l" in flags
        show_hidden = "a" in flags
        if isinstance(node, FileNode):
            if long_format:
                return _format_ls_entry(node, display, session.username)
            return display

        children = [
            child
            for child in self.fs.list(node.path)
            if show_hidden or not child.name.startswith(".")
        ]
        if not long_format:
            return "  ".join(
                child.name + ("/" if isinstance(child, DirNode) else "") for child in children
            )
        lines = []
        if show_hidden:
            lines.append(_format_ls_entry(node, ".", session.username))
            parent = self.fs.get(node.parent) if node.parent else node
            lines.append(_format_ls_entry(parent or node, "..", session.username))
        for child in children:
            lines.append(_format_ls_entry(child, child.name, session.username))
        return "\n".join(lines)

    def _handle_cat(self, session: Session, argv: List[str]) -> str:
        if len(argv) < 2:
            return "Usage: cat <file>"
        out: List[str] = []
        for arg in argv[1:]:
            node = self.fs.get(resolve(session.cwd, arg))
            if node is None:
                out.append(f"cat: {arg}: No such file or directory")
            elif isinstance(node, DirNode):
                out.append(f"cat: {arg}: Is a directory")
            else:
                out.append(node.content)
        return "\n".join(out)

    def _handle_count(self, session: Session, argv: List[str]) -> str:
        if len(argv) < 2:
            return "Usage: count <ext> [path]"
        base = resolve(session.cwd, argv[2]) if len(argv) > 2 else None
        return str(self.fs.count_files_by_ext(argv[1], base))

    # ------------------------------------------------------------------
    # mutations

    def _handle_mkdir(self, session: Session, argv: List[str]) -> str:
        flags, args = _split_flags(argv[1:])
        if not args:
            return "mkdir: missing operand"
        out: List[str] = []
        for arg in args:
            path = resolve(session.cwd, arg)
            try:
                if self.fs.exists(path):
                    if "p" not in flags:
                        out.append(f"mkdir: cannot create directory '{arg}': File exists")
                    continue
                if "p" in flags:
                    self.fs.ensure_path(path)
                self.fs.mkdir(path)
            except FileSystemError as e:
                out.append(f"mkdir: cannot create directory '{arg}': {e.message}")
        return "\n".join(out)

    def _handle_touch(self, session: Session, argv: List[str]) -> str:
        if len(argv) < 2:
            return "touch: missing file operand"
        out: List[str] = []
        for arg in argv[1:]:
            try:
                self.fs.touch(resolve(session.cwd, arg))
            except FileSystemError as e:
                out.append(f"touch: cannot touch '{arg}': {e.message}")
        return "\n".join(out)

    def _handle_write(self, session: Session, argv: List[str]) -> str:
        if len(argv) < 2:
            return "Usage: write <file> <text>"
        try:
            self.fs.write(resolve(session.cwd, argv[1]), " ".join(argv[2:]))
        except FileSystemError as e:
            return f"write: {argv[1]}: {e.message}"
        return ""

    def _handle_echo(self, session: Session, argv: List[str]) -> str:
        args = argv[1:]
        redirect = next((i for i, arg in enumerate(args) if arg in (">", ">>")), None)
        if redirect is None:
            return " ".join(args)
        text = " ".join(args[:redirect])
        if redirect + 1 >= len(args):
            return "bash: syntax error near unexpected token `newline'"
        target = args[redirect + 1]
        path = resolve(session.cwd, target)
        node = self.fs.get(path)
        if isinstance(node, DirNode):
            return f"bash: {target}: Is a directory"
        try:
            if node is None:
                self.fs.touch(path)
            content = text
            if node is not None and args[redirect] == ">>" and node.content:
                content = node.content + "\n" + text
            self.fs.write(path, content)
        except FileSystemError:
            return f"bash: {target}: No such file or directory"
        return ""

    def _handle_rm(self, session: Session, argv: List[str]) -> str:
        flags, args = _split_flags(argv[1:])
        if not args:
            return "rm: missing operand"
        out: List[str] = []
        for arg in args:
            path = resolve(session.cwd, arg)
            node = self.fs.get(path)
            if node is None:
                if "f" not in flags:
                    out.append(f"rm: cannot remove '{arg}': No such file or directory")
                continue
            if isinstance(node, DirNode) and "r" not in flags:
                out.append(f"rm: cannot remove '{arg}': Is a directory")
                continue
            if node.parent is None:
                out.append(f"rm: it is dangerous to operate recursively on '{arg}'")
                continue
            try:
                if self.recycle is not None:
                    self.recycle.delete(path)
                else:
                    self.fs.remove(path)
            except FileSystemError as e:
                out.append(f"rm: cannot remove '{arg}': {e.message}")
        return "\n".join(out)

    def _handle_mv(self, session: Session, argv: List[str]) -> str:
        _, args = _split_flags(argv[1:])
        if len(args) < 2:
            return "mv: missing destination file operand"
        src_arg, dst_arg = args[0], args[1]
        src = resolve(session.cwd, src_arg)
        dst = resolve(session.cwd, dst_arg)
        if isinstance(self.fs.get(dst), DirNode):
            dst = join(dst, name_of(src))
        try:
            self.fs.move(src, dst)
        except SourceNotFound:
            return f"mv: cannot stat '{src_arg}': No such file or directory"
        except FileSystemError as e:
            return f"mv: cannot move '{src_arg}' to '{dst_arg}': {e.message}"
        return ""

    # ------------------------------------------------------------------
    # recycle bin

    def _handle_trash(self, session: Session, argv: List[str]) -> str:
        if self.recycle is None:
            return "trash: recycle bin unavailable"
        if not self.recycle.entries:
            return "Recycle Bin is empty"
        return "\n".join(
            f"{name_of(entry.recycle_path)}  {entry.original_path}  {entry.deleted_at}"
            for entry in self.recycle.entries
        )

    def _handle_restore(self, session: Session, argv: List[str]) -> str:
        if self.recycle is None:
            return "restore: recycle bin unavailable"
        flags, args = _split_flags(argv[1:])
        if not args:
            return "Usage: restore [-f] <name>"
        entry = self._find_entry(session, args[0])
        if entry is None:
            return f"restore: {args[0]}: not in recycle bin"
        try:
            restored = self.recycle.restore(entry.recycle_path, overwrite="f" in flags)
        except DestinationExists as e:
            return f"restore: '{e.path}' already exists (use -f to overwrite)"
        except RecycleEntryMissing:
            return f"restore: {args[0]}: file no longer exists in recycle bin"
        except FileSystemError as e:
            return f"restore: {args[0]}: {e.message}"
        return f"restored {restored}"

    def _find_entry(self, session: Session, arg: str) -> Optional[RecycleEntry]:
        path = resolve(session.cwd, arg)
        # newest deletion wins when several entries share a name
        for entry in reversed(self.recycle.entries):
            if arg in (name_of(entry.recycle_path), entry.recycle_path):
                return entry
            if path in (entry.recycle_path, entry.original_path):
                return entry
        return None
