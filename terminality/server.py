# python
"""
terminality/server.py
Asyncio telnet host for the in-game terminal using telnetlib3.
"""
import asyncio
import datetime
import logging
import pathlib
import re
import uuid
from typing import Any, Dict, Optional
import telnetlib3
from telnetlib3.telopt import ECHO, WILL
from .bootstrap import default_tree
from .env import env_float, env_int, env_str
from .filesystem import FileSystem
from .nodes import DirNode
from .paths import is_within, split_parts
from .recycle import RecycleBin
from .router import Router
from .session import Session
from .store import JsonFileSnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 2323,
        "banner": "Terminality OS v0.1 - type 'help' for a list of commands",
    },
    "paths": {"data_dir": "data"},
    "limits": {"max_output_bytes": 16384, "max_line_length": 4096},
    "persist_delay_seconds": 0.25,
    "player": "player",
    "version": "0.1",
    "hostname": "terminality",
}

_USERNAME_RE = re.compile(r"[^a-z0-9_\-.]")


def load_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    DEFAULT_CONFIG, then TERMINALITY_* environment variables (a repository
    .env included), then explicit overrides.
    """
    config = {key: dict(value) if isinstance(value, dict) else value for key, value in DEFAULT_CONFIG.items()}
    config["server"]["host"] = env_str("TERMINALITY_HOST", config["server"]["host"])
    config["server"]["port"] = env_int("TERMINALITY_PORT", config["server"]["port"])
    config["paths"]["data_dir"] = env_str("TERMINALITY_DATA_DIR", config["paths"]["data_dir"])
    config["player"] = env_str("TERMINALITY_PLAYER", config["player"])
    config["persist_delay_seconds"] = env_float(
        "TERMINALITY_PERSIST_DELAY", config["persist_delay_seconds"]
    )
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key] = {**config[key], **value}
        else:
            config[key] = value
    return config


def data_paths(config: Dict[str, Any]) -> Dict[str, pathlib.Path]:
    data_dir = pathlib.Path(config["paths"]["data_dir"])
    return {
        "data_dir": data_dir,
        "logs_dir": data_dir / "logs",
        "tty_dir": data_dir / "logs" / "tty",
        "events_file": data_dir / "logs" / "events.jsonl",
        "fs_state": data_dir / "fs.json",
        "recycle_state": data_dir / "recycle.json",
    }


def _ensure_dirs(paths: Dict[str, pathlib.Path]) -> None:
    paths["logs_dir"].mkdir(parents=True, exist_ok=True)
    paths["tty_dir"].mkdir(parents=True, exist_ok=True)


def sanitize_username(raw: str, default: str) -> str:
    name = _USERNAME_RE.sub("", (raw or "").strip().replace(" ", "_").lower())[:30]
    name = name.strip(".")
    return name or default


def prepare_home(fs: FileSystem, home: str) -> None:
    """
    Make sure the player's home directory exists, recreating /home itself
    if a previous session managed to remove it.
    """
    if isinstance(fs.get(home), DirNode):
        return
    fs.ensure_path(home)
    fs.mkdir(home)


def display_path(cwd: str, home: str) -> str:
    if not is_within(cwd, home):
        return cwd
    rest = split_parts(cwd)[len(split_parts(home)):]
    return "/".join(("~",) + rest)


def _normalize_for_terminal(text: str) -> str:
    """
    Convert newline usage to CRLF sequences that telnet clients expect.
    """
    if not text:
        return ""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return normalized.replace("\n", "\r\n")


def build_world(config: Dict[str, Any]):
    """
    Create the filesystem, recycle bin and router shared by every session.
    """
    paths = data_paths(config)
    delay = config["persist_delay_seconds"]
    player = config["player"]
    fs = FileSystem(
        JsonFileSnapshotStore(paths["fs_state"]),
        persist_delay=delay,
        bootstrap=lambda: default_tree(player),
    )
    recycle = RecycleBin(fs, JsonFileSnapshotStore(paths["recycle_state"]), persist_delay=delay)
    router = Router(fs, recycle, max_output=config["limits"]["max_output_bytes"])
    return fs, recycle, router


def make_shell(router: Router, config: Dict[str, Any]):
    paths = data_paths(config)
    hostname = config["hostname"]

    async def shell(reader, writer) -> None:
        peer = writer.get_extra_info("peername") or ("0.0.0.0", 0)
        session_id = str(uuid.uuid4())
        session = Session(
            session_id=session_id,
            # timezone-aware UTC so the close handler can subtract safely
            started_ts=datetime.datetime.now(datetime.timezone.utc).isoformat(),
            username=config["player"],
            remote_ip=peer[0],
            remote_port=peer[1],
            tty_path=str(paths["tty_dir"] / f"{session_id}.log"),
            _events_file=str(paths["events_file"]),
        )
        try:
            if hasattr(writer, "iac"):
                writer.iac(WILL, ECHO)
        except Exception:  # pragma: no cover
            logger.debug("Echo negotiation failed", exc_info=True)
        banner = config["server"]["banner"]
        await session.log("session.connect", "connect", banner=banner)
        await session.write_tty("out", banner)
        try:
            # let telnet negotiation settle so the banner is not interleaved with IAC bytes
            await asyncio.sleep(0.2)
            writer.write(banner + "\r\n")
            writer.write("login: ")
            await writer.drain()
            raw = await reader.readline()
            if raw is None or raw == "":
                await session.log("login.eof", "login")
                return
            session.username = sanitize_username(raw, config["player"])
            session.cwd = session.home
            prepare_home(router.fs, session.home)
            await session.log("login.player", "login", username=session.username)
            writer.write("\r\n")

            max_line = config["limits"]["max_line_length"]
            while True:
                display_cwd = display_path(session.cwd, session.home)
                writer.write(f"{session.username}@{hostname}:{display_cwd}$ ")
                await writer.drain()
                line = await reader.readline()
                if not line:
                    break
                line = line.rstrip("\r\n")[:max_line]
                if not line:
                    continue
                session.record_command(line)
                await session.write_tty("in", line)
                argv = line.split()
                await session.log("command.input", "shell", raw=line, argv=argv)
                if not getattr(writer, "will_echo", False):
                    writer.write(_normalize_for_terminal(line) + "\r\n")
                cmd = argv[0] if argv else ""
                exit_cmd = cmd in ("exit", "logout")
                if exit_cmd:
                    out, truncated = "", False
                else:
                    out, truncated = await router.dispatch(session, line)
                await session.write_tty("out", out)
                await session.log(
                    "command.output", "shell", bytes=len(out.encode()), truncated=truncated
                )
                normalized = _normalize_for_terminal(out)
                if normalized:
                    writer.write("\r\n" + normalized)
                writer.write("\r\n")
                await writer.drain()
                if exit_cmd:
                    break
        except (ConnectionError, asyncio.IncompleteReadError):
            logger.info("Session %s dropped by peer", session_id)
        except Exception:
            # keep the server alive; the failure is recorded for the operator
            logger.exception("Session %s failed", session_id)
        finally:
            started = datetime.datetime.fromisoformat(session.started_ts)
            now = datetime.datetime.now(datetime.timezone.utc)
            duration_ms = int((now - started).total_seconds() * 1000)
            await session.log(
                "session.close",
                "close",
                duration_ms=duration_ms,
                tty_path=session.tty_path,
                commands=len(session.history),
            )
            try:
                writer.close()
            except Exception:
                logger.debug("Closing writer failed", exc_info=True)

    return shell


async def start_server(config: Optional[Dict[str, Any]] = None):
    config = load_config(config)
    paths = data_paths(config)
    _ensure_dirs(paths)
    fs, recycle, router = build_world(config)
    await fs.hydrate()
    await recycle.refresh()

    host = config["server"]["host"]
    port = config["server"]["port"]
    server = await telnetlib3.create_server(
        shell=make_shell(router, config), host=host, port=port
    )

    # report the real port so callers can connect when port=0 (ephemeral)
    actual_host = host
    actual_port = port
    socks = getattr(server, "sockets", None)
    if socks:
        sockname = socks[0].getsockname()
        # sockname can be (host, port) or (host, port, flowinfo, scopeid)
        actual_host, actual_port = sockname[0], sockname[1]
        if actual_host in ("0.0.0.0", "", None, "::"):
            actual_host = "127.0.0.1"

    print(f"Listening on {actual_host}:{actual_port}", flush=True)
    try:
        # block forever until cancelled (e.g., Ctrl+C)
        await asyncio.Event().wait()
    finally:
        server.close()
        await server.wait_closed()
        await fs.flush()
        await recycle.flush()
    return server


def main(argv=None) -> None:
    import argparse

    parser = argparse.ArgumentParser(prog="terminality")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--data-dir", default=None)
    parser.add_argument("--log-level", default=env_str("TERMINALITY_LOG_LEVEL", "INFO"))
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    overrides: Dict[str, Any] = {"server": {}, "paths": {}}
    if args.host is not None:
        overrides["server"]["host"] = args.host
    if args.port is not None:
        overrides["server"]["port"] = args.port
    if args.data_dir is not None:
        overrides["paths"]["data_dir"] = args.data_dir
    try:
        asyncio.run(start_server(overrides))
    except KeyboardInterrupt:
        print("shutting down")


if __name__ == "__main__":
    main()
