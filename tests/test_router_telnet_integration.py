# python
"""
tests/test_router_telnet_integration.py
Live integration helpers that launch the terminality telnet server and issue
real commands against the shared filesystem.
"""
import asyncio
import re
import sys
import time
from pathlib import Path

import pytest

telnetlib3 = pytest.importorskip("telnetlib3")

PY = sys.executable
LOGIN_PROMPT = "login: "
PROMPT_SUFFIX = "$ "


async def start_server_proc(data_dir: Path):
    print("[test] launching terminality server")
    proc = await asyncio.create_subprocess_exec(
        PY, "-u", "-m", "terminality.server", "--port", "0", "--data-dir", str(data_dir),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(Path(__file__).resolve().parents[1]),
    )
    start = time.time()
    host = None
    port = None
    while True:
        if proc.stdout.at_eof():
            raise RuntimeError("Server exited before listening")
        line = await proc.stdout.readline()
        if not line:
            await asyncio.sleep(0.05)
            if time.time() - start > 5.0:
                break
            continue
        text = line.decode("utf-8", errors="replace").strip()
        match = re.search(r"Listening on ([0-9\.]+):([0-9]+)", text)
        if match:
            host = match.group(1)
            port = int(match.group(2))
            break
        if time.time() - start > 5.0:
            break
    if host is None or port is None:
        err = await proc.stderr.read()
        raise RuntimeError(
            "Failed to start server; stderr=" + err.decode("utf-8", errors="replace")
        )
    print(f"[test] server listening on {host}:{port}")
    return proc, host, port


async def stop_server_proc(proc):
    print("[test] stopping terminality server")
    proc.terminate()
    try:
        await asyncio.wait_for(proc.wait(), timeout=3.0)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()


async def _read_until(reader, delimiter, timeout=5.0):
    buffer = ""
    deadline = time.time() + timeout
    while not buffer.endswith(delimiter):
        remaining = deadline - time.time()
        if remaining <= 0:
            raise asyncio.TimeoutError(f"no {delimiter!r} in {buffer!r}")
        chunk = await asyncio.wait_for(reader.read(1024), timeout=remaining)
        if not chunk:
            break
        buffer += chunk
    return buffer


def normalize_text(raw: str) -> str:
    """
    Normalize server output to simple newlines without the surrounding blank lines.
    """
    return raw.replace("\r\n", "\n").strip("\n")


class TelnetSession:
    """
    Async helper that keeps a telnet connection open so multiple commands can share the same session.
    """

    def __init__(self, host, port, *, username="pytest"):
        self.host = host
        self.port = port
        self.username = username
        self.reader = None
        self.writer = None

    async def __aenter__(self):
        self.reader, self.writer = await telnetlib3.open_connection(
            host=self.host, port=self.port, encoding="utf-8"
        )
        await _read_until(self.reader, LOGIN_PROMPT)
        self.writer.write(f"{self.username}\r\n")
        await self.writer.drain()
        await _read_until(self.reader, PROMPT_SUFFIX)
        return self

    async def __aexit__(self, exc_type, exc, exc_tb):
        await self.close()

    async def run_command(self, command: str) -> str:
        """
        Send one command and return what the server printed for it, with
        the echoed command line and the next prompt removed.
        """
        if self.writer is None:
            raise RuntimeError("Telnet session is not connected")
        self.writer.write(f"{command}\r\n")
        await self.writer.drain()
        response = normalize_text(await _read_until(self.reader, PROMPT_SUFFIX))
        lines = response.split("\n")
        # drop the trailing prompt line
        lines = lines[:-1]
        if lines and lines[0].strip() == command:
            lines = lines[1:]
        return "\n".join(lines).strip("\n")

    async def close(self):
        if self.writer is None:
            return
        self.writer.close()
        self.reader = None
        self.writer = None


@pytest.mark.asyncio
async def test_server_dispatches_whoami(tmp_path):
    proc, host, port = await start_server_proc(tmp_path)
    try:
        async with TelnetSession(host, port, username="pytest") as session:
            result = await session.run_command("whoami")
    finally:
        await stop_server_proc(proc)

    assert result == "pytest"


@pytest.mark.asyncio
async def test_server_shares_filesystem_between_commands(tmp_path):
    proc, host, port = await start_server_proc(tmp_path)
    try:
        async with TelnetSession(host, port, username="pytest") as session:
            pwd = await session.run_command("pwd")
            await session.run_command("echo ping > probe.txt")
            cat = await session.run_command("cat probe.txt")
            await session.run_command("cd /etc")
            moved = await session.run_command("pwd")
            hosts = await session.run_command("cat hosts")
    finally:
        await stop_server_proc(proc)

    assert pwd == "/home/pytest"
    assert cat == "ping"
    assert moved == "/etc"
    assert "10.0.0.1 secure-server.net" in hosts.split("\n")


@pytest.mark.asyncio
async def test_server_reports_unknown_command(tmp_path):
    proc, host, port = await start_server_proc(tmp_path)
    try:
        async with TelnetSession(host, port) as session:
            result = await session.run_command("sudo su")
    finally:
        await stop_server_proc(proc)

    assert result == "sh: sudo: command not found"
