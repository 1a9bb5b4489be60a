"""Discovery of the opencode server and the port it listens on.

``ServerLocator.get_port(force)`` resolution:
  1. OPENCODE_PORT from config
  2. a running ``opencode ... --port N`` whose cwd is the project root
  3. any running ``opencode ... --port N``
With *force*, when nothing is running the active provider's ``start`` is
invoked first. Discovery is polled until ``server_timeout`` elapses, since a
freshly started process needs a moment to appear.

Host calls are made through ``asyncio.to_thread`` because the editor RPC
client cannot be driven from inside a running event loop.
"""

import asyncio
import os
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from .config import Config
from .host import EditorHost
from .providers import Provider, has_capability
from .root import get_project_root

logger = structlog.get_logger()

_POLL_INTERVAL = 0.2
_PORT_RE = re.compile(r"--port(?:=|\s+)(\d+)")


class ServerNotFoundError(RuntimeError):
    """No opencode server could be found within the timeout."""


@dataclass(frozen=True, slots=True)
class ServerProcess:
    """A running opencode process that was launched with ``--port``."""

    pid: int
    port: int
    cwd: str | None


def parse_ps_output(output: str) -> list[ServerProcess]:
    """Extract opencode processes with a ``--port`` from ``ps -eo pid=,args=`` output."""
    servers: list[ServerProcess] = []
    for line in output.splitlines():
        parts = line.strip().split(None, 1)
        if len(parts) != 2 or not parts[0].isdigit():
            continue
        pid_str, args = parts
        executable = os.path.basename(args.split()[0])
        if not executable.startswith("opencode"):
            continue
        match = _PORT_RE.search(args)
        if not match:
            continue
        pid = int(pid_str)
        servers.append(ServerProcess(pid=pid, port=int(match.group(1)), cwd=_proc_cwd(pid)))
    return servers


def _proc_cwd(pid: int) -> str | None:
    try:
        return os.readlink(f"/proc/{pid}/cwd")
    except OSError:
        return None


async def list_servers() -> list[ServerProcess]:
    """Running opencode servers, from the process table."""
    try:
        proc = await asyncio.create_subprocess_exec(
            "ps",
            "-eo",
            "pid=,args=",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        stdout, _ = await proc.communicate()
    except OSError as e:
        logger.debug("ps failed: %s", e)
        return []
    if proc.returncode != 0:
        return []
    return parse_ps_output(stdout.decode(errors="replace"))


def pick_server(servers: list[ServerProcess], root: str) -> ServerProcess | None:
    """Prefer a server running in *root*; otherwise the first one found."""
    if not servers:
        return None
    norm_root = os.path.normpath(root)
    for server in servers:
        if server.cwd and os.path.normpath(server.cwd) == norm_root:
            return server
    return servers[0]


class ServerLocator:
    """Resolves the opencode server port for the current project."""

    def __init__(
        self,
        config: Config,
        host: EditorHost,
        provider_getter: Callable[[], Provider | None] | None = None,
    ) -> None:
        self._config = config
        self._host = host
        self._provider_getter = provider_getter or (lambda: config.provider)

    async def _discover(self, root: str) -> int | None:
        server = pick_server(await list_servers(), root)
        if server is None:
            return None
        logger.debug("Found opencode pid=%d port=%d cwd=%s", server.pid, server.port, server.cwd)
        return server.port

    async def get_port(self, force: bool = False) -> int:
        """Return the server port, starting one first when *force* is set."""
        if self._config.port is not None:
            return self._config.port

        root = await asyncio.to_thread(get_project_root, self._host)
        port = await self._discover(root)
        if port is not None:
            return port

        if force:
            provider = self._provider_getter()
            if provider is None or not has_capability(provider, "start"):
                raise ServerNotFoundError(
                    "no opencode server running and no provider can start one"
                )
            logger.info("No opencode server found, starting one via %s", provider.name)
            await asyncio.to_thread(provider.start)

        deadline = time.monotonic() + self._config.server_timeout
        while time.monotonic() < deadline:
            await asyncio.sleep(_POLL_INTERVAL)
            port = await self._discover(root)
            if port is not None:
                return port

        raise ServerNotFoundError(
            f"no opencode server found after {self._config.server_timeout:g}s "
            "(start opencode with --port, or set OPENCODE_PORT)"
        )
