"""Shared utility functions used across multiple ocnvim modules.

Provides:
  - ocnvim_dir(): resolve config directory from OCNVIM_DIR env var.
  - env_flag(): parse a boolean environment variable.
  - has_port_option(): detect an explicit ``--port`` in a command line.
  - BackgroundLoop: a daemon thread running an asyncio loop for
    fire-and-forget coroutines submitted from synchronous code.
  - future_done_callback(): log unhandled exceptions from background futures.
"""

import asyncio
import concurrent.futures
import os
import shlex
import threading
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger()

OCNVIM_DIR_ENV = "OCNVIM_DIR"

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


def ocnvim_dir() -> Path:
    """Resolve config directory from OCNVIM_DIR env var or default ~/.ocnvim."""
    raw = os.environ.get(OCNVIM_DIR_ENV, "")
    return Path(raw) if raw else Path.home() / ".ocnvim"


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean env var. Raises ValueError for unrecognised values."""
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {raw!r}")


def has_port_option(cmd: str) -> bool:
    """Return True if *cmd* already passes ``--port`` (``--port N`` or ``--port=N``)."""
    try:
        tokens = shlex.split(cmd)
    except ValueError:
        tokens = cmd.split()
    return any(tok == "--port" or tok.startswith("--port=") for tok in tokens)


class BackgroundLoop:
    """An asyncio loop running forever on a daemon thread.

    Started lazily on first ``submit()``. Coroutines submitted from
    synchronous code run there; the returned concurrent future can be
    waited on or ignored.
    """

    def __init__(self, name: str = "ocnvim-events") -> None:
        self._name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def _ensure_running(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=loop.run_forever, name=self._name, daemon=True
                )
                thread.start()
                self._loop = loop
                self._thread = thread
                logger.debug("Started background loop %s", self._name)
            return self._loop

    def submit(
        self, coro: Coroutine[Any, Any, None]
    ) -> concurrent.futures.Future[None]:
        """Schedule *coro* on the background loop."""
        loop = self._ensure_running()
        return asyncio.run_coroutine_threadsafe(coro, loop)


def future_done_callback(
    future: asyncio.Future[None] | concurrent.futures.Future[None],
) -> None:
    """Log unhandled exceptions from background tasks or futures.

    Attach to any fire-and-forget task via ``add_done_callback``.
    Suppresses cancellation (normal shutdown).
    """
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Background task failed", exc_info=exc)
