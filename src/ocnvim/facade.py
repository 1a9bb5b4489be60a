"""Facade — toggle, start and stop opencode through the configured provider.

``Opencode`` reads the active provider from its ``Config`` on every call,
never caching it. A missing provider, or one that lacks the requested
capability, raises ``ProviderUnavailableError`` with a message pointing at
the health check. After a successful toggle or start the event subscription
is kicked off in the background: port lookup, then the SSE stream. Its
failures become a warning notification and never reach the caller, which
has already returned by then.
"""

import asyncio
import concurrent.futures
from collections.abc import Callable, Coroutine
from typing import Any

import structlog

from .config import Config
from .events import EventBus, subscribe_to_sse
from .host import EditorHost
from .providers import has_capability
from .root import get_project_root
from .server import ServerLocator
from .utils import BackgroundLoop, future_done_callback

logger = structlog.get_logger()

_UNAVAILABLE = "`provider.{}` unavailable — run `:checkhealth opencode` for details"

PendingFuture = asyncio.Future[None] | concurrent.futures.Future[None]
Spawner = Callable[[Coroutine[Any, Any, None]], PendingFuture]


class ProviderUnavailableError(RuntimeError):
    """No active provider, or the active provider lacks the capability."""

    def __init__(self, capability: str) -> None:
        self.capability = capability
        super().__init__(_UNAVAILABLE.format(capability))


class Opencode:
    """Dispatches opencode lifecycle calls to the active provider."""

    def __init__(
        self,
        config: Config,
        host: EditorHost,
        *,
        server: ServerLocator | None = None,
        events: EventBus | None = None,
        spawn: Spawner | None = None,
    ) -> None:
        self._config = config
        self._host = host
        self._server = server or ServerLocator(config, host)
        self.events = events or EventBus()
        self._spawn_fn = spawn
        self._background: BackgroundLoop | None = None
        self._pending: set[PendingFuture] = set()

    @property
    def pending(self) -> tuple[PendingFuture, ...]:
        """Subscription attempts that have not finished yet."""
        return tuple(self._pending)

    def get_project_root(self) -> str:
        return get_project_root(self._host)

    def toggle(self) -> None:
        """Toggle opencode via the configured provider."""
        self._dispatch("toggle")
        self._subscribe_to_sse()

    def start(self) -> None:
        """Start opencode via the configured provider."""
        self._dispatch("start")
        self._subscribe_to_sse()

    def stop(self) -> None:
        """Stop opencode via the configured provider."""
        self._dispatch("stop")

    def _dispatch(self, capability: str) -> None:
        provider = self._config.provider
        if provider is None or not has_capability(provider, capability):
            raise ProviderUnavailableError(capability)
        logger.debug("%s via %s", capability, provider.name)
        getattr(provider, capability)()

    # ── event subscription ───────────────────────────────────────────────

    def _subscribe_to_sse(self) -> None:
        if not self._config.events_enabled:
            return
        future = self._spawn(self._subscribe())
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)
        future.add_done_callback(future_done_callback)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> PendingFuture:
        if self._spawn_fn is not None:
            return self._spawn_fn(coro)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if self._background is None:
                self._background = BackgroundLoop()
            return self._background.submit(coro)
        return loop.create_task(coro)

    async def _subscribe(self) -> None:
        try:
            port = await self._server.get_port(False)
            await subscribe_to_sse(port, host=self._host, bus=self.events)
        except Exception as e:
            message = f"Failed to subscribe to SSE: {e}"
            logger.warning(message)
            await asyncio.to_thread(self._host.notify, message, "WARN")

    def wait_pending(self, timeout: float | None = None) -> None:
        """Block until background subscription attempts finish (or *timeout*).

        Only futures running on the background loop can be waited on here;
        tasks on a caller's own loop are awaited through ``pending``.
        """
        futures = [
            f
            for f in self.pending
            if isinstance(f, concurrent.futures.Future)
        ]
        if futures:
            concurrent.futures.wait(futures, timeout=timeout)
