"""Server-sent event subscription for the opencode ``/event`` stream.

``subscribe_to_sse(port)`` streams events with httpx until the server
closes the connection, forwarding each decoded ``AssistantEvent`` to the
editor host (``User OpencodeEvent:<type>`` autocmd) and to listeners
registered on an ``EventBus``.

SSE framing handled by ``parse_sse_lines()``:
  - ``data:`` lines accumulate, joined with newlines
  - a blank line ends the event
  - lines starting with ``:`` are comments (keep-alives)
  - ``event:`` names override the type when the payload has none
"""

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from .host import EditorHost

logger = structlog.get_logger()

EVENT_PATH = "/event"
_ANY = "*"


@dataclass(frozen=True, slots=True)
class SSEMessage:
    """One raw server-sent event."""

    data: str
    event: str = "message"
    id: str | None = None


@dataclass(frozen=True, slots=True)
class AssistantEvent:
    """A decoded opencode event: ``{"type": ..., "properties": {...}}``."""

    type: str
    properties: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "properties": self.properties}


async def parse_sse_lines(lines: AsyncIterator[str]) -> AsyncIterator[SSEMessage]:
    """Group raw stream lines into SSE messages."""
    data: list[str] = []
    event = "message"
    event_id: str | None = None
    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if data:
                yield SSEMessage(data="\n".join(data), event=event, id=event_id)
            data, event, event_id = [], "message", None
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        value = value.removeprefix(" ")
        if name == "data":
            data.append(value)
        elif name == "event":
            event = value or "message"
        elif name == "id":
            event_id = value
    if data:
        yield SSEMessage(data="\n".join(data), event=event, id=event_id)


def decode_event(message: SSEMessage) -> AssistantEvent | None:
    """Decode an SSE message's JSON payload; None when it is not an event object."""
    try:
        payload = json.loads(message.data)
    except json.JSONDecodeError:
        logger.debug("Skipping non-JSON SSE payload: %.80s", message.data)
        return None
    if not isinstance(payload, dict):
        return None
    event_type = payload.get("type") or message.event
    properties = payload.get("properties")
    if not isinstance(properties, dict):
        properties = {}
    return AssistantEvent(type=str(event_type), properties=properties)


Listener = Callable[[AssistantEvent], None]


class EventBus:
    """Fan-out of assistant events to callbacks, keyed by event type or ``"*"``."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event_type: str, callback: Listener) -> Callable[[], None]:
        """Register *callback*; returns a function that unregisters it."""
        self._listeners.setdefault(event_type, []).append(callback)

        def _off() -> None:
            callbacks = self._listeners.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return _off

    def emit(self, event: AssistantEvent) -> None:
        for callback in (
            *self._listeners.get(event.type, ()),
            *self._listeners.get(_ANY, ()),
        ):
            try:
                callback(event)
            except Exception:
                logger.exception("Event listener failed for %s", event.type)


def event_url(port: int) -> str:
    return f"http://127.0.0.1:{port}{EVENT_PATH}"


def _new_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None))


async def subscribe_to_sse(
    port: int,
    *,
    host: EditorHost | None = None,
    bus: EventBus | None = None,
    client: httpx.AsyncClient | None = None,
) -> int:
    """Stream events from the server on *port* until it closes the stream.

    Returns the number of events delivered. HTTP and connection errors
    propagate to the caller.
    """
    owns_client = client is None
    if client is None:
        client = _new_client()
    delivered = 0
    try:
        logger.debug("Subscribing to %s", event_url(port))
        async with client.stream(
            "GET", event_url(port), headers={"Accept": "text/event-stream"}
        ) as response:
            response.raise_for_status()
            async for message in parse_sse_lines(response.aiter_lines()):
                event = decode_event(message)
                if event is None:
                    continue
                delivered += 1
                logger.debug("opencode event %s", event.type)
                if bus is not None:
                    bus.emit(event)
                if host is not None:
                    await asyncio.to_thread(host.emit_event, event.to_dict())
    finally:
        if owns_client:
            await client.aclose()
    logger.debug("Event stream on port %d closed after %d event(s)", port, delivered)
    return delivered
