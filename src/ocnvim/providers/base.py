"""Provider model and shared helpers for the terminal back ends.

Pure definitions plus the subprocess helper the multiplexer providers share.
A provider is a class with optional capabilities:

  - ``new(opts, host)`` classmethod: construct an instance
  - ``toggle()`` / ``start()`` / ``stop()``: act on the instance it started
  - ``health(host)`` classmethod: report whether the back end is usable

Capabilities are plain methods a subclass may or may not define, so
``has_capability()`` distinguishes "absent" from "present but failing".
Providers only ever touch the instance they started themselves; its handle
(pane id, window id, buffer number) lives in a host session variable.
"""

from __future__ import annotations

import shlex
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

import structlog

from ocnvim.utils import has_port_option

if TYPE_CHECKING:
    from ocnvim.host import EditorHost

logger = structlog.get_logger()

Capability = Literal["new", "toggle", "start", "stop", "health"]

CAPABILITIES: tuple[Capability, ...] = ("new", "toggle", "start", "stop", "health")

_CLI_TIMEOUT = 10.0


class ProviderCommandError(RuntimeError):
    """A back-end command (tmux, kitty, wezterm) exited with an error."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str) -> None:
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(
            f"`{shlex.join(self.command)}` exited with {returncode}{detail}"
        )


@dataclass(frozen=True, slots=True)
class ProviderOpts:
    """Launch settings shared by every provider."""

    cmd: str = "opencode"
    port: int | None = None
    tmux_options: str = "-h -l 35%"
    kitty_location: str = "vsplit"
    wezterm_direction: str = "right"
    wezterm_percent: int = 35
    terminal_split: str = "botright vsplit"


@dataclass(frozen=True, slots=True)
class HealthResult:
    """Normalised outcome of a provider health check."""

    ok: bool
    message: str = ""
    advice: tuple[str, ...] = ()

    @classmethod
    def passed(cls, message: str = "") -> HealthResult:
        return cls(True, message)

    @classmethod
    def failed(cls, message: str, *advice: str) -> HealthResult:
        return cls(False, message, tuple(advice))


def normalize_health(raw: Any) -> HealthResult:
    """Accept ``True``, ``HealthResult``, an error string, or ``(ok, advice)``."""
    if isinstance(raw, HealthResult):
        return raw
    advice: tuple[str, ...] = ()
    if isinstance(raw, tuple):
        raw, extra = (raw + (None,))[:2]
        if isinstance(extra, str):
            advice = (extra,)
        elif extra:
            advice = tuple(str(a) for a in extra)
    if raw is True:
        return HealthResult(True, "", advice)
    if isinstance(raw, str) and raw:
        return HealthResult(False, raw, advice)
    return HealthResult(False, "health check failed", advice)


def has_capability(provider: Any, name: str) -> bool:
    """True if *provider* (class or instance) defines capability *name*."""
    return callable(getattr(provider, name, None))


def capabilities_of(provider: Any) -> frozenset[str]:
    """The subset of ``CAPABILITIES`` that *provider* defines."""
    return frozenset(c for c in CAPABILITIES if has_capability(provider, c))


def build_command(cmd: str, port: int | None) -> str:
    """Append ``--port <port>`` when a port is configured and *cmd* lacks one."""
    if port is None or has_port_option(cmd):
        return cmd
    return f"{cmd} --port {port}"


def run_cli(
    args: Sequence[str], *, check: bool = True, timeout: float = _CLI_TIMEOUT
) -> subprocess.CompletedProcess[str]:
    """Run a back-end CLI command and return the completed process.

    With *check*, a non-zero exit raises ``ProviderCommandError``. A timeout
    raises it regardless of *check*.
    """
    logger.debug("Running %s", shlex.join(args))
    try:
        result = subprocess.run(
            list(args), capture_output=True, text=True, timeout=timeout
        )
    except subprocess.TimeoutExpired as e:
        raise ProviderCommandError(args, -1, f"timed out after {timeout:g}s") from e
    if check and result.returncode != 0:
        raise ProviderCommandError(args, result.returncode, result.stderr or "")
    return result


class Provider:
    """Base class for the built-in providers.

    Subclasses set ``name`` and define whichever capabilities they support.
    The base class defines none of them.
    """

    name: str | None = None
    cmd: str | None = None

    def __init__(self, opts: ProviderOpts, host: EditorHost) -> None:
        self.opts = opts
        self.host = host
        self.cmd = build_command(opts.cmd, opts.port)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} cmd={self.cmd!r}>"

    @property
    def _handle_var(self) -> str:
        return f"ocnvim_{self.name}_handle"

    def _get_handle(self) -> Any:
        return self.host.get_var(self._handle_var)

    def _set_handle(self, value: Any) -> None:
        self.host.set_var(self._handle_var, value)

    def _project_root(self) -> str:
        from ocnvim.root import get_project_root

        return get_project_root(self.host)
