"""Editor host access for the environment probes and editor actions ocnvim uses.

Two hosts satisfy the ``EditorHost`` protocol:
  - NvimHost: a running Neovim reached over msgpack-RPC (pynvim). One
    connection is opened per thread, since an RPC session must only be
    driven from the thread that owns it.
  - ProcessHost: no editor attached. argv comes from the command line,
    there is no buffer and no language server, notifications go to the log.

``connect_host()`` picks one based on the socket address ($NVIM or --nvim).
"""

import os
import threading
from collections.abc import Callable
from typing import Any, Literal, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger()

NotifyLevel = Literal["DEBUG", "INFO", "WARN", "ERROR"]

EVENT_AUTOCMD_PATTERN = "OpencodeEvent"

_LSP_ROOTS_LUA = """
local roots = {}
for _, client in ipairs(vim.lsp.get_clients({ bufnr = 0 })) do
  if client.config and client.config.root_dir then
    table.insert(roots, client.config.root_dir)
  end
end
return roots
"""

_NOTIFY_LUA = "vim.notify(..., vim.log.levels[select(2, ...)])"

_EMIT_EVENT_LUA = """
local event = ...
vim.api.nvim_exec_autocmds("User", {
  pattern = "OpencodeEvent:" .. event.type,
  data = event,
})
"""

_HAS_MODULE_LUA = "return (pcall(require, ...))"


class HostError(RuntimeError):
    """Raised when the host cannot perform an editor action."""


@runtime_checkable
class EditorHost(Protocol):
    """What ocnvim needs from the editor it runs against."""

    is_editor: bool

    def argv0(self) -> str: ...

    def buffer_path(self) -> str: ...

    def lsp_root_dirs(self) -> list[str]: ...

    def cwd(self) -> str: ...

    def exec_lua(self, code: str, *args: Any) -> Any: ...

    def get_var(self, name: str) -> Any: ...

    def set_var(self, name: str, value: Any) -> None: ...

    def notify(self, message: str, level: NotifyLevel = "INFO") -> None: ...

    def emit_event(self, event: dict[str, Any]) -> None: ...

    def has_lua_module(self, name: str) -> bool: ...


class NvimHost:
    """Neovim over msgpack-RPC.

    *attach* defaults to ``pynvim.attach`` and is called as
    ``attach("socket", path=address)`` once per thread.
    """

    is_editor = True

    def __init__(
        self,
        address: str,
        attach: Callable[..., Any] | None = None,
    ) -> None:
        if attach is None:
            import pynvim

            attach = pynvim.attach
        self.address = address
        self._attach = attach
        self._local = threading.local()

    @property
    def nvim(self) -> Any:
        nvim = getattr(self._local, "nvim", None)
        if nvim is None:
            logger.debug(
                "Attaching to nvim at %s (thread %s)",
                self.address,
                threading.current_thread().name,
            )
            nvim = self._attach("socket", path=self.address)
            self._local.nvim = nvim
        return nvim

    def argv0(self) -> str:
        return str(self.nvim.call("argv", 0) or "")

    def buffer_path(self) -> str:
        return str(self.nvim.current.buffer.name or "")

    def lsp_root_dirs(self) -> list[str]:
        roots = self.nvim.exec_lua(_LSP_ROOTS_LUA) or []
        return [str(r) for r in roots if r]

    def cwd(self) -> str:
        return str(self.nvim.call("getcwd"))

    def exec_lua(self, code: str, *args: Any) -> Any:
        return self.nvim.exec_lua(code, *args)

    def get_var(self, name: str) -> Any:
        return self.nvim.vars.get(name)

    def set_var(self, name: str, value: Any) -> None:
        if value is None:
            self.nvim.command(f"unlet! g:{name}")
        else:
            self.nvim.vars[name] = value

    def notify(self, message: str, level: NotifyLevel = "INFO") -> None:
        self.nvim.exec_lua(_NOTIFY_LUA, message, level)

    def emit_event(self, event: dict[str, Any]) -> None:
        self.nvim.exec_lua(_EMIT_EVENT_LUA, event)

    def has_lua_module(self, name: str) -> bool:
        return bool(self.nvim.exec_lua(_HAS_MODULE_LUA, name))


class ProcessHost:
    """Stand-in host when no editor is attached."""

    is_editor = False

    def __init__(self, argv: list[str] | None = None, cwd: str | None = None) -> None:
        self._argv = list(argv or [])
        self._cwd = cwd
        self._vars: dict[str, Any] = {}

    def argv0(self) -> str:
        return self._argv[0] if self._argv else ""

    def buffer_path(self) -> str:
        return ""

    def lsp_root_dirs(self) -> list[str]:
        return []

    def cwd(self) -> str:
        return self._cwd or os.getcwd()

    def exec_lua(self, code: str, *args: Any) -> Any:
        raise HostError("no editor attached (set $NVIM or pass --nvim)")

    def get_var(self, name: str) -> Any:
        return self._vars.get(name)

    def set_var(self, name: str, value: Any) -> None:
        if value is None:
            self._vars.pop(name, None)
        else:
            self._vars[name] = value

    def notify(self, message: str, level: NotifyLevel = "INFO") -> None:
        if level == "ERROR":
            logger.error(message)
        elif level == "WARN":
            logger.warning(message)
        elif level == "DEBUG":
            logger.debug(message)
        else:
            logger.info(message)

    def emit_event(self, event: dict[str, Any]) -> None:
        logger.debug("%s %s", EVENT_AUTOCMD_PATTERN, event.get("type", ""))

    def has_lua_module(self, name: str) -> bool:
        return False


def connect_host(address: str | None, argv: list[str] | None = None) -> EditorHost:
    """Return an NvimHost for a non-empty socket *address*, else a ProcessHost."""
    if address:
        return NvimHost(address)
    return ProcessHost(argv)
