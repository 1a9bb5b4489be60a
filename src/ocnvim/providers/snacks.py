"""snacks.nvim provider — an integrated terminal panel from ``snacks.terminal``.

snacks identifies a terminal by command and cwd, so the handle stored here
is only the cwd the panel was opened with; every action passes the same
pair back to snacks and therefore reaches the panel this provider opened.
"""

from __future__ import annotations

import structlog

from ocnvim.providers.base import HealthResult, Provider, ProviderOpts

logger = structlog.get_logger()

_ENABLED_LUA = """
local ok, snacks = pcall(require, "snacks")
if not ok then
  return false
end
local cfg = snacks.config and snacks.config.terminal
return cfg == nil or cfg.enabled ~= false
"""

_TOGGLE_LUA = """
local cmd, cwd = ...
require("snacks.terminal").toggle(cmd, { cwd = cwd, win = { enter = false } })
"""

_START_LUA = """
local cmd, cwd = ...
local terminal = require("snacks.terminal")
local existing = terminal.get(cmd, { cwd = cwd, create = false })
if existing then
  return false
end
terminal.open(cmd, { cwd = cwd, win = { enter = false } })
return true
"""

_STOP_LUA = """
local cmd, cwd = ...
local term = require("snacks.terminal").get(cmd, { cwd = cwd, create = false })
if not term then
  return false
end
local job = term.buf and vim.b[term.buf].terminal_job_id
if job then
  vim.fn.jobstop(job)
end
term:close()
return true
"""


class SnacksProvider(Provider):
    name = "snacks"

    @classmethod
    def new(cls, opts: ProviderOpts, host) -> SnacksProvider:
        return cls(opts, host)

    @classmethod
    def health(cls, host=None) -> HealthResult:
        if host is None or not host.is_editor:
            return HealthResult.failed(
                "no Neovim instance attached",
                "Run ocnvim from a Neovim terminal or pass --nvim <address>",
            )
        try:
            if not host.has_lua_module("snacks"):
                return HealthResult.failed(
                    "`snacks.nvim` is not installed",
                    "Install folke/snacks.nvim to use the integrated panel",
                )
            if not host.exec_lua(_ENABLED_LUA):
                return HealthResult.failed(
                    "`snacks.terminal` is disabled",
                    "Enable it with `terminal = { enabled = true }` in snacks opts",
                )
        except Exception as e:  # RPC errors from the editor
            return HealthResult.failed(f"could not query snacks.nvim: {e}")
        return HealthResult.passed("snacks.terminal available")

    def _cwd(self) -> str:
        cwd = self._get_handle()
        if cwd is None:
            cwd = self._project_root()
        return str(cwd)

    def start(self) -> None:
        cwd = self._cwd()
        if self.host.exec_lua(_START_LUA, self.cmd, cwd):
            logger.info("Opened opencode in snacks terminal (cwd=%s)", cwd)
        self._set_handle(cwd)

    def stop(self) -> None:
        cwd = self._get_handle()
        if cwd is None:
            return
        if self.host.exec_lua(_STOP_LUA, self.cmd, str(cwd)):
            logger.info("Closed opencode snacks terminal (cwd=%s)", cwd)
        self._set_handle(None)

    def toggle(self) -> None:
        cwd = self._cwd()
        self.host.exec_lua(_TOGGLE_LUA, self.cmd, cwd)
        self._set_handle(cwd)
