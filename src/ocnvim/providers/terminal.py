"""Built-in terminal provider — Neovim's own ``:terminal`` in a split window.

The generic fallback: works wherever a Neovim host is attached. The
terminal buffer number is the handle; toggle hides and re-shows the window
without touching the job.
"""

from __future__ import annotations

import structlog

from ocnvim.providers.base import HealthResult, Provider, ProviderOpts

logger = structlog.get_logger()

_START_LUA = """
local cmd, cwd, split = ...
local prev = vim.api.nvim_get_current_win()
vim.cmd(split)
local buf = vim.api.nvim_create_buf(false, true)
vim.api.nvim_win_set_buf(0, buf)
vim.fn.jobstart(cmd, { term = true, cwd = cwd })
vim.bo[buf].bufhidden = "hide"
vim.api.nvim_set_current_win(prev)
return buf
"""

_ALIVE_LUA = """
local buf = ...
if not vim.api.nvim_buf_is_valid(buf) then
  return false
end
local job = vim.b[buf].terminal_job_id
return job ~= nil and vim.fn.jobwait({ job }, 0)[1] == -1
"""

_TOGGLE_LUA = """
local buf, split = ...
local wins = vim.fn.win_findbuf(buf)
if #wins > 0 then
  for _, win in ipairs(wins) do
    vim.api.nvim_win_hide(win)
  end
  return "hidden"
end
local prev = vim.api.nvim_get_current_win()
vim.cmd(split)
vim.api.nvim_win_set_buf(0, buf)
vim.api.nvim_set_current_win(prev)
return "shown"
"""

_STOP_LUA = """
local buf = ...
if not vim.api.nvim_buf_is_valid(buf) then
  return false
end
local job = vim.b[buf].terminal_job_id
if job then
  vim.fn.jobstop(job)
end
vim.api.nvim_buf_delete(buf, { force = true })
return true
"""


class TerminalProvider(Provider):
    name = "terminal"

    @classmethod
    def new(cls, opts: ProviderOpts, host) -> TerminalProvider:
        return cls(opts, host)

    @classmethod
    def health(cls, host=None) -> HealthResult:
        if host is None or not host.is_editor:
            return HealthResult.failed(
                "no Neovim instance attached",
                "Run ocnvim from a Neovim terminal or pass --nvim <address>",
            )
        return HealthResult.passed("Neovim terminal available")

    def _live_buffer(self) -> int | None:
        buf = self._get_handle()
        if buf is None:
            return None
        if self.host.exec_lua(_ALIVE_LUA, int(buf)):
            return int(buf)
        logger.debug("Stored terminal buffer %s has exited", buf)
        self._set_handle(None)
        return None

    def start(self) -> None:
        if self._live_buffer() is not None:
            return
        root = self._project_root()
        buf = self.host.exec_lua(_START_LUA, self.cmd, root, self.opts.terminal_split)
        self._set_handle(int(buf))
        logger.info("Started opencode in terminal buffer %s (cwd=%s)", buf, root)

    def stop(self) -> None:
        buf = self._get_handle()
        if buf is None:
            return
        self.host.exec_lua(_STOP_LUA, int(buf))
        self._set_handle(None)
        logger.info("Stopped opencode in terminal buffer %s", buf)

    def toggle(self) -> None:
        buf = self._live_buffer()
        if buf is None:
            self.start()
            return
        state = self.host.exec_lua(_TOGGLE_LUA, buf, self.opts.terminal_split)
        logger.debug("Terminal buffer %s %s", buf, state)
