"""tmux provider — runs opencode in a split pane of the current tmux window.

The pane is created detached (``split-window -d``) so focus stays in the
editor. Toggle moves the pane out of sight with ``break-pane -d`` and brings
it back with ``join-pane``; the pane id survives both moves, so the stored
handle keeps pointing at the same process.
"""

from __future__ import annotations

import os
import shlex
import shutil

import structlog

from ocnvim.providers.base import HealthResult, Provider, ProviderOpts, run_cli

logger = structlog.get_logger()


class TmuxProvider(Provider):
    name = "tmux"

    @classmethod
    def new(cls, opts: ProviderOpts, host) -> TmuxProvider:
        return cls(opts, host)

    @classmethod
    def health(cls, host=None) -> HealthResult:
        if not shutil.which("tmux"):
            return HealthResult.failed(
                "`tmux` executable not found", "Install tmux and make sure it is on PATH"
            )
        if not os.environ.get("TMUX"):
            return HealthResult.failed(
                "not running inside a tmux session",
                "Launch Neovim from within tmux to use this provider",
            )
        return HealthResult.passed("tmux session detected")

    # ── pane queries ─────────────────────────────────────────────────────

    @staticmethod
    def _editor_pane() -> str | None:
        return os.environ.get("TMUX_PANE") or None

    @staticmethod
    def _query(target: str | None, fmt: str) -> str | None:
        args = ["tmux", "display-message", "-p"]
        if target:
            args += ["-t", target]
        args.append(fmt)
        result = run_cli(args, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def _is_alive(self, pane_id: str) -> bool:
        return self._query(pane_id, "#{pane_id}") == pane_id

    def _is_visible(self, pane_id: str) -> bool:
        own_window = self._query(pane_id, "#{window_id}")
        return own_window is not None and own_window == self._query(
            self._editor_pane(), "#{window_id}"
        )

    def _live_pane(self) -> str | None:
        pane_id = self._get_handle()
        if pane_id and self._is_alive(pane_id):
            return pane_id
        if pane_id:
            logger.debug("Stored tmux pane %s is gone", pane_id)
            self._set_handle(None)
        return None

    # ── capabilities ─────────────────────────────────────────────────────

    def start(self) -> None:
        if self._live_pane():
            return
        root = self._project_root()
        args = [
            "tmux",
            "split-window",
            "-d",
            "-P",
            "-F",
            "#{pane_id}",
            *shlex.split(self.opts.tmux_options),
            "-c",
            root,
        ]
        editor_pane = self._editor_pane()
        if editor_pane:
            args += ["-t", editor_pane]
        args.append(self.cmd)
        pane_id = run_cli(args).stdout.strip()
        self._set_handle(pane_id)
        logger.info("Started opencode in tmux pane %s (cwd=%s)", pane_id, root)

    def stop(self) -> None:
        pane_id = self._live_pane()
        if pane_id is None:
            return
        run_cli(["tmux", "kill-pane", "-t", pane_id])
        self._set_handle(None)
        logger.info("Stopped opencode in tmux pane %s", pane_id)

    def toggle(self) -> None:
        pane_id = self._live_pane()
        if pane_id is None:
            self.start()
            return
        if self._is_visible(pane_id):
            run_cli(["tmux", "break-pane", "-d", "-s", pane_id])
            logger.debug("Hid tmux pane %s", pane_id)
            return
        args = [
            "tmux",
            "join-pane",
            "-d",
            *shlex.split(self.opts.tmux_options),
            "-s",
            pane_id,
        ]
        editor_pane = self._editor_pane()
        if editor_pane:
            args += ["-t", editor_pane]
        run_cli(args)
        logger.debug("Restored tmux pane %s", pane_id)
