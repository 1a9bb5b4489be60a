"""Runs opencode in a kitty window via kitty remote control.

Requires ``allow_remote_control`` (or ``--listen-on``) in kitty. Windows
are created with ``--keep-focus`` and tagged with a user variable so a
listing always shows which window ocnvim owns.
"""

from __future__ import annotations

import json
import os
import shlex
import shutil
from collections.abc import Iterator
from typing import Any

import structlog

from ocnvim.providers.base import HealthResult, Provider, ProviderOpts, run_cli

logger = structlog.get_logger()

_WINDOW_TYPES = frozenset({"tab", "os-window", "overlay", "background"})
_OWNER_VAR = "ocnvim"


def _iter_windows(listing: list[dict[str, Any]]) -> Iterator[dict[str, Any]]:
    for os_window in listing:
        for tab in os_window.get("tabs", []):
            yield from tab.get("windows", [])


class KittyProvider(Provider):
    name = "kitty"

    @classmethod
    def new(cls, opts: ProviderOpts, host) -> KittyProvider:
        return cls(opts, host)

    @classmethod
    def health(cls, host=None) -> HealthResult:
        if not shutil.which("kitty"):
            return HealthResult.failed(
                "`kitty` executable not found", "Install kitty and make sure it is on PATH"
            )
        if not os.environ.get("KITTY_WINDOW_ID"):
            return HealthResult.failed(
                "not running inside a kitty window",
                "Launch Neovim from within kitty to use this provider",
            )
        try:
            result = run_cli(["kitty", "@", "ls"], check=False)
        except OSError as e:
            return HealthResult.failed(f"`kitty @ ls` failed: {e}")
        if result.returncode != 0:
            return HealthResult.failed(
                "kitty remote control is disabled",
                "Set `allow_remote_control yes` in kitty.conf",
                "Or start kitty with `--listen-on unix:/tmp/kitty`",
            )
        return HealthResult.passed("kitty remote control enabled")

    def _find_window(self, window_id: int) -> dict[str, Any] | None:
        result = run_cli(["kitty", "@", "ls"], check=False)
        if result.returncode != 0:
            return None
        try:
            listing = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.warning("Unparseable `kitty @ ls` output")
            return None
        for window in _iter_windows(listing):
            if window.get("id") == window_id:
                return window
        return None

    def _live_window(self) -> dict[str, Any] | None:
        window_id = self._get_handle()
        if window_id is None:
            return None
        window = self._find_window(int(window_id))
        if window is None:
            logger.debug("Stored kitty window %s is gone", window_id)
            self._set_handle(None)
        return window

    def _launch_args(self, root: str) -> list[str]:
        args = ["kitty", "@", "launch", "--keep-focus", "--cwd", root]
        location = self.opts.kitty_location
        if location in _WINDOW_TYPES:
            args.append(f"--type={location}")
        else:
            args += ["--type=window", f"--location={location}"]
        args += ["--var", f"{_OWNER_VAR}=1", "--title", "opencode"]
        args += shlex.split(self.cmd)
        return args

    def start(self) -> None:
        if self._live_window():
            return
        root = self._project_root()
        window_id = int(run_cli(self._launch_args(root)).stdout.strip())
        self._set_handle(window_id)
        logger.info("Started opencode in kitty window %d (cwd=%s)", window_id, root)

    def stop(self) -> None:
        window = self._live_window()
        if window is None:
            return
        run_cli(["kitty", "@", "close-window", "--match", f"id:{window['id']}"])
        self._set_handle(None)
        logger.info("Stopped opencode in kitty window %s", window["id"])

    def toggle(self) -> None:
        window = self._live_window()
        if window is None:
            self.start()
            return
        if window.get("is_focused"):
            editor_window = os.environ.get("KITTY_WINDOW_ID")
            if editor_window:
                run_cli(["kitty", "@", "focus-window", "--match", f"id:{editor_window}"])
            return
        run_cli(["kitty", "@", "focus-window", "--match", f"id:{window['id']}"])
