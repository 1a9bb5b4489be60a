"""WezTerm provider — splits the editor's pane with ``wezterm cli``."""

from __future__ import annotations

import json
import os
import shlex
import shutil

import structlog

from ocnvim.providers.base import HealthResult, Provider, ProviderOpts, run_cli

logger = structlog.get_logger()

_DIRECTIONS = frozenset({"left", "right", "top", "bottom"})


class WeztermProvider(Provider):
    name = "wezterm"

    @classmethod
    def new(cls, opts: ProviderOpts, host) -> WeztermProvider:
        if opts.wezterm_direction not in _DIRECTIONS:
            raise ValueError(
                f"wezterm direction must be one of {sorted(_DIRECTIONS)}, "
                f"got {opts.wezterm_direction!r}"
            )
        return cls(opts, host)

    @classmethod
    def health(cls, host=None) -> HealthResult:
        if not shutil.which("wezterm"):
            return HealthResult.failed(
                "`wezterm` executable not found",
                "Install WezTerm and make sure `wezterm` is on PATH",
            )
        if not os.environ.get("WEZTERM_PANE"):
            return HealthResult.failed(
                "not running inside a WezTerm pane",
                "Launch Neovim from within WezTerm to use this provider",
            )
        return HealthResult.passed("WezTerm pane detected")

    def _pane_ids(self) -> set[int]:
        result = run_cli(["wezterm", "cli", "list", "--format", "json"], check=False)
        if result.returncode != 0:
            return set()
        try:
            panes = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.warning("Unparseable `wezterm cli list` output")
            return set()
        return {p["pane_id"] for p in panes if isinstance(p, dict) and "pane_id" in p}

    def _live_pane(self) -> int | None:
        pane_id = self._get_handle()
        if pane_id is None:
            return None
        if int(pane_id) in self._pane_ids():
            return int(pane_id)
        logger.debug("Stored wezterm pane %s is gone", pane_id)
        self._set_handle(None)
        return None

    def start(self) -> None:
        if self._live_pane() is not None:
            return
        root = self._project_root()
        args = [
            "wezterm",
            "cli",
            "split-pane",
            f"--{self.opts.wezterm_direction}",
            "--percent",
            str(self.opts.wezterm_percent),
            "--cwd",
            root,
        ]
        editor_pane = os.environ.get("WEZTERM_PANE")
        if editor_pane:
            args += ["--pane-id", editor_pane]
        args += ["--", *shlex.split(self.cmd)]
        pane_id = int(run_cli(args).stdout.strip())
        self._set_handle(pane_id)
        logger.info("Started opencode in wezterm pane %d (cwd=%s)", pane_id, root)

        # split-pane activates the new pane
        if editor_pane:
            run_cli(["wezterm", "cli", "activate-pane", "--pane-id", editor_pane], check=False)

    def stop(self) -> None:
        pane_id = self._live_pane()
        if pane_id is None:
            return
        run_cli(["wezterm", "cli", "kill-pane", "--pane-id", str(pane_id)])
        self._set_handle(None)
        logger.info("Stopped opencode in wezterm pane %d", pane_id)

    def toggle(self) -> None:
        if self._live_pane() is None:
            self.start()
        else:
            self.stop()
