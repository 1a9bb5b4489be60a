"""Shared fixtures for ocnvim tests.

Provides an in-memory editor host, a subprocess result factory, and a
structlog configuration that routes through stdlib logging so caplog works.
"""

import subprocess
from typing import Any

import pytest
import structlog


class FakeHost:
    """EditorHost double with settable probe results and recorded actions."""

    def __init__(
        self,
        argv0: str = "",
        buffer_path: str = "",
        lsp_roots: list[str] | None = None,
        cwd: str = "/",
        is_editor: bool = True,
    ) -> None:
        self.is_editor = is_editor
        self._argv0 = argv0
        self._buffer_path = buffer_path
        self._lsp_roots = list(lsp_roots or [])
        self._cwd = cwd
        self.vars: dict[str, Any] = {}
        self.lua_calls: list[tuple[str, tuple[Any, ...]]] = []
        self.lua_results: list[Any] = []
        self.notifications: list[tuple[str, str]] = []
        self.events: list[dict[str, Any]] = []
        self.modules: set[str] = set()

    def argv0(self) -> str:
        return self._argv0

    def buffer_path(self) -> str:
        return self._buffer_path

    def lsp_root_dirs(self) -> list[str]:
        return list(self._lsp_roots)

    def cwd(self) -> str:
        return self._cwd

    def exec_lua(self, code: str, *args: Any) -> Any:
        self.lua_calls.append((code, args))
        return self.lua_results.pop(0) if self.lua_results else None

    def get_var(self, name: str) -> Any:
        return self.vars.get(name)

    def set_var(self, name: str, value: Any) -> None:
        if value is None:
            self.vars.pop(name, None)
        else:
            self.vars[name] = value

    def notify(self, message: str, level: str = "INFO") -> None:
        self.notifications.append((message, level))

    def emit_event(self, event: dict[str, Any]) -> None:
        self.events.append(event)

    def has_lua_module(self, name: str) -> bool:
        return name in self.modules


def completed(
    args: Any = (), returncode: int = 0, stdout: str = "", stderr: str = ""
) -> subprocess.CompletedProcess[str]:
    """Build a CompletedProcess the way subprocess.run would return it."""
    return subprocess.CompletedProcess(
        args=list(args), returncode=returncode, stdout=stdout, stderr=stderr
    )


@pytest.fixture
def host(tmp_path) -> FakeHost:
    return FakeHost(cwd=str(tmp_path))


@pytest.fixture
def _configure_structlog_for_caplog():
    """Configure structlog to route through stdlib logging so caplog works."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Strip ocnvim/opencode env vars and point OCNVIM_DIR at an empty dir."""
    import os

    for var in list(os.environ):
        if var.startswith(("OCNVIM_", "OPENCODE_")):
            monkeypatch.delenv(var, raising=False)
    for var in ("NVIM", "TMUX", "TMUX_PANE", "KITTY_WINDOW_ID", "WEZTERM_PANE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("OCNVIM_DIR", str(tmp_path / "ocnvim-config"))
    monkeypatch.chdir(tmp_path)
    return tmp_path
