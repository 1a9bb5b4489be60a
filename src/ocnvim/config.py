"""Configuration — reads env vars into an explicit Config object.

Loads the provider choice, launch command, port, event flag and per-provider
options from environment variables (with .env support).
.env loading priority: local .env (cwd) > $OCNVIM_DIR/.env (default ~/.ocnvim).

There is no module-level instance: build one with ``Config()`` and pass it to
``ocnvim.facade.Opencode``, so several configurations can coexist in one
process.
"""

import os
from pathlib import Path

import structlog
from dotenv import load_dotenv

from .host import EditorHost
from .providers import Provider, ProviderOpts, resolve_launch_command, select_provider
from .utils import env_flag, ocnvim_dir

logger = structlog.get_logger()


def _optional_port(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        port = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer port: {e}") from e
    if not 0 < port < 65536:
        raise ValueError(f"{name} must be between 1 and 65535, got {port}")
    return port


def _positive_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number: {e}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw}")
    return value


def _percent(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer percentage: {e}") from e
    if not 0 < value < 100:
        raise ValueError(f"{name} must be between 1 and 99, got {value}")
    return value


class Config:
    """ocnvim configuration loaded from environment variables."""

    def __init__(self, load_env_files: bool = True) -> None:
        self.config_dir = ocnvim_dir()

        # load_dotenv default override=False means first-loaded wins
        if load_env_files:
            local_env = Path(".env")
            global_env = self.config_dir / ".env"
            if local_env.is_file():
                load_dotenv(local_env)
                logger.debug("Loaded env from %s", local_env.resolve())
            if global_env.is_file():
                load_dotenv(global_env)
                logger.debug("Loaded env from %s", global_env)

        # Provider selection: "auto", a provider name, or "false"
        self.provider_name: str = os.getenv("OCNVIM_PROVIDER", "auto")

        self.command: str = resolve_launch_command()
        self.port: int | None = _optional_port("OPENCODE_PORT")
        self.events_enabled: bool = env_flag("OCNVIM_EVENTS", True)
        self.server_timeout: float = _positive_float("OCNVIM_SERVER_TIMEOUT", "2.0")

        # Per-provider layout options
        self.tmux_options = os.getenv("OCNVIM_TMUX_OPTIONS", "-h -l 35%")
        self.kitty_location = os.getenv("OCNVIM_KITTY_LOCATION", "vsplit")
        self.wezterm_direction = os.getenv("OCNVIM_WEZTERM_DIRECTION", "right")
        self.wezterm_percent = _percent("OCNVIM_WEZTERM_PERCENT", "35")
        self.terminal_split = os.getenv("OCNVIM_TERMINAL_SPLIT", "botright vsplit")

        # The active provider; set by resolve_provider() or assigned directly
        self.provider: Provider | None = None

        logger.debug(
            "Config initialized: dir=%s, provider=%s, cmd=%s, port=%s, events=%s",
            self.config_dir,
            self.provider_name,
            self.command,
            self.port,
            self.events_enabled,
        )

    def provider_opts(self, provider_name: str) -> ProviderOpts:
        """Launch options for *provider_name*, with its command override applied."""
        return ProviderOpts(
            cmd=resolve_launch_command(provider_name),
            port=self.port,
            tmux_options=self.tmux_options,
            kitty_location=self.kitty_location,
            wezterm_direction=self.wezterm_direction,
            wezterm_percent=self.wezterm_percent,
            terminal_split=self.terminal_split,
        )

    def resolve_provider(self, host: EditorHost) -> Provider | None:
        """Select the active provider for *host* and store it on the config."""
        self.provider = select_provider(self, host)
        if self.provider is not None:
            logger.debug("Active provider: %s", self.provider.name)
        return self.provider
