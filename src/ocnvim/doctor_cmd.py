"""CLI `ocnvim doctor` — the `:checkhealth opencode` counterpart.

Checks the config directory, the opencode executable, port and event
settings, every built-in provider's health, and which provider would be
selected. Exits 1 when a check fails or no provider is usable.
"""

import shutil
import sys
from collections.abc import Callable

from .config import Config
from .host import EditorHost
from .providers import check_health, list_providers, registry, resolve_launch_command
from .utils import ocnvim_dir

_PASS = "pass"
_FAIL = "fail"
_WARN = "warn"

_SYMBOLS = {_PASS: "✓", _FAIL: "✗", _WARN: "⚠"}


def _print_check(status: str, message: str) -> None:
    """Print a single check result."""
    sym = _SYMBOLS.get(status, "?")
    print(f"  {sym} {message}")


def _print_advice(advice: tuple[str, ...]) -> None:
    for line in advice:
        print(f"      - {line}")


def _check_config_dir() -> tuple[str, str]:
    """Check config directory exists (optional, so only a warning)."""
    config_dir = ocnvim_dir()
    if config_dir.is_dir():
        return _PASS, f"config dir {config_dir} exists"
    return _WARN, f"config dir {config_dir} not found (defaults in use)"


def _check_opencode_command(provider_name: str | None = None) -> tuple[str, str]:
    """Check the opencode launch command resolves on PATH."""
    cmd = resolve_launch_command(provider_name)
    executable = cmd.split()[0] if cmd.split() else cmd
    path = shutil.which(executable)
    if path:
        label = cmd if cmd != executable else executable
        return _PASS, f"{label} found at {path}"
    return _FAIL, f"'{executable}' not found in PATH"


def _check_port(config: Config) -> tuple[str, str]:
    if config.port is None:
        return _PASS, "no port configured (servers are discovered from running processes)"
    return _PASS, f"port {config.port} (--port appended to the launch command)"


def _check_events(config: Config) -> tuple[str, str]:
    if config.events_enabled:
        return _PASS, "event subscription enabled"
    return _WARN, "event subscription disabled (OCNVIM_EVENTS=false)"


def _run_check(check_fn: Callable[[], tuple[str, str]]) -> bool:
    """Run a check function, print it, and return True on failure."""
    status, msg = check_fn()
    _print_check(status, msg)
    return status == _FAIL


def _check_providers(host: EditorHost) -> None:
    """Print the health of every built-in provider (informational)."""
    for cls in list_providers():
        health = check_health(cls, host)
        if health.ok:
            _print_check(_PASS, f"{cls.name}: {health.message or 'available'}")
        else:
            _print_check(_WARN, f"{cls.name}: {health.message}")
            _print_advice(health.advice)


def doctor_main(config: Config, host: EditorHost) -> None:
    """Entry point for `ocnvim doctor`."""
    has_failures = False

    print("ocnvim")
    has_failures |= _run_check(_check_config_dir)
    has_failures |= _run_check(_check_opencode_command)
    has_failures |= _run_check(lambda: _check_port(config))
    has_failures |= _run_check(lambda: _check_events(config))

    print("Providers")
    _check_providers(host)

    name = config.provider_name.strip().lower() or "auto"
    provider = config.provider
    if provider is None:
        _print_check(_FAIL, f"no usable provider (OCNVIM_PROVIDER={name})")
        has_failures = True
    else:
        _print_check(_PASS, f"selected provider: {provider.name} (OCNVIM_PROVIDER={name})")
        # a per-provider command override needs its own PATH check
        if registry.is_valid(provider.name or "") and resolve_launch_command(
            provider.name
        ) != resolve_launch_command():
            has_failures |= _run_check(
                lambda: _check_opencode_command(provider.name)
            )

    sys.exit(1 if has_failures else 0)
