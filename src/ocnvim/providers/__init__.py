"""Terminal back ends that host the opencode process.

Re-exports the provider model, the registry and the selector so consumers
can do ``from ocnvim.providers import list_providers, ...``. Also provides
``resolve_launch_command()`` for the per-provider command override.
"""

import os

from ocnvim.providers.base import (
    CAPABILITIES,
    HealthResult,
    Provider,
    ProviderCommandError,
    ProviderOpts,
    build_command,
    capabilities_of,
    has_capability,
    normalize_health,
)
from ocnvim.providers.registry import (
    ProviderRegistry,
    UnknownProviderError,
    list_providers,
    provider_names,
    registry,
)
from ocnvim.providers.selector import check_health, select_provider

DEFAULT_COMMAND = "opencode"


def resolve_launch_command(provider_name: str | None = None) -> str:
    """Resolve the opencode launch command, applying env var overrides.

    Resolution: ``OCNVIM_<NAME>_COMMAND`` (e.g. ``OCNVIM_TMUX_COMMAND``) if
    set, then ``OPENCODE_COMMAND``, then ``opencode``.
    """
    if provider_name:
        override = os.environ.get(f"OCNVIM_{provider_name.upper()}_COMMAND")
        if override:
            return override
    return os.environ.get("OPENCODE_COMMAND") or DEFAULT_COMMAND


__all__ = [
    "CAPABILITIES",
    "DEFAULT_COMMAND",
    "HealthResult",
    "Provider",
    "ProviderCommandError",
    "ProviderOpts",
    "ProviderRegistry",
    "UnknownProviderError",
    "build_command",
    "capabilities_of",
    "check_health",
    "has_capability",
    "list_providers",
    "normalize_health",
    "provider_names",
    "registry",
    "resolve_launch_command",
    "select_provider",
]
