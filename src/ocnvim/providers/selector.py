"""Picks the one active provider for a session.

``select_provider()`` honours an explicit choice from config (or ``false``
to disable providers), otherwise walks the registry in order and takes the
first provider whose health check passes: snacks, kitty, wezterm, tmux,
then the built-in terminal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from ocnvim.providers.base import (
    HealthResult,
    Provider,
    ProviderOpts,
    has_capability,
    normalize_health,
)
from ocnvim.providers.registry import UnknownProviderError, registry

if TYPE_CHECKING:
    from ocnvim.config import Config
    from ocnvim.host import EditorHost

logger = structlog.get_logger()

DISABLED_NAMES = frozenset({"false", "none", "off"})
AUTO_NAMES = frozenset({"", "auto"})


def check_health(cls: type[Provider], host: EditorHost | None) -> HealthResult:
    """Run *cls*'s health check; a missing check or a crash counts as failure."""
    if not has_capability(cls, "health"):
        return HealthResult.failed(f"provider {cls.name!r} has no health check")
    try:
        return normalize_health(cls.health(host))
    except Exception as e:
        logger.debug("Health check for %s raised: %r", cls.name, e)
        return HealthResult.failed(f"health check raised {type(e).__name__}: {e}")


def build_provider(
    cls: type[Provider], opts: ProviderOpts, host: EditorHost
) -> Provider:
    """Construct *cls* through its ``new`` capability when it has one."""
    if has_capability(cls, "new"):
        return cls.new(opts, host)
    return cls(opts, host)


def select_provider(config: Config, host: EditorHost) -> Provider | None:
    """Return the provider *config* asks for, or ``None`` when none is usable."""
    name = config.provider_name.strip().lower()
    if name in DISABLED_NAMES:
        logger.debug("Providers disabled by config")
        return None

    if name not in AUTO_NAMES:
        try:
            cls = registry.get(name)
        except UnknownProviderError as e:
            logger.warning("%s", e)
            return None
        health = check_health(cls, host)
        if not health.ok:
            logger.warning("Provider %r is unhealthy: %s", name, health.message)
        return build_provider(cls, config.provider_opts(name), host)

    for candidate in registry.names():
        try:
            cls = registry.get(candidate)
        except ImportError as e:
            logger.debug("Provider %r unavailable: %s", candidate, e)
            continue
        health = check_health(cls, host)
        if health.ok:
            logger.debug("Auto-selected provider %r", candidate)
            return build_provider(cls, config.provider_opts(candidate), host)
        logger.debug("Skipping provider %r: %s", candidate, health.message)

    logger.debug("No provider passed its health check")
    return None
