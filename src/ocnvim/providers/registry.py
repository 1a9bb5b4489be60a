"""Provider registry — maps provider names to lazily imported classes.

The module-level ``registry`` is pre-populated with the five built-in
providers in their fixed order. A provider module is imported only when its
class is requested, so a broken or unavailable back end never prevents the
others from being listed.
"""

import importlib
from collections.abc import Callable

import structlog

from ocnvim.providers.base import Provider

logger = structlog.get_logger()

ProviderFactory = Callable[[], type[Provider]]

BUILTIN_PROVIDERS: tuple[tuple[str, str, str], ...] = (
    ("snacks", "ocnvim.providers.snacks", "SnacksProvider"),
    ("kitty", "ocnvim.providers.kitty", "KittyProvider"),
    ("wezterm", "ocnvim.providers.wezterm", "WeztermProvider"),
    ("tmux", "ocnvim.providers.tmux", "TmuxProvider"),
    ("terminal", "ocnvim.providers.terminal", "TerminalProvider"),
)


class UnknownProviderError(LookupError):
    """Raised when requesting a provider name that is not registered."""


def _lazy(module_name: str, class_name: str) -> ProviderFactory:
    def factory() -> type[Provider]:
        return getattr(importlib.import_module(module_name), class_name)

    return factory


class ProviderRegistry:
    """Ordered mapping of provider name to a factory returning its class.

    Classes are cached per name after the first successful import.
    """

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}
        self._classes: dict[str, type[Provider]] = {}

    def register(self, name: str, factory: ProviderFactory) -> None:
        """Register *factory* under *name* (overwrites silently, keeps order)."""
        self._factories[name] = factory
        self._classes.pop(name, None)
        logger.debug("Registered provider %r", name)

    def is_valid(self, name: str) -> bool:
        return name in self._factories

    def names(self) -> list[str]:
        return list(self._factories)

    def get(self, name: str) -> type[Provider]:
        """Return the provider class for *name*, importing it on first use.

        Raises ``UnknownProviderError`` if *name* is not registered.
        """
        if name in self._classes:
            return self._classes[name]
        factory = self._factories.get(name)
        if factory is None:
            available = ", ".join(self._factories) or "(none)"
            raise UnknownProviderError(
                f"Unknown provider {name!r}. Available: {available}"
            )
        cls = factory()
        self._classes[name] = cls
        return cls

    def list(self) -> list[type[Provider]]:
        """All registered provider classes, in registration order."""
        return [self.get(name) for name in self._factories]


def _builtin_registry() -> ProviderRegistry:
    reg = ProviderRegistry()
    for name, module_name, class_name in BUILTIN_PROVIDERS:
        reg.register(name, _lazy(module_name, class_name))
    return reg


registry = _builtin_registry()


def provider_names() -> list[str]:
    """Built-in provider names in their fixed order."""
    return [name for name, _, _ in BUILTIN_PROVIDERS]


def list_providers() -> list[type[Provider]]:
    """The five built-in provider classes: snacks, kitty, wezterm, tmux, terminal."""
    return registry.list()
