"""
Provider registry -- holds adapters and maps model ids to the adapter that
serves them.

Swapping the active adapter is an explicit call here; conversation history
lives with the orchestrator and is never touched by a switch.
"""

from __future__ import annotations

import logging

from switchboard.llm.errors import ModelNotRecognizedError
from switchboard.llm.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registered adapters plus the model -> adapter map.

    The first adapter registered becomes active.
    """

    def __init__(self) -> None:
        self._providers: dict[str, ProviderAdapter] = {}
        self._model_map: dict[str, str] = {}
        self._active: str | None = None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        name: str,
        adapter: ProviderAdapter,
        models: list[str] | None = None,
    ) -> None:
        """
        Register *adapter* under *name*.  Overwrites any existing entry.

        *models* defaults to ``adapter.list_models()``.  A model already
        claimed by another adapter is re-pointed at this one.
        """
        if name in self._providers:
            self._forget_models(name)
        self._providers[name] = adapter
        for model in models if models is not None else adapter.list_models():
            self._model_map[model] = name
        if self._active is None:
            self._active = name

    def unregister(self, name: str) -> None:
        self._providers.pop(name, None)
        self._forget_models(name)
        if self._active == name:
            self._active = next(iter(self._providers), None)

    def refresh_models(self, name: str) -> None:
        """Re-read an adapter's model list (e.g. after discovery)."""
        adapter = self._providers[name]
        self._forget_models(name)
        for model in adapter.list_models():
            self._model_map.setdefault(model, name)

    async def initialize_all(self) -> None:
        """
        Initialize every adapter.

        Adapters that fail are dropped with a warning, except the active
        one, which is kept so the failure surfaces on first use.
        """
        for name, adapter in list(self._providers.items()):
            try:
                await adapter.initialize()
            except Exception as exc:
                logger.warning("Failed to initialize %s provider: %s", name, exc)
                if name != self._active:
                    self.unregister(name)
                continue
            self.refresh_models(name)
            logger.info("Initialized %s provider", name)

    # ------------------------------------------------------------------
    # Lookup and switching
    # ------------------------------------------------------------------

    def resolve(self, model: str) -> ProviderAdapter:
        """
        Return the adapter that serves *model*.

        Raises ``ModelNotRecognizedError`` if no adapter claims it.
        """
        name = self._model_map.get(model)
        if name is None or name not in self._providers:
            raise ModelNotRecognizedError(model, self.model_names)
        return self._providers[name]

    def provider_for(self, model: str) -> str:
        self.resolve(model)
        return self._model_map[model]

    def set_active(self, name: str) -> None:
        """
        Switch the active adapter.

        Raises ``KeyError`` if *name* has not been registered.
        """
        if name not in self._providers:
            raise KeyError(
                f"Unknown provider {name!r}. "
                f"Registered: {list(self._providers)}"
            )
        if name != self._active:
            logger.info("Switching provider %s -> %s", self._active, name)
        self._active = name

    def switch_model(self, model: str) -> ProviderAdapter:
        """Resolve *model*, select it on its adapter and make that adapter active."""
        adapter = self.resolve(model)
        adapter.select_model(model)
        self.set_active(self._model_map[model])
        return adapter

    @property
    def active_name(self) -> str | None:
        return self._active

    @property
    def active(self) -> ProviderAdapter:
        """
        Return the active adapter.

        Raises ``RuntimeError`` if nothing is registered.
        """
        if self._active is None or self._active not in self._providers:
            raise RuntimeError("No active LLM provider")
        return self._providers[self._active]

    @property
    def provider_names(self) -> list[str]:
        return list(self._providers)

    @property
    def model_names(self) -> list[str]:
        return sorted(self._model_map)

    def all_models(self) -> list[tuple[str, str]]:
        """``(model, provider_name)`` pairs, sorted by provider then model."""
        return sorted(
            ((m, p) for m, p in self._model_map.items() if p in self._providers),
            key=lambda pair: (pair[1], pair[0]),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _forget_models(self, name: str) -> None:
        for model in [m for m, p in self._model_map.items() if p == name]:
            del self._model_map[model]
