"""Provider factory: constructs adapters by name from configuration."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from kubeai.core.errors import ConfigError
from kubeai.providers.azure import AzureOpenAIProvider
from kubeai.providers.base import ProviderSettings
from kubeai.providers.bedrock import BedrockProvider
from kubeai.providers.gemini import GeminiProvider
from kubeai.providers.ollama import OllamaProvider
from kubeai.providers.openai import OpenAIProvider

if TYPE_CHECKING:
    from collections.abc import Callable

    from kubeai.config.schema import LLMConfig
    from kubeai.providers.base import ModelProvider

    ProviderConstructor = Callable[[ProviderSettings], ModelProvider]


def settings_from_config(config: LLMConfig) -> ProviderSettings:
    """Flatten the ``[llm]`` config section into adapter settings."""
    return ProviderSettings(
        provider=config.provider,
        model=config.model,
        endpoint=config.endpoint or "",
        api_key=config.api_key or "",
        region=config.region or "",
        azure_deployment=config.azure_deployment or "",
        skip_tls_verify=config.skip_tls_verify,
        timeout=config.timeout,
    )


class ProviderFactory:
    """Registry of adapter constructors keyed by lowercase provider name."""

    def __init__(self) -> None:
        self._constructors: dict[str, ProviderConstructor] = {}
        self._lock = threading.Lock()

    def register(self, name: str, constructor: ProviderConstructor) -> None:
        """Register (or replace) the constructor for ``name``."""
        with self._lock:
            self._constructors[name.lower()] = constructor

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._constructors)

    def create(self, config: LLMConfig | ProviderSettings) -> ModelProvider:
        """Construct the adapter named by ``config.provider``.

        Raises:
            ConfigError: If no adapter is registered under that name.
        """
        settings = config if isinstance(config, ProviderSettings) else settings_from_config(config)
        with self._lock:
            constructor = self._constructors.get(settings.provider.lower())
        if constructor is None:
            msg = f"unknown provider: {settings.provider} (available: {', '.join(self.names())})"
            raise ConfigError(msg)
        return constructor(settings)


def build_default_factory() -> ProviderFactory:
    """Factory with the built-in adapters registered."""
    factory = ProviderFactory()
    factory.register("openai", OpenAIProvider)
    factory.register("ollama", OllamaProvider)
    factory.register("gemini", GeminiProvider)
    factory.register("bedrock", BedrockProvider)
    factory.register("azopenai", AzureOpenAIProvider)
    factory.register("azure", AzureOpenAIProvider)
    return factory
