"""Configuration loading and validation."""

from kubeai.config.loader import load_config
from kubeai.config.schema import (
    APIConfig,
    KubeAIConfig,
    LLMConfig,
    LoggingConfig,
    MCPConfig,
    MCPServerConfig,
    RetrySettings,
    ToolsConfig,
)

__all__ = [
    "APIConfig",
    "KubeAIConfig",
    "LLMConfig",
    "LoggingConfig",
    "MCPConfig",
    "MCPServerConfig",
    "RetrySettings",
    "ToolsConfig",
    "load_config",
]
