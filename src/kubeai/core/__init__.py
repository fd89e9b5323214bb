"""Core types, errors, and shared utilities."""

from kubeai.core.errors import (
    AgentError,
    ApprovalAlreadyProcessedError,
    ApprovalError,
    ApprovalNotFoundError,
    CommandFailedError,
    CommandTimeoutError,
    ConfigError,
    KubeAIError,
    MaxIterationsExceededError,
    MaxRetriesExceededError,
    MCPConnectionError,
    MCPError,
    MCPRPCError,
    MCPTimeoutError,
    ModelNotFoundError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderResponseError,
    ProviderTimeoutError,
    ToolCallingNotSupportedError,
    ToolError,
    ToolExecutionError,
)
from kubeai.core.retry import (
    RetryConfig,
    compute_backoff,
    is_retryable,
    retry_with_backoff,
)

__all__ = [
    "AgentError",
    "ApprovalAlreadyProcessedError",
    "ApprovalError",
    "ApprovalNotFoundError",
    "CommandFailedError",
    "CommandTimeoutError",
    "ConfigError",
    "KubeAIError",
    "MCPConnectionError",
    "MCPError",
    "MCPRPCError",
    "MCPTimeoutError",
    "MaxIterationsExceededError",
    "MaxRetriesExceededError",
    "ModelNotFoundError",
    "ProviderAuthError",
    "ProviderConnectionError",
    "ProviderError",
    "ProviderOverloadedError",
    "ProviderRateLimitError",
    "ProviderRequestError",
    "ProviderResponseError",
    "ProviderTimeoutError",
    "RetryConfig",
    "ToolCallingNotSupportedError",
    "ToolError",
    "ToolExecutionError",
    "compute_backoff",
    "is_retryable",
    "retry_with_backoff",
]
