"""Exception hierarchy for kubeai.

Every module imports from here. The hierarchy is:

    KubeAIError
    ├── ProviderError(provider_id)
    │   ├── ProviderAuthError
    │   ├── ProviderRateLimitError(retry_after)
    │   ├── ProviderTimeoutError
    │   ├── ProviderOverloadedError(status)
    │   ├── ProviderConnectionError
    │   ├── ProviderRequestError(status)
    │   ├── ProviderResponseError
    │   ├── ModelNotFoundError
    │   └── ToolCallingNotSupportedError
    ├── MaxRetriesExceededError(last_error)
    ├── AgentError
    │   └── MaxIterationsExceededError
    ├── ToolError
    │   ├── ToolExecutionError
    │   ├── CommandFailedError
    │   └── CommandTimeoutError(timeout, output)
    ├── ApprovalError(approval_id)
    │   ├── ApprovalNotFoundError
    │   └── ApprovalAlreadyProcessedError
    ├── MCPError
    │   ├── MCPConnectionError
    │   ├── MCPTimeoutError
    │   └── MCPRPCError(code)
    └── ConfigError
"""

from __future__ import annotations


class KubeAIError(Exception):
    """Base exception for all kubeai errors."""


# ─── Provider Errors ──────────────────────────────────────────


class ProviderError(KubeAIError):
    """Base for provider-related errors."""

    def __init__(self, provider_id: str, message: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"[{provider_id}] {message}")


class ProviderAuthError(ProviderError):
    """Invalid or missing credentials."""


class ProviderRateLimitError(ProviderError):
    """Rate limit exceeded. Includes retry_after if available."""

    def __init__(
        self,
        provider_id: str,
        retry_after: float | None = None,
        detail: str = "",
    ) -> None:
        self.retry_after = retry_after
        msg = "Rate limited (status 429)"
        if retry_after is not None:
            msg += f" (retry after {retry_after}s)"
        if detail:
            msg += f": {detail}"
        super().__init__(provider_id, msg)


class ProviderTimeoutError(ProviderError):
    """Model call timed out."""


class ProviderOverloadedError(ProviderError):
    """Provider returned a 5xx-class status."""

    def __init__(self, provider_id: str, message: str, status: int = 0) -> None:
        self.status = status
        super().__init__(provider_id, message)


class ProviderConnectionError(ProviderError):
    """Network-level failure reaching the provider (refused, reset, DNS)."""


class ProviderRequestError(ProviderError):
    """Provider rejected the request with a non-retryable status."""

    def __init__(self, provider_id: str, message: str, status: int = 0) -> None:
        self.status = status
        super().__init__(provider_id, message)


class ProviderResponseError(ProviderError):
    """Response body could not be decoded or carried no content."""


class ModelNotFoundError(ProviderError):
    """Requested model not available from this provider."""


class ToolCallingNotSupportedError(ProviderError):
    """Provider has no function-calling support."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(provider_id, "provider does not support tool calling")


# ─── Retry Errors ─────────────────────────────────────────────


class MaxRetriesExceededError(KubeAIError):
    """All retry attempts failed. Carries the last underlying error."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"max retries exceeded after {attempts} attempts: {last_error}")


# ─── Agent Errors ─────────────────────────────────────────────


class AgentError(KubeAIError):
    """Base for agentic loop errors."""


class MaxIterationsExceededError(AgentError):
    """The model kept requesting tools past the iteration cap."""

    def __init__(self, max_iterations: int) -> None:
        self.max_iterations = max_iterations
        super().__init__(
            f"exceeded maximum tool call iterations ({max_iterations})"
        )


# ─── Tool Errors ──────────────────────────────────────────────


class ToolError(KubeAIError):
    """Base for tool execution errors."""


class ToolExecutionError(ToolError):
    """A tool ran but reported failure."""


class CommandFailedError(ToolError):
    """A command exited unsuccessfully without producing output."""


class CommandTimeoutError(ToolError):
    """A command exceeded its deadline. Keeps whatever output was captured."""

    def __init__(self, timeout: float, output: str = "") -> None:
        self.timeout = timeout
        self.output = output
        super().__init__(f"command timed out after {timeout:g}s")


# ─── Approval Errors ──────────────────────────────────────────


class ApprovalError(KubeAIError):
    """Base for approval gate errors."""

    def __init__(self, approval_id: str, message: str) -> None:
        self.approval_id = approval_id
        super().__init__(message)


class ApprovalNotFoundError(ApprovalError):
    """No pending approval with this id (never existed, or expired)."""

    def __init__(self, approval_id: str) -> None:
        super().__init__(approval_id, f"Approval not found or expired: {approval_id}")


class ApprovalAlreadyProcessedError(ApprovalError):
    """A decision was already delivered for this approval."""

    def __init__(self, approval_id: str) -> None:
        super().__init__(approval_id, f"Approval already processed: {approval_id}")


# ─── Tool-server (MCP) Errors ─────────────────────────────────


class MCPError(KubeAIError):
    """Base for tool-server client errors."""

    def __init__(self, server: str, message: str) -> None:
        self.server = server
        super().__init__(f"[mcp:{server}] {message}")


class MCPConnectionError(MCPError):
    """Spawn, handshake, or transport failure. The connection is unusable."""


class MCPTimeoutError(MCPError):
    """An RPC call received no response in time."""


class MCPRPCError(MCPError):
    """The server answered with a JSON-RPC error object."""

    def __init__(self, server: str, code: int, message: str) -> None:
        self.code = code
        super().__init__(server, f"RPC error {code}: {message}")


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(KubeAIError):
    """Invalid configuration."""
