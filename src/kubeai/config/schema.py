"""Pydantic models for kubeai configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field

from kubeai.approval.policy import ApprovalPolicy


class LLMConfig(BaseModel):
    """Configuration for the active LLM backend."""

    provider: str = "openai"
    model: str = "gpt-4"
    endpoint: str | None = None
    api_key: str | None = None
    api_key_env: str | None = None  # defaults per provider, see config.loader.API_KEY_ENV
    region: str | None = None  # bedrock
    azure_deployment: str | None = None  # azopenai
    skip_tls_verify: bool = False
    timeout: float = 60.0


class RetrySettings(BaseModel):
    """Retry behaviour for provider calls."""

    enabled: bool = True
    max_attempts: int = Field(default=5, ge=1)
    max_backoff: float = Field(default=10.0, ge=0.0)
    jitter_ratio: float = Field(default=0.1, ge=0.0, lt=1.0)


class ToolsConfig(BaseModel):
    """Built-in tool and agent loop settings."""

    kubectl_path: str = "kubectl"
    shell_path: str = "/bin/bash"
    default_timeout: int = 30
    max_timeout: int = 300
    enable_shell: bool = True
    max_iterations: int = 10
    preview_limit: int = 1000


class MCPServerConfig(BaseModel):
    """One external tool server, spawned as a subprocess."""

    name: str
    command: str
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    description: str = ""
    enabled: bool = True


class MCPConfig(BaseModel):
    """External tool servers."""

    servers: list[MCPServerConfig] = Field(default_factory=list)
    request_timeout: float = 30.0

    def enabled_servers(self) -> list[MCPServerConfig]:
        return [s for s in self.servers if s.enabled]


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class APIConfig(BaseModel):
    """REST API server settings."""

    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])


class KubeAIConfig(BaseModel):
    """Top-level configuration for kubeai."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    approval: ApprovalPolicy = Field(default_factory=ApprovalPolicy)
    mcp: MCPConfig = Field(default_factory=MCPConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    api: APIConfig = Field(default_factory=APIConfig)
