"""kubeai: agentic LLM tool calling for Kubernetes operations."""

__version__ = "0.1.0"
