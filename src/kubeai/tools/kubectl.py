"""Built-in cluster command tool (``kubectl``)."""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from kubeai.tools.runner import CommandRunner

TOOL_NAME = "kubectl"


def names_namespace(command: str) -> bool:
    """True if the command line already selects a namespace (or all of them)."""
    for token in command.split():
        if token in ("-n", "--namespace", "-A", "--all-namespaces"):
            return True
        if token.startswith(("--namespace=", "-n=")):
            return True
    return False


def build_command_line(
    command: str,
    namespace: str | None = None,
    executable: str = TOOL_NAME,
) -> str:
    """Full command line for ``command`` (given with or without the prefix).

    ``namespace`` is inserted as ``-n <ns>`` right after the executable
    unless the command already selects one.
    """
    command = command.strip()
    if command == TOOL_NAME or command.startswith(TOOL_NAME + " "):
        command = command[len(TOOL_NAME) :].strip()
    if namespace and not names_namespace(command):
        return f"{executable} -n {shlex.quote(namespace)} {command}".rstrip()
    return f"{executable} {command}".rstrip()


class ClusterCommandTool:
    """Runs kubectl commands. Implements the :class:`Tool` protocol."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        kubectl_path: str = TOOL_NAME,
        timeout: float = 30.0,
    ) -> None:
        self._runner = runner
        self._kubectl_path = kubectl_path
        self._timeout = timeout

    @property
    def name(self) -> str:
        return TOOL_NAME

    @property
    def description(self) -> str:
        return (
            "Execute kubectl commands to manage Kubernetes resources. Use this for all "
            "Kubernetes operations like get, describe, create, apply, delete, scale, "
            "logs, exec, etc."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": (
                        "The kubectl command to execute (without 'kubectl' prefix). "
                        "Examples: 'get pods -n default', 'describe deployment nginx', "
                        "'logs pod/nginx'"
                    ),
                },
                "namespace": {
                    "type": "string",
                    "description": (
                        "Optional namespace override. If not specified, uses the "
                        "namespace from the command or current context."
                    ),
                },
            },
            "required": ["command"],
        }

    async def execute(self, **kwargs: Any) -> str:
        """Run the kubectl command.

        Raises:
            ValueError: If 'command' is missing or empty.
        """
        command = kwargs.get("command", "")
        if not command or not isinstance(command, str):
            msg = "Parameter 'command' is required and must be a non-empty string."
            raise ValueError(msg)
        namespace = kwargs.get("namespace") or None
        line = build_command_line(command, namespace, executable=shlex.quote(self._kubectl_path))
        return await self._runner.run(line, self._timeout)
