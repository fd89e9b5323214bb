"""Built-in shell command tool (``bash``)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from kubeai.tools.runner import CommandRunner

TOOL_NAME = "bash"


class ShellTool:
    """Runs arbitrary shell commands. Implements the :class:`Tool` protocol."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        default_timeout: int = 30,
        max_timeout: int = 300,
    ) -> None:
        self._runner = runner
        self._default_timeout = default_timeout
        self._max_timeout = max_timeout

    @property
    def name(self) -> str:
        return TOOL_NAME

    @property
    def description(self) -> str:
        return (
            "Execute bash shell commands. Use for non-kubectl operations like file "
            "operations, curl, jq, etc. Be cautious with destructive commands."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The bash command to execute",
                },
                "timeout": {
                    "type": "integer",
                    "description": f"Timeout in seconds (default: {self._default_timeout})",
                },
            },
            "required": ["command"],
        }

    def effective_timeout(self, requested: Any) -> int:
        """Requested timeout, defaulted when absent or invalid, capped at the max."""
        if isinstance(requested, bool) or not isinstance(requested, int) or requested <= 0:
            return self._default_timeout
        return min(requested, self._max_timeout)

    async def execute(self, **kwargs: Any) -> str:
        """Run the shell command.

        Raises:
            ValueError: If 'command' is missing or empty.
        """
        command = kwargs.get("command", "")
        if not command or not isinstance(command, str):
            msg = "Parameter 'command' is required and must be a non-empty string."
            raise ValueError(msg)
        return await self._runner.run(command, self.effective_timeout(kwargs.get("timeout")))
