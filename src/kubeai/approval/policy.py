"""Command safety classification.

The verb and pattern lists are policy data, not ground truth: they live in
``ApprovalPolicy`` so deployments can tighten or relax them from config.
Anything the lists do not recognise falls into ``unknown_category``, which
defaults to ``write`` so an unrecognised command is never auto-approved.
"""

from __future__ import annotations

import enum
import json
import re
import shlex
from typing import Any

from pydantic import BaseModel, Field

from kubeai.tools.kubectl import TOOL_NAME as KUBECTL_TOOL
from kubeai.tools.kubectl import build_command_line
from kubeai.tools.shell import TOOL_NAME as SHELL_TOOL


class CommandCategory(enum.StrEnum):
    """Safety category of a rendered command."""

    READ_ONLY = "read-only"
    WRITE = "write"
    DANGEROUS = "dangerous"


_DEFAULT_DANGEROUS = [
    "delete",
    "--force",
    "--grace-period=0",
    "--cascade=orphan",
    "--all",
    "drain",
    "cordon",
    "taint",
    "rollout undo",
    "rm -rf",
    "rm -fr",
    "mkfs",
    "dd if=",
    "shutdown",
    "reboot",
]

_DEFAULT_WRITE = [
    "create",
    "apply",
    "patch",
    "edit",
    "scale",
    "set",
    "label",
    "annotate",
    "expose",
    "run",
    "exec",
    "cp",
    "rollout",
    "replace",
    "autoscale",
    "uncordon",
    "attach",
    "port-forward",
    "proxy",
    "config set-context",
    "config use-context",
    "rm",
    "mv",
    "mkdir",
    "touch",
    "chmod",
    "chown",
    "kill",
    "pkill",
    "tee",
    "helm",
]

_DEFAULT_READ_ONLY = [
    "get",
    "describe",
    "logs",
    "top",
    "explain",
    "version",
    "cluster-info",
    "api-resources",
    "api-versions",
    "events",
    "diff",
    "auth can-i",
    "auth whoami",
    "config view",
    "config current-context",
    "config get-contexts",
    "rollout status",
    "rollout history",
    "ls",
    "cat",
    "head",
    "tail",
    "grep",
    "echo",
    "pwd",
    "whoami",
    "date",
    "df",
    "du",
    "ps",
    "wc",
    "jq",
    "which",
    "uname",
    "hostname",
]

# Shell operators that chain or substitute commands.
_COMPOSITE_OPERATORS = ("|", "&", ";", "\n", "\r", "`", "$(", "${", ">", "<(")

# Leading tokens dropped before the verb is read.
_COMMAND_PREFIXES = frozenset({"kubectl", "sudo"})

# Global flags that take a separate value token.
_FLAGS_WITH_VALUE = frozenset(
    {"-n", "--namespace", "--context", "--kubeconfig", "--cluster", "--user"}
)

_WORDISH = re.compile(r"[\w-]")


class ApprovalPolicy(BaseModel):
    """Which commands need a human decision, and how long to wait for one."""

    dangerous_patterns: list[str] = Field(
        default_factory=lambda: list(_DEFAULT_DANGEROUS)
    )
    write_verbs: list[str] = Field(default_factory=lambda: list(_DEFAULT_WRITE))
    read_only_verbs: list[str] = Field(
        default_factory=lambda: list(_DEFAULT_READ_ONLY)
    )
    auto_approve: list[CommandCategory] = Field(
        default_factory=lambda: [CommandCategory.READ_ONLY]
    )
    unknown_category: CommandCategory = CommandCategory.WRITE
    timeout: float = 60.0

    def requires_approval(self, category: CommandCategory) -> bool:
        return category not in self.auto_approve


def _contains_phrase(command: str, phrase: str) -> bool:
    """Whole-token match: ``--all`` does not match ``--all-namespaces``."""
    phrase = phrase.lower()
    if not phrase:
        return False
    lead = r"(?<![\w-])" if _WORDISH.match(phrase[0]) else ""
    trail = r"(?![\w-])" if _WORDISH.match(phrase[-1]) else ""
    return re.search(lead + re.escape(phrase) + trail, command) is not None


def is_composite(command: str) -> bool:
    """True if the command chains, pipes, redirects, or substitutes."""
    return any(op in command for op in _COMPOSITE_OPERATORS)


def _verb_tokens(command: str) -> list[str]:
    try:
        tokens = shlex.split(command)
    except ValueError:
        tokens = command.split()

    while tokens and tokens[0] in _COMMAND_PREFIXES:
        tokens = tokens[1:]

    verbs: list[str] = []
    skip_next = False
    for tok in tokens:
        if skip_next:
            skip_next = False
            continue
        if tok.startswith("-"):
            skip_next = tok in _FLAGS_WITH_VALUE
            continue
        verbs.append(tok)
        if len(verbs) == 2:
            break
    return verbs


def classify_command(command: str, policy: ApprovalPolicy) -> CommandCategory:
    """Classify a rendered command as read-only, write, or dangerous."""
    lowered = command.strip().lower()
    if not lowered:
        return policy.unknown_category

    for pattern in policy.dangerous_patterns:
        if _contains_phrase(lowered, pattern):
            return CommandCategory.DANGEROUS

    if is_composite(lowered):
        return CommandCategory.WRITE

    verbs = _verb_tokens(lowered)
    if not verbs:
        return policy.unknown_category

    read_only = set(policy.read_only_verbs)
    write = set(policy.write_verbs)

    # Two-word forms first so "rollout status" wins over "rollout".
    if len(verbs) == 2:
        phrase = " ".join(verbs)
        if phrase in read_only:
            return CommandCategory.READ_ONLY
        if phrase in write:
            return CommandCategory.WRITE

    verb = verbs[0]
    if verb in write:
        return CommandCategory.WRITE
    if verb in read_only:
        return CommandCategory.READ_ONLY
    return policy.unknown_category


def render_command(tool_name: str, arguments: dict[str, Any]) -> str:
    """Human-readable command line for an approval prompt."""
    command = str(arguments.get("command", "")).strip()
    if tool_name == KUBECTL_TOOL:
        return build_command_line(command, arguments.get("namespace") or None)
    if tool_name == SHELL_TOOL:
        return command
    return f"{tool_name}({json.dumps(arguments, sort_keys=True)})"
