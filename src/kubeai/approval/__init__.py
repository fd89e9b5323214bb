"""Command classification and the human approval gate."""

from kubeai.approval.gate import ApprovalGate, PendingToolApproval
from kubeai.approval.policy import (
    ApprovalPolicy,
    CommandCategory,
    classify_command,
    render_command,
)

__all__ = [
    "ApprovalGate",
    "ApprovalPolicy",
    "CommandCategory",
    "PendingToolApproval",
    "classify_command",
    "render_command",
]
