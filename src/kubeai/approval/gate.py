"""Human approval gate for tool invocations.

A tool call whose command is not auto-approved by policy parks on a
single-use decision future until someone resolves it, the timeout passes,
or the waiting task is cancelled. Timeouts and cancellations both count
as a denial; the pending record is removed in every case.

The pending table is shared by all chat sessions and guarded by a
readers/writer lock. ``resolve`` must be called from the event loop the
request is waiting on.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal, TypedDict

from kubeai.approval.policy import ApprovalPolicy, CommandCategory, classify_command
from kubeai.core.errors import ApprovalAlreadyProcessedError, ApprovalNotFoundError
from kubeai.core.locks import ReadWriteLock

if TYPE_CHECKING:
    from collections.abc import Callable

    Publish = Callable[[dict[str, Any]], None]

logger = logging.getLogger(__name__)


class ApprovalRequiredEvent(TypedDict):
    type: Literal["approval_required"]
    id: str
    tool_name: str
    command: str
    category: str


class ApprovalTimeoutEvent(TypedDict):
    type: Literal["approval_timeout"]
    id: str


def new_approval_id() -> str:
    return f"approval_{uuid.uuid4().hex}"


@dataclass(slots=True)
class PendingToolApproval:
    """A tool call waiting for a human decision."""

    id: str
    tool_name: str
    command: str
    category: CommandCategory
    created_at: datetime
    decision: asyncio.Future[bool]

    def to_event(self) -> ApprovalRequiredEvent:
        return {
            "type": "approval_required",
            "id": self.id,
            "tool_name": self.tool_name,
            "command": self.command,
            "category": str(self.category),
        }

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.to_event())
        del data["type"]
        data["created_at"] = self.created_at.isoformat()
        return data


class ApprovalGate:
    """Decides whether a tool call may run, asking a human when policy says so."""

    def __init__(
        self,
        policy: ApprovalPolicy | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._policy = policy or ApprovalPolicy()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._pending: dict[str, PendingToolApproval] = {}
        self._lock = ReadWriteLock()

    @property
    def policy(self) -> ApprovalPolicy:
        return self._policy

    def classify(self, command: str) -> CommandCategory:
        return classify_command(command, self._policy)

    async def request(
        self,
        tool_name: str,
        command: str,
        category: CommandCategory | None = None,
        publish: Publish | None = None,
    ) -> bool:
        """Return True if the call may run.

        Auto-approved categories return immediately without creating a
        record. Otherwise an ``approval_required`` event is published and
        the call waits up to ``policy.timeout`` seconds; a timeout
        publishes ``approval_timeout`` and returns False.

        Raises:
            asyncio.CancelledError: The waiting task was cancelled. The
                record is removed and the decision slot cancelled.
        """
        if category is None:
            category = self.classify(command)
        if not self._policy.requires_approval(category):
            logger.debug("Auto-approved %s (%s): %s", tool_name, category, command)
            return True

        approval = PendingToolApproval(
            id=new_approval_id(),
            tool_name=tool_name,
            command=command,
            category=category,
            created_at=self._clock(),
            decision=asyncio.get_running_loop().create_future(),
        )
        with self._lock.write():
            self._pending[approval.id] = approval
        logger.info("Approval %s required for %s (%s): %s", approval.id, tool_name, category, command)

        try:
            if publish is not None:
                publish(dict(approval.to_event()))
            try:
                approved = await asyncio.wait_for(approval.decision, self._policy.timeout)
            except TimeoutError:
                logger.info("Approval %s timed out after %gs", approval.id, self._policy.timeout)
                if publish is not None:
                    publish({"type": "approval_timeout", "id": approval.id})
                return False
        except asyncio.CancelledError:
            approval.decision.cancel()
            logger.info("Approval %s abandoned", approval.id)
            raise
        finally:
            self._remove(approval.id)

        logger.info("Approval %s %s", approval.id, "granted" if approved else "denied")
        return approved

    def resolve(self, approval_id: str, approved: bool) -> None:
        """Record a decision for a pending approval.

        Raises:
            ApprovalNotFoundError: No such approval (never existed, timed
                out, or abandoned).
            ApprovalAlreadyProcessedError: A decision was already recorded.
        """
        with self._lock.write():
            approval = self._pending.get(approval_id)
            if approval is None:
                raise ApprovalNotFoundError(approval_id)
            if approval.decision.done():
                raise ApprovalAlreadyProcessedError(approval_id)
            approval.decision.set_result(approved)

    def get(self, approval_id: str) -> PendingToolApproval | None:
        with self._lock.read():
            return self._pending.get(approval_id)

    def pending(self) -> list[PendingToolApproval]:
        """Open approvals, oldest first."""
        with self._lock.read():
            items = list(self._pending.values())
        return sorted(items, key=lambda a: a.created_at)

    def _remove(self, approval_id: str) -> None:
        with self._lock.write():
            self._pending.pop(approval_id, None)
