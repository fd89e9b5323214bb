"""Reassembly of streamed tool-call fragments into complete calls."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kubeai.providers.base import ToolCall

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kubeai.providers.base import ToolCallDelta

logger = logging.getLogger(__name__)


class ToolCallAccumulator:
    """Merges ``ToolCallDelta`` fragments for one round, in emission order.

    Matching, first hit wins:

    1. a delta whose id names an existing call merges into it;
    2. a delta whose vendor ``index`` was seen before merges into that call;
    3. a delta with a new id is adopted by the most recent call if that
       call has no id yet and the names agree, else it opens a new call;
    4. a delta with neither id nor known index continues the most recent
       call, or opens one if it carries a name.

    Arguments are concatenated; id and name are fixed once known.
    """

    def __init__(self) -> None:
        self._calls: list[ToolCall] = []
        self._by_index: dict[int, ToolCall] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def __bool__(self) -> bool:
        return bool(self._calls)

    def add(self, delta: ToolCallDelta) -> None:
        target = self._match(delta)
        if target is None:
            if not (delta.id or delta.name):
                logger.debug("Dropping orphan tool-call fragment: %r", delta)
                return
            target = ToolCall(id=delta.id, name=delta.name)
            self._calls.append(target)
        else:
            if not target.id and delta.id:
                target.id = delta.id
            if not target.name and delta.name:
                target.name = delta.name
        target.arguments += delta.arguments
        if delta.index is not None:
            self._by_index.setdefault(delta.index, target)

    def extend(self, deltas: Iterable[ToolCallDelta]) -> None:
        for delta in deltas:
            self.add(delta)

    def _match(self, delta: ToolCallDelta) -> ToolCall | None:
        if delta.id:
            for call in self._calls:
                if call.id == delta.id:
                    return call
        if delta.index is not None:
            if delta.index in self._by_index:
                return self._by_index[delta.index]
            if delta.id or delta.name:
                return self._adopt(delta)
        if delta.id:
            return self._adopt(delta)
        return self._calls[-1] if self._calls else None

    def _adopt(self, delta: ToolCallDelta) -> ToolCall | None:
        if not self._calls:
            return None
        last = self._calls[-1]
        if last.id:
            return None
        if delta.name and last.name and delta.name != last.name:
            return None
        return last

    def calls(self) -> list[ToolCall]:
        """Completed calls in emission order."""
        return list(self._calls)
