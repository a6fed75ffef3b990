"""Blocking per-step approval.

The executor opens a gate for a step before announcing that approval is
required, then awaits it. approve/skip/cancel resolve the gate; an approval
that arrives before the gate opens is remembered and consumed when it does.
"""

import asyncio

from src.domain.value_objects.approval_decision import ApprovalDecision


class StepApprovalGate:
    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Future[ApprovalDecision]] = {}
        self._granted: set[str] = set()

    def open(self, step_id: str) -> None:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[ApprovalDecision] = loop.create_future()
        if step_id in self._granted:
            self._granted.discard(step_id)
            future.set_result(ApprovalDecision.APPROVED)
        self._pending[step_id] = future

    async def wait(self, step_id: str, timeout_s: float | None = None) -> ApprovalDecision:
        """Wait for the gate opened for step_id to be resolved."""
        future = self._pending.get(step_id)
        if future is None:
            self.open(step_id)
            future = self._pending[step_id]
        try:
            return await asyncio.wait_for(future, timeout=timeout_s)
        except TimeoutError:
            return ApprovalDecision.TIMED_OUT
        finally:
            self._pending.pop(step_id, None)

    def is_waiting(self, step_id: str) -> bool:
        future = self._pending.get(step_id)
        return future is not None and not future.done()

    def resolve(self, step_id: str, decision: ApprovalDecision) -> bool:
        """Resolve an open gate. Returns False when none is waiting."""
        future = self._pending.get(step_id)
        if future is None or future.done():
            return False
        future.set_result(decision)
        return True

    def grant(self, step_id: str) -> None:
        """Approve step_id now, or as soon as its gate opens."""
        if not self.resolve(step_id, ApprovalDecision.APPROVED):
            self._granted.add(step_id)

    def cancel_all(self) -> None:
        for step_id in list(self._pending):
            self.resolve(step_id, ApprovalDecision.CANCELLED)

    def reset(self) -> None:
        self.cancel_all()
        self._pending.clear()
        self._granted.clear()
