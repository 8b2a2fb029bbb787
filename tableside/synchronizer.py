"""
Order Status Synchronizer

Polls the session's orders on a fixed interval and tells the patron when
staff confirm or reject something.

Each tick, strictly in sequence:
    1. fetch the full order list for the session
    2. compare statuses of ids present in both the previous snapshot and
       the new list
    3. raise at most one notification listing every change
    4. replace the snapshot with the new list, even when it is empty

Cadence:
    - the timer task runs only while the verification gate is VERIFIED
    - it is torn down once the snapshot holds orders and none is pending
    - it starts again when a fresh snapshot shows a pending order
    - a failed fetch skips the tick and keeps the previous snapshot
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Optional

from tableside.core.config import get_settings
from tableside.core.exceptions import TransientNetworkError
from tableside.schemas import Order, OrderStatus
from tableside.services.notifications import BaseNotifier, NotificationTone
from tableside.services.ordering_api import BaseOrderingApi
from tableside.session import SessionManager
from tableside.verification import VerificationGate, VerificationStatus

logger = logging.getLogger(__name__)


STATUS_LABELS = {
    OrderStatus.PENDING.value: "Pending",
    OrderStatus.CONFIRMED.value: "✓ Confirmed",
    OrderStatus.REJECTED.value: "✗ Rejected",
}


@dataclass(frozen=True)
class StatusTransition:
    order_id: int
    old_status: str
    new_status: str


def diff_snapshots(previous: list[Order], current: list[Order]) -> list[StatusTransition]:
    """Status changes for orders present in both lists, in `current` order."""
    previous_status = {order.id: order.status for order in previous}
    return [
        StatusTransition(order.id, previous_status[order.id], order.status)
        for order in current
        if order.id in previous_status and previous_status[order.id] != order.status
    ]


def describe_transitions(transitions: list[StatusTransition]) -> tuple[str, NotificationTone]:
    """Message and tone for a non-empty list of transitions."""
    first = transitions[0].new_status
    if first == OrderStatus.CONFIRMED.value:
        tone = NotificationTone.SUCCESS
    elif first == OrderStatus.REJECTED.value:
        tone = NotificationTone.ERROR
    else:
        tone = NotificationTone.INFO

    message = "\n".join(
        f"Order #{t.order_id}: {STATUS_LABELS.get(t.new_status, t.new_status)}"
        for t in transitions
    )
    return message, tone


class OrderStatusSynchronizer:
    """
    Owns the order snapshot and the polling task for one table.

    Example:
        >>> sync = OrderStatusSynchronizer(api, gate, sessions, notifier)
        >>> await sync.refresh()      # initial load, no notifications
        >>> sync.start()              # begin polling if anything is pending
        >>> await sync.close()        # view teardown
    """

    def __init__(
        self,
        api: BaseOrderingApi,
        gate: VerificationGate,
        sessions: SessionManager,
        notifier: BaseNotifier,
        interval: Optional[float] = None,
    ):
        self.api = api
        self.gate = gate
        self.sessions = sessions
        self.notifier = notifier
        self.interval = interval if interval is not None else get_settings().order_poll_interval_seconds

        self._snapshot: list[Order] = []
        self._task: Optional[asyncio.Task] = None
        self._in_flight = False

        gate.add_listener(self._on_gate_change)

    @property
    def table_number(self) -> int:
        return self.gate.table_number

    @property
    def orders(self) -> list[Order]:
        return list(self._snapshot)

    @property
    def has_pending(self) -> bool:
        return any(order.is_pending for order in self._snapshot)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _should_poll(self) -> bool:
        if not self.gate.is_verified:
            return False
        return not self._snapshot or self.has_pending

    # =========================================================================
    # FETCH / DIFF
    # =========================================================================

    async def _fetch(self) -> list[Order]:
        session = self.sessions.current(self.table_number)
        return await self.api.list_orders(
            self.table_number,
            code=self.gate.code,
            session_id=session.session_id if session else None,
        )

    async def refresh(self, notify: bool = False) -> bool:
        """
        Fetch the order list and replace the snapshot.

        Args:
            notify: Raise a notification for status transitions (polling);
                False for the initial load and post-submit refresh.

        Returns:
            bool: True if the snapshot was replaced
        """
        if not self.gate.is_verified:
            logger.debug(f"Table {self.table_number}: not verified, skipping order fetch")
            return False
        if self._in_flight:
            logger.debug(f"Table {self.table_number}: previous fetch still running, skipping")
            return False

        self._in_flight = True
        try:
            try:
                orders = await self._fetch()
            except TransientNetworkError as e:
                logger.warning(f"Table {self.table_number}: order fetch failed ({e.error_code}), keeping snapshot")
                return False

            if notify:
                transitions = diff_snapshots(self._snapshot, orders)
                if transitions:
                    message, tone = describe_transitions(transitions)
                    self.notifier.notify(message, tone)

            self._snapshot = list(orders)
        finally:
            self._in_flight = False

        self._reconcile()
        return True

    async def tick(self) -> bool:
        """One polling step."""
        return await self.refresh(notify=True)

    # =========================================================================
    # TIMER LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Entry hook: begin polling if the current state calls for it."""
        self._reconcile()

    def stop(self) -> None:
        """Cancel the polling task. Safe to call when already stopped."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    async def close(self) -> None:
        """Exit hook: stop polling and wait for the task to finish."""
        task = self._task
        self.stop()
        if task is not None and task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def reset(self) -> None:
        """Stop polling and forget the snapshot."""
        self.stop()
        self._snapshot = []

    def _reconcile(self) -> None:
        if self._should_poll():
            if not self.is_running:
                self._task = asyncio.get_running_loop().create_task(self._run())
        elif self.is_running:
            if self.gate.is_verified:
                logger.info(f"Table {self.table_number}: no pending orders, polling stopped")
            self.stop()

    async def _run(self) -> None:
        me = asyncio.current_task()
        logger.info(f"Table {self.table_number}: polling orders every {self.interval}s")
        try:
            while self._task is me:
                await asyncio.sleep(self.interval)
                if self._task is not me:
                    break
                await self.tick()
        finally:
            if self._task is me:
                self._task = None

    def _on_gate_change(self, status: VerificationStatus) -> None:
        if status != VerificationStatus.VERIFIED:
            self.reset()
