import asyncio

import pytest

from tableside.core.exceptions import TransientNetworkError
from tableside.schemas import Order
from tableside.services.notifications import NotificationTone
from tableside.services.ordering_api import MockOrderingApi
from tableside.session import SessionManager
from tableside.synchronizer import (
    OrderStatusSynchronizer,
    StatusTransition,
    describe_transitions,
    diff_snapshots,
)
from tableside.verification import VerificationGate

from tests.conftest import CODE

P, C, R = "Pendiente", "Confirmado", "Rechazado"


def orders(*pairs):
    return [Order(id=order_id, status=status) for order_id, status in pairs]


class ScriptedApi(MockOrderingApi):
    """Returns scripted order lists; the last entry repeats."""

    def __init__(self, *responses):
        super().__init__(failure_rate=0, min_latency=0, max_latency=0)
        self.responses = list(responses)
        self.calls = 0
        self.gate_event = None

    async def list_orders(self, table_number, code=None, session_id=None):
        self.calls += 1
        if self.gate_event is not None:
            await self.gate_event.wait()
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return list(response)


def build(api, store, state, notifier, open_table, verified=True, interval=0.01):
    if verified:
        state.update_record(verified=True, code=CODE)
    gate = VerificationGate(api, state)
    gate.load(open_table)
    sync = OrderStatusSynchronizer(api, gate, SessionManager(api, store), notifier, interval=interval)
    return gate, sync


class TestDiff:
    """Pure snapshot comparison"""

    def test_status_change_detected(self):
        assert diff_snapshots(orders((1, P)), orders((1, C))) == [StatusTransition(1, P, C)]

    def test_no_change(self):
        assert diff_snapshots(orders((1, P), (2, C)), orders((1, P), (2, C))) == []

    def test_new_and_vanished_orders_are_not_transitions(self):
        assert diff_snapshots(orders((1, P)), orders((2, C))) == []
        assert diff_snapshots([], orders((1, C))) == []

    def test_unknown_status_passes_through(self):
        transitions = diff_snapshots(orders((1, P)), orders((1, "Entregado")))
        message, tone = describe_transitions(transitions)
        assert message == "Order #1: Entregado"
        assert tone == NotificationTone.INFO

    def test_tone_follows_first_transition(self):
        message, tone = describe_transitions([StatusTransition(1, P, C), StatusTransition(2, P, R)])
        assert tone == NotificationTone.SUCCESS
        assert message == "Order #1: ✓ Confirmed\nOrder #2: ✗ Rejected"

        _, tone = describe_transitions([StatusTransition(2, P, R), StatusTransition(1, P, C)])
        assert tone == NotificationTone.ERROR


class TestRefresh:
    """One fetch-diff-notify-replace step"""

    def test_confirmation_raises_one_success_notification(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, P)), orders((1, C)))
        _, sync = build(api, store, state, notifier, open_table)

        async def scenario():
            await sync.refresh()
            await sync.tick()
            await sync.close()

        asyncio.run(scenario())

        assert len(notifier.notifications) == 1
        assert notifier.latest.tone == NotificationTone.SUCCESS
        assert "Order #1" in notifier.latest.message
        assert [(o.id, o.status) for o in sync.orders] == [(1, C)]

    def test_several_changes_in_one_notification(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, P), (2, P)), orders((1, R), (2, C)))
        _, sync = build(api, store, state, notifier, open_table)

        async def scenario():
            await sync.refresh()
            await sync.tick()
            await sync.close()

        asyncio.run(scenario())

        assert len(notifier.notifications) == 1
        assert notifier.latest.tone == NotificationTone.ERROR
        assert notifier.latest.message.splitlines() == ["Order #1: ✗ Rejected", "Order #2: ✓ Confirmed"]

    def test_unchanged_statuses_stay_quiet(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, P)))
        _, sync = build(api, store, state, notifier, open_table)

        async def scenario():
            await sync.refresh()
            await sync.tick()
            await sync.tick()
            await sync.close()

        asyncio.run(scenario())
        assert notifier.notifications == []

    def test_initial_load_never_notifies(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, C)))
        _, sync = build(api, store, state, notifier, open_table)
        sync._snapshot = orders((1, P))

        asyncio.run(sync.refresh())

        assert notifier.notifications == []
        assert sync.orders[0].status == C

    def test_empty_response_replaces_snapshot(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, P)), [], orders((1, C)))
        _, sync = build(api, store, state, notifier, open_table)

        async def scenario():
            await sync.refresh()
            await sync.tick()
            empty = sync.orders
            await sync.tick()
            await sync.close()
            return empty

        assert asyncio.run(scenario()) == []
        assert notifier.notifications == []

    def test_failed_fetch_keeps_snapshot(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, P)), TransientNetworkError("down", error_code="TIMEOUT"), orders((1, C)))
        _, sync = build(api, store, state, notifier, open_table)

        async def scenario():
            await sync.refresh()
            replaced = await sync.tick()
            kept = sync.orders
            await sync.tick()
            await sync.close()
            return replaced, kept

        replaced, kept = asyncio.run(scenario())

        assert replaced is False
        assert [(o.id, o.status) for o in kept] == [(1, P)]
        assert len(notifier.notifications) == 1

    def test_unverified_never_fetches(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, P)))
        _, sync = build(api, store, state, notifier, open_table, verified=False)

        async def scenario():
            fetched = await sync.refresh()
            sync.start()
            return fetched, sync.is_running

        assert asyncio.run(scenario()) == (False, False)
        assert api.calls == 0

    def test_overlapping_fetch_is_skipped(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, P)))
        _, sync = build(api, store, state, notifier, open_table)

        async def scenario():
            api.gate_event = asyncio.Event()
            first = asyncio.create_task(sync.refresh())
            await asyncio.sleep(0)
            second = await sync.refresh()
            api.gate_event.set()
            result = await first
            await sync.close()
            return result, second

        assert asyncio.run(scenario()) == (True, False)
        assert api.calls == 1


class TestPollingLifecycle:
    """Timer start, stop and restart"""

    def test_polls_until_last_pending_order_resolves(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, P)), orders((1, P)), orders((1, C)))
        _, sync = build(api, store, state, notifier, open_table)

        async def scenario():
            await sync.refresh()
            sync.start()
            running_at_start = sync.is_running
            for _ in range(100):
                if not sync.is_running:
                    break
                await asyncio.sleep(0.01)
            return running_at_start, sync.is_running

        assert asyncio.run(scenario()) == (True, False)
        assert len(notifier.notifications) == 1
        assert notifier.latest.tone == NotificationTone.SUCCESS

    def test_restarts_when_new_pending_order_appears(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, C)), orders((1, C), (2, P)))
        _, sync = build(api, store, state, notifier, open_table, interval=60)

        async def scenario():
            await sync.refresh()
            sync.start()
            idle = sync.is_running
            await sync.refresh()
            resumed = sync.is_running
            await sync.close()
            return idle, resumed

        assert asyncio.run(scenario()) == (False, True)

    def test_polls_while_snapshot_is_empty(self, store, state, notifier, open_table):
        api = ScriptedApi([])
        _, sync = build(api, store, state, notifier, open_table, interval=60)

        async def scenario():
            await sync.refresh()
            running = sync.is_running
            await sync.close()
            return running

        assert asyncio.run(scenario()) is True

    def test_downgrade_stops_and_clears(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, P)))
        gate, sync = build(api, store, state, notifier, open_table, interval=60)

        async def scenario():
            await sync.refresh()
            sync.start()
            gate.downgrade()
            await asyncio.sleep(0)
            return sync.is_running

        assert asyncio.run(scenario()) is False
        assert sync.orders == []

    def test_stop_is_idempotent(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, P)))
        _, sync = build(api, store, state, notifier, open_table, interval=60)

        sync.stop()

        async def scenario():
            await sync.refresh()
            sync.stop()
            sync.stop()
            await sync.close()
            await sync.close()
            return sync.is_running

        assert asyncio.run(scenario()) is False

    def test_close_keeps_snapshot(self, store, state, notifier, open_table):
        api = ScriptedApi(orders((1, P)))
        _, sync = build(api, store, state, notifier, open_table, interval=60)

        async def scenario():
            await sync.refresh()
            await sync.close()

        asyncio.run(scenario())
        assert [o.id for o in sync.orders] == [1]


@pytest.mark.parametrize("status,tone", [
    (C, NotificationTone.SUCCESS),
    (R, NotificationTone.ERROR),
])
def test_single_transition_tone(status, tone):
    _, actual = describe_transitions([StatusTransition(5, P, status)])
    assert actual == tone
