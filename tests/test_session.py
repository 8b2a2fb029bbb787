import asyncio

import pytest

from tableside.core.exceptions import TransientNetworkError
from tableside.services.ordering_api import MockOrderingApi, SessionValidation
from tableside.session import SessionManager

from tests.conftest import TABLE


class RotatingApi(MockOrderingApi):
    """Mock that hands out a fresh visit token on every validation."""

    async def validate_session(self, session_id, visit_token):
        result = await super().validate_session(session_id, visit_token)
        if result.valid:
            return SessionValidation(valid=True, visit_token=self.rotate_visit_token(session_id))
        return result


class TestSessionManager:
    """Session establishment, reuse and invalidation"""

    def test_establish_scans_and_persists(self, api, store, state):
        sessions = SessionManager(api, store)

        session = asyncio.run(sessions.establish(TABLE))

        record = state.load_record()
        assert session.table_number == TABLE
        assert record.session_id == session.session_id
        assert record.visit_token == session.visit_token
        assert sessions.current(TABLE) == session

    def test_valid_stored_session_is_reused(self, api, store):
        first = asyncio.run(SessionManager(api, store).establish(TABLE))

        second = asyncio.run(SessionManager(api, store).establish(TABLE))

        assert second.session_id == first.session_id
        assert len(api._sessions) == 1

    def test_rejected_stored_session_is_replaced(self, api, store, state):
        first = asyncio.run(SessionManager(api, store).establish(TABLE))
        api.revoke_session(first.session_id)

        second = asyncio.run(SessionManager(api, store).establish(TABLE))

        assert second.session_id != first.session_id
        assert state.load_record().session_id == second.session_id

    def test_rotated_visit_token_is_adopted(self, store, state):
        api = RotatingApi(failure_rate=0, min_latency=0, max_latency=0)
        api.open_table(TABLE, code="111111")
        first = asyncio.run(SessionManager(api, store).establish(TABLE))

        second = asyncio.run(SessionManager(api, store).establish(TABLE))

        assert second.session_id == first.session_id
        assert second.visit_token != first.visit_token
        assert state.load_record().visit_token == second.visit_token

    def test_corrupted_record_falls_back_to_scan(self, api, store, state):
        store.set(state.record_key, {"sessionId": "orphan"})

        session = asyncio.run(SessionManager(api, store).establish(TABLE))

        assert session.session_id != "orphan"
        assert state.load_record().has_session

    def test_session_does_not_leak_to_other_table(self, api, store):
        sessions = SessionManager(api, store)
        asyncio.run(sessions.establish(TABLE))

        assert sessions.current(8) is None

    def test_network_failure_propagates(self, api, store, state):
        api.fail_next_requests(1)

        with pytest.raises(TransientNetworkError):
            asyncio.run(SessionManager(api, store).establish(TABLE))

        assert not state.load_record().has_session

    def test_validate_reports_refusal_as_false(self, api, store):
        sessions = SessionManager(api, store)
        session = asyncio.run(sessions.establish(TABLE))

        assert asyncio.run(sessions.validate(session.session_id, session.visit_token)) is True
        assert asyncio.run(sessions.validate(session.session_id, "wrong")) is False
        assert asyncio.run(sessions.validate("unknown", "x")) is False

    def test_invalidate_keeps_verification(self, api, store, state):
        sessions = SessionManager(api, store)
        asyncio.run(sessions.establish(TABLE))
        state.update_record(verified=True, code="482913")

        sessions.invalidate(TABLE)

        record = state.load_record()
        assert sessions.current(TABLE) is None
        assert not record.has_session
        assert record.verified and record.code == "482913"
