import asyncio

import pytest

from tableside.core.exceptions import TransientNetworkError, ValidationError
from tableside.schemas import Table
from tableside.verification import VerificationGate, VerificationStatus

from tests.conftest import CODE, TABLE


@pytest.fixture
def gate(api, state):
    return VerificationGate(api, state)


class TestGateLoad:
    """Applying the table flag and the stored verification"""

    def test_fresh_table_is_unverified(self, gate, open_table):
        assert gate.load(open_table) == VerificationStatus.UNVERIFIED
        assert gate.code is None

    def test_stored_flag_with_code_resumes_verified(self, gate, state, open_table):
        state.update_record(verified=True, code=CODE)

        assert gate.load(open_table) == VerificationStatus.VERIFIED
        assert gate.code == CODE

    def test_flag_without_code_is_cleared(self, gate, state, store, open_table):
        state.update_record(verified=True)

        assert gate.load(open_table) == VerificationStatus.UNVERIFIED
        assert store.get(state.record_key) is None

    def test_closed_table_blocks_and_forgets_verification(self, gate, state):
        state.update_record(session_id="s", visit_token="t", verified=True, code=CODE)

        status = gate.load(Table(number=TABLE, is_open=False))

        record = state.load_record()
        assert status == VerificationStatus.BLOCKED
        assert record.verified is False
        assert record.code is None
        assert record.session_id == "s"

    def test_reopened_table_leaves_blocked(self, gate, open_table):
        gate.load(Table(number=TABLE, is_open=False))

        assert gate.load(open_table) == VerificationStatus.UNVERIFIED


class TestGateVerify:
    """Submitting the staff code"""

    def test_correct_code_verifies_and_persists(self, gate, state, open_table):
        gate.load(open_table)

        status = asyncio.run(gate.verify(f"  {CODE} "))

        record = state.load_record()
        assert status == VerificationStatus.VERIFIED
        assert record.verified is True
        assert record.code == CODE
        assert gate.last_error is None

    def test_wrong_code_keeps_message(self, gate, state, open_table):
        gate.load(open_table)

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(gate.verify("000000"))

        assert exc_info.value.error_code == "INVALID_CODE"
        assert gate.status == VerificationStatus.UNVERIFIED
        assert gate.last_error == "Incorrect code"
        assert state.load_record().is_empty

    def test_blank_code_rejected_locally(self, gate, open_table):
        gate.load(open_table)
        seen = []
        gate.add_listener(seen.append)

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(gate.verify("   "))

        assert exc_info.value.error_code == "CODE_REQUIRED"
        assert seen == []

    def test_blocked_gate_refuses_codes(self, gate):
        gate.load(Table(number=TABLE, is_open=False))

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(gate.verify(CODE))

        assert exc_info.value.error_code == "TABLE_CLOSED"
        assert gate.status == VerificationStatus.BLOCKED

    def test_network_failure_returns_to_unverified(self, api, gate, open_table):
        gate.load(open_table)
        api.fail_next_requests(1)

        with pytest.raises(TransientNetworkError):
            asyncio.run(gate.verify(CODE))

        assert gate.status == VerificationStatus.UNVERIFIED
        assert gate.last_error

    def test_listeners_see_verifying_then_verified(self, gate, open_table):
        gate.load(open_table)
        seen = []
        gate.add_listener(seen.append)

        asyncio.run(gate.verify(CODE))

        assert seen == [VerificationStatus.VERIFYING, VerificationStatus.VERIFIED]

    def test_code_from_previous_opening_is_rejected(self, api, gate, open_table):
        gate.load(open_table)
        api.close_table(TABLE)
        api.open_table(TABLE, code="777777")

        with pytest.raises(ValidationError):
            asyncio.run(gate.verify(CODE))

        assert asyncio.run(gate.verify("777777")) == VerificationStatus.VERIFIED

    def test_downgrade_clears_stored_verification(self, gate, state, open_table):
        gate.load(open_table)
        asyncio.run(gate.verify(CODE))

        gate.downgrade()

        assert gate.status == VerificationStatus.UNVERIFIED
        assert gate.code is None
        assert state.load_record().is_empty

    def test_wrong_code_after_verification_forgets_earlier_code(self, api, gate, state, open_table):
        gate.load(open_table)
        asyncio.run(gate.verify(CODE))

        with pytest.raises(ValidationError):
            asyncio.run(gate.verify("000000"))

        assert gate.status == VerificationStatus.UNVERIFIED
        assert gate.code is None
        assert state.load_record().verified is False
        assert VerificationGate(api, state).load(open_table) == VerificationStatus.UNVERIFIED

    def test_network_failure_after_verification_forgets_earlier_code(self, api, gate, state, open_table):
        gate.load(open_table)
        asyncio.run(gate.verify(CODE))
        api.fail_next_requests(1)

        with pytest.raises(TransientNetworkError):
            asyncio.run(gate.verify("777777"))

        assert state.load_record().code is None
        assert VerificationGate(api, state).load(open_table) == VerificationStatus.UNVERIFIED
