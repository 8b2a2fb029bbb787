"""
Verification Gate

Staff hand patrons a short code each time a table is opened. Until that
code is accepted, the client may browse but not submit orders or poll
their status.

States:
    UNVERIFIED -> VERIFYING -> VERIFIED
    VERIFYING  -> UNVERIFIED        (code rejected, message kept)
    any        -> BLOCKED           (table reported closed on load)
    BLOCKED    -> UNVERIFIED        (a later load sees the table open)

A stored "verified" flag is honored only together with the code that
earned it; a flag without a code is cleared and read as UNVERIFIED.
"""

import logging
from enum import Enum
from typing import Callable, Optional

from tableside.core.exceptions import TransientNetworkError, ValidationError
from tableside.persistence import TableStateRepository
from tableside.schemas import Table
from tableside.services.ordering_api import BaseOrderingApi

logger = logging.getLogger(__name__)


class VerificationStatus(str, Enum):
    UNVERIFIED = "unverified"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    BLOCKED = "blocked"


StatusListener = Callable[[VerificationStatus], None]


class VerificationGate:
    """Verification state machine for one table."""

    DEFAULT_REJECTION = "Incorrect code"

    def __init__(self, api: BaseOrderingApi, state: TableStateRepository):
        self.api = api
        self.state = state
        self.status = VerificationStatus.UNVERIFIED
        self.code: Optional[str] = None
        self.last_error: Optional[str] = None
        self._listeners: list[StatusListener] = []

    @property
    def table_number(self) -> int:
        return self.state.table_number

    @property
    def is_verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED

    def add_listener(self, listener: StatusListener) -> None:
        """Call `listener(new_status)` on every state change."""
        self._listeners.append(listener)

    def _set_status(self, status: VerificationStatus) -> None:
        if status == self.status:
            return
        previous, self.status = self.status, status
        logger.info(f"Table {self.table_number} verification: {previous.value} -> {status.value}")
        for listener in list(self._listeners):
            listener(status)

    def load(self, table: Table) -> VerificationStatus:
        """Apply the table's open flag and the persisted verification."""
        if not table.is_open:
            self.state.update_record(verified=False, code=None)
            self.code = None
            self._set_status(VerificationStatus.BLOCKED)
            return self.status

        record = self.state.load_record()
        if record.verified and record.code:
            self.code = record.code
            self._set_status(VerificationStatus.VERIFIED)
        else:
            if record.verified:
                logger.warning(f"Table {self.table_number}: verified flag stored without code, clearing it")
                self.state.update_record(verified=False)
            self.code = None
            self._set_status(VerificationStatus.UNVERIFIED)
        return self.status

    async def verify(self, code: str) -> VerificationStatus:
        """
        Submit a verification code.

        Raises:
            ValidationError: Blank code, table closed, a check already
                running, or the server rejected the code (message kept in
                `last_error`).
            TransientNetworkError: The check could not be completed.
        """
        code = (code or "").strip()
        if not code:
            raise ValidationError("Please enter the verification code", error_code="CODE_REQUIRED")
        if self.status == VerificationStatus.BLOCKED:
            raise ValidationError(
                "This table is closed. Ask your server to open it before ordering.",
                error_code="TABLE_CLOSED",
            )
        if self.status == VerificationStatus.VERIFYING:
            raise ValidationError("The code is already being verified", error_code="VERIFY_IN_PROGRESS")
        if self.status == VerificationStatus.VERIFIED and code == self.code:
            return self.status

        self.last_error = None
        self._set_status(VerificationStatus.VERIFYING)
        try:
            result = await self.api.verify_table_code(self.table_number, code)
        except TransientNetworkError:
            self._fail("Could not verify the code. Please try again.")
            raise

        if not result.valid:
            self._fail(result.message or self.DEFAULT_REJECTION)
            raise ValidationError(self.last_error, error_code="INVALID_CODE")

        self.state.update_record(verified=True, code=code)
        self.code = code
        self._set_status(VerificationStatus.VERIFIED)
        return self.status

    def _fail(self, message: str) -> None:
        """Leave VERIFYING for UNVERIFIED; a previously earned code is forgotten."""
        self.last_error = message
        if self.code is not None:
            self.state.update_record(verified=False, code=None)
            self.code = None
        self._set_status(VerificationStatus.UNVERIFIED)

    def downgrade(self) -> None:
        """Drop verification; the patron must enter the code again."""
        self.state.update_record(verified=False, code=None)
        self.code = None
        self._set_status(VerificationStatus.UNVERIFIED)
