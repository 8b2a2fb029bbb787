"""
Session Manager

Establishes, validates and persists the anonymous session for a table:
an opaque session id plus the secret visit token that proves the client
opened it. A stored pair is reused only while the server still accepts
it; otherwise the table is scanned again.

Persisted state lives in the table's atomic record (see
TableStateRepository), shared with the verification flag.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from tableside.core.exceptions import TransientNetworkError
from tableside.persistence import BaseStateStore, TableStateRepository
from tableside.services.ordering_api import BaseOrderingApi

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableSession:
    """An established session; valid for exactly one table."""
    session_id: str
    visit_token: str
    table_number: int


class SessionManager:
    """
    Owns the session lifecycle for any number of tables sharing one store.

    Example:
        >>> sessions = SessionManager(api, store)
        >>> session = await sessions.establish(12)
        >>> sessions.invalidate(12)
    """

    def __init__(self, api: BaseOrderingApi, store: BaseStateStore):
        self.api = api
        self.store = store
        self._active: dict[int, TableSession] = {}

    def _state(self, table_number: int) -> TableStateRepository:
        return TableStateRepository(self.store, table_number)

    def current(self, table_number: int) -> Optional[TableSession]:
        """The session established in this run for the table, if any."""
        return self._active.get(table_number)

    async def establish(self, table_number: int) -> TableSession:
        """
        Restore the stored session for the table or open a new one.

        Raises:
            TransientNetworkError: The server could not be reached or
                returned an unusable scan response; safe to retry.
        """
        state = self._state(table_number)
        record = state.load_record()

        if record.has_session:
            validation = await self.api.validate_session(record.session_id, record.visit_token)
            if validation.valid:
                visit_token = validation.visit_token or record.visit_token
                if visit_token != record.visit_token:
                    logger.info(f"Visit token rotated for table {table_number}")
                    state.update_record(visit_token=visit_token)
                session = TableSession(
                    session_id=record.session_id,
                    visit_token=visit_token,
                    table_number=table_number,
                )
                self._active[table_number] = session
                logger.info(f"Restored session {session.session_id} for table {table_number}")
                return session

            logger.info(f"Stored session for table {table_number} no longer valid, scanning again")
            self.invalidate(table_number)

        pair = await self.api.scan_table(table_number)
        if not pair.session_id or not pair.visit_token:
            raise TransientNetworkError("Invalid server response", error_code="INVALID_RESPONSE")

        state.update_record(session_id=pair.session_id, visit_token=pair.visit_token)
        session = TableSession(
            session_id=pair.session_id,
            visit_token=pair.visit_token,
            table_number=table_number,
        )
        self._active[table_number] = session
        logger.info(f"Opened session {session.session_id} for table {table_number}")
        return session

    async def validate(self, session_id: str, visit_token: str) -> bool:
        """Whether the server still accepts the pair. A refusal is just False."""
        validation = await self.api.validate_session(session_id, visit_token)
        return validation.valid

    def invalidate(self, table_number: int) -> None:
        """Forget the session pair for the table, in memory and on disk."""
        self._active.pop(table_number, None)
        self._state(table_number).update_record(session_id=None, visit_token=None)
        logger.debug(f"Session for table {table_number} invalidated")
