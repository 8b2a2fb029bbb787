"""
Order Submission Pipeline

Turns the cart into an order on the server.

Preconditions (checked before anything is sent):
    - an established session for the table
    - the verification gate is VERIFIED
    - the cart is not empty

Outcomes:
    - accepted: cart cleared, one success notification, "submitted" hooks
      run (close the cart panel, refresh the order list)
    - SESSION_INVALID / TOKEN_MISMATCH: session and verification purged,
      "session expired" notification, SessionInvalid raised, cart kept
    - any other refusal: server message shown verbatim, ServerRejection
      raised, cart kept
    - transport failure: error notification, TransientNetworkError raised,
      cart kept
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Union

from tableside.cart import CartStore
from tableside.core.exceptions import (
    ServerRejection,
    SessionInvalid,
    TransientNetworkError,
    ValidationError,
)
from tableside.services.notifications import BaseNotifier, NotificationTone
from tableside.services.ordering_api import BaseOrderingApi, SubmitOrderResult
from tableside.session import SessionManager, TableSession
from tableside.verification import VerificationGate

logger = logging.getLogger(__name__)

SubmittedHook = Callable[[SubmitOrderResult], Union[None, Awaitable[Any]]]


class OrderSubmissionPipeline:
    """Submits the cart of one table."""

    SUCCESS_MESSAGE = "Order sent successfully!"
    SESSION_EXPIRED_MESSAGE = "Your session has expired. Please enter the code again."
    GENERIC_FAILURE_MESSAGE = "Error sending the order"
    NETWORK_FAILURE_MESSAGE = "Could not send the order. Check your connection and try again."

    def __init__(
        self,
        api: BaseOrderingApi,
        sessions: SessionManager,
        gate: VerificationGate,
        cart: CartStore,
        notifier: BaseNotifier,
    ):
        self.api = api
        self.sessions = sessions
        self.gate = gate
        self.cart = cart
        self.notifier = notifier
        self._hooks: list[SubmittedHook] = []
        self._submitting = False

    @property
    def table_number(self) -> int:
        return self.gate.table_number

    def on_submitted(self, hook: SubmittedHook) -> None:
        """Register a callback (sync or async) run after an accepted order."""
        self._hooks.append(hook)

    def _check_preconditions(self) -> TableSession:
        if self._submitting:
            raise ValidationError("An order is already being sent", error_code="SUBMIT_IN_PROGRESS")

        session = self.sessions.current(self.table_number)
        if session is None:
            raise ValidationError("No active session. Scan the table code again.", error_code="NO_SESSION")
        if not self.gate.is_verified:
            raise ValidationError("Enter the verification code before ordering", error_code="NOT_VERIFIED")
        if self.cart.is_empty:
            raise ValidationError("Your cart is empty", error_code="EMPTY_CART")
        return session

    async def submit(self) -> SubmitOrderResult:
        """
        Send the current cart.

        Returns:
            SubmitOrderResult: the accepted order

        Raises:
            ValidationError: A precondition is not met; nothing was sent.
            SessionInvalid: The server no longer accepts the session.
            ServerRejection: The server refused the order.
            TransientNetworkError: The order could not be delivered.
        """
        session = self._check_preconditions()
        line_items = self.cart.to_line_items()

        self._submitting = True
        try:
            try:
                result = await self.api.submit_order(
                    self.table_number,
                    line_items,
                    session.session_id,
                    session.visit_token,
                )
            except TransientNetworkError:
                logger.warning(f"Table {self.table_number}: order submission failed in transit")
                self.notifier.notify(self.NETWORK_FAILURE_MESSAGE, NotificationTone.ERROR)
                raise
        finally:
            self._submitting = False

        if result.success:
            await self._handle_success(result)
            return result

        raise self._handle_failure(result)

    async def _handle_success(self, result: SubmitOrderResult) -> None:
        logger.info(
            f"Table {self.table_number}: order #{result.order_id} accepted "
            f"({self.cart.get_total_items()} items, ${self.cart.get_total_price():.2f})"
        )
        self.cart.clear()
        self.notifier.notify(self.SUCCESS_MESSAGE, NotificationTone.SUCCESS)
        for hook in list(self._hooks):
            outcome = hook(result)
            if inspect.isawaitable(outcome):
                await outcome

    def _handle_failure(self, result: SubmitOrderResult) -> Exception:
        """Apply recovery for a refused order and return the error to raise."""
        if result.is_session_error:
            logger.warning(f"Table {self.table_number}: session rejected ({result.error_code}), forcing re-verification")
            self.sessions.invalidate(self.table_number)
            self.gate.downgrade()
            self.notifier.notify(self.SESSION_EXPIRED_MESSAGE, NotificationTone.ERROR)
            return SessionInvalid(
                self.SESSION_EXPIRED_MESSAGE,
                error_code=result.error_code or "SESSION_INVALID",
                details=result.to_dict(),
            )

        message = result.message or self.GENERIC_FAILURE_MESSAGE
        logger.info(f"Table {self.table_number}: order refused ({result.error_code}): {message}")
        self.notifier.notify(message, NotificationTone.ERROR)
        return ServerRejection(message, error_code=result.error_code, details=result.to_dict())
