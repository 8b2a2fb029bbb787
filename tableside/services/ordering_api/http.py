"""
HTTP Ordering API Implementation

Production implementation talking to the restaurant server over HTTP/JSON
with httpx. Used when ENV_MODE=production or ENV_MODE=staging.

Endpoints (relative to API_BASE_URL):
    POST /sessions/scan             {tableNumber}
    POST /sessions/validate         {sessionId, visitToken}
    GET  /tables/{n}
    POST /tables/{n}/verify-code    {code}
    GET  /tables/{n}/orders         ?code=&sessionId=
    POST /orders/anonymous          {tableNumber, lineItems, sessionId, visitToken}
    GET  /products

Error mapping:
    - Timeouts, connection failures and 5xx -> TransientNetworkError
    - Unreadable bodies -> TransientNetworkError (skip, retry later)
    - 4xx on submit -> unsuccessful SubmitOrderResult with errorCode/message

Version: 1.0.0
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from tableside.core.config import get_settings
from tableside.core.exceptions import TransientNetworkError
from tableside.schemas import Order, OrderLineItem, Product, SessionPair, Table
from tableside.services.ordering_api.base import (
    BaseOrderingApi,
    CodeVerification,
    SessionValidation,
    SubmitOrderResult,
)

logger = logging.getLogger(__name__)

_orders_adapter = TypeAdapter(list[Order])
_products_adapter = TypeAdapter(list[Product])


class HttpOrderingApi(BaseOrderingApi):
    """
    Production ordering API client.

    Configuration:
        API_BASE_URL and API_TIMEOUT_SECONDS from settings, overridable
        per instance. A custom httpx transport can be injected (tests use
        httpx.MockTransport).

    Example:
        >>> api = HttpOrderingApi()
        >>> pair = await api.scan_table(12)
        >>> await api.aclose()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()

        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.api_timeout_seconds

        if not self.base_url:
            raise ValueError(
                "API_BASE_URL is required for production mode. "
                "Set it in your .env file or environment variables."
            )

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

        logger.info(f"HttpOrderingApi initialized (base_url={self.base_url}, timeout={self.timeout}s)")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "http"

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    # =========================================================================
    # TRANSPORT HELPERS
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request, turning transport failures and 5xx into TransientNetworkError."""
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            logger.warning(f"HTTP: {method} {path} timed out after {self.timeout}s")
            raise TransientNetworkError(
                "The ordering server did not answer in time",
                error_code="TIMEOUT",
                details={"path": path},
            ) from e
        except httpx.TransportError as e:
            logger.warning(f"HTTP: {method} {path} failed - {e}")
            raise TransientNetworkError(
                "Could not reach the ordering server",
                error_code="NETWORK_ERROR",
                details={"path": path},
            ) from e

        if response.status_code >= 500:
            logger.warning(f"HTTP: {method} {path} -> {response.status_code}")
            raise TransientNetworkError(
                f"Ordering server error ({response.status_code})",
                error_code="SERVER_ERROR",
                details={"path": path, "status_code": response.status_code},
            )

        logger.debug(f"HTTP: {method} {path} -> {response.status_code}")
        return response

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransientNetworkError(
                "Invalid server response",
                error_code="INVALID_RESPONSE",
                details={"status_code": response.status_code},
            ) from e

    @staticmethod
    def _unexpected(response: httpx.Response) -> TransientNetworkError:
        return TransientNetworkError(
            f"Unexpected response from the ordering server ({response.status_code})",
            error_code=f"HTTP_{response.status_code}",
            details={"path": response.request.url.path},
        )

    # =========================================================================
    # CLIENT CONTRACT
    # =========================================================================

    async def get_table(self, table_number: int) -> Optional[Table]:
        response = await self._request("GET", f"/tables/{table_number}")
        if response.status_code == 404:
            return None
        if response.is_error:
            raise self._unexpected(response)
        try:
            return Table.model_validate(self._body(response))
        except PydanticValidationError as e:
            raise TransientNetworkError("Invalid table data", error_code="INVALID_RESPONSE") from e

    async def scan_table(self, table_number: int) -> SessionPair:
        response = await self._request("POST", "/sessions/scan", json={"tableNumber": table_number})
        if response.is_error:
            raise self._unexpected(response)
        try:
            return SessionPair.model_validate(self._body(response))
        except PydanticValidationError as e:
            raise TransientNetworkError(
                "Invalid server response",
                error_code="INVALID_RESPONSE",
            ) from e

    async def validate_session(
        self,
        session_id: str,
        visit_token: str,
    ) -> SessionValidation:
        response = await self._request(
            "POST",
            "/sessions/validate",
            json={"sessionId": session_id, "visitToken": visit_token},
        )
        if response.status_code in (401, 403, 404):
            return SessionValidation(valid=False)
        if response.is_error:
            raise self._unexpected(response)

        data = self._body(response)
        if not isinstance(data, dict):
            raise self._unexpected(response)
        return SessionValidation(
            valid=bool(data.get("valid")),
            visit_token=data.get("visitToken"),
        )

    async def verify_table_code(
        self,
        table_number: int,
        code: str,
    ) -> CodeVerification:
        response = await self._request(
            "POST",
            f"/tables/{table_number}/verify-code",
            json={"code": code},
        )
        data = self._body(response)
        if not isinstance(data, dict):
            raise self._unexpected(response)
        if response.is_error and "valid" not in data:
            return CodeVerification(valid=False, message=data.get("message"))
        return CodeVerification(valid=bool(data.get("valid")), message=data.get("message"))

    async def list_products(self) -> list[Product]:
        response = await self._request("GET", "/products")
        if response.is_error:
            raise self._unexpected(response)
        try:
            return _products_adapter.validate_python(self._body(response))
        except PydanticValidationError as e:
            raise TransientNetworkError("Invalid product data", error_code="INVALID_RESPONSE") from e

    async def list_orders(
        self,
        table_number: int,
        code: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> list[Order]:
        params = {}
        if session_id:
            params["sessionId"] = session_id
        if code:
            params["code"] = code

        response = await self._request("GET", f"/tables/{table_number}/orders", params=params)
        if response.is_error:
            raise self._unexpected(response)
        try:
            return _orders_adapter.validate_python(self._body(response))
        except PydanticValidationError as e:
            raise TransientNetworkError("Invalid order data", error_code="INVALID_RESPONSE") from e

    async def submit_order(
        self,
        table_number: int,
        line_items: list[OrderLineItem],
        session_id: str,
        visit_token: str,
    ) -> SubmitOrderResult:
        payload = {
            "tableNumber": table_number,
            "lineItems": [item.model_dump(by_alias=True) for item in line_items],
            "sessionId": session_id,
            "visitToken": visit_token,
        }
        response = await self._request("POST", "/orders/anonymous", json=payload)

        if response.is_error:
            try:
                data = response.json()
            except ValueError:
                data = {}
            if not isinstance(data, dict):
                data = {}
            result = SubmitOrderResult(
                success=False,
                error_code=data.get("errorCode"),
                message=data.get("message") or "Error submitting the order",
            )
            logger.info(f"HTTP: Order refused for table {table_number} - {result.error_code}")
            return result

        data = self._body(response)
        order_id = data.get("id") if isinstance(data, dict) else None
        logger.info(f"HTTP: Order #{order_id} submitted for table {table_number}")
        return SubmitOrderResult(success=True, order_id=order_id)

    async def health_check(self) -> bool:
        try:
            response = await self._request("GET", "/health")
        except TransientNetworkError:
            return False
        return response.is_success
