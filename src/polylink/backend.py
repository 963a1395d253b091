"""Dome execution service client.

Submits signed orders, cancellations and winnings claims, and turns the
service's response envelopes into results or typed errors.
"""

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from .config import DEFAULT_API_ENDPOINT, DEFAULT_TIMEOUT_SECONDS
from .errors import (
    ApplicationError,
    ConfigurationError,
    EmptyResultError,
    OrderRejectedError,
    TransportError,
)
from .types import ClaimWinningsParams, ExchangeCredentials, SignedOrder

logger = logging.getLogger(__name__)

_DELEGATED_FIELDS = ("privy_wallet_id", "condition_id", "outcome_index")


def build_place_order_request(
    signed_order: SignedOrder,
    credentials: ExchangeCredentials,
    client_order_id: str,
    *,
    order_type: str = "GTC",
    payer_address: Optional[str] = None,
    signer_address: Optional[str] = None,
    order_fee_auth: Optional[Dict[str, Any]] = None,
    affiliate: Optional[str] = None,
) -> Dict[str, Any]:
    """JSON-RPC placeOrder request body."""
    params: Dict[str, Any] = {
        "signedOrder": signed_order.to_payload(),
        "orderType": order_type,
        "credentials": credentials.to_request(),
        "clientOrderId": client_order_id,
    }
    if payer_address:
        params["payerAddress"] = payer_address
    if signer_address:
        params["signerAddress"] = signer_address
    if order_fee_auth is not None:
        params["orderFeeAuth"] = order_fee_auth
    if affiliate:
        params["affiliate"] = affiliate

    return {
        "jsonrpc": "2.0",
        "method": "placeOrder",
        "id": client_order_id,
        "params": params,
    }


def _present(value: Any) -> bool:
    return value is not None and value != ""


def check_redemption_flow(params: Mapping[str, Any]) -> bool:
    """Check that a claim carries exactly one redemption flow.

    The flows are a pre-signed redeem transaction ('eoa') or the Privy
    delegation fields privy_wallet_id/condition_id/outcome_index ('privy').

    Returns:
        True for the signed transaction flow, False for Privy delegation

    Raises:
        ConfigurationError: If both or neither flow is supplied, or the flow
            does not match wallet_type
    """
    wallet_type = params.get("wallet_type")
    if wallet_type not in ("eoa", "privy"):
        raise ConfigurationError(
            f"Invalid wallet_type: {wallet_type}. Must be 'eoa' or 'privy'"
        )

    has_signed_tx = _present(params.get("signed_redeem_tx"))
    delegated = [params.get(key) for key in _DELEGATED_FIELDS]
    has_any_delegated = any(_present(value) for value in delegated)

    if has_signed_tx and has_any_delegated:
        raise ConfigurationError(
            "Provide either signed_redeem_tx or privy_wallet_id/condition_id/outcome_index, not both"
        )
    if not has_signed_tx and not has_any_delegated:
        raise ConfigurationError(
            "Provide signed_redeem_tx ('eoa') or privy_wallet_id/condition_id/outcome_index ('privy')"
        )
    if wallet_type == "eoa" and not has_signed_tx:
        raise ConfigurationError("wallet_type 'eoa' requires signed_redeem_tx")
    if wallet_type == "privy" and not all(_present(value) for value in delegated):
        raise ConfigurationError(
            "wallet_type 'privy' requires privy_wallet_id, condition_id and outcome_index"
        )
    return has_signed_tx


def build_claim_request(params: ClaimWinningsParams) -> Dict[str, Any]:
    """Validate a claim and build its request body.

    Raises:
        ConfigurationError: If a required field is missing or the redemption
            flow is invalid (see check_redemption_flow)
    """
    has_signed_tx = check_redemption_flow(params)

    for key in ("position_id", "payer_address", "signer_address", "performance_fee_auth"):
        if not params.get(key):
            raise ConfigurationError(f"{key} is required to claim winnings")

    request: Dict[str, Any] = {
        "positionId": params["position_id"],
        "walletType": params["wallet_type"],
        "payerAddress": params["payer_address"],
        "signerAddress": params["signer_address"],
        "performanceFeeAuth": params["performance_fee_auth"],
    }
    if has_signed_tx:
        request["signedRedeemTx"] = params["signed_redeem_tx"]
    else:
        request["privyWalletId"] = params["privy_wallet_id"]
        request["conditionId"] = params["condition_id"]
        request["outcomeIndex"] = int(params["outcome_index"])
    if params.get("affiliate"):
        request["affiliate"] = params["affiliate"]
    return request


class BackendClient:
    """Async client for the Dome execution service.

    Example:
        ```python
        async with BackendClient(api_key="...") as backend:
            result = await backend.place_order(request)
        ```
    """

    def __init__(
        self,
        api_key: Optional[str],
        endpoint: str = DEFAULT_API_ENDPOINT,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()

    async def _post(self, operation: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationError(
                f"Dome API key not set. Pass api_key to use {operation}."
            )

        url = f"{self.endpoint}/polymarket/{operation}"
        try:
            response = await self._http_client.post(
                url,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                json=body,
            )
        except httpx.RequestError as e:
            raise TransportError(f"{operation} request failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"{operation} request failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError:
            raise TransportError(
                f"{operation} returned invalid JSON",
                status_code=response.status_code,
                body=response.text,
            ) from None
        if not isinstance(payload, dict):
            raise TransportError(
                f"{operation} returned an unexpected body",
                status_code=response.status_code,
                body=response.text,
            )
        return payload

    async def place_order(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Submit a placeOrder request.

        Returns:
            The `result` member (status LIVE, MATCHED or DELAYED)

        Raises:
            ApplicationError: The envelope carries an error or a non-object result
            EmptyResultError: The envelope has no result
            OrderRejectedError: The result echoes an upstream HTTP status >= 400
        """
        payload = await self._post("placeOrder", request)

        error = payload.get("error")
        if error:
            if isinstance(error, dict):
                data = error.get("data") or {}
                reason = (data.get("reason") if isinstance(data, dict) else None) or error.get(
                    "message"
                )
                raise ApplicationError(
                    f"Order placement failed: {reason} (code: {error.get('code')})",
                    code=error.get("code"),
                    data=data,
                )
            raise ApplicationError(
                f"Order placement failed: {payload.get('message') or error}", data=payload
            )

        result = payload.get("result")
        if not result:
            raise EmptyResultError("Server returned empty result", data=payload)
        if not isinstance(result, dict):
            raise ApplicationError("Server returned malformed result", data=payload)

        status = result.get("status")
        if isinstance(status, int) and not isinstance(status, bool) and status >= 400:
            message = (
                result.get("errorMessage")
                or result.get("error")
                or f"Polymarket returned HTTP {status}"
            )
            raise OrderRejectedError(
                f"Order rejected by Polymarket: {message}", code=status, data=result
            )

        logger.info(
            "Order %s placed (status %s)", result.get("orderId"), result.get("status")
        )
        return result

    async def cancel_order(
        self, order_id: str, signer_address: str, credentials: ExchangeCredentials
    ) -> Dict[str, Any]:
        """Cancel an order and trigger any escrow refund.

        Returns:
            The response (clobCancelResult with canceled / not_canceled, optional escrow)
        """
        payload = await self._post(
            "cancelOrder",
            {
                "orderId": order_id,
                "signerAddress": signer_address,
                "credentials": credentials.to_request(),
            },
        )
        self._check_success(payload, "Order cancellation", "cancellation")
        logger.info("Order %s cancel submitted", order_id)
        return payload

    async def claim_winnings(self, params: ClaimWinningsParams) -> Dict[str, Any]:
        """Redeem a winning position and collect its performance fee.

        The request is validated before anything is sent.

        Returns:
            The response (status completed or failed, optional tx hashes)
        """
        request = build_claim_request(params)
        payload = await self._post("claimWinnings", request)
        self._check_success(payload, "Claim winnings", "claim")
        logger.info(
            "Claim for position %s: %s", request["positionId"], payload.get("status")
        )
        return payload

    @staticmethod
    def _check_success(payload: Dict[str, Any], action: str, noun: str) -> None:
        if payload.get("error") or payload.get("message"):
            raise ApplicationError(
                f"{action} failed: {payload.get('error') or payload.get('message')}",
                data=payload,
            )
        if "success" not in payload:
            raise EmptyResultError("Server returned empty result", data=payload)
        if not payload["success"]:
            raise ApplicationError(f"Server returned unsuccessful {noun}", data=payload)


__all__ = [
    "BackendClient",
    "build_place_order_request",
    "build_claim_request",
    "check_redemption_flow",
]
