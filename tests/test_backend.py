"""Tests for the Dome execution service client."""

import json

import httpx
import pytest

from polylink.backend import BackendClient, build_claim_request, build_place_order_request
from polylink.errors import (
    ApplicationError,
    ConfigurationError,
    EmptyResultError,
    OrderRejectedError,
    TransportError,
)
from polylink.types import SignedOrder

from conftest import TEST_ADDRESS, TEST_CREDENTIALS

SIGNED_ORDER = SignedOrder(
    salt=12345,
    maker=TEST_ADDRESS,
    signer=TEST_ADDRESS,
    taker="0x0000000000000000000000000000000000000000",
    token_id="1234",
    maker_amount="6500000",
    taker_amount="10000000",
    expiration="0",
    nonce="0",
    fee_rate_bps="0",
    side="BUY",
    signature_type=0,
    signature="0x" + "11" * 65,
)

FEE_AUTH = {"positionId": "0x" + "ab" * 32, "signature": "0x" + "22" * 65}


def _client(handler, api_key="dome-key"):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BackendClient(api_key, "https://api.test/v1", http_client=http_client)


def _respond(payload, status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return handler


def _claim(**overrides):
    params = {
        "position_id": "0x" + "ab" * 32,
        "wallet_type": "eoa",
        "payer_address": TEST_ADDRESS,
        "signer_address": TEST_ADDRESS,
        "performance_fee_auth": FEE_AUTH,
        "signed_redeem_tx": "0x02f8",
    }
    params.update(overrides)
    return params


class TestRequestBuilders:
    """Tests for request body construction."""

    def test_place_order_request(self):
        body = build_place_order_request(
            SIGNED_ORDER,
            TEST_CREDENTIALS,
            "client-1",
            order_type="FOK",
            payer_address=TEST_ADDRESS,
            signer_address=TEST_ADDRESS,
            order_fee_auth={"orderId": "0x01"},
        )

        assert body["jsonrpc"] == "2.0"
        assert body["method"] == "placeOrder"
        assert body["id"] == "client-1"
        assert body["params"]["clientOrderId"] == "client-1"
        assert body["params"]["orderType"] == "FOK"
        assert body["params"]["credentials"]["apiKey"] == "key-123"
        assert body["params"]["orderFeeAuth"] == {"orderId": "0x01"}
        assert "affiliate" not in body["params"]

    def test_claim_request_eoa(self):
        request = build_claim_request(_claim())

        assert request["signedRedeemTx"] == "0x02f8"
        assert "privyWalletId" not in request

    def test_claim_request_privy(self):
        request = build_claim_request(
            _claim(
                wallet_type="privy",
                signed_redeem_tx=None,
                privy_wallet_id="wallet-1",
                condition_id="0x" + "cd" * 32,
                outcome_index=0,
            )
        )

        assert request["privyWalletId"] == "wallet-1"
        assert request["outcomeIndex"] == 0
        assert "signedRedeemTx" not in request

    def test_claim_request_rejects_both_flows(self):
        with pytest.raises(ConfigurationError, match="not both"):
            build_claim_request(_claim(privy_wallet_id="wallet-1"))

    def test_claim_request_rejects_neither_flow(self):
        with pytest.raises(ConfigurationError):
            build_claim_request(_claim(signed_redeem_tx=None))

    def test_claim_request_requires_fee_auth(self):
        with pytest.raises(ConfigurationError, match="performance_fee_auth"):
            build_claim_request(_claim(performance_fee_auth=None))


class TestPlaceOrder:
    """Tests for placeOrder envelope handling."""

    @pytest.mark.asyncio
    async def test_success_returns_result(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "result": {"orderId": "0xabc", "status": "LIVE"}}
            )

        async with _client(handler) as backend:
            result = await backend.place_order({"method": "placeOrder", "params": {}})

        assert result == {"orderId": "0xabc", "status": "LIVE"}
        assert seen["url"] == "https://api.test/v1/polymarket/placeOrder"
        assert seen["auth"] == "Bearer dome-key"

    @pytest.mark.asyncio
    async def test_upstream_http_status_in_result_is_rejected(self):
        payload = {"result": {"status": 403, "errorMessage": "region blocked"}}

        async with _client(_respond(payload)) as backend:
            with pytest.raises(OrderRejectedError, match="region blocked") as exc_info:
                await backend.place_order({})

        assert exc_info.value.code == 403

    @pytest.mark.asyncio
    async def test_error_envelope(self):
        payload = {"error": {"code": -32000, "message": "bad", "data": {"reason": "insufficient balance"}}}

        async with _client(_respond(payload)) as backend:
            with pytest.raises(
                ApplicationError, match="insufficient balance \\(code: -32000\\)"
            ):
                await backend.place_order({})

    @pytest.mark.asyncio
    async def test_empty_result(self):
        async with _client(_respond({"jsonrpc": "2.0"})) as backend:
            with pytest.raises(EmptyResultError, match="Server returned empty result"):
                await backend.place_order({})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", ["ok", ["LIVE"], 1])
    async def test_non_object_result(self, result):
        """A result that is not an object is an application error."""
        async with _client(_respond({"jsonrpc": "2.0", "result": result})) as backend:
            with pytest.raises(ApplicationError, match="malformed result") as exc_info:
                await backend.place_order({})

        assert not isinstance(exc_info.value, OrderRejectedError)

    @pytest.mark.asyncio
    async def test_non_2xx_is_transport_error(self):
        async with _client(_respond({"error": "boom"}, status_code=502)) as backend:
            with pytest.raises(TransportError) as exc_info:
                await backend.place_order({})

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_invalid_json_is_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        async with _client(handler) as backend:
            with pytest.raises(TransportError, match="invalid JSON"):
                await backend.place_order({})

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_before_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        async with _client(handler, api_key=None) as backend:
            with pytest.raises(ConfigurationError, match="API key"):
                await backend.place_order({})

        assert calls == []


class TestCancelAndClaim:
    """Tests for cancelOrder and claimWinnings."""

    @pytest.mark.asyncio
    async def test_cancel_success(self):
        payload = {"success": True, "clobCancelResult": {"canceled": ["0xabc"], "not_canceled": {}}}

        async with _client(_respond(payload)) as backend:
            result = await backend.cancel_order("0xabc", TEST_ADDRESS, TEST_CREDENTIALS)

        assert result["clobCancelResult"]["canceled"] == ["0xabc"]

    @pytest.mark.asyncio
    async def test_cancel_unsuccessful(self):
        async with _client(_respond({"success": False})) as backend:
            with pytest.raises(ApplicationError, match="unsuccessful cancellation"):
                await backend.cancel_order("0xabc", TEST_ADDRESS, TEST_CREDENTIALS)

    @pytest.mark.asyncio
    async def test_cancel_without_success_key(self):
        async with _client(_respond({"status": "ok"})) as backend:
            with pytest.raises(EmptyResultError):
                await backend.cancel_order("0xabc", TEST_ADDRESS, TEST_CREDENTIALS)

    @pytest.mark.asyncio
    async def test_cancel_error_message(self):
        async with _client(_respond({"error": "order not found"})) as backend:
            with pytest.raises(ApplicationError, match="order not found"):
                await backend.cancel_order("0xabc", TEST_ADDRESS, TEST_CREDENTIALS)

    @pytest.mark.asyncio
    async def test_claim_validation_happens_before_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"success": True})

        async with _client(handler) as backend:
            with pytest.raises(ConfigurationError):
                await backend.claim_winnings(_claim(condition_id="0x" + "cd" * 32))

        assert calls == []

    @pytest.mark.asyncio
    async def test_claim_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "status": "completed"})

        async with _client(handler) as backend:
            result = await backend.claim_winnings(_claim())

        assert result["status"] == "completed"
        assert seen["body"]["performanceFeeAuth"] == FEE_AUTH
        assert seen["body"]["walletType"] == "eoa"

    @pytest.mark.asyncio
    async def test_claim_unsuccessful(self):
        async with _client(_respond({"success": False, "status": "failed"})) as backend:
            with pytest.raises(ApplicationError, match="unsuccessful claim"):
                await backend.claim_winnings(_claim())
