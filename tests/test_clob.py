"""Tests for CLOB API credential derivation."""

import httpx
import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from polylink.clob import (
    CLOB_AUTH_TYPES,
    ClobCredentialClient,
    build_l1_headers,
    derive_or_create_credentials,
)
from polylink.errors import CredentialDerivationError, TransportError
from polylink.signers import build_typed_data

from conftest import TEST_ADDRESS

CREDENTIALS_BODY = {"apiKey": "key-1", "secret": "secret-1", "passphrase": "pass-1"}


def _client(handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ClobCredentialClient("https://clob.test", 137, http_client=http_client)


class TestL1Headers:
    """Tests for ClobAuth headers."""

    @pytest.mark.asyncio
    async def test_headers_carry_recoverable_signature(self, signer):
        headers = await build_l1_headers(signer, 137, timestamp=1700000000)

        assert headers["POLY_ADDRESS"] == TEST_ADDRESS
        assert headers["POLY_TIMESTAMP"] == "1700000000"
        assert headers["POLY_NONCE"] == "0"

        typed = build_typed_data(
            {"name": "ClobAuthDomain", "version": "1", "chainId": 137},
            CLOB_AUTH_TYPES,
            "ClobAuth",
            {
                "address": TEST_ADDRESS,
                "timestamp": "1700000000",
                "nonce": 0,
                "message": "This message attests that I control the given wallet",
            },
        )
        recovered = Account.recover_message(
            encode_typed_data(full_message=typed), signature=headers["POLY_SIGNATURE"]
        )
        assert recovered == TEST_ADDRESS


class TestCredentialClient:
    """Tests for derive and create calls."""

    @pytest.mark.asyncio
    async def test_derive_api_key(self, signer):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["address"] = request.headers["POLY_ADDRESS"]
            return httpx.Response(200, json=CREDENTIALS_BODY)

        credentials = await _client(handler).derive_api_key(signer)

        assert seen == {
            "method": "GET",
            "path": "/auth/derive-api-key",
            "address": TEST_ADDRESS,
        }
        assert credentials.api_key == "key-1"
        assert credentials.api_secret == "secret-1"
        assert credentials.api_passphrase == "pass-1"

    @pytest.mark.asyncio
    async def test_error_status_raises_transport_error(self, signer):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "Unauthorized"})

        with pytest.raises(TransportError) as exc_info:
            await _client(handler).create_api_key(signer)

        assert exc_info.value.status_code == 401


class TestDeriveOrCreate:
    """Derive first, create only on failure."""

    @pytest.mark.asyncio
    async def test_derive_success_skips_create(self, signer):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json=CREDENTIALS_BODY)

        credentials = await derive_or_create_credentials(_client(handler), signer)

        assert credentials.is_valid()
        assert paths == ["/auth/derive-api-key"]

    @pytest.mark.asyncio
    async def test_create_after_failed_derive(self, signer):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append((request.method, request.url.path))
            if request.url.path == "/auth/derive-api-key":
                return httpx.Response(400, json={"error": "Could not derive api key!"})
            return httpx.Response(200, json={"key": "new", "secret": "s", "passphrase": "p"})

        credentials = await derive_or_create_credentials(_client(handler), signer)

        assert credentials.api_key == "new"
        assert paths == [("GET", "/auth/derive-api-key"), ("POST", "/auth/api-key")]

    @pytest.mark.asyncio
    async def test_both_phases_fail(self, signer):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="unavailable")

        with pytest.raises(CredentialDerivationError, match="Failed to create API credentials"):
            await derive_or_create_credentials(_client(handler), signer)

    @pytest.mark.asyncio
    async def test_incomplete_created_credentials(self, signer):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"apiKey": "only-key"})

        with pytest.raises(CredentialDerivationError, match="missing key, secret or passphrase"):
            await derive_or_create_credentials(_client(handler), signer)
