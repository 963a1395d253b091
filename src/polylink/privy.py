"""Privy server wallet integration.

Privy holds the user's key; we only ask it to sign typed data and to
broadcast approval transactions through its wallet RPC endpoint.
Requests to wallets with an owner must carry an authorization signature
produced with the app's P-256 authorization key.
"""

import base64
import json
import logging
import os
from typing import Any, Dict, List, Optional

import httpx
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from eth_utils import to_checksum_address

from .config import DEFAULT_PRIVY_ENDPOINT, POLYGON_CHAIN_ID, PrivyConfig
from .errors import ApplicationError, ConfigurationError, TransportError

logger = logging.getLogger(__name__)


AUTHORIZATION_KEY_PREFIX = "wallet-auth:"


def canonical_json(value: Any) -> str:
    """Canonical JSON (sorted keys, no whitespace) used for request signing."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _load_authorization_key(authorization_key: str) -> ec.EllipticCurvePrivateKey:
    raw = authorization_key
    if raw.startswith(AUTHORIZATION_KEY_PREFIX):
        raw = raw[len(AUTHORIZATION_KEY_PREFIX):]
    try:
        key = serialization.load_der_private_key(base64.b64decode(raw), password=None)
    except ValueError as e:
        raise ConfigurationError(f"Invalid Privy authorization key: {e}") from e
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise ConfigurationError("Privy authorization key must be a P-256 key")
    return key


def _stringify_ints(value: Any) -> Any:
    # uint256 values do not survive JSON number parsing on the other side
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, dict):
        return {k: _stringify_ints(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_stringify_ints(v) for v in value]
    return value


class PrivyClient:
    """Minimal async client for the Privy wallet RPC API."""

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        authorization_key: Optional[str] = None,
        *,
        endpoint: str = DEFAULT_PRIVY_ENDPOINT,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        if not app_id or not app_secret:
            raise ConfigurationError("Privy app_id and app_secret are required")
        self.app_id = app_id
        self._app_secret = app_secret
        self._authorization_key = (
            _load_authorization_key(authorization_key) if authorization_key else None
        )
        self.endpoint = endpoint.rstrip("/")
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(cls, config: PrivyConfig, **kwargs: Any) -> "PrivyClient":
        return cls(
            config.get("app_id", ""),
            config.get("app_secret", ""),
            config.get("authorization_key"),
            endpoint=config.get("endpoint", DEFAULT_PRIVY_ENDPOINT),
            **kwargs,
        )

    def authorization_signature(self, method: str, url: str, body: Dict[str, Any]) -> str:
        """Sign a request with the app authorization key.

        Returns:
            Base64 DER-encoded ECDSA P-256 signature
        """
        if self._authorization_key is None:
            raise ConfigurationError("Privy authorization key not configured")
        payload = canonical_json(
            {
                "version": 1,
                "method": method,
                "url": url,
                "body": body,
                "headers": {"privy-app-id": self.app_id},
            }
        )
        signature = self._authorization_key.sign(
            payload.encode("utf-8"), ec.ECDSA(hashes.SHA256())
        )
        return base64.b64encode(signature).decode("ascii")

    async def wallet_rpc(self, wallet_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Call the wallet RPC endpoint and return the `data` member."""
        url = f"{self.endpoint}/v1/wallets/{wallet_id}/rpc"
        basic = base64.b64encode(f"{self.app_id}:{self._app_secret}".encode()).decode()
        headers = {
            "Authorization": f"Basic {basic}",
            "privy-app-id": self.app_id,
            "Content-Type": "application/json",
        }
        if self._authorization_key is not None:
            headers["privy-authorization-signature"] = self.authorization_signature(
                "POST", url, body
            )

        try:
            response = await self._http_client.post(url, headers=headers, json=body)
        except httpx.RequestError as e:
            raise TransportError(f"Privy request failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"Privy request failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        payload = response.json()
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ApplicationError(
                f"Privy returned no data for {body.get('method')}", data=payload
            )
        return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()


class PrivyWalletSigner:
    """Signer and TransactionSender for a Privy server wallet."""

    def __init__(
        self,
        client: PrivyClient,
        wallet_id: str,
        address: str,
        chain_id: int = POLYGON_CHAIN_ID,
    ):
        if not wallet_id:
            raise ConfigurationError("Privy wallet_id is required")
        self._client = client
        self.wallet_id = wallet_id
        self._address = to_checksum_address(address)
        self.chain_id = chain_id

    async def get_address(self) -> str:
        return self._address

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, List[Dict[str, str]]],
        primary_type: str,
        message: Dict[str, Any],
    ) -> str:
        data = await self._client.wallet_rpc(
            self.wallet_id,
            {
                "method": "eth_signTypedData_v4",
                "params": {
                    "typed_data": {
                        "domain": domain,
                        "types": types,
                        "primary_type": primary_type,
                        "message": _stringify_ints(message),
                    }
                },
            },
        )
        signature = data.get("signature")
        if not signature:
            raise ApplicationError("Privy returned an empty signature", data=data)
        return signature

    async def send_transaction(
        self, to: str, data: str, *, value: int = 0, sponsor: bool = False
    ) -> str:
        body: Dict[str, Any] = {
            "method": "eth_sendTransaction",
            "caip2": f"eip155:{self.chain_id}",
            "chain_type": "ethereum",
            "params": {
                "transaction": {
                    "to": to_checksum_address(to),
                    "data": data,
                    "value": hex(value),
                    "chain_id": self.chain_id,
                }
            },
        }
        if sponsor:
            body["sponsor"] = True

        result = await self._client.wallet_rpc(self.wallet_id, body)
        tx_hash = result.get("hash")
        if not tx_hash:
            raise ApplicationError("Privy returned no transaction hash", data=result)
        logger.debug("Privy wallet %s sent transaction %s", self.wallet_id, tx_hash)
        return tx_hash


def create_privy_signer_from_env(chain_id: int = POLYGON_CHAIN_ID) -> PrivyWalletSigner:
    """Create a Privy signer from PRIVY_* environment variables.

    Reads PRIVY_APP_ID, PRIVY_APP_SECRET, PRIVY_AUTHORIZATION_KEY,
    PRIVY_WALLET_ID and PRIVY_WALLET_ADDRESS.
    """
    required = ["PRIVY_APP_ID", "PRIVY_APP_SECRET", "PRIVY_WALLET_ID", "PRIVY_WALLET_ADDRESS"]
    missing = [var for var in required if not os.environ.get(var)]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    client = PrivyClient(
        os.environ["PRIVY_APP_ID"],
        os.environ["PRIVY_APP_SECRET"],
        os.environ.get("PRIVY_AUTHORIZATION_KEY") or None,
    )
    return PrivyWalletSigner(
        client,
        os.environ["PRIVY_WALLET_ID"],
        os.environ["PRIVY_WALLET_ADDRESS"],
        chain_id=chain_id,
    )


__all__ = [
    "PrivyClient",
    "PrivyWalletSigner",
    "canonical_json",
    "create_privy_signer_from_env",
]
