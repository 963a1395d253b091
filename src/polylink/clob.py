"""Exchange CLOB API credentials.

Credentials are bound to the signing key. They are obtained with an L1
request: headers carrying an EIP-712 ClobAuth signature made by the wallet.
Deriving returns the existing key set; creating mints a new one.

The ClobAuth constants and endpoint paths come from py-clob-client. Its
signer only takes a raw private key, so the message is signed here through
the async Signer instead, which covers custodial and browser wallets.
"""

import logging
import time
from typing import Dict, Optional

import httpx
from eth_utils import to_checksum_address
from py_clob_client.endpoints import CREATE_API_KEY, DERIVE_API_KEY
from py_clob_client.signing.eip712 import CLOB_DOMAIN_NAME, CLOB_VERSION, MSG_TO_SIGN

from .config import DEFAULT_CLOB_ENDPOINT, POLYGON_CHAIN_ID
from .errors import CredentialDerivationError, TransportError
from .signers import Signer
from .types import ExchangeCredentials

logger = logging.getLogger(__name__)


CLOB_AUTH_DOMAIN_NAME = CLOB_DOMAIN_NAME
CLOB_AUTH_DOMAIN_VERSION = CLOB_VERSION
CLOB_AUTH_MESSAGE = MSG_TO_SIGN

CLOB_AUTH_TYPES = {
    "ClobAuth": [
        {"name": "address", "type": "address"},
        {"name": "timestamp", "type": "string"},
        {"name": "nonce", "type": "uint256"},
        {"name": "message", "type": "string"},
    ]
}


async def build_l1_headers(
    signer: Signer,
    chain_id: int,
    *,
    nonce: int = 0,
    timestamp: Optional[int] = None,
) -> Dict[str, str]:
    """Sign a ClobAuth message and return the POLY_* L1 headers."""
    address = to_checksum_address(await signer.get_address())
    ts = str(timestamp if timestamp is not None else int(time.time()))
    domain = {
        "name": CLOB_AUTH_DOMAIN_NAME,
        "version": CLOB_AUTH_DOMAIN_VERSION,
        "chainId": chain_id,
    }
    message = {
        "address": address,
        "timestamp": ts,
        "nonce": nonce,
        "message": CLOB_AUTH_MESSAGE,
    }
    signature = await signer.sign_typed_data(domain, CLOB_AUTH_TYPES, "ClobAuth", message)
    return {
        "POLY_ADDRESS": address,
        "POLY_SIGNATURE": signature,
        "POLY_TIMESTAMP": ts,
        "POLY_NONCE": str(nonce),
    }


def _parse_credentials(data: Dict[str, str]) -> ExchangeCredentials:
    return ExchangeCredentials(
        api_key=str(data.get("apiKey") or data.get("key") or "").strip(),
        api_secret=str(data.get("secret") or "").strip(),
        api_passphrase=str(data.get("passphrase") or "").strip(),
    )


class ClobCredentialClient:
    """Derives and creates exchange API credentials for a signer."""

    def __init__(
        self,
        endpoint: str = DEFAULT_CLOB_ENDPOINT,
        chain_id: int = POLYGON_CHAIN_ID,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.chain_id = chain_id
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def _call(self, method: str, path: str, signer: Signer) -> ExchangeCredentials:
        headers = await build_l1_headers(signer, self.chain_id)
        try:
            response = await self._http_client.request(
                method, f"{self.endpoint}{path}", headers=headers
            )
        except httpx.RequestError as e:
            raise TransportError(f"CLOB request failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"CLOB {path} failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return _parse_credentials(response.json())

    async def derive_api_key(self, signer: Signer) -> ExchangeCredentials:
        """GET /auth/derive-api-key: existing credentials for the signing key."""
        return await self._call("GET", DERIVE_API_KEY, signer)

    async def create_api_key(self, signer: Signer) -> ExchangeCredentials:
        """POST /auth/api-key: mint new credentials for the signing key."""
        return await self._call("POST", CREATE_API_KEY, signer)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()


async def derive_or_create_credentials(
    client: ClobCredentialClient, signer: Signer
) -> ExchangeCredentials:
    """Derive existing credentials, creating new ones only if derivation fails.

    A derived key set missing any field counts as a failed derivation.

    Raises:
        CredentialDerivationError: If both phases fail; the message names the
            creation failure
    """
    derive_error: Optional[BaseException] = None
    try:
        credentials = await client.derive_api_key(signer)
        if credentials.is_valid():
            logger.debug("Derived existing API credentials")
            return credentials
        derive_error = ValueError("Derived credentials are incomplete")
    except Exception as e:
        derive_error = e

    logger.info("Could not derive API credentials (%s), creating new ones", derive_error)
    try:
        credentials = await client.create_api_key(signer)
    except Exception as e:
        raise CredentialDerivationError(
            f"Failed to create API credentials: {e}",
            derive_error=derive_error,
            create_error=e,
        ) from e

    if not credentials.is_valid():
        raise CredentialDerivationError(
            "Failed to create API credentials: response missing key, secret or passphrase",
            derive_error=derive_error,
        )
    return credentials


__all__ = [
    "CLOB_AUTH_TYPES",
    "build_l1_headers",
    "ClobCredentialClient",
    "derive_or_create_credentials",
]
