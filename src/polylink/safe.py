"""Safe smart accounts: address derivation and relayer access.

A user's Safe address is a CREATE2 address of the exchange's Safe proxy
factory, salted with the owner address. Deployment and Safe transactions go
through the exchange relayer, which pays gas; the owner only signs typed data.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from eth_abi import encode
from eth_utils import keccak, to_bytes, to_checksum_address

from .config import ContractConfig, get_contract_config
from .errors import ApplicationError, TransactionFailedError, TransportError
from .escrow.utils import ZERO_ADDRESS
from .signers import Signer

logger = logging.getLogger(__name__)


SAFE_FACTORY_NAME = "Polymarket Contract Proxy Factory"

CREATE_PROXY_TYPES = {
    "CreateProxy": [
        {"name": "paymentToken", "type": "address"},
        {"name": "payment", "type": "uint256"},
        {"name": "paymentReceiver", "type": "address"},
    ]
}

SAFE_TX_TYPES = {
    "SafeTx": [
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "data", "type": "bytes"},
        {"name": "operation", "type": "uint8"},
        {"name": "safeTxGas", "type": "uint256"},
        {"name": "baseGas", "type": "uint256"},
        {"name": "gasPrice", "type": "uint256"},
        {"name": "gasToken", "type": "address"},
        {"name": "refundReceiver", "type": "address"},
        {"name": "nonce", "type": "uint256"},
    ]
}

STATE_MINED = "STATE_MINED"
STATE_CONFIRMED = "STATE_CONFIRMED"
STATE_FAILED = "STATE_FAILED"
STATE_INVALID = "STATE_INVALID"

_DONE_STATES = (STATE_MINED, STATE_CONFIRMED)
_FAILED_STATES = (STATE_FAILED, STATE_INVALID)


def derive_safe_address(
    owner: str, chain_id: int, contracts: Optional[ContractConfig] = None
) -> str:
    """Deterministic Safe address for an owner, valid before deployment.

    Args:
        owner: Owner (signer) address
        chain_id: Chain ID selecting the Safe factory
        contracts: Override contract config (defaults to the chain's)

    Returns:
        Checksummed Safe address

    Raises:
        ValueError: If the owner address is invalid
    """
    contracts = contracts or get_contract_config(chain_id)
    salt = keccak(encode(["address"], [to_checksum_address(owner)]))
    digest = keccak(
        b"\xff"
        + to_bytes(hexstr=contracts.safe_factory)
        + salt
        + to_bytes(hexstr=contracts.safe_init_code_hash)
    )
    return to_checksum_address(digest[12:])


@dataclass
class RelayTransaction:
    """A transaction submitted through the relayer."""

    transaction_id: str
    state: str
    transaction_hash: Optional[str] = None
    proxy_address: Optional[str] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "RelayTransaction":
        return cls(
            transaction_id=str(data.get("transactionID") or data.get("transactionId") or ""),
            state=str(data.get("state") or ""),
            transaction_hash=data.get("transactionHash") or data.get("hash"),
            proxy_address=data.get("proxyAddress"),
        )


class RelayClient:
    """Async client for the exchange's Safe relayer."""

    def __init__(
        self,
        endpoint: str,
        chain_id: int,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        poll_interval: float = 2.0,
        max_polls: int = 60,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.chain_id = chain_id
        self.contracts = get_contract_config(chain_id)
        self._headers = dict(headers or {})
        self._poll_interval = poll_interval
        self._max_polls = max_polls
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.endpoint}{path}"
        try:
            response = await self._http_client.request(
                method, url, headers=self._headers, **kwargs
            )
        except httpx.RequestError as e:
            raise TransportError(f"Relayer request failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"Relayer request failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return response.json()

    async def get_nonce(self, owner: str) -> int:
        """Current Safe nonce tracked by the relayer for an owner."""
        data = await self._request(
            "GET", "/nonce", params={"address": to_checksum_address(owner), "type": "SAFE"}
        )
        try:
            return int(data["nonce"])
        except (KeyError, TypeError, ValueError):
            raise ApplicationError("Relayer returned no nonce", data=data) from None

    async def deploy(self, signer: Signer) -> RelayTransaction:
        """Deploy the signer's Safe and wait until it is mined."""
        owner = await signer.get_address()
        safe_address = derive_safe_address(owner, self.chain_id, self.contracts)

        domain = {
            "name": SAFE_FACTORY_NAME,
            "chainId": self.chain_id,
            "verifyingContract": to_checksum_address(self.contracts.safe_factory),
        }
        message = {
            "paymentToken": ZERO_ADDRESS,
            "payment": 0,
            "paymentReceiver": ZERO_ADDRESS,
        }
        signature = await signer.sign_typed_data(
            domain, CREATE_PROXY_TYPES, "CreateProxy", message
        )

        logger.info("Deploying Safe %s for owner %s", safe_address, owner)
        submitted = await self._request(
            "POST",
            "/submit",
            json={
                "from": owner,
                "to": to_checksum_address(self.contracts.safe_factory),
                "proxyWallet": safe_address,
                "data": "0x",
                "signature": signature,
                "signatureParams": {
                    "paymentToken": ZERO_ADDRESS,
                    "payment": "0",
                    "paymentReceiver": ZERO_ADDRESS,
                },
                "type": "SAFE-CREATE",
            },
        )
        tx = await self.wait_for_transaction(RelayTransaction.from_response(submitted))
        tx.proxy_address = tx.proxy_address or safe_address
        return tx

    async def execute(
        self,
        signer: Signer,
        safe_address: str,
        to: str,
        data: str,
        value: int = 0,
    ) -> RelayTransaction:
        """Execute a single call from the Safe and wait until it is mined."""
        owner = await signer.get_address()
        nonce = await self.get_nonce(owner)

        domain = {
            "chainId": self.chain_id,
            "verifyingContract": to_checksum_address(safe_address),
        }
        message = {
            "to": to_checksum_address(to),
            "value": value,
            "data": data,
            "operation": 0,
            "safeTxGas": 0,
            "baseGas": 0,
            "gasPrice": 0,
            "gasToken": ZERO_ADDRESS,
            "refundReceiver": ZERO_ADDRESS,
            "nonce": nonce,
        }
        signature = await signer.sign_typed_data(domain, SAFE_TX_TYPES, "SafeTx", message)

        submitted = await self._request(
            "POST",
            "/submit",
            json={
                "from": owner,
                "to": message["to"],
                "proxyWallet": to_checksum_address(safe_address),
                "data": data,
                "value": str(value),
                "nonce": str(nonce),
                "signature": signature,
                "signatureParams": {
                    "gasPrice": "0",
                    "operation": "0",
                    "safeTxnGas": "0",
                    "baseGas": "0",
                    "gasToken": ZERO_ADDRESS,
                    "refundReceiver": ZERO_ADDRESS,
                },
                "type": "SAFE",
            },
        )
        return await self.wait_for_transaction(RelayTransaction.from_response(submitted))

    async def wait_for_transaction(self, tx: RelayTransaction) -> RelayTransaction:
        """Poll the relayer until a transaction is mined or fails.

        Raises:
            TransactionFailedError: If the relayer reports failure or polling runs out
        """
        polls = 0
        while tx.state not in _DONE_STATES:
            if tx.state in _FAILED_STATES:
                raise TransactionFailedError(
                    f"Relayer transaction {tx.transaction_id} ended in {tx.state}",
                    tx_hash=tx.transaction_hash,
                )
            if polls >= self._max_polls:
                raise TransactionFailedError(
                    f"Relayer transaction {tx.transaction_id} not mined after "
                    f"{polls} polls (last state {tx.state})",
                    tx_hash=tx.transaction_hash,
                )
            polls += 1
            await asyncio.sleep(self._poll_interval)
            data = await self._request(
                "GET", "/transaction", params={"id": tx.transaction_id}
            )
            if isinstance(data, list):
                data = data[0] if data else {}
            polled = RelayTransaction.from_response(data)
            tx = RelayTransaction(
                transaction_id=tx.transaction_id,
                state=polled.state,
                transaction_hash=polled.transaction_hash or tx.transaction_hash,
                proxy_address=polled.proxy_address or tx.proxy_address,
            )

        return tx

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()


class SafeTransactionSender:
    """TransactionSender that executes calls from a Safe through the relayer.

    The relayer pays gas, so `sponsor` has no effect.
    """

    def __init__(self, relay: RelayClient, signer: Signer, safe_address: str):
        self.relay = relay
        self.signer = signer
        self.safe_address = to_checksum_address(safe_address)

    async def send_transaction(
        self, to: str, data: str, *, value: int = 0, sponsor: bool = False
    ) -> str:
        tx = await self.relay.execute(self.signer, self.safe_address, to, data, value)
        if not tx.transaction_hash:
            raise ApplicationError(
                f"Relayer returned no transaction hash for {tx.transaction_id}"
            )
        return tx.transaction_hash


__all__ = [
    "derive_safe_address",
    "RelayTransaction",
    "RelayClient",
    "SafeTransactionSender",
]
