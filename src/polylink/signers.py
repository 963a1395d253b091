"""Signer abstraction.

The rest of the SDK only talks to wallets through two small protocols:

- Signer: resolve the wallet address and sign EIP-712 typed data
- TransactionSender: submit a contract call (used for token approvals)

Concrete adapters:
- LocalAccountSigner: raw private key via eth_account
- PrivyWalletSigner: Privy server wallet (see polylink.privy)
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_checksum_address, to_hex

from .chain import populate_transaction
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


# Canonical member order of the EIP-712 domain struct
_DOMAIN_FIELDS = [
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
    ("salt", "bytes32"),
]


class Signer(Protocol):
    """Minimal interface the SDK needs from any wallet implementation."""

    async def get_address(self) -> str:
        """Get the wallet address."""
        ...

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, List[Dict[str, str]]],
        primary_type: str,
        message: Dict[str, Any],
    ) -> str:
        """Sign EIP-712 typed data.

        Args:
            domain: EIP-712 domain
            types: Struct definitions (without EIP712Domain)
            primary_type: Name of the struct being signed
            message: Struct values

        Returns:
            0x-prefixed signature
        """
        ...


class TransactionSender(Protocol):
    """Anything that can submit a transaction on behalf of a wallet."""

    async def send_transaction(
        self, to: str, data: str, *, value: int = 0, sponsor: bool = False
    ) -> str:
        """Submit a transaction and return its hash."""
        ...


def domain_types(domain: Dict[str, Any]) -> List[Dict[str, str]]:
    """EIP712Domain type list for the members present in a domain."""
    return [
        {"name": name, "type": type_}
        for name, type_ in _DOMAIN_FIELDS
        if name in domain
    ]


def build_typed_data(
    domain: Dict[str, Any],
    types: Dict[str, List[Dict[str, str]]],
    primary_type: str,
    message: Dict[str, Any],
) -> Dict[str, Any]:
    """Assemble a full EIP-712 message (types include EIP712Domain)."""
    return {
        "types": {"EIP712Domain": domain_types(domain), **types},
        "primaryType": primary_type,
        "domain": domain,
        "message": message,
    }


class LocalAccountSigner:
    """Signer backed by a private key held in process memory.

    Transactions are only available when an AsyncWeb3 instance is supplied.
    The key never leaves the eth_account LocalAccount and is never logged.
    """

    def __init__(self, private_key: str, web3: Optional[Any] = None):
        self._account = Account.from_key(private_key)
        self._web3 = web3

    @property
    def address(self) -> str:
        return self._account.address

    async def get_address(self) -> str:
        return self._account.address

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, List[Dict[str, str]]],
        primary_type: str,
        message: Dict[str, Any],
    ) -> str:
        signable = encode_typed_data(
            full_message=build_typed_data(domain, types, primary_type, message)
        )
        signed = self._account.sign_message(signable)
        return to_hex(signed.signature)

    async def send_transaction(
        self, to: str, data: str, *, value: int = 0, sponsor: bool = False
    ) -> str:
        if self._web3 is None:
            raise ConfigurationError(
                "LocalAccountSigner needs a web3 instance to send transactions"
            )
        if sponsor:
            logger.warning(
                "Gas sponsorship is not available for local accounts, %s pays gas",
                self._account.address,
            )

        tx = await populate_transaction(
            self._web3,
            {
                "from": self._account.address,
                "to": to_checksum_address(to),
                "data": data,
                "value": value,
            },
        )
        signed = self._account.sign_transaction(tx)
        tx_hash = await self._web3.eth.send_raw_transaction(signed.raw_transaction)
        logger.debug("Sent transaction %s from %s", to_hex(tx_hash), self._account.address)
        return to_hex(tx_hash)


__all__ = [
    "Signer",
    "TransactionSender",
    "domain_types",
    "build_typed_data",
    "LocalAccountSigner",
]
