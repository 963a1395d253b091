"""Order construction and signing.

Builds exchange limit orders and signs them with EIP-712 through any Signer.

maker/taker mapping:
    BUY: makerAmount = USDC spent, takerAmount = shares received
    SELL: makerAmount = shares sold, takerAmount = USDC received
"""

import logging
import secrets
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union

from eth_utils import is_address, to_checksum_address
from py_clob_client.order_builder.builder import ROUNDING_CONFIG
from py_clob_client.order_builder.helpers import (
    decimal_places,
    round_down,
    round_normal,
    round_up,
    to_token_decimals,
)

from .config import POLYGON_CHAIN_ID, ContractConfig, get_contract_config
from .errors import ConfigurationError
from .escrow.utils import ZERO_ADDRESS
from .signers import Signer
from .types import SignedOrder, WalletTopology

logger = logging.getLogger(__name__)


EXCHANGE_DOMAIN_NAME = "Polymarket CTF Exchange"
EXCHANGE_DOMAIN_VERSION = "1"

ORDER_TYPES = {
    "Order": [
        {"name": "salt", "type": "uint256"},
        {"name": "maker", "type": "address"},
        {"name": "signer", "type": "address"},
        {"name": "taker", "type": "address"},
        {"name": "tokenId", "type": "uint256"},
        {"name": "makerAmount", "type": "uint256"},
        {"name": "takerAmount", "type": "uint256"},
        {"name": "expiration", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "feeRateBps", "type": "uint256"},
        {"name": "side", "type": "uint8"},
        {"name": "signatureType", "type": "uint8"},
    ]
}

BUY = "BUY"
SELL = "SELL"
_SIDE_CODES = {BUY: 0, SELL: 1}

# Salt stays below 2**53 so JSON consumers can read it as a number
_SALT_BOUND = 2**53

Number = Union[int, float, str, Decimal]


def new_client_order_id() -> str:
    """Fresh request-scoped ID for one submission attempt."""
    return str(uuid.uuid4())


def normalize_side(side: str) -> str:
    """Normalize 'buy'/'sell' in any case to BUY/SELL."""
    normalized = str(side).strip().upper()
    if normalized not in _SIDE_CODES:
        raise ValueError(f"Invalid side: {side}. Must be 'buy' or 'sell'")
    return normalized


def calculate_order_amounts(
    side: str, size: Number, price: Number, tick_size: str = "0.01"
) -> Tuple[int, int]:
    """Maker and taker amounts (6 decimals) with the exchange's rounding.

    Uses py-clob-client's rounding table and helpers, so amounts match what
    its OrderBuilder would produce for the same inputs.

    Args:
        side: BUY or SELL (any case)
        size: Size in shares
        price: Price per share
        tick_size: Market tick size

    Returns:
        (maker_amount, taker_amount)

    Raises:
        ValueError: If the tick size is unknown, price is outside the tick
            bounds or size rounds down to zero
    """
    normalized_side = normalize_side(side)
    if tick_size not in ROUNDING_CONFIG:
        raise ValueError(
            f"Invalid tick_size: {tick_size}. Must be one of {sorted(ROUNDING_CONFIG)}"
        )
    round_config = ROUNDING_CONFIG[tick_size]

    tick = float(tick_size)
    raw_price = round_normal(float(price), round_config.price)
    if raw_price < tick or raw_price > 1 - tick:
        raise ValueError(f"Invalid price: {price}. Must be between {tick} and {1 - tick}")

    shares = round_down(float(size), round_config.size)
    if shares <= 0:
        raise ValueError(f"Invalid size: {size}. Must be positive")

    usdc = shares * raw_price
    if decimal_places(usdc) > round_config.amount:
        usdc = round_up(usdc, round_config.amount + 4)
        if decimal_places(usdc) > round_config.amount:
            usdc = round_down(usdc, round_config.amount)

    if normalized_side == BUY:
        return to_token_decimals(usdc), to_token_decimals(shares)
    return to_token_decimals(shares), to_token_decimals(usdc)


@dataclass(frozen=True)
class SigningContext:
    """Signature type and maker (funder) resolved from a wallet topology."""

    signature_type: int
    maker: str
    signer: str


class OrderBuilder:
    """Builds and signs exchange orders for one chain."""

    def __init__(
        self,
        chain_id: int = POLYGON_CHAIN_ID,
        contracts: Optional[ContractConfig] = None,
    ):
        self.chain_id = chain_id
        self.contracts = contracts or get_contract_config(chain_id)

    def resolve_signing_context(
        self,
        topology: Union[WalletTopology, str],
        signer_address: str,
        funder_address: Optional[str] = None,
    ) -> SigningContext:
        """Pick signature type and maker for a topology ("eoa"/"safe" accepted).

        Raises:
            ConfigurationError: If a smart account has no funder, or a direct
                wallet is given a funder other than itself
        """
        topology = WalletTopology.parse(topology)
        signer_address = to_checksum_address(signer_address)

        if topology is WalletTopology.SMART_ACCOUNT:
            if not funder_address:
                raise ConfigurationError(
                    "funder_address is required for Safe wallet orders. "
                    "This should be the Safe address returned by link_user()."
                )
            if not is_address(funder_address):
                raise ConfigurationError(f"Invalid funder_address: {funder_address}")
            return SigningContext(
                signature_type=topology.signature_type,
                maker=to_checksum_address(funder_address),
                signer=signer_address,
            )

        if funder_address and to_checksum_address(funder_address) != signer_address:
            raise ConfigurationError(
                "funder_address must match the signer for direct wallet orders"
            )
        return SigningContext(
            signature_type=topology.signature_type,
            maker=signer_address,
            signer=signer_address,
        )

    def order_domain(self, neg_risk: bool = False) -> Dict[str, Any]:
        exchange = self.contracts.neg_risk_exchange if neg_risk else self.contracts.exchange
        return {
            "name": EXCHANGE_DOMAIN_NAME,
            "version": EXCHANGE_DOMAIN_VERSION,
            "chainId": self.chain_id,
            "verifyingContract": to_checksum_address(exchange),
        }

    def build_order(
        self,
        context: SigningContext,
        *,
        token_id: str,
        side: str,
        size: Number,
        price: Number,
        tick_size: str = "0.01",
        fee_rate_bps: int = 0,
        nonce: int = 0,
        expiration: int = 0,
        salt: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Build the EIP-712 Order message (integer fields)."""
        side = normalize_side(side)
        maker_amount, taker_amount = calculate_order_amounts(side, size, price, tick_size)
        token = str(token_id)
        return {
            "salt": salt if salt is not None else secrets.randbelow(_SALT_BOUND),
            "maker": context.maker,
            "signer": context.signer,
            "taker": ZERO_ADDRESS,
            "tokenId": int(token, 16) if token.startswith("0x") else int(token),
            "makerAmount": maker_amount,
            "takerAmount": taker_amount,
            "expiration": int(expiration),
            "nonce": int(nonce),
            "feeRateBps": int(fee_rate_bps),
            "side": _SIDE_CODES[side],
            "signatureType": context.signature_type,
        }

    async def sign_order(
        self,
        signer: Signer,
        *,
        token_id: str,
        side: str,
        size: Number,
        price: Number,
        topology: Union[WalletTopology, str] = WalletTopology.DIRECT,
        funder_address: Optional[str] = None,
        signer_address: Optional[str] = None,
        neg_risk: bool = False,
        tick_size: str = "0.01",
        fee_rate_bps: int = 0,
        nonce: int = 0,
        expiration: int = 0,
    ) -> SignedOrder:
        """Build an order for the topology and sign it.

        Args:
            signer: Wallet signing the order
            token_id: Exchange token ID
            side: 'buy' or 'sell' (any case)
            size: Size in shares
            price: Price per share
            topology: Wallet topology (or "eoa"/"safe") selecting signature type and maker
            funder_address: Safe address (required for SMART_ACCOUNT)
            signer_address: Already-resolved signer address, if known
            neg_risk: Sign against the Neg Risk CTF Exchange
            tick_size: Market tick size

        Returns:
            SignedOrder ready for submission
        """
        signer_address = signer_address or await signer.get_address()
        context = self.resolve_signing_context(topology, signer_address, funder_address)
        message = self.build_order(
            context,
            token_id=token_id,
            side=side,
            size=size,
            price=price,
            tick_size=tick_size,
            fee_rate_bps=fee_rate_bps,
            nonce=nonce,
            expiration=expiration,
        )

        signature = await signer.sign_typed_data(
            self.order_domain(neg_risk), ORDER_TYPES, "Order", message
        )
        logger.debug(
            "Signed %s order for token %s (maker %s, signature type %d)",
            normalize_side(side),
            token_id,
            context.maker,
            context.signature_type,
        )

        return SignedOrder(
            salt=message["salt"],
            maker=message["maker"],
            signer=message["signer"],
            taker=message["taker"],
            token_id=str(token_id),
            maker_amount=str(message["makerAmount"]),
            taker_amount=str(message["takerAmount"]),
            expiration=str(message["expiration"]),
            nonce=str(message["nonce"]),
            fee_rate_bps=str(message["feeRateBps"]),
            side=normalize_side(side),
            signature_type=message["signatureType"],
            signature=signature,
        )


__all__ = [
    "ORDER_TYPES",
    "ROUNDING_CONFIG",
    "SigningContext",
    "OrderBuilder",
    "calculate_order_amounts",
    "normalize_side",
    "new_client_order_id",
]
