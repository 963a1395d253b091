"""Escrow Types for the Fee Escrow.

User-facing types for order and performance fee authorization signing.
"""

from dataclasses import dataclass
from typing import Any, Dict, Literal


@dataclass
class OrderParams:
    """Parameters used to generate a unique order ID."""

    user_address: str
    """Wallet address of the user (EOA or SAFE)."""

    market_id: str
    """Exchange token ID."""

    side: Literal["buy", "sell"]
    """Order side."""

    size: int
    """USDC amount in 6 decimals (e.g., 1000000 = $1)."""

    price: float
    """Price from 0.00 to 1.00."""

    timestamp: int
    """Unix timestamp in milliseconds (e.g., int(time.time() * 1000))."""

    chain_id: int
    """Chain ID for cross-chain replay protection (137 for Polygon)."""


@dataclass
class PositionParams:
    """Parameters used to generate a position ID for a winnings claim."""

    user_address: str
    """Wallet holding the winning outcome tokens."""

    condition_id: str
    """bytes32 condition ID of the resolved market."""

    outcome_index: int
    """Winning outcome index (0 or 1 for binary markets)."""

    chain_id: int


@dataclass(frozen=True)
class FeeSplit:
    """Fee amounts in USDC (6 decimals) split between Dome and an affiliate."""

    dome_amount: int
    affiliate_amount: int

    @property
    def total(self) -> int:
        return self.dome_amount + self.affiliate_amount


@dataclass
class OrderFeeAuthorization:
    """Order fee authorization to be signed by the user."""

    order_id: str
    """Unique order ID (bytes32 hex string)."""

    payer: str
    """Address that will pay the fee (EOA or SAFE)."""

    dome_amount: int
    """Dome's share in USDC (6 decimals)."""

    affiliate_amount: int
    """Affiliate's share in USDC (6 decimals)."""

    chain_id: int

    deadline: int
    """Unix timestamp (seconds) after which the authorization is void."""

    @property
    def fee_amount(self) -> int:
        return self.dome_amount + self.affiliate_amount

    def to_message(self) -> Dict[str, Any]:
        return {
            "orderId": self.order_id,
            "payer": self.payer,
            "domeAmount": self.dome_amount,
            "affiliateAmount": self.affiliate_amount,
            "chainId": self.chain_id,
            "deadline": self.deadline,
        }


@dataclass
class SignedOrderFeeAuthorization(OrderFeeAuthorization):
    """Order fee authorization with signature."""

    signature: str
    """EIP-712 signature (65 bytes packed hex string)."""

    def to_request(self) -> Dict[str, Any]:
        """Serialize for the execution service (amounts as strings, deadline as number)."""
        return {
            "orderId": self.order_id,
            "payer": self.payer,
            "domeAmount": str(self.dome_amount),
            "affiliateAmount": str(self.affiliate_amount),
            "chainId": self.chain_id,
            "deadline": self.deadline,
            "signature": self.signature,
        }


@dataclass
class PerformanceFeeAuthorization:
    """Performance fee authorization taken from winnings on claim."""

    position_id: str
    """Position ID (bytes32 hex string)."""

    payer: str

    expected_winnings: int
    """Expected winnings in USDC (6 decimals)."""

    dome_amount: int

    affiliate_amount: int

    chain_id: int

    deadline: int

    @property
    def fee_amount(self) -> int:
        return self.dome_amount + self.affiliate_amount

    def to_message(self) -> Dict[str, Any]:
        return {
            "positionId": self.position_id,
            "payer": self.payer,
            "expectedWinnings": self.expected_winnings,
            "domeAmount": self.dome_amount,
            "affiliateAmount": self.affiliate_amount,
            "chainId": self.chain_id,
            "deadline": self.deadline,
        }


@dataclass
class SignedPerformanceFeeAuthorization(PerformanceFeeAuthorization):
    """Performance fee authorization with signature."""

    signature: str

    def to_request(self) -> Dict[str, Any]:
        return {
            "positionId": self.position_id,
            "payer": self.payer,
            "expectedWinnings": str(self.expected_winnings),
            "domeAmount": str(self.dome_amount),
            "affiliateAmount": str(self.affiliate_amount),
            "chainId": self.chain_id,
            "deadline": self.deadline,
            "signature": self.signature,
        }


# EIP-712 types for fee authorizations
ORDER_FEE_AUTHORIZATION_TYPES = {
    "OrderFeeAuthorization": [
        {"name": "orderId", "type": "bytes32"},
        {"name": "payer", "type": "address"},
        {"name": "domeAmount", "type": "uint256"},
        {"name": "affiliateAmount", "type": "uint256"},
        {"name": "chainId", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}

PERFORMANCE_FEE_AUTHORIZATION_TYPES = {
    "PerformanceFeeAuthorization": [
        {"name": "positionId", "type": "bytes32"},
        {"name": "payer", "type": "address"},
        {"name": "expectedWinnings", "type": "uint256"},
        {"name": "domeAmount", "type": "uint256"},
        {"name": "affiliateAmount", "type": "uint256"},
        {"name": "chainId", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}
