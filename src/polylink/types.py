"""Shared types for the polylink SDK."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Literal, TypedDict

from .errors import ConfigurationError


class WalletTopology(str, Enum):
    """How the user's wallet holds funds and signs orders.

    - DIRECT ("eoa"): a single signing key that is its own funder.
    - SMART_ACCOUNT ("safe"): a deployed Safe owned by the signing key;
      the Safe is the funder and orders use signature type 2.
    """

    DIRECT = "eoa"
    SMART_ACCOUNT = "safe"

    @property
    def signature_type(self) -> int:
        """Exchange signature type code for orders built with this topology."""
        return 2 if self is WalletTopology.SMART_ACCOUNT else 0

    @classmethod
    def parse(cls, value: Any) -> "WalletTopology":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.DIRECT
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(
                f"Invalid wallet type: {value}. Must be 'eoa' or 'safe'"
            ) from None


OrderSide = Literal["buy", "sell"]

OrderType = Literal["GTC", "GTD", "FOK", "FAK"]
"""GTC: good till cancelled, GTD: good till date, FOK: fill or kill, FAK: fill and kill."""


@dataclass(frozen=True)
class ExchangeCredentials:
    """Exchange (CLOB) API credentials."""

    api_key: str
    api_secret: str
    api_passphrase: str

    def is_valid(self) -> bool:
        return bool(self.api_key and self.api_secret and self.api_passphrase)

    def to_request(self) -> Dict[str, str]:
        return {
            "apiKey": self.api_key,
            "apiSecret": self.api_secret,
            "apiPassphrase": self.api_passphrase,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExchangeCredentials":
        return cls(
            api_key=str(data.get("api_key") or data.get("apiKey") or ""),
            api_secret=str(data.get("api_secret") or data.get("apiSecret") or ""),
            api_passphrase=str(
                data.get("api_passphrase") or data.get("apiPassphrase") or ""
            ),
        )

    def __repr__(self) -> str:
        return f"ExchangeCredentials(api_key={self.api_key!r}, api_secret=***, api_passphrase=***)"


@dataclass
class SmartAccountLinkResult:
    """Result of linking a user whose funds live in a Safe smart account."""

    credentials: ExchangeCredentials
    smart_account_address: str
    """Safe address (funder for orders)."""
    signer_address: str
    """Owner address (signer for orders)."""
    already_deployed: bool
    """Whether the Safe existed on-chain before this call."""
    deployed_now: bool
    """Whether the Safe was deployed during this call."""
    allowances_set: int
    """Number of approvals newly set during this call."""


@dataclass(frozen=True)
class ProgressEvent:
    """Progress notification emitted by long-running flows."""

    step: str
    current: int
    total: int


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass(frozen=True)
class SignedOrder:
    """Exchange order signed by the user's wallet. Immutable once produced."""

    salt: int
    maker: str
    signer: str
    taker: str
    token_id: str
    maker_amount: str
    taker_amount: str
    expiration: str
    nonce: str
    fee_rate_bps: str
    side: Literal["BUY", "SELL"]
    signature_type: int
    signature: str

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the camelCase shape the execution service expects."""
        return {
            "salt": self.salt,
            "maker": self.maker,
            "signer": self.signer,
            "taker": self.taker,
            "tokenId": self.token_id,
            "makerAmount": self.maker_amount,
            "takerAmount": self.taker_amount,
            "expiration": self.expiration,
            "nonce": self.nonce,
            "feeRateBps": self.fee_rate_bps,
            "side": self.side,
            "signatureType": self.signature_type,
            "signature": self.signature,
        }


class LinkUserParams(TypedDict, total=False):
    """One-time setup linking a user to the exchange."""

    user_id: str
    signer: Any
    """Signer implementation (LocalAccountSigner, PrivyWalletSigner, ...)."""
    wallet_type: str
    """'eoa' (default) or 'safe'."""
    auto_deploy_safe: bool
    """Deploy the Safe if missing (default: False)."""
    privy_wallet_id: str
    """Privy wallet ID, lets the router send approval transactions."""
    transaction_sender: Any
    """Explicit TransactionSender for direct-wallet approvals."""
    auto_set_allowances: bool
    """Set missing token allowances (default: True)."""
    sponsor_gas: bool
    """Use custody-provider gas sponsorship for approvals (default: False)."""
    check_allowances: bool
    """Verify token allowances during linking (default: True)."""
    on_progress: ProgressCallback


class PlaceOrderParams(TypedDict, total=False):
    """High-level order routed through the execution service."""

    user_id: str
    market_id: str
    """Exchange token ID."""
    side: OrderSide
    size: float
    """Size in shares."""
    price: float
    """Price per share (0.00 to 1.00)."""
    signer: Any
    wallet_type: str
    funder_address: str
    """Safe address holding funds (wallet_type 'safe')."""
    privy_wallet_id: str
    wallet_address: str
    neg_risk: bool
    tick_size: str
    order_type: OrderType


class CancelOrderParams(TypedDict):
    order_id: str
    signer_address: str
    credentials: ExchangeCredentials


class ClaimWinningsParams(TypedDict, total=False):
    """Winnings redemption request.

    Exactly one flow must be supplied:
    - 'eoa': signed_redeem_tx (pre-signed redeemPositions transaction)
    - 'privy': privy_wallet_id + condition_id + outcome_index
    """

    position_id: str
    wallet_type: Literal["eoa", "privy"]
    payer_address: str
    signer_address: str
    performance_fee_auth: Dict[str, Any]
    signed_redeem_tx: str
    privy_wallet_id: str
    condition_id: str
    outcome_index: int
    affiliate: str


__all__ = [
    "WalletTopology",
    "OrderSide",
    "OrderType",
    "ExchangeCredentials",
    "SmartAccountLinkResult",
    "ProgressEvent",
    "ProgressCallback",
    "SignedOrder",
    "LinkUserParams",
    "PlaceOrderParams",
    "CancelOrderParams",
    "ClaimWinningsParams",
]
