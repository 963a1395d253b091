"""Polymarket Router with Fee Escrow.

Drop-in replacement for PolymarketRouter that automatically handles
fee escrow for every order. Users simply swap the class name:

Before: router = PolymarketRouter({"api_key": ...})
After:  router = PolymarketRouterWithEscrow({"api_key": ..., "escrow": {...}})

The router will:
1. Generate a unique orderId for each order from its public inputs
2. Create and sign an order fee authorization (EIP-712)
3. Include the signed fee auth in the order request
4. The Dome server then pulls the fee to escrow before placing the order

Winnings claims get the same treatment with a performance fee
authorization bound to a deterministic positionId.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, TypedDict

import httpx
from web3 import AsyncWeb3

from ..allowances import exchange_spenders
from ..backend import build_place_order_request, check_redemption_flow
from ..config import RouterConfig
from ..errors import ConfigurationError
from ..escrow import (
    ESCROW_CONTRACT_POLYGON,
    ZERO_ADDRESS,
    OrderParams,
    PositionParams,
    calculate_fee,
    calculate_fee_split,
    calculate_order_size_usdc,
    create_order_fee_authorization,
    create_performance_fee_authorization,
    generate_order_id,
    generate_position_id,
    sign_fee_authorization_with_signer,
)
from ..orders import new_client_order_id
from ..signers import Signer
from ..store import CredentialStore
from ..types import ClaimWinningsParams, ExchangeCredentials, PlaceOrderParams
from .polymarket import PolymarketRouter

logger = logging.getLogger(__name__)


class EscrowConfig(TypedDict, total=False):
    """Escrow configuration for the router."""

    fee_bps: int
    """Dome order fee in basis points (e.g., 25 = 0.25%). Default: 25"""

    affiliate_fee_bps: int
    """Affiliate share in basis points, on top of the Dome fee. Default: 0"""

    performance_fee_bps: int
    """Dome fee on claimed winnings in basis points. Default: 250 (2.5%)"""

    escrow_address: str
    """Escrow contract address. Default: Polygon mainnet contract"""

    chain_id: int
    """Chain ID. Default: the router's chain"""

    affiliate: str
    """Affiliate address for fee sharing (optional)"""

    deadline_seconds: int
    """Deadline for fee authorization in seconds. Default: 3600 (1 hour)"""


class PolymarketRouterWithEscrowConfig(RouterConfig, total=False):
    """Extended router config with escrow settings."""

    escrow: EscrowConfig


class PlaceOrderWithEscrowParams(PlaceOrderParams, total=False):
    """Extended place order params with escrow options."""

    fee_bps: int
    """Override fee basis points for this order"""

    affiliate: str
    """Override affiliate for this order"""

    skip_escrow: bool
    """Skip fee escrow for this order"""


class ClaimWithFeeParams(TypedDict, total=False):
    """Winnings claim whose performance fee is authorized by the router."""

    signer: Signer
    wallet_type: str
    """'eoa' (signed_redeem_tx) or 'privy' (Dome builds the redeem tx)."""
    payer_address: str
    """Wallet holding the winning tokens. Default: the signer."""
    condition_id: str
    outcome_index: int
    expected_winnings: int
    """Expected winnings in USDC (6 decimals)."""
    signed_redeem_tx: str
    privy_wallet_id: str
    performance_fee_bps: int
    affiliate_fee_bps: int


@dataclass
class ResolvedEscrowConfig:
    """Resolved escrow configuration with all defaults applied."""

    fee_bps: int
    affiliate_fee_bps: int
    performance_fee_bps: int
    escrow_address: str
    chain_id: int
    affiliate: str
    deadline_seconds: int


class PolymarketRouterWithEscrow(PolymarketRouter):
    """Polymarket Router with automatic fee escrow.

    Extends PolymarketRouter to automatically generate and sign fee
    authorizations for every order placed. Linking also approves the
    escrow contract so the server can pull fees.

    Example:
        ```python
        router = PolymarketRouterWithEscrow({
            "api_key": "your-dome-api-key",
            "escrow": {
                "fee_bps": 25,  # 0.25%
                "affiliate": "0x...",  # optional
            },
            "privy": {
                "app_id": "...",
                "app_secret": "...",
                "authorization_key": "...",
            },
        })

        await router.link_user({"user_id": "user-123", "signer": signer})

        result = await router.place_order({
            "user_id": "user-123",
            "market_id": "token-id",
            "side": "buy",
            "size": 10,
            "price": 0.65,
            "signer": signer,
        })
        ```
    """

    def __init__(
        self,
        config: Optional[PolymarketRouterWithEscrowConfig] = None,
        *,
        store: Optional[CredentialStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        web3: Optional[AsyncWeb3] = None,
    ):
        """Initialize the Polymarket Router with Escrow.

        Args:
            config: Optional configuration for the router
        """
        config = config or {}
        super().__init__(config, store=store, http_client=http_client, web3=web3)

        escrow_config = config.get("escrow", {})
        self._escrow_config = ResolvedEscrowConfig(
            fee_bps=escrow_config.get("fee_bps", 25),  # 0.25%
            affiliate_fee_bps=escrow_config.get("affiliate_fee_bps", 0),
            performance_fee_bps=escrow_config.get("performance_fee_bps", 250),
            escrow_address=escrow_config.get("escrow_address", ESCROW_CONTRACT_POLYGON),
            chain_id=escrow_config.get("chain_id", self.chain_id),
            affiliate=escrow_config.get("affiliate", ZERO_ADDRESS),
            deadline_seconds=escrow_config.get("deadline_seconds", 3600),
        )
        for name in ("fee_bps", "affiliate_fee_bps", "performance_fee_bps"):
            if getattr(self._escrow_config, name) < 0:
                raise ConfigurationError(f"escrow {name} must be non-negative")

        self.linker.spenders = self._spenders(include_escrow=True)

    def _spenders(self, include_escrow: bool = False) -> Dict[str, str]:
        return exchange_spenders(
            self.contracts,
            include_escrow=include_escrow,
            escrow_address=self._escrow_config.escrow_address,
        )

    def _affiliate_or_none(self, affiliate: str) -> Optional[str]:
        return None if affiliate.lower() == ZERO_ADDRESS else affiliate

    async def place_order(
        self,
        params: PlaceOrderWithEscrowParams,
        credentials: Optional[ExchangeCredentials] = None,
    ) -> Dict[str, Any]:
        """Places an order on Polymarket with automatic fee escrow.

        This method:
        1. Generates a unique orderId from order parameters
        2. Creates and signs an order fee authorization (EIP-712)
        3. Submits the order with fee auth to Dome server
        4. Server pulls fee to escrow, then places the order

        On fill: Server distributes fee to Dome + affiliate
        On cancel: Server refunds remaining fee to user

        Args:
            params: Order parameters (extends PlaceOrderParams with escrow options)
            credentials: Optional credentials (uses stored credentials if not provided)

        Returns:
            Order result from the server
        """
        if params.get("skip_escrow"):
            return await super().place_order(params, credentials)

        prepared = await self._prepare_order(params, credentials)

        fee_bps = params.get("fee_bps", self._escrow_config.fee_bps)
        affiliate = params.get("affiliate", self._escrow_config.affiliate)
        affiliate_bps = (
            self._escrow_config.affiliate_fee_bps
            if self._affiliate_or_none(affiliate)
            else 0
        )

        order_size_usdc = calculate_order_size_usdc(params["size"], params["price"])
        split = calculate_fee_split(order_size_usdc, fee_bps, affiliate_bps)

        order_id = generate_order_id(
            OrderParams(
                chain_id=self._escrow_config.chain_id,
                user_address=prepared.payer_address,
                market_id=params["market_id"],
                side=params["side"],
                size=order_size_usdc,
                price=params["price"],
                timestamp=int(time.time() * 1000),
            )
        )

        fee_auth = create_order_fee_authorization(
            order_id=order_id,
            payer=prepared.payer_address,
            dome_amount=split.dome_amount,
            affiliate_amount=split.affiliate_amount,
            chain_id=self._escrow_config.chain_id,
            deadline_seconds=self._escrow_config.deadline_seconds,
        )
        signed_fee_auth = await sign_fee_authorization_with_signer(
            prepared.signer, self._escrow_config.escrow_address, fee_auth
        )

        signed_order = await self._sign_order(prepared, params)

        request = build_place_order_request(
            signed_order,
            prepared.credentials,
            new_client_order_id(),
            order_type=params.get("order_type", "GTC"),
            payer_address=prepared.payer_address,
            signer_address=prepared.signer_address,
            order_fee_auth=signed_fee_auth.to_request(),
            affiliate=self._affiliate_or_none(affiliate),
        )
        logger.debug(
            "Order %s carries fee %d (dome %d, affiliate %d)",
            order_id,
            split.total,
            split.dome_amount,
            split.affiliate_amount,
        )
        return await self.backend.place_order(request)

    async def claim_winnings_with_fee(self, params: ClaimWithFeeParams) -> Dict[str, Any]:
        """Claim winnings with a performance fee authorized by the signer.

        The positionId is derived from the payer, condition and outcome, so
        the server can recompute it. The fee is a share of expected winnings.

        Args:
            params: Claim parameters

        Returns:
            Claim result from the server

        Raises:
            ConfigurationError: Missing inputs, or not exactly one redemption
                flow; raised before the signer is used
        """
        signer = params.get("signer")
        if signer is None:
            raise ConfigurationError("signer is required to authorize the performance fee")
        for key in ("condition_id", "outcome_index", "expected_winnings"):
            if params.get(key) is None:
                raise ConfigurationError(f"{key} is required to claim winnings")

        # condition_id and outcome_index always feed the positionId, so only a
        # supplied privy_wallet_id selects the delegated flow
        flow: Dict[str, Any] = {
            "wallet_type": params.get("wallet_type", "eoa"),
            "signed_redeem_tx": params.get("signed_redeem_tx"),
        }
        if params.get("privy_wallet_id") not in (None, ""):
            flow["privy_wallet_id"] = params["privy_wallet_id"]
            flow["condition_id"] = params["condition_id"]
            flow["outcome_index"] = params["outcome_index"]
        check_redemption_flow(flow)
        if flow["signed_redeem_tx"] is None:
            del flow["signed_redeem_tx"]

        signer_address = await signer.get_address()
        payer_address = params.get("payer_address") or signer_address

        position_id = generate_position_id(
            PositionParams(
                user_address=payer_address,
                condition_id=params["condition_id"],
                outcome_index=params["outcome_index"],
                chain_id=self._escrow_config.chain_id,
            )
        )

        affiliate = self._affiliate_or_none(self._escrow_config.affiliate)
        split = calculate_fee_split(
            params["expected_winnings"],
            params.get("performance_fee_bps", self._escrow_config.performance_fee_bps),
            params.get(
                "affiliate_fee_bps",
                self._escrow_config.affiliate_fee_bps if affiliate else 0,
            ),
        )
        fee_auth = create_performance_fee_authorization(
            position_id=position_id,
            payer=payer_address,
            expected_winnings=params["expected_winnings"],
            dome_amount=split.dome_amount,
            affiliate_amount=split.affiliate_amount,
            chain_id=self._escrow_config.chain_id,
            deadline_seconds=self._escrow_config.deadline_seconds,
        )
        signed_fee_auth = await sign_fee_authorization_with_signer(
            signer, self._escrow_config.escrow_address, fee_auth
        )

        claim: ClaimWinningsParams = {
            **flow,
            "position_id": position_id,
            "payer_address": payer_address,
            "signer_address": signer_address,
            "performance_fee_auth": signed_fee_auth.to_request(),
        }
        if affiliate:
            claim["affiliate"] = affiliate

        return await self.claim_winnings(claim)

    def get_escrow_config(self) -> ResolvedEscrowConfig:
        """Get the escrow configuration."""
        return self._escrow_config

    def calculate_order_fee(
        self, size: float, price: float, fee_bps: Optional[int] = None
    ) -> int:
        """Calculate the Dome fee for an order.

        Args:
            size: Order size in shares
            price: Price per share (0.00 to 1.00)
            fee_bps: Optional override for fee basis points

        Returns:
            Fee amount in USDC (6 decimals)
        """
        order_size_usdc = calculate_order_size_usdc(size, price)
        if fee_bps is None:
            fee_bps = self._escrow_config.fee_bps
        return calculate_fee(order_size_usdc, fee_bps)


__all__ = [
    "PolymarketRouterWithEscrow",
    "PolymarketRouterWithEscrowConfig",
    "PlaceOrderWithEscrowParams",
    "ClaimWithFeeParams",
    "EscrowConfig",
    "ResolvedEscrowConfig",
]
