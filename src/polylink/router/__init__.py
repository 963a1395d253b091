"""Router modules for polylink."""

from .polymarket import PolymarketRouter, PreparedOrder
from .polymarket_escrow import (
    PolymarketRouterWithEscrow,
    PolymarketRouterWithEscrowConfig,
    PlaceOrderWithEscrowParams,
    ClaimWithFeeParams,
    EscrowConfig,
    ResolvedEscrowConfig,
)

__all__ = [
    "PolymarketRouter",
    "PreparedOrder",
    "PolymarketRouterWithEscrow",
    "PolymarketRouterWithEscrowConfig",
    "PlaceOrderWithEscrowParams",
    "ClaimWithFeeParams",
    "EscrowConfig",
    "ResolvedEscrowConfig",
]
