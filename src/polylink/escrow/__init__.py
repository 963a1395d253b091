"""Dome Fee Escrow Module.

Fee authorizations for the Dome Fee Escrow contract.

Key components:
- Order and position ID generation (deterministic, recomputable by the server)
- Fee split math
- Order and performance fee authorization creation and signing (EIP-712)
- Utility functions for USDC formatting

Example usage:
    ```python
    from polylink.escrow import (
        generate_order_id,
        create_order_fee_authorization,
        sign_order_fee_authorization,
        calculate_fee_split,
        OrderParams,
        ESCROW_CONTRACT_POLYGON,
    )
    import time

    order_id = generate_order_id(OrderParams(
        user_address="0x...",
        market_id="12345",
        side="buy",
        size=1_000_000,  # $1 USDC
        price=0.65,
        timestamp=int(time.time() * 1000),
        chain_id=137,
    ))

    split = calculate_fee_split(1_000_000, dome_fee_bps=20, affiliate_fee_bps=5)
    fee_auth = create_order_fee_authorization(
        order_id=order_id,
        payer="0x...",
        dome_amount=split.dome_amount,
        affiliate_amount=split.affiliate_amount,
    )

    signed = sign_order_fee_authorization(
        private_key="0x...",
        escrow_address=ESCROW_CONTRACT_POLYGON,
        fee_auth=fee_auth,
    )
    ```
"""

from .types import (
    OrderParams,
    PositionParams,
    FeeSplit,
    OrderFeeAuthorization,
    SignedOrderFeeAuthorization,
    PerformanceFeeAuthorization,
    SignedPerformanceFeeAuthorization,
    ORDER_FEE_AUTHORIZATION_TYPES,
    PERFORMANCE_FEE_AUTHORIZATION_TYPES,
)
from .order_id import (
    generate_order_id,
    verify_order_id,
    generate_position_id,
    verify_position_id,
)
from .signing import (
    MIN_DEADLINE_SECONDS,
    MAX_DEADLINE_SECONDS,
    create_eip712_domain,
    create_order_fee_authorization,
    create_performance_fee_authorization,
    sign_fee_authorization,
    sign_fee_authorization_with_signer,
    sign_order_fee_authorization,
    sign_order_fee_authorization_with_signer,
    sign_performance_fee_authorization,
    sign_performance_fee_authorization_with_signer,
    verify_fee_authorization_signature,
)
from .utils import (
    USDC_POLYGON,
    ESCROW_CONTRACT_POLYGON,
    ZERO_ADDRESS,
    format_usdc,
    parse_usdc,
    format_bps,
    calculate_fee,
    calculate_fee_split,
    calculate_order_size_usdc,
)

__all__ = [
    # Types
    "OrderParams",
    "PositionParams",
    "FeeSplit",
    "OrderFeeAuthorization",
    "SignedOrderFeeAuthorization",
    "PerformanceFeeAuthorization",
    "SignedPerformanceFeeAuthorization",
    "ORDER_FEE_AUTHORIZATION_TYPES",
    "PERFORMANCE_FEE_AUTHORIZATION_TYPES",
    # IDs
    "generate_order_id",
    "verify_order_id",
    "generate_position_id",
    "verify_position_id",
    # Signing
    "MIN_DEADLINE_SECONDS",
    "MAX_DEADLINE_SECONDS",
    "create_eip712_domain",
    "create_order_fee_authorization",
    "create_performance_fee_authorization",
    "sign_fee_authorization",
    "sign_fee_authorization_with_signer",
    "sign_order_fee_authorization",
    "sign_order_fee_authorization_with_signer",
    "sign_performance_fee_authorization",
    "sign_performance_fee_authorization_with_signer",
    "verify_fee_authorization_signature",
    # Utils
    "USDC_POLYGON",
    "ESCROW_CONTRACT_POLYGON",
    "ZERO_ADDRESS",
    "format_usdc",
    "parse_usdc",
    "format_bps",
    "calculate_fee",
    "calculate_fee_split",
    "calculate_order_size_usdc",
]
