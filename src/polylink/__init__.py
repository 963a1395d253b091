"""polylink: wallet linking and order routing for Polymarket via Dome.

Link a user's wallet once (API credentials, Safe deployment, token
allowances), then place orders, cancel them and claim winnings through the
Dome execution service, optionally with fee escrow.
"""

import logging

from .allowances import (
    AllowanceManager,
    AllowanceStatus,
    ApprovalResult,
    UNLIMITED_ALLOWANCE_THRESHOLD,
    exchange_spenders,
)
from .backend import (
    BackendClient,
    build_claim_request,
    build_place_order_request,
    check_redemption_flow,
)
from .chain import ChainReader
from .clob import ClobCredentialClient, build_l1_headers, derive_or_create_credentials
from .config import (
    AMOY_CHAIN_ID,
    POLYGON_CHAIN_ID,
    ContractConfig,
    PrivyConfig,
    RouterConfig,
    config_from_env,
    get_contract_config,
    resolve_router_config,
)
from .ctf import (
    build_redeem_positions_calldata,
    build_redeem_positions_tx,
    sign_redeem_positions_tx,
)
from .errors import (
    ApplicationError,
    ConfigurationError,
    CredentialDerivationError,
    EmptyResultError,
    LinkError,
    OrderRejectedError,
    PreconditionError,
    RouterError,
    TransactionFailedError,
    TransportError,
)
from .escrow import (
    ESCROW_CONTRACT_POLYGON,
    USDC_POLYGON,
    calculate_fee,
    calculate_fee_split,
    calculate_order_size_usdc,
    format_bps,
    format_usdc,
    parse_usdc,
)
from .linker import LinkStep, WalletLinker
from .orders import OrderBuilder, calculate_order_amounts
from .privy import PrivyClient, PrivyWalletSigner, create_privy_signer_from_env
from .router import (
    EscrowConfig,
    PolymarketRouter,
    PolymarketRouterWithEscrow,
    PolymarketRouterWithEscrowConfig,
)
from .safe import RelayClient, SafeTransactionSender, derive_safe_address
from .signers import LocalAccountSigner, Signer, TransactionSender
from .store import CredentialStore, InMemoryCredentialStore, JsonFileCredentialStore
from .types import (
    ExchangeCredentials,
    ProgressEvent,
    SignedOrder,
    SmartAccountLinkResult,
    WalletTopology,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Routers
    "PolymarketRouter",
    "PolymarketRouterWithEscrow",
    "PolymarketRouterWithEscrowConfig",
    "EscrowConfig",
    # Configuration
    "RouterConfig",
    "PrivyConfig",
    "ContractConfig",
    "POLYGON_CHAIN_ID",
    "AMOY_CHAIN_ID",
    "config_from_env",
    "get_contract_config",
    "resolve_router_config",
    # Signers
    "Signer",
    "TransactionSender",
    "LocalAccountSigner",
    "PrivyClient",
    "PrivyWalletSigner",
    "create_privy_signer_from_env",
    # Linking
    "WalletLinker",
    "LinkStep",
    "ClobCredentialClient",
    "build_l1_headers",
    "derive_or_create_credentials",
    "RelayClient",
    "SafeTransactionSender",
    "derive_safe_address",
    "ChainReader",
    "AllowanceManager",
    "AllowanceStatus",
    "ApprovalResult",
    "UNLIMITED_ALLOWANCE_THRESHOLD",
    "exchange_spenders",
    # Orders and claims
    "OrderBuilder",
    "calculate_order_amounts",
    "BackendClient",
    "build_place_order_request",
    "build_claim_request",
    "check_redemption_flow",
    "build_redeem_positions_calldata",
    "build_redeem_positions_tx",
    "sign_redeem_positions_tx",
    # Storage
    "CredentialStore",
    "InMemoryCredentialStore",
    "JsonFileCredentialStore",
    # Types
    "WalletTopology",
    "ExchangeCredentials",
    "SmartAccountLinkResult",
    "SignedOrder",
    "ProgressEvent",
    # Errors
    "RouterError",
    "ConfigurationError",
    "CredentialDerivationError",
    "PreconditionError",
    "TransportError",
    "ApplicationError",
    "OrderRejectedError",
    "EmptyResultError",
    "TransactionFailedError",
    "LinkError",
    # Escrow helpers
    "ESCROW_CONTRACT_POLYGON",
    "USDC_POLYGON",
    "calculate_fee",
    "calculate_fee_split",
    "calculate_order_size_usdc",
    "format_bps",
    "format_usdc",
    "parse_usdc",
]
