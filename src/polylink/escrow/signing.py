"""Fee Authorization Signing for the Fee Escrow.

Provides EIP-712 signing functions that work with various wallet types:
- eth_account private keys (direct signing)
- any polylink Signer (Privy, local account, ...)
"""

import time
from typing import Any, Dict, List, Tuple, TypedDict, Union

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import is_address, to_checksum_address, to_hex

from ..signers import Signer, build_typed_data
from .types import (
    ORDER_FEE_AUTHORIZATION_TYPES,
    PERFORMANCE_FEE_AUTHORIZATION_TYPES,
    OrderFeeAuthorization,
    PerformanceFeeAuthorization,
    SignedOrderFeeAuthorization,
    SignedPerformanceFeeAuthorization,
)


# Deadline bounds
MIN_DEADLINE_SECONDS = 60  # 1 minute
MAX_DEADLINE_SECONDS = 86400  # 24 hours

ESCROW_DOMAIN_NAME = "DomeFeeEscrow"
ESCROW_DOMAIN_VERSION = "2"

FeeAuthorization = Union[OrderFeeAuthorization, PerformanceFeeAuthorization]
SignedFeeAuthorization = Union[
    SignedOrderFeeAuthorization, SignedPerformanceFeeAuthorization
]


class EIP712Domain(TypedDict):
    """EIP-712 domain separator."""

    name: str
    version: str
    chainId: int
    verifyingContract: str


def create_eip712_domain(escrow_address: str, chain_id: int) -> EIP712Domain:
    """Create EIP-712 domain for the escrow contract.

    Args:
        escrow_address: Address of the escrow contract
        chain_id: Chain ID (137 for Polygon)

    Returns:
        EIP-712 domain dictionary

    Raises:
        ValueError: If escrow address is invalid
    """
    if not is_address(escrow_address):
        raise ValueError(f"Invalid escrow address: {escrow_address}")

    return {
        "name": ESCROW_DOMAIN_NAME,
        "version": ESCROW_DOMAIN_VERSION,
        "chainId": chain_id,
        "verifyingContract": to_checksum_address(escrow_address),
    }


def _deadline_from_now(deadline_seconds: int) -> int:
    if deadline_seconds < MIN_DEADLINE_SECONDS:
        raise ValueError(
            f"Deadline too short: {deadline_seconds}s. Minimum: {MIN_DEADLINE_SECONDS}s"
        )
    if deadline_seconds > MAX_DEADLINE_SECONDS:
        raise ValueError(
            f"Deadline too long: {deadline_seconds}s. Maximum: {MAX_DEADLINE_SECONDS}s"
        )
    return int(time.time()) + deadline_seconds


def _validate_amounts(*amounts: int) -> None:
    for amount in amounts:
        if amount < 0:
            raise ValueError(f"Invalid fee amount: {amount}. Must be non-negative")


def create_order_fee_authorization(
    order_id: str,
    payer: str,
    dome_amount: int,
    affiliate_amount: int = 0,
    chain_id: int = 137,
    deadline_seconds: int = 3600,
) -> OrderFeeAuthorization:
    """Create an order fee authorization object.

    Args:
        order_id: Unique order ID (bytes32 hex string)
        payer: Address that will pay the fee
        dome_amount: Dome fee amount in USDC (6 decimals)
        affiliate_amount: Affiliate fee amount in USDC (6 decimals)
        chain_id: Chain ID (default: 137 for Polygon)
        deadline_seconds: Seconds from now until authorization expires (default: 1 hour)

    Returns:
        OrderFeeAuthorization object

    Raises:
        ValueError: If payer address is invalid, amounts are negative or
            deadline is out of bounds
    """
    if not is_address(payer):
        raise ValueError(f"Invalid payer address: {payer}")
    _validate_amounts(dome_amount, affiliate_amount)

    return OrderFeeAuthorization(
        order_id=order_id,
        payer=to_checksum_address(payer),
        dome_amount=dome_amount,
        affiliate_amount=affiliate_amount,
        chain_id=chain_id,
        deadline=_deadline_from_now(deadline_seconds),
    )


def create_performance_fee_authorization(
    position_id: str,
    payer: str,
    expected_winnings: int,
    dome_amount: int,
    affiliate_amount: int = 0,
    chain_id: int = 137,
    deadline_seconds: int = 3600,
) -> PerformanceFeeAuthorization:
    """Create a performance fee authorization for a winnings claim.

    Raises:
        ValueError: If payer is invalid, the fee exceeds the expected winnings
            or deadline is out of bounds
    """
    if not is_address(payer):
        raise ValueError(f"Invalid payer address: {payer}")
    _validate_amounts(expected_winnings, dome_amount, affiliate_amount)
    if dome_amount + affiliate_amount > expected_winnings:
        raise ValueError(
            f"Performance fee {dome_amount + affiliate_amount} exceeds "
            f"expected winnings {expected_winnings}"
        )

    return PerformanceFeeAuthorization(
        position_id=position_id,
        payer=to_checksum_address(payer),
        expected_winnings=expected_winnings,
        dome_amount=dome_amount,
        affiliate_amount=affiliate_amount,
        chain_id=chain_id,
        deadline=_deadline_from_now(deadline_seconds),
    )


def _typed_parts(
    fee_auth: FeeAuthorization,
) -> Tuple[Dict[str, List[Dict[str, str]]], str]:
    if isinstance(fee_auth, PerformanceFeeAuthorization):
        return PERFORMANCE_FEE_AUTHORIZATION_TYPES, "PerformanceFeeAuthorization"
    return ORDER_FEE_AUTHORIZATION_TYPES, "OrderFeeAuthorization"


def _with_signature(fee_auth: FeeAuthorization, signature: str) -> Any:
    if isinstance(fee_auth, PerformanceFeeAuthorization):
        return SignedPerformanceFeeAuthorization(
            position_id=fee_auth.position_id,
            payer=fee_auth.payer,
            expected_winnings=fee_auth.expected_winnings,
            dome_amount=fee_auth.dome_amount,
            affiliate_amount=fee_auth.affiliate_amount,
            chain_id=fee_auth.chain_id,
            deadline=fee_auth.deadline,
            signature=signature,
        )
    return SignedOrderFeeAuthorization(
        order_id=fee_auth.order_id,
        payer=fee_auth.payer,
        dome_amount=fee_auth.dome_amount,
        affiliate_amount=fee_auth.affiliate_amount,
        chain_id=fee_auth.chain_id,
        deadline=fee_auth.deadline,
        signature=signature,
    )


def _ensure_not_expired(fee_auth: FeeAuthorization) -> None:
    if fee_auth.deadline <= int(time.time()):
        raise ValueError(f"Fee authorization expired at {fee_auth.deadline}")


def sign_fee_authorization(
    private_key: str,
    escrow_address: str,
    fee_auth: FeeAuthorization,
) -> SignedFeeAuthorization:
    """Sign a fee authorization with EIP-712 using a private key.

    Use this when you have direct access to a private key.

    Args:
        private_key: Private key (hex string with or without 0x prefix)
        escrow_address: Address of the escrow contract
        fee_auth: Order or performance fee authorization to sign

    Returns:
        Signed authorization of the matching kind
    """
    _ensure_not_expired(fee_auth)
    domain = create_eip712_domain(escrow_address, fee_auth.chain_id)
    types, primary_type = _typed_parts(fee_auth)

    signable = encode_typed_data(
        full_message=build_typed_data(domain, types, primary_type, fee_auth.to_message())
    )
    signed_message = Account.from_key(private_key).sign_message(signable)

    return _with_signature(fee_auth, to_hex(signed_message.signature))


async def sign_fee_authorization_with_signer(
    signer: Signer,
    escrow_address: str,
    fee_auth: FeeAuthorization,
) -> SignedFeeAuthorization:
    """Sign a fee authorization with EIP-712 using any compatible signer.

    Use this when working with a Privy wallet, a local account signer or
    any wallet that implements the Signer protocol.

    Args:
        signer: Signer that implements the Signer protocol
        escrow_address: Address of the escrow contract
        fee_auth: Order or performance fee authorization to sign

    Returns:
        Signed authorization of the matching kind
    """
    _ensure_not_expired(fee_auth)
    domain = create_eip712_domain(escrow_address, fee_auth.chain_id)
    types, primary_type = _typed_parts(fee_auth)

    signature = await signer.sign_typed_data(
        dict(domain), types, primary_type, fee_auth.to_message()
    )

    return _with_signature(fee_auth, signature)


def verify_fee_authorization_signature(
    signed_auth: SignedFeeAuthorization,
    escrow_address: str,
    expected_signer: str,
) -> bool:
    """Verify a fee authorization signature locally (for EOA signatures).

    Note: This only works for EOA signatures. For SAFE signatures,
    verification must happen on-chain via EIP-1271.

    Args:
        signed_auth: Signed fee authorization
        escrow_address: Address of the escrow contract
        expected_signer: Expected signer address

    Returns:
        True if signature is valid and from expected signer
    """
    domain = create_eip712_domain(escrow_address, signed_auth.chain_id)
    types, primary_type = _typed_parts(signed_auth)
    signable = encode_typed_data(
        full_message=build_typed_data(
            domain, types, primary_type, signed_auth.to_message()
        )
    )

    try:
        recovered = Account.recover_message(signable, signature=signed_auth.signature)
    except (ValueError, TypeError):
        return False
    return recovered.lower() == expected_signer.lower()


def sign_order_fee_authorization(
    private_key: str, escrow_address: str, fee_auth: OrderFeeAuthorization
) -> SignedOrderFeeAuthorization:
    return sign_fee_authorization(private_key, escrow_address, fee_auth)


def sign_performance_fee_authorization(
    private_key: str, escrow_address: str, fee_auth: PerformanceFeeAuthorization
) -> SignedPerformanceFeeAuthorization:
    return sign_fee_authorization(private_key, escrow_address, fee_auth)


async def sign_order_fee_authorization_with_signer(
    signer: Signer, escrow_address: str, fee_auth: OrderFeeAuthorization
) -> SignedOrderFeeAuthorization:
    return await sign_fee_authorization_with_signer(signer, escrow_address, fee_auth)


async def sign_performance_fee_authorization_with_signer(
    signer: Signer, escrow_address: str, fee_auth: PerformanceFeeAuthorization
) -> SignedPerformanceFeeAuthorization:
    return await sign_fee_authorization_with_signer(signer, escrow_address, fee_auth)
