"""Order and Position ID Generation for the Fee Escrow.

IDs are keccak256 hashes of ABI-encoded public inputs, so the execution
service can recompute them and reject a replayed or forged authorization:
- Cross-chain replay protection (via chain_id)
- Cross-user collision prevention (via user_address)
- Same-user collision prevention (via millisecond timestamp for orders,
  condition/outcome for positions)
"""

import re
from typing import Callable, TypeVar

from eth_abi import encode
from eth_utils import is_address, keccak, to_bytes, to_checksum_address

from .types import OrderParams, PositionParams


_BYTES32_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")

_ORDER_ID_TYPES = ["uint256", "address", "string", "string", "uint256", "uint256", "uint256"]
_POSITION_ID_TYPES = ["uint256", "address", "bytes32", "uint256"]

P = TypeVar("P")


def _checksum_user(address: str) -> str:
    if not is_address(address):
        raise ValueError(f"Invalid user_address: {address}")
    return to_checksum_address(address)


def _hash(types, values) -> str:
    return "0x" + keccak(encode(types, values)).hex()


def generate_order_id(params: OrderParams) -> str:
    """Derive the escrow orderId for an order fee authorization.

    Args:
        params: Order inputs; size in USDC base units, timestamp in milliseconds

    Returns:
        0x-prefixed bytes32 hex string

    Raises:
        ValueError: If price is outside [0, 1] or the user address is invalid
    """
    if not 0 <= params.price <= 1:
        raise ValueError(f"Invalid price: {params.price}. Must be between 0 and 1")

    return _hash(
        _ORDER_ID_TYPES,
        [
            params.chain_id,
            _checksum_user(params.user_address),
            params.market_id,
            params.side,
            params.size,
            round(params.price * 10000),  # basis points
            params.timestamp,
        ],
    )


def generate_position_id(params: PositionParams) -> str:
    """Generate the positionId for a winnings claim.

    One resolved position yields exactly one ID, so a second performance fee
    authorization for the same claim collides with the first.

    Raises:
        ValueError: If the address, condition ID or outcome index is invalid
    """
    user = _checksum_user(params.user_address)

    if not _BYTES32_RE.match(params.condition_id or ""):
        raise ValueError(f"Invalid condition_id: {params.condition_id}")

    if params.outcome_index < 0:
        raise ValueError(f"Invalid outcome_index: {params.outcome_index}")

    return _hash(
        _POSITION_ID_TYPES,
        [params.chain_id, user, to_bytes(hexstr=params.condition_id), params.outcome_index],
    )


def _matches(generate: Callable[[P], str], identifier: str, params: P) -> bool:
    try:
        expected = generate(params)
    except ValueError:
        return False
    return expected.lower() == identifier.lower()


def verify_order_id(order_id: str, params: OrderParams) -> bool:
    """Check that ``order_id`` was derived from ``params``.

    Invalid params never match.
    """
    return _matches(generate_order_id, order_id, params)


def verify_position_id(position_id: str, params: PositionParams) -> bool:
    """Check that ``position_id`` was derived from ``params``."""
    return _matches(generate_position_id, position_id, params)
