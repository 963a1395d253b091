"""Conditional Token Framework redemption helpers.

Builds redeemPositions() transactions so direct-wallet users can sign them
offline and hand them to the execution service with a winnings claim.
"""

import re
from typing import Any, Dict, Optional, Union

from eth_abi import encode
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import (
    function_signature_to_4byte_selector,
    to_bytes,
    to_checksum_address,
    to_hex,
)
from web3 import AsyncWeb3

from .chain import populate_transaction
from .config import POLYGON_CHAIN_ID, ContractConfig, get_contract_config

_REDEEM_SELECTOR = function_signature_to_4byte_selector(
    "redeemPositions(address,bytes32,bytes32,uint256[])"
)

# Top-level conditions have no parent collection
PARENT_COLLECTION_ID = b"\x00" * 32

_BYTES32_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def _validate(condition_id: str, outcome_index: int) -> None:
    if not _BYTES32_RE.match(condition_id or ""):
        raise ValueError(f"Invalid condition_id: {condition_id}")
    if outcome_index < 0 or outcome_index > 255:
        raise ValueError(f"Invalid outcome_index: {outcome_index}")


def build_redeem_positions_calldata(
    condition_id: str,
    outcome_index: int,
    collateral: Optional[str] = None,
) -> str:
    """Encode redeemPositions calldata for one winning outcome.

    Args:
        condition_id: bytes32 condition ID of the resolved market
        outcome_index: Winning outcome index (0 or 1 for binary markets)
        collateral: Collateral token (defaults to Polygon USDC.e)

    Returns:
        0x-prefixed calldata
    """
    _validate(condition_id, outcome_index)
    collateral = collateral or get_contract_config(POLYGON_CHAIN_ID).collateral

    # indexSets: outcome 0 -> [1], outcome 1 -> [2]
    index_sets = [1 << outcome_index]
    args = encode(
        ["address", "bytes32", "bytes32", "uint256[]"],
        [
            to_checksum_address(collateral),
            PARENT_COLLECTION_ID,
            to_bytes(hexstr=condition_id),
            index_sets,
        ],
    )
    return to_hex(_REDEEM_SELECTOR + args)


def build_redeem_positions_tx(
    condition_id: str,
    outcome_index: int,
    chain_id: int = POLYGON_CHAIN_ID,
    contracts: Optional[ContractConfig] = None,
) -> Dict[str, Any]:
    """Unsigned redeemPositions transaction (to, data, value, chainId)."""
    contracts = contracts or get_contract_config(chain_id)
    return {
        "to": to_checksum_address(contracts.conditional_tokens),
        "data": build_redeem_positions_calldata(
            condition_id, outcome_index, contracts.collateral
        ),
        "value": 0,
        "chainId": chain_id,
    }


async def sign_redeem_positions_tx(
    account: Union[LocalAccount, str],
    web3: AsyncWeb3,
    condition_id: str,
    outcome_index: int,
    chain_id: int = POLYGON_CHAIN_ID,
) -> str:
    """Build and sign a redeemPositions transaction offline.

    Nonce, gas and fees are read from the node; on Polygon the priority fee
    is raised to the 30 gwei floor.

    Args:
        account: LocalAccount or private key
        web3: AsyncWeb3 connected to the target chain
        condition_id: bytes32 condition ID of the resolved market
        outcome_index: Winning outcome index
        chain_id: Chain ID

    Returns:
        Serialized signed transaction, suitable for signed_redeem_tx
    """
    if isinstance(account, str):
        account = Account.from_key(account)

    tx = build_redeem_positions_tx(condition_id, outcome_index, chain_id)
    tx["from"] = account.address
    populated = await populate_transaction(web3, tx)
    unsigned = {key: value for key, value in populated.items() if key != "from"}

    signed = account.sign_transaction(unsigned)
    return to_hex(signed.raw_transaction)


__all__ = [
    "build_redeem_positions_calldata",
    "build_redeem_positions_tx",
    "sign_redeem_positions_tx",
]
