"""Read-only chain access over AsyncWeb3."""

import logging
from typing import Any, Dict, Optional

from eth_utils import to_checksum_address
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted

from .config import POLYGON_CHAIN_ID
from .errors import TransactionFailedError

logger = logging.getLogger(__name__)


ERC20_ALLOWANCE_ABI = [
    {
        "constant": True,
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    }
]

# Polygon public RPCs often return stale/low tip estimates
POLYGON_MIN_TIP_WEI = 30_000_000_000  # 30 gwei

DEFAULT_RECEIPT_TIMEOUT = 60.0


class ChainReader:
    """Thin wrapper over AsyncWeb3 for the few reads the SDK needs."""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        web3: Optional[AsyncWeb3] = None,
        timeout: float = 30.0,
    ):
        if web3 is None:
            if not rpc_url:
                raise ValueError("Either rpc_url or web3 is required")
            web3 = AsyncWeb3(
                AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
            )
        self.web3 = web3

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        """ERC-20 allowance granted by owner to spender."""
        contract = self.web3.eth.contract(
            address=to_checksum_address(token), abi=ERC20_ALLOWANCE_ABI
        )
        value = await contract.functions.allowance(
            to_checksum_address(owner), to_checksum_address(spender)
        ).call()
        return int(value)

    async def is_deployed(self, address: str) -> bool:
        """Whether contract code exists at an address."""
        code = await self.web3.eth.get_code(to_checksum_address(address))
        return len(code) > 0

    async def wait_for_receipt(
        self, tx_hash: str, timeout: float = DEFAULT_RECEIPT_TIMEOUT
    ) -> bool:
        """Wait for a transaction to be mined.

        Returns:
            True if the transaction succeeded, False if it reverted

        Raises:
            TransactionFailedError: If the transaction was not mined in time
        """
        try:
            receipt = await self.web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout
            )
        except TimeExhausted:
            raise TransactionFailedError(
                f"Transaction not confirmed within {timeout}s: {tx_hash}",
                tx_hash=tx_hash,
            ) from None
        return receipt["status"] == 1


def apply_tip_floor(tx: Dict[str, Any], chain_id: int) -> Dict[str, Any]:
    """Raise the priority fee of a Polygon EIP-1559 transaction to the floor."""
    if chain_id != POLYGON_CHAIN_ID or "maxPriorityFeePerGas" not in tx:
        return tx
    if int(tx["maxPriorityFeePerGas"]) < POLYGON_MIN_TIP_WEI:
        tx["maxPriorityFeePerGas"] = POLYGON_MIN_TIP_WEI
        if int(tx.get("maxFeePerGas") or 0) < POLYGON_MIN_TIP_WEI:
            tx["maxFeePerGas"] = POLYGON_MIN_TIP_WEI
    return tx


async def populate_transaction(web3: AsyncWeb3, tx: Dict[str, Any]) -> Dict[str, Any]:
    """Fill chainId, nonce, gas and EIP-1559 fee fields for a transaction."""
    tx = dict(tx)
    if "chainId" not in tx:
        tx["chainId"] = await web3.eth.chain_id
    if "nonce" not in tx:
        tx["nonce"] = await web3.eth.get_transaction_count(tx["from"], "pending")
    if "gas" not in tx:
        tx["gas"] = await web3.eth.estimate_gas(dict(tx))
    if "gasPrice" not in tx and "maxFeePerGas" not in tx:
        tip = await web3.eth.max_priority_fee
        block = await web3.eth.get_block("latest")
        tx["maxPriorityFeePerGas"] = tip
        tx["maxFeePerGas"] = block["baseFeePerGas"] * 2 + tip
    return apply_tip_floor(tx, int(tx["chainId"]))


__all__ = [
    "ChainReader",
    "POLYGON_MIN_TIP_WEI",
    "apply_tip_floor",
    "populate_transaction",
]
