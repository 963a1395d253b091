"""USDC allowance management for exchange spender contracts.

Trading needs unlimited USDC approvals from the funder (EOA or Safe) to the
CTF Exchange, the Neg Risk CTF Exchange and the Neg Risk Adapter, plus the
Fee Escrow contract when fees are escrowed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address, to_hex

from .chain import DEFAULT_RECEIPT_TIMEOUT, ChainReader
from .config import ContractConfig
from .errors import TransactionFailedError
from .escrow.utils import ESCROW_CONTRACT_POLYGON
from .signers import TransactionSender
from .types import ProgressCallback, ProgressEvent

logger = logging.getLogger(__name__)


# Anything at or above 1 trillion base units (1M USDC) counts as unlimited
UNLIMITED_ALLOWANCE_THRESHOLD = 10**12

MAX_UINT256 = 2**256 - 1

CTF_EXCHANGE = "CTF Exchange"
NEG_RISK_CTF_EXCHANGE = "Neg Risk CTF Exchange"
NEG_RISK_ADAPTER = "Neg Risk Adapter"
FEE_ESCROW = "Fee Escrow"

_APPROVE_SELECTOR = function_signature_to_4byte_selector("approve(address,uint256)")


def exchange_spenders(
    contracts: ContractConfig,
    *,
    include_escrow: bool = False,
    escrow_address: str = ESCROW_CONTRACT_POLYGON,
) -> Dict[str, str]:
    """Spender contracts that need a USDC approval, keyed by display name."""
    spenders = {
        CTF_EXCHANGE: contracts.exchange,
        NEG_RISK_CTF_EXCHANGE: contracts.neg_risk_exchange,
        NEG_RISK_ADAPTER: contracts.neg_risk_adapter,
    }
    if include_escrow:
        spenders = {FEE_ESCROW: escrow_address, **spenders}
    return spenders


def encode_approve(spender: str, amount: int = MAX_UINT256) -> str:
    """Calldata for ERC-20 approve(spender, amount)."""
    args = encode(["address", "uint256"], [to_checksum_address(spender), amount])
    return to_hex(_APPROVE_SELECTOR + args)


def is_sufficient(allowance: int) -> bool:
    return allowance >= UNLIMITED_ALLOWANCE_THRESHOLD


@dataclass(frozen=True)
class AllowanceStatus:
    """Allowance granted to one spender."""

    spender_name: str
    spender: str
    allowance: int

    @property
    def sufficient(self) -> bool:
        return is_sufficient(self.allowance)


@dataclass
class ApprovalResult:
    """Outcome of AllowanceManager.set."""

    approved: List[str] = field(default_factory=list)
    """Spenders approved during this call."""
    already_approved: List[str] = field(default_factory=list)
    """Spenders that already had sufficient allowance."""
    tx_hashes: Dict[str, str] = field(default_factory=dict)
    """Spender name -> approval transaction hash."""


class AllowanceManager:
    """Checks and sets USDC allowances for a set of spenders."""

    def __init__(
        self,
        chain: ChainReader,
        token: str,
        *,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
    ):
        self.chain = chain
        self.token = to_checksum_address(token)
        self.receipt_timeout = receipt_timeout

    async def check(
        self, owner: str, spenders: Dict[str, str]
    ) -> Dict[str, AllowanceStatus]:
        """Read current allowances of owner for every spender.

        Reads are issued concurrently; nothing is written.
        """
        names = list(spenders)
        values = await asyncio.gather(
            *(self.chain.allowance(self.token, owner, spenders[name]) for name in names)
        )
        return {
            name: AllowanceStatus(
                spender_name=name, spender=spenders[name], allowance=value
            )
            for name, value in zip(names, values)
        }

    async def has_required_approvals(self, owner: str, spenders: Dict[str, str]) -> bool:
        statuses = await self.check(owner, spenders)
        return all(status.sufficient for status in statuses.values())

    async def set(
        self,
        sender: TransactionSender,
        owner: str,
        spenders: Dict[str, str],
        *,
        sponsor_gas: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ApprovalResult:
        """Approve every spender lacking a sufficient allowance.

        Approvals are sent one at a time and each must confirm before the
        next is sent. The first revert or confirmation timeout aborts the
        call; progress already reported stays reported.

        Args:
            sender: Sends transactions from owner
            owner: Address granting the allowances
            spenders: Spender name -> address
            sponsor_gas: Ask the sender to sponsor gas where supported
            on_progress: Called before each approval transaction

        Returns:
            ApprovalResult separating new approvals from existing ones

        Raises:
            TransactionFailedError: If an approval reverts or is not confirmed
        """
        statuses = await self.check(owner, spenders)
        result = ApprovalResult()
        pending = []
        for name, status in statuses.items():
            if status.sufficient:
                result.already_approved.append(name)
            else:
                pending.append(name)

        if not pending:
            logger.debug("All %d allowances already set for %s", len(spenders), owner)
            return result

        logger.info(
            "Setting %d allowance(s) for %s%s",
            len(pending),
            owner,
            " (sponsored)" if sponsor_gas else "",
        )
        for index, name in enumerate(pending, start=1):
            if on_progress is not None:
                on_progress(
                    ProgressEvent(step=f"approve:{name}", current=index, total=len(pending))
                )

            tx_hash = await sender.send_transaction(
                self.token, encode_approve(spenders[name]), sponsor=sponsor_gas
            )
            result.tx_hashes[name] = tx_hash

            if not await self.chain.wait_for_receipt(tx_hash, self.receipt_timeout):
                raise TransactionFailedError(
                    f"Approval transaction failed for {name}: {tx_hash}",
                    tx_hash=tx_hash,
                )
            logger.info("Approved %s (%s)", name, tx_hash)
            result.approved.append(name)

        return result


__all__ = [
    "UNLIMITED_ALLOWANCE_THRESHOLD",
    "MAX_UINT256",
    "CTF_EXCHANGE",
    "NEG_RISK_CTF_EXCHANGE",
    "NEG_RISK_ADAPTER",
    "FEE_ESCROW",
    "AllowanceStatus",
    "ApprovalResult",
    "AllowanceManager",
    "exchange_spenders",
    "encode_approve",
    "is_sufficient",
]
