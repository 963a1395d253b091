"""Shared fixtures and in-memory fakes for the polylink tests."""

from typing import Dict, List, Optional, Set

import pytest
from eth_account import Account

from polylink.allowances import MAX_UINT256
from polylink.safe import STATE_MINED, RelayTransaction, derive_safe_address
from polylink.signers import LocalAccountSigner
from polylink.types import ExchangeCredentials


# Test wallet (DO NOT use in production)
TEST_PRIVATE_KEY = "0x" + "ab" * 32  # Deterministic test key
TEST_ACCOUNT = Account.from_key(TEST_PRIVATE_KEY)
TEST_ADDRESS = TEST_ACCOUNT.address

TEST_CREDENTIALS = ExchangeCredentials(
    api_key="key-123", api_secret="secret-456", api_passphrase="pass-789"
)


class FakeChain:
    """ChainReader stand-in with settable allowances and deployments."""

    def __init__(self) -> None:
        self.allowances: Dict[tuple, int] = {}
        self.deployed: Set[str] = set()
        self.reverted: Set[str] = set()
        self.allowance_reads = 0

    def grant(self, owner: str, spender: str, amount: int = MAX_UINT256) -> None:
        self.allowances[(owner.lower(), spender.lower())] = amount

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        self.allowance_reads += 1
        return self.allowances.get((owner.lower(), spender.lower()), 0)

    async def is_deployed(self, address: str) -> bool:
        return address.lower() in self.deployed

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 60.0) -> bool:
        return tx_hash not in self.reverted


class FakeSender:
    """TransactionSender that grants the approved allowance on the fake chain."""

    def __init__(self, chain: FakeChain, owner: str) -> None:
        self.chain = chain
        self.owner = owner
        self.sent: List[dict] = []

    async def send_transaction(
        self, to: str, data: str, *, value: int = 0, sponsor: bool = False
    ) -> str:
        # approve(spender, amount): spender is the first argument word
        spender = "0x" + data[10 + 24:10 + 64]
        self.chain.grant(self.owner, spender)
        self.sent.append({"to": to, "data": data, "spender": spender, "sponsor": sponsor})
        return "0x" + f"{len(self.sent):064x}"


class FakeRelay:
    """RelayClient stand-in that deploys Safes and executes calls instantly."""

    def __init__(self, chain: FakeChain) -> None:
        self.chain = chain
        self.deployed: List[str] = []
        self.executed: List[dict] = []

    async def deploy(self, signer) -> RelayTransaction:
        owner = await signer.get_address()
        safe = derive_safe_address(owner, 137)
        self.chain.deployed.add(safe.lower())
        self.deployed.append(safe)
        return RelayTransaction(
            transaction_id="deploy-1",
            state=STATE_MINED,
            transaction_hash="0x" + "11" * 32,
            proxy_address=safe,
        )

    async def execute(self, signer, safe_address: str, to: str, data: str, value: int = 0):
        spender = "0x" + data[10 + 24:10 + 64]
        self.chain.grant(safe_address, spender)
        self.executed.append({"safe": safe_address, "to": to, "spender": spender})
        return RelayTransaction(
            transaction_id=f"exec-{len(self.executed)}",
            state=STATE_MINED,
            transaction_hash="0x" + f"{len(self.executed):064x}",
        )


class FakeCredentialClient:
    """ClobCredentialClient stand-in with scripted derive/create outcomes."""

    def __init__(
        self,
        derived: Optional[ExchangeCredentials] = TEST_CREDENTIALS,
        created: Optional[ExchangeCredentials] = TEST_CREDENTIALS,
        derive_error: Optional[Exception] = None,
        create_error: Optional[Exception] = None,
    ) -> None:
        self.derived = derived
        self.created = created
        self.derive_error = derive_error
        self.create_error = create_error
        self.derive_calls = 0
        self.create_calls = 0

    async def derive_api_key(self, signer) -> ExchangeCredentials:
        self.derive_calls += 1
        if self.derive_error is not None:
            raise self.derive_error
        return self.derived

    async def create_api_key(self, signer) -> ExchangeCredentials:
        self.create_calls += 1
        if self.create_error is not None:
            raise self.create_error
        return self.created


@pytest.fixture
def signer() -> LocalAccountSigner:
    return LocalAccountSigner(TEST_PRIVATE_KEY)


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()
