"""Tests for allowance management."""

import pytest

from polylink.allowances import (
    CTF_EXCHANGE,
    FEE_ESCROW,
    MAX_UINT256,
    NEG_RISK_ADAPTER,
    NEG_RISK_CTF_EXCHANGE,
    UNLIMITED_ALLOWANCE_THRESHOLD,
    AllowanceManager,
    AllowanceStatus,
    encode_approve,
    exchange_spenders,
)
from polylink.config import get_contract_config
from polylink.errors import TransactionFailedError
from polylink.escrow import ESCROW_CONTRACT_POLYGON
from polylink.types import ProgressEvent

from conftest import TEST_ADDRESS, FakeChain, FakeSender

CONTRACTS = get_contract_config(137)


class TestSpenders:
    """Tests for the spender set."""

    def test_exchange_spenders(self):
        spenders = exchange_spenders(CONTRACTS)

        assert spenders == {
            CTF_EXCHANGE: CONTRACTS.exchange,
            NEG_RISK_CTF_EXCHANGE: CONTRACTS.neg_risk_exchange,
            NEG_RISK_ADAPTER: CONTRACTS.neg_risk_adapter,
        }

    def test_exchange_spenders_with_escrow(self):
        spenders = exchange_spenders(CONTRACTS, include_escrow=True)

        assert spenders[FEE_ESCROW] == ESCROW_CONTRACT_POLYGON
        assert len(spenders) == 4

    def test_encode_approve(self):
        data = encode_approve(CONTRACTS.exchange)

        assert data.startswith("0x095ea7b3")
        assert data[10 + 24:10 + 64].lower() == CONTRACTS.exchange[2:].lower()
        assert int(data[-64:], 16) == MAX_UINT256


class TestThreshold:
    """Sufficiency threshold is inclusive at 10**12 base units."""

    def test_just_below_threshold_is_insufficient(self):
        status = AllowanceStatus(CTF_EXCHANGE, CONTRACTS.exchange, UNLIMITED_ALLOWANCE_THRESHOLD - 1)
        assert status.sufficient is False

    def test_threshold_is_sufficient(self):
        status = AllowanceStatus(CTF_EXCHANGE, CONTRACTS.exchange, UNLIMITED_ALLOWANCE_THRESHOLD)
        assert status.sufficient is True


class TestAllowanceManager:
    """Tests for checking and setting allowances."""

    @pytest.mark.asyncio
    async def test_check_reads_every_spender(self, chain: FakeChain):
        chain.grant(TEST_ADDRESS, CONTRACTS.exchange)
        manager = AllowanceManager(chain, CONTRACTS.collateral)

        statuses = await manager.check(TEST_ADDRESS, exchange_spenders(CONTRACTS))

        assert chain.allowance_reads == 3
        assert statuses[CTF_EXCHANGE].sufficient
        assert not statuses[NEG_RISK_ADAPTER].sufficient

    @pytest.mark.asyncio
    async def test_set_only_approves_missing(self, chain: FakeChain):
        chain.grant(TEST_ADDRESS, CONTRACTS.exchange)
        manager = AllowanceManager(chain, CONTRACTS.collateral)
        sender = FakeSender(chain, TEST_ADDRESS)
        events = []

        result = await manager.set(
            sender, TEST_ADDRESS, exchange_spenders(CONTRACTS), on_progress=events.append
        )

        assert result.already_approved == [CTF_EXCHANGE]
        assert result.approved == [NEG_RISK_CTF_EXCHANGE, NEG_RISK_ADAPTER]
        assert len(sender.sent) == 2
        assert all(tx["to"] == CONTRACTS.collateral for tx in sender.sent)
        assert events == [
            ProgressEvent(step=f"approve:{NEG_RISK_CTF_EXCHANGE}", current=1, total=2),
            ProgressEvent(step=f"approve:{NEG_RISK_ADAPTER}", current=2, total=2),
        ]
        assert await manager.has_required_approvals(TEST_ADDRESS, exchange_spenders(CONTRACTS))

    @pytest.mark.asyncio
    async def test_set_is_noop_when_all_sufficient(self, chain: FakeChain):
        for spender in exchange_spenders(CONTRACTS).values():
            chain.grant(TEST_ADDRESS, spender)
        sender = FakeSender(chain, TEST_ADDRESS)

        result = await AllowanceManager(chain, CONTRACTS.collateral).set(
            sender, TEST_ADDRESS, exchange_spenders(CONTRACTS)
        )

        assert result.approved == []
        assert sender.sent == []

    @pytest.mark.asyncio
    async def test_set_passes_sponsor_flag(self, chain: FakeChain):
        sender = FakeSender(chain, TEST_ADDRESS)

        await AllowanceManager(chain, CONTRACTS.collateral).set(
            sender, TEST_ADDRESS, {CTF_EXCHANGE: CONTRACTS.exchange}, sponsor_gas=True
        )

        assert sender.sent[0]["sponsor"] is True

    @pytest.mark.asyncio
    async def test_reverted_approval_raises(self, chain: FakeChain):
        sender = FakeSender(chain, TEST_ADDRESS)
        chain.reverted.add("0x" + f"{1:064x}")

        with pytest.raises(TransactionFailedError) as exc_info:
            await AllowanceManager(chain, CONTRACTS.collateral).set(
                sender, TEST_ADDRESS, exchange_spenders(CONTRACTS)
            )

        assert exc_info.value.tx_hash == "0x" + f"{1:064x}"
        assert len(sender.sent) == 1

    @pytest.mark.asyncio
    async def test_partial_progress_stays_reported_when_second_approval_reverts(
        self, chain: FakeChain
    ):
        """Events for steps already started remain visible; the call still fails."""
        sender = FakeSender(chain, TEST_ADDRESS)
        second_tx = "0x" + f"{2:064x}"
        chain.reverted.add(second_tx)
        events = []

        with pytest.raises(TransactionFailedError) as exc_info:
            await AllowanceManager(chain, CONTRACTS.collateral).set(
                sender, TEST_ADDRESS, exchange_spenders(CONTRACTS), on_progress=events.append
            )

        assert exc_info.value.tx_hash == second_tx
        assert events == [
            ProgressEvent(step=f"approve:{CTF_EXCHANGE}", current=1, total=3),
            ProgressEvent(step=f"approve:{NEG_RISK_CTF_EXCHANGE}", current=2, total=3),
        ]
        assert [tx["spender"].lower() for tx in sender.sent] == [
            CONTRACTS.exchange.lower(),
            CONTRACTS.neg_risk_exchange.lower(),
        ]
        # the first approval confirmed before the failure and is kept on chain
        assert await chain.allowance(
            CONTRACTS.collateral, TEST_ADDRESS, CONTRACTS.exchange
        ) == MAX_UINT256
