"""Tests for the wallet link flow."""

import pytest

from polylink.allowances import AllowanceManager, exchange_spenders
from polylink.config import get_contract_config
from polylink.errors import (
    CredentialDerivationError,
    LinkError,
    PreconditionError,
    TransportError,
)
from polylink.linker import LinkStep, WalletLinker
from polylink.safe import derive_safe_address
from polylink.store import InMemoryCredentialStore
from polylink.types import (
    ExchangeCredentials,
    ProgressEvent,
    SmartAccountLinkResult,
    WalletTopology,
)

from conftest import (
    TEST_ADDRESS,
    TEST_CREDENTIALS,
    FakeChain,
    FakeCredentialClient,
    FakeRelay,
    FakeSender,
)

CONTRACTS = get_contract_config(137)
SAFE_ADDRESS = derive_safe_address(TEST_ADDRESS, 137)


def _linker(chain, clob=None, relay=None, store=None):
    return WalletLinker(
        store or InMemoryCredentialStore(),
        clob or FakeCredentialClient(),
        AllowanceManager(chain, CONTRACTS.collateral),
        chain,
        relay,
        137,
        exchange_spenders(CONTRACTS),
    )


def _grant_all(chain: FakeChain, owner: str) -> None:
    for spender in exchange_spenders(CONTRACTS).values():
        chain.grant(owner, spender)


class TestDirectLink:
    """Linking an EOA that is its own funder."""

    @pytest.mark.asyncio
    async def test_link_stores_credentials(self, signer, chain):
        _grant_all(chain, TEST_ADDRESS)
        linker = _linker(chain)
        events = []

        credentials = await linker.link("user-1", signer, on_progress=events.append)

        assert credentials == TEST_CREDENTIALS
        assert linker.store.get_credentials("user-1") == TEST_CREDENTIALS
        assert [e.step for e in events] == ["check_allowances", "credentials", "linked"]
        assert events[-1] == ProgressEvent(step="linked", current=4, total=4)

    @pytest.mark.asyncio
    async def test_link_is_idempotent(self, signer, chain):
        """Re-linking derives the same credentials and sends no transactions."""
        linker = _linker(chain)
        sender = FakeSender(chain, TEST_ADDRESS)

        first = await linker.link("user-1", signer, transaction_sender=sender)
        sent_after_first = len(sender.sent)
        second = await linker.link("user-1", signer, transaction_sender=sender)

        assert first == second
        assert sent_after_first == 3
        assert len(sender.sent) == 3

    @pytest.mark.asyncio
    async def test_derive_failure_falls_back_to_create(self, signer, chain):
        _grant_all(chain, TEST_ADDRESS)
        created = ExchangeCredentials("new-key", "new-secret", "new-pass")
        clob = FakeCredentialClient(
            derive_error=TransportError("not found", status_code=404), created=created
        )
        linker = _linker(chain, clob=clob)

        credentials = await linker.link("user-1", signer)

        assert credentials == created
        assert clob.derive_calls == 1
        assert clob.create_calls == 1
        assert linker.store.get_credentials("user-1") == created

    @pytest.mark.asyncio
    async def test_incomplete_derived_credentials_trigger_create(self, signer, chain):
        _grant_all(chain, TEST_ADDRESS)
        clob = FakeCredentialClient(derived=ExchangeCredentials("key", "", ""))

        await _linker(chain, clob=clob).link("user-1", signer)

        assert clob.create_calls == 1

    @pytest.mark.asyncio
    async def test_both_credential_phases_fail(self, signer, chain):
        _grant_all(chain, TEST_ADDRESS)
        clob = FakeCredentialClient(
            derive_error=TransportError("derive down"),
            create_error=TransportError("create down"),
        )
        linker = _linker(chain, clob=clob)
        events = []

        with pytest.raises(CredentialDerivationError) as exc_info:
            await linker.link("user-1", signer, on_progress=events.append)

        assert "create down" in str(exc_info.value)
        assert exc_info.value.step is LinkStep.CREDENTIALS
        assert isinstance(exc_info.value.derive_error, TransportError)
        assert linker.store.get_credentials("user-1") is None
        assert events[-1].step == "failed"

    @pytest.mark.asyncio
    async def test_missing_allowances_without_sender(self, signer, chain):
        linker = _linker(chain)

        with pytest.raises(PreconditionError) as exc_info:
            await linker.link("user-1", signer)

        assert exc_info.value.step is LinkStep.CHECK_ALLOWANCES
        assert linker.store.get_credentials("user-1") is None

    @pytest.mark.asyncio
    async def test_auto_set_allowances_disabled(self, signer, chain):
        sender = FakeSender(chain, TEST_ADDRESS)

        with pytest.raises(PreconditionError):
            await _linker(chain).link(
                "user-1", signer, transaction_sender=sender, auto_set_allowances=False
            )

        assert sender.sent == []

    @pytest.mark.asyncio
    async def test_skip_allowance_check(self, signer, chain):
        linker = _linker(chain)

        await linker.link("user-1", signer, check_allowances=False)

        assert chain.allowance_reads == 0
        assert linker.store.has_credentials("user-1")


class TestSmartAccountLink:
    """Linking a Safe owned by the signer."""

    @pytest.mark.asyncio
    async def test_missing_safe_without_auto_deploy(self, signer, chain):
        relay = FakeRelay(chain)
        linker = _linker(chain, relay=relay)

        with pytest.raises(PreconditionError, match="Safe not deployed") as exc_info:
            await linker.link("user-1", signer, WalletTopology.SMART_ACCOUNT)

        assert exc_info.value.step is LinkStep.CHECK_DEPLOYMENT
        assert relay.deployed == []
        assert linker.store.get_smart_account("user-1") is None

    @pytest.mark.asyncio
    async def test_auto_deploy_and_approve(self, signer, chain):
        relay = FakeRelay(chain)
        linker = _linker(chain, relay=relay)
        events = []

        result = await linker.link(
            "user-1",
            signer,
            WalletTopology.SMART_ACCOUNT,
            auto_deploy=True,
            on_progress=events.append,
        )

        assert isinstance(result, SmartAccountLinkResult)
        assert result.smart_account_address == SAFE_ADDRESS
        assert result.signer_address == TEST_ADDRESS
        assert result.already_deployed is False
        assert result.deployed_now is True
        assert result.allowances_set == 3
        assert relay.deployed == [SAFE_ADDRESS]
        assert {tx["safe"] for tx in relay.executed} == {SAFE_ADDRESS}
        assert linker.store.get_smart_account("user-1") == SAFE_ADDRESS
        assert "deploy" in [e.step for e in events]

    @pytest.mark.asyncio
    async def test_existing_safe_with_allowances(self, signer, chain):
        chain.deployed.add(SAFE_ADDRESS.lower())
        _grant_all(chain, SAFE_ADDRESS)
        relay = FakeRelay(chain)
        events = []

        result = await _linker(chain, relay=relay).link(
            "user-1", signer, "safe", on_progress=events.append
        )

        assert result.already_deployed is True
        assert result.deployed_now is False
        assert result.allowances_set == 0
        assert relay.executed == []
        assert [e.step for e in events] == [
            "derive_address",
            "check_deployment",
            "check_allowances",
            "credentials",
            "linked",
        ]
        assert events[0] == ProgressEvent(step="derive_address", current=1, total=7)

    @pytest.mark.asyncio
    async def test_allowances_checked_against_safe_not_signer(self, signer, chain):
        chain.deployed.add(SAFE_ADDRESS.lower())
        _grant_all(chain, TEST_ADDRESS)

        with pytest.raises(PreconditionError):
            await _linker(chain).link("user-1", signer, WalletTopology.SMART_ACCOUNT)

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_wrapped(self, signer):
        class BrokenChain(FakeChain):
            async def is_deployed(self, address: str) -> bool:
                raise RuntimeError("rpc unavailable")

        with pytest.raises(LinkError, match="rpc unavailable") as exc_info:
            await _linker(BrokenChain()).link("user-1", signer, WalletTopology.SMART_ACCOUNT)

        assert exc_info.value.step is LinkStep.CHECK_DEPLOYMENT
        assert isinstance(exc_info.value.__cause__, RuntimeError)
