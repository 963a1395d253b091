"""Wallet linking.

Drives a user's wallet to a linked state in which the exchange API
credentials are stored and all setup the wallet topology requires is done:

    idle -> [derive_address] -> [check_deployment -> deploy]
         -> check_allowances -> [set_allowances] -> credentials -> linked

Bracketed steps only apply to smart accounts or when something is missing.
Any failure ends in `failed`; the raised error carries the step it happened in.
Re-running a completed link re-derives the same credentials and only
re-approves allowances that have drifted.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Union

from .allowances import AllowanceManager, ApprovalResult
from .chain import ChainReader
from .clob import ClobCredentialClient, derive_or_create_credentials
from .config import POLYGON_CHAIN_ID
from .errors import ConfigurationError, LinkError, PreconditionError, RouterError
from .safe import RelayClient, SafeTransactionSender, derive_safe_address
from .signers import Signer, TransactionSender
from .store import CredentialStore
from .types import (
    ExchangeCredentials,
    ProgressCallback,
    ProgressEvent,
    SmartAccountLinkResult,
    WalletTopology,
)

logger = logging.getLogger(__name__)


class LinkStep(str, Enum):
    """States of the wallet link flow."""

    IDLE = "idle"
    DERIVE_ADDRESS = "derive_address"
    CHECK_DEPLOYMENT = "check_deployment"
    DEPLOY = "deploy"
    CHECK_ALLOWANCES = "check_allowances"
    SET_ALLOWANCES = "set_allowances"
    CREDENTIALS = "credentials"
    LINKED = "linked"
    FAILED = "failed"


_DIRECT_PATH = [
    LinkStep.CHECK_ALLOWANCES,
    LinkStep.SET_ALLOWANCES,
    LinkStep.CREDENTIALS,
    LinkStep.LINKED,
]

_SMART_ACCOUNT_PATH = [
    LinkStep.DERIVE_ADDRESS,
    LinkStep.CHECK_DEPLOYMENT,
    LinkStep.DEPLOY,
    LinkStep.CHECK_ALLOWANCES,
    LinkStep.SET_ALLOWANCES,
    LinkStep.CREDENTIALS,
    LinkStep.LINKED,
]


class _LinkRun:
    """Tracks the current step of one link call and reports transitions."""

    def __init__(self, path: List[LinkStep], on_progress: Optional[ProgressCallback]):
        self.path = path
        self.step = LinkStep.IDLE
        self.on_progress = on_progress

    def enter(self, step: LinkStep) -> None:
        self.step = step
        if self.on_progress is None:
            return
        current = self.path.index(step) + 1 if step in self.path else 0
        self.on_progress(
            ProgressEvent(step=step.value, current=current, total=len(self.path))
        )

    def fail(self) -> LinkStep:
        failed_at = self.step
        self.enter(LinkStep.FAILED)
        return failed_at


class WalletLinker:
    """Links users to the exchange for either wallet topology."""

    def __init__(
        self,
        store: CredentialStore,
        credential_client: ClobCredentialClient,
        allowance_manager: Optional[AllowanceManager] = None,
        chain: Optional[ChainReader] = None,
        relay: Optional[RelayClient] = None,
        chain_id: int = POLYGON_CHAIN_ID,
        spenders: Optional[Dict[str, str]] = None,
    ):
        self.store = store
        self.credential_client = credential_client
        self.allowance_manager = allowance_manager
        self.chain = chain
        self.relay = relay
        self.chain_id = chain_id
        self.spenders = dict(spenders or {})

    async def link(
        self,
        user_id: str,
        signer: Signer,
        topology: WalletTopology = WalletTopology.DIRECT,
        *,
        auto_deploy: bool = False,
        auto_set_allowances: bool = True,
        sponsor_gas: bool = False,
        transaction_sender: Optional[TransactionSender] = None,
        check_allowances: bool = True,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Union[ExchangeCredentials, SmartAccountLinkResult]:
        """Run the link flow for a user.

        Args:
            user_id: Caller's identifier for the user
            signer: Wallet owning the trading identity
            topology: DIRECT (EOA) or SMART_ACCOUNT (Safe)
            auto_deploy: Deploy a missing Safe instead of failing
            auto_set_allowances: Approve spenders lacking allowance instead of failing
            sponsor_gas: Request gas sponsorship for direct-wallet approvals
            transaction_sender: Sends direct-wallet approvals
            check_allowances: Verify allowances at all
            on_progress: Receives a ProgressEvent on every transition

        Returns:
            ExchangeCredentials for DIRECT, SmartAccountLinkResult for SMART_ACCOUNT

        Raises:
            ConfigurationError: Missing input or collaborator
            PreconditionError: Safe missing or allowances insufficient with
                remediation disabled
            CredentialDerivationError: Credentials could not be derived or created
            LinkError: Any other collaborator failure
        """
        if not user_id:
            raise ConfigurationError("user_id is required")

        topology = WalletTopology.parse(topology)
        path = (
            _SMART_ACCOUNT_PATH if topology is WalletTopology.SMART_ACCOUNT else _DIRECT_PATH
        )
        run = _LinkRun(path, on_progress)

        try:
            if topology is WalletTopology.SMART_ACCOUNT:
                return await self._link_smart_account(
                    run,
                    user_id,
                    signer,
                    auto_deploy=auto_deploy,
                    auto_set_allowances=auto_set_allowances,
                    check_allowances=check_allowances,
                )
            return await self._link_direct(
                run,
                user_id,
                signer,
                auto_set_allowances=auto_set_allowances,
                sponsor_gas=sponsor_gas,
                transaction_sender=transaction_sender,
                check_allowances=check_allowances,
            )
        except RouterError as e:
            failed_at = run.fail()
            if e.step is None:
                e.step = failed_at
            logger.warning("Linking %s failed during %s: %s", user_id, failed_at.value, e)
            raise
        except Exception as e:
            failed_at = run.fail()
            logger.warning("Linking %s failed during %s: %s", user_id, failed_at.value, e)
            raise LinkError(
                f"Linking failed during {failed_at.value}: {e}", step=failed_at
            ) from e

    async def _link_direct(
        self,
        run: _LinkRun,
        user_id: str,
        signer: Signer,
        *,
        auto_set_allowances: bool,
        sponsor_gas: bool,
        transaction_sender: Optional[TransactionSender],
        check_allowances: bool,
    ) -> ExchangeCredentials:
        address = await signer.get_address()
        logger.info("Linking user %s with wallet %s", user_id, address)

        if check_allowances:
            await self._ensure_allowances(
                run,
                address,
                transaction_sender if auto_set_allowances else None,
                sponsor_gas=sponsor_gas,
            )

        run.enter(LinkStep.CREDENTIALS)
        credentials = await derive_or_create_credentials(self.credential_client, signer)

        run.enter(LinkStep.LINKED)
        self.store.set_credentials(user_id, credentials)
        logger.info("User %s linked", user_id)
        return credentials

    async def _link_smart_account(
        self,
        run: _LinkRun,
        user_id: str,
        signer: Signer,
        *,
        auto_deploy: bool,
        auto_set_allowances: bool,
        check_allowances: bool,
    ) -> SmartAccountLinkResult:
        if self.chain is None:
            raise ConfigurationError("A chain reader is required to link Safe wallets")

        run.enter(LinkStep.DERIVE_ADDRESS)
        owner = await signer.get_address()
        safe_address = derive_safe_address(owner, self.chain_id)
        logger.info("Linking user %s: owner %s, Safe %s", user_id, owner, safe_address)

        run.enter(LinkStep.CHECK_DEPLOYMENT)
        already_deployed = await self.chain.is_deployed(safe_address)
        deployed_now = False
        if not already_deployed:
            if not auto_deploy:
                raise PreconditionError(
                    f"Safe not deployed at {safe_address}. "
                    "Set auto_deploy_safe to True to deploy automatically."
                )
            if self.relay is None:
                raise ConfigurationError("A relay client is required to deploy a Safe")
            run.enter(LinkStep.DEPLOY)
            tx = await self.relay.deploy(signer)
            deployed_now = True
            logger.info("Safe %s deployed (%s)", safe_address, tx.transaction_hash)

        approvals_set = 0
        if check_allowances:
            sender = None
            if auto_set_allowances and self.relay is not None:
                sender = SafeTransactionSender(self.relay, signer, safe_address)
            approval = await self._ensure_allowances(run, safe_address, sender)
            approvals_set = len(approval.approved)

        run.enter(LinkStep.CREDENTIALS)
        credentials = await derive_or_create_credentials(self.credential_client, signer)

        run.enter(LinkStep.LINKED)
        self.store.set_credentials(user_id, credentials)
        self.store.set_smart_account(user_id, safe_address)
        logger.info("User %s linked with Safe %s", user_id, safe_address)

        return SmartAccountLinkResult(
            credentials=credentials,
            smart_account_address=safe_address,
            signer_address=owner,
            already_deployed=already_deployed,
            deployed_now=deployed_now,
            allowances_set=approvals_set,
        )

    async def _ensure_allowances(
        self,
        run: _LinkRun,
        owner: str,
        sender: Optional[TransactionSender],
        *,
        sponsor_gas: bool = False,
    ) -> ApprovalResult:
        if self.allowance_manager is None:
            raise ConfigurationError("An allowance manager is required to check allowances")

        run.enter(LinkStep.CHECK_ALLOWANCES)
        statuses = await self.allowance_manager.check(owner, self.spenders)
        missing = [name for name, status in statuses.items() if not status.sufficient]
        if not missing:
            logger.debug("Allowances already set for %s", owner)
            return ApprovalResult(already_approved=list(statuses))

        if sender is None:
            raise PreconditionError(
                f"Missing token allowances for {owner}: {', '.join(missing)}. "
                "Enable auto_set_allowances with a transaction sender, or approve manually."
            )

        run.enter(LinkStep.SET_ALLOWANCES)
        return await self.allowance_manager.set(
            sender,
            owner,
            self.spenders,
            sponsor_gas=sponsor_gas,
            on_progress=run.on_progress,
        )


__all__ = ["LinkStep", "WalletLinker"]
