"""Polymarket Router.

Links a user's wallet to Polymarket once, then places orders through the
Dome execution service without asking the wallet to sign every trade
(only each order itself is signed).

Supports two wallet types:
1. EOA wallets (Privy server wallets, raw keys): the signer is the funder
2. Safe wallets (external wallets like MetaMask): a Safe owned by the
   signer is the funder and orders use signature type 2

Key flows:
1. link_user: derive or create CLOB API credentials (one signature) and,
   where needed, deploy the Safe and set token allowances
2. place_order: sign the order and submit it with the stored credentials
3. cancel_order / claim_winnings: forwarded to the execution service
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx
from web3 import AsyncWeb3

from ..allowances import (
    AllowanceManager,
    AllowanceStatus,
    ApprovalResult,
    exchange_spenders,
)
from ..backend import BackendClient, build_place_order_request
from ..chain import ChainReader
from ..clob import ClobCredentialClient
from ..config import RouterConfig, resolve_router_config
from ..errors import ConfigurationError
from ..linker import WalletLinker
from ..orders import OrderBuilder, new_client_order_id
from ..privy import PrivyClient, PrivyWalletSigner
from ..safe import RelayClient, derive_safe_address
from ..signers import Signer, TransactionSender
from ..store import CredentialStore, InMemoryCredentialStore
from ..types import (
    CancelOrderParams,
    ClaimWinningsParams,
    ExchangeCredentials,
    LinkUserParams,
    PlaceOrderParams,
    ProgressCallback,
    SignedOrder,
    SmartAccountLinkResult,
    WalletTopology,
)

logger = logging.getLogger(__name__)


@dataclass
class PreparedOrder:
    """Everything resolved for an order before it is signed."""

    signer: Signer
    signer_address: str
    topology: WalletTopology
    payer_address: str
    """Funder of the order: the signer for EOA wallets, the Safe otherwise."""
    credentials: ExchangeCredentials


class PolymarketRouter:
    """Polymarket Router for wallet linking and order routing.

    Example:
        ```python
        router = PolymarketRouter({"api_key": "your-dome-api-key"})

        credentials = await router.link_user({
            "user_id": "user-123",
            "signer": signer,
        })

        result = await router.place_order({
            "user_id": "user-123",
            "market_id": "token-id",
            "side": "buy",
            "size": 10,
            "price": 0.65,
            "signer": signer,
        })
        ```
    """

    def __init__(
        self,
        config: Optional[RouterConfig] = None,
        *,
        store: Optional[CredentialStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        web3: Optional[AsyncWeb3] = None,
    ):
        """Initialize the Polymarket Router.

        Args:
            config: Optional configuration for the router
            store: Credential store (default: a fresh in-memory store)
            http_client: Shared httpx client for every HTTP collaborator
            web3: AsyncWeb3 for chain reads (default: built from rpc_url)
        """
        self.config = resolve_router_config(config)
        self.chain_id = self.config.chain_id
        self.contracts = self.config.contracts
        self.store = store or InMemoryCredentialStore()

        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=self.config.timeout)

        self.backend = BackendClient(
            self.config.api_key, self.config.api_endpoint, http_client=self._http_client
        )
        self.clob = ClobCredentialClient(
            self.config.clob_endpoint, self.chain_id, http_client=self._http_client
        )
        self.relay = RelayClient(
            self.config.relayer_endpoint, self.chain_id, http_client=self._http_client
        )
        self.chain = ChainReader(self.config.rpc_url, web3=web3, timeout=self.config.timeout)
        self.allowances = AllowanceManager(self.chain, self.contracts.collateral)
        self.orders = OrderBuilder(self.chain_id, self.contracts)

        self.privy: Optional[PrivyClient] = None
        if self.config.privy:
            self.privy = PrivyClient.from_config(
                self.config.privy, http_client=self._http_client
            )

        self.linker = WalletLinker(
            self.store,
            self.clob,
            self.allowances,
            self.chain,
            self.relay,
            self.chain_id,
            exchange_spenders(self.contracts),
        )

    @property
    def api_key(self) -> Optional[str]:
        return self.config.api_key

    async def __aenter__(self) -> "PolymarketRouter":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release HTTP connections and the credential store."""
        if self._owns_http_client:
            await self._http_client.aclose()
        self.store.close()

    def _create_privy_signer_from_wallet(
        self, wallet_id: str, wallet_address: str
    ) -> PrivyWalletSigner:
        if self.privy is None:
            raise ConfigurationError(
                "Privy not configured. Pass privy config to router constructor."
            )
        return PrivyWalletSigner(self.privy, wallet_id, wallet_address, self.chain_id)

    async def link_user(
        self, params: LinkUserParams
    ) -> Union[ExchangeCredentials, SmartAccountLinkResult]:
        """Links a user to Polymarket by creating or deriving CLOB API credentials.

        For EOA wallets, allowances are checked against the signer address
        and set through `transaction_sender` (for a local key, a
        LocalAccountSigner built with web3), or through the Privy wallet
        when `privy_wallet_id` is given. With neither, missing allowances
        raise PreconditionError. For Safe wallets, the Safe is derived,
        optionally deployed, and its allowances are set through the relayer.

        Args:
            params: Link parameters

        Returns:
            ExchangeCredentials for EOA wallets, SmartAccountLinkResult for Safe wallets

        Raises:
            PreconditionError: Safe missing without auto_deploy_safe, or
                allowances missing with no way to send approvals
        """
        user_id = params.get("user_id")
        signer = params.get("signer")
        if not user_id:
            raise ConfigurationError("user_id is required")
        if signer is None:
            raise ConfigurationError("signer is required to link a user")

        topology = WalletTopology.parse(params.get("wallet_type"))

        sender: Optional[TransactionSender] = params.get("transaction_sender")
        privy_wallet_id = params.get("privy_wallet_id")
        if sender is None and privy_wallet_id and topology is WalletTopology.DIRECT:
            sender = self._create_privy_signer_from_wallet(
                privy_wallet_id, await signer.get_address()
            )

        return await self.linker.link(
            user_id,
            signer,
            topology,
            auto_deploy=params.get("auto_deploy_safe", False),
            auto_set_allowances=params.get("auto_set_allowances", True),
            sponsor_gas=params.get("sponsor_gas", False),
            transaction_sender=sender,
            check_allowances=params.get("check_allowances", True),
            on_progress=params.get("on_progress"),
        )

    async def _prepare_order(
        self,
        params: PlaceOrderParams,
        credentials: Optional[ExchangeCredentials] = None,
    ) -> PreparedOrder:
        if not self.api_key:
            raise ConfigurationError(
                "Dome API key not set. Pass api_key to router constructor to use place_order."
            )

        user_id = params.get("user_id", "")
        signer = params.get("signer")
        privy_wallet_id = params.get("privy_wallet_id")
        wallet_address = params.get("wallet_address")
        if signer is None and privy_wallet_id and wallet_address:
            signer = self._create_privy_signer_from_wallet(privy_wallet_id, wallet_address)
        if signer is None:
            raise ConfigurationError(
                "Either provide a signer or Privy wallet info (privy_wallet_id + wallet_address)"
            )

        creds = credentials or self.store.get_credentials(user_id)
        if creds is None:
            raise ConfigurationError(
                f"No credentials found for user {user_id}. Call link_user() first."
            )

        topology = WalletTopology.parse(params.get("wallet_type"))
        signer_address = await signer.get_address()
        if topology is WalletTopology.SMART_ACCOUNT:
            payer_address = params.get("funder_address") or self.store.get_smart_account(
                user_id
            )
            if not payer_address:
                raise ConfigurationError(
                    "funder_address is required for Safe wallet orders. "
                    "This should be the Safe address returned by link_user()."
                )
        else:
            payer_address = signer_address

        return PreparedOrder(
            signer=signer,
            signer_address=signer_address,
            topology=topology,
            payer_address=payer_address,
            credentials=creds,
        )

    async def _sign_order(
        self, prepared: PreparedOrder, params: PlaceOrderParams
    ) -> SignedOrder:
        return await self.orders.sign_order(
            prepared.signer,
            token_id=params["market_id"],
            side=params["side"],
            size=params["size"],
            price=params["price"],
            topology=prepared.topology,
            funder_address=prepared.payer_address,
            signer_address=prepared.signer_address,
            neg_risk=params.get("neg_risk", False),
            tick_size=params.get("tick_size", "0.01"),
        )

    async def place_order(
        self,
        params: PlaceOrderParams,
        credentials: Optional[ExchangeCredentials] = None,
    ) -> Dict[str, Any]:
        """Places an order on Polymarket via the Dome server.

        Args:
            params: Order parameters
            credentials: Optional credentials (uses stored credentials if not provided)

        Returns:
            Order result from the server
        """
        prepared = await self._prepare_order(params, credentials)
        signed_order = await self._sign_order(prepared, params)

        request = build_place_order_request(
            signed_order,
            prepared.credentials,
            new_client_order_id(),
            order_type=params.get("order_type", "GTC"),
        )
        return await self.backend.place_order(request)

    async def cancel_order(self, params: CancelOrderParams) -> Dict[str, Any]:
        """Cancel an order via the Dome server (and trigger any escrow refund)."""
        return await self.backend.cancel_order(
            params["order_id"], params["signer_address"], params["credentials"]
        )

    async def claim_winnings(self, params: ClaimWinningsParams) -> Dict[str, Any]:
        """Claim winnings from a resolved market via the Dome server.

        Two flows are supported:
        - EOA: wallet_type 'eoa' with a pre-signed signed_redeem_tx
        - Privy: wallet_type 'privy' with privy_wallet_id, condition_id, outcome_index
        """
        return await self.backend.claim_winnings(params)

    def _spenders(self, include_escrow: bool = False) -> Dict[str, str]:
        return exchange_spenders(self.contracts, include_escrow=include_escrow)

    async def check_allowances(
        self, wallet_address: str, include_escrow: bool = False
    ) -> Dict[str, AllowanceStatus]:
        """Check the wallet's USDC allowances for the exchange contracts."""
        return await self.allowances.check(wallet_address, self._spenders(include_escrow))

    async def set_allowances(
        self,
        wallet_address: str,
        sender: TransactionSender,
        *,
        include_escrow: bool = False,
        sponsor_gas: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ApprovalResult:
        """Approve every exchange contract lacking allowance, one transaction at a time."""
        return await self.allowances.set(
            sender,
            wallet_address,
            self._spenders(include_escrow),
            sponsor_gas=sponsor_gas,
            on_progress=on_progress,
        )

    def derive_smart_account_address(self, owner_address: str) -> str:
        """Derive the Safe address for an owner (without deployment)."""
        return derive_safe_address(owner_address, self.chain_id, self.contracts)

    async def is_smart_account_deployed(self, safe_address: str) -> bool:
        return await self.chain.is_deployed(safe_address)

    def is_user_linked(self, user_id: str) -> bool:
        """Checks if a user has already been linked to Polymarket."""
        return self.store.has_credentials(user_id)

    def is_api_key_configured(self) -> bool:
        return bool(self.api_key)

    def get_credentials(self, user_id: str) -> Optional[ExchangeCredentials]:
        return self.store.get_credentials(user_id)

    def set_credentials(self, user_id: str, credentials: ExchangeCredentials) -> None:
        """Manually set credentials for a user."""
        self.store.set_credentials(user_id, credentials)

    def get_smart_account_address(self, user_id: str) -> Optional[str]:
        return self.store.get_smart_account(user_id)

    def set_smart_account_address(self, user_id: str, safe_address: str) -> None:
        """Manually set the Safe address for a user."""
        self.store.set_smart_account(user_id, safe_address)


__all__ = ["PolymarketRouter", "PreparedOrder"]
