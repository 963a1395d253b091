"""Claim Winnings (EOA) Example.

Signs a redeemPositions transaction offline and hands it to Dome together
with a performance fee authorization. Dome broadcasts the redemption and
collects the fee from the winnings.

Usage:
    DOME_API_KEY=... PRIVATE_KEY=0x... CONDITION_ID=0x... \
        OUTCOME_INDEX=0 EXPECTED_WINNINGS=10.5 python claim_winnings_eoa.py
"""

import asyncio
import logging
import os

from dotenv import load_dotenv
from web3 import AsyncWeb3

from polylink import (
    LocalAccountSigner,
    PolymarketRouterWithEscrow,
    config_from_env,
    format_usdc,
    parse_usdc,
    sign_redeem_positions_tx,
)

load_dotenv()
logging.basicConfig(level=logging.INFO)


async def main():
    required = ["DOME_API_KEY", "PRIVATE_KEY", "CONDITION_ID", "OUTCOME_INDEX", "EXPECTED_WINNINGS"]
    missing = [var for var in required if not os.environ.get(var)]
    if missing:
        print(f"Missing required environment variables: {', '.join(missing)}")
        return

    config = config_from_env()
    private_key = os.environ["PRIVATE_KEY"]
    condition_id = os.environ["CONDITION_ID"]
    outcome_index = int(os.environ["OUTCOME_INDEX"])
    expected_winnings = parse_usdc(os.environ["EXPECTED_WINNINGS"])

    web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(config.get("rpc_url", "https://polygon-rpc.com")))
    signed_redeem_tx = await sign_redeem_positions_tx(
        private_key, web3, condition_id, outcome_index
    )
    print(f"Signed redeem tx: {signed_redeem_tx[:20]}...")

    async with PolymarketRouterWithEscrow(config, web3=web3) as router:
        fee_bps = router.get_escrow_config().performance_fee_bps
        print(f"Expected winnings: ${format_usdc(expected_winnings)} (fee {fee_bps} bps)")

        result = await router.claim_winnings_with_fee({
            "signer": LocalAccountSigner(private_key),
            "wallet_type": "eoa",
            "condition_id": condition_id,
            "outcome_index": outcome_index,
            "expected_winnings": expected_winnings,
            "signed_redeem_tx": signed_redeem_tx,
        })

        print(f"Claim status: {result.get('status')}")
        if result.get("redeemTxHash"):
            print(f"Redeem TX: https://polygonscan.com/tx/{result['redeemTxHash']}")


if __name__ == "__main__":
    asyncio.run(main())
