"""Safe Wallet Trading Example.

Links an external wallet (private key here, MetaMask-style in production)
whose funds live in a Safe smart account, then places an order signed by
the owner with the Safe as funder.

The relayer deploys the Safe and executes the token approvals, so the
owner never pays gas.

Usage:
    DOME_API_KEY=... PRIVATE_KEY=0x... python safe_wallet_trading.py
"""

import asyncio
import logging
import os

from dotenv import load_dotenv

from polylink import (
    LocalAccountSigner,
    PolymarketRouter,
    PreconditionError,
    config_from_env,
)

load_dotenv()
logging.basicConfig(level=logging.INFO)

EXAMPLE_MARKET_ID = "21742633143463906290569050155826241533067272736897614950488156847949938836455"


async def main():
    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        print("Set PRIVATE_KEY to the Safe owner's key")
        return

    signer = LocalAccountSigner(private_key)

    async with PolymarketRouter(config_from_env()) as router:
        safe_address = router.derive_smart_account_address(signer.address)
        print(f"Owner: {signer.address}")
        print(f"Safe:  {safe_address}")

        try:
            result = await router.link_user({
                "user_id": "safe-demo-user",
                "signer": signer,
                "wallet_type": "safe",
                "auto_deploy_safe": True,
            })
        except PreconditionError as e:
            print(f"Cannot link yet ({e.step}): {e}")
            return

        print(f"Safe deployed before: {result.already_deployed}")
        print(f"Safe deployed now:    {result.deployed_now}")
        print(f"Approvals set:        {result.allowances_set}")

        order = await router.place_order({
            "user_id": "safe-demo-user",
            "market_id": EXAMPLE_MARKET_ID,
            "side": "buy",
            "size": 5,
            "price": 0.40,
            "signer": signer,
            "wallet_type": "safe",
            "funder_address": result.smart_account_address,
        })
        print(f"Order {order.get('orderId')}: {order.get('status')}")


if __name__ == "__main__":
    asyncio.run(main())
