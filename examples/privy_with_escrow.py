"""Privy + Polymarket with Fee Escrow Example.

This example demonstrates placing orders with automatic fee escrow using
Privy server wallets. The fee is authorized upfront and:
- Distributed to Dome + affiliate on fill
- Refunded to user on cancel

Prerequisites:
1. pip install polylink
2. Set environment variables (DOME_API_KEY, PRIVY_APP_ID, PRIVY_APP_SECRET,
   PRIVY_AUTHORIZATION_KEY, PRIVY_WALLET_ID, PRIVY_WALLET_ADDRESS)
3. Fund your Privy wallet with USDC.e and POL on Polygon

Usage:
    python privy_with_escrow.py
"""

import asyncio
import logging
import os

from dotenv import load_dotenv

from polylink import (
    PolymarketRouterWithEscrow,
    create_privy_signer_from_env,
    format_usdc,
)

load_dotenv()
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

# Example market (replace with a real token ID)
EXAMPLE_MARKET_ID = "21742633143463906290569050155826241533067272736897614950488156847949938836455"


async def main():
    required = [
        "DOME_API_KEY",
        "PRIVY_APP_ID",
        "PRIVY_APP_SECRET",
        "PRIVY_AUTHORIZATION_KEY",
        "PRIVY_WALLET_ID",
        "PRIVY_WALLET_ADDRESS",
    ]
    missing = [var for var in required if not os.environ.get(var)]
    if missing:
        print(f"Missing required environment variables: {', '.join(missing)}")
        return

    print("=" * 60)
    print("  PRIVY + POLYMARKET WITH FEE ESCROW")
    print("=" * 60)

    router = PolymarketRouterWithEscrow({
        "api_key": os.environ["DOME_API_KEY"],
        "privy": {
            "app_id": os.environ["PRIVY_APP_ID"],
            "app_secret": os.environ["PRIVY_APP_SECRET"],
            "authorization_key": os.environ["PRIVY_AUTHORIZATION_KEY"],
        },
        "escrow": {
            "fee_bps": 25,  # 0.25% fee
            # "affiliate": "0x...",  # Optional: affiliate address for fee sharing
            # "affiliate_fee_bps": 5,
        },
    })

    async with router:
        print("\n[1] Creating Privy signer...")
        signer = create_privy_signer_from_env()
        address = await signer.get_address()
        print(f"    Wallet: {address}")

        # Approves the exchange contracts and the fee escrow, then derives credentials
        print("\n[2] Linking user to Polymarket...")
        await router.link_user({
            "user_id": "escrow-demo-user",
            "signer": signer,
            "privy_wallet_id": os.environ["PRIVY_WALLET_ID"],
            "sponsor_gas": True,
            "on_progress": lambda event: print(
                f"    {event.step} ({event.current}/{event.total})"
            ),
        })
        print("    API credentials obtained")

        size = 10  # shares
        price = 0.50  # $0.50 per share
        fee = router.calculate_order_fee(size, price)
        print("\n[3] Order preview:")
        print(f"    Size: {size} shares @ ${price}")
        print(f"    Cost: ${size * price:.2f} USDC")
        print(f"    Fee:  ${format_usdc(fee)} USDC (0.25%)")

        print("\n[4] Placing order with fee escrow...")
        result = await router.place_order({
            "user_id": "escrow-demo-user",
            "market_id": EXAMPLE_MARKET_ID,
            "side": "buy",
            "size": size,
            "price": price,
            "signer": signer,
        })

        print("\n[5] Order placed successfully!")
        print(f"    Order ID: {result.get('orderId', 'N/A')}")
        print(f"    Status:   {result.get('status')}")

        print("\n" + "=" * 60)
        print("  Order flow with escrow:")
        print("  1. Fee pulled to escrow contract (on-chain)")
        print("  2. Order submitted to Polymarket")
        print("  3. On fill: Fee distributed to Dome + affiliate")
        print("  4. On cancel: Fee refunded to your wallet")
        print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
