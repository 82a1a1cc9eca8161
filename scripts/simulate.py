"""
Concurrent Ordering Simulation

Fires many simultaneous orders for the same menu item at a running server
and checks that the shared ingredient never oversells. With --settle every
accepted order is billed and paid in full, which feeds the bill ledger
checked by scripts/verify.py.

Run from project root:
    python scripts/simulate.py --menu-item 1 --ingredient 1 --outlet 1 --orders 50
"""

import argparse
import asyncio
import sys
import time
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8080"
API_PREFIX = "/api"


def generate_order_payload(args: argparse.Namespace) -> dict[str, Any]:
    """One single-line order for the contended menu item."""
    return {
        "outlet_id": args.outlet,
        "order_type": "dine_in",
        "items": [
            {
                "menu_item_id": args.menu_item,
                "qty": args.qty,
                "unit_price": args.unit_price,
            }
        ],
    }


async def send_order(
    client: httpx.AsyncClient,
    args: argparse.Namespace,
    order_num: int,
) -> dict[str, Any]:
    """Send one order and classify the outcome."""
    start_time = time.time()
    try:
        response = await client.post(
            f"{API_PREFIX}/orders",
            json=generate_order_payload(args),
            timeout=30.0,
        )
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "outcome": "error",
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }

    elapsed = round(time.time() - start_time, 3)
    data = response.json()

    if response.status_code == 201:
        return {"order_num": order_num, "outcome": "accepted", "order_id": data["id"], "time": elapsed}
    if data.get("error") == "insufficient_stock":
        return {"order_num": order_num, "outcome": "out_of_stock", "time": elapsed}
    return {
        "order_num": order_num,
        "outcome": "error",
        "error": f"{response.status_code} {data.get('error')}: {data.get('detail')}",
        "time": elapsed,
    }


async def settle_order(client: httpx.AsyncClient, order_id: int) -> bool:
    """Bill an order and pay the full total in cash."""
    response = await client.post(f"{API_PREFIX}/bills", json={"order_id": order_id})
    if response.status_code != 201:
        return False
    bill_id = response.json()["bill_id"]

    bill = (await client.get(f"{API_PREFIX}/bills/{bill_id}")).json()
    if bill["total_amount"] <= 0:
        return True

    response = await client.post(
        f"{API_PREFIX}/bills/pay",
        json={"bill_id": bill_id, "payment_method": "cash", "amount": bill["total_amount"]},
    )
    return response.status_code == 200 and response.json()["status"] == "paid"


async def run_simulation(args: argparse.Namespace) -> dict[str, Any]:
    """Run the concurrent order burst and report."""
    print("=" * 70)
    print("🔥 CONCURRENT ORDERING SIMULATION")
    print("=" * 70)
    print(f"🎯 Target: {args.base_url}")
    print(f"📦 Orders: {args.orders} x menu item {args.menu_item} (qty {args.qty:g})")
    print("=" * 70)

    async with httpx.AsyncClient(base_url=args.base_url) as client:
        response = await client.get(f"{API_PREFIX}/ingredients/{args.ingredient}")
        response.raise_for_status()
        stock_before = response.json()["quantity"]
        print(f"\n🥫 Ingredient {args.ingredient} stock before: {stock_before:g}")

        start = time.time()
        results = await asyncio.gather(
            *[send_order(client, args, n) for n in range(1, args.orders + 1)]
        )
        total_time = round(time.time() - start, 2)

        response = await client.get(f"{API_PREFIX}/ingredients/{args.ingredient}")
        response.raise_for_status()
        stock_after = response.json()["quantity"]

        accepted = [r for r in results if r["outcome"] == "accepted"]
        rejected = [r for r in results if r["outcome"] == "out_of_stock"]
        failed = [r for r in results if r["outcome"] == "error"]

        settled = 0
        if args.settle and accepted:
            outcomes = await asyncio.gather(*[settle_order(client, r["order_id"]) for r in accepted])
            settled = sum(1 for ok in outcomes if ok)

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"✅ Accepted: {len(accepted)}")
    print(f"🚫 Out of stock: {len(rejected)}")
    print(f"❌ Errors: {len(failed)}")
    print(f"⏱️  Total Time: {total_time}s")
    print(f"\n🥫 Ingredient {args.ingredient} stock after: {stock_after:g}")

    if args.settle:
        print(f"💳 Settled bills: {settled}/{len(accepted)}")

    if accepted:
        avg_time = round(sum(r["time"] for r in accepted) / len(accepted), 3)
        print(f"\n📈 Average accepted response: {avg_time}s")

    if failed:
        print("\n⚠️  Error details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    oversold = stock_after < 0
    print("\n" + "=" * 70)
    if oversold:
        print("❌ STOCK WENT NEGATIVE - ingredient oversold")
    else:
        print("✅ Stock never went negative")
    print("=" * 70)

    return {
        "accepted": len(accepted),
        "out_of_stock": len(rejected),
        "errors": len(failed),
        "stock_before": stock_before,
        "stock_after": stock_after,
        "oversold": oversold,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrent ordering simulation")
    parser.add_argument("--base-url", default=API_BASE_URL, help="Server base URL")
    parser.add_argument("--menu-item", type=int, required=True, help="Menu item to order")
    parser.add_argument("--ingredient", type=int, required=True, help="Ingredient to watch")
    parser.add_argument("--outlet", type=int, required=True, help="Outlet for the orders")
    parser.add_argument("--orders", type=int, default=50, help="Number of concurrent orders")
    parser.add_argument("--qty", type=float, default=1, help="Quantity per order")
    parser.add_argument("--unit-price", type=float, default=10.0, help="Captured unit price")
    parser.add_argument("--settle", action="store_true", help="Bill and pay every accepted order")
    args = parser.parse_args()

    summary = asyncio.run(run_simulation(args))
    sys.exit(1 if summary["oversold"] or summary["errors"] else 0)
