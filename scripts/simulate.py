"""
Concurrent Counter Simulation

Fires many POS sales against one cash session at the same time, then checks
that the session's total_sales grew by exactly the sum of the settled
sales. Optionally mixes in web orders.

Run from project root against a running server:
    python scripts/simulate.py --sales 50 --session 1
"""

import argparse
import asyncio
import random
import time
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx

API_BASE_URL = "http://localhost:8001"
TOTAL_SALES = 50

PAYMENT_METHODS = ["Efectivo", "Efectivo", "Yape", "Plin", "Tarjeta"]
FIRST_NAMES = ["Rosa", "Luis", "Carmen", "Jorge", "Milagros", "Percy", "Katy", "Walter"]
STREETS = ["Av. Angamos", "Jr. Dante", "Av. Paseo de la República", "Calle Los Pinos"]


async def load_menu(client: httpx.AsyncClient) -> list[dict[str, Any]]:
    response = await client.get(f"{API_BASE_URL}/api/menu")
    response.raise_for_status()
    return response.json()


async def fill_cart(client: httpx.AsyncClient, base: str, menu: list[dict[str, Any]]) -> None:
    """Add 1-4 random picks, choosing a variant wherever the item has them."""
    for _ in range(random.randint(1, 4)):
        item = random.choice(menu)
        variant = random.choice(item["variants"])["id"] if item["variants"] else None
        response = await client.post(
            f"{base}/items",
            json={"item_id": item["id"], "variant_id": variant},
        )
        response.raise_for_status()


# =============================================================================
# POS SALES
# =============================================================================

async def run_pos_sale(
    client: httpx.AsyncClient,
    sale_num: int,
    session_id: int,
    menu: list[dict[str, Any]],
) -> dict[str, Any]:
    start_time = time.time()
    try:
        response = await client.post(
            f"{API_BASE_URL}/api/pos/terminals",
            json={"cash_session_id": session_id},
        )
        response.raise_for_status()
        base = f"{API_BASE_URL}/api/pos/terminals/{response.json()['handle']}"

        await fill_cart(client, base, menu)

        method = random.choice(PAYMENT_METHODS)
        received = random.choice(["", "100"]) if method == "Efectivo" else ""
        response = await client.post(
            f"{base}/checkout",
            json={"payment_method": method, "received_amount": received},
            timeout=30.0,
        )
        elapsed = round(time.time() - start_time, 3)
        data = response.json()
        await client.post(f"{base}/close")

        if response.status_code == 201 and data.get("success"):
            return {
                "num": sale_num,
                "success": True,
                "order_id": data["order"]["id"],
                "total": Decimal(data["order"]["total"]),
                "time": elapsed,
                "mode": "pos",
            }
        return {
            "num": sale_num,
            "success": False,
            "error": data.get("error") or response.text[:100],
            # A session_update_failed sale was persisted but never counted
            "total": Decimal("0"),
            "time": elapsed,
            "mode": "pos",
        }
    except httpx.HTTPError as e:
        return {
            "num": sale_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
            "mode": "pos",
        }


# =============================================================================
# WEB ORDERS
# =============================================================================

async def run_web_order(
    client: httpx.AsyncClient,
    order_num: int,
    menu: list[dict[str, Any]],
) -> dict[str, Any]:
    start_time = time.time()
    try:
        response = await client.post(f"{API_BASE_URL}/api/web/carts")
        response.raise_for_status()
        base = f"{API_BASE_URL}/api/web/carts/{response.json()['handle']}"

        await fill_cart(client, base, menu)

        delivery = random.random() < 0.5
        response = await client.post(
            f"{base}/checkout",
            json={
                "customer_name": random.choice(FIRST_NAMES),
                "customer_phone": f"9{random.randint(10000000, 99999999)}",
                "modality": "delivery" if delivery else "pickup",
                "address": f"{random.choice(STREETS)} {random.randint(100, 2999)}" if delivery else None,
            },
            timeout=30.0,
        )
        data = response.json()
        return {
            "num": order_num,
            "success": response.status_code == 201 and data.get("persisted", False),
            "error": data.get("error"),
            "time": round(time.time() - start_time, 3),
            "mode": "web",
        }
    except httpx.HTTPError as e:
        return {
            "num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
            "mode": "web",
        }


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def get_session_total(client: httpx.AsyncClient, session_id: int) -> Decimal:
    response = await client.get(f"{API_BASE_URL}/api/cash-sessions/{session_id}")
    response.raise_for_status()
    return Decimal(response.json()["total_sales"])


async def run_simulation(num_sales: int, session_id: int, web_orders: int = 0) -> bool:
    print("=" * 70)
    print("🔥 CONCURRENT COUNTER SIMULATION")
    print("=" * 70)
    print(f"📋 POS sales: {num_sales}  |  Web orders: {web_orders}")
    print(f"🎯 Target: {API_BASE_URL}  |  Cash session: #{session_id}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient(timeout=30.0) as client:
        menu = await load_menu(client)
        before = await get_session_total(client, session_id)

        start_time = time.time()
        tasks = [run_pos_sale(client, i + 1, session_id, menu) for i in range(num_sales)]
        tasks += [run_web_order(client, i + 1, menu) for i in range(web_orders)]
        results = await asyncio.gather(*tasks)
        total_time = round(time.time() - start_time, 2)

        after = await get_session_total(client, session_id)

    pos = [r for r in results if r["mode"] == "pos"]
    web = [r for r in results if r["mode"] == "web"]
    settled = sum((r.get("total", Decimal("0")) for r in pos if r["success"]), Decimal("0"))

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ POS sales settled: {len([r for r in pos if r['success']])}/{len(pos)}")
    if web:
        print(f"🌐 Web orders persisted: {len([r for r in web if r['success']])}/{len(web)}")
    print(f"⏱️  Total Time: {total_time}s")

    failed = [r for r in results if not r["success"]]
    if failed:
        print("\n⚠️  Failed (first 5):")
        for f in failed[:5]:
            print(f"   #{f['num']} [{f['mode']}]: {f.get('error', 'Unknown error')}")

    expected = before + settled
    print("\n💰 CASH SESSION")
    print(f"   Before:   S/ {before:.2f}")
    print(f"   Settled:  S/ {settled:.2f}")
    print(f"   After:    S/ {after:.2f}")

    if after == expected:
        print("   ✅ No lost updates")
    else:
        print(f"   ❌ Expected S/ {expected:.2f}, off by S/ {after - expected:.2f}")
        print("      (another terminal selling on the same session also shows up here)")

    print("\n" + "=" * 70)
    print("Next: python scripts/verify.py  (after the Celery worker drains)")
    print("=" * 70)
    return after == expected


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrent Counter Simulation")
    parser.add_argument("--sales", type=int, default=TOTAL_SALES, help="Number of POS sales")
    parser.add_argument("--session", type=int, default=1, help="Cash session id")
    parser.add_argument("--web", type=int, default=0, help="Number of web orders to mix in")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")
    ok = asyncio.run(run_simulation(args.sales, args.session, args.web))
    raise SystemExit(0 if ok else 1)
