"""
Order Rush Simulation Script

Registers a crowd of diners and fires their orders concurrently at a
running JWT Pizza Service to check that the connection pool, sessions
and the factory hand-off hold up under load.

Run from project root (service started separately):
    python scripts/simulate.py --diners 20 --orders 50
"""

import argparse
import asyncio
import random
import sys
import time
import uuid
from datetime import datetime
from typing import Any, Optional

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:3000"
TOTAL_ORDERS = 50
TOTAL_DINERS = 10

ADMIN_EMAIL = "a@jwt.com"
ADMIN_PASSWORD = "admin"

FIRST_NAMES = ["John", "Jane", "Mike", "Sarah", "Tom", "Emma", "David", "Lisa", "Chris", "Amy"]
MENU = [
    {"title": "Veggie", "description": "A garden of delight", "image": "pizza1.png", "price": 0.0038},
    {"title": "Pepperoni", "description": "Spicy treat", "image": "pizza2.png", "price": 0.0042},
    {"title": "Margarita", "description": "Essential classic", "image": "pizza3.png", "price": 0.0042},
    {"title": "Crusty", "description": "A dry mouthed favorite", "image": "pizza4.png", "price": 0.0028},
]


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# SETUP
# =============================================================================

async def admin_login(client: httpx.AsyncClient) -> str:
    response = await client.put(
        "/api/auth",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    )
    response.raise_for_status()
    return response.json()["token"]


async def ensure_menu(client: httpx.AsyncClient, admin_token: str) -> list[dict[str, Any]]:
    """Return the menu, seeding it first when it is empty."""
    menu = (await client.get("/api/order/menu")).json()
    if menu:
        return menu
    for item in MENU:
        response = await client.put("/api/order/menu", json=item, headers=auth_header(admin_token))
        response.raise_for_status()
        menu = response.json()
    return menu


async def ensure_store(client: httpx.AsyncClient, admin_token: str) -> tuple[int, int]:
    """(franchise id, store id) of a franchise dedicated to the simulation."""
    name = f"rush-{uuid.uuid4().hex[:8]}"
    response = await client.post(
        "/api/franchise",
        json={"name": name, "admins": [{"email": ADMIN_EMAIL}]},
        headers=auth_header(admin_token),
    )
    response.raise_for_status()
    franchise_id = response.json()["id"]

    response = await client.post(
        f"/api/franchise/{franchise_id}/store",
        json={"name": f"{name} SLC"},
        headers=auth_header(admin_token),
    )
    response.raise_for_status()
    return franchise_id, response.json()["id"]


async def register_diner(client: httpx.AsyncClient, index: int) -> Optional[str]:
    suffix = uuid.uuid4().hex[:8]
    response = await client.post(
        "/api/auth",
        json={
            "name": f"{random.choice(FIRST_NAMES)} {index}",
            "email": f"diner-{suffix}@jwt.com",
            "password": "diner",
        },
    )
    if response.status_code != 200:
        print(f"   ❌ Diner {index} registration failed: {response.text[:100]}")
        return None
    return response.json()["token"]


# =============================================================================
# ORDERS
# =============================================================================

def generate_order(menu: list[dict[str, Any]], franchise_id: int, store_id: int) -> dict[str, Any]:
    items = [random.choice(menu) for _ in range(random.randint(1, 4))]
    return {
        "franchiseId": franchise_id,
        "storeId": store_id,
        "items": [
            {"menuId": item["id"], "description": item["title"], "price": item["price"]}
            for item in items
        ],
    }


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    token: str,
    payload: dict[str, Any],
) -> dict[str, Any]:
    start_time = time.perf_counter()
    try:
        response = await client.post("/api/order", json=payload, headers=auth_header(token))
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.perf_counter() - start_time, 3),
        }

    elapsed = round(time.perf_counter() - start_time, 3)
    data = response.json()
    if response.status_code == 200:
        return {
            "order_num": order_num,
            "success": True,
            "order_id": data["order"]["id"],
            "total": sum(item["price"] for item in data["order"]["items"]),
            "time": elapsed,
        }
    return {
        "order_num": order_num,
        "success": False,
        "error": data.get("message", response.text[:100]),
        "report": data.get("followLinkToEndChaos"),
        "time": elapsed,
    }


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    base_url: str = API_BASE_URL,
    num_diners: int = TOTAL_DINERS,
    num_orders: int = TOTAL_ORDERS,
) -> dict[str, Any]:
    print("=" * 70)
    print("🍕 ORDER RUSH SIMULATION")
    print("=" * 70)
    print(f"📋 Diners: {num_diners}  Orders: {num_orders}")
    print(f"🎯 Target: {base_url}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient(base_url=base_url, timeout=30.0) as client:
        health = (await client.get("/health")).json()
        print(f"\n🩺 Health: {health.get('status')} (db={health.get('database')})")

        admin_token = await admin_login(client)
        menu = await ensure_menu(client, admin_token)
        franchise_id, store_id = await ensure_store(client, admin_token)
        print(f"🏪 Franchise #{franchise_id}, store #{store_id}, {len(menu)} menu items")

        tokens = await asyncio.gather(*(register_diner(client, i + 1) for i in range(num_diners)))
        tokens = [t for t in tokens if t]
        if not tokens:
            print("\n❌ No diner could register. Aborting.")
            return {"total": num_orders, "successful": 0, "failed": num_orders}

        print(f"\n🚀 Firing {num_orders} orders from {len(tokens)} diners...\n")
        start_time = time.perf_counter()
        results = await asyncio.gather(*(
            send_order(
                client,
                i + 1,
                tokens[i % len(tokens)],
                generate_order(menu, franchise_id, store_id),
            )
            for i in range(num_orders)
        ))
        total_time = round(time.perf_counter() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   💰 Total Revenue: ₿{sum(r['total'] for r in successful):.4f}")

    if failed:
        print(f"\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            report = f" report={f['report']}" if f.get("report") else ""
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}{report}")

    print("=" * 70)
    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order Rush Simulation Script")
    parser.add_argument("--url", default=API_BASE_URL, help="Service base URL")
    parser.add_argument("--diners", type=int, default=TOTAL_DINERS, help="Number of diners")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    args = parser.parse_args()

    summary = asyncio.run(run_simulation(args.url, args.diners, args.orders))
    sys.exit(0 if summary["failed"] == 0 else 1)
