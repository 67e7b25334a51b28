import os
import sys
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import argparse
import concurrent.futures
import json

import requests

BASE = os.environ.get("PIM_BASE", "http://127.0.0.1:8000")


def decrement_task(i, product_id, qty):
    payload = {"quantity": qty}
    try:
        r = requests.post(f"{BASE}/api/products/{product_id}/stock/decrement", json=payload, timeout=20)
        return (i, r.status_code, r.text)
    except Exception as e:
        return (i, "ERR", str(e))


def stock_of(product_id):
    r = requests.get(f"{BASE}/api/products/{product_id}", timeout=10)
    r.raise_for_status()
    return r.json()["stock_quantity"]


def components_of(product_id):
    r = requests.get(f"{BASE}/api/products/{product_id}/bundle-components", timeout=10)
    r.raise_for_status()
    return [c["component_id"] for c in r.json()]


def run_decrement_concurrent(workers, product_id, qty):
    """
    Fire `workers` decrements at once and compare the number of successes
    with what the starting stock allowed. Stock must never go negative.
    """
    watched = components_of(product_id) or [product_id]
    before = {pid: stock_of(pid) for pid in watched}
    print(f"Running decrement test: workers={workers}, product={product_id}, qty={qty}")
    print("Stock before:", before)

    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(decrement_task, i, product_id, qty) for i in range(workers)]
        results = [f.result() for f in futures]

    successes = 0
    for i, status, body in results:
        ok = status == 200 and json.loads(body).get("success")
        successes += 1 if ok else 0
        print((i, status, body[:160]))

    after = {pid: stock_of(pid) for pid in watched}
    print("Stock after:", after)
    print("Successful decrements:", successes)
    negative = [pid for pid, stock in after.items() if stock < 0]
    if negative:
        print("NEGATIVE STOCK:", negative)
        sys.exit(1)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrent stock decrement tool.")
    parser.add_argument("--product", type=int, required=True, help="product (or bundle) id")
    parser.add_argument("--qty", type=int, default=1)
    parser.add_argument("--workers", type=int, default=8)
    args = parser.parse_args()

    run_decrement_concurrent(args.workers, args.product, args.qty)
