#!/usr/bin/env python3
"""
End-to-end smoke tests against a running order management service.

Run:
  python e2e_smoke.py

Optional env:
  ORDER_BASE=http://localhost:8000
  DEBUG=1
"""

from __future__ import annotations

import os
import sys
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import List

import requests


# =========================
# Simple CLI UI (ANSI)
# =========================

class Style:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"

    BOX_LINE = "─"
    BOX_VERT = "│"
    BOX_TL = "┌"
    BOX_TR = "┐"
    BOX_BL = "└"
    BOX_BR = "┘"


def boxed(text: str, color: str):
    line = Style.BOX_LINE * (len(text) + 2)
    print(f"\n{color}{Style.BOX_TL}{line}{Style.BOX_TR}{Style.RESET}")
    print(f"{color}{Style.BOX_VERT} {Style.BOLD}{text}{Style.RESET}{color} {Style.BOX_VERT}{Style.RESET}")
    print(f"{color}{Style.BOX_BL}{line}{Style.BOX_BR}{Style.RESET}")


def info(msg: str):
    print(f"{Style.CYAN}ℹ {msg}{Style.RESET}")


def ok(msg: str):
    print(f"{Style.GREEN}✔ {msg}{Style.RESET}")


def fail(msg: str):
    print(f"{Style.RED}✘ {msg}{Style.RESET}")


# =========================
# Config
# =========================

ORDER_BASE = os.getenv("ORDER_BASE", "http://localhost:8000")
DEBUG = os.getenv("DEBUG", "0").strip() in {"1", "true", "True", "YES", "yes"}

PRODUCTS_PATH = "/api/v1/products"
CUSTOMERS_PATH = "/api/v1/customers"
ORDERS_PATH = "/api/v1/orders"

INITIAL_QUANTITY = 10
UNIT_PRICE = "50.00"

# Codes are unique per run so the script can be re-run against the same database.
RUN_TAG = uuid.uuid4().hex[:6].upper()


def debug(msg: str):
    if DEBUG:
        print(f"{Style.GRAY}… {msg}{Style.RESET}")


# =========================
# Models
# =========================

@dataclass
class TestResult:
    name: str
    success: bool
    details: str = ""
    scenario: str = ""


# =========================
# HTTP helpers
# =========================

def http(method: str, path: str, **kwargs) -> requests.Response:
    kwargs.setdefault("timeout", 8)
    headers = kwargs.setdefault("headers", {})
    headers.setdefault("X-User-Id", "1")
    debug(f"{method} {path} json={kwargs.get('json')}")
    return requests.request(method, ORDER_BASE + path, **kwargs)


def wait_for_health(timeout: int = 30) -> bool:
    start = time.time()
    while time.time() - start < timeout:
        try:
            if http("GET", "/health").status_code == 200:
                ok("order management service is healthy.")
                return True
        except requests.RequestException as e:
            debug(f"service not ready: {e}")
        time.sleep(1)
    fail(f"service did not become healthy in {timeout} seconds.")
    return False


def assert_status(resp: requests.Response, expected: int, ctx: str):
    if resp.status_code != expected:
        raise AssertionError(f"{ctx}: expected HTTP {expected}, got {resp.status_code}, body={resp.text}")


# =========================
# API calls
# =========================

def seed(suffix: str) -> (int, int):
    product = http("POST", PRODUCTS_PATH, json={
        "product_code": f"E2E{RUN_TAG}{suffix}",
        "name": f"E2E Product {RUN_TAG}{suffix}",
        "unit_price": UNIT_PRICE,
        "stock_quantity": INITIAL_QUANTITY,
    })
    assert_status(product, 201, "POST product")
    customer = http("POST", CUSTOMERS_PATH, json={
        "customer_code": f"E2E{RUN_TAG}{suffix}",
        "name": f"E2E Customer {RUN_TAG}{suffix}",
    })
    assert_status(customer, 201, "POST customer")
    info(f"Seeded product {product.json()['id']} with stock {INITIAL_QUANTITY}")
    return product.json()["id"], customer.json()["id"]


def stock_of(product_id: int) -> int:
    resp = http("GET", f"{PRODUCTS_PATH}/{product_id}")
    assert_status(resp, 200, f"GET product {product_id}")
    return resp.json()["stock_quantity"]


def place_order(customer_id: int, product_id: int, quantity: int) -> requests.Response:
    return http("POST", ORDERS_PATH, json={
        "customer_id": customer_id,
        "shipping_address": "1 Harbour Road",
        "items": [{"product_id": product_id, "quantity": quantity, "unit_price": UNIT_PRICE}],
    })


def check(name: str, scenario: str, success: bool, msg: str) -> TestResult:
    (ok if success else fail)(msg)
    return TestResult(name, success, msg, scenario)


# =========================
# Scenarios
# =========================

def scenario_happy_path() -> List[TestResult]:
    scenario = "Scenario 1 - Order Takes Stock"
    boxed(scenario, Style.BLUE)
    results: List[TestResult] = []
    try:
        product_id, customer_id = seed("A")
        resp = place_order(customer_id, product_id, 3)
        assert_status(resp, 201, "POST order")
        order = resp.json()

        expected_total = Decimal(UNIT_PRICE) * 3
        results.append(check(
            "Order Amounts", scenario, Decimal(order["final_amount"]) == expected_total,
            f"Expected final amount {expected_total}, got {order['final_amount']}",
        ))
        results.append(check(
            "Order Pending", scenario, order["status"] == "PENDING",
            f"Order {order['order_number']} status={order['status']}",
        ))
        qty = stock_of(product_id)
        results.append(check(
            "Stock After Order", scenario, qty == INITIAL_QUANTITY - 3,
            f"Expected stock {INITIAL_QUANTITY - 3}, got {qty}",
        ))

        audit = http("GET", f"{PRODUCTS_PATH}/{product_id}/stock-audit").json()
        results.append(check("Ledger Consistent", scenario, audit["consistent"], f"Audit={audit}"))
    except Exception as e:
        results.append(check("Happy Path", scenario, False, f"Exception: {e}"))
    return results


def scenario_insufficient_stock() -> List[TestResult]:
    scenario = "Scenario 2 - Insufficient Stock"
    boxed(scenario, Style.BLUE)
    results: List[TestResult] = []
    try:
        product_id, customer_id = seed("B")
        resp = place_order(customer_id, product_id, INITIAL_QUANTITY + 5)
        results.append(check(
            "Order Rejected", scenario, resp.status_code == 400,
            f"Expected HTTP 400, got {resp.status_code}: {resp.text}",
        ))
        qty = stock_of(product_id)
        results.append(check(
            "Stock Unchanged", scenario, qty == INITIAL_QUANTITY,
            f"Expected stock to remain {INITIAL_QUANTITY}, got {qty}",
        ))
    except Exception as e:
        results.append(check("Insufficient Stock", scenario, False, f"Exception: {e}"))
    return results


def scenario_cancel_and_delete() -> List[TestResult]:
    scenario = "Scenario 3 - Cancel And Delete Restore Stock"
    boxed(scenario, Style.BLUE)
    results: List[TestResult] = []
    try:
        product_id, customer_id = seed("C")

        first = place_order(customer_id, product_id, 4)
        assert_status(first, 201, "POST order")
        order_id = first.json()["id"]
        assert_status(http("PATCH", f"{ORDERS_PATH}/{order_id}/status", json={"status": "CONFIRMED"}),
                      200, "confirm order")
        cancelled = http("POST", f"{ORDERS_PATH}/{order_id}/cancel")
        assert_status(cancelled, 200, "cancel order")
        qty = stock_of(product_id)
        results.append(check(
            "Stock After Cancel", scenario, qty == INITIAL_QUANTITY,
            f"Expected stock {INITIAL_QUANTITY} after cancel, got {qty}",
        ))

        second = place_order(customer_id, product_id, 2)
        assert_status(second, 201, "POST order")
        assert_status(http("DELETE", f"{ORDERS_PATH}/{second.json()['id']}"), 204, "delete order")
        qty = stock_of(product_id)
        results.append(check(
            "Stock After Delete", scenario, qty == INITIAL_QUANTITY,
            f"Expected stock {INITIAL_QUANTITY} after delete, got {qty}",
        ))

        shipped = http("PATCH", f"{ORDERS_PATH}/{order_id}/status", json={"status": "SHIPPED"})
        results.append(check(
            "Cancelled Order Is Final", scenario, shipped.status_code == 400,
            f"Expected HTTP 400 shipping a cancelled order, got {shipped.status_code}",
        ))
    except Exception as e:
        results.append(check("Cancel And Delete", scenario, False, f"Exception: {e}"))
    return results


# =========================
# Summary
# =========================

def print_results(results: List[TestResult]) -> int:
    print(f"\n{Style.BOLD}================ TEST RESULTS ================ {Style.RESET}")
    passed = 0
    for r in results:
        icon = "✅" if r.success else "❌"
        color = Style.GREEN if r.success else Style.RED
        print(f"{color}{icon} [{r.scenario}] {r.name}{Style.RESET}")
        if r.details:
            print(f"    {Style.DIM}{r.details}{Style.RESET}")
        if r.success:
            passed += 1

    failed = len(results) - passed
    print(f"{Style.BOLD}==============================================={Style.RESET}")
    print(f"Total tests: {len(results)}  |  Passed: {Style.GREEN}{passed}{Style.RESET}  |  Failed: {Style.RED}{failed}{Style.RESET}")
    return failed


def main():
    boxed(" Order Management E2E Smoke Tests ", Style.CYAN)
    if not wait_for_health():
        sys.exit(1)

    results: List[TestResult] = []
    results.extend(scenario_happy_path())
    results.extend(scenario_insufficient_stock())
    results.extend(scenario_cancel_and_delete())

    sys.exit(1 if print_results(results) else 0)


if __name__ == "__main__":
    main()
