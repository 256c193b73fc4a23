from __future__ import annotations

import os
import time

import requests
from rich import print

from payrelay.auth.tokens import issue_access_token
from payrelay.db import SessionLocal
from scripts.seed import get_or_create_profile

BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")
WEBHOOK_URL = os.getenv("DEMO_WEBHOOK_URL", "https://httpbin.org/post")

# set to a real sandbox payment id to exercise the full reconcile path
PAYMENT_ID = os.getenv("DEMO_PAYMENT_ID")

def post(path: str, *, jwt: str | None = None, json: dict | None = None) -> requests.Response:
    headers = {"content-type": "application/json"}
    if jwt:
        headers["authorization"] = f"bearer {jwt}"
    return requests.post(f"{BASE}{path}", headers=headers, json=json, timeout=30)

def put(path: str, *, jwt: str, json: dict) -> requests.Response:
    headers = {"content-type": "application/json", "authorization": f"bearer {jwt}"}
    return requests.put(f"{BASE}{path}", headers=headers, json=json, timeout=10)

def get(path: str, *, jwt: str | None = None) -> requests.Response:
    headers = {}
    if jwt:
        headers["authorization"] = f"bearer {jwt}"
    return requests.get(f"{BASE}{path}", headers=headers, timeout=10)

def login(email: str) -> str:
    with SessionLocal() as db:
        profile = get_or_create_profile(db, email, "Demo User")
        db.commit()
        return issue_access_token(profile.id)

def wait_ready(timeout_s: float = 30.0) -> None:
    deadline = time.time() + timeout_s
    last_err: Exception | None = None

    while time.time() < deadline:
        try:
            r = get("/ready")
            if r.status_code == 200:
                return
        except requests.RequestException as e:
            last_err = e
        time.sleep(0.5)

    if last_err:
        raise RuntimeError(f"api not ready after {timeout_s}s (last error: {last_err})")
    raise RuntimeError(f"api not ready after {timeout_s}s")

def main() -> None:
    print("[bold]demo: profile -> webhook settings -> manual test -> notifications -> logs[/bold]")

    wait_ready()
    print("[green]ready ok[/green]")
    print("health:", get("/health").json())

    jwt = login("demo@example.com")
    print("profile authed")

    r = put("/webhooks/settings", jwt=jwt, json={"webhook_url": WEBHOOK_URL, "is_active": True})
    r.raise_for_status()
    print("saved webhook:", r.json()["webhook_url"])

    r = post("/webhooks/test", jwt=jwt, json={"webhook_url": WEBHOOK_URL})
    r.raise_for_status()
    result = r.json()
    colour = "green" if result["success"] else "red"
    print(f"[{colour}]manual test: status={result['status']} {result['message']}[/{colour}]")

    # processors send other topics too; these are acknowledged and ignored
    r = post("/webhooks/payment", json={"type": "merchant_order", "data": {"id": "1"}})
    print("non-payment notification:", r.status_code, r.json())

    if PAYMENT_ID:
        r = post("/webhooks/payment", json={"type": "payment", "data": {"id": PAYMENT_ID}})
        print("payment notification:", r.status_code, r.json())
        print("premium:", get("/me", jwt=jwt).json()["is_premium"])

    r = get("/webhooks/logs", jwt=jwt)
    r.raise_for_status()
    for row in r.json():
        print(f"  {row['created_at']} {row['source']:<12} {row['event_type']:<16} ok={row['success']} status={row['response_status']}")
    print("[bold green]demo complete[/bold green]")

if __name__ == "__main__":
    main()
