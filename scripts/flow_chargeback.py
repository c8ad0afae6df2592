#!/usr/bin/env python3
"""
Chargeback flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_chargeback.py --transaction-id <UUID>
    python scripts/flow_chargeback.py --transaction-id <UUID> --arbitrate

Flow:
    1. Login as issuer, flag the transaction
    2. Initiate chargeback
    3. Login as acquirer, contest with representation
    4. Issuer second presentment
    5. (--arbitrate) Issuer requests arbitration, admin decides
       otherwise: issuer cancels the chargeback
"""

import argparse
import json
import sys

import httpx

BASE_URL = "http://localhost:8000"

ISSUER_EMAIL = "issuer@dms.local"
ACQUIRER_EMAIL = "acquirer@dms.local"
ADMIN_EMAIL = "admin@dms.local"
USER_PASSWORD = "Test@1234"
ADMIN_PASSWORD = "Admin@1234"


def login(email: str, password: str) -> str:
    """Login and return token."""
    response = httpx.post(
        f"{BASE_URL}/api/v1/auth/login",
        json={"email": email, "password": password},
        timeout=10.0,
    )
    if response.status_code != 200:
        print(f"ERROR: Login failed for {email}: {response.status_code}")
        print(response.text)
        sys.exit(1)
    return response.json()["access_token"]


def api_post(token: str, endpoint: str, data: dict | None = None) -> dict:
    response = httpx.post(
        f"{BASE_URL}{endpoint}",
        headers={"Authorization": f"Bearer {token}"},
        json=data or {},
        timeout=10.0,
    )
    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"STEP {step}: {title}")
    print("=" * 60)


def check(result: dict, fields: list[str] | None = None) -> dict:
    """Print a result and exit on an error status."""
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        sys.exit(1)
    data = result["data"]
    if fields:
        data = {k: data.get(k) for k in fields if k in data}
    print(f"Status: {result['status']}")
    print(json.dumps(data, indent=2))
    return result["data"]


def main() -> None:
    parser = argparse.ArgumentParser(description="Chargeback flow")
    parser.add_argument("--transaction-id", required=True, help="Transaction UUID")
    parser.add_argument("--amount", default="500.00", help="Contested amount")
    parser.add_argument("--arbitrate", action="store_true", help="Escalate to arbitration")
    args = parser.parse_args()

    print_step(1, "Issuer flags the transaction")
    issuer_token = login(ISSUER_EMAIL, USER_PASSWORD)
    litige = check(
        api_post(issuer_token, "/api/v1/litiges/flag", {
            "transaction_id": args.transaction_id,
            "type": "PAIEMENT_NON_RECONNU",
            "description": "Cardholder does not recognise the payment",
        }),
        ["id", "status"],
    )
    litige_id = litige["id"]

    print_step(2, "Initiate chargeback")
    check(
        api_post(issuer_token, "/api/v1/chargebacks/initiate", {
            "litige_id": litige_id,
            "reason": "Unrecognised payment",
            "contested_amount": args.amount,
            "evidence": ["cardholder_statement.pdf"],
        }),
        ["phase", "contested_amount", "deadline"],
    )

    print_step(3, "Acquirer contests")
    acquirer_token = login(ACQUIRER_EMAIL, USER_PASSWORD)
    check(
        api_post(acquirer_token, f"/api/v1/chargebacks/{litige_id}/representation", {
            "response_type": "CONTESTATION",
            "arguments": "Merchant holds a signed delivery receipt for this order.",
            "evidence": ["delivery_receipt.pdf"],
        }),
        ["phase", "representation_response", "deadline"],
    )

    print_step(4, "Issuer second presentment")
    check(
        api_post(issuer_token, f"/api/v1/chargebacks/{litige_id}/second-presentment", {
            "refutation": "The delivery address does not match the cardholder's.",
            "evidence": ["address_proof.pdf"],
        }),
        ["phase", "deadline"],
    )

    if args.arbitrate:
        print_step(5, "Issuer requests arbitration")
        arbitrage = check(
            api_post(issuer_token, f"/api/v1/chargebacks/{litige_id}/arbitrage", {
                "justification": "Both parties maintain their positions.",
            }),
            ["id", "cost", "status"],
        )

        print_step(6, "Admin decides")
        admin_token = login(ADMIN_EMAIL, ADMIN_PASSWORD)
        check(
            api_post(admin_token, f"/api/v1/chargebacks/arbitrages/{arbitrage['id']}/decision", {
                "decision": "FAVORABLE_EMETTEUR",
                "grounds": "Delivery evidence is inconclusive.",
                "fee_allocation": "ACQUEREUR",
            }),
            ["phase", "closed_at"],
        )
    else:
        print_step(5, "Issuer cancels the chargeback")
        check(
            api_post(issuer_token, f"/api/v1/chargebacks/{litige_id}/cancel", {
                "reason": "Cardholder withdrew the claim",
            }),
        )

    print("\n" + "=" * 60)
    print("CHARGEBACK FLOW COMPLETE")
    print("=" * 60)
    print(f"Litige: {litige_id}")


if __name__ == "__main__":
    main()
