#!/usr/bin/env python3
"""
Drive one loan through its whole lifecycle against a running API.

Steps: create -> approve -> invest (two tranches) -> agreement -> disburse,
then confirm a late investment is rejected. Exits non-zero on the first
unexpected response.

Requires the ``scripts`` extra (``pip install -e ".[scripts]"``), which provides httpx.

Usage:
    python scripts/loan_lifecycle_smoke.py --base-url http://localhost:8000
"""

from __future__ import annotations

import argparse
import sys
from typing import Any

import httpx


def _call(client: httpx.Client, method: str, path: str, expected: int, body: dict | None = None) -> Any:
    response = client.request(method, path, json=body)
    payload = response.json()
    if response.status_code != expected:
        print(
            f"{method} {path} -> {response.status_code} (expected {expected}): {payload.get('message')}",
            file=sys.stderr,
        )
        raise SystemExit(1)
    print(f"{method} {path} -> {response.status_code}")
    return payload.get("data")


def run(base_url: str, principal: int) -> None:
    half = principal // 2
    with httpx.Client(base_url=f"{base_url.rstrip('/')}/api/v1", timeout=10.0) as client:
        loan = _call(
            client,
            "POST",
            "/loans",
            201,
            {"borrower_id": "B001", "principal_amount": principal, "rate": 10, "roi": 15},
        )
        loan_id = loan["id"]
        _call(
            client,
            "POST",
            f"/loans/{loan_id}/approve",
            200,
            {"validator_id": "VALID-001", "proof_url": "https://storage.example.com/proof/visit123.jpeg"},
        )
        _call(
            client,
            "POST",
            f"/loans/{loan_id}/agreement",
            200,
            {"letter_url": f"https://storage.example.com/agreements/{loan_id}.pdf"},
        )
        for investor_id, amount in (("INV-001", half), ("INV-002", principal - half)):
            loan = _call(
                client,
                "POST",
                f"/loans/{loan_id}/invest",
                200,
                {"investor_id": investor_id, "email": f"{investor_id.lower()}@example.com", "amount": amount},
            )
        if loan["state"] != "INVESTED":
            print(f"expected INVESTED after full funding, got {loan['state']}", file=sys.stderr)
            raise SystemExit(1)
        _call(
            client,
            "POST",
            f"/loans/{loan_id}/disburse",
            200,
            {
                "field_officer_id": "FO-001",
                "signed_agreement_url": "https://storage.example.com/agreements/signed.pdf",
            },
        )
        _call(
            client,
            "POST",
            f"/loans/{loan_id}/invest",
            400,
            {"investor_id": "INV-003", "email": "late@example.com", "amount": 1},
        )
    print(f"Loan {loan_id} completed its lifecycle")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--principal", type=int, default=5_000_000)
    args = parser.parse_args()
    run(args.base_url, args.principal)


if __name__ == "__main__":
    main()
