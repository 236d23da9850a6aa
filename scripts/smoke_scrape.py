#!/usr/bin/env python3
"""Smoke check for a running /scrape endpoint and its response contract."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode, urljoin
from urllib.request import Request, urlopen


DEFAULT_CAPS = {"amazon": 12, "flipkart": 12}
MOBILE_CAP = 10


@dataclass
class FetchResult:
    url: str
    status: Optional[int]
    body: bytes
    error: Optional[str]


def _fetch(url: str, timeout: float) -> FetchResult:
    req = Request(url, headers={"User-Agent": "marketlens-smoke/1.0"})
    try:
        with urlopen(req, timeout=timeout) as resp:  # nosec: B310 (controlled URL from args)
            return FetchResult(url=url, status=int(resp.status), body=resp.read(), error=None)
    except HTTPError as exc:
        return FetchResult(url=url, status=int(exc.code), body=exc.read(), error=str(exc))
    except URLError as exc:
        return FetchResult(url=url, status=None, body=b"", error=str(exc))


def check_document(document: Dict, caps: Optional[Dict[str, int]] = None) -> List[str]:
    """Return contract violations found in a successful /scrape document."""
    caps = caps or DEFAULT_CAPS
    errors: List[str] = []

    for key in ["ok", "count", "rows", "captcha"]:
        if key not in document:
            errors.append(f"missing field: {key}")
    rows = document.get("rows") or []
    if document.get("count") != len(rows):
        errors.append(f"count={document.get('count')} but {len(rows)} rows")

    seen = set()
    last_position: Dict[str, int] = {}
    per_platform: Dict[str, int] = {}
    for row in rows:
        platform = row.get("platform")
        key = (platform, row.get("product_url"))
        if key in seen:
            errors.append(f"duplicate identity key: {key}")
        seen.add(key)

        position = int(row.get("list_position") or 0)
        if position <= last_position.get(platform, 0):
            errors.append(f"{platform}: list_position {position} not increasing")
        last_position[platform] = position
        per_platform[platform] = per_platform.get(platform, 0) + 1

        price, mrp, discount = row.get("price"), row.get("mrp"), row.get("discount_percent")
        if discount is not None and (price is None or mrp is None or price > mrp):
            errors.append(f"{platform}: discount_percent without a valid price/mrp pair")

    for platform, count in per_platform.items():
        cap = caps.get(platform, DEFAULT_CAPS.get(platform, 12))
        if count > max(cap, MOBILE_CAP):
            errors.append(f"{platform}: {count} rows exceeds cap {cap}")

    return errors


def run_smoke(base_url: str, amazon_url: Optional[str], flipkart_url: Optional[str], timeout: float) -> int:
    params = {k: v for k, v in {"amazon_url": amazon_url, "flipkart_url": flipkart_url, "debug": "1"}.items() if v}
    url = urljoin(base_url.rstrip("/") + "/", "scrape") + "?" + urlencode(params)
    result = _fetch(url, timeout=timeout)
    label = str(result.status) if result.status is not None else "ERROR"
    print(f"/scrape -> {label}")

    if result.status != 200:
        print("\nSMOKE FAILED")
        print(f"- {result.error or 'unexpected status'}")
        return 1

    try:
        document = json.loads(result.body.decode("utf-8"))
    except ValueError as exc:
        print("\nSMOKE FAILED")
        print(f"- invalid JSON ({exc})")
        return 1

    errors = check_document(document)
    print(f"count={document.get('count')} captcha={document.get('captcha')}")
    if errors:
        print("\nSMOKE FAILED")
        for err in errors:
            print(f"- {err}")
        return 1

    print("\nSMOKE OK")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Smoke check for the MarketLens /scrape endpoint.")
    parser.add_argument("--base-url", default="http://127.0.0.1:8000", help="API base URL")
    parser.add_argument("--amazon-url", default=None, help="Amazon search URL to request")
    parser.add_argument("--flipkart-url", default=None, help="Flipkart search URL to request")
    parser.add_argument("--timeout", type=float, default=45.0, help="HTTP timeout seconds")
    args = parser.parse_args()
    if not args.amazon_url and not args.flipkart_url:
        parser.error("pass --amazon-url and/or --flipkart-url")
    return run_smoke(args.base_url, args.amazon_url, args.flipkart_url, args.timeout)


if __name__ == "__main__":
    sys.exit(main())
