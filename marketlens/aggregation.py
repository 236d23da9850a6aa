"""Merge, deduplicate and package listings into the response document."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from marketlens.models import ExtractedListing, ScrapeResult


def dedupe_listings(chunks: Iterable[Sequence[ExtractedListing]]) -> List[ExtractedListing]:
    """Concatenate chunks in order and keep the first row per (platform, product_url)."""
    seen = set()
    rows: List[ExtractedListing] = []
    for chunk in chunks:
        for row in chunk:
            key = row.identity
            if key in seen:
                continue
            seen.add(key)
            rows.append(row)
    return rows


def assemble_result(
    chunks: Iterable[Sequence[ExtractedListing]],
    blocked: Dict[str, bool],
    trail_lines: Optional[List[str]] = None,
    screenshot_b64: Optional[str] = None,
) -> ScrapeResult:
    return ScrapeResult(
        rows=dedupe_listings(chunks),
        blocked=dict(blocked),
        debug=trail_lines,
        screenshot=screenshot_b64,
    )


def result_to_document(result: ScrapeResult) -> Dict[str, Any]:
    """JSON-ready response body for a completed scrape."""
    document: Dict[str, Any] = {
        "ok": True,
        "count": result.count,
        "rows": [row.to_dict() for row in result.rows],
        "captcha": dict(result.blocked),
    }
    if result.debug is not None:
        document["debug"] = result.debug
    if result.screenshot:
        document["debug_screenshot"] = f"data:image/jpeg;base64,{result.screenshot}"
    return document


def error_document(message: str, debug: Optional[List[str]] = None) -> Dict[str, Any]:
    document: Dict[str, Any] = {"ok": False, "error": message}
    if debug is not None:
        document["debug"] = debug
    return document
