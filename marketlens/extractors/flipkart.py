"""Flipkart search-result extraction.

Flipkart ships obfuscated, frequently rotated class names and A/B tests its
grid, so every lookup here is an ordered list of known signatures with a
plain-text fallback at the end.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple
from urllib.parse import urljoin

from loguru import logger
from playwright.sync_api import Error as PlaywrightError

from marketlens.config_loader import get_scraping_config
from marketlens.diagnostics import DiagnosticTrail
from marketlens.extractors.base import (
    ListingExtractor,
    attr_of,
    auto_scroll,
    first_resolved,
    register,
    text_of,
    text_tiers,
)
from marketlens.models import ExtractedListing
from marketlens.parsing import clean_text, parse_money, rewrite_host, scan_price_pair


PRODUCT_ANCHORS = "a[href*='/p/'], a[href*='/product/']"
GRID_FALLBACK = "div._1YokD2, div._2kHMtA, div.gUuXy-, div.y0S0Pe"
DISMISS_CONTROL = "button._2KpZ6l._2doB4z, button:has-text('✕')"
CARD_SIGNATURES = ["div._2kHMtA", "div._4ddWXP", "div._1AtVbE", "div.gUuXy-", "div.y0S0Pe"]
NAME_SELECTORS = ["div._4rR01T", "a.s1Q9rs", "div.KzDlHZ", "a.IRpwTa"]
PRICE_SELECTORS = ["div._30jeq3._1_WHN1", "div._30jeq3"]
MRP_SELECTORS = ["div._3I9_wc._27UcVY", "div._3I9_wc"]
MOBILE_HOST = "m.flipkart.com"

CLOSEST_CARD_JS = (
    "(el, signatures) => el.closest(signatures.join(', ')) || el.parentElement"
)


def _money_tiers(root: Any, selectors: List[str]):
    return [lambda sel=sel: parse_money(text_of(root, sel)) for sel in selectors]


@register
class FlipkartExtractor(ListingExtractor):
    platform = "flipkart"
    host_marker = "flipkart.com"
    base_url = "https://www.flipkart.com/"
    ready_selectors = (PRODUCT_ANCHORS, GRID_FALLBACK)
    detect_block_page = True
    has_mobile_site = True

    def __init__(self, config=None):
        super().__init__(config)
        scraping = get_scraping_config(self.config)
        self.price_floor = float(scraping.get("price_floor", 3000))
        self.tracking_params = list(scraping.get("tracking_params") or ["otracker"])

    def mobile_url(self, url: str) -> Optional[str]:
        return rewrite_host(url, MOBILE_HOST, self.tracking_params)

    def dismiss_overlays(self, page: Any, trail: DiagnosticTrail) -> None:
        try:
            button = page.query_selector(DISMISS_CONTROL)
            if button:
                button.click()
                trail.record("flipkart: closed dismiss")
        except PlaywrightError as e:
            trail.record("flipkart: dismiss failed", err=str(e))
        try:
            page.keyboard.press("Escape")
        except PlaywrightError as e:
            trail.record("flipkart: escape failed", err=str(e))

    def extract(
        self,
        page: Any,
        source_url: str,
        start_position: int,
        limit: int,
        trail: DiagnosticTrail,
        scroll_steps: int = 2,
        scroll_pause_ms: int = 150,
        timeout_ms: int = 9000,
    ) -> Tuple[List[ExtractedListing], int]:
        out: List[ExtractedListing] = []
        position = start_position
        if limit <= 0:
            return out, position

        self.dismiss_overlays(page, trail)
        page.wait_for_timeout(200)
        auto_scroll(page, scroll_steps, scroll_pause_ms)

        anchors = page.query_selector_all(PRODUCT_ANCHORS)
        trail.record("flipkart: anchors", n=len(anchors))

        seen = set()
        skipped = 0
        for anchor in anchors:
            try:
                href = anchor.get_attribute("href")
                if not href:
                    continue
                product_url = urljoin(self.base_url, href)
                if product_url in seen:
                    continue
                seen.add(product_url)

                listing = self._parse_card(anchor, product_url, source_url, position + 1)
            except Exception as e:
                skipped += 1
                trail.record("flipkart: anchor parse error", err=str(e))
                continue
            if listing is None:
                skipped += 1
                continue
            position = listing.list_position
            out.append(listing)
            if len(out) >= limit:
                break

        trail.record("flipkart: extracted", n=len(out), skipped=skipped)
        logger.info(f"flipkart: {len(out)} listings from {source_url}")
        return out, position

    def _card_for(self, anchor: Any) -> Any:
        handle = anchor.evaluate_handle(CLOSEST_CARD_JS, CARD_SIGNATURES)
        container = handle.as_element() if handle is not None else None
        return container or anchor

    def _parse_card(
        self, anchor: Any, product_url: str, source_url: str, position: int
    ) -> Optional[ExtractedListing]:
        card = self._card_for(anchor)

        name = first_resolved(
            text_tiers(card, NAME_SELECTORS)
            + [lambda: clean_text(attr_of(card, "img", "alt"))]
        )
        price = first_resolved(_money_tiers(card, PRICE_SELECTORS))
        mrp = first_resolved(_money_tiers(card, MRP_SELECTORS))

        if price is None or mrp is None:
            scanned_price, scanned_mrp = scan_price_pair(card.text_content(), self.price_floor)
            if price is None:
                price = scanned_price
            if mrp is None:
                mrp = scanned_mrp

        if not (name or price is not None):
            return None
        image_url = attr_of(card, "img", "src")
        return self.build_listing(position, source_url, product_url, name, price, mrp, image_url)
