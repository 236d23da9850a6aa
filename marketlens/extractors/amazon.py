"""Amazon search-result extraction."""

from __future__ import annotations

from typing import Any, List, Optional, Tuple
from urllib.parse import urljoin

from loguru import logger
from playwright.sync_api import Error as PlaywrightError

from marketlens.diagnostics import DiagnosticTrail
from marketlens.extractors.base import (
    ListingExtractor,
    attr_of,
    first_resolved,
    register,
    text_of,
    text_tiers,
)
from marketlens.models import ExtractedListing
from marketlens.parsing import clean_text, origin_of, parse_money


RESULTS_CONTAINER = "div.s-main-slot"
RESULT_CARD = "div.s-main-slot div.s-result-item[data-component-type='s-search-result']"
TITLE_SELECTORS = ["h2 a span.a-size-medium", "h2 a span", "h2"]
LINK_SELECTOR = "h2 a"
IMAGE_SELECTOR = "img.s-image"
# Current price lives in an a-price node that is not the struck-through one.
PRICE_SELECTOR = "span.a-price:not(.a-text-price) span.a-offscreen"
MRP_SELECTOR = "span.a-text-price span.a-offscreen"


@register
class AmazonExtractor(ListingExtractor):
    platform = "amazon"
    host_marker = "amazon."
    base_url = "https://www.amazon.in/"
    ready_selectors = (RESULTS_CONTAINER,)
    detect_block_page = False

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

        try:
            page.wait_for_selector(RESULTS_CONTAINER, timeout=timeout_ms)
        except PlaywrightError:
            trail.record("amazon: s-main-slot not found")
            return out, position

        cards = page.query_selector_all(RESULT_CARD)
        trail.record("amazon: cards", n=len(cards))
        base = origin_of(source_url) if source_url else self.base_url

        skipped = 0
        for card in cards:
            try:
                listing = self._parse_card(card, base, source_url, position + 1)
            except Exception as e:
                skipped += 1
                trail.record("amazon: card parse error", err=str(e))
                continue
            if listing is None:
                skipped += 1
                continue
            position = listing.list_position
            out.append(listing)
            if len(out) >= limit:
                break

        trail.record("amazon: extracted", n=len(out), skipped=skipped)
        logger.info(f"amazon: {len(out)} listings from {source_url}")
        return out, position

    def _parse_card(self, card: Any, base: str, source_url: str, position: int) -> Optional[ExtractedListing]:
        name = first_resolved(text_tiers(card, TITLE_SELECTORS))
        href = attr_of(card, LINK_SELECTOR, "href")
        if not name:
            name = clean_text(attr_of(card, LINK_SELECTOR, "aria-label"))

        product_url = self._product_url(card, base, href)
        image_url = attr_of(card, IMAGE_SELECTOR, "src")
        price = parse_money(text_of(card, PRICE_SELECTOR))
        mrp = parse_money(text_of(card, MRP_SELECTOR))

        if not (name or price or product_url):
            return None
        return self.build_listing(position, source_url, product_url, name, price, mrp, image_url)

    @staticmethod
    def _product_url(card: Any, base: str, href: Optional[str]) -> Optional[str]:
        if href:
            return urljoin(base, href)
        asin = card.get_attribute("data-asin")
        if asin:
            return urljoin(base, f"/dp/{asin}")
        return None
