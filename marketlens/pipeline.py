"""Time-budgeted scrape orchestration for one request."""

from __future__ import annotations

import base64
import random
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger
from playwright.sync_api import Error as PlaywrightError, Page

from marketlens.aggregation import assemble_result
from marketlens.browser import DESKTOP, BrowserHarness
from marketlens.config_loader import get_browser_config, get_device_profile, get_scraping_config
from marketlens.deadline import Deadline
from marketlens.diagnostics import DiagnosticTrail
from marketlens.extractors import ListingExtractor, get_extractor, known_platforms
from marketlens.extractors.base import auto_scroll
from marketlens.mobile import run_mobile_fallback, should_try_mobile
from marketlens.models import ExtractedListing, ScrapeRequest, ScrapeResult
from marketlens.navigation import navigate_tiered, navigation_options
from marketlens.parsing import normalize_url, with_page_param


class InvalidRequestError(ValueError):
    """Raised when no requested URL resolves to a supported marketplace."""

    def __init__(self, message: str, debug: Optional[List[str]] = None):
        super().__init__(message)
        self.debug = debug


def resolve_target(raw_url: Optional[str], platform: str, config: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """Normalize ``raw_url``; foreign or unparseable URLs resolve to None."""
    url = normalize_url(raw_url)
    if url and get_extractor(platform, config).accepts_url(url):
        return url
    return None


def build_request(
    amazon_url: Optional[str] = None,
    flipkart_url: Optional[str] = None,
    debug: bool = False,
    debug_screenshot: bool = False,
    config: Optional[Dict[str, Any]] = None,
    trail: Optional[DiagnosticTrail] = None,
) -> ScrapeRequest:
    config = config or {}
    scraping = get_scraping_config(config)
    raw = {"amazon": amazon_url, "flipkart": flipkart_url}
    targets = {}
    for platform, value in raw.items():
        resolved = resolve_target(value, platform, config)
        if resolved:
            targets[platform] = resolved

    if trail is not None:
        trail.record("params", targets=targets, raw=raw)
    if not targets:
        raise InvalidRequestError(
            "Provide a valid Amazon and/or Flipkart listing URL (https://…)",
            debug=trail.dump() if trail is not None else None,
        )

    return ScrapeRequest(
        targets=targets,
        per_site_limit=int(scraping.get("per_site_limit", 12)),
        max_pages=int(scraping.get("max_pages", 1)),
        debug=debug,
        debug_screenshot=debug_screenshot,
    )


class ScrapePipeline:
    """Runs every requested platform through one shared desktop session."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        harness_factory: Callable[[Dict[str, Any]], Any] = BrowserHarness,
        navigate_fn: Callable = navigate_tiered,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or {}
        self.scraping = get_scraping_config(self.config)
        self.harness_factory = harness_factory
        self.navigate_fn = navigate_fn
        self.clock = clock
        self.stage_min_ms = int(self.scraping.get("stage_min_ms", 1500))
        self.desktop = get_device_profile(self.config, DESKTOP)
        self.screenshot_quality = int(get_browser_config(self.config).get("screenshot_quality", 40))
        self._screenshot: Optional[str] = None

    def platform_order(self, request: ScrapeRequest) -> List[str]:
        order = list(self.scraping.get("platform_order") or ["flipkart", "amazon"])
        order += [p for p in request.targets if p not in order]
        return [p for p in order if request.url_for(p)]

    def run(self, request: ScrapeRequest, trail: Optional[DiagnosticTrail] = None) -> ScrapeResult:
        trail = trail or DiagnosticTrail(request.debug)
        deadline = Deadline(int(self.scraping.get("hard_limit_ms", 15000)), clock=self.clock)
        blocked = {platform: False for platform in known_platforms()}
        chunks: List[List[ExtractedListing]] = []
        self._screenshot = None

        with self.harness_factory(self.config) as harness:
            with harness.rendering_session(DESKTOP) as page:
                for platform in self.platform_order(request):
                    if not deadline.allows(self.stage_min_ms):
                        trail.record(f"{platform}: skipped due to deadline", remaining_ms=deadline.remaining_ms())
                        continue

                    extractor = get_extractor(platform, self.config)
                    source_url = request.url_for(platform)
                    rows, was_blocked = self._scrape_desktop(page, extractor, source_url, request, deadline, trail)
                    chunks.append(rows)
                    blocked[platform] = blocked.get(platform, False) or was_blocked

                    if should_try_mobile(extractor, len(rows), deadline, self.config):
                        mobile_rows, mobile_blocked = run_mobile_fallback(
                            harness, extractor, source_url, trail, self.config, navigate_fn=self.navigate_fn
                        )
                        chunks.append(mobile_rows)
                        blocked[platform] = blocked[platform] or mobile_blocked

        result = assemble_result(chunks, blocked, trail.dump(), self._screenshot)
        logger.info(f"Scrape finished: {result.count} rows, blocked={result.blocked}")
        return result

    def _scrape_desktop(
        self,
        page: Page,
        extractor: ListingExtractor,
        source_url: str,
        request: ScrapeRequest,
        deadline: Deadline,
        trail: DiagnosticTrail,
    ) -> Tuple[List[ExtractedListing], bool]:
        platform = extractor.platform
        rows: List[ExtractedListing] = []
        position = 0

        for page_no in range(1, request.max_pages + 1):
            if not deadline.allows(self.stage_min_ms):
                trail.record(f"deadline near, stop {platform}", remaining_ms=deadline.remaining_ms())
                break
            allowance = request.per_site_limit - len(rows)
            if allowance <= 0:
                break

            url = with_page_param(source_url, page_no)
            outcome = self.navigate_fn(
                page,
                url,
                extractor.ready_selectors,
                self.desktop["timeout_ms"],
                trail,
                detect_block_page=extractor.detect_block_page,
                **navigation_options(self.config),
            )
            if outcome.blocked:
                trail.record(f"{platform}: block page on desktop")
                return rows, True
            if not outcome.ok:
                break

            if request.debug_screenshot and self._screenshot is None:
                self._screenshot = self._capture(page, trail)
            page.wait_for_timeout(random.randint(self.desktop["min_wait_ms"], self.desktop["max_wait_ms"]))
            auto_scroll(page, self.desktop["scroll_steps"], self.desktop["scroll_pause_ms"])

            chunk, position = extractor.extract(
                page,
                source_url,
                position,
                allowance,
                trail,
                scroll_steps=self.desktop["extract_scroll_steps"],
                scroll_pause_ms=self.desktop["scroll_pause_ms"],
                timeout_ms=self.desktop["timeout_ms"],
            )
            rows.extend(chunk)

        return rows, False

    def _capture(self, page: Page, trail: DiagnosticTrail) -> Optional[str]:
        try:
            raw = page.screenshot(type="jpeg", quality=self.screenshot_quality)
        except PlaywrightError as e:
            trail.record("screenshot failed", err=str(e))
            return None
        return base64.b64encode(raw).decode("ascii")


def run_scrape(
    request: ScrapeRequest,
    config: Optional[Dict[str, Any]] = None,
    trail: Optional[DiagnosticTrail] = None,
    headless: Optional[bool] = None,
) -> ScrapeResult:
    """Run one scrape request end to end with a fresh browser."""
    def _harness(cfg):
        return BrowserHarness(cfg, headless=headless)

    return ScrapePipeline(config, harness_factory=_harness).run(request, trail=trail)
