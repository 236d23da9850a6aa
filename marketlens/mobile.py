"""Mobile-site fallback for platforms whose desktop pass came back empty."""

from __future__ import annotations

import random
from typing import Any, Callable, Dict, List, Tuple

from loguru import logger

from marketlens.browser import MOBILE
from marketlens.config_loader import get_device_profile, get_scraping_config
from marketlens.deadline import Deadline
from marketlens.diagnostics import DiagnosticTrail
from marketlens.extractors.base import ListingExtractor, auto_scroll
from marketlens.models import ExtractedListing
from marketlens.navigation import navigate_tiered, navigation_options


def should_try_mobile(
    extractor: ListingExtractor,
    desktop_rows: int,
    deadline: Deadline,
    config: Dict[str, Any],
) -> bool:
    min_ms = int(get_scraping_config(config).get("mobile_min_ms", 2500))
    return desktop_rows == 0 and deadline.remaining_ms() > min_ms and extractor.has_mobile_site


def run_mobile_fallback(
    harness: Any,
    extractor: ListingExtractor,
    source_url: str,
    trail: DiagnosticTrail,
    config: Dict[str, Any],
    navigate_fn: Callable = navigate_tiered,
) -> Tuple[List[ExtractedListing], bool]:
    """Open a disposable mobile session, scrape once, close it.

    Returns ``(listings, blocked)``.
    """
    profile = get_device_profile(config, MOBILE)
    mobile_url = extractor.mobile_url(source_url)
    trail.record(f"{extractor.platform}: trying mobile fallback", url=mobile_url)

    with harness.rendering_session(MOBILE) as page:
        outcome = navigate_fn(
            page,
            mobile_url,
            extractor.ready_selectors,
            profile["timeout_ms"],
            trail,
            detect_block_page=extractor.detect_block_page,
            **navigation_options(config),
        )
        if outcome.blocked:
            trail.record(f"{extractor.platform}: block page on mobile")
            return [], True
        if not outcome.ok:
            logger.warning(f"{extractor.platform}: mobile fallback did not load {mobile_url}")
            return [], False

        page.wait_for_timeout(random.randint(profile["min_wait_ms"], profile["max_wait_ms"]))
        auto_scroll(page, profile["scroll_steps"], profile["scroll_pause_ms"])
        rows, _ = extractor.extract(
            page,
            mobile_url,
            0,
            profile["per_site_limit"],
            trail,
            scroll_steps=profile["extract_scroll_steps"],
            scroll_pause_ms=profile["scroll_pause_ms"],
            timeout_ms=profile["timeout_ms"],
        )
        return rows, False
