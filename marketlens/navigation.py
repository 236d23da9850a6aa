"""Navigation with bounded retries and block-page detection."""

from __future__ import annotations

import re
import time
from typing import Callable, Optional, Pattern, Sequence, Union

from loguru import logger
from playwright.sync_api import Error as PlaywrightError, Page
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from marketlens.config_loader import DEFAULT_BLOCK_TITLE_PATTERN
from marketlens.diagnostics import DiagnosticTrail
from marketlens.models import NavigationOutcome


DEFAULT_BLOCK_TITLE = re.compile(DEFAULT_BLOCK_TITLE_PATTERN, re.IGNORECASE)


def compile_block_pattern(pattern: Union[str, Pattern, None]) -> Pattern:
    if pattern is None:
        return DEFAULT_BLOCK_TITLE
    if isinstance(pattern, str):
        return re.compile(pattern, re.IGNORECASE)
    return pattern


def navigate(
    page: Page,
    url: str,
    ready_selector: str,
    timeout_ms: int,
    trail: DiagnosticTrail,
    detect_block_page: bool = False,
    block_pattern: Union[str, Pattern, None] = None,
    attempts: int = 2,
    delay_ms: int = 400,
    sleep: Callable[[float], None] = time.sleep,
) -> NavigationOutcome:
    """Load ``url`` and wait for ``ready_selector``.

    Navigation errors and selector timeouts are retried after a fixed delay.
    A block-page title ends the call at once with ``blocked=True``.
    """
    pattern = compile_block_pattern(block_pattern)
    state = {"attempt": 0}

    def _attempt() -> NavigationOutcome:
        state["attempt"] += 1
        started = time.monotonic()
        trail.record("goto attempt", attempt=state["attempt"], url=url)
        page.goto(url, timeout=timeout_ms, wait_until="domcontentloaded")
        try:
            title = page.title() or ""
        except PlaywrightError as e:
            trail.record("title read failed", err=str(e))
            title = ""
        trail.record(
            "after goto",
            title=title,
            cur=page.url,
            dur_ms=int((time.monotonic() - started) * 1000),
        )

        if detect_block_page and pattern.search(title):
            trail.record("block page detected by title", title=title)
            return NavigationOutcome(ok=False, blocked=True, attempts=state["attempt"])

        page.wait_for_selector(ready_selector, timeout=timeout_ms)
        trail.record("selector appeared", ready_selector=ready_selector)
        return NavigationOutcome(ok=True, blocked=False, attempts=state["attempt"])

    def _before_sleep(retry_state):
        trail.record(
            "goto/wait error",
            attempt=retry_state.attempt_number,
            err=str(retry_state.outcome.exception()),
        )

    retryer = Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_fixed(delay_ms / 1000.0),
        retry=retry_if_exception_type(PlaywrightError),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=True,
    )
    try:
        return retryer(_attempt)
    except PlaywrightError as e:
        trail.record("goto/wait error", attempt=state["attempt"], err=str(e))
        logger.warning(f"Navigation failed after {state['attempt']} attempts: {url}")
        return NavigationOutcome(ok=False, blocked=False, attempts=state["attempt"])


def navigate_tiered(
    page: Page,
    url: str,
    ready_selectors: Sequence[str],
    timeout_ms: int,
    trail: DiagnosticTrail,
    **kwargs,
) -> NavigationOutcome:
    """Try each readiness selector in order, each with its own retry budget.

    Stops at the first tier that succeeds or reports a block page.
    """
    outcome: Optional[NavigationOutcome] = None
    for tier, selector in enumerate(ready_selectors, start=1):
        outcome = navigate(page, url, selector, timeout_ms, trail, **kwargs)
        if outcome.ok or outcome.blocked:
            if tier > 1:
                trail.record("readiness fallback tier used", tier=tier, ready_selector=selector)
            return outcome
    return outcome or NavigationOutcome(ok=False)


def navigation_options(config: dict) -> dict:
    """Retry budget and block pattern from the ``scraping`` config section."""
    scraping = (config or {}).get("scraping", {}) or {}
    retry_cfg = scraping.get("retry", {}) or {}
    return {
        "attempts": int(retry_cfg.get("attempts", 2)),
        "delay_ms": int(retry_cfg.get("delay_ms", 400)),
        "block_pattern": scraping.get("block_title_pattern") or DEFAULT_BLOCK_TITLE_PATTERN,
    }
