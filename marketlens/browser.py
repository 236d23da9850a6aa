"""Chromium lifecycle and per-session anti-detection hardening."""

from __future__ import annotations

import random
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from loguru import logger
from playwright.sync_api import Page, Route, sync_playwright

from marketlens.config_loader import (
    DEFAULT_HEADERS,
    DEFAULT_MOBILE_USER_AGENT,
    as_bool,
    get_browser_config,
    get_user_agents,
)


DESKTOP = "desktop"
MOBILE = "mobile"

VIEWPORTS = {
    DESKTOP: {"width": 1360, "height": 900},
    MOBILE: {"width": 390, "height": 844},
}

STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'languages', { get: () => ['en-IN', 'en'] });
Object.defineProperty(navigator, 'platform', { get: () => 'Win32' });
window.chrome = { runtime: {} };
const originalQuery = navigator.permissions && navigator.permissions.query;
if (originalQuery) {
    navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications'
            ? Promise.resolve({ state: Notification.permission })
            : originalQuery(parameters)
    );
}
"""


def pick_user_agent(config: Dict[str, Any], device: str) -> str:
    if device == MOBILE:
        return get_browser_config(config).get("mobile_user_agent") or DEFAULT_MOBILE_USER_AGENT
    return random.choice(get_user_agents(config))


def session_headers(config: Dict[str, Any]) -> Dict[str, str]:
    headers = dict(DEFAULT_HEADERS)
    headers.update(get_browser_config(config).get("headers") or {})
    return {str(k): str(v) for k, v in headers.items()}


def harden_page(page: Page, config: Dict[str, Any], device: str = DESKTOP) -> None:
    """Mask automation signals and drop heavy resources before the first navigation."""
    blocked_types = set(
        get_browser_config(config).get("blocked_resource_types") or ["image", "media", "font"]
    )

    def _route(route: Route):
        if route.request.resource_type in blocked_types:
            return route.abort()
        return route.continue_()

    page.add_init_script(STEALTH_JS)
    page.set_viewport_size(VIEWPORTS[device])
    page.route("**/*", _route)
    page.set_extra_http_headers(session_headers(config))


class BrowserHarness:
    """Owns the Playwright driver and one Chromium process for a request."""

    def __init__(self, config: Dict[str, Any], headless: Optional[bool] = None):
        self.config = config
        self.browser_config = get_browser_config(config)
        self.headless = headless if headless is not None else as_bool(
            self.browser_config.get("headless"), default=True
        )
        self.playwright = None
        self.browser = None

    def start(self):
        logger.info("Starting browser (headless={})", self.headless)
        self.playwright = sync_playwright().start()
        try:
            self.browser = self.playwright.chromium.launch(
                headless=self.headless,
                args=self.browser_config.get("args") or ["--no-sandbox", "--disable-dev-shm-usage"],
            )
        except BaseException:
            logger.error("Browser launch failed, stopping Playwright driver")
            self.stop()
            raise

    def stop(self):
        """Stop the browser and cleanup."""
        if self.browser:
            try:
                self.browser.close()
            except Exception as e:
                logger.warning(f"Browser close failed: {e}")
        if self.playwright:
            try:
                self.playwright.stop()
            except Exception as e:
                logger.warning(f"Playwright stop failed: {e}")
        self.browser = None
        self.playwright = None
        logger.info("Browser stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def new_page(self, device: str = DESKTOP) -> Page:
        """Open an isolated, hardened browsing context and return its page."""
        if not self.browser:
            raise RuntimeError("Browser not started")
        context = self.browser.new_context(
            viewport=VIEWPORTS[device],
            user_agent=pick_user_agent(self.config, device),
            timezone_id=self.browser_config.get("timezone", "Asia/Kolkata"),
            locale=self.browser_config.get("locale", "en-IN"),
            is_mobile=device == MOBILE,
            has_touch=device == MOBILE,
        )
        page = context.new_page()
        harden_page(page, self.config, device)
        return page

    @contextmanager
    def rendering_session(self, device: str = DESKTOP) -> Iterator[Page]:
        """Yield a hardened page; its context is closed on every exit path."""
        page = self.new_page(device)
        try:
            yield page
        finally:
            try:
                page.context.close()
            except Exception as e:
                logger.warning(f"Closing {device} session failed: {e}")
