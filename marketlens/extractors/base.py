"""Extraction strategy interface, tier helpers and the platform registry."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from playwright.sync_api import Error as PlaywrightError

from marketlens.diagnostics import DiagnosticTrail
from marketlens.models import ExtractedListing
from marketlens.parsing import brand_guess, clean_text, discount_percent, host_of


T = TypeVar("T")
Tier = Callable[[], Optional[T]]


def first_resolved(tiers: Sequence[Tier]) -> Optional[T]:
    """Run tiers in order and return the first non-empty value.

    A tier that raises a Playwright error counts as unresolved.
    """
    for tier in tiers:
        try:
            value = tier()
        except PlaywrightError:
            continue
        if value not in (None, ""):
            return value
    return None


def text_of(root: Any, selector: str) -> Optional[str]:
    node = root.query_selector(selector)
    if node is None:
        return None
    return clean_text(node.text_content())


def attr_of(root: Any, selector: str, name: str) -> Optional[str]:
    node = root.query_selector(selector)
    if node is None:
        return None
    return node.get_attribute(name)


def text_tiers(root: Any, selectors: Sequence[str]) -> List[Tier]:
    return [lambda sel=sel: text_of(root, sel) for sel in selectors]


class ListingExtractor(ABC):
    """Turns a rendered search-result page into ordered listings."""

    platform: str = ""
    host_marker: str = ""
    base_url: str = ""
    ready_selectors: Tuple[str, ...] = ()
    detect_block_page: bool = False
    has_mobile_site: bool = False

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}

    def accepts_url(self, url: Optional[str]) -> bool:
        return bool(url) and self.host_marker in host_of(url)

    def mobile_url(self, url: str) -> Optional[str]:
        """Mobile-site equivalent of ``url``, or None when there is no mobile fallback."""
        return None

    @abstractmethod
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
        """Return accepted listings (at most ``limit``) and the last position used."""

    def build_listing(
        self,
        position: int,
        source_url: str,
        product_url: Optional[str],
        name: Optional[str],
        price: Optional[float],
        mrp: Optional[float],
        image_url: Optional[str] = None,
    ) -> ExtractedListing:
        return ExtractedListing(
            platform=self.platform,
            list_position=position,
            product_url=product_url,
            source_url=source_url,
            product_name=name,
            brand_guess=brand_guess(name),
            price=price,
            mrp=mrp,
            discount_percent=discount_percent(mrp, price),
            image_url=image_url,
        )


def auto_scroll(page: Any, steps: int, pause_ms: int) -> None:
    for _ in range(max(0, steps)):
        page.evaluate("() => window.scrollBy(0, document.body.scrollHeight)")
        page.wait_for_timeout(pause_ms)


_REGISTRY: Dict[str, Type[ListingExtractor]] = {}


def register(cls: Type[ListingExtractor]) -> Type[ListingExtractor]:
    _REGISTRY[cls.platform] = cls
    return cls


def get_extractor(platform: str, config: Optional[Dict[str, Any]] = None) -> ListingExtractor:
    try:
        return _REGISTRY[platform](config)
    except KeyError:
        raise ValueError(f"Unknown platform: {platform}") from None


def known_platforms() -> List[str]:
    return list(_REGISTRY)
