"""Request, listing and result records passed between pipeline stages."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class ScrapeRequest:
    """One inbound scrape call. Lives only for the duration of the request."""

    targets: Dict[str, str] = field(default_factory=dict)
    per_site_limit: int = 12
    max_pages: int = 1
    debug: bool = False
    debug_screenshot: bool = False

    def url_for(self, platform: str) -> Optional[str]:
        return self.targets.get(platform)

    @property
    def amazon_url(self) -> Optional[str]:
        return self.url_for("amazon")

    @property
    def flipkart_url(self) -> Optional[str]:
        return self.url_for("flipkart")


@dataclass
class ExtractedListing:
    """A single accepted search-result card."""

    platform: str
    list_position: int
    product_url: Optional[str]
    source_url: str
    product_name: Optional[str] = None
    brand_guess: Optional[str] = None
    price: Optional[float] = None
    mrp: Optional[float] = None
    discount_percent: Optional[float] = None
    image_url: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    date: str = ""

    def __post_init__(self):
        if not self.date:
            self.date = self.timestamp[:10]

    @property
    def identity(self) -> Tuple[str, Optional[str]]:
        return (self.platform, self.product_url)

    def to_dict(self) -> Dict[str, Any]:
        row = asdict(self)
        ordered = [
            "date", "timestamp", "platform", "list_position", "product_name",
            "brand_guess", "price", "mrp", "discount_percent", "rating",
            "review_count", "product_url", "image_url", "source_url",
        ]
        return {key: row[key] for key in ordered}


@dataclass
class NavigationOutcome:
    ok: bool
    blocked: bool = False
    attempts: int = 0


@dataclass
class ScrapeResult:
    """Everything the assembler needs to build the response document."""

    rows: List[ExtractedListing] = field(default_factory=list)
    blocked: Dict[str, bool] = field(default_factory=dict)
    debug: Optional[List[str]] = None
    screenshot: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.rows)
