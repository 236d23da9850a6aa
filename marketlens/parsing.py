"""Field derivation helpers: prices, discounts, brands and URLs."""

import math
import re
from typing import Iterable, List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


MONEY_PATTERN = re.compile(r"[₹]?\s*([\d,]+\.?\d*)")
RUPEE_TOKEN_PATTERN = re.compile(r"₹\s*([\d,]+\.?\d*)")

BRAND_ALIASES = {
    "iphone": "Apple",
    "mi": "Xiaomi",
    "redmi": "Xiaomi",
    "moto": "Motorola",
}
KNOWN_BRANDS = [
    "samsung", "apple", "xiaomi", "oneplus", "realme", "vivo", "oppo", "iqoo",
    "motorola", "tecno", "infinix", "lava", "nokia", "honor", "google", "acer", "poco",
]


def _to_number(raw: str) -> Optional[float]:
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


def parse_money(text: Optional[str]) -> Optional[float]:
    """Parse the first currency-formatted number in ``text`` ("₹1,299" -> 1299.0)."""
    if not text:
        return None
    match = MONEY_PATTERN.search(str(text))
    if not match:
        return None
    return _to_number(match.group(1))


def rupee_values(text: Optional[str]) -> List[float]:
    """All distinct ₹-prefixed values in ``text``, largest first."""
    values = set()
    for match in RUPEE_TOKEN_PATTERN.finditer(str(text or "")):
        value = _to_number(match.group(1))
        if value is not None:
            values.add(value)
    return sorted(values, reverse=True)


def scan_price_pair(text: Optional[str], floor: float = 3000) -> Tuple[Optional[float], Optional[float]]:
    """Guess ``(price, mrp)`` from free card text.

    With several candidates, values under ``floor`` are dropped (EMI and
    installment noise) unless that would drop all of them. The two largest
    survivors become mrp and price; a lone survivor is the price.
    """
    values = rupee_values(text)
    plausible = [v for v in values if v >= floor]
    pool = plausible if len(values) > 1 and plausible else values
    if len(pool) >= 2:
        return min(pool[0], pool[1]), max(pool[0], pool[1])
    if len(pool) == 1:
        return pool[0], None
    return None, None


def discount_percent(mrp: Optional[float], price: Optional[float]) -> Optional[float]:
    """Percent off mrp, rounded half-up to one decimal, or None when not applicable."""
    if not mrp or not price or mrp <= 0 or price > mrp:
        return None
    return math.floor(100 * (mrp - price) / mrp * 10 + 0.5) / 10


def brand_guess(name: Optional[str]) -> Optional[str]:
    """Look for a known brand in the first four words of a product name."""
    if not name:
        return None
    for raw in name.split()[:4]:
        token = re.sub(r"[^A-Za-z0-9+]", "", raw).lower()
        if token in BRAND_ALIASES:
            return BRAND_ALIASES[token]
        if token in KNOWN_BRANDS:
            return token[0].upper() + token[1:]
    return None


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = " ".join(str(value).split())
    return value or None


def normalize_url(raw: Optional[str]) -> Optional[str]:
    """Default the scheme to https and reject strings that do not parse to a host."""
    if not raw:
        return None
    value = str(raw).strip()
    if not value:
        return None
    if not re.match(r"^https?://", value, re.IGNORECASE):
        value = "https://" + value.lstrip("/")
    try:
        parsed = urlsplit(value)
    except ValueError:
        return None
    if not parsed.netloc or " " in parsed.netloc:
        return None
    return value


def host_of(url: Optional[str]) -> str:
    if not url:
        return ""
    return urlsplit(url).netloc.lower()


def origin_of(url: str) -> str:
    parsed = urlsplit(url)
    return urlunsplit((parsed.scheme or "https", parsed.netloc, "/", "", ""))


def with_page_param(url: str, page: int) -> str:
    if page <= 1:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}page={page}"


def rewrite_host(url: str, host: str, drop_params: Iterable[str] = ()) -> str:
    """Swap the host of ``url`` and remove the named query parameters."""
    try:
        parsed = urlsplit(url)
    except ValueError:
        return url
    dropped = set(drop_params)
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k not in dropped]
    return urlunsplit((parsed.scheme, host, parsed.path, urlencode(query), parsed.fragment))
