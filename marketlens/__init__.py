"""MarketLens - time-budgeted marketplace search-result scraper."""

__version__ = "1.0.0"
