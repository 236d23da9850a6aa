"""Platform extraction strategies, registered by platform tag."""

from marketlens.extractors.base import ListingExtractor, first_resolved, get_extractor, known_platforms
from marketlens.extractors.amazon import AmazonExtractor
from marketlens.extractors.flipkart import FlipkartExtractor

__all__ = [
    "AmazonExtractor",
    "FlipkartExtractor",
    "ListingExtractor",
    "first_resolved",
    "get_extractor",
    "known_platforms",
]
