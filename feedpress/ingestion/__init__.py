"""
FeedPress Ingestion Module
==========================

Feed entry normalization.

This module handles:
- Typed view over parser output (attributes, text nodes, repeated elements)
- Canonical URL, date, author and category extraction
- Raw HTML candidates and media metadata
"""

from .feed_normalizer import FeedNormalizer, normalize_feed_item
from .models import NormalizedFeedItem, RawHtmlCandidates, FeedMedia

__all__ = [
    'FeedNormalizer',
    'normalize_feed_item',
    'NormalizedFeedItem',
    'RawHtmlCandidates',
    'FeedMedia',
]
