"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FeedPress tests.

Raw entries below use the shape an XML parser produces with ``@_``
attribute prefixes and ``#text`` text nodes, with every value left as a
string.
"""

import copy
import os
import sys
from pathlib import Path

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["FEEDPRESS_LOGGING__FILE_PATH"] = ""
os.environ["FEEDPRESS_LOGGING__CONSOLE_LOGGING"] = "false"
os.environ.setdefault("FEEDPRESS_DEBUG", "false")


# ============================================================================
# Raw feed entries
# ============================================================================

RSS_404MEDIA_ITEM = {
    "title": 'Inside the "Example" Conspiracy',
    "link": "https://www.404media.co/inside-the-example-conspiracy/",
    "pubDate": "Wed, 01 Jan 2025 12:00:00 GMT",
    "dc:creator": "404 Media Team",
    "category": ["Investigations", "Technology", "investigations"],
    "guid": {
        "#text": "tag:404media.co,2025-01-01:/inside-the-example-conspiracy",
        "@_isPermaLink": "false",
    },
    "description": "<p>A short summary for the story.</p>",
    "content:encoded": (
        "<p>The long-form story body.</p>\n"
        "<p>Reporting continues with more detail.</p>\n"
        '<p><a href="https://www.404media.co/inside-the-example-conspiracy/">Read more</a></p>'
    ),
    "media:content": {
        "@_url": "https://static.404media.co/images/story-main.jpg",
        "@_width": "1600",
        "@_height": "900",
        "@_medium": "image",
    },
    "media:thumbnail": {
        "@_url": "https://static.404media.co/images/story-thumb.jpg",
        "@_width": "800",
        "@_height": "450",
    },
}

RSS_SUBSTACK_ITEM = {
    "title": "Understanding LLM Training",
    "link": "https://magazine.sebastianraschka.com/p/understanding-llm-training",
    "pubDate": "Mon, 03 Feb 2025 13:30:00 GMT",
    "dc:creator": "Sebastian Raschka",
    "category": "Data Science",
    "description": "<p>Short intro &amp; highlights.</p>",
    "content:encoded": (
        "<p>Hello readers!</p>"
        "<p>This issue covers pretraining, finetuning and evaluation of language models.</p>"
    ),
    "enclosure": {
        "@_url": "https://substackcdn.com/image.jpg",
        "@_length": "0",
        "@_type": "image/jpeg",
    },
    "guid": {
        "#text": "https://magazine.sebastianraschka.com/p/understanding-llm-training",
        "@_isPermaLink": "true",
    },
}

ATOM_ITEM = {
    "title": {"#text": "Orbital Mechanics Explained", "@_type": "text"},
    "link": [
        {"@_rel": "self", "@_href": "https://example.com/feed/orbital"},
        {
            "@_rel": "alternate",
            "@_type": "text/html",
            "@_href": "https://example.com/orbital-mechanics-explained",
        },
    ],
    "id": "urn:uuid:60a76c80-d399-11d9-b93C-0003939e0af6",
    "published": "2025-02-09T08:00:00Z",
    "updated": "2025-02-10T09:00:00Z",
    "author": {"name": "Ada Example", "email": "ada@example.com"},
    "category": [{"@_term": "space"}, {"@_term": "Physics", "@_label": "physics"}],
    "summary": {"#text": "<p>Learn about orbits.</p>", "@_type": "html"},
    "content": {
        "#text": (
            "<p>Full article body about orbital mechanics.</p>"
            '<img src="https://example.com/images/orbit.png" alt="Orbit">'
        ),
        "@_type": "html",
    },
}

ATOM_TEXT_ITEM = {
    "title": "Status update",
    "link": {"@_href": "https://example.com/status/1"},
    "updated": "2025-03-01T10:00:00+02:00",
    "summary": "Short status summary",
    "content": {"#text": "Status update without HTML tags", "@_type": "text"},
}

RSS_WORDPRESS_ITEM = {
    "title": "Launch day!",
    "link": "https://blog.cloudflare.com/launch-day/",
    "pubDate": "Tue, 04 Mar 2025 14:00:00 +0000",
    "dc:creator": "Cloudflare Team",
    "category": ["Product News", "product news"],
    "guid": {"#text": "https://blog.cloudflare.com/?p=123456", "@_isPermaLink": "false"},
    "description": "Launch day! We are shipping something new today.",
    "content:encoded": (
        "<p>Launch day! We are shipping something new today.</p>"
        '<p><img src="https://blog.cloudflare.com/images/launch.png" alt="Launch" '
        'width="1200" height="630"></p>'
    ),
}

RSS_MINIMAL_ITEM = {
    "title": "Minimal entry",
    "link": "https://example.com/minimal",
    "description": "Just a short entry.",
}


@pytest.fixture
def rss_404media_item():
    return copy.deepcopy(RSS_404MEDIA_ITEM)


@pytest.fixture
def rss_substack_item():
    return copy.deepcopy(RSS_SUBSTACK_ITEM)


@pytest.fixture
def atom_item():
    return copy.deepcopy(ATOM_ITEM)


@pytest.fixture
def atom_text_item():
    return copy.deepcopy(ATOM_TEXT_ITEM)


@pytest.fixture
def rss_wordpress_item():
    return copy.deepcopy(RSS_WORDPRESS_ITEM)


@pytest.fixture
def rss_minimal_item():
    return copy.deepcopy(RSS_MINIMAL_ITEM)


@pytest.fixture
def all_raw_items():
    """Every fixture entry, in a stable order."""
    return copy.deepcopy([
        RSS_404MEDIA_ITEM,
        RSS_SUBSTACK_ITEM,
        ATOM_ITEM,
        ATOM_TEXT_ITEM,
        RSS_WORDPRESS_ITEM,
        RSS_MINIMAL_ITEM,
    ])


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """Fresh settings built from the test environment."""
    from feedpress.config.settings import FeedPressSettings

    return FeedPressSettings()


@pytest.fixture(autouse=True)
def reset_settings_singleton():
    """Keep the global settings instance from leaking between tests."""
    import feedpress.config.settings as settings_module

    settings_module._settings = None
    yield
    settings_module._settings = None


@pytest.fixture
def quiet_normalizer():
    """Normalizer whose warnings go to a mock logger."""
    from unittest.mock import Mock
    from feedpress.ingestion.feed_normalizer import FeedNormalizer

    return FeedNormalizer(logger=Mock())
