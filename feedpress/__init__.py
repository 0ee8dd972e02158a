"""
FeedPress - Feed Entry Content Pipeline
=======================================

Turns loosely-typed RSS/Atom entries into safe, self-contained article HTML
with a plain-text excerpt and a hero image.

Main Components:
- Ingestion: XML node model and feed item normalization
- Processing: body/lead selection, sanitization and article assembly
- Monitoring: HTML heuristics and bounded ingestion diagnostics
- Configuration: environment variables with Pydantic validation
"""

__version__ = "1.0.0"
__author__ = "FeedPress Development Team"
__description__ = "Feed entry normalization and article assembly pipeline"

# Core imports for easy access
from .config.settings import get_settings
from .ingestion.feed_normalizer import FeedNormalizer, normalize_feed_item
from .processing.body_lead_selector import BodyLeadSelector, select_body_and_lead
from .processing.article_assembler import ArticleAssembler, assemble_article
from .processing.pipeline import ContentPipeline
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedPressError

__all__ = [
    "get_settings",
    "FeedNormalizer",
    "normalize_feed_item",
    "BodyLeadSelector",
    "select_body_and_lead",
    "ArticleAssembler",
    "assemble_article",
    "ContentPipeline",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedPressError",
]
