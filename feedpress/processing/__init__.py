"""
FeedPress Processing Module
===========================

Body/lead selection, sanitization and article assembly for normalized
feed entries.
"""

from .body_lead_selector import BodyLeadSelector, select_body_and_lead
from .article_assembler import ArticleAssembler, assemble_article
from .pipeline import ContentPipeline, BatchResult

__all__ = [
    'BodyLeadSelector',
    'select_body_and_lead',
    'ArticleAssembler',
    'assemble_article',
    'ContentPipeline',
    'BatchResult',
]
