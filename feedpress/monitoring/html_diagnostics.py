"""
HTML Diagnostics
================

Quick heuristics for spotting broken feed content: markup that arrived
entity-escaped, bodies with no block structure, and short previews for
inspection.
"""

import re
from dataclasses import dataclass
from typing import Optional

BLOCK_TAG_PATTERN = re.compile(
    r"<(p|div|img|h1|h2|h3|ul|ol|li|figure|pre|code|blockquote)\b", re.IGNORECASE
)
ESCAPED_HTML_PATTERN = re.compile(
    r"&(lt|#60);/?(p|div|img|h1|h2|h3|ul|ol|li|figure|pre|code|blockquote)", re.IGNORECASE
)
WHITESPACE_PATTERN = re.compile(r"\s+")

WEAK_CONTENT_MIN_LENGTH = 300
DEFAULT_PREVIEW_LENGTH = 300


@dataclass(frozen=True)
class WeakContent:
    length: int
    contains_blocks: bool
    weak: bool


def has_block_tags(html: Optional[str]) -> bool:
    if not html:
        return False
    return bool(BLOCK_TAG_PATTERN.search(html))


def looks_escaped_html(html: Optional[str]) -> bool:
    """True when block markup appears only in escaped form, e.g. ``&lt;p&gt;``."""
    if not html:
        return False
    return bool(ESCAPED_HTML_PATTERN.search(html))


def compute_weak_content(html: Optional[str]) -> WeakContent:
    """Flag content that is short or has no block structure."""
    if not html:
        return WeakContent(length=0, contains_blocks=False, weak=True)

    length = len(WHITESPACE_PATTERN.sub(" ", html).strip())
    contains_blocks = has_block_tags(html)
    weak = length < WEAK_CONTENT_MIN_LENGTH or not contains_blocks
    return WeakContent(length=length, contains_blocks=contains_blocks, weak=weak)


def build_preview(html: Optional[str], max_length: int = DEFAULT_PREVIEW_LENGTH) -> str:
    if not html or max_length <= 0:
        return ""
    return html[:max_length]
