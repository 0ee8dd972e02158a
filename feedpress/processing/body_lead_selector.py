"""
Body & Lead Selector
====================

Chooses which raw HTML candidate of a normalized entry becomes the article
body and whether the description is distinct enough to serve as a lead.

Candidates are evaluated in priority order (content:encoded, content,
description/summary). The first substantial one wins, otherwise the longest
is used. Every decision is recorded as a short reason string.
"""

import html
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from ..config.settings import SelectionSettings
from ..ingestion.models import NormalizedFeedItem
from ..utils.exceptions import InvalidInputError
from ..utils.logging import get_logger_for_component
from .html_tokens import close_open_tags, truncate_by_text_length
from .models import (
    EMPTY_SOURCE,
    BodyLeadSelection,
    CandidateSource,
    SelectionDiagnostics,
)

SOURCE_PRIORITY = (
    CandidateSource.CONTENT_ENCODED,
    CandidateSource.CONTENT,
    CandidateSource.DESCRIPTION_OR_SUMMARY,
)

BLOCK_TAG_PATTERN = re.compile(
    r"<(p|div|img|h1|h2|h3|ul|ol|li|figure|pre|code|blockquote)\b", re.IGNORECASE
)
PARAGRAPH_PATTERN = re.compile(r"<(p|figure)\b[^>]*>", re.IGNORECASE)
HTML_LIKE_PATTERN = re.compile(r"</?[a-z][^>]*>", re.IGNORECASE)
TAG_OR_ENTITY_PATTERN = re.compile(r"(<[^>]+>|&[a-z0-9#]+;)", re.IGNORECASE)
ANY_TAG_PATTERN = re.compile(r"<[^>]*>")
PARTIAL_TAG_PATTERN = re.compile(r"<[^>]*$")
WHITESPACE_PATTERN = re.compile(r"\s+")
BOILERPLATE_DIV_PATTERN = re.compile(
    r'<div[^>]*class="[^"]*\boutpost-pub-container\b[^"]*"[^>]*>[\s\S]*?</div>',
    re.IGNORECASE,
)
# Last paragraph of the fragment; it may not contain another <p
TRAILING_PARAGRAPH_PATTERN = re.compile(
    r"\s*<p\b[^>]*>(?:(?!<p\b)[\s\S])*?</p>\s*$", re.IGNORECASE
)

READ_MORE_KEYWORDS = ("read more", "continue reading")
BLOCK_CLOSING_TAGS = (
    "</p>",
    "</div>",
    "</section>",
    "</article>",
    "</li>",
    "</ul>",
    "</ol>",
    "</figure>",
    "</pre>",
    "</code>",
    "</blockquote>",
)


@dataclass(frozen=True)
class CandidateMetrics:
    has_blocks: bool
    paragraph_count: int
    length: int
    content_score: float
    is_substantial: bool


@dataclass(frozen=True)
class ContentCandidate:
    """A raw candidate after cleanup, with its scores."""

    source: CandidateSource
    html: str
    metrics: CandidateMetrics
    used_plain_text_wrapper: bool = False
    removed_boilerplate: bool = False


def looks_like_html(value: str) -> bool:
    return bool(HTML_LIKE_PATTERN.search(value))


def has_block_tags(value: str) -> bool:
    return bool(BLOCK_TAG_PATTERN.search(value))


def count_paragraphs(value: str) -> int:
    return len(PARAGRAPH_PATTERN.findall(value))


def compute_content_score(has_blocks: bool, length: int, paragraph_count: int) -> float:
    """Score in [0, 1]: block markup 0.4, length up to 0.3, two paragraphs 0.3."""
    block_score = 0.4 if has_blocks else 0.0
    length_score = min(0.3, length * 0.0005) if length > 0 else 0.0
    paragraph_score = 0.3 if paragraph_count >= 2 else 0.0
    return min(1.0, block_score + length_score + paragraph_score)


def strip_trailing_read_more(value: str) -> str:
    """Drop trailing paragraphs that only point to the full article."""
    result = value
    while True:
        match = TRAILING_PARAGRAPH_PATTERN.search(result)
        if not match:
            return result
        text = TAG_OR_ENTITY_PATTERN.sub(" ", match.group(0)).lower()
        if not any(keyword in text for keyword in READ_MORE_KEYWORDS):
            return result
        result = result[:match.start()]


def remove_trivial_boilerplate(value: str) -> str:
    result = BOILERPLATE_DIV_PATTERN.sub("", value)
    return strip_trailing_read_more(result)


def normalize_for_comparison(value: Optional[str]) -> str:
    """Visible text only: tags dropped, entities decoded, whitespace collapsed, lower-cased."""
    if not value:
        return ""
    text = html.unescape(ANY_TAG_PATTERN.sub(" ", value))
    return WHITESPACE_PATTERN.sub(" ", text).strip().lower()


def compute_dedupe_ratio(a: str, b: str) -> float:
    """Jaccard similarity of the whitespace-separated token sets of two normalized texts."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    tokens_a = set(a.split())
    tokens_b = set(b.split())
    if not tokens_a or not tokens_b:
        return 0.0

    union = tokens_a | tokens_b
    return len(tokens_a & tokens_b) / len(union)


def truncate_body_html(value: str, limit: int) -> str:
    """Cut ``value`` to at most ``limit`` characters on a block boundary.

    The cut falls after the last block closing tag inside the limit, or at
    the limit itself when there is none. A dangling partial tag is dropped
    and open elements are closed. Closing tags are paid for out of the same
    limit, so the window shrinks until the repaired markup fits.
    """
    window = limit
    while window > 0:
        cut_index = -1
        for closing in BLOCK_CLOSING_TAGS:
            index = value.rfind(closing, 0, window)
            if index != -1:
                cut_index = max(cut_index, index + len(closing))
        if cut_index == -1:
            cut_index = window

        sliced = value[:cut_index]
        partial = PARTIAL_TAG_PATTERN.search(sliced)
        if partial:
            sliced = sliced[:partial.start()]

        repaired = close_open_tags(sliced)
        if len(repaired) <= limit:
            return repaired
        window = min(cut_index, window) - (len(repaired) - limit)

    return ""


class BodyLeadSelector:
    """Select body and lead from a normalized feed item.

    Args:
        settings: Selection thresholds. Defaults to the standard values.
    """

    def __init__(self, settings: Optional[SelectionSettings] = None):
        self.settings = settings or SelectionSettings()
        self.logger = get_logger_for_component("body_lead_selector")

    def select(self, item: Union[NormalizedFeedItem, Mapping[str, Any]]) -> BodyLeadSelection:
        """Choose the body and optional lead for ``item``.

        Raises:
            InvalidInputError: If item is neither a NormalizedFeedItem nor a mapping
        """
        candidates = self._read_candidates(item)
        reasons: List[str] = []

        evaluated, chosen, chosen_source = self._choose_body(candidates, reasons)

        body_html = ""
        content_score = 0.0
        if chosen is not None:
            content_score = chosen.metrics.content_score
            self._add_body_reasons(chosen, reasons)
            body_html = chosen.html
            if len(body_html) > self.settings.body_limit_chars:
                body_html = truncate_body_html(body_html, self.settings.body_limit_chars)
                self._add_reason(reasons, f"truncated-{self.settings.body_limit_kb}kb")

        lead_html, lead_used, dedupe_ratio = self._choose_lead(
            evaluated, chosen_source, body_html, reasons
        )

        self.logger.debug(
            f"Selected body from {chosen_source}",
            extra={"reasons": reasons, "lead_used": lead_used},
        )

        return BodyLeadSelection(
            body_html_raw=body_html,
            lead_html_raw=lead_html,
            diagnostics=SelectionDiagnostics(
                chosen_source=chosen_source,
                content_score=content_score,
                lead_used=lead_used,
                dedupe_ratio=dedupe_ratio,
                reasons=reasons,
            ),
        )

    @staticmethod
    def _read_candidates(item) -> Dict[CandidateSource, Optional[str]]:
        if isinstance(item, NormalizedFeedItem):
            raw = item.raw_html_candidates
            return {
                CandidateSource.CONTENT_ENCODED: raw.content_encoded,
                CandidateSource.CONTENT: raw.content,
                CandidateSource.DESCRIPTION_OR_SUMMARY: raw.description_or_summary,
            }

        if not isinstance(item, Mapping):
            raise InvalidInputError(
                f"item must be a NormalizedFeedItem or mapping, got {type(item).__name__}",
                field_name="item",
            )

        raw = item.get("rawHtmlCandidates", item.get("raw_html_candidates")) or {}
        if not isinstance(raw, Mapping):
            raw = {}
        return {
            CandidateSource.CONTENT_ENCODED: raw.get("contentEncoded", raw.get("content_encoded")),
            CandidateSource.CONTENT: raw.get("content"),
            CandidateSource.DESCRIPTION_OR_SUMMARY: raw.get(
                "descriptionOrSummary", raw.get("description_or_summary")
            ),
        }

    def evaluate_candidate(
        self, source: CandidateSource, value: Optional[str]
    ) -> Optional[ContentCandidate]:
        """Clean and score one candidate; None when it has no content."""
        if not isinstance(value, str) or not value.strip():
            return None

        processed = value
        used_wrapper = False
        trimmed_original = value.strip()
        if not looks_like_html(trimmed_original):
            processed = f"<p>{trimmed_original}</p>"
            used_wrapper = True

        cleaned = remove_trivial_boilerplate(processed)
        trimmed = cleaned.strip()
        if not trimmed:
            return None

        has_blocks = has_block_tags(trimmed)
        paragraph_count = count_paragraphs(trimmed)
        length = len(trimmed)

        return ContentCandidate(
            source=source,
            html=trimmed,
            metrics=CandidateMetrics(
                has_blocks=has_blocks,
                paragraph_count=paragraph_count,
                length=length,
                content_score=compute_content_score(has_blocks, length, paragraph_count),
                is_substantial=(
                    has_blocks
                    or length > self.settings.substantial_length
                    or paragraph_count >= self.settings.substantial_paragraphs
                ),
            ),
            used_plain_text_wrapper=used_wrapper,
            removed_boilerplate=cleaned != processed,
        )

    def _choose_body(self, candidates, reasons):
        evaluated: Dict[CandidateSource, ContentCandidate] = {}
        chosen: Optional[ContentCandidate] = None
        largest: Optional[ContentCandidate] = None

        for source in SOURCE_PRIORITY:
            candidate = self.evaluate_candidate(source, candidates.get(source))
            if candidate is None:
                continue
            evaluated[source] = candidate

            if largest is None or candidate.metrics.length > largest.metrics.length:
                largest = candidate
            if chosen is None and candidate.metrics.is_substantial:
                chosen = candidate

        if chosen is None and largest is not None:
            chosen = largest
            self._add_reason(reasons, "fallback-largest")

        chosen_source = chosen.source if chosen is not None else EMPTY_SOURCE
        return evaluated, chosen, chosen_source

    def _add_body_reasons(self, candidate: ContentCandidate, reasons: List[str]) -> None:
        metrics = candidate.metrics
        if metrics.has_blocks:
            self._add_reason(reasons, "has-block-tags")
        if metrics.length > self.settings.substantial_length:
            self._add_reason(reasons, f"length>{self.settings.substantial_length}")
        if metrics.paragraph_count >= self.settings.substantial_paragraphs:
            self._add_reason(reasons, f"p-count>={self.settings.substantial_paragraphs}")
        if candidate.used_plain_text_wrapper:
            self._add_reason(reasons, "wrapped-plaintext")
        if candidate.removed_boilerplate:
            self._add_reason(reasons, "boilerplate-removed")

    def _choose_lead(self, evaluated, chosen_source, body_html, reasons):
        description = evaluated.get(CandidateSource.DESCRIPTION_OR_SUMMARY)
        if description is None or chosen_source == CandidateSource.DESCRIPTION_OR_SUMMARY:
            return None, False, 0.0

        dedupe_ratio = compute_dedupe_ratio(
            normalize_for_comparison(body_html),
            normalize_for_comparison(description.html),
        )
        if dedupe_ratio >= self.settings.dedupe_threshold:
            self._add_reason(reasons, "description-similar-omitted")
            return None, False, dedupe_ratio

        limit = self.settings.lead_text_limit
        lead = truncate_by_text_length(description.html, limit)
        if lead.truncated:
            self._add_reason(reasons, f"lead-truncated-{limit}")

        return lead.html.strip(), True, dedupe_ratio

    @staticmethod
    def _add_reason(reasons: List[str], reason: str) -> None:
        if reason not in reasons:
            reasons.append(reason)


def select_body_and_lead(
    item: Union[NormalizedFeedItem, Mapping[str, Any]],
    settings: Optional[SelectionSettings] = None,
) -> BodyLeadSelection:
    """Run a default :class:`BodyLeadSelector` over ``item``."""
    return BodyLeadSelector(settings).select(item)
