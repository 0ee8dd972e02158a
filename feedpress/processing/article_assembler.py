"""
Article Assembler
=================

Builds the final article HTML for a normalized entry:
- picks the main (hero) image from media metadata
- composes lead, hero figure, body and a metadata block
- sanitizes the composition against a strict allowlist
- enforces the HTML size budget and derives a plain-text excerpt
"""

import html
import re
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from ..config.settings import AssemblySettings
from ..ingestion.models import FeedMedia, MediaResource, NormalizedFeedItem
from ..utils.exceptions import ConfigurationError, ErrorCode, InvalidInputError
from ..utils.logging import get_logger_for_component
from .models import (
    ArticleAssemblyResult,
    AssemblyDiagnostics,
    BodyLeadSelection,
    ImageSource,
)
from .html_tokens import close_open_tags
from .sanitizer import (
    HtmlSanitizer,
    SanitizeContext,
    SanitizedNode,
    looks_like_image_path,
)
from .url_normalizer import HTTP_SCHEMES, UrlNormalizer, is_http_url

TRUNCATION_NOTICE = "<p><em>Content truncated.</em></p>"
TRUNCATION_CLOSING_TAGS = (
    "</p>",
    "</figure>",
    "</ul>",
    "</ol>",
    "</pre>",
    "</code>",
    "</blockquote>",
    "</h1>",
    "</h2>",
    "</h3>",
    "</li>",
)
ELLIPSIS = "…"
EXCERPT_BACKOFF_RATIO = 0.6
META_CLASS_PREFIX = "article-meta"

LEAD_PARAGRAPH_PATTERN = re.compile(r"^<p\b([^>]*)>([\s\S]*)</p>$", re.IGNORECASE)
CLASS_ATTR_PATTERN = re.compile(
    r"""\bclass\s*=\s*("([^"]*)"|'([^']*)'|([^\s"'>]+))""", re.IGNORECASE
)
WHITESPACE_PATTERN = re.compile(r"\s+")
PARTIAL_TAG_PATTERN = re.compile(r"<[^>]*$")


def add_lead_class(lead_html: Optional[str]) -> str:
    """Mark the lead paragraph with the ``lead`` class, wrapping it if needed."""
    if not isinstance(lead_html, str):
        return ""
    trimmed = lead_html.strip()
    if not trimmed:
        return ""

    match = LEAD_PARAGRAPH_PATTERN.match(trimmed)
    if not match:
        return f'<p class="lead">{trimmed}</p>'

    attrs, inner = match.group(1), match.group(2)
    class_match = CLASS_ATTR_PATTERN.search(attrs)
    if class_match:
        value = class_match.group(2) or class_match.group(3) or class_match.group(4) or ""
        classes = value.split()
        if "lead" not in classes:
            classes.append("lead")
        attrs = attrs.replace(class_match.group(0), f' class="{" ".join(classes)}"', 1)
    else:
        attrs = f'{attrs} class="lead"'

    attrs = WHITESPACE_PATTERN.sub(" ", attrs).strip()
    attr_part = f" {attrs}" if attrs else ""
    return f"<p{attr_part}>{inner}</p>"


def build_meta_html(item: NormalizedFeedItem) -> str:
    """Author, date, source link and tags as ``article-meta`` paragraphs."""
    parts = []
    if item.author:
        parts.append(
            '<p class="article-meta article-meta-author">'
            f"<strong>Author:</strong> {html.escape(item.author)}</p>"
        )
    if item.published_at_iso:
        parts.append(
            '<p class="article-meta article-meta-date">'
            f"<strong>Published:</strong> {html.escape(item.published_at_iso)}</p>"
        )
    if item.canonical_url:
        url = html.escape(item.canonical_url)
        parts.append(
            '<p class="article-meta article-meta-source">'
            f'<strong>Source:</strong> <a href="{url}">{url}</a></p>'
        )
    if item.categories:
        parts.append(
            '<p class="article-meta article-meta-tags">'
            f"<strong>Tags:</strong> {html.escape(', '.join(item.categories))}</p>"
        )
    return "\n".join(parts)


def _cut_at_closing_tag(value: str) -> str:
    cut_index = -1
    for closing in TRUNCATION_CLOSING_TAGS:
        index = value.rfind(closing)
        if index != -1:
            cut_index = max(cut_index, index + len(closing))
    if cut_index > -1:
        value = value[:cut_index]
    else:
        value = PARTIAL_TAG_PATTERN.sub("", value)
    return value.rstrip()


def truncate_article_html(article_html: str, max_bytes: int) -> Tuple[str, bool]:
    """Fit ``article_html`` into ``max_bytes`` UTF-8 bytes.

    Content is cut after the last block closing tag that leaves room for
    the truncation notice, which is then appended. Without such a tag the
    cut is made at the byte budget and open elements are closed.
    """
    if not article_html:
        return article_html, False

    encoded = article_html.encode("utf-8")
    if len(encoded) <= max_bytes:
        return article_html, False

    budget = max(max_bytes - len(TRUNCATION_NOTICE.encode("utf-8")) - 1, 0)
    window = budget
    while True:
        kept = _cut_at_closing_tag(encoded[:window].decode("utf-8", errors="ignore"))
        kept = close_open_tags(kept)
        overflow = len(kept.encode("utf-8")) - budget
        if overflow <= 0:
            break
        # Closing tags are paid for out of the same budget
        window = max(window - overflow, 0)

    separator = "\n" if kept else ""
    return f"{kept}{separator}{TRUNCATION_NOTICE}", True


def generate_excerpt(nodes: Sequence[SanitizedNode], max_chars: int) -> str:
    """Plain-text summary of the sanitized top-level nodes.

    Figures and metadata paragraphs are skipped. Long text is cut at
    ``max_chars``, backing off to a word boundary when one falls in the
    last 40% of the window.
    """
    parts = []
    for node in nodes:
        if node.is_element and (node.tag == "figure" or node.has_class_prefix(META_CLASS_PREFIX)):
            continue
        if node.text.strip():
            parts.append(node.text)
    if not parts:
        return ""

    text = WHITESPACE_PATTERN.sub(" ", html.unescape(" ".join(parts))).strip()
    if len(text) <= max_chars:
        return text

    truncated = text[:max_chars]
    last_space = truncated.rfind(" ")
    if last_space >= int(max_chars * EXCERPT_BACKOFF_RATIO):
        truncated = truncated[:last_space]
    return f"{truncated.rstrip()}{ELLIPSIS}"


class ArticleAssembler:
    """Assemble sanitized article HTML, main image and excerpt.

    Args:
        options: Default assembly options (settings model or mapping)
    """

    def __init__(self, options: Union[AssemblySettings, Mapping[str, Any], None] = None):
        self.options = self._coerce_options(options)
        self.sanitizer = HtmlSanitizer()
        self.logger = get_logger_for_component("article_assembler")

    @staticmethod
    def _coerce_options(options) -> AssemblySettings:
        if options is None:
            return AssemblySettings()
        if isinstance(options, AssemblySettings):
            return options
        if not isinstance(options, Mapping):
            raise InvalidInputError(
                f"options must be AssemblySettings or a mapping, got {type(options).__name__}",
                field_name="options",
            )
        try:
            return AssemblySettings.model_validate(dict(options))
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid assembly options: {e}",
                config_key="assembly",
                error_code=ErrorCode.CONFIG_INVALID,
            ) from e

    def assemble(
        self,
        item: Union[NormalizedFeedItem, Mapping[str, Any]],
        content_choice: Union[BodyLeadSelection, Mapping[str, Any]],
        options: Union[AssemblySettings, Mapping[str, Any], None] = None,
    ) -> ArticleAssemblyResult:
        """Build the article for ``item`` from the selected body and lead.

        Args:
            item: Normalized feed item (model or camelCase mapping)
            content_choice: Selection result, or a mapping with bodyHtmlRaw/leadHtmlRaw
            options: Per-call options overriding the assembler defaults

        Returns:
            Sanitized article with diagnostics

        Raises:
            InvalidInputError: If item or content_choice has the wrong type
            ConfigurationError: If options fail validation
        """
        item = self._coerce_item(item)
        body_html, lead_html = self._read_choice(content_choice)
        opts = self._coerce_options(options) if options is not None else self.options

        base_urls = [
            url
            for url in (item.canonical_url, item.source_feed.url if item.source_feed else None)
            if is_http_url(url)
        ]
        urls = UrlNormalizer(base_urls, opts.tracker_params_remove_list)
        context = SanitizeContext(urls=urls, options=opts)

        image_source, image_url = self._select_main_image(item.media, urls)
        if image_url and opts.inject_top_image:
            context.expected_top_image_url = image_url

        base_html = self._compose(item, body_html, lead_html, image_url, opts)
        fragment = self.sanitizer.sanitize_fragment(base_html, context)

        article_html, truncated = truncate_article_html(fragment.html, opts.max_html_bytes)
        if truncated:
            self.logger.info(
                "Article HTML truncated",
                extra={"canonical_url": item.canonical_url, "max_html_kb": opts.max_html_kb},
            )

        excerpt = generate_excerpt(fragment.nodes, opts.excerpt_max_chars)

        if not image_url and context.inline_image_candidate:
            image_url = context.inline_image_candidate
            image_source = ImageSource.INLINE
        if not image_url:
            image_source = ImageSource.NONE

        return ArticleAssemblyResult(
            article_html=article_html,
            main_image_url=image_url,
            excerpt=excerpt,
            diagnostics=AssemblyDiagnostics(
                image_source=image_source,
                removed_embeds=context.removed_embeds,
                link_fixes=context.link_fixes,
                tracker_params_removed=context.tracker_params_removed,
                truncated=truncated,
                kept_embeds_hosts=list(context.kept_embeds_hosts),
            ),
        )

    @staticmethod
    def _coerce_item(item) -> NormalizedFeedItem:
        if isinstance(item, NormalizedFeedItem):
            return item
        if not isinstance(item, Mapping):
            raise InvalidInputError(
                f"item must be a NormalizedFeedItem or mapping, got {type(item).__name__}",
                field_name="item",
            )
        try:
            return NormalizedFeedItem.model_validate(dict(item))
        except PydanticValidationError as e:
            raise InvalidInputError(f"item is not a normalized feed item: {e}", field_name="item") from e

    @staticmethod
    def _read_choice(content_choice) -> Tuple[str, Optional[str]]:
        if isinstance(content_choice, BodyLeadSelection):
            return content_choice.body_html_raw, content_choice.lead_html_raw
        if not isinstance(content_choice, Mapping):
            raise InvalidInputError(
                "content_choice must be a BodyLeadSelection or mapping, "
                f"got {type(content_choice).__name__}",
                field_name="content_choice",
            )
        body = content_choice.get("bodyHtmlRaw", content_choice.get("body_html_raw"))
        lead = content_choice.get("leadHtmlRaw", content_choice.get("lead_html_raw"))
        return (
            body if isinstance(body, str) else "",
            lead if isinstance(lead, str) else None,
        )

    def _select_main_image(
        self, media: Optional[FeedMedia], urls: UrlNormalizer
    ) -> Tuple[ImageSource, Optional[str]]:
        if media is None:
            return ImageSource.NONE, None

        best = self._best_media_resource(media.media_content, urls)
        if best:
            return ImageSource.MEDIA_CONTENT, best

        best = self._best_media_resource(media.media_thumbnail, urls)
        if best:
            return ImageSource.THUMBNAIL, best

        enclosure = media.enclosure_image
        if enclosure is not None:
            mime_type = (enclosure.type or "").lower()
            if not mime_type or mime_type.startswith("image/"):
                normalized = urls.normalize(enclosure.url, HTTP_SCHEMES)
                if normalized and looks_like_image_path(normalized.path):
                    return ImageSource.ENCLOSURE, normalized.value

        return ImageSource.NONE, None

    @staticmethod
    def _best_media_resource(
        resources: List[MediaResource], urls: UrlNormalizer
    ) -> Optional[str]:
        best_url = None
        best_area = -1
        for resource in resources:
            normalized = urls.normalize(resource.url, HTTP_SCHEMES)
            if normalized is None or not looks_like_image_path(normalized.path):
                continue
            if resource.area > best_area:
                best_url, best_area = normalized.value, resource.area
        return best_url

    @staticmethod
    def _compose(
        item: NormalizedFeedItem,
        body_html: str,
        lead_html: Optional[str],
        image_url: Optional[str],
        opts: AssemblySettings,
    ) -> str:
        segments = []
        lead = add_lead_class(lead_html)
        if lead:
            segments.append(lead)
        if opts.inject_top_image and image_url:
            segments.append(f'<figure><img src="{html.escape(image_url)}" alt=""></figure>')
        if body_html and body_html.strip():
            segments.append(body_html)
        meta = build_meta_html(item)
        if meta:
            segments.append(meta)
        return "\n".join(segments)


def assemble_article(
    item: Union[NormalizedFeedItem, Mapping[str, Any]],
    content_choice: Union[BodyLeadSelection, Mapping[str, Any]],
    options: Union[AssemblySettings, Mapping[str, Any], None] = None,
) -> ArticleAssemblyResult:
    """Assemble one article with a throwaway :class:`ArticleAssembler`."""
    return ArticleAssembler(options).assemble(item, content_choice)
