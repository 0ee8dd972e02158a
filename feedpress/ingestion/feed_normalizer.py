"""
Feed Item Normalizer
====================

Turns a parsed RSS 2.0, Atom 1.0 or RSS 1.0/RDF entry into a
:class:`NormalizedFeedItem`.

The raw entry is the mapping an XML parser produces with ``@_``-prefixed
attributes and ``#text`` text nodes. Missing data never stops
normalization: absent fields come back empty and a warning is logged.
"""

import html
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Mapping, Optional

from ..utils.exceptions import InvalidInputError
from ..utils.logging import get_logger_for_component
from .models import (
    EnclosureImage,
    FeedMedia,
    GuidInfo,
    MediaResource,
    NormalizedFeedItem,
    RawHtmlCandidates,
    SourceFeed,
)
from .xml_node import (
    TEXT_NODE_KEYS,
    XmlElement,
    XmlList,
    XmlNode,
    XmlText,
    extract_first_text,
    iter_nodes,
    to_node,
)

IMG_SRC_PATTERN = re.compile(
    r"""<img\b[^>]*?\bsrc\s*=\s*("([^"]+)"|'([^']+)'|([^"'\s>]+))""",
    re.IGNORECASE,
)
LEADING_INT_PATTERN = re.compile(r"^\s*([+-]?\d+)")

DATE_FIELDS = ("pubDate", "published", "updated")
CATEGORY_FIELDS = ("category", "categories", "dc:subject")
CATEGORY_ATTRIBUTES = ("term", "label", "scheme")

TRUE_VALUES = {"true", "1", "yes"}
FALSE_VALUES = {"false", "0", "no"}


def _decode_and_trim(node: Optional[XmlNode]) -> Optional[str]:
    raw = extract_first_text(node)
    if raw is None:
        return None
    decoded = html.unescape(raw).strip()
    return decoded or None


def _raw_html(node: Optional[XmlNode]) -> Optional[str]:
    return extract_first_text(node)


def _parse_bool(node: Optional[XmlNode]) -> Optional[bool]:
    raw = extract_first_text(node)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    return None


def _parse_int(node: Optional[XmlNode]) -> Optional[int]:
    raw = extract_first_text(node)
    if raw is None:
        return None
    match = LEADING_INT_PATTERN.match(raw)
    return int(match.group(1)) if match else None


def _parse_date(text: str) -> Optional[datetime]:
    text = text.strip()
    if not text:
        return None

    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        parsed = None

    if parsed is None:
        iso_text = text[:-1] + "+00:00" if text[-1] in "zZ" else text
        try:
            parsed = datetime.fromisoformat(iso_text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # Offset pushes the instant outside datetime's range
        return None


class FeedNormalizer:
    """Normalize raw feed entries.

    Args:
        logger: Anything with a ``warning(msg, extra=...)`` method. Defaults
            to the ``feed_normalizer`` component logger.
    """

    def __init__(self, logger=None):
        self.logger = logger or get_logger_for_component("feed_normalizer")

    def normalize(
        self, raw_item: Mapping[str, Any], feed_url: Optional[str] = None
    ) -> NormalizedFeedItem:
        """Normalize one parsed entry.

        Args:
            raw_item: Entry mapping produced by the XML parser
            feed_url: URL of the feed the entry came from

        Returns:
            Normalized feed item

        Raises:
            InvalidInputError: If raw_item is not a mapping
        """
        if not isinstance(raw_item, Mapping):
            raise InvalidInputError(
                f"raw_item must be a mapping, got {type(raw_item).__name__}",
                field_name="raw_item",
            )

        item = to_node(raw_item)

        title = _decode_and_trim(item.child("title")) or ""
        canonical_url = self._resolve_canonical_url(item)
        candidates = self._build_candidates(item)
        guid = self._extract_guid(item)

        normalized = NormalizedFeedItem(
            title=title,
            canonical_url=canonical_url,
            published_at_iso=self._format_published_date(item),
            author=self._extract_author(item),
            categories=self._normalize_categories(item),
            raw_html_candidates=candidates,
            media=self._build_media(item, candidates),
            guid=guid,
            source_feed=SourceFeed(url=feed_url) if feed_url else None,
        )

        log_extra = {"feed_url": feed_url, "guid": guid.guid if guid else None}
        if not title:
            self.logger.warning("Feed item missing title", extra=log_extra)
        if not canonical_url:
            self.logger.warning("Feed item missing canonical URL", extra=log_extra)

        return normalized

    # Canonical URL

    def _resolve_canonical_url(self, item: XmlElement) -> Optional[str]:
        orig_link = _decode_and_trim(item.child("feedburner:origLink"))
        if orig_link:
            return orig_link

        link = item.child("link")
        is_atom_link = isinstance(link, XmlList) or (
            isinstance(link, XmlElement) and "href" in link.attributes
        )
        if is_atom_link:
            atom_link = self._extract_atom_link(link)
            if atom_link:
                return atom_link

        return _decode_and_trim(link)

    @staticmethod
    def _extract_atom_link(link: XmlNode) -> Optional[str]:
        """Pick rel="alternate", else the first link without rel, else rel="self"."""
        fallback = None

        for entry in iter_nodes(link):
            if isinstance(entry, XmlText):
                url = _decode_and_trim(entry)
                if url and not fallback:
                    fallback = url
                continue

            if not isinstance(entry, XmlElement):
                continue

            rel_node = entry.get_attr("rel")
            rel = rel_node.value.strip().lower() if isinstance(rel_node, XmlText) else None
            href = _decode_and_trim(entry.get_attr("href") or entry)
            if not href:
                continue

            if rel == "alternate":
                return href
            if not fallback and (not rel or rel == "self"):
                fallback = href

        return fallback

    # Dates, authors, categories

    @staticmethod
    def _format_published_date(item: XmlElement) -> Optional[str]:
        for field_name in DATE_FIELDS:
            text = extract_first_text(item.child(field_name))
            if not text:
                continue
            parsed = _parse_date(text)
            if parsed is not None:
                return parsed.date().isoformat()
        return None

    @staticmethod
    def _extract_author(item: XmlElement) -> Optional[str]:
        creator = _decode_and_trim(item.child("dc:creator"))
        if creator:
            return creator

        author = item.child("author")
        if isinstance(author, XmlElement):
            name = _decode_and_trim(author.child("name"))
            if name:
                return name

        return _decode_and_trim(author)

    def _normalize_categories(self, item: XmlElement) -> List[str]:
        seen: Dict[str, str] = {}
        for field_name in CATEGORY_FIELDS:
            for value in self._collect_category_strings(item.child(field_name)):
                decoded = html.unescape(value).strip()
                if not decoded:
                    continue
                seen.setdefault(decoded.lower(), decoded)
        return list(seen.values())

    def _collect_category_strings(self, node: Optional[XmlNode]) -> List[str]:
        if node is None:
            return []
        if isinstance(node, XmlText):
            return [node.value]
        if isinstance(node, XmlList):
            values = []
            for entry in node.items:
                values.extend(self._collect_category_strings(entry))
            return values

        values = [
            node.attributes[name] for name in CATEGORY_ATTRIBUTES if name in node.attributes
        ]
        for key in TEXT_NODE_KEYS:
            if node.has_child(key):
                values.extend(self._collect_category_strings(node.child(key)))
        return values

    # Content and media

    @staticmethod
    def _build_candidates(item: XmlElement) -> RawHtmlCandidates:
        description = _raw_html(item.child("description"))
        if description is None or not description.strip():
            description = _raw_html(item.child("summary"))

        return RawHtmlCandidates(
            content_encoded=_raw_html(item.child("content:encoded")),
            content=_raw_html(item.child("content")),
            description_or_summary=description,
        )

    def _build_media(
        self, item: XmlElement, candidates: RawHtmlCandidates
    ) -> Optional[FeedMedia]:
        media = FeedMedia(
            media_content=self._collect_media_resources(item.child("media:content")),
            media_thumbnail=self._collect_media_resources(item.child("media:thumbnail")),
            enclosure_image=self._select_enclosure_image(item.child("enclosure")),
            inline_images=self._collect_inline_images(candidates.ordered()),
        )
        return None if media.is_empty() else media

    @staticmethod
    def _collect_media_resources(node: Optional[XmlNode]) -> List[MediaResource]:
        resources = []
        for entry in iter_nodes(node):
            if not isinstance(entry, XmlElement):
                continue
            url = _decode_and_trim(entry.get_attr("url"))
            if not url:
                continue
            resources.append(
                MediaResource(
                    url=url,
                    width=_parse_int(entry.get_attr("width")),
                    height=_parse_int(entry.get_attr("height")),
                )
            )
        return resources

    @staticmethod
    def _select_enclosure_image(node: Optional[XmlNode]) -> Optional[EnclosureImage]:
        for entry in iter_nodes(node):
            if not isinstance(entry, XmlElement):
                continue
            mime_type = _decode_and_trim(entry.get_attr("type"))
            if mime_type and not mime_type.lower().startswith("image/"):
                continue
            url = _decode_and_trim(entry.get_attr("url"))
            if not url:
                continue
            return EnclosureImage(url=url, type=mime_type)
        return None

    @staticmethod
    def _collect_inline_images(candidates: List[Optional[str]]) -> List[str]:
        images: List[str] = []
        for markup in candidates:
            if not markup:
                continue
            for match in IMG_SRC_PATTERN.finditer(markup):
                raw_src = match.group(2) or match.group(3) or match.group(4)
                if not raw_src:
                    continue
                src = html.unescape(raw_src).strip()
                if src and src not in images:
                    images.append(src)
        return images

    @staticmethod
    def _extract_guid(item: XmlElement) -> Optional[GuidInfo]:
        guid_node = item.child("guid")
        guid = _decode_and_trim(guid_node)
        is_perma_link = None
        if isinstance(guid_node, XmlElement):
            is_perma_link = _parse_bool(guid_node.get_attr("isPermaLink"))

        if not guid and is_perma_link is None:
            return None
        return GuidInfo(guid=guid, is_perma_link=is_perma_link)


def normalize_feed_item(
    raw_item: Mapping[str, Any], feed_url: Optional[str] = None, logger=None
) -> NormalizedFeedItem:
    """Normalize a single entry with a throwaway :class:`FeedNormalizer`."""
    return FeedNormalizer(logger=logger).normalize(raw_item, feed_url=feed_url)
