"""
HTML Sanitizer
==============

Allowlist sanitizer for article markup, built on BeautifulSoup.

This module provides:
- Tag allowlisting (unknown tags are unwrapped, dangerous ones dropped)
- Attribute rebuilding from scratch for every kept element
- Link, image and iframe URL normalization
- Boilerplate removal for known promotional blocks

Diagnostics are gathered in a :class:`SanitizeContext` that the caller
owns and passes down through the walk.
"""

import html
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import CData, Comment, Declaration, Doctype, ProcessingInstruction

from ..config.settings import AssemblySettings
from .url_normalizer import EMBED_SCHEMES, HTTP_SCHEMES, LINK_SCHEMES, NormalizedUrl, UrlNormalizer

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
BOILERPLATE_CLASS = "outpost-pub-container"
READ_MORE_PHRASES = {"read more", "continue reading"}

WHITESPACE_PATTERN = re.compile(r"\s+")
TRAILING_PUNCTUATION_PATTERN = re.compile(r"[.!?…›»→-]+$")
LEADING_INT_PATTERN = re.compile(r"^\s*([+-]?\d+)")

# Markup nodes that never reach the output
_SKIPPED_STRING_TYPES = (Comment, CData, ProcessingInstruction, Doctype, Declaration)


def looks_like_image_path(path: str) -> bool:
    """True when a URL path names an image file."""
    if not path or len(path) <= 1:
        return False
    return path.lower().endswith(IMAGE_EXTENSIONS)


def sanitize_class_value(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    classes = value.split()
    return " ".join(classes) if classes else None


def parse_positive_int(value: Optional[str]) -> Optional[int]:
    if not isinstance(value, str):
        return None
    match = LEADING_INT_PATTERN.match(value)
    if not match:
        return None
    number = int(match.group(1))
    return number if number > 0 else None


def escape_attr(value: str) -> str:
    return html.escape(value, quote=True)


@dataclass
class SanitizedNode:
    """One top-level piece of sanitized output."""

    kind: str  # "text" or "element"
    html: str
    text: str = ""
    tag: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)

    @property
    def is_element(self) -> bool:
        return self.kind == "element"

    def has_class_prefix(self, prefix: str) -> bool:
        return any(name.startswith(prefix) for name in self.attributes.get("class", "").split())


@dataclass
class SanitizedFragment:
    html: str
    nodes: List[SanitizedNode]


@dataclass
class SanitizeContext:
    """Per-article accumulator threaded through the sanitizer."""

    urls: UrlNormalizer
    options: AssemblySettings
    expected_top_image_url: Optional[str] = None
    inline_image_candidate: Optional[str] = None
    removed_embeds: int = 0
    link_fixes: int = 0
    tracker_params_removed: int = 0
    kept_embeds_hosts: List[str] = field(default_factory=list)

    def normalize_url(self, raw_value: Optional[str], allowed_schemes) -> Optional[NormalizedUrl]:
        """Normalize a URL from the markup and count the fix."""
        result = self.urls.normalize(raw_value, allowed_schemes)
        if result is not None:
            self.link_fixes += 1
            self.tracker_params_removed += result.removed_params
        return result

    def keep_embed_host(self, host: str) -> None:
        if host not in self.kept_embeds_hosts:
            self.kept_embeds_hosts.append(host)


class _OpenElement:
    """An element whose children are still being sanitized.

    ``build`` turns the sanitized children into the element's output; without
    it the children are passed through unwrapped.
    """

    __slots__ = ("children", "collected", "build")

    def __init__(
        self,
        children,
        build: Optional[Callable[[List[SanitizedNode]], List[SanitizedNode]]] = None,
    ):
        self.children = iter(list(children))
        self.collected: List[SanitizedNode] = []
        self.build = build

    def close(self) -> List[SanitizedNode]:
        return self.build(self.collected) if self.build else self.collected


class HtmlSanitizer:
    """Rebuild markup from an allowlist of tags and attributes."""

    # HTML elements that survive sanitization
    ALLOWED_TAGS = {
        "p",
        "h1",
        "h2",
        "h3",
        "ul",
        "ol",
        "li",
        "a",
        "img",
        "blockquote",
        "strong",
        "em",
        "code",
        "pre",
        "figure",
        "figcaption",
        "hr",
        "br",
    }

    # HTML elements to completely remove (including content)
    DROP_CONTENT_TAGS = {
        "script",
        "style",
        "object",
        "embed",
        "form",
        "input",
        "button",
        "video",
        "audio",
    }

    VOID_TAGS = {"img", "hr", "br"}

    def __init__(self):
        self.parser = "html.parser"

    def sanitize_fragment(self, markup: str, context: SanitizeContext) -> SanitizedFragment:
        """Sanitize ``markup`` and return the serialized HTML with its top-level nodes."""
        if not markup:
            return SanitizedFragment(html="", nodes=[])

        soup = BeautifulSoup(markup, self.parser, multi_valued_attributes=None)
        nodes = self._sanitize_children(soup.contents, context)

        if context.options.strip_known_boilerplates:
            nodes = [node for node in nodes if not self._is_read_more_paragraph(node)]
            while nodes and nodes[-1].kind == "text" and not nodes[-1].text.strip():
                nodes.pop()

        serialized = "\n".join(node.html for node in nodes).strip()
        return SanitizedFragment(html=serialized, nodes=nodes)

    def _sanitize_children(self, children, context: SanitizeContext) -> List[SanitizedNode]:
        """Walk ``children`` depth-first with an explicit stack.

        Feed markup can nest wrappers arbitrarily deep, so the walk must not
        use one Python frame per level.
        """
        stack = [_OpenElement(children)]
        while True:
            current = stack[-1]
            child = next(current.children, None)
            if child is None:
                stack.pop()
                nodes = current.close()
                if not stack:
                    return nodes
                stack[-1].collected.extend(nodes)
                continue

            visited = self._visit(child, context)
            if isinstance(visited, _OpenElement):
                stack.append(visited)
            else:
                current.collected.extend(visited)

    def _visit(self, node, context: SanitizeContext):
        """Sanitize a leaf, or return an :class:`_OpenElement` whose children still need a walk."""
        if isinstance(node, _SKIPPED_STRING_TYPES):
            return []
        if isinstance(node, NavigableString):
            text = str(node)
            if not text:
                return []
            return [SanitizedNode(kind="text", html=html.escape(text, quote=False), text=text)]
        if not isinstance(node, Tag):
            return []

        tag_name = (node.name or "").lower()
        if not tag_name:
            return _OpenElement(node.contents)

        if context.options.strip_known_boilerplates and self._has_class(node, BOILERPLATE_CLASS):
            return []

        if tag_name == "iframe":
            return self._sanitize_iframe(node, context)

        if tag_name in self.DROP_CONTENT_TAGS:
            return []

        if tag_name not in self.ALLOWED_TAGS:
            return _OpenElement(node.contents)

        if tag_name == "a":
            normalized = context.normalize_url(node.get("href"), LINK_SCHEMES)
            if normalized is None:
                return _OpenElement(node.contents)
            return _OpenElement(
                node.contents, lambda children: self._build_anchor(node, normalized, children)
            )
        if tag_name == "img":
            return self._sanitize_image(node, context)
        if tag_name in ("br", "hr"):
            return [SanitizedNode(kind="element", html=f"<{tag_name}>", tag=tag_name)]

        return _OpenElement(
            node.contents, lambda children: self._build_generic(node, tag_name, children)
        )

    def _build_anchor(
        self, node: Tag, normalized: NormalizedUrl, children: List[SanitizedNode]
    ) -> List[SanitizedNode]:
        attributes = {"href": normalized.value}

        class_value = sanitize_class_value(node.get("class"))
        if class_value:
            attributes["class"] = class_value

        title = node.get("title")
        if isinstance(title, str) and title.strip():
            attributes["title"] = title.strip()

        if normalized.is_http:
            attributes["target"] = "_blank"
            attributes["rel"] = "noopener noreferrer"

        inner = "".join(child.html for child in children)
        return [
            SanitizedNode(
                kind="element",
                html=f"<a {self._render_attributes(attributes)}>{inner}</a>",
                text="".join(child.text for child in children),
                tag="a",
                attributes=attributes,
            )
        ]

    def _sanitize_image(self, node: Tag, context: SanitizeContext) -> List[SanitizedNode]:
        normalized = context.normalize_url(node.get("src"), HTTP_SCHEMES)
        if normalized is None or not looks_like_image_path(normalized.path):
            return []

        attributes = {"src": normalized.value}

        class_value = sanitize_class_value(node.get("class"))
        if class_value:
            attributes["class"] = class_value

        alt = node.get("alt")
        attributes["alt"] = alt if isinstance(alt, str) else ""

        title = node.get("title")
        if isinstance(title, str) and title.strip():
            attributes["title"] = title.strip()

        for dimension in ("width", "height"):
            size = parse_positive_int(node.get(dimension))
            if size is not None:
                attributes[dimension] = str(size)

        attributes["loading"] = "lazy"
        attributes["decoding"] = "async"

        if not context.inline_image_candidate and normalized.value != context.expected_top_image_url:
            context.inline_image_candidate = normalized.value

        return [
            SanitizedNode(
                kind="element",
                html=f"<img {self._render_attributes(attributes)}>",
                tag="img",
                attributes=attributes,
            )
        ]

    def _sanitize_iframe(self, node: Tag, context: SanitizeContext) -> List[SanitizedNode]:
        if not context.options.keep_embeds:
            context.removed_embeds += 1
            return []

        normalized = context.normalize_url(node.get("src"), EMBED_SCHEMES)
        if normalized is None or normalized.host not in context.options.allowed_iframe_hosts:
            context.removed_embeds += 1
            return []

        context.keep_embed_host(normalized.host)

        attributes = {"src": normalized.value, "loading": "lazy", "allowfullscreen": ""}

        class_value = sanitize_class_value(node.get("class"))
        if class_value:
            attributes["class"] = class_value

        title = node.get("title")
        if isinstance(title, str) and title.strip():
            attributes["title"] = title.strip()

        for dimension in ("width", "height"):
            size = parse_positive_int(node.get(dimension))
            if size is not None:
                attributes[dimension] = str(size)

        return [
            SanitizedNode(
                kind="element",
                html=f"<iframe {self._render_attributes(attributes)}></iframe>",
                tag="iframe",
                attributes=attributes,
            )
        ]

    def _build_generic(
        self, node: Tag, tag_name: str, children: List[SanitizedNode]
    ) -> List[SanitizedNode]:
        attributes = {}
        class_value = sanitize_class_value(node.get("class"))
        if class_value:
            attributes["class"] = class_value

        attr_string = f" {self._render_attributes(attributes)}" if attributes else ""
        inner = "".join(child.html for child in children)
        closing = "" if tag_name in self.VOID_TAGS else f"</{tag_name}>"

        return [
            SanitizedNode(
                kind="element",
                html=f"<{tag_name}{attr_string}>{inner}{closing}",
                text="".join(child.text for child in children),
                tag=tag_name,
                attributes=attributes,
            )
        ]

    @staticmethod
    def _render_attributes(attributes: Dict[str, str]) -> str:
        parts = []
        for name, value in attributes.items():
            # Boolean attributes render bare
            if name == "allowfullscreen":
                parts.append(name)
            else:
                parts.append(f'{name}="{escape_attr(value)}"')
        return " ".join(parts)

    @staticmethod
    def _has_class(node: Tag, class_name: str) -> bool:
        value = node.get("class")
        if not isinstance(value, str):
            return False
        return class_name in value.lower().split()

    @staticmethod
    def _is_read_more_paragraph(node: SanitizedNode) -> bool:
        if not node.is_element or node.tag != "p":
            return False
        text = WHITESPACE_PATTERN.sub(" ", node.text).strip().lower()
        text = TRAILING_PUNCTUATION_PATTERN.sub("", text).strip()
        return text in READ_MORE_PHRASES
