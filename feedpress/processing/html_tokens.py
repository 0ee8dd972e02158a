"""
HTML Token Stream
=================

A deliberately small HTML tokenizer for length-bounded truncation and tag
balancing. It does not build a tree and does not try to follow HTML5
parsing rules; the sanitizer handles real markup with BeautifulSoup.

Tokens:
- TAG_OPEN / TAG_CLOSE: ``<`` followed by at least one non-``>`` character
  and a closing ``>``. Comments and doctypes are TAG_OPEN with no name.
- ENTITY: ``&`` followed by ASCII letters, digits or ``#`` and a ``;``.
- TEXT: everything else, including a stray ``<`` or ``&``.
"""

import re
import string
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, NamedTuple, Optional

VOID_TAGS = frozenset({
    "area",
    "base",
    "br",
    "col",
    "embed",
    "hr",
    "img",
    "input",
    "link",
    "meta",
    "param",
    "source",
    "track",
    "wbr",
})

ELLIPSIS = "…"

_ENTITY_CHARS = frozenset(string.ascii_letters + string.digits + "#")
_TAG_NAME_PATTERN = re.compile(r"^</?\s*([a-z0-9:-]+)", re.IGNORECASE)

# Scanner states
_TEXT = "text"
_TAG = "tag"
_ENTITY = "entity"


class TokenType(str, Enum):
    TAG_OPEN = "tag_open"
    TAG_CLOSE = "tag_close"
    TEXT = "text"
    ENTITY = "entity"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    name: Optional[str] = None
    self_closing: bool = False

    @property
    def is_tag(self) -> bool:
        return self.type in (TokenType.TAG_OPEN, TokenType.TAG_CLOSE)


class TruncatedHtml(NamedTuple):
    html: str
    truncated: bool


def _tag_token(raw: str) -> Token:
    match = _TAG_NAME_PATTERN.match(raw)
    name = match.group(1).lower() if match else None
    if raw.startswith("</"):
        return Token(TokenType.TAG_CLOSE, raw, name=name)
    return Token(TokenType.TAG_OPEN, raw, name=name, self_closing=raw.endswith("/>"))


def tokenize(html: str) -> List[Token]:
    """Split markup into a flat token list.

    Concatenating the values of the returned tokens reproduces ``html``.
    """
    tokens: List[Token] = []
    if not html:
        return tokens

    state = _TEXT
    text_start = 0  # start of the pending text run
    mark = 0  # start of the tag or entity being scanned
    i = 0
    length = len(html)

    while i < length:
        ch = html[i]

        if state == _TEXT:
            if ch == "<":
                mark, state = i, _TAG
            elif ch == "&":
                mark, state = i, _ENTITY

        elif state == _TAG:
            if ch == ">":
                # "<>" is plain text
                if i - mark > 1:
                    if mark > text_start:
                        tokens.append(Token(TokenType.TEXT, html[text_start:mark]))
                    tokens.append(_tag_token(html[mark:i + 1]))
                    text_start = i + 1
                state = _TEXT

        else:
            if ch == ";" and i - mark > 1:
                if mark > text_start:
                    tokens.append(Token(TokenType.TEXT, html[text_start:mark]))
                tokens.append(Token(TokenType.ENTITY, html[mark:i + 1]))
                text_start = i + 1
                state = _TEXT
            elif ch not in _ENTITY_CHARS:
                # Not an entity after all; rescan this character as text
                state = _TEXT
                continue

        i += 1

    if text_start < length:
        tokens.append(Token(TokenType.TEXT, html[text_start:]))

    return tokens


class TagStack:
    """Open-element bookkeeping over a token stream."""

    def __init__(self):
        self._open: List[str] = []

    def feed(self, token: Token) -> None:
        if token.name is None:
            return

        if token.type is TokenType.TAG_CLOSE:
            # Pop the nearest matching element, leave the rest open
            for index in range(len(self._open) - 1, -1, -1):
                if self._open[index] == token.name:
                    del self._open[index]
                    break
            return

        if token.type is TokenType.TAG_OPEN:
            if token.name in VOID_TAGS or token.self_closing:
                return
            self._open.append(token.name)

    def feed_all(self, tokens: Iterable[Token]) -> "TagStack":
        for token in tokens:
            self.feed(token)
        return self

    @property
    def open_tags(self) -> List[str]:
        return list(self._open)

    def closing_markup(self) -> str:
        """Closing tags for every open element, innermost first."""
        return "".join(f"</{name}>" for name in reversed(self._open))

    def __len__(self) -> int:
        return len(self._open)


def close_open_tags(html: str) -> str:
    """Append closing tags for elements left open in ``html``."""
    stack = TagStack().feed_all(tokenize(html))
    if not len(stack):
        return html
    return html + stack.closing_markup()


def truncate_by_text_length(html: str, limit: int) -> TruncatedHtml:
    """Keep at most ``limit`` visible characters of ``html``.

    Tags are copied through without counting and an entity counts as one
    character. When text had to be dropped, trailing whitespace is trimmed,
    an ellipsis appended and any open elements closed.
    """
    if not html:
        return TruncatedHtml("", False)

    stack = TagStack()
    parts: List[str] = []
    count = 0
    truncated = False

    for token in tokenize(html):
        if token.is_tag:
            parts.append(token.value)
            stack.feed(token)
            continue

        if token.type is TokenType.ENTITY:
            if count >= limit:
                truncated = True
                break
            parts.append(token.value)
            count += 1
            continue

        room = limit - count
        if len(token.value) > room:
            parts.append(token.value[:room])
            truncated = True
            break
        parts.append(token.value)
        count += len(token.value)

    if not truncated:
        return TruncatedHtml(html, False)

    result = "".join(parts).rstrip() + ELLIPSIS + stack.closing_markup()
    return TruncatedHtml(result, True)


def strip_tags(html: str, replacement: str = " ") -> str:
    """Replace every tag token with ``replacement``; entities are kept."""
    return "".join(
        replacement if token.is_tag else token.value for token in tokenize(html)
    )
