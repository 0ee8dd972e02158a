"""
HTML Token Stream Tests
=======================

Tests for the tokenizer, tag balancing and text-length truncation.
"""

import pytest

from feedpress.processing.html_tokens import (
    ELLIPSIS,
    TagStack,
    TokenType,
    close_open_tags,
    strip_tags,
    tokenize,
    truncate_by_text_length,
)


class TestTokenize:
    """Test the token scanner."""

    def test_tags_text_and_entities(self):
        tokens = tokenize('<p class="x">a &amp; b</p>')

        assert [t.type for t in tokens] == [
            TokenType.TAG_OPEN,
            TokenType.TEXT,
            TokenType.ENTITY,
            TokenType.TEXT,
            TokenType.TAG_CLOSE,
        ]
        assert tokens[0].name == "p"
        assert tokens[2].value == "&amp;"
        assert tokens[4].name == "p"

    @pytest.mark.parametrize("markup", [
        "AT&T rocks",
        "1 < 2",
        "empty <> brackets",
        "dangling &; entity",
        "unterminated <p class='x'",
    ])
    def test_stray_characters_stay_text(self, markup):
        tokens = tokenize(markup)
        assert all(token.type is TokenType.TEXT for token in tokens)
        assert "".join(token.value for token in tokens) == markup

    def test_round_trip(self):
        markup = "<div><p>Caf&eacute; &#8212; <b>bold</b></p><br/>tail &amp"
        assert "".join(token.value for token in tokenize(markup)) == markup

    def test_self_closing_and_names(self):
        tokens = tokenize("<BR/><Custom-Tag>")
        assert tokens[0].name == "br"
        assert tokens[0].self_closing is True
        assert tokens[1].name == "custom-tag"

    def test_empty_input(self):
        assert tokenize("") == []


class TestTagBalancing:
    """Test TagStack and close_open_tags."""

    def test_closes_in_reverse_order(self):
        assert close_open_tags("<div><p>Text") == "<div><p>Text</p></div>"

    def test_void_and_self_closing_elements_are_ignored(self):
        assert close_open_tags("<p>a<br>b<img src='x'><custom/>") == (
            "<p>a<br>b<img src='x'><custom/></p>"
        )

    def test_balanced_markup_is_unchanged(self):
        markup = "<ul><li>One</li><li>Two</li></ul>"
        assert close_open_tags(markup) == markup

    def test_unmatched_close_tag_is_ignored(self):
        assert close_open_tags("<p>a</div>") == "<p>a</div></p>"

    def test_nearest_match_is_popped(self):
        stack = TagStack().feed_all(tokenize("<div><span><em>x</span>"))
        assert stack.open_tags == ["div", "em"]
        assert len(stack) == 2
        assert stack.closing_markup() == "</em></div>"


class TestTruncateByTextLength:
    """Test visible-length truncation."""

    def test_short_input_is_untouched(self):
        result = truncate_by_text_length("<p>Hello world</p>", 100)
        assert result.html == "<p>Hello world</p>"
        assert result.truncated is False

    def test_truncates_and_closes(self):
        result = truncate_by_text_length("<p>Hello world</p>", 5)
        assert result.html == f"<p>Hello{ELLIPSIS}</p>"
        assert result.truncated is True

    def test_trailing_whitespace_is_trimmed(self):
        result = truncate_by_text_length("<p><b>Hello world</b></p>", 6)
        assert result.html == f"<p><b>Hello{ELLIPSIS}</b></p>"

    def test_entity_counts_as_one_character(self):
        result = truncate_by_text_length("<p>a &amp; b</p>", 3)
        assert result.html == f"<p>a &amp;{ELLIPSIS}</p>"
        assert result.truncated is True

    def test_exact_fit_is_not_truncated(self):
        assert truncate_by_text_length("<p>abc</p>", 3).truncated is False

    def test_empty_input(self):
        assert truncate_by_text_length("", 10) == ("", False)


class TestStripTags:
    def test_tags_replaced_entities_kept(self):
        assert strip_tags("<p>Hi &amp; bye</p>") == " Hi &amp; bye "

    def test_custom_replacement(self):
        assert strip_tags("<b>a</b><i>b</i>", replacement="") == "ab"
