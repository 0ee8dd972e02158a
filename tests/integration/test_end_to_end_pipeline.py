"""
End-to-End Pipeline Integration Test
====================================

Runs raw feed entries through normalization, body/lead selection and article
assembly and checks the properties every article must have.
"""

import re

import pytest

from feedpress.config.settings import FeedPressSettings
from feedpress.monitoring.ingestion_diagnostics import IngestionDiagnostics
from feedpress.processing.article_assembler import TRUNCATION_NOTICE
from feedpress.processing.models import CandidateSource
from feedpress.processing.pipeline import ContentPipeline

EVENT_HANDLER_PATTERN = re.compile(r"<[^>]*\son[a-z]+\s*=", re.IGNORECASE)
STYLE_ATTRIBUTE_PATTERN = re.compile(r"<[^>]*\sstyle\s*=", re.IGNORECASE)
URL_ATTRIBUTE_PATTERN = re.compile(r'(?:href|src)="([^"]*)"')

HOSTILE_BODY = """
<div class="entry">
  <script>document.cookie</script>
  <style>body { display: none }</style>
  <p onclick="steal()" style="color: red" onmouseover='x()'>Visible <b>text</b>
     <a href="javascript:alert(1)">bad link</a>
     <a href="https://example.com/next?page=2&utm_source=rss&fbclid=abc">next</a></p>
  <img src="x.png" onerror="alert(1)">
  <img src="data:image/png;base64,AAAA">
  <svg onload="alert(1)"><circle r="1"/></svg>
  <iframe src="https://evil.example/frame"></iframe>
  <object data="movie.swf"></object>
  <form action="/login"><input name="password"></form>
  <p style="background:url(javascript:alert(1))">Styled paragraph</p>
  <a href="  JAVASCRIPT:alert(1)" onfocus="x()">focus</a>
  <!-- <script>hidden</script> -->
</div>
"""


@pytest.fixture
def pipeline(test_settings):
    return ContentPipeline(settings=test_settings, diagnostics=IngestionDiagnostics())


def assert_safe(article_html):
    lowered = article_html.lower()
    assert "<script" not in lowered
    assert "<style" not in lowered
    assert not STYLE_ATTRIBUTE_PATTERN.search(article_html)
    assert "javascript:" not in lowered
    assert not EVENT_HANDLER_PATTERN.search(article_html)


class TestScenarios:
    """Reference scenarios for body/lead selection and assembly."""

    def test_distinct_description_becomes_lead(self, pipeline, rss_404media_item):
        entry = pipeline.process(rss_404media_item, feed_url="https://www.404media.co/rss/")
        diagnostics = entry.selection.diagnostics

        assert diagnostics.chosen_source == CandidateSource.CONTENT_ENCODED
        assert diagnostics.lead_used is True
        assert diagnostics.dedupe_ratio < 0.9
        assert entry.assembly.article_html.startswith(
            '<p class="lead">A short summary for the story.</p>'
        )

    def test_plain_text_only_candidate(self, pipeline):
        entry = pipeline.process({
            "title": "Short note",
            "link": "https://example.com/note",
            "description": "A plain text note without any markup at all.",
        })
        diagnostics = entry.selection.diagnostics

        assert entry.selection.body_html_raw == "<p>A plain text note without any markup at all.</p>"
        assert "wrapped-plaintext" in diagnostics.reasons
        assert diagnostics.chosen_source == CandidateSource.DESCRIPTION_OR_SUMMARY

    def test_duplicate_description_is_omitted(self, pipeline, rss_wordpress_item):
        entry = pipeline.process(rss_wordpress_item)
        diagnostics = entry.selection.diagnostics

        assert diagnostics.lead_used is False
        assert "description-similar-omitted" in diagnostics.reasons
        assert diagnostics.dedupe_ratio >= 0.9
        assert 'class="lead"' not in entry.assembly.article_html

    def test_embeds(self):
        raw_item = {
            "title": "Episode 12",
            "link": "https://example.com/episodes/12",
            "content:encoded": (
                "<p>This week on the show.</p>"
                '<iframe src="https://playlist.megaphone.fm/?e=ABC123&utm_source=rss" '
                'width="100%" height="200"></iframe>'
            ),
        }

        dropped = ContentPipeline(settings=FeedPressSettings()).process(raw_item)
        assert "<iframe" not in dropped.assembly.article_html
        assert dropped.assembly.diagnostics.removed_embeds == 1
        assert dropped.assembly.diagnostics.kept_embeds_hosts == []

        settings = FeedPressSettings(assembly={
            "keep_embeds": True,
            "allowed_iframe_hosts": ["playlist.megaphone.fm"],
        })
        kept = ContentPipeline(settings=settings).process(raw_item)
        article = kept.assembly.article_html

        assert '<iframe src="https://playlist.megaphone.fm/?e=ABC123"' in article
        assert 'loading="lazy"' in article
        assert "allowfullscreen" in article
        assert "utm_source" not in article
        assert kept.assembly.diagnostics.kept_embeds_hosts == ["playlist.megaphone.fm"]
        assert kept.assembly.diagnostics.removed_embeds == 0

    def test_oversized_article(self):
        paragraphs = "".join(f"<p>Paragraph number {n} of a very long story.</p>" for n in range(1200))
        settings = FeedPressSettings(assembly={"max_html_kb": 1})

        entry = ContentPipeline(settings=settings).process({
            "title": "Long read",
            "link": "https://example.com/long",
            "content:encoded": paragraphs,
        })
        article = entry.assembly.article_html

        assert entry.assembly.diagnostics.truncated is True
        assert article.endswith(TRUNCATION_NOTICE)
        assert len(article.encode("utf-8")) <= 1024
        assert article.count("<p>") == article.count("</p>")


class TestSafety:
    """Sanitizer guarantees over hostile and real-world markup."""

    def test_hostile_markup(self, pipeline):
        entry = pipeline.process({
            "title": "<script>alert(1)</script>Hostile",
            "link": "https://example.com/hostile",
            "dc:creator": '<img src=x onerror="alert(1)">',
            "category": ["<b onclick='x()'>tag</b>"],
            "description": '<p onclick="x()">Lead <script>bad()</script></p>',
            "content:encoded": HOSTILE_BODY,
        })
        article = entry.assembly.article_html

        assert_safe(article)
        assert "Visible text" in entry.assembly.excerpt
        assert "Styled paragraph" in article
        assert "<svg" not in article
        assert "<iframe" not in article
        assert "<object" not in article
        assert "<form" not in article
        assert entry.assembly.diagnostics.removed_embeds == 1
        assert "<" not in entry.assembly.excerpt

    def test_fixture_entries_are_safe(self, pipeline, all_raw_items):
        for raw_item in all_raw_items:
            assert_safe(pipeline.process(raw_item).assembly.article_html)

    def test_tracker_params_are_stripped(self, pipeline):
        entry = pipeline.process({
            "title": "Links",
            "link": "https://example.com/links?utm_source=feed",
            "content:encoded": (
                '<p><a href="https://example.com/a?id=7&utm_medium=email&gclid=1">A</a> '
                '<a href="/b?ref=home&lang=en">B</a></p>'
                '<p><img src="https://cdn.example.com/pic.jpg?w=640&mc_cid=9" alt="pic"></p>'
            ),
        })
        urls = URL_ATTRIBUTE_PATTERN.findall(entry.assembly.article_html)

        assert "https://example.com/a?id=7" in urls
        assert "https://example.com/b?lang=en" in urls
        assert "https://cdn.example.com/pic.jpg?w=640" in urls
        for url in urls:
            assert "utm_" not in url
            assert "gclid" not in url
            assert "ref=" not in url
            assert "mc_cid" not in url
        assert entry.assembly.diagnostics.tracker_params_removed == 5


class TestLimitsAndDeterminism:
    """Size laws and repeatability."""

    def test_deeply_nested_entry_does_not_abort_batch(self, pipeline, rss_minimal_item):
        nested = {
            "title": "Nested",
            "link": "https://example.com/nested",
            "content:encoded": "<div>" * 1000 + "<span>" * 1000 + "<p>Deeply nested paragraph.</p>",
        }

        result = pipeline.process_batch([nested, rss_minimal_item])

        assert result.processed == 2
        assert result.failed == 0
        assert "<p>Deeply nested paragraph.</p>" in result.entries[0].assembly.article_html
        assert "<span" not in result.entries[0].assembly.article_html

    def test_body_limit(self, pipeline):
        body = "".join(f"<p>{'x' * 1000} {n}</p>" for n in range(200))
        entry = pipeline.process({
            "title": "Huge",
            "link": "https://example.com/huge",
            "content:encoded": body,
        })

        assert len(entry.selection.body_html_raw) <= 150 * 1024
        assert "truncated-150kb" in entry.selection.diagnostics.reasons
        assert len(entry.assembly.article_html.encode("utf-8")) <= 150 * 1024

    def test_repeat_runs_are_identical(self, test_settings, all_raw_items):
        first = ContentPipeline(settings=test_settings).process_batch(all_raw_items)
        second = ContentPipeline(settings=test_settings).process_batch(all_raw_items)

        assert [e.model_dump() for e in first.entries] == [e.model_dump() for e in second.entries]

    def test_dedupe_ratio_bounds(self, pipeline, all_raw_items):
        for raw_item in all_raw_items:
            ratio = pipeline.process(raw_item).selection.diagnostics.dedupe_ratio
            assert 0.0 <= ratio <= 1.0

    def test_diagnostics_follow_batch(self, test_settings, all_raw_items):
        store = IngestionDiagnostics(max_entries=3)
        ContentPipeline(settings=test_settings, diagnostics=store).process_batch(
            all_raw_items, feed_id="feed-1"
        )

        recent = store.get_recent(limit=10)
        assert len(recent) == 3
        assert all(entry.feed_id == "feed-1" for entry in recent)
        assert recent[0].canonical_url == "https://example.com/minimal"
