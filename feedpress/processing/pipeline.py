"""
Content Pipeline
================

Runs the three content stages for each feed entry:
normalization, body/lead selection and article assembly.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from ..config.settings import FeedPressSettings, get_settings
from ..ingestion.feed_normalizer import FeedNormalizer
from ..monitoring.html_diagnostics import (
    build_preview,
    compute_weak_content,
    has_block_tags,
    looks_escaped_html,
)
from ..monitoring.ingestion_diagnostics import IngestionDiagnosticEntry, IngestionDiagnostics
from ..utils.exceptions import InvalidInputError, handle_exception
from ..utils.logging import PerformanceLogger, get_logger_for_component
from .article_assembler import ArticleAssembler
from .body_lead_selector import BodyLeadSelector
from .models import ProcessedEntry


@dataclass
class BatchResult:
    """Outcome of processing a list of raw entries."""
    entries: List[ProcessedEntry] = field(default_factory=list)
    failed: int = 0
    duration_seconds: float = 0.0

    @property
    def processed(self) -> int:
        return len(self.entries)

    @property
    def total(self) -> int:
        return self.processed + self.failed


class ContentPipeline:
    """Normalize, select and assemble feed entries.

    Args:
        settings: Application settings (defaults to :func:`get_settings`)
        diagnostics: Optional store that receives one entry per processed item
    """

    def __init__(
        self,
        settings: Optional[FeedPressSettings] = None,
        diagnostics: Optional[IngestionDiagnostics] = None,
    ):
        self.settings = settings or get_settings()
        self.diagnostics = diagnostics
        self.logger = get_logger_for_component("pipeline")

        self.normalizer = FeedNormalizer()
        self.selector = BodyLeadSelector(self.settings.selection)
        self.assembler = ArticleAssembler(self.settings.assembly)

    def process(
        self,
        raw_item: Mapping[str, Any],
        feed_url: Optional[str] = None,
        feed_id: Optional[str] = None,
        feed_title: Optional[str] = None,
    ) -> ProcessedEntry:
        """Run one raw entry through every stage.

        Raises:
            InvalidInputError: If raw_item is not a mapping
        """
        normalized = self.normalizer.normalize(raw_item, feed_url=feed_url)
        selection = self.selector.select(normalized)
        assembly = self.assembler.assemble(normalized, selection)

        entry = ProcessedEntry(normalized=normalized, selection=selection, assembly=assembly)

        self.logger.debug(
            f"Processed entry {entry.article_id}",
            extra={
                "feed_url": feed_url,
                "chosen_source": selection.diagnostics.chosen_source,
                "lead_used": selection.diagnostics.lead_used,
                "image_source": assembly.diagnostics.image_source,
                "truncated": assembly.diagnostics.truncated,
            },
        )

        if self.diagnostics is not None and self.settings.diagnostics.enabled:
            self._record_diagnostics(entry, feed_id=feed_id, feed_title=feed_title)

        return entry

    def process_batch(
        self,
        raw_items: Iterable[Any],
        feed_url: Optional[str] = None,
        feed_id: Optional[str] = None,
        feed_title: Optional[str] = None,
    ) -> BatchResult:
        """Process entries independently; malformed entries are skipped and counted."""
        result = BatchResult()

        with PerformanceLogger(self.logger, "entry batch processing", feed_url=feed_url) as perf:
            for index, raw_item in enumerate(raw_items):
                try:
                    result.entries.append(
                        self.process(raw_item, feed_url=feed_url, feed_id=feed_id, feed_title=feed_title)
                    )
                except InvalidInputError as e:
                    handle_exception(e, self.logger, "process_entry", {"index": index})
                    result.failed += 1

        result.duration_seconds = perf.duration or 0.0
        self.logger.info(
            f"Processed {result.processed} entries ({result.failed} skipped)",
            extra={"feed_url": feed_url, "feed_id": feed_id},
        )
        return result

    def _record_diagnostics(
        self, entry: ProcessedEntry, feed_id: Optional[str], feed_title: Optional[str]
    ) -> None:
        article_id = entry.article_id
        if not article_id:
            self.logger.debug("Skipping diagnostics for entry without guid or URL")
            return

        normalized = entry.normalized
        article_html = entry.assembly.article_html
        raw_description = normalized.raw_html_candidates.description_or_summary or ""
        published_at = None
        if normalized.published_at_iso:
            published_at = datetime.fromisoformat(normalized.published_at_iso).replace(
                tzinfo=timezone.utc
            )

        self.diagnostics.record(
            IngestionDiagnosticEntry(
                article_id=article_id,
                feed_id=feed_id,
                feed_title=feed_title,
                item_title=normalized.title or None,
                canonical_url=normalized.canonical_url,
                published_at=published_at,
                chosen_source=entry.selection.diagnostics.chosen_source,
                raw_description_length=len(raw_description),
                body_html_raw_length=len(entry.selection.body_html_raw),
                article_html_length=len(article_html),
                has_block_tags=has_block_tags(article_html),
                looks_escaped_html=looks_escaped_html(raw_description)
                or looks_escaped_html(entry.selection.body_html_raw),
                weak_content=compute_weak_content(article_html).weak,
                article_html_preview=build_preview(
                    article_html, self.settings.diagnostics.preview_length
                ),
            )
        )
