"""
Ingestion Diagnostics
=====================

Bounded in-memory record of how recent entries were processed: which
candidate became the body, how large each stage's output was and whether
the content looks weak or double-escaped.

Entries are keyed by article id. Recording an id again replaces the old
entry and makes it the newest; beyond ``max_entries`` the oldest entries
are evicted.
"""

import threading
from collections import OrderedDict
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import Field, field_validator

from ..ingestion.models import FeedModel
from ..utils.logging import get_logger_for_component

DEFAULT_MAX_ENTRIES = 200
DEFAULT_RECENT_LIMIT = 25


class IngestionDiagnosticEntry(FeedModel):
    """Processing summary for one article."""

    article_id: str
    feed_id: Optional[str] = None
    feed_title: Optional[str] = None
    item_title: Optional[str] = None
    canonical_url: Optional[str] = None
    published_at: Optional[datetime] = None
    chosen_source: str = "empty"
    raw_description_length: int = 0
    body_html_raw_length: int = 0
    article_html_length: int = 0
    has_block_tags: bool = False
    looks_escaped_html: bool = False
    weak_content: bool = False
    article_html_preview: str = ""
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator(
        'raw_description_length', 'body_html_raw_length', 'article_html_length', mode='before'
    )
    @classmethod
    def clamp_length(cls, v):
        """Lengths are non-negative integers; anything unusable counts as zero."""
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return 0
        if v != v or v in (float("inf"), float("-inf")):
            return 0
        return max(0, int(v))

    @field_validator('article_id', 'feed_id', mode='before')
    @classmethod
    def stringify_id(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator('chosen_source', mode='before')
    @classmethod
    def source_value(cls, v):
        if v is None:
            return "empty"
        return getattr(v, "value", v)


class IngestionDiagnostics:
    """Thread-safe bounded store of :class:`IngestionDiagnosticEntry`."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, IngestionDiagnosticEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self.logger = get_logger_for_component("ingestion_diagnostics")

    def record(self, entry: IngestionDiagnosticEntry) -> None:
        with self._lock:
            self._entries.pop(entry.article_id, None)
            self._entries[entry.article_id] = entry
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self.logger.debug(f"Evicted diagnostics for {evicted}")

    def get_recent(
        self, limit: Optional[int] = DEFAULT_RECENT_LIMIT, feed_id: Optional[str] = None
    ) -> List[IngestionDiagnosticEntry]:
        """Newest entries first, optionally for one feed only.

        ``limit`` is clamped to ``[1, max_entries]``; None means the default.
        """
        if limit is None:
            limit = DEFAULT_RECENT_LIMIT
        limit = max(1, min(self.max_entries, int(limit)))

        with self._lock:
            snapshot = list(self._entries.values())

        items = []
        for entry in reversed(snapshot):
            if feed_id is not None and entry.feed_id != feed_id:
                continue
            items.append(entry)
            if len(items) >= limit:
                break
        return items

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
