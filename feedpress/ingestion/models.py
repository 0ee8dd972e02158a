"""
FeedPress Ingestion Models
==========================

Pydantic models for normalized feed entries. Python attributes are
snake_case; ``model_dump(by_alias=True)`` produces the camelCase shape the
article store expects.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class FeedModel(BaseModel):
    """Base for immutable feed value objects."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class RawHtmlCandidates(FeedModel):
    """The three unsanitized HTML sources an entry can offer."""

    content_encoded: Optional[str] = Field(default=None, description="RSS content:encoded")
    content: Optional[str] = Field(default=None, description="Atom content")
    description_or_summary: Optional[str] = Field(
        default=None, description="RSS description or Atom summary"
    )

    @field_validator('content_encoded', 'content', 'description_or_summary', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        """Blank strings carry no content."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def ordered(self):
        """Candidates in body priority order."""
        return [self.content_encoded, self.content, self.description_or_summary]


class MediaResource(FeedModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def area(self) -> int:
        if self.width and self.height and self.width > 0 and self.height > 0:
            return self.width * self.height
        return 0


class EnclosureImage(FeedModel):
    url: str
    type: Optional[str] = None


class FeedMedia(FeedModel):
    """Image metadata gathered from media RSS, enclosures and inline markup."""

    media_content: List[MediaResource] = Field(default_factory=list)
    media_thumbnail: List[MediaResource] = Field(default_factory=list)
    enclosure_image: Optional[EnclosureImage] = None
    inline_images: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.media_content
            or self.media_thumbnail
            or self.enclosure_image
            or self.inline_images
        )


class GuidInfo(FeedModel):
    guid: Optional[str] = None
    is_perma_link: Optional[bool] = Field(default=None, alias="isPermaLink")


class SourceFeed(FeedModel):
    url: str


class NormalizedFeedItem(FeedModel):
    """Feed entry in a format-independent shape."""

    title: str = Field(default="", description="Decoded title, possibly empty")
    canonical_url: Optional[str] = Field(default=None, description="Article URL")
    published_at_iso: Optional[str] = Field(
        default=None, alias="publishedAtISO", description="Publication date as YYYY-MM-DD"
    )
    author: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    raw_html_candidates: RawHtmlCandidates = Field(default_factory=RawHtmlCandidates)
    media: Optional[FeedMedia] = None
    guid: Optional[GuidInfo] = None
    source_feed: Optional[SourceFeed] = None

    def __str__(self) -> str:
        return f"NormalizedFeedItem({self.title[:50]!r}, {self.canonical_url})"
