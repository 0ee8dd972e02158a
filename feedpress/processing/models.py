"""
FeedPress Processing Models
===========================

Results of body/lead selection and article assembly.
"""

from enum import Enum
from typing import List, Optional, Union

from pydantic import Field, field_validator, model_validator

from ..ingestion.models import FeedModel, NormalizedFeedItem


class CandidateSource(str, Enum):
    """Raw HTML candidates in body priority order."""
    CONTENT_ENCODED = "contentEncoded"
    CONTENT = "content"
    DESCRIPTION_OR_SUMMARY = "descriptionOrSummary"


EMPTY_SOURCE = "empty"


class ImageSource(str, Enum):
    """Where the main image came from."""
    MEDIA_CONTENT = "media:content"
    THUMBNAIL = "thumbnail"
    ENCLOSURE = "enclosure"
    INLINE = "inline"
    NONE = "none"


class SelectionDiagnostics(FeedModel):
    chosen_source: Union[CandidateSource, str] = Field(
        default=EMPTY_SOURCE, description="Candidate used for the body, or 'empty'"
    )
    content_score: float = Field(default=0.0, ge=0.0, le=1.0)
    lead_used: bool = False
    dedupe_ratio: float = Field(default=0.0, ge=0.0, le=1.0)
    reasons: List[str] = Field(default_factory=list)

    @field_validator('chosen_source', mode='before')
    @classmethod
    def validate_chosen_source(cls, v):
        if v == EMPTY_SOURCE:
            return v
        return CandidateSource(v)


class BodyLeadSelection(FeedModel):
    """Chosen body and optional lead, both still unsanitized."""

    body_html_raw: str = ""
    lead_html_raw: Optional[str] = None
    diagnostics: SelectionDiagnostics = Field(default_factory=SelectionDiagnostics)

    @model_validator(mode='after')
    def check_lead_and_reasons(self):
        if self.lead_html_raw is not None and not self.diagnostics.lead_used:
            raise ValueError("lead_html_raw is set but lead_used is false")
        reasons = self.diagnostics.reasons
        if len(set(reasons)) != len(reasons):
            raise ValueError(f"duplicate selection reasons: {reasons}")
        return self


class AssemblyDiagnostics(FeedModel):
    image_source: ImageSource = ImageSource.NONE
    removed_embeds: int = Field(default=0, ge=0)
    link_fixes: int = Field(default=0, ge=0)
    tracker_params_removed: int = Field(default=0, ge=0)
    truncated: bool = False
    kept_embeds_hosts: List[str] = Field(default_factory=list)


class ArticleAssemblyResult(FeedModel):
    """Sanitized article ready to be stored."""

    article_html: str = ""
    main_image_url: Optional[str] = None
    excerpt: str = ""
    diagnostics: AssemblyDiagnostics = Field(default_factory=AssemblyDiagnostics)


class ProcessedEntry(FeedModel):
    """Every stage's output for one feed entry."""

    normalized: NormalizedFeedItem
    selection: BodyLeadSelection
    assembly: ArticleAssemblyResult

    @property
    def article_id(self) -> Optional[str]:
        if self.normalized.guid and self.normalized.guid.guid:
            return self.normalized.guid.guid
        return self.normalized.canonical_url
