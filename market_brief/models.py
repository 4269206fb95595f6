"""
Pydantic models shared across the Market Brief core.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class KeyFact(BaseModel):
    """A ``label: value`` pair surfaced as a structured highlight."""

    label: str
    value: str


class InsightSection(BaseModel):
    """A titled group of bullet points taken from the report."""

    title: str
    bullets: list[str] = Field(default_factory=list)


class SearchHit(BaseModel):
    """A single web search result."""

    title: str = ""
    url: str = ""
    description: str = ""


class QuestionAnswer(BaseModel):
    """The direct answer part of a search payload."""

    answer: str = ""


class SearchResults(BaseModel):
    """Payload returned by the text-search / question-answering collaborator."""

    query: str = ""
    qa: Optional[QuestionAnswer] = None
    hits: list[SearchHit] = Field(default_factory=list)
    error: Optional[str] = None


class MarketBrief(BaseModel):
    """Everything derived from one raw report."""

    query: str
    raw_report: str
    key_facts: list[KeyFact] = Field(default_factory=list)
    pricing_highlights: list[str] = Field(default_factory=list)
    insight_sections: list[InsightSection] = Field(default_factory=list)
    hero_line: str = ""


class SavedBrief(BaseModel):
    """A persisted brief stored in SQLite."""

    id: int
    created_at: datetime
    brief: MarketBrief
    is_public: bool = False
    share_token: Optional[str] = None
    share_expires_at: Optional[datetime] = None
    share_view_count: int = 0
    has_password: bool = False


class ShareLink(BaseModel):
    """Result of issuing a share link for a saved brief."""

    brief_id: int
    token: str
    link_type: str = "public"
    expires_at: Optional[datetime] = None
