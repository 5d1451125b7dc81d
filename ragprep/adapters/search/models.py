"""Pydantic models for the Tavily search API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SearchHit(BaseModel):
    """One web search result."""

    title: str = ""
    url: str
    content: str = ""
    score: float = 0.0

    model_config = {"populate_by_name": True, "extra": "ignore"}


class SearchResponse(BaseModel):
    """Tavily ``/search`` response body."""

    query: str = ""
    answer: str | None = None
    results: list[SearchHit] = Field(default_factory=list)
    response_time: float | None = None

    model_config = {"populate_by_name": True, "extra": "ignore"}
