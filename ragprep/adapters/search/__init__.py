"""Web search integration used by the content research agent."""

from ragprep.adapters.search.models import SearchHit, SearchResponse
from ragprep.adapters.search.tavily_client import TavilyClient

__all__ = ["SearchHit", "SearchResponse", "TavilyClient"]
