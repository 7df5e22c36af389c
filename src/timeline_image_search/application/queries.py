from dataclasses import dataclass

from timeline_image_search.domain.model import SearchTraceEntry

# 1. Queries
class Query:
    """Marker class for queries."""
    pass

@dataclass(frozen=True)
class GetSearchProgressQuery(Query):
    pass

@dataclass(frozen=True)
class GetSearchTraceQuery(Query):
    event_id: str

# 2. Result DTOs (Data Transfer Objects)
@dataclass(frozen=True)
class SearchProgressDTO:
    is_searching: bool
    searched_count: int
    found_count: int
    queue_length: int

@dataclass(frozen=True)
class SearchTraceDTO:
    event_id: str
    image_url: str | None
    source: str | None
    trace: list[SearchTraceEntry]
