from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class Command:
    """모든 커맨드의 기본 클래스 (마커 역할)"""

    pass


@dataclass(frozen=True)
class EventDTO:
    """LLM 생성 파이프라인에서 스트리밍되는 타임라인 이벤트 중 검색에 필요한 필드"""

    id: str
    title: str = ""
    year: int | None = None
    category: str | None = None
    image_search_query: str | None = None
    image_search_query_en: str | None = None
    is_celebrity_birthday: bool = False
    is_movie: bool = False
    is_tv: bool = False
    spotify_search_query: str | None = None
    movie_search_query: str | None = None
    event_scope: str | None = None

    @staticmethod
    def from_record(record: dict[str, Any]) -> EventDTO:
        """NDJSON/SSE로 받은 camelCase 레코드를 변환합니다."""
        year = record.get("year")
        return EventDTO(
            id=str(record["id"]),
            title=str(record.get("title") or ""),
            year=int(year) if isinstance(year, (int, str)) and str(year).isdigit() else None,
            category=record.get("category"),
            image_search_query=record.get("imageSearchQuery"),
            image_search_query_en=record.get("imageSearchQueryEn"),
            is_celebrity_birthday=bool(record.get("isCelebrityBirthday")),
            is_movie=bool(record.get("isMovie")),
            is_tv=bool(record.get("isTV")),
            spotify_search_query=record.get("spotifySearchQuery"),
            movie_search_query=record.get("movieSearchQuery"),
            event_scope=record.get("eventScope"),
        )


@dataclass(frozen=True)
class EnqueueImageSearchCommand(Command):
    """이벤트 묶음의 이미지 검색을 요청하는 커맨드. 같은 이벤트를 여러 번 보내도 됩니다."""

    events: list[EventDTO] = field(default_factory=list)


@dataclass(frozen=True)
class ResetImageSearchCommand(Command):
    """큐, 중복 제거 집합, 카운터를 초기화하는 커맨드"""

    pass


@dataclass(frozen=True)
class BlacklistImageCommand(Command):
    """이미지를 블랙리스트에 올리고, 이벤트가 주어지면 다시 검색하는 커맨드"""

    image_url: str
    event_title: str | None = None
    search_query: str | None = None
    event: EventDTO | None = None
