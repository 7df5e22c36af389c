from dataclasses import dataclass

from timeline_image_search.domain.model import ImageResult


class Event:
    """모든 도메인 이벤트의 기본 클래스 (마커 인터페이스 역할)"""

    pass


@dataclass(frozen=True)
class ImageFound(Event):
    """이벤트 하나의 이미지를 찾았을 때 발생하는 이벤트. UI는 event_id로 카드를 갱신합니다."""

    event_id: str
    image_url: str
    source: str
    page_url: str | None = None


@dataclass(frozen=True)
class ImageSearchCompleted(Event):
    """찾았든 못 찾았든 검색 하나가 끝났을 때 발생하는 이벤트 (디버그 화면용 trace 포함)"""

    result: ImageResult
