from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

# --- Enums ---


class Category(Enum):
    POLITICS = "politics"
    SPORTS = "sports"
    ENTERTAINMENT = "entertainment"
    SCIENCE = "science"
    CULTURE = "culture"
    WORLD = "world"
    LOCAL = "local"
    PERSONAL = "personal"
    MUSIC = "music"
    TECHNOLOGY = "technology"
    CELEBRITY = "celebrity"

    @classmethod
    def parse(cls, value: str | None) -> Category:
        """알 수 없는 카테고리 문자열은 WORLD로 취급합니다."""
        if not value:
            return cls.WORLD
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.WORLD


class SearchMode(Enum):
    """세션 단위로 선택되는 이미지 검색 백엔드 계열"""

    CASCADE = "cascade"
    IMAGE_SEARCH = "image_search"


class SourceId(Enum):
    WIKIPEDIA_NATIVE = "wikipedia_native"
    WIKIPEDIA_EN = "wikipedia_en"
    COMMONS = "commons"
    NATIONAL_ARCHIVE = "national_archive"


class QueryLanguage(Enum):
    NATIVE = "native"
    ENGLISH = "english"


class SubjectKind(Enum):
    EVENT = "event"
    PERSON = "person"
    MOVIE = "movie"
    TV = "tv"


class TraceResult(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class CandidatePolicy(Enum):
    """어댑터가 검색 결과 후보를 얼마나 멀리까지 살펴볼지 결정합니다."""

    FIRST_MATCH = "first_match"
    EXHAUSTIVE = "exhaustive"


# --- Value Objects ---


@dataclass(frozen=True)
class SearchQuery:
    """하나의 타임라인 이벤트에 대한 이미지 검색 요청"""

    event_id: str
    query: str
    query_en: str | None = None
    year: int | None = None
    category: Category = Category.WORLD
    is_celebrity: bool = False
    is_movie: bool = False
    is_tv: bool = False
    is_music: bool = False
    spotify_query: str | None = None

    @property
    def english_text(self) -> str:
        return self.query_en or self.query

    def text_for(self, language: QueryLanguage) -> str:
        if language is QueryLanguage.ENGLISH:
            return self.english_text
        return self.query

    @property
    def wants_metadata(self) -> bool:
        """인물/영화/음악 계열이면 메타데이터 백엔드를 먼저 조회합니다."""
        return (
            self.is_celebrity
            or self.is_movie
            or self.is_tv
            or self.is_music
            or self.category
            in (Category.CELEBRITY, Category.MUSIC, Category.ENTERTAINMENT)
        )

    @property
    def subject_kind(self) -> SubjectKind:
        if self.is_tv:
            return SubjectKind.TV
        if self.is_movie:
            return SubjectKind.MOVIE
        return SubjectKind.PERSON


@dataclass(frozen=True)
class SearchOptions:
    """어댑터 한 번의 호출에 적용되는 옵션"""

    use_quotes: bool = False
    include_year: bool = True
    strict_match: bool = True
    subject: SubjectKind = SubjectKind.EVENT
    policy: CandidatePolicy = CandidatePolicy.FIRST_MATCH
    # EXHAUSTIVE 정책에서만 사용: True를 반환하는 URL은 건너뜁니다.
    exclude_url: Callable[[str], bool] | None = None

    def is_excluded(self, url: str) -> bool:
        if self.policy is not CandidatePolicy.EXHAUSTIVE or self.exclude_url is None:
            return False
        return self.exclude_url(url)


@dataclass(frozen=True)
class ImageCandidate:
    """어댑터가 찾아낸 이미지 한 장"""

    image_url: str
    source: str
    page_url: str | None = None


@dataclass(frozen=True)
class SearchTraceEntry:
    """하나의 검색 시도를 기록하는 감사 로그 항목"""

    source: str
    query: str
    with_year: bool
    result: TraceResult
    timestamp_ms: int


@dataclass(frozen=True)
class ImageResult:
    """이벤트 하나에 대한 최종 이미지 검색 결과.

    image_url이 None이면 source도 반드시 None입니다.
    """

    event_id: str
    image_url: str | None
    source: str | None
    search_trace: tuple[SearchTraceEntry, ...] = field(default_factory=tuple)
    page_url: str | None = None

    def __post_init__(self):
        if (self.image_url is None) != (self.source is None):
            raise ValueError("image_url and source must both be set or both be None")

    @property
    def found(self) -> bool:
        return self.image_url is not None

    @staticmethod
    def not_found(
        event_id: str, trace: tuple[SearchTraceEntry, ...] = ()
    ) -> ImageResult:
        return ImageResult(
            event_id=event_id, image_url=None, source=None, search_trace=trace
        )

    @staticmethod
    def from_candidate(
        event_id: str,
        candidate: ImageCandidate,
        trace: tuple[SearchTraceEntry, ...] = (),
    ) -> ImageResult:
        return ImageResult(
            event_id=event_id,
            image_url=candidate.image_url,
            source=candidate.source,
            search_trace=trace,
            page_url=candidate.page_url,
        )


# --- Entities ---


@dataclass(eq=False)
class BlacklistEntry:
    """사용자가 잘못된 이미지로 신고한 URL"""

    image_url: str
    event_title: str | None = None
    search_query: str | None = None
    created_at: datetime = field(default_factory=datetime.now)

    def __eq__(self, other: object):
        if not isinstance(other, BlacklistEntry):
            return NotImplemented
        return self.image_url == other.image_url

    def __hash__(self):
        return hash(self.image_url)
