from __future__ import annotations

from typing import TYPE_CHECKING, Final

from loguru import logger

from timeline_image_search.application.resolution import (
    ImageResolver,
    ResolutionTrace,
    attempt,
    run_metadata_stage,
)
from timeline_image_search.domain.model import ImageResult, SearchQuery, SubjectKind
from timeline_image_search.infrastructure.sources.image_search import build_era_query

if TYPE_CHECKING:
    from timeline_image_search.infrastructure.blacklist import BlacklistFilter
    from timeline_image_search.infrastructure.sources.factory import ImageSourceFactory


class ImageSearchResolver(ImageResolver):
    """캐스케이드 전체를 대체하는 일반 이미지 검색 모드.

    영화/TV는 포스터 메타데이터를 먼저 시도하고, 그 외에는 시대 힌트를 붙인 검색어로
    이미지 검색 백엔드를 한 번 호출합니다.
    """

    def __init__(self, factory: ImageSourceFactory, blacklist: BlacklistFilter):
        self.factory: Final = factory
        self.blacklist: Final = blacklist

    async def resolve(
        self, query: SearchQuery, trace: ResolutionTrace | None = None
    ) -> ImageResult:
        with logger.contextualize(event_id=query.event_id, mode="image_search"):
            trace = trace or ResolutionTrace(query.event_id)
            try:
                if query.subject_kind in (SubjectKind.MOVIE, SubjectKind.TV):
                    candidate = await run_metadata_stage(
                        query, self.factory.metadata_sources, trace, self.blacklist
                    )
                    if candidate:
                        return trace.found(candidate)

                source = self.factory.image_search_source
                candidate, _ = await attempt(
                    trace,
                    label=source.label,
                    query_text=build_era_query(query.english_text, query.year, query.category),
                    with_year=query.year is not None,
                    call=lambda: source.search_event(query),
                    blacklist=self.blacklist,
                )
                if candidate:
                    return trace.found(candidate)
                return trace.not_found()
            except Exception:
                logger.exception(
                    "이미지 검색 모드 해석 중 예상치 못한 오류",
                    query=query.query,
                    event_name="resolution_error",
                )
                return trace.not_found()
