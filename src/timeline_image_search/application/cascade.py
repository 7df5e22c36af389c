from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Final

from loguru import logger

from timeline_image_search.application.resolution import (
    ImageResolver,
    ResolutionTrace,
    attempt,
    run_metadata_stage,
)
from timeline_image_search.domain.model import (
    CandidatePolicy,
    ImageCandidate,
    ImageResult,
    SearchOptions,
    SearchQuery,
)
from timeline_image_search.domain.normalizer import strip_year
from timeline_image_search.domain.routing import RoutingTable, SourceSlot

if TYPE_CHECKING:
    from timeline_image_search.infrastructure.blacklist import BlacklistFilter
    from timeline_image_search.infrastructure.sources.factory import ImageSourceFactory


class CascadeImageResolver(ImageResolver):
    """카테고리별 소스 순서에 따라 여러 백엔드를 동시에 조회하는 기본 해석기.

    1. 인물/영화/음악 계열이면 메타데이터 백엔드를 먼저 한 번 조회합니다.
    2. 라우팅 테이블의 모든 슬롯을 동시에 실행하고 (fan-out/fan-in),
    3. 완료 순서가 아니라 우선순위 순서대로 첫 번째 결과를 고릅니다.

    슬롯마다 연도 포함 → 연도 제거 → (설정 시) 느슨한 매칭 순으로 시도합니다.
    """

    def __init__(
        self,
        factory: ImageSourceFactory,
        routing: RoutingTable,
        blacklist: BlacklistFilter,
        lenient_fallback: bool = False,
        policy: CandidatePolicy = CandidatePolicy.FIRST_MATCH,
    ):
        self.factory: Final = factory
        self.routing: Final = routing
        self.blacklist: Final = blacklist
        self.lenient_fallback = lenient_fallback
        self.policy = policy

    async def resolve(
        self, query: SearchQuery, trace: ResolutionTrace | None = None
    ) -> ImageResult:
        with logger.contextualize(event_id=query.event_id):
            trace = trace or ResolutionTrace(query.event_id)
            try:
                return await self._resolve(query, trace)
            except Exception:
                logger.exception(
                    "이미지 해석 중 예상치 못한 오류",
                    query=query.query,
                    event_name="resolution_error",
                )
                return trace.not_found()

    async def _resolve(self, query: SearchQuery, trace: ResolutionTrace) -> ImageResult:
        if query.wants_metadata:
            candidate = await run_metadata_stage(
                query, self.factory.metadata_sources, trace, self.blacklist
            )
            if candidate:
                return trace.found(candidate)

        slots = self.routing.slots_for(query.category)
        logger.debug(
            "캐스케이드 시작",
            category=query.category.value,
            slots=[slot.source_id.value for slot in slots],
            event_name="cascade_start",
        )
        # 모든 슬롯을 동시에 실행하되, 결과는 우선순위 순서로 확인합니다.
        candidates = await asyncio.gather(
            *(self._try_slot(slot, query, trace) for slot in slots)
        )
        trace.tracker.checkpoint("sources_joined")

        for slot, candidate in zip(slots, candidates):
            if candidate is not None:
                logger.info(
                    "이미지 발견",
                    source=candidate.source,
                    slot=slot.source_id.value,
                    image_url=candidate.image_url,
                    event_name="image_found",
                )
                return trace.found(candidate)

        logger.info("이미지를 찾지 못함", query=query.query, event_name="image_not_found")
        return trace.not_found()

    def _options(self, include_year: bool, strict: bool) -> SearchOptions:
        return SearchOptions(
            include_year=include_year,
            strict_match=strict,
            policy=self.policy,
            exclude_url=self.blacklist.is_blacklisted,
        )

    async def _try_slot(
        self, slot: SourceSlot, query: SearchQuery, trace: ResolutionTrace
    ) -> ImageCandidate | None:
        """슬롯 하나의 하위 캐스케이드. 어댑터의 실패는 None으로 바뀝니다."""
        source = self.factory.get_source(slot.source_id)
        text = query.text_for(slot.language)
        label = source.label

        # (검색어, 연도 포함 여부, 엄격 매칭)
        plan: list[tuple[str, bool, bool]] = []
        if query.year is not None:
            plan.append((text, True, True))
            plan.append((strip_year(text, query.year), False, True))
        else:
            plan.append((text, False, True))
        if self.lenient_fallback:
            plan.append((strip_year(text, query.year), False, False))

        for search_text, with_year, strict in plan:
            if not search_text:
                continue
            options = self._options(include_year=with_year, strict=strict)
            candidate, halt = await attempt(
                trace,
                label=label if strict else f"{label} (lenient)",
                query_text=search_text,
                with_year=with_year,
                call=lambda t=search_text, o=options: source.search(t, query.year, o),
                blacklist=self.blacklist,
            )
            if candidate is not None or halt:
                return candidate
        return None
