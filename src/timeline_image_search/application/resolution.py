from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable, Protocol

from loguru import logger

from timeline_image_search.domain.model import (
    ImageCandidate,
    ImageResult,
    SearchQuery,
    SearchTraceEntry,
    TraceResult,
)
from timeline_image_search.infrastructure.exceptions import ImageSourceError
from timeline_image_search.infrastructure.logging_utils import PerformanceTracker

if TYPE_CHECKING:
    from timeline_image_search.infrastructure.blacklist import BlacklistFilter
    from timeline_image_search.infrastructure.sources.metadata import MetadataSource


class ImageResolver(Protocol):
    """SearchQuery 하나를 ImageResult 하나로 해석합니다. 예외를 던지지 않습니다."""

    async def resolve(
        self, query: SearchQuery, trace: ResolutionTrace | None = None
    ) -> ImageResult:
        """trace를 넘기면 호출자가 시간 초과로 중단하더라도 그때까지의 기록을 읽을 수 있습니다."""
        ...


class ResolutionTrace:
    """이벤트 하나를 해석하는 동안의 모든 시도를 기록합니다.

    타임스탬프는 해석 시작 시점 기준(ms)입니다. 기록은 제어 흐름에 영향을 주지 않습니다.
    """

    def __init__(self, event_id: str):
        self.event_id = event_id
        self.tracker = PerformanceTracker(f"resolve:{event_id}")
        self.tracker.start()
        self._entries: list[SearchTraceEntry] = []

    def record(self, source: str, query: str, with_year: bool, result: TraceResult) -> None:
        self._entries.append(
            SearchTraceEntry(
                source=source,
                query=query,
                with_year=with_year,
                result=result,
                timestamp_ms=self.tracker.elapsed_ms(),
            )
        )

    @property
    def entries(self) -> tuple[SearchTraceEntry, ...]:
        return tuple(self._entries)

    def found(self, candidate: ImageCandidate) -> ImageResult:
        self.tracker.end()
        return ImageResult.from_candidate(self.event_id, candidate, self.entries)

    def not_found(self) -> ImageResult:
        self.tracker.end()
        return ImageResult.not_found(self.event_id, self.entries)


async def attempt(
    trace: ResolutionTrace,
    label: str,
    query_text: str,
    with_year: bool,
    call: Callable[[], Awaitable[ImageCandidate | None]],
    blacklist: BlacklistFilter,
) -> tuple[ImageCandidate | None, bool]:
    """어댑터 호출 한 번을 실행하고 trace에 기록합니다.

    Returns:
        (수락된 후보 또는 None, 이 어댑터의 남은 시도를 멈춰야 하는지)
        백엔드 오류와 블랙리스트 거절은 찾지 못한 것으로 취급하고 재시도하지 않습니다.
    """
    try:
        candidate = await call()
    except ImageSourceError as e:
        logger.warning(
            "백엔드 호출 실패, 찾지 못함으로 처리",
            source=label,
            query=query_text,
            error=str(e),
            event_name="source_error",
        )
        trace.record(label, query_text, with_year, TraceResult.ERROR)
        return None, True
    except Exception:
        logger.exception(
            "어댑터 내부 오류",
            source=label,
            query=query_text,
            event_name="source_unexpected_error",
        )
        trace.record(label, query_text, with_year, TraceResult.ERROR)
        return None, True

    if candidate is not None and blacklist.is_blacklisted(candidate.image_url):
        logger.info(
            "블랙리스트 이미지 제외",
            source=label,
            image_url=candidate.image_url,
            event_name="blacklisted_candidate",
        )
        trace.record(label, query_text, with_year, TraceResult.NOT_FOUND)
        return None, True

    trace.record(
        label,
        query_text,
        with_year,
        TraceResult.FOUND if candidate else TraceResult.NOT_FOUND,
    )
    return candidate, False


async def run_metadata_stage(
    query: SearchQuery,
    sources: list[MetadataSource],
    trace: ResolutionTrace,
    blacklist: BlacklistFilter,
) -> ImageCandidate | None:
    """적용 가능한 메타데이터 백엔드를 등록 순서대로 한 번씩 시도합니다."""
    for source in sources:
        if not source.applies_to(query):
            continue
        candidate, _ = await attempt(
            trace,
            label=source.trace_label(query),
            query_text=source.query_text(query),
            with_year=source.forwards_year(query),
            call=lambda source=source: source.lookup(query),
            blacklist=blacklist,
        )
        if candidate:
            trace.tracker.checkpoint("metadata_found")
            return candidate
    return None
