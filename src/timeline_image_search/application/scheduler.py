from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Final, Iterable, Mapping

from loguru import logger

from timeline_image_search.application.resolution import ResolutionTrace
from timeline_image_search.domain.events import ImageFound, ImageSearchCompleted
from timeline_image_search.domain.model import ImageResult, SearchMode, SearchQuery, TraceResult

if TYPE_CHECKING:
    from timeline_image_search.application.resolution import ImageResolver
    from timeline_image_search.domain.message_bus import MessageBus

TIMEOUT_TRACE_SOURCE = "Timeout"
RESOLVER_ERROR_TRACE_SOURCE = "Resolver error"


class ImageSearchScheduler:
    """이벤트별 이미지 검색을 제한된 동시성으로 실행하는 워커 풀.

    세션(화면)마다 하나씩 만들어 쓰는 객체이며 전역 상태를 갖지 않습니다.
    결과는 완료되는 순서대로 메시지 버스에 ImageFound/ImageSearchCompleted로 발행됩니다.
    제출 순서는 보장하지 않으므로 구독자는 event_id로 카드를 갱신해야 합니다.

    모든 상태는 이벤트 루프 한 곳에서만 변경되므로 락이 필요 없습니다.
    """

    def __init__(
        self,
        resolvers: Mapping[SearchMode, ImageResolver],
        bus: MessageBus,
        mode: SearchMode = SearchMode.CASCADE,
        max_concurrent: int = 3,
        poll_interval: float = 0.05,
        search_timeout: float | None = None,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if mode not in resolvers:
            raise ValueError(f"No resolver registered for mode {mode.value}")
        self.resolvers: Final = dict(resolvers)
        self.bus: Final = bus
        self.mode = mode
        self.max_concurrent = max_concurrent
        self.poll_interval = poll_interval
        self.search_timeout = search_timeout

        self._queue: deque[SearchQuery] = deque()
        self._seen: set[str] = set()
        self._dispatched: set[str] = set()
        # 재검색마다 증가하는 이벤트별 토큰. 이전 실행의 결과를 가려냅니다.
        self._tokens: dict[str, int] = {}
        self._results: dict[str, ImageResult] = {}
        self._workers: set[asyncio.Task[None]] = set()
        self._pump_task: asyncio.Task[None] | None = None
        self._active = 0
        self._searched = 0
        self._found = 0
        self._generation = 0

    # --- 읽기 전용 상태 ---

    @property
    def is_searching(self) -> bool:
        return self._pump_task is not None and not self._pump_task.done()

    @property
    def searched_count(self) -> int:
        return self._searched

    @property
    def found_count(self) -> int:
        return self._found

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def generation(self) -> int:
        return self._generation

    def result_for(self, event_id: str) -> ImageResult | None:
        return self._results.get(event_id)

    # --- 제어 ---

    def enqueue(self, queries: Iterable[SearchQuery]) -> int:
        """이미 본 event_id를 제외하고 큐에 넣은 뒤 펌프를 시작합니다.

        Returns:
            새로 큐에 들어간 검색 수
        """
        added = 0
        for query in queries:
            if query.event_id in self._seen:
                continue
            self._seen.add(query.event_id)
            self._queue.append(query)
            added += 1

        if added:
            logger.debug(
                f"{added}개 검색 추가",
                queue_length=len(self._queue),
                event_name="queries_enqueued",
            )
            self._ensure_pump()
        return added

    def force_research(self, query: SearchQuery) -> None:
        """이전 결과를 잊고 같은 이벤트를 다시 검색합니다 (블랙리스트 신고 후)."""
        previous = self._results.pop(query.event_id, None)
        if previous is not None:
            self._searched -= 1
            if previous.found:
                self._found -= 1
        self._tokens[query.event_id] = self._tokens.get(query.event_id, 0) + 1
        self._seen.discard(query.event_id)
        self._dispatched.discard(query.event_id)
        logger.info("이벤트 재검색", event_id=query.event_id, event_name="force_research")
        self.enqueue([query])

    def reset(self) -> None:
        """큐, 중복 제거 집합, 카운터를 비웁니다.

        실행 중인 요청은 취소하지 않습니다. 세대 번호가 바뀌므로 그 결과는 버려집니다.
        """
        self._generation += 1
        self._queue.clear()
        self._seen.clear()
        self._dispatched.clear()
        self._tokens.clear()
        self._results.clear()
        self._active = 0
        self._searched = 0
        self._found = 0
        logger.info(
            "검색 상태 초기화",
            generation=self._generation,
            abandoned_workers=len(self._workers),
            event_name="scheduler_reset",
        )

    async def wait_idle(self) -> None:
        """펌프가 큐를 모두 비우고 현재 세대의 워커가 끝날 때까지 기다립니다."""
        while self._pump_task is not None and not self._pump_task.done():
            await asyncio.shield(self._pump_task)

    async def aclose(self) -> None:
        """펌프와 남은 워커를 취소합니다 (애플리케이션 종료 시)."""
        self.reset()
        tasks = list(self._workers)
        if self._pump_task is not None:
            tasks.append(self._pump_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # --- 내부 ---

    def _ensure_pump(self) -> None:
        if self.is_searching:
            return
        self._pump_task = asyncio.get_running_loop().create_task(self._pump())

    async def _pump(self) -> None:
        logger.debug("펌프 시작", generation=self._generation, event_name="pump_start")
        while self._queue or self._active > 0:
            while self._queue and self._active < self.max_concurrent:
                query = self._queue.popleft()
                if query.event_id in self._dispatched:
                    continue
                self._dispatched.add(query.event_id)
                self._active += 1
                # 모드는 디스패치 시점에 한 번만 읽습니다.
                resolver = self.resolvers[self.mode]
                token = self._tokens.get(query.event_id, 0)
                task = asyncio.get_running_loop().create_task(
                    self._work(query, resolver, self._generation, token)
                )
                self._workers.add(task)
                task.add_done_callback(self._workers.discard)
            await asyncio.sleep(self.poll_interval)
        logger.debug(
            "펌프 종료",
            searched=self._searched,
            found=self._found,
            event_name="pump_drained",
        )

    async def _resolve(self, query: SearchQuery, resolver: ImageResolver) -> ImageResult:
        """해석기를 실행합니다. 시간 초과나 예외가 나도 그때까지의 trace는 남깁니다."""
        trace = ResolutionTrace(query.event_id)
        try:
            if self.search_timeout is None:
                return await resolver.resolve(query, trace)
            return await asyncio.wait_for(resolver.resolve(query, trace), self.search_timeout)
        except TimeoutError:
            logger.warning(
                f"검색 시간 초과 ({self.search_timeout}s)",
                event_id=query.event_id,
                event_name="search_timeout",
            )
            trace.record(TIMEOUT_TRACE_SOURCE, query.query, False, TraceResult.ERROR)
        except Exception:
            logger.exception(
                "해석기에서 예외 발생",
                event_id=query.event_id,
                event_name="resolver_error",
            )
            trace.record(RESOLVER_ERROR_TRACE_SOURCE, query.query, False, TraceResult.ERROR)
        return trace.not_found()

    def _is_stale(self, event_id: str, generation: int, token: int) -> bool:
        return generation != self._generation or token != self._tokens.get(event_id, 0)

    async def _work(
        self, query: SearchQuery, resolver: ImageResolver, generation: int, token: int
    ) -> None:
        try:
            result = await self._resolve(query, resolver)
            if self._is_stale(query.event_id, generation, token):
                # reset() 이후이거나 같은 이벤트가 다시 검색 중인 경우
                logger.debug(
                    "이전 실행의 결과 폐기",
                    event_id=query.event_id,
                    event_name="stale_result_discarded",
                )
                return

            self._searched += 1
            self._results[query.event_id] = result
            if result.found:
                self._found += 1
                await self.bus.handle(
                    ImageFound(
                        event_id=result.event_id,
                        image_url=result.image_url,
                        source=result.source,
                        page_url=result.page_url,
                    )
                )
            await self.bus.handle(ImageSearchCompleted(result=result))
        finally:
            if generation == self._generation:
                self._active -= 1
