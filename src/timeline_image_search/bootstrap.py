from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

from loguru import logger

from timeline_image_search.application import handlers
from timeline_image_search.application.cascade import CascadeImageResolver
from timeline_image_search.application.commands import (
    BlacklistImageCommand,
    EnqueueImageSearchCommand,
    ResetImageSearchCommand,
)
from timeline_image_search.application.image_search import ImageSearchResolver
from timeline_image_search.application.scheduler import ImageSearchScheduler
from timeline_image_search.domain.events import ImageFound, ImageSearchCompleted
from timeline_image_search.domain.model import SearchMode
from timeline_image_search.domain.routing import RoutingTable, RoutingTableError
from timeline_image_search.infrastructure.blacklist import BlacklistFilter
from timeline_image_search.infrastructure.message_bus import (
    FunctionHandler,
    InMemoryMessageBus,
)
from timeline_image_search.infrastructure.persistence.database import (
    create_tables,
    get_engine,
    get_session_factory,
)
from timeline_image_search.infrastructure.persistence.orm import start_mappers
from timeline_image_search.infrastructure.persistence.repositories import (
    SqlAlchemyBlacklistRepository,
)
from timeline_image_search.infrastructure.sources.factory import ImageSourceFactory

if TYPE_CHECKING:
    from timeline_image_search.config import Settings
    from timeline_image_search.domain.message_bus import MessageBus
    from timeline_image_search.domain.repositories import BlacklistRepository


class Application:
    """애플리케이션의 핵심 컴포넌트들을 관리하는 클래스"""

    def __init__(
        self,
        bus: MessageBus,
        scheduler: ImageSearchScheduler,
        blacklist: BlacklistFilter,
        factory: ImageSourceFactory,
        progress_query_handler: handlers.GetSearchProgressQueryHandler,
        trace_query_handler: handlers.GetSearchTraceQueryHandler,
    ):
        self.bus = bus
        self.scheduler = scheduler
        self.blacklist = blacklist
        self.factory = factory
        self.progress_query_handler = progress_query_handler
        self.trace_query_handler = trace_query_handler

    async def start(self) -> None:
        """블랙리스트 스냅샷을 불러옵니다. 첫 검색 전에 한 번 호출합니다."""
        await self.blacklist.refresh()

    async def aclose(self) -> None:
        await self.scheduler.aclose()
        await self.factory.cleanup()


def _default_blacklist_repository(settings: Settings) -> BlacklistRepository:
    engine = get_engine(settings.blacklist_db_url)
    start_mappers()
    create_tables(engine)
    return SqlAlchemyBlacklistRepository(get_session_factory(engine))


def bootstrap(
    settings: Settings,
    on_image_found: Callable[[ImageFound], Awaitable[None]] | None = None,
    on_search_completed: Callable[[ImageSearchCompleted], Awaitable[None]] | None = None,
    factory: ImageSourceFactory | None = None,
    blacklist_repository: BlacklistRepository | None = None,
    routing: RoutingTable | None = None,
) -> Application:
    """애플리케이션을 초기화하고 모든 컴포넌트를 설정합니다.

    Args:
        settings: 애플리케이션 설정
        on_image_found: 이미지를 찾을 때마다 호출되는 구독자 (UI 카드 갱신)
        on_search_completed: 검색 하나가 끝날 때마다 호출되는 구독자 (디버그 화면)
        factory, blacklist_repository, routing: 테스트에서 교체할 수 있는 구성 요소

    Returns:
        초기화된 Application 객체

    Raises:
        RoutingTableError: 라우팅 테이블이 불완전하거나 등록되지 않은 소스를 가리킬 때
    """
    logger.info("애플리케이션 bootstrap 시작", mode=settings.search_mode.value)

    # 1. 메시지 버스 생성
    bus = InMemoryMessageBus()

    # 2. 검색 백엔드 팩토리 및 라우팅 테이블 검증
    factory = factory or ImageSourceFactory.from_settings(settings)
    routing = routing or RoutingTable()
    unregistered = [s.value for s in routing.source_ids() if not factory.has_source(s)]
    if unregistered:
        raise RoutingTableError(f"Routing table references unregistered sources: {unregistered}")
    logger.debug("라우팅 테이블 검증 완료")

    # 3. 블랙리스트
    blacklist = BlacklistFilter(blacklist_repository or _default_blacklist_repository(settings))

    # 4. 해석기와 스케줄러
    resolvers = {
        SearchMode.CASCADE: CascadeImageResolver(
            factory=factory,
            routing=routing,
            blacklist=blacklist,
            lenient_fallback=settings.lenient_fallback,
            policy=settings.candidate_policy,
        ),
        SearchMode.IMAGE_SEARCH: ImageSearchResolver(factory=factory, blacklist=blacklist),
    }
    scheduler = ImageSearchScheduler(
        resolvers=resolvers,
        bus=bus,
        mode=settings.search_mode,
        max_concurrent=settings.max_concurrent,
        poll_interval=settings.poll_interval,
        search_timeout=settings.search_timeout,
    )

    # 5. 커맨드 핸들러 등록
    bus.register_command(
        EnqueueImageSearchCommand,
        handlers.EnqueueImageSearchCommandHandler(scheduler=scheduler),
    )
    bus.register_command(
        ResetImageSearchCommand,
        handlers.ResetImageSearchCommandHandler(scheduler=scheduler),
    )
    bus.register_command(
        BlacklistImageCommand,
        handlers.BlacklistImageCommandHandler(blacklist=blacklist, scheduler=scheduler),
    )
    logger.debug("커맨드 핸들러 등록 완료")

    # 6. 이벤트 구독자 등록
    if on_image_found is not None:
        bus.subscribe_to_event(ImageFound, FunctionHandler(on_image_found))
    if on_search_completed is not None:
        bus.subscribe_to_event(ImageSearchCompleted, FunctionHandler(on_search_completed))
    logger.debug("이벤트 구독자 등록 완료")

    logger.info("애플리케이션 bootstrap 완료")

    return Application(
        bus=bus,
        scheduler=scheduler,
        blacklist=blacklist,
        factory=factory,
        progress_query_handler=handlers.GetSearchProgressQueryHandler(scheduler=scheduler),
        trace_query_handler=handlers.GetSearchTraceQueryHandler(scheduler=scheduler),
    )
