from __future__ import annotations

from typing import TYPE_CHECKING, Final

from loguru import logger

from timeline_image_search.application.commands import (
    BlacklistImageCommand,
    EnqueueImageSearchCommand,
    EventDTO,
    ResetImageSearchCommand,
)
from timeline_image_search.application.queries import (
    GetSearchProgressQuery,
    GetSearchTraceQuery,
    SearchProgressDTO,
    SearchTraceDTO,
)
from timeline_image_search.domain.model import BlacklistEntry, Category, SearchQuery

if TYPE_CHECKING:
    from timeline_image_search.application.scheduler import ImageSearchScheduler
    from timeline_image_search.infrastructure.blacklist import BlacklistFilter

_WELCOME_MARKERS: Final = ("welkom op de wereld", "welcome to the world", "geboren", "geboorte")
_BIRTH_MARKERS: Final = ("birth", "born", "geboren", "geboorte")


def is_welcome_event(event: EventDTO) -> bool:
    """사용자 본인의 출생을 알리는 이벤트인지 확인합니다. 이런 이벤트는 검색하지 않습니다."""
    title = event.title.lower()
    if any(marker in title for marker in _WELCOME_MARKERS):
        return True
    return (
        (event.category or "").lower() == Category.PERSONAL.value
        and (event.event_scope or "").lower() == "birthdate"
        and any(marker in title for marker in _BIRTH_MARKERS)
    )


def to_search_query(event: EventDTO) -> SearchQuery | None:
    """타임라인 이벤트를 검색 요청으로 변환합니다. 검색할 수 없으면 None."""
    query = (event.movie_search_query or event.image_search_query or "").strip()
    if not query or is_welcome_event(event):
        return None

    category = Category.parse(event.category)
    return SearchQuery(
        event_id=event.id,
        query=query,
        query_en=(event.movie_search_query or event.image_search_query_en or None),
        year=event.year,
        category=category,
        is_celebrity=event.is_celebrity_birthday
        or category in (Category.MUSIC, Category.CELEBRITY),
        is_movie=event.is_movie,
        is_tv=event.is_tv,
        is_music=category is Category.MUSIC or bool(event.spotify_search_query),
        spotify_query=event.spotify_search_query,
    )


class EnqueueImageSearchCommandHandler:
    def __init__(self, scheduler: ImageSearchScheduler):
        self.scheduler: Final = scheduler

    async def handle(self, command: EnqueueImageSearchCommand):
        queries = [q for q in map(to_search_query, command.events) if q is not None]
        skipped = len(command.events) - len(queries)
        added = self.scheduler.enqueue(queries)
        logger.debug(
            f"Handling EnqueueImageSearchCommand: {added} queued, {skipped} skipped.",
            event_count=len(command.events),
            event_name="enqueue_command",
        )


class ResetImageSearchCommandHandler:
    def __init__(self, scheduler: ImageSearchScheduler):
        self.scheduler: Final = scheduler

    async def handle(self, command: ResetImageSearchCommand):
        logger.debug("Handling ResetImageSearchCommand.")
        self.scheduler.reset()


class BlacklistImageCommandHandler:
    def __init__(self, blacklist: BlacklistFilter, scheduler: ImageSearchScheduler):
        self.blacklist: Final = blacklist
        self.scheduler: Final = scheduler

    async def handle(self, command: BlacklistImageCommand):
        with logger.contextualize(image_url=command.image_url):
            logger.debug("Handling BlacklistImageCommand.")
            await self.blacklist.add(
                BlacklistEntry(
                    image_url=command.image_url,
                    event_title=command.event_title,
                    search_query=command.search_query,
                )
            )
            if command.event is None:
                return

            query = to_search_query(command.event)
            if query is None:
                logger.warning(
                    "재검색할 수 없는 이벤트입니다.",
                    event_id=command.event.id,
                    event_name="research_skipped",
                )
                return
            self.scheduler.force_research(query)


class GetSearchProgressQueryHandler:
    def __init__(self, scheduler: ImageSearchScheduler):
        self.scheduler: Final = scheduler

    async def handle(self, query: GetSearchProgressQuery) -> SearchProgressDTO:
        return SearchProgressDTO(
            is_searching=self.scheduler.is_searching,
            searched_count=self.scheduler.searched_count,
            found_count=self.scheduler.found_count,
            queue_length=self.scheduler.queue_length,
        )


class GetSearchTraceQueryHandler:
    def __init__(self, scheduler: ImageSearchScheduler):
        self.scheduler: Final = scheduler

    async def handle(self, query: GetSearchTraceQuery) -> SearchTraceDTO | None:
        with logger.contextualize(event_id=query.event_id):
            result = self.scheduler.result_for(query.event_id)
            if result is None:
                logger.debug("No completed search for this event yet.")
                return None
            return SearchTraceDTO(
                event_id=result.event_id,
                image_url=result.image_url,
                source=result.source,
                trace=list(result.search_trace),
            )
