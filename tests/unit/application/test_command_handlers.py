from __future__ import annotations

import pytest
from pytest_mock import MockerFixture

from timeline_image_search.application.commands import (
    BlacklistImageCommand,
    EnqueueImageSearchCommand,
    EventDTO,
    ResetImageSearchCommand,
)
from timeline_image_search.application.handlers import (
    BlacklistImageCommandHandler,
    EnqueueImageSearchCommandHandler,
    GetSearchProgressQueryHandler,
    GetSearchTraceQueryHandler,
    ResetImageSearchCommandHandler,
    is_welcome_event,
    to_search_query,
)
from timeline_image_search.application.queries import (
    GetSearchProgressQuery,
    GetSearchTraceQuery,
    SearchProgressDTO,
)
from timeline_image_search.application.scheduler import ImageSearchScheduler
from timeline_image_search.domain.model import (
    Category,
    ImageResult,
    SearchTraceEntry,
    TraceResult,
)
from timeline_image_search.infrastructure.blacklist import BlacklistFilter
from timeline_image_search.infrastructure.repositories import InMemoryBlacklistRepository


@pytest.fixture
def scheduler(mocker: MockerFixture):
    return mocker.create_autospec(ImageSearchScheduler, instance=True)


# Event intake


def test_event_record_is_parsed_from_camel_case():
    event = EventDTO.from_record(
        {
            "id": 7,
            "title": "Elfstedentocht",
            "year": "1997",
            "category": "sports",
            "imageSearchQuery": "Elfstedentocht",
            "imageSearchQueryEn": "Eleven cities tour",
            "isTV": True,
            "eventScope": "period",
        }
    )

    assert event.id == "7"
    assert event.year == 1997
    assert event.image_search_query_en == "Eleven cities tour"
    assert event.is_tv is True
    assert event.event_scope == "period"


def test_non_numeric_year_is_ignored():
    assert EventDTO.from_record({"id": "e1", "year": "jaren 80"}).year is None


def test_to_search_query_maps_flags():
    event = EventDTO(
        id="e1",
        title="Thriller",
        year=1982,
        category="music",
        image_search_query="Michael Jackson",
        spotify_search_query="Thriller Michael Jackson",
    )

    query = to_search_query(event)

    assert query is not None
    assert query.category is Category.MUSIC
    assert query.is_celebrity and query.is_music
    assert query.spotify_query == "Thriller Michael Jackson"
    assert query.query_en is None


def test_movie_query_overrides_both_languages():
    event = EventDTO(
        id="e1",
        image_search_query="De terminator",
        image_search_query_en="Terminator",
        movie_search_query="The Terminator",
        is_movie=True,
    )

    query = to_search_query(event)

    assert query is not None
    assert query.query == "The Terminator"
    assert query.query_en == "The Terminator"


def test_unknown_category_becomes_world():
    query = to_search_query(EventDTO(id="e1", image_search_query="Zonsverduistering", category="astro"))

    assert query is not None
    assert query.category is Category.WORLD


@pytest.mark.parametrize(
    "event",
    [
        EventDTO(id="e1", title="Welkom op de wereld!", image_search_query="baby"),
        EventDTO(id="e2", title="Welcome to the world", image_search_query="baby"),
        EventDTO(
            id="e3",
            title="You were born",
            category="personal",
            event_scope="birthdate",
            image_search_query="hospital",
        ),
    ],
)
def test_welcome_events_are_skipped(event):
    assert is_welcome_event(event)
    assert to_search_query(event) is None


def test_events_without_query_are_skipped():
    assert to_search_query(EventDTO(id="e1", title="Iets", image_search_query="   ")) is None


# Command handlers


async def test_enqueue_handler_converts_and_skips(scheduler):
    scheduler.enqueue.return_value = 1
    handler = EnqueueImageSearchCommandHandler(scheduler=scheduler)

    await handler.handle(
        EnqueueImageSearchCommand(
            events=[
                EventDTO(id="e1", image_search_query="Sneeuwpret"),
                EventDTO(id="e2", title="Welkom op de wereld"),
            ]
        )
    )

    (queries,), _ = scheduler.enqueue.call_args
    assert [q.event_id for q in queries] == ["e1"]


async def test_reset_handler_resets_scheduler(scheduler):
    await ResetImageSearchCommandHandler(scheduler=scheduler).handle(ResetImageSearchCommand())

    scheduler.reset.assert_called_once_with()


async def test_blacklist_handler_adds_url_and_researches_event(scheduler):
    repository = InMemoryBlacklistRepository()
    blacklist = BlacklistFilter(repository)
    handler = BlacklistImageCommandHandler(blacklist=blacklist, scheduler=scheduler)
    event = EventDTO(id="e1", title="Sneeuwpret", image_search_query="Sneeuwpret")

    await handler.handle(
        BlacklistImageCommand(
            image_url="https://up/bad.jpg",
            event_title="Sneeuwpret",
            search_query="Sneeuwpret",
            event=event,
        )
    )

    assert blacklist.is_blacklisted("https://up/bad.jpg")
    assert await repository.list_urls() == {"https://up/bad.jpg"}
    (query,), _ = scheduler.force_research.call_args
    assert query.event_id == "e1"


async def test_blacklist_handler_without_event_only_blacklists(scheduler):
    blacklist = BlacklistFilter(InMemoryBlacklistRepository())
    handler = BlacklistImageCommandHandler(blacklist=blacklist, scheduler=scheduler)

    await handler.handle(BlacklistImageCommand(image_url="https://up/bad.jpg"))

    assert blacklist.is_blacklisted("https://up/bad.jpg")
    scheduler.force_research.assert_not_called()


# Query handlers


async def test_progress_query_reflects_scheduler_state(mocker: MockerFixture):
    scheduler = mocker.Mock(
        is_searching=True, searched_count=4, found_count=2, queue_length=6
    )

    progress = await GetSearchProgressQueryHandler(scheduler=scheduler).handle(
        GetSearchProgressQuery()
    )

    assert progress == SearchProgressDTO(
        is_searching=True, searched_count=4, found_count=2, queue_length=6
    )


async def test_trace_query_returns_latest_result(scheduler):
    entry = SearchTraceEntry("Wikimedia Commons", "Sneeuwpret", False, TraceResult.FOUND, 12)
    scheduler.result_for.return_value = ImageResult(
        event_id="e1",
        image_url="https://up/s.jpg",
        source="Wikimedia Commons",
        search_trace=(entry,),
    )

    dto = await GetSearchTraceQueryHandler(scheduler=scheduler).handle(GetSearchTraceQuery("e1"))

    assert dto is not None
    assert dto.trace == [entry]
    assert dto.source == "Wikimedia Commons"


async def test_trace_query_for_unknown_event_is_none(scheduler):
    scheduler.result_for.return_value = None

    assert await GetSearchTraceQueryHandler(scheduler=scheduler).handle(GetSearchTraceQuery("x")) is None
