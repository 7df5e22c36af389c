import pytest
from sqlalchemy import inspect

from timeline_image_search.domain.model import BlacklistEntry
from timeline_image_search.infrastructure.blacklist import BlacklistFilter
from timeline_image_search.infrastructure.persistence.database import (
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
)
from timeline_image_search.infrastructure.persistence.orm import (
    image_blacklist_table,
    start_mappers,
)
from timeline_image_search.infrastructure.persistence.repositories import (
    SqlAlchemyBlacklistRepository,
)


@pytest.fixture
def in_memory_session_factory():
    """In-memory SQLite 데이터베이스를 사용하는 세션 팩토리를 제공하는 Fixture"""
    engine = get_engine("sqlite:///:memory:")
    start_mappers()
    create_tables(engine)
    yield get_session_factory(engine)
    drop_tables(engine)
    engine.dispose()


async def test_repository_can_add_and_list_urls(in_memory_session_factory):
    repo = SqlAlchemyBlacklistRepository(in_memory_session_factory)

    await repo.add(
        BlacklistEntry(
            image_url="https://upload.wikimedia.org/a/History_of_Apple.jpg",
            event_title="Apple Macintosh",
            search_query="Apple Macintosh 1984",
        )
    )
    await repo.add(BlacklistEntry(image_url="https://upload.wikimedia.org/b/Sneeuw.jpg"))

    # 새로운 리포지토리 인스턴스(다른 세션)에서 조회
    other = SqlAlchemyBlacklistRepository(in_memory_session_factory)
    assert await other.list_urls() == {
        "https://upload.wikimedia.org/a/History_of_Apple.jpg",
        "https://upload.wikimedia.org/b/Sneeuw.jpg",
    }


async def test_adding_same_url_twice_updates_metadata(in_memory_session_factory):
    repo = SqlAlchemyBlacklistRepository(in_memory_session_factory)
    url = "https://upload.wikimedia.org/a/bad.jpg"

    await repo.add(BlacklistEntry(image_url=url, event_title="Eerste"))
    await repo.add(BlacklistEntry(image_url=url, event_title="Tweede"))

    assert await repo.list_urls() == {url}
    with in_memory_session_factory() as session:
        rows = session.execute(image_blacklist_table.select()).all()
    assert len(rows) == 1
    assert rows[0].event_title == "Tweede"


async def test_filter_snapshot_is_loaded_from_database(in_memory_session_factory):
    repo = SqlAlchemyBlacklistRepository(in_memory_session_factory)
    await repo.add(BlacklistEntry(image_url="https://up/bad.jpg"))

    blacklist = BlacklistFilter(repo)
    assert not blacklist.is_blacklisted("https://up/bad.jpg")

    await blacklist.refresh()

    assert blacklist.is_blacklisted("https://up/bad.jpg")
    assert len(blacklist) == 1


def test_drop_tables_removes_blacklist_table():
    engine = get_engine("sqlite:///:memory:")
    create_tables(engine)
    assert inspect(engine).has_table("image_blacklist")

    drop_tables(engine)

    assert not inspect(engine).has_table("image_blacklist")
    engine.dispose()
