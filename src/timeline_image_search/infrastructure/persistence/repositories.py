from typing import override

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from timeline_image_search.domain.model import BlacklistEntry
from timeline_image_search.domain.repositories import BlacklistRepository
from timeline_image_search.infrastructure.persistence.orm import image_blacklist_table


class SqlAlchemyBlacklistRepository(BlacklistRepository):
    """BlacklistRepository의 SQLAlchemy 구현체 (image_blacklist 테이블)"""

    def __init__(self, session_factory: sessionmaker[Session]):
        super().__init__()
        self.session_factory = session_factory

    @override
    async def _add(self, entry: BlacklistEntry) -> None:
        """같은 URL이 이미 있으면 메타데이터만 갱신합니다."""
        with self.session_factory() as session:
            session.merge(entry)
            session.commit()

    @override
    async def _list_urls(self) -> set[str]:
        with self.session_factory() as session:
            rows = session.execute(select(image_blacklist_table.c.image_url))
            return {url for (url,) in rows}
