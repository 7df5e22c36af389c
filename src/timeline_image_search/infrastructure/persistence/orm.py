from sqlalchemy import Column, DateTime, MetaData, String, Table, Text
from sqlalchemy.orm import registry

from timeline_image_search.domain.model import BlacklistEntry

# SQLAlchemy 2.0 스타일의 메타데이터 객체
metadata = MetaData()
mapper_registry = registry(metadata=metadata)


image_blacklist_table = Table(
    "image_blacklist",
    mapper_registry.metadata,
    Column("image_url", String(2048), primary_key=True),
    Column("event_title", Text, nullable=True),
    Column("search_query", Text, nullable=True),
    Column("created_at", DateTime, nullable=False),
)


def start_mappers() -> None:
    """
    도메인 모델과 테이블을 매핑합니다.
    여러 번 호출해도 한 번만 매핑됩니다 (테스트마다 새 엔진을 만들기 때문).
    """
    if any(m.class_ is BlacklistEntry for m in mapper_registry.mappers):
        return
    mapper_registry.map_imperatively(BlacklistEntry, image_blacklist_table)
