from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from timeline_image_search.domain.model import Category, QueryLanguage, SourceId


class RoutingTableError(ValueError):
    """카테고리 → 소스 순서 테이블이 불완전할 때 발생합니다."""


@dataclass(frozen=True)
class SourceSlot:
    """캐스케이드에서 한 자리: 어떤 소스를 어떤 언어의 검색어로 호출할지"""

    source_id: SourceId
    language: QueryLanguage


_NATIVE = QueryLanguage.NATIVE
_EN = QueryLanguage.ENGLISH

# 언어 중립적인 이미지 아카이브를 먼저, 모국어 백과사전은 마지막에.
GLOBAL_ORDER: tuple[SourceSlot, ...] = (
    SourceSlot(SourceId.COMMONS, _EN),
    SourceSlot(SourceId.WIKIPEDIA_EN, _EN),
    SourceSlot(SourceId.WIKIPEDIA_NATIVE, _NATIVE),
)

# 국가 기록보관소 → 이미지 아카이브 → 모국어 백과사전.
LOCAL_ORDER: tuple[SourceSlot, ...] = (
    SourceSlot(SourceId.NATIONAL_ARCHIVE, _NATIVE),
    SourceSlot(SourceId.COMMONS, _NATIVE),
    SourceSlot(SourceId.WIKIPEDIA_NATIVE, _NATIVE),
)

CULTURE_ORDER: tuple[SourceSlot, ...] = (
    SourceSlot(SourceId.COMMONS, _NATIVE),
    SourceSlot(SourceId.WIKIPEDIA_NATIVE, _NATIVE),
    SourceSlot(SourceId.WIKIPEDIA_EN, _EN),
)

DEFAULT_ROUTES: Mapping[Category, tuple[SourceSlot, ...]] = {
    Category.TECHNOLOGY: GLOBAL_ORDER,
    Category.SCIENCE: GLOBAL_ORDER,
    Category.WORLD: GLOBAL_ORDER,
    Category.MUSIC: GLOBAL_ORDER,
    Category.ENTERTAINMENT: GLOBAL_ORDER,
    Category.SPORTS: GLOBAL_ORDER,
    Category.CELEBRITY: GLOBAL_ORDER,
    Category.PERSONAL: GLOBAL_ORDER,
    Category.LOCAL: LOCAL_ORDER,
    Category.POLITICS: LOCAL_ORDER,
    Category.CULTURE: CULTURE_ORDER,
}


class RoutingTable:
    """카테고리별로 정렬된 소스 슬롯 목록. 생성 시점에 검증됩니다."""

    def __init__(self, routes: Mapping[Category, tuple[SourceSlot, ...]] = DEFAULT_ROUTES):
        missing = [c.value for c in Category if c not in routes]
        if missing:
            raise RoutingTableError(f"Categories without a source order: {missing}")
        empty = [c.value for c, slots in routes.items() if not slots]
        if empty:
            raise RoutingTableError(f"Categories mapped to an empty source list: {empty}")
        self._routes: dict[Category, tuple[SourceSlot, ...]] = dict(routes)

    def slots_for(self, category: Category) -> tuple[SourceSlot, ...]:
        return self._routes[category]

    def source_ids(self) -> set[SourceId]:
        return {slot.source_id for slots in self._routes.values() for slot in slots}
