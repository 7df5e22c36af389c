from abc import ABC, abstractmethod

from timeline_image_search.domain.model import BlacklistEntry


class BlacklistRepository(ABC):
    """외부에서 관리되는 이미지 블랙리스트 저장소"""

    seen: set[BlacklistEntry]

    def __init__(self):
        self.seen = set()

    async def add(self, entry: BlacklistEntry) -> None:
        await self._add(entry)
        self.seen.add(entry)

    async def list_urls(self) -> set[str]:
        return await self._list_urls()

    @abstractmethod
    async def _add(self, entry: BlacklistEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    async def _list_urls(self) -> set[str]:
        raise NotImplementedError
