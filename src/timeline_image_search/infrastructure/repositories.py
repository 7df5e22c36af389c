from typing import override

from timeline_image_search.domain.model import BlacklistEntry
from timeline_image_search.domain.repositories import BlacklistRepository


class InMemoryBlacklistRepository(BlacklistRepository):
    def __init__(self, urls: set[str] | None = None) -> None:
        super().__init__()
        self._entries: dict[str, BlacklistEntry] = {
            url: BlacklistEntry(image_url=url) for url in urls or ()
        }

    @override
    async def _add(self, entry: BlacklistEntry) -> None:
        self._entries[entry.image_url] = entry

    @override
    async def _list_urls(self) -> set[str]:
        return set(self._entries)
