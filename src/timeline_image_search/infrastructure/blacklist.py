from typing import Final

from loguru import logger

from timeline_image_search.domain.model import BlacklistEntry
from timeline_image_search.domain.repositories import BlacklistRepository


class BlacklistFilter:
    """블랙리스트 URL의 로컬 스냅샷.

    이벤트마다 원격 저장소를 읽지 않도록 refresh() 시점의 URL 집합을 들고 있습니다.
    스냅샷이 오래되어 잘못된 이미지가 한 번 통과할 수 있으며, 이는 사용자가 다시 신고해서 해결합니다.
    """

    def __init__(self, repository: BlacklistRepository) -> None:
        self.repository: Final = repository
        self._urls: set[str] = set()

    async def refresh(self) -> None:
        self._urls = await self.repository.list_urls()
        logger.debug(
            "블랙리스트 스냅샷 갱신",
            url_count=len(self._urls),
            event_name="blacklist_refreshed",
        )

    def is_blacklisted(self, url: str | None) -> bool:
        return url is not None and url in self._urls

    async def add(self, entry: BlacklistEntry) -> None:
        await self.repository.add(entry)
        self._urls.add(entry.image_url)
        logger.info(
            "이미지 블랙리스트 추가",
            image_url=entry.image_url,
            event_title=entry.event_title,
            event_name="image_blacklisted",
        )

    def __len__(self) -> int:
        return len(self._urls)
