from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from loguru import logger

from timeline_image_search.domain.model import SourceId
from timeline_image_search.infrastructure.logging_utils import log_step
from timeline_image_search.infrastructure.sources.base import ImageSource
from timeline_image_search.infrastructure.sources.image_search import (
    GeneralImageSearchSource,
)
from timeline_image_search.infrastructure.sources.metadata import (
    MetadataSource,
    ProxiedMetadataSource,
    ProxyClient,
    SpotifyAlbumArtSource,
)
from timeline_image_search.infrastructure.sources.wikimedia import (
    CommonsImageSource,
    NationalArchiveImageSource,
    WikipediaImageSource,
)

if TYPE_CHECKING:
    from timeline_image_search.config import Settings


class ImageSourceFactory:
    """검색 백엔드 어댑터와 공유 HTTP 클라이언트를 관리하는 팩토리"""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client
        self._sources: dict[SourceId, ImageSource] = {}
        self._metadata_sources: list[MetadataSource] = []
        self._image_search: GeneralImageSearchSource | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> ImageSourceFactory:
        """설정값으로 클라이언트를 만들고 기본 어댑터를 모두 등록합니다."""
        client = httpx.AsyncClient(
            timeout=settings.http_timeout,
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
            transport=transport,
        )
        factory = cls(client)
        wiki_kwargs = {"thumb_width": settings.thumb_width, "limit": settings.search_limit}

        factory.register_source(
            SourceId.WIKIPEDIA_NATIVE,
            WikipediaImageSource(client, settings.native_language, **wiki_kwargs),
        )
        factory.register_source(
            SourceId.WIKIPEDIA_EN,
            WikipediaImageSource(client, settings.english_language, **wiki_kwargs),
        )
        factory.register_source(SourceId.COMMONS, CommonsImageSource(client, **wiki_kwargs))
        factory.register_source(
            SourceId.NATIONAL_ARCHIVE,
            NationalArchiveImageSource(
                client, qualifier=settings.archive_qualifier, **wiki_kwargs
            ),
        )

        proxy = ProxyClient(client, settings.proxy_base_url, settings.proxy_api_key)
        if not proxy.is_configured:
            logger.warning(
                "프록시가 설정되지 않아 메타데이터/이미지 검색 백엔드는 항상 실패합니다",
                event_name="proxy_not_configured",
            )
        # 음악 이벤트는 앨범 아트를 인물 사진보다 먼저 시도합니다.
        factory.register_metadata_source(SpotifyAlbumArtSource(proxy))
        factory.register_metadata_source(ProxiedMetadataSource(proxy))
        factory.set_image_search_source(GeneralImageSearchSource(proxy))
        return factory

    def register_source(self, source_id: SourceId, source: ImageSource) -> None:
        """팩토리에 캐스케이드 어댑터를 등록합니다."""
        self._sources[source_id] = source
        logger.debug(f"{source_id.value} 어댑터 등록 완료", label=source.label)

    def register_metadata_source(self, source: MetadataSource) -> None:
        self._metadata_sources.append(source)
        logger.debug(f"{source.label} 메타데이터 어댑터 등록 완료")

    def set_image_search_source(self, source: GeneralImageSearchSource) -> None:
        self._image_search = source

    def get_source(self, source_id: SourceId) -> ImageSource:
        """등록된 어댑터를 반환합니다.

        Raises:
            ValueError: 등록되지 않은 소스인 경우
        """
        source = self._sources.get(source_id)
        if source is None:
            logger.error(
                "등록되지 않은 소스",
                source_id=source_id.value,
                event_name="unsupported_source",
            )
            raise ValueError(f"등록되지 않은 소스입니다: {source_id.value}")
        return source

    def has_source(self, source_id: SourceId) -> bool:
        return source_id in self._sources

    @property
    def metadata_sources(self) -> list[MetadataSource]:
        return list(self._metadata_sources)

    @property
    def image_search_source(self) -> GeneralImageSearchSource:
        if self._image_search is None:
            raise ValueError("이미지 검색 백엔드가 등록되지 않았습니다")
        return self._image_search

    async def cleanup(self) -> None:
        """팩토리가 관리하는 HTTP 클라이언트를 닫습니다."""
        with log_step("팩토리 리소스 정리", source_count=len(self._sources)):
            if not self.client.is_closed:
                await self.client.aclose()
