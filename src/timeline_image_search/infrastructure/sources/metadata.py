from typing import Any, Final, Protocol

import httpx
from loguru import logger

from timeline_image_search.domain.model import ImageCandidate, SearchQuery, SubjectKind
from timeline_image_search.domain.normalizer import clean_metadata_query
from timeline_image_search.infrastructure.exceptions import (
    ImageSourceError,
    ProxyNotConfiguredError,
)
from timeline_image_search.infrastructure.sources.base import request_json


class MetadataSource(Protocol):
    """인물/영화/앨범 메타데이터 백엔드. 일반 캐스케이드보다 먼저 한 번만 호출됩니다."""

    label: str

    def applies_to(self, query: SearchQuery) -> bool:
        ...

    def trace_label(self, query: SearchQuery) -> str:
        ...

    def query_text(self, query: SearchQuery) -> str:
        ...

    def forwards_year(self, query: SearchQuery) -> bool:
        ...

    async def lookup(self, query: SearchQuery) -> ImageCandidate | None:
        ...


class ProxyClient:
    """API 자격 증명을 가진 서버 측 프록시 함수 호출기"""

    def __init__(
        self, client: httpx.AsyncClient, base_url: str | None, api_key: str | None
    ) -> None:
        self.client: Final = client
        self.base_url: Final = base_url.rstrip("/") if base_url else None
        self.api_key: Final = api_key

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def post(self, source: str, function_name: str, payload: dict[str, Any]) -> Any:
        if not self.is_configured:
            raise ProxyNotConfiguredError(source, "proxy base url or api key is not set")
        return await request_json(
            self.client,
            source,
            "POST",
            f"{self.base_url}/{function_name}",
            json=payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "apikey": str(self.api_key),
            },
        )


class ProxiedMetadataSource(MetadataSource):
    """TMDB 인물 사진/영화 포스터/TV 포스터 (search-images 프록시)"""

    label = "TMDB"

    def __init__(self, proxy: ProxyClient) -> None:
        self.proxy: Final = proxy

    def applies_to(self, query: SearchQuery) -> bool:
        return query.wants_metadata

    def trace_label(self, query: SearchQuery) -> str:
        return f"{self.label} {query.subject_kind.value}"

    def query_text(self, query: SearchQuery) -> str:
        return clean_metadata_query(query.english_text)

    def forwards_year(self, query: SearchQuery) -> bool:
        # 인물 검색에 연도를 넘기면 동명이인 필터링이 과해집니다.
        return query.year is not None and query.subject_kind in (SubjectKind.MOVIE, SubjectKind.TV)

    async def lookup(self, query: SearchQuery) -> ImageCandidate | None:
        kind = query.subject_kind
        payload = {
            "queries": [
                {
                    "eventId": query.event_id,
                    "query": self.query_text(query),
                    "year": query.year if self.forwards_year(query) else None,
                    "isCelebrity": kind is SubjectKind.PERSON,
                    "isMovie": kind is SubjectKind.MOVIE,
                    "isTV": kind is SubjectKind.TV,
                    "isMusic": query.is_music,
                }
            ]
        }
        data = await self.proxy.post(self.label, "search-images", payload)
        if not isinstance(data, dict):
            raise ImageSourceError(self.label, "unexpected response shape")
        images = data.get("images") or []
        first = images[0] if images and isinstance(images[0], dict) else {}
        image_url = first.get("imageUrl")
        if not image_url:
            logger.debug(
                "메타데이터 결과 없음",
                subject=kind.value,
                query=payload["queries"][0]["query"],
                event_name="metadata_not_found",
            )
            return None
        return ImageCandidate(image_url=image_url, source=first.get("source") or self.label)


class SpotifyAlbumArtSource(MetadataSource):
    """음악 이벤트의 앨범 아트 (search-spotify 프록시)"""

    label = "Spotify"

    def __init__(self, proxy: ProxyClient) -> None:
        self.proxy: Final = proxy

    def applies_to(self, query: SearchQuery) -> bool:
        return query.is_music and bool(query.spotify_query)

    def trace_label(self, query: SearchQuery) -> str:
        return self.label

    def query_text(self, query: SearchQuery) -> str:
        return query.spotify_query or query.english_text

    def forwards_year(self, query: SearchQuery) -> bool:
        return False

    async def lookup(self, query: SearchQuery) -> ImageCandidate | None:
        data = await self.proxy.post(self.label, "search-spotify", {"query": self.query_text(query)})
        if not isinstance(data, dict):
            raise ImageSourceError(self.label, "unexpected response shape")
        album_image = data.get("albumImage")
        track_id = data.get("trackId")
        if not (album_image and track_id):
            return None
        return ImageCandidate(
            image_url=album_image,
            source=self.label,
            page_url=data.get("spotifyUrl") or f"https://open.spotify.com/track/{track_id}",
        )
