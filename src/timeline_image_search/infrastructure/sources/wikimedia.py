import re
from typing import Any, Final, override
from urllib.parse import quote

import httpx
from loguru import logger

from timeline_image_search.domain.match_evaluator import matches
from timeline_image_search.domain.model import ImageCandidate, SearchOptions
from timeline_image_search.infrastructure.exceptions import ImageSourceError
from timeline_image_search.infrastructure.logging_utils import log_with_context
from timeline_image_search.infrastructure.sources.base import (
    ImageSource,
    is_admissible_image_url,
    request_json,
)

COMMONS_API_URL: Final = "https://commons.wikimedia.org/w/api.php"
FILE_NAMESPACE: Final = 6

# 제목만 보고도 래스터 이미지가 아님을 알 수 있는 파일은 두 번째 요청 전에 건너뜁니다.
_NON_RASTER_TITLE_RE = re.compile(
    r"\.(pdf|djvu|stl|ogg|ogv|oga|mp3|wav|flac|webm|mp4|avi|mov|mkv|svg|tif|tiff)$",
    re.IGNORECASE,
)


class MediaWikiImageSource(ImageSource):
    """MediaWiki 검색 API 기반 어댑터의 공통 구현.

    검색 API는 문서/파일 '제목'만 돌려주므로 두 번 왕복합니다:
    1) list=search로 후보 제목을 가져오고 매칭 평가
    2) 일치한 제목마다 실제 이미지 URL을 pageimages/imageinfo로 조회하고,
       사용할 수 있는 래스터 이미지가 나오면 바로 반환
    """

    label: str = "MediaWiki"
    namespace: int | None = None
    qualifier: str | None = None

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_url: str,
        page_base_url: str,
        thumb_width: int = 960,
        limit: int = 10,
    ) -> None:
        self.client: Final = client
        self.api_url: Final = api_url
        self.page_base_url: Final = page_base_url.rstrip("/")
        self.thumb_width: Final = thumb_width
        self.limit: Final = limit

    def build_search_text(self, query: str, year: int | None, options: SearchOptions) -> str:
        text = f'"{query}"' if options.use_quotes else query
        if options.include_year and year:
            text = f"{text} {year}"
        if self.qualifier:
            text = f"{text} {self.qualifier}"
        return text

    async def _search_titles(self, search_text: str) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "action": "query",
            "list": "search",
            "srsearch": search_text,
            "srlimit": self.limit,
            "format": "json",
        }
        if self.namespace is not None:
            params["srnamespace"] = self.namespace
        data = await request_json(self.client, self.label, "GET", self.api_url, params=params)
        if not isinstance(data, dict):
            raise ImageSourceError(self.label, "unexpected search response shape")
        results = (data.get("query") or {}).get("search") or []
        if not isinstance(results, list):
            raise ImageSourceError(self.label, "unexpected search result list")
        return [r for r in results if isinstance(r, dict) and r.get("title")]

    async def resolve_image_url(self, title: str) -> str | None:
        """제목에 연결된 썸네일(없으면 원본) URL을 조회합니다."""
        params = {
            "action": "query",
            "titles": title,
            "prop": "pageimages|imageinfo",
            "iiprop": "url",
            "iiurlwidth": self.thumb_width,
            "pithumbsize": self.thumb_width,
            "format": "json",
        }
        data = await request_json(self.client, self.label, "GET", self.api_url, params=params)
        pages = (data.get("query") or {}).get("pages") if isinstance(data, dict) else None
        if not isinstance(pages, dict) or not pages:
            return None
        page_id, page = next(iter(pages.items()))
        if page_id == "-1" or not isinstance(page, dict):
            return None
        thumbnail = (page.get("thumbnail") or {}).get("source")
        if thumbnail:
            return thumbnail
        image_info = page.get("imageinfo") or [{}]
        return image_info[0].get("thumburl") or image_info[0].get("url")

    def page_url(self, title: str) -> str:
        return f"{self.page_base_url}/wiki/{quote(title.replace(' ', '_'), safe=':/')}"

    @override
    async def search(
        self, query: str, year: int | None, options: SearchOptions
    ) -> ImageCandidate | None:
        with logger.contextualize(source=self.label):
            search_text = self.build_search_text(query, year, options)
            results = await self._search_titles(search_text)
            if not results:
                logger.debug("검색 결과 없음", query=search_text, event_name="no_results")
                return None

            for result in results:
                title = str(result["title"])
                if _NON_RASTER_TITLE_RE.search(title):
                    continue
                if not matches(title, result.get("snippet"), query, strict=options.strict_match):
                    continue

                try:
                    image_url = await self.resolve_image_url(title)
                except ImageSourceError as e:
                    logger.warning(
                        "이미지 URL 조회 실패, 다음 후보로 진행",
                        title=title,
                        error=str(e),
                        event_name="image_lookup_failed",
                    )
                    continue
                if not is_admissible_image_url(image_url):
                    logger.debug(
                        "일치한 후보의 이미지를 사용할 수 없음",
                        title=title,
                        image_url=image_url,
                        event_name="candidate_rejected",
                    )
                    continue
                # 블랙리스트 URL을 건너뛰는 것은 EXHAUSTIVE 정책뿐입니다.
                # FIRST_MATCH에서는 그대로 반환되어 호출자가 거절합니다.
                if options.is_excluded(image_url):
                    logger.debug(
                        "제외 대상 이미지, 다음 후보로 진행",
                        title=title,
                        image_url=image_url,
                        event_name="candidate_excluded",
                    )
                    continue

                logger.debug(
                    "이미지 발견",
                    title=title,
                    image_url=image_url,
                    event_name="image_resolved",
                )
                return ImageCandidate(
                    image_url=image_url, source=self.label, page_url=self.page_url(title)
                )

            logger.debug("일치하는 후보 없음", query=search_text, event_name="no_match")
            return None


class WikipediaImageSource(MediaWikiImageSource):
    """언어별 Wikipedia 문서의 대표 이미지"""

    def __init__(self, client: httpx.AsyncClient, language: str, **kwargs: Any) -> None:
        base = f"https://{language}.wikipedia.org"
        super().__init__(client, api_url=f"{base}/w/api.php", page_base_url=base, **kwargs)
        self.language: Final = language
        self.label = f"Wikipedia ({language})"

    @override
    @log_with_context(backend="wikipedia")
    async def search(
        self, query: str, year: int | None, options: SearchOptions
    ) -> ImageCandidate | None:
        return await super().search(query, year, options)


class CommonsImageSource(MediaWikiImageSource):
    """Wikimedia Commons 파일 네임스페이스 검색"""

    label = "Wikimedia Commons"
    namespace = FILE_NAMESPACE

    def __init__(self, client: httpx.AsyncClient, **kwargs: Any) -> None:
        super().__init__(
            client,
            api_url=COMMONS_API_URL,
            page_base_url="https://commons.wikimedia.org",
            **kwargs,
        )

    @override
    @log_with_context(backend="commons")
    async def search(
        self, query: str, year: int | None, options: SearchOptions
    ) -> ImageCandidate | None:
        return await super().search(query, year, options)


class NationalArchiveImageSource(CommonsImageSource):
    """Commons 검색어에 기록보관소 이름을 덧붙여 보도사진 컬렉션을 우선 찾습니다."""

    label = "Nationaal Archief"

    def __init__(
        self, client: httpx.AsyncClient, qualifier: str = "Nationaal Archief", **kwargs: Any
    ) -> None:
        super().__init__(client, **kwargs)
        self.qualifier = qualifier
        self.label = qualifier
