import re
from typing import Any, Final

from loguru import logger

from timeline_image_search.domain.model import Category, ImageCandidate, SearchQuery
from timeline_image_search.infrastructure.exceptions import ImageSourceError
from timeline_image_search.infrastructure.sources.base import is_blocked_media
from timeline_image_search.infrastructure.sources.metadata import ProxyClient

_DECADE_SUFFIXES: Final[dict[int, str]] = {
    194: "40s",
    195: "50s",
    196: "60s",
    197: "70s",
    198: "80s",
    199: "90s",
    200: "2000s",
    201: "2010s",
    202: "2020s",
}

# "jaren 80"을 먼저 지워야 "jaren"만 남지 않습니다.
_DECADE_HINT_PATTERNS: Final = (
    re.compile(r"\bjaren\s+['’]?(?:[4-9]0s?|[0-2]0s?)\b", re.IGNORECASE),
    re.compile(r"\b(?:19[4-9]0s|20[0-2]0s)\b", re.IGNORECASE),
    re.compile(r"['’]?\b(?:[4-9]0s|[0-2]0s)\b", re.IGNORECASE),
)
_WS_RE = re.compile(r"\s{2,}")

_FLAT_URL_KEYS: Final = ("url", "imageUrl", "image", "src")
_LIST_KEYS: Final = ("results", "items", "images", "data")


def decade_suffix(year: int) -> str | None:
    return _DECADE_SUFFIXES.get(year // 10)


def strip_decade_hints(query: str) -> str:
    result = query
    for pattern in _DECADE_HINT_PATTERNS:
        result = pattern.sub("", result)
    return _WS_RE.sub(" ", result).strip()


def build_era_query(query: str, year: int | None, category: Category) -> str:
    """검색어에 시대 힌트를 붙입니다.

    스포츠는 정확한 연도가, 그 외에는 "80s" 같은 연대 접미사가 검색 품질이 더 좋습니다.
    """
    cleaned = strip_decade_hints(query)
    if year is None:
        return cleaned
    if category is Category.SPORTS:
        return f"{cleaned} {year}"
    suffix = decade_suffix(year)
    return f"{cleaned} {suffix or year}"


def _flat_url(payload: dict[str, Any]) -> str | None:
    for key in _FLAT_URL_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _first_list(payload: dict[str, Any]) -> list[Any] | None:
    for key in _LIST_KEYS:
        if isinstance(payload.get(key), list):
            return payload[key]
    # { data: { results: [...] } } 형태
    nested = payload.get("data")
    if isinstance(nested, dict):
        for key in _LIST_KEYS:
            if isinstance(nested.get(key), list):
                return nested[key]
    return None


def extract_image_url(payload: Any) -> str | None:
    """응답 형태가 제각각인 이미지 검색 결과에서 첫 번째 이미지 URL을 꺼냅니다."""
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        flat = _flat_url(payload)
        if flat:
            return flat
        items = _first_list(payload) or []
    else:
        return None

    for item in items:
        if isinstance(item, str) and item:
            return item
        if isinstance(item, dict):
            url = _flat_url(item)
            if url:
                return url
    return None


class GeneralImageSearchSource:
    """일반 이미지 검색 백엔드 (search-images-tol 프록시).

    엄격한 매칭 검증 대신 백엔드 쪽 관련도 순위를 신뢰합니다.
    """

    label = "Image search"

    def __init__(self, proxy: ProxyClient) -> None:
        self.proxy: Final = proxy

    async def search_event(self, query: SearchQuery) -> ImageCandidate | None:
        era_query = build_era_query(query.english_text, query.year, query.category)
        data = await self.proxy.post(
            self.label,
            "search-images-tol",
            {"query": era_query, "year": query.year, "category": query.category.value},
        )
        if data is None:
            raise ImageSourceError(self.label, "empty response body")

        image_url = extract_image_url(data)
        if not image_url:
            return None
        if is_blocked_media(image_url):
            logger.debug(
                "비이미지 미디어 URL 제외",
                image_url=image_url,
                event_name="blocked_media",
            )
            return None
        return ImageCandidate(image_url=image_url, source=self.label)
