import re
from typing import Any, Protocol
from urllib.parse import urlparse

import httpx

from timeline_image_search.domain.model import ImageCandidate, SearchOptions
from timeline_image_search.infrastructure.exceptions import ImageSourceError

_ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
# 경로 중간에 있어도 막는 오디오/영상/PDF 세그먼트 (트랜스코딩 결과물의 원본 파일명)
_BLOCKED_SEGMENT_RE = re.compile(r"\.(mp3|ogg|oga|ogv|wav|flac|aac|m4a|webm|mp4|avi|mov|mkv|pdf)$")
# 마지막 세그먼트에서만 막는 확장자. ".svg/960px-Logo.svg.png" 같은 래스터 썸네일은 허용됩니다.
_BLOCKED_FINAL_RE = re.compile(r"\.(djvu|stl|tif|tiff|svg)$")


class ImageSource(Protocol):
    """검색어 하나를 이미지 한 장(또는 없음)으로 바꾸는 외부 백엔드 어댑터"""

    label: str

    async def search(
        self, query: str, year: int | None, options: SearchOptions
    ) -> ImageCandidate | None:
        """백엔드를 검색하고 첫 번째로 일치하는 이미지를 반환합니다.

        Args:
            query: 검색어 (연도를 덧붙이지 않은 상태)
            year: 이벤트 연도. options.include_year가 True일 때만 검색어에 붙입니다.
            options: 따옴표 사용, 엄격 매칭 여부 등

        Returns:
            찾은 이미지 또는 None

        Raises:
            ImageSourceError: HTTP 오류, 네트워크 오류, 응답 구조 불일치
        """
        ...


def is_blocked_media(url: str) -> bool:
    """트랜스코딩된 영상이나 오디오/영상/문서 파일을 가리키는 URL인지 확인합니다."""
    path = urlparse(url).path.lower()
    if "/transcoded/" in path or "/pdf/" in path:
        return True
    segments = path.split("/")
    if _BLOCKED_FINAL_RE.search(segments[-1]):
        return True
    return any(_BLOCKED_SEGMENT_RE.search(segment) for segment in segments)


def is_admissible_image_url(url: str | None) -> bool:
    """래스터 이미지(.jpg/.jpeg/.png/.webp/.gif)로 끝나는 URL만 허용합니다."""
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    if is_blocked_media(url):
        return False
    return parsed.path.lower().endswith(_ALLOWED_EXTENSIONS)


async def request_json(
    client: httpx.AsyncClient,
    source: str,
    method: str,
    url: str,
    **kwargs: Any,
) -> Any:
    """요청을 보내고 JSON 본문을 반환합니다. 모든 실패는 ImageSourceError로 바꿉니다."""
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        raise ImageSourceError(source, f"{e.__class__.__name__}: {e}") from e
    if not response.is_success:
        raise ImageSourceError(source, f"HTTP {response.status_code}")
    try:
        return response.json()
    except ValueError as e:
        raise ImageSourceError(source, "response is not valid JSON") from e
