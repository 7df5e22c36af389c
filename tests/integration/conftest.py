from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import pytest


@dataclass
class FakeMediaWiki:
    """MediaWiki API(list=search + pageimages/imageinfo)를 흉내 내는 MockTransport 핸들러.

    호스트별로 검색 결과와 제목별 이미지 URL을 등록합니다.
    """

    search_results: dict[str, list[dict]] = field(default_factory=dict)
    images: dict[str, dict[str, str]] = field(default_factory=dict)
    failing_hosts: set[str] = field(default_factory=set)
    failing_titles: set[str] = field(default_factory=set)
    requests: list[httpx.Request] = field(default_factory=list)

    def add_search(self, host: str, *titles: str | tuple[str, str]) -> None:
        results = []
        for item in titles:
            title, snippet = item if isinstance(item, tuple) else (item, "")
            results.append({"ns": 0, "title": title, "snippet": snippet})
        self.search_results[host] = results

    def add_image(self, host: str, title: str, url: str) -> None:
        self.images.setdefault(host, {})[title] = url

    def searches(self, host: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.url.params.get("list") == "search" and (host is None or r.url.host == host)
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host in self.failing_hosts:
            return httpx.Response(500, text="upstream error")

        params = request.url.params
        if params.get("list") == "search":
            return httpx.Response(
                200, json={"query": {"search": self.search_results.get(host, [])}}
            )

        title = params.get("titles")
        if title in self.failing_titles:
            return httpx.Response(503, text="image lookup unavailable")
        url = self.images.get(host, {}).get(title)
        if url is None:
            return httpx.Response(
                200, json={"query": {"pages": {"-1": {"title": title, "missing": ""}}}}
            )
        return httpx.Response(
            200,
            json={
                "query": {
                    "pages": {
                        "42": {
                            "pageid": 42,
                            "title": title,
                            "imageinfo": [{"thumburl": url, "url": url}],
                        }
                    }
                }
            },
        )


@pytest.fixture
def fake_wiki() -> FakeMediaWiki:
    return FakeMediaWiki()


@pytest.fixture
async def wiki_client(fake_wiki):
    """FakeMediaWiki로 요청을 보내는 httpx 클라이언트"""
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(fake_wiki),
        headers={"User-Agent": "TimelineImageSearch-tests/1.0"},
    ) as client:
        yield client
