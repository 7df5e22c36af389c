import pytest

from timeline_image_search.domain.model import CandidatePolicy, SearchOptions
from timeline_image_search.infrastructure.exceptions import ImageSourceError
from timeline_image_search.infrastructure.sources.wikimedia import (
    CommonsImageSource,
    NationalArchiveImageSource,
    WikipediaImageSource,
)

COMMONS = "commons.wikimedia.org"
NL_WIKI = "nl.wikipedia.org"
EN_WIKI = "en.wikipedia.org"
SNEEUWPRET_URL = (
    "https://upload.wikimedia.org/wikipedia/commons/thumb/a/ab/Sneeuwpret.jpg/960px-Sneeuwpret.jpg"
)


async def test_commons_finds_file_for_weather_event(fake_wiki, wiki_client):
    fake_wiki.add_search(COMMONS, "File:Sneeuwpret.jpg")
    fake_wiki.add_image(COMMONS, "File:Sneeuwpret.jpg", SNEEUWPRET_URL)
    source = CommonsImageSource(wiki_client)

    candidate = await source.search("Sneeuwpret", None, SearchOptions(include_year=False))

    assert candidate is not None
    assert candidate.image_url == SNEEUWPRET_URL
    assert candidate.source == "Wikimedia Commons"
    assert candidate.page_url == "https://commons.wikimedia.org/wiki/File:Sneeuwpret.jpg"

    search = fake_wiki.searches(COMMONS)[0]
    assert search.url.params["srnamespace"] == "6"
    assert search.url.params["srsearch"] == "Sneeuwpret"
    assert search.headers["User-Agent"] == "TimelineImageSearch-tests/1.0"


async def test_resolution_requests_thumbnail_width(fake_wiki, wiki_client):
    fake_wiki.add_search(COMMONS, "File:Sneeuwpret.jpg")
    fake_wiki.add_image(COMMONS, "File:Sneeuwpret.jpg", SNEEUWPRET_URL)

    await CommonsImageSource(wiki_client, thumb_width=640).search("Sneeuwpret", None, SearchOptions())

    resolve = [r for r in fake_wiki.requests if "titles" in r.url.params][0]
    assert resolve.url.params["prop"] == "pageimages|imageinfo"
    assert resolve.url.params["iiurlwidth"] == "640"
    assert resolve.url.params["pithumbsize"] == "640"


async def test_history_article_does_not_match_short_query(fake_wiki, wiki_client):
    fake_wiki.add_search(
        EN_WIKI,
        ("History of Apple Inc.", 'The <span class="searchmatch">Macintosh</span> was introduced in 1984'),
    )
    source = WikipediaImageSource(wiki_client, "en")

    candidate = await source.search("Apple Macintosh", 1984, SearchOptions())

    assert candidate is None
    assert fake_wiki.searches(EN_WIKI)[0].url.params["srsearch"] == "Apple Macintosh 1984"
    # 일치하는 제목이 없으므로 이미지 조회 요청은 보내지 않음
    assert len(fake_wiki.requests) == 1


async def test_quotes_wrap_query_before_year(fake_wiki, wiki_client):
    fake_wiki.add_search(NL_WIKI)

    await WikipediaImageSource(wiki_client, "nl").search(
        "Elfstedentocht", 1997, SearchOptions(use_quotes=True)
    )

    assert fake_wiki.searches(NL_WIKI)[0].url.params["srsearch"] == '"Elfstedentocht" 1997'


async def test_http_error_is_raised_as_source_error(fake_wiki, wiki_client):
    fake_wiki.failing_hosts.add(NL_WIKI)
    source = WikipediaImageSource(wiki_client, "nl")

    with pytest.raises(ImageSourceError) as exc_info:
        await source.search("Elfstedentocht", 1997, SearchOptions())

    assert exc_info.value.source == "Wikipedia (nl)"
    assert "500" in str(exc_info.value)


async def test_non_raster_titles_are_skipped_before_evaluation(fake_wiki, wiki_client):
    fake_wiki.add_search(COMMONS, "File:Sneeuwpret.webm", "File:Sneeuwpret.pdf", "File:Sneeuwpret.jpg")
    fake_wiki.add_image(COMMONS, "File:Sneeuwpret.jpg", SNEEUWPRET_URL)

    candidate = await CommonsImageSource(wiki_client).search("Sneeuwpret", None, SearchOptions())

    assert candidate is not None
    assert candidate.image_url == SNEEUWPRET_URL


async def test_inadmissible_resolved_url_moves_on_to_next_candidate(fake_wiki, wiki_client):
    fake_wiki.add_search(NL_WIKI, "Sneeuwpret", "Sneeuwpret in Friesland")
    fake_wiki.add_image(
        NL_WIKI,
        "Sneeuwpret",
        "https://upload.wikimedia.org/wikipedia/commons/transcoded/a/ab/Sneeuw.ogv/Sneeuw.ogv.480p.jpg",
    )
    fake_wiki.add_image(NL_WIKI, "Sneeuwpret in Friesland", SNEEUWPRET_URL)

    candidate = await WikipediaImageSource(wiki_client, "nl").search(
        "Sneeuwpret", None, SearchOptions()
    )

    assert candidate is not None
    assert candidate.image_url == SNEEUWPRET_URL
    assert candidate.page_url == "https://nl.wikipedia.org/wiki/Sneeuwpret_in_Friesland"


async def test_missing_image_and_failed_lookup_move_on_to_next_candidate(fake_wiki, wiki_client):
    fake_wiki.add_search(
        COMMONS, "File:Sneeuwpret.jpg", "File:Sneeuwpret 1963.jpg", "File:Sneeuwpret Friesland.jpg"
    )
    fake_wiki.failing_titles.add("File:Sneeuwpret 1963.jpg")
    fake_wiki.add_image(COMMONS, "File:Sneeuwpret Friesland.jpg", SNEEUWPRET_URL)

    candidate = await CommonsImageSource(wiki_client).search("Sneeuwpret", None, SearchOptions())

    assert candidate is not None
    assert candidate.image_url == SNEEUWPRET_URL
    lookups = [r.url.params["titles"] for r in fake_wiki.requests if "titles" in r.url.params]
    assert lookups == [
        "File:Sneeuwpret.jpg",
        "File:Sneeuwpret 1963.jpg",
        "File:Sneeuwpret Friesland.jpg",
    ]


async def test_first_match_policy_returns_excluded_url_for_the_caller_to_reject(
    fake_wiki, wiki_client
):
    fake_wiki.add_search(NL_WIKI, "Sneeuwpret", "Sneeuwpret (schilderij)")
    fake_wiki.add_image(NL_WIKI, "Sneeuwpret", "https://upload.wikimedia.org/x/bad.jpg")
    fake_wiki.add_image(NL_WIKI, "Sneeuwpret (schilderij)", SNEEUWPRET_URL)
    options = SearchOptions(exclude_url=lambda url: url.endswith("bad.jpg"))

    candidate = await WikipediaImageSource(wiki_client, "nl").search("Sneeuwpret", None, options)

    assert candidate is not None
    assert candidate.image_url == "https://upload.wikimedia.org/x/bad.jpg"


async def test_exhaustive_policy_continues_past_rejected_candidates(fake_wiki, wiki_client):
    fake_wiki.add_search(NL_WIKI, "Sneeuwpret", "Sneeuwpret in Friesland", "Sneeuwpret (schilderij)")
    fake_wiki.add_image(NL_WIKI, "Sneeuwpret", "https://upload.wikimedia.org/x/Sneeuw.svg")
    fake_wiki.add_image(NL_WIKI, "Sneeuwpret in Friesland", "https://upload.wikimedia.org/x/bad.jpg")
    fake_wiki.add_image(NL_WIKI, "Sneeuwpret (schilderij)", SNEEUWPRET_URL)
    options = SearchOptions(
        policy=CandidatePolicy.EXHAUSTIVE,
        exclude_url=lambda url: url.endswith("bad.jpg"),
    )

    candidate = await WikipediaImageSource(wiki_client, "nl").search("Sneeuwpret", None, options)

    assert candidate is not None
    assert candidate.image_url == SNEEUWPRET_URL
    assert candidate.page_url == "https://nl.wikipedia.org/wiki/Sneeuwpret_%28schilderij%29"


async def test_missing_page_yields_no_image(fake_wiki, wiki_client):
    fake_wiki.add_search(COMMONS, "File:Sneeuwpret.jpg")

    assert await CommonsImageSource(wiki_client).search("Sneeuwpret", None, SearchOptions()) is None


async def test_national_archive_appends_qualifier(fake_wiki, wiki_client):
    fake_wiki.add_search(COMMONS, "File:Watersnoodramp 1953 Nationaal Archief.jpg")
    fake_wiki.add_image(
        COMMONS,
        "File:Watersnoodramp 1953 Nationaal Archief.jpg",
        "https://upload.wikimedia.org/wikipedia/commons/b/bc/Watersnoodramp.jpg",
    )
    source = NationalArchiveImageSource(wiki_client)

    candidate = await source.search("Watersnoodramp", 1953, SearchOptions())

    assert candidate is not None
    assert candidate.source == "Nationaal Archief"
    search = fake_wiki.searches(COMMONS)[0]
    assert search.url.params["srsearch"] == "Watersnoodramp 1953 Nationaal Archief"
    assert search.url.params["srnamespace"] == "6"
