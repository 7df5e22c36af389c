"""검색어와 후보 제목/스니펫을 비교 가능한 형태로 정규화하는 순수 함수 모음"""

from __future__ import annotations

import html
import re
import unicodedata
from typing import Iterable

_PUNCTUATION_RE = re.compile(r"[.,:;!?()\[\]{}\"'`´‘’“”/\\|_\-–—+*&#%=<>@~^]")
_WS_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_HTML_TAG_RE = re.compile(r"<[^>]+>")
_YEAR_RE = re.compile(r"^\d{4}$")

# 연대 표기 제거 순서가 중요합니다: "jaren 80"을 먼저 지워야 "jaren"만 남지 않습니다.
_DECADE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bjaren\s+['’]?\d{2,4}s?\b", re.IGNORECASE),
    re.compile(r"\b(?:19|20)\d{2}s?\b", re.IGNORECASE),
    re.compile(r"['’]?\b\d{2}s\b", re.IGNORECASE),
    re.compile(r"\bdecade\b", re.IGNORECASE),
)

# 네덜란드어 + 영어 불용어. 일반 명사, 이벤트 형태를 나타내는 단어, 관사/전치사.
STOPWORDS: frozenset[str] = frozenset(
    {
        # 일반 명사 (파일/이미지)
        "file", "image", "images", "photo", "photos", "picture", "jpg",
        "jpeg", "png", "bestand", "afbeelding", "foto", "fotos", "plaatje",
        # 이벤트 형태 (영어)
        "launch", "launched", "release", "released", "winner", "wins", "won",
        "introduction", "introduced", "premiere", "opening", "final",
        # 이벤트 형태 (네덜란드어)
        "lancering", "introductie", "winnaar", "wint", "uitgebracht",
        "verschijnt", "première", "finale", "intrede",
        # 관사/전치사 (영어)
        "the", "an", "of", "in", "on", "at", "to", "for", "and", "or",
        "with", "from", "by", "as", "is", "was", "its", "new",
        # 관사/전치사 (네덜란드어)
        "de", "het", "een", "van", "op", "voor", "met", "bij", "uit", "naar",
        "aan", "en", "te", "door", "over", "om", "tot", "nieuw", "nieuwe",
        "wordt", "werd",
    }
)


def strip_html(text: str) -> str:
    """MediaWiki 스니펫의 <span class="searchmatch"> 같은 태그와 엔티티를 제거합니다."""
    return html.unescape(_HTML_TAG_RE.sub(" ", text or ""))


def normalize(text: str) -> str:
    """소문자화, 발음 구별 기호 제거, 구두점 → 공백, 공백 압축."""
    decomposed = unicodedata.normalize("NFD", (text or "").lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    spaced = _PUNCTUATION_RE.sub(" ", stripped)
    return _WS_RE.sub(" ", spaced).strip()


def extract_numbers(text: str) -> list[str]:
    """정수/소수 토큰을 추출합니다. ("Windows 1.0" → ["1.0"])

    소수점이 구두점으로 지워지지 않도록 정규화 전 텍스트에 적용합니다.
    """
    return _NUMBER_RE.findall(text or "")


def tokenize(text: str) -> list[str]:
    normalized = normalize(text)
    return normalized.split(" ") if normalized else []


def strip_stopwords(
    tokens: Iterable[str], stopwords: frozenset[str] = STOPWORDS
) -> list[str]:
    """불용어와 한 글자 이하의 토큰을 제거합니다."""
    return [t for t in tokens if len(t) > 1 and t not in stopwords]


def is_bare_year(token: str) -> bool:
    return bool(_YEAR_RE.match(token))


def strip_year(text: str, year: int | None) -> str:
    """검색어 문자열에서 주어진 연도를 제거합니다. 모델 번호 같은 다른 숫자는 남깁니다."""
    if year is None:
        return _WS_RE.sub(" ", text or "").strip()
    stripped = re.sub(rf"\b{year}\b", " ", text or "")
    return _WS_RE.sub(" ", stripped).strip()


def strip_decades(text: str) -> str:
    """'1980', '1980s', '80s', 'jaren 80', 'decade' 같은 연대 힌트를 제거합니다."""
    result = text or ""
    for pattern in _DECADE_PATTERNS:
        result = pattern.sub(" ", result)
    return _WS_RE.sub(" ", result).strip()


def clean_metadata_query(text: str) -> str:
    """인물/영화 메타데이터 백엔드용 검색어: 연대 힌트와 괄호 제거."""
    return _WS_RE.sub(" ", strip_decades(text).replace("(", " ").replace(")", " ")).strip()
