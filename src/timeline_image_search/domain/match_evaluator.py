"""후보 제목/스니펫이 검색어와 일치하는지 판단합니다.

잘못된 세대/모델/인물 매칭을 막는 유일한 관문이므로 규칙을 느슨하게 바꾸지 마세요.
"""

from __future__ import annotations

import math
import re

from timeline_image_search.domain.normalizer import (
    STOPWORDS,
    extract_numbers,
    is_bare_year,
    normalize,
    strip_html,
    strip_stopwords,
    tokenize,
)

MAX_SUBJECT_WORDS = 4
SHORT_QUERY_WORDS = 2
STRICT_COVERAGE = 0.75


def main_subject_words(query: str, stopwords: frozenset[str] = STOPWORDS) -> list[str]:
    """불용어와 연도를 뺀 검색어의 앞쪽 단어 최대 4개"""
    words = [w for w in strip_stopwords(tokenize(query), stopwords) if not is_bare_year(w)]
    return words[:MAX_SUBJECT_WORDS]


def _contains_word(haystack: str, word: str) -> bool:
    if not haystack:
        return False
    if len(word) <= 3:
        return re.search(rf"\b{re.escape(word)}\b", haystack) is not None
    return word in haystack


def passes_numeric_gate(query: str, title: str, snippet: str = "") -> bool:
    """검색어의 숫자 토큰은 모두 후보 텍스트에 그대로 있어야 합니다."""
    required = extract_numbers(query)
    if not required:
        return True
    available = set(extract_numbers(f"{title} {strip_html(snippet)}"))
    return all(number in available for number in required)


def matches(
    title: str,
    snippet: str | None,
    query: str,
    strict: bool = True,
) -> bool:
    """후보 하나가 검색어와 일치하는지 여부.

    Args:
        title: 후보 문서/파일 제목
        snippet: 검색 결과 스니펫 (HTML 포함 가능)
        query: 원래 검색어 (연도를 덧붙이기 전)
        strict: True면 엄격 정책, False면 관대한 정책

    Returns:
        일치하면 True
    """
    snippet_text = strip_html(snippet or "")
    if not passes_numeric_gate(query, title, snippet_text):
        return False

    words = main_subject_words(query)
    if not words:
        return True

    norm_title = normalize(title)
    norm_snippet = normalize(snippet_text)
    in_title = sum(1 for w in words if _contains_word(norm_title, w))
    in_snippet = sum(1 for w in words if _contains_word(norm_snippet, w))

    if not strict:
        return in_title > 0 or in_snippet > 0

    # 짧은 검색어는 대개 고유명사이므로 문서 제목 자체에 있어야 합니다.
    if len(words) <= SHORT_QUERY_WORDS:
        return in_title == len(words)

    required = math.ceil(len(words) * STRICT_COVERAGE)
    return max(in_title, in_snippet) >= required
