from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from timeline_image_search.domain.model import CandidatePolicy, SearchMode

DEFAULT_USER_AGENT = (
    "TimelineImageSearch/1.0 (nostalgic timeline illustrations; "
    "https://github.com/timeline-image-search)"
)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


@dataclass(frozen=True)
class Settings:
    """애플리케이션 설정. 환경 변수(TIS_*)와 .env 파일에서 읽습니다."""

    native_language: str = "nl"
    english_language: str = "en"
    archive_qualifier: str = "Nationaal Archief"
    thumb_width: int = 960
    search_limit: int = 10
    http_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    proxy_base_url: str | None = None
    proxy_api_key: str | None = None
    max_concurrent: int = 3
    poll_interval: float = 0.05
    search_timeout: float | None = 45.0
    lenient_fallback: bool = False
    exhaustive_candidates: bool = False
    search_mode: SearchMode = SearchMode.CASCADE
    blacklist_db_url: str = "sqlite:///timeline_images.db"
    log_level: str = "INFO"
    log_file: Path | None = None

    @property
    def candidate_policy(self) -> CandidatePolicy:
        if self.exhaustive_candidates:
            return CandidatePolicy.EXHAUSTIVE
        return CandidatePolicy.FIRST_MATCH

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> Settings:
        """.env 파일이 있으면 로드한 뒤 환경 변수로 설정을 만듭니다."""
        env_path = env_file or Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(dotenv_path=env_path)

        timeout = _env_float("TIS_SEARCH_TIMEOUT", 45.0)
        log_file = os.getenv("TIS_LOG_FILE")
        return cls(
            native_language=os.getenv("TIS_NATIVE_LANGUAGE", "nl"),
            english_language=os.getenv("TIS_ENGLISH_LANGUAGE", "en"),
            archive_qualifier=os.getenv("TIS_ARCHIVE_QUALIFIER", "Nationaal Archief"),
            thumb_width=_env_int("TIS_THUMB_WIDTH", 960),
            search_limit=_env_int("TIS_SEARCH_LIMIT", 10),
            http_timeout=_env_float("TIS_HTTP_TIMEOUT", 10.0),
            user_agent=os.getenv("TIS_USER_AGENT", DEFAULT_USER_AGENT),
            proxy_base_url=os.getenv("TIS_PROXY_BASE_URL") or None,
            proxy_api_key=os.getenv("TIS_PROXY_API_KEY") or None,
            max_concurrent=_env_int("TIS_MAX_CONCURRENT", 3),
            poll_interval=_env_float("TIS_POLL_INTERVAL", 0.05),
            search_timeout=timeout if timeout > 0 else None,
            lenient_fallback=_env_bool("TIS_LENIENT_FALLBACK", False),
            exhaustive_candidates=_env_bool("TIS_EXHAUSTIVE_CANDIDATES", False),
            search_mode=SearchMode(os.getenv("TIS_SEARCH_MODE", SearchMode.CASCADE.value)),
            blacklist_db_url=os.getenv("TIS_BLACKLIST_DB_URL", "sqlite:///timeline_images.db"),
            log_level=os.getenv("TIS_LOG_LEVEL", "INFO"),
            log_file=Path(log_file) if log_file else None,
        )
