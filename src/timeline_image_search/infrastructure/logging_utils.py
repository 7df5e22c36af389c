"""로깅 설정 및 트레이싱 유틸리티"""

import functools
import inspect
import sys
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable

from loguru import logger

if TYPE_CHECKING:
    from timeline_image_search.config import Settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level> | <yellow>{extra}</yellow>"
)


def configure_logging(settings: "Settings") -> None:
    """stderr 싱크와 (설정된 경우) JSON 파일 싱크를 등록합니다."""
    logger.remove()
    if sys.stderr:
        logger.add(sys.stderr, level=settings.log_level, format=CONSOLE_FORMAT)
    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
            encoding="utf-8",
            backtrace=True,
            diagnose=False,
            serialize=True,
            enqueue=True,
        )
    logger.debug(
        "Logging configured",
        level=settings.log_level,
        log_file=str(settings.log_file) if settings.log_file else None,
    )


@contextmanager
def log_step(step_name: str, **extra_context):
    """단계별 작업을 로깅하는 컨텍스트 매니저

    Usage:
        with log_step("이미지 검색 배치", event_count=12):
            ...
    """
    logger.info(f"▶ {step_name}", **extra_context)
    start_time = time.perf_counter()

    try:
        yield
        elapsed = time.perf_counter() - start_time
        logger.info(f"✓ {step_name} completed in {elapsed:.3f}s", duration=elapsed, **extra_context)
    except Exception as e:
        elapsed = time.perf_counter() - start_time
        logger.error(
            f"✗ {step_name} failed after {elapsed:.3f}s: {e.__class__.__name__}: {e}",
            duration=elapsed,
            error_type=e.__class__.__name__,
            **extra_context
        )
        raise


class PerformanceTracker:
    """이벤트 하나의 해석 구간별 소요 시간(ms)을 기록합니다.

    trace 타임스탬프와 같은 단위를 쓰기 위해 모든 값을 정수 밀리초로 다룹니다.
    """

    def __init__(self, name: str):
        self.name = name
        self.start_time: float | None = None
        self.checkpoints: dict[str, int] = {}

    def start(self):
        self.start_time = time.perf_counter()

    def elapsed_ms(self) -> int:
        if self.start_time is None:
            return 0
        return int((time.perf_counter() - self.start_time) * 1000)

    def checkpoint(self, checkpoint_name: str):
        if self.start_time is None:
            logger.warning(f"PerformanceTracker.start() not called for {self.name}")
            return
        self.checkpoints[checkpoint_name] = self.elapsed_ms()

    def end(self) -> dict[str, int]:
        if self.start_time is None:
            logger.warning(f"PerformanceTracker.start() not called for {self.name}")
            return {}

        self.checkpoints["total"] = self.elapsed_ms()
        logger.debug(
            f"{self.name} 소요 시간",
            event_name="resolution_timing",
            **{f"{k}_ms": v for k, v in self.checkpoints.items()},
        )
        return self.checkpoints


def log_with_context(**context_fields):
    """어댑터 호출 동안 고정 필드(backend 등)를 로그 extra에 묶어 둡니다.

    Usage:
        @log_with_context(backend="commons")
        async def search(...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"{func.__qualname__} must be a coroutine function")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with logger.contextualize(**context_fields):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
