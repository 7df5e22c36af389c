import argparse
import asyncio
import json
import signal
import sys
from dataclasses import replace
from pathlib import Path
from typing import IO

from loguru import logger

from timeline_image_search.application.commands import (
    EnqueueImageSearchCommand,
    EventDTO,
)
from timeline_image_search.application.queries import GetSearchProgressQuery
from timeline_image_search.bootstrap import Application, bootstrap
from timeline_image_search.config import Settings
from timeline_image_search.domain.events import ImageFound, ImageSearchCompleted
from timeline_image_search.domain.model import SearchMode
from timeline_image_search.infrastructure.logging_utils import configure_logging, log_step


def _emit(payload: dict) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")
    sys.stdout.flush()


async def print_found(event: ImageFound) -> None:
    _emit(
        {
            "type": "image_found",
            "eventId": event.event_id,
            "imageUrl": event.image_url,
            "source": event.source,
            "pageUrl": event.page_url,
        }
    )


async def print_completed(event: ImageSearchCompleted) -> None:
    result = event.result
    _emit(
        {
            "type": "search_completed",
            "eventId": result.event_id,
            "imageUrl": result.image_url,
            "source": result.source,
            "searchTrace": [
                {
                    "source": entry.source,
                    "query": entry.query,
                    "withYear": entry.with_year,
                    "result": entry.result.value,
                    "timestamp": entry.timestamp_ms,
                }
                for entry in result.search_trace
            ],
        }
    )


def parse_record(line: str) -> EventDTO | None:
    """NDJSON 한 줄을 이벤트로 변환합니다. 잘못된 줄은 경고 후 건너뜁니다."""
    line = line.strip()
    if not line:
        return None
    try:
        record = json.loads(line)
    except json.JSONDecodeError as e:
        logger.warning(f"Skipping invalid NDJSON line: {e}", event_name="invalid_line")
        return None
    if not isinstance(record, dict) or "id" not in record:
        logger.warning("Skipping record without an id", event_name="invalid_record")
        return None
    return EventDTO.from_record(record)


async def stream_events(app: Application, stream: IO[str]) -> int:
    """스트림에서 이벤트가 도착하는 대로 검색 큐에 넣습니다."""
    count = 0
    while True:
        line = await asyncio.to_thread(stream.readline)
        if not line:
            break
        event = parse_record(line)
        if event is None:
            continue
        await app.bus.handle(EnqueueImageSearchCommand(events=[event]))
        count += 1
    return count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timeline-image-search",
        description="Attach a representative image to each timeline event read as NDJSON.",
    )
    parser.add_argument(
        "input",
        nargs="?",
        type=Path,
        help="NDJSON file with timeline events (defaults to stdin).",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in SearchMode],
        help="Backend family for this session.",
    )
    parser.add_argument("--concurrency", type=int, help="Maximum concurrent searches.")
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Enable the lenient matching tier after the strict attempts.",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Also print one line per completed search with its trace.",
    )
    parser.add_argument("--env-file", type=Path, help="Path to a .env file.")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env(args.env_file)
    overrides: dict = {}
    if args.mode:
        overrides["search_mode"] = SearchMode(args.mode)
    if args.concurrency:
        overrides["max_concurrent"] = args.concurrency
    if args.lenient:
        overrides["lenient_fallback"] = True
    return replace(settings, **overrides) if overrides else settings


async def run(args: argparse.Namespace) -> int:
    settings = settings_from_args(args)
    configure_logging(settings)
    logger.info("Application starting...", mode=settings.search_mode.value)

    app = bootstrap(
        settings,
        on_image_found=print_found,
        on_search_completed=print_completed if args.trace else None,
    )

    loop = asyncio.get_running_loop()
    current = asyncio.current_task()
    if sys.platform != "win32" and current is not None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, current.cancel)

    try:
        await app.start()
        with log_step("타임라인 이미지 검색"):
            if args.input:
                with args.input.open(encoding="utf-8") as stream:
                    submitted = await stream_events(app, stream)
            else:
                submitted = await stream_events(app, sys.stdin)
            await app.scheduler.wait_idle()

        progress = await app.progress_query_handler.handle(GetSearchProgressQuery())
        _emit(
            {
                "type": "progress",
                "submitted": submitted,
                "searchedCount": progress.searched_count,
                "foundCount": progress.found_count,
                "queueLength": progress.queue_length,
                "isSearching": progress.is_searching,
            }
        )
        return 0
    except asyncio.CancelledError:
        logger.info("Shutdown signal received.")
        return 130
    finally:
        logger.info("Closing application resources...")
        await app.aclose()


def main() -> None:
    """메인 애플리케이션 진입점"""
    args = build_parser().parse_args()
    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        logger.info("Application interrupted. Exiting.")
        sys.exit(130)


if __name__ == "__main__":
    main()
