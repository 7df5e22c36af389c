from __future__ import annotations

from collections import defaultdict
from typing import Awaitable, Callable, override

from loguru import logger

from timeline_image_search.application.commands import Command
from timeline_image_search.domain.events import Event
from timeline_image_search.domain.message_bus import Handler, Message, MessageBus


class FunctionHandler(Handler):
    """함수를 핸들러 프로토콜에 맞게 감싸는 어댑터"""

    def __init__(self, handler_func: Callable[[Message], Awaitable[None]]):
        self._handler_func = handler_func

    @override
    async def handle(self, message: Message) -> None:
        await self._handler_func(message)


class InMemoryMessageBus(MessageBus):
    """인메모리 메시지 버스 구현체.

    이벤트 구독자 하나의 실패가 다른 구독자나 발행한 워커로 전파되지 않습니다.
    커맨드 핸들러의 예외는 호출자에게 그대로 전달됩니다.
    """

    def __init__(self):
        self._command_handlers: dict[type[Command], Handler] = {}
        self._event_handlers: defaultdict[type[Event], list[Handler]] = defaultdict(
            list
        )

    @override
    def register_command(self, command: type[Command], handler: Handler) -> None:
        if command in self._command_handlers:
            raise ValueError(f"Command {command.__name__} already has a handler.")
        self._command_handlers[command] = handler

    @override
    def subscribe_to_event(self, event: type[Event], handler: Handler) -> None:
        self._event_handlers[event].append(handler)

    @override
    async def handle(self, message: Message) -> None:
        if isinstance(message, Event):
            for handler in self._event_handlers[type(message)]:
                try:
                    await handler.handle(message)
                except Exception:
                    logger.exception(
                        f"Event handler failed for {type(message).__name__}",
                        event_name="event_handler_error",
                    )
        elif isinstance(message, Command):
            handler = self._command_handlers.get(type(message))
            if handler is None:
                raise ValueError(
                    f"No handler found for command {type(message).__name__}"
                )
            await handler.handle(message)
        else:
            raise TypeError(
                f"Message must be a Command or Event, not {type(message).__name__}"
            )
