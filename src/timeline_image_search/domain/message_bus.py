from typing import Protocol

from timeline_image_search.application.commands import Command
from timeline_image_search.domain.events import Event

Message = Command | Event


class Handler(Protocol):
    """모든 핸들러가 구현해야 하는 프로토콜"""

    async def handle(self, message: Message) -> None:
        ...


class MessageBus(Protocol):
    """메시지 버스의 추상 인터페이스"""

    def register_command(self, command: type[Command], handler: Handler) -> None:
        ...

    def subscribe_to_event(self, event: type[Event], handler: Handler) -> None:
        ...

    async def handle(self, message: Message) -> None:
        ...
