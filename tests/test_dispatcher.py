from __future__ import annotations

import asyncio
from typing import Optional

from core.cache import RecoveryCache
from core.config import CacheConfig, DispatchConfig
from core.dispatcher import IngressDispatcher
from core.models import ContentKind, InboundMessage


class FakeHandler:
    def __init__(self, fail_on: Optional[set[int]] = None) -> None:
        self.seen: list[int] = []
        self.active = 0
        self.max_active = 0
        self.connections: list[object] = []
        self._fail_on = fail_on or set()

    async def handle(self, connection, message: InboundMessage) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.connections.append(connection)
        try:
            await asyncio.sleep(0)
            self.seen.append(message.message_id)
            if message.message_id in self._fail_on:
                raise RuntimeError("plugin crashed")
        finally:
            self.active -= 1


class FakeStatusHandler:
    def __init__(self) -> None:
        self.seen: list[int] = []

    async def handle(self, message: InboundMessage) -> None:
        self.seen.append(message.message_id)


def _message(
    message_id: int,
    *,
    chat_id: Optional[int] = 10,
    kind: ContentKind = ContentKind.TEXT,
    broadcast: bool = False,
) -> InboundMessage:
    return InboundMessage(
        chat_id=chat_id,
        message_id=message_id,
        kind=kind,
        text="hi",
        channel=broadcast,
        broadcast=broadcast,
    )


def _dispatcher(handler, status_handler=None, **config) -> tuple[IngressDispatcher, RecoveryCache]:
    cache = RecoveryCache(CacheConfig(max_size=100))
    dispatcher = IngressDispatcher(
        cache,
        handler,
        DispatchConfig(item_delay=0, **config),
        connection="conn",
        status_handler=status_handler,
    )
    return dispatcher, cache


def test_handler_receives_messages_in_order_one_at_a_time() -> None:
    handler = FakeHandler()
    dispatcher, _ = _dispatcher(handler)

    async def scenario() -> None:
        dispatcher.submit([_message(1), _message(2), _message(3)])
        dispatcher.submit([_message(4), _message(5)])
        await dispatcher.join()

    asyncio.run(scenario())

    assert handler.seen == [1, 2, 3, 4, 5]
    assert handler.max_active == 1
    assert handler.connections == ["conn"] * 5


def test_messages_are_cached_before_dispatch() -> None:
    handler = FakeHandler()
    dispatcher, cache = _dispatcher(handler)

    async def scenario() -> None:
        dispatcher.submit([_message(1), _message(2)])
        assert (10, 1) in cache
        assert (10, 2) in cache
        assert handler.seen == []
        await dispatcher.join()

    asyncio.run(scenario())


def test_handler_failure_does_not_stop_the_drain() -> None:
    handler = FakeHandler(fail_on={2})
    dispatcher, _ = _dispatcher(handler)

    async def scenario() -> None:
        dispatcher.submit([_message(1), _message(2), _message(3)])
        await dispatcher.join()

    asyncio.run(scenario())

    assert handler.seen == [1, 2, 3]
    assert not dispatcher.draining


def test_start_draining_while_draining_is_a_noop() -> None:
    handler = FakeHandler()
    dispatcher, _ = _dispatcher(handler)

    async def scenario() -> None:
        dispatcher.submit([_message(1), _message(2)])
        first_task = dispatcher._drain_task
        dispatcher.start_draining()
        dispatcher.start_draining()
        assert dispatcher._drain_task is first_task
        await dispatcher.join()

    asyncio.run(scenario())

    assert handler.seen == [1, 2]
    assert handler.max_active == 1


def test_broadcast_traffic_is_cached_but_never_queued() -> None:
    handler = FakeHandler()
    status = FakeStatusHandler()
    dispatcher, cache = _dispatcher(handler, status)

    async def scenario() -> None:
        dispatcher.submit([_message(1, broadcast=True), _message(2)])
        await dispatcher.join()

    asyncio.run(scenario())

    assert handler.seen == [2]
    assert status.seen == [1]
    assert (10, 1) in cache


def test_broadcast_caching_can_be_disabled() -> None:
    handler = FakeHandler()
    dispatcher, cache = _dispatcher(handler, cache_broadcasts=False)

    async def scenario() -> None:
        dispatcher.submit([_message(1, broadcast=True)])
        await dispatcher.join()

    asyncio.run(scenario())

    assert (10, 1) not in cache
    assert handler.seen == []


def test_messages_without_identity_or_content_are_skipped() -> None:
    handler = FakeHandler()
    dispatcher, cache = _dispatcher(handler)

    async def scenario() -> None:
        dispatcher.submit(
            [
                _message(1, chat_id=None),
                _message(2, kind=ContentKind.EMPTY),
                _message(3),
            ]
        )
        await dispatcher.join()

    asyncio.run(scenario())

    assert handler.seen == [3]
    assert len(cache) == 1
