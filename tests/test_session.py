from __future__ import annotations

import asyncio

from core.config import CacheConfig, DispatchConfig, RecoveryConfig, WatchdogConfig
from core.events import ConnectionClosed, MessagesDeleted, MessagesReceived
from core.models import ConnectionState, ContentKind, InboundMessage
from core.session import GatewaySession


class FakeSession:
    async def connect(self) -> None:
        return None

    async def wait_disconnected(self) -> None:
        await asyncio.get_running_loop().create_future()

    async def join_channel(self, channel: str) -> None:
        return None


class FakeCredentials:
    def persist(self) -> None:
        return None

    def wipe(self) -> None:
        return None


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple] = []

    async def send_connected(self, status_saver: bool) -> None:
        self.sent.append(("connected",))

    async def send_unrecovered(self, chat_id, message_id) -> None:
        self.sent.append(("unrecovered", chat_id, message_id))

    async def send_recovered_text(self, message: InboundMessage) -> None:
        self.sent.append(("text", message.text))


class FakeFetcher:
    async def fetch(self, message: InboundMessage, max_bytes: int) -> bytes:
        return b""


class FakeHandler:
    def __init__(self) -> None:
        self.seen: list[str] = []

    async def handle(self, connection, message: InboundMessage) -> None:
        if message.text == "boom":
            raise RuntimeError("plugin failure")
        self.seen.append(message.text)


def _gateway(handler: FakeHandler, notifier: FakeNotifier, **overrides) -> GatewaySession:
    return GatewaySession(
        session=FakeSession(),
        credentials=FakeCredentials(),
        notifier=notifier,
        fetcher=FakeFetcher(),
        handler=handler,
        memory_sampler=lambda: 10.0,
        exit_process=lambda code: None,
        cache_config=CacheConfig(max_size=10),
        dispatch_config=DispatchConfig(item_delay=0),
        recovery_config=RecoveryConfig(min_interval=0),
        watchdog_config=WatchdogConfig(interval=60),
        **overrides,
    )


def _text(message_id: int, text: str) -> InboundMessage:
    return InboundMessage(chat_id=1, message_id=message_id, kind=ContentKind.TEXT, text=text)


def test_events_flow_through_the_pump() -> None:
    handler = FakeHandler()
    notifier = FakeNotifier()

    async def scenario() -> GatewaySession:
        gateway = _gateway(handler, notifier)
        runner = asyncio.get_running_loop().create_task(gateway.run())
        gateway.publish(MessagesReceived((_text(1, "hello"), _text(2, "boom"), _text(3, "bye"))))
        await asyncio.sleep(0.01)
        await gateway.dispatcher.join()
        gateway.publish(MessagesDeleted(1, (1,)))
        gateway.publish(MessagesDeleted(1, (42,)))
        await asyncio.sleep(0.01)
        await gateway.recovery.join()
        gateway.close()
        await runner
        return gateway

    gateway = asyncio.run(scenario())

    assert handler.seen == ["hello", "bye"]
    assert notifier.sent == [("connected",), ("text", "hello"), ("unrecovered", 1, 42)]
    assert gateway.connection.state is ConnectionState.OPEN


def test_connection_closed_event_reaches_state_machine() -> None:
    handler = FakeHandler()
    notifier = FakeNotifier()

    async def scenario() -> GatewaySession:
        gateway = _gateway(handler, notifier)
        await gateway.connection.start()
        await gateway.route(ConnectionClosed(ConnectionError("reset")))
        gateway.close()
        return gateway

    gateway = asyncio.run(scenario())

    assert gateway.connection.state is ConnectionState.CLOSED
    assert gateway.connection.reconnect_attempts == 1


def test_failing_event_does_not_stop_the_pump() -> None:
    handler = FakeHandler()

    def broken_classifier(error) -> bool:
        raise ValueError("cannot classify")

    async def scenario() -> GatewaySession:
        gateway = _gateway(handler, FakeNotifier(), is_fatal=broken_classifier)
        runner = asyncio.get_running_loop().create_task(gateway.run())
        gateway.publish(ConnectionClosed(ConnectionError("reset")))
        gateway.publish(MessagesReceived((_text(7, "still alive"),)))
        await asyncio.sleep(0.01)
        await gateway.dispatcher.join()
        gateway.close()
        await runner
        return gateway

    gateway = asyncio.run(scenario())

    assert handler.seen == ["still alive"]
    assert (1, 7) in gateway.cache


def test_unknown_events_are_ignored() -> None:
    async def scenario() -> GatewaySession:
        gateway = _gateway(FakeHandler(), FakeNotifier())
        await gateway.route(object())
        gateway.close()
        return gateway

    gateway = asyncio.run(scenario())

    assert gateway.cache.stats().size == 0
    assert gateway.connection.state is ConnectionState.IDLE
