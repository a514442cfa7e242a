"""pytest configuration and shared fixtures for Webcam Relay tests."""

import pytest

from api.gateway import GatewayProtocol
from registry.connections import ConnectionRegistry
from relay.sessions import RelayManager


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHub:
    """Records every event the relay sends instead of writing to sockets."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []
        self.broken: set[str] = set()

    async def send_to(self, session_id: str, event: str, data: dict) -> bool:
        if session_id in self.broken:
            return False
        self.sent.append((session_id, event, data))
        return True

    def events_for(self, session_id: str, event: str | None = None) -> list[dict]:
        return [
            data for sid, ev, data in self.sent
            if sid == session_id and (event is None or ev == event)
        ]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def registry(clock):
    return ConnectionRegistry(clock=clock)


@pytest.fixture()
def hub():
    return FakeHub()


@pytest.fixture()
def relay(registry, hub):
    return RelayManager(registry, hub)


@pytest.fixture()
def gateway(registry, relay, hub):
    return GatewayProtocol(registry, relay, hub)
