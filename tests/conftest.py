from __future__ import annotations

import random

import pytest

from hideseek.services.events import EventBus
from hideseek.services.game_session import GameSession
from hideseek.services.persistence import MemoryStorage
from hideseek.services.session_machine import SessionStateMachine

START_MS = 1_700_000_000_000


class FakeClock:
    """Horloge murale manuelle (ms)."""

    def __init__(self, now_ms: int = START_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def notify_timer_warning(self) -> None:
        self.calls.append(("timer_warning",))

    def notify_hiding_period_ended(self) -> None:
        self.calls.append(("hiding_period_ended",))

    def show_toast(self, message: str, severity: str = "info") -> None:
        self.calls.append(("toast", message, severity))

    def kinds(self) -> list[str]:
        return [c[0] for c in self.calls]

    def toasts(self) -> list[tuple]:
        return [c for c in self.calls if c[0] == "toast"]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def machine(storage, bus) -> SessionStateMachine:
    return SessionStateMachine(storage, bus)


@pytest.fixture
def game(storage, notifier, clock, rng) -> GameSession:
    g = GameSession(storage=storage, notifier=notifier, clock=clock, rng=rng)
    g.mount()
    return g


def add_players(machine: SessionStateMachine, *names: str) -> list[str]:
    return [machine.add_player(n).player_id for n in names]
