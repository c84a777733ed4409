from __future__ import annotations

import pytest

from thekitchen.game.commands import CreateRoom, JoinRoom, StartGame, SubmitContent
from thekitchen.game.directory import RoomDirectory
from thekitchen.game.prompts import TemplatePromptGenerator
from thekitchen.game.registry import ConnectionRegistry
from thekitchen.game.service import Coordinator
from thekitchen.game.timers import PhaseTimers
from thekitchen.realtime.dispatcher import BroadcastDispatcher
from thekitchen.storage.assets import LocalAssetStore
from thekitchen.storage.store import InMemoryStore


class ManualScheduler:
    """Collects background tasks instead of running them; tests fire them by key."""

    def __init__(self):
        self.tasks: list[tuple] = []

    def spawn(self, fn, *args):
        self.tasks.append((fn, args))

    def sleep(self, _seconds):
        return None

    def keys(self) -> list[str]:
        return [args[0] for _, args in self.tasks]

    def fire(self, key: str) -> None:
        """Run the oldest pending task scheduled under ``key``."""
        for i, (fn, args) in enumerate(self.tasks):
            if args[0] == key:
                del self.tasks[i]
                fn(*args)
                return
        raise AssertionError(f"no task scheduled for {key}; have {self.keys()}")


class RecordingEmitter:
    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    def __call__(self, event, payload, to=None):
        self.sent.append((to, event, payload))

    def events_for(self, sid: str, name: str | None = None) -> list[dict]:
        return [p for to, e, p in self.sent if to == sid and (name is None or e == name)]

    def names_for(self, sid: str) -> list[str]:
        return [e for to, e, _ in self.sent if to == sid]

    def count(self, name: str) -> int:
        return sum(1 for _, e, _ in self.sent if e == name)

    def clear(self) -> None:
        self.sent.clear()


class FakeClock:
    def __init__(self, start: int = 1_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def coordinator(scheduler, emitter, clock, store, tmp_path):
    registry = ConnectionRegistry(max_players=8)
    return Coordinator(
        registry=registry,
        directory=RoomDirectory(max_attempts=10),
        dispatcher=BroadcastDispatcher(emitter, registry),
        timers=PhaseTimers(spawn=scheduler.spawn, sleep=scheduler.sleep),
        store=store,
        generator=TemplatePromptGenerator(prompts=["Soup for a rainy day", "Breakfast for dinner"]),
        assets=LocalAssetStore(tmp_path / "uploads", base_url="/uploads"),
        settings={
            "COOKING_TIME_LIMIT_SEC": 600,
            "VOTING_TIME_LIMIT_SEC": 120,
            "ROOM_ABANDON_TTL_SEC": 30,
            "VOTE_MODE": "single",
        },
        clock=clock,
    )


@pytest.fixture
def make_room(coordinator):
    """Create a room with ``names[0]`` as host and the rest joined, sids ``s0, s1, ...``."""

    def _make(*names: str) -> tuple[str, dict[str, str]]:
        result = coordinator.execute("s0", CreateRoom(name=names[0]))
        code = result["roomCode"]
        players = {names[0]: result["playerId"]}
        for i, name in enumerate(names[1:], start=1):
            joined = coordinator.execute(f"s{i}", JoinRoom(room_code=code, name=name))
            players[name] = joined["playerId"]
        return code, players

    return _make


@pytest.fixture
def started_room(coordinator, make_room):
    def _start(*names: str) -> tuple[str, dict[str, str]]:
        code, players = make_room(*names)
        coordinator.execute("s0", StartGame(room_code=code))
        return code, players

    return _start


@pytest.fixture
def voting_room(coordinator, started_room, clock):
    """Every player submits one dish, in sid order, 1s apart."""

    def _vote(*names: str) -> tuple[str, dict[str, str]]:
        code, players = started_room(*names)
        for i, _ in enumerate(names):
            clock.advance(1000)
            coordinator.execute(f"s{i}", SubmitContent(room_code=code, content_url=f"/uploads/dish{i}.png"))
        return code, players

    return _vote


@pytest.fixture
def server(tmp_path, scheduler):
    from thekitchen.server import create_app

    app, socketio = create_app(
        {
            "TESTING": True,
            "SOCKETIO_ASYNC_MODE": "threading",
            "TRUST_PROXY_HEADERS": False,
            "UPLOAD_DIR": str(tmp_path / "uploads"),
            "COOKING_TIME_LIMIT_SEC": 600,
        },
        timers=PhaseTimers(spawn=scheduler.spawn, sleep=scheduler.sleep),
    )
    return app, socketio
