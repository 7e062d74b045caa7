import os
import sys
import random
import pytest

# Ensure the backend root (containing the `buckshot` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from buckshot import create_app, socketio
from buckshot.models import GameState, Phase, Room, RoomSettings
from buckshot.services.game.broadcast import NAMESPACE
from buckshot.services.game.lifecycle import RoundLifecycle
from buckshot.services.game.lobby import RoomRegistry


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    ALLOWED_ORIGINS = '*'
    LOG_LEVEL = 'DEBUG'
    ROOM_CAPACITY = 4
    MIN_PLAYERS = 2
    MAX_ITEMS = 8
    CHAT_HISTORY_LIMIT = 50
    DEFAULT_ROUNDS = 3
    DEFAULT_STARTING_HP = 4
    DEFAULT_ITEMS_PER_SHIPMENT = 2
    ROUND_ANNOUNCE_DELAY_SEC = 0
    LOOT_DELAY_SEC = 0
    RELOAD_DELAY_SEC = 0
    PHASE_TIMERS_INLINE = True
    RNG_SEED = 1234


class RecordingGateway:
    """Stands in for BroadcastGateway in unit tests; keeps every event."""

    def __init__(self):
        self.events = []

    def subscribe(self, player_id, room_id):
        self.events.append(('subscribe', player_id, room_id, None))

    def to_room(self, room_id, event, payload):
        self.events.append(('room', room_id, event, payload))

    def to_player(self, player_id, event, payload):
        self.events.append(('player', player_id, event, payload))

    def reject(self, player_id, reason, message=None):
        self.to_player(player_id, 'error_rejected', {'reason': reason.value, 'message': message})

    def player_list(self, room):
        self.to_room(room.id, 'player_list_updated', {'players': [p.to_dict(room.host_id) for p in room.players]})

    def snapshot(self, room, event='turn_advanced'):
        self.to_room(room.id, event, room.to_dict())

    def chat(self, room, message):
        self.to_room(room.id, 'chat_received', message.to_dict())

    def system_chat(self, room, text):
        self.to_room(room.id, 'chat_received', {'sender': 'SYSTEM', 'color': None, 'text': text, 'system': True})

    def named(self, event):
        return [e for e in self.events if e[2] == event]

    def clear(self):
        self.events = []


class ManualTimers:
    """Collects scheduled callbacks so tests decide when (and whether) they fire."""

    def __init__(self):
        self.pending = []

    def call_later(self, delay, fn, *args):
        self.pending.append((fn, args))

    def run_next(self):
        fn, args = self.pending.pop(0)
        fn(*args)

    def run_all(self):
        while self.pending:
            self.run_next()


@pytest.fixture()
def gateway():
    return RecordingGateway()


@pytest.fixture()
def timers():
    return ManualTimers()


@pytest.fixture()
def registry(gateway):
    return RoomRegistry(gateway, RoomSettings(starting_hp=4, items_per_shipment=2))


@pytest.fixture()
def lifecycle(registry, gateway, timers):
    return RoundLifecycle(registry, gateway, timers, rng=random.Random(7), reload_delay=0)


def seat_players(registry, room_id='TABLE', names=('A', 'B', 'C')):
    """Join ``names`` (ids equal to names) into a room and mark them all ready."""
    for name in names:
        registry.join_room(room_id, name, name)
    room = registry.get(room_id)
    for p in room.players:
        p.ready = True
    return room


def rig_game(room, chamber, turn=None, phase=Phase.AWAITING_ACTION):
    """Put ``room`` straight into a running round with a known chamber."""
    order = [p.id for p in room.players]
    for seat, p in enumerate(room.players):
        p.reset(room.settings.starting_hp)
        p.seat = seat
    room.epoch += 1
    game = GameState(seating=list(order), player_order=list(order), current_turn_player_id=turn or order[0])
    game.round_number = 1
    game.load(chamber)
    game.phase = phase
    room.game = game
    return game


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def connect(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace=NAMESPACE
    )
    assert test_client.is_connected(NAMESPACE)
    test_client.get_received(NAMESPACE)  # flush 'connected'
    return test_client


@pytest.fixture()
def sio_client(flask_app):
    test_client = connect(flask_app)
    yield test_client
    try:
        test_client.disconnect(namespace=NAMESPACE)
    except Exception:
        pass
