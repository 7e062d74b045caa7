import threading
import time

import pytest

from buckshot.errors import PreconditionRejected, Reason
from buckshot.models import Phase, Shell
from buckshot.services.game.connections import ConnectionLifecycleManager
from conftest import rig_game

L, B = Shell.LIVE, Shell.BLANK


@pytest.fixture()
def connections(registry, lifecycle, gateway):
    return ConnectionLifecycleManager(registry, lifecycle, gateway)


def _join_all(connections, names=('A', 'B', 'C'), room_id='TABLE'):
    for name in names:
        connections.join(name, room_id, name)
    return connections.registry.get(room_id)


def test_session_maps_to_room(connections):
    _join_all(connections, names=('A',))
    assert connections.room_for('A') == 'TABLE'
    with pytest.raises(PreconditionRejected) as exc:
        connections.room_for('nobody')
    assert exc.value.reason is Reason.NOT_IN_ROOM


def test_second_join_from_same_session_rejected(connections):
    _join_all(connections, names=('A',))
    with pytest.raises(PreconditionRejected) as exc:
        connections.join('A', 'OTHER', 'A2')
    assert exc.value.reason is Reason.ALREADY_IN_ROOM
    assert connections.registry.get('OTHER') is None


def test_host_leaving_lobby_migrates_to_earliest_joined(connections, gateway):
    room = _join_all(connections)
    connections.disconnect('A')
    assert [p.id for p in room.players] == ['B', 'C']
    assert room.host_id == 'B'
    assert gateway.named('player_disconnected')[-1][3]['host_id'] == 'B'


def test_non_host_leaving_keeps_host(connections):
    room = _join_all(connections)
    connections.disconnect('B')
    assert room.host_id == 'A'


def test_last_member_leaving_deletes_room_and_kills_timers(connections, lifecycle, timers, registry):
    room = _join_all(connections, names=('A', 'B'))
    for p in room.players:
        p.ready = True
    lifecycle.start_game('TABLE', 'A')
    assert timers.pending

    connections.disconnect('A')
    connections.disconnect('B')
    assert registry.get('TABLE') is None
    assert room.deleted

    timers.run_all()
    assert room.game is None
    assert all(p.items == [] for p in room.players)


def test_unknown_session_disconnect_is_harmless(connections):
    _join_all(connections, names=('A',))
    connections.disconnect('ghost')
    assert connections.registry.get('TABLE') is not None


def test_disconnect_mid_turn_advances_immediately(connections, gateway):
    room = _join_all(connections)
    game = rig_game(room, [L, B], turn='B')
    gateway.clear()

    connections.disconnect('B')
    assert game.player_order == ['A', 'C']
    assert game.current_turn_player_id == 'C'
    assert gateway.named('turn_announced')[-1][3]['player_id'] == 'C'
    assert not gateway.named('player_eliminated')
    assert not gateway.named('shot_resolved')
    assert gateway.named('player_disconnected')


def test_disconnect_off_turn_keeps_current_player(connections):
    room = _join_all(connections)
    game = rig_game(room, [L, B], turn='A')
    connections.disconnect('C')
    assert game.player_order == ['A', 'B']
    assert game.current_turn_player_id == 'A'


def test_disconnect_leaving_one_player_ends_game(connections, gateway):
    room = _join_all(connections, names=('A', 'B'))
    game = rig_game(room, [L, B], turn='A')
    connections.disconnect('A')
    assert game.winner_id == 'B'
    assert game.phase is Phase.GAME_OVER
    assert room.host_id == 'B'
    assert gateway.named('game_over')[0][3]['winner_id'] == 'B'


def test_disconnect_during_loot_reassigns_turn_silently(connections, gateway):
    room = _join_all(connections)
    game = rig_game(room, [L, B], turn='A', phase=Phase.LOOT_DISTRIBUTION)
    gateway.clear()
    connections.disconnect('A')
    assert game.current_turn_player_id == 'B'
    assert not gateway.named('turn_announced')


def test_concurrent_joins_from_one_session_land_in_one_room(connections, registry, monkeypatch):
    original = registry.join_room

    def slow_join(*args, **kwargs):
        time.sleep(0.05)
        return original(*args, **kwargs)

    monkeypatch.setattr(registry, 'join_room', slow_join)
    outcomes = []

    def attempt(room_id):
        try:
            connections.join('sid1', room_id, 'X')
            outcomes.append(room_id)
        except PreconditionRejected as exc:
            outcomes.append(exc.reason)

    threads = [threading.Thread(target=attempt, args=(r,)) for r in ('R1', 'R2')]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert Reason.ALREADY_IN_ROOM in outcomes
    assert len(registry) == 1

    connections.disconnect('sid1')
    assert len(registry) == 0


def test_rejected_join_frees_the_session(connections):
    _join_all(connections, names=('A',))
    with pytest.raises(PreconditionRejected) as exc:
        connections.join('B', 'TABLE', 'a')
    assert exc.value.reason is Reason.NAME_TAKEN

    connections.join('B', 'TABLE', 'b')
    assert connections.room_for('B') == 'TABLE'


def test_disconnect_while_joining_leaves_no_ghost(connections, registry, monkeypatch):
    original = registry.join_room

    def join_then_drop(room_id, name, sid):
        result = original(room_id, name, sid)
        connections.disconnect(sid)
        return result

    monkeypatch.setattr(registry, 'join_room', join_then_drop)
    connections.join('A', 'TABLE', 'A')
    assert registry.get('TABLE') is None
    with pytest.raises(PreconditionRejected):
        connections.room_for('A')
