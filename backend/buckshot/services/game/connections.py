import logging
import threading
from typing import Dict

from buckshot.errors import PreconditionRejected, Reason
from .broadcast import BroadcastGateway
from .lifecycle import RoundLifecycle
from .lobby import RoomRegistry

logger = logging.getLogger(__name__)

# held in the session map while a join is in flight
_JOINING = object()


class ConnectionLifecycleManager:
    """Maps transport sessions to the room they joined and cleans up after them.

    A player's id is its session id. Disconnecting is final: there is no
    reconnection, the player simply leaves the room (and the round).
    """

    def __init__(self, registry: RoomRegistry, lifecycle: RoundLifecycle, gateway: BroadcastGateway):
        self.registry = registry
        self.lifecycle = lifecycle
        self.gateway = gateway
        self._sessions: Dict[str, object] = {}
        self._lock = threading.Lock()

    def join(self, sid: str, room_id, name):
        # reserve the session first so a second join from the same
        # connection is rejected even while this one is still running
        with self._lock:
            if sid in self._sessions:
                raise PreconditionRejected(Reason.ALREADY_IN_ROOM, 'Already in a room')
            self._sessions[sid] = _JOINING
        try:
            player, room = self.registry.join_room(room_id, name, sid)
        except Exception:
            with self._lock:
                self._sessions.pop(sid, None)
            raise

        with self._lock:
            still_connected = self._sessions.get(sid) is _JOINING
            if still_connected:
                self._sessions[sid] = room.id
        if not still_connected:
            logger.info(f"[join-abandoned] room={room.id} player={sid}")
            self._leave(sid, room.id)
        return player, room

    def room_for(self, sid: str) -> str:
        with self._lock:
            room_id = self._sessions.get(sid)
        if room_id is None or room_id is _JOINING:
            raise PreconditionRejected(Reason.NOT_IN_ROOM, 'Join a room first')
        return room_id

    def disconnect(self, sid: str) -> None:
        with self._lock:
            room_id = self._sessions.pop(sid, None)
        if room_id is None or room_id is _JOINING:
            return
        self._leave(sid, room_id)

    def _leave(self, sid: str, room_id: str) -> None:
        room = self.registry.get(room_id)
        if room is None:
            return

        with room.lock:
            player, host_changed = room.remove_player(sid)
            if player is None:
                return
            logger.info(f"[leave] room={room.id} player={player.name} ({len(room.players)}/{room.capacity})")

            if not room.players:
                self.registry.delete(room.id)
                return
            if host_changed:
                logger.info(f"[new-host] room={room.id} host={room.host_id}")

            self.gateway.to_room(room.id, 'player_disconnected', {
                'player_id': player.id,
                'name': player.name,
                'host_id': room.host_id,
            })
            self.lifecycle.handle_departure(room, player)
            self.gateway.player_list(room)
            self.gateway.system_chat(room, f"{player.name} HAS DISCONNECTED.")
