import logging
import threading
from typing import Dict, Optional, Tuple

from buckshot.errors import PreconditionRejected, Reason
from buckshot.models import (
    CHAT_MAX_LENGTH,
    ChatMessage,
    Player,
    Room,
    RoomSettings,
    normalize_name,
    normalize_room_id,
)
from .broadcast import BroadcastGateway

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Owns every room of one server instance.

    Rooms are created on first join and deleted once empty. Lookups, inserts
    and deletes are guarded by the registry lock; everything that happens
    inside a room is guarded by that room's own lock.
    """

    def __init__(self, gateway: BroadcastGateway, default_settings: RoomSettings = None,
                 capacity: int = 4, chat_limit: int = 50, max_items: int = 8):
        self.gateway = gateway
        self.default_settings = default_settings or RoomSettings()
        self.capacity = capacity
        self.chat_limit = chat_limit
        self.max_items = max_items
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._rooms)

    def get(self, room_id) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(normalize_room_id(room_id))

    def _get_or_create(self, room_id: str) -> Room:
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                room = Room(
                    room_id,
                    RoomSettings(**self.default_settings.to_dict()),
                    capacity=self.capacity,
                    chat_limit=self.chat_limit,
                )
                self._rooms[room_id] = room
                logger.info(f"[room-created] room={room_id}")
            return room

    def delete(self, room_id) -> None:
        """Drop a room. Bumping the epoch turns its pending timers into no-ops."""
        room_id = normalize_room_id(room_id)
        with self._lock:
            room = self._rooms.pop(room_id, None)
        if room is None:
            return
        with room.lock:
            room.deleted = True
            room.epoch += 1
            room.game = None
        logger.info(f"[room-deleted] room={room_id}")

    def join_room(self, room_id, display_name, player_id: str) -> Tuple[Player, Room]:
        room_id = normalize_room_id(room_id)
        if not room_id:
            raise PreconditionRejected(Reason.ROOM_ID_REQUIRED, 'A room id is required')

        while True:
            room = self._get_or_create(room_id)
            with room.lock:
                if room.deleted:
                    # emptied and dropped between lookup and lock; try again
                    continue
                if room.game is not None:
                    raise PreconditionRejected(Reason.GAME_IN_PROGRESS, 'Game already in progress')
                if room.is_full:
                    raise PreconditionRejected(Reason.ROOM_FULL, f"Room is full ({room.capacity}/{room.capacity})")
                name = normalize_name(display_name) or room.default_name()
                if room.name_taken(name):
                    raise PreconditionRejected(Reason.NAME_TAKEN, 'Name already taken')

                player = room.add_player(player_id, name)
                logger.info(f"[join] room={room.id} player={player_id} name={name} ({len(room.players)}/{room.capacity})")

                self.gateway.subscribe(player_id, room.id)
                self.gateway.to_player(player_id, 'joined_successfully', {
                    'player_id': player_id,
                    'is_host': room.host_id == player_id,
                    'room': room.to_dict(),
                    'messages': [m.to_dict() for m in room.messages],
                })
                self.gateway.player_list(room)
                self.gateway.system_chat(room, f"{name} HAS JOINED THE LOBBY.")
                return player, room

    def _member(self, room_id, player_id) -> Tuple[Room, Player]:
        room = self.get(room_id)
        player = room.get_player(player_id) if room else None
        if player is None:
            raise PreconditionRejected(Reason.NOT_IN_ROOM, 'Not in a room')
        return room, player

    def update_settings(self, room_id, requester_id, settings) -> bool:
        """Host-only, lobby-only. Anything else is silently ignored."""
        room = self.get(room_id)
        if room is None:
            return False
        with room.lock:
            if room.host_id != requester_id or room.game is not None:
                logger.debug(f"[settings-ignored] room={room.id} requester={requester_id}")
                return False
            room.settings = room.settings.merged(settings if isinstance(settings, dict) else {}, self.max_items)
            for p in room.players:
                p.hp = p.max_hp = room.settings.starting_hp
            logger.info(f"[settings] room={room.id} settings={room.settings.to_dict()}")
            self.gateway.to_room(room.id, 'settings_updated', room.settings.to_dict())
            self.gateway.player_list(room)
            return True

    def toggle_ready(self, room_id, requester_id) -> bool:
        room, player = self._member(room_id, requester_id)
        with room.lock:
            player.ready = not player.ready
            logger.info(f"[ready] room={room.id} player={player.name} ready={player.ready}")
            self.gateway.player_list(room)
            return player.ready

    def send_chat(self, room_id, player_id, text) -> Optional[ChatMessage]:
        room, player = self._member(room_id, player_id)
        text = str(text or '').strip()[:CHAT_MAX_LENGTH]
        if not text:
            return None
        with room.lock:
            message = ChatMessage(sender=player.name, text=text, color=player.color)
            room.messages.append(message)
            logger.debug(f"[chat] room={room.id} {player.name}: {text}")
            self.gateway.chat(room, message)
            return message
