import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, List, Optional, Tuple

NAME_MAX_LENGTH = 20
CHAT_MAX_LENGTH = 200

PLAYER_COLORS = (
    '#ff4444',
    '#44ff44',
    '#4444ff',
    '#ffff44',
    '#ff44ff',
    '#44ffff',
)


class Shell(str, Enum):
    LIVE = 'LIVE'
    BLANK = 'BLANK'


class Item(str, Enum):
    BEER = 'BEER'
    CIGARETTES = 'CIGARETTES'
    MAGNIFYING_GLASS = 'MAGNIFYING_GLASS'
    HANDSAW = 'HANDSAW'
    HANDCUFFS = 'HANDCUFFS'
    BURNER_PHONE = 'BURNER_PHONE'
    INVERTER = 'INVERTER'
    ADRENALINE = 'ADRENALINE'


class Phase(str, Enum):
    ROUND_ANNOUNCE = 'round_announce'
    LOOT_DISTRIBUTION = 'loot_distribution'
    AWAITING_ACTION = 'awaiting_action'
    GAME_OVER = 'game_over'


# (min, max) accepted for each room setting
SETTING_BOUNDS = {
    'rounds': (1, 10),
    'starting_hp': (1, 8),
    'items_per_shipment': (0, 8),
}


def normalize_room_id(room_id) -> str:
    return str(room_id or '').strip().upper()


def normalize_name(name) -> str:
    return str(name or '').strip().upper()[:NAME_MAX_LENGTH]


@dataclass
class RoomSettings:
    rounds: int = 3
    starting_hp: int = 4
    items_per_shipment: int = 4

    def merged(self, data, max_items: int = 8) -> 'RoomSettings':
        """Return a copy with the valid integer fields of ``data`` applied.

        Unknown keys and non-integer values are ignored, values are clamped.
        """
        values = self.to_dict()
        for key, (lo, hi) in SETTING_BOUNDS.items():
            if key not in (data or {}):
                continue
            raw = data[key]
            if isinstance(raw, bool):
                continue
            try:
                value = int(raw)
            except (TypeError, ValueError):
                continue
            if key == 'items_per_shipment':
                hi = min(hi, max_items)
            values[key] = max(lo, min(hi, value))
        return RoomSettings(**values)

    def to_dict(self):
        return {
            'rounds': self.rounds,
            'starting_hp': self.starting_hp,
            'items_per_shipment': self.items_per_shipment,
        }


@dataclass
class Player:
    id: str
    name: str
    join_seq: int
    color: str = PLAYER_COLORS[0]
    ready: bool = False
    hp: int = 4
    max_hp: int = 4
    items: List[Item] = field(default_factory=list)
    is_handcuffed: bool = False
    is_sawed_active: bool = False
    is_alive: bool = True
    seat: Optional[int] = None

    def reset(self, hp: int) -> None:
        self.hp = hp
        self.max_hp = hp
        self.items = []
        self.is_handcuffed = False
        self.is_sawed_active = False
        self.is_alive = True
        self.seat = None

    def to_dict(self, host_id: str = None):
        return {
            'id': self.id,
            'name': self.name,
            'color': self.color,
            'is_host': self.id == host_id,
            'ready': self.ready,
            'hp': self.hp,
            'max_hp': self.max_hp,
            'items': [i.value for i in self.items],
            'is_handcuffed': self.is_handcuffed,
            'is_sawed_active': self.is_sawed_active,
            'is_alive': self.is_alive,
            'seat': self.seat,
        }


@dataclass
class GameState:
    seating: List[str]
    player_order: List[str]
    current_turn_player_id: str
    chamber: List[Shell] = field(default_factory=list)
    current_shell_index: int = 0
    live_count: int = 0
    blank_count: int = 0
    round_number: int = 0
    winner_id: Optional[str] = None
    phase: Phase = Phase.ROUND_ANNOUNCE

    @property
    def shells_remaining(self) -> int:
        return len(self.chamber) - self.current_shell_index

    @property
    def is_exhausted(self) -> bool:
        return self.current_shell_index >= len(self.chamber)

    @property
    def is_over(self) -> bool:
        return self.winner_id is not None

    def load(self, chamber: List[Shell]) -> None:
        self.chamber = list(chamber)
        self.current_shell_index = 0
        self.live_count = sum(1 for s in self.chamber if s is Shell.LIVE)
        self.blank_count = len(self.chamber) - self.live_count

    def peek(self) -> Optional[Shell]:
        if self.is_exhausted:
            return None
        return self.chamber[self.current_shell_index]

    def consume(self) -> Shell:
        """Take the next shell out of the chamber, keeping the counters in step."""
        shell = self.chamber[self.current_shell_index]
        self.current_shell_index += 1
        if shell is Shell.LIVE:
            self.live_count -= 1
        else:
            self.blank_count -= 1
        return shell

    def to_dict(self):
        # chamber contents are never serialized
        return {
            'phase': self.phase.value,
            'round_number': self.round_number,
            'live_count': self.live_count,
            'blank_count': self.blank_count,
            'shells_remaining': self.shells_remaining,
            'current_shell_index': self.current_shell_index,
            'seating': list(self.seating),
            'player_order': list(self.player_order),
            'current_turn_player_id': self.current_turn_player_id,
            'winner_id': self.winner_id,
        }


@dataclass
class ChatMessage:
    sender: str
    text: str
    system: bool = False
    color: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self):
        return {
            'sender': self.sender,
            'color': self.color,
            'text': self.text,
            'system': self.system,
            'timestamp': self.timestamp,
        }


class Room:
    def __init__(self, room_id: str, settings: RoomSettings, capacity: int = 4, chat_limit: int = 50):
        self.id = room_id
        self.capacity = capacity
        self.settings = settings
        self.players: List[Player] = []
        self.host_id: Optional[str] = None
        self.messages: Deque[ChatMessage] = deque(maxlen=chat_limit)
        self.game: Optional[GameState] = None
        self.epoch = 0
        self.deleted = False
        self.lock = threading.RLock()
        self._join_seq = 0

    def __repr__(self):
        return f"<Room {self.id} players={len(self.players)} epoch={self.epoch}>"

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.capacity

    def get_player(self, player_id) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def players_by_id(self) -> Dict[str, Player]:
        return {p.id: p for p in self.players}

    def name_taken(self, name: str) -> bool:
        return any(p.name.upper() == name.upper() for p in self.players)

    def default_name(self) -> str:
        n = 1
        while self.name_taken(f"PLAYER {n}"):
            n += 1
        return f"PLAYER {n}"

    def next_color(self) -> str:
        """First palette color no member wears; wraps by join order once all are taken."""
        in_use = {p.color for p in self.players}
        for color in PLAYER_COLORS:
            if color not in in_use:
                return color
        return PLAYER_COLORS[self._join_seq % len(PLAYER_COLORS)]

    def add_player(self, player_id: str, name: str) -> Player:
        color = self.next_color()
        self._join_seq += 1
        player = Player(
            id=player_id,
            name=name,
            join_seq=self._join_seq,
            color=color,
            hp=self.settings.starting_hp,
            max_hp=self.settings.starting_hp,
        )
        self.players.append(player)
        if self.host_id is None:
            self.host_id = player_id
        return player

    def remove_player(self, player_id) -> Tuple[Optional[Player], bool]:
        """Remove a member. Returns (player, host_changed)."""
        player = self.get_player(player_id)
        if player is None:
            return None, False
        self.players.remove(player)
        host_changed = False
        if self.host_id == player_id:
            # earliest-joined remaining member inherits the host role
            remaining = sorted(self.players, key=lambda p: p.join_seq)
            self.host_id = remaining[0].id if remaining else None
            host_changed = self.host_id is not None
        return player, host_changed

    def to_dict(self):
        return {
            'id': self.id,
            'host_id': self.host_id,
            'capacity': self.capacity,
            'settings': self.settings.to_dict(),
            'players': [p.to_dict(self.host_id) for p in self.players],
            'game': self.game.to_dict() if self.game else None,
        }
