"""Game error types.

Handlers catch these at the transport boundary: a ``PreconditionRejected`` is
reported back to the offending connection, an ``InvalidReference`` is dropped.
Neither ever tears down a room.
"""
from enum import Enum


class Reason(str, Enum):
    ROOM_ID_REQUIRED = 'ROOM_ID_REQUIRED'
    ROOM_FULL = 'ROOM_FULL'
    NAME_TAKEN = 'NAME_TAKEN'
    GAME_IN_PROGRESS = 'GAME_IN_PROGRESS'
    ALREADY_IN_ROOM = 'ALREADY_IN_ROOM'
    NOT_IN_ROOM = 'NOT_IN_ROOM'
    NOT_HOST = 'NOT_HOST'
    NOT_ENOUGH_PLAYERS = 'NOT_ENOUGH_PLAYERS'
    PLAYERS_NOT_READY = 'PLAYERS_NOT_READY'
    NO_GAME = 'NO_GAME'
    GAME_OVER = 'GAME_OVER'
    ROUND_NOT_ACTIVE = 'ROUND_NOT_ACTIVE'
    NOT_YOUR_TURN = 'NOT_YOUR_TURN'
    NO_SUCH_ITEM = 'NO_SUCH_ITEM'
    NO_SUCH_TARGET = 'NO_SUCH_TARGET'
    ITEM_EFFECT_UNSPECIFIED = 'ITEM_EFFECT_UNSPECIFIED'


class GameError(Exception):
    """Base class for every game-level error"""

    def __init__(self, reason: Reason, message: str = None):
        self.reason = reason
        self.message = message or reason.value.replace('_', ' ').capitalize()
        super().__init__(f"{reason.value}: {self.message}")


class PreconditionRejected(GameError):
    """Intent is not allowed right now (wrong turn, not host, room full...)"""
    pass


class InvalidReference(GameError):
    """Intent points at something that does not exist (item index, target id)"""
    pass
