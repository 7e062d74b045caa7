"""Game domain services: rooms, rounds, turns, items and broadcasting.

This package holds the authoritative game logic. Socket handlers only parse
intents and call into it; the ``BroadcastGateway`` is the one place that
emits events back out.
"""
import random
from dataclasses import dataclass

from buckshot.models import RoomSettings
from .broadcast import BroadcastGateway
from .connections import ConnectionLifecycleManager
from .lifecycle import RoundLifecycle
from .lobby import RoomRegistry
from .timers import PhaseTimers


@dataclass
class GameServices:
    registry: RoomRegistry
    gateway: BroadcastGateway
    lifecycle: RoundLifecycle
    connections: ConnectionLifecycleManager


def build_services(app, socketio) -> GameServices:
    cfg = app.config
    gateway = BroadcastGateway(socketio)
    registry = RoomRegistry(
        gateway,
        RoomSettings(
            rounds=int(cfg.get('DEFAULT_ROUNDS', 3)),
            starting_hp=int(cfg.get('DEFAULT_STARTING_HP', 4)),
            items_per_shipment=int(cfg.get('DEFAULT_ITEMS_PER_SHIPMENT', 4)),
        ),
        capacity=int(cfg.get('ROOM_CAPACITY', 4)),
        chat_limit=int(cfg.get('CHAT_HISTORY_LIMIT', 50)),
        max_items=int(cfg.get('MAX_ITEMS', 8)),
    )
    seed = cfg.get('RNG_SEED')
    lifecycle = RoundLifecycle(
        registry,
        gateway,
        PhaseTimers(socketio, inline=bool(cfg.get('PHASE_TIMERS_INLINE'))),
        rng=random.Random(seed) if seed is not None else None,
        min_players=int(cfg.get('MIN_PLAYERS', 2)),
        max_items=int(cfg.get('MAX_ITEMS', 8)),
        round_announce_delay=float(cfg.get('ROUND_ANNOUNCE_DELAY_SEC', 3)),
        loot_delay=float(cfg.get('LOOT_DELAY_SEC', 3)),
        reload_delay=float(cfg.get('RELOAD_DELAY_SEC', 2)),
    )
    connections = ConnectionLifecycleManager(registry, lifecycle, gateway)
    return GameServices(registry, gateway, lifecycle, connections)
