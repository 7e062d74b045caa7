"""Loot drawing, item effects and shot resolution.

Items are plain enum values; everything they do lives here. Functions take the
game state and the room's players and mutate them in place, returning a result
object that the lifecycle turns into broadcast events.
"""
import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional

from buckshot.errors import InvalidReference, PreconditionRejected, Reason
from buckshot.models import GameState, Item, Phase, Player, Shell
from .turns import TurnScheduler

logger = logging.getLogger(__name__)

MAX_ITEMS = 8
MAX_DUPLICATES_PER_SHIPMENT = 2
DUPLICATE_RETRIES = 15

LOOT_WEIGHTS = {
    Item.BEER: 20,
    Item.CIGARETTES: 14,
    Item.MAGNIFYING_GLASS: 12,
    Item.HANDCUFFS: 14,
    Item.BURNER_PHONE: 16,
    Item.HANDSAW: 10,
    Item.INVERTER: 16,
    Item.ADRENALINE: 10,
}

# In the loot table, but no server-side effect is defined for them
UNSPECIFIED_EFFECT_ITEMS = frozenset({Item.BURNER_PHONE, Item.INVERTER, Item.ADRENALINE})


@dataclass
class EffectResult:
    actor_id: str
    item: Item
    description: str
    target_id: Optional[str] = None
    hp_after: Optional[int] = None
    ejected: Optional[Shell] = None
    revealed: Optional[Shell] = None
    chamber_exhausted: bool = False

    def public_dict(self):
        # magnifying glass results never leave the actor's private channel
        payload = {
            'player_id': self.actor_id,
            'item': self.item.value,
            'description': self.description,
        }
        if self.target_id is not None:
            payload['target_id'] = self.target_id
        if self.hp_after is not None:
            payload['hp_after'] = self.hp_after
        if self.ejected is not None:
            payload['ejected_shell'] = self.ejected.value
        return payload


@dataclass
class ShotResult:
    shooter_id: str
    target_id: str
    shell: Shell
    damage: int
    target_hp_after: int
    eliminated: bool

    @property
    def self_blank(self) -> bool:
        return self.shell is Shell.BLANK and self.shooter_id == self.target_id

    def to_dict(self):
        return {
            'shooter_id': self.shooter_id,
            'target_id': self.target_id,
            'shell': self.shell.value,
            'damage': self.damage,
            'target_hp_after': self.target_hp_after,
        }


def draw_items(count: int, rng: random.Random = None) -> List[Item]:
    """Weighted draw of ``count`` items, at most two of a kind per shipment."""
    rng = rng or random.Random()
    population = list(LOOT_WEIGHTS)
    weights = [LOOT_WEIGHTS[i] for i in population]
    batch = []
    for _ in range(count):
        item = None
        for _ in range(DUPLICATE_RETRIES):
            candidate = rng.choices(population, weights=weights)[0]
            if batch.count(candidate) < MAX_DUPLICATES_PER_SHIPMENT:
                item = candidate
                break
        if item is None:
            item = rng.choices(population, weights=weights)[0]
        batch.append(item)
    return batch


def add_items(player: Player, items: List[Item], capacity: int = MAX_ITEMS) -> List[Item]:
    """Append to the inventory, evicting the oldest items past ``capacity``.

    Returns the evicted items.
    """
    player.items.extend(items)
    overflow = len(player.items) - capacity
    if overflow <= 0:
        return []
    evicted = player.items[:overflow]
    del player.items[:overflow]
    return evicted


def _check_turn(game: GameState, player_id) -> None:
    if game.is_over:
        raise PreconditionRejected(Reason.GAME_OVER)
    if game.phase is not Phase.AWAITING_ACTION:
        raise PreconditionRejected(Reason.ROUND_NOT_ACTIVE)
    if game.current_turn_player_id != player_id:
        raise PreconditionRejected(Reason.NOT_YOUR_TURN)


def use_item(game: GameState, players: Dict[str, Player], player_id, index) -> EffectResult:
    _check_turn(game, player_id)
    actor = players[player_id]
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(actor.items):
        raise InvalidReference(Reason.NO_SUCH_ITEM, f"No item at index {index!r}")

    item = actor.items[index]
    if item in UNSPECIFIED_EFFECT_ITEMS:
        logger.warning(f"[item-unspecified] player={player_id} item={item.value} has no server effect; not consumed")
        raise PreconditionRejected(Reason.ITEM_EFFECT_UNSPECIFIED, f"{item.value} has no effect yet")

    # remove first, keeping the order of what is left
    del actor.items[index]

    if item is Item.BEER:
        shell = game.consume() if not game.is_exhausted else None
        return EffectResult(
            actor_id=player_id,
            item=item,
            description=f"Racked out a {shell.value} shell" if shell else "Racked an empty chamber",
            ejected=shell,
            chamber_exhausted=game.is_exhausted,
        )

    if item is Item.CIGARETTES:
        actor.hp = min(actor.max_hp, actor.hp + 1)
        return EffectResult(actor_id=player_id, item=item, description='Smoked a cigarette', hp_after=actor.hp)

    if item is Item.MAGNIFYING_GLASS:
        return EffectResult(
            actor_id=player_id, item=item, description='Checked the chamber', revealed=game.peek()
        )

    if item is Item.HANDSAW:
        actor.is_sawed_active = True
        return EffectResult(actor_id=player_id, item=item, description='Sawed off the barrel')

    if item is Item.HANDCUFFS:
        # direct ring successor; an already cuffed target stays cuffed
        target_id = TurnScheduler(game, players).successor(player_id)
        if target_id is not None and target_id != player_id:
            players[target_id].is_handcuffed = True
        return EffectResult(actor_id=player_id, item=item, description='Handcuffed the next player', target_id=target_id)

    # every member of Item is handled above
    raise AssertionError(f"unhandled item {item!r}")


def resolve_shot(game: GameState, players: Dict[str, Player], shooter_id, target_id) -> ShotResult:
    """Fire the next shell at ``target_id``.

    Caller guarantees the chamber is not exhausted. Marks the target dead at
    0 hp but leaves removal from the turn order to the caller.
    """
    _check_turn(game, shooter_id)
    if target_id not in game.player_order:
        raise InvalidReference(Reason.NO_SUCH_TARGET, f"Unknown target {target_id!r}")
    shooter = players[shooter_id]
    target = players[target_id]

    shell = game.consume()
    damage = 0
    if shell is Shell.LIVE:
        damage = 2 if shooter.is_sawed_active else 1
    shooter.is_sawed_active = False

    target.hp = max(0, target.hp - damage)
    eliminated = False
    if target.hp <= 0 and target.is_alive:
        target.is_alive = False
        eliminated = True
    return ShotResult(shooter_id, target_id, shell, damage, target.hp, eliminated)
