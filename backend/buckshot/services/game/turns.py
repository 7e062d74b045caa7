from dataclasses import dataclass, field
from typing import Dict, List, Optional

from buckshot.models import GameState, Player


@dataclass
class TurnDecision:
    player_id: Optional[str]
    skipped: List[str] = field(default_factory=list)
    repeat: bool = False


class TurnScheduler:
    """Works out whose turn is next over the ring of alive players.

    The ring follows ``game.seating`` filtered to ids still in
    ``game.player_order``, so the successor of a player who was just removed
    is still well defined.
    """

    def __init__(self, game: GameState, players: Dict[str, Player]):
        self.game = game
        self.players = players

    def _alive(self, player_id) -> bool:
        return player_id in self.game.player_order

    def successor(self, player_id) -> Optional[str]:
        seating = self.game.seating
        if player_id not in seating:
            return self.game.player_order[0] if self.game.player_order else None
        start = seating.index(player_id)
        for step in range(1, len(seating) + 1):
            candidate = seating[(start + step) % len(seating)]
            if self._alive(candidate):
                return candidate
        return None

    def next_turn(self, current_id, self_blank: bool = False) -> TurnDecision:
        """Pick the next player and clear the handcuffs of anyone skipped.

        A blank fired at oneself keeps the turn with the shooter and bypasses
        handcuff handling entirely. The skip chain is bounded by the number of
        alive players; if it runs out, the first successor plays regardless.
        """
        order = self.game.player_order
        if not order:
            return TurnDecision(None)
        if len(order) == 1:
            return TurnDecision(order[0])
        if self_blank and self._alive(current_id):
            return TurnDecision(current_id, repeat=True)

        first = self.successor(current_id)
        candidate = first
        skipped = []
        for _ in range(len(order)):
            player = self.players.get(candidate)
            if player is None or not player.is_handcuffed:
                return TurnDecision(candidate, skipped)
            player.is_handcuffed = False
            skipped.append(candidate)
            candidate = self.successor(candidate)
        return TurnDecision(first, skipped)
