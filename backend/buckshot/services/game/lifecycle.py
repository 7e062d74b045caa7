"""Round lifecycle: the per-room game state machine.

    lobby -> round_announce -> loot_distribution -> awaiting_action
          -> (round_announce | game_over)

Phase changes that happen "later" are scheduled through ``PhaseTimers``.
Every timer captures the room, its epoch, the round number and the phase it
expects to find; if any of them moved on by the time it fires, it does
nothing. Start, restart and room deletion all bump the epoch.

All mutations of a room happen while holding ``room.lock``.
"""
import logging
import random

from buckshot.errors import PreconditionRejected, Reason
from buckshot.models import GameState, Item, Phase, Player, Room, Shell
from . import inventory
from .broadcast import BroadcastGateway
from .chamber import generate_chamber
from .lobby import RoomRegistry
from .timers import PhaseTimers
from .turns import TurnDecision, TurnScheduler

logger = logging.getLogger(__name__)


class RoundLifecycle:

    def __init__(self, registry: RoomRegistry, gateway: BroadcastGateway, timers: PhaseTimers,
                 rng: random.Random = None, min_players: int = 2, max_items: int = inventory.MAX_ITEMS,
                 round_announce_delay: float = 3, loot_delay: float = 3, reload_delay: float = 2):
        self.registry = registry
        self.gateway = gateway
        self.timers = timers
        self.rng = rng
        self.min_players = min_players
        self.max_items = max_items
        self.round_announce_delay = round_announce_delay
        self.loot_delay = loot_delay
        self.reload_delay = reload_delay

    # ---- lookups / guards ----

    def _room(self, room_id) -> Room:
        room = self.registry.get(room_id)
        if room is None:
            raise PreconditionRejected(Reason.NOT_IN_ROOM, 'Room does not exist')
        return room

    @staticmethod
    def _require_member(room: Room, player_id) -> Player:
        player = room.get_player(player_id)
        if player is None:
            raise PreconditionRejected(Reason.NOT_IN_ROOM, 'Not in this room')
        return player

    @staticmethod
    def _require_host(room: Room, player_id) -> None:
        if room.host_id != player_id:
            raise PreconditionRejected(Reason.NOT_HOST, 'Only the host can do that')

    @staticmethod
    def _require_game(room: Room) -> GameState:
        if room.game is None:
            raise PreconditionRejected(Reason.NO_GAME, 'No game in progress')
        return room.game

    # ---- timers ----

    def _schedule(self, room: Room, delay: float, step, expected_phase: Phase) -> None:
        game = room.game
        logger.debug(
            f"[timer-set] room={room.id} epoch={room.epoch} round={game.round_number} "
            f"phase={expected_phase.value} step={step.__name__} delay={delay}s"
        )
        self.timers.call_later(delay, self._fire, room, room.epoch, game.round_number, expected_phase, step)

    def _fire(self, room: Room, epoch: int, round_number: int, expected_phase: Phase, step) -> None:
        with room.lock:
            game = room.game
            if (room.deleted or room.epoch != epoch or game is None
                    or game.round_number != round_number or game.phase is not expected_phase):
                logger.info(f"[timer-abort] room={room.id} epoch={epoch} round={round_number} step={step.__name__} stale")
                return
            step(room)

    # ---- lobby -> game ----

    def start_game(self, room_id, requester_id) -> GameState:
        room = self._room(room_id)
        with room.lock:
            self._require_member(room, requester_id)
            self._require_host(room, requester_id)
            if room.game is not None:
                raise PreconditionRejected(Reason.GAME_IN_PROGRESS, 'Game already in progress')
            if len(room.players) < self.min_players:
                raise PreconditionRejected(
                    Reason.NOT_ENOUGH_PLAYERS, f"At least {self.min_players} players are required to start"
                )
            if not all(p.ready for p in room.players):
                raise PreconditionRejected(Reason.PLAYERS_NOT_READY, 'All players must be ready')

            room.epoch += 1
            order = [p.id for p in room.players]
            for seat, p in enumerate(room.players):
                p.reset(room.settings.starting_hp)
                p.seat = seat
            first = (self.rng or random).choice(order)
            room.game = GameState(seating=list(order), player_order=list(order), current_turn_player_id=first)
            logger.info(f"[game-start] room={room.id} epoch={room.epoch} players={len(order)} first={first}")

            self.gateway.to_room(room.id, 'game_initialized', {
                'players': [p.to_dict(room.host_id) for p in room.players],
                'seats': {p.id: p.seat for p in room.players},
                'first_turn_player_id': first,
                'settings': room.settings.to_dict(),
            })
            self._announce_round(room)
            return room.game

    # ---- phase steps ----

    def _announce_round(self, room: Room) -> None:
        game = room.game
        game.round_number += 1
        game.phase = Phase.ROUND_ANNOUNCE
        game.load(generate_chamber(self.rng))
        # fresh chamber, fresh statuses
        for pid in game.player_order:
            p = room.get_player(pid)
            p.is_handcuffed = False
            p.is_sawed_active = False
        logger.info(
            f"[round] room={room.id} round={game.round_number} live={game.live_count} blank={game.blank_count}"
        )
        self.gateway.to_room(room.id, 'round_announced', {
            'round_number': game.round_number,
            'live_count': game.live_count,
            'blank_count': game.blank_count,
        })
        self.gateway.system_chat(room, f"NEW BATCH: {game.live_count} LIVE, {game.blank_count} BLANK.")
        self._schedule(room, self.round_announce_delay, self._distribute_loot, Phase.ROUND_ANNOUNCE)

    def _distribute_loot(self, room: Room) -> None:
        game = room.game
        game.phase = Phase.LOOT_DISTRIBUTION
        count = room.settings.items_per_shipment
        received = {}
        for pid in game.player_order:
            p = room.get_player(pid)
            items = inventory.draw_items(count, self.rng)
            evicted = inventory.add_items(p, items, self.max_items)
            received[pid] = len(items)
            self.gateway.to_player(pid, 'loot_received', {
                'round_number': game.round_number,
                'items': [i.value for i in items],
                'evicted': [i.value for i in evicted],
                'inventory': [i.value for i in p.items],
            })
        self.gateway.to_room(room.id, 'loot_announced', {
            'round_number': game.round_number,
            'received': received,
        })
        self._schedule(room, self.loot_delay, self._open_turns, Phase.LOOT_DISTRIBUTION)

    def _open_turns(self, room: Room) -> None:
        room.game.phase = Phase.AWAITING_ACTION
        self._announce_turn(room)

    def _announce_turn(self, room: Room) -> None:
        game = room.game
        logger.debug(f"[turn] room={room.id} round={game.round_number} player={game.current_turn_player_id}")
        self.gateway.to_room(room.id, 'turn_announced', {
            'player_id': game.current_turn_player_id,
            'round_number': game.round_number,
        })
        self.gateway.snapshot(room, 'turn_advanced')

    def _begin_reload(self, room: Room) -> None:
        room.game.phase = Phase.ROUND_ANNOUNCE
        logger.info(f"[reload] room={room.id} round={room.game.round_number} chamber exhausted")
        self._schedule(room, self.reload_delay, self._announce_round, Phase.ROUND_ANNOUNCE)

    def _apply_decision(self, room: Room, decision: TurnDecision, announce: bool = True) -> None:
        for pid in decision.skipped:
            self.gateway.to_room(room.id, 'player_handcuff_skipped', {'player_id': pid})
        room.game.current_turn_player_id = decision.player_id
        if announce:
            self._announce_turn(room)

    # ---- elimination / victory ----

    def eliminate(self, room: Room, player: Player, announce: bool = True) -> bool:
        """Take ``player`` out of the turn order. Returns True if that ended the game."""
        game = room.game
        player.is_alive = False
        if player.id in game.player_order:
            game.player_order.remove(player.id)
        logger.info(f"[eliminated] room={room.id} player={player.id} alive={len(game.player_order)}")
        if announce:
            self.gateway.to_room(room.id, 'player_eliminated', {'player_id': player.id})
        return self._check_winner(room)

    def _check_winner(self, room: Room) -> bool:
        game = room.game
        if game.is_over:
            return True
        if len(game.player_order) > 1:
            return False
        game.winner_id = game.player_order[0] if game.player_order else None
        game.current_turn_player_id = game.winner_id
        game.phase = Phase.GAME_OVER
        winner = room.get_player(game.winner_id)
        logger.info(f"[game-over] room={room.id} winner={game.winner_id}")
        self.gateway.to_room(room.id, 'game_over', {
            'winner_id': game.winner_id,
            'winner_name': winner.name if winner else None,
        })
        if winner:
            self.gateway.system_chat(room, f"{winner.name} IS THE LAST ONE STANDING.")
        return True

    # ---- player intents ----

    def shoot(self, room_id, shooter_id, target_id):
        room = self._room(room_id)
        with room.lock:
            shooter = self._require_member(room, shooter_id)
            game = self._require_game(room)
            if (game.phase is Phase.AWAITING_ACTION and game.current_turn_player_id == shooter_id
                    and game.is_exhausted):
                logger.warning(f"[shot-on-empty] room={room.id} round={game.round_number}; reloading")
                self._begin_reload(room)
                return None

            players = room.players_by_id()
            shot = inventory.resolve_shot(game, players, shooter_id, target_id)
            target = players[target_id]
            logger.info(
                f"[shot] room={room.id} shooter={shooter_id} target={target_id} "
                f"shell={shot.shell.value} damage={shot.damage} hp={shot.target_hp_after}"
            )
            self.gateway.to_room(room.id, 'shot_resolved', shot.to_dict())
            if shot.shell is Shell.LIVE:
                self.gateway.system_chat(room, f"{shooter.name} LANDED A LIVE SHOT ON {target.name}!")
            else:
                self.gateway.system_chat(room, f"{shooter.name} FIRED A BLANK AT {target.name}.")

            if shot.eliminated and self.eliminate(room, target):
                return shot

            decision = TurnScheduler(game, players).next_turn(shooter_id, self_blank=shot.self_blank)
            exhausted = game.is_exhausted
            self._apply_decision(room, decision, announce=not exhausted)
            if exhausted:
                self._begin_reload(room)
            return shot

    def use_item(self, room_id, player_id, index):
        room = self._room(room_id)
        with room.lock:
            player = self._require_member(room, player_id)
            game = self._require_game(room)
            result = inventory.use_item(game, room.players_by_id(), player_id, index)
            logger.info(f"[item] room={room.id} player={player_id} item={result.item.value}")

            self.gateway.to_room(room.id, 'item_effect_applied', result.public_dict())
            self.gateway.system_chat(room, f"{player.name} USED {result.item.value.replace('_', ' ')}.")
            if result.item is Item.MAGNIFYING_GLASS and result.revealed is not None:
                self.gateway.to_player(player_id, 'shell_revealed', {'shell': result.revealed.value})
            self.gateway.player_list(room)

            if result.chamber_exhausted:
                # the actor keeps the turn into the next round
                self._begin_reload(room)
            return result

    def request_restart(self, room_id, requester_id) -> None:
        room = self._room(room_id)
        with room.lock:
            self._require_member(room, requester_id)
            self._require_host(room, requester_id)
            self._require_game(room)
            room.game = None
            room.epoch += 1
            for p in room.players:
                p.reset(room.settings.starting_hp)
            logger.info(f"[restart] room={room.id} epoch={room.epoch}")
            self.gateway.to_room(room.id, 'game_restarted', room.to_dict())
            self.gateway.player_list(room)

    # ---- departures ----

    def handle_departure(self, room: Room, player: Player) -> None:
        """Player already removed from the room. Caller holds ``room.lock``."""
        game = room.game
        if game is None or game.is_over:
            return
        was_turn = game.current_turn_player_id == player.id
        if player.id in game.player_order and self.eliminate(room, player, announce=False):
            return
        if was_turn:
            decision = TurnScheduler(game, room.players_by_id()).next_turn(player.id)
            self._apply_decision(room, decision, announce=game.phase is Phase.AWAITING_ACTION)
