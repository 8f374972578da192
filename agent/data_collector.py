"""
Game-agnostic projection of a game state for one player, as shown to a model.
Hidden information is redacted unless the game has none.
"""
from abc import ABC, abstractmethod
from dataclasses import asdict, fields

from games.base import GameState, Player
from games.connect4 import Connect4State, find_threats, render_board, valid_columns
from games.reverse_hangman import ReverseHangmanState

COMMON_STATE_KEYS = {"game_id", "phase", "start_time", "end_time", "current_turn", "turn_count", "players", "metadata"}
COMMON_PLAYER_KEYS = {"id", "name", "avatar", "is_ai", "is_active", "score"}

HIDDEN = "hidden"


class BaseGameDataCollector(ABC):
    game_type = "generic"
    obfuscate_hidden_info = True
    # player fields other players must never see
    private_player_fields: tuple[str, ...] = ()

    def __init__(self, include_history: bool = False, history_limit: int = 10):
        self.include_history = include_history
        self.history_limit = history_limit

    def collect(self, state: GameState, player_id: str) -> dict:
        player = state.get_player(player_id)
        if player is None:
            raise KeyError(f"Player {player_id} not found")

        players = [self.project_player(p, state) for p in state.players]
        data = {
            "game_id": state.game_id,
            "game_type": self.game_type,
            "phase": state.phase,
            "turn_count": state.turn_count,
            "players": players,
            "current_player": next(p for p in players if p["id"] == player_id),
            "game_specific": self.collect_game_specific(state, player_id),
        }
        if self.include_history:
            data["history"] = self.collect_history(state, player_id)[-self.history_limit:]
        return self.sanitize(data, player_id)

    def project_player(self, player: Player, state: GameState) -> dict:
        projected = {
            "id": player.id,
            "name": player.name,
            "is_active": player.is_active,
            "score": player.score,
            "position": state.players.index(player),
        }
        resources = {f.name: getattr(player, f.name) for f in fields(player) if f.name not in COMMON_PLAYER_KEYS}
        if resources:
            projected["resources"] = resources
        return projected

    def sanitize(self, data: dict, viewer_id: str) -> dict:
        if not self.obfuscate_hidden_info:
            return data
        data["game_specific"] = self.obfuscate_hidden_information(data["game_specific"], viewer_id)
        for player in data["players"]:
            if player["id"] != viewer_id and "resources" in player:
                player["resources"] = self.obfuscate_player_resources(player["resources"], player["id"], viewer_id)
        return data

    def obfuscate_hidden_information(self, game_specific: dict, viewer_id: str) -> dict:
        return game_specific

    def obfuscate_player_resources(self, resources: dict, owner_id: str, viewer_id: str) -> dict:
        return {k: (HIDDEN if k in self.private_player_fields else v) for k, v in resources.items()}

    def collect_history(self, state: GameState, player_id: str) -> list[dict]:
        return []

    @abstractmethod
    def collect_game_specific(self, state: GameState, player_id: str) -> dict:
        pass


class SimpleGameDataCollector(BaseGameDataCollector):
    """Passes through every non-common state field."""

    def __init__(self, game_type: str = "generic", **kwargs):
        super().__init__(**kwargs)
        self.game_type = game_type

    def collect_game_specific(self, state: GameState, player_id: str) -> dict:
        return {k: v for k, v in asdict(state).items() if k not in COMMON_STATE_KEYS}


class Connect4DataCollector(BaseGameDataCollector):
    game_type = "connect4"

    def collect_game_specific(self, state: Connect4State, player_id: str) -> dict:
        me = state.get_player(player_id)
        opponent = 2 if me.player_number == 1 else 1
        threats = find_threats(state.board, me.player_number)
        return {
            "board": render_board(state.board, me.player_number),
            "player_number": me.player_number,
            "opponent_number": opponent,
            "valid_columns": valid_columns(state.board),
            "move_count": state.move_count,
            "last_move": state.last_move,
            "winning_moves": sorted({t["col"] for t in threats if t["type"] == "win"}),
            "blocking_moves": sorted({t["col"] for t in threats if t["type"] == "block"}),
        }

    def collect_history(self, state: Connect4State, player_id: str) -> list[dict]:
        return list(state.move_history)


class ReverseHangmanDataCollector(BaseGameDataCollector):
    """
    Reverse-Hangman has no hidden player information, so obfuscation is off.
    The secret prompt is never part of the projection.
    """

    game_type = "reverse-hangman"
    obfuscate_hidden_info = False

    def collect_game_specific(self, state: ReverseHangmanState, player_id: str) -> dict:
        pair = state.current_prompt_pair
        return {
            "current_output": pair.output if pair else "",
            "previous_guesses": [
                {
                    "guess": a.guess,
                    "match_percentage": round(a.match_percentage, 1),
                    "match_type": a.match_type,
                    "position_template": a.match_details.position_template if a.match_details else None,
                }
                for a in state.attempts
            ],
            "attempts_remaining": max(0, state.max_attempts - len(state.attempts)),
            "max_attempts": state.max_attempts,
            "category": pair.category if pair else "unknown",
            "difficulty": pair.difficulty if pair else "unknown",
            "round_number": state.round_number,
            "max_rounds": state.max_rounds,
        }

    def project_player(self, player: Player, state: GameState) -> dict:
        projected = super().project_player(player, state)
        # guess history repeats previous_guesses
        projected.get("resources", {}).pop("guess_history", None)
        return projected
