"""
Connect-4 on an 8x8 board: gravity drops, four in a row in any direction wins,
a full board is a draw. Turns strictly alternate between the two players.
"""
import logging
from dataclasses import dataclass, field

from arena.achievements import AchievementCheck, COMMON_ACHIEVEMENTS, evaluate_achievements, win_achievement
from arena.manager import BaseGameManager, GameConfig
from arena.scoring import BaseScoringSystem, ScoreBreakdown, ScoringRule
from .base import Action, BaseGameEngine, GameDefinition, GameState, Player, ValidationResult
from .context import GameEvent

logger = logging.getLogger("agentarena.connect4")

ROWS = 8
COLS = 8
WINNING_LENGTH = 4
CENTER_COLUMN = 3
EMPTY = 0

DIRECTIONS = [(0, 1), (1, 0), (1, 1), (1, -1)]  # horizontal, vertical, both diagonals

Board = list[list[int]]


@dataclass
class Connect4Player(Player):
    player_number: int = 0
    wins: int = 0
    total_moves: int = 0
    timeouts: int = 0


@dataclass
class Connect4State(GameState):
    board: Board = field(default_factory=lambda: new_board())
    current_player_index: int = 0
    move_count: int = 0
    game_phase: str = "playing"  # playing | won | draw
    last_move: dict | None = None
    winner: str | None = None
    winning_cells: list[tuple[int, int]] = field(default_factory=list)
    move_history: list[dict] = field(default_factory=list)


# ====== Board helpers ======

def new_board() -> Board:
    return [[EMPTY] * COLS for _ in range(ROWS)]


def lowest_empty_row(board: Board, column: int) -> int:
    """Row a piece dropped in column lands on, or -1 if the column is full."""
    for row in range(ROWS - 1, -1, -1):
        if board[row][column] == EMPTY:
            return row
    return -1


def valid_columns(board: Board) -> list[int]:
    return [col for col in range(COLS) if lowest_empty_row(board, col) != -1]


def _line_through(board: Board, row: int, col: int, dr: int, dc: int, piece: int) -> list[tuple[int, int]]:
    cells = [(row, col)]
    r, c = row + dr, col + dc
    while 0 <= r < ROWS and 0 <= c < COLS and board[r][c] == piece:
        cells.append((r, c))
        r, c = r + dr, c + dc
    r, c = row - dr, col - dc
    while 0 <= r < ROWS and 0 <= c < COLS and board[r][c] == piece:
        cells.insert(0, (r, c))
        r, c = r - dr, c - dc
    return cells


def winning_line(board: Board, row: int, col: int, piece: int) -> list[tuple[int, int]]:
    """Cells of a line of WINNING_LENGTH or more through (row, col), else []."""
    for dr, dc in DIRECTIONS:
        cells = _line_through(board, row, col, dr, dc, piece)
        if len(cells) >= WINNING_LENGTH:
            return cells
    return []


def find_threats(board: Board, player_number: int) -> list[dict]:
    """Columns where player_number wins next move ("win") or must block ("block")."""
    opponent = 2 if player_number == 1 else 1
    scratch = [row[:] for row in board]
    threats = []
    for col in range(COLS):
        row = lowest_empty_row(scratch, col)
        if row == -1:
            continue
        for piece, kind in ((player_number, "win"), (opponent, "block")):
            scratch[row][col] = piece
            if winning_line(scratch, row, col, piece):
                threats.append({"row": row, "col": col, "type": kind})
            scratch[row][col] = EMPTY
    return threats


def render_board(board: Board, viewer: int | None = None) -> str:
    if viewer is None:
        symbols = {EMPTY: ".", 1: "X", 2: "O"}
    else:
        symbols = {EMPTY: ".", viewer: "X", (2 if viewer == 1 else 1): "O"}
    lines = [" ".join(str(c) for c in range(COLS))]
    lines += [" ".join(symbols[cell] for cell in row) for row in board]
    return "\n".join(lines)


def is_diagonal(cells: list[tuple[int, int]]) -> bool:
    if len(cells) < 2:
        return False
    ordered = sorted(cells)
    return abs(ordered[1][0] - ordered[0][0]) == 1 and abs(ordered[1][1] - ordered[0][1]) == 1


# ====== Engine ======

class Connect4GameEngine(BaseGameEngine):
    def get_game_definition(self) -> GameDefinition:
        return GameDefinition(min_players=2, max_players=2)

    def create_initial_state(self, players: list[Player]) -> Connect4State:
        c4_players = [
            Connect4Player(
                id=p.id, name=p.name, is_ai=p.is_ai, is_active=p.is_active,
                score=p.score, avatar=p.avatar, player_number=i + 1,
            )
            for i, p in enumerate(players)
        ]
        return Connect4State(
            game_id=self.context.game_id,
            phase="playing",
            start_time=self.context.clock.now(),
            current_turn=c4_players[0].id,
            players=c4_players,
        )

    def _sync_current_player_index(self):
        for i, player in enumerate(self.state.players):
            if player.id == self.state.current_turn:
                self.state.current_player_index = i
                return

    def apply_action(self, action: Action):
        self._sync_current_player_index()
        player = self.state.players[self.state.current_player_index]

        if action.type == "timeout":
            player.timeouts += 1
            self.state.move_history.append({"player_id": player.id, "type": "timeout"})
            return

        column = action.get("column")
        row = lowest_empty_row(self.state.board, column)
        if row == -1:
            raise ValueError(f"Column {column} is full")

        self.state.board[row][column] = player.player_number
        player.total_moves += 1
        self.state.move_count += 1
        self.state.last_move = {"row": row, "column": column, "player_id": player.id}
        self.state.move_history.append({"player_id": player.id, "type": "place", "column": column, "row": row})

        cells = winning_line(self.state.board, row, column, player.player_number)
        if cells:
            self.state.winner = player.id
            self.state.winning_cells = cells
            self.state.game_phase = "won"
            self.state.phase = "won"
            player.wins += 1
            logger.info(f"{player.name} connects four at {cells}")
        elif self.state.move_count == ROWS * COLS:
            self.state.game_phase = "draw"
            self.state.phase = "draw"

    def advance_turn(self):
        super().advance_turn()
        self._sync_current_player_index()

    def validate_game_specific_action(self, action: Action) -> ValidationResult:
        if self.state.game_phase != "playing":
            return ValidationResult.invalid("Game is over")

        if action.type == "timeout":
            return ValidationResult.ok()

        if action.type == "place":
            column = action.get("column")
            if not isinstance(column, int) or isinstance(column, bool) or not 0 <= column < COLS:
                return ValidationResult.invalid("Invalid column")
            if lowest_empty_row(self.state.board, column) == -1:
                return ValidationResult.invalid("Column is full")
            return ValidationResult.ok()

        return ValidationResult.invalid(f"Invalid action type: {action.type}")

    def get_valid_actions(self, player_id: str) -> list[Action]:
        if self.state is None or self.state.game_phase != "playing":
            return []
        if self.state.current_turn != player_id:
            return []

        actions = [Action(player_id, "place", {"column": col}) for col in valid_columns(self.state.board)]
        # always allowed so the manager can make progress
        actions.append(Action(player_id, "timeout"))
        return actions

    def is_game_over(self) -> bool:
        return self.state is not None and self.state.game_phase != "playing"

    def get_winners(self) -> list[str]:
        if self.state is None or self.state.game_phase != "won" or not self.state.winner:
            return []
        return [self.state.winner]

    def check_for_threats(self, player_number: int) -> list[dict]:
        if self.state is None or self.state.game_phase != "playing":
            return []
        return find_threats(self.state.board, player_number)


# ====== Scoring ======

WIN_BONUS = 500
DRAW_BONUS = 200
CENTER_BONUS = 5
FAST_WIN_BONUS = 100
FAST_WIN_MOVES = 10
TIMEOUT_PENALTY = 50

CONNECT4_ACHIEVEMENTS = [
    win_achievement(
        "perfect_game", "Perfect Game", "Win without a single timeout",
        condition=lambda ctx: ctx.state.get_player(ctx.player_id).timeouts == 0, rarity="uncommon",
    ),
    win_achievement(
        "speed_demon", "Speed Demon", f"Win in under {FAST_WIN_MOVES} moves",
        condition=lambda ctx: ctx.state.move_count < FAST_WIN_MOVES, rarity="rare",
    ),
    win_achievement(
        "center_control", "Center Control", "Win after playing the center column 5+ times",
        condition=lambda ctx: ctx.tracker.get("center_plays", 0) >= 5, rarity="uncommon",
    ),
    win_achievement(
        "diagonal_master", "Diagonal Master", "Win with a diagonal line",
        condition=lambda ctx: is_diagonal(ctx.state.winning_cells), rarity="rare",
    ),
]


class Connect4ScoringSystem(BaseScoringSystem):
    def initialize_rules(self):
        self.rules = [
            ScoringRule(
                "win", "Victory", "bonus", "Winning bonus",
                lambda state, pid: WIN_BONUS if state.winner == pid else 0,
            ),
            ScoringRule(
                "draw", "Draw", "bonus", "Draw bonus",
                lambda state, pid: DRAW_BONUS if state.game_phase == "draw" else 0,
            ),
        ]

    def calculate_base_points(self, state: Connect4State, player_id: str) -> float:
        player = state.get_player(player_id)
        if player is None:
            return 0
        return 100 + player.total_moves * 10

    def calculate_penalty_points(self, state: Connect4State, player_id: str) -> float:
        player = state.get_player(player_id)
        return player.timeouts * TIMEOUT_PENALTY if player else 0

    def get_penalty_breakdown(self, state: Connect4State, player_id: str) -> list[ScoreBreakdown]:
        player = state.get_player(player_id)
        if not player or not player.timeouts:
            return []
        return [ScoreBreakdown("penalty", f"Timeouts ({player.timeouts})", -player.timeouts * TIMEOUT_PENALTY)]

    def is_scorable_event(self, event: GameEvent) -> bool:
        return event.type in ("action:executed", "game:ended")

    def process_scorable_event(self, event: GameEvent):
        if event.type == "game:ended":
            logger.debug(f"Final move count {event.data['final_state'].move_count}")

    def get_event_bonus(self, event: GameEvent, player_id: str) -> float:
        if event.type == "action:executed" and event.player_id == player_id:
            action = event.data["action"]
            if action.type == "place" and action.get("column") == CENTER_COLUMN:
                return CENTER_BONUS
        if event.type == "game:ended" and player_id in event.data.get("winners", []):
            if event.data["final_state"].move_count < FAST_WIN_MOVES:
                return FAST_WIN_BONUS
        return 0

    def update_tracker_with_event(self, tracker: dict, event: GameEvent):
        super().update_tracker_with_event(tracker, event)
        if event.type == "action:executed" and event.data["action"].type == "place":
            tracker["moves"] = tracker.get("moves", 0) + 1
            if event.data["action"].get("column") == CENTER_COLUMN:
                tracker["center_plays"] = tracker.get("center_plays", 0) + 1

    def detect_achievements(self, event: GameEvent) -> dict[str, list[str]]:
        if event.type != "game:ended":
            return {}
        state = event.data["final_state"]
        unlocked = {}
        for player in state.players:
            check = AchievementCheck(
                player_id=player.id,
                event=event,
                state=state,
                tracker=self.get_tracker(player.id),
                winners=event.data.get("winners", []),
            )
            found = evaluate_achievements(COMMON_ACHIEVEMENTS + CONNECT4_ACHIEVEMENTS, check)
            if found:
                unlocked[player.id] = found
        return unlocked


# ====== Manager ======

MOVE_DELAYS = {"slow": 2.0, "normal": 1.0, "fast": 0.2}


@dataclass
class Connect4Config(GameConfig):
    pass


class Connect4GameManager(BaseGameManager):
    def __init__(self, engine: Connect4GameEngine, config: Connect4Config, context, scoring, agent_factory=None):
        super().__init__(engine, config, context, scoring, agent_factory)
        self.turn_delay = MOVE_DELAYS.get(config.speed, 0.0)

    async def process_game_tick(self):
        # Connect-4 always has a player on turn; nothing advances on its own
        logger.debug(f"Idle tick in phase {self.engine.state.phase}")

    def get_fallback_action(self, player_id: str) -> Action | None:
        if self.engine.state.current_turn != player_id:
            return None
        return Action(player_id, "timeout")
