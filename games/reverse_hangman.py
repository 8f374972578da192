"""
Reverse-Hangman: players see the output of an AI prompt and guess the prompt.

Each round picks a secret prompt/output pair. The guessing player keeps the
turn until they hit an exact match, run out of attempts or the round ends;
the turn never rotates inside a round.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from arena.achievements import AchievementCheck, COMMON_ACHIEVEMENTS, evaluate_achievements, Achievement
from arena.manager import BaseGameManager, GameConfig, ManagerState
from arena.scoring import BaseScoringSystem, ScoreBreakdown, ScoringRule
from .base import Action, BaseGameEngine, GameDefinition, GameState, Player, ValidationResult
from .context import GameContext, GameEvent
from .errors import IllegalStateError, PromptGenerationUnavailableError
from .prompt_database import DIFFICULTIES, PromptDatabase, PromptPair
from .prompt_matcher import MatchDetails, PromptMatcher

logger = logging.getLogger("agentarena.hangman")

MAX_GUESS_LENGTH = 500
SKIPPED = "[SKIPPED]"
ROUND_WIN_POINTS = 100
UNUSED_ATTEMPT_POINTS = 20


@dataclass
class GuessAttempt:
    player_id: str
    guess: str
    timestamp: datetime
    is_correct: bool = False
    match_percentage: float = 0
    match_type: str = "incorrect"
    match_details: MatchDetails | None = None


@dataclass
class ReverseHangmanPlayer(Player):
    guess_history: list[GuessAttempt] = field(default_factory=list)
    rounds_won: int = 0
    total_score: int = 0
    skips: int = 0
    current_guess: str | None = None


@dataclass
class ReverseHangmanState(GameState):
    current_prompt_pair: PromptPair | None = None
    attempts: list[GuessAttempt] = field(default_factory=list)
    max_attempts: int = 7
    round_number: int = 0
    max_rounds: int = 5
    animation_phase: str = "idle"
    round_started_at: datetime | None = None
    round_results: list[dict] = field(default_factory=list)


class ReverseHangmanGameEngine(BaseGameEngine):
    def __init__(
        self,
        context: GameContext,
        prompt_source: PromptDatabase | None = None,
        max_attempts: int = 7,
        max_rounds: int = 5,
        matcher: PromptMatcher | None = None,
    ):
        super().__init__(context)
        self.prompt_source = prompt_source if prompt_source is not None else PromptDatabase(rng=context.rng)
        self.max_attempts = max_attempts
        self.max_rounds = max_rounds
        self.matcher = matcher or PromptMatcher()

    def get_game_definition(self) -> GameDefinition:
        return GameDefinition(min_players=1, max_players=4)

    def create_initial_state(self, players: list[Player]) -> ReverseHangmanState:
        return ReverseHangmanState(
            game_id=self.context.game_id,
            phase="waiting",
            start_time=self.context.clock.now(),
            players=[
                ReverseHangmanPlayer(
                    id=p.id, name=p.name, is_ai=p.is_ai, is_active=p.is_active,
                    score=p.score, avatar=p.avatar,
                )
                for p in players
            ],
            max_attempts=self.max_attempts,
            max_rounds=self.max_rounds,
        )

    # ====== Rounds ======

    def start_new_round(self, difficulty: str = "medium", prompt_pair: PromptPair | None = None):
        """Pick the round's secret and enter the selecting phase."""
        if self.state is None:
            raise IllegalStateError("Game not initialized")
        if self.state.phase not in ("waiting", "round-complete"):
            raise IllegalStateError("Cannot start a new round while one is in progress")
        if self.state.round_number >= self.state.max_rounds:
            raise IllegalStateError(f"All {self.state.max_rounds} rounds have been played")

        pair = prompt_pair or (self.prompt_source.get_random(difficulty) if self.prompt_source else None)
        if pair is None:
            logger.error(f"No prompt available for a {difficulty} round")
            raise PromptGenerationUnavailableError(
                "No prompt source available for the round", {"difficulty": difficulty},
            )

        self.state.round_number += 1
        self.state.current_prompt_pair = pair
        self.state.attempts = []
        self.state.phase = "selecting"
        self.state.animation_phase = "selecting"
        self.state.current_turn = None
        self.state.round_started_at = self.context.clock.now()
        logger.info(f"Round {self.state.round_number}: {pair.difficulty} {pair.category} prompt ({pair.id})")

        self.context.emit("round:started", {
            "round_number": self.state.round_number,
            "difficulty": pair.difficulty,
            "category": pair.category,
        })

    def begin_guessing(self):
        """Leave the selecting phase and hand the turn to this round's guesser."""
        if self.state is None or self.state.phase != "selecting":
            raise IllegalStateError("No round is being selected")
        active = [p for p in self.state.players if p.is_active]
        if not active:
            raise IllegalStateError("No active player can guess")
        self.state.phase = "playing"
        self.state.animation_phase = "idle"
        # guessing duty rotates between rounds, never within one
        self.state.current_turn = active[(self.state.round_number - 1) % len(active)].id

    # ====== Actions ======

    def apply_action(self, action: Action):
        if action.type == "guess":
            self._handle_guess(action.player_id, action.get("guess"))
        else:
            self._handle_skip(action.player_id)

    def _player(self, player_id: str) -> ReverseHangmanPlayer:
        return self.state.get_player(player_id)

    def _handle_guess(self, player_id: str, guess: str):
        pair = self.state.current_prompt_pair
        if pair is None:
            raise IllegalStateError("No prompt pair for this round")

        result = self.matcher.match(guess, pair.prompt)
        attempt = GuessAttempt(
            player_id=player_id,
            guess=guess,
            timestamp=self.context.clock.now(),
            is_correct=result.type == "exact",
            match_percentage=result.percentage,
            match_type=result.type,
            match_details=result.details,
        )
        self.state.attempts.append(attempt)
        player = self._player(player_id)
        player.guess_history.append(attempt)
        player.current_guess = guess

        self.context.emit("guess:made", {
            "attempt": attempt,
            "attempts_remaining": self.get_attempts_remaining(),
        }, player_id=player_id)

        if attempt.is_correct:
            self._handle_round_win(player_id)
        elif len(self.state.attempts) >= self.state.max_attempts:
            self._handle_round_loss()

    def _handle_skip(self, player_id: str):
        self.state.attempts.append(GuessAttempt(
            player_id=player_id,
            guess=SKIPPED,
            timestamp=self.context.clock.now(),
        ))
        self._player(player_id).skips += 1
        if len(self.state.attempts) >= self.state.max_attempts:
            self._handle_round_loss()

    def _handle_round_win(self, winner_id: str):
        self.state.phase = "won"
        winner = self._player(winner_id)
        points = ROUND_WIN_POINTS + UNUSED_ATTEMPT_POINTS * self.get_attempts_remaining()
        winner.rounds_won += 1
        winner.total_score += points
        winner.score = winner.total_score

        self.context.emit("round:won", {
            "round_number": self.state.round_number,
            "attempts": len(self.state.attempts),
            "points": points,
            "duration": self._round_duration(),
        }, player_id=winner_id)
        self._complete_round("won", winner_id, points)

    def _handle_round_loss(self):
        self.state.phase = "lost"
        self.context.emit("round:lost", {
            "round_number": self.state.round_number,
            "correct_prompt": self.state.current_prompt_pair.prompt,
        })
        self._complete_round("lost", None, 0)

    def _complete_round(self, outcome: str, winner_id: str | None, points: int):
        self.state.round_results.append({
            "round_number": self.state.round_number,
            "prompt_id": self.state.current_prompt_pair.id,
            "outcome": outcome,
            "winner": winner_id,
            "attempts": len(self.state.attempts),
            "points": points,
        })
        self.state.phase = "round-complete"
        self.state.current_turn = None

    def _round_duration(self) -> float:
        if self.state.round_started_at is None:
            return 0.0
        return (self.context.clock.now() - self.state.round_started_at).total_seconds()

    def advance_turn(self):
        # the guesser keeps the turn for the whole round
        pass

    def validate_game_specific_action(self, action: Action) -> ValidationResult:
        errors = []
        if self.state.phase != "playing":
            errors.append("Round is not in the playing phase")

        if action.type not in ("guess", "skip", "timeout"):
            errors.append(f"Invalid action type: {action.type}")
        elif action.type == "guess":
            guess = action.get("guess")
            if not isinstance(guess, str) or not guess.strip():
                errors.append("Guess text is required")
            elif len(guess) > MAX_GUESS_LENGTH:
                errors.append(f"Guess is too long (max {MAX_GUESS_LENGTH} characters)")

        return ValidationResult(is_valid=not errors, errors=errors)

    def get_valid_actions(self, player_id: str) -> list[Action]:
        if self.state is None or self.state.phase != "playing" or self.state.current_turn != player_id:
            return []
        return [
            Action(player_id, "guess", {"guess": None}),
            Action(player_id, "skip"),
        ]

    def is_game_over(self) -> bool:
        return (
            self.state is not None
            and self.state.phase == "round-complete"
            and self.state.round_number >= self.state.max_rounds
        )

    def get_winners(self) -> list[str]:
        if self.state is None or not self.state.players:
            return []
        best = max(p.total_score for p in self.state.players)
        if best <= 0:
            return []
        return [p.id for p in self.state.players if p.total_score == best]

    # ====== Queries ======

    def get_output(self) -> str | None:
        pair = self.state.current_prompt_pair if self.state else None
        return pair.output if pair else None

    def get_revealed_prompt(self) -> str | None:
        if self.state is None or self.state.phase not in ("won", "lost", "round-complete"):
            return None
        pair = self.state.current_prompt_pair
        return pair.prompt if pair else None

    def get_attempts_remaining(self) -> int:
        if self.state is None:
            return 0
        return max(0, self.state.max_attempts - len(self.state.attempts))

    def get_current_prompt_pair(self) -> PromptPair | None:
        return self.state.current_prompt_pair if self.state else None


# ====== Scoring ======

NEAR_MISS_POINTS = 10
SKIP_PENALTY = 10

REVERSE_HANGMAN_ACHIEVEMENTS = [
    Achievement(
        "first_try", "First Try", "Solve a round with your first guess",
        lambda ctx: ctx.event.type == "action:executed" and any(
            r["winner"] == ctx.player_id and r["attempts"] == 1 for r in ctx.state.round_results
        ),
        category="skill", rarity="rare",
    ),
    Achievement(
        "mind_reader", "Mind Reader", "Win three rounds in one game",
        lambda ctx: ctx.state.get_player(ctx.player_id).rounds_won >= 3,
        category="skill", rarity="epic",
    ),
]


def _unused_attempt_points(state: ReverseHangmanState, player_id: str) -> float:
    return sum(
        UNUSED_ATTEMPT_POINTS * (state.max_attempts - r["attempts"])
        for r in state.round_results if r["winner"] == player_id
    )


def _near_miss_points(state: ReverseHangmanState, player_id: str) -> float:
    player = state.get_player(player_id)
    if player is None:
        return 0
    return NEAR_MISS_POINTS * sum(1 for a in player.guess_history if a.match_type == "near")


class ReverseHangmanScoringSystem(BaseScoringSystem):
    def initialize_rules(self):
        self.rules = [
            ScoringRule("efficiency", "Efficiency", "bonus", "Unused attempts", _unused_attempt_points),
            ScoringRule("near_miss", "Near miss", "bonus", "Near-miss guesses", _near_miss_points),
        ]

    def calculate_base_points(self, state: ReverseHangmanState, player_id: str) -> float:
        player = state.get_player(player_id)
        return ROUND_WIN_POINTS * player.rounds_won if player else 0

    def calculate_penalty_points(self, state: ReverseHangmanState, player_id: str) -> float:
        player = state.get_player(player_id)
        return player.skips * SKIP_PENALTY if player else 0

    def get_penalty_breakdown(self, state: ReverseHangmanState, player_id: str) -> list[ScoreBreakdown]:
        player = state.get_player(player_id)
        if not player or not player.skips:
            return []
        return [ScoreBreakdown("penalty", f"Skips ({player.skips})", -player.skips * SKIP_PENALTY)]

    def is_scorable_event(self, event: GameEvent) -> bool:
        return event.type == "action:executed"

    def process_scorable_event(self, event: GameEvent):
        action = event.data["action"]
        if action.type != "guess":
            return
        tracker = self.get_tracker(event.player_id)
        attempt = event.data["new_state"].get_player(event.player_id).guess_history[-1]
        streaks = tracker["streaks"]
        if attempt.is_correct:
            tracker["successes"] += 1
            streaks["current"] += 1
            streaks["best"] = max(streaks["best"], streaks["current"])
        else:
            tracker["failures"] += 1
            streaks["current"] = 0

    def get_event_bonus(self, event: GameEvent, player_id: str) -> float:
        return 0

    def detect_achievements(self, event: GameEvent) -> dict[str, list[str]]:
        if event.type == "action:executed":
            state, candidates = event.data["new_state"], [event.player_id]
            achievements = REVERSE_HANGMAN_ACHIEVEMENTS
        elif event.type == "game:ended":
            state = event.data["final_state"]
            candidates = [p.id for p in state.players]
            achievements = COMMON_ACHIEVEMENTS + REVERSE_HANGMAN_ACHIEVEMENTS
        else:
            return {}

        unlocked = {}
        for player_id in candidates:
            check = AchievementCheck(
                player_id=player_id,
                event=event,
                state=state,
                tracker=self.get_tracker(player_id),
                winners=event.data.get("winners", []),
            )
            found = evaluate_achievements(achievements, check)
            if found:
                unlocked[player_id] = found
        return unlocked


# ====== Manager ======

ROUND_DELAYS = {"slow": 5.0, "normal": 2.0, "fast": 0.5}


@dataclass
class ReverseHangmanConfig(GameConfig):
    max_rounds: int = 5
    max_attempts: int = 7
    difficulty: str = "medium"  # a difficulty or "mixed"
    animation_delay: float = 2.0


class ReverseHangmanGameManager(BaseGameManager):
    """Rounds are started explicitly with start_new_round(); the loop then runs them to the end."""

    starts_loop_on_start = False

    def __init__(self, engine: ReverseHangmanGameEngine, config: ReverseHangmanConfig, context, scoring, agent_factory=None):
        super().__init__(engine, config, context, scoring, agent_factory)
        self.round_delay = ROUND_DELAYS.get(config.speed, 2.0)
        self.guess_history: list[dict] = []
        context.event_bus.on("guess:made", self._record_guess)

    def _record_guess(self, event: GameEvent):
        attempt = event.data["attempt"]
        self.guess_history.append({
            "round_number": self.engine.state.round_number,
            "player_id": event.player_id,
            "guess": attempt.guess,
            "match_percentage": attempt.match_percentage,
            "match_type": attempt.match_type,
            "timestamp": attempt.timestamp,
        })

    def get_guess_history(self) -> list[dict]:
        return list(self.guess_history)

    def _pick_difficulty(self, difficulty: str | None) -> str:
        difficulty = difficulty or self.config.difficulty
        if difficulty == "mixed":
            return self.context.rng.choice(DIFFICULTIES)
        return difficulty

    async def start_new_round(self, difficulty: str | None = None):
        if self.state is not ManagerState.PLAYING:
            raise IllegalStateError(f"Cannot start a round while the game is {self.state.value}")
        if self.engine.state.round_number >= self.engine.state.max_rounds:
            await self.end_game()
            return
        self.engine.start_new_round(self._pick_difficulty(difficulty))
        self.run_game_loop()

    async def process_game_tick(self):
        state = self.engine.state
        if state.phase == "waiting":
            self.engine.start_new_round(self._pick_difficulty(None))
        elif state.phase == "selecting":
            await self.context.clock.sleep(self.config.animation_delay)
            if self.state is ManagerState.PLAYING:
                self.engine.begin_guessing()
        elif state.phase == "round-complete":
            self.emit("round:complete", {
                "round_number": state.round_number,
                "result": state.round_results[-1] if state.round_results else None,
                "revealed_prompt": self.engine.get_revealed_prompt(),
            })
            await self.context.clock.sleep(self.round_delay)
            if self.state is not ManagerState.PLAYING:
                return
            if state.round_number >= state.max_rounds:
                await self.end_game()
            else:
                self.engine.start_new_round(self._pick_difficulty(None))

    def get_fallback_action(self, player_id: str) -> Action | None:
        state = self.engine.state
        if state.phase != "playing" or state.current_turn != player_id:
            return None
        return Action(player_id, "skip")

    async def cleanup(self):
        self.context.event_bus.off("guess:made", self._record_guess)
        await super().cleanup()
