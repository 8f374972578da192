"""
Error hierarchy for the game engine, scheduler and AI agents.
Every error carries a machine-readable code and whether the caller can recover.
"""


class GameError(Exception):
    """Base exception for all game engine errors."""

    code = "GAME_ERROR"
    recoverable = True

    def __init__(self, message: str, context: dict | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class InvalidConfigurationError(GameError):
    """Bad player count or game config at setup time."""

    code = "INVALID_CONFIGURATION"


class InvalidActionError(GameError):
    """An action failed validation. Game state is untouched."""

    code = "INVALID_ACTION"

    def __init__(self, errors: list[str], warnings: list[str] | None = None, context: dict | None = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__(f"Invalid action: {', '.join(self.errors)}", context)


class IllegalStateError(GameError):
    """Operation attempted in a state that forbids it (double init, action after game over)."""

    code = "ILLEGAL_STATE"


class ActionExecutionError(GameError):
    """A nominally valid action blew up while being applied. State was rolled back."""

    code = "ACTION_EXECUTION_FAILED"


class AITurnError(GameError):
    """An AI player failed to produce an executable decision."""

    code = "AI_TURN_FAILED"

    def __init__(self, player_id: str, message: str, context: dict | None = None):
        self.player_id = player_id
        super().__init__(message, {"player_id": player_id, **(context or {})})


class PromptGenerationUnavailableError(GameError):
    """No content source is available to start a round."""

    code = "PROMPT_GENERATION_UNAVAILABLE"
    recoverable = False


class DecisionRequestError(GameError):
    """The decision service could not produce a response."""

    code = "DECISION_REQUEST_FAILED"

    def __init__(self, message: str, network: bool = False, context: dict | None = None):
        self.network = network
        super().__init__(message, {"network": network, **(context or {})})


class ResponseParseError(GameError):
    """A model response held no usable JSON object."""

    code = "RESPONSE_PARSE_FAILED"
