"""
Prompt templates for AI players. Templates are str.format strings; any
placeholder without a value renders as "unknown".
"""
import json
from dataclasses import dataclass, field


class _Defaults(dict):
    def __missing__(self, key):
        return "unknown"


def to_json(value) -> str:
    return json.dumps(value, indent=2, default=str)


@dataclass(frozen=True)
class PromptTemplate:
    system: str
    user: str
    examples: list[dict] = field(default_factory=list)
    response_format: str = "json"

    def render_system(self, **values) -> str:
        return self.system.format_map(_Defaults(values))

    def render_user(self, **values) -> str:
        text = self.user.format_map(_Defaults(values))
        if self.examples:
            shown = "\n\n".join(
                f"Example {i + 1}:\nInput: {to_json(ex['input'])}\nOutput: {to_json(ex['output'])}"
                for i, ex in enumerate(self.examples)
            )
            text += f"\n\nEXAMPLES:\n{shown}"
        return text


# Personality styles, picked by the trait that dominates
PERSONALITY_STYLES = {
    "aggressive": "You play AGGRESSIVELY. You take the initiative, force your opponents to react and accept risk for tempo.",
    "conservative": "You play CONSERVATIVELY. You avoid unnecessary risk, block threats first and wait for a clear opening.",
    "balanced": "You play a BALANCED game. You weigh risk against reward and mix pressure with solid defence.",
    "adaptive": "You play ADAPTIVELY. You read what your opponents have done so far and adjust to exploit it.",
}


DEFAULT_SYSTEM = """You are {player_name}, an AI player in a turn-based game, using the {model_name} model.

YOUR PERSONALITY: {personality}

RULES:
- Only choose one of the valid actions you are given
- Stay in character with your personality
- Always respond with valid JSON only - no markdown, no extra text."""

DEFAULT_USER = """GAME STATE:
{game_data}

VALID ACTIONS:
{valid_actions}

Pick the best action for player {player_id}.

Respond in this exact JSON format:
{{
    "action": {{"type": "<action type>", ...action fields}},
    "confidence": 0.0,
    "reasoning": "Your analysis (1-3 sentences)"
}}"""

DEFAULT_TEMPLATE = PromptTemplate(system=DEFAULT_SYSTEM, user=DEFAULT_USER)


CONNECT4_SYSTEM = """You are {player_name}, an expert Connect-4 player using the {model_name} model.

YOUR PERSONALITY: {personality}

The board has 8 columns (0-7) and 8 rows. Pieces drop to the lowest empty row of a column.
Four of your pieces in a row (horizontal, vertical or diagonal) wins.

CRITICAL RULES:
- If you can win this move, WIN
- If your opponent can win next move, BLOCK that column
- The center columns (3 and 4) are the strongest
- Never choose "timeout" unless no column is playable
- Always respond with valid JSON only - no markdown, no extra text."""

CONNECT4_USER = """BOARD (row 0 is the top, "." empty, "X" you, "O" opponent):
{board}

GAME STATE:
{game_data}

Winning columns for you right now: {winning_moves}
Columns you must block: {blocking_moves}

VALID ACTIONS:
{valid_actions}

Respond in this EXACT JSON format:
{{
    "action": {{"type": "place", "column": 3}},
    "confidence": 0.0,
    "reasoning": "Your analysis (1-3 sentences, be specific about threats)"
}}"""

CONNECT4_TEMPLATE = PromptTemplate(system=CONNECT4_SYSTEM, user=CONNECT4_USER)


REVERSE_HANGMAN_SYSTEM = """You are {player_name}, an AI player in a Reverse Hangman game using the {model_name} model.

YOUR PERSONALITY: {personality}

In Reverse Hangman you are shown the OUTPUT of an AI response and must guess the PROMPT that generated it.

Key strategies:
- Analyze the output's structure, style and content
- Look for clues about the task type (creative writing, list, explanation, etc.)
- Previous failed guesses show what the prompt is NOT
- Higher match percentages mean you are on the right track
- The position template shows which prompt words you already have ("_" is a missing word)

Always respond with valid JSON only - no markdown, no extra text."""

REVERSE_HANGMAN_USER = """Output you need to reverse-engineer:
"{current_output}"

Previous guesses and their match results:
{previous_guesses}

Attempts remaining: {attempts_remaining} out of {max_attempts}
Category hint: {category}
Difficulty: {difficulty}

VALID ACTIONS:
{valid_actions}

Respond in this EXACT JSON format:
{{
    "action": {{"type": "guess", "guess": "your guess of the original prompt"}},
    "confidence": 0.0,
    "reasoning": "brief explanation of your deduction"
}}"""

REVERSE_HANGMAN_TEMPLATE = PromptTemplate(
    system=REVERSE_HANGMAN_SYSTEM,
    user=REVERSE_HANGMAN_USER,
    examples=[
        {
            "input": {
                "current_output": "1. Improves cardiovascular health\n2. Boosts mental well-being\n3. Increases energy levels",
                "previous_guesses": [],
                "category": "health",
            },
            "output": {
                "action": {"type": "guess", "guess": "List three benefits of regular exercise"},
                "confidence": 0.85,
                "reasoning": "A numbered list of three health benefits of exercise.",
            },
        },
        {
            "input": {
                "current_output": "Cherry blossoms bloom\nPetals dance on gentle breeze\nSpring's beauty unfolds",
                "previous_guesses": [{"guess": "Write a poem about flowers", "match_type": "partial", "match_percentage": 60}],
                "category": "poetry",
            },
            "output": {
                "action": {"type": "guess", "guess": "Write a haiku about spring flowers"},
                "confidence": 0.9,
                "reasoning": "5-7-5 syllables means a haiku; the previous guess missed the form and the season.",
            },
        },
    ],
)
