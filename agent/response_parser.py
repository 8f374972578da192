"""
Turning raw model text into an executable action.
"""
import json
import re

from games.base import Action
from games.errors import ResponseParseError

FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

# keys of a flat response that describe the decision rather than the action
DECISION_KEYS = {"action", "type", "confidence", "reasoning", "player_id", "playerId"}


def _load_object(text: str) -> dict | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def parse_ai_response(text: str) -> dict:
    """
    Extract the decision object from a model response.

    Tries the whole text as JSON, then a ``` fenced block, then the widest
    {...} span, so JSON wrapped in prose still parses.
    """
    cleaned = (text or "").strip()
    if cleaned.startswith("{"):
        parsed = _load_object(cleaned)
        if parsed is not None:
            return parsed

    fence = FENCE_RE.search(cleaned)
    if fence:
        parsed = _load_object(fence.group(1).strip())
        if parsed is not None:
            return parsed

    match = OBJECT_RE.search(cleaned)
    if match:
        parsed = _load_object(match.group(0))
        if parsed is not None:
            return parsed

    raise ResponseParseError("No JSON object found in model response", {"response": cleaned[:200]})


def _same_value(a, b) -> bool:
    return str(a).strip().lower() == str(b).strip().lower()


def _split_action(response: dict) -> tuple[str | None, dict]:
    raw = response.get("action")
    if isinstance(raw, dict):
        fields = {k: v for k, v in raw.items() if k not in DECISION_KEYS}
        return raw.get("type"), fields
    if isinstance(raw, str):
        fields = {k: v for k, v in response.items() if k not in DECISION_KEYS}
        return raw, fields
    return None, {}


def match_action(response: dict, valid_actions: list[Action]) -> Action | None:
    """
    Map a parsed response onto one of the valid action templates.

    The action type must match exactly. Payload fields whose value tells the
    templates apart (a Connect-4 column) must match too. Any other template
    field (a guess, a bet amount) is filled in from the response.
    """
    action_type, fields = _split_action(response)
    if not action_type:
        return None

    candidates = [a for a in valid_actions if a.type == str(action_type).strip().lower()]
    if not candidates:
        return None

    keys = {k for c in candidates for k in c.payload}
    discriminating = {k for k in keys if len({repr(c.payload.get(k)) for c in candidates}) > 1}

    for key in discriminating:
        if key not in fields:
            return None
        candidates = [c for c in candidates if _same_value(c.payload.get(key), fields[key])]
    if not candidates:
        return None

    chosen = candidates[0]
    copied = {k: v for k, v in fields.items() if k in chosen.payload and k not in discriminating}
    action = chosen.with_payload(**copied) if copied else chosen
    # a template field left open (the guess text) must be filled by the response
    for key, value in chosen.payload.items():
        if value is None and _is_blank(action.payload.get(key)):
            return None
    return action


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
