"""
Turns raw planner text into an ordered list of ``Action`` objects.

Extraction tries, in order:
  1. a fenced block (```json or bare ```) whose content is a ``[...]`` array
  2. any fenced block whose stripped content starts with ``[`` and ends with ``]``
  3. the first balanced ``[...]`` found by bracket-depth scanning

Decoding is all-or-nothing: one malformed element fails the whole parse.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from ..exceptions import ActionParseError
from .schema import PAYLOAD_MODELS, Action, ActionKind

logger = logging.getLogger(__name__)

_JSON_ARRAY_FENCE_RE = re.compile(r"```(?:json)?\s*(\[.*?\])\s*```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_JSON_OBJECT_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)

_KNOWN_TAGS = {kind.value: kind for kind in ActionKind}


@dataclass
class ParseResult:
    actions: list[Action] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _scan_balanced(text: str, open_char: str, close_char: str) -> str | None:
    start = text.find(open_char)
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def extract_json_array(text: str) -> str | None:
    """Return the JSON array text embedded in a planner response, or None."""
    match = _JSON_ARRAY_FENCE_RE.search(text)
    if match:
        return match.group(1).strip()

    for fenced in _ANY_FENCE_RE.finditer(text):
        content = fenced.group(1).strip()
        if content.startswith("[") and content.endswith("]"):
            return content

    return _scan_balanced(text, "[", "]")


def _decode_element(index: int, element: Any) -> Action:
    if not isinstance(element, dict):
        raise ActionParseError(f"action #{index} is not an object")
    if len(element) != 1:
        keys = ", ".join(sorted(element)) or "none"
        raise ActionParseError(f"action #{index} must have exactly one tag (got: {keys})")

    tag, payload = next(iter(element.items()))
    kind = _KNOWN_TAGS.get(tag)
    if kind is None:
        raise ActionParseError(f"action #{index} has unknown tag {tag!r}")
    if not isinstance(payload, dict):
        raise ActionParseError(f"action #{index} ({tag}) payload must be an object")

    try:
        model = PAYLOAD_MODELS[kind].model_validate(payload)
    except ValidationError as e:
        raise ActionParseError(f"action #{index} ({tag}) is invalid: {e}") from e
    return Action(kind=kind, payload=model)


def decode_actions(json_text: str) -> list[Action]:
    """
    Decode a JSON array into actions.

    Raises:
        ActionParseError: on invalid JSON, a non-array root, or any bad element.
    """
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise ActionParseError(f"invalid JSON: {e}") from e
    if not isinstance(data, list):
        raise ActionParseError("expected a JSON array of actions")
    return [_decode_element(i, element) for i, element in enumerate(data)]


def parse_response(raw: str) -> ParseResult:
    """Parse a planner response. Never raises; failures are reported in ``error``."""
    array_text = extract_json_array(raw or "")
    if array_text is None:
        logger.warning("No action array found in planner response (%d chars)", len(raw or ""))
        return ParseResult(error="no action array found")
    try:
        actions = decode_actions(array_text)
    except ActionParseError as e:
        logger.warning("Failed to parse planner actions: %s", e)
        return ParseResult(error=str(e))
    logger.debug("Parsed %d action(s): %s", len(actions), [a.tag for a in actions])
    return ParseResult(actions=actions)


@dataclass(frozen=True)
class MailRewrite:
    subject: str
    body: str


def parse_rewrite(text: str) -> MailRewrite | None:
    """
    Extract a ``{"subject": ..., "body": ...}`` object from a rewrite response.
    Returns None when no usable object is present.
    """
    if not text:
        return None
    match = _JSON_OBJECT_FENCE_RE.search(text)
    candidate = match.group(1) if match else _scan_balanced(text, "{", "}")
    if candidate is None:
        logger.warning("Mail rewrite response had no JSON object")
        return None
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning("Mail rewrite JSON invalid: %s", e)
        return None
    if not isinstance(data, dict):
        return None

    subject = data.get("subject")
    body = data.get("body")
    if not isinstance(subject, str) or not isinstance(body, str):
        logger.warning("Mail rewrite missing subject/body (keys: %s)", sorted(data))
        return None
    extra = set(data) - {"subject", "body"}
    if extra:
        logger.debug("Ignoring extra mail rewrite keys: %s", sorted(extra))
    return MailRewrite(subject=subject.strip(), body=body.strip())
