"""Planner action vocabulary and parsing."""

from strata.actions.parser import ParseResult, decode_actions, extract_json_array, parse_response
from strata.actions.schema import Action, ActionKind

__all__ = [
    "Action",
    "ActionKind",
    "ParseResult",
    "decode_actions",
    "extract_json_array",
    "parse_response",
]
