"""Extraction d'une décision depuis la réponse libre du modèle.

Two stages: a tolerant JSON scan preferring the last object in the text,
then a keyword heuristic gated by the snapshot's capabilities.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from ..state.model import Action, GameSnapshot, PLAYABLE_ACTIONS


_FENCE_PATTERN = re.compile(r"```[A-Za-z0-9_-]*")
_OBJECT_PATTERN = re.compile(r"\{.*?\}", flags=re.S)

_VALID = {a.value for a in PLAYABLE_ACTIONS}


@dataclass(frozen=True)
class Decision:
    action: Action
    reason: Any = None


def _strip_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text).strip()


def parse_decision(text: Optional[str]) -> Optional[Decision]:
    """Return the rightmost valid ``{"action", "reason"}`` object, or None.

    Malformed fragments are skipped rather than aborting the scan.
    """
    cleaned = _strip_fences(text or "")
    candidates = _OBJECT_PATTERN.findall(cleaned)
    if not candidates:
        return None
    for candidate in reversed(candidates):
        try:
            obj = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(obj, dict):
            continue
        action = str(obj.get("action") or "").lower()
        if action in _VALID:
            return Decision(action=Action(action), reason=obj.get("reason"))
    return None


def heuristic_action(text: Optional[str], can_double: bool, can_split: bool) -> Action:
    """Keyword fallback: double > split > stand > hit, illegal actions skipped."""
    m = (text or "").lower()
    if can_double and "double" in m:
        return Action.DOUBLE
    if can_split and "split" in m:
        return Action.SPLIT
    if "stand" in m:
        return Action.STAND
    if "hit" in m:
        return Action.HIT
    return Action.UNKNOWN


def resolve_action(text: Optional[str], snapshot: GameSnapshot) -> Tuple[Action, Any]:
    """Parse the reply, falling back to the heuristic. Returns (action, reason)."""
    decision = parse_decision(text)
    if decision is not None:
        return decision.action, decision.reason
    return heuristic_action(text, snapshot.can_double, snapshot.can_split), None
