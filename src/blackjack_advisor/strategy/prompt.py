"""Prompt construction from a game snapshot."""

from typing import Dict, List

from ..state.model import Action, GameSnapshot


SYSTEM_PROMPT = (
    "You are a blackjack expert. You may add one or two short sentences of "
    "commentary, then finish with a single JSON object: "
    '{"action": "<one of hit|stand|double|split>", "reason": "<string>"}. '
    "Choose only among the allowed actions."
)

USER_PROMPT = """Context:
Player hand: {cards} (total {total})
Dealer upcard: {dealer}
Allowed actions now: {allowed}
Bet: {bet}, Bank: {bank}

Task: Recommend the best blackjack action based on basic strategy.
End your reply with a single JSON object:
{{"action":"hit|stand|double|split","reason":"Brief explanation"}}
"""


def _amount(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def allowed_actions(snapshot: GameSnapshot) -> List[Action]:
    """Actions legal for the active hand, hit and stand always first."""
    actions = [Action.HIT, Action.STAND]
    if snapshot.can_double:
        actions.append(Action.DOUBLE)
    if snapshot.can_split:
        actions.append(Action.SPLIT)
    return actions


def build_user_prompt(snapshot: GameSnapshot) -> str:
    return USER_PROMPT.format(
        cards=" ".join(str(c) for c in snapshot.cards),
        total=snapshot.total,
        dealer=str(snapshot.dealer_up_card) if snapshot.dealer_up_card is not None else "null",
        allowed=", ".join(a.value for a in allowed_actions(snapshot)),
        bet=_amount(snapshot.bet),
        bank=_amount(snapshot.bank),
    )


def build_messages(snapshot: GameSnapshot) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(snapshot)},
    ]
