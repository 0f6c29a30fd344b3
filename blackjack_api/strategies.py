"""
Basic strategy oracle for the Blackjack trainer.

The chart encoded here is standard multi-deck basic strategy for a dealer
who hits soft 17, with double after split and late surrender.  Every answer
carries a short reason used for coaching in practice and testing modes.

Lookup order: pairs first, then soft totals (an Ace counted as 11 with a
total of 13 to 21), then hard totals.
"""

from dataclasses import dataclass
from typing import Optional

from .game import Card, HandState

HIT = "hit"
STAND = "stand"
DOUBLE = "double"
SPLIT = "split"
SURRENDER = "surrender"

ACTIONS = (HIT, STAND, DOUBLE, SPLIT, SURRENDER)


@dataclass(frozen=True)
class Recommendation:
    action: str
    reason: str


def normalize_upcard(value: int) -> int:
    """Treat an Ace up-card as 11 whether it arrives as 1 or 11."""
    return 11 if value == 1 else value


def _pair_strategy(pair_value: int, up: int, can_double: bool, das: bool) -> Optional[Recommendation]:
    if pair_value == 11:
        return Recommendation(SPLIT, "Always split Aces to start two strong hands")
    if pair_value == 10:
        return Recommendation(STAND, "Never split 10s; 20 is already strong")
    if pair_value == 9:
        if 2 <= up <= 6 or up in (8, 9):
            return Recommendation(SPLIT, "Split 9s vs 2-9 except 7 for higher EV")
        return Recommendation(STAND, "Stand on 18 vs 7, 10 or Ace")
    if pair_value == 8:
        return Recommendation(SPLIT, "Always split 8s; hard 16 is a weak hand")
    if pair_value == 7:
        if 2 <= up <= 7:
            return Recommendation(SPLIT, "Split 7s vs 2-7")
        return Recommendation(HIT, "Hit 14 vs 8-A")
    if pair_value == 6:
        if 2 <= up <= 6:
            return Recommendation(SPLIT, "Split 6s vs 2-6")
        return Recommendation(HIT, "Hit 12 vs 7-A")
    if pair_value == 5:
        # 5,5 plays as hard 10
        if can_double and 2 <= up <= 9:
            return Recommendation(DOUBLE, "Double 10 vs 2-9; never split 5s")
        return Recommendation(HIT, "Hit 10 vs 10/A or when doubling is unavailable")
    if pair_value == 4:
        if das and up in (5, 6):
            return Recommendation(SPLIT, "Split 4s vs 5-6 with double after split")
        return Recommendation(HIT, "Hit 8 otherwise")
    if pair_value in (2, 3):
        low = 2 if das else 3
        if low <= up <= 7:
            return Recommendation(SPLIT, f"Split 2s/3s vs {low}-7")
        return Recommendation(HIT, "Hit small pairs vs strong dealer cards")
    return None


def _soft_strategy(total: int, up: int, can_double: bool) -> Recommendation:
    if total >= 20:
        return Recommendation(STAND, "Soft 20-21 are premium totals")
    if total == 19:
        if can_double and up == 6:
            return Recommendation(DOUBLE, "Double soft 19 vs 6 when the dealer hits soft 17")
        return Recommendation(STAND, "Stand on soft 19")
    if total == 18:
        if can_double and 2 <= up <= 6:
            return Recommendation(DOUBLE, "Double soft 18 vs 2-6")
        if up in (7, 8):
            return Recommendation(STAND, "Stand on soft 18 vs 7-8")
        return Recommendation(HIT, "Hit soft 18 vs 9-A, or vs 2-6 when doubling is unavailable")
    if total == 17:
        if can_double and 3 <= up <= 6:
            return Recommendation(DOUBLE, "Double soft 17 vs 3-6")
        return Recommendation(HIT, "Hit soft 17 otherwise")
    if total in (15, 16):
        if can_double and 4 <= up <= 6:
            return Recommendation(DOUBLE, "Double soft 15-16 vs 4-6")
        return Recommendation(HIT, "Hit soft 15-16 otherwise")
    if can_double and up in (5, 6):
        return Recommendation(DOUBLE, "Double soft 13-14 vs 5-6")
    return Recommendation(HIT, "Hit soft 13-14 otherwise")


def _hard_strategy(total: int, up: int, can_double: bool, can_surrender: bool) -> Recommendation:
    if total >= 17:
        return Recommendation(STAND, "Stand on hard 17+ due to bust risk")
    if total == 16:
        if can_surrender and up in (9, 10, 11):
            return Recommendation(SURRENDER, "Surrender 16 vs 9, 10 or Ace")
        if up >= 7:
            return Recommendation(HIT, "Hit 16 vs 7-A")
        return Recommendation(STAND, "Stand on 16 vs 2-6")
    if total == 15:
        if can_surrender and up == 10:
            return Recommendation(SURRENDER, "Surrender 15 vs 10")
        if up >= 7:
            return Recommendation(HIT, "Hit 15 vs 7-A")
        return Recommendation(STAND, "Stand on 15 vs 2-6")
    if total in (13, 14):
        if up >= 7:
            return Recommendation(HIT, "Hit 13-14 vs 7-A")
        return Recommendation(STAND, "Stand on 13-14 vs 2-6")
    if total == 12:
        if 4 <= up <= 6:
            return Recommendation(STAND, "Stand on 12 vs 4-6")
        return Recommendation(HIT, "Hit 12 vs 2-3 and 7-A")
    if total == 11:
        if can_double:
            return Recommendation(DOUBLE, "Double 11 vs any up-card")
        return Recommendation(HIT, "Hit 11 when doubling is unavailable")
    if total == 10:
        if can_double and up <= 9:
            return Recommendation(DOUBLE, "Double 10 vs 2-9")
        return Recommendation(HIT, "Hit 10 vs 10/A or when doubling is unavailable")
    if total == 9:
        if can_double and 3 <= up <= 6:
            return Recommendation(DOUBLE, "Double 9 vs 3-6")
        return Recommendation(HIT, "Hit 9 otherwise")
    return Recommendation(HIT, "Totals of 8 or less cannot bust; improve the hand")


def basic_strategy(
    player_total: int,
    dealer_up: int,
    is_soft: bool,
    is_pair: bool,
    can_double: bool,
    can_surrender: bool,
    das: bool = True,
) -> Recommendation:
    """
    Return the basic strategy play for a hand.

    :param player_total: Best total of the hand after Ace adjustment.
    :param dealer_up: Value of the dealer's up-card (Ace as 1 or 11).
    :param is_soft: The hand counts an Ace as 11.
    :param is_pair: The hand is two cards of the same rank that may be split.
    :param can_double: Doubling is available on this hand.
    :param can_surrender: Late surrender is available.
    :param das: Double after split is allowed.
    """
    up = normalize_upcard(dealer_up)

    if is_pair:
        # A,A is the only pair that totals soft 12
        pair_value = 11 if (is_soft and player_total == 12) else player_total // 2
        rec = _pair_strategy(pair_value, up, can_double, das)
        if rec is not None:
            return rec

    if is_soft and 13 <= player_total <= 21:
        return _soft_strategy(player_total, up, can_double)

    return _hard_strategy(player_total, up, can_double, can_surrender)


def recommend(hand: HandState, dealer_up: Card, can_surrender: bool, can_double: Optional[bool] = None) -> Recommendation:
    """Basic strategy for a live hand against the dealer's up-card."""
    if can_double is None:
        can_double = hand.can_double
    return basic_strategy(
        hand.value,
        dealer_up.value,
        hand.is_soft,
        hand.can_split and hand.is_pair,
        can_double,
        can_surrender,
    )
