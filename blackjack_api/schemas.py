"""
Pydantic data models for API requests and responses.

These classes mirror the dataclasses used by the table and make sure the
state sent to the browser is validated and serialised by FastAPI.  The
dealer's hole card is never included while the player is still acting.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .game import SideBetType
from .table import GameMode


class CardOut(BaseModel):
    rank: str
    suit: str
    value: int
    label: str


class HandOut(BaseModel):
    cards: List[CardOut]
    value: int = Field(..., description="Best total, recomputed from the cards.")
    is_soft: bool
    bet: int = Field(..., description="Bet riding on this hand (includes doubling).")
    original_bet: Optional[int] = Field(None, description="Bet before doubling.")
    is_doubled: bool
    is_complete: bool
    can_double: bool
    can_split: bool
    is_blackjack: bool
    is_split: bool
    surrendered: bool
    result: Optional[str] = Field(None, description="win, loss or push once the round is settled.")
    profit: Optional[int] = None


class DealerOut(BaseModel):
    cards: List[CardOut] = Field(..., description="Face-up dealer cards.")
    hidden_cards: int = Field(0, description="Cards dealt face down.")
    value: int = Field(..., description="Total of the face-up cards.")


class SideBetOut(BaseModel):
    type: SideBetType
    amount: int
    result: Optional[str] = None
    payout: int = 0


class SessionStatsOut(BaseModel):
    hands_played: int
    hands_won: int
    hands_lost: int
    hands_pushed: int
    total_moves: int
    strategy_decisions: int
    strategy_correct: int
    strategy_streak: int
    win_rate: float = Field(..., description="Wins over decided hands; pushes excluded.")
    accuracy: float = Field(..., description="Correct strategy decisions over all graded decisions.")


class RecommendationOut(BaseModel):
    action: str
    reason: str


class FeedbackOut(BaseModel):
    is_correct: bool
    player_action: str
    recommended_action: str
    reason: str


class TableState(BaseModel):
    """Read-only snapshot of the table returned by every command."""

    accepted: bool = Field(True, description="False when the command was not valid in the current state.")
    mode: GameMode
    title: str
    phase: str
    message: str
    bankroll: int
    available_funds: int
    pending_bets: int = Field(..., description="Total at risk this round, main and side bets.")
    main_bet: int
    current_hand_index: int
    player_hands: List[HandOut]
    dealer: DealerOut
    side_bets: List[SideBetOut]
    can_surrender: bool
    available_actions: List[str]
    hint: Optional[RecommendationOut] = None
    feedback: Optional[FeedbackOut] = None
    profit: Optional[int] = Field(None, description="Net result of the round once settled.")
    game_over: bool
    cards_remaining: int
    persisted: bool = Field(..., description="Whether stats are saved for this session.")
    stats: SessionStatsOut


class SessionRequest(BaseModel):
    mode: GameMode = Field(GameMode.PRACTICE, description="real, practice or testing.")


class BetRequest(BaseModel):
    amount: int = Field(..., description="Main bet in whole dollars.")


class SideBetRequest(BaseModel):
    type: SideBetType = Field(SideBetType.PERFECT_PAIRS, description="Side bet to place.")
    amount: int = Field(..., description="Stake in whole dollars.")


class StrategyRequest(BaseModel):
    """Hand description for a stateless basic strategy lookup."""

    player_total: int = Field(..., ge=2, le=21)
    dealer_up: int = Field(..., ge=1, le=11, description="Dealer up-card value; Ace as 1 or 11.")
    is_soft: bool = False
    is_pair: bool = False
    can_double: bool = True
    can_surrender: bool = False
    das: bool = Field(True, description="Double after split allowed.")


class ModeOut(BaseModel):
    mode: GameMode
    title: str
    funds_limited: bool
    allow_side_bets: bool
    show_hints: bool
    grade_decisions: bool
    apply_bankroll: bool
    persist_stats: bool
    fixed_bet: Optional[int] = None


class StatsRecordOut(BaseModel):
    bankroll: int
    hands_played: int
    hands_won: int
    hands_lost: int
    hands_pushed: int
    total_moves: int
    strategy_decisions: int
    strategy_correct: int
    strategy_streak: int

    model_config = ConfigDict(from_attributes=True)
