"""
Session statistics and strategy grading.

``SessionStats`` accumulates counters across rounds for one play session.
``StrategyGrader`` compares each player decision with the basic strategy
oracle, counting a decision state only once even if the same command is
submitted twice without the table changing in between.
"""

from dataclasses import asdict, dataclass
from typing import Optional, Tuple
import logging

from .game import Card, HandState
from .strategies import recommend

logger = logging.getLogger(__name__)


@dataclass
class SessionStats:
    hands_played: int = 0
    hands_won: int = 0
    hands_lost: int = 0
    hands_pushed: int = 0
    total_moves: int = 0
    strategy_decisions: int = 0
    strategy_correct: int = 0
    strategy_streak: int = 0

    def record_move(self) -> None:
        self.total_moves += 1

    def record_hands(self, won: int, lost: int, pushed: int) -> None:
        self.hands_played += won + lost + pushed
        self.hands_won += won
        self.hands_lost += lost
        self.hands_pushed += pushed

    def record_decision(self, correct: bool) -> None:
        self.strategy_decisions += 1
        if correct:
            self.strategy_correct += 1
            self.strategy_streak += 1
        else:
            self.strategy_streak = 0

    @property
    def win_rate(self) -> float:
        """Wins over decided hands; pushes are left out."""
        decided = self.hands_won + self.hands_lost
        return self.hands_won / decided if decided else 0.0

    @property
    def accuracy(self) -> float:
        if not self.strategy_decisions:
            return 0.0
        return self.strategy_correct / self.strategy_decisions


@dataclass(frozen=True)
class ActionFeedback:
    is_correct: bool
    player_action: str
    recommended_action: str
    reason: str


DecisionKey = Tuple[int, int, int, str, bool, bool, str]


class StrategyGrader:
    """Grades player decisions for the current round."""

    def __init__(self, stats: SessionStats) -> None:
        self.stats = stats
        self.round_decisions = 0
        self.round_correct = 0
        self.last_feedback: Optional[ActionFeedback] = None
        self._last_key: Optional[DecisionKey] = None

    def reset_round(self) -> None:
        self.round_decisions = 0
        self.round_correct = 0
        self.last_feedback = None
        self._last_key = None

    @property
    def round_accuracy_pct(self) -> int:
        if not self.round_decisions:
            return 0
        return round(self.round_correct * 100 / self.round_decisions)

    def grade(
        self,
        hand_index: int,
        hand: HandState,
        dealer_up: Card,
        can_surrender: bool,
        action: str,
        can_double: Optional[bool] = None,
    ) -> Optional[ActionFeedback]:
        """
        Grade ``action`` taken on ``hand``.  Returns None when the same
        decision state was already graded.
        """
        if can_double is None:
            can_double = hand.can_double
        key = (hand_index, len(hand.cards), hand.value, dealer_up.rank, can_double, can_surrender, action)
        if key == self._last_key:
            return None
        self._last_key = key

        rec = recommend(hand, dealer_up, can_surrender, can_double)
        correct = action == rec.action
        self.stats.record_decision(correct)
        self.round_decisions += 1
        if correct:
            self.round_correct += 1
        self.last_feedback = ActionFeedback(correct, action, rec.action, rec.reason)
        logger.debug("Graded %s vs %s on %d (dealer %s): %s", action, rec.action, hand.value, dealer_up.rank, correct)
        return self.last_feedback


@dataclass
class StatsRecord:
    """Cumulative statistics as persisted by the stats repository."""

    bankroll: int
    hands_played: int = 0
    hands_won: int = 0
    hands_lost: int = 0
    hands_pushed: int = 0
    total_moves: int = 0
    strategy_decisions: int = 0
    strategy_correct: int = 0
    strategy_streak: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def cumulative_record(initial: StatsRecord, stats: SessionStats, bankroll: int) -> StatsRecord:
    """
    Add this session's counters to the totals persisted before it started.
    The streak is the session's running streak, which was seeded from the
    persisted one.
    """
    return StatsRecord(
        bankroll=bankroll,
        hands_played=initial.hands_played + stats.hands_played,
        hands_won=initial.hands_won + stats.hands_won,
        hands_lost=initial.hands_lost + stats.hands_lost,
        hands_pushed=initial.hands_pushed + stats.hands_pushed,
        total_moves=initial.total_moves + stats.total_moves,
        strategy_decisions=initial.strategy_decisions + stats.strategy_decisions,
        strategy_correct=initial.strategy_correct + stats.strategy_correct,
        strategy_streak=stats.strategy_streak,
    )
