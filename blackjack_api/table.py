"""
Round state machine for a single-player Blackjack table.

A :class:`Table` owns the shoe, the live :class:`Round` and the session
statistics.  Commands (bet, hit, stand, ...) validate against the current
phase and hand, mutate the round, and queue any follow-up steps (advance to
the next hand, play the dealer, settle).  Follow-ups run in the order they
were queued; with ``auto_advance`` the table drains them before a command
returns, otherwise the caller drives them with :meth:`Table.step` so the
front-end can pace the dealer.

Invalid commands are rejected by returning ``False`` and leave the round
untouched.  Dealing from an empty shoe raises :class:`EmptyShoeError`.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Tuple, Union
import logging

from .game import (
    DEALER_THRESHOLD,
    DEFAULT_DECKS,
    HIT_THRESHOLD,
    MAX_HANDS,
    RESHUFFLE_THRESHOLD,
    SPLIT_THRESHOLD,
    SUPPORTED_SIDE_BETS,
    Card,
    DealerHand,
    HandOutcome,
    HandState,
    Shoe,
    SideBet,
    SideBetType,
    determine_hand_outcome,
    evaluate_side_bet,
    is_blackjack,
    is_pair,
    play_dealer,
)
from .session import ActionFeedback, SessionStats, StrategyGrader
from .strategies import DOUBLE, HIT, SPLIT, STAND, SURRENDER, Recommendation, recommend

logger = logging.getLogger(__name__)

UNLIMITED_FUNDS = 999_999


class GameMode(str, Enum):
    REAL = "real"
    PRACTICE = "practice"
    TESTING = "testing"


@dataclass(frozen=True)
class ModeConfig:
    title: str
    funds_limited: bool
    allow_side_bets: bool
    show_hints: bool
    grade_decisions: bool
    apply_bankroll: bool
    persist_stats: bool
    fixed_bet: Optional[int] = None


MODE_CONFIGS: Dict[GameMode, ModeConfig] = {
    GameMode.REAL: ModeConfig(
        title="Real Money Simulator",
        funds_limited=True,
        allow_side_bets=True,
        show_hints=False,
        grade_decisions=False,
        apply_bankroll=True,
        persist_stats=True,
    ),
    GameMode.PRACTICE: ModeConfig(
        title="Practice Mode",
        funds_limited=False,
        allow_side_bets=False,
        show_hints=True,
        grade_decisions=False,
        apply_bankroll=True,
        persist_stats=False,
    ),
    GameMode.TESTING: ModeConfig(
        title="Testing Mode",
        funds_limited=False,
        allow_side_bets=False,
        show_hints=False,
        grade_decisions=True,
        apply_bankroll=False,
        persist_stats=False,
        fixed_bet=10,
    ),
}


class Phase(str, Enum):
    BETTING = "betting"
    SIDE_BETS = "side_bets"
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass
class Settlement:
    outcomes: List[HandOutcome]
    main_profit: int
    side_profit: int

    @property
    def total_profit(self) -> int:
        return self.main_profit + self.side_profit

    def count(self, result: str) -> int:
        return sum(1 for o in self.outcomes if o.result == result)


@dataclass
class Round:
    player_hands: List[HandState] = field(default_factory=list)
    dealer: DealerHand = field(default_factory=DealerHand)
    current_hand_index: int = 0
    phase: Phase = Phase.BETTING
    main_bet: int = 0
    side_bets: List[SideBet] = field(default_factory=list)
    pending_bets: int = 0
    can_surrender: bool = False
    message: str = "Choose your bet amount to start"
    # dealt blackjack on either side, round ended at the deal
    natural: bool = False
    # set once the dealer has played or been skipped
    resolved: bool = False
    settlement: Optional[Settlement] = None

    @property
    def current_hand(self) -> Optional[HandState]:
        if 0 <= self.current_hand_index < len(self.player_hands):
            return self.player_hands[self.current_hand_index]
        return None


class Table:
    def __init__(
        self,
        mode: Union[GameMode, str],
        bankroll: int = 1000,
        shoe: Optional[Shoe] = None,
        stats: Optional[SessionStats] = None,
        num_decks: int = DEFAULT_DECKS,
        auto_advance: bool = True,
        on_settled: Optional[Callable[[Settlement], None]] = None,
    ) -> None:
        self.mode = GameMode(mode)
        self.config = MODE_CONFIGS[self.mode]
        self.bankroll = bankroll
        self.shoe = shoe if shoe is not None else Shoe(num_decks)
        self.stats = stats if stats is not None else SessionStats()
        self.grader = StrategyGrader(self.stats)
        self.auto_advance = auto_advance
        self.on_settled = on_settled
        self.round = Round()
        self.game_over = False
        self.closed = False
        self._pending: Deque[Tuple[str, Callable[[], None]]] = deque()

        if self.config.fixed_bet:
            self.place_bet(self.config.fixed_bet)

    def __repr__(self) -> str:
        return f"<Table(mode={self.mode.value}, phase={self.round.phase.value}, bankroll={self.bankroll})>"

    # ----- continuations -----
    def _schedule(self, name: str, step: Callable[[], None]) -> None:
        self._pending.append((name, step))

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def step(self) -> Optional[str]:
        """Run the oldest queued follow-up.  Returns its name, or None if idle."""
        if not self._pending:
            return None
        name, fn = self._pending.popleft()
        logger.debug("Running continuation %s", name)
        fn()
        return name

    def run_pending(self) -> None:
        while self._pending:
            self.step()

    def _after_command(self) -> None:
        if self.auto_advance:
            self.run_pending()

    def cancel(self) -> None:
        """Exit to menu: drop queued follow-ups and stop accepting commands."""
        dropped = len(self._pending)
        self._pending.clear()
        self.closed = True
        if dropped:
            logger.info("Table closed with %d pending continuation(s) discarded", dropped)

    # ----- funds -----
    def available_funds(self) -> int:
        if not self.config.funds_limited:
            return UNLIMITED_FUNDS
        return self.bankroll - self.round.pending_bets

    def _can_cover(self, amount: int) -> bool:
        return not self.config.funds_limited or amount <= self.available_funds()

    def _double_available(self, hand: HandState) -> bool:
        return hand.can_double and not hand.is_complete and self._can_cover(hand.bet)

    # ----- betting -----
    def place_bet(self, amount: int) -> bool:
        r = self.round
        if self.closed or self.game_over or r.phase != Phase.BETTING:
            return False
        if self.config.fixed_bet:
            amount = self.config.fixed_bet
        elif amount <= 0 or amount > self.available_funds():
            return False

        r.main_bet = amount
        r.pending_bets = amount
        if self.config.allow_side_bets:
            r.phase = Phase.SIDE_BETS
            r.message = "Place side bets or deal cards"
            return True

        self._deal()
        self._after_command()
        return True

    def place_side_bet(self, bet_type: Union[SideBetType, str], amount: int) -> bool:
        r = self.round
        if self.closed or not self.config.allow_side_bets or r.phase != Phase.SIDE_BETS:
            return False
        try:
            bet_type = SideBetType(bet_type)
        except ValueError:
            return False
        if bet_type not in SUPPORTED_SIDE_BETS or amount <= 0:
            return False

        previous = next((b for b in r.side_bets if b.type == bet_type), None)
        delta = amount - (previous.amount if previous else 0)
        if delta > self.available_funds():
            return False
        r.side_bets = [b for b in r.side_bets if b.type != bet_type] + [SideBet(bet_type, amount)]
        r.pending_bets += delta
        return True

    def remove_side_bet(self, bet_type: Union[SideBetType, str]) -> bool:
        r = self.round
        if self.closed or not self.config.allow_side_bets or r.phase != Phase.SIDE_BETS:
            return False
        removed = next((b for b in r.side_bets if b.type == bet_type), None)
        if removed is None:
            return False
        r.side_bets = [b for b in r.side_bets if b is not removed]
        r.pending_bets -= removed.amount
        return True

    def deal(self) -> bool:
        if self.closed or self.round.phase != Phase.SIDE_BETS:
            return False
        self._deal()
        self._after_command()
        return True

    def _deal(self) -> None:
        r = self.round
        self.shoe.ensure(RESHUFFLE_THRESHOLD)

        player: List[Card] = []
        dealer: List[Card] = []
        player.append(self.shoe.deal())
        dealer.append(self.shoe.deal())
        player.append(self.shoe.deal())
        dealer.append(self.shoe.deal())

        player_bj = is_blackjack(player)
        r.dealer = DealerHand(dealer)
        natural = player_bj or r.dealer.is_blackjack

        r.player_hands = [
            HandState(
                cards=player,
                bet=r.main_bet,
                is_complete=natural,
                can_double=not natural,
                can_split=not natural and is_pair(player),
                is_blackjack=player_bj,
            )
        ]
        if self.config.allow_side_bets:
            r.side_bets = [evaluate_side_bet(b, player, dealer[0]) for b in r.side_bets]

        if natural:
            r.phase = Phase.FINISHED
            r.current_hand_index = len(r.player_hands)
            r.can_surrender = False
            r.natural = True
            r.resolved = True
            r.message = "Player Blackjack!" if player_bj else "Dealer Blackjack!"
            self._schedule("settle", self.settle)
        else:
            r.phase = Phase.PLAYING
            r.current_hand_index = 0
            r.can_surrender = True
            r.message = "Choose your action"

    # ----- player actions -----
    def _playable_hand(self) -> Optional[HandState]:
        r = self.round
        if self.closed or r.phase != Phase.PLAYING:
            return None
        hand = r.current_hand
        if hand is None or hand.is_complete:
            return None
        return hand

    def _grade(self, hand: HandState, action: str) -> None:
        if not self.config.grade_decisions:
            return
        r = self.round
        self.grader.grade(
            r.current_hand_index,
            hand,
            r.dealer.up_card,
            r.can_surrender,
            action,
            can_double=self._double_available(hand),
        )

    def hit(self) -> bool:
        hand = self._playable_hand()
        if hand is None:
            return False
        self._grade(hand, HIT)

        self.shoe.ensure(HIT_THRESHOLD)
        hand.cards.append(self.shoe.deal())
        hand.can_double = False
        hand.can_split = False
        if hand.value >= 21:
            hand.is_complete = True
        self.round.can_surrender = False
        self.stats.record_move()

        if hand.is_complete:
            self._schedule("advance", self._advance_hand)
        self._after_command()
        return True

    def stand(self) -> bool:
        hand = self._playable_hand()
        if hand is None:
            return False
        self._grade(hand, STAND)

        hand.is_complete = True
        self.round.can_surrender = False
        self.stats.record_move()
        self._schedule("advance", self._advance_hand)
        self._after_command()
        return True

    def double_down(self) -> bool:
        hand = self._playable_hand()
        if hand is None or not self._double_available(hand):
            return False
        self._grade(hand, DOUBLE)

        self.shoe.ensure(HIT_THRESHOLD)
        hand.original_bet = hand.bet
        hand.bet = hand.bet * 2
        hand.is_doubled = True
        hand.cards.append(self.shoe.deal())
        hand.is_complete = True
        hand.can_double = False
        hand.can_split = False
        self.round.pending_bets += hand.original_bet
        self.round.can_surrender = False
        self.stats.record_move()
        self._schedule("advance", self._advance_hand)
        self._after_command()
        return True

    def split(self) -> bool:
        r = self.round
        hand = self._playable_hand()
        if hand is None or not hand.can_split or not hand.is_pair:
            return False
        if len(r.player_hands) >= MAX_HANDS or not self._can_cover(hand.bet):
            return False
        self._grade(hand, SPLIT)

        self.shoe.ensure(SPLIT_THRESHOLD)
        aces = hand.cards[0].rank == "A"
        new_hands = []
        for card in hand.cards:
            child = HandState(cards=[card, self.shoe.deal()], bet=hand.bet, is_split=True)
            if aces or child.value == 21:
                child.is_complete = True
                child.can_double = False
            new_hands.append(child)

        idx = r.current_hand_index
        r.player_hands[idx:idx + 1] = new_hands
        room = len(r.player_hands) < MAX_HANDS
        for h in r.player_hands:
            h.can_split = room and not h.is_complete and h.is_pair

        r.pending_bets += hand.bet
        r.can_surrender = False
        r.message = f"Playing split hand {idx + 1}"
        self.stats.record_move()
        self._schedule("advance", self._advance_hand)
        self._after_command()
        return True

    def surrender(self) -> bool:
        r = self.round
        hand = self._playable_hand()
        if hand is None or not r.can_surrender:
            return False
        self._grade(hand, SURRENDER)

        self.stats.record_move()
        hand.surrendered = True
        hand.is_complete = True
        hand.can_double = False
        hand.can_split = False
        r.can_surrender = False
        r.current_hand_index = len(r.player_hands)
        r.phase = Phase.FINISHED
        r.resolved = True
        self._schedule("settle", self.settle)
        self._after_command()
        return True

    # ----- round progression -----
    def _advance_hand(self) -> None:
        r = self.round
        idx = r.current_hand_index
        while idx < len(r.player_hands) and r.player_hands[idx].is_complete:
            idx += 1
        r.current_hand_index = idx
        if idx < len(r.player_hands):
            r.message = f"Playing hand {idx + 1}"
            return

        r.phase = Phase.FINISHED
        if all(h.is_busted for h in r.player_hands):
            r.message = "All hands busted"
            r.resolved = True
            self._schedule("settle", self.settle)
        else:
            r.message = "Dealer playing..."
            self._schedule("dealer", self._dealer_turn)

    def _dealer_turn(self) -> None:
        r = self.round
        self.shoe.ensure(DEALER_THRESHOLD)
        play_dealer(r.dealer.cards, self.shoe)
        r.resolved = True
        logger.debug("Dealer finished on %d with %d cards", r.dealer.value, len(r.dealer.cards))
        self._schedule("settle", self.settle)

    def settle(self) -> Optional[Settlement]:
        """
        Pay out the finished round.  Safe to call more than once: later calls
        return the settlement already applied.
        """
        r = self.round
        if r.settlement is not None:
            return r.settlement
        if r.phase != Phase.FINISHED or not r.resolved:
            return None

        dealer_value = r.dealer.value
        dealer_bj = r.dealer.is_blackjack
        outcomes = []
        for hand in r.player_hands:
            if hand.surrendered:
                outcomes.append(HandOutcome("loss", -(hand.bet // 2)))
            else:
                outcomes.append(
                    determine_hand_outcome(hand.value, dealer_value, hand.is_blackjack, dealer_bj, hand.bet)
                )
        main_profit = sum(o.profit for o in outcomes)
        side_profit = sum(b.net for b in r.side_bets) if self.config.allow_side_bets else 0
        settlement = Settlement(outcomes, main_profit, side_profit)
        r.settlement = settlement

        if self.config.apply_bankroll:
            self.bankroll += settlement.total_profit
        r.pending_bets = 0
        self.stats.record_hands(settlement.count("win"), settlement.count("loss"), settlement.count("push"))
        r.message = self._result_message(settlement)
        logger.info(
            "Round settled (%s): %d hand(s), profit %+d, bankroll %d",
            self.mode.value,
            len(outcomes),
            settlement.total_profit,
            self.bankroll,
        )

        if self.config.funds_limited and self.bankroll <= 0:
            self.game_over = True
            r.message += " Game over - bankroll exhausted."
        if self.on_settled is not None:
            self.on_settled(settlement)
        return settlement

    def _result_message(self, settlement: Settlement) -> str:
        r = self.round
        hands = r.player_hands
        profit = settlement.total_profit
        surrendered = any(h.surrendered for h in hands)

        if self.mode != GameMode.TESTING:
            if surrendered:
                # side bets settle on their own; the message covers the forfeited half
                return f"Surrendered. -${-settlement.main_profit}"
            if profit > 0:
                return f"You win! +${profit}"
            if profit < 0:
                return f"You lose. -${-profit}"
            return "Split hands balanced out. $0" if len(hands) > 1 else "Push! $0"

        if surrendered:
            return "Surrendered"
        single = len(hands) == 1
        if r.natural:
            return "Blackjack!" if hands[0].is_blackjack else "Dealer Blackjack!"

        decisions = self.grader.round_decisions
        correct = self.grader.round_correct
        pct = self.grader.round_accuracy_pct
        if decisions == 0:
            if not single:
                return "No decisions taken across split hands."
            if settlement.main_profit > 0:
                return "Win. No decisions this hand."
            if settlement.main_profit < 0:
                return "Loss. No decisions this hand."
            return "Push. No decisions this hand."

        score = f"({correct}/{decisions}, {pct}%)"
        if pct == 100:
            if profit > 0:
                return f"Perfect decisions led to a win {score}. Well played!"
            if profit < 0:
                return f"Perfect decisions, just bad luck {score}."
            return f"Perfect decisions {score}."
        if pct >= 80:
            if profit > 0:
                return f"Strong play {score}."
            if profit < 0:
                return f"Good accuracy {score}. Keep practicing."
            return f"Good accuracy {score}."
        if pct >= 50:
            if profit > 0:
                return f"Mixed decisions {score}, win leaned on luck."
            if profit < 0:
                return f"Mixed decisions {score}. Study key spots."
            return f"Mixed decisions {score}."
        if profit > 0:
            return f"Low accuracy, but lucky win {score}."
        if profit < 0:
            return f"Low accuracy led to a loss {score}."
        return f"Low accuracy {score}."

    def new_round(self) -> bool:
        r = self.round
        if self.closed or self.has_pending:
            return False
        if r.phase in (Phase.SIDE_BETS, Phase.PLAYING):
            return False
        if r.phase == Phase.FINISHED and r.settlement is None:
            return False

        self.round = Round()
        self.grader.reset_round()
        if self.game_over:
            self.round.message = "Bankroll exhausted"
        elif self.config.fixed_bet:
            self.place_bet(self.config.fixed_bet)
        return True

    # ----- read-only views -----
    def hint(self) -> Optional[Recommendation]:
        """Basic strategy for the current hand, in modes that show hints."""
        if not self.config.show_hints:
            return None
        hand = self._playable_hand()
        if hand is None:
            return None
        return recommend(hand, self.round.dealer.up_card, self.round.can_surrender, self._double_available(hand))

    @property
    def feedback(self) -> Optional[ActionFeedback]:
        if not self.config.grade_decisions:
            return None
        return self.grader.last_feedback

    def available_actions(self) -> List[str]:
        hand = self._playable_hand()
        if hand is None or self.has_pending:
            return []
        actions = [HIT, STAND]
        if self._double_available(hand):
            actions.append(DOUBLE)
        if hand.can_split and len(self.round.player_hands) < MAX_HANDS and self._can_cover(hand.bet):
            actions.append(SPLIT)
        if self.round.can_surrender:
            actions.append(SURRENDER)
        return actions

    def visible_dealer_cards(self) -> List[Card]:
        """Dealer cards the player may see: the hole card stays down while playing."""
        cards = self.round.dealer.cards
        if self.round.phase == Phase.PLAYING:
            return cards[:1]
        return list(cards)
