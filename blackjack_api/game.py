"""
Core card logic for the Blackjack trainer.

This module defines the cards, the shoe they are dealt from, the hand
evaluation helpers and the payout rules shared by every game mode.  Card
values are fixed at creation (Aces count 11, faces 10); hand totals apply
the soft-Ace reduction separately so a hand's value is always derived from
its cards rather than stored.

House rules: six decks, dealer hits soft 17, blackjack pays 3:2 (floored to
whole dollars), double after split, late surrender, split up to four hands.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence
import logging
import random

logger = logging.getLogger(__name__)


# ----- Card definitions -----
class Suit(str, Enum):
    SPADES = "♠"
    CLUBS = "♣"
    HEARTS = "♥"
    DIAMONDS = "♦"

    @property
    def is_black(self) -> bool:
        return self in (Suit.SPADES, Suit.CLUBS)


SUITS: List[Suit] = [Suit.SPADES, Suit.CLUBS, Suit.HEARTS, Suit.DIAMONDS]
RANKS: List[str] = ["A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K"]
VALUES = {
    "A": 11,
    "2": 2,
    "3": 3,
    "4": 4,
    "5": 5,
    "6": 6,
    "7": 7,
    "8": 8,
    "9": 9,
    "10": 10,
    "J": 10,
    "Q": 10,
    "K": 10,
}

# ASCII suit letters accepted by Card.parse
_SUIT_CODES = {"S": Suit.SPADES, "C": Suit.CLUBS, "H": Suit.HEARTS, "D": Suit.DIAMONDS}

DEFAULT_DECKS = 6
RESHUFFLE_THRESHOLD = 20
HIT_THRESHOLD = 5
SPLIT_THRESHOLD = 10
DEALER_THRESHOLD = 10
MAX_HANDS = 4


@dataclass(frozen=True)
class Card:
    suit: Suit
    rank: str
    value: int

    @classmethod
    def of(cls, rank: str, suit: Suit) -> "Card":
        return cls(suit=suit, rank=rank, value=VALUES[rank])

    @classmethod
    def parse(cls, code: str) -> "Card":
        """Build a card from a code such as ``"10S"``, ``"AH"`` or ``"K♦"``."""
        rank, suit = code[:-1], code[-1]
        if suit in _SUIT_CODES:
            suit = _SUIT_CODES[suit]
        if rank not in VALUES:
            raise ValueError(f"Unknown card rank in {code!r}")
        return cls.of(rank, Suit(suit))

    def label(self) -> str:
        return f"{self.rank}{self.suit.value}"


class EmptyShoeError(RuntimeError):
    """Raised when a card is dealt from an empty shoe.

    Every deal path reshuffles below its own threshold first, so reaching
    this means a threshold is wrong.
    """


class Shoe:
    """
    A shoe holding ``num_decks`` standard 52-card decks.

    Cards are dealt from the end of the list (the last card pushed during
    construction is the first one dealt).  The shoe never reshuffles on its
    own; callers check :meth:`needs_reshuffle` or use :meth:`ensure` before
    dealing.
    """

    def __init__(self, num_decks: int = DEFAULT_DECKS, shuffle_seed: Optional[int] = None) -> None:
        if num_decks <= 0:
            raise ValueError("Number of decks must be a positive integer.")
        self.num_decks = num_decks
        self._rng = random.Random(shuffle_seed)
        self.cards: List[Card] = []
        self.reshuffle()

    def __repr__(self) -> str:
        return f"<Shoe(decks={self.num_decks}, cards_remaining={len(self.cards)})>"

    @staticmethod
    def build(num_decks: int = DEFAULT_DECKS) -> List[Card]:
        """Return ``52 * num_decks`` cards in construction order (deck, suit, rank)."""
        return [Card.of(rank, suit) for _ in range(num_decks) for suit in SUITS for rank in RANKS]

    def shuffle(self) -> None:
        self._rng.shuffle(self.cards)

    def reshuffle(self) -> None:
        """Discard the remaining cards and load a freshly shuffled shoe."""
        self.cards = self.build(self.num_decks)
        self.shuffle()
        logger.debug("Shoe reshuffled: %d cards", len(self.cards))

    def cards_remaining(self) -> int:
        return len(self.cards)

    def needs_reshuffle(self, min_cards: int = RESHUFFLE_THRESHOLD) -> bool:
        return len(self.cards) < min_cards

    def ensure(self, min_cards: int) -> bool:
        """Reshuffle if fewer than ``min_cards`` remain.  Returns True if it did."""
        if self.needs_reshuffle(min_cards):
            logger.info("Only %d cards left (need %d), reshuffling", len(self.cards), min_cards)
            self.reshuffle()
            return True
        return False

    def deal(self) -> Card:
        if not self.cards:
            raise EmptyShoeError("Cannot deal from an empty shoe - reshuffle needed")
        return self.cards.pop()


# ----- Hand evaluation -----
def hand_total(cards: Sequence[Card]) -> int:
    """
    Best total for the cards: Aces start at 1 and are upgraded to 11 one at a
    time while that does not bust the hand.
    """
    total = 0
    aces = 0
    for c in cards:
        if c.rank == "A":
            total += 1
            aces += 1
        else:
            total += c.value
    while aces > 0 and total + 10 <= 21:
        total += 10
        aces -= 1
    return total


def is_soft(cards: Sequence[Card]) -> bool:
    """True if at least one Ace is still counted as 11 after reduction."""
    total = 0
    aces = 0
    for c in cards:
        total += c.value
        if c.rank == "A":
            aces += 1
    while total > 21 and aces > 0:
        total -= 10
        aces -= 1
    return aces > 0


def is_blackjack(cards: Sequence[Card]) -> bool:
    return len(cards) == 2 and hand_total(cards) == 21


def is_pair(cards: Sequence[Card]) -> bool:
    """Two cards of the same rank.  K+Q is not a pair."""
    return len(cards) == 2 and cards[0].rank == cards[1].rank


@dataclass
class HandState:
    """A player's hand and the bet riding on it."""

    cards: List[Card]
    bet: int
    original_bet: Optional[int] = None
    is_doubled: bool = False
    is_complete: bool = False
    can_double: bool = True
    can_split: bool = False
    is_blackjack: bool = False
    is_split: bool = False
    surrendered: bool = False

    @property
    def value(self) -> int:
        return hand_total(self.cards)

    @property
    def is_soft(self) -> bool:
        return is_soft(self.cards)

    @property
    def is_busted(self) -> bool:
        return self.value > 21

    @property
    def is_pair(self) -> bool:
        return is_pair(self.cards)


# ----- Dealer and settlement -----
def dealer_should_hit(cards: Sequence[Card]) -> bool:
    """Dealer hits below 17 and on soft 17."""
    total = hand_total(cards)
    return total < 17 or (total == 17 and is_soft(cards))


def play_dealer(cards: List[Card], shoe: Shoe) -> List[Card]:
    """Draw for the dealer until the hit rule says stop.  Mutates ``cards``."""
    while dealer_should_hit(cards):
        cards.append(shoe.deal())
    return cards


@dataclass(frozen=True)
class HandOutcome:
    result: str  # "win" | "loss" | "push"
    profit: int


def blackjack_payout(bet: int) -> int:
    """3:2 on a natural, floored to whole dollars."""
    return (bet * 3) // 2


def determine_hand_outcome(
    player_value: int,
    dealer_value: int,
    player_blackjack: bool,
    dealer_blackjack: bool,
    bet: int,
) -> HandOutcome:
    """Compare one player hand with the dealer's final hand."""
    if player_value > 21:
        return HandOutcome("loss", -bet)
    if dealer_value > 21:
        return HandOutcome("win", bet)
    if player_blackjack and dealer_blackjack:
        return HandOutcome("push", 0)
    if player_blackjack:
        return HandOutcome("win", blackjack_payout(bet))
    if dealer_blackjack:
        return HandOutcome("loss", -bet)
    if player_value == dealer_value:
        return HandOutcome("push", 0)
    if player_value > dealer_value:
        return HandOutcome("win", bet)
    return HandOutcome("loss", -bet)


# ----- Side bets -----
class SideBetType(str, Enum):
    PERFECT_PAIRS = "perfect_pairs"
    # Reserved: accepted by the data model, never evaluated.
    TWENTY_ONE_PLUS_3 = "twenty_one_plus_3"
    INSURANCE = "insurance"
    LUCKY_LADIES = "lucky_ladies"
    ROYAL_MATCH = "royal_match"
    OVER_UNDER_13 = "over_under_13"
    MATCH_DEALER = "match_dealer"


SUPPORTED_SIDE_BETS = frozenset({SideBetType.PERFECT_PAIRS})

PERFECT_PAIRS_ODDS = {"perfect": 25, "colored": 12, "mixed": 6}


@dataclass
class SideBet:
    type: SideBetType
    amount: int
    result: Optional[str] = None  # "win" | "lose"
    payout: int = 0  # total returned, stake included

    @property
    def net(self) -> int:
        if self.result == "win":
            return self.payout - self.amount
        return -self.amount


def perfect_pairs_kind(first: Card, second: Card) -> Optional[str]:
    """Classify a Perfect Pairs hit: same suit, same colour, or mixed colours."""
    if first.rank != second.rank:
        return None
    if first.suit == second.suit:
        return "perfect"
    if first.suit.is_black == second.suit.is_black:
        return "colored"
    return "mixed"


def evaluate_side_bet(bet: SideBet, player_cards: Sequence[Card], dealer_up: Card) -> SideBet:
    """
    Settle a side bet against the player's first two cards and the dealer's
    up-card.  Reserved bet types always lose.
    """
    kind = None
    if bet.type == SideBetType.PERFECT_PAIRS:
        kind = perfect_pairs_kind(player_cards[0], player_cards[1])
    if kind is None:
        return SideBet(type=bet.type, amount=bet.amount, result="lose", payout=0)
    payout = bet.amount + bet.amount * PERFECT_PAIRS_ODDS[kind]
    return SideBet(type=bet.type, amount=bet.amount, result="win", payout=payout)


@dataclass
class DealerHand:
    cards: List[Card] = field(default_factory=list)

    @property
    def value(self) -> int:
        return hand_total(self.cards)

    @property
    def is_soft(self) -> bool:
        return is_soft(self.cards)

    @property
    def is_blackjack(self) -> bool:
        return is_blackjack(self.cards)

    @property
    def up_card(self) -> Optional[Card]:
        return self.cards[0] if self.cards else None
