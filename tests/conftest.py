"""
Shared helpers for the Blackjack trainer tests.

``rigged_shoe`` puts known cards on top of a full shoe so no reshuffle
threshold is hit while a scenario plays out.  Cards are dealt in the order
given; the table deals player, dealer, player, dealer and then draws in
action order.
"""

from __future__ import annotations

import pytest

from blackjack_api.config import get_settings
from blackjack_api.database import create_db_engine, make_session_factory
from blackjack_api.game import Card, Shoe


def cards(*codes: str) -> list[Card]:
    return [Card.parse(c) for c in codes]


def rigged_shoe(*codes: str, seed: int = 7) -> Shoe:
    shoe = Shoe(6, shuffle_seed=seed)
    shoe.cards.extend(reversed(cards(*codes)))
    return shoe


@pytest.fixture
def settings():
    return get_settings(database_url="sqlite://", autosave_delay=2.0, initial_bankroll=1000, num_decks=6)


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    factory = make_session_factory(engine)
    yield factory
    engine.dispose()
