"""
FastAPI application exposing a single-player Blackjack table to a browser.

The front-end starts a session in one of three modes and then drives the
round with commands.  Every command returns the full table snapshot; a
command that is not valid in the current state is ignored and answered with
``accepted: false``.

Usage:
    uvicorn blackjack_api.app:app --reload

Endpoints:
    GET    /health              – simple health check
    GET    /modes               – play modes and their rules
    POST   /session             – start a session (real mode needs X-Player-Id)
    GET    /state               – current table snapshot
    GET    /stats               – cumulative stats record for this session
    POST   /bet                 – place the main bet
    POST   /side-bets           – place or replace a side bet
    DELETE /side-bets/{type}    – withdraw a side bet
    POST   /deal, /hit, /stand, /double, /split, /surrender, /new-round
    POST   /exit                – leave the table and save stats
    POST   /strategy            – basic strategy lookup for any hand
"""

from contextlib import asynccontextmanager, suppress
from typing import Callable, List, Optional
import asyncio
import logging

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request

from .config import Settings, get_settings
from .database import create_db_engine, make_session_factory
from .game import Card, SideBetType, hand_total
from .persistence import HeaderIdentityProvider, StatsRepository
from .schemas import (
    BetRequest,
    CardOut,
    DealerOut,
    FeedbackOut,
    HandOut,
    ModeOut,
    RecommendationOut,
    SessionRequest,
    SessionStatsOut,
    SideBetOut,
    SideBetRequest,
    StatsRecordOut,
    StrategyRequest,
    TableState,
)
from .service import GameSession
from .strategies import basic_strategy
from .table import MODE_CONFIGS

logger = logging.getLogger(__name__)

AUTOSAVE_POLL_INTERVAL = 0.25

router = APIRouter()


def _card(card: Card) -> CardOut:
    return CardOut(rank=card.rank, suit=card.suit.value, value=card.value, label=card.label())


def build_state(game: GameSession, accepted: bool = True) -> TableState:
    t = game.table
    r = t.round
    settlement = r.settlement

    hands = []
    for i, h in enumerate(r.player_hands):
        outcome = settlement.outcomes[i] if settlement else None
        hands.append(
            HandOut(
                cards=[_card(c) for c in h.cards],
                value=h.value,
                is_soft=h.is_soft,
                bet=h.bet,
                original_bet=h.original_bet,
                is_doubled=h.is_doubled,
                is_complete=h.is_complete,
                can_double=h.can_double,
                can_split=h.can_split,
                is_blackjack=h.is_blackjack,
                is_split=h.is_split,
                surrendered=h.surrendered,
                result=outcome.result if outcome else None,
                profit=outcome.profit if outcome else None,
            )
        )

    visible = t.visible_dealer_cards()
    dealer = DealerOut(
        cards=[_card(c) for c in visible],
        hidden_cards=len(r.dealer.cards) - len(visible),
        value=hand_total(visible),
    )
    hint = t.hint()
    feedback = t.feedback
    stats = t.stats

    return TableState(
        accepted=accepted,
        mode=t.mode,
        title=t.config.title,
        phase=r.phase.value,
        message=r.message,
        bankroll=t.bankroll,
        available_funds=t.available_funds(),
        pending_bets=r.pending_bets,
        main_bet=r.main_bet,
        current_hand_index=r.current_hand_index,
        player_hands=hands,
        dealer=dealer,
        side_bets=[SideBetOut(type=b.type, amount=b.amount, result=b.result, payout=b.payout) for b in r.side_bets],
        can_surrender=r.can_surrender,
        available_actions=t.available_actions(),
        hint=RecommendationOut(action=hint.action, reason=hint.reason) if hint else None,
        feedback=FeedbackOut(**feedback.__dict__) if feedback else None,
        profit=settlement.total_profit if settlement else None,
        game_over=t.game_over,
        cards_remaining=t.shoe.cards_remaining(),
        persisted=game.persisted,
        stats=SessionStatsOut(**stats.__dict__, win_rate=stats.win_rate, accuracy=stats.accuracy),
    )


def get_game(request: Request) -> GameSession:
    game = request.app.state.game
    if game is None:
        raise HTTPException(status_code=404, detail="No active session; POST /session first.")
    return game


def _command(game: GameSession, action: Callable[[], bool]) -> TableState:
    accepted = action()
    game.touch()
    return build_state(game, accepted)


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/modes", response_model=List[ModeOut])
def list_modes() -> List[ModeOut]:
    """Return the play modes and the rules each one applies."""
    return [ModeOut(mode=mode, **cfg.__dict__) for mode, cfg in MODE_CONFIGS.items()]


@router.post("/session", response_model=TableState)
def start_session(
    req: SessionRequest,
    request: Request,
    x_player_id: Optional[str] = Header(default=None),
) -> TableState:
    """
    Start a new session, closing any session already at the table.  Real
    play saves stats and therefore needs a profile.
    """
    profile = HeaderIdentityProvider(x_player_id).current_profile()
    if MODE_CONFIGS[req.mode].persist_stats and profile is None:
        raise HTTPException(status_code=401, detail="Log in to play for real.")

    current = request.app.state.game
    if current is not None:
        current.exit()

    repository = None
    if profile is not None:
        repository = StatsRepository(request.app.state.session_factory, profile.player_id)
    game = GameSession(req.mode, request.app.state.settings, repository=repository)
    request.app.state.game = game
    return build_state(game)


@router.get("/state", response_model=TableState)
def get_state(game: GameSession = Depends(get_game)) -> TableState:
    return build_state(game)


@router.get("/stats", response_model=StatsRecordOut)
def get_stats(game: GameSession = Depends(get_game)) -> StatsRecordOut:
    """Cumulative stats: totals stored before this session plus this session's play."""
    return StatsRecordOut.model_validate(game.record())


@router.post("/bet", response_model=TableState)
def place_bet(req: BetRequest, game: GameSession = Depends(get_game)) -> TableState:
    return _command(game, lambda: game.table.place_bet(req.amount))


@router.post("/side-bets", response_model=TableState)
def place_side_bet(req: SideBetRequest, game: GameSession = Depends(get_game)) -> TableState:
    return _command(game, lambda: game.table.place_side_bet(req.type, req.amount))


@router.delete("/side-bets/{bet_type}", response_model=TableState)
def remove_side_bet(bet_type: SideBetType, game: GameSession = Depends(get_game)) -> TableState:
    return _command(game, lambda: game.table.remove_side_bet(bet_type))


@router.post("/deal", response_model=TableState)
def deal(game: GameSession = Depends(get_game)) -> TableState:
    return _command(game, game.table.deal)


@router.post("/hit", response_model=TableState)
def hit(game: GameSession = Depends(get_game)) -> TableState:
    return _command(game, game.table.hit)


@router.post("/stand", response_model=TableState)
def stand(game: GameSession = Depends(get_game)) -> TableState:
    return _command(game, game.table.stand)


@router.post("/double", response_model=TableState)
def double(game: GameSession = Depends(get_game)) -> TableState:
    return _command(game, game.table.double_down)


@router.post("/split", response_model=TableState)
def split(game: GameSession = Depends(get_game)) -> TableState:
    return _command(game, game.table.split)


@router.post("/surrender", response_model=TableState)
def surrender(game: GameSession = Depends(get_game)) -> TableState:
    return _command(game, game.table.surrender)


@router.post("/new-round", response_model=TableState)
def new_round(game: GameSession = Depends(get_game)) -> TableState:
    return _command(game, game.table.new_round)


@router.post("/exit", response_model=StatsRecordOut)
def exit_session(request: Request, game: GameSession = Depends(get_game)) -> StatsRecordOut:
    """Leave the table; an unfinished round is abandoned without settlement."""
    game.exit()
    request.app.state.game = None
    return StatsRecordOut.model_validate(game.record())


@router.post("/strategy", response_model=RecommendationOut)
def strategy(req: StrategyRequest) -> RecommendationOut:
    """Basic strategy lookup for a hand described by its total and flags."""
    rec = basic_strategy(
        req.player_total,
        req.dealer_up,
        req.is_soft,
        req.is_pair,
        req.can_double,
        req.can_surrender,
        req.das,
    )
    return RecommendationOut(action=rec.action, reason=rec.reason)


async def _autosave_loop(app: FastAPI) -> None:
    while True:
        await asyncio.sleep(AUTOSAVE_POLL_INTERVAL)
        game = app.state.game
        if game is not None:
            # the save is a blocking database write
            await asyncio.to_thread(game.poll)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_db_engine(settings.database_url)
        app.state.session_factory = make_session_factory(engine)
        task = asyncio.create_task(_autosave_loop(app))
        try:
            yield
        finally:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
            if app.state.game is not None:
                await asyncio.to_thread(app.state.game.exit)
                app.state.game = None
            engine.dispose()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
    )
    app = FastAPI(title="Blackjack Trainer API", version="2.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.game = None
    app.include_router(router)
    return app


app = create_app()
