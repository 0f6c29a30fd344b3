"""
Adapters for the collaborators the game talks to but does not own: the
stats repository, the identity provider and the debounced autosaver.

Persistence never interrupts play.  Load failures fall back to defaults and
save failures are logged; the round carries on with in-memory state.
"""

from dataclasses import dataclass
from typing import Callable, Optional
import logging
import threading
import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .models import PlayerStats
from .session import StatsRecord

logger = logging.getLogger(__name__)

STAT_FIELDS = (
    "bankroll",
    "hands_played",
    "hands_won",
    "hands_lost",
    "hands_pushed",
    "total_moves",
    "strategy_decisions",
    "strategy_correct",
    "strategy_streak",
)


@dataclass(frozen=True)
class Profile:
    player_id: str


class HeaderIdentityProvider:
    """
    Resolves the player from a header set by whatever sits in front of the
    API.  No header, no profile.
    """

    def __init__(self, player_id: Optional[str]) -> None:
        self.player_id = (player_id or "").strip() or None

    def current_profile(self) -> Optional[Profile]:
        if self.player_id is None:
            return None
        return Profile(self.player_id)


class StatsRepository:
    """Loads and saves one player's cumulative stats record."""

    def __init__(self, session_factory: sessionmaker, player_id: str) -> None:
        self.session_factory = session_factory
        self.player_id = player_id

    def load_stats(self) -> Optional[StatsRecord]:
        try:
            with self.session_factory() as db:
                row = db.get(PlayerStats, self.player_id)
                if row is None:
                    return None
                return StatsRecord(**{name: getattr(row, name) for name in STAT_FIELDS})
        except SQLAlchemyError:
            logger.exception("Could not load stats for %s; starting from defaults", self.player_id)
            return None

    def save_stats(self, record: StatsRecord) -> bool:
        """Upsert the cumulative record.  Saving the same record twice is harmless."""
        try:
            with self.session_factory() as db:
                row = db.get(PlayerStats, self.player_id)
                if row is None:
                    row = PlayerStats(player_id=self.player_id)
                    db.add(row)
                for name, value in record.to_dict().items():
                    setattr(row, name, value)
                db.commit()
        except SQLAlchemyError:
            logger.exception("Failed to save stats for %s", self.player_id)
            return False
        logger.debug("Saved stats for %s: %s", self.player_id, record)
        return True


class StatsAutosaver:
    """
    Coalesces rapid stat changes into one write after ``delay`` seconds of
    quiet.  ``touch`` records the latest snapshot, ``poll`` writes it once
    the quiet period has passed and ``flush`` writes it straight away.

    Request handlers touch from worker threads while the app polls from its
    own; the lock covers the pending snapshot, never the write itself.
    """

    def __init__(
        self,
        save: Callable[[StatsRecord], bool],
        delay: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._save = save
        self.delay = delay
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: Optional[StatsRecord] = None
        self._deadline: Optional[float] = None
        self.last_saved: Optional[StatsRecord] = None

    @property
    def dirty(self) -> bool:
        with self._lock:
            return self._pending is not None

    def touch(self, record: StatsRecord) -> None:
        with self._lock:
            self._pending = record
            self._deadline = self._clock() + self.delay

    def poll(self) -> bool:
        with self._lock:
            due = self._pending is not None and self._clock() >= self._deadline
        if not due:
            return False
        return self.flush()

    def flush(self, record: Optional[StatsRecord] = None) -> bool:
        with self._lock:
            if record is not None:
                self._pending = record
            if self._pending is None:
                return False
            snapshot = self._pending
            self._pending = None
            self._deadline = None
        ok = self._save(snapshot)
        if ok:
            with self._lock:
                self.last_saved = snapshot
        return ok
