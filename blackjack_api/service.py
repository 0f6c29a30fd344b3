"""
One play session: a table in a given mode plus, in real mode, the stats
persistence wired around it.
"""

from typing import Callable, Optional, Union
import logging
import time

from .config import Settings
from .game import Shoe
from .persistence import StatsAutosaver, StatsRepository
from .session import SessionStats, StatsRecord, cumulative_record
from .table import MODE_CONFIGS, GameMode, Settlement, Table

logger = logging.getLogger(__name__)


class GameSession:
    def __init__(
        self,
        mode: Union[GameMode, str],
        settings: Settings,
        repository: Optional[StatsRepository] = None,
        shoe: Optional[Shoe] = None,
        auto_advance: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.mode = GameMode(mode)
        self.config = MODE_CONFIGS[self.mode]
        self.repository = repository if self.config.persist_stats else None

        initial = self.repository.load_stats() if self.repository is not None else None
        if initial is None:
            initial = StatsRecord(bankroll=settings.initial_bankroll)
        self.initial = initial

        self.autosaver: Optional[StatsAutosaver] = None
        if self.repository is not None:
            self.autosaver = StatsAutosaver(self.repository.save_stats, settings.autosave_delay, clock)

        self.table = Table(
            self.mode,
            bankroll=initial.bankroll,
            shoe=shoe,
            stats=SessionStats(strategy_streak=initial.strategy_streak),
            num_decks=settings.num_decks,
            auto_advance=auto_advance,
            on_settled=self._on_settled,
        )
        logger.info("Started %s session (bankroll %d, persisted=%s)", self.mode.value, initial.bankroll, self.persisted)

    @property
    def persisted(self) -> bool:
        return self.autosaver is not None

    def record(self) -> StatsRecord:
        return cumulative_record(self.initial, self.table.stats, self.table.bankroll)

    def touch(self) -> None:
        """Note a state change; the autosaver writes once things go quiet."""
        if self.autosaver is not None:
            self.autosaver.touch(self.record())

    def poll(self) -> bool:
        return self.autosaver is not None and self.autosaver.poll()

    def _on_settled(self, settlement: Settlement) -> None:
        if self.autosaver is not None:
            self.autosaver.flush(self.record())

    def exit(self) -> None:
        """Leave the table: drop in-flight steps and write the final snapshot."""
        self.table.cancel()
        if self.autosaver is not None:
            self.autosaver.flush(self.record())
        logger.info("Closed %s session after %d hand(s)", self.mode.value, self.table.stats.hands_played)
