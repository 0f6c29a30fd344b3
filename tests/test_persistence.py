"""Tests for the stats repository, the autosaver and the game session wiring."""

from __future__ import annotations

import threading

from blackjack_api.database import create_db_engine
from blackjack_api.persistence import HeaderIdentityProvider, StatsAutosaver, StatsRepository
from blackjack_api.service import GameSession
from blackjack_api.session import StatsRecord
from blackjack_api.table import Phase
from sqlalchemy.orm import sessionmaker
from tests.conftest import rigged_shoe


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def broken_factory():
    engine = create_db_engine("sqlite:////nonexistent-dir/blackjack/stats.db")
    return sessionmaker(bind=engine)


# ─── Identity ─────────────────────────────────────────────────────────────────


def test_header_identity():
    assert HeaderIdentityProvider("alice").current_profile().player_id == "alice"
    assert HeaderIdentityProvider(None).current_profile() is None
    assert HeaderIdentityProvider("   ").current_profile() is None


# ─── Repository ───────────────────────────────────────────────────────────────


class TestStatsRepository:
    def test_missing_player_loads_none(self, session_factory):
        assert StatsRepository(session_factory, "nobody").load_stats() is None

    def test_save_then_load(self, session_factory):
        repo = StatsRepository(session_factory, "alice")
        record = StatsRecord(bankroll=1250, hands_played=3, hands_won=2, hands_lost=1, strategy_streak=4)
        assert repo.save_stats(record)
        assert repo.load_stats() == record

    def test_save_overwrites_and_is_idempotent(self, session_factory):
        repo = StatsRepository(session_factory, "alice")
        repo.save_stats(StatsRecord(bankroll=100))
        latest = StatsRecord(bankroll=200, hands_played=1, hands_won=1)
        assert repo.save_stats(latest)
        assert repo.save_stats(latest)
        assert repo.load_stats() == latest

    def test_players_are_kept_apart(self, session_factory):
        StatsRepository(session_factory, "alice").save_stats(StatsRecord(bankroll=10))
        StatsRepository(session_factory, "bob").save_stats(StatsRecord(bankroll=20))
        assert StatsRepository(session_factory, "alice").load_stats().bankroll == 10

    def test_store_failures_are_swallowed(self, caplog):
        repo = StatsRepository(broken_factory(), "alice")
        assert repo.load_stats() is None
        assert repo.save_stats(StatsRecord(bankroll=1)) is False
        assert "Failed to save stats" in caplog.text


# ─── Autosaver ────────────────────────────────────────────────────────────────


class TestStatsAutosaver:
    def test_rapid_changes_coalesce_into_one_write(self):
        saved = []
        clock = FakeClock()
        saver = StatsAutosaver(lambda r: saved.append(r) or True, delay=2.0, clock=clock)

        for bankroll in (1010, 1020, 1030):
            saver.touch(StatsRecord(bankroll=bankroll))
            clock.now += 0.5
        assert not saver.poll()
        assert saved == []

        clock.now += 2.0
        assert saver.poll()
        assert [r.bankroll for r in saved] == [1030]
        assert not saver.dirty
        assert not saver.poll()

    def test_flush_writes_immediately(self):
        saved = []
        saver = StatsAutosaver(lambda r: saved.append(r) or True, clock=FakeClock())
        saver.touch(StatsRecord(bankroll=5))
        assert saver.flush()
        assert saver.last_saved == StatsRecord(bankroll=5)
        assert not saver.flush()

    def test_failed_write_is_not_recorded(self):
        saver = StatsAutosaver(lambda r: False, clock=FakeClock())
        assert not saver.flush(StatsRecord(bankroll=5))
        assert saver.last_saved is None

    def test_touch_during_slow_save_is_kept(self):
        started = threading.Event()
        release = threading.Event()
        saved = []

        def slow_save(record):
            started.set()
            release.wait(5)
            saved.append(record)
            return True

        saver = StatsAutosaver(slow_save, clock=FakeClock())
        saver.touch(StatsRecord(bankroll=1))
        worker = threading.Thread(target=saver.flush)
        worker.start()
        assert started.wait(5)

        saver.touch(StatsRecord(bankroll=2))
        release.set()
        worker.join(5)

        assert saver.dirty
        assert saver.flush()
        assert [r.bankroll for r in saved] == [1, 2]
        assert saver.last_saved == StatsRecord(bankroll=2)

    def test_concurrent_touch_and_poll_never_write_twice(self):
        saved = []
        saver = StatsAutosaver(lambda r: saved.append(r) or True, delay=0.0, clock=FakeClock())

        def touch_many(offset):
            for i in range(200):
                saver.touch(StatsRecord(bankroll=offset + i))
                saver.poll()

        threads = [threading.Thread(target=touch_many, args=(n * 1000,)) for n in range(4)]
        for th in threads:
            th.start()
        for th in threads:
            th.join(5)
        saver.flush()

        assert not saver.dirty
        # every snapshot is written at most once
        assert len(saved) == len({r.bankroll for r in saved})


# ─── Session wiring ───────────────────────────────────────────────────────────


class TestGameSession:
    def test_real_session_restores_and_saves_on_settlement(self, settings, session_factory):
        repo = StatsRepository(session_factory, "alice")
        repo.save_stats(StatsRecord(bankroll=500, hands_played=4, hands_won=2, hands_lost=2, strategy_streak=2))

        game = GameSession("real", settings, repository=repo, shoe=rigged_shoe("10S", "10D", "9H", "7C"))
        assert game.persisted
        assert game.table.bankroll == 500
        assert game.table.stats.strategy_streak == 2

        game.table.place_bet(100)
        game.table.deal()
        game.table.stand()
        assert game.table.round.phase == Phase.FINISHED

        stored = repo.load_stats()
        assert stored.bankroll == 600
        assert stored.hands_played == 5
        assert stored.hands_won == 3
        assert stored.strategy_streak == 2

    def test_new_player_starts_from_defaults(self, settings, session_factory):
        repo = StatsRepository(session_factory, "carol")
        game = GameSession("real", settings, repository=repo)
        assert game.table.bankroll == settings.initial_bankroll
        assert game.record().hands_played == 0

    def test_practice_session_never_persists(self, settings, session_factory):
        repo = StatsRepository(session_factory, "alice")
        game = GameSession("practice", settings, repository=repo, shoe=rigged_shoe("10S", "10D", "9H", "7C"))
        assert not game.persisted
        game.table.place_bet(10)
        game.table.stand()
        game.exit()
        assert repo.load_stats() is None

    def test_exit_abandons_round_and_saves(self, settings, session_factory):
        repo = StatsRepository(session_factory, "alice")
        game = GameSession("real", settings, repository=repo, shoe=rigged_shoe("10S", "10D", "9H", "7C"))
        game.table.place_bet(100)
        game.table.deal()
        game.exit()
        assert game.table.closed
        assert game.table.round.settlement is None
        assert repo.load_stats().bankroll == 1000

    def test_touch_is_debounced(self, settings, session_factory):
        clock = FakeClock()
        repo = StatsRepository(session_factory, "alice")
        game = GameSession("real", settings, repository=repo, clock=clock)
        game.table.place_bet(10)
        game.touch()
        assert not game.poll()
        clock.now += settings.autosave_delay
        assert game.poll()
        assert repo.load_stats() is not None

    def test_store_outage_does_not_block_play(self, settings):
        repo = StatsRepository(broken_factory(), "alice")
        game = GameSession("real", settings, repository=repo, shoe=rigged_shoe("10S", "10D", "9H", "7C"))
        assert game.table.place_bet(100)
        assert game.table.deal()
        assert game.table.stand()
        assert game.table.bankroll == 1100
