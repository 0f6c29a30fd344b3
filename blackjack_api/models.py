from sqlalchemy import Column, DateTime, Integer, String, func

from .database import Base


class PlayerStats(Base):
    __tablename__ = "player_stats"
    player_id = Column(String, primary_key=True)
    bankroll = Column(Integer, nullable=False, default=1000)
    hands_played = Column(Integer, nullable=False, default=0)
    hands_won = Column(Integer, nullable=False, default=0)
    hands_lost = Column(Integer, nullable=False, default=0)
    hands_pushed = Column(Integer, nullable=False, default=0)
    total_moves = Column(Integer, nullable=False, default=0)
    strategy_decisions = Column(Integer, nullable=False, default=0)
    strategy_correct = Column(Integer, nullable=False, default=0)
    strategy_streak = Column(Integer, nullable=False, default=0)  # current run of correct decisions
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
