from pathlib import Path
from typing import Dict, Optional
import os

from dotenv import dotenv_values
from pydantic import BaseModel, Field

ENV_PREFIX = "BLACKJACK_"


class Settings(BaseModel):
    database_url: str = Field("sqlite:///./blackjack.db", description="SQLAlchemy URL of the stats store.")
    num_decks: int = Field(6, ge=1, le=8, description="Decks in the shoe.")
    initial_bankroll: int = Field(1000, gt=0, description="Starting bankroll when no stats are stored.")
    autosave_delay: float = Field(2.0, ge=0, description="Quiet period in seconds before stats are saved.")
    log_level: str = Field("INFO", description="Root logging level.")


def _load_env_from_files() -> Dict[str, Optional[str]]:
    """
    Read variables from:
    - blackjack_api/.env
    - <repo root>/.env
    Nothing is written to os.environ.
    """
    here = Path(__file__).parent
    candidates = [here / ".env", here.parent / ".env"]
    env: Dict[str, Optional[str]] = {}
    for p in candidates:
        if p.exists():
            env.update(dotenv_values(p))
    return env


def get_settings(**overrides) -> Settings:
    """
    Build settings from the .env files, then ``BLACKJACK_*`` environment
    variables, then explicit keyword overrides.
    """
    values = {}
    sources = [_load_env_from_files(), os.environ]
    for source in sources:
        for key, value in source.items():
            if key.startswith(ENV_PREFIX) and value is not None and value.strip():
                values[key[len(ENV_PREFIX):].lower()] = value.strip()
    values.update(overrides)
    fields = Settings.model_fields
    return Settings(**{k: v for k, v in values.items() if k in fields})
