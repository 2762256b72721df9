# config.py – Chargement des paramètres via pydantic-settings

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # — Riot API —
    RIOT_API_KEY: Optional[str] = None   # absent → 400 au moment de la requête
    DEFAULT_REGION: str = "na1"          # plateforme, mappée vers americas/europe/asia

    # — Cache persistant —
    CACHE_BACKEND: str = "file"          # "file" ou "redis"
    CACHE_FILE: str = "data/match_cache.json"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CACHE_KEY: str = "squadstats:cache"

    # — Pipeline —
    DEFAULT_COUNT: int = 5               # garder bas pour éviter les 429
    MAX_COUNT: int = 8
    PER_PLAYER_DELAY_MS: int = 900       # pause entre deux joueurs
    ROSTER_FILE: Optional[str] = None    # JSON [{label, gameName, tagLine}]

    # — Serveur & logs —
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
