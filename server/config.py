"""
Centralized configuration for the Golf duel engine and snapshot gateway.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.REDIS_URL)
    print(config.card_values)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_list(key: str, default: list[str]) -> list[str]:
    """Get comma-separated list environment variable."""
    raw = os.environ.get(key)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class CardValues:
    """Card point values - the single source of truth."""
    ACE: int = 1
    TWO: int = 2
    THREE: int = 3
    FOUR: int = 4
    FIVE: int = -5
    SIX: int = 6
    SEVEN: int = 7
    EIGHT: int = 8
    NINE: int = 9
    TEN: int = 10
    JACK: int = 10
    QUEEN: int = 10
    KING: int = 0
    JOKER: int = -5

    # Four equal ranks in a 2x2 block
    SQUARE_BONUS: int = -10

    def to_dict(self) -> dict[str, int]:
        """Get card values as dictionary keyed by rank string."""
        return {
            "A": self.ACE,
            "2": self.TWO,
            "3": self.THREE,
            "4": self.FOUR,
            "5": self.FIVE,
            "6": self.SIX,
            "7": self.SEVEN,
            "8": self.EIGHT,
            "9": self.NINE,
            "10": self.TEN,
            "J": self.JACK,
            "Q": self.QUEEN,
            "K": self.KING,
            "JOKER": self.JOKER,
        }


@dataclass
class GameDefaults:
    """Default ruleset for newly created games."""
    use_jokers: bool = True
    # "hearts,spades" (two jokers), "none" (two suit-less jokers) or all four suits
    joker_suits: list[str] = field(default_factory=lambda: ["hearts", "spades"])
    flip_mode: str = "never"  # "never" or "always"


@dataclass
class ServerConfig:
    """Server and engine configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Snapshot store
    REDIS_URL: str = ""
    SNAPSHOT_TTL_HOURS: int = 24

    # Sync client
    SYNC_MAX_RETRIES: int = 3

    card_values: CardValues = field(default_factory=CardValues)
    game_defaults: GameDefaults = field(default_factory=GameDefaults)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            REDIS_URL=get_env("REDIS_URL", ""),
            SNAPSHOT_TTL_HOURS=get_env_int("SNAPSHOT_TTL_HOURS", 24),
            SYNC_MAX_RETRIES=get_env_int("SYNC_MAX_RETRIES", 3),
            card_values=CardValues(
                ACE=get_env_int("CARD_ACE", 1),
                FIVE=get_env_int("CARD_FIVE", -5),
                JACK=get_env_int("CARD_JACK", 10),
                QUEEN=get_env_int("CARD_QUEEN", 10),
                KING=get_env_int("CARD_KING", 0),
                JOKER=get_env_int("CARD_JOKER", -5),
                SQUARE_BONUS=get_env_int("SQUARE_BONUS", -10),
            ),
            game_defaults=GameDefaults(
                use_jokers=get_env_bool("DEFAULT_USE_JOKERS", True),
                joker_suits=get_env_list("DEFAULT_JOKER_SUITS", ["hearts", "spades"]),
                flip_mode=get_env("DEFAULT_FLIP_MODE", "never"),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
