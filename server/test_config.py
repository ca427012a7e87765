"""
Tests for environment-driven configuration.

Run with: pytest test_config.py -v
"""

import config as config_module
from config import ServerConfig, get_env_bool, get_env_int, get_env_list


class TestEnvHelpers:

    def test_bool_values(self, monkeypatch):
        monkeypatch.setenv("FLAG", "yes")
        assert get_env_bool("FLAG") is True
        monkeypatch.setenv("FLAG", "off")
        assert get_env_bool("FLAG", True) is False
        monkeypatch.setenv("FLAG", "maybe")
        assert get_env_bool("FLAG", True) is True

    def test_int_falls_back_on_garbage(self, monkeypatch):
        monkeypatch.setenv("NUM", "twelve")
        assert get_env_int("NUM", 7) == 7

    def test_list_splits_and_strips(self, monkeypatch):
        monkeypatch.setenv("ITEMS", " hearts, clubs ,,")
        assert get_env_list("ITEMS", []) == ["hearts", "clubs"]
        monkeypatch.delenv("ITEMS")
        assert get_env_list("ITEMS", ["none"]) == ["none"]


class TestServerConfig:

    def test_defaults(self, monkeypatch):
        for key in ("REDIS_URL", "SYNC_MAX_RETRIES", "DEFAULT_FLIP_MODE", "DEFAULT_JOKER_SUITS", "CARD_FIVE"):
            monkeypatch.delenv(key, raising=False)
        cfg = ServerConfig.from_env()
        assert cfg.REDIS_URL == ""
        assert cfg.SYNC_MAX_RETRIES == 3
        assert cfg.game_defaults.flip_mode == "never"
        assert cfg.game_defaults.joker_suits == ["hearts", "spades"]
        assert cfg.card_values.to_dict()["5"] == -5

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")
        monkeypatch.setenv("SYNC_MAX_RETRIES", "5")
        monkeypatch.setenv("DEFAULT_FLIP_MODE", "always")
        monkeypatch.setenv("DEFAULT_JOKER_SUITS", "none")
        monkeypatch.setenv("CARD_KING", "-2")
        cfg = ServerConfig.from_env()
        assert cfg.REDIS_URL == "redis://cache:6379/1"
        assert cfg.SYNC_MAX_RETRIES == 5
        assert cfg.game_defaults.flip_mode == "always"
        assert cfg.game_defaults.joker_suits == ["none"]
        assert cfg.card_values.KING == -2

    def test_reload_config(self, monkeypatch):
        original = config_module.config
        monkeypatch.setenv("PORT", "9100")
        try:
            reloaded = config_module.reload_config()
            assert reloaded.PORT == 9100
            assert config_module.config is reloaded
        finally:
            config_module.config = original
