"""
Tests for log context propagation and formatting.

Run with: pytest test_logging_config.py -v
"""

import json
import logging

from logging_config import (
    DevelopmentFormatter,
    JSONFormatter,
    game_id_var,
    get_logger,
    log_context,
    player_id_var,
    record_context,
)


def _record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("golf.test", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:

    def test_sets_and_resets_context(self):
        with log_context(game_id="game-1", player_id="alice"):
            assert game_id_var.get() == "game-1"
            assert player_id_var.get() == "alice"
        assert game_id_var.get() is None
        assert player_id_var.get() is None

    def test_record_context_uses_context_vars(self):
        with log_context(game_id="game-1"):
            assert record_context(_record()) == {"game_id": "game-1"}

    def test_record_extras_override(self):
        with log_context(game_id="game-1", player_id="alice"):
            context = record_context(_record(player_id="bob", version=3))
        assert context == {"game_id": "game-1", "player_id": "bob", "version": 3}


class TestFormatters:

    def test_json_output(self):
        with log_context(game_id="game-1"):
            line = JSONFormatter().format(_record(attempt=2))
        data = json.loads(line)
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["game_id"] == "game-1"
        assert data["attempt"] == 2
        assert "source" not in data

    def test_json_errors_carry_source(self):
        data = json.loads(JSONFormatter().format(_record(level=logging.ERROR)))
        assert data["source"]["line"] == 10

    def test_development_output(self):
        line = DevelopmentFormatter().format(_record(game_id="0123456789", version=4))
        assert "[game=01234567, v=4]" in line
        assert line.endswith("golf.test [game=01234567, v=4] - hello")


class TestContextLogger:

    def test_with_context_merges(self):
        log = get_logger("golf.test").with_context(game_id="g").with_context(player_id="p")
        assert log.extra == {"game_id": "g", "player_id": "p"}

    def test_call_extras_are_merged(self):
        log = get_logger("golf.test").with_context(game_id="g")
        _, kwargs = log.process("msg", {"extra": {"attempt": 1}})
        assert kwargs["extra"] == {"game_id": "g", "attempt": 1}
