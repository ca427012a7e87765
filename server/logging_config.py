"""
Structured logging configuration for the Golf duel engine.

Provides:
- JSONFormatter for production (one JSON object per line)
- DevelopmentFormatter for local runs (colored, compact)
- log_context() to tag every record emitted while handling an action
  with the game and player it concerns
- ContextLogger for per-client loggers that carry their own context
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Iterator, Optional

# Action-scoped context, set by log_context()
game_id_var: ContextVar[Optional[str]] = ContextVar("game_id", default=None)
player_id_var: ContextVar[Optional[str]] = ContextVar("player_id", default=None)

# Record attributes copied into the output when present
CONTEXT_FIELDS = ("game_id", "player_id", "version", "attempt")


@contextmanager
def log_context(game_id: Optional[str] = None, player_id: Optional[str] = None) -> Iterator[None]:
    """
    Tag log records emitted inside the block with a game and player.

    Args:
        game_id: Game the block acts on.
        player_id: Player the block acts for.

    Usage:
        with log_context(game_id="abc", player_id="p1"):
            await client.draw_card("deck")
    """
    game_token = game_id_var.set(game_id)
    player_token = player_id_var.set(player_id)
    try:
        yield
    finally:
        player_id_var.reset(player_token)
        game_id_var.reset(game_token)


def record_context(record: logging.LogRecord) -> dict:
    """
    Collect the context of a record.

    Explicit extras on the record win over the context vars.

    Args:
        record: Log record being formatted.

    Returns:
        Dict of the context fields that are set.
    """
    context = {
        "game_id": game_id_var.get(),
        "player_id": player_id_var.get(),
    }
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = value
    return {k: v for k, v in context.items() if v is not None}


class JSONFormatter(logging.Formatter):
    """Format records as single-line JSON for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a record as one JSON object.

        Args:
            record: Log record to format.

        Returns:
            JSON string with timestamp, level, logger, message and context,
            plus source location for errors.
        """
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }

        if record.levelno >= logging.ERROR:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Colored one-line output with short game/player ids."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    LABELS = {"game_id": "game", "player_id": "player", "version": "v", "attempt": "try"}

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a record as one colored line.

        Args:
            record: Log record to format.

        Returns:
            "HH:MM:SS.mmm LEVEL logger [context] - message", followed by
            the traceback if there is one.
        """
        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        parts = []
        for name, value in record_context(record).items():
            if name in ("game_id", "player_id"):
                value = str(value)[:8]
            parts.append(f"{self.LABELS[name]}={value}")
        context = f" [{', '.join(parts)}]" if parts else ""

        output = f"{timestamp} {color}{record.levelname:8}{reset} {record.name}{context} - {record.getMessage()}"
        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)
        return output


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        environment: "production" logs JSON, anything else is human-readable.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if environment == "production" else DevelopmentFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet chatty libraries
    for name in ("uvicorn.access", "uvicorn.error", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, environment={environment}")


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that attaches fixed context to every record.

    Usage:
        log = get_logger(__name__).with_context(game_id="abc", player_id="p1")
        log.warning("Stale write", extra={"attempt": 2})
    """

    def __init__(self, logger: logging.Logger, extra: Optional[dict] = None):
        """
        Args:
            logger: Underlying logger.
            extra: Context attached to every record.
        """
        super().__init__(logger, extra or {})

    def with_context(self, **kwargs) -> "ContextLogger":
        """
        Create a new logger with additional context.

        Args:
            **kwargs: Context key-value pairs to add.

        Returns:
            New ContextLogger with combined context.
        """
        return ContextLogger(self.logger, {**self.extra, **kwargs})

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        """
        Merge the adapter's context into the record extras.

        Args:
            msg: Log message.
            kwargs: Logging call keyword arguments.

        Returns:
            The message and kwargs with merged extras. Per-call extras
            win over the adapter's context.
        """
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (typically __name__).

    Returns:
        ContextLogger instance.
    """
    return ContextLogger(logging.getLogger(name))
