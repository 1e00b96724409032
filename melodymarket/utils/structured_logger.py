"""
Structured logging system for better log analysis and debugging.
Provides JSON-formatted logs with context and metadata.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable logs.

    Usage:
        logger = StructuredLogger("melodymarket")
        logger.info("purchase_recorded",
                    purchase_id="1712",
                    album_id="3",
                    price=15.99)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable console output
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"melodymarket_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Session context (added to all log entries)
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all logs."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        """Format message for console output."""
        parts = [f"[{event}]"]
        for key, value in context.items():
            if key not in ("level", "timestamp"):
                parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        """Write structured log entry to JSON file."""
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, TypeError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _log(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            # Brackets in "[event]" would be eaten as Rich markup.
            self._logger.log(
                level, self._format_message(event, **context), extra={"markup": False}
            )
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        """Log debug event."""
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        """Log info event."""
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        """Log warning event."""
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        """Log error event."""
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class CatalogLogger:
    """Specialized logger for catalog store events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def catalog_seeded(self, namespace: str, album_count: int):
        """Log first-run sample data seeding."""
        self.logger.info(
            "catalog_seeded", namespace=namespace, album_count=album_count
        )

    def user_created(self, user_id: str, name: str, sample_data: bool):
        self.logger.info(
            "user_created", user_id=user_id, name=name, sample_data=sample_data
        )

    def album_saved(self, album_id: str, title: str, track_count: int, replaced: bool):
        """Log an album upsert."""
        self.logger.info(
            "album_saved",
            album_id=album_id,
            title=title,
            track_count=track_count,
            replaced=replaced,
        )

    def purchase_recorded(
        self, purchase_id: str, album_id: str, price: float, repeat: bool
    ):
        """Log a ledger append. ``repeat`` marks an album the user already owned."""
        self.logger.info(
            "purchase_recorded",
            purchase_id=purchase_id,
            album_id=album_id,
            price=round(price, 2),
            repeat=repeat,
        )

    def album_downloaded(self, album_id: str, purchased: bool):
        self.logger.info("album_downloaded", album_id=album_id, purchased=purchased)

    def read_failed(self, key: str, error: str):
        """Log a malformed or unreadable stored value."""
        self.logger.warning("storage_read_failed", key=key, error=error)


class PlaybackLogger:
    """Specialized logger for playback session events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def playback_started(
        self, track_id: str, preview: bool, duration_s: float, generation: int
    ):
        self.logger.info(
            "playback_started",
            track_id=track_id,
            preview=preview,
            duration_s=round(duration_s, 2),
            generation=generation,
        )

    def playback_stopped(self, track_id: str | None, position_s: float, reason: str):
        """Log a teardown of the active sound."""
        self.logger.debug(
            "playback_stopped",
            track_id=track_id,
            position_s=round(position_s, 2),
            reason=reason,
        )

    def load_failed(self, track_id: str, url: str, error: str):
        self.logger.error(
            "playback_load_failed", track_id=track_id, url=url, error=error
        )

    def load_superseded(self, track_id: str, generation: int, current_generation: int):
        """Log a load that finished after a newer play or stop."""
        self.logger.debug(
            "playback_superseded",
            track_id=track_id,
            generation=generation,
            current_generation=current_generation,
        )

    def preview_expired(self, track_id: str, preview_seconds: float):
        self.logger.info(
            "preview_expired", track_id=track_id, preview_seconds=preview_seconds
        )

    def listener_failed(self, listener: str, error: str):
        self.logger.warning("play_state_listener_failed", listener=listener, error=error)


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, CatalogLogger, PlaybackLogger]:
    """
    Create all structured loggers.

    Returns:
        Tuple of (base_logger, catalog_logger, playback_logger)
    """
    base = StructuredLogger(
        "melodymarket.events", log_dir=log_dir, enable_json=enable_json
    )
    catalog = CatalogLogger(base)
    playback = PlaybackLogger(base)

    return base, catalog, playback
