"""Logging utilities for the Roslyn session client."""

import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from platformdirs import user_log_dir


class LogLevel(str, Enum):
    """Log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


_PRIORITY = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}


class Logger:
    """Tagged logger; every line carries the tags and the time since the previous line."""

    def __init__(self, tags: Optional[Dict[str, Any]] = None):
        self.tags = tags or {}
        self._last_time = datetime.now()

    def _build_message(self, message: Any, extra: Optional[Dict[str, Any]] = None) -> str:
        all_tags = {**self.tags, **(extra or {})}
        prefix = " ".join(f"{k}={v}" for k, v in all_tags.items() if v is not None)

        now = datetime.now()
        diff = int((now - self._last_time).total_seconds() * 1000)
        self._last_time = now

        parts = [
            now.isoformat().split('.')[0],
            f"+{diff}ms",
            prefix,
            str(message) if message is not None else "",
        ]
        return " ".join(filter(None, parts))

    def _log(self, level: LogLevel, message: Any, extra: Optional[Dict[str, Any]]) -> None:
        if Log.should_log(level):
            Log._write(f"{level.value:<5} " + self._build_message(message, extra))

    def debug(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.DEBUG, message, extra)

    def info(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.INFO, message, extra)

    def warn(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.WARN, message, extra)

    def error(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.ERROR, message, extra)

    def tag(self, key: str, value: Any) -> "Logger":
        """Add a tag to this logger."""
        self.tags[key] = value
        return self

    def clone(self) -> "Logger":
        """Create a copy of this logger."""
        return Logger(self.tags.copy())


class Log:
    """Global logging configuration."""

    _current_level = LogLevel.INFO
    _loggers: Dict[str, Logger] = {}
    _log_file: Optional[TextIO] = None
    _log_path = ""

    @classmethod
    def set_level(cls, level: LogLevel) -> None:
        cls._current_level = LogLevel(level)

    @classmethod
    def get_level(cls) -> LogLevel:
        return cls._current_level

    @classmethod
    def should_log(cls, level: LogLevel) -> bool:
        return _PRIORITY[level] >= _PRIORITY[cls._current_level]

    @classmethod
    def file(cls) -> str:
        """Get the current log file path."""
        return cls._log_path

    @classmethod
    def init(cls, print_logs: bool = False, level: Optional[LogLevel] = None) -> None:
        """
        Initialize logging.

        With ``print_logs`` lines go to stderr, otherwise to a fresh file in
        the user log directory. Only the ten most recent log files are kept.
        """
        if level:
            cls.set_level(level)

        if print_logs:
            return

        log_dir = Path(user_log_dir("roslyn-session"))
        log_dir.mkdir(parents=True, exist_ok=True)
        cls._cleanup_logs(log_dir)

        timestamp = datetime.now().isoformat().split('.')[0].replace(':', '')
        cls._log_path = str(log_dir / f"{timestamp}.log")
        cls._log_file = open(cls._log_path, 'w', encoding='utf-8')

    @classmethod
    def _cleanup_logs(cls, log_dir: Path) -> None:
        log_files = sorted(log_dir.glob("*.log"), key=lambda f: f.stat().st_mtime, reverse=True)
        for old_file in log_files[10:]:
            try:
                old_file.unlink()
            except OSError:
                pass

    @classmethod
    def _write(cls, message: str) -> None:
        full_message = message + "\n"
        if cls._log_file:
            cls._log_file.write(full_message)
            cls._log_file.flush()
        else:
            sys.stderr.write(full_message)

    @classmethod
    def create(cls, tags: Optional[Dict[str, Any]] = None) -> Logger:
        """Create a logger; loggers tagged with a ``service`` are cached per service."""
        tags = tags or {}

        service = tags.get("service")
        if service and isinstance(service, str):
            cached = cls._loggers.get(service)
            if cached:
                return cached

        logger = Logger(tags)

        if service and isinstance(service, str):
            cls._loggers[service] = logger

        return logger

    @classmethod
    def close(cls) -> None:
        if cls._log_file:
            cls._log_file.close()
            cls._log_file = None
