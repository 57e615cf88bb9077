"""
Logging setup for plaxo-sync.

Console output goes to stderr and is colored by level when stderr is a
terminal. A daily log file under the configuration directory records every
message down to DEBUG, so a failed sync can be diagnosed afterwards even
when the console only showed warnings.

Environment:
    PLAXO_SYNC_LOG_LEVEL: Console level name (default: INFO)
    PLAXO_SYNC_DEBUG: "1", "true" or "yes" forces DEBUG
    PLAXO_SYNC_LOG_FILE: Explicit log file, or "none" to disable the file
"""

import logging
import os
import sys
from datetime import date
from pathlib import Path
from typing import IO, Optional

import click

from plaxo_sync.utils.paths import resolve_config_dir

# Console format for normal runs
CONSOLE_FORMAT = "%(levelname)s: %(message)s"

# Format for log files and --verbose console output
DETAILED_FORMAT = (
    "%(asctime)s %(levelname)-8s %(name)s [%(filename)s:%(lineno)d] %(message)s"
)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Environment variable names
ENV_LOG_LEVEL = "PLAXO_SYNC_LOG_LEVEL"
ENV_DEBUG = "PLAXO_SYNC_DEBUG"
ENV_LOG_FILE = "PLAXO_SYNC_LOG_FILE"

ROOT_LOGGER_NAME = "plaxo_sync"

# Daily log files are named plaxo_sync_YYYYMMDD.log
LOG_FILE_PREFIX = "plaxo_sync_"
LOG_DIR_NAME = "logs"
DEFAULT_LOG_RETENTION = 10

_TRUE_VALUES = ("1", "true", "yes")
_DISABLED_VALUES = ("", "none", "disabled")

logger = logging.getLogger(__name__)


def get_default_log_dir(config_dir: Optional[Path] = None) -> Path:
    """Return the log directory inside the configuration directory."""
    return resolve_config_dir(config_dir) / LOG_DIR_NAME


def log_file_name(day: Optional[date] = None) -> str:
    """Name of the log file for a day (today by default)."""
    day = day or date.today()
    return f"{LOG_FILE_PREFIX}{day:%Y%m%d}.log"


def _is_color_terminal(stream: IO[str]) -> bool:
    # https://no-color.org/
    if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name and message with click.style()."""

    LEVEL_COLORS = {
        logging.DEBUG: "cyan",
        logging.INFO: "green",
        logging.WARNING: "yellow",
        logging.ERROR: "red",
        logging.CRITICAL: "magenta",
    }

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
        stream: Optional[IO[str]] = None,
    ):
        """
        Args:
            fmt: Log message format string
            datefmt: Date format string
            use_colors: Color output if the stream is a color terminal
            stream: Stream the output is written to (default: stderr)
        """
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and _is_color_terminal(stream or sys.stderr)

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if not self.use_colors or color is None:
            return super().format(record)

        # Style a copy; the file handler sees the same record
        styled = logging.makeLogRecord(record.__dict__)
        styled.levelname = click.style(record.levelname, fg=color, bold=True)
        styled.msg = click.style(str(record.msg), fg=color)
        return super().format(styled)


def get_log_level_from_env() -> int:
    """
    Determine the console log level from the environment.

    PLAXO_SYNC_DEBUG wins over PLAXO_SYNC_LOG_LEVEL. Unknown level names
    fall back to INFO.
    """
    if os.environ.get(ENV_DEBUG, "").lower() in _TRUE_VALUES:
        return logging.DEBUG

    level = logging.getLevelName(os.environ.get(ENV_LOG_LEVEL, "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def get_log_file_path(log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Return the log file to write, or None if file logging is disabled.

    PLAXO_SYNC_LOG_FILE overrides the daily file in log_dir (default:
    config dir/logs).
    """
    override = os.environ.get(ENV_LOG_FILE)
    if override is not None:
        if override.lower() in _DISABLED_VALUES:
            return None
        return Path(override)

    return (log_dir or get_default_log_dir()) / log_file_name()


def _console_handler(level: int, verbose: bool, use_colors: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    fmt = DETAILED_FORMAT if verbose else CONSOLE_FORMAT
    if use_colors:
        handler.setFormatter(ColoredFormatter(fmt, DATE_FORMAT, stream=sys.stderr))
    else:
        handler.setFormatter(logging.Formatter(fmt, DATE_FORMAT))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(DETAILED_FORMAT, DATE_FORMAT))
    return handler


def _has_file_handler(target: logging.Logger) -> bool:
    return any(isinstance(h, logging.FileHandler) for h in target.handlers)


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the plaxo_sync logger hierarchy.

    Replaces any handlers installed by an earlier call, so it is safe to
    call once per CLI invocation.

    Args:
        level: Console level. If None, read from the environment.
        verbose: Log DEBUG to the console, with source locations.
        log_dir: Directory for the daily log file (default: config dir/logs).
            PLAXO_SYNC_LOG_FILE still overrides it.
        log_file: Exact log file path; overrides log_dir.
        enable_file_logging: If False, only log to the console.
        use_colors: Color console output when stderr is a terminal.

    Returns:
        The package root logger
    """
    if verbose:
        level = logging.DEBUG
    elif level is None:
        level = get_log_level_from_env()

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)
    root.propagate = False
    root.addHandler(_console_handler(level, verbose, use_colors))

    if not enable_file_logging:
        return root

    if log_file is None:
        log_file = get_log_file_path(log_dir)
    if log_file is None:
        return root

    try:
        root.addHandler(_file_handler(log_file))
    except OSError as e:
        root.warning(f"Could not open log file {log_file}: {e}")
        return root

    # The logger must pass DEBUG records on for the file to see them
    root.setLevel(logging.DEBUG)
    root.debug(f"Log file: {log_file}")
    return root


def cleanup_old_logs(
    log_dir: Optional[Path] = None, keep_count: int = DEFAULT_LOG_RETENTION
) -> int:
    """
    Delete all but the newest daily log files.

    Args:
        log_dir: Directory holding the log files (default: config dir/logs)
        keep_count: Number of files to keep; 0 keeps everything.

    Returns:
        Number of files deleted
    """
    log_dir = log_dir or get_default_log_dir()
    if keep_count <= 0 or not log_dir.is_dir():
        return 0

    logs = sorted(
        log_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    deleted = 0
    for path in logs[keep_count:]:
        try:
            path.unlink()
        except OSError as e:
            logger.debug(f"Could not delete old log file {path}: {e}")
        else:
            deleted += 1
    return deleted


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the plaxo_sync hierarchy."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def set_log_level(level: int) -> None:
    """
    Change the console level at runtime.

    File handlers keep recording DEBUG.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(level)
    root.setLevel(logging.DEBUG if _has_file_handler(root) else level)


__all__ = [
    "setup_logging",
    "get_logger",
    "set_log_level",
    "cleanup_old_logs",
    "ColoredFormatter",
    "get_log_level_from_env",
    "get_log_file_path",
    "get_default_log_dir",
    "log_file_name",
    "CONSOLE_FORMAT",
    "DETAILED_FORMAT",
    "DATE_FORMAT",
]
