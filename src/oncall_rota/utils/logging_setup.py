"""
Rota Engine Logging
===================
Console and rotating-file logging for the ``oncall_rota`` package, plus
helpers the engine uses to narrate a generation run.

Levels:
    TRACE (5): Function entry/exit, per-candidate exclusions
    DEBUG (10): Candidate scores, constraint details
    INFO (20): Progress, key decisions
    WARNING (30): Unfilled slots, rejected swaps
    ERROR (40): Malformed input, exceptions
"""
import functools
import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import IO, Any, Callable, Optional, Union

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

ROOT_LOGGER = "oncall_rota"

CONSOLE_FORMAT = "[%(asctime)s] %(levelname)-7s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"


class ConsoleFormatter(logging.Formatter):
    """
    Console formatter that colours the level name.

    Colour is only applied when the target stream is a terminal, so piped
    CLI output and captured test output stay plain.
    """

    LEVEL_COLORS = {
        TRACE: "90",             # Gray
        logging.DEBUG: "36",     # Cyan
        logging.INFO: "32",      # Green
        logging.WARNING: "33",   # Yellow
        logging.ERROR: "31",     # Red
        logging.CRITICAL: "1;35",
    }

    def __init__(self, stream: Optional[IO] = None):
        super().__init__(CONSOLE_FORMAT, datefmt="%H:%M:%S")
        isatty = getattr(stream, "isatty", None)
        self.use_color = bool(isatty and isatty())

    def format(self, record: logging.LogRecord) -> str:
        code = self.LEVEL_COLORS.get(record.levelno)
        if not (self.use_color and code):
            return super().format(record)
        # Colour a copy so file handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"\033[{code}m{record.levelname:<7}\033[0m"
        return super().format(record)


def parse_level(level: Union[str, int, None], default: int = logging.INFO) -> int:
    """Resolve a level name (``"trace"``, ``"DEBUG"``...) or number."""
    if level is None:
        return default
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else default


def _console_handler(level: int, stream: IO) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(ConsoleFormatter(stream))
    return handler


def _file_handler(path: Path, level: int, max_bytes: int, backup_count: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console_level: Optional[str] = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    stream: Optional[IO] = None,
) -> logging.Logger:
    """
    Configure the ``oncall_rota`` logger. Safe to call repeatedly; each
    call replaces the handlers installed by the previous one.

    Args:
        level: File log level; also the console level unless overridden
        log_file: Rotating log file path (None = console only)
        console_level: Console log level
        max_bytes: File size that triggers rotation
        backup_count: Rotated files to keep
        stream: Console stream (default stdout)

    Returns:
        The package root logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(TRACE)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_level = parse_level(level)
    cons_level = parse_level(console_level, default=file_level)

    logger.addHandler(_console_handler(cons_level, stream or sys.stdout))
    if log_file:
        logger.addHandler(_file_handler(Path(log_file), file_level, max_bytes, backup_count))

    logger.info(
        f"Logging to console at {logging.getLevelName(cons_level)}"
        + (f", {log_file} at {logging.getLevelName(file_level)}" if log_file else "")
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, e.g. ``get_logger("oncall_rota.engine.metrics")``."""
    return logging.getLogger(name)


def _summarize(value: Any, limit: int = 60) -> str:
    # Long collections (roster, requirements) are shown by size only
    if isinstance(value, (list, tuple, set, frozenset, dict)) and len(value) > 3:
        kinds = sorted({type(v).__name__ for v in value})
        return f"<{type(value).__name__} of {len(value)} {'/'.join(kinds)}>"
    text = repr(value)
    return text if len(text) <= limit else text[: limit - 3] + "..."


def log_function_call(func: Callable) -> Callable:
    """
    Trace a function's arguments, result and duration at TRACE level.
    Exceptions are logged at ERROR and re-raised.
    """
    logger = logging.getLogger(func.__module__)
    name = func.__name__

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        tracing = logger.isEnabledFor(TRACE)
        if tracing:
            parts = [_summarize(a) for a in args] + [f"{k}={_summarize(v)}" for k, v in kwargs.items()]
            logger.log(TRACE, f"→ {name}({', '.join(parts)})")
        started = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(f"✖ {name} raised {type(e).__name__}: {e}")
            raise
        if tracing:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.log(TRACE, f"← {name} returned: {_summarize(result)} [{elapsed_ms:.1f} ms]")
        return result

    return wrapper


def log_constraint(
    logger: logging.Logger,
    name: str,
    satisfied: bool,
    details: str = "",
    level: int = logging.DEBUG,
):
    """
    Log a rule check as ``✓ name`` or ``✗ name``. Failures go to WARNING.

    The rule name and outcome are attached to the record as ``constraint``
    and ``satisfied`` for handlers that filter on them.
    """
    msg = f"{'✓' if satisfied else '✗'} {name}"
    if details:
        msg += f" ({details})"
    extra = {"constraint": name, "satisfied": satisfied}
    logger.log(level if satisfied else logging.WARNING, msg, extra=extra)


class EngineLogger:
    """
    Narrates a generation run: phases, steps, and one nested block per
    requirement with its candidate details.
    """

    def __init__(self, name: str = "oncall_rota.engine"):
        self.logger = logging.getLogger(name)
        self.indent = 0

    def _pad(self, extra: int = 0) -> str:
        return "  " * (self.indent + extra)

    def phase(self, name: str):
        self.logger.info(f" {name} ".center(60, "="))

    def step(self, description: str):
        self.logger.info(f"{self._pad()}▸ {description}")

    def detail(self, key: str, value: Any):
        self.logger.debug(f"{self._pad(1)}{key}: {value}")

    def constraint(self, name: str, satisfied: bool, details: str = ""):
        log_constraint(self.logger, name, satisfied, details)

    def enter(self, context: str):
        self.logger.debug(f"{self._pad()}┌─ {context}")
        self.indent += 1

    def exit(self, context: str = ""):
        self.indent = max(0, self.indent - 1)
        if context:
            self.logger.debug(f"{self._pad()}└─ {context}")
