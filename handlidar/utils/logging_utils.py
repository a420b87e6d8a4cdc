"""
Logging Utilities

Root logger setup for the replay CLI and batch scripts. Library modules
only ever call ``get_logger(__name__)``; handlers are attached once by the
entry point, either directly or from the ``logging`` section of the config.

Per-frame failures are logged at DEBUG, gesture triggers and session
summaries at INFO.

Usage:
    from handlidar.utils.logging_utils import setup_logging_from_config, get_logger

    setup_logging_from_config(config.logging, use_tqdm=True)
    logger = get_logger(__name__)
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# MediaPipe logs through absl at INFO on every graph start
QUIET_LOGGERS = ('absl',)


def resolve_level(level: Union[int, str, None], default: int = logging.INFO) -> int:
    """Numeric level from an int or a level name such as "debug"; unknown names give ``default``."""
    if level is None or level == "":
        return default
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else default


def _build_handlers(log_file: Optional[str], use_tqdm: bool) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [
        TqdmLoggingHandler() if use_tqdm else logging.StreamHandler(sys.stdout)
    ]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    return handlers


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    use_tqdm: bool = False
) -> logging.Logger:
    """
    Configure the root logger, replacing any existing handlers.

    Args:
        level: Logging level (logging.DEBUG, "debug", ...)
        log_file: Optional file that receives the same records as the console
        format_string: Custom format string
        use_tqdm: Write console records through tqdm so replay progress
            bars stay intact

    Returns:
        The package logger
    """
    level = resolve_level(level)
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []
    for handler in _build_handlers(log_file, use_tqdm):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return logging.getLogger('handlidar')


def setup_logging_from_config(logging_config, verbose: bool = False,
                              use_tqdm: bool = False) -> logging.Logger:
    """
    Configure logging from a ``LoggingConfig``.

    ``verbose`` forces DEBUG regardless of the configured level.
    """
    level = logging.DEBUG if verbose else resolve_level(logging_config.level)
    return setup_logging(level=level,
                         log_file=logging_config.log_file or None,
                         use_tqdm=use_tqdm)


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with ``__name__``."""
    return logging.getLogger(name)


class TqdmLoggingHandler(logging.Handler):
    """Console handler that writes through ``tqdm.write``."""

    def emit(self, record):
        try:
            from tqdm import tqdm
            tqdm.write(self.format(record))
        except Exception:
            self.handleError(record)
