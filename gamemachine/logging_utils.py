"""Process-wide logging for the game machine.

Every worker runs on its own named thread (``asm-radio``, ``asm-gnss``,
``asm-inout``, ``asm-supervisor``, ``asm-blink``), so each record carries
the thread name. Modules log through :func:`logprintf` with the numeric
levels 0=error, 1=warning, 2=info, 3=debug.
"""

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(message)s"
LOG_FILENAME = "asm.log"

_LEVELS = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: logging.DEBUG,
}

logger = logging.getLogger("airsoft")
logger.setLevel(logging.INFO)
if not logger.handlers:
    _console = logging.StreamHandler(sys.stderr)
    _console.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_console)


def set_debug(enabled: bool) -> None:
    logger.setLevel(logging.DEBUG if enabled else logging.INFO)


def logprintf(level: int, fmt: str, *args: object) -> None:
    """printf-style logging; unknown levels are logged as info."""

    lvl = _LEVELS.get(level, logging.INFO)
    if logger.isEnabledFor(lvl):
        logger.log(lvl, fmt % args if args else fmt)


def setup_file_logging(logdir: str, log_filename: str = LOG_FILENAME) -> str:
    """Also log to ``logdir/log_filename``; returns the file path.

    Calling it twice for the same file does not add a second handler.
    """

    os.makedirs(logdir, exist_ok=True)
    if not os.access(logdir, os.W_OK):
        raise PermissionError(f"Cannot write to log directory: {logdir}")

    logfile = os.path.join(logdir, log_filename)
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(logfile):
            return logfile

    fh = logging.FileHandler(logfile)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(fh)
    return logfile
