# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Centralised logging configuration.

Levels, handlers and formats live in etc/logging.conf.  This module resolves
the log-file path, patches it into the config text, and applies it via the
standard-library fileConfig loader.

Import the ready-made logger anywhere:
    from core.logger import logger
"""

import configparser
import logging
import logging.config
from pathlib import Path

# project root: backend/core/logger.py  →  ../../  →  project/
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_LOG_DIR = _PROJECT_ROOT / "log"
_LOG_FILE = _LOG_DIR / "app.log"
_LOGGING_CONF = _PROJECT_ROOT / "etc" / "logging.conf"

_LOG_DIR.mkdir(exist_ok=True)


def _load_config() -> configparser.RawConfigParser:
    """
    Read logging.conf with the ``%(log_file)s`` placeholder replaced.

    RawConfigParser is required: the format strings contain %(asctime)s etc.
    which ConfigParser would try to interpolate and fail on.
    """
    raw = _LOGGING_CONF.read_text(encoding="utf-8")
    # fileConfig evaluates handler args as Python literals, so the path must
    # survive repr() on every platform.
    raw = raw.replace("%(log_file)s", repr(str(_LOG_FILE))[1:-1])
    parser = configparser.RawConfigParser()
    parser.read_string(raw)
    return parser


logging.config.fileConfig(_load_config(), disable_existing_loggers=False)

logger = logging.getLogger("maskportal")
