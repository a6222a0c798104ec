"""
Logging setup for the stream-control service.

Everything logs under the "stream-control" logger to stderr. LOG_LEVEL
(default INFO) sets what reaches the console. httpx and the aiohttp access
log are held at WARNING, otherwise every Helix call and every overlay
keepalive request would show up at INFO.
"""

import logging
import os
import sys

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
QUIET_LIBRARIES = ("httpx", "aiohttp.access")

logger = logging.getLogger("stream-control")
logger.setLevel(logging.DEBUG)

if not logger.handlers:
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(console)

for name in QUIET_LIBRARIES:
    logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = "") -> logging.Logger:
    """Child of the service logger, e.g. get_logger("obs_client")."""
    return logger.getChild(name) if name else logger
