"""Process-wide logging setup."""

import logging

from dgvault.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None) -> None:
    """Set the root level from ``LOG_LEVEL`` and install a stream handler once."""
    level_name = (level or settings.LOG_LEVEL).upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # web3 logs every RPC round trip at DEBUG
    logging.getLogger("web3").setLevel(max(root.level, logging.INFO))
