"""
Logging Configuration

Configures the root logger once at application start. Modules log through
``logging.getLogger(__name__)``.
"""

import logging
import sys

from edubeast.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Attach a stdout handler to the root logger at the configured level."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # SQLAlchemy echo is controlled by DATABASE_ECHO, not LOG_LEVEL
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
