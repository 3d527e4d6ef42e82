"""
Logging setup for the SkillSwap API.

``setup_logging`` attaches a single console handler to the root logger.
Modules obtain their own logger with ``logging.getLogger(__name__)`` and
never configure handlers themselves.
"""

import logging


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once.

    Calling this again (tests build the app many times) is a no-op once a
    handler is attached.
    """
    logger = logging.getLogger()
    if logger.handlers:
        return

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
