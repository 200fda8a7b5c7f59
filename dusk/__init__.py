from __future__ import annotations

from loguru import logger

__version__ = "0.1.0"

# Library modules log through loguru; hosts opt in with logger.enable("dusk").
logger.disable("dusk")
