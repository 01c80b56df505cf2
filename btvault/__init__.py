import os
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

__version__ = "0.4.2"

# Load environment variables early so storage/logging settings see .env values
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _detect_build_version() -> str:
    explicit = os.getenv("BTVAULT_VERSION")
    if explicit:
        return explicit
    return __version__


APP_VERSION = _detect_build_version()

logger.debug("btvault {} loaded", APP_VERSION)
