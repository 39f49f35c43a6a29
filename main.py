"""
Entry point for the coursegate service.

Run with:
    uvicorn main:app --reload --port 8100
    python main.py
    coursegate serve
"""
import sys
from pathlib import Path

from loguru import logger

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

import uvicorn
from config import get_settings
from coursegate.api.main import app

settings = get_settings()


def configure_logging() -> None:
    """Route loguru output to stderr and, when configured, a rotating log file."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB", retention=5)


if __name__ == "__main__":
    configure_logging()
    uvicorn.run(
        "coursegate.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
