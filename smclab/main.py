"""Entry point — starts the SMC Lab API."""

import sys

import uvicorn
from loguru import logger

from smclab.config import settings


def configure_logging() -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=settings.log_level,
    )
    logger.add(
        settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
        level="DEBUG",
    )


def main():
    configure_logging()

    logger.info("=" * 60)
    logger.info("  SMC Lab — Smart Money Concepts structure analysis")
    logger.info("=" * 60)
    logger.info(f"API: {settings.api_url}")

    from smclab.api.main import create_app

    app = create_app()
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
