from __future__ import annotations

import asyncio
import sys

from loguru import logger
from pydantic import ValidationError

from services.config_service import ConfigError, ConfigService, load_settings, require_credentials
from services.orchestrator import EngineOrchestrator


LOG_FORMAT = "YVAINE:[{time:YYYY-MM-DD HH:mm:ss}] {level: <7} {message}"


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stdout, format=LOG_FORMAT, level=level.upper())


async def main() -> int:
    configure_logging()
    try:
        settings = load_settings()
        configure_logging(settings.LOG_LEVEL)
        config = ConfigService(settings).load()
        require_credentials(config)
    except (ConfigError, ValidationError) as exc:
        logger.error("Startup aborted: {}", exc)
        return 1

    orchestrator = EngineOrchestrator(config)
    logger.info("Bot starting")
    try:
        await orchestrator.run()
    finally:
        logger.info("Bot shutdown")
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
