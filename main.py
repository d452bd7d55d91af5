"""Main entry point for running the Contendo platform server."""

import asyncio
import sys

from loguru import logger

from contendo.api.server import LifecycleManager
from contendo.core.config import get_settings
from contendo.core.logging import setup_logging


def main() -> None:
    """Run the server until it shuts down and exit with its exit code."""
    settings = get_settings()

    # Setup logging first
    setup_logging(settings)

    logger.info(
        "Starting Contendo Business Management Platform on http://{}:{} ({} mode)",
        settings.api_host,
        settings.port,
        settings.environment,
    )

    manager = LifecycleManager(settings)
    sys.exit(asyncio.run(manager.run()))


if __name__ == "__main__":
    main()
