"""
Main entry point for the Flat Notifier system.
"""

import asyncio
import sys
from typing import Optional

from .orchestrator import ApplicationOrchestrator
from .utils.logging import get_logger, setup_logging


async def async_main(config_path: Optional[str] = None) -> int:
    """Async main application entry point."""
    # Console and default files until the configured log settings are known
    setup_logging()
    logger = get_logger("main")

    logger.info("Starting Flat Notifier", extra={"config_path": config_path})

    orchestrator = ApplicationOrchestrator(config_path)
    if not await orchestrator.run():
        return 1
    return 0


def main():
    """Main application entry point."""
    config_path = sys.argv[1] if len(sys.argv) > 1 else None

    try:
        exit_code = asyncio.run(async_main(config_path))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        exit_code = 0

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
