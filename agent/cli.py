"""
Metrics Agent - CLI.

Usage:
    python -m agent.cli -a localhost:8080 -p 2 -r 10 -k secret
    ADDRESS=localhost:8080 POLL_INTERVAL=2 metrics-agent
"""

import asyncio
import logging
import sys
from typing import List, Optional

from core.config import load_agent_config
from core.exceptions import ConfigurationError
from core.logging_config import setup_logging

from .runner import Agent


logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> None:
    """Run the agent until SIGINT/SIGTERM."""
    try:
        config = load_agent_config(argv)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(config.log_level)

    try:
        asyncio.run(Agent(config).run())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
