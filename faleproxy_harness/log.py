"""
Console logging for the Faleproxy harness

Colored one-line status messages routed through the stdlib logging module.
"""

import logging

LOGGER_NAME = "faleproxy-harness"

logger = logging.getLogger(LOGGER_NAME)


# ANSI Colors for output
class Colors:
    RED = '\033[0;31m'
    GREEN = '\033[0;32m'
    YELLOW = '\033[1;33m'
    NC = '\033[0m'  # No Color


def configure_logging(level: int = logging.INFO):
    """Install the harness log format on the root logger"""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


class HarnessLogger:
    """Colored status lines for harness lifecycle events"""

    @staticmethod
    def info(message: str):
        logger.info(f"{Colors.GREEN}✓{Colors.NC} {message}")

    @staticmethod
    def warn(message: str):
        logger.warning(f"{Colors.YELLOW}⚠{Colors.NC} {message}")

    @staticmethod
    def error(message: str):
        logger.error(f"{Colors.RED}✗{Colors.NC} {message}")

    @staticmethod
    def test(message: str):
        logger.info(f"{Colors.YELLOW}=== {message} ==={Colors.NC}")
