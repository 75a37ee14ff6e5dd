"""
Service entry point.

    python -m footy_maint
    footy-maint

Exit code 0 after a graceful shutdown, 1 on any unhandled failure.
"""

import logging
import sys
from collections.abc import Mapping

from .config import load_config
from .daemon import boot
from .errors import ConfigError

logger = logging.getLogger("footy_maint")


def main(environ: Mapping[str, str] | None = None) -> int:
    try:
        config = load_config(environ)
    except ConfigError as e:
        logger.critical(f"Refusing to start: {e.message}", extra=e.to_log_record())
        return 1

    try:
        daemon = boot(config)
        daemon.run()
    except Exception:
        logger.exception("Maintenance service terminated unexpectedly")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
