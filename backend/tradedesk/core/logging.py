import logging
import sys

# Libraries that log every statement or connection at INFO.
_QUIET_LOGGERS = ("sqlalchemy", "aiosqlite", "asyncpg", "opentelemetry")


def setup_logging(level: int = logging.INFO) -> None:
    """Send service logs to stdout; repeated calls only adjust the level."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if any(getattr(handler, "_tradedesk", False) for handler in root_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        )
    )
    handler._tradedesk = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
