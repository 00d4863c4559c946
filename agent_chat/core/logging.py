import logging

_QUIET_LOGGERS = ("aiosqlite", "httpx", "httpcore", "openai")


def configure_logging(log_level: str) -> None:
    """Configure process-wide logging for the chat backend."""

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # Driver-level loggers emit one record per statement at DEBUG.
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
