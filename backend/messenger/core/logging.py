import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach a stream handler to the root logger (no-op if one is already set up)."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
