import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger("ocr_benchmark")
    logger.setLevel(level.upper())

    if not any(getattr(handler, "_ocr_benchmark", False) for handler in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._ocr_benchmark = True
        logger.addHandler(handler)

    return logger
