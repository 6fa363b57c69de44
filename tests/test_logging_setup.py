import logging

from ocr_benchmark.utils.logging_setup import configure_logging


def test_configure_logging_is_idempotent() -> None:
    logger = configure_logging("debug")
    configure_logging("warning")

    marked = [h for h in logger.handlers if getattr(h, "_ocr_benchmark", False)]
    assert len(marked) == 1
    assert logger.level == logging.WARNING

    for handler in marked:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
