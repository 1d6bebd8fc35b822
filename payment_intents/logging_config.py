import logging
import sys

LOGGER_NAME = "payment_intents"


def configure_logging(level: int | str = logging.INFO) -> logging.Logger:
    # Module loggers are children of LOGGER_NAME; reconfiguring replaces the handler
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    logger.propagate = False
    return logger
