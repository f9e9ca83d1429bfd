"""Logging configuration for the app."""

import logging

from .config import AppConfig

LOGGER_NAME = 'webplayer_tray'


def setup_logging(config: AppConfig) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(config.log_level)
    console_handler.setFormatter(logging.Formatter('%(asctime)s | %(levelname)s | %(message)s'))
    logger.addHandler(console_handler)

    config.log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(config.log_file, encoding='utf-8')
    file_handler.setLevel(config.file_log_level)
    file_handler.setFormatter(
        logging.Formatter(
            '%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d | '
            '%(funcName)s | %(message)s'
        )
    )
    logger.addHandler(file_handler)
    return logger
