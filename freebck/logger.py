import functools
import logging
import sys

from freebck import constants


def __create_logger() -> logging.Logger:
	from freebck.utils.log_utils import LOG_FORMATTER
	logger = logging.Logger(constants.PROJECT_ID)
	handler = logging.StreamHandler(sys.stdout)
	handler.setFormatter(LOG_FORMATTER)
	logger.addHandler(handler)
	return logger


@functools.lru_cache
def get() -> logging.Logger:
	logger = __create_logger()
	logger.setLevel(logging.INFO)
	return logger


def set_debug(debug: bool):
	get().setLevel(logging.DEBUG if debug else logging.INFO)
