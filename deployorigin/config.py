"""Runtime configuration, read from the environment at import time."""

import os

ORIGIN_FILE_ENVVAR = "DEPLOYORIGIN_FILE"
LOG_LEVEL_ENVVAR = "DEPLOYORIGIN_LOG_LEVEL"

DEFAULT_ORIGIN_FILE = os.environ.get(ORIGIN_FILE_ENVVAR, "")
DEFAULT_LOG_LEVEL = os.environ.get(LOG_LEVEL_ENVVAR, "WARNING").upper()

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
