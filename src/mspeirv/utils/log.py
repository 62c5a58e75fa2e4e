"""Module that contains relevant functions for logging in MSPEIRV.

use_logging is the primary function that sets up and configures the global mspeirv logger.
"""

import datetime
import logging
import os
import sys
from typing import Literal

from .custom_log_formatter import CustomLogFormatter

logger = logging.getLogger("mspeirv")

LOG_LEVELS = {
    "none": logging.CRITICAL + 1,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARN,
    "warning": logging.WARN,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def use_logging(
    level: Literal[
        "none", "debug", "info", "warn", "error", "critical"
    ] = "info",
    output: Literal["file", "console", "both"] = "console",
    log_path: str = "./logs",
) -> None:
    """Set or disable logging within the mspeirv package.

    Logger instance can be retrieved from anywhere using
    logging.getLogger("mspeirv").

    Parameters
    ----------
    level : str, optional
        Log level desired. Choices from "none", "debug", "info", "warn", "error" and "critical". Defaults to "info".
    output : str, optional
        Output for logs. Choices from "console", "file", and "both". Defaults to "console".
    log_path : str, optional
        folder path to store log files, only created when logging to a file. Defaults to "./logs".

    Raises
    ------
    ValueError
        if `level` or `output` is not one of the listed choices.

    Notes
    -----
    Log level of NONE is considered CRITICAL + 1.
    """
    if level.lower() not in LOG_LEVELS:
        raise ValueError(
            f"Did not recognize {level} as a log level, choose from "
            f"{list(LOG_LEVELS)}"
        )
    if output.lower() not in ("file", "console", "both"):
        raise ValueError(
            f"Did not recognize {output} as an output, choose from "
            "file, console or both"
        )
    log_level = LOG_LEVELS[level.lower()]
    # clear logger handlers to avoid duplication in outputs
    logger.handlers.clear()
    logger.setLevel(log_level)
    formatter = CustomLogFormatter(
        "[%(levelname)s] %(asctime)s - %(filename)s - %(funcName)s: %(message)s",
        datefmt="%Y-%m-%d_%H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    if output.lower() in ("console", "both"):
        handlers.append(logging.StreamHandler(sys.stdout))
    if output.lower() in ("file", "both"):
        os.makedirs(log_path, exist_ok=True)
        now_string = f"{datetime.datetime.now():%Y-%m-%d_%Hh-%Mm-%Ss}"
        handlers.append(
            logging.FileHandler(os.path.join(log_path, f"{now_string}.log"))
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        logger.addHandler(handler)
    logger.debug(f"Logging at level {level.upper()} to {output}.")
