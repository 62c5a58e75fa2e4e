"""Utility package to contain all utility modules"""

import logging

from . import log
from .custom_log_formatter import CustomLogFormatter
from .log import use_logging
from .log_decorator import log_decorator

# Fetching the global logger called mspeirv
logger = logging.getLogger("mspeirv")

__all__ = ["log", "log_decorator", "use_logging", "CustomLogFormatter", "logger"]
