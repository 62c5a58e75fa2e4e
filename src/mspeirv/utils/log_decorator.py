"""A module that defines a timing decorator for the global mspeirv logger."""

import logging
import os
from datetime import datetime
from functools import wraps
from inspect import getframeinfo, stack


def log_decorator(_func=None):
    """Outermost log decorator function.

    log_decorator is the function used to wrap a function the user wishes to log.
    This outermost function allows the user to either use @log_decorator() convention
    or call log_decorator() and pass the function they wish to wrap.

    Parameters
    ----------
    _func : function, optional
        log_decorator can be called as a function and passed the function it wraps. Defaults to None.
    """

    def log_decorator_info(func):
        @wraps(func)
        def log_decorator_wrapper(*args, **kwargs):
            """Log the call, its execution time and any exception raised."""
            logger = logging.getLogger("mspeirv")

            # array arguments are summarised by their shape
            formatted_arguments = ", ".join(
                [_summarise(a) for a in args]
                + [f"{k}={_summarise(v)}" for k, v in kwargs.items()]
            )
            py_file_caller = getframeinfo(stack()[1][0])
            extra_args = {
                "func_name_override": func.__name__,
                "file_name_override": os.path.basename(
                    py_file_caller.filename
                ),
            }

            start_time = datetime.now()
            logger.debug(
                f"Arguments: {formatted_arguments} - Begin function",
                extra=extra_args,
            )
            try:
                value = func(*args, **kwargs)
            except Exception as ex:
                logger.error(f"Exception: {ex}", extra=extra_args)
                raise
            logger.info(
                f"Execution Time: {datetime.now() - start_time}",
                extra=extra_args,
            )
            return value

        return log_decorator_wrapper

    if _func is None:
        return log_decorator_info
    else:
        return log_decorator_info(_func)


def _summarise(value) -> str:
    if hasattr(value, "shape") and hasattr(value, "dtype"):
        return f"{type(value).__name__}(shape={tuple(value.shape)})"
    return type(value).__name__
