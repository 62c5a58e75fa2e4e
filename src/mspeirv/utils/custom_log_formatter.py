import logging


class CustomLogFormatter(logging.Formatter):
    """Custom Log Formatter class that inherits Python's logging.Formatter class

    CustomLogFormatter overrides the expected format function in order to check if the log record
    contains either the func_name_override or file_name_override attribute. If the record contains one or either of those
    attributes it sets the records funcName and/or filename attribute.

    It is intended for functions decorated with log_decorator(), whose records
    would otherwise name the decorator's wrapper instead of the decorated function.
    For inline logging calls it behaves exactly the same as logging.Formatter.
    """

    def format(self, record):
        if hasattr(record, "func_name_override"):
            record.funcName = record.func_name_override
        if hasattr(record, "file_name_override"):
            record.filename = record.file_name_override
        return super().format(record)
