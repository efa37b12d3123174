"""Utilities shared across dpr."""

from ._log_files import ServiceLogFile, format_log_line
from ._logging import LogFormatType, create_logger, create_null_logger

__all__ = [
    "LogFormatType",
    "ServiceLogFile",
    "create_logger",
    "create_null_logger",
    "format_log_line",
]
