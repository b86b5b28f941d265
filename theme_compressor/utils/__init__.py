# theme_compressor/utils/__init__.py
"""
Utilities package
Logging, exceptions and small helpers shared by the pipeline stages
"""

from .logger import (
    get_logger,
    configure_from_settings,
    setup_logging,
    OperationLogger,
    create_operation_logger,
    get_current_log_file
)
from .helpers import (
    parse_bitrate,
    format_bitrate,
    format_file_size,
    safe_unlink,
    ensure_directory,
    new_job_id,
    is_blank
)
from .exceptions import (
    ThemeCompressorError,
    ConfigError,
    ValidationError,
    StagingError,
    TranscodeError,
    EmbedError,
    ResolutionError,
    NotConfiguredError
)

__all__ = [
    # Logger exports
    'get_logger',
    'configure_from_settings',
    'setup_logging',
    'OperationLogger',
    'create_operation_logger',
    'get_current_log_file',

    # Helper exports
    'parse_bitrate',
    'format_bitrate',
    'format_file_size',
    'safe_unlink',
    'ensure_directory',
    'new_job_id',
    'is_blank',

    # Exception exports
    'ThemeCompressorError',
    'ConfigError',
    'ValidationError',
    'StagingError',
    'TranscodeError',
    'EmbedError',
    'ResolutionError',
    'NotConfiguredError',
]
