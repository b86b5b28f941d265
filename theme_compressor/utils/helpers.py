"""
Utility functions and helpers for theme-compressor
Bitrate parsing, size formatting and file cleanup shared by the pipeline stages
"""

import re
import uuid
from pathlib import Path
from typing import Optional, Union

from .logger import get_logger


logger = get_logger(__name__)

# Accepts "128k", "128K", "128 kbps", "128"
_BITRATE_PATTERN = re.compile(r'^\s*(\d+)\s*(?:k|kb|kbps)?\s*$', re.IGNORECASE)


def parse_bitrate(value: Optional[str], default: int = 128) -> int:
    """
    Parse a bitrate string such as "128k" into kilobits per second

    Args:
        value: Raw value from the request (may be None or garbage)
        default: Bitrate returned when the value is absent, unparseable or not positive

    Returns:
        Positive bitrate in kbps
    """
    if value is None:
        return default

    match = _BITRATE_PATTERN.match(str(value))
    if not match:
        logger.debug(f"Unparseable bitrate {value!r}, using {default}k")
        return default

    kbps = int(match.group(1))
    if kbps <= 0:
        return default
    return kbps


def format_bitrate(kbps: int) -> str:
    """Format kbps as the "128k" notation ffmpeg expects"""
    return f"{kbps}k"


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable string

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string
    """
    if size_bytes < 0:
        return "0 B"

    units = ['B', 'KB', 'MB', 'GB', 'TB']
    size = float(size_bytes)
    unit_index = 0

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    else:
        return f"{size:.1f} {units[unit_index]}"


def safe_unlink(path: Union[str, Path]) -> bool:
    """
    Delete a file, logging instead of raising when it cannot be removed

    Args:
        path: File to delete

    Returns:
        True if the file was deleted, False if it was already gone or removal failed
    """
    try:
        Path(path).unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to remove temporary file {path}: {e}")
        return False


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure directory exists, create if necessary

    Args:
        path: Directory path

    Returns:
        Path object
    """
    path_obj = Path(path).expanduser()
    path_obj.mkdir(parents=True, exist_ok=True)
    return path_obj


def new_job_id() -> str:
    """Short random identifier used to correlate log lines of one job"""
    return uuid.uuid4().hex[:8]


def is_blank(value: Optional[str]) -> bool:
    """True for None, empty or whitespace-only strings"""
    return value is None or not str(value).strip()
