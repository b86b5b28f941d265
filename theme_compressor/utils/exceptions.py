"""
Exception classes for theme-compressor.

Every failure a compression job can hit is expressed as one of these types so
the pipeline can decide, by type alone, whether a failure is fatal to the job
or only degrades the result.

Exception Hierarchy:
    ThemeCompressorError (base)
        ConfigError - Configuration file or environment issues
        ValidationError - Upload missing or empty (HTTP 400)
        StagingError - Temporary files could not be created or written
        TranscodeError - ffmpeg could not produce the output file
        EmbedError - ID3 tags could not be written
        ResolutionError - Poster lookup failed (never fatal)
            NotConfiguredError - No TMDB API key, lookup never attempted
"""


class ThemeCompressorError(Exception):
    """
    Base exception for all theme-compressor errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (paths, status codes).

    Example:
        try:
            await transcoder.encode(src, dst, 128)
        except ThemeCompressorError as e:
            logger.error(f"Job failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description shown to the caller.
            details: Optional dictionary with extra context for logs. Common keys:
                     - 'path': file involved in the error
                     - 'status_code': remote HTTP status
                     - 'original_error': the wrapped exception
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(ThemeCompressorError):
    """
    Raised when configuration cannot be loaded or is invalid.

    Common causes:
        - config.yaml has invalid YAML syntax
        - PORT is not a number
    """
    pass


class ValidationError(ThemeCompressorError):
    """
    Raised when the request carries no usable upload.

    Maps to HTTP 400. No temporary files exist when this is raised.
    """
    pass


class StagingError(ThemeCompressorError):
    """Raised when temporary files cannot be allocated or written."""
    pass


class TranscodeError(ThemeCompressorError):
    """
    Raised when ffmpeg fails to re-encode the upload.

    Covers malformed input audio, unsupported bitrates, a missing ffmpeg
    binary, non-zero exit codes and I/O errors. The detail string carries the
    tail of ffmpeg's stderr when available.

    Example:
        raise TranscodeError(
            "ffmpeg exited with code 1: Invalid data found when processing input",
            details={'returncode': 1, 'input': '/tmp/abc.mp3'}
        )
    """
    pass


class EmbedError(ThemeCompressorError):
    """
    Raised when the tag writer cannot load or save the output file.

    Network and image problems never raise this; they only cause the cover to
    be skipped.
    """
    pass


class ResolutionError(ThemeCompressorError):
    """
    Raised when a poster URL cannot be resolved from TMDB.

    The pipeline treats this as "no artwork available" and carries on.

    Attributes:
        status_code: HTTP status returned by TMDB, if the call got that far.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        status_code: int | None = None
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class NotConfiguredError(ResolutionError):
    """Raised before any network call when no TMDB API key is configured."""
    pass
