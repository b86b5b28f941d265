# tests/test_utils.py
"""Test utilities and helpers"""

import logging

from theme_compressor.utils.exceptions import (
    NotConfiguredError,
    ResolutionError,
    ThemeCompressorError,
    TranscodeError
)
from theme_compressor.utils.helpers import (
    ensure_directory,
    format_bitrate,
    format_file_size,
    is_blank,
    new_job_id,
    parse_bitrate,
    safe_unlink
)
from theme_compressor.utils.logger import (
    get_current_log_file,
    parse_size,
    setup_logging,
    create_operation_logger
)


class TestHelpers:
    """Test helper functions"""

    def test_parse_bitrate(self):
        """Test bitrate parsing"""
        assert parse_bitrate("128k") == 128
        assert parse_bitrate("96K") == 96
        assert parse_bitrate(" 320 kbps ") == 320
        assert parse_bitrate("64") == 64

    def test_parse_bitrate_falls_back_to_default(self):
        """Test garbage bitrates use the default"""
        assert parse_bitrate(None) == 128
        assert parse_bitrate("") == 128
        assert parse_bitrate("loud") == 128
        assert parse_bitrate("0k") == 128
        assert parse_bitrate("-64k") == 128
        assert parse_bitrate("abc", default=192) == 192

    def test_format_bitrate(self):
        """Test ffmpeg bitrate notation"""
        assert format_bitrate(128) == "128k"

    def test_format_file_size(self):
        """Test file size formatting"""
        assert format_file_size(1024) == "1.0 KB"
        assert format_file_size(1048576) == "1.0 MB"
        assert format_file_size(512) == "512 B"
        assert format_file_size(-1) == "0 B"

    def test_is_blank(self):
        """Test blank detection"""
        assert is_blank(None)
        assert is_blank("")
        assert is_blank("   ")
        assert not is_blank("603")

    def test_new_job_id(self):
        """Test job ids are short and distinct"""
        first, second = new_job_id(), new_job_id()
        assert len(first) == 8
        assert first != second

    def test_safe_unlink(self, temp_dir):
        """Test unlink reports whether a file was removed"""
        target = temp_dir / "scratch.mp3"
        target.write_bytes(b"data")

        assert safe_unlink(target) is True
        assert not target.exists()
        assert safe_unlink(target) is False

    def test_ensure_directory(self, temp_dir):
        """Test nested directories are created"""
        path = ensure_directory(temp_dir / "a" / "b")
        assert path.is_dir()


class TestExceptions:
    """Test the exception hierarchy"""

    def test_message_and_details(self):
        error = TranscodeError("ffmpeg exited with code 1", details={'returncode': 1})
        assert str(error) == "ffmpeg exited with code 1"
        assert error.details == {'returncode': 1}
        assert isinstance(error, ThemeCompressorError)

    def test_details_default_to_empty(self):
        assert ThemeCompressorError("boom").details == {}

    def test_not_configured_is_resolution_error(self):
        error = NotConfiguredError("no key")
        assert isinstance(error, ResolutionError)
        assert error.status_code is None

    def test_resolution_error_status_code(self):
        assert ResolutionError("TMDB API error: 404 - Not Found", status_code=404).status_code == 404


class TestLogger:
    """Test logging setup"""

    def test_parse_size(self):
        """Test size string parsing"""
        assert parse_size("10MB") == 10 * 1024 * 1024
        assert parse_size("1KB") == 1024
        assert parse_size("512B") == 512

    def test_file_logging(self, temp_dir):
        """Test rotating file handler is installed and written"""
        log_file = temp_dir / "logs" / "theme.log"
        try:
            setup_logging(level="INFO", log_file=str(log_file), console_output=False)
            logging.getLogger("theme_compressor.test").info("hello from the test")

            assert get_current_log_file() == log_file
            for handler in logging.getLogger().handlers:
                handler.flush()
            assert "hello from the test" in log_file.read_text(encoding='utf-8')
        finally:
            setup_logging(level="WARNING", console_output=False)

    def test_operation_logger(self, caplog):
        """Test operation lifecycle messages"""
        op = create_operation_logger("theme_compressor.test", "job abc")
        with caplog.at_level(logging.INFO, logger="theme_compressor.test"):
            op.start("Job abc received")
            op.progress("transcoding")
            op.complete("Job abc delivered")

        messages = [record.getMessage() for record in caplog.records]
        assert messages[0] == "Job abc received"
        assert messages[1] == "job abc: transcoding"
        assert messages[2].startswith("Job abc delivered in ")
