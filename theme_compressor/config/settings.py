"""
Configuration management for theme-compressor

This module handles loading, validation, and management of application settings
from multiple sources including YAML files and environment variables.

The configuration is organized into logical sections using dataclasses:
- HTTP server settings (host, port, upload limits, static directory)
- Encoder settings (ffmpeg binaries, default bitrate, codec and container)
- Poster catalog settings (TMDB API key, endpoints, poster size)
- Metadata settings (ID3 version, cover processing)
- Temporary storage, logging and network settings

The TMDB API key and the listening port are usually supplied through the
environment (or a .env file), while everything else can live in config.yaml.
A Settings instance is passed explicitly to the pipeline and the web app, so
several independently configured instances can run in one process.
"""

import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml
from dotenv import load_dotenv

from ..utils.exceptions import ConfigError

# Load environment variables from .env file if present
load_dotenv()


@dataclass
class ServerConfig:
    """
    HTTP server settings

    The port defaults to 3000 when PORT is not set. Uploads larger than
    max_upload_mb are rejected by aiohttp before they reach the pipeline.
    """
    host: str = "0.0.0.0"
    port: int = 3000
    max_upload_mb: int = 100
    static_directory: str = "public"
    delivery_filename: str = "theme.mp3"


@dataclass
class EncoderConfig:
    """
    ffmpeg encoding settings

    Codec and container are fixed for the MP3 output; only the bitrate varies
    per request.
    """
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    default_bitrate: int = 128
    codec: str = "libmp3lame"
    container: str = "mp3"


@dataclass
class CatalogConfig:
    """
    TMDB poster lookup settings

    Without an API key, artwork lookups are skipped but compression keeps working.
    """
    tmdb_api_key: str = ""
    api_base_url: str = "https://api.themoviedb.org/3"
    image_base_url: str = "https://image.tmdb.org/t/p"
    poster_size: str = "w500"
    default_media_type: str = "movie"


@dataclass
class MetadataConfig:
    """
    ID3 tag settings

    Controls the ID3 version written and how downloaded covers are prepared
    before embedding.
    """
    id3_version: str = "2.4"
    preserve_original_tags: bool = False
    convert_cover_to_jpeg: bool = True
    max_cover_size: int = 1000
    cover_jpeg_quality: int = 90


@dataclass
class StorageConfig:
    """Where per-job temporary files are staged (system temp dir when empty)"""
    temp_directory: str = ""


@dataclass
class LoggingConfig:
    """
    Logging configuration and output settings

    Controls log level, optional rotating log file and console formatting.
    """
    level: str = "INFO"
    file: str = ""
    max_size: str = "50MB"
    backup_count: int = 3
    console_output: bool = True
    colored_output: bool = True


@dataclass
class NetworkConfig:
    """
    Outbound HTTP settings used for TMDB lookups and cover downloads
    """
    user_agent: str = "theme-compressor/1.0"
    request_timeout: int = 30


class Settings:
    """
    Main settings class that manages all configuration

    Loads defaults, then the first YAML file found, then environment
    variables, in that order of increasing precedence.
    """

    def __init__(self, config_path: Optional[str] = None, load_environment: bool = True):
        """
        Initialize settings from config file and environment variables

        Args:
            config_path: Path to custom config file, if None uses default locations
            load_environment: Apply environment variable overrides (disabled in tests)
        """
        self.config_path = config_path
        self.config_dir = Path.home() / ".theme-compressor"
        self._init_sections()

        self._load_config()
        if load_environment:
            self._load_environment_variables()

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> "Settings":
        """
        Build settings from an in-memory mapping, ignoring files and environment

        Args:
            config_data: Mapping of section name to section values

        Returns:
            New Settings instance
        """
        settings = cls.__new__(cls)
        settings.config_path = None
        settings.config_dir = Path.home() / ".theme-compressor"
        settings._init_sections()
        settings._apply_config(config_data)
        return settings

    def _init_sections(self) -> None:
        """Initialize all configuration sections with default values"""
        self.server = ServerConfig()
        self.encoder = EncoderConfig()
        self.catalog = CatalogConfig()
        self.metadata = MetadataConfig()
        self.storage = StorageConfig()
        self.logging = LoggingConfig()
        self.network = NetworkConfig()

    def _sections(self) -> Dict[str, Any]:
        return {
            'server': self.server,
            'encoder': self.encoder,
            'catalog': self.catalog,
            'metadata': self.metadata,
            'storage': self.storage,
            'logging': self.logging,
            'network': self.network,
        }

    def _load_config(self) -> None:
        """
        Load configuration from YAML file

        Searches for configuration files in order of precedence; the first file
        found is used. An explicitly requested file that cannot be parsed is an
        error, a broken default-location file is not.
        """
        if self.config_path and not Path(self.config_path).exists():
            raise ConfigError(
                f"Config file not found: {self.config_path}",
                details={'file_path': str(self.config_path)}
            )

        config_paths = [
            self.config_path,
            self.config_dir / "config.yaml",
            Path("config/config.yaml"),
            Path("config.yaml")
        ]

        config_data = {}
        for path in config_paths:
            if path and Path(path).exists():
                try:
                    with open(path, 'r', encoding='utf-8') as f:
                        config_data = yaml.safe_load(f) or {}
                    break
                except (OSError, yaml.YAMLError) as e:
                    if path == self.config_path:
                        raise ConfigError(
                            f"Failed to load config from {path}: {e}",
                            details={'file_path': str(path), 'original_error': e}
                        )
                    print(f"Warning: Failed to load config from {path}: {e}")

        if not isinstance(config_data, dict):
            raise ConfigError("Config file must contain a mapping of sections")

        self._apply_config(config_data)

    def _apply_config(self, config_data: Dict[str, Any]) -> None:
        """
        Apply configuration data to dataclass instances

        Only attributes that exist on the matching dataclass are updated.

        Args:
            config_data: Dictionary containing configuration sections
        """
        config_mapping = self._sections()

        for section_name, section_data in config_data.items():
            if section_name in config_mapping and isinstance(section_data, dict):
                config_obj = config_mapping[section_name]
                for key, value in section_data.items():
                    if hasattr(config_obj, key):
                        setattr(config_obj, key, value)

    def _load_environment_variables(self) -> None:
        """
        Load deployment configuration from environment variables

        Environment variables take precedence over file-based configuration.
        """
        env_mappings = {
            'PORT': lambda v: setattr(self.server, 'port', self._parse_int('PORT', v)),
            'HOST': lambda v: setattr(self.server, 'host', v),
            'TMDB_API_KEY': lambda v: setattr(self.catalog, 'tmdb_api_key', v),
            'DEFAULT_BITRATE': lambda v: setattr(self.encoder, 'default_bitrate', self._parse_int('DEFAULT_BITRATE', v)),
            'FFMPEG_BINARY': lambda v: setattr(self.encoder, 'ffmpeg_binary', v),
            'THEME_COMPRESSOR_TEMP_DIR': lambda v: setattr(self.storage, 'temp_directory', v),
            'LOG_LEVEL': lambda v: setattr(self.logging, 'level', v),
        }

        for env_var, setter in env_mappings.items():
            value = os.getenv(env_var)
            if value:
                setter(value)

    @staticmethod
    def _parse_int(name: str, value: str) -> int:
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"{name} must be an integer, got {value!r}", details={'variable': name})

    @property
    def tmdb_configured(self) -> bool:
        """True when a TMDB API key is available"""
        return bool(self.catalog.tmdb_api_key)

    def get_config_directory(self) -> Path:
        """
        Get the expanded config directory path

        Returns:
            Path object for the configuration directory
        """
        return Path(self.config_dir).expanduser()

    def get_temp_directory(self) -> Optional[Path]:
        """
        Get the directory for job staging files

        Returns:
            Expanded path, or None to use the system temporary directory
        """
        if not self.storage.temp_directory:
            return None
        return Path(self.storage.temp_directory).expanduser()

    def to_dict(self, include_secrets: bool = False) -> Dict[str, Dict[str, Any]]:
        """
        Serialize all sections to plain dictionaries

        Args:
            include_secrets: Keep the TMDB API key instead of masking it

        Returns:
            Mapping of section name to values
        """
        data = {name: asdict(section) for name, section in self._sections().items()}
        if not include_secrets and data['catalog']['tmdb_api_key']:
            data['catalog']['tmdb_api_key'] = "***"
        return data

    def save_config(self, path: Optional[str] = None) -> Path:
        """
        Save current configuration to a YAML file, without the API key

        Args:
            path: Custom path to save config, defaults to user config directory

        Returns:
            Path written

        Raises:
            ConfigError: If the configuration cannot be saved
        """
        target = Path(path) if path else self.get_config_directory() / "config.yaml"

        config_data = self.to_dict(include_secrets=True)
        config_data['catalog']['tmdb_api_key'] = ""

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, 'w', encoding='utf-8') as f:
                yaml.dump(config_data, f, default_flow_style=False, indent=2)
        except OSError as e:
            raise ConfigError(f"Failed to save config to {target}: {e}", details={'file_path': str(target)})
        return target

    def validate(self) -> List[str]:
        """
        Validate current configuration

        Returns:
            List of problems; empty when the configuration is usable
        """
        errors = []

        if not 0 < int(self.server.port) < 65536:
            errors.append(f"Invalid port: {self.server.port}")

        if int(self.encoder.default_bitrate) <= 0:
            errors.append(f"Invalid default bitrate: {self.encoder.default_bitrate}")

        if self.catalog.default_media_type not in ('movie', 'tv'):
            errors.append(f"Invalid default media type: {self.catalog.default_media_type}")

        if str(self.metadata.id3_version) not in ('2.3', '2.4'):
            errors.append(f"Invalid ID3 version: {self.metadata.id3_version}")

        if int(self.server.max_upload_mb) <= 0:
            errors.append(f"Invalid upload limit: {self.server.max_upload_mb}")

        return errors

    def __str__(self) -> str:
        sections = [
            f"Server: {self.server.host}:{self.server.port}",
            f"Default bitrate: {self.encoder.default_bitrate}k",
            f"TMDB: {'configured' if self.tmdb_configured else 'not configured'}",
        ]
        return f"Settings({', '.join(sections)})"


# Process-wide default used by the CLI
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the process-wide settings instance, loading it on first use

    Returns:
        The global Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """
    Reload settings from configuration files and environment

    Args:
        config_path: Optional path to specific config file

    Returns:
        New Settings instance with reloaded configuration
    """
    global _settings
    _settings = Settings(config_path)
    return _settings
