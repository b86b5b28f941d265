"""
Configuration package for theme-compressor

Settings are loaded from defaults, an optional config.yaml and environment
variables (PORT, HOST, TMDB_API_KEY, ...). The same Settings object is handed
to the pipeline orchestrator and to the web application.

    from theme_compressor.config import get_settings

    settings = get_settings()
    print(settings.tmdb_configured)
"""

from .settings import (
    get_settings,
    reload_settings,
    Settings,
    ServerConfig,
    EncoderConfig,
    CatalogConfig,
    MetadataConfig,
    StorageConfig,
    LoggingConfig,
    NetworkConfig
)

__all__ = [
    'get_settings',
    'reload_settings',
    'Settings',
    'ServerConfig',
    'EncoderConfig',
    'CatalogConfig',
    'MetadataConfig',
    'StorageConfig',
    'LoggingConfig',
    'NetworkConfig',
]
