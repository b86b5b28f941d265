"""
theme-compressor: compress theme songs and tag them with movie and TV posters

theme-compressor is a small HTTP service (plus a CLI) that takes an uploaded
audio file, re-encodes it to MP3 at a requested bitrate, writes title, artist
and album tags and, when asked, embeds the matching TMDB poster as cover art.

## Core Architecture

**Configuration (`theme_compressor/config/`)**
- Settings dataclasses loaded from defaults, config.yaml and environment
- TMDB API key and port usually come from the environment or a .env file

**Audio (`theme_compressor/audio/`)**
- FFmpegTranscoder: ffmpeg re-encode with progress reporting
- ID3TagEmbedder: ID3 text frames and front-cover artwork via mutagen

**Catalog (`theme_compressor/catalog/`)**
- TMDBArtworkResolver: poster lookup by TMDB id or by title search

**Pipeline (`theme_compressor/pipeline/`)**
- PipelineOrchestrator: staging, transcoding, best-effort artwork lookup,
  tagging and temp-file ownership for one job

**Server (`theme_compressor/server/`)**
- aiohttp application: POST /compress, GET /api/tmdb-status, static front-end

**Utilities (`theme_compressor/utils/`)**
- Colored console and rotating file logging, exception hierarchy, helpers

## Quick Start
```bash
pip install -e .
export TMDB_API_KEY=...
theme-compressor serve --port 3000

curl -F mp3file=@theme.wav -F quality=96k -F tmdbTitle="Twin Peaks" \\
     -F tmdbType=tv -F title="Falling" http://localhost:3000/compress -o theme.mp3
```
"""

__version__ = "1.0.0"

__author__ = "theme-compressor contributors"

__description__ = "Compress theme songs to MP3 and embed TMDB poster art"

__all__ = [
    "__version__",
    "__author__",
    "__description__",
]
