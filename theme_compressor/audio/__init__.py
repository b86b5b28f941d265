"""
Audio processing package

Two stages of the compression pipeline live here:

1. **Transcoder (transcoder.py)**:
   - `FFmpegTranscoder`: re-encodes the upload to MP3 (libmp3lame) at the
     requested bitrate, as one awaitable ffmpeg subprocess
   - `TranscodeProgress`: progress samples for optional observers

2. **Metadata (metadata.py)**:
   - `ID3TagEmbedder`: writes title/artist/album and an optional front cover
   - `read_tags()`: reads the same fields back

Dependencies:
- ffmpeg-python: command construction and ffprobe
- mutagen: ID3 tag reading and writing
- Pillow: cover image normalisation to JPEG
- aiohttp: cover image download
"""

from .transcoder import FFmpegTranscoder, TranscodeProgress
from .metadata import ID3TagEmbedder, read_tags

__all__ = [
    'FFmpegTranscoder',
    'TranscodeProgress',
    'ID3TagEmbedder',
    'read_tags',
]
