"""
ID3 tag embedding for compressed MP3 files

The embedder writes the title, artist and album requested by the caller into
the output file and, when a poster URL was resolved, downloads the image and
attaches it as the front cover.

Tag policy:
- TIT2 / TPE1 / TALB are always written; a missing override becomes an empty
  string, never an absent frame.
- Existing tags in the output are replaced unless
  metadata.preserve_original_tags is set.
- The cover is an APIC frame: mime "image/jpeg", type 3 (front cover),
  description "Cover". Downloaded images are normalised to RGB JPEG no larger
  than metadata.max_cover_size pixels with Pillow; if Pillow cannot decode
  them, the original bytes are embedded unchanged. Images over Pillow's
  decompression-bomb limit are not embedded at all.

Error policy:
Cover download problems (network errors, HTTP errors, empty bodies) are
logged and the file is tagged text-only. Only failures of the tag writer
itself, such as an unreadable or unwritable file, raise EmbedError.

Usage:
    embedder = ID3TagEmbedder(settings.metadata, settings.network, session)
    with_cover = await embedder.embed(path, poster_url, TagOverrides(title="Theme"))
"""

import asyncio
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiohttp
from PIL import Image, UnidentifiedImageError
from mutagen import MutagenError
from mutagen.id3 import ID3, ID3NoHeaderError, APIC, TALB, TIT2, TPE1

from ..config.settings import MetadataConfig, NetworkConfig
from ..models import TagOverrides
from ..utils.exceptions import EmbedError
from ..utils.logger import get_logger


# APIC picture type 3 is "Cover (front)"
FRONT_COVER = 3
COVER_MIME = 'image/jpeg'
COVER_DESCRIPTION = 'Cover'

TEXT_FRAMES = {
    'title': TIT2,
    'artist': TPE1,
    'album': TALB,
}


class ID3TagEmbedder:
    """
    Write text tags and an optional front cover into an MP3 file

    A shared aiohttp session can be injected for cover downloads; without one,
    a short-lived session is opened per download.
    """

    def __init__(
        self,
        config: Optional[MetadataConfig] = None,
        network: Optional[NetworkConfig] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.config = config or MetadataConfig()
        self.network = network or NetworkConfig()
        self.session = session
        self.logger = get_logger(__name__)

    async def embed(
        self,
        file_path: Union[str, Path],
        image_url: Optional[str],
        overrides: TagOverrides
    ) -> bool:
        """
        Tag file_path in place

        Args:
            file_path: MP3 file to tag
            image_url: Poster URL to download and embed, or None for text-only tags
            overrides: Title/artist/album values

        Returns:
            True if a cover image was embedded, False for text-only tags

        Raises:
            EmbedError: If the tag writer cannot load or save the file
        """
        cover = None
        if image_url:
            self.logger.info("Downloading cover image...")
            cover = await self.fetch_image(image_url)
        else:
            self.logger.info("No cover art to embed")

        await asyncio.to_thread(self._write_tags, Path(file_path), overrides.as_tags(), cover)

        if cover is not None:
            self.logger.info("Cover image embedded successfully")
        return cover is not None

    async def fetch_image(self, image_url: str) -> Optional[bytes]:
        """
        Download a cover image and prepare it for embedding

        Never raises for network or image problems; they are logged and
        reported as None.

        Args:
            image_url: Absolute image URL

        Returns:
            JPEG bytes ready for an APIC frame, or None if the download failed
            or the image was rejected
        """
        try:
            data = await self._download(image_url)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.logger.warning(f"Failed to download cover image from {image_url}: {e}")
            return None

        if not data:
            self.logger.warning(f"Cover image at {image_url} is empty")
            return None

        if not self.config.convert_cover_to_jpeg:
            return data
        return await asyncio.to_thread(self._prepare_cover, data)

    async def _download(self, image_url: str) -> bytes:
        timeout = aiohttp.ClientTimeout(total=self.network.request_timeout)
        headers = {'User-Agent': self.network.user_agent}

        if self.session is not None:
            async with self.session.get(image_url, timeout=timeout, headers=headers) as response:
                response.raise_for_status()
                return await response.read()

        async with aiohttp.ClientSession(headers=headers) as session:
            async with session.get(image_url, timeout=timeout) as response:
                response.raise_for_status()
                return await response.read()

    def _prepare_cover(self, image_data: bytes) -> Optional[bytes]:
        """
        Convert to RGB JPEG within max_cover_size

        Undecodable images are kept as the original bytes. Images over Pillow's
        pixel limit are dropped, so the file is tagged text-only.
        """
        limit = int(self.config.max_cover_size)
        try:
            with Image.open(BytesIO(image_data)) as img:
                if img.mode != 'RGB':
                    img = img.convert('RGB')

                if img.width > limit or img.height > limit:
                    img.thumbnail((limit, limit), Image.Resampling.LANCZOS)

                output = BytesIO()
                img.save(output, format='JPEG', quality=int(self.config.cover_jpeg_quality), optimize=True)
                return output.getvalue()
        except Image.DecompressionBombError as e:
            self.logger.warning(f"Cover image rejected, tagging without cover: {e}")
            return None
        except (UnidentifiedImageError, OSError, ValueError) as e:
            self.logger.warning(f"Failed to process cover image, embedding original bytes: {e}")
            return image_data

    def _write_tags(self, path: Path, tags: Dict[str, str], cover: Optional[bytes]) -> None:
        """Blocking mutagen write, run in a worker thread"""
        try:
            try:
                id3 = ID3(str(path))
            except ID3NoHeaderError:
                id3 = ID3()

            if not self.config.preserve_original_tags:
                id3.clear()

            for field_name, frame_class in TEXT_FRAMES.items():
                id3.setall(frame_class.__name__, [frame_class(encoding=3, text=tags[field_name])])

            if cover is not None:
                id3.setall('APIC', [APIC(
                    encoding=3,
                    mime=COVER_MIME,
                    type=FRONT_COVER,
                    desc=COVER_DESCRIPTION,
                    data=cover
                )])

            if str(self.config.id3_version) == "2.3":
                id3.update_to_v23()
                id3.save(str(path), v2_version=3)
            else:
                id3.save(str(path), v2_version=4)
        except (MutagenError, OSError) as e:
            raise EmbedError(
                f"Failed to write ID3 tags to {path.name}: {e}",
                details={'path': str(path), 'original_error': e}
            )

        self.logger.debug(f"ID3 tags written: {path.name} {tags}")


def read_tags(file_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read back the tags this service writes

    Args:
        file_path: Tagged MP3 file

    Returns:
        Dictionary with 'title', 'artist', 'album' (empty string when absent),
        'has_cover' and 'cover_mime'

    Raises:
        EmbedError: If the file cannot be read
    """
    try:
        id3 = ID3(str(file_path))
    except ID3NoHeaderError:
        return {'title': "", 'artist': "", 'album': "", 'has_cover': False, 'cover_mime': None}
    except (MutagenError, OSError) as e:
        raise EmbedError(f"Failed to read ID3 tags from {file_path}: {e}", details={'path': str(file_path)})

    result: Dict[str, Any] = {}
    for field_name, frame_class in TEXT_FRAMES.items():
        frame = id3.get(frame_class.__name__)
        result[field_name] = str(frame) if frame is not None else ""

    covers = id3.getall('APIC')
    result['has_cover'] = bool(covers)
    result['cover_mime'] = covers[0].mime if covers else None
    return result
