"""
Data models for compression jobs

A Job holds everything one request asked for: the uploaded bytes, the target
bitrate, an optional poster lookup and the text tags to write. Its terminal
result is an Outcome, either Delivered or Failed, so callers never see a
half-finished state.

The poster lookup is a tagged variant rather than two nullable strings:

    ByCatalogId  - direct TMDB lookup, wins when both id and title are sent
    ByTitle      - TMDB search, first result's poster
    NoEnrichment - skip artwork entirely
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from .utils.helpers import is_blank, new_job_id


class MediaType(Enum):
    """TMDB media collections that carry posters"""
    MOVIE = "movie"
    TV = "tv"

    @classmethod
    def parse(cls, value: Optional[str], default: "MediaType" = None) -> "MediaType":
        """
        Parse a media-type hint from the request

        Unknown or missing values fall back to the default (movie).
        """
        fallback = default or cls.MOVIE
        if is_blank(value):
            return fallback
        try:
            return cls(value.strip().lower())
        except ValueError:
            return fallback


class JobStage(Enum):
    """States a job moves through; Failed exits are recorded in Failed.stage"""
    RECEIVED = "received"
    STAGED = "staged"
    TRANSCODING = "transcoding"
    ENRICHING = "enriching"
    EMBEDDING = "embedding"
    DELIVERING = "delivering"
    DONE = "done"


class FailureStage(Enum):
    """Stage at which a job was declared failed, mapped to an HTTP status"""
    VALIDATION = "validation"
    STAGING = "staging"
    TRANSCODE = "transcode"
    EMBED = "embed"

    @property
    def http_status(self) -> int:
        return 400 if self is FailureStage.VALIDATION else 500


@dataclass(frozen=True)
class ByCatalogId:
    """Direct poster lookup by TMDB id"""
    catalog_id: str
    media_type: MediaType = MediaType.MOVIE

    def describe(self) -> str:
        return f"TMDB {self.media_type.value} id {self.catalog_id}"


@dataclass(frozen=True)
class ByTitle:
    """Poster lookup through a TMDB title search"""
    title: str
    media_type: MediaType = MediaType.MOVIE

    def describe(self) -> str:
        return f"TMDB {self.media_type.value} search {self.title!r}"


@dataclass(frozen=True)
class NoEnrichment:
    """No artwork requested"""

    def describe(self) -> str:
        return "no artwork lookup"


EnrichmentQuery = Union[ByCatalogId, ByTitle, NoEnrichment]


def build_enrichment_query(
    catalog_id: Optional[str] = None,
    title: Optional[str] = None,
    media_type: Optional[str] = None,
    default_media_type: str = "movie"
) -> EnrichmentQuery:
    """
    Turn the raw request fields into exactly one lookup variant

    Args:
        catalog_id: TMDB id field (blank means absent)
        title: Free-text title field (blank means absent)
        media_type: "movie" or "tv"; anything else falls back to the default
        default_media_type: Media type used when the hint is missing

    Returns:
        ByCatalogId when an id is given, else ByTitle when a title is given,
        else NoEnrichment
    """
    kind = MediaType.parse(media_type, MediaType.parse(default_media_type))

    if not is_blank(catalog_id):
        return ByCatalogId(catalog_id.strip(), kind)
    if not is_blank(title):
        return ByTitle(title.strip(), kind)
    return NoEnrichment()


@dataclass(frozen=True)
class TagOverrides:
    """Text tags requested by the caller; each one optional"""
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None

    def as_tags(self) -> Dict[str, str]:
        """All three fields, with empty strings for missing values"""
        return {
            'title': self.title or "",
            'artist': self.artist or "",
            'album': self.album or "",
        }


@dataclass
class Job:
    """
    One compression request

    Attributes:
        input_bytes: Uploaded audio, None when the request had no file
        target_bitrate: Positive bitrate in kbps
        enrichment_query: Which poster lookup to run, if any
        overrides: Text tags to write
        upload_filename: Original filename, for logs only
        job_id: Short id used to correlate log lines
    """
    input_bytes: Optional[bytes]
    target_bitrate: int = 128
    enrichment_query: EnrichmentQuery = field(default_factory=NoEnrichment)
    overrides: TagOverrides = field(default_factory=TagOverrides)
    upload_filename: Optional[str] = None
    job_id: str = field(default_factory=new_job_id)

    @property
    def has_upload(self) -> bool:
        return bool(self.input_bytes)

    @property
    def wants_artwork(self) -> bool:
        return not isinstance(self.enrichment_query, NoEnrichment)


@dataclass(frozen=True)
class Delivered:
    """Successful outcome: a tagged file ready to be streamed"""
    path: Path
    filename: str
    artwork_embedded: bool = False

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed:
    """Failed outcome with the stage it failed in and a one-line message"""
    stage: FailureStage
    message: str

    @property
    def ok(self) -> bool:
        return False

    @property
    def http_status(self) -> int:
        return self.stage.http_status


Outcome = Union[Delivered, Failed]
