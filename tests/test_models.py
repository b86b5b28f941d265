"""Test job and outcome models"""

from pathlib import Path

from theme_compressor.models import (
    ByCatalogId,
    ByTitle,
    Delivered,
    Failed,
    FailureStage,
    Job,
    MediaType,
    NoEnrichment,
    TagOverrides,
    build_enrichment_query
)


class TestMediaType:
    """Test media type parsing"""

    def test_known_values(self):
        assert MediaType.parse("movie") is MediaType.MOVIE
        assert MediaType.parse("TV") is MediaType.TV
        assert MediaType.parse(" tv ") is MediaType.TV

    def test_unknown_values_fall_back(self):
        assert MediaType.parse(None) is MediaType.MOVIE
        assert MediaType.parse("") is MediaType.MOVIE
        assert MediaType.parse("anime") is MediaType.MOVIE
        assert MediaType.parse("anime", MediaType.TV) is MediaType.TV


class TestEnrichmentQuery:
    """Test selection of the poster lookup variant"""

    def test_id_wins_over_title(self):
        query = build_enrichment_query(catalog_id="603", title="The Matrix", media_type="movie")
        assert query == ByCatalogId("603", MediaType.MOVIE)

    def test_title_only(self):
        query = build_enrichment_query(title="  Twin Peaks ", media_type="tv")
        assert query == ByTitle("Twin Peaks", MediaType.TV)

    def test_blank_id_uses_title(self):
        query = build_enrichment_query(catalog_id="   ", title="Dune")
        assert query == ByTitle("Dune", MediaType.MOVIE)

    def test_nothing_requested(self):
        assert build_enrichment_query() == NoEnrichment()
        assert build_enrichment_query(catalog_id="", title="") == NoEnrichment()

    def test_default_media_type(self):
        query = build_enrichment_query(catalog_id="1399", default_media_type="tv")
        assert query.media_type is MediaType.TV

    def test_describe(self):
        assert "603" in ByCatalogId("603", MediaType.MOVIE).describe()
        assert "Dune" in ByTitle("Dune", MediaType.MOVIE).describe()
        assert NoEnrichment().describe()


class TestJob:
    """Test job properties"""

    def test_upload_presence(self):
        assert Job(input_bytes=b"ID3").has_upload
        assert not Job(input_bytes=b"").has_upload
        assert not Job(input_bytes=None).has_upload

    def test_wants_artwork(self):
        assert not Job(input_bytes=b"x").wants_artwork
        assert Job(input_bytes=b"x", enrichment_query=ByTitle("Dune", MediaType.MOVIE)).wants_artwork

    def test_defaults(self):
        job = Job(input_bytes=b"x")
        assert job.target_bitrate == 128
        assert job.overrides == TagOverrides()
        assert len(job.job_id) == 8

    def test_tag_overrides_fill_missing_with_empty_strings(self):
        tags = TagOverrides(title="Theme").as_tags()
        assert tags == {'title': "Theme", 'artist': "", 'album': ""}


class TestOutcome:
    """Test outcome variants"""

    def test_delivered(self):
        outcome = Delivered(Path("/tmp/x.mp3"), "theme.mp3", artwork_embedded=True)
        assert outcome.ok
        assert outcome.filename == "theme.mp3"

    def test_failure_status_codes(self):
        assert Failed(FailureStage.VALIDATION, "No MP3 file uploaded.").http_status == 400
        assert Failed(FailureStage.STAGING, "Internal server error: x").http_status == 500
        assert Failed(FailureStage.TRANSCODE, "Compression failed: x").http_status == 500
        assert Failed(FailureStage.EMBED, "Metadata update failed: x").http_status == 500
        assert not Failed(FailureStage.EMBED, "x").ok
