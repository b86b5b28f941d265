"""Test the HTTP interface with fake pipeline stages"""

import asyncio
from pathlib import Path

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import test_utils

from theme_compressor.models import ByCatalogId, ByTitle, MediaType
from theme_compressor.server.app import create_app


UPLOAD = b"RIFF....WAVEfmt fake audio payload"


def upload_form(payload=UPLOAD, **fields):
    form = aiohttp.FormData()
    if payload is not None:
        form.add_field('mp3file', payload, filename='theme.wav', content_type='audio/wav')
    for name, value in fields.items():
        form.add_field(name, value)
    return form


class OutputReplacedByDirectory:
    """Leaves a directory where the tagged file should be, so delivery cannot read it"""

    async def embed(self, file_path, image_url, overrides):
        Path(file_path).unlink()
        Path(file_path).mkdir()
        return False


async def wait_for_release(orchestrator):
    """The handler releases files right after the last byte is written"""
    for _ in range(100):
        if orchestrator.active_temp_files == 0:
            return
        await asyncio.sleep(0.01)


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()


@pytest_asyncio.fixture
async def client(settings, orchestrator):
    async with test_utils.TestClient(test_utils.TestServer(create_app(settings, orchestrator))) as client:
        yield client


class TestCompress:

    async def test_success_streams_attachment(self, client, orchestrator, staged_files):
        response = await client.post('/compress', data=upload_form(quality='96k', title='Main Title'))

        assert response.status == 200
        assert response.content_type == 'audio/mpeg'
        assert response.headers['Content-Disposition'] == 'attachment; filename="theme.mp3"'
        assert await response.read() == UPLOAD

        await wait_for_release(orchestrator)
        assert orchestrator.active_temp_files == 0
        assert staged_files() == []

        _, _, bitrate = orchestrator.transcoder.calls[0]
        assert bitrate == 96
        assert orchestrator.embedder.calls[0][2].title == 'Main Title'

    async def test_default_quality(self, client, orchestrator):
        response = await client.post('/compress', data=upload_form())
        assert response.status == 200
        assert orchestrator.transcoder.calls[0][2] == 128

    async def test_garbage_quality_uses_default(self, client, orchestrator):
        response = await client.post('/compress', data=upload_form(quality='loud'))
        assert response.status == 200
        assert orchestrator.transcoder.calls[0][2] == 128

    async def test_id_takes_precedence_over_title(self, client, orchestrator):
        form = upload_form(tmdbId='1399', tmdbTitle='Something Else', tmdbType='tv')
        response = await client.post('/compress', data=form)

        assert response.status == 200
        assert orchestrator.resolver.queries == [ByCatalogId('1399', MediaType.TV)]

    async def test_title_lookup_defaults_to_movie(self, client, orchestrator):
        response = await client.post('/compress', data=upload_form(tmdbTitle='The Matrix'))

        assert response.status == 200
        assert orchestrator.resolver.queries == [ByTitle('The Matrix', MediaType.MOVIE)]

    async def test_no_lookup_without_id_or_title(self, client, orchestrator):
        response = await client.post('/compress', data=upload_form(tmdbType='tv'))

        assert response.status == 200
        assert orchestrator.resolver.queries == []

    async def test_upload_read_in_worker_thread(self, client, monkeypatch):
        offloaded = []
        to_thread = asyncio.to_thread

        async def recording_to_thread(func, *args, **kwargs):
            offloaded.append((getattr(func, '__name__', None), args))
            return await to_thread(func, *args, **kwargs)

        monkeypatch.setattr(asyncio, 'to_thread', recording_to_thread)
        response = await client.post('/compress', data=upload_form())

        assert response.status == 200
        assert await response.read() == UPLOAD
        assert ('read', ()) in offloaded

    async def test_missing_file(self, client, orchestrator):
        response = await client.post('/compress', data=upload_form(payload=None, quality='128k'))

        assert response.status == 400
        assert await response.text() == "No MP3 file uploaded."
        assert orchestrator.transcoder.calls == []

    async def test_empty_file(self, client):
        response = await client.post('/compress', data=upload_form(payload=b""))

        assert response.status == 400
        assert await response.text() == "No MP3 file uploaded."


class TestCompressFailures:

    async def test_transcode_failure(self, settings, make_orchestrator, transcode_failure, staged_files):
        orchestrator = make_orchestrator(transcode_error=transcode_failure)
        async with test_utils.TestClient(test_utils.TestServer(create_app(settings, orchestrator))) as client:
            response = await client.post('/compress', data=upload_form())

            assert response.status == 500
            assert await response.text() == f"Compression failed: {transcode_failure.message}"
        assert staged_files() == []

    async def test_embed_failure(self, settings, make_orchestrator, embed_failure):
        orchestrator = make_orchestrator(embed_error=embed_failure)
        async with test_utils.TestClient(test_utils.TestServer(create_app(settings, orchestrator))) as client:
            response = await client.post('/compress', data=upload_form())

            assert response.status == 500
            assert (await response.text()).startswith("Metadata update failed: ")

    async def test_unexpected_error(self, settings, make_orchestrator, staged_files):
        orchestrator = make_orchestrator(transcode_error=RuntimeError("boom"))
        async with test_utils.TestClient(test_utils.TestServer(create_app(settings, orchestrator))) as client:
            response = await client.post('/compress', data=upload_form())

            assert response.status == 500
            assert await response.text() == "Internal server error: boom"
        assert orchestrator.active_temp_files == 0
        assert staged_files() == []

    async def test_read_error_after_headers_is_only_logged(self, settings, make_orchestrator, caplog):
        orchestrator = make_orchestrator()
        orchestrator.embedder = OutputReplacedByDirectory()

        async with test_utils.TestClient(test_utils.TestServer(create_app(settings, orchestrator))) as client:
            response = await client.post('/compress', data=upload_form())

            assert response.status == 200
            assert response.content_type == 'audio/mpeg'
            await wait_for_release(orchestrator)
            response.close()

        assert orchestrator.active_temp_files == 0
        messages = [record.getMessage() for record in caplog.records]
        assert any(message.startswith("Delivery failed for job ") for message in messages)
        assert not any(message.startswith("Unhandled error") for message in messages)

    async def test_upload_limit(self, settings, make_orchestrator):
        settings.server.max_upload_mb = 1
        orchestrator = make_orchestrator()
        async with test_utils.TestClient(test_utils.TestServer(create_app(settings, orchestrator))) as client:
            response = await client.post('/compress', data=upload_form(payload=b"\0" * (2 * 1024 * 1024)))

            assert response.status == 413
        assert orchestrator.transcoder.calls == []


class TestStatus:

    async def test_configured(self, client):
        response = await client.get('/api/tmdb-status')

        assert response.status == 200
        assert await response.json() == {'configured': True, 'message': "TMDB API key is configured"}

    async def test_not_configured(self, settings, make_orchestrator):
        settings.catalog.tmdb_api_key = ""
        async with test_utils.TestClient(test_utils.TestServer(create_app(settings, make_orchestrator()))) as client:
            response = await client.get('/api/tmdb-status')
            assert await response.json() == {'configured': False, 'message': "TMDB API key not configured"}


class TestStaticFiles:

    async def test_serves_front_end(self, settings, make_orchestrator, temp_dir):
        public = temp_dir / "public"
        public.mkdir()
        (public / "index.html").write_text("<h1>Theme compressor</h1>", encoding='utf-8')
        (public / "app.js").write_text("console.log('ready')", encoding='utf-8')

        async with test_utils.TestClient(test_utils.TestServer(create_app(settings, make_orchestrator()))) as client:
            index = await client.get('/')
            assert index.status == 200
            assert "Theme compressor" in await index.text()

            script = await client.get('/app.js')
            assert script.status == 200

            status = await client.get('/api/tmdb-status')
            assert status.status == 200

    async def test_no_static_directory(self, client):
        response = await client.get('/')
        assert response.status == 404
