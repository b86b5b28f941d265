"""Test configuration and fixtures"""

import tempfile
from io import BytesIO
from pathlib import Path

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from PIL import Image

from theme_compressor.audio.transcoder import TranscodeProgress
from theme_compressor.config.settings import Settings
from theme_compressor.pipeline.orchestrator import PipelineOrchestrator
from theme_compressor.utils.exceptions import EmbedError, TranscodeError


TEST_API_KEY = "test-key"

REQUESTS_KEY = web.AppKey("requests", list)


def make_poster_bytes(size=(1200, 1800), color='red', fmt='JPEG') -> bytes:
    """Poster image larger than the default max_cover_size"""
    buffer = BytesIO()
    Image.new('RGB', size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def create_fake_tmdb_app() -> web.Application:
    """
    Minimal stand-in for the TMDB v3 API and image CDN

    Known records:
        movie 603          -> /matrix.jpg
        tv 1399            -> /got.jpg
        movie noposter     -> poster_path null
        search "The Matrix" (movie) -> [/matrix.jpg, /other.jpg]
        search "Nothing"   -> no results
    """
    records = {
        ('movie', '603'): {'id': 603, 'title': 'The Matrix', 'poster_path': '/matrix.jpg'},
        ('tv', '1399'): {'id': 1399, 'name': 'Game of Thrones', 'poster_path': '/got.jpg'},
        ('movie', 'noposter'): {'id': 1, 'title': 'Untitled', 'poster_path': None},
    }
    searches = {
        ('movie', 'The Matrix'): [{'poster_path': '/matrix.jpg'}, {'poster_path': '/other.jpg'}],
        ('tv', 'Twin Peaks'): [{'poster_path': '/peaks.jpg'}],
    }
    poster = make_poster_bytes()

    app = web.Application()
    app[REQUESTS_KEY] = []

    def check_key(request):
        request.app[REQUESTS_KEY].append((request.path, dict(request.query)))
        if request.query.get('api_key') != TEST_API_KEY:
            raise web.HTTPUnauthorized(text='{"status_message": "Invalid API key"}')

    async def details(request):
        check_key(request)
        record = records.get((request.match_info['kind'], request.match_info['id']))
        if record is None:
            raise web.HTTPNotFound(text='{"status_message": "not found"}')
        return web.json_response(record)

    async def search(request):
        check_key(request)
        results = searches.get((request.match_info['kind'], request.query.get('query')), [])
        return web.json_response({'page': 1, 'results': results})

    async def image(request):
        name = request.match_info['name']
        if name == 'missing.jpg':
            raise web.HTTPNotFound()
        if name == 'broken.jpg':
            return web.Response(body=b'definitely not an image', content_type='image/jpeg')
        return web.Response(body=poster, content_type='image/jpeg')

    app.router.add_get('/3/search/{kind}', search)
    app.router.add_get('/3/{kind}/{id}', details)
    app.router.add_get('/t/p/{size}/{name}', image)
    return app


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def staging_dir(temp_dir):
    """Directory where jobs stage their temporary files"""
    return temp_dir / "staging"


@pytest.fixture
def settings(staging_dir, temp_dir):
    """Settings isolated from config files and environment"""
    return Settings.from_dict({
        'server': {'static_directory': str(temp_dir / "public")},
        'catalog': {'tmdb_api_key': TEST_API_KEY},
        'storage': {'temp_directory': str(staging_dir)},
        'network': {'request_timeout': 5},
    })


@pytest_asyncio.fixture
async def fake_tmdb():
    """Fake TMDB API and image CDN on a local port"""
    server = TestServer(create_fake_tmdb_app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def tmdb_requests(fake_tmdb):
    """(path, query) pairs received by the fake TMDB API"""
    return fake_tmdb.app[REQUESTS_KEY]


@pytest.fixture
def tmdb_settings(settings, fake_tmdb):
    """Settings pointing the catalog at the fake TMDB server"""
    settings.catalog.api_base_url = str(fake_tmdb.make_url('/3'))
    settings.catalog.image_base_url = str(fake_tmdb.make_url('/t/p'))
    return settings


@pytest.fixture
def staged_files(staging_dir):
    """Callable listing the files currently left in the staging directory"""
    def list_files():
        if not staging_dir.exists():
            return []
        return sorted(p.name for p in staging_dir.iterdir())
    return list_files


class FakeTranscoder:
    """Copies input to output instead of running ffmpeg"""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def encode(self, input_path, output_path, bitrate_kbps, on_progress=None):
        self.calls.append((Path(input_path), Path(output_path), bitrate_kbps))
        if self.error is not None:
            raise self.error
        Path(output_path).write_bytes(Path(input_path).read_bytes())
        if on_progress:
            on_progress(TranscodeProgress(out_time_seconds=1.0, percent=100.0, finished=True))


class FakeResolver:
    """Returns a fixed URL or raises a fixed error"""

    def __init__(self, url="http://images.test/poster.jpg", error=None):
        self.url = url
        self.error = error
        self.queries = []

    async def resolve(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.url


class FakeEmbedder:
    """Records calls; reports a cover as embedded whenever a URL is given"""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def embed(self, file_path, image_url, overrides):
        self.calls.append((Path(file_path), image_url, overrides))
        if self.error is not None:
            raise self.error
        return image_url is not None


@pytest.fixture
def make_orchestrator(settings):
    """
    Factory for orchestrators wired to fake stages

    Keyword arguments select failures: transcode_error, resolve_error,
    embed_error, and resolve_url for the poster URL returned.
    """
    def factory(
        transcode_error=None,
        resolve_error=None,
        embed_error=None,
        resolve_url="http://images.test/poster.jpg",
        settings_override=None
    ):
        return PipelineOrchestrator(
            settings_override or settings,
            transcoder=FakeTranscoder(transcode_error),
            resolver=FakeResolver(resolve_url, resolve_error),
            embedder=FakeEmbedder(embed_error)
        )
    return factory


@pytest.fixture
def transcode_failure():
    return TranscodeError("ffmpeg exited with code 1: Invalid data found when processing input")


@pytest.fixture
def embed_failure():
    return EmbedError("Failed to write ID3 tags to theme.mp3: disk full")
