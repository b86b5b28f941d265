"""
HTTP interface for theme-compressor

Routes:
    POST /compress         multipart upload -> theme.mp3 or a plain-text error
    GET  /api/tmdb-status  {"configured": bool, "message": str}
    GET  /                 optional static front-end (server.static_directory)

Multipart fields of POST /compress:
    mp3file    required audio file
    quality    bitrate like "128k" (default "128k")
    tmdbId     TMDB id; takes precedence over tmdbTitle
    tmdbTitle  free-text title to search for
    tmdbType   "movie" or "tv" (default "movie")
    title, artist, album   text tags, each optional

The handler only translates between HTTP and the pipeline: it builds a Job
from the form, runs it through the PipelineOrchestrator and streams the
result while the orchestrator still holds the file.
"""

import asyncio
from pathlib import Path
from typing import AsyncIterator, Optional

import aiohttp
from aiohttp import hdrs, web

from ..config.settings import Settings
from ..models import Failed, Job, TagOverrides, build_enrichment_query
from ..pipeline.orchestrator import PipelineOrchestrator
from ..utils.helpers import parse_bitrate
from ..utils.logger import get_logger


logger = get_logger(__name__)

SETTINGS_KEY = web.AppKey("settings", Settings)
ORCHESTRATOR_KEY = web.AppKey("orchestrator", PipelineOrchestrator)
SESSION_KEY = web.AppKey("client_session", aiohttp.ClientSession)

DEFAULT_QUALITY = "128k"
CHUNK_SIZE = 64 * 1024


def _form_text(form, name: str) -> Optional[str]:
    """Text value of a form field, None when absent or not a text field"""
    value = form.get(name)
    if value is None or isinstance(value, web.FileField):
        return None
    return str(value)


async def _read_upload(form) -> tuple:
    """Return (bytes, filename) for the mp3file field, (None, None) when missing"""
    upload = form.get('mp3file')
    if not isinstance(upload, web.FileField):
        return None, None
    data = await asyncio.to_thread(upload.file.read)
    return data, upload.filename


async def build_job(form, settings: Settings) -> Job:
    """
    Build a Job from the submitted multipart form

    Args:
        form: Parsed multipart form (MultiDict of text values and FileFields)
        settings: Settings providing defaults

    Returns:
        Job ready for the orchestrator
    """
    input_bytes, filename = await _read_upload(form)
    quality = _form_text(form, 'quality') or DEFAULT_QUALITY

    return Job(
        input_bytes=input_bytes,
        target_bitrate=parse_bitrate(quality, settings.encoder.default_bitrate),
        enrichment_query=build_enrichment_query(
            catalog_id=_form_text(form, 'tmdbId'),
            title=_form_text(form, 'tmdbTitle'),
            media_type=_form_text(form, 'tmdbType'),
            default_media_type=settings.catalog.default_media_type
        ),
        overrides=TagOverrides(
            title=_form_text(form, 'title'),
            artist=_form_text(form, 'artist'),
            album=_form_text(form, 'album')
        ),
        upload_filename=filename
    )


async def compress(request: web.Request) -> web.StreamResponse:
    """Run one compression job and stream the tagged MP3 back"""
    settings = request.app[SETTINGS_KEY]
    orchestrator = request.app[ORCHESTRATOR_KEY]

    form = await request.post()
    job = await build_job(form, settings)
    logger.info(f"Processing MP3 compression with quality: {job.target_bitrate}k")

    async with orchestrator.process(job) as outcome:
        if isinstance(outcome, Failed):
            return web.Response(status=outcome.http_status, text=outcome.message)

        response = web.StreamResponse(status=200)
        response.content_type = 'audio/mpeg'
        response.content_length = outcome.path.stat().st_size
        response.headers[hdrs.CONTENT_DISPOSITION] = f'attachment; filename="{outcome.filename}"'

        try:
            await response.prepare(request)
            with open(outcome.path, 'rb') as f:
                while True:
                    chunk = await asyncio.to_thread(f.read, CHUNK_SIZE)
                    if not chunk:
                        break
                    await response.write(chunk)
            await response.write_eof()
        except ConnectionError as e:
            logger.error(f"Download error for job {job.job_id}: {e}")
        except Exception as e:
            # Status line is already sent, so the error can only be logged
            logger.error(f"Delivery failed for job {job.job_id}: {e}", exc_info=e)
            response.force_close()
        return response


async def tmdb_status(request: web.Request) -> web.Response:
    """Report whether artwork lookups are available"""
    configured = request.app[SETTINGS_KEY].tmdb_configured
    return web.json_response({
        'configured': configured,
        'message': "TMDB API key is configured" if configured else "TMDB API key not configured"
    })


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Turn unexpected exceptions into a single plain-text 500 line"""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=e)
        return web.Response(status=500, text=f"Internal server error: {e}")


async def client_session_ctx(app: web.Application) -> AsyncIterator[None]:
    """Share one outbound HTTP session between TMDB lookups and cover downloads"""
    settings = app[SETTINGS_KEY]
    async with aiohttp.ClientSession(headers={'User-Agent': settings.network.user_agent}) as session:
        app[SESSION_KEY] = session
        if ORCHESTRATOR_KEY not in app:
            app[ORCHESTRATOR_KEY] = PipelineOrchestrator.from_settings(settings, session)
        yield


async def log_startup(app: web.Application) -> None:
    settings = app[SETTINGS_KEY]
    logger.info(f"Server running at http://localhost:{settings.server.port}")
    logger.info(f"TMDB API Key configured: {'Yes' if settings.tmdb_configured else 'No'}")


def create_app(
    settings: Settings,
    orchestrator: Optional[PipelineOrchestrator] = None
) -> web.Application:
    """
    Build the aiohttp application

    Args:
        settings: Configuration for this instance
        orchestrator: Pre-built orchestrator; built from settings on startup when None

    Returns:
        Application ready for web.run_app or a test client
    """
    app = web.Application(
        client_max_size=int(settings.server.max_upload_mb) * 1024 * 1024,
        middlewares=[error_middleware]
    )
    app[SETTINGS_KEY] = settings
    if orchestrator is not None:
        app[ORCHESTRATOR_KEY] = orchestrator

    app.cleanup_ctx.append(client_session_ctx)
    app.on_startup.append(log_startup)

    app.router.add_post('/compress', compress)
    app.router.add_get('/api/tmdb-status', tmdb_status)
    _add_static_routes(app, settings)
    return app


def _add_static_routes(app: web.Application, settings: Settings) -> None:
    static_dir = Path(settings.server.static_directory).expanduser() if settings.server.static_directory else None
    if static_dir is None or not static_dir.is_dir():
        return

    index = static_dir / "index.html"
    if index.is_file():
        async def serve_index(request: web.Request) -> web.FileResponse:
            return web.FileResponse(index)
        app.router.add_get('/', serve_index)

    app.router.add_static('/', static_dir)
    logger.debug(f"Serving static files from {static_dir}")


def run_server(settings: Settings, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """
    Run the HTTP server until interrupted

    Args:
        settings: Configuration for this instance
        host: Override for settings.server.host
        port: Override for settings.server.port
    """
    if port is not None:
        settings.server.port = port
    if host is not None:
        settings.server.host = host

    web.run_app(
        create_app(settings),
        host=settings.server.host,
        port=int(settings.server.port),
        print=None
    )
