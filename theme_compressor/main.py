"""
Main CLI interface for theme-compressor

This module provides the command-line interface for running the HTTP service
and for using the compression pipeline directly on local files.

The CLI is built using Click framework and provides:
- serve: run the HTTP server (POST /compress, GET /api/tmdb-status)
- compress: run one job on a local file and write the result
- status: show whether ffmpeg and TMDB are usable
- config show: print the effective configuration
- doctor: system diagnostics
"""

import asyncio
import functools
import shutil
import sys
from pathlib import Path

import aiohttp
import click

from . import __version__
from .audio.metadata import read_tags
from .audio.transcoder import FFmpegTranscoder
from .config.settings import get_settings, reload_settings
from .models import Job, TagOverrides, build_enrichment_query
from .pipeline.orchestrator import PipelineOrchestrator
from .utils.helpers import format_bitrate, format_file_size, parse_bitrate
from .utils.logger import configure_from_settings, get_logger, get_current_log_file


logger = get_logger(__name__)


def handle_error(func):
    """
    Decorator to handle common CLI errors gracefully

    Args:
        func: The CLI command function to wrap

    Returns:
        Wrapped function with error handling
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo(click.style("\n\nOperation cancelled by user", fg='yellow'))
            sys.exit(130)
        except Exception as e:
            logger.error(f"Command failed: {e}")
            click.echo(click.style(f"Error: {e}", fg='red'), err=True)
            sys.exit(1)
    return wrapper


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--config', type=click.Path(), help='Path to config file')
@click.pass_context
def cli(ctx, version, verbose, config):
    """
    theme-compressor - Compress theme songs and tag them with poster art

    Re-encodes uploaded audio to MP3 at a chosen bitrate, writes title, artist
    and album tags and, when a TMDB id or title is given, embeds the movie or
    TV poster as cover art.
    """
    ctx.ensure_object(dict)

    if version:
        click.echo(f"theme-compressor v{__version__}")
        return

    try:
        settings = reload_settings(config) if config else get_settings()
    except Exception as e:
        click.echo(click.style(f"Error: {e}", fg='red'), err=True)
        sys.exit(1)

    if verbose:
        settings.logging.level = "DEBUG"
    configure_from_settings(settings)

    if config:
        logger.info(f"Loaded config: {config}")
    if verbose:
        ctx.obj['verbose'] = True
        logger.debug("Verbose mode enabled")

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.option('--host', help='Interface to bind (overrides config)')
@click.option('--port', '-p', type=int, help='Port to listen on (overrides config)')
@handle_error
def serve(host, port):
    """
    Run the HTTP server

    Serves POST /compress and GET /api/tmdb-status, plus the static front-end
    when the configured static directory exists.
    """
    from .server.app import run_server

    settings = get_settings()
    problems = settings.validate()
    if problems:
        for problem in problems:
            click.echo(click.style(f"Invalid configuration: {problem}", fg='red'), err=True)
        sys.exit(1)

    run_server(settings, host=host, port=port)


@cli.command()
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Output file (default: <input>-compressed.mp3)')
@click.option('--quality', '-q', default=None, help='Target bitrate, e.g. 128k')
@click.option('--tmdb-id', help='TMDB id of the movie or show')
@click.option('--tmdb-title', help='Title to search on TMDB when no id is given')
@click.option('--tmdb-type', type=click.Choice(['movie', 'tv']), help='TMDB media type')
@click.option('--title', help='Title tag')
@click.option('--artist', help='Artist tag')
@click.option('--album', help='Album tag')
@handle_error
def compress(input_file, output, quality, tmdb_id, tmdb_title, tmdb_type, title, artist, album):
    """
    Compress a local audio file

    Runs the same pipeline as the HTTP endpoint and writes the tagged MP3 to
    OUTPUT instead of streaming it.
    """
    settings = get_settings()
    input_path = Path(input_file)
    output_path = Path(output) if output else input_path.with_name(f"{input_path.stem}-compressed.mp3")

    job = Job(
        input_bytes=input_path.read_bytes(),
        target_bitrate=parse_bitrate(quality, settings.encoder.default_bitrate),
        enrichment_query=build_enrichment_query(
            catalog_id=tmdb_id,
            title=tmdb_title,
            media_type=tmdb_type,
            default_media_type=settings.catalog.default_media_type
        ),
        overrides=TagOverrides(title=title, artist=artist, album=album),
        upload_filename=input_path.name
    )

    if job.wants_artwork and not settings.tmdb_configured:
        click.echo(click.style("TMDB API key not configured, cover art will be skipped", fg='yellow'))

    click.echo(f"Compressing {input_path.name} at {format_bitrate(job.target_bitrate)}...")

    def show_progress(sample):
        if sample.percent is not None:
            click.echo(f"\r   {sample.percent:5.1f}%", nl=sample.finished)

    async def run():
        async with aiohttp.ClientSession(headers={'User-Agent': settings.network.user_agent}) as session:
            orchestrator = PipelineOrchestrator.from_settings(settings, session)
            return await orchestrator.compress_to(job, output_path, on_progress=show_progress)

    outcome = asyncio.run(run())

    if not outcome.ok:
        click.echo(click.style(f"Failed ({outcome.stage.value}): {outcome.message}", fg='red'), err=True)
        sys.exit(1)

    click.echo(click.style(f"Saved {outcome.path} ({format_file_size(outcome.path.stat().st_size)})", fg='green'))

    tags = read_tags(outcome.path)
    click.echo(f"   Title: {tags['title'] or '-'}")
    click.echo(f"   Artist: {tags['artist'] or '-'}")
    click.echo(f"   Album: {tags['album'] or '-'}")
    if job.wants_artwork:
        click.echo(f"   Cover art: {'embedded' if tags['has_cover'] else 'not found'}")


@cli.command()
@handle_error
def status():
    """
    Show service readiness

    Reports whether ffmpeg can be found and whether TMDB lookups are enabled.
    """
    settings = get_settings()

    ffmpeg_path = shutil.which(settings.encoder.ffmpeg_binary)
    if ffmpeg_path:
        click.echo(f"FFmpeg: {ffmpeg_path}")
    else:
        click.echo(click.style(f"FFmpeg: not found ({settings.encoder.ffmpeg_binary})", fg='red'))

    if settings.tmdb_configured:
        click.echo("TMDB: TMDB API key is configured")
    else:
        click.echo(click.style("TMDB: TMDB API key not configured", fg='yellow'))

    click.echo(f"Listening address: {settings.server.host}:{settings.server.port}")


@cli.group()
def config():
    """
    Configuration management
    """
    pass


@config.command()
@click.option('--save', type=click.Path(dir_okay=False), help='Write the configuration to a YAML file')
@handle_error
def show(save):
    """
    Show current configuration

    The TMDB API key is masked. With --save the configuration is written as
    YAML without the key.
    """
    settings = get_settings()

    click.echo("Current Configuration:\n")
    for section, values in settings.to_dict().items():
        click.echo(f"{section.capitalize()}:")
        for key, value in values.items():
            click.echo(f"   {key}: {value}")
        click.echo("")

    if save:
        path = settings.save_config(save)
        click.echo(click.style(f"Configuration saved to {path}", fg='green'))


@cli.command()
@handle_error
def doctor():
    """
    Run system diagnostics

    Checks external binaries, Python dependencies, TMDB configuration, the
    staging directory and configuration values.
    """
    click.echo("Running diagnostics...\n")

    issues = []
    settings = get_settings()

    if FFmpegTranscoder(settings.encoder).is_available():
        click.echo("FFmpeg: OK")
    else:
        click.echo("FFmpeg: Not found")
        issues.append(f"Install {settings.encoder.ffmpeg_binary} or set encoder.ffmpeg_binary in config.yaml")

    if shutil.which(settings.encoder.ffprobe_binary):
        click.echo("FFprobe: OK")
    else:
        click.echo("FFprobe: Not found (progress percentages disabled)")

    dependencies = [
        ('mutagen', 'mutagen', 'required for ID3 tagging'),
        ('ffmpeg', 'ffmpeg-python', 'required for building encoder commands'),
        ('aiohttp', 'aiohttp', 'required for the HTTP server and TMDB lookups'),
        ('PIL', 'Pillow', 'required for cover art processing'),
    ]
    for module_name, display_name, purpose in dependencies:
        try:
            __import__(module_name)
            click.echo(f"{display_name}: OK")
        except ImportError:
            click.echo(f"{display_name}: Not installed")
            issues.append(f"{display_name} is {purpose}")

    if settings.tmdb_configured:
        click.echo("TMDB API key: configured")
    else:
        click.echo("TMDB API key: not configured (cover art disabled)")
        issues.append("Set TMDB_API_KEY to enable poster lookups")

    temp_dir = settings.get_temp_directory()
    if temp_dir is None:
        click.echo("Staging directory: system temporary directory")
    elif temp_dir.is_dir():
        click.echo(f"Staging directory: {temp_dir}")
    else:
        click.echo(f"Staging directory: {temp_dir} (will be created)")

    for problem in settings.validate():
        issues.append(problem)

    current_log = get_current_log_file()
    click.echo(f"Logging: {current_log}" if current_log else "Logging: Console only")

    if issues:
        click.echo(f"\nFound {len(issues)} issues:")
        for issue in issues:
            click.echo(f"   • {issue}")
    else:
        click.echo("\nAll systems operational!")


if __name__ == '__main__':
    cli()
