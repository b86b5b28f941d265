"""
Compression pipeline orchestrator

The orchestrator runs one Job through its stages, strictly in order, and
owns the job's temporary files for the whole time:

    Received -> Staged -> Transcoding -> Enriching (optional) -> Embedding
             -> Delivering -> Done

Fatal exits:
    Received    no upload                  -> Failed(validation)  HTTP 400
    Staged      temp file create/write     -> Failed(staging)     HTTP 500
    Transcoding ffmpeg failure             -> Failed(transcode)   HTTP 500
    Embedding   tag writer failure         -> Failed(embed)       HTTP 500

Enrichment is a best-effort side-channel: it runs only after a successful
transcode and only when the job asked for artwork, and any lookup failure
(including a missing API key) just means the file is tagged without a cover.

Resource lifetime:
process() is an async context manager. It yields the Outcome while both
staging files still exist, so the caller can stream the Delivered file, and
releases them when the block exits, whether normally or through an exception
such as a client disconnect during delivery. Failed outcomes release the files
before they are yielded. Each file is deleted exactly once.

Usage:
    orchestrator = PipelineOrchestrator.from_settings(settings)
    async with orchestrator.process(job) as outcome:
        if outcome.ok:
            await send_file(outcome.path, outcome.filename)
        else:
            await send_error(outcome.http_status, outcome.message)
"""

import asyncio
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional, Set, Tuple

import aiohttp

from ..audio.metadata import ID3TagEmbedder
from ..audio.transcoder import FFmpegTranscoder, ProgressCallback
from ..catalog.tmdb import TMDBArtworkResolver
from ..config.settings import Settings
from ..models import Delivered, Failed, FailureStage, Job, JobStage, Outcome
from ..utils.exceptions import EmbedError, ResolutionError, StagingError, TranscodeError, ValidationError
from ..utils.helpers import format_bitrate, format_file_size
from ..utils.logger import OperationLogger, create_operation_logger
from .staging import ScopedTempFile


NO_UPLOAD_MESSAGE = "No MP3 file uploaded."


class PipelineOrchestrator:
    """
    Sequence transcoding, artwork lookup and tagging for one job at a time

    One orchestrator serves any number of concurrent jobs: jobs share only the
    read-only settings and the stage objects, never files or mutable state.

    Attributes:
        settings: Configuration used for staging location and delivery filename
        transcoder: Object with an async encode(input, output, bitrate, on_progress=...)
        resolver: Object with an async resolve(query) -> url
        embedder: Object with an async embed(path, url_or_none, overrides) -> bool
    """

    def __init__(
        self,
        settings: Settings,
        transcoder: FFmpegTranscoder,
        resolver: TMDBArtworkResolver,
        embedder: ID3TagEmbedder
    ):
        self.settings = settings
        self.transcoder = transcoder
        self.resolver = resolver
        self.embedder = embedder
        self._live_files: Set[ScopedTempFile] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session: Optional[aiohttp.ClientSession] = None
    ) -> "PipelineOrchestrator":
        """
        Build an orchestrator with the real ffmpeg, TMDB and ID3 stages

        Args:
            settings: Application settings
            session: Shared aiohttp session for TMDB lookups and cover downloads

        Returns:
            Configured orchestrator
        """
        return cls(
            settings,
            transcoder=FFmpegTranscoder(settings.encoder),
            resolver=TMDBArtworkResolver(settings.catalog, settings.network, session),
            embedder=ID3TagEmbedder(settings.metadata, settings.network, session)
        )

    @property
    def active_temp_files(self) -> int:
        """Number of staging files currently on disk across all jobs"""
        return len(self._live_files)

    @asynccontextmanager
    async def process(
        self,
        job: Job,
        on_progress: Optional[ProgressCallback] = None
    ) -> AsyncIterator[Outcome]:
        """
        Run a job and hold its files until the caller is done with the outcome

        Args:
            job: The request to process
            on_progress: Optional observer for transcoding progress

        Yields:
            Delivered (file still on disk inside the block) or Failed
        """
        op = create_operation_logger(__name__, f"job {job.job_id}")
        op.start(
            f"Job {job.job_id} received: {job.upload_filename or 'upload'} -> "
            f"{format_bitrate(job.target_bitrate)}, {job.enrichment_query.describe()}"
        )

        try:
            self.validate(job)
        except ValidationError as e:
            op.error("No file uploaded")
            yield Failed(FailureStage.VALIDATION, e.message)
            return

        handles: List[ScopedTempFile] = []
        try:
            outcome = await self._run_stages(job, handles, op, on_progress)
            if isinstance(outcome, Delivered):
                op.progress(JobStage.DELIVERING.value)
            yield outcome
            if isinstance(outcome, Delivered):
                op.complete(f"Job {job.job_id} delivered")
        finally:
            self._release(handles)
            op.progress("Temporary files cleaned up")

    async def compress_to(
        self,
        job: Job,
        destination: Path,
        on_progress: Optional[ProgressCallback] = None
    ) -> Outcome:
        """
        Run a job and copy the delivered file to destination

        Used outside the HTTP server, where "delivery" means writing a local file.

        Returns:
            Delivered pointing at destination, or the Failed outcome
        """
        async with self.process(job, on_progress) as outcome:
            if isinstance(outcome, Failed):
                return outcome
            destination = Path(destination)
            destination.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, outcome.path, destination)
            return Delivered(destination, destination.name, outcome.artwork_embedded)

    @staticmethod
    def validate(job: Job) -> None:
        """
        Check that the job carries a non-empty upload

        Raises:
            ValidationError: If no file was uploaded
        """
        if not job.has_upload:
            raise ValidationError(NO_UPLOAD_MESSAGE, details={'job_id': job.job_id})

    async def stage(self, job: Job, handles: List[ScopedTempFile]) -> Tuple[ScopedTempFile, ScopedTempFile]:
        """
        Allocate the input and output files and write the upload to disk

        Every allocated handle is appended to handles, even when a later step
        fails, so the caller can release it.

        Returns:
            (input, output) handles

        Raises:
            StagingError: If a file cannot be created or written
        """
        try:
            temp_input = self._allocate(".mp3", handles)
            temp_output = self._allocate("-compressed.mp3", handles)
            await asyncio.to_thread(temp_input.write_bytes, job.input_bytes)
        except OSError as e:
            raise StagingError(str(e), details={'job_id': job.job_id, 'original_error': e})
        return temp_input, temp_output

    async def _run_stages(
        self,
        job: Job,
        handles: List[ScopedTempFile],
        op: OperationLogger,
        on_progress: Optional[ProgressCallback]
    ) -> Outcome:
        # Staged
        try:
            temp_input, temp_output = await self.stage(job, handles)
        except StagingError as e:
            op.error(f"Temp file error: {e.message}", e)
            return self._fail(handles, FailureStage.STAGING, f"Internal server error: {e.message}")
        op.progress(
            f"{JobStage.STAGED.value}: {format_file_size(len(job.input_bytes))} written to {temp_input.path.name}"
        )

        # Transcoding
        op.progress(f"{JobStage.TRANSCODING.value} at {format_bitrate(job.target_bitrate)}")
        try:
            await self.transcoder.encode(
                temp_input.path,
                temp_output.path,
                job.target_bitrate,
                on_progress=on_progress
            )
        except TranscodeError as e:
            op.error(f"FFmpeg compression error: {e.message}")
            return self._fail(handles, FailureStage.TRANSCODE, f"Compression failed: {e.message}")

        # Enriching
        image_url = None
        if job.wants_artwork:
            op.progress(f"{JobStage.ENRICHING.value}: {job.enrichment_query.describe()}")
            image_url = await self._resolve_artwork(job, op)
        else:
            op.progress("No artwork lookup requested")

        # Embedding
        op.progress(JobStage.EMBEDDING.value)
        try:
            artwork_embedded = await self.embedder.embed(temp_output.path, image_url, job.overrides)
        except EmbedError as e:
            op.error(f"Metadata processing error: {e.message}")
            return self._fail(handles, FailureStage.EMBED, f"Metadata update failed: {e.message}")

        return Delivered(
            path=temp_output.path,
            filename=self.settings.server.delivery_filename,
            artwork_embedded=artwork_embedded
        )

    async def _resolve_artwork(self, job: Job, op: OperationLogger) -> Optional[str]:
        """Best-effort poster lookup; every failure degrades to None"""
        try:
            url = await self.resolver.resolve(job.enrichment_query)
        except ResolutionError as e:
            op.warning(f"Could not fetch cover art: {e.message}")
            return None
        except Exception as e:
            op.logger.warning(f"job {job.job_id}: cover art lookup crashed: {e}", exc_info=e)
            return None

        if url:
            op.progress("Cover art fetched successfully")
        return url

    def _allocate(self, suffix: str, handles: List[ScopedTempFile]) -> ScopedTempFile:
        handle = ScopedTempFile.create(suffix, self.settings.get_temp_directory(), self._live_files)
        handles.append(handle)
        return handle

    def _fail(self, handles: List[ScopedTempFile], stage: FailureStage, message: str) -> Failed:
        # Failed jobs give their files back before the error is reported
        self._release(handles)
        return Failed(stage, message)

    @staticmethod
    def _release(handles: List[ScopedTempFile]) -> None:
        for handle in handles:
            handle.release()
