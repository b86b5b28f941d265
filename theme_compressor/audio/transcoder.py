"""
MP3 re-encoding through ffmpeg

This module wraps the ffmpeg binary behind a single awaitable operation. The
command line is assembled with ffmpeg-python and executed as an asyncio
subprocess, so a slow encode suspends only the job that started it.

Encoding parameters:
- Codec fixed to libmp3lame, container fixed to mp3
- Audio bitrate taken from the job, passed to ffmpeg as "<n>k"
- Video streams (embedded cover pictures in the upload) are dropped; the
  pipeline writes its own tags afterwards

Events:
ffmpeg is started with "-progress pipe:1", which prints key=value blocks on
stdout. The transcoder turns those into TranscodeProgress events for an
optional observer. Events are diagnostic only: the caller awaits the process
exit and nothing else.

Failure handling:
Every failure (missing binary, unreadable input, invalid bitrate, non-zero
exit code) is raised as TranscodeError with a short human-readable detail.
A partial output file may be left behind; removing it is the caller's job.
"""

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Union

import ffmpeg

from ..config.settings import EncoderConfig
from ..utils.exceptions import TranscodeError
from ..utils.helpers import format_bitrate
from ..utils.logger import get_logger


@dataclass
class TranscodeProgress:
    """
    One progress sample reported by ffmpeg

    Attributes:
        out_time_seconds: Position of the encoder in the output stream
        percent: Completion percentage, None when the input duration is unknown
        finished: True for the final sample ffmpeg prints before exiting
    """
    out_time_seconds: float
    percent: Optional[float] = None
    finished: bool = False


ProgressCallback = Callable[[TranscodeProgress], None]
StartCallback = Callable[[List[str]], None]


class FFmpegTranscoder:
    """
    Re-encode an audio file to MP3 at a given bitrate

    The transcoder is stateless between calls and can be shared by any number
    of concurrent jobs; each call spawns its own ffmpeg process.
    """

    # Lines of ffmpeg stderr kept in error messages
    STDERR_TAIL_LINES = 3

    def __init__(self, config: Optional[EncoderConfig] = None):
        """
        Args:
            config: Encoder settings (binaries, codec, container)
        """
        self.config = config or EncoderConfig()
        self.logger = get_logger(__name__)

    def is_available(self) -> bool:
        """True when the ffmpeg binary can be found"""
        return shutil.which(self.config.ffmpeg_binary) is not None

    def build_command(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        bitrate_kbps: int
    ) -> List[str]:
        """
        Assemble the ffmpeg argument list for one encode

        Args:
            input_path: Source audio file
            output_path: Destination MP3 file (overwritten)
            bitrate_kbps: Target audio bitrate

        Returns:
            Full argument list, starting with the ffmpeg binary
        """
        stream = ffmpeg.input(str(input_path))
        stream = ffmpeg.output(
            stream,
            str(output_path),
            acodec=self.config.codec,
            audio_bitrate=format_bitrate(bitrate_kbps),
            format=self.config.container,
            vn=None
        )
        stream = stream.global_args('-progress', 'pipe:1', '-nostats').overwrite_output()
        return ffmpeg.compile(stream, cmd=self.config.ffmpeg_binary)

    async def probe_duration(self, input_path: Union[str, Path]) -> Optional[float]:
        """
        Read the input duration with ffprobe

        Returns:
            Duration in seconds, or None if ffprobe is missing or cannot read the file
        """
        try:
            info = await asyncio.to_thread(ffmpeg.probe, str(input_path), cmd=self.config.ffprobe_binary)
            return float(info['format']['duration'])
        except (ffmpeg.Error, OSError, KeyError, ValueError) as e:
            self.logger.debug(f"Could not probe duration of {Path(input_path).name}: {e}")
            return None

    async def encode(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        bitrate_kbps: int,
        on_progress: Optional[ProgressCallback] = None,
        on_start: Optional[StartCallback] = None
    ) -> None:
        """
        Re-encode input_path into output_path at bitrate_kbps

        Args:
            input_path: Source audio file
            output_path: Destination file, created or overwritten
            bitrate_kbps: Positive target bitrate in kbps
            on_progress: Optional observer for progress samples
            on_start: Optional observer receiving the resolved command line

        Raises:
            TranscodeError: For any failure; output_path may be partially written
        """
        input_path = Path(input_path)
        output_path = Path(output_path)

        if not isinstance(bitrate_kbps, int) or bitrate_kbps <= 0:
            raise TranscodeError(f"Unsupported bitrate: {bitrate_kbps!r}", details={'bitrate': bitrate_kbps})

        if not input_path.exists():
            raise TranscodeError(f"Input file not found: {input_path}", details={'input': str(input_path)})

        command = self.build_command(input_path, output_path, bitrate_kbps)
        duration = await self.probe_duration(input_path) if on_progress else None

        self.logger.info(f"FFmpeg command: {' '.join(command)}")
        if on_start:
            on_start(command)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except FileNotFoundError:
            raise TranscodeError(
                f"ffmpeg binary not found: {self.config.ffmpeg_binary}",
                details={'binary': self.config.ffmpeg_binary}
            )
        except OSError as e:
            raise TranscodeError(f"Could not start ffmpeg: {e}", details={'original_error': e})

        # stderr is drained concurrently so a chatty ffmpeg never blocks on a full pipe
        stderr_task = asyncio.create_task(process.stderr.read())
        try:
            await self._read_progress(process.stdout, duration, on_progress)
            returncode = await process.wait()
            stderr = await stderr_task
        except BaseException:
            if process.returncode is None:
                process.kill()
                await process.wait()
            stderr_task.cancel()
            raise

        if returncode != 0:
            detail = self._stderr_tail(stderr) or "no error output"
            self.logger.error(f"FFmpeg compression error (exit {returncode}): {detail}")
            raise TranscodeError(
                f"ffmpeg exited with code {returncode}: {detail}",
                details={'returncode': returncode, 'input': str(input_path)}
            )

        if not output_path.exists():
            raise TranscodeError("ffmpeg reported success but wrote no output", details={'output': str(output_path)})

        self.logger.info(f"Compression completed: {output_path.name} @ {format_bitrate(bitrate_kbps)}")

    async def _read_progress(
        self,
        stdout: asyncio.StreamReader,
        duration: Optional[float],
        on_progress: Optional[ProgressCallback]
    ) -> None:
        """Parse "-progress pipe:1" key=value blocks until ffmpeg closes stdout"""
        out_time = 0.0
        while True:
            raw = await stdout.readline()
            if not raw:
                break

            key, _, value = raw.decode('utf-8', errors='replace').strip().partition('=')
            if key == 'out_time_us':
                try:
                    out_time = int(value) / 1_000_000
                except ValueError:
                    continue
            elif key == 'progress':
                sample = self._make_progress(out_time, duration, finished=(value == 'end'))
                self.logger.debug(
                    f"Processing: {sample.percent:.1f}% done" if sample.percent is not None
                    else f"Processing: {sample.out_time_seconds:.1f}s encoded"
                )
                if on_progress:
                    try:
                        on_progress(sample)
                    except Exception as e:
                        self.logger.warning(f"Progress observer raised: {e}")

    @staticmethod
    def _make_progress(out_time: float, duration: Optional[float], finished: bool) -> TranscodeProgress:
        percent = None
        if finished:
            percent = 100.0
        elif duration:
            percent = max(0.0, min(100.0, out_time / duration * 100))
        return TranscodeProgress(out_time_seconds=out_time, percent=percent, finished=finished)

    def _stderr_tail(self, stderr: bytes) -> str:
        lines = [line.strip() for line in stderr.decode('utf-8', errors='replace').splitlines() if line.strip()]
        return " | ".join(lines[-self.STDERR_TAIL_LINES:])
