"""Transcoding and screenshot extraction

Responsibilities:
- Normalize caller options (mapping, EncodingOptions or raw string)
- Apply aspect ratio preservation to the target resolution
- Pre-encode multiple inputs onto a common canvas before concatenation
- Run ffmpeg with streamed progress and a per-chunk timeout
- Validate the produced file by probing it again
"""

import logging
import math
import secrets
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Generator, Iterator, List, Mapping, Optional, Union

from .aspect import PreserveMode, is_rotated_odd, resolve_preservation
from .config import (
    FIXED_LOWER_TO_UPPER_RATIO, FIXED_UPPER_TO_LOWER_RATIO, INTERIM_DIR_NAME,
    MAX_PRE_ENCODE_FRAME_RATE, MIN_PRE_ENCODE_FRAME_RATE, TRANSCODE_TIMEOUT
)
from .encoding_options import EncodingOptions, Option, convert_inputs
from .exceptions import (
    EncodingFailedError, MetadataError, OptionsFormatError, ProcessHangError
)
from .movie import Movie
from .process import ProcessResult, ProcessRunner

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
Options = Union[EncodingOptions, Mapping[str, Any], str]


@dataclass
class TranscoderOptions:
    """
    Per-run transcoder settings.

    Attributes:
        validate: Probe the output after encoding and fail when it is
            missing or invalid.
        preserve_aspect_ratio: "width", "height" or "fit"; None keeps the
            requested resolution as is.
        timeout: Seconds allowed between two progress markers; None
            disables the check.
    """
    validate: bool = True
    preserve_aspect_ratio: Optional[str] = None
    timeout: Optional[float] = TRANSCODE_TIMEOUT

    def __post_init__(self) -> None:
        if isinstance(self.preserve_aspect_ratio, Enum):
            self.preserve_aspect_ratio = self.preserve_aspect_ratio.value
        if self.preserve_aspect_ratio is not None:
            valid_modes = [mode.value for mode in PreserveMode]
            if self.preserve_aspect_ratio not in valid_modes:
                raise ValueError(
                    f"preserve_aspect_ratio must be one of {', '.join(valid_modes)}"
                )
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive or None")

    @classmethod
    def from_dict(cls, options: Optional[Mapping[str, Any]]) -> "TranscoderOptions":
        if isinstance(options, cls):
            return options
        return cls(**dict(options or {}))


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    FAILURE = "failure"


@dataclass
class TranscodeOutcome:
    """
    Result of one transcode.

    Attributes:
        status: SUCCESS, TIMEOUT or FAILURE.
        output: ffmpeg diagnostic text captured up to the end of the run.
        errors: Failed checks, in the order they were detected.
        encoded: The probed output movie on validated success.
        command: The last command that was run.
    """
    status: OutcomeStatus
    output: str = ""
    errors: List[str] = field(default_factory=list)
    encoded: Optional[Movie] = None
    command: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS


def delete_files(destination: Optional[Union[str, Path]]) -> None:
    if destination is None:
        return
    path = Path(destination)
    if path.exists():
        path.unlink()


class Transcoder:
    """
    Transcode a movie (one or several inputs) into output_file.

    Args:
        movie: The source Movie.
        output_file: Destination path.
        options: EncodingOptions, a mapping of option names to values, or
            a raw ffmpeg argument string.
        transcoder_options: TranscoderOptions or a mapping of its fields.
        transcoder_prefix_options: Options placed before the inputs,
            as a mapping or a raw string.
        runner: ProcessRunner to use; by default one is built with the
            configured timeout.

    Raises:
        OptionsFormatError: options has an unsupported type.
    """

    def __init__(self, movie: Movie, output_file: Union[str, Path], options: Optional[Options] = None,
                 transcoder_options: Optional[Union[TranscoderOptions, Mapping[str, Any]]] = None,
                 transcoder_prefix_options: Optional[Union[Mapping[str, Any], str]] = None,
                 runner: Optional[ProcessRunner] = None):
        self.movie = movie
        self.output_file = str(output_file)
        self.transcoder_options = TranscoderOptions.from_dict(transcoder_options)
        self.transcoder_prefix_options = transcoder_prefix_options or {}
        self.runner = runner or ProcessRunner(timeout=self.transcoder_options.timeout)
        self.command: Optional[str] = None
        self.output = ""
        self.errors: List[str] = []
        self._encoded: Optional[Movie] = None

        self._assign_interim_paths()

        if options is None:
            options = EncodingOptions()
        self._string_options: Optional[str] = None
        if isinstance(options, str):
            self._string_options = options
            prefix = self._prefix_options_string()
            self.raw_options: Union[EncodingOptions, str] = (
                f"{prefix}{convert_inputs(self.movie.interim_paths)} {options}"
            )
        elif isinstance(options, EncodingOptions):
            if Option.INPUTS in options:
                self.raw_options = options
            else:
                self.raw_options = options.merge({Option.INPUTS: self.movie.interim_paths})
        elif isinstance(options, Mapping):
            merged = dict(options)
            merged[Option.INPUTS.value] = self.movie.interim_paths
            merged[Option.ANY_STREAMS_CONTAIN_AUDIO.value] = self.movie.any_streams_contain_audio
            prefix_options = self.transcoder_prefix_options
            if isinstance(prefix_options, str):
                prefix_options = {Option.CUSTOM.value: prefix_options}
            self.raw_options = EncodingOptions(merged, prefix_options)
        else:
            raise OptionsFormatError(
                f"Unknown options format '{type(options).__name__}', "
                "should be either EncodingOptions, Mapping or str.",
                module="transcoder"
            )

        self._apply_aspect_preservation()

    def _assign_interim_paths(self) -> None:
        """One interim file per input when inputs have to be pre-encoded"""
        self.movie.interim_paths.clear()
        if len(self.movie.paths) <= 1:
            self.movie.interim_paths.extend(self.movie.paths)
            return
        for path in self.movie.paths:
            source = Path(path)
            interim_dir = source.parent / INTERIM_DIR_NAME
            interim_dir.mkdir(parents=True, exist_ok=True)
            interim_path = interim_dir / f"{source.stem}_{secrets.token_urlsafe(16)}.mp4"
            self.movie.interim_paths.append(str(interim_path))

    def _discard_interim(self, interim_path: str) -> None:
        """Delete a partial interim file, never one of the source paths"""
        if interim_path in self.movie.paths:
            logger.warning("Not deleting source file %s", interim_path)
            return
        delete_files(interim_path)

    def _prefix_options_string(self) -> str:
        prefix = self.transcoder_prefix_options
        prefix = prefix if isinstance(prefix, str) else str(EncodingOptions(prefix))
        return f"{prefix} " if prefix else ""

    def _apply_aspect_preservation(self) -> None:
        mode = self.transcoder_options.preserve_aspect_ratio
        if not mode or not isinstance(self.raw_options, EncodingOptions):
            return
        aspect_ratio = self.movie.calculated_aspect_ratio
        if aspect_ratio is None:
            logger.debug("Aspect ratio of %s is undeterminable, not preserving it", self.movie)
            return
        width, height = self.raw_options.width, self.raw_options.height
        if width is None or height is None:
            logger.debug("No target resolution given, nothing to preserve")
            return
        new_width, new_height = resolve_preservation(
            mode, aspect_ratio, width, height, is_rotated_odd(self.movie.rotation)
        )
        self.raw_options[Option.RESOLUTION] = f"{new_width}x{new_height}"

    @property
    def encoded(self) -> Movie:
        if self._encoded is None:
            self._encoded = Movie(self.output_file)
        return self._encoded

    # Running

    def progress(self) -> Iterator[float]:
        """
        Run the transcode lazily, yielding progress fractions.

        Each call performs a new run. Fractions start at 0.0 for every
        process launched, follow ffmpeg's reported time over the source
        duration (not clamped) and end with 1.0 after successful
        validation.

        Raises:
            ProcessHangError: A process stopped reporting progress.
            EncodingFailedError: ffmpeg could not be started, or pre-encoding
                or output validation failed.
        """
        outcome = yield from self._transcode()
        self._raise_for_outcome(outcome)

    def execute(self, on_progress: Optional[ProgressCallback] = None) -> TranscodeOutcome:
        """
        Run the transcode and return its outcome instead of raising.

        Hangs become TIMEOUT outcomes; failed validation, failed pre-encoding
        and an ffmpeg that cannot be started become FAILURE outcomes.
        """
        steps = self._transcode()
        while True:
            try:
                fraction = next(steps)
            except StopIteration as stop:
                return stop.value
            if on_progress:
                on_progress(fraction)

    def run(self, on_progress: Optional[ProgressCallback] = None) -> Optional[Movie]:
        """
        Run the transcode.

        Returns:
            The encoded Movie, or None when validation is disabled.

        Raises:
            ProcessHangError: A process stopped reporting progress.
            EncodingFailedError: ffmpeg could not be started, or pre-encoding
                or output validation failed.
        """
        outcome = self.execute(on_progress)
        self._raise_for_outcome(outcome)
        return outcome.encoded

    @staticmethod
    def _raise_for_outcome(outcome: TranscodeOutcome) -> None:
        if outcome.status is OutcomeStatus.TIMEOUT:
            raise ProcessHangError(outcome.output, module="transcoder")
        if outcome.status is OutcomeStatus.FAILURE:
            raise EncodingFailedError(outcome.errors, outcome.output, module="transcoder")

    def _transcode(self) -> Generator[float, None, TranscodeOutcome]:
        self.errors = []
        failed = yield from self._pre_encode_if_necessary()
        if failed is not None:
            return failed

        self.command = f"{self.movie.ffmpeg_command} -y {self.raw_options} {shlex.quote(self.output_file)}"
        logger.info("Running transcoding...\n%s\n", self.command)
        result = ProcessResult(shlex.split(self.command))
        try:
            yield from self.runner.progress(result.command, self.movie.duration, result)
        except ProcessHangError:
            self.output = result.output
            logger.error("Process hung...\n@command\n%s\nOutput\n%s\n", self.command, self.output)
            return TranscodeOutcome(OutcomeStatus.TIMEOUT, self.output, ["process hung"],
                                    command=self.command)
        except OSError as e:
            logger.error("Could not start process...\n@command\n%s\n%s\n", self.command, e)
            return TranscodeOutcome(OutcomeStatus.FAILURE, result.output, [f"could not start ffmpeg: {e}"],
                                    command=self.command)
        self.output = result.output

        if not self.transcoder_options.validate:
            return TranscodeOutcome(OutcomeStatus.SUCCESS, self.output, command=self.command)

        outcome = self._validate_output_file()
        if outcome.succeeded:
            yield 1.0
        return outcome

    def encoding_succeeded(self) -> bool:
        """Check the output file; failed checks are recorded in errors"""
        if not Path(self.output_file).exists():
            self.errors.append("no output file created")
            return False
        self._encoded = None
        if not self.encoded.valid:
            self.errors.append("encoded file is invalid")
            return False
        return True

    def _validate_output_file(self) -> TranscodeOutcome:
        if self.encoding_succeeded():
            logger.info("Transcoding of %s to %s succeeded\n",
                        ", ".join(self.movie.paths), self.output_file)
            return TranscodeOutcome(OutcomeStatus.SUCCESS, self.output, encoded=self.encoded,
                                    command=self.command)
        logger.error("Failed encoding...\n%s\n\n%s\nErrors: %s. \n",
                     self.command, self.output, ", ".join(self.errors))
        return TranscodeOutcome(OutcomeStatus.FAILURE, self.output, list(self.errors),
                                command=self.command)

    # Multi-input pre-encoding

    def _pre_encode_frame_rate(self) -> float:
        requested = None
        if isinstance(self.raw_options, EncodingOptions):
            requested = self.raw_options.get(Option.FRAME_RATE)
        frame_rate = max(float(requested or self.movie.frame_rate or 0), MIN_PRE_ENCODE_FRAME_RATE)
        if frame_rate > MAX_PRE_ENCODE_FRAME_RATE:
            frame_rate = MIN_PRE_ENCODE_FRAME_RATE
        return frame_rate

    def calculate_interim_max_dimensions(self) -> tuple:
        """
        Return the canvas every input is scaled and padded onto.

        The largest input width and height are widened to a 16:9 frame
        without reducing either of them.
        """
        max_width, max_height = self.movie.width, self.movie.height
        for path in self.movie.paths:
            local_movie = Movie(path, self.movie.analyzeduration, self.movie.probesize)
            if local_movie.width is None or local_movie.height is None:
                raise MetadataError(f"Could not determine the resolution of {path}",
                                    module="transcoder")
            max_width = max(local_movie.width, max_width or 0)
            max_height = max(local_movie.height, max_height or 0)

        converted_width = math.ceil(max_height * FIXED_LOWER_TO_UPPER_RATIO)
        converted_height = math.ceil(max_width * FIXED_UPPER_TO_LOWER_RATIO)
        if converted_width >= max_width:
            max_width = converted_width
        else:
            max_height = converted_height
        return max_width, max_height

    def determine_audio_for_pre_encode(self, path: str) -> str:
        local_movie = Movie(path, self.movie.analyzeduration, self.movie.probesize)
        if local_movie.audio_streams:
            return '-map "0:a"'
        # Silent track so the concat filter finds audio in every input
        if self.movie.any_streams_contain_audio:
            return '-filter_complex "aevalsrc=0[a]" -shortest -map "[a]"'
        return ""

    def _pre_encode_if_necessary(self) -> Generator[float, None, Optional[TranscodeOutcome]]:
        """Convert each input into a common format, stopping at the first failure"""
        if len(self.movie.paths) <= 1:
            return None

        output_frame_rate = self._pre_encode_frame_rate()
        if isinstance(self.raw_options, EncodingOptions):
            pre_encode_options = self.raw_options.to_minimal_string()
        else:
            pre_encode_options = self._string_options or ""
        max_width, max_height = self.calculate_interim_max_dimensions()
        scale_filter = (
            f"[0:v]scale={max_width}:{max_height}:force_original_aspect_ratio=decrease,"
            f"pad={max_width}:{max_height}:(ow-iw)/2:(oh-ih)/2:color=black,setsar=1[Scaled]"
        )

        for index, path in enumerate(self.movie.paths):
            interim_path = self.movie.interim_paths[index]
            audio_map = self.determine_audio_for_pre_encode(path)
            command = (
                f"{self.movie.ffmpeg_command} -y -i {shlex.quote(path)} -movflags faststart "
                f"{pre_encode_options} -r {output_frame_rate:g} -filter_complex \"{scale_filter}\" "
                f"-map \"[Scaled]\" {audio_map} {shlex.quote(interim_path)}"
            )
            logger.info("Running pre-encoding...\n%s\n", command)
            result = ProcessResult(shlex.split(command))
            try:
                yield from self.runner.progress(result.command, None, result)
            except ProcessHangError:
                logger.error("Process hung...\n@command\n%s\nOutput\n%s\n", command, result.output)
                self._discard_interim(interim_path)
                return TranscodeOutcome(OutcomeStatus.TIMEOUT, result.output, ["process hung"],
                                        command=command)
            except OSError as e:
                logger.error("Could not start process...\n@command\n%s\n%s\n", command, e)
                self._discard_interim(interim_path)
                return TranscodeOutcome(OutcomeStatus.FAILURE, result.output,
                                        [f"could not start ffmpeg: {e}"], command=command)
            except Exception:
                logger.error("Process failed...\n@command\n%s\nOutput\n%s\n", command, result.output)
                self._discard_interim(interim_path)
                raise

            if result.returncode != 0:
                logger.error("Process failed...\n@command\n%s\nOutput\n%s\n", command, result.output)
                self._discard_interim(interim_path)
                return TranscodeOutcome(
                    OutcomeStatus.FAILURE, result.output,
                    [f"pre-encoding of {path} exited with code {result.returncode}"],
                    command=command,
                )
        return None
