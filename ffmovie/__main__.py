"""
Command-line interface for ffmovie
"""
import argparse
import logging
import sys
from pathlib import Path

from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn

from . import __version__
from .config import TRANSCODE_TIMEOUT
from .exceptions import FFMovieError
from .formatting import (
    console, print_attributes, print_error, print_header, print_intervals, print_success
)
from .logging import configure_logging
from .movie import Movie
from .transcoder import Transcoder, TranscoderOptions

logger = logging.getLogger("ffmovie")

# CLI flag -> option name
_TRANSCODE_FLAGS = (
    "video_codec", "audio_codec", "resolution", "frame_rate", "video_bitrate",
    "audio_bitrate", "duration", "seek_time", "custom",
)


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be a positive number")
    return number


def _add_transcoder_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--preserve-aspect-ratio",
        dest="preserve_aspect_ratio",
        choices=["width", "height", "fit"],
        default=None,
        help="Adjust the resolution to keep the source aspect ratio"
    )
    timeout = parser.add_mutually_exclusive_group()
    timeout.add_argument(
        "--timeout",
        type=_positive_float,
        default=TRANSCODE_TIMEOUT,
        help="Seconds allowed between two progress updates (default: %(default)s)"
    )
    timeout.add_argument(
        "--no-timeout",
        dest="timeout",
        action="store_const",
        const=None,
        help="Never treat a silent ffmpeg as hung"
    )
    parser.add_argument(
        "--no-validate",
        dest="validate",
        action="store_false",
        help="Skip probing the output after encoding"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ffmovie",
        description="Probe, transcode and inspect media files with ffmpeg"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level (default from config)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    transcode = subparsers.add_parser("transcode", help="Transcode one or more inputs")
    transcode.add_argument("inputs", nargs="+", type=Path, help="Input file(s); several are concatenated")
    transcode.add_argument("-o", "--output", required=True, type=Path, help="Output file")
    for name in _TRANSCODE_FLAGS:
        transcode.add_argument(f"--{name.replace('_', '-')}", dest=name, default=None)
    _add_transcoder_flags(transcode)

    screenshot = subparsers.add_parser("screenshot", help="Extract a single frame")
    screenshot.add_argument("input", type=Path, help="Input file")
    screenshot.add_argument("-o", "--output", required=True, type=Path, help="Image file")
    screenshot.add_argument("--seek-time", dest="seek_time", default=None)
    screenshot.add_argument("--resolution", default=None)
    _add_transcoder_flags(screenshot)

    blackdetect = subparsers.add_parser("blackdetect", help="List black intervals")
    blackdetect.add_argument("input", type=Path, help="Input file")

    probe = subparsers.add_parser("probe", help="Print media attributes")
    probe.add_argument("input", type=Path, help="Input file")
    return parser


def parse_args(argv=None):
    """Parse command line arguments"""
    return build_parser().parse_args(argv)


def _transcoder_options(args) -> TranscoderOptions:
    return TranscoderOptions(
        validate=args.validate,
        preserve_aspect_ratio=args.preserve_aspect_ratio,
        timeout=args.timeout,
    )


def _run_with_progress(transcoder: Transcoder, description: str):
    """Run a transcoder behind a progress bar"""
    columns = [
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
    ]
    with Progress(*columns, console=console) as progress:
        task = progress.add_task(description, total=1.0)

        def on_progress(fraction: float) -> None:
            # Fractions can overshoot when the source duration is off
            progress.update(task, completed=min(max(fraction, 0.0), 1.0))

        return transcoder.run(on_progress)


def cmd_transcode(args) -> int:
    movie = Movie([str(path) for path in args.inputs])
    options = {name: getattr(args, name) for name in _TRANSCODE_FLAGS if getattr(args, name)}
    transcoder = Transcoder(movie, args.output, options, _transcoder_options(args))
    _run_with_progress(transcoder, f"Transcoding to {args.output.name}")
    print_success(f"Successfully transcoded to {args.output}")
    return 0


def cmd_screenshot(args) -> int:
    movie = Movie(str(args.input))
    options = {"screenshot": True, "seek_time": args.seek_time, "resolution": args.resolution}
    transcoder = Transcoder(movie, args.output, options, _transcoder_options(args))
    _run_with_progress(transcoder, f"Extracting {args.output.name}")
    print_success(f"Screenshot written to {args.output}")
    return 0


def cmd_blackdetect(args) -> int:
    movie = Movie(str(args.input))
    print_intervals(movie.black_detect())
    return 0


def cmd_probe(args) -> int:
    movie = Movie(str(args.input))
    if not movie.valid:
        print_error(f"Could not probe {args.input}: {movie.error}")
        return 1
    attributes = [
        ("container", movie.container),
        ("duration", movie.duration),
        ("bitrate", movie.bitrate),
        ("video_codec", movie.video_codec),
        ("resolution", movie.resolution),
        ("frame_rate", movie.frame_rate),
        ("rotation", movie.rotation),
        ("aspect_ratio", movie.calculated_aspect_ratio),
        ("audio_codec", movie.audio_codec),
        ("audio_channels", movie.audio_channels),
        ("audio_sample_rate", movie.audio_sample_rate),
    ]
    print_attributes(str(args.input), attributes)
    return 0


COMMANDS = {
    "transcode": cmd_transcode,
    "screenshot": cmd_screenshot,
    "blackdetect": cmd_blackdetect,
    "probe": cmd_probe,
}


def main(argv=None):
    """Main entry point"""
    args = parse_args(argv)
    configure_logging(args.log_level)

    print_header(f"ffmovie v{__version__}")
    try:
        return COMMANDS[args.command](args)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except (FFMovieError, FileNotFoundError) as e:
        print_error(str(e))
        return 1
    except Exception as e:
        logger.exception("Command failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
