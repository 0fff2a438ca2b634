"""Media file inspection

Responsibilities:
- Probe a local file or URL with ffprobe (through ffmpeg-python)
- Expose duration, codecs, resolution, bitrate, rotation and aspect ratios
- Track interim paths used when several inputs are concatenated
- Entry points for transcoding, screenshots and black frame detection
"""

import logging
import os
import re
import shlex
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import ffmpeg

from .config import ANALYZE_DURATION, FFMPEG_BINARY, FFPROBE_BINARY, PROBE_SIZE
from .exceptions import MetadataError
from .process import decode_output

logger = logging.getLogger(__name__)

_REMOTE_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")

PathLike = Union[str, Path]


def is_remote(path: str) -> bool:
    return bool(_REMOTE_PATTERN.match(path))


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number is not None else None


def _ratio(value: Optional[str], separator: str) -> Optional[float]:
    """Return a "num<sep>den" string as a float, None when degenerate"""
    if not value or separator not in value:
        return None
    numerator, denominator = (_to_float(v) for v in value.split(separator, 1))
    if not numerator or not denominator:
        return None
    return numerator / denominator


class Movie:
    """
    A probed media file, or a list of files to be concatenated.

    Attributes are read from the first path. Local paths must exist;
    URLs are handed to ffprobe as-is. Probe failures leave the movie
    invalid with `error` set rather than raising.

    Args:
        paths: A path/URL or a list of them.
        analyzeduration: ffprobe/ffmpeg -analyzeduration value.
        probesize: ffprobe/ffmpeg -probesize value.
    """

    def __init__(self, paths: Union[PathLike, Sequence[PathLike]],
                 analyzeduration: int = ANALYZE_DURATION, probesize: int = PROBE_SIZE):
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self.paths: List[str] = [str(p) for p in paths]
        for path in self.paths:
            if not is_remote(path) and not os.path.exists(path):
                raise FileNotFoundError(f"the file '{path}' does not exist")

        self.analyzeduration = analyzeduration
        self.probesize = probesize
        self.interim_paths: List[str] = []
        self.error: Optional[str] = None
        self.metadata = self._probe(self.path)

    @property
    def path(self) -> str:
        return self.paths[0]

    @property
    def ffprobe_command(self) -> str:
        return (f"{shlex.quote(FFPROBE_BINARY)} -hide_banner -analyzeduration {self.analyzeduration} "
                f"-probesize {self.probesize}")

    @property
    def ffmpeg_command(self) -> str:
        return (f"{shlex.quote(FFMPEG_BINARY)} -hide_banner -analyzeduration {self.analyzeduration} "
                f"-probesize {self.probesize}")

    def _probe(self, path: str) -> Dict[str, Any]:
        try:
            return ffmpeg.probe(
                path,
                cmd=FFPROBE_BINARY,
                analyzeduration=self.analyzeduration,
                probesize=self.probesize,
            )
        except ffmpeg.Error as e:
            self.error = decode_output(e.stderr or b"").strip() or str(e)
            logger.debug("Probe of %s failed: %s", path, self.error)
            return {}

    # Container

    @property
    def format(self) -> Dict[str, Any]:
        return self.metadata.get("format", {})

    @property
    def streams(self) -> List[Dict[str, Any]]:
        return self.metadata.get("streams", [])

    @property
    def duration(self) -> float:
        return _to_float(self.format.get("duration")) or 0.0

    @property
    def bitrate(self) -> Optional[int]:
        return _to_int(self.format.get("bit_rate"))

    @property
    def container(self) -> Optional[str]:
        return self.format.get("format_name")

    @property
    def creation_time(self) -> Optional[str]:
        return self.format.get("tags", {}).get("creation_time")

    @property
    def size(self) -> Optional[int]:
        if is_remote(self.path):
            return _to_int(self.format.get("size"))
        return os.path.getsize(self.path)

    # Video

    @property
    def video_stream(self) -> Optional[Dict[str, Any]]:
        return next((s for s in self.streams if s.get("codec_type") == "video"), None)

    def _video(self, key: str) -> Any:
        return (self.video_stream or {}).get(key)

    @property
    def video_codec(self) -> Optional[str]:
        return self._video("codec_name")

    @property
    def video_profile(self) -> Optional[str]:
        return self._video("profile")

    @property
    def video_bitrate(self) -> Optional[int]:
        return _to_int(self._video("bit_rate"))

    @property
    def colorspace(self) -> Optional[str]:
        return self._video("pix_fmt")

    @property
    def width(self) -> Optional[int]:
        return _to_int(self._video("width"))

    @property
    def height(self) -> Optional[int]:
        return _to_int(self._video("height"))

    @property
    def resolution(self) -> Optional[str]:
        if self.width is None or self.height is None:
            return None
        return f"{self.width}x{self.height}"

    @property
    def frame_rate(self) -> Optional[float]:
        return _ratio(self._video("avg_frame_rate"), "/")

    @property
    def rotation(self) -> Optional[int]:
        rotate = (self._video("tags") or {}).get("rotate")
        if rotate is not None:
            return _to_int(rotate)
        for side_data in self._video("side_data_list") or []:
            if "rotation" in side_data:
                return _to_int(side_data["rotation"])
        return None

    @property
    def dar(self) -> Optional[str]:
        return self._video("display_aspect_ratio")

    @property
    def sar(self) -> Optional[str]:
        return self._video("sample_aspect_ratio")

    @property
    def calculated_aspect_ratio(self) -> Optional[float]:
        """Display aspect ratio, from the DAR or else from width/height"""
        aspect = _ratio(self.dar, ":")
        if aspect is not None:
            return aspect
        if self.width and self.height:
            return self.width / self.height
        return None

    @property
    def calculated_pixel_aspect_ratio(self) -> float:
        return _ratio(self.sar, ":") or 1.0

    # Audio

    @property
    def audio_streams(self) -> List[Dict[str, Any]]:
        return [
            {
                "index": stream.get("index"),
                "codec_name": stream.get("codec_name"),
                "channels": _to_int(stream.get("channels")),
                "channel_layout": stream.get("channel_layout"),
                "sample_rate": _to_int(stream.get("sample_rate")),
                "bitrate": _to_int(stream.get("bit_rate")),
                "tags": stream.get("tags", {}),
            }
            for stream in self.streams if stream.get("codec_type") == "audio"
        ]

    def _audio(self, key: str) -> Any:
        streams = self.audio_streams
        return streams[0][key] if streams else None

    @property
    def audio_codec(self) -> Optional[str]:
        return self._audio("codec_name")

    @property
    def audio_channels(self) -> Optional[int]:
        return self._audio("channels")

    @property
    def audio_channel_layout(self) -> Optional[str]:
        return self._audio("channel_layout")

    @property
    def audio_sample_rate(self) -> Optional[int]:
        return self._audio("sample_rate")

    @property
    def audio_bitrate(self) -> Optional[int]:
        return self._audio("bitrate")

    @cached_property
    def any_streams_contain_audio(self) -> bool:
        """True when any of the paths has an audio stream"""
        if self.audio_streams:
            return True
        return any(
            Movie(path, self.analyzeduration, self.probesize).audio_streams
            for path in self.paths[1:]
        )

    @property
    def valid(self) -> bool:
        return self.error is None and (self.video_codec is not None or self.audio_codec is not None)

    # Operations

    def transcode(self, output_file: PathLike, options=None, transcoder_options=None,
                  transcoder_prefix_options=None, on_progress=None):
        from .transcoder import Transcoder
        transcoder = Transcoder(self, output_file, options, transcoder_options,
                                transcoder_prefix_options)
        return transcoder.run(on_progress)

    def screenshot(self, output_file: PathLike, options=None, transcoder_options=None,
                   on_progress=None):
        from .encoding_options import EncodingOptions, Option
        if isinstance(options, EncodingOptions):
            options = options.merge({Option.SCREENSHOT: True})
        else:
            options = dict(options or {}, screenshot=True)
        return self.transcode(output_file, options, transcoder_options, on_progress=on_progress)

    def black_detect(self):
        from .black_detect import BlackDetect
        return BlackDetect(self).run()

    def __repr__(self) -> str:
        return f"Movie({self.paths!r})"
