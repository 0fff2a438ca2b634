"""Compilation of encoding options into ffmpeg arguments

Responsibilities:
- Define the closed set of supported option names
- Convert each option value into a single ffmpeg argument string
- Order the arguments by category (seek, inputs, codecs, presets, other)
- Synthesize the concat filter graph for multi-input encodes
- Derive an -aspect flag from the target resolution

Codecs go before presets so that preset files match; every other
argument goes after the presets so it can override them.
"""

import logging
import re
import shlex
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


class Option(str, Enum):
    """Supported option names, in compilation order"""
    INPUTS = "inputs"
    INPUT = "input"  # single-input form of INPUTS
    SEEK_TIME = "seek_time"
    VIDEO_CODEC = "video_codec"
    AUDIO_CODEC = "audio_codec"
    VIDEO_PRESET = "video_preset"
    AUDIO_PRESET = "audio_preset"
    FILE_PRESET = "file_preset"
    FRAME_RATE = "frame_rate"
    RESOLUTION = "resolution"
    ASPECT = "aspect"
    VIDEO_BITRATE = "video_bitrate"
    AUDIO_BITRATE = "audio_bitrate"
    AUDIO_SAMPLE_RATE = "audio_sample_rate"
    AUDIO_CHANNELS = "audio_channels"
    VIDEO_MAX_BITRATE = "video_max_bitrate"
    VIDEO_MIN_BITRATE = "video_min_bitrate"
    BUFFER_SIZE = "buffer_size"
    VIDEO_BITRATE_TOLERANCE = "video_bitrate_tolerance"
    THREADS = "threads"
    DURATION = "duration"
    KEYFRAME_INTERVAL = "keyframe_interval"
    X264_VPROFILE = "x264_vprofile"
    X264_PRESET = "x264_preset"
    SCREENSHOT = "screenshot"
    VFRAMES = "vframes"
    WATERMARK = "watermark"
    WATERMARK_FILTER = "watermark_filter"
    CUSTOM = "custom"
    ANY_STREAMS_CONTAIN_AUDIO = "any_streams_contain_audio"


class ArgumentCategory(str, Enum):
    INPUT = "input"
    SEEK = "seek"
    CODEC = "codec"
    PRESET = "preset"
    COMPLEX_FILTER = "complex_filter"
    OTHER = "other"


# First match wins
_CATEGORY_PATTERNS = (
    (ArgumentCategory.INPUT, re.compile(r"-i ")),
    (ArgumentCategory.SEEK, re.compile(r"-ss")),
    (ArgumentCategory.CODEC, re.compile(r"codec")),
    (ArgumentCategory.PRESET, re.compile(r"-.pre")),
    (ArgumentCategory.COMPLEX_FILTER, re.compile(r"-filter_complex")),
)

_INPUT_FLAG = re.compile(r"(?:^|\s)-i(?=\s)")


def k_format(value: Any) -> str:
    """Append a "k" unit to bitrate-like values that lack one"""
    value = str(value)
    return value if "k" in value else f"{value}k"


def convert_inputs(values: Iterable[Any]) -> str:
    """Render a list of input paths as repeated -i flags"""
    return " ".join(f"-i {shlex.quote(str(value))}" for value in values)


def _watermark_overlay(x: str, y: str) -> Callable[[Mapping, "EncodingOptions"], str]:
    def overlay(value: Mapping, options: "EncodingOptions") -> str:
        pad_x = value.get("padding_x", 0)
        pad_y = value.get("padding_y", 0)
        return (f"-filter_complex 'scale={options.get(Option.RESOLUTION)},"
                f"overlay=x={x.format(pad_x)}:y={y.format(pad_y)}'")
    return overlay


_WATERMARK_POSITIONS = {
    "LT": _watermark_overlay("{}", "{}"),
    "RT": _watermark_overlay("main_w-overlay_w-{}", "{}"),
    "LB": _watermark_overlay("{}", "main_h-overlay_h-{}"),
    "RB": _watermark_overlay("main_w-overlay_w-{}", "main_h-overlay_h-{}"),
}


def _convert_watermark_filter(value: Mapping, options: "EncodingOptions") -> Optional[str]:
    position = value.get("position")
    if isinstance(position, Enum):
        position = position.value
    overlay = _WATERMARK_POSITIONS.get(str(position))
    if overlay is None:
        logger.debug("Ignoring unknown watermark position: %s", position)
        return None
    return overlay(value, options)


def _convert_screenshot(value: Any, options: "EncodingOptions") -> Optional[str]:
    if not value:
        return None
    return f"-vframes {options.get(Option.VFRAMES) or 1} -f image2"


def _flag(flag: str, formatter: Callable[[Any], str] = str) -> Callable[[Any, "EncodingOptions"], str]:
    return lambda value, options: f"{flag} {formatter(value)}"


def _ignored(value: Any, options: "EncodingOptions") -> None:
    # Known keys that only feed other converters or the transcoder
    return None


CONVERTERS: Dict[Option, Callable[[Any, "EncodingOptions"], Optional[str]]] = {
    Option.INPUTS: lambda value, options: convert_inputs(value),
    Option.INPUT: lambda value, options: convert_inputs([value]),
    Option.SEEK_TIME: _flag("-ss"),
    Option.VIDEO_CODEC: _flag("-vcodec"),
    Option.AUDIO_CODEC: _flag("-acodec"),
    Option.VIDEO_PRESET: _flag("-vpre"),
    Option.AUDIO_PRESET: _flag("-apre"),
    Option.FILE_PRESET: _flag("-fpre"),
    Option.FRAME_RATE: _flag("-r"),
    Option.RESOLUTION: _flag("-s"),
    Option.ASPECT: _flag("-aspect"),
    Option.VIDEO_BITRATE: _flag("-b:v", k_format),
    Option.AUDIO_BITRATE: _flag("-b:a", k_format),
    Option.AUDIO_SAMPLE_RATE: _flag("-ar"),
    Option.AUDIO_CHANNELS: _flag("-ac"),
    Option.VIDEO_MAX_BITRATE: _flag("-maxrate", k_format),
    Option.VIDEO_MIN_BITRATE: _flag("-minrate", k_format),
    Option.BUFFER_SIZE: _flag("-bufsize", k_format),
    Option.VIDEO_BITRATE_TOLERANCE: _flag("-bt", k_format),
    Option.THREADS: _flag("-threads"),
    Option.DURATION: _flag("-t"),
    Option.KEYFRAME_INTERVAL: _flag("-g"),
    Option.X264_VPROFILE: _flag("-vprofile"),
    Option.X264_PRESET: _flag("-preset"),
    Option.SCREENSHOT: _convert_screenshot,
    Option.VFRAMES: _ignored,
    Option.WATERMARK: lambda value, options: convert_inputs([value]),
    Option.WATERMARK_FILTER: _convert_watermark_filter,
    Option.CUSTOM: lambda value, options: str(value),
    Option.ANY_STREAMS_CONTAIN_AUDIO: _ignored,
}


def convert_option(key: Any, value: Any, options: "EncodingOptions") -> Optional[str]:
    """
    Convert one option into an argument string.

    Returns None for unset (None/False) values and for unknown option
    names, which are skipped rather than treated as errors.
    """
    if value is None or value is False:
        return None
    try:
        option = Option(key)
    except ValueError:
        logger.debug("Skipping unsupported option: %s", key)
        return None
    argument = CONVERTERS[option](value, options)
    return argument or None


def classify_argument(argument: str) -> ArgumentCategory:
    """Return the category of a compiled argument string"""
    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(argument):
            return category
    return ArgumentCategory.OTHER


def default_multi_input_complex_filter(num_inputs: int) -> str:
    """
    Build the concat filter graph used when several inputs are given.

    Every video stream gets its timestamps reset before all video/audio
    pairs are concatenated into the [v] and [a] outputs.
    """
    input_forming = ""
    final_grouping = ""
    for index in range(num_inputs):
        input_forming += f"[{index}:v]setpts=PTS-STARTPTS[v{index}];"
        final_grouping += f"[v{index}][{index}:a]"
    final_grouping += f"concat=n={num_inputs}:v=1:a=1[v][a]"
    return f"{input_forming}{final_grouping}"


def _key(key: Any) -> Any:
    return key.value if isinstance(key, Enum) else key


class EncodingOptions(dict):
    """
    A mapping of option names to values that compiles to ffmpeg arguments.

    Keys may be Option members or their string values; they are stored
    as plain strings. Values of None or False are treated as unset.

    Args:
        options: Initial option values.
        prefix_options: Options rendered before everything else, e.g.
            input-side flags that must precede the first -i.
    """

    def __init__(self, options: Optional[Mapping] = None, prefix_options: Optional[Mapping] = None):
        super().__init__()
        self.prefix_options = {_key(k): v for k, v in (prefix_options or {}).items()}
        if options:
            self.update(options)

    def __setitem__(self, key, value):
        super().__setitem__(_key(key), value)

    def __getitem__(self, key):
        return super().__getitem__(_key(key))

    def __contains__(self, key):
        return super().__contains__(_key(key))

    def get(self, key, default=None):
        return super().get(_key(key), default)

    def update(self, other=(), **kwargs):
        items = other.items() if isinstance(other, Mapping) else other
        for key, value in items:
            self[key] = value
        for key, value in kwargs.items():
            self[key] = value

    def merge(self, other: Mapping) -> "EncodingOptions":
        """Return a copy with other's values applied, keeping prefix options"""
        merged = EncodingOptions(self, self.prefix_options)
        merged.update(other)
        return merged

    def _dimensions(self) -> Tuple[Optional[int], Optional[int]]:
        # Named sizes such as "hd720" have no numeric dimensions
        resolution = self.get(Option.RESOLUTION)
        if not resolution:
            return None, None
        width, sep, height = str(resolution).partition("x")
        try:
            return (int(width), int(height)) if sep else (None, None)
        except ValueError:
            return None, None

    @property
    def width(self) -> Optional[int]:
        return self._dimensions()[0]

    @property
    def height(self) -> Optional[int]:
        return self._dimensions()[1]

    def calculate_aspect(self) -> float:
        return self.width / self.height

    def should_calculate_aspect(self) -> bool:
        return self.get(Option.ASPECT) is None and bool(self.width) and bool(self.height)

    def _compile(self, options: Mapping) -> List[str]:
        """Convert options in declaration order, dropping skipped ones"""
        for key in options:
            if key not in Option._value2member_map_:
                logger.debug("Skipping unsupported option: %s", key)
        arguments = []
        for option in Option:
            argument = convert_option(option, options.get(option.value), self)
            if argument:
                arguments.append(argument)
        return arguments

    def _aspect_argument(self) -> Optional[str]:
        if self.should_calculate_aspect():
            return CONVERTERS[Option.ASPECT](self.calculate_aspect(), self)
        return None

    def to_args(self) -> List[str]:
        """
        Compile to the full ordered list of argument strings.

        Order: prefix, seek, inputs, codecs, presets, everything else,
        then the synthesized multi-input filter (when more than one input
        is present and no complex filter was given) and the derived
        -aspect flag.
        """
        arguments = self._compile(self)
        categories = [classify_argument(argument) for argument in arguments]

        def select(*wanted):
            return [a for a, c in zip(arguments, categories) if c in wanted]

        inputs = select(ArgumentCategory.INPUT)
        params = (self._compile(self.prefix_options)
                  + select(ArgumentCategory.SEEK)
                  + inputs
                  + select(ArgumentCategory.CODEC)
                  + select(ArgumentCategory.PRESET)
                  + select(ArgumentCategory.COMPLEX_FILTER, ArgumentCategory.OTHER))

        num_inputs = len(_INPUT_FLAG.findall(inputs[0])) if inputs else 0
        contains_complex_filter = any("-filter_complex" in argument for argument in arguments)
        if num_inputs > 1 and not contains_complex_filter:
            params.append(
                f"-filter_complex \"{default_multi_input_complex_filter(num_inputs)}\" "
                f"-map \"[v]\" -map \"[a]\""
            )

        aspect = self._aspect_argument()
        if aspect:
            params.append(aspect)
        return params

    def to_minimal_args(self) -> List[str]:
        """
        Compile the subset used for pre-encoding each input separately.

        Inputs, seek and complex filters are left out; the pre-encode step
        supplies its own.
        """
        arguments = self._compile(self)
        params = []
        for wanted in (ArgumentCategory.CODEC, ArgumentCategory.PRESET, ArgumentCategory.OTHER):
            params.extend(a for a in arguments if classify_argument(a) == wanted)
        aspect = self._aspect_argument()
        if aspect:
            params.append(aspect)
        return params

    def to_minimal_string(self) -> str:
        return " ".join(self.to_minimal_args())

    def __str__(self) -> str:
        return " ".join(self.to_args())
