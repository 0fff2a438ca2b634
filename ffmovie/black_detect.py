"""Black frame detection

Runs ffprobe over the lavfi blackdetect filter and pairs the reported
black_start/black_end tags into closed intervals.
"""

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .exceptions import BlackDetectError
from .process import decode_output

logger = logging.getLogger(__name__)

START_TAG = "black_start"
END_TAG = "black_end"


@dataclass
class BlackInterval:
    """A range of source seconds detected as solid black"""
    start: Optional[float] = None
    end: Optional[float] = None

    @property
    def closed(self) -> bool:
        return self.start is not None and self.end is not None


def _tag_name(key: str) -> str:
    # "TAG:lavfi.black_start" -> "black_start"
    return key.strip().rsplit(".", 1)[-1].rsplit(":", 1)[-1]


def extract_black_intervals(lines: Iterable[str]) -> List[BlackInterval]:
    """
    Pair start/end tags from key=value lines into closed intervals.

    Repeated lines are only considered once. A start overwrites any
    earlier unpaired start; an interval is emitted as soon as both bounds
    are known, so intervals come out in the order their closing tag
    appears. A start still unpaired at the end of input is dropped.
    """
    intervals = []
    pending = BlackInterval()

    for line in dict.fromkeys(lines):
        key, sep, value = line.partition("=")
        if not sep or not key.strip() or not value.strip():
            continue
        try:
            time = float(value.strip())
        except ValueError:
            logger.debug("Skipping non-numeric blackdetect line: %r", line)
            continue

        tag = _tag_name(key)
        if tag == START_TAG:
            pending.start = time
        elif tag == END_TAG:
            pending.end = time

        if pending.closed:
            intervals.append(pending)
            pending = BlackInterval()

    if pending.start is not None:
        logger.debug("Dropping unterminated black interval starting at %s", pending.start)
    return intervals


class BlackDetect:
    """
    Detect black intervals in a movie.

    Attributes:
        times (List[BlackInterval]): Intervals found by the last run.
        output (str): Raw ffprobe output of the last run.
    """

    def __init__(self, movie):
        self.movie = movie
        self.times: List[BlackInterval] = []
        self.output = ""
        self._valid = False

    @property
    def valid(self) -> bool:
        return self._valid

    def build_command(self) -> List[str]:
        return shlex.split(self.movie.ffprobe_command) + [
            "-f", "lavfi",
            "-i", f"movie={self.movie.path},blackdetect[out0]",
            "-show_entries", "tags=lavfi.black_start,lavfi.black_end",
            "-of", "default=nw=1",
            "-v", "quiet",
        ]

    def run(self) -> List[BlackInterval]:
        """
        Run detection and return the closed black intervals.

        Raises:
            BlackDetectError: ffprobe wrote anything to stderr; the result
                is marked invalid.
        """
        command = self.build_command()
        logger.info("Running black detection...\n%s", " ".join(command))
        result = subprocess.run(command, capture_output=True)
        std_output = decode_output(result.stdout)
        std_error = decode_output(result.stderr)

        self.output = std_output
        self.times = extract_black_intervals(std_output.splitlines())

        if std_error:
            self._valid = False
            logger.error(std_error)
            raise BlackDetectError(std_output, std_error, module="black_detect")

        self._valid = True
        return self.times
