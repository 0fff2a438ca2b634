"""Streaming execution of ffmpeg/ffprobe processes

Responsibilities:
- Launch the external process and guarantee it is terminated and closed
- Read its diagnostic stream in chunks ending at the progress marker
- Enforce a timeout between two chunks and report hangs
- Repair output that is not valid UTF-8
- Convert "time=HH:MM:SS.ss" markers into progress fractions
"""

import logging
import queue
import re
import shlex
import subprocess
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Generator, Iterable, Iterator, List, Optional, Union

import psutil

from .config import PROGRESS_MARKER
from .exceptions import ProcessHangError

logger = logging.getLogger(__name__)

_TIME_PATTERN = re.compile(r"time=(\d+):(\d+):(\d+.\d+)")
_READ_SIZE = 4096
_EOF = object()

Command = Union[str, List[str]]
ProgressCallback = Callable[[float], None]


def decode_output(data: bytes) -> str:
    """Decode process output, falling back to ISO-8859-1 for invalid UTF-8"""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("iso-8859-1")


def parse_progress_time(chunk: str) -> Optional[float]:
    """
    Return the encoded time in seconds reported by a chunk.

    None when the chunk carries no "time=" marker; 0.0 when the marker is
    present but not in HH:MM:SS.ss form.
    """
    if "time=" not in chunk:
        return None
    match = _TIME_PATTERN.search(chunk)
    if not match:
        logger.debug("Unrecognised progress time in: %r", chunk)
        return 0.0
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def split_chunks(blocks: Iterable[bytes], separator: bytes) -> Iterator[bytes]:
    """Regroup raw reads into chunks that each end with separator"""
    buffer = b""
    for block in blocks:
        buffer += block
        while True:
            index = buffer.find(separator)
            if index < 0:
                break
            end = index + len(separator)
            yield buffer[:end]
            buffer = buffer[end:]
    if buffer:
        yield buffer


def _read_blocks(stream) -> Iterator[bytes]:
    read = getattr(stream, "read1", stream.read)
    while True:
        block = read(_READ_SIZE)
        if not block:
            return
        yield block


def _stream_reader(stream, queue_obj: queue.Queue, separator: bytes) -> None:
    """Put separator-terminated chunks from stream into a queue, then an EOF marker"""
    try:
        for chunk in split_chunks(_read_blocks(stream), separator):
            queue_obj.put(chunk)
    except (OSError, ValueError) as e:
        # Stream closed underneath us after termination
        logger.debug("Stopped reading process output: %s", e)
    finally:
        queue_obj.put(_EOF)


def terminate_process_tree(process: subprocess.Popen, timeout: float = 5.0) -> None:
    """Terminate a process and its children, killing whatever survives timeout"""
    if process.poll() is not None:
        return
    try:
        children = psutil.Process(process.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []
    for child in children:
        try:
            child.terminate()
        except psutil.NoSuchProcess:
            pass

    process.terminate()
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()

    _, alive = psutil.wait_procs(children, timeout=timeout)
    for child in alive:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass


@dataclass
class ProcessResult:
    """Text and exit status collected from one process run"""
    command: List[str]
    chunks: List[str] = field(default_factory=list)
    returncode: Optional[int] = None

    @property
    def output(self) -> str:
        return "".join(self.chunks)


class ProcessRunner:
    """
    Runs ffmpeg-style commands while streaming their stderr.

    Args:
        timeout: Seconds allowed between two progress markers; None
            disables the check. The limit applies per chunk, so a process
            that keeps reporting progress never times out.
        marker: Substring that terminates a chunk of diagnostic output.
    """

    def __init__(self, timeout: Optional[float] = None, marker: str = PROGRESS_MARKER):
        self.timeout = timeout
        self.marker = marker

    @staticmethod
    def _as_args(command: Command) -> List[str]:
        return shlex.split(command) if isinstance(command, str) else [str(c) for c in command]

    @contextmanager
    def _spawn(self, args: List[str]) -> Generator[subprocess.Popen, None, None]:
        process = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
        try:
            yield process
        finally:
            terminate_process_tree(process)
            process.stderr.close()

    def iter_chunks(self, command: Command, result: Optional[ProcessResult] = None) -> Iterator[str]:
        """
        Yield decoded stderr chunks of a running command.

        Every chunk is also recorded in result, which receives the return
        code once the process exits, so the caller keeps the text when a
        ProcessHangError interrupts iteration. The process is terminated
        and reaped on every exit path.

        Raises:
            ProcessHangError: No chunk arrived within the timeout.
        """
        args = self._as_args(command)
        if result is None:
            result = ProcessResult(args)
        with self._spawn(args) as process:
            chunks: queue.Queue = queue.Queue()
            reader = threading.Thread(
                target=_stream_reader,
                args=(process.stderr, chunks, self.marker.encode()),
                daemon=True,
            )
            reader.start()
            while True:
                try:
                    chunk = chunks.get(timeout=self.timeout)
                except queue.Empty:
                    raise ProcessHangError(result.output, module="process") from None
                if chunk is _EOF:
                    break
                text = decode_output(chunk)
                result.chunks.append(text)
                yield text
            result.returncode = process.wait()
            reader.join(timeout=1)

    def progress(self, command: Command, duration: Optional[float],
                 result: Optional[ProcessResult] = None) -> Iterator[float]:
        """
        Lazily yield progress fractions for one run of command.

        0.0 is yielded before the process starts, then encoded time over
        duration for every chunk carrying a "time=" marker. Fractions are
        not clamped and may exceed 1.0 when the source duration is wrong.
        Each call starts a new process.
        """
        yield 0.0
        for chunk in self.iter_chunks(command, result):
            elapsed = parse_progress_time(chunk)
            if elapsed is not None and duration:
                yield elapsed / duration

    def run(self, command: Command, duration: Optional[float] = None,
            on_progress: Optional[ProgressCallback] = None) -> ProcessResult:
        """
        Run command to completion, reporting progress on the calling thread.

        Raises:
            ProcessHangError: The per-chunk timeout expired; the process
                has already been terminated.
        """
        result = ProcessResult(self._as_args(command))
        for fraction in self.progress(result.command, duration, result):
            if on_progress:
                on_progress(fraction)
        return result
