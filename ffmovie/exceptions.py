"""Custom exceptions for ffmovie"""

from typing import List, Optional


class FFMovieError(Exception):
    """
    Base exception for all ffmovie errors.

    Attributes:
        message (str): A description of the error.
        module (str): The module where the error originated.
    """
    def __init__(self, message: str, module: str = None):
        self.message = message
        self.module = module or "unknown"
        super().__init__(f"[{self.module}] {self.message}")


class OptionsFormatError(FFMovieError):
    """Options were given in a shape that cannot be compiled"""


class MetadataError(FFMovieError):
    """Raised when media metadata cannot be retrieved or parsed"""


class ProcessError(FFMovieError):
    """
    Base class for failures of an external ffmpeg/ffprobe process.

    Attributes:
        output (str): Text captured from the process before it failed.
    """
    def __init__(self, message: str, output: str = "", module: str = None):
        super().__init__(message, module)
        self.output = output


class ProcessHangError(ProcessError):
    """The process produced no progress marker within the timeout"""
    def __init__(self, output: str = "", module: str = None):
        super().__init__(f"Process hung. Full output: {output}", output, module)


class BlackDetectError(ProcessError):
    """ffprobe wrote diagnostics while running black frame detection"""
    def __init__(self, output: str = "", errors: str = "", module: str = None):
        super().__init__(
            f"Failed to detect black frames: {output} :: {errors}", output, module
        )
        self.errors = errors


class EncodingFailedError(ProcessError):
    """The transcode finished but its output did not pass validation"""
    def __init__(self, errors: Optional[List[str]] = None, output: str = "", module: str = None):
        self.errors = list(errors or [])
        super().__init__(
            f"Failed encoding. Errors: {', '.join(self.errors)}. Full output: {output}",
            output,
            module,
        )
