"""
ffmovie - a programmatic front-end for ffmpeg and ffprobe

This package provides:
- Probing of local or remote media files into a Movie object
- Compilation of declarative encoding options into ffmpeg arguments
- Aspect ratio preservation with encoder-friendly even dimensions
- Transcoding and screenshot extraction with streamed progress
- Black frame detection through the lavfi blackdetect filter

Multiple inputs are normalized to a common canvas and concatenated
into a single output.
"""

__version__ = "0.1.0"

from .encoding_options import EncodingOptions, Option
from .movie import Movie
from .transcoder import Transcoder, TranscoderOptions

__all__ = [
    "EncodingOptions",
    "Movie",
    "Option",
    "Transcoder",
    "TranscoderOptions",
    "__version__",
]
