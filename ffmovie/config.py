"""Configuration settings for ffmovie

This module centralizes configuration including:
- Locations of the ffmpeg and ffprobe binaries
- Probe tuning (analyzeduration and probesize)
- The default per-chunk process timeout
- Pre-encode canvas and frame rate limits
- Logging level and log directory

User-configurable settings come from environment variables; per-run
settings (timeout, validation, aspect preservation) are passed explicitly
through TranscoderOptions.
"""

import os
from pathlib import Path


def _parse_timeout(raw: str):
    """Return the timeout in seconds, or None when disabled"""
    if raw.strip().lower() in ("", "0", "off", "false", "none"):
        return None
    return float(raw)


# Binaries
FFMPEG_BINARY = os.environ.get("FFMOVIE_FFMPEG_BINARY", "ffmpeg")
FFPROBE_BINARY = os.environ.get("FFMOVIE_FFPROBE_BINARY", "ffprobe")

# Probe tuning shared by the ffmpeg and ffprobe command prefixes
ANALYZE_DURATION = int(os.environ.get("FFMOVIE_ANALYZE_DURATION", "15000000"))
PROBE_SIZE = int(os.environ.get("FFMOVIE_PROBE_SIZE", "15000000"))

# Seconds allowed between two progress markers before a process counts as hung
TRANSCODE_TIMEOUT = _parse_timeout(os.environ.get("FFMOVIE_TIMEOUT", "30"))

# ffmpeg prints this on every throughput line
PROGRESS_MARKER = "size="

# Multi-input pre-encoding
INTERIM_DIR_NAME = "interim"
MIN_PRE_ENCODE_FRAME_RATE = 30
MAX_PRE_ENCODE_FRAME_RATE = 300
FIXED_LOWER_TO_UPPER_RATIO = 16.0 / 9.0
FIXED_UPPER_TO_LOWER_RATIO = 9.0 / 16.0

# Logging configuration
LOG_LEVEL = os.environ.get("FFMOVIE_LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_DIR = Path(os.environ.get("FFMOVIE_LOG_DIR", str(Path.home() / "ffmovie_logs")))
