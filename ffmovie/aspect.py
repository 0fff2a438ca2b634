"""Aspect ratio preservation for target resolutions

Given the source aspect ratio and a requested WIDTHxHEIGHT, one of the
dimensions is kept and the other recomputed. Recomputed dimensions are
always even, since most encoders subsample chroma by two.
"""

import logging
import math
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


class PreserveMode(str, Enum):
    WIDTH = "width"
    HEIGHT = "height"
    FIT = "fit"


def fix_dimension(n: float) -> int:
    """
    Round a computed dimension to an even integer.

    The ceiling is used when it is even, otherwise the floor; a value that
    is still odd (an exact odd integer) is bumped up by one.
    """
    ceiling = math.ceil(n)
    result = ceiling if ceiling % 2 == 0 else math.floor(n)
    if result % 2 == 1:
        result += 1
    return int(result)


def preserve_width(width: int, height: int, aspect_ratio: float) -> Tuple[int, int]:
    """Keep the width and derive the height from the aspect ratio"""
    return width, fix_dimension(width / aspect_ratio)


def preserve_height(width: int, height: int, aspect_ratio: float) -> Tuple[int, int]:
    """Keep the height and derive the width from the aspect ratio"""
    return fix_dimension(height * aspect_ratio), height


def is_rotated_odd(rotation: Optional[int]) -> bool:
    """True when rotation is an odd multiple of 90 degrees (width and height swap)"""
    if rotation is None:
        return False
    return (int(rotation) // 90) % 2 == 1


def resolve_preservation(mode, source_aspect: Optional[float], width: int, height: int,
                         rotated_odd: bool = False) -> Tuple[int, int]:
    """
    Compute the target resolution that keeps the source aspect ratio.

    Args:
        mode: "width", "height" or "fit" (or a PreserveMode).
        source_aspect: Source width/height ratio; None skips preservation.
        width: Requested width.
        height: Requested height.
        rotated_odd: Source is rotated by an odd multiple of 90 degrees;
            only consulted by "fit".

    Returns:
        The (width, height) to encode to. The requested resolution is
        returned unchanged when the aspect is unknown or the mode is not
        recognised.
    """
    if source_aspect is None:
        logger.debug("Source aspect ratio unknown, keeping %dx%d", width, height)
        return width, height

    try:
        mode = PreserveMode(getattr(mode, "value", mode))
    except ValueError:
        return width, height

    if mode is PreserveMode.WIDTH:
        return preserve_width(width, height, source_aspect)
    if mode is PreserveMode.HEIGHT:
        return preserve_height(width, height, source_aspect)

    # fit: compare against the aspect as displayed
    input_aspect = 1 / source_aspect if rotated_odd else source_aspect
    if width / height > input_aspect:
        return preserve_height(width, height, input_aspect)
    return preserve_width(width, height, input_aspect)
