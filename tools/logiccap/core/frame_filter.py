"""
Drop frames that carry no recognizable data byte.
"""

import re
from typing import List

from .decoder import Frame

HEX_BYTE_PATTERN = re.compile(r'\b[0-9A-Fa-f]{2}\b')


def is_valid_hex_data(text: str) -> bool:
    """True if text contains at least one whole hex byte (00-FF)."""
    if not text:
        return False
    return HEX_BYTE_PATTERN.search(text) is not None


def has_data_byte(frame: Frame) -> bool:
    return any(is_valid_hex_data(p) for p in frame.payloads())


def filter_frames(frames: List[Frame], enabled: bool) -> List[Frame]:
    """
    Keep frames with at least one hex byte in any payload when enabled.

    Order is preserved. When disabled the frames pass through unchanged.
    """
    if not enabled:
        return list(frames)
    return [f for f in frames if has_data_byte(f)]
