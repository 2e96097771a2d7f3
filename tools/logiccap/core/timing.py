"""
Sample rate and timing helpers.

Parses and formats sample rates, formats durations, and summarizes the
timing of exported frames.
"""

import re
from typing import Dict, Sequence

import numpy as np


RATE_MULTIPLIERS = {'hz': 1, 'khz': 1e3, 'mhz': 1e6, 'ghz': 1e9}


def parse_sample_rate(text) -> float:
    """
    Extract a sample rate from '24000000', '24MHz' or '500 kHz'.

    Returns sample rate in Hz, or 0.0 if not found.
    """
    if isinstance(text, (int, float)):
        return float(text)
    if text is None:
        return 0.0

    text = str(text).strip()
    if re.fullmatch(r'\d+(?:\.\d+)?', text):
        return float(text)

    match = re.search(r'(\d+(?:\.\d+)?)\s*(Hz|kHz|MHz|GHz)\b', text, re.IGNORECASE)
    if match:
        val = float(match.group(1))
        unit = match.group(2).lower()
        return val * RATE_MULTIPLIERS.get(unit, 1)
    return 0.0


def format_sample_rate(rate) -> str:
    """Format a sample rate in Hz as '24 MHz', '500 kHz' or '100 Hz'."""
    try:
        rate = int(rate)
    except (TypeError, ValueError):
        return str(rate)

    if rate >= 1000000:
        return f"{rate // 1000000} MHz"
    elif rate >= 1000:
        return f"{rate // 1000} kHz"
    return f"{rate} Hz"


def format_duration(us: float) -> str:
    """Format a duration in microseconds with appropriate units."""
    if us < 1000:
        return f"{us:.1f}us"
    elif us < 1000000:
        return f"{us/1000:.2f}ms"
    else:
        return f"{us/1e6:.3f}s"


def frame_timing_stats(timestamps: Sequence[float]) -> Dict[str, float]:
    """
    Summarize frame timestamps (seconds) in export order.

    Gaps are taken between consecutive rows, so they can be negative if
    the decoder emitted out-of-order sample ranges.
    """
    if len(timestamps) == 0:
        return {'count': 0}

    times = np.asarray(timestamps, dtype=np.float64)
    stats = {
        'count': int(len(times)),
        'first_s': float(times[0]),
        'last_s': float(times[-1]),
        'span_s': float(times.max() - times.min()),
    }

    if len(times) > 1:
        gaps_us = np.diff(times) * 1e6
        stats['mean_gap_us'] = float(gaps_us.mean())
        stats['min_gap_us'] = float(gaps_us.min())
        stats['max_gap_us'] = float(gaps_us.max())

    return stats
