"""
Write frames to a CSV table and read the table back for preview.
"""

import csv
from pathlib import Path
from typing import List, Sequence, Union

from .config import Protocol
from .decoder import Frame
from .exceptions import ExportFailure
from .log import get_logger

logger = get_logger("exporter")

HEADERS = {
    Protocol.SPI: ['time', 'mosi', 'miso'],
    Protocol.I2C: ['time', 'scl', 'sda'],
}

PREVIEW_LINES = 100


def header_for(protocol: Protocol) -> List[str]:
    return list(HEADERS[Protocol.parse(protocol)])


def frame_rows(frames: Sequence[Frame]) -> List[List[str]]:
    """Rows in frame order, timestamp formatted to nanoseconds."""
    return [frame.row() for frame in frames]


def export_frames(frames: Sequence[Frame], protocol: Protocol,
                  output_path: Union[str, Path]) -> List[List[str]]:
    """
    Write a header row plus one row per frame.

    Returns the data rows written. Raises ExportFailure if the file cannot
    be created or written.
    """
    output_path = Path(output_path)
    rows = frame_rows(frames)

    try:
        with open(output_path, 'w', newline='') as f:
            writer = csv.writer(f, lineterminator='\n')
            writer.writerow(header_for(protocol))
            writer.writerows(rows)
    except OSError as e:
        raise ExportFailure(f"export failed: could not write {output_path}: {e}")

    logger.debug("Exported %d frame(s) to %s", len(rows), output_path)
    return rows


def load_preview(output_path: Union[str, Path], max_lines: int = PREVIEW_LINES) -> List[str]:
    """
    Read the first max_lines lines of an exported table.

    A read error is returned as a single line so it can be shown in place
    of the preview.
    """
    lines = []
    try:
        with open(output_path, 'r', newline='') as f:
            for line in f:
                if len(lines) >= max_lines:
                    break
                lines.append(line.rstrip('\r\n'))
    except OSError as e:
        return [f"Error reading file: {e}"]
    return lines
