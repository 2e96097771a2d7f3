"""
Decode-correlation engine for sigrok-cli annotation output.

Turns decoder text such as

    12000-12192 spi-1: "3C"
    12000-12192 spi-1: "A5"
    24800-24900 i2c-1: Address write: 50

into time-stamped frames, one per logical bus transaction. Lines that do
not look like decoder output are skipped without complaint.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

from .config import Protocol
from .log import get_logger

logger = get_logger("decoder")

SPI_TAG = 'spi-1:'
I2C_TAG = 'i2c-1:'
PAYLOAD_QUOTES = '"'


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class AnnotationLine:
    """One retained line of decoder output."""
    sample_range: str           # 'start-end', used as the correlation key
    start_sample: int
    tag: str                    # e.g. 'spi-1:'
    payload: str                # text after the tag, quotes stripped
    fields: List[str] = field(default_factory=list)


@dataclass
class Frame:
    """A correlated, time-stamped transaction."""
    key: str
    start_sample: int
    timestamp: float

    def payloads(self) -> List[str]:
        return []

    def is_empty(self) -> bool:
        return not any(self.payloads())

    def row(self) -> List[str]:
        return [format_timestamp(self.timestamp)] + self.payloads()


@dataclass
class SpiFrame(Frame):
    mosi: str = ''
    miso: str = ''

    def payloads(self) -> List[str]:
        return [self.mosi, self.miso]


@dataclass
class I2cFrame(Frame):
    payload: str = ''

    def payloads(self) -> List[str]:
        return [self.payload]

    def row(self) -> List[str]:
        # third column is left blank, the payload is one combined field
        return [format_timestamp(self.timestamp), self.payload, '']


def format_timestamp(seconds: float) -> str:
    return f"{seconds:.9f}"


def sample_timestamp(start_sample: int, sample_rate: float) -> float:
    """Seconds from capture start. A zero or bad sample rate gives 0."""
    try:
        rate = float(sample_rate)
    except (TypeError, ValueError):
        return 0.0
    if rate <= 0:
        return 0.0
    return start_sample / rate


# ============================================================================
# LINE PARSING
# ============================================================================

def parse_annotation_line(line: str, tag: str) -> Optional[AnnotationLine]:
    """
    Parse one line of decoder output.

    Returns None for anything that is not '<start>-<end> <tag> ...'
    output from the given decoder channel.
    """
    if tag not in line:
        return None

    parts = line.split()
    if len(parts) < 3:
        return None

    sample_range = parts[0]
    if sample_range.startswith('cli:') or '-' not in sample_range:
        return None

    try:
        start_sample = int(sample_range.split('-')[0])
    except ValueError:
        return None
    if start_sample < 0:
        return None

    payload = line[line.index(tag) + len(tag):].strip().strip(PAYLOAD_QUOTES)

    return AnnotationLine(
        sample_range=sample_range,
        start_sample=start_sample,
        tag=tag,
        payload=payload,
        fields=parts,
    )


def _lines(output: Union[str, Iterable[str]]) -> Iterable[str]:
    if isinstance(output, str):
        return output.split('\n')
    return output


# ============================================================================
# SPI ROLE ASSIGNMENT
# ============================================================================

class RoleAssigner(ABC):
    """Decides which SPI slot a payload belongs to within one frame."""

    @abstractmethod
    def assign(self, frame: SpiFrame, annotation: AnnotationLine) -> None:
        ...


class ArrivalOrderAssigner(RoleAssigner):
    """
    First payload for a sample range is MISO, second is MOSI.

    This mirrors the order sigrok's SPI decoder has been observed to print
    the two data annotations in. The annotation stream carries no role, so
    if that order ever changes the pairs come out swapped.
    """

    def assign(self, frame: SpiFrame, annotation: AnnotationLine) -> None:
        if not frame.miso:
            frame.miso = annotation.payload
        elif not frame.mosi:
            frame.mosi = annotation.payload


# ============================================================================
# DECODERS
# ============================================================================

class AnnotationDecoder(ABC):
    """Converts decoder output into frames for one protocol."""

    protocol: Protocol
    tag: str

    def __init__(self, sample_rate: float):
        self.sample_rate = sample_rate

    @abstractmethod
    def decode(self, output: Union[str, Iterable[str]]) -> List[Frame]:
        ...


class SpiDecoder(AnnotationDecoder):
    """
    Pairs the two data annotations that share a sample range into one frame.

    Frames come out in the order their sample range was first seen.
    """

    protocol = Protocol.SPI
    tag = SPI_TAG

    def __init__(self, sample_rate: float, assigner: Optional[RoleAssigner] = None):
        super().__init__(sample_rate)
        self.assigner = assigner or ArrivalOrderAssigner()

    def decode(self, output: Union[str, Iterable[str]]) -> List[Frame]:
        frames: Dict[str, SpiFrame] = {}
        skipped = 0

        for line in _lines(output):
            annotation = parse_annotation_line(line, self.tag)
            if annotation is None:
                if line.strip():
                    skipped += 1
                continue

            key = annotation.sample_range
            if key not in frames:
                frames[key] = SpiFrame(
                    key=key,
                    start_sample=annotation.start_sample,
                    timestamp=sample_timestamp(annotation.start_sample, self.sample_rate),
                )

            if not annotation.payload:
                continue
            self.assigner.assign(frames[key], annotation)

        result = [f for f in frames.values() if not f.is_empty()]
        logger.debug("SPI: %d frame(s) from %d sample range(s), %d line(s) skipped",
                     len(result), len(frames), skipped)
        return result


class I2cDecoder(AnnotationDecoder):
    """One frame per retained I2C annotation line."""

    protocol = Protocol.I2C
    tag = I2C_TAG

    def decode(self, output: Union[str, Iterable[str]]) -> List[Frame]:
        frames: List[Frame] = []
        skipped = 0

        for line in _lines(output):
            annotation = parse_annotation_line(line, self.tag)
            if annotation is None:
                if line.strip():
                    skipped += 1
                continue

            payload = ' '.join(annotation.fields[2:])
            if not payload:
                continue

            frames.append(I2cFrame(
                key=annotation.sample_range,
                start_sample=annotation.start_sample,
                timestamp=sample_timestamp(annotation.start_sample, self.sample_rate),
                payload=payload,
            ))

        logger.debug("I2C: %d frame(s), %d line(s) skipped", len(frames), skipped)
        return frames


def get_decoder(protocol: Protocol, sample_rate: float,
                assigner: Optional[RoleAssigner] = None) -> AnnotationDecoder:
    protocol = Protocol.parse(protocol)
    if protocol == Protocol.SPI:
        return SpiDecoder(sample_rate, assigner=assigner)
    return I2cDecoder(sample_rate)


def decode_annotations(output: Union[str, Iterable[str]], protocol: Protocol,
                       sample_rate: float,
                       assigner: Optional[RoleAssigner] = None) -> List[Frame]:
    """Decode annotation output for the given protocol into ordered frames."""
    return get_decoder(protocol, sample_rate, assigner=assigner).decode(output)
