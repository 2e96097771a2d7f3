"""
Capture configuration - protocol, channel roles, rate, duration, output.

A CaptureConfig is frozen: the control surface edits it by building a
new one with with_changes(), and a running capture keeps the copy it
started with.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional

from .exceptions import ConfigError
from .timing import parse_sample_rate


class Protocol(str, Enum):
    SPI = 'SPI'
    I2C = 'I2C'

    @classmethod
    def parse(cls, value) -> 'Protocol':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ConfigError(
                f"Unsupported protocol: {value} "
                f"(supported: {', '.join(p.value for p in cls)})"
            )


# Signal roles in the order they appear in the --channels argument
PROTOCOL_ROLES = {
    Protocol.SPI: ('CLK', 'MOSI', 'MISO', 'CS'),
    Protocol.I2C: ('SDA', 'SCL'),
}

DEFAULT_CHANNELS = {
    Protocol.SPI: {'CLK': 'D2', 'MOSI': 'D1', 'MISO': 'D0', 'CS': 'D3'},
    Protocol.I2C: {'SDA': 'D0', 'SCL': 'D1'},
}

DEFAULT_SAMPLE_RATE = 24000000
DEFAULT_DURATION = '500ms'
DEFAULT_OUTPUT = 'output.csv'
DEFAULT_ARTIFACT = 'capture.sr'

DURATION_OPTIONS = ['2000ms', '1000ms', '500ms', '250ms']
SAMPLE_RATE_OPTIONS = [
    48000000, 24000000, 16000000, 12000000, 8000000,
    6000000, 4000000, 2000000, 1000000,
]


@dataclass(frozen=True)
class CaptureConfig:
    """Everything needed to capture and decode one run."""
    protocol: Protocol = Protocol.SPI
    channels: Dict[str, str] = field(default_factory=dict)
    sample_rate: int = DEFAULT_SAMPLE_RATE
    duration: str = DEFAULT_DURATION
    device: str = ''                    # sigrok device spec, e.g. fx2lafw:conn=1.43
    trigger: Optional[str] = None       # SPI falls back to CS falling edge
    output_path: str = DEFAULT_OUTPUT
    artifact_path: str = DEFAULT_ARTIFACT
    filter_frames: bool = False
    cpol: str = '0'
    cpha: str = '0'

    def __post_init__(self):
        object.__setattr__(self, 'protocol', Protocol.parse(self.protocol))

        channels = dict(DEFAULT_CHANNELS[self.protocol])
        channels.update({k.upper(): v for k, v in (self.channels or {}).items()})
        roles = PROTOCOL_ROLES[self.protocol]
        object.__setattr__(self, 'channels', {r: channels[r] for r in roles if r in channels})

        self.validate()

    def validate(self) -> None:
        """Raise ConfigError if the configuration cannot drive a capture."""
        if isinstance(self.sample_rate, bool) or not isinstance(self.sample_rate, int):
            raise ConfigError(f"Sample rate must be an integer number of Hz, got {self.sample_rate!r}")
        if self.sample_rate <= 0:
            raise ConfigError(f"Sample rate must be positive, got {self.sample_rate}")

        if not self.duration or not str(self.duration).strip():
            raise ConfigError("Capture duration must not be empty")

        missing = [r for r in PROTOCOL_ROLES[self.protocol] if not self.channels.get(r)]
        if missing:
            raise ConfigError(
                f"{self.protocol.value} needs a channel for: {', '.join(missing)}"
            )

        if self.protocol == Protocol.SPI:
            for name, value in (('CPOL', self.cpol), ('CPHA', self.cpha)):
                if str(value) not in ('0', '1'):
                    raise ConfigError(f"{name} must be 0 or 1, got {value!r}")

        if not self.output_path:
            raise ConfigError("Output path must not be empty")

    @classmethod
    def from_options(cls, protocol='SPI', sample_rate=DEFAULT_SAMPLE_RATE,
                     channels: Optional[Dict[str, str]] = None,
                     **kwargs) -> 'CaptureConfig':
        """
        Build a config from loosely typed values (CLI strings).

        sample_rate may be '24000000', '24MHz' or an int.
        """
        rate = parse_sample_rate(sample_rate)
        if rate <= 0 or rate != int(rate):
            raise ConfigError(f"Invalid sample rate: {sample_rate!r}")

        channels = {k: v for k, v in (channels or {}).items() if v}
        kwargs = {k: v for k, v in kwargs.items() if v is not None}
        return cls(protocol=Protocol.parse(protocol), sample_rate=int(rate),
                   channels=channels, **kwargs)

    def with_changes(self, **changes) -> 'CaptureConfig':
        """
        Return an edited copy.

        Switching protocol resets channel roles and drops the trigger, which
        names channels of the old protocol.
        """
        if 'protocol' in changes and Protocol.parse(changes['protocol']) != self.protocol:
            changes.setdefault('channels', {})
            changes.setdefault('trigger', None)
        return replace(self, **changes)
