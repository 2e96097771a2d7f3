"""
Build sigrok-cli argument lists from a CaptureConfig.

Pure functions: nothing here runs a process or touches the filesystem.
"""

from typing import List, Optional

from .config import PROTOCOL_ROLES, CaptureConfig, Protocol

SPI_TRIGGER = 'CS=f'            # CS falling edge
DECODER_LOG_LEVEL = '3'


def channel_spec(config: CaptureConfig) -> str:
    """'D2=CLK,D1=MOSI,D0=MISO,D3=CS' style --channels value."""
    return ','.join(
        f"{config.channels[role]}={role}" for role in PROTOCOL_ROLES[config.protocol]
    )


def capture_trigger(config: CaptureConfig) -> Optional[str]:
    if config.protocol == Protocol.SPI:
        return config.trigger or SPI_TRIGGER
    return config.trigger


def build_capture_args(config: CaptureConfig) -> List[str]:
    """Arguments for the capture call (without the sigrok-cli binary)."""
    args = []
    if config.device:
        args.extend(['-d', config.device])

    args.extend(['--channels', channel_spec(config)])
    args.extend(['--config', f"samplerate={config.sample_rate}"])

    trigger = capture_trigger(config)
    if trigger:
        args.extend(['-t', trigger])

    args.extend(['--time', config.duration])
    args.extend(['-o', config.artifact_path])
    return args


def decoder_spec(config: CaptureConfig) -> str:
    """Protocol decoder spec for -P, wired to the role names used at capture."""
    if config.protocol == Protocol.SPI:
        return (
            "spi:clk=CLK:mosi=MOSI:miso=MISO:cs=CS:wordsize=8"
            f":cpol={config.cpol}:cpha={config.cpha}"
        )
    return "i2c:scl=SCL:sda=SDA"


def build_decode_args(config: CaptureConfig, artifact_path: Optional[str] = None) -> List[str]:
    """Arguments for the decode call over the capture artifact."""
    return [
        '-i', artifact_path or config.artifact_path,
        '-P', decoder_spec(config),
        '-A', config.protocol.value.lower(),
        '-l', DECODER_LOG_LEVEL,
    ]
