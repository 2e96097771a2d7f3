import threading

import pytest

from logiccap.core.config import CaptureConfig, Protocol
from logiccap.core.exceptions import CaptureFailure, DecodeFailure, DiscoveryFailure
from logiccap.core.sigrok import LogicAnalyzer

SPI_OUTPUT = "\n".join([
    "cli: Opening input file 'capture.sr'.",
    "240000-240192 spi-1: \"3C\"",
    "240000-240192 spi-1: \"A5\"",
    "480000-480192 spi-1: \"00\"",
    "",
])

I2C_OUTPUT = "\n".join([
    "24000-24010 i2c-1: Start",
    "24100-24900 i2c-1: Address write: 50",
    "25000-25800 i2c-1: Data write: 3C",
    "26000-26010 i2c-1: Stop",
])


class FakeRunner:
    """Stands in for SigrokRunner, recording the calls it receives."""

    def __init__(self, decode_output="", scan_output="", fail=None, gate=None,
                 partial=False):
        self.decode_output = decode_output
        self.scan_output = scan_output
        self.fail = fail
        self.gate = gate
        self.partial = partial
        self.calls = []

    def check(self):
        return True, "sigrok-cli 0.7.2"

    def scan(self):
        self.calls.append(('scan', []))
        if self.fail == 'scan':
            raise DiscoveryFailure("failed to scan for devices: no driver")
        return self.scan_output

    def capture(self, args):
        self.calls.append(('capture', list(args)))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.partial:
            with open(args[args.index("-o") + 1], "wb") as f:
                f.write(b"PK\x03\x04")
        if self.fail == 'capture':
            raise CaptureFailure("capture failed: device busy", returncode=1, stderr="device busy")

    def decode(self, args):
        self.calls.append(('decode', list(args)))
        if self.fail == 'decode':
            raise DecodeFailure("decode failed: bad file", returncode=1, stderr="bad file")
        return self.decode_output


@pytest.fixture
def spi_runner():
    return FakeRunner(decode_output=SPI_OUTPUT)


@pytest.fixture
def device():
    return LogicAnalyzer(driver="fx2lafw", conn="1.43")


@pytest.fixture
def spi_config(tmp_path):
    return CaptureConfig(
        protocol=Protocol.SPI,
        output_path=str(tmp_path / "out.csv"),
        artifact_path=str(tmp_path / "capture.sr"),
    )


@pytest.fixture
def i2c_config(tmp_path):
    return CaptureConfig(
        protocol=Protocol.I2C,
        output_path=str(tmp_path / "i2c.csv"),
        artifact_path=str(tmp_path / "capture.sr"),
    )


@pytest.fixture
def gate():
    return threading.Event()
