"""
sigrok-cli boundary - device scan, capture and protocol decode.

The oracle is treated as a black box: every call returns
(returncode, stdout, stderr) and the stage methods turn a non-zero exit
into the matching LogicCapError.
"""

import re
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .exceptions import CaptureFailure, DecodeFailure, DiscoveryFailure
from .log import get_logger

logger = get_logger("sigrok")

SIGROK_CLI = 'sigrok-cli'

# e.g. "fx2lafw:conn=1.43 - fx2lafw - fx2lafw"
SCAN_PATTERN = re.compile(r'(\w+):conn=([0-9.]+)')


@dataclass
class LogicAnalyzer:
    """A capturable device reported by sigrok-cli --scan."""
    driver: str
    conn: str

    @property
    def device_spec(self) -> str:
        return f"{self.driver}:conn={self.conn}"

    @property
    def display_name(self) -> str:
        return f"{self.driver} - USB {self.conn}"


class SigrokRunner:
    """Runs sigrok-cli as a subprocess."""

    def __init__(self, binary: str = SIGROK_CLI, timeout: Optional[float] = None):
        self.binary = binary
        self.timeout = timeout

    def check(self) -> Tuple[bool, str]:
        """Check if sigrok-cli is installed and return version info."""
        rc, stdout, stderr = self.run(['--version'], timeout=10)
        if rc == 0:
            return True, stdout.strip().split('\n')[0]
        return False, stderr or "sigrok-cli returned non-zero exit code"

    def run(self, args: List[str], timeout: Optional[float] = None) -> Tuple[int, str, str]:
        """
        Run sigrok-cli with the given arguments.

        Returns (returncode, stdout, stderr).
        """
        cmd = [self.binary] + list(args)
        logger.debug("Running: %s", ' '.join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except FileNotFoundError:
            return 1, '', f'{self.binary} not found'
        except subprocess.TimeoutExpired:
            return 1, '', f'{self.binary} timed out'

        if result.stderr:
            logger.debug("%s stderr: %s", self.binary, result.stderr.strip())
        return result.returncode, result.stdout, result.stderr

    def scan(self) -> str:
        """Return raw --scan output."""
        rc, stdout, stderr = self.run(['--scan'], timeout=30)
        if rc != 0:
            raise DiscoveryFailure(
                f"failed to scan for devices: {_first_line(stderr) or f'exit code {rc}'}",
                returncode=rc, stderr=stderr,
            )
        # sigrok-cli prints the device list on stdout, older builds on stderr
        return stdout + stderr

    def capture(self, args: List[str]) -> None:
        """Run a capture. The artifact path is part of args (-o)."""
        rc, _, stderr = self.run(args)
        if rc != 0:
            raise CaptureFailure(
                f"capture failed: {_first_line(stderr) or f'exit code {rc}'}",
                returncode=rc, stderr=stderr,
            )

    def decode(self, args: List[str]) -> str:
        """Run a protocol decoder and return its annotation text."""
        rc, stdout, stderr = self.run(args)
        if rc != 0:
            raise DecodeFailure(
                f"decode failed: {_first_line(stderr) or f'exit code {rc}'}",
                returncode=rc, stderr=stderr,
            )
        return stdout


def _first_line(text: str) -> str:
    for line in (text or '').splitlines():
        if line.strip():
            return line.strip()
    return ''


def parse_scan_output(output: str) -> List[LogicAnalyzer]:
    """Parse sigrok-cli --scan output into devices, in listed order."""
    devices = []
    seen = set()
    for line in output.split('\n'):
        match = SCAN_PATTERN.search(line)
        if not match:
            continue
        device = LogicAnalyzer(driver=match.group(1), conn=match.group(2))
        if device.device_spec in seen:
            continue
        seen.add(device.device_spec)
        devices.append(device)
    return devices


def discover_devices(runner: SigrokRunner) -> List[LogicAnalyzer]:
    """Scan for devices. A failed scan degrades to an empty list."""
    try:
        output = runner.scan()
    except DiscoveryFailure as e:
        logger.warning("Device scan unavailable: %s", e)
        return []

    devices = parse_scan_output(output)
    logger.info("Found %d device(s)", len(devices))
    return devices
