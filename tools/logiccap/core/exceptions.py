"""
Exception hierarchy for capture runs.

Every failure that ends a run carries the stage it happened in so the
control surface can report one readable message.
"""

from typing import Optional


class LogicCapError(Exception):
    """Base class for capture run failures."""

    stage = "run"

    def __init__(self, message: str, returncode: Optional[int] = None,
                 stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ConfigError(LogicCapError):
    """Invalid capture configuration, rejected before a run starts."""

    stage = "config"


class DiscoveryFailure(LogicCapError):
    """Device scan unavailable. Callers degrade to an empty device list."""

    stage = "scan"


class CaptureFailure(LogicCapError):
    """The external capture call failed."""

    stage = "capture"


class DecodeFailure(LogicCapError):
    """The external decode call failed. The capture artifact is kept."""

    stage = "decode"


class ExportFailure(LogicCapError):
    """The output table could not be created or written."""

    stage = "export"
