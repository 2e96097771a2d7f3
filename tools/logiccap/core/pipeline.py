"""
One capture run as a single unit of work.

build args -> capture -> decode -> correlate -> filter -> export

Each step needs the previous step's output, so they run strictly in
sequence. run() never raises: the outcome, good or bad, is a
CaptureResult.
"""

import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .commands import build_capture_args, build_decode_args
from .config import CaptureConfig, Protocol
from .decoder import RoleAssigner, decode_annotations
from .exceptions import CaptureFailure, LogicCapError
from .exporter import export_frames
from .frame_filter import filter_frames
from .log import get_logger
from .sigrok import SigrokRunner
from .timing import frame_timing_stats

logger = get_logger("pipeline")


@dataclass
class CaptureResult:
    """Terminal outcome of one run. Replaces any previous result."""
    protocol: Protocol
    output_path: str
    rows: List[List[str]] = field(default_factory=list)
    error: Optional[LogicCapError] = None
    frames_decoded: int = 0
    frames_kept: int = 0
    timing: Dict[str, Any] = field(default_factory=dict)
    execution_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def failed_stage(self) -> Optional[str]:
        return self.error.stage if self.error is not None else None

    @property
    def message(self) -> str:
        if self.success:
            return f"Capture complete: {self.output_path}"
        return f"Capture failed: {self.error}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'protocol': self.protocol.value,
            'output_path': self.output_path,
            'success': self.success,
            'error': str(self.error) if self.error is not None else None,
            'failed_stage': self.failed_stage,
            'frames_decoded': self.frames_decoded,
            'frames_kept': self.frames_kept,
            'timing': self.timing,
            'rows': self.rows,
        }


class CapturePipeline:
    """Runs capture and decode through sigrok-cli, then exports frames."""

    def __init__(self, runner: Optional[SigrokRunner] = None,
                 assigner: Optional[RoleAssigner] = None):
        self.runner = runner or SigrokRunner()
        self.assigner = assigner

    def run(self, config: CaptureConfig, input_path: Optional[str] = None) -> CaptureResult:
        """
        Execute one run.

        Args:
            config: Frozen configuration for this run
            input_path: Decode an existing capture artifact instead of
                        capturing a new one

        Returns:
            CaptureResult with either rows or an error
        """
        start_time = time.time()
        result = CaptureResult(protocol=config.protocol, output_path=config.output_path)

        try:
            self._execute(config, input_path, result)
        except LogicCapError as e:
            logger.debug("%s stage failed: %s", e.stage, e)
            result.error = e
            result.rows = []
        except Exception as e:
            logger.exception("Unexpected error during capture run")
            result.error = LogicCapError(f"unexpected error: {e}")
            result.rows = []

        result.execution_time = time.time() - start_time
        return result

    def _execute(self, config: CaptureConfig, input_path: Optional[str],
                 result: CaptureResult) -> None:
        artifact = input_path or config.artifact_path

        if input_path is None:
            capture_args = build_capture_args(config)
            logger.debug("Capturing %s for %s at %d Hz",
                         config.protocol.value, config.duration, config.sample_rate)
            try:
                self.runner.capture(capture_args)
            except CaptureFailure:
                _remove_artifact(config.artifact_path)
                raise
        else:
            logger.debug("Decoding existing capture %s", input_path)

        decode_args = build_decode_args(config, artifact_path=artifact)
        logger.debug("Decoding %s", artifact)
        output = self.runner.decode(decode_args)

        frames = decode_annotations(output, config.protocol, config.sample_rate,
                                    assigner=self.assigner)
        kept = filter_frames(frames, config.filter_frames)
        result.frames_decoded = len(frames)
        result.frames_kept = len(kept)
        if config.filter_frames:
            logger.debug("Filter kept %d of %d frame(s)", len(kept), len(frames))

        result.rows = export_frames(kept, config.protocol, config.output_path)
        result.timing = frame_timing_stats([f.timestamp for f in kept])


def _remove_artifact(path: str) -> None:
    """Delete a partial capture left behind by a failed capture call."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    except OSError as e:
        logger.warning("Could not remove partial capture %s: %s", path, e)
        return
    logger.debug("Removed partial capture %s", path)
