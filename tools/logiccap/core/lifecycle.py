"""
Capture lifecycle controller.

    IDLE -> RUNNING -> COMPLETED | FAILED -> RUNNING -> ...

The event loop only reacts to discrete messages: a periodic TickMsg that
advances the progress animation, and exactly one CaptureCompleteMsg per
run. The pipeline itself runs in a worker thread and shares nothing with
the loop except the result it posts back.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Union

from .config import CaptureConfig, Protocol
from .exceptions import LogicCapError
from .exporter import load_preview
from .log import get_logger
from .pipeline import CapturePipeline, CaptureResult
from .sigrok import LogicAnalyzer

logger = get_logger("lifecycle")

TICK_INTERVAL = 0.05


class CaptureState(Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'


@dataclass(frozen=True)
class TickMsg:
    """Advance the progress animation by one frame."""
    run_id: int
    at: float


@dataclass(frozen=True)
class CaptureCompleteMsg:
    """The pipeline for run `run_id` finished."""
    run_id: int
    result: CaptureResult


Message = Union[TickMsg, CaptureCompleteMsg]


class CaptureController:
    """
    Owns the capture state machine for one control surface.

    Only one run may be active at a time. The configuration can be edited
    between runs; a run captures with the frozen copy taken at start().
    """

    def __init__(self, devices: Sequence[LogicAnalyzer],
                 config: Optional[CaptureConfig] = None,
                 pipeline: Optional[CapturePipeline] = None,
                 tick_interval: float = TICK_INTERVAL,
                 input_path: Optional[str] = None):
        self.devices: List[LogicAnalyzer] = list(devices)
        self.selected_device = 0
        self.config = config or CaptureConfig()
        self.pipeline = pipeline or CapturePipeline()
        self.tick_interval = tick_interval
        self.input_path = input_path

        self.state = CaptureState.IDLE
        self.status_msg = "Ready" if self.devices or input_path else "No devices found"
        self.spinner = 0
        self.result: Optional[CaptureResult] = None
        self.preview: List[str] = []
        self.run_id = 0
        self.run_config: Optional[CaptureConfig] = None

        self._messages: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._tick_handle: Optional[asyncio.TimerHandle] = None

    @property
    def running(self) -> bool:
        return self.state == CaptureState.RUNNING

    @property
    def device(self) -> Optional[LogicAnalyzer]:
        if 0 <= self.selected_device < len(self.devices):
            return self.devices[self.selected_device]
        return None

    # ------------------------------------------------------------------
    # Configuration edits (between runs only)
    # ------------------------------------------------------------------

    def select_device(self, index: int) -> bool:
        if self.running or not 0 <= index < len(self.devices):
            return False
        self.selected_device = index
        self.status_msg = f"Device selected: {self.devices[index].display_name}"
        return True

    def update_config(self, **changes) -> bool:
        """Apply config edits. Refused while a capture is running."""
        if self.running:
            self.status_msg = "Capture running, settings are locked"
            return False
        try:
            self.config = self.config.with_changes(**changes)
        except LogicCapError as e:
            self.status_msg = f"Error: {e}"
            return False
        return True

    def toggle_filter(self) -> bool:
        if not self.update_config(filter_frames=not self.config.filter_frames):
            return False
        self.status_msg = f"Filter: {'ON' if self.config.filter_frames else 'OFF'}"
        return True

    def set_protocol(self, protocol: Union[str, Protocol]) -> bool:
        if not self.update_config(protocol=Protocol.parse(protocol)):
            return False
        self.status_msg = f"Protocol: {self.config.protocol.value}"
        return True

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Start a run from IDLE, COMPLETED or FAILED.

        Must be called from inside the running event loop. Returns False,
        leaving the state untouched, when no device is selected or a run
        is already active.
        """
        if self.running:
            logger.info("Start ignored, capture already running")
            return False

        device = self.device
        if device is None and self.input_path is None:
            self.status_msg = "Error: No device selected"
            logger.warning("Start rejected: no device selected")
            return False

        run_config = self.config
        if device is not None:
            run_config = run_config.with_changes(device=device.device_spec)

        loop = asyncio.get_running_loop()
        if self._messages is None:
            self._messages = asyncio.Queue()

        self.run_id += 1
        self.run_config = run_config
        self.state = CaptureState.RUNNING
        self.spinner = 0
        self.status_msg = "Capturing..."
        logger.debug("Run %d started (%s)", self.run_id,
                    device.display_name if device else self.input_path)

        self._worker = loop.create_task(self._run_pipeline(self.run_id, run_config))
        self._schedule_tick()
        return True

    async def _run_pipeline(self, run_id: int, config: CaptureConfig) -> None:
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, self.pipeline.run, config, self.input_path)
        except Exception as e:
            logger.exception("Capture worker failed")
            result = CaptureResult(protocol=config.protocol, output_path=config.output_path,
                                   error=LogicCapError(f"unexpected error: {e}"))
        self._post(CaptureCompleteMsg(run_id=run_id, result=result))

    def _schedule_tick(self) -> None:
        loop = asyncio.get_running_loop()
        run_id = self.run_id
        self._tick_handle = loop.call_later(
            self.tick_interval, lambda: self._post(TickMsg(run_id=run_id, at=time.monotonic()))
        )

    def _post(self, msg: Message) -> None:
        self._messages.put_nowait(msg)

    async def next_message(self) -> Message:
        if self._messages is None:
            self._messages = asyncio.Queue()
        return await self._messages.get()

    def handle(self, msg: Message) -> None:
        """Apply one message to the controller state."""
        if isinstance(msg, TickMsg):
            if self.running and msg.run_id == self.run_id:
                self.spinner += 1
                self._schedule_tick()
            return

        if isinstance(msg, CaptureCompleteMsg):
            if not self.running or msg.run_id != self.run_id:
                logger.warning("Dropping stale completion for run %d", msg.run_id)
                return
            self._finish(msg.result)

    def _finish(self, result: CaptureResult) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

        self.result = result
        self.status_msg = result.message
        if result.success:
            self.state = CaptureState.COMPLETED
            self.preview = load_preview(result.output_path)
            logger.debug("Run %d completed: %d row(s)", self.run_id, len(result.rows))
        else:
            self.state = CaptureState.FAILED
            logger.debug("Run %d failed at %s stage", self.run_id, result.failed_stage)

    async def wait(self, on_message: Optional[Callable[['CaptureController', Message], None]] = None
                   ) -> Optional[CaptureResult]:
        """Process messages until the active run reaches a terminal state."""
        while self.running:
            msg = await self.next_message()
            self.handle(msg)
            if on_message is not None:
                on_message(self, msg)
        if self._worker is not None:
            await self._worker
            self._worker = None
        return self.result

    async def capture(self, on_message: Optional[Callable[['CaptureController', Message], None]] = None
                      ) -> Optional[CaptureResult]:
        """Start a run and wait for it. Returns None if the start was rejected."""
        if not self.start():
            return None
        return await self.wait(on_message)
