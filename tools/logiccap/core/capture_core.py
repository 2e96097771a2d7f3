"""
Core capture functionality - discover, capture, decode and export.
Separated from CLI logic for automation and chaining.
"""

import asyncio
import os
import time
from typing import Any, Callable, Dict, List, Optional

from .config import CaptureConfig
from .exceptions import ConfigError
from .interfaces import ToolConfig, ToolInterface, ToolResult
from .lifecycle import CaptureController, Message
from .log import get_logger
from .pipeline import CapturePipeline
from .sigrok import LogicAnalyzer, SigrokRunner, discover_devices

logger = get_logger("capture")

CONFIG_KEYS = (
    'protocol', 'sample_rate', 'duration', 'trigger', 'output_path',
    'artifact_path', 'filter_frames', 'cpol', 'cpha',
)


def build_capture_config(custom_args: Dict[str, Any]) -> CaptureConfig:
    """Build a CaptureConfig from the tool's custom arguments."""
    options = {k: custom_args[k] for k in CONFIG_KEYS if custom_args.get(k) is not None}
    return CaptureConfig.from_options(
        channels=custom_args.get('channels') or {},
        **options,
    )


def select_device(devices: List[LogicAnalyzer], wanted: Optional[str]) -> int:
    """Index of the device matching a device spec or conn id, 0 by default."""
    if not wanted:
        return 0
    for i, device in enumerate(devices):
        if wanted in (device.device_spec, device.conn):
            return i
    raise ConfigError(
        f"Device '{wanted}' not found. "
        f"Available: {[d.device_spec for d in devices]}"
    )


class CaptureTool(ToolInterface):
    """Logic analyzer capture tool implementation."""

    def __init__(self, runner: Optional[SigrokRunner] = None,
                 on_message: Optional[Callable[[CaptureController, Message], None]] = None,
                 tick_interval: Optional[float] = None):
        self.runner = runner or SigrokRunner()
        self.on_message = on_message
        self.tick_interval = tick_interval

    @property
    def name(self) -> str:
        return "logiccap"

    @property
    def description(self) -> str:
        return "Capture SPI/I2C bus traffic with sigrok and export decoded frames to CSV"

    def scan(self) -> List[LogicAnalyzer]:
        return discover_devices(self.runner)

    def build_controller(self, config: ToolConfig) -> CaptureController:
        """Discover devices and set up a controller for this configuration."""
        capture_config = build_capture_config(config.custom_args)
        input_path = config.input_paths[0] if config.input_paths else None

        devices = [] if input_path else self.scan()
        kwargs = {}
        if self.tick_interval is not None:
            kwargs['tick_interval'] = self.tick_interval

        controller = CaptureController(
            devices,
            config=capture_config,
            pipeline=CapturePipeline(runner=self.runner),
            input_path=input_path,
            **kwargs,
        )
        if devices:
            controller.select_device(select_device(devices, config.custom_args.get('device')))
        return controller

    def run(self, config: ToolConfig) -> ToolResult:
        """
        Execute one capture run.

        Starts its own event loop, so it cannot be called from a coroutine.
        Callers that already run a loop await run_async() instead.
        """
        return asyncio.run(self.run_async(config))

    async def run_async(self, config: ToolConfig) -> ToolResult:
        """Execute one capture run on the running event loop."""
        start_time = time.time()

        try:
            if config.input_paths and not os.path.isfile(config.input_paths[0]):
                return ToolResult(
                    success=False,
                    data=None,
                    errors=[f"File not found: {config.input_paths[0]}"],
                    metadata={},
                    execution_time=time.time() - start_time
                )

            controller = self.build_controller(config)
            result = await controller.capture(self.on_message)

            if result is None:
                return ToolResult(
                    success=False,
                    data=None,
                    errors=[controller.status_msg],
                    metadata={'status': controller.status_msg},
                    execution_time=time.time() - start_time
                )

            data = result.to_dict()
            data['preview'] = controller.preview
            metadata = {
                'status': controller.status_msg,
                'device': controller.run_config.device if controller.run_config else None,
                'protocol': result.protocol.value,
                'filter': controller.run_config.filter_frames if controller.run_config else False,
                'pipeline_time': result.execution_time,
            }

            return ToolResult(
                success=result.success,
                data=data,
                errors=[] if result.success else [result.message],
                metadata=metadata,
                execution_time=time.time() - start_time
            )

        except ConfigError as e:
            return ToolResult(
                success=False,
                data=None,
                errors=[f"Invalid configuration: {e}"],
                metadata={},
                execution_time=time.time() - start_time
            )
