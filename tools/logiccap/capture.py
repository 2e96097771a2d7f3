#!/usr/bin/env python3
"""
logiccap - Capture SPI/I2C traffic with a sigrok logic analyzer.
Runs the capture and protocol decoder through sigrok-cli and writes the
decoded bus frames to a CSV table.
"""

import argparse
import sys

from colorama import init, Fore, Style

from .core.capture_core import CaptureTool
from .core.config import (
    DEFAULT_ARTIFACT, DEFAULT_DURATION, DEFAULT_OUTPUT, DEFAULT_SAMPLE_RATE,
    DURATION_OPTIONS, SAMPLE_RATE_OPTIONS,
)
from .core.interfaces import ConfigBuilder, OutputFormatter, ToolResult
from .core.lifecycle import CaptureCompleteMsg, CaptureController
from .core.log import setup_logging
from .core.timing import format_duration, format_sample_rate

SPINNER_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]
BAR_WIDTH = 40


def spinner_frame(tick: int) -> str:
    return SPINNER_FRAMES[tick % len(SPINNER_FRAMES)]


def progress_bar(tick: int, width: int = BAR_WIDTH) -> str:
    """A block bouncing back and forth, independent of real progress."""
    pos = tick % (width * 2)
    if pos >= width:
        pos = width * 2 - pos - 1

    bar = []
    for i in range(width):
        if i == pos:
            bar.append("█")
        elif pos - 3 < i < pos + 3:
            bar.append("▓")
        else:
            bar.append("░")
    return "[" + "".join(bar) + "]"


class ProgressRenderer:
    """Redraws a one-line capture animation on stderr for every tick."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stderr

    def __call__(self, controller: CaptureController, msg) -> None:
        if isinstance(msg, CaptureCompleteMsg):
            self.stream.write("\r\033[K")
            self.stream.flush()
            return
        if controller.running:
            self.stream.write(
                f"\r{Fore.MAGENTA}{spinner_frame(controller.spinner)}{Style.RESET_ALL} "
                f"{controller.status_msg} {progress_bar(controller.spinner)}"
            )
            self.stream.flush()


def make_renderer(output_format: str, verbose: bool, stream=None):
    """
    Spinner for interactive text output only.

    Verbose runs log to stderr from the worker thread, which would tear
    the single redrawn line apart, so they get no spinner.
    """
    if output_format != 'text' or verbose:
        return None
    return ProgressRenderer(stream)


class CaptureOutputFormatter(OutputFormatter):
    """Custom output formatter for capture results."""

    def _format_text(self, result: ToolResult) -> str:
        if not result.success:
            lines = [Fore.RED + "\n".join(result.errors) + Style.RESET_ALL]
            if result.data and result.data.get('failed_stage'):
                lines.append(Fore.YELLOW + f"Failed stage: {result.data['failed_stage']}"
                             + Style.RESET_ALL)
            return "\n".join(lines)

        if not result.data:
            return Fore.YELLOW + "No capture data available." + Style.RESET_ALL

        data = result.data
        lines = [
            Fore.GREEN + result.metadata.get('status', '') + Style.RESET_ALL,
            "=" * 60,
        ]

        if result.metadata.get('device'):
            lines.append(Fore.CYAN + f"Device: {result.metadata['device']}" + Style.RESET_ALL)
        lines.append(Fore.CYAN + f"Protocol: {data['protocol']}" + Style.RESET_ALL)

        if result.metadata.get('filter'):
            lines.append(f"Frames: {data['frames_kept']} kept of {data['frames_decoded']} decoded")
        else:
            lines.append(f"Frames: {data['frames_kept']}")

        timing = data.get('timing') or {}
        if timing.get('count'):
            lines.append(f"First frame: {timing['first_s']:.9f}s  "
                         f"last: {timing['last_s']:.9f}s  "
                         f"span: {format_duration(timing['span_s'] * 1e6)}")
            if 'mean_gap_us' in timing:
                lines.append(f"Frame gap: min={format_duration(timing['min_gap_us'])}  "
                             f"mean={format_duration(timing['mean_gap_us'])}")
        else:
            lines.append(Fore.YELLOW + "No frames decoded (header-only table written)"
                         + Style.RESET_ALL)
        lines.append("")

        preview = data.get('preview') or []
        if preview:
            lines.append(Fore.BLUE + f"Preview ({len(preview)} lines):" + Style.RESET_ALL)
            lines.extend(f"  {line}" for line in preview)

        return "\n".join(lines)

    def _format_quiet(self, result: ToolResult) -> str:
        """Format result for quiet mode - just the output path."""
        if not result.success or not result.data:
            return ""
        return result.data['output_path']


def _print_devices(tool: CaptureTool) -> int:
    available, version = tool.runner.check()
    if not available:
        print(Fore.RED + f"Error: {version}" + Style.RESET_ALL)
        return 1

    devices = tool.scan()
    if not devices:
        print(Fore.YELLOW + "No devices found" + Style.RESET_ALL)
        return 1

    print(Fore.BLUE + f"Devices ({len(devices)}):" + Style.RESET_ALL)
    for device in devices:
        print(f"  {device.device_spec:25s} {device.display_name}")
    return 0


def capture():
    """Main CLI entry point for logiccap."""
    parser = argparse.ArgumentParser(
        description="Capture SPI/I2C traffic with sigrok-cli and export decoded frames to CSV.",
        epilog=(
            "Examples:\n"
            "  %(prog)s --scan\n"
            "  %(prog)s --protocol spi --samplerate 24MHz --time 500ms -o spi.csv\n"
            "  %(prog)s --protocol i2c --sda D0 --scl D1 --filter\n"
            "  %(prog)s --input capture.sr --protocol spi -o spi.csv\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--scan", action="store_true",
                        help="List available devices and exit")
    parser.add_argument("-d", "--device",
                        help="Device spec or connection id (default: first found)")
    parser.add_argument("-p", "--protocol", choices=['spi', 'i2c', 'SPI', 'I2C'], default='spi',
                        help="Bus protocol (default: spi)")

    spi = parser.add_argument_group('SPI channels')
    spi.add_argument("--clk", help="CLK channel (default: D2)")
    spi.add_argument("--mosi", help="MOSI channel (default: D1)")
    spi.add_argument("--miso", help="MISO channel (default: D0)")
    spi.add_argument("--cs", help="CS channel (default: D3)")
    spi.add_argument("--cpol", choices=['0', '1'], default='0', help="Clock polarity (default: 0)")
    spi.add_argument("--cpha", choices=['0', '1'], default='0', help="Clock phase (default: 0)")

    i2c = parser.add_argument_group('I2C channels')
    i2c.add_argument("--sda", help="SDA channel (default: D0)")
    i2c.add_argument("--scl", help="SCL channel (default: D1)")

    settings = parser.add_argument_group('capture')
    settings.add_argument("-r", "--samplerate", default=str(DEFAULT_SAMPLE_RATE),
                          help="Sample rate, e.g. 24000000 or 24MHz (common: "
                               + ", ".join(format_sample_rate(r) for r in SAMPLE_RATE_OPTIONS)
                               + ")")
    settings.add_argument("-t", "--time", dest="duration", default=DEFAULT_DURATION,
                          help=f"Capture duration (common: {', '.join(DURATION_OPTIONS)})")
    settings.add_argument("--trigger",
                          help="Trigger spec (SPI default: CS=f)")
    settings.add_argument("--artifact", default=DEFAULT_ARTIFACT,
                          help=f"Raw capture file written by sigrok-cli (default: {DEFAULT_ARTIFACT})")
    settings.add_argument("-i", "--input", dest="input_file",
                          help="Decode an existing capture file instead of capturing")

    output = parser.add_argument_group('output')
    output.add_argument("-o", "--output", default=DEFAULT_OUTPUT,
                        help=f"CSV output file (default: {DEFAULT_OUTPUT})")
    output.add_argument("-f", "--filter", action="store_true",
                        help="Drop frames without a valid hex data byte")
    output.add_argument("--format", choices=['text', 'json', 'quiet'], default='text',
                        help="Output format (default: text)")
    output.add_argument("-v", "--verbose", action="store_true",
                        help="Enable verbose output")
    output.add_argument("--log-file", dest="log_file",
                        help="Also write log messages to this file")

    args = parser.parse_args()
    init()  # Initialize colorama

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    # Set paths attribute for ConfigBuilder compatibility
    args.paths = [args.input_file] if args.input_file else []

    config = ConfigBuilder.from_args(args, 'logiccap')
    config.custom_args.update({
        'device': args.device,
        'protocol': args.protocol,
        'channels': {
            'CLK': args.clk, 'MOSI': args.mosi, 'MISO': args.miso, 'CS': args.cs,
            'SDA': args.sda, 'SCL': args.scl,
        },
        'cpol': args.cpol,
        'cpha': args.cpha,
        'sample_rate': args.samplerate,
        'duration': args.duration,
        'trigger': args.trigger,
        'artifact_path': args.artifact,
        'output_path': args.output,
        'filter_frames': args.filter,
    })

    renderer = make_renderer(config.output_format, args.verbose)
    tool = CaptureTool(on_message=renderer)

    if args.scan:
        return _print_devices(tool)

    result = tool.run(config)

    formatter = CaptureOutputFormatter()
    text = formatter.format_result(result, config.output_format)
    if text:
        print(text)

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(capture())
