import argparse
import io
import json
import logging

import pytest

from logiccap.capture import (
    CaptureOutputFormatter,
    ProgressRenderer,
    make_renderer,
    progress_bar,
    spinner_frame,
)
from logiccap.core.capture_core import CaptureTool, select_device
from logiccap.core.interfaces import ConfigBuilder, ToolConfig
from logiccap.core.sigrok import LogicAnalyzer

from .conftest import SPI_OUTPUT, FakeRunner

SCAN = "fx2lafw:conn=1.43 - fx2lafw\nfx2lafw:conn=3.7 - fx2lafw\n"


def tool_config(tmp_path, **custom):
    args = {
        'protocol': 'spi',
        'sample_rate': '24MHz',
        'output_path': str(tmp_path / "out.csv"),
        'artifact_path': str(tmp_path / "capture.sr"),
        'filter_frames': False,
    }
    args.update(custom)
    return ToolConfig(tool_name='logiccap', custom_args=args)


def test_tool_runs_capture_on_requested_device(tmp_path):
    runner = FakeRunner(decode_output=SPI_OUTPUT, scan_output=SCAN)
    result = CaptureTool(runner=runner, tick_interval=0.001).run(
        tool_config(tmp_path, device="3.7"))

    assert result.success
    assert result.metadata['device'] == "fx2lafw:conn=3.7"
    assert result.data['rows'][0] == ["0.010000000", "A5", "3C"]
    assert result.data['preview'][0] == "time,mosi,miso"


def test_tool_reports_no_device(tmp_path):
    result = CaptureTool(runner=FakeRunner(fail='scan')).run(tool_config(tmp_path))
    assert not result.success
    assert result.errors == ["Error: No device selected"]


def test_tool_reports_bad_config(tmp_path):
    runner = FakeRunner(scan_output=SCAN)
    result = CaptureTool(runner=runner).run(tool_config(tmp_path, sample_rate="0"))
    assert not result.success
    assert result.errors[0].startswith("Invalid configuration:")
    assert runner.calls == []


def test_tool_reports_missing_input_file(tmp_path):
    config = tool_config(tmp_path)
    config.input_paths = [str(tmp_path / "missing.sr")]
    result = CaptureTool(runner=FakeRunner()).run(config)
    assert result.errors == [f"File not found: {tmp_path / 'missing.sr'}"]


def test_tool_decodes_existing_input(tmp_path):
    artifact = tmp_path / "old.sr"
    artifact.write_bytes(b"PK")
    config = tool_config(tmp_path)
    config.input_paths = [str(artifact)]

    runner = FakeRunner(decode_output=SPI_OUTPUT)
    result = CaptureTool(runner=runner, tick_interval=0.001).run(config)
    assert result.success
    assert [name for name, _ in runner.calls] == ['decode']


def test_select_device():
    devices = [LogicAnalyzer("fx2lafw", "1.43"), LogicAnalyzer("fx2lafw", "3.7")]
    assert select_device(devices, None) == 0
    assert select_device(devices, "fx2lafw:conn=3.7") == 1


def test_config_builder_and_formatter(tmp_path):
    args = argparse.Namespace(paths=[], format='json', verbose=True, log_file=None)
    config = ConfigBuilder.from_args(args, 'logiccap')
    assert config.output_format == 'json'
    config.custom_args.update(tool_config(tmp_path).custom_args)

    runner = FakeRunner(decode_output=SPI_OUTPUT, scan_output=SCAN)
    result = CaptureTool(runner=runner, tick_interval=0.001).run(config)

    formatter = CaptureOutputFormatter()
    payload = json.loads(formatter.format_result(result, 'json'))
    assert payload['success'] is True
    assert payload['data']['frames_kept'] == 2

    assert formatter.format_result(result, 'quiet') == str(tmp_path / "out.csv")
    text = formatter.format_result(result, 'text')
    assert "Capture complete" in text
    assert "0.010000000,A5,3C" in text


def test_failed_result_text_names_stage(tmp_path):
    runner = FakeRunner(scan_output=SCAN, fail='capture')
    result = CaptureTool(runner=runner, tick_interval=0.001).run(tool_config(tmp_path))
    text = CaptureOutputFormatter().format_result(result, 'text')
    assert "Capture failed: capture failed: device busy" in text
    assert "Failed stage: capture" in text


def test_progress_animation_frames():
    assert spinner_frame(0) == "⠋"
    assert spinner_frame(10) == spinner_frame(0)
    bar = progress_bar(0, width=10)
    assert len(bar) == 12
    assert bar[1] == "█"
    assert progress_bar(19, width=10)[1] == "█"


def test_spinner_only_without_verbose_logging():
    stream = io.StringIO()
    assert isinstance(make_renderer('text', False, stream), ProgressRenderer)
    assert make_renderer('text', True, stream) is None
    assert make_renderer('json', False, stream) is None
    assert make_renderer('quiet', False, stream) is None


def test_run_in_progress_stays_below_info(tmp_path, caplog):
    caplog.set_level(logging.DEBUG, logger="logiccap")
    runner = FakeRunner(decode_output=SPI_OUTPUT, scan_output=SCAN)
    result = CaptureTool(runner=runner, tick_interval=0.001).run(tool_config(tmp_path))

    assert result.success
    in_run = {"logiccap.pipeline", "logiccap.lifecycle", "logiccap.exporter"}
    assert any(r.name in in_run for r in caplog.records)
    assert [r for r in caplog.records
            if r.name in in_run and r.levelno >= logging.INFO] == []


@pytest.mark.asyncio
async def test_run_async_inside_running_loop(tmp_path):
    runner = FakeRunner(decode_output=SPI_OUTPUT, scan_output=SCAN)
    result = await CaptureTool(runner=runner, tick_interval=0.001).run_async(
        tool_config(tmp_path))

    assert result.success
    assert result.data['rows'][0] == ["0.010000000", "A5", "3C"]
