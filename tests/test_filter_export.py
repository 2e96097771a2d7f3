import csv

import pytest

from logiccap.core.config import Protocol
from logiccap.core.decoder import I2cFrame, SpiFrame, decode_annotations
from logiccap.core.exceptions import ExportFailure
from logiccap.core.exporter import export_frames, header_for, load_preview
from logiccap.core.frame_filter import filter_frames, is_valid_hex_data


def spi(key, mosi="", miso="", ts=0.0):
    return SpiFrame(key=key, start_sample=0, timestamp=ts, mosi=mosi, miso=miso)


def read_rows(path):
    with open(path, newline='') as f:
        return list(csv.reader(f))


@pytest.mark.parametrize("text,expected", [
    ("00", True),
    ("ff", True),
    ("BC 00", True),
    ("--", False),
    ("", False),
    ("ABC", False),
    ("Address write: 50", True),
    ("Start", False),
])
def test_hex_byte_detection(text, expected):
    assert is_valid_hex_data(text) is expected


def test_filter_keeps_hex_frames_and_drops_the_rest():
    frames = [spi("a", miso="00"), spi("b", mosi="--", miso="--"), spi("c", mosi="zz", miso="A5")]
    kept = filter_frames(frames, True)
    assert [f.key for f in kept] == ["a", "c"]


def test_filter_disabled_passes_everything():
    frames = [spi("a", miso="00"), spi("b", mosi="--", miso="--")]
    assert filter_frames(frames, False) == frames


def test_filter_is_idempotent():
    frames = [spi("a", miso="00"), spi("b", mosi="--"), spi("c", mosi="7F")]
    for flag in (True, False):
        once = filter_frames(frames, flag)
        assert filter_frames(once, flag) == once


def test_filter_applies_to_i2c_payloads():
    frames = [
        I2cFrame(key="1-2", start_sample=1, timestamp=0.0, payload="Start"),
        I2cFrame(key="3-4", start_sample=3, timestamp=0.0, payload="Data write: 3C"),
    ]
    assert [f.payload for f in filter_frames(frames, True)] == ["Data write: 3C"]


def test_export_header_only_when_no_frames(tmp_path):
    out = tmp_path / "empty.csv"
    frames = decode_annotations("nothing here", Protocol.SPI, 24000000)
    rows = export_frames(frames, Protocol.SPI, out)
    assert rows == []
    assert read_rows(out) == [["time", "mosi", "miso"]]


def test_export_keeps_frame_order(tmp_path):
    out = tmp_path / "order.csv"
    frames = [spi("late", miso="01", ts=0.5), spi("early", miso="02", ts=0.1)]
    export_frames(frames, Protocol.SPI, out)
    assert read_rows(out)[1:] == [
        ["0.500000000", "", "01"],
        ["0.100000000", "", "02"],
    ]


def test_export_non_hex_frame_depends_on_filter(tmp_path):
    output = '10-20 spi-1: "--"\n10-20 spi-1: "--"\n30-40 spi-1: "A5"'
    frames = decode_annotations(output, Protocol.SPI, 1000)

    off = tmp_path / "off.csv"
    export_frames(filter_frames(frames, False), Protocol.SPI, off)
    assert [r[0] for r in read_rows(off)[1:]] == ["0.010000000", "0.030000000"]

    on = tmp_path / "on.csv"
    export_frames(filter_frames(frames, True), Protocol.SPI, on)
    assert read_rows(on)[1:] == [["0.030000000", "", "A5"]]


def test_export_quotes_fields_with_delimiters(tmp_path):
    out = tmp_path / "i2c.csv"
    frames = [I2cFrame(key="1-2", start_sample=1, timestamp=0.0, payload='Data, "x"')]
    export_frames(frames, Protocol.I2C, out)
    assert out.read_text().splitlines()[1] == '0.000000000,"Data, ""x""",'
    assert read_rows(out) == [header_for(Protocol.I2C), ["0.000000000", 'Data, "x"', ""]]


def test_export_uses_unix_line_endings(tmp_path):
    out = tmp_path / "lf.csv"
    export_frames([spi("1-2", miso="3C")], Protocol.SPI, out)
    data = out.read_bytes()
    assert b"\r\n" not in data
    assert data.endswith(b"\n")
    assert data.count(b"\n") == 2


def test_export_failure_raises(tmp_path):
    with pytest.raises(ExportFailure):
        export_frames([], Protocol.SPI, tmp_path / "missing" / "out.csv")


def test_preview_is_bounded(tmp_path):
    out = tmp_path / "big.csv"
    frames = [spi(str(i), miso="00", ts=i) for i in range(250)]
    export_frames(frames, Protocol.SPI, out)
    preview = load_preview(out)
    assert len(preview) == 100
    assert preview[0] == "time,mosi,miso"


def test_preview_read_error_is_reported(tmp_path):
    preview = load_preview(tmp_path / "nope.csv")
    assert len(preview) == 1
    assert preview[0].startswith("Error reading file:")
