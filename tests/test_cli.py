import json
import os

import pytest

import k4a_reproject.logic.driver as driver
from conftest import DummySession, DummyTransform, make_frame
from k4a_reproject.main import build_parser, main


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["capture", "out"],
        ["playback"],
        ["playback", "rec.mkv", "soon"],
        ["playback", "rec.mkv", "0", "out.ply", "extra"],
        ["playback", "rec.mkv", "-5"],
    ],
)
def test_invalid_usage_exits_non_zero(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    assert exc.value.code != 0


def test_positionals_are_optional():
    args = build_parser().parse_args(["playback", "rec.mkv"])
    assert args.recording == "rec.mkv"
    assert args.start_offset_ms is None
    assert args.output_path is None


def test_main_forwards_arguments(monkeypatch):
    seen = {}

    def fake_run(input_path, **kwargs):
        seen["input_path"] = input_path
        seen.update(kwargs)
        return 0

    monkeypatch.setattr("k4a_reproject.main.run", fake_run)
    code = main(["playback", "rec.mkv", "1500", "out/scan.ply", "--mode", "both", "--emit", "depth",
                 "--accept-color-format", "COLOR_MJPG", "--accept-color-format", "COLOR_NV12"])
    assert code == 0
    assert seen["input_path"] == "rec.mkv"
    assert seen["start_offset_ms"] == 1500
    assert seen["output_path"] == "out/scan.ply"
    assert seen["mode"] == "both"
    assert seen["emit"] == "depth"
    assert seen["accepted_color_formats"] == ["COLOR_MJPG", "COLOR_NV12"]
    assert seen["ascii_cloud"] is None


def _patch_backend(monkeypatch, frames):
    session = DummySession(frames)
    monkeypatch.setattr(driver, "_k4a_session", lambda path: session)
    monkeypatch.setattr(driver, "_k4a_transform", DummyTransform)
    return session


def test_playback_end_to_end(monkeypatch, tmp_path):
    session = _patch_backend(monkeypatch, [make_frame(1), make_frame(2)])
    code = main(["playback", "rec.mkv", "0", str(tmp_path / "output.ply")])
    assert code == 0
    assert session.seeks == [0]
    assert len(os.listdir(tmp_path)) == 6
    assert os.path.exists(tmp_path / "output_cloud_color_2.ply")


def test_config_file_supplies_defaults(monkeypatch, tmp_path):
    session = _patch_backend(monkeypatch, [make_frame(1)])
    config = tmp_path / "config.json"
    config.write_text(json.dumps({
        "playback": {"start_offset_ms": 500},
        "output": {"dir": str(tmp_path / "frames"), "prefix": "clinic", "emit": ["depth"]},
    }))
    code = main(["playback", "rec.mkv", "--config", str(config)])
    assert code == 0
    assert session.seeks == [500_000]
    assert os.listdir(tmp_path / "frames") == ["clinic_depth_color_1.png"]


def test_open_failure_exit_code(monkeypatch, tmp_path):
    from conftest import open_failure

    session = DummySession([make_frame(1)], open_error=open_failure())
    monkeypatch.setattr(driver, "_k4a_session", lambda path: session)
    assert main(["playback", "missing.mkv", "0", str(tmp_path / "output.ply")]) == 1
    assert os.listdir(tmp_path) == []


def test_bad_config_file(tmp_path):
    config = tmp_path / "config.json"
    config.write_text("{not json")
    assert main(["playback", "rec.mkv", "--config", str(config)]) == 1


def test_null_config_section_exit_code(tmp_path):
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"output": None}))
    assert main(["playback", "rec.mkv", "0", "--config", str(config)]) == 1


def test_empty_emit_exit_code(monkeypatch, tmp_path):
    _patch_backend(monkeypatch, [make_frame(1)])
    assert main(["playback", "rec.mkv", "0", str(tmp_path / "output.ply"), "--emit", ","]) == 1
    assert os.listdir(tmp_path) == []
