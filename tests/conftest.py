from typing import List, Optional

import cv2
import numpy as np
import pytest

from k4a_reproject.core.errors import FailureKind, StepFailure
from k4a_reproject.core.interfaces import ISession, ITransformContext
from k4a_reproject.core.types import Frame, ImageBuffer, ImageFormat

COLOR_W, COLOR_H = 8, 6
DEPTH_W, DEPTH_H = 5, 4


def read_depth_image(path):
    depth = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    assert depth is not None, path
    return depth


def mjpg_sample(bgr=(10, 200, 30), width=COLOR_W, height=COLOR_H):
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:] = bgr
    ok, buf = cv2.imencode(".jpg", img)
    assert ok
    return buf.reshape(-1)


def make_frame(position, color_format=ImageFormat.COLOR_MJPG, with_color=True, with_depth=True):
    depth = np.full((DEPTH_H, DEPTH_W), 800 + position, dtype=np.uint16) if with_depth else None
    if not with_color:
        color = None
    elif color_format == ImageFormat.COLOR_MJPG:
        color = mjpg_sample()
    else:
        color = np.full((COLOR_H * 3 // 2, COLOR_W), 128, dtype=np.uint8)
    return Frame(
        position=position,
        depth=depth,
        color=color,
        color_format=color_format,
        color_width=COLOR_W,
        color_height=COLOR_H,
        depth_timestamp_usec=position * 33333,
        color_timestamp_usec=position * 33333,
    )


class DummySession(ISession):
    def __init__(self, frames: List[Frame], open_error: Optional[StepFailure] = None,
                 seek_error: Optional[StepFailure] = None):
        self._frames = list(frames)
        self.delivered: List[Frame] = []
        self.open_error = open_error
        self.seek_error = seek_error
        self.opened = False
        self.closed = False
        self.seeks: List[int] = []

    def open(self):
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    def seek(self, offset_usec: int):
        self.seeks.append(offset_usec)
        if self.seek_error is not None:
            raise self.seek_error

    def next_frame(self) -> Optional[Frame]:
        if not self._frames:
            return None
        frame = self._frames.pop(0)
        self.delivered.append(frame)
        return frame

    def get_calibration(self):
        return "calibration"

    @property
    def length_usec(self) -> int:
        return 60_000_000

    def close(self):
        self.closed = True


class DummyTransform(ITransformContext):
    def __init__(self, calibration=None, fail_on_call: Optional[int] = None):
        self.calibration = calibration
        self.fail_on_call = fail_on_call
        self.calls = 0
        self.destroyed = False

    def depth_to_color(self, depth):
        self.calls += 1
        if self.fail_on_call is not None and self.calls == self.fail_on_call:
            return None
        return np.full((COLOR_H, COLOR_W), int(depth.flat[0]), dtype=np.uint16)

    def color_to_depth(self, depth, color_bgra):
        h, w = depth.shape
        out = np.zeros((h, w, 4), dtype=np.uint8)
        out[:] = color_bgra[0, 0]
        return out

    def depth_to_point_cloud(self, depth, view):
        h, w = depth.shape
        xyz = np.zeros((h, w, 3), dtype=np.int16)
        xyz[..., 0] = np.arange(w, dtype=np.int16)[None, :]
        xyz[..., 1] = np.arange(h, dtype=np.int16)[:, None]
        xyz[..., 2] = depth.astype(np.int16)
        return xyz

    def destroy(self):
        self.destroyed = True


@pytest.fixture
def track_buffers(monkeypatch):
    """Collects every ImageBuffer created during the test."""
    created = []
    orig_init = ImageBuffer.__init__

    def tracking_init(self, *args, **kwargs):
        orig_init(self, *args, **kwargs)
        created.append(self)

    monkeypatch.setattr(ImageBuffer, "__init__", tracking_init)
    return created


def open_failure():
    return StepFailure(FailureKind.OPEN, "failed to open recording missing.mkv")
