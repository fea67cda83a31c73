from typing import Optional
import numpy as np
from pyk4a import PyK4APlayback, K4AException, SeekOrigin, ColorResolution

from ..core.errors import FailureKind, StepFailure
from ..core.interfaces import ISession
from ..core.types import Frame, ImageFormat

COLOR_RESOLUTION_SIZE = {
    ColorResolution.RES_720P: (1280, 720),
    ColorResolution.RES_1080P: (1920, 1080),
    ColorResolution.RES_1440P: (2560, 1440),
    ColorResolution.RES_1536P: (2048, 1536),
    ColorResolution.RES_2160P: (3840, 2160),
    ColorResolution.RES_3072P: (4096, 3072),
}


class K4APlaybackSession(ISession):
    """Azure Kinect .mkv recording read through pyk4a"""

    def __init__(self, path: str):
        self.path = path
        self._playback: Optional[PyK4APlayback] = None
        self._color_format = ImageFormat.COLOR_MJPG
        self._color_size = (0, 0)
        self._position = 0

    def open(self):
        playback = PyK4APlayback(self.path)
        try:
            playback.open()
        except (K4AException, OSError) as e:
            raise StepFailure(FailureKind.OPEN, f"failed to open recording {self.path}: {e}") from e
        self._playback = playback

        cfg = playback.configuration
        self._color_format = ImageFormat(int(cfg["color_format"]))
        self._color_size = COLOR_RESOLUTION_SIZE.get(cfg["color_resolution"], (0, 0))
        self._position = 0

    def _require_open(self) -> PyK4APlayback:
        if self._playback is None:
            raise RuntimeError("recording is not open")
        return self._playback

    @property
    def length_usec(self) -> int:
        return int(self._require_open().length)

    def seek(self, offset_usec: int):
        playback = self._require_open()
        try:
            playback.seek(int(offset_usec), origin=SeekOrigin.BEGIN)
        except (K4AException, ValueError) as e:
            raise StepFailure(FailureKind.SEEK, f"failed to seek timestamp {offset_usec // 1000} ms: {e}") from e

    def next_frame(self) -> Optional[Frame]:
        playback = self._require_open()
        try:
            capture = playback.get_next_capture()
        except EOFError:
            return None
        except K4AException as e:
            raise StepFailure(FailureKind.FETCH, f"failed to fetch frame: {e}") from e

        depth = capture.depth
        color = capture.color
        self._position += 1
        width, height = self._color_size
        return Frame(
            position=self._position,
            depth=None if depth is None else np.asarray(depth),
            color=None if color is None else np.asarray(color),
            color_format=self._color_format,
            color_width=width,
            color_height=height,
            depth_timestamp_usec=int(capture.depth_timestamp_usec) if depth is not None else 0,
            color_timestamp_usec=int(capture.color_timestamp_usec) if color is not None else 0,
        )

    def get_calibration(self):
        playback = self._require_open()
        try:
            return playback.calibration
        except K4AException as e:
            raise StepFailure(FailureKind.CALIBRATION, f"failed to get calibration: {e}") from e

    def close(self):
        if self._playback is not None:
            self._playback.close()
            self._playback = None
