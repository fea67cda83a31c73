from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, List, FrozenSet, Tuple
import numpy as np

from .errors import FailureKind, StepFailure


class ImageFormat(IntEnum):
    """k4a image formats, same numeric values as the SDK"""
    COLOR_MJPG = 0
    COLOR_NV12 = 1
    COLOR_YUY2 = 2
    COLOR_BGRA32 = 3
    DEPTH16 = 4
    IR16 = 5
    CUSTOM8 = 6
    CUSTOM16 = 7
    CUSTOM = 8


class ReprojectionMode(str, Enum):
    DEPTH_TO_COLOR = "depth_to_color"
    COLOR_TO_DEPTH = "color_to_depth"
    BOTH = "both"


class ArtifactKind(str, Enum):
    DEPTH = "depth"
    COLOR = "color"
    CLOUD = "cloud"


class CameraView(str, Enum):
    """Camera geometry an artifact is expressed in"""
    COLOR = "color"
    DEPTH = "depth"


# format -> (dtype, channels, bytes per pixel)
_PIXEL_LAYOUT = {
    ImageFormat.DEPTH16: (np.uint16, 1, 2),
    ImageFormat.IR16: (np.uint16, 1, 2),
    ImageFormat.CUSTOM8: (np.uint8, 1, 1),
    ImageFormat.CUSTOM16: (np.uint16, 1, 2),
    ImageFormat.COLOR_BGRA32: (np.uint8, 4, 4),
    ImageFormat.CUSTOM: (np.int16, 3, 6),  # xyz point geometry in mm
}


def _shape_for(fmt: ImageFormat, width: int, height: int) -> Tuple[int, ...]:
    if fmt == ImageFormat.COLOR_NV12:
        return (height * 3 // 2, width)
    if fmt == ImageFormat.COLOR_YUY2:
        return (height, width, 2)
    _, channels, _ = _PIXEL_LAYOUT[fmt]
    if channels == 1:
        return (height, width)
    return (height, width, channels)


def stride_bytes(fmt: ImageFormat, width: int) -> int:
    if fmt == ImageFormat.COLOR_NV12:
        return width
    if fmt == ImageFormat.COLOR_YUY2:
        return width * 2
    return width * _PIXEL_LAYOUT[fmt][2]


class ImageBuffer:
    """Rectangular pixel array with explicit width, height, stride and format.

    Owned by whoever created it. Use it as a context manager, or call
    release(), so the pixels are dropped before the next frame is fetched.
    """

    def __init__(self, fmt: ImageFormat, width: int, height: int, data: np.ndarray):
        self.format = ImageFormat(fmt)
        self.width = int(width)
        self.height = int(height)
        self.stride_bytes = stride_bytes(self.format, self.width)
        self._data: Optional[np.ndarray] = data

    @classmethod
    def create(cls, fmt: ImageFormat, width: int, height: int) -> "ImageBuffer":
        fmt = ImageFormat(fmt)
        if width <= 0 or height <= 0:
            raise StepFailure(FailureKind.BUFFER_ALLOCATION, f"invalid image size {width}x{height}")
        if fmt == ImageFormat.COLOR_MJPG:
            raise StepFailure(FailureKind.BUFFER_ALLOCATION, "MJPG has no fixed pixel size")
        dtype = np.uint8 if fmt in (ImageFormat.COLOR_NV12, ImageFormat.COLOR_YUY2) else _PIXEL_LAYOUT[fmt][0]
        try:
            data = np.zeros(_shape_for(fmt, width, height), dtype=dtype)
        except MemoryError as e:
            raise StepFailure(FailureKind.BUFFER_ALLOCATION, f"cannot allocate {fmt.name} {width}x{height}") from e
        return cls(fmt, width, height, data)

    @classmethod
    def wrap(cls, fmt: ImageFormat, array: np.ndarray) -> "ImageBuffer":
        fmt = ImageFormat(fmt)
        if fmt not in _PIXEL_LAYOUT:
            raise ValueError(f"cannot wrap {fmt.name} as a typed image")
        dtype, channels, _ = _PIXEL_LAYOUT[fmt]
        if array.dtype != dtype:
            raise ValueError(f"{fmt.name} expects {np.dtype(dtype).name}, got {array.dtype.name}")
        if channels == 1 and array.ndim != 2:
            raise ValueError(f"{fmt.name} expects a single channel image, got shape {array.shape}")
        if channels > 1 and (array.ndim != 3 or array.shape[2] != channels):
            raise ValueError(f"{fmt.name} expects {channels} channels, got shape {array.shape}")
        h, w = array.shape[:2]
        return cls(fmt, w, h, np.ascontiguousarray(array))

    @property
    def data(self) -> np.ndarray:
        if self._data is None:
            raise RuntimeError(f"{self.format.name} buffer used after release")
        return self._data

    @property
    def released(self) -> bool:
        return self._data is None

    def release(self):
        self._data = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    def __repr__(self):
        state = "released" if self.released else "live"
        return f"ImageBuffer({self.format.name}, {self.width}x{self.height}, {state})"


@dataclass
class Frame:
    """Paired depth + color sample at one instant of a recording"""
    position: int                       # 1-based order in which the frame was fetched
    depth: Optional[np.ndarray]         # HxW uint16 (mm), depth camera geometry
    color: Optional[np.ndarray]         # raw color sample, layout depends on color_format
    color_format: ImageFormat
    color_width: int
    color_height: int
    depth_timestamp_usec: int = 0
    color_timestamp_usec: int = 0
    released: bool = False

    def release(self):
        self.depth = None
        self.color = None
        self.released = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


@dataclass
class Artifact:
    kind: ArtifactKind
    view: CameraView
    index: int
    path: str


@dataclass
class ReprojectOptions:
    input_path: str
    start_offset_ms: int = 20000
    output_dir: str = "."
    output_prefix: str = "output"
    mode: ReprojectionMode = ReprojectionMode.DEPTH_TO_COLOR
    emit: FrozenSet[ArtifactKind] = frozenset(ArtifactKind)
    accepted_color_formats: FrozenSet[ImageFormat] = frozenset({ImageFormat.COLOR_MJPG})
    image_ext: str = ".png"
    cloud_ext: str = ".ply"
    ascii_cloud: bool = False
    max_frames: Optional[int] = None

    def __post_init__(self):
        if self.start_offset_ms < 0:
            raise ValueError("start offset must be non-negative")
        if self.max_frames is not None and self.max_frames <= 0:
            raise ValueError("max_frames must be positive")
        if not self.emit:
            raise ValueError("at least one artifact kind must be emitted")


@dataclass
class RunReport:
    exit_code: int = 0
    frames_fetched: int = 0
    frames_written: int = 0
    frames_skipped: int = 0
    artifacts: List[Artifact] = field(default_factory=list)
    failure: Optional[StepFailure] = None
