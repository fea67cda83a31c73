import os
import cv2
import numpy as np

from ..core.errors import FailureKind, StepFailure
from ..core.types import ArtifactKind, CameraView, ImageBuffer, ImageFormat


def artifact_path(output_dir: str, prefix: str, kind: ArtifactKind, view: CameraView,
                  index: int, ext: str) -> str:
    """<dir>/<prefix>_<kind>_<view>_<index><ext>, e.g. out/session_depth_color_12.png"""
    name = f"{prefix}_{ArtifactKind(kind).value}_{CameraView(view).value}_{int(index)}{ext}"
    return os.path.join(output_dir, name)


def as_image_matrix(buffer: ImageBuffer) -> np.ndarray:
    """Pixels of the buffer as a typed matrix matching its declared size and format."""
    data = buffer.data
    if buffer.format in (ImageFormat.DEPTH16, ImageFormat.IR16):
        expected = ((buffer.height, buffer.width), np.uint16)
    elif buffer.format == ImageFormat.COLOR_BGRA32:
        expected = ((buffer.height, buffer.width, 4), np.uint8)
    elif buffer.format == ImageFormat.CUSTOM:
        expected = ((buffer.height, buffer.width, 3), np.int16)
    else:
        raise ValueError(f"no typed image matrix for {buffer.format.name}")
    shape, dtype = expected
    if data.shape != shape or data.dtype != dtype:
        raise ValueError(
            f"{buffer.format.name} buffer holds {data.dtype.name}{data.shape}, "
            f"declared {np.dtype(dtype).name}{shape}"
        )
    return np.ascontiguousarray(data)


def write_image(buffer: ImageBuffer, path: str):
    """
    Writes a depth (16-bit single channel) or color buffer. BGRA color is
    written as BGR so that lossy formats like .jpg accept it.
    """
    try:
        mat = as_image_matrix(buffer)
    except ValueError as e:
        raise StepFailure(FailureKind.WRITE, str(e)) from e
    if buffer.format == ImageFormat.COLOR_BGRA32:
        mat = cv2.cvtColor(mat, cv2.COLOR_BGRA2BGR)
    elif buffer.format == ImageFormat.CUSTOM:
        raise StepFailure(FailureKind.WRITE, "point geometry is written as a point cloud, not an image")

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    try:
        ok = cv2.imwrite(path, mat)
    except cv2.error as e:
        raise StepFailure(FailureKind.WRITE, f"failed to write {path}: {e}") from e
    if not ok:
        raise StepFailure(FailureKind.WRITE, f"failed to write {path}")
