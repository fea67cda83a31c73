from typing import Iterable
import cv2
import numpy as np

from ..core.errors import FailureKind, StepFailure
from ..core.types import Frame, ImageBuffer, ImageFormat


def check_color_format(frame: Frame, accepted: Iterable[ImageFormat]):
    accepted = set(accepted)
    if frame.color_format not in accepted:
        names = ", ".join(sorted(f.name for f in accepted))
        raise StepFailure(
            FailureKind.FORMAT_MISMATCH,
            f"color format {frame.color_format.name} not supported, expected {names}",
        )


def _to_bgra(raw: np.ndarray, fmt: ImageFormat):
    if fmt == ImageFormat.COLOR_MJPG:
        bgr = cv2.imdecode(np.frombuffer(raw, dtype=np.uint8), cv2.IMREAD_COLOR)
        if bgr is None:
            return None
        return cv2.cvtColor(bgr, cv2.COLOR_BGR2BGRA)
    if fmt == ImageFormat.COLOR_NV12:
        return cv2.cvtColor(raw, cv2.COLOR_YUV2BGRA_NV12)
    if fmt == ImageFormat.COLOR_YUY2:
        return cv2.cvtColor(raw, cv2.COLOR_YUV2BGRA_YUY2)
    if fmt == ImageFormat.COLOR_BGRA32:
        return raw.copy()
    raise StepFailure(FailureKind.FORMAT_MISMATCH, f"{fmt.name} is not a color format")


def decode_color(raw: np.ndarray, fmt: ImageFormat, width: int, height: int) -> ImageBuffer:
    """
    Converts a raw color sample into a newly allocated BGRA32 buffer. A known
    (non-zero) declared size must match the decoded one; with an unknown
    size the buffer takes the decoded size.
    """
    if raw is None or raw.size == 0:
        raise StepFailure(FailureKind.DECODE, "empty color sample")
    try:
        bgra = _to_bgra(raw, ImageFormat(fmt))
    except cv2.error as e:
        raise StepFailure(FailureKind.DECODE, f"failed to decompress color frame: {e}") from e
    if bgra is None:
        raise StepFailure(FailureKind.DECODE, "failed to decompress color frame")
    h, w = bgra.shape[:2]
    if width > 0 and height > 0:
        if (w, h) != (width, height):
            raise StepFailure(FailureKind.DECODE, f"decoded color is {w}x{h}, expected {width}x{height}")
    else:
        width, height = w, h

    buf = ImageBuffer.create(ImageFormat.COLOR_BGRA32, width, height)
    np.copyto(buf.data, bgra)
    return buf
