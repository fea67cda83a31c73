import numpy as np
import pytest

from conftest import make_frame
from k4a_reproject.core.errors import FailureKind, StepAction, StepFailure, FAILURE_POLICY
from k4a_reproject.core.types import ImageBuffer, ImageFormat


@pytest.mark.parametrize(
    "fmt, shape, stride",
    [
        (ImageFormat.DEPTH16, (1080, 1920), 1920 * 2),
        (ImageFormat.COLOR_BGRA32, (1080, 1920, 4), 1920 * 4),
        (ImageFormat.CUSTOM, (1080, 1920, 3), 1920 * 6),
        (ImageFormat.COLOR_NV12, (1620, 1920), 1920),
    ],
)
def test_create_allocates_declared_layout(fmt, shape, stride):
    buf = ImageBuffer.create(fmt, 1920, 1080)
    assert buf.data.shape == shape
    assert buf.stride_bytes == stride
    assert not buf.data.any()


def test_create_rejects_bad_sizes():
    with pytest.raises(StepFailure) as exc:
        ImageBuffer.create(ImageFormat.DEPTH16, 0, 576)
    assert exc.value.kind == FailureKind.BUFFER_ALLOCATION
    assert exc.value.action == StepAction.ABORT_RUN
    with pytest.raises(StepFailure):
        ImageBuffer.create(ImageFormat.COLOR_MJPG, 1280, 720)


def test_release_is_idempotent():
    with ImageBuffer.create(ImageFormat.DEPTH16, 4, 3) as buf:
        assert not buf.released
    assert buf.released
    buf.release()
    with pytest.raises(RuntimeError):
        buf.data


def test_wrap_checks_dtype_and_channels():
    with pytest.raises(ValueError):
        ImageBuffer.wrap(ImageFormat.DEPTH16, np.zeros((3, 4), dtype=np.float32))
    with pytest.raises(ValueError):
        ImageBuffer.wrap(ImageFormat.COLOR_BGRA32, np.zeros((3, 4, 3), dtype=np.uint8))
    buf = ImageBuffer.wrap(ImageFormat.COLOR_BGRA32, np.zeros((3, 4, 4), dtype=np.uint8))
    assert (buf.width, buf.height) == (4, 3)


def test_frame_release():
    with make_frame(1) as frame:
        assert frame.depth is not None
    assert frame.released
    assert frame.depth is None and frame.color is None
    frame.release()


def test_every_failure_kind_has_a_policy():
    assert set(FAILURE_POLICY) == set(FailureKind)
    assert FAILURE_POLICY[FailureKind.OPEN] == StepAction.ABORT_RUN
    assert FAILURE_POLICY[FailureKind.FORMAT_MISMATCH] == StepAction.SKIP_FRAME
