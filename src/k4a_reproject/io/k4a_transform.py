from typing import Optional
import numpy as np
from pyk4a import Calibration, K4AException
from pyk4a.transformation import (
    color_image_to_depth_camera,
    depth_image_to_color_camera,
    depth_image_to_point_cloud,
)

from ..core.errors import FailureKind, StepFailure
from ..core.interfaces import ITransformContext
from ..core.types import CameraView


class K4ATransformContext(ITransformContext):
    """Reprojection through the SDK transformation handle owned by the calibration"""

    def __init__(self, calibration: Calibration, thread_safe: bool = True):
        self._calibration: Optional[Calibration] = calibration
        self._thread_safe = thread_safe

    def _require(self) -> Calibration:
        if self._calibration is None:
            raise RuntimeError("transform context used after destroy")
        return self._calibration

    def _call(self, what, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except K4AException as e:
            raise StepFailure(FailureKind.TRANSFORM, f"failed to compute {what}: {e}") from e

    def depth_to_color(self, depth: np.ndarray) -> Optional[np.ndarray]:
        return self._call("transformed depth image", depth_image_to_color_camera,
                          depth, self._require(), self._thread_safe)

    def color_to_depth(self, depth: np.ndarray, color_bgra: np.ndarray) -> Optional[np.ndarray]:
        # the SDK only warps BGRA32 color
        return self._call("transformed color image", color_image_to_depth_camera,
                          np.ascontiguousarray(color_bgra), depth, self._require(), self._thread_safe)

    def depth_to_point_cloud(self, depth: np.ndarray, view: CameraView) -> Optional[np.ndarray]:
        return self._call("point cloud", depth_image_to_point_cloud,
                          depth, self._require(), self._thread_safe,
                          calibration_type_depth=(CameraView(view) == CameraView.DEPTH))

    def destroy(self):
        self._calibration = None
