from contextlib import ExitStack
from dataclasses import dataclass
from typing import List, Optional
import numpy as np

from ..core.errors import FailureKind, StepFailure
from ..core.interfaces import ITransformContext
from ..core.types import CameraView, ImageBuffer, ImageFormat, ReprojectionMode


@dataclass
class AlignedView:
    """Depth, color and point geometry expressed in one camera's geometry"""
    view: CameraView
    depth: ImageBuffer
    color: ImageBuffer
    points: Optional[ImageBuffer] = None


def _checked(result, fmt: ImageFormat, width: int, height: int, what: str) -> ImageBuffer:
    if result is None:
        raise StepFailure(FailureKind.TRANSFORM, f"failed to compute {what}")
    result = np.asarray(result)
    if result.shape[:2] != (height, width):
        raise StepFailure(
            FailureKind.TRANSFORM,
            f"{what} is {result.shape[1]}x{result.shape[0]}, expected {width}x{height}",
        )
    try:
        return ImageBuffer.wrap(fmt, result)
    except ValueError as e:
        raise StepFailure(FailureKind.TRANSFORM, f"{what}: {e}") from e


def depth_in_color_view(ctx: ITransformContext, depth: np.ndarray, color: ImageBuffer,
                        stack: ExitStack, with_points: bool = True) -> AlignedView:
    """Warps the depth image into the color camera geometry.

    Every buffer created here is registered on ``stack`` so it is released
    together with the rest of the frame.
    """
    w, h = color.width, color.height
    transformed_depth = stack.enter_context(
        _checked(ctx.depth_to_color(depth), ImageFormat.DEPTH16, w, h, "transformed depth image"))
    points = None
    if with_points:
        points = stack.enter_context(
            _checked(ctx.depth_to_point_cloud(transformed_depth.data, CameraView.COLOR),
                     ImageFormat.CUSTOM, w, h, "point cloud"))
    return AlignedView(CameraView.COLOR, transformed_depth, color, points)


def color_in_depth_view(ctx: ITransformContext, depth: np.ndarray, color: ImageBuffer,
                        stack: ExitStack, with_points: bool = True) -> AlignedView:
    """Warps the color image into the depth camera geometry."""
    h, w = depth.shape[:2]
    depth_buf = stack.enter_context(_checked(depth, ImageFormat.DEPTH16, w, h, "depth image"))
    transformed_color = stack.enter_context(
        _checked(ctx.color_to_depth(depth, color.data), ImageFormat.COLOR_BGRA32, w, h,
                 "transformed color image"))
    points = None
    if with_points:
        points = stack.enter_context(
            _checked(ctx.depth_to_point_cloud(depth, CameraView.DEPTH),
                     ImageFormat.CUSTOM, w, h, "point cloud"))
    return AlignedView(CameraView.DEPTH, depth_buf, transformed_color, points)


def reproject(ctx: ITransformContext, mode: ReprojectionMode, depth: np.ndarray, color: ImageBuffer,
              stack: ExitStack, with_points: bool = True) -> List[AlignedView]:
    views = []
    if mode in (ReprojectionMode.DEPTH_TO_COLOR, ReprojectionMode.BOTH):
        views.append(depth_in_color_view(ctx, depth, color, stack, with_points))
    if mode in (ReprojectionMode.COLOR_TO_DEPTH, ReprojectionMode.BOTH):
        views.append(color_in_depth_view(ctx, depth, color, stack, with_points))
    return views
