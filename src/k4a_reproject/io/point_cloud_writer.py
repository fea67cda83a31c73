import os
import numpy as np
import open3d as o3d

from ..core.errors import FailureKind, StepFailure
from ..core.types import ImageBuffer, ImageFormat


def build_point_cloud(points: ImageBuffer, color: ImageBuffer) -> o3d.geometry.PointCloud:
    """
    Pairs per-pixel xyz geometry (mm) with the aligned BGRA color.
    Pixels without depth (z == 0) are dropped.
    """
    if points.format != ImageFormat.CUSTOM:
        raise ValueError(f"expected point geometry, got {points.format.name}")
    if color.format != ImageFormat.COLOR_BGRA32:
        raise ValueError(f"expected BGRA color, got {color.format.name}")
    if (points.width, points.height) != (color.width, color.height):
        raise ValueError(
            f"point geometry {points.width}x{points.height} does not match color {color.width}x{color.height}"
        )

    xyz = points.data.reshape(-1, 3)
    bgra = color.data.reshape(-1, 4)
    valid = xyz[:, 2] != 0
    xyz = xyz[valid].astype(np.float64)
    rgb = bgra[valid][:, [2, 1, 0]].astype(np.float64) / 255.0

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(xyz)
    pcd.colors = o3d.utility.Vector3dVector(rgb)
    return pcd


def write_point_cloud(pcd: o3d.geometry.PointCloud, path: str, ascii: bool = False):
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    if not o3d.io.write_point_cloud(path, pcd, write_ascii=ascii):
        raise StepFailure(FailureKind.WRITE, f"failed to write point cloud {path}")
