import os
from contextlib import ExitStack
from typing import List

from ..algo.color_decode import check_color_format, decode_color
from ..algo.reprojection import AlignedView, reproject
from ..core.errors import FailureKind, StepFailure, StepResult
from ..core.interfaces import ITransformContext
from ..core.types import Artifact, ArtifactKind, Frame, ReprojectOptions
from ..io.image_writer import artifact_path, write_image
from ..io.point_cloud_writer import build_point_cloud, write_point_cloud


class FrameProcessor:
    """Turns one frame into its depth, color and point cloud artifacts."""

    def __init__(self, options: ReprojectOptions, ctx: ITransformContext):
        self.options = options
        self.ctx = ctx

    def process(self, frame: Frame, index: int) -> StepResult:
        """
        Runs every per-frame step. Buffers created along the way are released
        before returning, whatever the outcome. ``index`` is the output number
        the artifacts are written under.
        """
        try:
            with ExitStack() as stack:
                artifacts = self._process(frame, index, stack)
        except StepFailure as e:
            return StepResult.from_failure(e)
        return StepResult.ok(artifacts)

    def _process(self, frame: Frame, index: int, stack: ExitStack) -> List[Artifact]:
        if frame.depth is None:
            raise StepFailure(FailureKind.MISSING_SAMPLE, "failed to get depth image from capture")
        if frame.color is None:
            raise StepFailure(FailureKind.MISSING_SAMPLE, "failed to get color image from capture")
        check_color_format(frame, self.options.accepted_color_formats)

        color = stack.enter_context(
            decode_color(frame.color, frame.color_format, frame.color_width, frame.color_height))
        with_points = ArtifactKind.CLOUD in self.options.emit
        views = reproject(self.ctx, self.options.mode, frame.depth, color, stack, with_points)

        artifacts = []
        try:
            for view in views:
                self._write_view(view, index, artifacts)
        except StepFailure:
            # a half written frame is dropped entirely
            for artifact in artifacts:
                if os.path.exists(artifact.path):
                    os.remove(artifact.path)
            raise
        return artifacts

    def _path(self, kind: ArtifactKind, view: AlignedView, index: int, ext: str) -> str:
        opts = self.options
        return artifact_path(opts.output_dir, opts.output_prefix, kind, view.view, index, ext)

    def _write_view(self, view: AlignedView, index: int, written: List[Artifact]):
        opts = self.options
        if ArtifactKind.DEPTH in opts.emit:
            path = self._path(ArtifactKind.DEPTH, view, index, opts.image_ext)
            write_image(view.depth, path)
            written.append(Artifact(ArtifactKind.DEPTH, view.view, index, path))
        if ArtifactKind.COLOR in opts.emit:
            path = self._path(ArtifactKind.COLOR, view, index, opts.image_ext)
            write_image(view.color, path)
            written.append(Artifact(ArtifactKind.COLOR, view.view, index, path))
        if ArtifactKind.CLOUD in opts.emit and view.points is not None:
            path = self._path(ArtifactKind.CLOUD, view, index, opts.cloud_ext)
            write_point_cloud(build_point_cloud(view.points, view.color), path, ascii=opts.ascii_cloud)
            written.append(Artifact(ArtifactKind.CLOUD, view.view, index, path))
