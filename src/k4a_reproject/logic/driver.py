import os
from typing import Callable, Optional

from ..core.config_loader import load_config, options_from_config
from ..core.errors import StepAction, StepFailure
from ..core.interfaces import ISession, ITransformContext
from ..core.types import ReprojectOptions, RunReport
from .frame_processor import FrameProcessor

EXIT_FAILURE = 1


def _k4a_session(path: str) -> ISession:
    from ..io.k4a_playback import K4APlaybackSession
    return K4APlaybackSession(path)


def _k4a_transform(calibration) -> ITransformContext:
    from ..io.k4a_transform import K4ATransformContext
    return K4ATransformContext(calibration)


class Reprojector:
    """
    Opens a recording, seeks to the start offset and writes aligned
    depth/color/point cloud artifacts for every frame until the stream ends.

    States only move forward: opening -> seeking -> iterating -> closing.
    """

    def __init__(self, options: ReprojectOptions,
                 session_factory: Optional[Callable[[str], ISession]] = None,
                 transform_factory: Optional[Callable[[object], ITransformContext]] = None):
        self.options = options
        self._session_factory = session_factory or _k4a_session
        self._transform_factory = transform_factory or _k4a_transform

    def run(self) -> RunReport:
        opts = self.options
        report = RunReport()
        session = self._session_factory(opts.input_path)
        try:
            session.open()
        except StepFailure as e:
            return self._abort(report, e)

        try:
            print(f"Opened {opts.input_path} ({session.length_usec // 1000} ms)")
            session.seek(opts.start_offset_ms * 1000)
            print(f"Seeking to timestamp: {opts.start_offset_ms}/{session.length_usec // 1000} (ms)")

            calibration = session.get_calibration()
            # calibration is fixed for the recording, one context serves every frame
            with self._transform_factory(calibration) as ctx:
                self._iterate(session, FrameProcessor(opts, ctx), report)
        except StepFailure as e:
            self._abort(report, e)
        finally:
            session.close()

        if report.failure is None:
            print(f"Done: {report.frames_written} frames written, {report.frames_skipped} skipped")
        return report

    def _iterate(self, session: ISession, processor: FrameProcessor, report: RunReport):
        max_frames = self.options.max_frames
        while max_frames is None or report.frames_written < max_frames:
            frame = session.next_frame()
            if frame is None:
                break
            report.frames_fetched += 1
            index = report.frames_written + 1
            with frame:
                result = processor.process(frame, index)

            if result.action == StepAction.SKIP_FRAME:
                report.frames_skipped += 1
                print(f"Skipping frame {frame.position}: {result.message}")
                continue
            if result.action == StepAction.ABORT_RUN:
                raise StepFailure(result.kind, f"frame {frame.position}: {result.message}")

            report.frames_written += 1
            report.artifacts.extend(result.artifacts)
            print(f"Saved frame {index} (depth {frame.depth_timestamp_usec} us, "
                  f"color {frame.color_timestamp_usec} us, {len(result.artifacts)} artifacts)")

    @staticmethod
    def _abort(report: RunReport, failure: StepFailure) -> RunReport:
        print(f"Error: {failure}")
        report.failure = failure
        report.exit_code = EXIT_FAILURE
        return report


def split_output_path(output_path: str):
    """output.ply -> (".", "output", ".ply"); the suffix may be empty."""
    directory, name = os.path.split(output_path)
    stem, ext = os.path.splitext(name)
    return directory or ".", stem or "output", ext


def run(input_path: str, start_offset_ms: Optional[int] = 20000, output_path: Optional[str] = "output.ply",
        config=None, session_factory=None, transform_factory=None, **overrides) -> int:
    """
    Reprojects every frame of ``input_path`` after ``start_offset_ms``.
    ``output_path`` supplies the output directory, file prefix and point
    cloud extension unless they are overridden explicitly.
    """
    if output_path is not None:
        directory, prefix, ext = split_output_path(output_path)
        if overrides.get("output_dir") is None:
            overrides["output_dir"] = directory
        if overrides.get("output_prefix") is None:
            overrides["output_prefix"] = prefix
        if overrides.get("cloud_ext") is None and ext:
            overrides["cloud_ext"] = ext

    options = options_from_config(config if config is not None else load_config(), input_path,
                                  start_offset_ms=start_offset_ms, **overrides)
    report = Reprojector(options, session_factory, transform_factory).run()
    return report.exit_code
