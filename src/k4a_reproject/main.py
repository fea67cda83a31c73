import argparse
import sys
from typing import List, Optional

from k4a_reproject.core.config_loader import load_config
from k4a_reproject.core.types import ReprojectionMode
from k4a_reproject.logic.driver import EXIT_FAILURE, run


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="k4a-reproject",
        description="Reproject depth and color of an Azure Kinect recording into each other's camera geometry.",
    )
    sub = ap.add_subparsers(dest="command", metavar="command")
    sub.required = True

    pb = sub.add_parser("playback", help="process a recorded .mkv session")
    pb.add_argument("recording", help="path to the .mkv recording")
    pb.add_argument("start_offset_ms", nargs="?", type=int, default=None,
                    help="start offset in milliseconds (default 20000)")
    pb.add_argument("output_path", nargs="?", default=None,
                    help="output path; its directory, stem and suffix become the output dir, "
                         "file prefix and point cloud extension (default output.ply)")
    pb.add_argument("--output-dir", default=None)
    pb.add_argument("--prefix", default=None)
    pb.add_argument("--mode", choices=[m.value for m in ReprojectionMode], default=None)
    pb.add_argument("--emit", default=None, help="comma separated subset of depth,color,cloud")
    pb.add_argument("--accept-color-format", action="append", default=None, metavar="FORMAT",
                    help="color format to accept, e.g. COLOR_MJPG (repeatable)")
    pb.add_argument("--image-ext", default=None, help="extension for depth/color images (default .png)")
    pb.add_argument("--ascii-cloud", action="store_true", default=None)
    pb.add_argument("--max-frames", type=int, default=None)
    pb.add_argument("--config", default=None, help="JSON config merged over the defaults")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    if args.start_offset_ms is not None and args.start_offset_ms < 0:
        ap.error("start_offset_ms must be non-negative")

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Failed to load config: {e}")
        return EXIT_FAILURE

    try:
        return run(
            args.recording,
            start_offset_ms=args.start_offset_ms,
            output_path=args.output_path,
            config=config,
            output_dir=args.output_dir,
            output_prefix=args.prefix,
            mode=args.mode,
            emit=args.emit,
            accepted_color_formats=args.accept_color_format,
            image_ext=args.image_ext,
            ascii_cloud=args.ascii_cloud,
            max_frames=args.max_frames,
        )
    except ValueError as e:
        print(f"Invalid options: {e}")
        return EXIT_FAILURE
    except ImportError as e:
        print(f"pyk4a is not available, install with the k4a extra: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
