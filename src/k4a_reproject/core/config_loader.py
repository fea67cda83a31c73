import copy
import json
import os
from typing import Optional

from .types import ArtifactKind, ImageFormat, ReprojectionMode, ReprojectOptions

DEFAULTS = {
    "playback": {
        # first frames of a recording often carry no color sample
        "start_offset_ms": 20000,
        "max_frames": None,
        "accepted_color_formats": ["COLOR_MJPG"],
    },
    "reprojection": {
        "mode": "depth_to_color",
    },
    "output": {
        "dir": ".",
        "prefix": "output",
        "emit": ["depth", "color", "cloud"],
        "image_ext": ".png",
        "cloud_ext": ".ply",
        "ascii_cloud": False,
    },
}


def load_config(config_path: Optional[str] = None):
    """
    Loads configuration from a JSON file merged over the defaults.
    Without a path the defaults are returned as is.
    """
    config = copy.deepcopy(DEFAULTS)
    if config_path is None:
        return config

    if not os.path.isfile(config_path):
        raise FileNotFoundError(config_path)

    with open(config_path, "r", encoding="utf-8") as f:
        user_config = json.load(f)
    if not isinstance(user_config, dict):
        raise ValueError(f"{config_path}: top level must be an object")

    for key, value in user_config.items():
        if key in DEFAULTS and not isinstance(value, dict):
            raise ValueError(f"{config_path}: section '{key}' must be an object")
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    return config


def _parse_enum(enum_cls, name, what):
    if isinstance(name, enum_cls):
        return name
    try:
        if issubclass(enum_cls, ImageFormat):
            return enum_cls[str(name).upper()]
        return enum_cls(str(name).lower())
    except (KeyError, ValueError):
        raise ValueError(f"unknown {what}: {name}") from None


def _normalize_ext(ext: str) -> str:
    ext = str(ext)
    return ext if ext.startswith(".") else "." + ext


def options_from_config(config, input_path: str, **overrides) -> ReprojectOptions:
    """Builds ReprojectOptions; non-None overrides win over config values."""
    playback = config.get("playback", {})
    output = config.get("output", {})
    values = {
        "start_offset_ms": playback.get("start_offset_ms", 20000),
        "max_frames": playback.get("max_frames"),
        "accepted_color_formats": playback.get("accepted_color_formats", ["COLOR_MJPG"]),
        "mode": config.get("reprojection", {}).get("mode", "depth_to_color"),
        "output_dir": output.get("dir", "."),
        "output_prefix": output.get("prefix", "output"),
        "emit": output.get("emit", ["depth", "color", "cloud"]),
        "image_ext": output.get("image_ext", ".png"),
        "cloud_ext": output.get("cloud_ext", ".ply"),
        "ascii_cloud": output.get("ascii_cloud", False),
    }
    for key, value in overrides.items():
        if key not in values:
            raise TypeError(f"unexpected option: {key}")
        if value is not None:
            values[key] = value

    emit = values["emit"]
    if isinstance(emit, str):
        emit = [e for e in emit.split(",") if e.strip()]
    formats = values["accepted_color_formats"]
    if isinstance(formats, str):
        formats = [formats]

    return ReprojectOptions(
        input_path=input_path,
        start_offset_ms=int(values["start_offset_ms"]),
        output_dir=str(values["output_dir"]),
        output_prefix=str(values["output_prefix"]),
        mode=_parse_enum(ReprojectionMode, values["mode"], "reprojection mode"),
        emit=frozenset(_parse_enum(ArtifactKind, e.strip() if isinstance(e, str) else e, "artifact kind") for e in emit),
        accepted_color_formats=frozenset(_parse_enum(ImageFormat, f, "color format") for f in formats),
        image_ext=_normalize_ext(values["image_ext"]),
        cloud_ext=_normalize_ext(values["cloud_ext"]),
        ascii_cloud=bool(values["ascii_cloud"]),
        max_frames=None if values["max_frames"] is None else int(values["max_frames"]),
    )
