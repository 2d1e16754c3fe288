from typing import List, Protocol


class Transform(Protocol):
    """A video filter that can be expressed as ffmpeg filter arguments."""

    def ffmpeg_args(self) -> List[str]:
        ...


class FPSTransform(Transform):
    """Resample to a constant frame rate."""

    def __init__(self, fps: int) -> None:
        self.fps = fps

    def ffmpeg_args(self) -> List[str]:
        return [f"fps={self.fps}"]


class ScaleTransform(Transform):
    """Resize frames to fixed dimensions."""

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    def ffmpeg_args(self) -> List[str]:
        return [f"scale={self.width}:{self.height}"]


def compose_transforms(*transforms: Transform) -> str:
    """Join transforms into one ``-vf`` filter chain, e.g. ``fps=8,scale=256:256``."""
    args = []
    for t in transforms:
        args.extend(t.ffmpeg_args())
    return ",".join(args)
