import os.path as osp
import threading
from typing import Dict, Iterable, Optional

import pytest

from vidprep_lib.data.schemas import Clip, Dimensions, ImageFrameStream, RawFrameStream
from vidprep_lib.errors import DecodeEngineError


def frame_bytes(index: int, dims: Dimensions) -> bytes:
    """A frame whose every byte equals index % 256."""
    return bytes([index % 256]) * dims.frame_size


class FakeEngine:
    """Decode engine producing synthetic frames without touching a codec.

    The clip key is recovered from the materialised file name, so each clip can
    be given its own frame count or be made to fail.
    """

    def __init__(
        self,
        frames: int = 24,
        frames_per_key: Optional[Dict[str, int]] = None,
        fail_keys: Iterable[str] = (),
        original_fps: Optional[float] = 29.97,
    ) -> None:
        self.frames = frames
        self.frames_per_key = frames_per_key or {}
        self.fail_keys = set(fail_keys)
        self.original_fps = original_fps
        self.seen_paths = []
        self._lock = threading.Lock()

    def _frames_for(self, video_path: str) -> int:
        with self._lock:
            self.seen_paths.append(video_path)
        key = osp.splitext(osp.basename(video_path))[0]
        if key in self.fail_keys:
            raise DecodeEngineError(video_path, "moov atom not found")
        return self.frames_per_key.get(key, self.frames)

    def extract_raw(self, video_path, fps, dims):
        n = self._frames_for(video_path)
        buffer = b"".join(frame_bytes(i, dims) for i in range(n))
        return RawFrameStream(buffer=buffer, dims=dims, original_fps=self.original_fps)

    def extract_images(self, video_path, fps, dims, target_dir, extension):
        n = self._frames_for(video_path)
        paths = []
        for i in range(n):
            path = osp.join(target_dir, f"frame_{i + 1:06d}.{extension}")
            with open(path, "w") as f:
                f.write(f"source frame {i}")
            paths.append(path)
        return ImageFrameStream(frame_paths=paths, dims=dims, original_fps=self.original_fps)


@pytest.fixture
def dims():
    return Dimensions(width=4, height=2)


@pytest.fixture
def fake_engine():
    return FakeEngine()


def _make_clips(*keys):
    return [Clip(key=key, raw_data=b"\x00\x00\x00\x18ftypisom" + key.encode()) for key in keys]


@pytest.fixture
def make_clips():
    return _make_clips


@pytest.fixture
def engine_factory():
    return FakeEngine
