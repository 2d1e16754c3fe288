import os
import shutil
import subprocess

import cv2
import numpy as np
import pytest

import vidprep_lib.providers as prov
from vidprep_lib.data.schemas import Dimensions
from vidprep_lib.engines.ffmpeg import FFmpegEngine, parse_frame_rate
from vidprep_lib.engines.opencv import OpenCVEngine
from vidprep_lib.engines.transforms import FPSTransform, ScaleTransform, compose_transforms
from vidprep_lib.errors import ConfigurationError, DecodeEngineError

HAS_FFMPEG = shutil.which("ffmpeg") is not None


def test_compose_transforms():
    assert compose_transforms(FPSTransform(8), ScaleTransform(256, 128)) == "fps=8,scale=256:128"
    assert compose_transforms() == ""


def test_ffmpeg_raw_command():
    engine = FFmpegEngine(ffmpeg_bin="ffmpeg")

    cmd = engine.raw_command("in.mp4", 8, Dimensions(width=256, height=128))

    assert cmd[0] == "ffmpeg"
    assert cmd[cmd.index("-i") + 1] == "in.mp4"
    assert cmd[cmd.index("-vf") + 1] == "fps=8,scale=256:128"
    assert cmd[cmd.index("-f") + 1] == "rawvideo"
    assert cmd[cmd.index("-pix_fmt") + 1] == "rgb24"
    assert cmd[-1] == "pipe:1"


def test_ffmpeg_images_command():
    engine = FFmpegEngine(image_quality=3)

    jpg = engine.images_command("in.mp4", 8, Dimensions(width=64, height=64), "/frames", "jpg")
    png = engine.images_command("in.mp4", 8, Dimensions(width=64, height=64), "/frames", "png")

    assert jpg[-1] == os.path.join("/frames", "frame_%06d.jpg")
    assert jpg[jpg.index("-q:v") + 1] == "3"
    assert "-q:v" not in png


@pytest.mark.parametrize(
    "text,expected",
    [("30000/1001\n", 30000 / 1001), ("25/1", 25.0), ("0/0", None), ("", None), ("N/A", None)],
)
def test_parse_frame_rate(text, expected):
    assert parse_frame_rate(text) == expected


def test_missing_ffmpeg_binary_raises_decode_error(tmp_path):
    engine = FFmpegEngine(ffmpeg_bin=str(tmp_path / "no-such-ffmpeg"), ffprobe_bin=None)

    with pytest.raises(DecodeEngineError):
        engine.extract_raw("in.mp4", 8, Dimensions(width=8, height=8))


def test_provider_rejects_unknown_engine():
    with pytest.raises(ConfigurationError):
        prov.get_decode_engine("gstreamer")
    assert isinstance(prov.get_decode_engine("opencv"), OpenCVEngine)


def write_test_video(path, frames=20, fps=10.0, size=(64, 48)):
    fourcc = cv2.VideoWriter_fourcc(*"MJPG")
    writer = cv2.VideoWriter(path, fourcc, fps, size)
    if not writer.isOpened():
        pytest.skip("OpenCV build cannot write MJPG video")
    for i in range(frames):
        frame = np.full((size[1], size[0], 3), (i * 10) % 256, dtype=np.uint8)
        writer.write(frame)
    writer.release()


class TestOpenCVEngine:
    def test_raw_frames_are_resampled_and_resized(self, tmp_path):
        video = str(tmp_path / "clip.avi")
        write_test_video(video, frames=20, fps=10.0)
        dims = Dimensions(width=32, height=24)

        stream = OpenCVEngine().extract_raw(video, 5, dims)

        num_frames, leftover = divmod(len(stream.buffer), dims.frame_size)
        assert leftover == 0
        assert abs(num_frames - 10) <= 1
        assert stream.original_fps == pytest.approx(10.0)

    def test_image_frames_are_numbered(self, tmp_path):
        video = str(tmp_path / "clip.avi")
        write_test_video(video, frames=6, fps=10.0)
        target = tmp_path / "frames"
        target.mkdir()

        stream = OpenCVEngine().extract_images(video, 10, Dimensions(width=16, height=8), str(target), "png")

        assert stream.frame_count >= 5
        assert list(stream.frame_paths) == sorted(stream.frame_paths)
        assert os.path.basename(stream.frame_paths[0]) == "frame_000001.png"
        assert cv2.imread(stream.frame_paths[0]).shape == (8, 16, 3)

    def test_unreadable_video(self, tmp_path):
        bogus = tmp_path / "bogus.mp4"
        bogus.write_bytes(b"not a video")

        with pytest.raises(DecodeEngineError):
            OpenCVEngine().extract_raw(str(bogus), 8, Dimensions(width=8, height=8))


@pytest.mark.skipif(not HAS_FFMPEG, reason="ffmpeg binary not installed")
class TestFFmpegEngine:
    @pytest.fixture
    def video(self, tmp_path):
        path = str(tmp_path / "red.mp4")
        subprocess.run(
            [
                "ffmpeg", "-loglevel", "error", "-f", "lavfi",
                "-i", "color=c=red:s=64x64:d=1:r=25",
                "-pix_fmt", "yuv420p", path, "-y",
            ],
            check=True,
        )
        return path

    def test_extract_raw(self, video):
        dims = Dimensions(width=32, height=16)

        stream = FFmpegEngine().extract_raw(video, 8, dims)

        num_frames, leftover = divmod(len(stream.buffer), dims.frame_size)
        assert leftover == 0
        assert 7 <= num_frames <= 9

    def test_extract_images(self, video, tmp_path):
        target = tmp_path / "frames"
        target.mkdir()

        stream = FFmpegEngine().extract_images(video, 8, Dimensions(width=32, height=16), str(target), "jpg")

        assert 7 <= stream.frame_count <= 9
        assert os.path.basename(stream.frame_paths[0]) == "frame_000001.jpg"

    def test_corrupt_input(self, tmp_path):
        bogus = tmp_path / "bogus.mp4"
        bogus.write_bytes(b"not a video")

        with pytest.raises(DecodeEngineError):
            FFmpegEngine().extract_raw(str(bogus), 8, Dimensions(width=8, height=8))
