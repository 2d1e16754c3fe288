import glob
import logging
import os.path as osp
import subprocess
from fractions import Fraction
from typing import List, Optional

from vidprep_lib.data.schemas import Dimensions, ImageFrameStream, RawFrameStream
from vidprep_lib.engines.base import IDecodeEngine
from vidprep_lib.engines.transforms import FPSTransform, ScaleTransform, compose_transforms
from vidprep_lib.errors import DecodeEngineError

logger = logging.getLogger(__name__)


class FFmpegEngine(IDecodeEngine):
    """Decode engine backed by the ffmpeg command line tools.

    Frame-rate conversion and resizing are done by an ``fps=N,scale=W:H``
    filter chain. Raw frames are read from ffmpeg's stdout as rgb24; image
    frames are written by ffmpeg as ``frame_%06d.<ext>``. The source frame rate
    is probed with ffprobe and is optional.

    Attributes:
        ffmpeg_bin: ffmpeg executable
        ffprobe_bin: ffprobe executable, None disables probing
        image_quality: ``-q:v`` value used for jpg output
    """

    FRAME_PATTERN = "frame_%06d"

    def __init__(
        self,
        ffmpeg_bin: str = "ffmpeg",
        ffprobe_bin: Optional[str] = "ffprobe",
        image_quality: int = 2,
    ) -> None:
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self.image_quality = image_quality

    def filter_chain(self, fps: int, dims: Dimensions) -> str:
        return compose_transforms(FPSTransform(fps), ScaleTransform(dims.width, dims.height))

    def raw_command(self, video_path: str, fps: int, dims: Dimensions) -> List[str]:
        return [
            self.ffmpeg_bin, "-nostdin", "-loglevel", "error",
            "-i", video_path,
            "-vf", self.filter_chain(fps, dims),
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "pipe:1",
        ]

    def images_command(
        self, video_path: str, fps: int, dims: Dimensions, target_dir: str, extension: str
    ) -> List[str]:
        cmd = [
            self.ffmpeg_bin, "-nostdin", "-loglevel", "error", "-y",
            "-i", video_path,
            "-vf", self.filter_chain(fps, dims),
        ]
        if extension == "jpg":
            cmd.extend(["-q:v", str(self.image_quality)])
        cmd.append(osp.join(target_dir, f"{self.FRAME_PATTERN}.{extension}"))
        return cmd

    def _run(self, cmd: List[str], video_path: str) -> bytes:
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            raise DecodeEngineError(video_path, f"cannot run {cmd[0]}: {e}") from e
        if proc.returncode != 0:
            details = proc.stderr.decode("utf-8", errors="replace").strip()
            raise DecodeEngineError(
                video_path, details or f"{cmd[0]} exited with code {proc.returncode}"
            )
        return proc.stdout

    def probe_fps(self, video_path: str) -> Optional[float]:
        """Average frame rate of the first video stream, None when unknown."""
        if not self.ffprobe_bin:
            return None
        cmd = [
            self.ffprobe_bin, "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=avg_frame_rate",
            "-of", "default=noprint_wrappers=1:nokey=1",
            video_path,
        ]
        try:
            proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            logger.warning(f"ffprobe unavailable: {e}")
            return None
        if proc.returncode != 0:
            return None
        return parse_frame_rate(proc.stdout.decode("utf-8", errors="replace"))

    def extract_raw(self, video_path: str, fps: int, dims: Dimensions) -> RawFrameStream:
        buffer = self._run(self.raw_command(video_path, fps, dims), video_path)
        return RawFrameStream(buffer=buffer, dims=dims, original_fps=self.probe_fps(video_path))

    def extract_images(
        self,
        video_path: str,
        fps: int,
        dims: Dimensions,
        target_dir: str,
        extension: str,
    ) -> ImageFrameStream:
        self._run(self.images_command(video_path, fps, dims, target_dir, extension), video_path)
        frame_paths = sorted(glob.glob(osp.join(target_dir, f"frame_*.{extension}")))
        return ImageFrameStream(
            frame_paths=frame_paths, dims=dims, original_fps=self.probe_fps(video_path)
        )


def parse_frame_rate(text: str) -> Optional[float]:
    """Parse an ffprobe rate such as ``30000/1001``; None for ``0/0`` or garbage."""
    text = text.strip().splitlines()[0] if text.strip() else ""
    try:
        rate = Fraction(text)
    except (ValueError, ZeroDivisionError):
        return None
    return float(rate) if rate > 0 else None
