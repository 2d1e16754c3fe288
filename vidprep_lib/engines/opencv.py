import logging
import os.path as osp
from typing import Iterator, Optional, Tuple

import cv2
import numpy as np

from vidprep_lib.data.schemas import Dimensions, ImageFrameStream, RawFrameStream
from vidprep_lib.engines.base import IDecodeEngine
from vidprep_lib.errors import DecodeEngineError

logger = logging.getLogger(__name__)


class OpenCVEngine(IDecodeEngine):
    """In-process decode engine built on cv2.VideoCapture.

    Frames are read sequentially and resampled to the target rate by
    timestamp: an output frame is due every ``1 / fps`` seconds and takes the
    source frame displayed at that instant, so frames are dropped when
    downsampling and repeated when upsampling. Each kept frame is resized with
    ``cv2.INTER_AREA``.

    Attributes:
        fallback_fps: Source rate assumed when the container reports none
        frame_tmpl: Name template of image frames, 1-based

    Example:
        ```python
        engine = OpenCVEngine()
        stream = engine.extract_raw("./clip.mp4", 8, Dimensions(width=256, height=256))
        ```
    """

    def __init__(self, fallback_fps: float = 30.0, frame_tmpl: str = "frame_{:06d}") -> None:
        self.fallback_fps = fallback_fps
        self.frame_tmpl = frame_tmpl

    def _open(self, video_path: str) -> Tuple[cv2.VideoCapture, Optional[float]]:
        cap = cv2.VideoCapture(video_path)
        if not cap.isOpened():
            raise DecodeEngineError(video_path, "Error opening video")
        source_fps = cap.get(cv2.CAP_PROP_FPS)
        return cap, (source_fps if source_fps and source_fps > 0 else None)

    def _resampled_frames(
        self, cap: cv2.VideoCapture, source_fps: Optional[float], fps: int, dims: Dimensions
    ) -> Iterator[np.ndarray]:
        """Yield resized BGR frames at the target rate."""
        source_step = 1.0 / (source_fps or self.fallback_fps)
        target_step = 1.0 / fps
        next_t = 0.0
        index = 0
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            frame_end = (index + 1) * source_step
            resized = None
            # Small epsilon keeps equal rates from dropping frames to float error.
            while next_t < frame_end - 1e-9:
                if resized is None:
                    resized = cv2.resize(
                        frame, (dims.width, dims.height), interpolation=cv2.INTER_AREA
                    )
                yield resized
                next_t += target_step
            index += 1
        logger.debug(f"Read {index} source frames")

    def extract_raw(self, video_path: str, fps: int, dims: Dimensions) -> RawFrameStream:
        cap, source_fps = self._open(video_path)
        buffer = bytearray()
        try:
            for frame in self._resampled_frames(cap, source_fps, fps, dims):
                buffer += cv2.cvtColor(frame, cv2.COLOR_BGR2RGB).tobytes()
        except cv2.error as e:
            raise DecodeEngineError(video_path, str(e)) from e
        finally:
            cap.release()
        return RawFrameStream(buffer=bytes(buffer), dims=dims, original_fps=source_fps)

    def extract_images(
        self,
        video_path: str,
        fps: int,
        dims: Dimensions,
        target_dir: str,
        extension: str,
    ) -> ImageFrameStream:
        cap, source_fps = self._open(video_path)
        frame_paths = []
        try:
            for frame in self._resampled_frames(cap, source_fps, fps, dims):
                frame_path = osp.join(
                    target_dir, f"{self.frame_tmpl.format(len(frame_paths) + 1)}.{extension}"
                )
                if not cv2.imwrite(frame_path, frame):
                    raise DecodeEngineError(video_path, f"Failed to save frame to {frame_path}")
                frame_paths.append(frame_path)
        except cv2.error as e:
            raise DecodeEngineError(video_path, str(e)) from e
        finally:
            cap.release()
        return ImageFrameStream(frame_paths=frame_paths, dims=dims, original_fps=source_fps)
