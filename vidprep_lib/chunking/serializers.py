import logging
import os
import os.path as osp
import shutil
from typing import List, Optional, Sequence

import cv2
import numpy as np

from vidprep_lib.chunking.base import IChunkSerializer
from vidprep_lib.chunking.metadata import build_metadata, write_metadata
from vidprep_lib.chunking.npy_writer import write_npy
from vidprep_lib.data.schemas import (
    RGB_CHANNELS,
    ChunkArtifact,
    ChunkRange,
    Dimensions,
    ImageFrameStream,
    LayoutConfig,
    RawFrameStream,
)
from vidprep_lib.engines.base import IDecodeEngine
from vidprep_lib.errors import FrameSizeMismatchError

logger = logging.getLogger(__name__)


class NpyChunkSerializer(IChunkSerializer):
    """Write chunks as dense ``(frames, height, width, 3)`` uint8 arrays.

    Each chunk becomes ``chunk_NNNNN.npy`` with a sibling
    ``chunk_NNNNN_metadata.json`` directly inside the clip directory. Padded
    chunks are zero-extended to ``target_frames``.

    Attributes:
        fps: Sampling rate requested from the engine
        dims: Frame size requested from the engine
        target_frames: Frames per chunk
        layout: Naming scheme of chunk files
    """

    def __init__(
        self,
        fps: int,
        dims: Dimensions,
        target_frames: int,
        layout: Optional[LayoutConfig] = None,
    ) -> None:
        self.fps = fps
        self.dims = dims
        self.target_frames = target_frames
        self.layout = layout or LayoutConfig()

    def collect_frames(
        self, engine: IDecodeEngine, video_path: str, clip_dir: str
    ) -> RawFrameStream:
        return engine.extract_raw(video_path, self.fps, self.dims)

    def count_frames(self, stream: RawFrameStream) -> int:
        frame_size = stream.dims.frame_size
        num_frames, leftover = divmod(len(stream.buffer), frame_size)
        if leftover:
            raise FrameSizeMismatchError(
                f"buffer of {len(stream.buffer)} bytes is not a multiple of "
                f"the {stream.dims} frame size ({frame_size} bytes)"
            )
        return num_frames

    def serialize(
        self,
        clip_key: str,
        stream: RawFrameStream,
        plan: Sequence[ChunkRange],
        clip_dir: str,
    ) -> List[ChunkArtifact]:
        dims = stream.dims
        frame_size = dims.frame_size
        shape = (self.target_frames, dims.height, dims.width, RGB_CHANNELS)
        view = memoryview(stream.buffer)
        artifacts = []

        for index, chunk in enumerate(plan):
            name = self.layout.chunk_name(index)
            data = bytes(view[chunk.start * frame_size : chunk.end * frame_size])
            if chunk.is_padded:
                missing = self.target_frames - chunk.frame_count
                data += bytes(missing * frame_size)

            npy_path = osp.join(clip_dir, f"{name}.npy")
            write_npy(npy_path, data, shape)

            metadata = build_metadata(
                clip_key, name, chunk, self.fps, self.target_frames, dims, stream.original_fps
            )
            metadata_path = osp.join(clip_dir, f"{name}_metadata.json")
            write_metadata(metadata, metadata_path)

            artifacts.append(ChunkArtifact(clip_key, index, npy_path, metadata_path, metadata))
            logger.debug(f"Wrote {npy_path} frames [{chunk.start}, {chunk.end})")

        return artifacts

    def release(self, clip_dir: str) -> None:
        return None


class ImageChunkSerializer(IChunkSerializer):
    """Write chunks as directories of numbered image files.

    The engine writes every frame into a staging directory inside the clip
    directory. Frames of each planned chunk are then moved (renamed, never
    copied) into ``chunk_NNNNN/frame_NNN.<ext>``, numbered from 1, next to a
    ``metadata.json``. Frames outside every accepted range are deleted.
    Padded chunks are completed with black frames.

    Attributes:
        fps: Sampling rate requested from the engine
        dims: Frame size requested from the engine
        target_frames: Frames per chunk
        extension: Image file extension, e.g. ``jpg``
        layout: Naming scheme of chunk directories and frames
    """

    STAGING_DIR = ".frames"

    def __init__(
        self,
        fps: int,
        dims: Dimensions,
        target_frames: int,
        extension: str = "jpg",
        layout: Optional[LayoutConfig] = None,
    ) -> None:
        self.fps = fps
        self.dims = dims
        self.target_frames = target_frames
        self.extension = extension
        self.layout = layout or LayoutConfig()

    def staging_dir(self, clip_dir: str) -> str:
        return osp.join(clip_dir, self.STAGING_DIR)

    def collect_frames(
        self, engine: IDecodeEngine, video_path: str, clip_dir: str
    ) -> ImageFrameStream:
        staging = self.staging_dir(clip_dir)
        if osp.exists(staging):
            shutil.rmtree(staging)
        os.makedirs(staging)
        return engine.extract_images(video_path, self.fps, self.dims, staging, self.extension)

    def count_frames(self, stream: ImageFrameStream) -> int:
        return stream.frame_count

    def serialize(
        self,
        clip_key: str,
        stream: ImageFrameStream,
        plan: Sequence[ChunkRange],
        clip_dir: str,
    ) -> List[ChunkArtifact]:
        frames = sorted(stream.frame_paths)
        artifacts = []

        for index, chunk in enumerate(plan):
            name = self.layout.chunk_name(index)
            chunk_dir = osp.join(clip_dir, name)
            os.makedirs(chunk_dir, exist_ok=True)

            for number, src in enumerate(frames[chunk.start : chunk.end], start=1):
                os.replace(src, osp.join(chunk_dir, self.layout.frame_name(number, self.extension)))

            if chunk.is_padded:
                self._write_padding(chunk_dir, chunk.frame_count, stream)

            metadata = build_metadata(
                clip_key, name, chunk, self.fps, self.target_frames, stream.dims, stream.original_fps
            )
            metadata_path = osp.join(chunk_dir, "metadata.json")
            write_metadata(metadata, metadata_path)

            artifacts.append(ChunkArtifact(clip_key, index, chunk_dir, metadata_path, metadata))
            logger.debug(f"Wrote {chunk_dir} frames [{chunk.start}, {chunk.end})")

        used = plan[-1].end if plan else 0
        for leftover in frames[used:]:
            os.remove(leftover)
        if len(frames) > used:
            logger.debug(f"Removed {len(frames) - used} unused frames of {clip_key}")

        return artifacts

    def _write_padding(self, chunk_dir: str, present: int, stream: ImageFrameStream) -> None:
        """Fill a short chunk up to target_frames with black frames."""
        blank = np.zeros((stream.dims.height, stream.dims.width, RGB_CHANNELS), dtype=np.uint8)
        for number in range(present + 1, self.target_frames + 1):
            path = osp.join(chunk_dir, self.layout.frame_name(number, self.extension))
            if not cv2.imwrite(path, blank):
                raise OSError(f"Failed to save padding frame to {path}")

    def release(self, clip_dir: str) -> None:
        staging = self.staging_dir(clip_dir)
        if osp.exists(staging):
            shutil.rmtree(staging)
