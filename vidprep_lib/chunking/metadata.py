import json
import logging

from vidprep_lib.data.schemas import ChunkMetadata, ChunkRange, Dimensions

logger = logging.getLogger(__name__)


def build_metadata(
    clip_key: str,
    chunk_name: str,
    chunk: ChunkRange,
    fps: int,
    frame_count: int,
    dims: Dimensions,
    original_fps=None,
) -> ChunkMetadata:
    """Describe one chunk.

    Args:
        clip_key: Key of the clip the chunk belongs to
        chunk_name: Directory/file stem of the chunk, e.g. ``chunk_00003``
        chunk: Planned frame range
        fps: Sampling rate the frames were decoded at
        frame_count: Frames stored in the chunk, padding included
        dims: Frame dimensions
        original_fps: Source frame rate when the engine reported one

    Returns:
        ChunkMetadata: Metadata record ready to be written
    """
    return ChunkMetadata(
        key=f"{clip_key}/{chunk_name}",
        fps=fps,
        frame_count=frame_count,
        size=[dims.height, dims.width],
        is_padded=chunk.is_padded,
        is_trimmed=chunk.is_trimmed,
        original_fps=int(round(original_fps)) if original_fps else 0,
    )


def write_metadata(metadata: ChunkMetadata, path: str) -> None:
    """Write a metadata record as indented JSON."""
    with open(path, "w") as f:
        json.dump(metadata.model_dump(), f, indent=2)
    logger.debug(f"Wrote metadata {path}")


def read_metadata(path: str) -> ChunkMetadata:
    with open(path, "r") as f:
        return ChunkMetadata(**json.load(f))
