import logging
import os
from typing import Sequence

from src.config import build_pipeline_config, build_shard_config
from src.factory import create_orchestrator, create_shard_packer
from vidprep_lib.data.schemas import BatchReport, ChunkPolicy, Clip
from vidprep_lib.engines.base import IDecodeEngine

logger = logging.getLogger(__name__)


def process_all(
    clips: Sequence[Clip],
    output_dir: str,
    fps: int,
    size: str,
    output_format: str,
    target_frames: int,
    workers: int,
    policy: ChunkPolicy = ChunkPolicy.TRUNCATE,
    engine: IDecodeEngine = None,
    show_progress: bool = False,
) -> BatchReport:
    """Turn a batch of clips into chunk artifacts under output_dir.

    Every parameter is validated before the first clip is touched.

    Args:
        clips: Clips to process, keys unique within the batch
        output_dir: Root of the per-clip output directories
        fps: Target frames per second
        size: Target frame size as ``"WxH"``
        output_format: ``npy``, ``jpg`` or ``png``
        target_frames: Frames per chunk
        workers: Parallel workers, values below 1 mean 1
        policy: Remainder handling
        engine: Decode engine, defaults to ffmpeg
        show_progress: Display a progress bar

    Returns:
        BatchReport: Chunk counts per clip

    Raises:
        ConfigurationError: If any parameter is invalid
        BatchProcessingError: If any clip failed; siblings are still processed
    """
    config = build_pipeline_config(
        fps=fps,
        size=size,
        output_format=output_format,
        frames=target_frames,
        chunk_policy=policy,
        workers=workers,
        show_progress=show_progress,
    )
    os.makedirs(output_dir, exist_ok=True)
    orchestrator = create_orchestrator(config, output_dir, engine)
    return orchestrator.run(clips)


def pack_shards(output_dir: str, shard_dir: str, shard_size: int, output_format: str) -> int:
    """Pack the artifacts under output_dir into ``shard_dir/shard_NNNNN.tar``.

    Returns:
        int: Number of shards written

    Raises:
        ConfigurationError: If shard_size or output_format is invalid
        ShardPackingError: On the first shard that cannot be written
    """
    pipeline_config = build_pipeline_config(output_format=output_format, show_progress=False)
    shard_config = build_shard_config(shard_dir=shard_dir, shard_size=shard_size)
    packer = create_shard_packer(shard_config, pipeline_config)
    return packer.pack(output_dir, shard_dir)
