from typing import Optional

from vidprep_lib.chunking.base import IChunkSerializer
from vidprep_lib.chunking.planner import ChunkPlanner
from vidprep_lib.chunking.serializers import ImageChunkSerializer, NpyChunkSerializer
from vidprep_lib.data.schemas import (
    ChunkPolicy,
    Dimensions,
    LayoutConfig,
    OutputFormat,
)
from vidprep_lib.engines.base import IDecodeEngine
from vidprep_lib.engines.ffmpeg import FFmpegEngine
from vidprep_lib.engines.opencv import OpenCVEngine
from vidprep_lib.errors import ConfigurationError
from vidprep_lib.pipeline.clip_pipeline import ClipPipeline
from vidprep_lib.pipeline.orchestrator import ParallelOrchestrator
from vidprep_lib.sharding.packer import ShardPacker

ENGINES = {
    "ffmpeg": FFmpegEngine,
    "opencv": OpenCVEngine,
}


def get_decode_engine(name: str = "ffmpeg", **kwargs) -> IDecodeEngine:
    """Create a decode engine by name.

    Args:
        name: ``ffmpeg`` (external ffmpeg/ffprobe binaries) or ``opencv``
            (in-process cv2.VideoCapture)
        **kwargs: Engine specific options

    Returns:
        IDecodeEngine: Configured engine

    Raises:
        ConfigurationError: If the engine name is unknown
    """
    try:
        engine_cls = ENGINES[name]
    except KeyError:
        raise ConfigurationError(
            f"unsupported engine {name}. Supported engines are: {', '.join(ENGINES)}"
        )
    return engine_cls(**kwargs)


def get_serializer(
    output_format: OutputFormat,
    fps: int,
    dims: Dimensions,
    target_frames: int,
    layout: Optional[LayoutConfig] = None,
) -> IChunkSerializer:
    """Create the serializer strategy of an output format.

    Example:
        ```python
        serializer = get_serializer(OutputFormat.NPY, 8, Dimensions(width=64, height=64), 16)
        ```
    """
    output_format = get_output_format(output_format)
    if output_format is OutputFormat.NPY:
        return NpyChunkSerializer(fps, dims, target_frames, layout)
    return ImageChunkSerializer(fps, dims, target_frames, output_format.extension, layout)


def get_output_format(value) -> OutputFormat:
    """Validate an output format name.

    Raises:
        ConfigurationError: If the format is not supported
    """
    try:
        return OutputFormat(value)
    except ValueError:
        supported = ", ".join(f.value for f in OutputFormat)
        raise ConfigurationError(
            f"unsupported format {value}. Supported formats are: {supported}"
        )


def get_clip_pipeline(
    engine: IDecodeEngine,
    serializer: IChunkSerializer,
    output_root: str,
    target_frames: int,
    policy: ChunkPolicy = ChunkPolicy.TRUNCATE,
    layout: Optional[LayoutConfig] = None,
) -> ClipPipeline:
    layout = layout or LayoutConfig()
    planner = ChunkPlanner(max_chunks=layout.max_chunks)
    return ClipPipeline(engine, serializer, output_root, target_frames, policy, planner)


def get_orchestrator(
    pipeline: ClipPipeline, workers: int, show_progress: bool = False
) -> ParallelOrchestrator:
    return ParallelOrchestrator(pipeline, workers=workers, show_progress=show_progress)


def get_shard_packer(
    shard_size: int,
    output_format: OutputFormat,
    layout: Optional[LayoutConfig] = None,
    show_progress: bool = False,
) -> ShardPacker:
    return ShardPacker(shard_size, get_output_format(output_format), layout, show_progress)
