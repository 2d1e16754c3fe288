import vidprep_lib.providers as prov
from vidprep_lib.data.schemas import PipelineConfig, ShardConfig
from vidprep_lib.engines.base import IDecodeEngine
from vidprep_lib.pipeline.orchestrator import ParallelOrchestrator
from vidprep_lib.sharding.packer import ShardPacker


def create_orchestrator(
    config: PipelineConfig, output_dir: str, engine: IDecodeEngine = None
) -> ParallelOrchestrator:
    """Wire engine, serializer, pipeline and worker pool for one run.

    Args:
        config: Validated run parameters
        output_dir: Directory receiving one subdirectory per clip
        engine: Decode engine overriding ``config.engine``

    Returns:
        ParallelOrchestrator: Ready to run over a list of clips
    """
    engine = engine or prov.get_decode_engine(config.engine)
    serializer = prov.get_serializer(
        config.output_format, config.fps, config.size, config.frames, config.layout
    )
    pipeline = prov.get_clip_pipeline(
        engine, serializer, output_dir, config.frames, config.chunk_policy, config.layout
    )
    return prov.get_orchestrator(pipeline, config.workers, config.show_progress)


def create_shard_packer(config: ShardConfig, pipeline_config: PipelineConfig) -> ShardPacker:
    return prov.get_shard_packer(
        config.shard_size,
        pipeline_config.output_format,
        pipeline_config.layout,
        pipeline_config.show_progress,
    )
