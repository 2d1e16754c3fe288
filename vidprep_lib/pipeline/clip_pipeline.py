import logging
import os
import os.path as osp
import shutil
import tempfile
from typing import List, Optional

from vidprep_lib.chunking.base import IChunkSerializer
from vidprep_lib.chunking.planner import ChunkPlanner
from vidprep_lib.data.schemas import ChunkArtifact, ChunkPolicy, Clip
from vidprep_lib.engines.base import IDecodeEngine
from vidprep_lib.errors import ClipProcessingError

logger = logging.getLogger(__name__)


class ClipPipeline:
    """End-to-end processing of one clip.

    The per-clip state machine is:
    Materialise temp input → Decode → Plan chunks → Serialize → Cleanup

    The temporary input file and any intermediate frames are removed on every
    exit path. Failures are reported once, wrapped in ClipProcessingError, and
    never retried.

    Attributes:
        engine: Decode engine producing frames
        serializer: Output encoding of the run
        planner: Chunk boundary policy
        output_root: Directory receiving one subdirectory per clip
        target_frames: Frames per chunk
        policy: Remainder handling of the planner
    """

    def __init__(
        self,
        engine: IDecodeEngine,
        serializer: IChunkSerializer,
        output_root: str,
        target_frames: int,
        policy: ChunkPolicy = ChunkPolicy.TRUNCATE,
        planner: Optional[ChunkPlanner] = None,
        temp_root: Optional[str] = None,
    ) -> None:
        self.engine = engine
        self.serializer = serializer
        self.output_root = output_root
        self.target_frames = target_frames
        self.policy = policy
        self.planner = planner or ChunkPlanner()
        self.temp_root = temp_root

    def materialize(self, clip: Clip, temp_dir: str) -> str:
        """Write the clip bytes where the decode engine can read them."""
        video_path = osp.join(temp_dir, f"{clip.key}{clip.extension}")
        with open(video_path, "wb") as f:
            f.write(clip.raw_data)
        return video_path

    def process(self, clip: Clip) -> List[ChunkArtifact]:
        """Decode, chunk and serialize one clip.

        Args:
            clip: Clip to process

        Returns:
            List[ChunkArtifact]: Written chunks, empty when the clip is shorter
                than one chunk under the truncate policy

        Raises:
            ClipProcessingError: Wrapping whatever made the clip fail
        """
        clip_dir = osp.join(self.output_root, clip.key)
        temp_dir = None
        try:
            temp_dir = tempfile.mkdtemp(prefix="vidprep_", dir=self.temp_root)
            os.makedirs(clip_dir, exist_ok=True)
            video_path = self.materialize(clip, temp_dir)
            try:
                stream = self.serializer.collect_frames(self.engine, video_path, clip_dir)
                total_frames = self.serializer.count_frames(stream)
                plan = self.planner.plan(total_frames, self.target_frames, self.policy)
                artifacts = self.serializer.serialize(clip.key, stream, plan, clip_dir)
            finally:
                self.serializer.release(clip_dir)
        except Exception as e:
            logger.error(f"Clip {clip.key} failed: {e}")
            raise ClipProcessingError(clip.key, e) from e
        finally:
            if temp_dir is not None:
                shutil.rmtree(temp_dir, ignore_errors=True)

        if not artifacts:
            logger.warning(
                f"Clip {clip.key}: 0 chunks produced ({total_frames} frames < {self.target_frames})"
            )
        else:
            logger.info(f"Clip {clip.key}: {len(artifacts)} chunks from {total_frames} frames")
        return artifacts
