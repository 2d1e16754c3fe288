from typing import List, Protocol, Sequence

from vidprep_lib.data.schemas import ChunkArtifact, ChunkRange, FrameStream
from vidprep_lib.engines.base import IDecodeEngine


class IChunkSerializer(Protocol):
    """Protocol interface for chunk output encodings.

    One serializer is selected per run. It decides which kind of frame stream
    the decode engine must produce and how planned chunks are persisted, so the
    two output encodings never share format-conditional code.

    The typical workflow for one clip is:
    1. collect_frames() asks the engine for a frame stream
    2. count_frames() reports how many frames the stream holds
    3. serialize() writes one artifact per planned chunk
    4. release() removes intermediate files, on every exit path
    """

    def collect_frames(
        self, engine: IDecodeEngine, video_path: str, clip_dir: str
    ) -> FrameStream:
        """Decode a video into the frame stream this encoding consumes.

        Args:
            engine: Decode engine to delegate to
            video_path: Path of the materialised clip
            clip_dir: Output directory of the clip

        Returns:
            FrameStream: Decoded frames

        Raises:
            DecodeEngineError: If the engine fails
        """
        ...

    def count_frames(self, stream: FrameStream) -> int:
        """Number of frames in the stream.

        Raises:
            FrameSizeMismatchError: If the stream is not a whole number of frames
        """
        ...

    def serialize(
        self,
        clip_key: str,
        stream: FrameStream,
        plan: Sequence[ChunkRange],
        clip_dir: str,
    ) -> List[ChunkArtifact]:
        """Persist every planned chunk under clip_dir.

        Args:
            clip_key: Key of the clip being written
            stream: Frames returned by collect_frames()
            plan: Ordered chunk ranges, position equals chunk index
            clip_dir: Output directory of the clip

        Returns:
            List[ChunkArtifact]: One artifact per range, in plan order

        Raises:
            OSError: If any directory, rename or write fails
        """
        ...

    def release(self, clip_dir: str) -> None:
        """Remove intermediate files left by collect_frames()."""
        ...
