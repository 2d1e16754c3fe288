import logging
from typing import List

from vidprep_lib.data.schemas import ChunkPolicy, ChunkRange, ChunkStatus
from vidprep_lib.errors import ChunkIndexOverflowError, ConfigurationError

logger = logging.getLogger(__name__)


class ChunkPlanner:
    """Split a clip's frame stream into fixed-length chunk ranges.

    Ranges are emitted in increasing start order and a range's position in the
    returned list is its chunk index. Under ``ChunkPolicy.TRUNCATE`` a trailing
    remainder shorter than ``target_frames`` is dropped and the last emitted
    chunk is marked trimmed. Under ``ChunkPolicy.PAD`` the remainder becomes one
    extra short range marked padded; serializers zero-extend it.

    Attributes:
        max_chunks: Largest number of chunks a single clip may produce

    Example:
        ```python
        planner = ChunkPlanner()
        planner.plan(20, 7, ChunkPolicy.TRUNCATE)
        # [ChunkRange(0, 7, EXACT), ChunkRange(7, 14, TRIMMED)]
        ```
    """

    def __init__(self, max_chunks: int = 100_000) -> None:
        self.max_chunks = max_chunks

    def plan(
        self, total_frames: int, target_frames: int, policy: ChunkPolicy
    ) -> List[ChunkRange]:
        """Compute the chunk ranges of a clip.

        Args:
            total_frames: Number of decoded frames in the clip
            target_frames: Frames per chunk
            policy: Remainder handling

        Returns:
            List[ChunkRange]: Ordered ranges, possibly empty

        Raises:
            ConfigurationError: If target_frames is not positive or
                total_frames is negative
            ChunkIndexOverflowError: If the clip needs more than max_chunks chunks
        """
        if target_frames <= 0:
            raise ConfigurationError(f"chunk length must be positive, got {target_frames}")
        if total_frames < 0:
            raise ConfigurationError(f"frame count must not be negative, got {total_frames}")

        complete, remainder = divmod(total_frames, target_frames)
        padded = policy is ChunkPolicy.PAD and remainder > 0
        count = complete + (1 if padded else 0)
        if count > self.max_chunks:
            raise ChunkIndexOverflowError(
                f"{count} chunks exceed the limit of {self.max_chunks} per clip"
            )

        ranges = [
            ChunkRange(start=i * target_frames, end=(i + 1) * target_frames)
            for i in range(complete)
        ]

        if padded:
            start = complete * target_frames
            ranges.append(ChunkRange(start=start, end=total_frames, status=ChunkStatus.PADDED))
        elif remainder and ranges:
            last = ranges[-1]
            ranges[-1] = ChunkRange(start=last.start, end=last.end, status=ChunkStatus.TRIMMED)
            logger.debug(f"Discarding {remainder} trailing frames of {total_frames}")

        return ranges
