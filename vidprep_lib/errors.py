from typing import List, Optional


class VidprepError(Exception):
    """Base class for every error raised by the vidprep pipeline."""


class ConfigurationError(VidprepError, ValueError):
    """Invalid run parameters, detected before any clip is processed."""


class DecodeEngineError(VidprepError, RuntimeError):
    """The decode engine failed to produce frames for a video.

    Attributes:
        video_path: Path of the video handed to the engine
        details: Opaque error text reported by the engine (e.g. ffmpeg stderr)
    """

    def __init__(self, video_path: str, details: str) -> None:
        self.video_path = video_path
        self.details = details
        super().__init__(f"decode engine failed on {video_path}: {details}")


class FrameSizeMismatchError(VidprepError, ValueError):
    """A raw frame buffer is not an exact multiple of the frame size."""


class ChunkIndexOverflowError(VidprepError, ValueError):
    """A clip would produce more chunks than the chunk index can name."""


class ClipProcessingError(VidprepError, RuntimeError):
    """A single clip failed somewhere between decoding and serialization."""

    def __init__(self, clip_key: str, cause: BaseException) -> None:
        self.clip_key = clip_key
        self.cause = cause
        super().__init__(f"error processing {clip_key}: {cause}")


class BatchProcessingError(VidprepError, RuntimeError):
    """One or more clips of a batch failed.

    The message names the failure count and every failed clip, so a rerun can
    target only the failed subset.
    """

    def __init__(self, failures: List[ClipProcessingError], report=None) -> None:
        self.failures = failures
        self.report = report
        lines = "\n".join(f"  - {failure}" for failure in failures)
        super().__init__(f"encountered {len(failures)} errors:\n{lines}")

    @property
    def failed_keys(self) -> List[str]:
        return [failure.clip_key for failure in self.failures]


class ShardPackingError(VidprepError, RuntimeError):
    """Writing a shard failed. Shards written before it are left in place."""

    def __init__(self, shard_index: int, cause: BaseException, path: Optional[str] = None) -> None:
        self.shard_index = shard_index
        self.cause = cause
        self.path = path
        super().__init__(f"error creating shard {shard_index}: {cause}")
