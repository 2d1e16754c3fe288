import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vidprep_lib.errors import ConfigurationError

RGB_CHANNELS = 3


class OutputFormat(str, Enum):
    """Output encodings for chunk artifacts."""

    NPY = "npy"
    JPG = "jpg"
    PNG = "png"

    @property
    def is_image(self) -> bool:
        return self is not OutputFormat.NPY

    @property
    def extension(self) -> str:
        return self.value


class ChunkPolicy(str, Enum):
    """How a trailing remainder shorter than the chunk length is handled."""

    TRUNCATE = "truncate"
    PAD = "pad"


class Dimensions(BaseModel):
    """Target frame size in pixels.

    Example:
        ```python
        dims = Dimensions.from_string("320x240")
        dims.frame_size  # 320 * 240 * 3
        ```
    """

    model_config = ConfigDict(frozen=True)

    width: int = Field(..., description="Frame width in pixels", gt=0)
    height: int = Field(..., description="Frame height in pixels", gt=0)

    @classmethod
    def from_string(cls, size: str) -> "Dimensions":
        """Parse a ``"WxH"`` size string.

        Raises:
            ConfigurationError: On a wrong separator count, a non-numeric
                component or a non-positive component
        """
        parts = size.split("x")
        if len(parts) != 2:
            raise ConfigurationError(f"invalid size format: {size}")
        try:
            width = int(parts[0])
        except ValueError:
            raise ConfigurationError(f"invalid width: {parts[0]}")
        try:
            height = int(parts[1])
        except ValueError:
            raise ConfigurationError(f"invalid height: {parts[1]}")
        if width <= 0 or height <= 0:
            raise ConfigurationError(f"size components must be positive: {size}")
        return cls(width=width, height=height)

    @property
    def frame_size(self) -> int:
        """Bytes in one RGB24 frame."""
        return self.width * self.height * RGB_CHANNELS

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class Clip(BaseModel):
    """One encoded video extracted from the input archive.

    Attributes:
        key: Identifier of the clip, unique within a batch. Used as the name of
            the clip's output directory.
        raw_data: Encoded video bytes
        extension: Container suffix of the archive member, used when the bytes
            are written back to disk for decoding
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Clip identifier, unique within a batch", min_length=1)
    raw_data: bytes = Field(..., description="Encoded video bytes", repr=False)
    extension: str = Field(".mp4", description="Container suffix including the dot")

    @field_validator("key")
    @classmethod
    def _key_is_a_plain_name(cls, value: str) -> str:
        if value in (".", "..") or "/" in value or "\\" in value:
            raise ValueError(f"clip key must be a plain file name: {value!r}")
        return value

    @field_validator("extension")
    @classmethod
    def _extension_is_a_suffix(cls, value: str) -> str:
        if not value.startswith(".") or len(value) < 2 or "/" in value or "\\" in value:
            raise ValueError(f"clip extension must look like '.mp4': {value!r}")
        return value.lower()


class ChunkMetadata(BaseModel):
    """JSON sidecar describing one chunk. Field names are a durable contract."""

    key: str = Field(..., description="'<clipKey>/chunk_<chunkIndex>'")
    fps: int = Field(..., description="Frame rate the chunk was sampled at")
    frame_count: int = Field(..., description="Frames in the chunk, padding included")
    size: List[int] = Field(..., description="Frame size as [height, width]")
    is_padded: bool = Field(False, description="Tail was zero-padded to frame_count")
    is_trimmed: bool = Field(False, description="Frames after this chunk were discarded")
    original_fps: int = Field(0, description="Source frame rate, 0 when unknown")


class LayoutConfig(BaseModel):
    """Digit widths of the on-disk naming scheme."""

    chunk_digits: int = Field(5, description="Zero padding of chunk indices", gt=0)
    frame_digits: int = Field(3, description="Zero padding of frame numbers in a chunk", gt=0)
    shard_digits: int = Field(5, description="Zero padding of shard indices", gt=0)

    @property
    def max_chunks(self) -> int:
        return 10 ** self.chunk_digits

    def chunk_name(self, index: int) -> str:
        return f"chunk_{index:0{self.chunk_digits}d}"

    def frame_name(self, number: int, extension: str) -> str:
        return f"frame_{number:0{self.frame_digits}d}.{extension}"

    def shard_name(self, index: int) -> str:
        return f"shard_{index:0{self.shard_digits}d}.tar"


class PipelineConfig(BaseModel):
    """Validated parameters of a processing run."""

    fps: int = Field(8, description="Target frames per second", gt=0)
    size: Dimensions = Field(
        default_factory=lambda: Dimensions(width=256, height=256),
        description="Target frame size, accepts 'WxH' strings",
    )
    output_format: OutputFormat = Field(OutputFormat.JPG, description="Chunk encoding")
    frames: int = Field(16, description="Frames per chunk", gt=0)
    chunk_policy: ChunkPolicy = Field(ChunkPolicy.TRUNCATE, description="Remainder handling")
    workers: int = Field(
        default_factory=lambda: os.cpu_count() or 1,
        description="Parallel workers, values below 1 mean 1",
    )
    engine: str = Field("ffmpeg", description="Decode engine name")
    show_progress: bool = Field(True, description="Show a progress bar")
    layout: LayoutConfig = Field(default_factory=LayoutConfig)

    @field_validator("size", mode="before")
    @classmethod
    def _parse_size(cls, value):
        if isinstance(value, str):
            return Dimensions.from_string(value)
        return value


class ShardConfig(BaseModel):
    """Parameters of the shard packing step."""

    shard_dir: Optional[str] = Field(None, description="Output directory for shards")
    shard_size: int = Field(1000, description="Chunks per shard", gt=0)


@dataclass(frozen=True)
class RawFrameStream:
    """Contiguous RGB24 buffer holding every decoded frame of a clip."""

    buffer: bytes
    dims: Dimensions
    original_fps: Optional[float] = None


@dataclass(frozen=True)
class ImageFrameStream:
    """Per-frame image files, sorted so that name order equals temporal order."""

    frame_paths: Sequence[str]
    dims: Dimensions
    original_fps: Optional[float] = None

    @property
    def frame_count(self) -> int:
        return len(self.frame_paths)


FrameStream = Union[RawFrameStream, ImageFrameStream]


class ChunkStatus(str, Enum):
    EXACT = "exact"
    PADDED = "padded"
    TRIMMED = "trimmed"


@dataclass(frozen=True)
class ChunkRange:
    """Half-open frame range ``[start, end)`` of one chunk."""

    start: int
    end: int
    status: ChunkStatus = ChunkStatus.EXACT

    @property
    def frame_count(self) -> int:
        return self.end - self.start

    @property
    def is_padded(self) -> bool:
        return self.status is ChunkStatus.PADDED

    @property
    def is_trimmed(self) -> bool:
        return self.status is ChunkStatus.TRIMMED


@dataclass(frozen=True)
class ChunkArtifact:
    """A persisted chunk: an .npy file or a frame directory, plus its metadata."""

    clip_key: str
    chunk_index: int
    path: str
    metadata_path: str
    metadata: ChunkMetadata


@dataclass
class BatchReport:
    """Outcome of a batch run."""

    chunks_per_clip: Dict[str, int] = field(default_factory=dict)
    failed_keys: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def total_chunks(self) -> int:
        return sum(self.chunks_per_clip.values())

    @property
    def empty_clips(self) -> List[str]:
        return [key for key, count in self.chunks_per_clip.items() if count == 0]
