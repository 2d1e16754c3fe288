from typing import Protocol

from vidprep_lib.data.schemas import Dimensions, ImageFrameStream, RawFrameStream


class IDecodeEngine(Protocol):
    """Protocol interface for video decode engines.

    A decode engine turns one encoded video file into frames resampled to a
    target frame rate and resized to target dimensions. Engines report any
    failure by raising DecodeEngineError and never retry.
    """

    def extract_raw(self, video_path: str, fps: int, dims: Dimensions) -> RawFrameStream:
        """Decode a video into one contiguous RGB24 buffer.

        Args:
            video_path: Path to the encoded video
            fps: Target frame rate
            dims: Target frame size

        Returns:
            RawFrameStream: Buffer of ``n * dims.frame_size`` bytes

        Raises:
            DecodeEngineError: If decoding fails
        """
        ...

    def extract_images(
        self,
        video_path: str,
        fps: int,
        dims: Dimensions,
        target_dir: str,
        extension: str,
    ) -> ImageFrameStream:
        """Decode a video into numbered image files inside target_dir.

        Args:
            video_path: Path to the encoded video
            fps: Target frame rate
            dims: Target frame size
            target_dir: Existing directory that receives the frames
            extension: Image format extension, e.g. ``jpg``

        Returns:
            ImageFrameStream: Frame paths sorted in temporal order

        Raises:
            DecodeEngineError: If decoding fails
        """
        ...
