import logging
import os.path as osp
import tarfile
from typing import List, Sequence

from vidprep_lib.data.schemas import Clip
from vidprep_lib.errors import ConfigurationError

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".avi", ".mov", ".mkv", ".webm")


def is_video_member(name: str, extensions: Sequence[str] = VIDEO_EXTENSIONS) -> bool:
    """Whether an archive member name looks like a clip.

    Dot-prefixed base names (``._clip.mp4`` resource forks, ``.DS_Store``)
    are never clips.
    """
    base = osp.basename(name)
    if not base or base.startswith("."):
        return False
    return osp.splitext(base)[1].lower() in extensions


def extract_clips_from_tar(
    tar_path: str, extensions: Sequence[str] = VIDEO_EXTENSIONS
) -> List[Clip]:
    """Read every video member of a tar archive into memory.

    Args:
        tar_path: Path to the input archive, any compression tarfile supports
        extensions: Accepted video file extensions

    Returns:
        List[Clip]: Clips in archive order, keyed by base name without extension

    Raises:
        ConfigurationError: If two members map to the same clip key
        tarfile.TarError: If the archive is unreadable
    """
    clips = []
    seen = {}
    with tarfile.open(tar_path, "r:*") as tar:
        for member in tar:
            if not member.isfile() or not is_video_member(member.name, extensions):
                logger.debug(f"Skipping archive member {member.name}")
                continue

            key, extension = osp.splitext(osp.basename(member.name))
            if key in seen:
                raise ConfigurationError(
                    f"duplicate clip key {key!r}: {seen[key]} and {member.name}"
                )
            seen[key] = member.name

            f = tar.extractfile(member)
            if f is None:
                continue
            with f:
                clips.append(Clip(key=key, raw_data=f.read(), extension=extension))

    logger.info(f"Extracted {len(clips)} clips from {tar_path}")
    return clips
