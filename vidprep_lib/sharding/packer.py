import logging
import os
import os.path as osp
import tarfile
from typing import List, Optional, Sequence, Tuple

import tqdm

from vidprep_lib.data.schemas import LayoutConfig, OutputFormat
from vidprep_lib.errors import ConfigurationError, ShardPackingError

logger = logging.getLogger(__name__)


class ShardPacker:
    """Regroup chunk artifacts into fixed-capacity tar shards.

    A sample is one ``.npy`` file for the npy format, or one chunk directory
    holding a ``metadata.json`` for image formats. Samples are discovered by a
    depth-first walk and assigned to shards contiguously in discovery order,
    so membership follows the filesystem's traversal order.

    Attributes:
        shard_size: Maximum samples per shard
        output_format: Format the artifacts were written in
        layout: Naming scheme of shard files
        show_progress: Display a tqdm progress bar
    """

    def __init__(
        self,
        shard_size: int,
        output_format: OutputFormat,
        layout: Optional[LayoutConfig] = None,
        show_progress: bool = False,
    ) -> None:
        if shard_size <= 0:
            raise ConfigurationError(f"shard size must be positive, got {shard_size}")
        self.shard_size = shard_size
        self.output_format = OutputFormat(output_format)
        self.layout = layout or LayoutConfig()
        self.show_progress = show_progress

    def discover(self, input_root: str) -> List[str]:
        """List sample paths under input_root in traversal order."""
        samples = []
        for dirpath, dirnames, filenames in os.walk(input_root):
            if self.output_format is OutputFormat.NPY:
                samples.extend(
                    osp.join(dirpath, name) for name in filenames if name.endswith(".npy")
                )
            elif "metadata.json" in filenames and dirpath != input_root:
                samples.append(dirpath)
                # A chunk directory is a leaf sample.
                dirnames[:] = []
        return samples

    def pack(self, input_root: str, output_root: str) -> int:
        """Write shards of the artifacts found under input_root.

        Args:
            input_root: Directory tree of chunk artifacts
            output_root: Directory receiving ``shard_NNNNN.tar`` files

        Returns:
            int: Number of shards written

        Raises:
            ShardPackingError: On the first shard that cannot be written. Shards
                written before it are kept.
        """
        samples = self.discover(input_root)
        os.makedirs(output_root, exist_ok=True)
        num_shards = (len(samples) + self.shard_size - 1) // self.shard_size
        logger.info(
            f"Packing {len(samples)} samples into {num_shards} shards of up to {self.shard_size}"
        )

        for index in tqdm.tqdm(range(num_shards), unit="shard", disable=not self.show_progress):
            members = samples[index * self.shard_size : (index + 1) * self.shard_size]
            shard_path = osp.join(output_root, self.layout.shard_name(index))
            try:
                self.write_shard(shard_path, members)
            except (OSError, tarfile.TarError) as e:
                logger.error(f"Failed to write shard {index}: {e}")
                raise ShardPackingError(index, e, shard_path) from e
            logger.debug(f"Wrote {shard_path} with {len(members)} samples")

        return num_shards

    def sample_files(self, sample: str) -> List[Tuple[str, str]]:
        """(path, arcname) pairs of the regular files making up one sample.

        An npy sample is stored under its base name. A chunk directory
        contributes its files as ``chunk_NNNNN/<name>`` without a directory
        member of its own.
        """
        name = osp.basename(sample)
        if not osp.isdir(sample):
            return [(sample, name)]
        return [
            (osp.join(sample, entry), f"{name}/{entry}")
            for entry in sorted(os.listdir(sample))
            if osp.isfile(osp.join(sample, entry))
        ]

    def write_shard(self, shard_path: str, samples: Sequence[str]) -> None:
        """Write one shard atomically: a failed shard leaves no file behind."""
        tmp_path = shard_path + ".tmp"
        try:
            with tarfile.open(tmp_path, "w") as tar:
                for sample in samples:
                    for path, arcname in self.sample_files(sample):
                        tar.add(path, arcname=arcname, recursive=False)
            os.replace(tmp_path, shard_path)
        except Exception:
            if osp.exists(tmp_path):
                os.remove(tmp_path)
            raise
