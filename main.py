import argparse
import logging
import os
import sys
import tarfile

from src.config import load_config, merge_args
from src.factory import create_orchestrator, create_shard_packer
from vidprep_lib.archive.tar_reader import extract_clips_from_tar
from vidprep_lib.errors import BatchProcessingError, VidprepError


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the clip chunking tool.

    Returns:
        argparse.Namespace: Parsed command line arguments containing:
            - tar: Input archive of video clips
            - out: Directory receiving chunk artifacts
            - fps, size, format, frames, policy: Chunking parameters
            - shard_dir, shard_size: Optional shard packing step
    """
    parser = argparse.ArgumentParser("vidprep - video clips to training chunks")
    parser.add_argument("--tar", type=str, default="", help="Path to input .tar archive")
    parser.add_argument(
        "--out", type=str, default="output", help="Directory to save extracted frames"
    )
    parser.add_argument("--fps", type=int, default=None, help="Target frames per second (8)")
    parser.add_argument(
        "--size", type=str, default=None, help="Resize videos to this resolution (256x256)"
    )
    parser.add_argument(
        "--format", type=str, default=None, help="Output format: jpg, png or npy (jpg)"
    )
    parser.add_argument(
        "--frames", type=int, default=None, help="Number of frames per chunk (16)"
    )
    parser.add_argument(
        "--policy",
        type=str,
        default=None,
        choices=["truncate", "pad"],
        help="Drop a short trailing remainder or zero-pad it into a last chunk (truncate)",
    )
    parser.add_argument(
        "--workers", type=int, default=None, help="Number of parallel workers (CPU count)"
    )
    parser.add_argument(
        "--engine", type=str, default=None, help="Decode engine: ffmpeg or opencv (ffmpeg)"
    )
    parser.add_argument(
        "--shard_size", type=int, default=None, help="Number of chunks per shard (1000)"
    )
    parser.add_argument(
        "--shard_dir", type=str, default=None, help="Output directory for WebDataset shards"
    )
    parser.add_argument("--config", type=str, default=None, help="Optional YAML config file")
    parser.add_argument(
        "--log_level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    parser.add_argument("--no_progress", action="store_true", help="Hide progress bars")
    return parser.parse_args()


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application with timestamp format."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def main(args: argparse.Namespace) -> int:
    """Application entry point: chunk the clips of an archive, then shard them.

    Args:
        args: Parsed command line arguments

    Returns:
        int: Process exit code
    """
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    try:
        config = load_config(args.config) if args.config else None
        pipeline_config, shard_config = merge_args(args, config)

        if not args.tar:
            logger.info("Skipping clip processing as no input file specified")
        elif not os.path.exists(args.tar):
            logger.info(f"Skipping clip processing as input file {args.tar} does not exist")
        else:
            clips = extract_clips_from_tar(args.tar)
            os.makedirs(args.out, exist_ok=True)
            orchestrator = create_orchestrator(pipeline_config, args.out)
            report = orchestrator.run(clips)
            logger.info(
                f"Processed clips successfully in {report.elapsed_seconds:.2f}s "
                f"({report.total_chunks} chunks, {len(report.empty_clips)} clips too short)"
            )

        if shard_config.shard_dir:
            packer = create_shard_packer(shard_config, pipeline_config)
            num_shards = packer.pack(args.out, shard_config.shard_dir)
            logger.info(f"Created {num_shards} WebDataset shards in {shard_config.shard_dir}")

    except BatchProcessingError as e:
        logger.error(f"Error processing clips: {e}")
        logger.error(f"Failed clips: {' '.join(e.failed_keys)}")
        return 1
    except VidprepError as e:
        logger.error(str(e))
        return 1
    except (OSError, tarfile.TarError) as e:
        logger.error(f"I/O error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.exception("Interrupted by user")
        return 130

    return 0


def run() -> None:
    sys.exit(main(parse_args()))


if __name__ == "__main__":
    run()
