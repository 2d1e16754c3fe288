import argparse
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from vidprep_lib.data.schemas import PipelineConfig, ShardConfig
from vidprep_lib.errors import ConfigurationError

PIPELINE_KEYS = ("fps", "size", "output_format", "frames", "chunk_policy", "workers", "engine")
SHARD_KEYS = ("shard_dir", "shard_size")


def load_config(config_path: str) -> Dict[str, Any]:
    """Load and parse a YAML configuration file.

    The file holds optional ``pipeline`` and ``sharding`` sections whose keys
    mirror the command line flags, e.g.::

        pipeline:
          fps: 8
          size: 256x256
          output_format: npy
          frames: 16
        sharding:
          shard_size: 1000

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Dict[str, Any]: Parsed configuration dictionary

    Raises:
        ConfigurationError: If the file cannot be loaded or parsed
    """
    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e
    validate_config(config)
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """Reject unknown sections and keys.

    Raises:
        ConfigurationError: If a section or key is not recognised
    """
    if not isinstance(config, dict):
        raise ConfigurationError("Config root must be a mapping")
    allowed = {"pipeline": PIPELINE_KEYS, "sharding": SHARD_KEYS}
    for section, values in config.items():
        if section not in allowed:
            raise ConfigurationError(f"Unknown config section: {section}")
        for key in values or {}:
            if key not in allowed[section]:
                raise ConfigurationError(f"Unknown {section} config key: {key}")


def build_pipeline_config(**values) -> PipelineConfig:
    """Validate run parameters, dropping unset (None) values.

    Raises:
        ConfigurationError: Describing every invalid parameter
    """
    try:
        return PipelineConfig(**{k: v for k, v in values.items() if v is not None})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid pipeline configuration: {e}") from e


def build_shard_config(**values) -> ShardConfig:
    try:
        return ShardConfig(**{k: v for k, v in values.items() if v is not None})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid sharding configuration: {e}") from e


def merge_args(args: argparse.Namespace, config: Optional[Dict[str, Any]] = None):
    """Combine a config file with command line flags; flags win.

    Returns:
        tuple: (PipelineConfig, ShardConfig)
    """
    config = config or {}
    pipeline_values = dict(config.get("pipeline") or {})
    shard_values = dict(config.get("sharding") or {})

    cli_pipeline = {
        "fps": args.fps,
        "size": args.size,
        "output_format": args.format,
        "frames": args.frames,
        "chunk_policy": args.policy,
        "workers": args.workers,
        "engine": args.engine,
    }
    pipeline_values.update({k: v for k, v in cli_pipeline.items() if v is not None})
    pipeline_values["show_progress"] = not args.no_progress

    cli_shard = {"shard_dir": args.shard_dir, "shard_size": args.shard_size}
    shard_values.update({k: v for k, v in cli_shard.items() if v is not None})

    return build_pipeline_config(**pipeline_values), build_shard_config(**shard_values)
