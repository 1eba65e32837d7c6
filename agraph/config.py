"""
Configuration for AGraph.

Settings live in a dataclass that can be loaded from a YAML file:

    use_simplification: true
    dtype: float32
    log_level: DEBUG
"""
import logging
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import torch
import yaml

from .agraph import AGraph, AGraphState

logger = logging.getLogger(__name__)

DTYPES = {
    "float32": torch.float32,
    "float64": torch.float64,
}


@dataclass
class AGraphConfig:
    """Configuration for building AGraphs."""
    use_simplification: bool = False
    dtype: str = "float64"
    log_level: str = "WARNING"

    def __post_init__(self):
        if self.dtype not in DTYPES:
            raise ValueError(f"Unsupported dtype '{self.dtype}', expected one of {sorted(DTYPES)}")

    @property
    def torch_dtype(self):
        return DTYPES[self.dtype]

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "AGraphConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(config_dict) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**config_dict)


def load_config(config_file: Union[str, Path]) -> AGraphConfig:
    """Load an AGraphConfig from a YAML file; an empty file gives the defaults."""
    with open(config_file, 'r') as f:
        config_dict = yaml.safe_load(f) or {}
    if not isinstance(config_dict, dict):
        raise ValueError(f"Configuration file {config_file} must contain a mapping")
    config = AGraphConfig.from_dict(config_dict)
    logger.info(f"Loaded configuration from {config_file}")
    return config


def setup_logging(level: str = "INFO"):
    """Setup basic logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def create_agraph(config: Optional[AGraphConfig] = None) -> AGraph:
    """Factory function to create an empty AGraph from a configuration."""
    config = config or AGraphConfig()
    return AGraph(use_simplification=config.use_simplification, dtype=config.torch_dtype)


def restore_agraph(state: AGraphState, config: Optional[AGraphConfig] = None) -> AGraph:
    """Rebuild a snapshot taken from a graph made by create_agraph with the same config."""
    config = config or AGraphConfig()
    return AGraph.from_state(state, dtype=config.torch_dtype)
