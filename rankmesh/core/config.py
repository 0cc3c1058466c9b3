"""
Configuration Management for rankmesh

This module provides utilities for loading topology configurations from YAML
files, so a mesh layout can be kept alongside a training run's settings
instead of being spelled out on the command line.

===============================================================================
CONCEPTUAL EXAMPLE:
===============================================================================

.. code-block:: python

    # In topology.yaml
    parallelism:
      tp: 2
      ep: 1
      dp: 2
      pp: 2
      cp: 1
    order: tp-cp-ep-dp-pp
    rank_offset: 0

    # In the calling script
    from rankmesh.core.config import load_topology

    topo = load_topology('path/to/topology.yaml')
    tp_groups = topo.groups_for('tp')

===============================================================================
"""

from dataclasses import dataclass, fields
from typing import Any, Dict
import os

import yaml

from .topology import RankTopology


@dataclass
class TopologyConfig:
    """
    A dataclass for storing the inputs of a `RankTopology`.

    Values are checked when the topology is built, not here.
    """
    tp: int = 1
    ep: int = 1
    dp: int = 1
    pp: int = 1
    cp: int = 1
    order: str = 'tp-cp-ep-dp-pp'
    rank_offset: int = 0

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "TopologyConfig":
        """
        Builds a config from a mapping.

        Sizes may sit at the top level or under a `parallelism` mapping.

        Raises:
            ValueError: If the mapping holds keys that are not config fields.
        """
        if not isinstance(config, dict):
            raise ValueError(f"Topology config must be a mapping, got {type(config).__name__}")
        config = dict(config)
        parallelism = config.pop('parallelism', None) or {}
        if not isinstance(parallelism, dict):
            raise ValueError(f"'parallelism' must be a mapping, got {type(parallelism).__name__}")
        merged = {**config, **parallelism}

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(merged) - known)
        if unknown:
            raise ValueError(f"Unknown topology config key(s): {', '.join(unknown)}")
        return cls(**merged)

    def build(self) -> RankTopology:
        return RankTopology(
            tp=self.tp, ep=self.ep, dp=self.dp, pp=self.pp, cp=self.cp,
            order=self.order, rank_offset=self.rank_offset,
        )


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Loads a configuration from a specified YAML file path.

    Args:
        config_path (str): The path to the YAML configuration file.

    Returns:
        Dict[str, Any]: A dictionary containing the loaded configuration settings.

    Raises:
        FileNotFoundError: If the `config_path` does not exist.
        RuntimeError: If there is an error parsing the YAML file.
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found at: {config_path}")

    with open(config_path, 'r') as f:
        try:
            # Use safe_load to avoid arbitrary code execution
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise RuntimeError(f"Error parsing YAML file: {e}")

    return config or {}


def load_topology(config_path: str) -> RankTopology:
    """Loads a YAML file and builds the `RankTopology` it describes."""
    return TopologyConfig.from_dict(load_config(config_path)).build()
