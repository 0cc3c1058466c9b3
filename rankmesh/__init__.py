"""
rankmesh - Rank Group Construction for Multi-Dimensional Parallelism

Computes the rank groups of a training mesh laid out along:
- Tensor Parallelism (TP)
- Pipeline Parallelism (PP)
- Data Parallelism (DP)
- Expert Parallelism (EP), a sub-division of DP
- Context Parallelism (CP)

Version: 0.1.0
"""

__version__ = "0.1.0"

from .core import (
    RankTopology,
    RankGroupManager,
    RankMesh,
    Dimension,
    init_rank_groups,
    load_topology,
    RankTopologyError,
    ConfigError,
    QueryError,
)

__all__ = [
    'RankTopology',
    'RankGroupManager',
    'RankMesh',
    'Dimension',
    'init_rank_groups',
    'load_topology',
    'RankTopologyError',
    'ConfigError',
    'QueryError',
]
