"""
Core utilities for rankmesh.

This module contains the fundamental abstractions for:
- Mixed-radix mesh indexing
- Rank topology construction and validation
- Masked orthogonal rank group generation
- Tensor views of the rank mesh
"""

from .errors import (
    RankTopologyError,
    ConfigError,
    QueryError,
    InvalidSizeError,
    OrderConstraintError,
    MissingDimensionError,
    DimensionDivisibilityError,
    UnknownDimensionError,
)
from .indexing import (
    prefix_stride,
    decompose,
    inner_product,
    generate_masked_orthogonal_rank_groups,
    iter_masked_orthogonal_rank_groups,
)
from .topology import Dimension, ParallelSizes, RankTopology, parse_order
from .mesh import RankMesh
from .process_groups import ParallelismInfo, RankGroupManager, init_rank_groups
from .config import TopologyConfig, load_config, load_topology

__all__ = [
    'RankTopologyError',
    'ConfigError',
    'QueryError',
    'InvalidSizeError',
    'OrderConstraintError',
    'MissingDimensionError',
    'DimensionDivisibilityError',
    'UnknownDimensionError',
    'prefix_stride',
    'decompose',
    'inner_product',
    'generate_masked_orthogonal_rank_groups',
    'iter_masked_orthogonal_rank_groups',
    'Dimension',
    'ParallelSizes',
    'RankTopology',
    'parse_order',
    'RankMesh',
    'ParallelismInfo',
    'RankGroupManager',
    'init_rank_groups',
    'TopologyConfig',
    'load_config',
    'load_topology',
]
