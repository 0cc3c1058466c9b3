"""
Rank Group Management

This module provides the user-facing entry point for inspecting the rank
groups of a topology. It defines the `RankGroupManager` class, which builds
the `RankTopology`, keeps the computed groups per query, and derives the
views a display layer needs: which group a rank belongs to, the colour-index
grid for a whole query, and the size/stride summary of every dimension.

===============================================================================
CONCEPTUAL EXAMPLE:
===============================================================================

.. code-block:: python

    from rankmesh.core.process_groups import init_rank_groups

    manager = init_rank_groups(tp=2, ep=1, dp=2, pp=2, cp=1, order='tp-cp-ep-dp-pp')

    manager.get_group('pp', rank=5)     # [1, 5]
    manager.group_assignment('tp')      # [0, 0, 1, 1, 2, 2, 3, 3]
    manager.parallelism_info()['pp']    # ParallelismInfo(size=2, stride=4, group_stride=1)

===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .errors import QueryError
from .indexing import decompose, inner_product, prefix_stride
from .mesh import RankMesh
from .topology import Dimension, DimensionLike, RankTopology
from ..utils.logging import log_rank_0

logger = logging.getLogger(__name__)

# Dimensions summarized by `parallelism_info`, in display order.
INFO_DIMENSIONS = ('tp', 'cp', 'ep', 'dp', 'pp')


@dataclass(frozen=True)
class ParallelismInfo:
    """
    Summary of the groups along one dimension.

    Attributes:
        size (int): Number of ranks per group.
        stride (int): Distance between the first two members of the first
            group; 1 when groups have a single member.
        group_stride (int): Distance between the first members of the first
            two groups; 0 when there is only one group.
    """
    size: int
    stride: int
    group_stride: int

    @classmethod
    def from_groups(cls, groups: List[List[int]]) -> "ParallelismInfo":
        if not groups:
            return cls(size=0, stride=0, group_stride=0)
        first = groups[0]
        stride = first[1] - first[0] if len(first) > 1 else 1
        group_stride = groups[1][0] - first[0] if len(groups) > 1 else 0
        return cls(size=len(first), stride=stride, group_stride=group_stride)


class RankGroupManager:
    """
    Manages the computation and retrieval of rank groups for a topology.

    This class acts as a high-level wrapper around `RankTopology`. Groups are
    computed on first request and kept for later lookups.
    """
    def __init__(self, topology: RankTopology):
        """
        Initializes the RankGroupManager.

        Args:
            topology (RankTopology): The validated topology to query.
        """
        self.topology = topology
        self.groups: Dict[Tuple[Tuple[str, ...], bool], Tuple[Tuple[int, ...], ...]] = {}

    def _key(self, token: DimensionLike, independent_expert: bool) -> Tuple[Tuple[str, ...], bool]:
        mask = self.topology.get_mask(token, independent_expert)
        axes = self.topology.axes(independent_expert)
        return tuple(dim.value for dim, m in zip(axes, mask) if m), independent_expert

    def _cached_groups(self, token: DimensionLike, independent_expert: bool) -> Tuple[Tuple[int, ...], ...]:
        key = self._key(token, independent_expert)
        if key not in self.groups:
            self.groups[key] = tuple(
                tuple(group) for group in self.topology.iter_groups(list(key[0]), independent_expert)
            )
        return self.groups[key]

    def get_groups(self, token: DimensionLike, independent_expert: bool = False) -> List[List[int]]:
        """
        Get all rank groups for a query.

        Args:
            token: Dimension name(s), e.g. 'tp' or 'dp-ep'.
            independent_expert (bool): Treat ep as its own axis.

        Returns:
            List[List[int]]: A fresh copy of the groups, partitioning every
                rank of the topology.
        """
        return [list(group) for group in self._cached_groups(token, independent_expert)]

    def get_group(self, token: DimensionLike, rank: int, independent_expert: bool = False) -> List[int]:
        """
        Get the ranks of the group along `token` that contains `rank`.

        Raises:
            QueryError: If `rank` is not part of the topology.
        """
        index = self.group_index(token, rank, independent_expert)
        return list(self._cached_groups(token, independent_expert)[index])

    def group_index(self, token: DimensionLike, rank: int, independent_expert: bool = False) -> int:
        """
        Returns the index of the group along `token` that contains `rank`.

        Groups are numbered row-major over the unmasked axes, so the index
        follows from the rank's coordinates on those axes alone.

        Raises:
            QueryError: If `rank` is not part of the topology.
        """
        mask = self.topology.get_mask(token, independent_expert)
        local = rank - self.topology.rank_offset
        if not 0 <= local < self.topology.world_size:
            raise QueryError(f"Rank ({rank}) is outside of the topology.")
        shape = self.topology.shape(independent_expert)
        coords = decompose(local, shape)
        unmasked_shape = [s for s, m in zip(shape, mask) if not m]
        unmasked_coords = [c for c, m in zip(coords, mask) if not m]
        return inner_product(unmasked_coords, prefix_stride(unmasked_shape))

    def group_assignment(self, token: DimensionLike, independent_expert: bool = False) -> List[int]:
        """
        Maps every rank (relative to the rank offset) to its group index.

        Returns:
            List[int]: Entry `i` is the index of the group holding rank
                `rank_offset + i`.
        """
        offset = self.topology.rank_offset
        assignment = [0] * self.topology.world_size
        for index, group in enumerate(self._cached_groups(token, independent_expert)):
            for rank in group:
                assignment[rank - offset] = index
        return assignment

    def get_all_groups(self) -> Dict[str, List[List[int]]]:
        """
        Returns the groups of every single dimension.

        ep is only an axis when treated independently, so its groups are
        queried with `independent_expert=True`.
        """
        return {
            dim.value: self.get_groups(dim, independent_expert=dim is Dimension.EP)
            for dim in Dimension
        }

    def parallelism_info(self, dimensions=INFO_DIMENSIONS) -> Dict[str, ParallelismInfo]:
        """Computes the size/stride summary for each dimension."""
        return {
            name: ParallelismInfo.from_groups(
                self.get_groups(name, independent_expert=name == Dimension.EP.value)
            )
            for name in dimensions
        }

    def get_mesh(self, independent_expert: bool = False) -> RankMesh:
        return RankMesh(self.topology, independent_expert)

    def get_coordinates(self, rank: int, independent_expert: bool = False) -> Dict[str, int]:
        return self.topology.coordinates(rank, independent_expert)

    def print_mesh_info(self, independent_expert: bool = False):
        """
        Logs the topology configuration and the coordinates of every rank.
        Only logs from global rank 0.
        """
        topo = self.topology
        lines = [
            "=" * 60,
            "Rank Topology Configuration",
            "=" * 60,
            f"Order:           {topo.order_with_ep if independent_expert else topo.order_without_ep}",
            f"Sizes:           {topo.shape(independent_expert)}",
            f"World size:      {topo.world_size}",
            "-" * 60,
            "Global Rank | Coordinates",
            "-" * 60,
        ]
        for local in range(topo.world_size):
            rank = topo.rank_offset + local
            coords = topo.coordinates(rank, independent_expert)
            coord_str = ", ".join(f"{name}={val}" for name, val in coords.items())
            lines.append(f"Rank {rank:3d}    | {coord_str}")
        lines.append("=" * 60)
        log_rank_0("\n".join(lines))


def init_rank_groups(
    tp: int = 1,
    ep: int = 1,
    dp: int = 1,
    pp: int = 1,
    cp: int = 1,
    order: str = 'tp-cp-ep-dp-pp',
    rank_offset: int = 0,
    topology: Optional[RankTopology] = None,
) -> RankGroupManager:
    """
    A factory function to initialize the RankGroupManager.

    Args:
        tp, ep, dp, pp, cp (int): The parallel sizes.
        order (str): The axis order, fastest-varying first.
        rank_offset (int): Added to every produced rank.
        topology (RankTopology, optional): A prebuilt topology; when given,
            the size arguments are ignored.

    Returns:
        RankGroupManager: An initialized instance of the manager.
    """
    if topology is None:
        topology = RankTopology(tp, ep, dp, pp, cp, order, rank_offset)
    logger.debug("Initializing rank groups for %r", topology)
    return RankGroupManager(topology)
