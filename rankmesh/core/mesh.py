import torch
from typing import List, Tuple

from .errors import QueryError
from .topology import DimensionLike, RankTopology

# ============================================================================
# EXAMPLES OF HOW THE MESH WORKS
# ============================================================================
#
# Example 1: tp=2, dp=2, pp=2 with order 'tp-dp-pp'
# ------------------------------------------------
# The order lists axes fastest first, so the rank tensor is built with the
# reversed order as its shape (slowest axis first, the way torch lays out
# memory):
#
#   mesh_name = ('pp', 'dp', 'tp'), mesh_dim = (2, 2, 2)
#
# tensor([[[0, 1],   # pp=0, dp=0, tp=0-1
#          [2, 3]],  # pp=0, dp=1, tp=0-1
#
#         [[4, 5],   # pp=1, dp=0, tp=0-1
#          [6, 7]]]) # pp=1, dp=1, tp=0-1
#
# Groups Extracted:
# -----------------
# TP groups (share same pp, dp): [[0,1], [2,3], [4,5], [6,7]]
# DP groups (share same pp, tp): [[0,2], [1,3], [4,6], [5,7]]
# PP groups (share same dp, tp): [[0,4], [1,5], [2,6], [3,7]]
#
# ============================================================================
#
# Example 2: Composite query 'tp-dp'
# ----------------------------------
# Both tp and dp vary inside a group, pp selects the group:
#   [[0, 1, 2, 3], [4, 5, 6, 7]]
#
# ============================================================================


class RankMesh:
    def __init__(self, topology: RankTopology, independent_expert: bool = False):
        """
        Materialize a topology as a tensor of global ranks.

        Args:
            topology: The validated rank topology
            independent_expert: Whether ep is laid out as its own axis

        Example:
            topo = RankTopology(tp=2, dp=2, pp=2, order='tp-dp-pp')
            mesh = RankMesh(topo)
            # mesh.mesh is tensor([[[0, 1], [2, 3]], [[4, 5], [6, 7]]])
            # mesh.mesh_name is ('pp', 'dp', 'tp')
        """
        self.topology = topology
        self.independent_expert = independent_expert

        axes = topology.axes(independent_expert)
        shape = topology.shape(independent_expert)
        self.mesh_name: Tuple[str, ...] = tuple(dim.value for dim in reversed(axes))
        self.mesh_dim: Tuple[int, ...] = tuple(reversed(shape))

        offset = topology.rank_offset
        with torch.device('cpu'):
            self.mesh = torch.arange(
                offset, offset + topology.world_size, dtype=torch.int
            ).view(self.mesh_dim)

    def get_groups(self, token: DimensionLike) -> torch.Tensor:
        """
        Extract the groups for `token` as a (num_groups, group_size) tensor.

        The masked axes are moved to the end, slowest first, and the unmasked
        axes in front of them; a reshape then yields one row per group in the
        same order `RankTopology.groups_for` produces.

        Example for token='dp' with the mesh of Example 1:
            - permute to (pp, tp, dp)
            - reshape(-1, 2) gives [[0,2], [1,3], [4,6], [5,7]]
        """
        mask = self.topology.get_mask(token, self.independent_expert)
        n = len(mask)
        # axis i of the order lives at tensor dim n-1-i
        masked = [n - 1 - i for i in reversed(range(n)) if mask[i]]
        unmasked = [n - 1 - i for i in reversed(range(n)) if not mask[i]]

        group_size = 1
        for d in masked:
            group_size *= self.mesh_dim[d]

        return self.mesh.permute(*(unmasked + masked)).reshape(-1, group_size)

    def get_group(self, token: DimensionLike, rank: int) -> List[int]:
        """Get the ranks of the `token` group that contains `rank`."""
        for group in self.get_groups(token):
            ranks = group.tolist()
            if rank in ranks:
                return ranks
        raise QueryError(f"Rank ({rank}) is not part of this mesh.")

    def get_coordinates_tensor_search(self, rank: int) -> List[int]:
        """
        Find coordinates by searching the mesh tensor.

        Returns:
            List of coordinates, one per entry of `mesh_name` (slowest first)

        Example for rank=6 with the mesh of Example 1:
            Rank 6 is at position [1, 1, 0]: pp=1, dp=1, tp=0
        """
        hits = (self.mesh == rank).nonzero()
        if hits.numel() == 0:
            raise QueryError(f"Rank ({rank}) is not part of this mesh.")
        return hits[0].tolist()
