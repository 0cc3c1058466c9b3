"""
Rank Topology

This module turns five parallel sizes and a user supplied order string into
a validated rank mesh, and answers "which ranks form a group along these
dimensions?" for any subset of the mesh axes.

===============================================================================
CONCEPTUAL EXAMPLE:
===============================================================================

The order lists axes fastest-varying first. With tp=2, dp=2, pp=2 and order
'tp-cp-ep-dp-pp' (cp and ep have size 1), ranks are laid out as:

    global_rank = tp_rank + dp_rank * 2 + pp_rank * 4

.. code-block:: python

    from rankmesh.core import RankTopology

    topo = RankTopology(tp=2, ep=1, dp=2, pp=2, cp=1, order='tp-cp-ep-dp-pp')

    topo.groups_for('tp')       # [[0, 1], [2, 3], [4, 5], [6, 7]]
    topo.groups_for('pp')       # [[0, 4], [1, 5], [2, 6], [3, 7]]
    topo.groups_for('tp-dp')    # [[0, 1, 2, 3], [4, 5, 6, 7]]

Expert parallelism (ep) subdivides data parallelism (dp), so it does not
multiply the world size. Queries that need ep as its own axis pass
`independent_expert=True`; the dp axis then only spans `dp // ep` ranks:

.. code-block:: python

    topo = RankTopology(tp=1, ep=2, dp=4, pp=1, cp=1, order='tp-ep-dp')
    topo.groups_for('ep', independent_expert=True)   # [[0, 1], [2, 3]]
    topo.groups_for('dp', independent_expert=True)   # [[0, 2], [1, 3]]
    topo.groups_for('dp')                            # [[0, 1, 2, 3]]

===============================================================================
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Tuple, Union

from .errors import (
    DimensionDivisibilityError,
    InvalidSizeError,
    MissingDimensionError,
    OrderConstraintError,
    QueryError,
    UnknownDimensionError,
)
from .indexing import decompose, iter_masked_orthogonal_rank_groups

logger = logging.getLogger(__name__)


class Dimension(Enum):
    """
    The closed set of parallelism axes.

    Attributes:
        TP (str): Tensor parallelism.
        PP (str): Pipeline parallelism.
        DP (str): Data parallelism.
        EP (str): Expert parallelism, a sub-division of DP.
        CP (str): Context parallelism.
    """
    TP = "tp"
    PP = "pp"
    DP = "dp"
    EP = "ep"
    CP = "cp"

    @classmethod
    def from_token(cls, token: str) -> "Dimension":
        """Parses a single token, case-insensitively. Raises `ValueError` when unknown."""
        return cls(token.strip().lower())


DimensionLike = Union[str, Dimension, Iterable[Union[str, Dimension]]]


@dataclass(frozen=True)
class ParallelSizes:
    """
    The extent of every parallelism axis.

    All sizes must be positive integers. `ep` divides `dp` rather than
    multiplying the world size.
    """
    tp: int = 1
    ep: int = 1
    dp: int = 1
    pp: int = 1
    cp: int = 1

    def __post_init__(self):
        for dim, size in self.items():
            # bool is an int subclass but never a meaningful size
            if isinstance(size, bool) or not isinstance(size, int) or size < 1:
                raise InvalidSizeError(dim.value, size)

    def size_of(self, dim: Dimension) -> int:
        return getattr(self, dim.value)

    def items(self) -> List[Tuple[Dimension, int]]:
        """Returns (dimension, size) pairs in canonical order: tp, pp, dp, ep, cp."""
        return [(dim, getattr(self, dim.value)) for dim in Dimension]

    @property
    def world_size(self) -> int:
        return self.tp * self.dp * self.pp * self.cp


def parse_order(order: str) -> List[Dimension]:
    """
    Parses a hyphen-delimited order string into a list of dimensions.

    An empty string yields an empty list. Empty, unknown or repeated tokens
    raise `OrderConstraintError`.
    """
    normalized = order.strip().lower()
    if not normalized:
        return []

    dims: List[Dimension] = []
    for token in normalized.split('-'):
        try:
            dim = Dimension.from_token(token)
        except ValueError:
            raise OrderConstraintError(normalized, f"Unknown token ({token}) in order") from None
        if dim in dims:
            raise OrderConstraintError(normalized, f"The token ({token}) is repeated in order")
        dims.append(dim)
    return dims


def format_order(dims: Iterable[Dimension]) -> str:
    return '-'.join(dim.value for dim in dims)


class RankTopology:
    """
    An immutable multi-dimensional rank mesh.

    Two axis orderings are derived at construction time:

    - *without ep*: ep is folded into dp, which keeps its full size. Used for
      tp, pp, dp and cp groups.
    - *with ep*: ep is an axis of its own and dp only spans `dp // ep`. Used
      for expert groups and for data parallel groups modulo expert.
    """

    def __init__(self,
                 tp: int = 1,
                 ep: int = 1,
                 dp: int = 1,
                 pp: int = 1,
                 cp: int = 1,
                 order: str = 'tp-cp-ep-dp-pp',
                 rank_offset: int = 0
                ):
        """
        Validates the inputs and derives both axis orderings.

        Args:
            tp (int): Tensor parallel size.
            ep (int): Expert parallel size. Must divide `dp`.
            dp (int): Data parallel size.
            pp (int): Pipeline parallel size.
            cp (int): Context parallel size.
            order (str): Hyphen-delimited axis order, fastest-varying first,
                e.g. 'tp-cp-ep-dp-pp'. Axes of size 1 may be omitted.
            rank_offset (int): Added to every produced rank.

        Raises:
            InvalidSizeError: If a size is not a positive integer or the
                offset is negative.
            OrderConstraintError: If the order holds an unknown or repeated
                token, names ep without placing it next to dp, or places an ep
                larger than 1 after dp.
            MissingDimensionError: If an axis of size > 1 is absent from the order.
            DimensionDivisibilityError: If `dp` is not a multiple of `ep`.
        """
        self._sizes = ParallelSizes(tp=tp, ep=ep, dp=dp, pp=pp, cp=cp)
        if isinstance(rank_offset, bool) or not isinstance(rank_offset, int) or rank_offset < 0:
            raise InvalidSizeError('rank_offset', rank_offset)
        self._rank_offset = rank_offset

        dims = parse_order(order)
        normalized = format_order(dims)

        # ep sub-divides dp: 'ep-dp' always, 'dp-ep' only while ep is trivial.
        if Dimension.EP in dims:
            ep_index = dims.index(Dimension.EP)
            after = dims[ep_index + 1:ep_index + 2]
            before = dims[max(ep_index - 1, 0):ep_index]
            if after != [Dimension.DP]:
                if before != [Dimension.DP]:
                    raise OrderConstraintError(normalized)
                if ep > 1:
                    raise OrderConstraintError(
                        normalized, f"The ep of size ({ep}) must immediately precede dp in order"
                    )

        for dim, size in self._sizes.items():
            if dim in dims:
                continue
            if size != 1:
                raise MissingDimensionError(dim.value, size, normalized)
            dims.append(dim)

        if dp % ep != 0:
            raise DimensionDivisibilityError(dp, ep)

        axes_with_ep: List[Dimension] = []
        axes_without_ep: List[Dimension] = []
        sizes_with_ep: List[int] = []
        sizes_without_ep: List[int] = []
        for dim in dims:
            if dim is Dimension.DP:
                sizes_with_ep.append(dp // ep)
                sizes_without_ep.append(dp)
                axes_without_ep.append(dim)
            elif dim is Dimension.EP:
                sizes_with_ep.append(ep)
            else:
                sizes_with_ep.append(self._sizes.size_of(dim))
                sizes_without_ep.append(self._sizes.size_of(dim))
                axes_without_ep.append(dim)
            axes_with_ep.append(dim)

        self._axes_with_ep = tuple(axes_with_ep)
        self._axes_without_ep = tuple(axes_without_ep)
        self._sizes_with_ep = tuple(sizes_with_ep)
        self._sizes_without_ep = tuple(sizes_without_ep)
        self._world_size = self._sizes.world_size

        logger.debug(
            "Built rank topology %s over order %s (world size %d, offset %d)",
            self._sizes, self.order_with_ep, self._world_size, self._rank_offset,
        )

    # ------------------------------------------------------------------
    # Derived fields
    # ------------------------------------------------------------------

    @property
    def sizes(self) -> ParallelSizes:
        return self._sizes

    @property
    def tp(self) -> int:
        return self._sizes.tp

    @property
    def ep(self) -> int:
        return self._sizes.ep

    @property
    def dp(self) -> int:
        return self._sizes.dp

    @property
    def pp(self) -> int:
        return self._sizes.pp

    @property
    def cp(self) -> int:
        return self._sizes.cp

    @property
    def world_size(self) -> int:
        return self._world_size

    @property
    def rank_offset(self) -> int:
        return self._rank_offset

    @property
    def order_with_ep(self) -> str:
        return format_order(self._axes_with_ep)

    @property
    def order_without_ep(self) -> str:
        return format_order(self._axes_without_ep)

    @property
    def sizes_with_ep(self) -> Tuple[int, ...]:
        return self._sizes_with_ep

    @property
    def sizes_without_ep(self) -> Tuple[int, ...]:
        return self._sizes_without_ep

    def axes(self, independent_expert: bool = False) -> Tuple[Dimension, ...]:
        """Returns the active axis order, fastest-varying first."""
        return self._axes_with_ep if independent_expert else self._axes_without_ep

    def shape(self, independent_expert: bool = False) -> Tuple[int, ...]:
        """Returns the extent of every axis of `axes(independent_expert)`."""
        return self._sizes_with_ep if independent_expert else self._sizes_without_ep

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_mask(self, token: DimensionLike, independent_expert: bool = False) -> List[bool]:
        """
        Builds the boolean mask over the active axes for a query.

        Args:
            token: A hyphen-joined string such as 'dp-ep', a `Dimension`, or
                an iterable of either.
            independent_expert (bool): Selects the axis order with ep.

        Returns:
            List[bool]: True for every axis that varies within a group.

        Raises:
            QueryError: If no token is given, a hyphen-joined token has an
                empty part, or the token is not a string or `Dimension`.
            UnknownDimensionError: If a token is unknown or not an axis of
                the active order.
        """
        axes = self.axes(independent_expert)
        order = format_order(axes)

        if isinstance(token, (str, Dimension)):
            tokens = [token]
        else:
            try:
                tokens = list(token)
            except TypeError:
                raise QueryError(f"Unsupported dimension token ({token!r}).") from None

        dims = []
        for t in tokens:
            if isinstance(t, Dimension):
                dims.append(t)
                continue
            if not isinstance(t, str):
                raise QueryError(f"Unsupported dimension token ({t!r}).")
            if not t.strip():
                continue
            for part in t.split('-'):
                if not part.strip():
                    raise QueryError(f"Empty dimension token in query ({t!r}).")
                try:
                    dims.append(Dimension.from_token(part))
                except ValueError:
                    raise UnknownDimensionError(part, order) from None
        if not dims:
            raise QueryError(f"At least one dimension token is required, got ({token!r}).")

        mask = [False] * len(axes)
        for dim in dims:
            if dim not in axes:
                raise UnknownDimensionError(dim.value, order)
            mask[axes.index(dim)] = True
        return mask

    def iter_groups(self, token: DimensionLike, independent_expert: bool = False) -> Iterator[List[int]]:
        """
        Lazily yields the rank groups for `token`.

        Validation happens eagerly, before the first group is produced.
        """
        mask = self.get_mask(token, independent_expert)
        return self._iter_groups(mask, independent_expert)

    def _iter_groups(self, mask: List[bool], independent_expert: bool) -> Iterator[List[int]]:
        offset = self._rank_offset
        for group in iter_masked_orthogonal_rank_groups(
            self._world_size, self.shape(independent_expert), mask
        ):
            if offset:
                group = [rank + offset for rank in group]
            yield group

    def groups_for(self, token: DimensionLike, independent_expert: bool = False) -> List[List[int]]:
        '''Get rank groups by input token.

        Arguments:
            token (str):
                Specify the ranks type that want to get. If we want
                to obtain multiple parallel types, we can use a hyphen
                '-' to separate them. For example, if we want to obtain
                the TP_DP group, the token should be 'tp-dp'.

            independent_expert (bool):
                This flag controls whether we treat EP and DP independently.
                EP shares ranks with DP, if we want to get ranks related to
                EP, we should set the flag. For example,
                groups_for('dp', True) will get DP modulo EP group, and
                groups_for('dp', False) will get full DP group.
        '''
        groups = list(self.iter_groups(token, independent_expert))
        logger.debug("Generated %d group(s) for %r (independent_expert=%s)",
                     len(groups), token, independent_expert)
        return groups

    def group_size(self, token: DimensionLike, independent_expert: bool = False) -> int:
        """Returns the number of ranks in every group for `token`."""
        mask = self.get_mask(token, independent_expert)
        size = 1
        for s, m in zip(self.shape(independent_expert), mask):
            if m:
                size *= s
        return size

    def coordinates(self, rank: int, independent_expert: bool = False) -> Dict[str, int]:
        """
        Returns the coordinate of a global rank along every active axis.

        Raises:
            QueryError: If `rank` is not part of this topology.
        """
        local = rank - self._rank_offset
        if not 0 <= local < self._world_size:
            raise QueryError(
                f"Rank ({rank}) is outside of the topology "
                f"[{self._rank_offset}, {self._rank_offset + self._world_size})."
            )
        coords = decompose(local, self.shape(independent_expert))
        return {dim.value: c for dim, c in zip(self.axes(independent_expert), coords)}

    def __repr__(self):
        return (
            f"RankTopology(tp={self.tp}, ep={self.ep}, dp={self.dp}, pp={self.pp}, "
            f"cp={self.cp}, order='{self.order_with_ep}', rank_offset={self._rank_offset})"
        )
