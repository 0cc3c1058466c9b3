"""
Mixed-Radix Mesh Indexing

Pure integer helpers used to map between flat rank numbers and coordinates in
a multi-dimensional mesh, and the masked orthogonal group generator built on
top of them.

===============================================================================
CONCEPTUAL EXAMPLE:
===============================================================================

A mesh with shape [tp, dp, pp] = [2, 3, 4] (tp varies fastest) has the
stride table [1, 2, 6, 24]. Rank 11 therefore sits at coordinates
[1, 2, 1]:

    2   3   4   --> Size
    1   2   6   --> Stride
    TP  DP  PP
    1   2   1   --> 1*1 + 2*2 + 1*6 = 11

Asking for the `dp` groups means masking the dp axis. Every combination of
the unmasked (tp, pp) coordinates names one group, and the dp coordinate
walks through the members of that group:

    dp_group[0] = 0 + range(0, 3) * 2 + 0     = [0, 2, 4]
    dp_group[1] = 1 + range(0, 3) * 2 + 0     = [1, 3, 5]
    ...
    dp_group[7] = 1 + range(0, 3) * 2 + 3 * 6 = [19, 21, 23]

.. code-block:: python

    from rankmesh.core.indexing import generate_masked_orthogonal_rank_groups

    groups = generate_masked_orthogonal_rank_groups(24, [2, 3, 4], [False, True, False])

===============================================================================
"""

from typing import Iterator, List, Optional, Sequence


def prefix_stride(shape: Sequence[int], init: int = 1) -> List[int]:
    """
    Returns the prefix product of `shape`, one element longer than `shape`.

    `stride[i]` is the number of flat index units swept by one step along
    axis `i`, and `stride[-1]` is the total number of elements.
    """
    r = [init]
    for v in shape:
        init = init * v
        r.append(init)
    return r


def inner_product(coords: Sequence[int], strides: Sequence[int]) -> int:
    return sum(x * y for x, y in zip(coords, strides))


def decompose(index: int, shape: Sequence[int], stride: Optional[Sequence[int]] = None) -> List[int]:
    """
    Splits a flat `index` into its per-axis coordinates, first axis fastest.

    Solves `index = sum(idx[i] * stride[i])` for `idx`. When `stride` is
    omitted the canonical prefix stride of `shape` is used.

    Args:
        index (int): The flat index to decompose.
        shape (Sequence[int]): The extent of each axis.
        stride (Sequence[int], optional): The stride of each axis.

    Returns:
        List[int]: One coordinate per axis of `shape`.
    """
    if stride is None:
        stride = prefix_stride(shape)
    return [(index // d) % s for s, d in zip(shape, stride)]


def iter_masked_orthogonal_rank_groups(
    world_size: int,
    parallel_size: Sequence[int],
    mask: Sequence[bool],
) -> Iterator[List[int]]:
    """
    Lazily yields the rank groups selected by `mask`, one list per group.

    Axes with `mask[i] == True` vary inside a group; the remaining axes pick
    the group. Groups are produced in row-major order of the unmasked axes
    (first unmasked axis fastest) and members in row-major order of the
    masked axes.

    Args:
        world_size (int): Total number of ranks; equals the product of
            `parallel_size`.
        parallel_size (Sequence[int]): Extent of every axis, fastest first.
        mask (Sequence[bool]): One flag per axis of `parallel_size`.

    Yields:
        List[int]: The global ranks of one group.
    """
    masked_shape = [s for s, m in zip(parallel_size, mask) if m]
    unmasked_shape = [s for s, m in zip(parallel_size, mask) if not m]

    global_stride = prefix_stride(parallel_size)
    masked_stride = [d for d, m in zip(global_stride, mask) if m]
    unmasked_stride = [d for d, m in zip(global_stride, mask) if not m]

    group_size = prefix_stride(masked_shape)[-1]
    num_of_group = world_size // group_size

    # Member offsets are the same for every group.
    member_offsets = [
        inner_product(decompose(rank_in_group, masked_shape), masked_stride)
        for rank_in_group in range(group_size)
    ]

    for group_index in range(num_of_group):
        decomposed_group_idx = decompose(group_index, unmasked_shape)
        base = inner_product(decomposed_group_idx, unmasked_stride)
        yield [base + offset for offset in member_offsets]


def generate_masked_orthogonal_rank_groups(
    world_size: int,
    parallel_size: Sequence[int],
    mask: Sequence[bool],
) -> List[List[int]]:
    """Eager form of `iter_masked_orthogonal_rank_groups`."""
    return list(iter_masked_orthogonal_rank_groups(world_size, parallel_size, mask))
