"""
Tests for Mixed-Radix Mesh Indexing.

These tests cover the stride table, coordinate decomposition and the masked
orthogonal group generator on small hand-checked meshes.
"""

import pytest

from rankmesh.core.indexing import (
    decompose,
    generate_masked_orthogonal_rank_groups,
    inner_product,
    iter_masked_orthogonal_rank_groups,
    prefix_stride,
)


def test_prefix_stride():
    assert prefix_stride([2, 3, 4]) == [1, 2, 6, 24]
    assert prefix_stride([]) == [1]
    assert prefix_stride([5, 1, 2]) == [1, 5, 5, 10]


def test_decompose_uses_canonical_stride_by_default():
    # 11 = 1*1 + 2*2 + 1*6
    assert decompose(11, [2, 3, 4]) == [1, 2, 1]
    assert decompose(0, [2, 3, 4]) == [0, 0, 0]
    assert decompose(23, [2, 3, 4]) == [1, 2, 3]


def test_decompose_with_explicit_stride():
    assert decompose(11, [2, 3, 4], [1, 2, 6, 24]) == [1, 2, 1]
    # Coordinates wrap modulo the axis extent.
    assert decompose(7, [2, 2], [1, 4]) == [1, 1]


def test_inner_product_recombines_coordinates():
    stride = prefix_stride([2, 3, 4])
    for index in range(24):
        assert inner_product(decompose(index, [2, 3, 4]), stride) == index
    assert inner_product([1, 1], [2, 8]) == 10
    assert inner_product([], []) == 0


def test_dp_groups_of_tp_dp_pp_mesh():
    # parallel_size = [tp, dp, pp] = [2, 3, 4], mask selects dp
    groups = generate_masked_orthogonal_rank_groups(24, [2, 3, 4], [False, True, False])

    assert len(groups) == 8
    assert groups[0] == [0, 2, 4]
    assert groups[1] == [1, 3, 5]
    assert groups[7] == [19, 21, 23]


def test_multi_axis_mask():
    groups = generate_masked_orthogonal_rank_groups(8, [2, 2, 2], [True, False, True])
    assert groups == [[0, 1, 4, 5], [2, 3, 6, 7]]


def test_full_and_empty_mask():
    assert generate_masked_orthogonal_rank_groups(4, [2, 2], [True, True]) == [[0, 1, 2, 3]]
    assert generate_masked_orthogonal_rank_groups(4, [2, 2], [False, False]) == [[0], [1], [2], [3]]


def test_iterator_is_lazy():
    groups = iter_masked_orthogonal_rank_groups(16, [2, 8], [True, False])
    assert next(groups) == [0, 1]
    assert next(groups) == [2, 3]
    assert len(list(groups)) == 6


@pytest.mark.parametrize("shape", [[2, 3, 4], [1, 5, 1, 2], [3, 3]])
def test_single_axis_groups_cover_every_rank(shape):
    world_size = prefix_stride(shape)[-1]
    for axis in range(len(shape)):
        mask = [i == axis for i in range(len(shape))]
        groups = generate_masked_orthogonal_rank_groups(world_size, shape, mask)
        flat = sorted(r for g in groups for r in g)
        assert flat == list(range(world_size))
        assert all(len(g) == shape[axis] for g in groups)
