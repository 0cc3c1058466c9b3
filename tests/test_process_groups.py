"""
Tests for Rank Group Management.

These tests cover the `RankGroupManager` views used by a display layer:
group lookup by rank, the rank-to-group grid, and the per-dimension
size/stride summary.
"""

import logging

import pytest

from rankmesh.core import (
    Dimension,
    ParallelismInfo,
    QueryError,
    RankGroupManager,
    RankTopology,
    init_rank_groups,
)


@pytest.fixture
def manager(default_topology) -> RankGroupManager:
    return RankGroupManager(default_topology)


def test_factory_builds_topology():
    manager = init_rank_groups(tp=2, dp=2, pp=2, order='tp-cp-ep-dp-pp')
    assert manager.topology.world_size == 8

    topo = RankTopology(tp=2, order='tp')
    assert init_rank_groups(topology=topo).topology is topo


def test_get_group(manager):
    assert manager.get_group('pp', rank=5) == [1, 5]
    assert manager.get_group('tp', rank=5) == [4, 5]
    with pytest.raises(QueryError):
        manager.get_group('tp', rank=8)


def test_groups_are_cached_per_query(manager):
    groups = manager.get_groups('tp-dp')
    assert groups == [[0, 1, 2, 3], [4, 5, 6, 7]]
    assert manager.get_groups('dp-tp') == groups
    assert manager.get_groups([Dimension.TP, Dimension.DP]) == groups
    assert len(manager.groups) == 1


def test_mutating_a_result_leaves_later_answers_intact(manager):
    groups = manager.get_groups('tp')
    groups[0].append(99)
    groups.append([42])

    assert manager.get_groups('tp') == [[0, 1], [2, 3], [4, 5], [6, 7]]
    assert manager.group_assignment('tp') == [0, 0, 1, 1, 2, 2, 3, 3]

    group = manager.get_group('tp', rank=0)
    group.append(7)
    assert manager.get_group('tp', rank=0) == [0, 1]


def test_group_assignment(manager):
    assert manager.group_assignment('tp') == [0, 0, 1, 1, 2, 2, 3, 3]
    assert manager.group_assignment('pp') == [0, 1, 2, 3, 0, 1, 2, 3]
    assert manager.group_index('dp', 6) == 2


def test_group_assignment_with_offset():
    manager = init_rank_groups(tp=2, dp=2, order='tp-dp', rank_offset=4)
    assert manager.group_assignment('dp') == [0, 1, 0, 1]
    assert manager.get_group('dp', rank=7) == [5, 7]
    with pytest.raises(QueryError):
        manager.group_index('dp', 0)


def test_parallelism_info(manager):
    info = manager.parallelism_info()

    assert list(info) == ['tp', 'cp', 'ep', 'dp', 'pp']
    assert info['tp'] == ParallelismInfo(size=2, stride=1, group_stride=2)
    assert info['dp'] == ParallelismInfo(size=2, stride=2, group_stride=1)
    assert info['pp'] == ParallelismInfo(size=2, stride=4, group_stride=1)
    assert info['cp'] == ParallelismInfo(size=1, stride=1, group_stride=1)
    assert info['ep'] == ParallelismInfo(size=1, stride=1, group_stride=1)


def test_parallelism_info_with_experts(expert_topology):
    info = RankGroupManager(expert_topology).parallelism_info()
    assert info['ep'] == ParallelismInfo(size=2, stride=2, group_stride=1)
    assert info['dp'] == ParallelismInfo(size=4, stride=2, group_stride=1)


def test_info_from_groups_edge_cases():
    assert ParallelismInfo.from_groups([]) == ParallelismInfo(0, 0, 0)
    assert ParallelismInfo.from_groups([[0, 1, 2, 3]]) == ParallelismInfo(4, 1, 0)


def test_get_all_groups(expert_topology):
    all_groups = RankGroupManager(expert_topology).get_all_groups()
    assert set(all_groups) == {'tp', 'pp', 'dp', 'ep', 'cp'}
    assert all_groups['ep'] == expert_topology.groups_for('ep', independent_expert=True)
    assert all_groups['dp'] == expert_topology.groups_for('dp')


def test_mesh_and_coordinates(manager):
    mesh = manager.get_mesh()
    assert mesh.get_groups('tp').tolist() == manager.get_groups('tp')
    assert manager.get_coordinates(3) == {'tp': 1, 'cp': 0, 'dp': 1, 'pp': 0}


def test_print_mesh_info(manager, caplog):
    with caplog.at_level(logging.INFO, logger='rankmesh'):
        manager.print_mesh_info()
    assert "Rank Topology Configuration" in caplog.text
    assert "Rank   6    | tp=0, cp=0, dp=1, pp=1" in caplog.text


@pytest.mark.parametrize("independent_expert", [False, True])
def test_group_index_agrees_with_assignment(independent_expert):
    topo = RankTopology(tp=2, ep=2, dp=4, pp=2, cp=1, order='tp-ep-dp-pp', rank_offset=3)
    manager = RankGroupManager(topo)
    for token in ('tp', 'dp', 'pp', 'tp-pp', 'dp-pp'):
        assignment = manager.group_assignment(token, independent_expert)
        for local, expected in enumerate(assignment):
            assert manager.group_index(token, local + 3, independent_expert) == expected
    assert manager.group_index('ep', 3 + 3, independent_expert=True) == 1
