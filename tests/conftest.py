"""
Pytest Configuration and Fixtures for Rank Topology Testing.

This module provides the shared fixtures used across the test-suite. Every
computation in rankmesh is pure, so no distributed environment is needed:
fixtures only build topologies and keep logging state isolated.

===============================================================================
CONCEPTUAL OVERVIEW:
===============================================================================

-   **`default_topology` fixture**: The 8-rank mesh shown by the viewer on
    start-up (tp=2, dp=2, pp=2, order 'tp-cp-ep-dp-pp').
-   **`expert_topology` fixture**: A 16-rank mesh with 2-way expert
    parallelism carved out of 4-way data parallelism.
-   **`TOPOLOGY_CASES`**: A spread of valid configurations used by the
    property tests, covering omitted axes, composite orders and ep > 1.
-   **`isolated_logger` fixture**: Removes handlers attached to the
    `rankmesh` logger during a test.

===============================================================================
"""

import logging
from itertools import combinations
from typing import Generator, List, Tuple

import pytest

from rankmesh.core import RankTopology

# (tp, ep, dp, pp, cp, order)
TOPOLOGY_CASES = [
    (2, 1, 2, 2, 1, 'tp-cp-ep-dp-pp'),
    (2, 2, 4, 2, 1, 'tp-ep-dp-pp'),
    (1, 2, 4, 3, 2, 'cp-ep-dp-tp-pp'),
    (4, 1, 2, 1, 2, 'tp-cp-dp'),
    (2, 3, 6, 1, 1, 'ep-dp-tp'),
    (3, 1, 1, 2, 2, 'pp-tp-cp'),
]


def build(case) -> RankTopology:
    tp, ep, dp, pp, cp, order = case
    return RankTopology(tp=tp, ep=ep, dp=dp, pp=pp, cp=cp, order=order)


def token_subsets(topology: RankTopology, independent_expert: bool) -> List[Tuple[str, ...]]:
    """Every non-empty subset of the active axes, as tuples of names."""
    names = [dim.value for dim in topology.axes(independent_expert)]
    subsets = []
    for k in range(1, len(names) + 1):
        subsets.extend(combinations(names, k))
    return subsets


@pytest.fixture
def default_topology() -> RankTopology:
    """
    Fixture for the 8-rank topology: tp=2, ep=1, dp=2, pp=2, cp=1.

    Layout: global_rank = tp_rank + dp_rank * 2 + pp_rank * 4
    """
    return RankTopology(tp=2, ep=1, dp=2, pp=2, cp=1, order='tp-cp-ep-dp-pp')


@pytest.fixture
def expert_topology() -> RankTopology:
    """
    Fixture for the 16-rank topology: tp=2, ep=2, dp=4, pp=2, cp=1.

    With ep independent the axes are tp(2), ep(2), dp(2), pp(2), cp(1).
    """
    return RankTopology(tp=2, ep=2, dp=4, pp=2, cp=1, order='tp-ep-dp-pp')


@pytest.fixture
def isolated_logger() -> Generator[logging.Logger, None, None]:
    """
    Yields the `rankmesh` logger and strips any handlers added during the test.
    """
    logger = logging.getLogger('rankmesh')
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
