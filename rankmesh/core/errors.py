"""
Error Taxonomy for Rank Topologies

Every failure raised by `rankmesh` derives from `RankTopologyError`. Errors
found while building a `RankTopology` are `ConfigError`s, errors found while
querying one are `QueryError`s. Both are also `ValueError`s, so callers that
only care about "bad input" can catch the builtin.

===============================================================================
CONCEPTUAL EXAMPLE:
===============================================================================

.. code-block:: python

    from rankmesh.core import RankTopology, ConfigError

    try:
        topo = RankTopology(tp=2, ep=2, dp=4, pp=2, cp=1, order='tp-dp-pp-ep')
    except ConfigError as e:
        # The display layer shows the message verbatim.
        print(f"Error: {e}")

===============================================================================
"""


class RankTopologyError(Exception):
    """Base class for all errors raised by rankmesh."""


class ConfigError(RankTopologyError, ValueError):
    """The topology could not be constructed from the given inputs."""


class QueryError(RankTopologyError, ValueError):
    """A query against a constructed topology was malformed."""


class InvalidSizeError(ConfigError):
    """A parallel size is not a positive integer, or the rank offset is negative."""

    def __init__(self, name: str, value):
        self.name = name
        self.value = value
        if name == 'rank_offset':
            msg = f"The rank offset must be a non-negative integer, got ({value!r})."
        else:
            msg = f"The size of ({name}) must be a positive integer, got ({value!r})."
        super().__init__(msg)


class OrderConstraintError(ConfigError):
    """The order string violates a structural rule (adjacency, unknown or repeated token)."""

    def __init__(self, order: str, reason: str = "The ep and dp must be adjacent in order"):
        self.order = order
        self.reason = reason
        super().__init__(f"{reason} ({order}).")


class MissingDimensionError(ConfigError):
    """A dimension with size > 1 does not appear in the order."""

    def __init__(self, name: str, size: int, order: str):
        self.name = name
        self.size = size
        self.order = order
        super().__init__(
            f"The size of ({name}) is ({size}), but you haven't specified the order ({order})."
        )


class DimensionDivisibilityError(ConfigError):
    """The data parallel size is not a multiple of the expert parallel size."""

    def __init__(self, dp: int, ep: int):
        self.dp = dp
        self.ep = ep
        super().__init__(
            f"The size of (dp) is ({dp}), which is not divisible by the size of (ep) ({ep})."
        )


class UnknownDimensionError(QueryError):
    """A query names a token that is not an axis of the active order."""

    def __init__(self, token: str, order: str):
        self.token = token
        self.order = order
        super().__init__(f"The dimension ({token}) is not part of the order ({order}).")
