"""
Utility Functions for rankmesh.
"""

from .logging import setup_logger, log_rank_0, get_rank

__all__ = [
    'setup_logger',
    'log_rank_0',
    'get_rank',
]
