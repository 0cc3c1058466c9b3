"""
Distributed-Aware Logging Utilities.
"""

import logging
from typing import Optional

import torch.distributed as dist

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"


def get_rank() -> int:
    """Get the rank of the current process, 0 outside of a distributed run."""
    if dist.is_available() and dist.is_initialized():
        return dist.get_rank()
    return 0


def setup_logger(
    name: str = 'rankmesh',
    level: int = logging.INFO,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Setup logger with proper formatting.

    Handlers are only attached once, so calling this repeatedly just updates
    the level.

    Args:
        name (str): Logger name; child loggers (`rankmesh.core...`) inherit it.
        level (int): Logging level.
        log_file (str, optional): Also append records to this file.

    Returns:
        logging.Logger: The configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT)
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

        if log_file is not None:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def log_rank_0(message: str, level: int = logging.INFO, name: str = 'rankmesh'):
    """Log message only from rank 0 to avoid duplicate logs."""
    if get_rank() == 0:
        logging.getLogger(name).log(level, message)
