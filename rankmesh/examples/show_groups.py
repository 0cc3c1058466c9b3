"""
================================================================================
Rank Group Viewer
================================================================================

This example prints the rank groups of a parallel topology as a text grid.

Every rank is shown with the index of the group it belongs to for the
selected subgroup, followed by a size/stride summary of each parallelism
dimension.

Key Concepts:
- The order lists axes fastest-varying first
- ep is a sub-division of dp and must sit next to it in the order; when
  ep > 1 it must come right before dp ('ep-dp')
- Composite subgroups such as 'tp-dp' vary over several axes at once

Usage:
    python -m rankmesh.examples.show_groups --tp 2 --dp 2 --pp 2 --subgroup pp
    rankmesh-groups --config rankmesh/examples/topology_config.yaml --subgroup tp

Configuration:
    Command line sizes override the values read from --config.
"""

import argparse
import logging
import sys
from typing import List, Optional

from ..core import ConfigError, RankTopologyError, TopologyConfig, load_config
from ..core.process_groups import init_rank_groups
from ..utils import setup_logger

TOPOLOGY_FIELDS = ('tp', 'ep', 'dp', 'pp', 'cp', 'order', 'rank_offset')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="rankmesh Rank Group Viewer")
    parser.add_argument('--config', type=str, default=None,
                        help='Path to a YAML topology configuration file.')
    parser.add_argument('--tp', type=int, default=None, help='Tensor parallel size.')
    parser.add_argument('--ep', type=int, default=None, help='Expert parallel size.')
    parser.add_argument('--dp', type=int, default=None, help='Data parallel size.')
    parser.add_argument('--pp', type=int, default=None, help='Pipeline parallel size.')
    parser.add_argument('--cp', type=int, default=None, help='Context parallel size.')
    parser.add_argument('--order', type=str, default=None,
                        help="Axis order, fastest first (e.g. 'tp-cp-ep-dp-pp').")
    parser.add_argument('--rank-offset', dest='rank_offset', type=int, default=None,
                        help='Added to every rank.')
    parser.add_argument('--subgroup', type=str, default='tp',
                        help="Dimension(s) to group by, e.g. 'tp' or 'dp-ep'.")
    parser.add_argument('--independent-ep', action='store_true',
                        help='Treat ep as an axis of its own instead of folding it into dp.')
    parser.add_argument('--columns', type=int, default=8,
                        help='Number of ranks printed per grid row.')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging.')
    return parser


def render_grid(assignment: List[int], rank_offset: int, columns: int) -> List[str]:
    cells = [
        f"Rank {rank_offset + i:3d}: G{group:<3d}"
        for i, group in enumerate(assignment)
    ]
    columns = max(columns, 1)
    return ["  ".join(cells[i:i + columns]) for i in range(0, len(cells), columns)]


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function to build the topology and print its groups.

    Returns:
        int: The process exit code.
    """
    args = build_parser().parse_args(argv)
    setup_logger(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = load_config(args.config) if args.config else {}
        topo_config = TopologyConfig.from_dict(config)
        for name in TOPOLOGY_FIELDS:
            value = getattr(args, name)
            if value is not None:
                setattr(topo_config, name, value)

        manager = init_rank_groups(topology=topo_config.build())
        topo = manager.topology
        assignment = manager.group_assignment(args.subgroup, args.independent_ep)
        info = manager.parallelism_info()
    except (RankTopologyError, ValueError, FileNotFoundError, RuntimeError) as e:
        kind = "Configuration error" if isinstance(e, ConfigError) else "Error"
        print(f"{kind}: {e}", file=sys.stderr)
        return 1

    print("=" * 60)
    print("RANK GROUP VIEWER")
    print("=" * 60)
    print(f"Order:      {topo.order_with_ep if args.independent_ep else topo.order_without_ep}")
    print(f"World size: {topo.world_size}")
    print(f"Subgroup:   {args.subgroup}")
    print("-" * 60)
    print("Parallelism Information")
    for name, item in info.items():
        print(f"  {name.upper()}: size={item.size} stride={item.stride} "
              f"group_stride={item.group_stride}")
    print("-" * 60)
    for line in render_grid(assignment, topo.rank_offset, args.columns):
        print(line)
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
