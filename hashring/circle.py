"""
Circle builder: turns weighted nodes into virtual points on the ring.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .config import RingConfig
from .digest import DigestFunction, split_hash_keys

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VirtualPoint:
    """A virtual point on the hash ring."""
    node: str
    group: int        # j in "<node>-<j>"
    index: int        # which 4-byte slice of the group digest
    hash_value: int


@dataclass(frozen=True)
class Circle:
    """Result of a build: point map plus the ascending key sequence."""
    points: Dict[int, str]
    sorted_keys: Tuple[int, ...]
    collisions: int = 0


def total_weight(nodes: Sequence[str], weights: Mapping[str, int]) -> int:
    """Sum of node weights, counting 1 for nodes without an explicit weight."""
    return sum(weights.get(node, 1) for node in nodes)


def point_groups(node: str, nodes: Sequence[str], weights: Mapping[str, int],
                 config: RingConfig, total: Optional[int] = None) -> int:
    """
    Number of point groups a node gets.

    floor(points_per_node * |nodes| * weight / total_weight). Integer
    division keeps it exact for any pool size.
    """
    if total is None:
        total = total_weight(nodes, weights)
    if total <= 0:
        return 0
    weight = weights.get(node, 1)
    return (config.points_per_node * len(nodes) * weight) // total


def iter_node_points(node: str, groups: int, digest: DigestFunction,
                     config: RingConfig) -> Iterator[VirtualPoint]:
    """Yield the virtual points for ``groups`` point groups of a node."""
    for j in range(groups):
        bkey = digest.digest(f"{node}-{j}".encode("utf-8"))
        for i, key in enumerate(split_hash_keys(bkey, config.keys_per_digest)):
            yield VirtualPoint(node=node, group=j, index=i, hash_value=key)


def build_circle(nodes: Sequence[str], weights: Mapping[str, int],
                 digest: DigestFunction, config: RingConfig) -> Circle:
    """
    Populate a circle from scratch.

    Nodes are processed in lexicographic order so the winner of a key
    collision does not depend on how the caller ordered its input. On a
    collision the later point keeps the key in ``points`` while
    ``sorted_keys`` retains both entries.
    """
    total = total_weight(nodes, weights)
    points: Dict[int, str] = {}
    keys: List[int] = []
    collisions = 0

    for node in sorted(nodes):
        groups = point_groups(node, nodes, weights, config, total)
        for point in iter_node_points(node, groups, digest, config):
            if point.hash_value in points:
                collisions += 1
            points[point.hash_value] = node
            keys.append(point.hash_value)

    keys.sort()

    if collisions:
        logger.debug("Ring build had %d colliding virtual points", collisions)
    logger.debug(
        "Built circle: nodes=%d total_weight=%d points=%d digest=%s",
        len(nodes), total, len(keys), digest.name,
    )
    return Circle(points=points, sorted_keys=tuple(keys), collisions=collisions)
