"""
Consistent hashing ring for key distribution.
"""

import bisect
import logging
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .circle import VirtualPoint, build_circle, iter_node_points, point_groups
from .config import MutationStatus, RingConfig, get_default_config
from .digest import HASH_KEY_SIZE, check_digest, hash_val, resolve_digest

logger = logging.getLogger(__name__)


class HashRing:
    """
    Consistent hashing ring for distributing keys across nodes.

    Features:
    - Weighted virtual points for proportional distribution
    - O(log n) lookups
    - Minimal key movement on node changes
    - Immutable: add/remove return a new ring, existing holders are unaffected

    A ring is safe to share between threads without locking.
    """

    def __init__(self, nodes: Optional[Iterable[str]] = None, hash_provider=None,
                 config: Optional[RingConfig] = None, *,
                 weights: Optional[Mapping[str, int]] = None):
        """
        Build a ring.

        Args:
            nodes: Node identifiers. Duplicates are collapsed.
            hash_provider: None for the configured default (MD5), a hashlib
                algorithm name or constructor, or a DigestFunction
            config: Placement constants
            weights: Optional node -> positive weight map; missing nodes
                weigh 1 and entries for unknown nodes are ignored
        """
        self._config = config or get_default_config()
        self._digest = resolve_digest(hash_provider, self._config.default_digest)

        # A short digest is a broken contract, not a lookup miss
        check_digest(self._digest.digest(b""), self._config.min_digest_size)

        node_list = _unique_nodes(nodes if nodes is not None else ())
        weight_map = _checked_weights(weights or {}, node_list)

        circle = build_circle(node_list, weight_map, self._digest, self._config)

        self._nodes: Tuple[str, ...] = tuple(node_list)
        self._weights = MappingProxyType(weight_map)
        self._ring = MappingProxyType(circle.points)
        self._sorted_keys: Tuple[int, ...] = circle.sorted_keys
        self._owners = frozenset(circle.points.values())
        self._collisions = circle.collisions

    @classmethod
    def with_weights(cls, weights: Mapping[str, int], hash_provider=None,
                     config: Optional[RingConfig] = None) -> "HashRing":
        """
        Build a ring from a node -> weight map.

        Nodes are taken in sorted order, so equal maps give identical rings
        whatever their insertion order.
        """
        return cls(sorted(weights), hash_provider, config, weights=weights)

    def _derive(self, nodes: Tuple[str, ...], weights: Dict[str, int]) -> "HashRing":
        """Build a fresh ring with this ring's digest and config."""
        return type(self)(nodes, self._digest, self._config, weights=weights)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> Tuple[str, ...]:
        return self._nodes

    @property
    def weights(self) -> Mapping[str, int]:
        """Explicit weights. Nodes not listed weigh 1."""
        return self._weights

    @property
    def ring(self) -> Mapping[int, str]:
        """HashKey -> node map."""
        return self._ring

    @property
    def sorted_keys(self) -> Tuple[int, ...]:
        return self._sorted_keys

    @property
    def config(self) -> RingConfig:
        return self._config

    @property
    def digest(self):
        return self._digest

    @property
    def owners(self):
        """Nodes that own at least one point."""
        return self._owners

    @property
    def collisions(self) -> int:
        """Virtual points that overwrote an earlier point with the same key."""
        return self._collisions

    def get_weight(self, node: str) -> int:
        return self._weights.get(node, 1)

    def __len__(self) -> int:
        return len(self._sorted_keys)

    def __contains__(self, node) -> bool:
        return node in self._nodes

    def __repr__(self):
        return (f"{type(self).__name__}(nodes={len(self._nodes)}, "
                f"points={len(self._sorted_keys)}, digest={self._digest.name!r})")

    # ------------------------------------------------------------------
    # Key lookup
    # ------------------------------------------------------------------

    def gen_key(self, key: str) -> int:
        """
        Hash a key onto the circle.

        Only the first 4 digest bytes are read, little-endian.
        """
        bkey = check_digest(self._digest.digest(key.encode("utf-8")), HASH_KEY_SIZE)
        return hash_val(bkey)

    def get_node_pos(self, key: str) -> Tuple[int, bool]:
        """
        Find the index in ``sorted_keys`` of the point owning a key.

        Args:
            key: The key to look up

        Returns:
            (position, found). found is False only for an empty ring.
        """
        if not self._ring:
            return 0, False

        key_hash = self.gen_key(key)

        # First point strictly greater than the key
        pos = bisect.bisect_right(self._sorted_keys, key_hash)

        if pos == len(self._sorted_keys):
            return 0, True  # Wrap around

        return pos, True

    def get_node(self, key: str) -> Tuple[Optional[str], bool]:
        """
        Get the node responsible for a key.

        Args:
            key: The key to look up

        Returns:
            (node, found), or (None, False) if the ring is empty
        """
        pos, ok = self.get_node_pos(key)
        if not ok:
            return None, False
        return self._ring[self._sorted_keys[pos]], True

    def get_nodes(self, key: str, count: int) -> Tuple[List[str], bool]:
        """
        Get ``count`` distinct nodes for a key (for replication).

        Walks clockwise from the key's position and keeps each node the
        first time it is met. The first entry is always ``get_node(key)``.

        Args:
            key: The key to look up
            count: Number of distinct nodes wanted

        Returns:
            (nodes, complete). An empty ring, or asking for more nodes than
            own points on the ring, gives ([], False).
        """
        pos, ok = self.get_node_pos(key)
        if not ok:
            return [], False

        if count > len(self._owners):
            return [], False

        if count <= 0:
            return [], True

        nodes: List[str] = []
        seen = set()
        total = len(self._sorted_keys)

        for i in range(total):
            node = self._ring[self._sorted_keys[(pos + i) % total]]

            if node not in seen:
                nodes.append(node)
                seen.add(node)

                if len(nodes) == count:
                    break

        return nodes, len(nodes) == count

    # ------------------------------------------------------------------
    # Topology changes
    # ------------------------------------------------------------------

    def try_add_weighted_node(self, node: str, weight: int) -> Tuple["HashRing", MutationStatus]:
        """
        Add a weighted node, reporting why nothing happened if it didn't.

        Returns:
            (ring, status). ``ring`` is ``self`` unless status is APPLIED.
        """
        if not _is_valid_weight(weight):
            logger.debug("Ignoring add of %s with invalid weight %r", node, weight)
            return self, MutationStatus.INVALID_WEIGHT

        if node in self._nodes:
            logger.debug("Ignoring add of %s: already on the ring", node)
            return self, MutationStatus.NODE_EXISTS

        weights = dict(self._weights)
        weights[node] = weight

        return self._derive(self._nodes + (node,), weights), MutationStatus.APPLIED

    def add_weighted_node(self, node: str, weight: int) -> "HashRing":
        """
        Return a new ring with ``node`` added at ``weight``.

        A weight that is not a positive int, or a node already on the ring, returns this
        ring unchanged.
        """
        return self.try_add_weighted_node(node, weight)[0]

    def add_node(self, node: str) -> "HashRing":
        """Return a new ring with ``node`` added at weight 1."""
        return self.add_weighted_node(node, 1)

    def try_remove_node(self, node: str) -> Tuple["HashRing", MutationStatus]:
        """Remove a node. The ring is rebuilt even when the node is absent."""
        status = MutationStatus.APPLIED if node in self._nodes else MutationStatus.NODE_MISSING
        if status is MutationStatus.NODE_MISSING:
            logger.debug("Removing %s which is not on the ring", node)

        nodes = tuple(n for n in self._nodes if n != node)
        weights = {n: w for n, w in self._weights.items() if n != node}

        return self._derive(nodes, weights), status

    def remove_node(self, node: str) -> "HashRing":
        """Return a new ring without ``node``."""
        return self.try_remove_node(node)[0]

    def try_update_weighted_node(self, node: str, weight: int) -> Tuple["HashRing", MutationStatus]:
        """Change the weight of a node already on the ring."""
        if not _is_valid_weight(weight):
            logger.debug("Ignoring update of %s with invalid weight %r", node, weight)
            return self, MutationStatus.INVALID_WEIGHT

        if node not in self._nodes:
            logger.debug("Ignoring update of %s: not on the ring", node)
            return self, MutationStatus.NODE_MISSING

        if self.get_weight(node) == weight:
            logger.debug("Ignoring update of %s: weight is already %d", node, weight)
            return self, MutationStatus.UNCHANGED

        weights = dict(self._weights)
        weights[node] = weight

        return self._derive(self._nodes, weights), MutationStatus.APPLIED

    def update_weighted_node(self, node: str, weight: int) -> "HashRing":
        """Return a new ring with ``node`` re-weighted, or this ring if nothing changes."""
        return self.try_update_weighted_node(node, weight)[0]

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_all_nodes(self) -> List[str]:
        """Get all physical nodes."""
        return list(self._nodes)

    def get_node_count(self) -> int:
        """Get number of physical nodes."""
        return len(self._nodes)

    def virtual_points(self, node: str) -> List[VirtualPoint]:
        """
        Virtual points generated for a node, in generation order.

        Points later overwritten by a colliding node are still listed.
        """
        if node not in self._nodes:
            return []
        groups = point_groups(node, self._nodes, self._weights, self._config)
        return list(iter_node_points(node, groups, self._digest, self._config))

    def get_ring_state(self, limit: int = 20) -> List[Dict]:
        """Get current ring state for debugging."""
        return [
            {"hash": h, "node": self._ring[h]}
            for h in self._sorted_keys[:limit]
        ]

    def get_key_distribution(self, sample_keys: Iterable[str]) -> Dict[str, int]:
        """
        Get distribution of keys across nodes.

        Args:
            sample_keys: Keys to check

        Returns:
            Dict of node -> key count
        """
        distribution: Dict[str, int] = {}
        for key in sample_keys:
            node, found = self.get_node(key)
            if found:
                distribution[node] = distribution.get(node, 0) + 1
        return distribution


def _is_valid_weight(weight) -> bool:
    return isinstance(weight, int) and not isinstance(weight, bool) and weight > 0


def _unique_nodes(nodes: Iterable[str]) -> List[str]:
    if isinstance(nodes, str):
        raise TypeError(f"Expected a collection of node identifiers, got the string {nodes!r}")
    seen = set()
    unique = []
    for node in nodes:
        if not isinstance(node, str):
            raise TypeError(f"Node identifiers must be str, got {type(node).__name__}: {node!r}")
        if node not in seen:
            seen.add(node)
            unique.append(node)
    return unique


def _checked_weights(weights: Mapping[str, int], nodes: List[str]) -> Dict[str, int]:
    checked = {}
    for node in nodes:
        if node not in weights:
            continue
        weight = weights[node]
        if not _is_valid_weight(weight):
            raise ValueError(f"Weight for {node!r} must be a positive int, got {weight!r}")
        checked[node] = weight
    return checked
