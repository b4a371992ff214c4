"""
Ring ownership management: a shared handle to the current ring.
"""

import logging
import threading
from typing import Callable, Iterable, List, Optional, Tuple

from .config import MutationStatus
from .ring import HashRing

logger = logging.getLogger(__name__)

RingChangeCallback = Callable[[HashRing, HashRing], None]


def moved_keys(old_ring: HashRing, new_ring: HashRing,
               keys: Iterable[str]) -> List[Tuple[str, Optional[str], Optional[str]]]:
    """
    Keys whose owner differs between two rings.

    Returns:
        List of (key, old_owner, new_owner) tuples
    """
    moved = []
    for key in keys:
        old_owner, _ = old_ring.get_node(key)
        new_owner, _ = new_ring.get_node(key)
        if old_owner != new_owner:
            moved.append((key, old_owner, new_owner))
    return moved


class RingManager:
    """
    Holds the current ring and swaps it on topology changes.

    Features:
    - Lock-free reads of the current ring
    - Serialized read-modify-write for add/remove
    - Ownership change callback after every applied swap

    Rings handed out earlier stay valid; in-flight lookups on an old ring
    keep seeing the old placement.
    """

    def __init__(self, ring: Optional[HashRing] = None, replication_factor: int = 3):
        self._ring = ring if ring is not None else HashRing()
        self.replication_factor = replication_factor

        self._lock = threading.RLock()

        # Callbacks
        self._on_ring_change: Optional[RingChangeCallback] = None

    def set_ring_change_callback(self, callback: Optional[RingChangeCallback]):
        """Set callback for ring swaps: (old_ring, new_ring)"""
        self._on_ring_change = callback

    @property
    def ring(self) -> HashRing:
        """The current ring."""
        return self._ring

    def swap(self, new_ring: HashRing) -> HashRing:
        """Replace the current ring. Returns the ring that was replaced."""
        with self._lock:
            old_ring = self._ring
            self._ring = new_ring
        self._notify(old_ring, new_ring)
        return old_ring

    def _notify(self, old_ring: HashRing, new_ring: HashRing):
        # Runs outside the lock so callbacks may change the topology again
        logger.info("Ring swapped: %d -> %d nodes", old_ring.get_node_count(), new_ring.get_node_count())
        if self._on_ring_change:
            self._on_ring_change(old_ring, new_ring)

    def _apply(self, change: Callable[[HashRing], Tuple[HashRing, MutationStatus]]) -> MutationStatus:
        with self._lock:
            old_ring = self._ring
            new_ring, status = change(old_ring)
            if status is not MutationStatus.APPLIED:
                return status
            self._ring = new_ring
        self._notify(old_ring, new_ring)
        return status

    def add_node(self, node_id: str, weight: int = 1) -> MutationStatus:
        """Handle a new node joining."""
        return self._apply(lambda ring: ring.try_add_weighted_node(node_id, weight))

    def remove_node(self, node_id: str) -> MutationStatus:
        """Handle a node leaving."""
        return self._apply(lambda ring: ring.try_remove_node(node_id))

    def update_weight(self, node_id: str, weight: int) -> MutationStatus:
        """Change a node's share of the key space."""
        return self._apply(lambda ring: ring.try_update_weighted_node(node_id, weight))

    def get_owner(self, key: str) -> Optional[str]:
        """Get the owner node for a key."""
        node, _ = self._ring.get_node(key)
        return node

    def get_replicas(self, key: str) -> List[str]:
        """
        Get up to ``replication_factor`` distinct nodes for a key.

        Falls back to every node on the ring when there are fewer nodes
        than the replication factor.
        """
        ring = self._ring
        count = min(self.replication_factor, len(ring.owners))
        nodes, _ = ring.get_nodes(key, count)
        return nodes

    def get_partition_info(self) -> dict:
        """Get partition information."""
        ring = self._ring
        return {
            "replication_factor": self.replication_factor,
            "nodes": ring.get_all_nodes(),
            "points": len(ring),
            "collisions": ring.collisions,
            "ring_sample": ring.get_ring_state(),
        }
