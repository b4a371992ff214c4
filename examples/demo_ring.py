"""
Demo of the consistent hashing ring.
Shows key placement, replica selection, weighting and rebalancing.
"""

import logging
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hashring import HashRing, RingManager, moved_keys


def print_header(text):
    """Print a section header."""
    print("\n" + "=" * 60)
    print(f" {text}")
    print("=" * 60)


def print_distribution(ring, keys):
    distribution = ring.get_key_distribution(keys)
    total = sum(distribution.values())
    for node in sorted(distribution):
        count = distribution[node]
        print(f"  {node}: {count} keys ({count / total:.1%})")


def demo():
    """Run the ring demo."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    keys = [f"user:{i}" for i in range(10000)]

    print_header("Step 1: Three Equal Nodes")
    manager = RingManager(HashRing(["cache1", "cache2", "cache3"]), replication_factor=2)
    print(f"  {manager.ring!r}")
    print_distribution(manager.ring, keys)

    print_header("Step 2: Key Placement")
    for key in keys[:5]:
        owner = manager.get_owner(key)
        replicas = manager.get_replicas(key)
        print(f"  {key} -> {owner} (replicas: {', '.join(replicas)})")

    print_header("Step 3: Adding a Heavier Node")
    old_ring = manager.ring
    status = manager.add_node("cache4", weight=2)
    print(f"  add cache4 (weight 2): {status.value}")
    moved = moved_keys(old_ring, manager.ring, keys)
    print(f"  {len(moved)} of {len(keys)} keys moved ({len(moved) / len(keys):.1%})")
    print_distribution(manager.ring, keys)

    print_header("Step 4: Removing a Node")
    old_ring = manager.ring
    status = manager.remove_node("cache2")
    print(f"  remove cache2: {status.value}")
    moved = moved_keys(old_ring, manager.ring, keys)
    print(f"  {len(moved)} keys moved, all from cache2: {all(m[1] == 'cache2' for m in moved)}")
    print_distribution(manager.ring, keys)

    print_header("Step 5: Rejected Changes")
    print(f"  add cache1 again: {manager.add_node('cache1').value}")
    print(f"  add cache9 at weight 0: {manager.add_node('cache9', weight=0).value}")


if __name__ == "__main__":
    demo()
