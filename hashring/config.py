"""
Configuration management for the hash ring.
"""

import os
from dataclasses import dataclass
from enum import Enum


class MutationStatus(Enum):
    """Outcome of a topology change."""
    APPLIED = "APPLIED"                # A new ring was built
    NODE_EXISTS = "NODE_EXISTS"        # Add of a node already in the ring
    NODE_MISSING = "NODE_MISSING"      # Remove/update of an unknown node
    INVALID_WEIGHT = "INVALID_WEIGHT"  # Weight <= 0
    UNCHANGED = "UNCHANGED"            # Update to the weight already set


@dataclass(frozen=True)
class RingConfig:
    """Placement constants for a ring."""
    # Point groups per node for a pool of equal weights, scaled by pool size
    points_per_node: int = 40

    # 4-byte keys cut from each digest
    keys_per_digest: int = 3

    # Algorithm used when no hash provider is given
    default_digest: str = "md5"

    def __post_init__(self):
        if self.points_per_node < 1:
            raise ValueError(f"points_per_node must be positive, got {self.points_per_node}")
        if self.keys_per_digest < 1:
            raise ValueError(f"keys_per_digest must be positive, got {self.keys_per_digest}")

    @property
    def min_digest_size(self) -> int:
        """Bytes a digest must yield to place one point group."""
        return self.keys_per_digest * 4

    @classmethod
    def from_env(cls, prefix: str = "HASHRING_") -> "RingConfig":
        """Build a config from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            points_per_node=int(os.environ.get(f"{prefix}POINTS_PER_NODE", defaults.points_per_node)),
            keys_per_digest=int(os.environ.get(f"{prefix}KEYS_PER_DIGEST", defaults.keys_per_digest)),
            default_digest=os.environ.get(f"{prefix}DIGEST", defaults.default_digest),
        )


DEFAULT_CONFIG = RingConfig()


def get_default_config() -> RingConfig:
    """Get the default ring configuration."""
    return DEFAULT_CONFIG
