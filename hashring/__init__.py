"""
hashring
A consistent hashing ring with weighted nodes and immutable topology changes.
"""

__version__ = "1.0.0"
__author__ = "The hashring Contributors"

from .config import RingConfig, MutationStatus, get_default_config
from .digest import DigestFunction, HashlibDigest, CallableDigest, DigestError
from .circle import VirtualPoint, Circle, build_circle
from .ring import HashRing
from .manager import RingManager, moved_keys

__all__ = [
    # Config
    'RingConfig',
    'MutationStatus',
    'get_default_config',
    # Digest
    'DigestFunction',
    'HashlibDigest',
    'CallableDigest',
    'DigestError',
    # Ring
    'VirtualPoint',
    'Circle',
    'build_circle',
    'HashRing',
    # Manager
    'RingManager',
    'moved_keys',
]
