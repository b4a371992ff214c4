"""
Pluggable digest functions and hash key decoding.

A digest function turns a byte string into at least ``min_digest_size``
bytes. The ring cuts HashKeys out of the digest as little-endian 32-bit
unsigned integers, so the circle is the space ``[0, 2**32)``.
"""

import hashlib
import inspect
from typing import Callable, List, Optional, Union


HASH_KEY_SIZE = 4
HASH_SPACE = 1 << 32


class DigestError(ValueError):
    """Raised when a digest function yields fewer bytes than the ring reads."""


class DigestFunction:
    """
    Strategy for hashing node point names and lookup keys.

    Subclasses implement :meth:`digest`. ``digest_size`` is the number of
    bytes :meth:`digest` returns.
    """

    name = "custom"
    digest_size = 0

    def digest(self, data: bytes) -> bytes:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r})"


class HashlibDigest(DigestFunction):
    """Digest backed by a hashlib algorithm name or constructor."""

    def __init__(self, algorithm: Union[str, Callable] = "md5"):
        if isinstance(algorithm, str):
            self._factory = lambda: hashlib.new(algorithm)
        else:
            self._factory = algorithm

        probe = self._factory()
        self.name = probe.name
        self.digest_size = probe.digest_size

    def digest(self, data: bytes) -> bytes:
        hasher = self._factory()
        hasher.update(data)
        return hasher.digest()


class CallableDigest(DigestFunction):
    """Wraps a plain ``bytes -> bytes`` function."""

    def __init__(self, func: Callable[[bytes], bytes], name: Optional[str] = None):
        self._func = func
        self.name = name or getattr(func, "__name__", "custom")
        self.digest_size = len(func(b""))

    def digest(self, data: bytes) -> bytes:
        return self._func(data)


def resolve_digest(provider=None, default: str = "md5") -> DigestFunction:
    """
    Turn a hash provider argument into a DigestFunction.

    Accepts None (use ``default``), a hashlib algorithm name, a
    DigestFunction, a hashlib-style constructor such as ``hashlib.sha1``,
    or a plain function from bytes to bytes.
    """
    if provider is None:
        return HashlibDigest(default)
    if isinstance(provider, DigestFunction):
        return provider
    if isinstance(provider, str):
        return HashlibDigest(provider)
    if callable(provider):
        if _needs_argument(provider):
            return CallableDigest(provider)
        probe = provider()
        if isinstance(probe, DigestFunction):
            return probe
        if isinstance(probe, (bytes, bytearray)):
            return CallableDigest(provider)
        if hasattr(probe, "update") and hasattr(probe, "digest"):
            return HashlibDigest(provider)
        raise TypeError(f"Hash provider {provider!r} returned {type(probe).__name__}, not a hash object")
    raise TypeError(f"Unsupported hash provider: {provider!r}")


def _needs_argument(func: Callable) -> bool:
    """True if ``func`` cannot be called without arguments."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        # Builtins without introspection data, such as some hashlib constructors
        return False
    try:
        signature.bind()
    except TypeError:
        return True
    return False


def check_digest(digest: bytes, min_size: int) -> bytes:
    """Fail if ``digest`` is too short to read ``min_size`` bytes from."""
    if len(digest) < min_size:
        raise DigestError(
            f"Digest yielded {len(digest)} bytes, at least {min_size} are required"
        )
    return digest


def hash_val(chunk: bytes) -> int:
    """Decode a 4-byte chunk as a little-endian unsigned 32-bit integer."""
    return int.from_bytes(chunk[:HASH_KEY_SIZE], "little")


def split_hash_keys(digest: bytes, count: int) -> List[int]:
    """Cut ``count`` consecutive HashKeys from the front of ``digest``."""
    check_digest(digest, count * HASH_KEY_SIZE)
    return [
        hash_val(digest[i * HASH_KEY_SIZE:(i + 1) * HASH_KEY_SIZE])
        for i in range(count)
    ]
