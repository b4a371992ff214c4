"""
Digest and Configuration Tests
"""

import hashlib
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hashring import HashRing, RingConfig, DigestError
from hashring.digest import (
    CallableDigest, DigestFunction, HashlibDigest,
    hash_val, resolve_digest, split_hash_keys,
)


class FixedDigest(DigestFunction):
    """Returns the same bytes for every input."""

    name = "fixed"

    def __init__(self, value: bytes):
        self.value = value
        self.digest_size = len(value)

    def digest(self, data: bytes) -> bytes:
        return self.value


def test_default_digest_is_md5():
    """Test that rings hash with MD5 unless told otherwise."""
    ring = HashRing(["a"])

    assert ring.digest.name == "md5"
    assert ring.digest.digest_size == 16

    expected = hash_val(hashlib.md5(b"some-key").digest())
    assert ring.gen_key("some-key") == expected, "Key should use the MD5 prefix"

    print("[OK] Default digest test passed")


def test_hash_providers():
    """Test the accepted hash provider forms."""
    assert resolve_digest("sha256").name == "sha256"
    assert resolve_digest(hashlib.sha1).name == "sha1"
    assert resolve_digest(hashlib.sha1).digest_size == 20

    fixed = FixedDigest(bytes(16))
    assert resolve_digest(fixed) is fixed, "DigestFunction should be used as is"

    wrapped = resolve_digest(lambda data: hashlib.blake2b(data).digest())
    assert isinstance(wrapped, CallableDigest)
    assert wrapped.digest_size == 64

    try:
        resolve_digest(42)
    except TypeError:
        pass
    else:
        raise AssertionError("Non-callable provider should be rejected")

    print("[OK] Hash provider test passed")


def test_provider_errors_propagate():
    """Test that errors inside a hash factory are not mistaken for a plain function."""
    def broken_factory():
        raise TypeError("factory misconfigured")

    try:
        resolve_digest(broken_factory)
    except TypeError as e:
        assert "misconfigured" in str(e), "Factory error should surface unchanged"
    else:
        raise AssertionError("Factory error should propagate")

    print("[OK] Provider error test passed")


def test_function_with_default_argument():
    """Test a bytes-to-bytes function whose argument has a default."""
    def sha1_digest(data=b""):
        return hashlib.sha1(data).digest()

    digest = resolve_digest(sha1_digest)
    assert isinstance(digest, CallableDigest)
    assert digest.digest_size == 20

    ring = HashRing(["a", "b"], sha1_digest)
    assert ring.sorted_keys == HashRing(["a", "b"], hashlib.sha1).sorted_keys

    print("[OK] Default argument function test passed")


def test_alternate_digest_changes_placement():
    """Test that the digest really drives point placement."""
    md5_ring = HashRing(["a", "b"])
    sha_ring = HashRing(["a", "b"], hashlib.sha1)

    assert md5_ring.sorted_keys != sha_ring.sorted_keys
    assert len(md5_ring) == len(sha_ring) == 240

    # Derived rings keep the digest
    assert sha_ring.add_node("c").digest is sha_ring.digest

    print("[OK] Alternate digest test passed")


def test_little_endian_decoding():
    """Test HashKey decoding."""
    assert hash_val(b"\x01\x00\x00\x00") == 1
    assert hash_val(b"\x00\x00\x00\x80") == 2 ** 31
    assert hash_val(b"\xff\xff\xff\xff\x01") == 2 ** 32 - 1, "Only 4 bytes are read"

    keys = split_hash_keys(bytes(range(12)), 3)
    assert keys == [0x03020100, 0x07060504, 0x0B0A0908]

    print("[OK] Little-endian decoding test passed")


def test_short_digest_fails_fast():
    """Test that a digest under 12 bytes is refused at construction."""
    short = CallableDigest(lambda data: hashlib.md5(data).digest()[:8])

    for nodes in (["a", "b"], []):
        try:
            HashRing(nodes, short)
        except DigestError:
            pass
        else:
            raise AssertionError("Short digest should be rejected")

    try:
        split_hash_keys(bytes(11), 3)
    except DigestError as e:
        assert "11 bytes" in str(e)
    else:
        raise AssertionError("Short digest should not be sliced")

    # DigestError is a ValueError
    assert issubclass(DigestError, ValueError)

    # Exactly 12 bytes is enough
    ring = HashRing(["a"], FixedDigest(bytes(range(12))))
    assert ring.get_node("x") == ("a", True)

    print("[OK] Short digest test passed")


def test_colliding_points():
    """Test that colliding points are kept in order but owned by the last writer."""
    ring = HashRing(["a", "b"], FixedDigest(bytes(range(12))))

    # Every point lands on the same 3 keys; "b" is built last
    assert len(ring) == 240
    assert set(ring.ring) == set(split_hash_keys(bytes(range(12)), 3))
    assert set(ring.ring.values()) == {"b"}
    assert ring.collisions == 237
    assert list(ring.sorted_keys) == sorted(ring.sorted_keys)

    assert ring.get_node("anything") == ("b", True)
    assert ring.get_nodes("anything", 2) == ([], False), "Only one node owns points"
    assert ring.get_nodes("anything", 1) == (["b"], True)

    print("[OK] Collision test passed")


def test_config_changes_density():
    """Test placement constants from the config."""
    config = RingConfig(points_per_node=10)
    ring = HashRing(["a", "b"], config=config)

    assert len(ring) == 60, "10 groups x 3 keys x 2 nodes"
    assert ring.add_node("c").config is config, "Derived rings keep the config"

    ring = HashRing(["a"], config=RingConfig(keys_per_digest=4))
    assert len(ring) == 160
    assert ring.config.min_digest_size == 16

    try:
        HashRing(["a"], hashlib.md5, RingConfig(keys_per_digest=5))
    except DigestError:
        pass
    else:
        raise AssertionError("MD5 cannot supply 20 bytes")

    try:
        RingConfig(points_per_node=0)
    except ValueError:
        pass
    else:
        raise AssertionError("Zero density should be rejected")

    print("[OK] Config density test passed")


def test_config_from_env():
    """Test reading the config from the environment."""
    saved = {k: os.environ.get(k) for k in ("HASHRING_POINTS_PER_NODE", "HASHRING_DIGEST")}
    try:
        os.environ["HASHRING_POINTS_PER_NODE"] = "20"
        os.environ["HASHRING_DIGEST"] = "sha1"

        config = RingConfig.from_env()
        assert config.points_per_node == 20
        assert config.keys_per_digest == 3
        assert config.default_digest == "sha1"

        ring = HashRing(["a"], config=config)
        assert ring.digest.name == "sha1"
        assert len(ring) == 60
    finally:
        for key, value in saved.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    print("[OK] Config from env test passed")


if __name__ == "__main__":
    test_default_digest_is_md5()
    test_hash_providers()
    test_provider_errors_propagate()
    test_function_with_default_argument()
    test_alternate_digest_changes_placement()
    test_little_endian_decoding()
    test_short_digest_fails_fast()
    test_colliding_points()
    test_config_changes_density()
    test_config_from_env()
    print("\n=== All digest tests passed! ===")
