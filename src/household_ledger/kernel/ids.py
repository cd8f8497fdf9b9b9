"""
ID and token generation

Record ids are UUIDv7-like (time-ordered) so rows created in the same
session sort naturally by creation. Invitation tokens are opaque,
URL-safe and unguessable; only their SHA-256 digest is ever kept once
they have been consumed.

Fun fact: there are 2^122 possible UUIDv7 values, so you would need a
trillion ids per second for 85 years to reach a 50% chance of collision.
"""

import hashlib
import secrets
import time
from typing import Protocol


class IdFactory(Protocol):
    """Protocol for ID generation strategies"""

    def generate(self) -> str:
        """Generate a new unique ID"""
        ...


def generate_id() -> str:
    """
    Generate a UUIDv7-like identifier (time-ordered UUID)

    First 48 bits: Unix timestamp in milliseconds, then version 7,
    the RFC 4122 variant and 74 random bits.

    Returns:
        Sortable UUID string (e.g., "01908e9a-3b87-7000-8000-123456789abc")
    """
    timestamp_48 = int(time.time() * 1000) & 0xFFFFFFFFFFFF

    rand_12 = secrets.randbits(12)
    rand_62 = secrets.randbits(62)

    time_high = (timestamp_48 >> 16) & 0xFFFFFFFF
    time_low = timestamp_48 & 0xFFFF
    version_and_rand = 0x7000 | rand_12
    variant_and_rand = 0x8000 | ((rand_62 >> 48) & 0x3FFF)
    node = rand_62 & 0xFFFFFFFFFFFF

    return (
        f"{time_high:08x}-{time_low:04x}-{version_and_rand:04x}-"
        f"{variant_and_rand:04x}-{node:012x}"
    )


def generate_invite_token(nbytes: int = 24) -> str:
    """Generate an opaque URL-safe invitation token"""
    return secrets.token_urlsafe(nbytes)


def token_digest(token: str) -> str:
    """SHA-256 hex digest used to remember consumed tokens without storing them"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class DefaultIdFactory:
    """Default ID factory using UUIDv7-like generation"""

    def generate(self) -> str:
        return generate_id()


default_id_factory = DefaultIdFactory()
