"""Opaque key generation for stored artifacts."""

import uuid


def generate_key() -> str:
    """Return a random 32-character lowercase hex key (a dashless UUID4)."""
    return uuid.uuid4().hex
