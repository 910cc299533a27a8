"""Primitives - field arithmetic and content digests."""

from primitives.digest import DIGEST_SIZE, Digest, hash_words
from primitives.field import (
    FF,
    GOLDILOCKS_PRIME,
    MAX_CANONICAL,
    ONE,
    TWO,
    ZERO,
    canonical,
    column,
    ext2,
    ext2_coeffs,
    ext2_mul,
    felt,
    inv,
    inv_or_zero,
    is_binary,
)

__all__ = [
    # Field
    "FF",
    "GOLDILOCKS_PRIME",
    "MAX_CANONICAL",
    "ZERO",
    "ONE",
    "TWO",
    "felt",
    "canonical",
    "column",
    "is_binary",
    "inv",
    "inv_or_zero",
    # Quadratic extension
    "ext2",
    "ext2_coeffs",
    "ext2_mul",
    # Digest
    "Digest",
    "DIGEST_SIZE",
    "hash_words",
]
