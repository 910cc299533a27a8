"""Content digests for code blocks.

A digest is 4 Goldilocks elements. Code blocks are hashed from a canonical
sequence of field-sized words; the 32-byte SHA-256 output is split into four
little-endian 64-bit words, each reduced modulo p.
"""

import hashlib
import struct
from dataclasses import dataclass
from typing import Iterable, Sequence

from primitives.field import GOLDILOCKS_PRIME

DIGEST_SIZE = 4


@dataclass(frozen=True)
class Digest:
    """Fixed-width content hash: 4 canonical field elements."""
    elements: tuple

    def __post_init__(self) -> None:
        if len(self.elements) != DIGEST_SIZE:
            raise ValueError(f"digest must have {DIGEST_SIZE} elements, got {len(self.elements)}")
        for e in self.elements:
            if not 0 <= int(e) < GOLDILOCKS_PRIME:
                raise ValueError(f"digest element {e} is not a canonical field element")

    @classmethod
    def from_elements(cls, values: Sequence) -> "Digest":
        return cls(tuple(int(v) for v in values))

    @classmethod
    def from_hex(cls, text: str) -> "Digest":
        """Parse the 64-hex-character form produced by hex()."""
        raw = bytes.fromhex(text.removeprefix("0x"))
        if len(raw) != 8 * DIGEST_SIZE:
            raise ValueError(f"digest hex must encode {8 * DIGEST_SIZE} bytes, got {len(raw)}")
        return cls.from_elements(struct.unpack("<4Q", raw))

    def hex(self) -> str:
        return "0x" + struct.pack("<4Q", *self.elements).hex()

    def __iter__(self):
        return iter(self.elements)

    def __str__(self) -> str:
        return self.hex()


def hash_words(words: Iterable[int]) -> Digest:
    """Hash a sequence of 64-bit words into a Digest."""
    h = hashlib.sha256()
    for w in words:
        h.update(struct.pack("<Q", w % (1 << 64)))
    raw = h.digest()
    return Digest(tuple(v % GOLDILOCKS_PRIME for v in struct.unpack("<4Q", raw)))


