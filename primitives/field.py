"""Goldilocks field GF(p) and its quadratic extension.

Uses galois for base field arithmetic. FF is the field type; scalars are 0-d
FieldArrays and columns are 1-d FieldArrays, so the same arithmetic code works
on a single value or on a whole column.

The quadratic extension is GF(p)[x] / (x^2 - x + 2). Elements are kept as
ascending coefficient pairs (a0, a1) = a0 + a1*x rather than as a galois
extension field, since only multiplication is needed.
"""

from typing import List, Sequence, Tuple

import galois

# --- Field Construction ---

GOLDILOCKS_PRIME = 0xFFFFFFFF00000001

FF = galois.GF(GOLDILOCKS_PRIME)
"""Base field GF(p) - Goldilocks prime field."""

# Largest canonical value, 2^64 - 2^32
MAX_CANONICAL = GOLDILOCKS_PRIME - 1

ZERO = FF(0)
ONE = FF(1)
TWO = FF(2)

# Non-residue in the extension modulus x^2 - x + 2, i.e. x^2 = x - 2
EXT2_MODULUS = (2, GOLDILOCKS_PRIME - 1, 1)  # ascending: 2 - x + x^2


# --- Conversion ---

def felt(value: int) -> FF:
    """Build a field element from any Python int, reducing modulo p."""
    return FF(value % GOLDILOCKS_PRIME)


def canonical(value) -> int:
    """Return the canonical integer in [0, p) of a field element or int."""
    return int(value) % GOLDILOCKS_PRIME


def is_binary(value) -> bool:
    """True if the element is 0 or 1."""
    return canonical(value) in (0, 1)


# --- Partial Operations ---

def inv(value: FF) -> FF:
    """Multiplicative inverse.

    Raises:
        ZeroDivisionError: If value is zero
    """
    if canonical(value) == 0:
        raise ZeroDivisionError("zero has no multiplicative inverse")
    return value ** -1


def inv_or_zero(value: FF) -> FF:
    """Inverse of value, or zero when value is zero (helper-register witness)."""
    if canonical(value) == 0:
        return ZERO
    return value ** -1


# --- Quadratic Extension ---

Ext2 = Tuple[FF, FF]


def ext2(coeffs: Sequence[int]) -> Ext2:
    """Construct an extension element from ascending coefficients [a0, a1]."""
    return felt(coeffs[0]), felt(coeffs[1])


def ext2_coeffs(elem: Ext2) -> List[int]:
    """Extract ascending coefficients [a0, a1] as ints."""
    return [canonical(elem[0]), canonical(elem[1])]


def ext2_mul(a: Ext2, b: Ext2) -> Ext2:
    """Multiply two extension elements modulo x^2 - x + 2.

    (a0 + a1x)(b0 + b1x) = a0b0 + (a0b1 + a1b0)x + a1b1x^2, and x^2 = x - 2:
        c0 = a0*b0 - 2*a1*b1
        c1 = (a0 + a1)(b0 + b1) - a0*b0
    """
    a0, a1 = a
    b0, b1 = b
    a0b0 = a0 * b0
    a1b1 = a1 * b1
    c0 = a0b0 - TWO * a1b1
    c1 = (a0 + a1) * (b0 + b1) - a0b0
    return c0, c1


def ext2_modulus_poly() -> galois.Poly:
    """Extension modulus x^2 - x + 2 as a galois polynomial over FF."""
    # galois uses descending coefficient order
    return galois.Poly(list(EXT2_MODULUS[::-1]), field=FF)


# --- Columns ---

def column(values: Sequence) -> FF:
    """Stack scalars or ints into one FF column."""
    return FF([canonical(v) for v in values])
