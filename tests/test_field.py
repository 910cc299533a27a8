"""Tests for Goldilocks field helpers, the quadratic extension and digests."""

import galois
import pytest

from primitives.digest import Digest, hash_words
from primitives.field import (
    FF,
    GOLDILOCKS_PRIME,
    canonical,
    ext2,
    ext2_coeffs,
    ext2_modulus_poly,
    ext2_mul,
    felt,
    inv,
    inv_or_zero,
    is_binary,
)

P = GOLDILOCKS_PRIME


class TestBaseField:
    def test_prime(self) -> None:
        """The field is GF(2^64 - 2^32 + 1)."""
        assert P == 2**64 - 2**32 + 1
        assert FF.order == P

    def test_felt_reduces(self) -> None:
        """felt reduces any int modulo p, including negatives."""
        assert canonical(felt(P + 5)) == 5
        assert canonical(felt(-1)) == P - 1

    def test_inverse(self) -> None:
        """inv(a) * a = 1 for non-zero a."""
        a = felt(123456789)
        assert canonical(inv(a) * a) == 1

    def test_inverse_of_zero_raises(self) -> None:
        """Zero has no inverse."""
        with pytest.raises(ZeroDivisionError):
            inv(felt(0))

    def test_inv_or_zero(self) -> None:
        """The helper witness of zero is zero."""
        assert canonical(inv_or_zero(felt(0))) == 0
        assert canonical(inv_or_zero(felt(7)) * felt(7)) == 1

    @pytest.mark.parametrize("value,expected", [(0, True), (1, True), (2, False), (P - 1, False)])
    def test_is_binary(self, value, expected) -> None:
        """Only 0 and 1 are binary."""
        assert is_binary(felt(value)) is expected


class TestExtension:
    @staticmethod
    def _poly_mul(a, b):
        """Reference product via galois polynomials modulo x^2 - x + 2."""
        pa = galois.Poly([a[1], a[0]], field=FF)
        pb = galois.Poly([b[1], b[0]], field=FF)
        prod = (pa * pb) % ext2_modulus_poly()
        coeffs = [int(c) for c in prod.coeffs[::-1]] + [0, 0]
        return coeffs[:2]

    @pytest.mark.parametrize("a,b", [
        ((3, 5), (7, 11)),
        ((0, 1), (0, 1)),
        ((P - 1, P - 2), (12345, 67890)),
        ((1, 0), (P - 1, 42)),
    ])
    def test_mul_matches_polynomial_product(self, a, b) -> None:
        """ext2_mul agrees with polynomial multiplication modulo x^2 - x + 2."""
        assert ext2_coeffs(ext2_mul(ext2(a), ext2(b))) == self._poly_mul(a, b)

    def test_x_squared(self) -> None:
        """x * x = x - 2."""
        assert ext2_coeffs(ext2_mul(ext2((0, 1)), ext2((0, 1)))) == [P - 2, 1]


class TestDigest:
    def test_content_addressed(self) -> None:
        """Equal word sequences hash to equal digests, different ones do not."""
        assert hash_words([1, 2, 3]) == hash_words([1, 2, 3])
        assert hash_words([1, 2, 3]) != hash_words([1, 2, 4])

    def test_elements_are_canonical(self) -> None:
        """Every digest element is a canonical field element."""
        d = hash_words(range(10))
        assert len(d.elements) == 4
        assert all(0 <= e < P for e in d)

    def test_hex_form(self) -> None:
        """hex() output parses back to the same digest."""
        d = hash_words([42])
        assert d.hex().startswith("0x") and len(d.hex()) == 66
        assert Digest.from_hex(d.hex()) == d

    def test_rejects_wrong_width(self) -> None:
        """A digest has exactly four elements."""
        with pytest.raises(ValueError):
            Digest((1, 2, 3))

    def test_rejects_non_canonical(self) -> None:
        """Elements must lie in [0, p)."""
        with pytest.raises(ValueError):
            Digest((P, 0, 0, 0))
