"""Helper register bank.

Helper registers carry non-deterministic witnesses (inverses, accumulator
factors) that the executor supplies alongside a step. They are not derived
from the stack by the constraint evaluator; it only checks them.
"""

from typing import List

from primitives.field import FF, ZERO

NUM_HELPER_REGISTERS = 6


class HelperRegisters:
    """Per-step helper values, reset before every operation."""

    def __init__(self) -> None:
        self._values: List[FF] = [ZERO] * NUM_HELPER_REGISTERS

    def reset(self) -> None:
        self._values = [ZERO] * NUM_HELPER_REGISTERS

    def set(self, i: int, value: FF) -> None:
        if not 0 <= i < NUM_HELPER_REGISTERS:
            raise IndexError(f"helper register {i} out of range [0, {NUM_HELPER_REGISTERS})")
        self._values[i] = value

    def get(self, i: int) -> FF:
        return self._values[i]

    def snapshot(self) -> List[int]:
        """Current values as canonical ints."""
        return [int(v) for v in self._values]
