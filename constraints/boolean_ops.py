"""Constraints for the boolean operations NOT, AND, OR.

Each operand is checked to be binary with x^2 - x = 0 before the result is
constrained; a non-binary operand leaves that check unsatisfiable.
"""

from primitives.field import ONE
from .base import ConstraintContext, ConstraintModule, no_change, shift_left


def binary_check(x):
    """x^2 - x, zero iff x is 0 or 1."""
    return x * x - x


class NotConstraints(ConstraintModule):
    """[a, ...] -> [1 - a, ...]"""

    labels = ("s0^2 = s0", "s0' = 1 - s0")
    degrees = (2, 1)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        s0 = ctx.stack(0)
        return [
            binary_check(s0),
            ctx.next_stack(0) - (ONE - s0),
        ]

    def stack_effect(self, ctx):
        return no_change(ctx, 1)


class AndConstraints(ConstraintModule):
    """[a, b, ...] -> [a * b, ...]"""

    labels = ("s0^2 = s0", "s1^2 = s1", "s0' = s0 * s1")
    degrees = (2, 2, 2)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        s0 = ctx.stack(0)
        s1 = ctx.stack(1)
        return [
            binary_check(s0),
            binary_check(s1),
            ctx.next_stack(0) - s0 * s1,
        ]

    def stack_effect(self, ctx):
        return shift_left(ctx, 2)


class OrConstraints(ConstraintModule):
    """[a, b, ...] -> [a + b - a * b, ...]"""

    labels = ("s0^2 = s0", "s1^2 = s1", "s0' = s1 + s0 - s1 * s0")
    degrees = (2, 2, 2)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        s0 = ctx.stack(0)
        s1 = ctx.stack(1)
        return [
            binary_check(s0),
            binary_check(s1),
            ctx.next_stack(0) - (s1 + s0 - s1 * s0),
        ]

    def stack_effect(self, ctx):
        return shift_left(ctx, 2)
