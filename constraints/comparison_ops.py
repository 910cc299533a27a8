"""Constraints for the equality tests EQ and EQZ.

Both use a helper witness h0. When the compared quantity d is non-zero the
first constraint forces s0' = 0 and the second then forces h0 = d^-1; when d
is zero the second constraint forces s0' = 1 whatever h0 holds. A wrong
inverse therefore fails the second constraint even when the first passes.
"""

from primitives.field import ONE
from .base import ConstraintContext, ConstraintModule, no_change, shift_left


class EqConstraints(ConstraintModule):
    """[a, b, ...] -> [a == b, ...]"""

    labels = ("s0' * (s0 - s1) = 0", "s0' = 1 - (s0 - s1) * h0")
    degrees = (2, 2)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        diff = ctx.stack(0) - ctx.stack(1)
        result = ctx.next_stack(0)
        return [
            result * diff,
            result - (ONE - diff * ctx.helper(0)),
        ]

    def stack_effect(self, ctx):
        return shift_left(ctx, 2)


class EqzConstraints(ConstraintModule):
    """[a, ...] -> [a == 0, ...]"""

    labels = ("s0' * s0 = 0", "s0' = 1 - s0 * h0")
    degrees = (2, 2)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        a = ctx.stack(0)
        result = ctx.next_stack(0)
        return [
            result * a,
            result - (ONE - a * ctx.helper(0)),
        ]

    def stack_effect(self, ctx):
        return no_change(ctx, 1)
