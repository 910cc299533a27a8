"""Constraints for EXPACC and EXT2MUL."""

from primitives.field import ONE, TWO
from .base import ConstraintContext, ConstraintModule, no_change
from .boolean_ops import binary_check


class ExpAccConstraints(ConstraintModule):
    """One round of exponent accumulation.

    [bit, exp, acc, b, ...] -> [bit, exp^2, acc * h0, 2b + bit, ...]
    with h0 = (exp - 1) * bit + 1, i.e. exp when bit = 1 and 1 when bit = 0.
    """

    labels = (
        "s0^2 = s0",
        "s0' = s0",
        "s1' = s1^2",
        "h0 = (s1 - 1) * s0 + 1",
        "s2' = s2 * h0",
        "s3' = 2 * s3 + s0",
    )
    degrees = (2, 1, 2, 2, 2, 1)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        bit = ctx.stack(0)
        exp = ctx.stack(1)
        acc = ctx.stack(2)
        b = ctx.stack(3)
        h0 = ctx.helper(0)
        return [
            binary_check(bit),
            ctx.next_stack(0) - bit,
            ctx.next_stack(1) - exp * exp,
            h0 - ((exp - ONE) * bit + ONE),
            ctx.next_stack(2) - acc * h0,
            ctx.next_stack(3) - (TWO * b + bit),
        ]

    def stack_effect(self, ctx):
        return no_change(ctx, 4)


class Ext2MulConstraints(ConstraintModule):
    """Multiplication in GF(p)[x] / (x^2 - x + 2).

    [b1, b0, a1, a0, ...] -> [b1, b0, c1, c0, ...] where
        c1 = (a0 + a1)(b0 + b1) - a0*b0
        c0 = a0*b0 - 2*a1*b1
    """

    labels = (
        "s0' = s0",
        "s1' = s1",
        "s2' = (s0 + s1)(s2 + s3) - s1 * s3",
        "s3' = s1 * s3 - 2 * s0 * s2",
    )
    degrees = (1, 1, 2, 2)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        s0, s1, s2, s3 = (ctx.stack(i) for i in range(4))
        return [
            ctx.next_stack(0) - s0,
            ctx.next_stack(1) - s1,
            ctx.next_stack(2) - ((s0 + s1) * (s2 + s3) - s1 * s3),
            ctx.next_stack(3) - (s1 * s3 - TWO * s0 * s2),
        ]

    def stack_effect(self, ctx):
        return no_change(ctx, 4)
