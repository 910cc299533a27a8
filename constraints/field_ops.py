"""Constraints for the arithmetic field operations ADD, NEG, MUL, INV, INCR."""

from primitives.field import ONE
from .base import ConstraintContext, ConstraintModule, no_change, shift_left


class AddConstraints(ConstraintModule):
    """[a, b, ...] -> [a + b, ...]"""

    labels = ("s0' = s0 + s1",)
    degrees = (1,)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [ctx.next_stack(0) - (ctx.stack(0) + ctx.stack(1))]

    def stack_effect(self, ctx):
        return shift_left(ctx, 2)


class NegConstraints(ConstraintModule):
    """[a, ...] -> [-a, ...]"""

    labels = ("s0' = -s0",)
    degrees = (1,)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [ctx.next_stack(0) + ctx.stack(0)]

    def stack_effect(self, ctx):
        return no_change(ctx, 1)


class MulConstraints(ConstraintModule):
    """[a, b, ...] -> [a * b, ...]"""

    labels = ("s0' = s0 * s1",)
    degrees = (2,)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [ctx.next_stack(0) - ctx.stack(0) * ctx.stack(1)]

    def stack_effect(self, ctx):
        return shift_left(ctx, 2)


class InvConstraints(ConstraintModule):
    """[a, ...] -> [a^-1, ...]

    s0 * s0' = 1 has no solution when a = 0, so inverting zero cannot be proven.
    """

    labels = ("s0 * s0' = 1",)
    degrees = (2,)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [ctx.stack(0) * ctx.next_stack(0) - ONE]

    def stack_effect(self, ctx):
        return no_change(ctx, 1)


class IncrConstraints(ConstraintModule):
    """[a, ...] -> [a + 1, ...]"""

    labels = ("s0' = s0 + 1",)
    degrees = (1,)

    def op_constraints(self, ctx: ConstraintContext) -> list:
        return [ctx.next_stack(0) - (ctx.stack(0) + ONE)]

    def stack_effect(self, ctx):
        return no_change(ctx, 1)
